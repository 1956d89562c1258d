"""UTC time helpers shared by the engine, the ledger and the schemas."""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to timezone-qualified UTC.

    Naive values are taken to already be UTC (SQLite drops the offset on
    storage; callers are expected to send qualified timestamps).
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
