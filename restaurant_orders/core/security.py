"""
Authenticated principal.

Credential verification happens upstream (gateway / identity service).
The identity layer forwards the verified user as two headers which this
module turns into a Principal that every engine call receives.
"""

import enum
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException


class UserRole(str, enum.Enum):
    CLIENT = "CLIENT"
    RESTAURANT = "RESTAURANT"


@dataclass(frozen=True)
class Principal:
    """The acting user as asserted by the identity layer."""
    user_id: int
    role: UserRole

    @property
    def is_client(self) -> bool:
        return self.role == UserRole.CLIENT


async def get_principal(
    x_user_id: Optional[str] = Header(None, alias="x-user-id"),
    x_user_role: Optional[str] = Header(None, alias="x-user-role"),
) -> Principal:
    """FastAPI dependency building the principal from identity headers."""
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=401, detail="Missing identity headers")

    try:
        user_id = int(x_user_id)
        role = UserRole(x_user_role.upper())
    except ValueError:
        raise HTTPException(status_code=401, detail="Malformed identity headers")

    if user_id <= 0:
        raise HTTPException(status_code=401, detail="Malformed identity headers")

    return Principal(user_id=user_id, role=role)
