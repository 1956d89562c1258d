"""
Transactional unit-of-work runner.

Every engine and ledger operation runs its work inside one session and one
transaction through `run_in_transaction`, which also owns the storage
failure policy:

    - StaleDataError (optimistic version check failed) -> Conflict
    - OperationalError / InterfaceError / pool TimeoutError -> retried once,
      then Unavailable
    - any other SQLAlchemyError except IntegrityError -> Unavailable
    - OrderingError raised by the work -> rolled back and propagated as is
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import (
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from restaurant_orders.core.exceptions import Conflict, Unavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError)

# A failed attempt is retried at most this many times
MAX_RETRIES = 1


async def run_in_transaction(
    session_factory: async_sessionmaker[AsyncSession],
    work: Callable[[AsyncSession], Awaitable[T]],
    retry_delay: float = 0.0,
    operation: str = "storage operation",
) -> T:
    """
    Run `work(session)` inside a fresh transaction.

    The transaction commits when `work` returns and rolls back when it
    raises, so a failed operation leaves nothing behind.

    Args:
        session_factory: Factory producing AsyncSession instances
        work: Coroutine function receiving the open session
        retry_delay: Seconds to wait before the single retry
        operation: Label used in log messages

    Returns:
        Whatever `work` returns

    Raises:
        Conflict: A concurrent writer changed the row first
        Unavailable: Storage kept failing after the retry, or failed in a
            way a retry cannot fix
    """
    attempt = 0
    while True:
        try:
            async with session_factory() as session:
                async with session.begin():
                    return await work(session)

        except StaleDataError as e:
            logger.warning(f"{operation}: concurrent modification detected ({e})")
            raise Conflict() from e

        except TRANSIENT_ERRORS as e:
            if attempt >= MAX_RETRIES:
                logger.exception(f"{operation}: storage failure after retry")
                raise Unavailable() from e

            attempt += 1
            logger.warning(f"{operation}: transient storage error, retrying ({e})")
            if retry_delay:
                await asyncio.sleep(retry_delay)

        except IntegrityError:
            raise

        except SQLAlchemyError as e:
            logger.exception(f"{operation}: storage failure")
            raise Unavailable() from e
