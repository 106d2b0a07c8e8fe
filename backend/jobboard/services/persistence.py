"""Persistence helpers shared by the services: commit with error mapping, and the clock.

Invariants:
    - A failed commit is rolled back before the mapped DatabaseError is raised
    - Services never read the wall clock directly; they call an injected Clock
"""

import logging
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from jobboard.core.errors import DatabaseError, ErrorContext

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


async def commit(
    db: AsyncSession, operation: str, context: ErrorContext | None = None,
) -> None:
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Commit failed during {operation}: {e}", extra={"operation": operation})
        raise DatabaseError(type(e).__name__, operation, context) from e


async def rollback_quietly(db: AsyncSession) -> None:
    """Reset a session after a swallowed failure so it stays usable."""
    try:
        await db.rollback()
    except SQLAlchemyError as e:
        logger.warning(f"Rollback after swallowed failure also failed: {e}")
