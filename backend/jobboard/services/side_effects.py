"""Best-Effort Side Effects: run a follow-up after the primary write and never propagate.

Invariants:
    - Called only after the primary record is committed
    - Any exception is wrapped in the given non-fatal error type, logged as a
      warning with its error_code, and converted to a False result
    - CancelledError is not swallowed
"""

import logging
from typing import Awaitable, TypeVar

from jobboard.core.errors import (
    AttachmentFailure, ErrorContext, JobBoardError, NotificationFailure,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def best_effort(
    awaitable: Awaitable[T],
    operation: str,
    failure: type[AttachmentFailure] | type[NotificationFailure] = NotificationFailure,
    context: ErrorContext | None = None,
) -> tuple[bool, T | None]:
    """Await a side effect; return (succeeded, result)."""
    try:
        return True, await awaitable
    except Exception as e:
        message = e.message if isinstance(e, JobBoardError) else str(e) or type(e).__name__
        degraded = failure(message, operation, context)
        logger.warning(
            degraded.message,
            extra={**degraded.log_extra(), "operation": operation},
        )
        return False, None
