"""Maintenance Routes: entrypoints for an external scheduler (cron).

Invariants:
    - Only admin actors may trigger maintenance
    - scheduled-tasks runs deadline enforcement then the attention check;
      a failure in the first step aborts the second
"""

from fastapi import APIRouter, Depends, Query

from jobboard.api.dependencies import get_enforcer, require_actor
from jobboard.core.domain_types import Actor
from jobboard.core.errors import ErrorContext, PermissionDeniedError
from jobboard.services.deadline_enforcer import DeadlineEnforcer

router = APIRouter(prefix="/api/v1/maintenance", tags=["maintenance"])


def _require_admin(actor: Actor) -> None:
    if not actor.is_admin:
        raise PermissionDeniedError(
            "Maintenance tasks require an admin", ErrorContext(user_id=str(actor.id)),
        )


@router.post("/scheduled-tasks")
async def run_scheduled_tasks(
    actor: Actor = Depends(require_actor),
    enforcer: DeadlineEnforcer = Depends(get_enforcer),
):
    _require_admin(actor)
    return await enforcer.run_application_scheduled_tasks()


@router.post("/deadline-reminders")
async def send_deadline_reminders(
    days_before: int | None = Query(None, ge=0, le=60),
    actor: Actor = Depends(require_actor),
    enforcer: DeadlineEnforcer = Depends(get_enforcer),
):
    _require_admin(actor)
    return {"reminders": await enforcer.send_deadline_reminders(days_before)}
