"""Deadline Enforcer: scheduled maintenance over postings and applications.

Invariants:
    - run_application_scheduled_tasks() runs deadline enforcement, then the
      attention check, sequentially; an error in either propagates and aborts
      the rest of that cycle
    - close_expired() is idempotent, so overlapping sweeps are harmless
    - start_periodic() runs a cycle immediately, then every interval; a failed
      cycle is logged and the loop continues

Design Decisions:
    - Intended trigger is an external scheduler (hourly) hitting the
      maintenance route; start_periodic() is for single-instance deployments
"""

import asyncio
import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager

from jobboard.core.deadlines import days_from_today
from jobboard.schemas.application import ApplicationResponse
from jobboard.services.application_workflow import ApplicationWorkflow
from jobboard.services.job_posting_store import JobPostingStore
from jobboard.services.notification_dispatcher import NotificationDispatcher
from jobboard.services.persistence import Clock, utc_now

logger = logging.getLogger(__name__)

DEFAULT_REMINDER_DAYS = 3


class DeadlineEnforcer:
    def __init__(
        self,
        jobs: JobPostingStore,
        applications: ApplicationWorkflow,
        dispatcher: NotificationDispatcher,
        reminder_days: int = DEFAULT_REMINDER_DAYS,
        clock: Clock = utc_now,
    ):
        self.jobs = jobs
        self.applications = applications
        self.dispatcher = dispatcher
        self.reminder_days = reminder_days
        self._clock = clock

    async def run_deadline_enforcement(self) -> int:
        closed = await self.jobs.close_expired()
        logger.info(f"Deadline enforcement closed {closed} job postings", extra={"count": closed})
        return closed

    async def check_applications_needing_attention(self) -> list[ApplicationResponse]:
        stale = await self.applications.needing_attention()
        for application in stale:
            logger.info(
                "Application pending past the review window",
                extra={
                    "application_id": str(application.id),
                    "job_id": str(application.job_id),
                },
            )
        if stale:
            logger.info(f"{len(stale)} applications need attention", extra={"count": len(stale)})
        return stale

    async def send_deadline_reminders(self, days_before: int | None = None) -> int:
        """Remind matching students about postings whose deadline is N days out."""
        days = self.reminder_days if days_before is None else days_before
        due = await self.jobs.due_on(days_from_today(self._clock(), days))
        if not due:
            return 0
        result = await self.dispatcher.notify_deadline_approaching(due, days)
        logger.info(
            f"Sent {result.persisted} deadline reminders for {len(due)} postings",
            extra={"count": result.persisted},
        )
        return result.persisted

    async def run_application_scheduled_tasks(self) -> dict:
        closed = await self.run_deadline_enforcement()
        stale = await self.check_applications_needing_attention()
        return {"closed_jobs": closed, "stale_applications": len(stale)}


async def _periodic_cycles(
    scope: Callable[[], AbstractAsyncContextManager[DeadlineEnforcer]],
    interval_seconds: float,
) -> None:
    while True:
        try:
            async with scope() as enforcer:
                await enforcer.run_application_scheduled_tasks()
        except Exception as e:
            logger.error(
                f"Scheduled task cycle failed: {e}",
                exc_info=True,
                extra={"operation": "scheduled_tasks"},
            )
        await asyncio.sleep(interval_seconds)


def start_periodic(
    scope: Callable[[], AbstractAsyncContextManager[DeadlineEnforcer]],
    interval_seconds: float,
) -> asyncio.Task:
    """Self-scheduling loop. `scope` yields an enforcer bound to a fresh session per cycle."""
    return asyncio.create_task(_periodic_cycles(scope, interval_seconds))
