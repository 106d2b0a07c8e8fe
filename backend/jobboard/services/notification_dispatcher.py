"""Notification Dispatcher: best-effort email plus persisted in-app notification per event.

Invariants:
    - Every event has two independent effects: an outbound email through the
      EmailProvider and one Notification row per recipient
    - Either effect may fail without affecting the other; failures are logged as
      NotificationFailure and never raised
    - Called only after the triggering write has committed
    - status_update is never sent for PENDING
    - new_job goes to students who have not opted out and whose department is
      unset or equal to the posting's department, as ONE batched email call
    - Inserting notifications invalidates each recipient's cached inbox
    - Single-recipient events take ProfileSummary snapshots, so a rollback in
      an earlier side effect cannot expire them
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from jobboard.core import notification_messages as messages
from jobboard.core.domain_types import ApplicationStatus, NotificationType, UserRole
from jobboard.core.notification_messages import InAppMessage
from jobboard.core.repository_protocols import (
    BatchEmail, BatchRecipient, EmailMessage, EmailProvider,
)
from jobboard.core.status_transitions import should_notify_applicant
from jobboard.infrastructure.read_cache import ReadCache
from jobboard.models.job_posting import JobPosting
from jobboard.models.notification import Notification
from jobboard.models.profile import Profile
from jobboard.schemas.profile import ProfileSummary
from jobboard.services.persistence import Clock, rollback_quietly, utc_now
from jobboard.services.side_effects import best_effort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchResult:
    email_sent: bool = False
    persisted: int = 0


class NotificationDispatcher:
    """Fans out email and in-app notifications for job and application events."""

    def __init__(
        self,
        db: AsyncSession,
        email: EmailProvider,
        cache: ReadCache | None = None,
        site_url: str = "",
        clock: Clock = utc_now,
    ):
        self.db = db
        self.email = email
        self.cache = cache
        self.site_url = site_url.rstrip("/")
        self._clock = clock

    @property
    def dashboard_url(self) -> str:
        return f"{self.site_url}/dashboard"

    def job_url(self, job_id) -> str:
        return f"{self.site_url}/jobs/{job_id}"

    # ─── Events ─────────────────────────────────────────────────

    async def notify_application_received(
        self,
        owner: ProfileSummary,
        job_title: str,
        applicant_name: str,
        applied_at: datetime | None,
    ) -> DispatchResult:
        """One recipient: the job owner."""
        email = EmailMessage(
            to=owner.email,
            template=NotificationType.APPLICATION_RECEIVED,
            data=messages.application_received_payload(
                owner.id, owner.full_name, job_title, applicant_name,
                applied_at, self.dashboard_url,
            ),
        )
        in_app = messages.application_received_message(owner.id, job_title, applicant_name)
        return await self._dispatch_single(email, in_app)

    async def notify_status_update(
        self,
        applicant: ProfileSummary,
        job_title: str,
        status: ApplicationStatus,
        updated_at: datetime | None,
    ) -> DispatchResult:
        """One recipient: the applicant. No-op for PENDING."""
        if not should_notify_applicant(status):
            return DispatchResult()
        email = EmailMessage(
            to=applicant.email,
            template=NotificationType.STATUS_UPDATE,
            data=messages.status_update_payload(
                applicant.id, applicant.full_name, job_title, status,
                updated_at, self.dashboard_url,
            ),
        )
        in_app = messages.status_update_message(applicant.id, job_title, status)
        return await self._dispatch_single(email, in_app)

    async def notify_new_job(self, job: JobPosting) -> DispatchResult:
        """Broadcast a new posting to interested students (batched email)."""
        job_id, title, department = job.id, job.title, job.department
        job_type, description = job.job_type, job.description
        deadline = job.application_deadline

        ok, audience = await best_effort(
            self.new_job_audience(department), "new_job_audience",
        )
        if not ok:
            await rollback_quietly(self.db)
            return DispatchResult()
        if not audience:
            return DispatchResult()

        batch = BatchEmail(
            template=NotificationType.NEW_JOB,
            subject=messages.new_job_subject(title),
            recipients=[
                BatchRecipient(
                    email=student.email,
                    user_id=str(student.id),
                    data=messages.new_job_payload(
                        student.id, student.full_name, title, department,
                        job_type, description, deadline, self.job_url(job_id),
                    ),
                )
                for student in audience
            ],
        )
        in_app = [
            messages.new_job_message(student.id, title, job_type, department)
            for student in audience
        ]
        email_sent, _ = await best_effort(self.email.send_batch(batch), "new_job_email")
        persisted = await self._persist_best_effort(in_app, "new_job_in_app")
        logger.info(
            f"New job broadcast for '{title}' to {len(in_app)} students",
            extra={"job_id": str(job_id), "count": len(in_app)},
        )
        return DispatchResult(email_sent=email_sent, persisted=persisted)

    async def notify_jobs_closed(self, jobs: Iterable[JobPosting]) -> DispatchResult:
        """In-app notice to each owner whose posting the sweep closed."""
        in_app = [messages.job_closed_message(job.posted_by, job.title) for job in jobs]
        if not in_app:
            return DispatchResult()
        persisted = await self._persist_best_effort(in_app, "jobs_closed_in_app")
        return DispatchResult(persisted=persisted)

    async def notify_deadline_approaching(
        self, jobs: Iterable[JobPosting], days_before: int,
    ) -> DispatchResult:
        """In-app reminder to every student matching each posting's department."""
        jobs = list(jobs)
        if not jobs:
            return DispatchResult()
        ok, students = await best_effort(
            self._students(), "deadline_reminder_audience",
        )
        if not ok:
            await rollback_quietly(self.db)
            return DispatchResult()
        if not students:
            return DispatchResult()
        in_app = [
            messages.deadline_approaching_message(student.id, job.title, days_before)
            for job in jobs
            for student in students
            if messages.wants_new_job_alert(student.department, job.department)
        ]
        if not in_app:
            return DispatchResult()
        persisted = await self._persist_best_effort(in_app, "deadline_reminder_in_app")
        return DispatchResult(persisted=persisted)

    # ─── Audience ───────────────────────────────────────────────

    async def new_job_audience(self, department: str) -> list[Profile]:
        """Students opted in (NULL or true) whose department is unset or matches."""
        result = await self.db.execute(
            select(Profile)
            .where(Profile.role == UserRole.STUDENT.value)
            .where(or_(
                Profile.email_new_jobs.is_(None),
                Profile.email_new_jobs.is_(True),
            ))
            .order_by(Profile.created_at)
        )
        return [
            p for p in result.scalars().all()
            if messages.wants_new_job_alert(p.department, department)
        ]

    async def _students(self) -> list[Profile]:
        result = await self.db.execute(
            select(Profile).where(Profile.role == UserRole.STUDENT.value),
        )
        return list(result.scalars().all())

    # ─── Effects ────────────────────────────────────────────────

    async def _dispatch_single(
        self, email: EmailMessage, in_app: InAppMessage,
    ) -> DispatchResult:
        operation = email.template.value
        email_sent, _ = await best_effort(self.email.send(email), f"{operation}_email")
        persisted = await self._persist_best_effort([in_app], f"{operation}_in_app")
        return DispatchResult(email_sent=email_sent, persisted=persisted)

    async def _persist_best_effort(self, in_app: list[InAppMessage], operation: str) -> int:
        ok, _ = await best_effort(self._persist(in_app), operation)
        return len(in_app) if ok else 0

    async def _persist(self, in_app: list[InAppMessage]) -> None:
        now = self._clock()
        self.db.add_all([
            Notification(
                user_id=m.user_id,
                title=m.title,
                message=m.message,
                type=m.type.value,
                read=False,
                created_at=now,
            )
            for m in in_app
        ])
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        if self.cache is not None:
            for user_id in {m.user_id for m in in_app}:
                self.cache.invalidate_notifications(user_id)
