"""Application Workflow: submission gate, joined reads, status changes and withdrawal.

Invariants:
    - create() fails fast, before any write, in this order: AuthenticationRequired,
      DuplicateApplication, NotFound, JobInactive, DeadlinePassed
    - The Application insert is the durability boundary; résumé upload/attach and
      the owner notification after it are best-effort and never fail the call
    - A unique-constraint violation on insert is reported as DuplicateApplication
    - Every new application is PENDING
    - update_status() notifies the applicant for any non-PENDING status;
      bulk_update_status() never notifies
    - has_applied() never raises
    - view() exposes an application only to its applicant, the job owner or an admin
    - delete(): applicant only, PENDING only, résumé removed before the row
    - Response snapshots are taken before side effects run, since a rollback
      inside one expires every loaded row

Design Decisions:
    - Transition ordering is permissive unless strict_transitions is set
    - Joined reads eager-load applicant, job and job owner (relationships are
      lazy="raise")
"""

import logging
import uuid
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from jobboard.core.deadlines import STALE_APPLICATION_DAYS, is_deadline_passed, stale_cutoff
from jobboard.core.domain_types import Actor, ApplicationStatus
from jobboard.core.errors import (
    AttachmentFailure, AuthenticationRequiredError, DatabaseError,
    DeadlinePassedError, DuplicateApplicationError, ErrorContext,
    InvalidApplicationStateError, JobInactiveError, PermissionDeniedError,
    ResourceNotFoundError, ValidationFailedError,
)
from jobboard.core.repository_protocols import IdentityProvider, ObjectStorage, ResumeUpload
from jobboard.core.resume_paths import object_key_from_url, resume_object_key
from jobboard.core.status_transitions import INITIAL_STATUS, check_transition, is_deletable
from jobboard.infrastructure.read_cache import CacheKeys, ReadCache
from jobboard.models.application import Application
from jobboard.models.job_posting import JobPosting
from jobboard.schemas.application import (
    ApplicationDetail, ApplicationResponse, ApplicationStats,
    application_detail, application_response,
)
from jobboard.schemas.profile import ProfileSummary
from jobboard.services.notification_dispatcher import NotificationDispatcher
from jobboard.services.persistence import Clock, commit, rollback_quietly, utc_now
from jobboard.services.side_effects import best_effort

logger = logging.getLogger(__name__)

LISTING_TTL_SECONDS = 2 * 60.0

_JOINED = (
    selectinload(Application.applicant),
    selectinload(Application.job_posting).selectinload(JobPosting.owner),
)


class ApplicationWorkflow:
    """Application lifecycle on top of an AsyncSession."""

    def __init__(
        self,
        db: AsyncSession,
        identity: IdentityProvider,
        storage: ObjectStorage,
        dispatcher: NotificationDispatcher,
        cache: ReadCache,
        clock: Clock = utc_now,
        strict_transitions: bool = False,
        stale_after_days: int = STALE_APPLICATION_DAYS,
        listing_ttl: float = LISTING_TTL_SECONDS,
    ):
        self.db = db
        self.identity = identity
        self.storage = storage
        self.dispatcher = dispatcher
        self.cache = cache
        self._clock = clock
        self.strict_transitions = strict_transitions
        self.stale_after_days = stale_after_days
        self.listing_ttl = listing_ttl

    async def _require_actor(self, action: str) -> Actor:
        actor = await self.identity.current_actor()
        if actor is None:
            raise AuthenticationRequiredError(action)
        return actor

    # ─── Submission ─────────────────────────────────────────────

    async def create(
        self,
        job_id: UUID,
        cover_letter: str,
        resume: ResumeUpload | None = None,
        applicant_id: UUID | None = None,
    ) -> ApplicationResponse:
        actor = await self._require_actor("apply for jobs")
        applicant_id = applicant_id or actor.id
        ctx = ErrorContext(job_id=str(job_id), user_id=str(applicant_id))
        if applicant_id != actor.id:
            raise PermissionDeniedError("You can only apply on your own behalf", ctx)
        if not cover_letter or not cover_letter.strip():
            raise ValidationFailedError("Cover letter is required", ["cover_letter"], ctx)

        if await self._exists(job_id, applicant_id):
            raise DuplicateApplicationError(ctx)

        result = await self.db.execute(
            select(JobPosting)
            .options(selectinload(JobPosting.owner))
            .where(JobPosting.id == job_id)
            .execution_options(populate_existing=True)
        )
        job = result.scalar_one_or_none()
        now = self._clock()
        if job is None:
            raise ResourceNotFoundError("Job posting", str(job_id), ctx)
        if not job.is_active:
            raise JobInactiveError(ctx)
        if is_deadline_passed(job.application_deadline, now):
            raise DeadlinePassedError(ctx)
        owner = ProfileSummary.model_validate(job.owner)
        job_title = job.title

        application = Application(
            id=uuid.uuid4(),
            job_id=job_id,
            applicant_id=applicant_id,
            cover_letter=cover_letter,
            status=INITIAL_STATUS.value,
            applied_at=now,
            updated_at=now,
        )
        self.db.add(application)
        await self._commit_insert(job_id, applicant_id, ctx)

        created = application_response(application)
        ctx.application_id = str(created.id)
        self.cache.invalidate_application(created.id, applicant_id, job_id)
        logger.info("Application submitted", extra={
            "application_id": ctx.application_id, "job_id": ctx.job_id, "user_id": ctx.user_id,
        })

        if resume is not None:
            resume_url = await self._attach_resume(created.id, applicant_id, resume, ctx)
            if resume_url:
                created = created.model_copy(update={"resume_url": resume_url})

        await best_effort(
            self.dispatcher.notify_application_received(
                owner, job_title, actor.full_name or actor.email, created.applied_at,
            ),
            "application_received",
            context=ctx,
        )
        return created

    async def _commit_insert(self, job_id: UUID, applicant_id: UUID, ctx: ErrorContext) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            # A concurrent submission won the unique constraint
            if await self._exists(job_id, applicant_id):
                raise DuplicateApplicationError(ctx) from e
            raise DatabaseError(type(e).__name__, "create application", ctx) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DatabaseError(type(e).__name__, "create application", ctx) from e

    async def _attach_resume(
        self, application_id: UUID, applicant_id: UUID, resume: ResumeUpload, ctx: ErrorContext,
    ) -> str | None:
        """Upload, then record the public URL on the row. None when either step fails."""
        key = resume_object_key(applicant_id, application_id, resume.filename)
        uploaded, _ = await best_effort(
            self.storage.upload(key, resume.content, resume.content_type),
            "resume_upload", AttachmentFailure, ctx,
        )
        if not uploaded:
            return None

        resume_url = self.storage.public_url(key)
        attached, _ = await best_effort(
            self._set_resume_url(application_id, resume_url),
            "resume_attach", AttachmentFailure, ctx,
        )
        if not attached:
            await rollback_quietly(self.db)
            return None
        self.cache.delete(CacheKeys.application(application_id))
        return resume_url

    async def _set_resume_url(self, application_id: UUID, resume_url: str) -> None:
        await self.db.execute(
            update(Application)
            .where(Application.id == application_id)
            .values(resume_url=resume_url)
        )
        await self.db.commit()

    # ─── Reads ──────────────────────────────────────────────────

    async def get(self, application_id: UUID) -> ApplicationDetail | None:
        async def load() -> ApplicationDetail | None:
            result = await self.db.execute(
                select(Application)
                .options(*_JOINED)
                .where(Application.id == application_id)
                .execution_options(populate_existing=True)
            )
            row = result.scalar_one_or_none()
            return application_detail(row) if row is not None else None

        return await self.cache.cached_fetch(
            CacheKeys.application(application_id), load, self.listing_ttl,
        )

    async def view(self, application_id: UUID) -> ApplicationDetail:
        """get() for a caller: only the applicant, the job owner or an admin may read it."""
        actor = await self._require_actor("view applications")
        ctx = ErrorContext(application_id=str(application_id), user_id=str(actor.id))
        detail = await self.get(application_id)
        if detail is None:
            raise ResourceNotFoundError("Application", str(application_id), ctx)
        if (
            detail.applicant_id != actor.id
            and detail.job_posting.posted_by != actor.id
            and not actor.is_admin
        ):
            raise PermissionDeniedError("You cannot view this application", ctx)
        return detail

    async def list_by_job(self, job_id: UUID) -> list[ApplicationDetail]:
        return await self._joined_list(Application.job_id == job_id)

    async def list_by_applicant(self, applicant_id: UUID | None = None) -> list[ApplicationDetail]:
        if applicant_id is None:
            applicant_id = (await self._require_actor("view your applications")).id
        return await self.cache.cached_fetch(
            CacheKeys.applications(applicant_id),
            lambda: self._joined_list(Application.applicant_id == applicant_id),
            self.listing_ttl,
        )

    async def _joined_list(self, condition: Any) -> list[ApplicationDetail]:
        result = await self.db.execute(
            select(Application)
            .options(*_JOINED)
            .where(condition)
            .order_by(Application.applied_at.desc(), Application.id.asc())
            .execution_options(populate_existing=True)
        )
        return [application_detail(row) for row in result.scalars().all()]

    async def has_applied(self, job_id: UUID, applicant_id: UUID | None = None) -> bool:
        """Existence probe that answers False instead of raising."""
        try:
            if applicant_id is None:
                actor = await self.identity.current_actor()
                if actor is None:
                    return False
                applicant_id = actor.id
            return await self._exists(job_id, applicant_id)
        except Exception as e:
            logger.warning(
                f"has_applied probe failed, answering False: {e}",
                extra={"job_id": str(job_id), "operation": "has_applied"},
            )
            await rollback_quietly(self.db)
            return False

    async def stats(self, job_id: UUID) -> ApplicationStats:
        result = await self.db.execute(
            select(Application.status, func.count())
            .where(Application.job_id == job_id)
            .group_by(Application.status)
        )
        counts = {status: n for status, n in result.all()}
        return ApplicationStats(
            total=sum(counts.values()),
            **{s.value: counts.get(s.value, 0) for s in ApplicationStatus},
        )

    async def needing_attention(self, older_than_days: int | None = None) -> list[ApplicationResponse]:
        """PENDING applications submitted before the staleness cutoff, oldest first."""
        days = self.stale_after_days if older_than_days is None else older_than_days
        cutoff = stale_cutoff(self._clock(), days)
        result = await self.db.execute(
            select(Application)
            .where(Application.status == ApplicationStatus.PENDING.value)
            .where(Application.applied_at < cutoff)
            .order_by(Application.applied_at.asc())
        )
        return [application_response(row) for row in result.scalars().all()]

    async def _exists(self, job_id: UUID, applicant_id: UUID) -> bool:
        try:
            found = await self.db.scalar(
                select(Application.id)
                .where(Application.job_id == job_id)
                .where(Application.applicant_id == applicant_id)
                .limit(1)
            )
        except SQLAlchemyError as e:
            raise DatabaseError(
                type(e).__name__, "application existence check",
                ErrorContext(job_id=str(job_id), user_id=str(applicant_id)),
            ) from e
        return found is not None

    # ─── Status changes ─────────────────────────────────────────

    async def update_status(
        self, application_id: UUID, status: ApplicationStatus | str,
    ) -> ApplicationResponse:
        actor = await self._require_actor("update application status")
        status = ApplicationStatus(status)
        ctx = ErrorContext(application_id=str(application_id), user_id=str(actor.id))

        result = await self.db.execute(
            select(Application)
            .options(selectinload(Application.applicant), selectinload(Application.job_posting))
            .where(Application.id == application_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise ResourceNotFoundError("Application", str(application_id), ctx)
        ctx.job_id = str(row.job_id)
        if row.job_posting.posted_by != actor.id and not actor.is_admin:
            raise PermissionDeniedError(
                "Only the job owner can update application status", ctx,
            )
        check_transition(ApplicationStatus(row.status), status, self.strict_transitions, ctx)

        row.status = status.value
        row.updated_at = self._clock()
        await commit(self.db, "update application status", ctx)

        updated = application_response(row)
        applicant = ProfileSummary.model_validate(row.applicant)
        job_title = row.job_posting.title
        self.cache.invalidate_application(updated.id, updated.applicant_id, updated.job_id)
        logger.info(f"Application status set to {status.value}", extra={
            "application_id": ctx.application_id, "job_id": ctx.job_id,
        })

        await best_effort(
            self.dispatcher.notify_status_update(applicant, job_title, status, updated.updated_at),
            "status_update",
            context=ctx,
        )
        return updated

    async def bulk_update_status(
        self, application_ids: list[UUID], status: ApplicationStatus | str,
    ) -> int:
        """One UPDATE across every id found; no notifications. Returns rows updated."""
        actor = await self._require_actor("update application status")
        status = ApplicationStatus(status)
        ids = list(dict.fromkeys(application_ids))
        if not ids:
            return 0

        result = await self.db.execute(
            select(
                Application.id, Application.applicant_id, Application.job_id,
                Application.status, JobPosting.posted_by,
            )
            .join(JobPosting, JobPosting.id == Application.job_id)
            .where(Application.id.in_(ids))
        )
        rows = result.all()
        if not rows:
            return 0
        for row in rows:
            ctx = ErrorContext(
                application_id=str(row.id), job_id=str(row.job_id), user_id=str(actor.id),
            )
            if row.posted_by != actor.id and not actor.is_admin:
                raise PermissionDeniedError(
                    "Only the job owner can update application status", ctx,
                )
            check_transition(
                ApplicationStatus(row.status), status, self.strict_transitions, ctx,
            )

        await self.db.execute(
            update(Application)
            .where(Application.id.in_([row.id for row in rows]))
            .values(status=status.value, updated_at=self._clock())
        )
        await commit(self.db, "bulk update application status")
        for row in rows:
            self.cache.invalidate_application(row.id, row.applicant_id, row.job_id)
        logger.info(
            f"Bulk status update to {status.value}",
            extra={"count": len(rows), "user_id": str(actor.id)},
        )
        return len(rows)

    # ─── Withdrawal ─────────────────────────────────────────────

    async def delete(self, application_id: UUID) -> None:
        actor = await self._require_actor("withdraw an application")
        ctx = ErrorContext(application_id=str(application_id), user_id=str(actor.id))
        row = await self.db.get(Application, application_id)
        if row is None:
            raise ResourceNotFoundError("Application", str(application_id), ctx)
        if row.applicant_id != actor.id:
            raise PermissionDeniedError("You can only withdraw your own applications", ctx)
        if not is_deletable(ApplicationStatus(row.status)):
            raise InvalidApplicationStateError(
                f"Cannot withdraw an application that is {row.status}", ctx,
            )
        job_id, applicant_id, resume_url = row.job_id, row.applicant_id, row.resume_url
        ctx.job_id = str(job_id)

        if resume_url:
            key = object_key_from_url(resume_url, applicant_id)
            if key:
                await best_effort(
                    self.storage.remove([key]), "resume_remove", AttachmentFailure, ctx,
                )

        await self.db.delete(row)
        await commit(self.db, "delete application", ctx)
        self.cache.invalidate_application(application_id, applicant_id, job_id)
        logger.info("Application withdrawn", extra={
            "application_id": ctx.application_id, "job_id": ctx.job_id,
        })
