"""Job Posting Store: create, read, list, update, soft-delete and auto-close job postings.

Invariants:
    - create() always persists is_active = true, whatever the caller sent
    - Postings are never hard-deleted; soft_delete == deactivate
    - Every write invalidates the posting's detail key and all listing/search keys
    - get() and list() are served through the ReadCache; get() carries a live
      application count at fetch time
    - close_expired() touches only active rows with a non-null deadline before
      today, in one bulk UPDATE; with no candidates it writes nothing
    - Deadline and compensation sorts place NULLs last in both directions
    - new_job broadcast and closure notices are best-effort, after commit

Design Decisions:
    - Ownership checks are exposed as assert_can_manage() for the API layer;
      the store itself is also driven by the scheduler, which has no actor
"""

import logging
from datetime import date, timedelta
from typing import Any, Mapping
from uuid import UUID

from pydantic import BaseModel, ValidationError
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from jobboard.core.deadlines import utc_today
from jobboard.core.domain_types import Actor, SortField, SortOrder
from jobboard.core.errors import (
    ErrorContext, PermissionDeniedError, ResourceNotFoundError, ValidationFailedError,
)
from jobboard.core.listing import page_offset, total_pages
from jobboard.infrastructure.read_cache import CacheKeys, ReadCache
from jobboard.models.application import Application
from jobboard.models.job_posting import JobPosting
from jobboard.schemas.job_posting import (
    JobPostingCreate, JobPostingFilters, JobPostingPage, JobPostingResponse,
    JobPostingStats, JobPostingUpdate, job_response,
)
from jobboard.services.notification_dispatcher import NotificationDispatcher
from jobboard.services.persistence import Clock, commit, utc_now
from jobboard.services.side_effects import best_effort

logger = logging.getLogger(__name__)

DETAIL_TTL_SECONDS = 5 * 60.0
LISTING_TTL_SECONDS = 2 * 60.0
OWNER_LISTING_LIMIT = 100

_NON_NULLABLE_FIELDS = ("title", "description", "job_type", "department", "is_active")

_SORT_COLUMNS = {
    SortField.CREATED_AT: JobPosting.created_at,
    SortField.TITLE: JobPosting.title,
    SortField.DEPARTMENT: JobPosting.department,
    SortField.COMPENSATION: JobPosting.compensation,
    SortField.DEADLINE: JobPosting.application_deadline,
}
_NULLS_LAST = {SortField.COMPENSATION, SortField.DEADLINE}


def _escape_like(text: str) -> str:
    """Search terms match literally: % and _ are not wildcards."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _validated(model: type[BaseModel], data: Any, what: str):
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as e:
        fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise ValidationFailedError(f"Invalid {what}: {', '.join(fields)}", fields) from e


def _column_values(values: dict) -> dict:
    """Enum members stored by value."""
    return {k: getattr(v, "value", v) for k, v in values.items()}


class JobPostingStore:
    """Job posting persistence with cached reads and explicit invalidation."""

    def __init__(
        self,
        db: AsyncSession,
        cache: ReadCache,
        dispatcher: NotificationDispatcher,
        clock: Clock = utc_now,
        detail_ttl: float = DETAIL_TTL_SECONDS,
        listing_ttl: float = LISTING_TTL_SECONDS,
    ):
        self.db = db
        self.cache = cache
        self.dispatcher = dispatcher
        self._clock = clock
        self.detail_ttl = detail_ttl
        self.listing_ttl = listing_ttl

    # ─── Writes ─────────────────────────────────────────────────

    async def create(self, data: JobPostingCreate | Mapping[str, Any]) -> JobPostingResponse:
        payload = _validated(JobPostingCreate, data, "job posting")
        now = self._clock()
        job = JobPosting(
            **_column_values(payload.model_dump()),
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        self.db.add(job)
        await commit(self.db, "create job posting")
        created = job_response(job)
        self.cache.invalidate_jobs(job.id)
        logger.info(
            f"Job posting created: {created.title}",
            extra={"job_id": str(created.id), "user_id": str(created.posted_by)},
        )

        await best_effort(
            self.dispatcher.notify_new_job(job), "new_job",
            context=ErrorContext(job_id=str(created.id)),
        )
        return created

    async def update(
        self, job_id: UUID, partial: JobPostingUpdate | Mapping[str, Any],
    ) -> JobPostingResponse:
        """Merge the set fields into the posting and stamp updated_at."""
        changes = _validated(JobPostingUpdate, partial, "job posting update").model_dump(
            exclude_unset=True,
        )
        nulled = [k for k in _NON_NULLABLE_FIELDS if k in changes and changes[k] is None]
        if nulled:
            raise ValidationFailedError(f"Fields cannot be cleared: {', '.join(nulled)}", nulled)

        job = await self._get_row(job_id)
        for key, value in _column_values(changes).items():
            setattr(job, key, value)
        job.updated_at = self._clock()
        await commit(self.db, "update job posting", ErrorContext(job_id=str(job_id)))
        self.cache.invalidate_jobs(job_id)
        return job_response(job)

    async def activate(self, job_id: UUID) -> JobPostingResponse:
        return await self.update(job_id, JobPostingUpdate(is_active=True))

    async def deactivate(self, job_id: UUID) -> JobPostingResponse:
        return await self.update(job_id, JobPostingUpdate(is_active=False))

    async def soft_delete(self, job_id: UUID) -> JobPostingResponse:
        return await self.deactivate(job_id)

    async def close_expired(self) -> int:
        """Deactivate every active posting whose deadline is before today."""
        now = self._clock()
        result = await self.db.execute(
            select(JobPosting)
            .where(JobPosting.is_active.is_(True))
            .where(JobPosting.application_deadline.is_not(None))
            .where(JobPosting.application_deadline < utc_today(now))
        )
        expired = list(result.scalars().all())
        if not expired:
            return 0

        ids = [job.id for job in expired]
        await self.db.execute(
            update(JobPosting)
            .where(JobPosting.id.in_(ids))
            .values(is_active=False, updated_at=now)
        )
        await commit(self.db, "close expired job postings")
        self.cache.invalidate_jobs(*ids)
        logger.info(f"Closed {len(ids)} expired job postings", extra={"count": len(ids)})

        await best_effort(self.dispatcher.notify_jobs_closed(expired), "jobs_closed")
        return len(ids)

    # ─── Reads ──────────────────────────────────────────────────

    async def get(self, job_id: UUID) -> JobPostingResponse:
        """Cached detail with owner projection and live application count."""
        async def load() -> JobPostingResponse:
            result = await self.db.execute(
                select(JobPosting)
                .options(selectinload(JobPosting.owner))
                .where(JobPosting.id == job_id)
                .execution_options(populate_existing=True)
            )
            job = result.scalar_one_or_none()
            if job is None:
                raise ResourceNotFoundError("Job posting", str(job_id))
            count = await self.db.scalar(
                select(func.count()).select_from(Application).where(Application.job_id == job_id)
            )
            return job_response(job, application_count=count or 0, owner=job.owner)

        return await self.cache.cached_fetch(CacheKeys.job(job_id), load, self.detail_ttl)

    async def list_for_owner(
        self, owner_id: UUID, include_inactive: bool = False,
    ) -> JobPostingPage:
        filters = JobPostingFilters(
            posted_by=owner_id, is_active=None if include_inactive else True,
        )
        return await self.list(filters, page=1, limit=OWNER_LISTING_LIMIT)

    async def stats(self, owner_id: UUID) -> JobPostingStats:
        result = await self.db.execute(
            select(JobPosting.is_active, func.count())
            .where(JobPosting.posted_by == owner_id)
            .group_by(JobPosting.is_active)
        )
        by_state = {bool(active): n for active, n in result.all()}
        active, inactive = by_state.get(True, 0), by_state.get(False, 0)
        return JobPostingStats(active=active, inactive=inactive, total=active + inactive)

    async def expiring_soon(self, owner_id: UUID, days_ahead: int = 7) -> list[JobPostingResponse]:
        """Owner's active postings whose deadline falls within the next N days (or is overdue)."""
        horizon = utc_today(self._clock()) + timedelta(days=days_ahead)
        result = await self.db.execute(
            select(JobPosting)
            .where(JobPosting.posted_by == owner_id)
            .where(JobPosting.is_active.is_(True))
            .where(JobPosting.application_deadline.is_not(None))
            .where(JobPosting.application_deadline <= horizon)
            .order_by(JobPosting.application_deadline.asc())
        )
        return [job_response(j) for j in result.scalars().all()]

    async def due_on(self, day: date) -> list[JobPosting]:
        """Active postings whose deadline is exactly `day`."""
        result = await self.db.execute(
            select(JobPosting)
            .where(JobPosting.is_active.is_(True))
            .where(JobPosting.application_deadline == day)
        )
        return list(result.scalars().all())

    async def assert_can_manage(self, job_id: UUID, actor: Actor) -> None:
        """Owner or admin only; NotFound before PermissionDenied."""
        owner_id = await self.db.scalar(
            select(JobPosting.posted_by).where(JobPosting.id == job_id)
        )
        if owner_id is None:
            raise ResourceNotFoundError("Job posting", str(job_id))
        if owner_id != actor.id and not actor.is_admin:
            raise PermissionDeniedError(
                "You can only manage your own job postings",
                ErrorContext(job_id=str(job_id), user_id=str(actor.id)),
            )

    # ─── Query building ─────────────────────────────────────────

    async def _get_row(self, job_id: UUID) -> JobPosting:
        job = await self.db.get(JobPosting, job_id)
        if job is None:
            raise ResourceNotFoundError("Job posting", str(job_id))
        return job

    async def _application_counts(self, job_ids: list[UUID]) -> dict[UUID, int]:
        if not job_ids:
            return {}
        result = await self.db.execute(
            select(Application.job_id, func.count())
            .where(Application.job_id.in_(job_ids))
            .group_by(Application.job_id)
        )
        return {job_id: n for job_id, n in result.all()}

    @staticmethod
    def _conditions(filters: JobPostingFilters) -> list:
        conditions = []
        if filters.search:
            term = f"%{_escape_like(filters.search.lower())}%"
            conditions.append(or_(
                JobPosting.title.ilike(term, escape="\\"),
                JobPosting.description.ilike(term, escape="\\"),
                JobPosting.requirements.ilike(term, escape="\\"),
                JobPosting.department.ilike(term, escape="\\"),
            ))
        if filters.department:
            conditions.append(JobPosting.department == filters.department)
        if filters.job_type:
            conditions.append(JobPosting.job_type == filters.job_type.value)
        if filters.is_active is not None:
            conditions.append(JobPosting.is_active.is_(filters.is_active))
        if filters.posted_by:
            conditions.append(JobPosting.posted_by == filters.posted_by)
        if filters.deadline_from:
            conditions.append(JobPosting.application_deadline >= filters.deadline_from)
        if filters.deadline_to:
            conditions.append(JobPosting.application_deadline <= filters.deadline_to)
        return conditions

    @staticmethod
    def _ordering(filters: JobPostingFilters) -> list:
        column = _SORT_COLUMNS[filters.sort_by]
        ordered = column.asc() if filters.sort_order == SortOrder.ASC else column.desc()
        if filters.sort_by in _NULLS_LAST:
            ordered = ordered.nulls_last()
        # id breaks ties so offset pages never overlap
        return [ordered, JobPosting.id.asc()]

    # ─── Listing ────────────────────────────────────────────────
    # Kept last: the method name shadows the builtin `list` in the class body

    async def list(
        self,
        filters: JobPostingFilters | Mapping[str, Any] | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> JobPostingPage:
        filters = _validated(JobPostingFilters, filters or {}, "listing filters")
        if page < 1 or limit < 1:
            raise ValidationFailedError("page and limit must be positive", ["page", "limit"])

        key_filters = {**filters.model_dump(mode="json"), "page": page, "limit": limit}
        key = (
            CacheKeys.search(filters.search, key_filters)
            if filters.search else CacheKeys.jobs(key_filters)
        )

        async def load() -> JobPostingPage:
            conditions = self._conditions(filters)
            count = await self.db.scalar(
                select(func.count()).select_from(JobPosting).where(*conditions)
            ) or 0
            result = await self.db.execute(
                select(JobPosting)
                .options(selectinload(JobPosting.owner))
                .where(*conditions)
                .order_by(*self._ordering(filters))
                .offset(page_offset(page, limit))
                .limit(limit)
                .execution_options(populate_existing=True)
            )
            jobs = list(result.scalars().all())
            counts = await self._application_counts([j.id for j in jobs])
            return JobPostingPage(
                job_postings=[
                    job_response(j, application_count=counts.get(j.id, 0), owner=j.owner)
                    for j in jobs
                ],
                total_count=count,
                total_pages=total_pages(count, limit),
                current_page=page,
            )

        return await self.cache.cached_fetch(key, load, self.listing_ttl)
