"""Job Posting Routes: create, browse, manage and close job postings.

Invariants:
    - Only faculty/admin actors create postings; the owner is always the caller
    - Only the owner (or an admin) updates, toggles or deletes a posting
    - DELETE is a soft delete (is_active = false)
    - Listing filters are validated by JobPostingFilters (400 on bad input)
"""

import logging
from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from jobboard.api.dependencies import (
    get_job_store, get_workflow, require_actor,
)
from jobboard.core.domain_types import Actor, JobType, SortField, SortOrder
from jobboard.core.errors import ErrorContext, PermissionDeniedError
from jobboard.schemas.application import ApplicationDetail, ApplicationStats
from jobboard.schemas.job_posting import (
    JobPostingCreate, JobPostingDraft, JobPostingPage, JobPostingResponse,
    JobPostingStats, JobPostingUpdate,
)
from jobboard.services.application_workflow import ApplicationWorkflow
from jobboard.services.job_posting_store import JobPostingStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/jobs", tags=["jobs"])


@router.post("", response_model=JobPostingResponse, status_code=status.HTTP_201_CREATED)
async def create_job(
    body: JobPostingDraft,
    actor: Actor = Depends(require_actor),
    store: JobPostingStore = Depends(get_job_store),
):
    if not actor.can_post_jobs:
        raise PermissionDeniedError(
            "Only faculty members can post jobs", ErrorContext(user_id=str(actor.id)),
        )
    return await store.create(JobPostingCreate(**body.model_dump(), posted_by=actor.id))


@router.get("", response_model=JobPostingPage)
async def list_jobs(
    search: str | None = Query(None, max_length=200),
    department: str | None = None,
    job_type: JobType | None = None,
    is_active: bool | None = None,
    posted_by: UUID | None = None,
    deadline_from: date | None = None,
    deadline_to: date | None = None,
    sort_by: SortField = SortField.CREATED_AT,
    sort_order: SortOrder = SortOrder.DESC,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    store: JobPostingStore = Depends(get_job_store),
):
    filters = {
        "search": search,
        "department": department,
        "job_type": job_type,
        "is_active": is_active,
        "posted_by": posted_by,
        "deadline_from": deadline_from,
        "deadline_to": deadline_to,
        "sort_by": sort_by,
        "sort_order": sort_order,
    }
    return await store.list(filters, page=page, limit=limit)


@router.get("/stats/{owner_id}", response_model=JobPostingStats)
async def job_stats(
    owner_id: UUID,
    actor: Actor = Depends(require_actor),
    store: JobPostingStore = Depends(get_job_store),
):
    if owner_id != actor.id and not actor.is_admin:
        raise PermissionDeniedError("You can only view your own posting statistics")
    return await store.stats(owner_id)


@router.get("/mine/expiring", response_model=list[JobPostingResponse])
async def my_expiring_jobs(
    days_ahead: int = Query(7, ge=0, le=365),
    actor: Actor = Depends(require_actor),
    store: JobPostingStore = Depends(get_job_store),
):
    return await store.expiring_soon(actor.id, days_ahead)


@router.get("/{job_id}", response_model=JobPostingResponse)
async def get_job(job_id: UUID, store: JobPostingStore = Depends(get_job_store)):
    return await store.get(job_id)


@router.patch("/{job_id}", response_model=JobPostingResponse)
async def update_job(
    job_id: UUID,
    body: JobPostingUpdate,
    actor: Actor = Depends(require_actor),
    store: JobPostingStore = Depends(get_job_store),
):
    await store.assert_can_manage(job_id, actor)
    return await store.update(job_id, body)


@router.post("/{job_id}/activate", response_model=JobPostingResponse)
async def activate_job(
    job_id: UUID,
    actor: Actor = Depends(require_actor),
    store: JobPostingStore = Depends(get_job_store),
):
    await store.assert_can_manage(job_id, actor)
    return await store.activate(job_id)


@router.post("/{job_id}/deactivate", response_model=JobPostingResponse)
async def deactivate_job(
    job_id: UUID,
    actor: Actor = Depends(require_actor),
    store: JobPostingStore = Depends(get_job_store),
):
    await store.assert_can_manage(job_id, actor)
    return await store.deactivate(job_id)


@router.delete("/{job_id}", response_model=JobPostingResponse)
async def delete_job(
    job_id: UUID,
    actor: Actor = Depends(require_actor),
    store: JobPostingStore = Depends(get_job_store),
):
    await store.assert_can_manage(job_id, actor)
    return await store.soft_delete(job_id)


# ─── Applications of one posting ────────────────────────────────

@router.get("/{job_id}/applications", response_model=list[ApplicationDetail])
async def list_job_applications(
    job_id: UUID,
    actor: Actor = Depends(require_actor),
    store: JobPostingStore = Depends(get_job_store),
    workflow: ApplicationWorkflow = Depends(get_workflow),
):
    await store.assert_can_manage(job_id, actor)
    return await workflow.list_by_job(job_id)


@router.get("/{job_id}/applications/stats", response_model=ApplicationStats)
async def job_application_stats(
    job_id: UUID,
    actor: Actor = Depends(require_actor),
    store: JobPostingStore = Depends(get_job_store),
    workflow: ApplicationWorkflow = Depends(get_workflow),
):
    await store.assert_can_manage(job_id, actor)
    return await workflow.stats(job_id)


@router.get("/{job_id}/has-applied")
async def has_applied(job_id: UUID, workflow: ApplicationWorkflow = Depends(get_workflow)):
    """False for anonymous callers and on any lookup failure."""
    return {"job_id": str(job_id), "has_applied": await workflow.has_applied(job_id)}
