"""Application Schemas: API input and joined read projections.

Invariants:
    - Cover letters are at least 50 characters at the API form boundary;
      the engine itself only requires a non-blank letter
    - ApplicationDetail embeds the applicant and the job with its owner
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from jobboard.core.domain_types import ApplicationStatus
from jobboard.schemas._orm import column_values
from jobboard.schemas.job_posting import JobPostingResponse, job_response
from jobboard.schemas.profile import ProfileSummary

COVER_LETTER_MIN_LENGTH = 50
COVER_LETTER_MAX_LENGTH = 10_000


class ApplicationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    job_id: UUID
    applicant_id: UUID
    cover_letter: str
    resume_url: str | None = None
    status: ApplicationStatus
    applied_at: datetime
    updated_at: datetime


class ApplicationDetail(ApplicationResponse):
    applicant: ProfileSummary
    job_posting: JobPostingResponse


class StatusUpdate(BaseModel):
    status: ApplicationStatus


class BulkStatusUpdate(BaseModel):
    application_ids: list[UUID] = Field(min_length=1, max_length=500)
    status: ApplicationStatus


class ApplicationStats(BaseModel):
    total: int = 0
    pending: int = 0
    reviewed: int = 0
    accepted: int = 0
    rejected: int = 0


def application_response(application) -> ApplicationResponse:
    return ApplicationResponse(**column_values(application))


def application_detail(application) -> ApplicationDetail:
    """Requires applicant, job_posting and job_posting.owner to be eagerly loaded."""
    job = application.job_posting
    return ApplicationDetail(
        **column_values(application),
        applicant=ProfileSummary.model_validate(application.applicant),
        job_posting=job_response(job, owner=job.owner),
    )
