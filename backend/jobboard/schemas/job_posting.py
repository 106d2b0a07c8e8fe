"""Job Posting Schemas: Pydantic models validating job input and shaping job reads.

Invariants:
    - JobPostingCreate is the validator for new postings: title, description,
      job_type, department and posted_by are required and non-blank
    - is_active is never accepted on create (extra fields are ignored)
    - JobPostingUpdate only carries the fields the caller set (exclude_unset)
    - Filters are hashable into a cache key via model_dump(mode="json")
"""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from jobboard.core.domain_types import JobType, SortField, SortOrder
from jobboard.schemas._orm import column_values
from jobboard.schemas.profile import ProfileSummary


def _strip_required(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("must not be empty or whitespace")
    return v


class JobPostingDraft(BaseModel):
    """Posting fields as submitted over HTTP; the owner comes from the caller."""
    model_config = ConfigDict(extra="ignore")

    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=20_000)
    requirements: str | None = Field(None, max_length=10_000)
    compensation: str | None = Field(None, max_length=200)
    duration: str | None = Field(None, max_length=200)
    job_type: JobType
    department: str = Field(min_length=1, max_length=200)
    application_deadline: date | None = None

    @field_validator("title", "description", "department")
    @classmethod
    def strip_required(cls, v: str) -> str:
        return _strip_required(v)


class JobPostingCreate(JobPostingDraft):
    posted_by: UUID


class JobPostingUpdate(BaseModel):
    """Partial update; unset fields are left untouched."""
    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, min_length=1, max_length=20_000)
    requirements: str | None = Field(None, max_length=10_000)
    compensation: str | None = Field(None, max_length=200)
    duration: str | None = Field(None, max_length=200)
    job_type: JobType | None = None
    department: str | None = Field(None, min_length=1, max_length=200)
    application_deadline: date | None = None
    is_active: bool | None = None

    @field_validator("title", "description", "department")
    @classmethod
    def strip_required(cls, v: str | None) -> str | None:
        return None if v is None else _strip_required(v)


class JobPostingFilters(BaseModel):
    search: str | None = Field(None, max_length=200)
    department: str | None = None
    job_type: JobType | None = None
    is_active: bool | None = None
    posted_by: UUID | None = None
    deadline_from: date | None = None
    deadline_to: date | None = None
    sort_by: SortField = SortField.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC

    @field_validator("search")
    @classmethod
    def blank_search_is_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @model_validator(mode="after")
    def check_deadline_range(self) -> "JobPostingFilters":
        if (
            self.deadline_from and self.deadline_to
            and self.deadline_from > self.deadline_to
        ):
            raise ValueError("deadline_from must not be after deadline_to")
        return self


class JobPostingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str
    requirements: str | None = None
    compensation: str | None = None
    duration: str | None = None
    job_type: JobType
    department: str
    application_deadline: date | None = None
    is_active: bool
    posted_by: UUID
    created_at: datetime
    updated_at: datetime
    application_count: int | None = None
    owner: ProfileSummary | None = None


class JobPostingPage(BaseModel):
    job_postings: list[JobPostingResponse]
    total_count: int
    total_pages: int
    current_page: int


class JobPostingStats(BaseModel):
    active: int
    inactive: int
    total: int


def job_response(
    job, application_count: int | None = None, owner=None,
) -> JobPostingResponse:
    """Build a response from a JobPosting row; `owner` only when it was loaded."""
    return JobPostingResponse(
        **column_values(job),
        application_count=application_count,
        owner=ProfileSummary.model_validate(owner) if owner is not None else None,
    )
