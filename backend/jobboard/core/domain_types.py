"""Domain Types: identifiers and enumerations shared across the engine.

Invariants:
    - JobId, ApplicationId, ProfileId, NotificationId wrap UUIDs
    - Every enumerated DB column has a str Enum here; no raw string matching
    - NotificationType doubles as the email template tag
"""

from dataclasses import dataclass
from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

JobId = NewType("JobId", UUID)
ApplicationId = NewType("ApplicationId", UUID)
ProfileId = NewType("ProfileId", UUID)
NotificationId = NewType("NotificationId", UUID)


# ─── Enums ───────────────────────────────────────────────────────

class JobType(str, Enum):
    RESEARCH_ASSISTANT = "research_assistant"
    TEACHING_ASSISTANT = "teaching_assistant"
    WORK_STUDY = "work_study"
    INTERNSHIP = "internship"
    OTHER = "other"


class ApplicationStatus(str, Enum):
    """Application lifecycle states. New applications always start as PENDING."""
    PENDING = "pending"
    REVIEWED = "reviewed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class NotificationType(str, Enum):
    """Persisted notification kinds; also selects the outbound email template."""
    APPLICATION_RECEIVED = "application_received"
    STATUS_UPDATE = "status_update"
    NEW_JOB = "new_job"
    DEADLINE_REMINDER = "deadline_reminder"


class UserRole(str, Enum):
    STUDENT = "student"
    FACULTY = "faculty"
    ADMIN = "admin"


class SortField(str, Enum):
    """Sortable listing columns. DEADLINE and COMPENSATION sort nulls last."""
    CREATED_AT = "created_at"
    TITLE = "title"
    DEPARTMENT = "department"
    COMPENSATION = "compensation"
    DEADLINE = "deadline"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


# ─── Actor ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class Actor:
    """The authenticated caller as reported by the identity provider."""
    id: UUID
    email: str
    role: UserRole = UserRole.STUDENT
    full_name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def can_post_jobs(self) -> bool:
        return self.role in (UserRole.FACULTY, UserRole.ADMIN)
