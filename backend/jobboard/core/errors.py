"""Error Hierarchy: typed, categorized exceptions for every job board failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) fail fast before any write
    - AttachmentFailure and NotificationFailure are never raised to a caller;
      they exist so side-effect degradation is logged with a stable code
    - to_response() produces the REST envelope; no internal details leak

Design Decisions:
    - Single hierarchy with JobBoardError base, caught by one FastAPI handler
    - ErrorContext as dataclass: carries entity ids for log correlation
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONFLICT = "conflict"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    job_id: str | None = None
    application_id: str | None = None
    user_id: str | None = None
    user_message: str | None = None
    debug_info: dict[str, Any] | None = None


class JobBoardError(Exception):
    """Base exception for all job board errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.context.user_message or self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "job_id": self.context.job_id,
                    "application_id": self.context.application_id,
                },
            }
        }

    def log_extra(self) -> dict:
        """Fields surfaced by the JSON log formatter."""
        extra = {"error_code": self.code}
        for key in ("job_id", "application_id", "user_id"):
            val = getattr(self.context, key)
            if val is not None:
                extra[key] = val
        return extra


# ─── Domain Errors (400-level) ──────────────────────────────────

class AuthenticationRequiredError(JobBoardError):
    """No current actor could be resolved."""
    def __init__(self, action: str = "perform this action", context: ErrorContext | None = None):
        super().__init__(
            f"You must be logged in to {action}",
            "AUTHENTICATION_REQUIRED", ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 401,
        )


class PermissionDeniedError(JobBoardError):
    """Actor is authenticated but does not own the resource."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "PERMISSION_DENIED", ErrorCategory.AUTHORIZATION,
            ErrorSeverity.WARNING, context, 403,
        )


class ValidationFailedError(JobBoardError):
    """Input rejected by the schema validator."""
    def __init__(
        self, message: str, fields: list[str] | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.fields = fields or []


class ResourceNotFoundError(JobBoardError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class DuplicateApplicationError(JobBoardError):
    """An application for this (job, applicant) pair already exists."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "You have already applied for this job",
            "DUPLICATE_APPLICATION", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, context, 409,
        )


class JobInactiveError(JobBoardError):
    """Job posting is closed to new applications."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "This job posting is no longer active",
            "JOB_INACTIVE", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, 409,
        )


class DeadlinePassedError(JobBoardError):
    """Job posting's application deadline has elapsed."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "The application deadline for this job has passed",
            "DEADLINE_PASSED", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, 409,
        )


class InvalidApplicationStateError(JobBoardError):
    """Operation not allowed in the application's current status."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "INVALID_APPLICATION_STATE", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, 409,
        )


class InvalidStatusTransitionError(JobBoardError):
    """Status change rejected by the strict transition table."""
    def __init__(self, current: str, requested: str, context: ErrorContext | None = None):
        super().__init__(
            f"Cannot change application status from '{current}' to '{requested}'",
            "INVALID_STATUS_TRANSITION", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, 409,
        )
        self.current = current
        self.requested = requested


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(JobBoardError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


# ─── Non-fatal side-effect failures (logged, never raised) ──────

class AttachmentFailure(JobBoardError):
    """Résumé upload, URL attach or removal failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Attachment {operation} failed: {message}",
            "ATTACHMENT_FAILURE", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.WARNING, context, 502,
        )
        self.operation = operation


class NotificationFailure(JobBoardError):
    """Email dispatch or in-app notification insert failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Notification {operation} failed: {message}",
            "NOTIFICATION_FAILURE", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.WARNING, context, 502,
        )
        self.operation = operation
