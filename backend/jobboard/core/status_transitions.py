"""Application Status Rules: entry state, transition table, notification trigger.

Invariants:
    - Every new application enters as PENDING
    - Permissive mode (default) lets any status follow any status
    - Strict mode: PENDING -> {REVIEWED, ACCEPTED, REJECTED}, REVIEWED -> {ACCEPTED, REJECTED},
      ACCEPTED and REJECTED are terminal
    - Re-applying the current status is always allowed
    - Applicants are notified on every change to a non-PENDING status
"""

from jobboard.core.domain_types import ApplicationStatus
from jobboard.core.errors import ErrorContext, InvalidStatusTransitionError

INITIAL_STATUS = ApplicationStatus.PENDING

STRICT_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    ApplicationStatus.PENDING: frozenset({
        ApplicationStatus.REVIEWED,
        ApplicationStatus.ACCEPTED,
        ApplicationStatus.REJECTED,
    }),
    ApplicationStatus.REVIEWED: frozenset({
        ApplicationStatus.ACCEPTED,
        ApplicationStatus.REJECTED,
    }),
    ApplicationStatus.ACCEPTED: frozenset(),
    ApplicationStatus.REJECTED: frozenset(),
}


def is_transition_allowed(
    current: ApplicationStatus, requested: ApplicationStatus, strict: bool,
) -> bool:
    if not strict or current == requested:
        return True
    return requested in STRICT_TRANSITIONS[current]


def check_transition(
    current: ApplicationStatus,
    requested: ApplicationStatus,
    strict: bool,
    context: ErrorContext | None = None,
) -> None:
    """Raise InvalidStatusTransitionError when strict mode forbids the change."""
    if not is_transition_allowed(current, requested, strict):
        raise InvalidStatusTransitionError(current.value, requested.value, context)


def should_notify_applicant(status: ApplicationStatus) -> bool:
    return status != ApplicationStatus.PENDING


def is_deletable(status: ApplicationStatus) -> bool:
    """Applicants may only withdraw applications nobody has acted on yet."""
    return status == ApplicationStatus.PENDING
