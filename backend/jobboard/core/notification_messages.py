"""Notification Messages: titles, bodies and email payloads for each event.

Invariants:
    - Pure string building; no IO
    - Every payload carries the recipient's userId
    - New-job audience: students whose department is unset or equals the job's
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from jobboard.core.domain_types import ApplicationStatus, NotificationType


@dataclass(frozen=True)
class InAppMessage:
    """A Notification row before it is persisted."""
    user_id: Any
    title: str
    message: str
    type: NotificationType


def _iso(value: datetime | date | None) -> str | None:
    return value.isoformat() if value is not None else None


def humanize_job_type(job_type: str) -> str:
    return job_type.replace("_", " ")


def status_message(status: ApplicationStatus) -> str:
    if status == ApplicationStatus.ACCEPTED:
        return "Congratulations! Your application has been accepted."
    if status == ApplicationStatus.REJECTED:
        return "Your application was not selected for this position."
    return "Your application status has been updated."


def wants_new_job_alert(student_department: str | None, job_department: str) -> bool:
    if not student_department:
        return True
    return student_department == job_department


# ─── application_received ───────────────────────────────────────

def application_received_message(
    owner_id: Any, job_title: str, applicant_name: str,
) -> InAppMessage:
    return InAppMessage(
        user_id=owner_id,
        title=f"New Application for {job_title}",
        message=f'{applicant_name} has applied for your job posting "{job_title}"',
        type=NotificationType.APPLICATION_RECEIVED,
    )


def application_received_payload(
    owner_id: Any, owner_name: str, job_title: str, applicant_name: str,
    applied_at: datetime | None, dashboard_url: str,
) -> dict:
    return {
        "facultyName": owner_name,
        "jobTitle": job_title,
        "applicantName": applicant_name,
        "appliedAt": _iso(applied_at),
        "dashboardUrl": dashboard_url,
        "userId": str(owner_id),
    }


# ─── status_update ──────────────────────────────────────────────

def status_update_message(
    applicant_id: Any, job_title: str, status: ApplicationStatus,
) -> InAppMessage:
    return InAppMessage(
        user_id=applicant_id,
        title=f"Application Status Update: {job_title}",
        message=status_message(status),
        type=NotificationType.STATUS_UPDATE,
    )


def status_update_payload(
    applicant_id: Any, applicant_name: str, job_title: str,
    status: ApplicationStatus, updated_at: datetime | None, dashboard_url: str,
) -> dict:
    return {
        "studentName": applicant_name,
        "jobTitle": job_title,
        "status": status.value,
        "updatedAt": _iso(updated_at),
        "dashboardUrl": dashboard_url,
        "userId": str(applicant_id),
    }


# ─── new_job ────────────────────────────────────────────────────

def new_job_subject(job_title: str) -> str:
    return f"New Job Opportunity: {job_title}"


def new_job_message(
    student_id: Any, job_title: str, job_type: str, department: str,
) -> InAppMessage:
    return InAppMessage(
        user_id=student_id,
        title=new_job_subject(job_title),
        message=(
            f"A new {humanize_job_type(job_type)} position is available in {department}"
        ),
        type=NotificationType.NEW_JOB,
    )


def new_job_payload(
    student_id: Any, student_name: str, job_title: str, department: str,
    job_type: str, description: str, deadline: date | None, job_url: str,
) -> dict:
    return {
        "studentName": student_name,
        "jobTitle": job_title,
        "department": department,
        "jobType": job_type,
        "description": description,
        "applicationDeadline": _iso(deadline),
        "jobUrl": job_url,
        "userId": str(student_id),
    }


# ─── deadline_reminder ──────────────────────────────────────────

def job_closed_message(owner_id: Any, job_title: str) -> InAppMessage:
    return InAppMessage(
        user_id=owner_id,
        title="Job Posting Closed",
        message=(
            f'Your job posting "{job_title}" has been automatically closed '
            "due to the application deadline passing."
        ),
        type=NotificationType.DEADLINE_REMINDER,
    )


def deadline_approaching_message(
    student_id: Any, job_title: str, days_before: int,
) -> InAppMessage:
    return InAppMessage(
        user_id=student_id,
        title="Application Deadline Approaching",
        message=(
            f'The application deadline for "{job_title}" is in {days_before} days. '
            "Don't miss out!"
        ),
        type=NotificationType.DEADLINE_REMINDER,
    )
