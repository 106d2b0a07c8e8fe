"""Résumé object keys: `<applicant_id>/<application_id>.<ext>`."""

from pathlib import PurePosixPath
from uuid import UUID

DEFAULT_EXTENSION = "pdf"


def resume_object_key(applicant_id: UUID, application_id: UUID, filename: str | None) -> str:
    suffix = PurePosixPath(filename or "").suffix.lstrip(".").lower()
    return f"{applicant_id}/{application_id}.{suffix or DEFAULT_EXTENSION}"


def object_key_from_url(resume_url: str, applicant_id: UUID) -> str | None:
    """Recover the storage key from a public URL (last path segment under the applicant)."""
    file_name = resume_url.rstrip("/").split("/")[-1].split("?")[0]
    if not file_name:
        return None
    return f"{applicant_id}/{file_name}"
