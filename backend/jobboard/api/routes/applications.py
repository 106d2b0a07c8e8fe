"""Application Routes: submit, browse, review and withdraw applications.

Invariants:
    - Submission is multipart (job_id, cover_letter, optional resume file)
    - Cover letters shorter than COVER_LETTER_MIN_LENGTH are rejected here,
      before the workflow runs
    - Ownership and state rules are enforced by ApplicationWorkflow
    - A single application is readable only by its applicant, the job owner or an admin
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from jobboard.api.dependencies import get_workflow
from jobboard.core.repository_protocols import ResumeUpload
from jobboard.schemas.application import (
    COVER_LETTER_MAX_LENGTH, COVER_LETTER_MIN_LENGTH,
    ApplicationDetail, ApplicationResponse, BulkStatusUpdate, StatusUpdate,
)
from jobboard.services.application_workflow import ApplicationWorkflow

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/applications", tags=["applications"])

MAX_RESUME_BYTES = 5 * 1024 * 1024


@router.post("", response_model=ApplicationResponse, status_code=status.HTTP_201_CREATED)
async def submit_application(
    job_id: UUID = Form(...),
    cover_letter: str = Form(
        ..., min_length=COVER_LETTER_MIN_LENGTH, max_length=COVER_LETTER_MAX_LENGTH,
    ),
    resume: UploadFile | None = File(None),
    workflow: ApplicationWorkflow = Depends(get_workflow),
):
    upload = None
    if resume is not None and resume.filename:
        content = await resume.read(MAX_RESUME_BYTES + 1)
        if len(content) > MAX_RESUME_BYTES:
            # Oversized files are dropped like any other attachment failure
            logger.warning(
                f"Résumé over {MAX_RESUME_BYTES} bytes ignored",
                extra={"job_id": str(job_id), "operation": "resume_upload"},
            )
        else:
            upload = ResumeUpload(resume.filename, content, resume.content_type)
    return await workflow.create(job_id, cover_letter, upload)


@router.get("/mine", response_model=list[ApplicationDetail])
async def my_applications(workflow: ApplicationWorkflow = Depends(get_workflow)):
    return await workflow.list_by_applicant()


@router.post("/bulk-status")
async def bulk_update_status(
    body: BulkStatusUpdate, workflow: ApplicationWorkflow = Depends(get_workflow),
):
    updated = await workflow.bulk_update_status(body.application_ids, body.status)
    return {"updated": updated, "status": body.status.value}


@router.get("/{application_id}", response_model=ApplicationDetail)
async def get_application(
    application_id: UUID, workflow: ApplicationWorkflow = Depends(get_workflow),
):
    return await workflow.view(application_id)


@router.patch("/{application_id}/status", response_model=ApplicationResponse)
async def update_status(
    application_id: UUID,
    body: StatusUpdate,
    workflow: ApplicationWorkflow = Depends(get_workflow),
):
    return await workflow.update_status(application_id, body.status)


@router.delete("/{application_id}", status_code=status.HTTP_204_NO_CONTENT)
async def withdraw_application(
    application_id: UUID, workflow: ApplicationWorkflow = Depends(get_workflow),
):
    await workflow.delete(application_id)
