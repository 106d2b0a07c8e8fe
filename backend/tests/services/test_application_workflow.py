"""Application Workflow: submission gate, résumé handling, status changes, withdrawal."""

from datetime import date, timedelta
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from jobboard.core.domain_types import ApplicationStatus, NotificationType
from jobboard.core.errors import (
    AuthenticationRequiredError, DeadlinePassedError, DuplicateApplicationError,
    InvalidApplicationStateError, InvalidStatusTransitionError, JobInactiveError,
    PermissionDeniedError, ResourceNotFoundError,
)
from jobboard.core.repository_protocols import ResumeUpload
from jobboard.infrastructure.read_cache import CacheKeys
from jobboard.models.application import Application
from jobboard.models.notification import Notification
from tests.fakes import NOW, TODAY, FakeObjectStorage, RaisingDispatcher

LETTER = "I have two years of wet-lab experience and would love to help."


async def _count_applications(db) -> int:
    return await db.scalar(select(func.count()).select_from(Application))


# ─── create: gate ───────────────────────────────────────────────

async def test_first_application_is_pending_and_second_is_duplicate(
    workflow_for, test_db, make_job, faculty, student,
):
    job = await make_job(faculty, application_deadline=None)
    workflow = workflow_for(student)

    created = await workflow.create(job.id, LETTER)
    assert created.status == ApplicationStatus.PENDING
    assert created.applicant_id == student.id

    with pytest.raises(DuplicateApplicationError):
        await workflow.create(job.id, LETTER)
    assert await _count_applications(test_db) == 1


async def test_anonymous_caller_cannot_apply(workflow_for, make_job, faculty):
    job = await make_job(faculty)
    with pytest.raises(AuthenticationRequiredError):
        await workflow_for(None).create(job.id, LETTER)


async def test_cannot_apply_for_someone_else(workflow_for, make_job, make_profile, faculty, student):
    job = await make_job(faculty)
    other = await make_profile()
    with pytest.raises(PermissionDeniedError):
        await workflow_for(student).create(job.id, LETTER, applicant_id=other.id)


async def test_inactive_job_rejects(workflow_for, test_db, make_job, faculty, student):
    job = await make_job(faculty, is_active=False)
    with pytest.raises(JobInactiveError):
        await workflow_for(student).create(job.id, LETTER)
    assert await _count_applications(test_db) == 0


async def test_past_deadline_rejects(workflow_for, make_job, faculty, student):
    job = await make_job(faculty, application_deadline=date(2024, 1, 1))
    with pytest.raises(DeadlinePassedError):
        await workflow_for(student).create(job.id, LETTER)


async def test_deadline_day_rejects_after_midnight_utc(workflow_for, test_db, make_job, faculty, student):
    job = await make_job(faculty, application_deadline=TODAY)
    with pytest.raises(DeadlinePassedError):
        await workflow_for(student).create(job.id, LETTER)
    assert await _count_applications(test_db) == 0


async def test_future_deadline_accepts(workflow_for, make_job, faculty, student):
    job = await make_job(faculty, application_deadline=TODAY + timedelta(days=1))
    created = await workflow_for(student).create(job.id, LETTER)
    assert created.status == ApplicationStatus.PENDING


async def test_missing_job_is_not_found(workflow_for, student):
    with pytest.raises(ResourceNotFoundError):
        await workflow_for(student).create(uuid4(), LETTER)


async def test_duplicate_is_checked_before_job_state(
    workflow_for, make_job, make_application, faculty, student,
):
    job = await make_job(faculty, is_active=False)
    await make_application(job, student)
    with pytest.raises(DuplicateApplicationError):
        await workflow_for(student).create(job.id, LETTER)


async def test_unique_constraint_violation_reports_duplicate(
    workflow_for, test_db, make_job, faculty, student, monkeypatch,
):
    """A concurrent insert that slips past the pre-check still surfaces as a duplicate."""
    job = await make_job(faculty)
    workflow = workflow_for(student)
    real_exists = workflow._exists
    calls = {"n": 0}

    async def racing_exists(job_id, applicant_id):
        calls["n"] += 1
        if calls["n"] == 1:
            test_db.add(Application(
                job_id=job_id, applicant_id=applicant_id, cover_letter=LETTER,
            ))
            await test_db.commit()
            return False
        return await real_exists(job_id, applicant_id)

    monkeypatch.setattr(workflow, "_exists", racing_exists)

    with pytest.raises(DuplicateApplicationError):
        await workflow.create(job.id, LETTER)
    assert await _count_applications(test_db) == 1


# ─── create: side effects ───────────────────────────────────────

async def test_owner_is_notified(workflow_for, email, test_db, make_job, faculty, student):
    job = await make_job(faculty, title="Lab Assistant")

    await workflow_for(student).create(job.id, LETTER)

    assert email.sent[0].to == faculty.email
    assert email.sent[0].data["applicantName"] == "Sam Student"
    row = (await test_db.execute(
        select(Notification).where(Notification.user_id == faculty.id)
    )).scalar_one()
    assert row.type == NotificationType.APPLICATION_RECEIVED.value


async def test_resume_is_uploaded_and_attached(workflow_for, storage, test_db, make_job, faculty, student):
    job = await make_job(faculty)

    created = await workflow_for(student).create(
        job.id, LETTER, ResumeUpload("cv.pdf", b"%PDF", "application/pdf"),
    )

    key = f"{student.id}/{created.id}.pdf"
    assert storage.objects[key] == b"%PDF"
    assert created.resume_url == f"https://files.test/resumes/{key}"
    row = await test_db.get(Application, created.id)
    assert row.resume_url == created.resume_url


async def test_failed_upload_still_creates_application(workflow_for, test_db, make_job, faculty, student):
    job = await make_job(faculty)
    workflow = workflow_for(student, storage=FakeObjectStorage(fail_upload=True))

    created = await workflow.create(job.id, LETTER, ResumeUpload("cv.pdf", b"%PDF"))

    assert created.resume_url is None
    assert await _count_applications(test_db) == 1


async def test_failed_notification_still_returns_application(workflow_for, make_job, faculty, student):
    job = await make_job(faculty)
    created = await workflow_for(student, dispatcher=RaisingDispatcher()).create(job.id, LETTER)
    assert created.status == ApplicationStatus.PENDING


async def test_create_invalidates_job_detail_and_applicant_list(
    workflow_for, cache, make_job, faculty, student,
):
    job = await make_job(faculty)
    cache.set(CacheKeys.job(job.id), "detail with count 0")
    cache.set(CacheKeys.applications(student.id), [])

    await workflow_for(student).create(job.id, LETTER)

    assert not cache.has(CacheKeys.job(job.id))
    assert not cache.has(CacheKeys.applications(student.id))


# ─── reads ──────────────────────────────────────────────────────

async def test_get_returns_joined_detail(workflow_for, make_job, make_application, faculty, student):
    job = await make_job(faculty, title="Lab Assistant")
    application = await make_application(job, student)

    detail = await workflow_for(student).get(application.id)

    assert detail.applicant.full_name == "Sam Student"
    assert detail.job_posting.title == "Lab Assistant"
    assert detail.job_posting.owner.id == faculty.id


async def test_get_missing_returns_none(workflow_for, student):
    assert await workflow_for(student).get(uuid4()) is None


async def test_missing_application_is_not_remembered(
    workflow_for, make_job, make_application, faculty, student,
):
    workflow = workflow_for(student)
    application_id = uuid4()
    assert await workflow.get(application_id) is None

    job = await make_job(faculty)
    await make_application(job, student, id=application_id)

    assert (await workflow.get(application_id)).id == application_id


async def test_job_edit_refreshes_cached_application_reads(
    workflow_for, store, make_job, make_application, faculty, student,
):
    job = await make_job(faculty, title="Old Title")
    application = await make_application(job, student)
    workflow = workflow_for(student)
    await workflow.get(application.id)
    await workflow.list_by_applicant()

    await store.update(job.id, {"title": "New Title", "is_active": False})

    detail = await workflow.get(application.id)
    [mine] = await workflow.list_by_applicant()
    assert detail.job_posting.title == "New Title"
    assert detail.job_posting.is_active is False
    assert mine.job_posting.title == "New Title"


async def test_view_is_limited_to_applicant_owner_and_admin(
    workflow_for, make_job, make_application, make_profile, faculty, student,
):
    job = await make_job(faculty)
    application = await make_application(job, student)
    admin = await make_profile(role="admin")
    bystander = await make_profile()

    for viewer in (student, faculty, admin):
        assert (await workflow_for(viewer).view(application.id)).id == application.id
    with pytest.raises(PermissionDeniedError):
        await workflow_for(bystander).view(application.id)
    with pytest.raises(AuthenticationRequiredError):
        await workflow_for(None).view(application.id)


async def test_view_missing_is_not_found(workflow_for, student):
    with pytest.raises(ResourceNotFoundError):
        await workflow_for(student).view(uuid4())



async def test_lists_are_newest_first(
    workflow_for, make_job, make_application, make_profile, faculty, student,
):
    job = await make_job(faculty)
    other_job = await make_job(faculty)
    older = await make_application(job, student, applied_at=NOW - timedelta(days=2))
    newer = await make_application(other_job, student, applied_at=NOW)
    await make_application(job, await make_profile(), applied_at=NOW - timedelta(days=1))

    mine = await workflow_for(student).list_by_applicant()
    by_job = await workflow_for(faculty).list_by_job(job.id)

    assert [a.id for a in mine] == [newer.id, older.id]
    assert len(by_job) == 2
    assert by_job[-1].id == older.id


async def test_list_by_applicant_requires_actor_when_no_id(workflow_for):
    with pytest.raises(AuthenticationRequiredError):
        await workflow_for(None).list_by_applicant()


# ─── has_applied ────────────────────────────────────────────────

async def test_has_applied_true_after_applying(workflow_for, make_job, make_application, faculty, student):
    job = await make_job(faculty)
    await make_application(job, student)
    assert await workflow_for(student).has_applied(job.id) is True


async def test_has_applied_false_without_application(workflow_for, make_job, faculty, student):
    job = await make_job(faculty)
    assert await workflow_for(student).has_applied(job.id) is False


async def test_has_applied_false_for_anonymous(workflow_for, make_job, faculty):
    job = await make_job(faculty)
    assert await workflow_for(None).has_applied(job.id) is False


async def test_has_applied_false_on_backend_error(workflow_for, make_job, faculty, student, monkeypatch):
    job = await make_job(faculty)
    workflow = workflow_for(student)
    monkeypatch.setattr(workflow.db, "scalar", AsyncMock(side_effect=RuntimeError("db gone")))
    assert await workflow.has_applied(job.id) is False


# ─── status changes ─────────────────────────────────────────────

async def test_update_status_persists_and_notifies(
    workflow_for, email, test_db, make_job, make_application, faculty, student,
):
    job = await make_job(faculty)
    application = await make_application(job, student, updated_at=NOW - timedelta(days=3))

    updated = await workflow_for(faculty).update_status(application.id, "accepted")

    assert updated.status == ApplicationStatus.ACCEPTED
    assert updated.updated_at == NOW
    assert email.sent[-1].to == student.email
    assert email.sent[-1].data["status"] == "accepted"


async def test_update_status_survives_notifier_failure(
    workflow_for, test_db, make_job, make_application, faculty, student,
):
    job = await make_job(faculty)
    application = await make_application(job, student)

    updated = await workflow_for(faculty, dispatcher=RaisingDispatcher()).update_status(
        application.id, ApplicationStatus.ACCEPTED,
    )

    assert updated.status == ApplicationStatus.ACCEPTED
    row = await test_db.get(Application, application.id)
    assert row.status == "accepted"


async def test_update_to_pending_does_not_notify(
    workflow_for, email, make_job, make_application, faculty, student,
):
    job = await make_job(faculty)
    application = await make_application(job, student, status="reviewed")

    await workflow_for(faculty).update_status(application.id, ApplicationStatus.PENDING)

    assert email.sent == []


async def test_only_job_owner_updates_status(
    workflow_for, make_job, make_application, make_profile, faculty, student,
):
    job = await make_job(faculty)
    application = await make_application(job, student)
    stranger = await make_profile(role="faculty")

    with pytest.raises(PermissionDeniedError):
        await workflow_for(stranger).update_status(application.id, ApplicationStatus.REVIEWED)
    with pytest.raises(PermissionDeniedError):
        await workflow_for(student).update_status(application.id, ApplicationStatus.ACCEPTED)


async def test_update_status_missing_application(workflow_for, faculty):
    with pytest.raises(ResourceNotFoundError):
        await workflow_for(faculty).update_status(uuid4(), ApplicationStatus.REVIEWED)


async def test_permissive_mode_allows_reopening(workflow_for, make_job, make_application, faculty, student):
    job = await make_job(faculty)
    application = await make_application(job, student, status="accepted")
    updated = await workflow_for(faculty).update_status(application.id, ApplicationStatus.PENDING)
    assert updated.status == ApplicationStatus.PENDING


async def test_strict_mode_blocks_leaving_terminal_state(
    workflow_for, make_job, make_application, faculty, student,
):
    job = await make_job(faculty)
    application = await make_application(job, student, status="accepted")
    with pytest.raises(InvalidStatusTransitionError):
        await workflow_for(faculty, strict_transitions=True).update_status(
            application.id, ApplicationStatus.PENDING,
        )


async def test_bulk_update_writes_all_without_notifying(
    workflow_for, email, test_db, make_job, make_application, make_profile, faculty,
):
    job = await make_job(faculty)
    applications = [await make_application(job, await make_profile()) for _ in range(3)]

    count = await workflow_for(faculty).bulk_update_status(
        [a.id for a in applications] + [uuid4()], ApplicationStatus.REJECTED,
    )

    assert count == 3
    assert email.sent == []
    statuses = (await test_db.execute(select(Application.status))).scalars().all()
    assert set(statuses) == {"rejected"}


async def test_bulk_update_requires_ownership_of_every_job(
    workflow_for, make_job, make_application, make_profile, faculty, student,
):
    other_owner = await make_profile(role="faculty")
    mine = await make_application(await make_job(faculty), student)
    theirs = await make_application(await make_job(other_owner), student)

    with pytest.raises(PermissionDeniedError):
        await workflow_for(faculty).bulk_update_status([mine.id, theirs.id], "reviewed")


# ─── stats / attention ──────────────────────────────────────────

async def test_stats_counts_per_status(workflow_for, make_job, make_application, make_profile, faculty):
    job = await make_job(faculty)
    for status in ("pending", "pending", "reviewed", "accepted"):
        await make_application(job, await make_profile(), status=status)

    stats = await workflow_for(faculty).stats(job.id)

    assert stats.total == 4
    assert (stats.pending, stats.reviewed, stats.accepted, stats.rejected) == (2, 1, 1, 0)


async def test_needing_attention_is_stale_pending_only(
    workflow_for, make_job, make_application, make_profile, faculty,
):
    job = await make_job(faculty)
    stale = await make_application(job, await make_profile(), applied_at=NOW - timedelta(days=8))
    await make_application(job, await make_profile(), applied_at=NOW - timedelta(days=2))
    await make_application(
        job, await make_profile(), status="reviewed", applied_at=NOW - timedelta(days=30),
    )

    flagged = await workflow_for(None).needing_attention()

    assert [a.id for a in flagged] == [stale.id]


# ─── delete ─────────────────────────────────────────────────────

async def test_applicant_withdraws_pending_application_and_resume(
    workflow_for, storage, test_db, make_job, faculty, student,
):
    job = await make_job(faculty)
    workflow = workflow_for(student)
    created = await workflow.create(job.id, LETTER, ResumeUpload("cv.pdf", b"%PDF"))

    await workflow.delete(created.id)

    assert await _count_applications(test_db) == 0
    assert storage.removed == [f"{student.id}/{created.id}.pdf"]


async def test_resume_removal_failure_does_not_block_delete(
    workflow_for, test_db, make_job, make_application, faculty, student,
):
    job = await make_job(faculty)
    application = await make_application(
        job, student, resume_url=f"https://files.test/resumes/{student.id}/x.pdf",
    )
    workflow = workflow_for(student, storage=FakeObjectStorage(fail_remove=True))

    await workflow.delete(application.id)

    assert await _count_applications(test_db) == 0


async def test_only_applicant_may_withdraw(workflow_for, make_job, make_application, faculty, student):
    job = await make_job(faculty)
    application = await make_application(job, student)
    with pytest.raises(PermissionDeniedError):
        await workflow_for(faculty).delete(application.id)


async def test_reviewed_application_cannot_be_withdrawn(
    workflow_for, make_job, make_application, faculty, student,
):
    job = await make_job(faculty)
    application = await make_application(job, student, status="reviewed")
    with pytest.raises(InvalidApplicationStateError):
        await workflow_for(student).delete(application.id)
