"""Application routes: multipart submission, review and withdrawal over HTTP."""

from datetime import date
from uuid import uuid4

from tests.fakes import as_user

LETTER = (
    "I have two years of wet-lab experience and I would love to help "
    "with the pollinator study this summer."
)


def _form(job, cover_letter: str = LETTER) -> dict:
    return {"job_id": str(job.id), "cover_letter": cover_letter}


async def test_submit_with_resume(client, make_job, faculty, student, storage, email):
    job = await make_job(faculty)

    res = await client.post(
        "/api/v1/applications",
        data=_form(job),
        files={"resume": ("cv.pdf", b"%PDF-1.4 resume", "application/pdf")},
        headers=as_user(student),
    )

    assert res.status_code == 201
    body = res.json()
    assert body["status"] == "pending"
    assert body["applicant_id"] == str(student.id)
    assert body["resume_url"].startswith("https://files.test/resumes/")
    assert list(storage.objects.values()) == [b"%PDF-1.4 resume"]
    assert [m.to for m in email.sent] == [faculty.email]


async def test_submit_without_resume(client, make_job, faculty, student):
    job = await make_job(faculty)
    res = await client.post("/api/v1/applications", data=_form(job), headers=as_user(student))
    assert res.status_code == 201
    assert res.json()["resume_url"] is None


async def test_short_cover_letter_is_400(client, make_job, faculty, student):
    job = await make_job(faculty)
    res = await client.post(
        "/api/v1/applications", data=_form(job, "Too short."), headers=as_user(student),
    )
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_anonymous_submit_is_401(client, make_job, faculty):
    job = await make_job(faculty)
    res = await client.post("/api/v1/applications", data=_form(job))
    assert res.status_code == 401


async def test_second_submission_is_409_duplicate(client, make_job, faculty, student):
    job = await make_job(faculty)
    first = await client.post("/api/v1/applications", data=_form(job), headers=as_user(student))
    second = await client.post("/api/v1/applications", data=_form(job), headers=as_user(student))

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json()["error"]["code"] == "DUPLICATE_APPLICATION"


async def test_past_deadline_is_409(client, make_job, faculty, student):
    job = await make_job(faculty, application_deadline=date(2024, 5, 31))
    res = await client.post("/api/v1/applications", data=_form(job), headers=as_user(student))
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "DEADLINE_PASSED"


async def test_deadline_day_is_closed(client, make_job, faculty, student):
    job = await make_job(faculty, application_deadline=date(2024, 6, 1))
    res = await client.post("/api/v1/applications", data=_form(job), headers=as_user(student))
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "DEADLINE_PASSED"


async def test_my_applications_are_joined(client, make_job, make_application, faculty, student):
    job = await make_job(faculty, title="Greenhouse Tech")
    await make_application(job, student)

    res = await client.get("/api/v1/applications/mine", headers=as_user(student))

    assert res.status_code == 200
    [item] = res.json()
    assert item["job_posting"]["title"] == "Greenhouse Tech"
    assert item["applicant"]["id"] == str(student.id)


async def test_unknown_application_is_404(client, student):
    res = await client.get(f"/api/v1/applications/{uuid4()}", headers=as_user(student))
    assert res.status_code == 404


async def test_owner_updates_status_and_applicant_is_notified(
    client, make_job, make_application, faculty, student, email,
):
    job = await make_job(faculty)
    application = await make_application(job, student)

    res = await client.patch(
        f"/api/v1/applications/{application.id}/status",
        json={"status": "accepted"}, headers=as_user(faculty),
    )

    assert res.status_code == 200
    assert res.json()["status"] == "accepted"
    assert [m.to for m in email.sent] == [student.email]


async def test_applicant_cannot_change_status(client, make_job, make_application, faculty, student):
    job = await make_job(faculty)
    application = await make_application(job, student)

    res = await client.patch(
        f"/api/v1/applications/{application.id}/status",
        json={"status": "accepted"}, headers=as_user(student),
    )
    assert res.status_code == 403


async def test_bulk_status(client, make_job, make_application, make_profile, faculty):
    job = await make_job(faculty)
    a = await make_application(job, await make_profile())
    b = await make_application(job, await make_profile())

    res = await client.post(
        "/api/v1/applications/bulk-status",
        json={"application_ids": [str(a.id), str(b.id)], "status": "reviewed"},
        headers=as_user(faculty),
    )

    assert res.json() == {"updated": 2, "status": "reviewed"}


async def test_withdraw_pending(client, make_job, make_application, faculty, student):
    job = await make_job(faculty)
    application = await make_application(job, student)

    res = await client.delete(f"/api/v1/applications/{application.id}", headers=as_user(student))
    gone = await client.get(f"/api/v1/applications/{application.id}", headers=as_user(student))

    assert res.status_code == 204
    assert gone.status_code == 404


async def test_withdraw_after_review_is_409(client, make_job, make_application, faculty, student):
    job = await make_job(faculty)
    application = await make_application(job, student, status="reviewed")

    res = await client.delete(f"/api/v1/applications/{application.id}", headers=as_user(student))

    assert res.status_code == 409
    assert res.json()["error"]["code"] == "INVALID_APPLICATION_STATE"


async def test_application_detail_requires_login(client, make_job, make_application, faculty, student):
    job = await make_job(faculty)
    application = await make_application(job, student)

    res = await client.get(f"/api/v1/applications/{application.id}")

    assert res.status_code == 401


async def test_other_students_cannot_read_an_application(
    client, make_job, make_application, make_profile, faculty, student,
):
    job = await make_job(faculty)
    application = await make_application(job, student)
    classmate = await make_profile(role="student")

    denied = await client.get(f"/api/v1/applications/{application.id}", headers=as_user(classmate))
    owner = await client.get(f"/api/v1/applications/{application.id}", headers=as_user(faculty))
    applicant = await client.get(f"/api/v1/applications/{application.id}", headers=as_user(student))

    assert denied.status_code == 403
    assert owner.status_code == 200
    assert applicant.json()["cover_letter"] == application.cover_letter
