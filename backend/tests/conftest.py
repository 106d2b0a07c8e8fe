"""Root conftest: shared configuration, database and service fixtures.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - Time is frozen at NOW through an injected clock
    - Boundary collaborators are fakes from tests/fakes.py
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_FORMAT", "text")

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from jobboard.db.base import Base
from jobboard.infrastructure.identity import StaticIdentityProvider
from jobboard.infrastructure.read_cache import ReadCache
from jobboard.models import Application, JobPosting, Profile
from jobboard.services.application_workflow import ApplicationWorkflow
from jobboard.services.job_posting_store import JobPostingStore
from jobboard.services.notification_dispatcher import NotificationDispatcher
from tests.fakes import FakeEmailProvider, FakeObjectStorage, actor_for, fixed_clock


# ─── Database ───────────────────────────────────────────────────

@pytest.fixture
async def test_engine():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


# ─── Seed helpers ───────────────────────────────────────────────

@pytest.fixture
def make_profile(test_db):
    counter = {"n": 0}

    async def _make(role: str = "student", department: str | None = None, **kwargs) -> Profile:
        counter["n"] += 1
        n = counter["n"]
        profile = Profile(
            email=kwargs.pop("email", f"user{n}@uni.test"),
            full_name=kwargs.pop("full_name", f"User {n}"),
            role=role,
            department=department,
            **kwargs,
        )
        test_db.add(profile)
        await test_db.commit()
        return profile

    return _make


@pytest.fixture
def make_job(test_db):
    async def _make(owner: Profile, **kwargs) -> JobPosting:
        job = JobPosting(
            title=kwargs.pop("title", "Lab Assistant"),
            description=kwargs.pop("description", "Help run experiments in the lab."),
            job_type=kwargs.pop("job_type", "research_assistant"),
            department=kwargs.pop("department", "Biology"),
            posted_by=owner.id,
            is_active=kwargs.pop("is_active", True),
            **kwargs,
        )
        test_db.add(job)
        await test_db.commit()
        return job

    return _make


@pytest.fixture
def make_application(test_db):
    async def _make(job: JobPosting, applicant: Profile, **kwargs) -> Application:
        application = Application(
            job_id=job.id,
            applicant_id=applicant.id,
            cover_letter=kwargs.pop("cover_letter", "I am very interested in this role."),
            status=kwargs.pop("status", "pending"),
            **kwargs,
        )
        test_db.add(application)
        await test_db.commit()
        return application

    return _make


@pytest.fixture
async def faculty(make_profile):
    return await make_profile(role="faculty", department="Biology", full_name="Dr. Ada Lane")


@pytest.fixture
async def student(make_profile):
    return await make_profile(role="student", department="Biology", full_name="Sam Student")


# ─── Services ───────────────────────────────────────────────────

@pytest.fixture
def cache():
    return ReadCache()


@pytest.fixture
def email():
    return FakeEmailProvider()


@pytest.fixture
def storage():
    return FakeObjectStorage()


@pytest.fixture
def dispatcher(test_db, email, cache):
    return NotificationDispatcher(test_db, email, cache, "https://jobs.test", fixed_clock)


@pytest.fixture
def store(test_db, cache, dispatcher):
    return JobPostingStore(test_db, cache, dispatcher, fixed_clock)


@pytest.fixture
def workflow_for(test_db, storage, dispatcher, cache):
    """Build an ApplicationWorkflow acting as the given profile (None = anonymous)."""
    def _build(profile: Profile | None, **kwargs) -> ApplicationWorkflow:
        identity = StaticIdentityProvider(actor_for(profile) if profile else None)
        return ApplicationWorkflow(
            test_db, identity, kwargs.pop("storage", storage),
            kwargs.pop("dispatcher", dispatcher), cache, fixed_clock, **kwargs,
        )

    return _build
