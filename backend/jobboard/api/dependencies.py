"""Request Dependencies: per-request service wiring on top of process-wide resources.

Invariants:
    - One AsyncSession per request, shared by every service in that request
    - ReadCache, EmailProvider and ObjectStorage are process-wide, owned by the
      lifespan and read from app.state
    - The caller is identified by the X-User-Id header; absent or unknown means anonymous
"""

from uuid import UUID

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from jobboard.config import Settings, get_settings
from jobboard.core.domain_types import Actor
from jobboard.core.errors import AuthenticationRequiredError
from jobboard.core.repository_protocols import EmailProvider, IdentityProvider, ObjectStorage
from jobboard.infrastructure.database import get_db
from jobboard.infrastructure.identity import ProfileIdentityProvider, StaticIdentityProvider
from jobboard.infrastructure.read_cache import ReadCache
from jobboard.services.application_workflow import ApplicationWorkflow
from jobboard.services.deadline_enforcer import DeadlineEnforcer
from jobboard.services.job_posting_store import JobPostingStore
from jobboard.services.notification_dispatcher import NotificationDispatcher
from jobboard.services.notification_inbox import NotificationInbox
from jobboard.services.persistence import Clock, utc_now


# ─── Process-wide resources ─────────────────────────────────────

def get_cache(request: Request) -> ReadCache:
    return request.app.state.cache


def get_email_provider(request: Request) -> EmailProvider:
    return request.app.state.email


def get_object_storage(request: Request) -> ObjectStorage:
    return request.app.state.storage


def get_clock() -> Clock:
    return utc_now


# ─── Builders (shared with the scheduler) ───────────────────────

def build_dispatcher(
    db: AsyncSession, email: EmailProvider, cache: ReadCache,
    settings: Settings, clock: Clock = utc_now,
) -> NotificationDispatcher:
    return NotificationDispatcher(db, email, cache, settings.site_url, clock)


def build_job_store(
    db: AsyncSession, cache: ReadCache, dispatcher: NotificationDispatcher,
    settings: Settings, clock: Clock = utc_now,
) -> JobPostingStore:
    return JobPostingStore(
        db, cache, dispatcher, clock,
        detail_ttl=settings.cache_detail_ttl_seconds,
        listing_ttl=settings.cache_listing_ttl_seconds,
    )


def build_workflow(
    db: AsyncSession, identity: IdentityProvider, storage: ObjectStorage,
    dispatcher: NotificationDispatcher, cache: ReadCache,
    settings: Settings, clock: Clock = utc_now,
) -> ApplicationWorkflow:
    return ApplicationWorkflow(
        db, identity, storage, dispatcher, cache, clock,
        strict_transitions=settings.strict_status_transitions,
        stale_after_days=settings.stale_application_days,
        listing_ttl=settings.cache_listing_ttl_seconds,
    )


def build_enforcer(
    db: AsyncSession, email: EmailProvider, storage: ObjectStorage,
    cache: ReadCache, settings: Settings, clock: Clock = utc_now,
) -> DeadlineEnforcer:
    """Enforcer with its own service graph and no caller identity."""
    dispatcher = build_dispatcher(db, email, cache, settings, clock)
    return DeadlineEnforcer(
        build_job_store(db, cache, dispatcher, settings, clock),
        build_workflow(db, StaticIdentityProvider(), storage, dispatcher, cache, settings, clock),
        dispatcher,
        reminder_days=settings.deadline_reminder_days,
        clock=clock,
    )


# ─── Per-request services ───────────────────────────────────────

async def get_identity(
    x_user_id: UUID | None = Header(None),
    db: AsyncSession = Depends(get_db),
) -> IdentityProvider:
    return ProfileIdentityProvider(db, x_user_id)


async def get_current_actor(
    identity: IdentityProvider = Depends(get_identity),
) -> Actor | None:
    return await identity.current_actor()


async def require_actor(actor: Actor | None = Depends(get_current_actor)) -> Actor:
    if actor is None:
        raise AuthenticationRequiredError()
    return actor


async def get_dispatcher(
    db: AsyncSession = Depends(get_db),
    email: EmailProvider = Depends(get_email_provider),
    cache: ReadCache = Depends(get_cache),
    clock: Clock = Depends(get_clock),
) -> NotificationDispatcher:
    return build_dispatcher(db, email, cache, get_settings(), clock)


async def get_job_store(
    db: AsyncSession = Depends(get_db),
    cache: ReadCache = Depends(get_cache),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    clock: Clock = Depends(get_clock),
) -> JobPostingStore:
    return build_job_store(db, cache, dispatcher, get_settings(), clock)


async def get_workflow(
    db: AsyncSession = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity),
    storage: ObjectStorage = Depends(get_object_storage),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    cache: ReadCache = Depends(get_cache),
    clock: Clock = Depends(get_clock),
) -> ApplicationWorkflow:
    return build_workflow(db, identity, storage, dispatcher, cache, get_settings(), clock)


async def get_inbox(
    db: AsyncSession = Depends(get_db),
    cache: ReadCache = Depends(get_cache),
) -> NotificationInbox:
    return NotificationInbox(db, cache)


async def get_enforcer(
    db: AsyncSession = Depends(get_db),
    email: EmailProvider = Depends(get_email_provider),
    storage: ObjectStorage = Depends(get_object_storage),
    cache: ReadCache = Depends(get_cache),
    clock: Clock = Depends(get_clock),
) -> DeadlineEnforcer:
    return build_enforcer(db, email, storage, cache, get_settings(), clock)
