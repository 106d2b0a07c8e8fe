"""Job Board API: FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map JobBoardError to structured JSON responses
    - CORS configured from settings (not hardcoded)
    - The lifespan owns every process-wide resource: database pool, ReadCache
      and its sweeper, email provider, object storage, optional scheduler

Design Decisions:
    - Lifespan over @app.on_event: one place for startup and teardown
    - LoggingEmailProvider when no delivery endpoint is configured
"""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from jobboard import __version__
from jobboard.api.dependencies import build_enforcer
from jobboard.api.error_handlers import register_error_handlers
from jobboard.api.routes import applications, health, job_postings, maintenance, notifications
from jobboard.config import Settings, get_settings
from jobboard.infrastructure.database import DatabaseSessionManager, init_db
from jobboard.infrastructure.email_client import HttpEmailProvider, LoggingEmailProvider
from jobboard.infrastructure.object_storage import LocalObjectStorage
from jobboard.infrastructure.observability import setup_logging
from jobboard.infrastructure.read_cache import ReadCache
from jobboard.services.deadline_enforcer import start_periodic

logger = logging.getLogger(__name__)


def _email_provider(settings: Settings):
    if settings.email_functions_url:
        return HttpEmailProvider(
            settings.email_functions_url,
            api_key=settings.email_api_key,
            timeout_seconds=settings.email_timeout_seconds,
        )
    logger.warning("EMAIL_FUNCTIONS_URL not set; outbound email is logged only")
    return LoggingEmailProvider()


def _enforcer_scope(app: FastAPI, manager: DatabaseSessionManager, settings: Settings):
    @asynccontextmanager
    async def scope():
        async with manager.session() as db:
            yield build_enforcer(
                db, app.state.email, app.state.storage, app.state.cache, settings,
            )
    return scope


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    manager = init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    app.state.cache = ReadCache(
        capacity=settings.cache_capacity,
        default_ttl=settings.cache_detail_ttl_seconds,
    )
    app.state.cache.start_sweeper(settings.cache_sweep_interval_seconds)
    app.state.email = _email_provider(settings)
    app.state.storage = LocalObjectStorage(
        settings.resume_storage_dir, settings.resume_public_base_url,
    )

    scheduler = None
    if settings.scheduler_enabled:
        scheduler = start_periodic(
            _enforcer_scope(app, manager, settings), settings.scheduler_interval_seconds,
        )
        logger.info(
            f"In-process scheduler running every {settings.scheduler_interval_seconds}s",
        )
    logger.info("Job Board API started")
    yield

    logger.info("Job Board API shutting down")
    if scheduler is not None:
        scheduler.cancel()
        with suppress(asyncio.CancelledError):
            await scheduler
    await app.state.cache.aclose()
    await app.state.email.aclose()
    await manager.dispose()


app = FastAPI(title="Job Board API", version=__version__, lifespan=lifespan)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(job_postings.router)
app.include_router(applications.router)
app.include_router(notifications.router)
app.include_router(maintenance.router)

register_error_handlers(app)
