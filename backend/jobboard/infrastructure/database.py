"""Database: engine, session factory and the per-request session dependency.

Invariants:
    - One DatabaseSessionManager per process, built by init_db() in the lifespan
    - Sessions never expire rows on commit; services read committed rows back
    - A SQLAlchemy error escaping a session is rolled back and re-raised as
      DatabaseError; commit-time errors are already mapped by the services
    - Each service step commits on its own; there is no request-wide transaction

Design Decisions:
    - Pool sizing applies to server databases only; SQLite (tests, local runs)
      keeps the dialect's default pool
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine,
)

from jobboard.core.errors import DatabaseError

logger = logging.getLogger(__name__)


def engine_options(database_url: str, pool_size: int = 20, max_overflow: int = 10) -> dict:
    options = {"pool_pre_ping": True}
    if not database_url.startswith("sqlite"):
        options.update(pool_size=pool_size, max_overflow=max_overflow, pool_recycle=3600)
    return options


class DatabaseSessionManager:
    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_factory = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False,
        )

    @classmethod
    def from_url(cls, database_url: str, **pool) -> "DatabaseSessionManager":
        return cls(create_async_engine(database_url, **engine_options(database_url, **pool)))

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        async with self.session_factory() as session:
            try:
                yield session
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Session aborted by {type(e).__name__}: {e}")
                raise DatabaseError(type(e).__name__, "session") from e

    async def health_check(self) -> bool:
        """SELECT 1 round trip for the readiness probe."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **pool) -> DatabaseSessionManager:
    global db_manager
    db_manager = DatabaseSessionManager.from_url(database_url, **pool)
    return db_manager


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request."""
    if db_manager is None:
        raise RuntimeError("Database not initialized")
    async with db_manager.session() as session:
        yield session
