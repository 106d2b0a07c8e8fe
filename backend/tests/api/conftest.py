"""API test fixtures: FastAPI app over ASGITransport with test resources.

Invariants:
    - get_db yields sessions from the per-test in-memory engine
    - app.state carries the per-test cache and fakes (the lifespan does not run)
    - The clock dependency is frozen at NOW
"""

import pytest
from httpx import ASGITransport, AsyncClient

import jobboard.infrastructure.database as db_module
from jobboard.api.dependencies import get_clock
from jobboard.infrastructure.database import DatabaseSessionManager, get_db
from jobboard.main import app
from tests.fakes import fixed_clock


@pytest.fixture
async def client(test_engine, test_session_factory, cache, email, storage):
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: fixed_clock
    app.state.cache = cache
    app.state.email = email
    app.state.storage = storage

    original_manager = db_module.db_manager
    db_module.db_manager = DatabaseSessionManager(test_engine)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager
