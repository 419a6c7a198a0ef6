"""Shared test fixtures."""

import os
import tempfile
from datetime import datetime
from zoneinfo import ZoneInfo

# Tests run against a throwaway SQLite file; must be set before courtdesk is imported
os.environ["CD_DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(
    tempfile.gettempdir(), f"courtdesk-test-{os.getpid()}.db"
)

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from courtdesk.core.database import engine  # noqa: E402
from courtdesk.core.dependencies import get_now  # noqa: E402
from courtdesk.main import app  # noqa: E402
from courtdesk.models import Base  # noqa: E402

# Frozen wall clock for API tests: Monday 15 June 2026, noon in the club timezone
NOW = datetime(2026, 6, 15, 12, 0, tzinfo=ZoneInfo("Europe/Istanbul"))


@pytest.fixture
async def fresh_db():
    """Recreate every table.

    The global engine is created at import time. When pytest-asyncio creates a new
    event loop for tests, any existing pooled connections are bound to the old loop,
    so the pool is disposed first.
    """
    await engine.dispose()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield


@pytest.fixture
def now():
    return NOW


@pytest.fixture
async def client(fresh_db):
    app.dependency_overrides[get_now] = lambda: NOW
    app.state.api_key_caches = {}
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
