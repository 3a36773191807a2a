"""Shared test fixtures for Rapids."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from rapids.services.api_key_service import ApiKeyService
from rapids.services.key_store import MemoryKeyStore, SqliteKeyStore


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

_migrations_dir = Path(__file__).resolve().parent.parent / "rapids" / "db" / "migrations"
MIGRATION_SQL = "\n".join(
    f.read_text() for f in sorted(_migrations_dir.glob("*.sql"))
)

# Start of an epoch-aligned minute, so tests sit well inside one rate window
START = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock for ApiKeyService that only moves when told to."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest_asyncio.fixture
async def db():
    """In-memory SQLite database with schema."""
    conn = await aiosqlite.connect(":memory:")
    conn.row_factory = aiosqlite.Row
    await conn.execute("PRAGMA foreign_keys=ON")
    await conn.executescript(MIGRATION_SQL)
    await conn.commit()
    yield conn
    await conn.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def store(request, db):
    """Every KeyStore implementation, so service behaviour is checked against each."""
    if request.param == "memory":
        return MemoryKeyStore()
    return SqliteKeyStore(db)


@pytest_asyncio.fixture
async def service(store, clock):
    return ApiKeyService(store, clock=clock)


# ---------------------------------------------------------------------------
# App / client fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def app(db, clock):
    """FastAPI app with test DB and service injected (lifespan is not run)."""
    from rapids.main import app as fastapi_app

    fastapi_app.state.db = db
    fastapi_app.state.api_key_service = ApiKeyService(SqliteKeyStore(db), clock=clock)

    yield fastapi_app

    fastapi_app.state.db = None
    fastapi_app.state.api_key_service = None


@pytest_asyncio.fixture
async def client(app):
    """Async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
