"""Test fixtures — a fresh in-memory database per test.

1. Each test gets its own SQLite engine (aiosqlite, StaticPool so every
   session shares the one in-memory connection) with the schema created
   from the models.
2. get_db is overridden so every request opens its own session on that
   engine, exactly like production: services commit for real.
3. ``client`` and ``other_client`` are two independent "browsers": each
   keeps its own cookie jar, so each is its own guest.
"""

import os
import uuid

# Cheap hashing and a driver-free default engine for the whole run.
os.environ.setdefault("TASKFLOW_BCRYPT_ROUNDS", "4")
os.environ.setdefault("TASKFLOW_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("TASKFLOW_ENVIRONMENT", "development")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from taskflow.db.engine import get_db
from taskflow.db.models import Base
from taskflow.main import app as fastapi_app

TEST_DB_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture()
async def engine():
    engine = create_async_engine(
        TEST_DB_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    """A session for calling services directly."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def app(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = override_get_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def client(app):
    """First browser profile — a guest until it logs in."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture()
async def other_client(app):
    """Second, unrelated browser profile."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def signup():
    """Register + login through the API; returns bearer auth headers.

    Uses the given client so the guest cookie in its jar (if any) stays
    attached to later requests, like a browser signing in.
    """

    async def _signup(ac: AsyncClient, email: str = None, password: str = "secure_password_123"):
        email = email or f"user-{uuid.uuid4().hex[:8]}@example.com"
        r = await ac.post(
            "/api/auth/register",
            json={"email": email, "name": "Test User", "password": password},
        )
        assert r.status_code == 201, r.text
        r = await ac.post("/api/auth/login", json={"email": email, "password": password})
        assert r.status_code == 200, r.text
        return {"Authorization": f"Bearer {r.json()['accessToken']}"}

    return _signup
