"""
pytest configuration and shared fixtures for the PromptGate API tests.

Key concern: tests must not require a live MongoDB or Gemini API key.
We achieve this by:
  1. Patching connect_to_mongo / close_mongo_connection to no-ops so
     FastAPI's lifespan doesn't try to reach a real database.
  2. Setting db_client.client = None (disconnected) so health check
     correctly reports "disconnected" — a valid test-mode state.
  3. Ensuring AI_MOCK_MODE=true so the app builds a MockGenerator.
  4. Lowering BCRYPT_ROUNDS to the bcrypt minimum so hashing is fast.

Endpoint tests that need storage use `api_client`, which overrides
get_db / get_clock / get_generator with in-memory fakes (tests/fakes.py).
"""

import os
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

# Set env vars BEFORE importing the app so Settings picks them up correctly
os.environ.setdefault("AI_MOCK_MODE", "true")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from fakes import FakeClock, FakeDB, RecordingGenerator  # noqa: E402


@pytest.fixture(autouse=True)
async def mock_db():
    """
    Patch the MongoDB lifecycle for every test.

    - connect_to_mongo → no-op AsyncMock (startup doesn't attempt real connection)
    - close_mongo_connection → no-op AsyncMock
    - db_client.client / db_client.db → None
    """
    with (
        patch("app.core.database.connect_to_mongo", new_callable=AsyncMock),
        patch("app.core.database.close_mongo_connection", new_callable=AsyncMock),
    ):
        import app.core.database as db_module

        original_client = db_module.db_client.client
        original_db = db_module.db_client.db

        db_module.db_client.client = None
        db_module.db_client.db = None

        yield

        db_module.db_client.client = original_client
        db_module.db_client.db = original_db


@pytest.fixture(autouse=True)
def reset_limiter():
    """Auth endpoints are throttled per IP; start every test with empty buckets."""
    from app.core.rate_limit import limiter

    limiter.reset()
    yield


@pytest.fixture()
def fake_db():
    """Fresh in-memory DB for each test, with the production indexes declared."""
    return FakeDB()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def generator():
    return RecordingGenerator()


@pytest.fixture()
async def client(mock_db):  # noqa: ARG001 — mock_db must run first
    """HTTPX async test client wired to the FastAPI app, no storage."""
    from app.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
async def api_app(fake_db, clock, generator):
    """The FastAPI app with storage, clock and generator swapped for fakes."""
    from app.core.database import ensure_indexes, get_db
    from app.core.deps import get_clock, get_generator
    from app.main import app

    await ensure_indexes(fake_db)
    app.dependency_overrides[get_db] = lambda: fake_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_generator] = lambda: generator
    yield app
    app.dependency_overrides.clear()


@pytest.fixture()
def make_client(api_app):
    """
    Factory for clients whose requests appear to come from a given IP.

    Anonymous quota is keyed on IP as well as session, so tests that need
    two distinct anonymous callers must use two addresses.
    """

    def _make(address: str = "203.0.113.10") -> AsyncClient:
        return AsyncClient(
            transport=ASGITransport(app=api_app, client=(address, 40000)),
            base_url="http://test",
        )

    return _make


@pytest.fixture()
async def api_client(make_client):
    async with make_client() as ac:
        yield ac
