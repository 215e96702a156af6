"""
Tests for /health, / and the degraded (no database) mode.

All tests run without a live MongoDB (db is mocked as disconnected in conftest);
the connected cases swap in a mocked Motor client.
"""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from app.core import database as db_module
from app.core.config import APP_VERSION


def _connect(ping=None, count=None):
    client = MagicMock()
    client.admin.command = ping or AsyncMock(return_value={"ok": 1})
    db = MagicMock()
    db.__getitem__.return_value.estimated_document_count = count or AsyncMock(return_value=0)
    db_module.db_client.client = client
    db_module.db_client.db = db
    return db


@pytest.mark.asyncio
async def test_health_ok_while_db_disconnected(client):
    """Liveness stays 200 with the database down; the body says which part is down."""
    response = await client.get("/health")
    assert response.status_code == 200

    data = response.json()
    timestamp = data.pop("timestamp")
    assert datetime.fromisoformat(timestamp.replace("Z", "+00:00")).tzinfo is not None
    assert data == {
        "status": "ok",
        "version": APP_VERSION,
        "database": "disconnected",
        "quota": "unavailable",
        "environment": "test",
    }


@pytest.mark.asyncio
async def test_health_connected_probes_quota_claims(client):
    db = _connect()
    data = (await client.get("/health")).json()
    assert data["database"] == "connected"
    assert data["quota"] == "enforced"
    db.__getitem__.assert_called_with(db_module.QUOTA_CLAIMS)


@pytest.mark.asyncio
async def test_health_ping_failure_reports_disconnected(client):
    _connect(ping=AsyncMock(side_effect=ServerSelectionTimeoutError("no servers")))
    data = (await client.get("/health")).json()
    assert (data["database"], data["quota"]) == ("disconnected", "unavailable")


@pytest.mark.asyncio
async def test_health_claims_failure_reports_quota_unavailable(client):
    _connect(count=AsyncMock(side_effect=OperationFailure("not authorized")))
    r = await client.get("/health")
    assert r.status_code == 200
    assert (r.json()["database"], r.json()["quota"]) == ("connected", "unavailable")


@pytest.mark.asyncio
async def test_health_timestamp_follows_service_clock(api_client, clock):
    data = (await api_client.get("/health")).json()
    assert datetime.fromisoformat(data["timestamp"].replace("Z", "+00:00")) == clock()


@pytest.mark.asyncio
async def test_root_endpoint(client):
    data = (await client.get("/")).json()
    assert data["name"] == "PromptGate API"
    assert data["status"] == "running"
    assert data["version"] == APP_VERSION


@pytest.mark.asyncio
async def test_docs_available_in_test_env(client):
    """OpenAPI docs are only disabled when ENVIRONMENT=production."""
    response = await client.get("/docs")
    assert response.status_code == 200


def test_admin_reset_mounted_outside_production():
    from app.main import app

    assert "/api/clear-sessions" in {route.path for route in app.routes}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "method,path,kwargs",
    [
        ("post", "/api/generate-content", {"json": {"prompt": "hi"}}),
        ("get", "/api/anonymous-status", {}),
        ("post", "/auth/login", {"json": {"username": "alice", "password": "secret1"}}),
    ],
)
async def test_storage_endpoints_503_when_db_down(client, method, path, kwargs):
    """With no database, storage-backed endpoints answer 503 instead of crashing."""
    response = await getattr(client, method)(path, **kwargs)
    assert response.status_code == 503
    assert response.json() == {"error": "internal", "detail": "Database unavailable"}
