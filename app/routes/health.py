"""
Health check endpoint.

Anonymous quota enforcement lives entirely in MongoDB (usage records plus
claim documents), so besides a ping this also probes the claims
collection. A caller can then tell "API up, quota offline" apart from
a full outage.
"""

import logging
from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from pymongo.errors import PyMongoError

from app.core import database as db_module
from app.core.clock import Clock
from app.core.config import APP_VERSION, settings
from app.core.deps import get_clock

logger = logging.getLogger(__name__)
router = APIRouter()


class HealthResponse(BaseModel):
    status: Literal["ok"]
    version: str
    timestamp: datetime
    database: Literal["connected", "disconnected"]
    # "enforced" only when the claims collection answers; otherwise
    # anonymous generation returns 503
    quota: Literal["enforced", "unavailable"]
    environment: str


async def _probe_storage() -> tuple[str, str]:
    """Return (database, quota) status strings."""
    # Module reference so tests can swap db_module.db_client
    client, db = db_module.db_client.client, db_module.db_client.db
    if client is None or db is None:
        return "disconnected", "unavailable"
    try:
        await client.admin.command("ping")
    except PyMongoError as exc:
        logger.warning("DB ping failed: %s", exc)
        return "disconnected", "unavailable"
    try:
        await db[db_module.QUOTA_CLAIMS].estimated_document_count()
    except PyMongoError as exc:
        logger.warning("Quota claims collection unreachable: %s", exc)
        return "connected", "unavailable"
    return "connected", "enforced"


@router.get("", response_model=HealthResponse, summary="API health check")
async def health_check(clock: Clock = Depends(get_clock)) -> HealthResponse:
    """Always HTTP 200 while the process is alive; the body says what is degraded."""
    database, quota = await _probe_storage()
    return HealthResponse(
        status="ok",
        version=APP_VERSION,
        timestamp=clock(),
        database=database,
        quota=quota,
        environment=settings.environment,
    )
