"""
MongoDB connection management using Motor (async driver).

Architecture decision: single DatabaseClient instance shared across all
requests via a module-level singleton. FastAPI's dependency injection
(get_db) gives routes clean access without importing the singleton directly.

Collections:
  users               — registered accounts (unique username / email)
  anonymous_sessions  — anonymous usage records (TTL on created_at)
  quota_claims        — one document per live anonymous identity key

The connection is opened in FastAPI's lifespan (startup) and closed
on shutdown. Indexes are created right after the connection is validated.
"""

import logging
import re

import certifi
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from app.core.config import settings

logger = logging.getLogger(__name__)

USERS = "users"
USAGE_RECORDS = "anonymous_sessions"
QUOTA_CLAIMS = "quota_claims"


class DatabaseClient:
    """
    Holds the Motor client and selected database.

    A class rather than bare globals so tests can replace
    .client and .db with a single attribute assignment.
    """

    client: AsyncIOMotorClient | None = None
    db: AsyncIOMotorDatabase | None = None


# Module-level singleton — all app code references this object
db_client = DatabaseClient()


async def connect_to_mongo() -> None:
    """
    Create the MongoDB connection, validate it with a ping, and ensure indexes.

    Called once at app startup (via lifespan). Fails gracefully if
    MongoDB is unavailable — the API will still respond but DB-dependent
    endpoints return 503.
    """
    logger.info("Connecting to MongoDB at %s", _redact_uri(settings.mongo_uri))
    try:
        db_client.client = AsyncIOMotorClient(
            settings.mongo_uri,
            serverSelectionTimeoutMS=5000,
            tlsCAFile=certifi.where(),
            tz_aware=True,
        )
        db_client.db = db_client.client[settings.mongo_db_name]
        await db_client.client.admin.command("ping")
        await ensure_indexes(db_client.db)
        logger.info("MongoDB connection established (db: %s)", settings.mongo_db_name)
    except Exception as exc:
        logger.warning(
            "MongoDB unavailable at startup: %s. "
            "API running in degraded mode — DB endpoints will fail.",
            exc,
        )
        db_client.client = None
        db_client.db = None


async def close_mongo_connection() -> None:
    """Close the MongoDB connection gracefully on app shutdown."""
    if db_client.client is not None:
        db_client.client.close()
        logger.info("MongoDB connection closed")


async def ensure_indexes(db) -> None:
    """Create every index the stores rely on (idempotent)."""
    # Local imports keep the stores free to import this module's constants.
    from app.stores.accounts import AccountStore  # noqa: PLC0415
    from app.stores.ledger import QuotaLedger  # noqa: PLC0415

    await AccountStore(db).ensure_indexes()
    await QuotaLedger(db, window=settings.quota_window).ensure_indexes()


def get_db() -> AsyncIOMotorDatabase | None:
    """
    FastAPI dependency — inject the database into route handlers.

    Returns None when MongoDB is unavailable; app.core.deps turns that
    into a 503 for the endpoints that need storage.
    """
    return db_client.db


def _redact_uri(uri: str) -> str:
    """Strip credentials from URI before logging."""
    return re.sub(r"://[^:]+:[^@]+@", "://<redacted>@", uri)
