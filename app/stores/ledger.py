"""
ledger.py — Append-only record of anonymous usage, with a logical TTL.

Two collections:

  anonymous_sessions  one document per approved anonymous generation
                      (session_id, ip_address, user_agent, device_fingerprint,
                      prompt, created_at)
  quota_claims        one document per identity key, _id = "session:<key>" or
                      "ip:<address>", pointing at the record that holds it

The claim's unique _id is the atomic guard: a second insert for the same
identity key fails with DuplicateKeyError, which becomes QuotaExceeded.
That holds across API instances, not just inside one process.

Expiry is logical. is_active() is the only place the window rule lives;
the TTL indexes merely let MongoDB reclaim space eventually.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError

from app.core.clock import Clock, utcnow
from app.core.database import QUOTA_CLAIMS, USAGE_RECORDS
from app.core.errors import QuotaExceeded
from app.models.quota import IdentityKey, UsageRecord

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # Motor hands back naive datetimes unless the client is tz_aware
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def window_start(now: datetime, window: timedelta) -> datetime:
    return _as_utc(now) - window


def is_active(created_at: datetime, now: datetime, window: timedelta) -> bool:
    """True while a record created at *created_at* still counts against the quota."""
    return _as_utc(created_at) >= window_start(now, window)


def identity_keys(session_key: Optional[str], address: Optional[str]) -> list[IdentityKey]:
    """The signals an anonymous caller is recognised by. Fingerprint is never one."""
    keys = []
    if session_key:
        keys.append(IdentityKey(kind="session", value=session_key))
    if address:
        keys.append(IdentityKey(kind="ip", value=address))
    return keys


class QuotaLedger:
    def __init__(self, db, window: timedelta, clock: Clock = utcnow) -> None:
        self._records = db[USAGE_RECORDS]
        self._claims = db[QUOTA_CLAIMS]
        self.window = window
        self._clock = clock

    async def ensure_indexes(self) -> None:
        ttl = int(self.window.total_seconds())
        await self._records.create_index([("session_id", ASCENDING), ("created_at", DESCENDING)])
        await self._records.create_index([("ip_address", ASCENDING), ("created_at", DESCENDING)])
        await self._records.create_index("created_at", expireAfterSeconds=ttl)
        await self._claims.create_index("created_at", expireAfterSeconds=ttl)

    async def find_active(self, key: IdentityKey, window: Optional[timedelta] = None) -> Optional[UsageRecord]:
        """Most recent record for *key* inside the window, or None."""
        window = window or self.window
        now = self._clock()
        doc = await self._records.find_one(
            {key.field: key.value, "created_at": {"$gte": window_start(now, window)}},
            sort=[("created_at", DESCENDING)],
        )
        if doc is None or not is_active(doc["created_at"], now, window):
            return None
        return UsageRecord.from_doc(doc)

    async def record(
        self,
        session_key: Optional[str],
        address: Optional[str],
        fingerprint: str,
        prompt: str,
        user_agent: str = "",
    ) -> UsageRecord:
        """
        Claim every identity key of the caller, then append the usage record.

        Raises QuotaExceeded if any key is already held by a live record.
        Keys claimed before the failure are released again.
        """
        now = self._clock()
        record_id = ObjectId()
        claimed: list[IdentityKey] = []
        try:
            for key in identity_keys(session_key, address):
                await self._claim(key, record_id, now)
                claimed.append(key)
            doc = {
                "_id": record_id,
                "session_id": session_key,
                "ip_address": address,
                "user_agent": user_agent,
                "device_fingerprint": fingerprint,
                "prompt": prompt,
                "created_at": now,
            }
            await self._records.insert_one(doc)
        except Exception:
            for key in claimed:
                await self._release(key, record_id)
            raise

        logger.info(
            "Recorded anonymous usage (session=%s, ip=%s, prompt_len=%d)",
            session_key, address, len(prompt),
        )
        return UsageRecord.from_doc(doc)

    async def clear_all(self) -> int:
        """Wipe every usage record and claim. Returns the number of records removed."""
        result = await self._records.delete_many({})
        await self._claims.delete_many({})
        logger.warning("Cleared %d anonymous usage records", result.deleted_count)
        return result.deleted_count

    # ── Claims ────────────────────────────────────────────────────────────────

    async def _claim(self, key: IdentityKey, record_id: ObjectId, now: datetime) -> None:
        # Two rounds: the second only happens after a stale claim was removed
        for _ in range(2):
            try:
                await self._claims.insert_one(
                    {"_id": key.claim_id, "record_id": record_id, "created_at": now}
                )
                return
            except DuplicateKeyError:
                existing = await self._claims.find_one({"_id": key.claim_id})
                if existing is None:
                    continue
                if is_active(existing["created_at"], now, self.window):
                    logger.info("Claim %s still active; denying", key.claim_id)
                    raise QuotaExceeded()
                # Expired claim: remove it unless someone already replaced it
                await self._claims.delete_one(
                    {"_id": key.claim_id, "record_id": existing["record_id"]}
                )
        raise QuotaExceeded()

    async def _release(self, key: IdentityKey, record_id: ObjectId) -> None:
        await self._claims.delete_one({"_id": key.claim_id, "record_id": record_id})
