"""
quota.py — Anonymous one-prompt-per-window policy.

State per anonymous identity:

    FRESH  ── consume() ──▶  EXHAUSTED  ── record ages out of window ──▶  FRESH

A caller is EXHAUSTED when an active usage record exists for the same
session key OR the same network address. The device fingerprint is
recorded for audit and never consulted here.

consume() is check-then-record. Inside one process, contenders for the
same identity key are serialised by KeyedLocks; across processes the
ledger's claim documents reject the loser with QuotaExceeded.

A caller with neither a session key nor an address cannot be recognised
and is let through. That is a known weakness, not an oversight.
"""

import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, Optional

from app.core.errors import QuotaExceeded
from app.models.quota import IdentityKey, QuotaStatus, UsageRecord
from app.stores.ledger import QuotaLedger, identity_keys

logger = logging.getLogger(__name__)


class KeyedLocks:
    """asyncio locks created on demand per identity key and dropped when idle."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = defaultdict(int)

    @asynccontextmanager
    async def hold(self, keys: Iterable[IdentityKey]) -> AsyncIterator[None]:
        # Sorted acquisition order so two callers sharing keys cannot deadlock
        names = sorted({key.claim_id for key in keys})
        acquired: list[str] = []
        try:
            for name in names:
                self._waiters[name] += 1
                lock = self._locks.setdefault(name, asyncio.Lock())
                try:
                    await lock.acquire()
                except BaseException:
                    self._forget(name)
                    raise
                acquired.append(name)
            yield
        finally:
            for name in reversed(acquired):
                self._locks[name].release()
                self._forget(name)

    def _forget(self, name: str) -> None:
        self._waiters[name] -= 1
        if self._waiters[name] <= 0:
            self._waiters.pop(name, None)
            self._locks.pop(name, None)

    def __len__(self) -> int:
        return len(self._locks)


class QuotaPolicyEngine:
    def __init__(self, ledger: QuotaLedger, locks: Optional[KeyedLocks] = None) -> None:
        self._ledger = ledger
        self._locks = locks if locks is not None else KeyedLocks()

    async def check(
        self,
        session_key: Optional[str],
        address: Optional[str],
        fingerprint: Optional[str] = None,  # noqa: ARG002 — audit only
    ) -> QuotaStatus:
        """Read-only: is this caller EXHAUSTED right now?"""
        for key in identity_keys(session_key, address):
            if await self._ledger.find_active(key) is not None:
                return QuotaStatus.used()
        return QuotaStatus.fresh()

    async def consume(
        self,
        session_key: Optional[str],
        address: Optional[str],
        fingerprint: str,
        prompt: str,
        user_agent: str = "",
    ) -> UsageRecord:
        """
        Move the caller from FRESH to EXHAUSTED, or raise QuotaExceeded.

        Exactly one of any number of concurrent calls for the same identity
        succeeds. The quota is not refunded if the generation that follows fails.
        """
        keys = identity_keys(session_key, address)
        if not keys:
            logger.warning("Anonymous caller has no session key or address; allowing unrecognised call")
            return await self._ledger.record(session_key, address, fingerprint, prompt, user_agent)

        async with self._locks.hold(keys):
            if (await self.check(session_key, address)).exhausted:
                logger.info("Quota exhausted (session=%s, ip=%s)", session_key, address)
                raise QuotaExceeded()
            return await self._ledger.record(session_key, address, fingerprint, prompt, user_agent)
