"""
credentials.py — Account registration, login, and bearer-token checks.

Passwords are hashed with bcrypt; tokens are HS256 JWTs carrying the
account id and username. Tokens are stateless: there is no revocation
list, expiry is the only kill switch, and a token for a deleted account
stops verifying because the account lookup fails.

bcrypt is deliberately slow, so hashing and checking run in the
threadpool rather than on the event loop.
"""

import logging

from starlette.concurrency import run_in_threadpool

from app.core.clock import Clock, utcnow
from app.core.errors import Conflict, InvalidCredentials, InvalidOrExpiredToken, NotFound
from app.core.security import (
    burn_password_check,
    create_access_token,
    decode_access_token,
    hash_password,
    needs_rehash,
    verify_password,
)
from app.models.account import Account, ProfileView
from app.stores.accounts import AccountStore

logger = logging.getLogger(__name__)


class CredentialService:
    def __init__(self, accounts: AccountStore, clock: Clock = utcnow) -> None:
        self._accounts = accounts
        self._clock = clock

    async def register(self, handle: str, secret: str, contact: str) -> tuple[str, Account]:
        """Create an account and return (token, account). Conflict if handle or contact is taken."""
        if await self._accounts.find_conflicting(handle, contact):
            raise Conflict()

        hashed = await run_in_threadpool(hash_password, secret)
        account = await self._accounts.insert(handle, contact, hashed, self._clock())
        logger.info("Registered account %s (id=%s)", account.username, account.id)
        return self.issue(account), account

    async def authenticate(self, handle_or_contact: str, secret: str) -> tuple[str, Account]:
        """Check a username-or-email / password pair and return (token, account)."""
        account = await self._accounts.find_by_login(handle_or_contact)
        if account is None:
            await run_in_threadpool(burn_password_check, secret)
            raise InvalidCredentials()

        if not await run_in_threadpool(verify_password, secret, account.hashed_password):
            logger.info("Failed login for account id=%s", account.id)
            raise InvalidCredentials()

        now = self._clock()
        await self._accounts.touch_last_login(account.id, now)
        if needs_rehash(account.hashed_password):
            rotated = await run_in_threadpool(hash_password, secret)
            await self._accounts.set_password_hash(account.id, rotated)
            logger.info("Rotated password hash for account id=%s", account.id)
        account = account.model_copy(update={"last_login_at": now})
        return self.issue(account), account

    async def verify(self, token: str) -> Account:
        claims = decode_access_token(token, now=self._clock())
        if claims is None:
            raise InvalidOrExpiredToken()
        account = await self._accounts.get(claims["sub"])
        if account is None:
            raise InvalidOrExpiredToken()
        return account

    async def profile(self, account_id: str) -> ProfileView:
        account = await self._accounts.get(account_id)
        if account is None:
            raise NotFound("User not found")
        return account.profile()

    def issue(self, account: Account) -> str:
        return create_access_token(account.id, account.username, now=self._clock())
