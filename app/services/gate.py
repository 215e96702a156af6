"""
gate.py — Decides whether a generation request may reach the generator.

    Authorization header present ─▶ CredentialService.verify ─▶ generate (no quota)
    no Authorization header      ─▶ QuotaPolicyEngine.consume ─▶ generate once

Session keys: anonymous callers are expected to echo the X-Session-Id they
were given. On first contact the gate mints one and returns it in the
result so the route can hand it back.

Quota is consumed before the generator runs and is never refunded, even
if generation fails or the request is cancelled.
"""

import logging
import secrets
from dataclasses import dataclass
from typing import Optional

from app.ai.generator import Generator
from app.core.clock import Clock, utcnow
from app.core.errors import Internal, InvalidOrExpiredToken
from app.models.content import ANONYMOUS_FREE_PROMPT_MESSAGE, GenerationResult
from app.models.quota import QuotaStatus
from app.services.credentials import CredentialService
from app.services.fingerprint import device_fingerprint
from app.services.quota import QuotaPolicyEngine

logger = logging.getLogger(__name__)


@dataclass
class GateRequest:
    prompt: str
    authorization: Optional[str] = None
    session_key: Optional[str] = None
    address: Optional[str] = None
    user_agent: str = ""


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Token part of ``Bearer <token>``; None when the header is absent."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        # Present but unusable still routes to the authenticated path
        raise InvalidOrExpiredToken()
    return token.strip()


class Gate:
    def __init__(
        self,
        credentials: CredentialService,
        quota: QuotaPolicyEngine,
        generator: Generator,
        clock: Clock = utcnow,
    ) -> None:
        self._credentials = credentials
        self._quota = quota
        self._generator = generator
        self._clock = clock

    async def handle(self, request: GateRequest) -> GenerationResult:
        token = bearer_token(request.authorization)
        if token is not None:
            account = await self._credentials.verify(token)
            text = await self._generate(request.prompt)
            # Unlimited: remaining_quota is sent as null rather than omitted
            return GenerationResult(
                text=text, user_type="authenticated", remaining_quota=None, username=account.username
            )

        session_key = request.session_key or self.new_session_key()
        await self._quota.consume(
            session_key,
            request.address,
            device_fingerprint(request.user_agent),
            request.prompt,
            request.user_agent,
        )
        text = await self._generate(request.prompt)
        return GenerationResult(
            text=text,
            user_type="anonymous",
            remaining_quota=0,
            message=ANONYMOUS_FREE_PROMPT_MESSAGE,
            session_id=session_key,
        )

    async def status(self, session_key: Optional[str], address: Optional[str], user_agent: str = "") -> QuotaStatus:
        return await self._quota.check(session_key, address, device_fingerprint(user_agent))

    def new_session_key(self) -> str:
        millis = int(self._clock().timestamp() * 1000)
        return f"anon_{millis}_{secrets.token_hex(5)}"

    async def _generate(self, prompt: str) -> str:
        try:
            return await self._generator.generate(prompt)
        except Exception as exc:
            logger.exception("Generation failed (prompt_len=%d)", len(prompt))
            raise Internal("Content generation failed") from exc
