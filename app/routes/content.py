"""
content.py — Generation and anonymous-quota routes.

Routes:
  POST /api/generate-content   — gated generation (bearer OR one free anonymous prompt)
  GET  /api/anonymous-status   — has this caller used the free prompt? (read-only)
  GET  /api/check-free-prompt  — same answer, kept for older clients
  POST /api/clear-sessions     — wipe all anonymous usage (non-production only)

Anonymous callers are recognised by the X-Session-Id header and their IP.
A caller without a session id is issued one in the X-Session-Id response
header and is expected to send it back on later requests.

Denials (429) look like:
  {
    "error": "quota_exceeded",
    "detail": "Anonymous users can only generate 1 prompt per device per day. ...",
    "user_type": "anonymous",
    "requires_login": true,
    "message": "... register/login for unlimited access."
  }
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Request, Response

from app.core.config import settings
from app.core.deps import get_gate, get_ledger
from app.models.content import ClearSessionsResponse, GenerateRequest, GenerationResult
from app.models.quota import QuotaStatus
from app.services.gate import Gate, GateRequest
from app.stores.ledger import QuotaLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["content"])
admin_router = APIRouter(prefix="/api", tags=["admin"])

GateDep = Annotated[Gate, Depends(get_gate)]


def _client_address(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def _session_key(request: Request) -> Optional[str]:
    value = request.headers.get(settings.session_header, "").strip()
    return value or None


@router.post("/generate-content", response_model=GenerationResult, response_model_exclude_unset=True)
async def generate_content(request: Request, response: Response, payload: GenerateRequest, gate: GateDep):
    """Generate text for an authenticated caller, or spend an anonymous caller's free prompt."""
    result = await gate.handle(
        GateRequest(
            prompt=payload.prompt,
            authorization=request.headers.get("authorization"),
            session_key=_session_key(request),
            address=_client_address(request),
            user_agent=request.headers.get("user-agent", ""),
        )
    )
    if result.session_id:
        response.headers[settings.session_header] = result.session_id
    return result


@router.get("/anonymous-status", response_model=QuotaStatus)
async def anonymous_status(request: Request, gate: GateDep):
    """Current quota state for this session / address. Never consumes anything."""
    return await gate.status(
        _session_key(request),
        _client_address(request),
        request.headers.get("user-agent", ""),
    )


@router.get("/check-free-prompt", response_model=QuotaStatus)
async def check_free_prompt(request: Request, gate: GateDep):
    """Alias of /anonymous-status."""
    return await anonymous_status(request, gate)


@admin_router.post("/clear-sessions", response_model=ClearSessionsResponse)
async def clear_sessions(ledger: QuotaLedger = Depends(get_ledger)):
    """Delete every anonymous usage record. Mounted only outside production."""
    deleted = await ledger.clear_all()
    return ClearSessionsResponse(message="Sessions cleared", deleted=deleted)
