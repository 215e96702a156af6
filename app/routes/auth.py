"""
auth.py — Authentication routes.

Routes:
  POST /auth/register  — create new account, returns a JWT
  POST /auth/login     — exchange username-or-email + password for a JWT
  GET  /auth/profile   — return current account (requires valid JWT)

Register and login are throttled per client IP with slowapi, since every
attempt costs a bcrypt round.

Errors are GateError subclasses rendered by the handler in app.main as:
  { "error": "<code>", "detail": "..." }
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import settings
from app.core.deps import get_credential_service
from app.core.errors import InvalidOrExpiredToken, TokenRejected
from app.core.rate_limit import limiter
from app.models.account import (
    Account,
    AuthResponse,
    LoginRequest,
    ProfileResponse,
    RegisterRequest,
)
from app.services.credentials import CredentialService

router = APIRouter(prefix="/auth", tags=["auth"])

# Reusable bearer extractor (does NOT auto-raise on missing token)
_bearer = HTTPBearer(auto_error=False)
CredDep = Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)]
ServiceDep = Annotated[CredentialService, Depends(get_credential_service)]


async def _get_current_account(credentials: CredDep, service: ServiceDep) -> Account:
    """
    FastAPI dependency — extracts and validates the Bearer token.

    Missing token → 401. Present but invalid, expired, or pointing at a
    vanished account → 403.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return await service.verify(credentials.credentials)
    except InvalidOrExpiredToken as exc:
        raise TokenRejected() from exc


CurrentAccount = Annotated[Account, Depends(_get_current_account)]


# ── Routes ────────────────────────────────────────────────────────────────────

@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.auth_rate_limit)
async def register(request: Request, payload: RegisterRequest, service: ServiceDep):
    """Register a new account and return a JWT."""
    token, account = await service.register(payload.username, payload.password, payload.email)
    return AuthResponse(message="User registered successfully", token=token, user=account.summary())


@router.post("/login", response_model=AuthResponse)
@limiter.limit(settings.auth_rate_limit)
async def login(request: Request, payload: LoginRequest, service: ServiceDep):
    """Authenticate with username (or email) + password and return a JWT."""
    token, account = await service.authenticate(payload.username, payload.password)
    return AuthResponse(message="Login successful", token=token, user=account.summary())


@router.get("/profile", response_model=ProfileResponse)
async def profile(current_account: CurrentAccount, service: ServiceDep):
    """Return the authenticated account's non-secret fields."""
    return ProfileResponse(user=await service.profile(current_account.id))
