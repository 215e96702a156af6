"""
deps.py — FastAPI dependency providers.

Everything a route needs is built here from three overridable roots:

  get_db         the Motor database (app.core.database)
  get_clock      "now" for token issuance and the quota window
  get_generator  the downstream text generator held on app.state

Tests override those roots via app.dependency_overrides; the stores and
services built on top of them are cheap per-request wrappers.
"""

from fastapi import Depends, Request

from app.ai.generator import Generator
from app.core.clock import Clock, utcnow
from app.core.config import settings
from app.core.database import get_db
from app.core.errors import StorageUnavailable
from app.services.credentials import CredentialService
from app.services.gate import Gate
from app.services.quota import QuotaPolicyEngine
from app.stores.accounts import AccountStore
from app.stores.ledger import QuotaLedger


def require_db(db=Depends(get_db)):
    if db is None:
        raise StorageUnavailable()
    return db


def get_clock() -> Clock:
    return utcnow


def get_generator(request: Request) -> Generator:
    return request.app.state.generator


def get_credential_service(db=Depends(require_db), clock: Clock = Depends(get_clock)) -> CredentialService:
    return CredentialService(AccountStore(db), clock=clock)


def get_ledger(db=Depends(require_db), clock: Clock = Depends(get_clock)) -> QuotaLedger:
    return QuotaLedger(db, window=settings.quota_window, clock=clock)


def get_quota_engine(request: Request, ledger: QuotaLedger = Depends(get_ledger)) -> QuotaPolicyEngine:
    return QuotaPolicyEngine(ledger, locks=request.app.state.quota_locks)


def get_gate(
    credentials: CredentialService = Depends(get_credential_service),
    quota: QuotaPolicyEngine = Depends(get_quota_engine),
    generator: Generator = Depends(get_generator),
    clock: Clock = Depends(get_clock),
) -> Gate:
    return Gate(credentials, quota, generator, clock=clock)
