"""
security.py — Password hashing and JWT utilities.

Uses:
  - bcrypt (direct, no passlib) — avoids passlib 1.7.x / bcrypt 4+ compatibility
    issues on Python 3.13
  - python-jose for JWT creation / verification

Configuration is read from app.core.config.settings so all secrets
live in environment variables / .env files, never in code.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import bcrypt
from jose import JWTError, jwt

from app.core.config import settings

# ── Password hashing ──────────────────────────────────────────────────────────

# bcrypt 5 rejects longer input instead of ignoring the tail.
BCRYPT_MAX_BYTES = 72


def _password_bytes(plain: str) -> bytes:
    return plain.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(plain: str) -> str:
    """Return bcrypt hash of *plain*; only its first 72 UTF-8 bytes count."""
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(_password_bytes(plain), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if *plain* matches *hashed*."""
    try:
        return bcrypt.checkpw(_password_bytes(plain), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def needs_rehash(hashed: str) -> bool:
    """True when *hashed* was produced with fewer rounds than configured."""
    # Modular crypt format: $2b$<cost>$<salt+digest>
    parts = hashed.split("$")
    try:
        cost = int(parts[2])
    except (IndexError, ValueError):
        return True
    return cost < settings.bcrypt_rounds


# Compared against when the login handle matches no account, so a miss
# costs the same bcrypt work as a wrong password.
_DUMMY_HASH = hash_password("promptgate-dummy-password")


def burn_password_check(plain: str) -> None:
    """Run one throwaway bcrypt comparison."""
    verify_password(plain, _DUMMY_HASH)


# ── JWT ───────────────────────────────────────────────────────────────────────

def create_access_token(
    subject: str,
    username: str,
    expires_delta: Optional[timedelta] = None,
    now: Optional[datetime] = None,
) -> str:
    """
    Create a signed JWT.

    Args:
        subject:       The account's string ID.
        username:      Account handle, carried for display only.
        expires_delta: Custom TTL; defaults to settings.jwt_expiry_days.
        now:           Issue time; defaults to the wall clock.

    Returns:
        Encoded JWT string.
    """
    delta = expires_delta if expires_delta is not None else timedelta(days=settings.jwt_expiry_days)
    issued = now if now is not None else datetime.now(tz=timezone.utc)
    payload = {
        "sub": subject,
        "username": username,
        "iat": issued,
        "exp": issued + delta,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, now: Optional[datetime] = None) -> Optional[dict[str, Any]]:
    """
    Decode and validate a JWT.

    Returns the claims on success, or None if the token is missing,
    expired at *now* (default: the wall clock), has a bad signature, or
    carries no *sub* claim.
    """
    if not token:
        return None
    try:
        # exp is checked below against *now*, not jose's own clock
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"verify_exp": False},
        )
    except JWTError:
        return None
    exp = payload.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return None
    current = now if now is not None else datetime.now(tz=timezone.utc)
    if exp < current.timestamp():
        return None
    if not payload.get("sub"):
        return None
    return payload
