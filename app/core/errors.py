"""
errors.py — Error taxonomy shared by the services and the HTTP layer.

Services raise these; app.main registers a single exception handler that
renders them as:

    { "error": "<code>", "detail": "<message>", ...details }

Policy outcomes (Conflict, InvalidCredentials, QuotaExceeded, ...) are
expected and surfaced verbatim. Internal carries a generic message only;
the underlying cause is logged where it is caught, never returned.
"""

from typing import Any, Optional

from fastapi import status

REMEDIATION_HINT = "Please register/login for unlimited access."


class GateError(Exception):
    """Base class for every error the core surfaces to callers."""

    code: str = "error"
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Request failed"

    def __init__(self, message: Optional[str] = None, details: Optional[dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_body(self) -> dict[str, Any]:
        return {"error": self.code, "detail": self.message, **self.details}


class Conflict(GateError):
    code = "conflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Username or email already exists"


class InvalidCredentials(GateError):
    code = "invalid_credentials"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid credentials"


class InvalidOrExpiredToken(GateError):
    code = "invalid_or_expired_token"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid or expired token"


class TokenRejected(InvalidOrExpiredToken):
    """Profile reads answer a bad token with 403 rather than 401."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFound(GateError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class QuotaExceeded(GateError):
    """Anonymous caller already used the free prompt inside the window."""

    code = "quota_exceeded"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = (
        "Anonymous users can only generate 1 prompt per device per day. "
        + REMEDIATION_HINT
    )

    def __init__(self, message: Optional[str] = None, details: Optional[dict[str, Any]] = None):
        body = {
            "user_type": "anonymous",
            "requires_login": True,
            "message": (
                "You have already used your free prompt for this device today. "
                "Please try again tomorrow or register/login for unlimited access."
            ),
        }
        body.update(details or {})
        super().__init__(message, body)


class Internal(GateError):
    code = "internal"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"


class StorageUnavailable(Internal):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Database unavailable"
