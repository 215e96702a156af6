"""
rate_limit.py — slowapi limiter for the credential endpoints.

Only /auth/register and /auth/login opt in: each attempt costs a bcrypt
round, so they are throttled per client IP. The anonymous generation
quota is a separate, exactly-once mechanism (app.services.quota) and
does not go through slowapi.

Usage in routes:
    @router.post("/login")
    @limiter.limit(settings.auth_rate_limit)
    async def login(request: Request, payload: LoginRequest):
        ...
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)
