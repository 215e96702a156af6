"""
fingerprint.py — Coarse device fingerprint derived from the User-Agent.

Stored on usage records for audit only. Two different phones on the same
browser build share a fingerprint; the quota decision never relies on it.
"""

import re

_PLATFORM = re.compile(r"(Windows|Mac|Linux|Android|iPhone|iPad)")
_DETAIL = re.compile(r"\(([^)]+)\)")

MAX_FINGERPRINT_LENGTH = 100


def device_fingerprint(user_agent: str | None) -> str:
    """``<platform>_<first parenthesised UA segment>``, capped at 100 chars."""
    ua = user_agent or ""
    platform = _PLATFORM.search(ua)
    detail = _DETAIL.search(ua)
    fingerprint = f"{platform.group(1) if platform else ''}_{detail.group(1) if detail else ''}"
    return fingerprint[:MAX_FINGERPRINT_LENGTH]
