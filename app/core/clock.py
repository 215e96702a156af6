"""
clock.py — Single source of "now" for the quota window and token expiry.

Services take a ``Clock`` so tests can move time forward without sleeping.
"""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(tz=timezone.utc)
