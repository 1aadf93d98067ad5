"""Rate limiting via slowapi.

A module-level Limiter keyed on client IP, wired into the app in main.py.
Routes may tighten their own budget with ``@limiter.limit("N/period")``.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from coreops.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
)
