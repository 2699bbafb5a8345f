"""
Per-IP rate limiting for the public /api routes (slowapi).

The limit string is resolved per request so create_app() can apply the
configured RATE_LIMIT_PER_MIN; 0 disables limiting.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)

_api_limit = "60/minute"


def api_limit() -> str:
    return _api_limit


def configure_limiter(rate_limit_per_min: int) -> None:
    global _api_limit
    _api_limit = f"{max(rate_limit_per_min, 1)}/minute"
    limiter.enabled = rate_limit_per_min > 0
    limiter.reset()
