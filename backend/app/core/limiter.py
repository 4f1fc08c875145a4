# path: backend/app/core/limiter.py
"""
Rate limiting with slowapi.

The limiter is module-level so routes can decorate at import time:

    @limiter.limit(settings.BULK_ACTION_RATE_LIMIT)
    def reset(request: Request, ...): ...

Tests switch it off with ``limiter.enabled = False``.
"""
from typing import Tuple

from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from app.core.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)


def apply_rate_limiting(app) -> Tuple[Limiter, bool]:
    """
    Attach the limiter, its 429 handler and middleware to the app.
    Returns (limiter, enabled_flag).
    """
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]
    app.add_middleware(SlowAPIMiddleware)
    return limiter, limiter.enabled
