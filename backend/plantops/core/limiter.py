# path: backend/plantops/core/limiter.py
"""
Rate limiting with slowapi.

A module-level limiter is exposed so endpoint decorators can reference it
at import time; apply_rate_limiting() wires the handler and middleware.
"""
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

# In-memory storage; use storage_uri for a shared backend in multi-worker deployments
limiter = Limiter(key_func=get_remote_address)


def apply_rate_limiting(app) -> Limiter:
    """Attach the limiter, its 429 handler and middleware to the app."""
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]
    app.add_middleware(SlowAPIMiddleware)
    return limiter
