# backend/portfolio_tracker/middleware/rate_limit.py
"""
Rate limiting middleware for API protection.

This module provides rate limiting using slowapi to:
- Protect the Alpaca and Yahoo quotas from a sync button held down
- Keep a misbehaving extension from flooding the bulk import

Rate limits are configured in portfolio_tracker/services/constants.py.

Key by: Client IP address (X-Forwarded-For only when TRUST_PROXY_HEADERS is set)
Storage: In-memory (single process)

Usage:
    from portfolio_tracker.middleware.rate_limit import limiter, RATE_LIMIT_SYNC

    @router.post("/sync")
    @limiter.limit(RATE_LIMIT_SYNC)
    def sync(request: Request):
        ...
"""

import logging

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from portfolio_tracker.config import settings
from portfolio_tracker.services.constants import (
    RATE_LIMIT_DEFAULT,
    RATE_LIMIT_WRITE,
    RATE_LIMIT_SYNC,
    RATE_LIMIT_IMPORT,
    RATE_LIMIT_HEALTH,
)

logger = logging.getLogger(__name__)

# Seconds suggested to clients in Retry-After
DEFAULT_RETRY_AFTER = 60


def _get_client_ip(request: Request) -> str:
    """
    Extract client IP address from request.

    Forwarded headers are only honored when the deployment says a trusted
    proxy sits in front; otherwise any client could pick its own key.
    """
    if settings.trust_proxy_headers:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            # First entry is the original client
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

    return get_remote_address(request)


# =============================================================================
# LIMITER INSTANCE
# =============================================================================

limiter = Limiter(
    key_func=_get_client_ip,
    default_limits=[RATE_LIMIT_DEFAULT],
    enabled=settings.rate_limit_enabled,
)


# =============================================================================
# RATE LIMIT EXCEEDED HANDLER
# =============================================================================

async def rate_limit_exceeded_handler(
    request: Request, exc: RateLimitExceeded
) -> JSONResponse:
    """
    Handle rate limit exceeded errors with consistent error format.

    Returns a 429 with the standard ErrorDetail body and a Retry-After header.
    """
    limit_info = str(exc.detail) if exc.detail else "Rate limit exceeded"

    logger.warning(
        f"Rate limit exceeded for {_get_client_ip(request)}: {limit_info}"
    )

    return JSONResponse(
        status_code=429,
        content={
            "error": "RateLimitError",
            "message": f"Too many requests. {limit_info}",
            "details": {
                "retry_after": DEFAULT_RETRY_AFTER,
            },
        },
        headers={
            "Retry-After": str(DEFAULT_RETRY_AFTER),
        },
    )


__all__ = [
    "limiter",
    "rate_limit_exceeded_handler",
    "SlowAPIMiddleware",
    "RATE_LIMIT_DEFAULT",
    "RATE_LIMIT_WRITE",
    "RATE_LIMIT_SYNC",
    "RATE_LIMIT_IMPORT",
    "RATE_LIMIT_HEALTH",
]
