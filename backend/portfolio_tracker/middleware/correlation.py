# backend/portfolio_tracker/middleware/correlation.py
"""
Correlation ID middleware for request tracing.

Every request gets an ID that is stored in context (so every log line
of a sync run carries it) and echoed back in the X-Correlation-ID
response header. The browser extension and the dashboard can send their
own ID; anything unusable is replaced with a fresh UUID.

Sources, in order:
1. X-Correlation-ID header
2. X-Request-ID header
3. Generated UUID

Usage:
    from portfolio_tracker.middleware import CorrelationIdMiddleware

    app.add_middleware(CorrelationIdMiddleware)
"""

import logging
import re
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from portfolio_tracker.utils.context import set_correlation_id, clear_correlation_id

logger = logging.getLogger(__name__)

CORRELATION_ID_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"

# Client IDs end up in log lines; keep them short and printable
_VALID_ID = re.compile(r"^[A-Za-z0-9._:\-]{1,64}$")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Attach a correlation ID to the request context and the response.

    Also logs one DEBUG line per request with method, path, status and
    duration, tagged with the same ID.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Response],
    ) -> Response:
        correlation_id = self._get_correlation_id(request)
        set_correlation_id(correlation_id)
        started = time.perf_counter()

        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = correlation_id

            logger.debug(
                f"{request.method} {request.url.path} -> {response.status_code} "
                f"({(time.perf_counter() - started) * 1000:.0f} ms)"
            )
            return response

        finally:
            clear_correlation_id()

    def _get_correlation_id(self, request: Request) -> str:
        """Use the first well-formed header value, else generate a UUID."""
        for header in (CORRELATION_ID_HEADER, REQUEST_ID_HEADER):
            candidate = request.headers.get(header)
            if candidate and _VALID_ID.match(candidate):
                return candidate

        return str(uuid.uuid4())
