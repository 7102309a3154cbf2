# backend/portfolio_tracker/middleware/cors.py
"""
Path-scoped CORS.

The web UI is served from a known origin and gets the strict policy from
CORS_ORIGINS. The browser extension calls from a chrome-extension:// origin
that differs per install, so the routes it uses get an open policy instead.
Each request is handled by exactly one of the two policies.

Usage:
    app.add_middleware(
        ScopedCORSMiddleware,
        allow_origins=settings.cors_origins,
        extension_paths=["/holdings/batch"],
        extension_origins=settings.extension_cors_origins,
    )
"""

from collections.abc import Sequence

from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send

DEFAULT_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")
DEFAULT_HEADERS = ("Content-Type", "X-Correlation-ID", "X-Request-ID")


class ScopedCORSMiddleware:
    """Strict CORS for the web UI, open CORS for an exact set of extension paths."""

    def __init__(
        self,
        app: ASGIApp,
        allow_origins: Sequence[str],
        extension_paths: Sequence[str] = (),
        extension_origins: Sequence[str] = ("*",),
    ) -> None:
        self.app = app
        self.extension_paths = frozenset(p.rstrip("/") for p in extension_paths)
        self.default_cors = CORSMiddleware(
            app,
            allow_origins=list(allow_origins),
            allow_credentials=True,
            allow_methods=list(DEFAULT_METHODS),
            allow_headers=list(DEFAULT_HEADERS),
            expose_headers=["X-Correlation-ID"],
        )
        # No credentials: browsers reject "*" together with credentials
        self.extension_cors = CORSMiddleware(
            app,
            allow_origins=list(extension_origins),
            allow_methods=["POST", "OPTIONS"],
            allow_headers=list(DEFAULT_HEADERS),
            expose_headers=["X-Correlation-ID"],
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if scope["path"].rstrip("/") in self.extension_paths:
            await self.extension_cors(scope, receive, send)
        else:
            await self.default_cors(scope, receive, send)
