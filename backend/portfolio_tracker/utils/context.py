# backend/portfolio_tracker/utils/context.py
"""
Request-scoped correlation ID storage.

Uses contextvars so the value follows the request through FastAPI's
threadpool and async calls. The middleware sets it, the logging filter
reads it.
"""

from contextvars import ContextVar

_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    """Return the current request's correlation ID, or None outside a request."""
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    _correlation_id_var.set(None)
