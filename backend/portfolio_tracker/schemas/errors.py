# backend/portfolio_tracker/schemas/errors.py
"""
Error envelopes returned by the global exception handlers in main.py.

The sync endpoint answers with its own {success, error} envelope
(schemas/price_history.py); everything else uses these.
"""

from typing import Any

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Body of every 4xx/5xx raised from a domain exception."""

    error: str = Field(
        ...,
        description="Exception name, e.g. 'HoldingNotFoundError' or 'DuplicateHoldingError'",
    )
    message: str = Field(..., description="Message shown by the UI and the extension")
    details: dict[str, Any] | None = Field(
        default=None,
        description="Offending holding_id, ticker, field or provider status",
    )


class ValidationErrorDetail(BaseModel):
    """422 body: one {field, message, type} entry per rejected input."""

    error: str = "ValidationError"
    message: str = "Request validation failed"
    details: list[dict[str, Any]] = Field(..., description="Rejected fields, dotted location first")
