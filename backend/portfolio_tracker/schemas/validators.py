# backend/portfolio_tracker/schemas/validators.py
"""
Reusable validation functions for Pydantic schemas.

This module provides:
- Ticker validation and normalization
- Date range validation for price history queries

These validators ensure consistent input handling across all schemas.
"""

import re
from datetime import date

# =============================================================================
# CONSTANTS
# =============================================================================

# Ticker: 1-20 chars, alphanumeric + dots/dashes + carets (for indices like ^SPX)
TICKER_PATTERN = re.compile(r'^[\^]?[A-Z0-9][A-Z0-9.\-]{0,19}$')
TICKER_MAX_LENGTH = 20


# =============================================================================
# TICKER VALIDATION
# =============================================================================

def validate_ticker(value: str) -> str:
    """
    Validate and normalize a ticker symbol.

    Valid formats:
    - Standard tickers: AAPL, NVDA, MSFT
    - With dots or dashes: BRK.A, BRK-B
    - Indices with caret: ^SPX, ^IXIC
    - Numeric: 600519 (Chinese stocks)

    Args:
        value: Raw ticker input

    Returns:
        Normalized ticker (uppercase, trimmed)

    Raises:
        ValueError: If ticker format is invalid
    """
    if not value or not value.strip():
        raise ValueError("Ticker cannot be empty")

    normalized = value.strip().upper()

    if len(normalized) > TICKER_MAX_LENGTH:
        raise ValueError(f"Ticker cannot exceed {TICKER_MAX_LENGTH} characters")

    if not TICKER_PATTERN.match(normalized):
        raise ValueError(
            f"Invalid ticker format: '{normalized}'. "
            "Ticker must be alphanumeric, may include dots (.) or dashes (-), "
            "or start with caret (^)"
        )

    return normalized


def validate_ticker_query(value: str | None) -> str | None:
    """Validate an optional ticker query parameter."""
    if value is None:
        return None
    return validate_ticker(value)


# =============================================================================
# DATE VALIDATION
# =============================================================================

def validate_date_range(
    from_date: date | None,
    to_date: date | None,
) -> tuple[date | None, date | None]:
    """
    Validate an optional date range.

    Either bound may be omitted. When both are given, from_date must not
    be after to_date.

    Raises:
        ValueError: If range is invalid
    """
    if from_date is not None and to_date is not None and from_date > to_date:
        raise ValueError("start must be before or equal to end")
    return from_date, to_date
