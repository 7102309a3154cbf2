# backend/portfolio_tracker/utils/__init__.py
"""
Cross-cutting utilities:
- logging: setup with correlation ID support
- context: request-scoped correlation ID
- date_utils: trading calendar and gap detection

Usage:
    from portfolio_tracker.utils import setup_logging
    from portfolio_tracker.utils.date_utils import get_business_days
"""

from portfolio_tracker.utils.context import (
    get_correlation_id,
    set_correlation_id,
    clear_correlation_id,
)
from portfolio_tracker.utils.logging import setup_logging

__all__ = [
    "setup_logging",
    "get_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
]
