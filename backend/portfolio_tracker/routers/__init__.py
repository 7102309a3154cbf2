# backend/portfolio_tracker/routers/__init__.py
"""
API routers for the Portfolio Tracker.

Each router handles a specific domain:
- holdings: Holding CRUD, manual tracking, extension bulk import, allocation
- price_history: Price history sync, coverage status and stored bars
"""

from portfolio_tracker.routers.holdings import router as holdings_router
from portfolio_tracker.routers.price_history import router as price_history_router

__all__ = [
    "holdings_router",
    "price_history_router",
]
