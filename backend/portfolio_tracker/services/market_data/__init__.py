# backend/portfolio_tracker/services/market_data/__init__.py
"""
Market data services package.

This package contains:
- Abstract interface for daily bar providers (base.py)
- Payload normalization shared by all providers (normalization.py)
- Alpaca implementation, primary and secondary feeds (alpaca.py)
- Yahoo Finance fallback (yahoo.py)
- Price history sync orchestration (sync_service.py)

Architecture:
    MarketDataProvider (ABC)
    ├── AlpacaBarsProvider (feed="iex" primary, feed="otc" lenient)
    └── YahooFinanceProvider

    PriceHistorySyncService
    └── primary provider, then fallbacks in order, then PriceStore
"""

from portfolio_tracker.services.market_data.base import (
    MarketDataProvider,
    DailyBar,
)
from portfolio_tracker.services.market_data.normalization import (
    AlpacaBarsPayload,
    YahooHistoryPayload,
    normalize_payload,
)
from portfolio_tracker.services.market_data.alpaca import AlpacaBarsProvider
from portfolio_tracker.services.market_data.yahoo import YahooFinanceProvider
from portfolio_tracker.services.market_data.sync_service import (
    PriceHistorySyncService,
    SyncGap,
    SyncSummary,
    SyncCoverage,
    TickerCoverage,
)

__all__ = [
    # Abstract interface
    "MarketDataProvider",
    "DailyBar",
    # Normalization
    "AlpacaBarsPayload",
    "YahooHistoryPayload",
    "normalize_payload",
    # Concrete implementations
    "AlpacaBarsProvider",
    "YahooFinanceProvider",
    # Sync service
    "PriceHistorySyncService",
    "SyncGap",
    "SyncSummary",
    "SyncCoverage",
    "TickerCoverage",
]
