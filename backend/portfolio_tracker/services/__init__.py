# backend/portfolio_tracker/services/__init__.py
"""
Service layer for business logic.

This package contains the service layer which encapsulates business logic
separate from the API (router) layer. Services:
- Have NO knowledge of HTTP (no HTTPException, no status codes)
- Raise domain-specific exceptions
- Receive database sessions (or stores wrapping them) as parameters
- Are easily testable via dependency injection

Usage:
    from portfolio_tracker.services import HoldingService
    from portfolio_tracker.services import PriceHistorySyncService, SqlAlchemyPriceStore
    from portfolio_tracker.services import (
        HoldingNotFoundError,
        MarketDataError,
        ProviderConfigurationError,
    )

Architecture:
    services/
    ├── __init__.py          # This file - main exports
    ├── exceptions.py        # Domain exceptions
    ├── constants.py         # Business constants and limits
    ├── protocols.py         # Service interfaces (Protocol classes)
    ├── holding_service.py   # Holding CRUD, metrics, allocation
    ├── price_store.py       # Price bar persistence (upsert, gap queries)
    └── market_data/         # Market data package
        ├── base.py          # Abstract provider interface, DailyBar
        ├── normalization.py # Provider payload -> DailyBar
        ├── alpaca.py        # Alpaca bars (primary and secondary feeds)
        ├── yahoo.py         # Yahoo Finance fallback
        └── sync_service.py  # Sync orchestration service
"""

from portfolio_tracker.services.exceptions import (
    ServiceError,
    ValidationError,
    NotFoundError,
    HoldingNotFoundError,
    DuplicateHoldingError,
    MarketDataError,
    ProviderConfigurationError,
    ProviderUnavailableError,
    RateLimitError,
)
from portfolio_tracker.services.holding_service import (
    HoldingService,
    HoldingMetrics,
    BatchImportResult,
    AllocationSummary,
)
from portfolio_tracker.services.market_data import (
    MarketDataProvider,
    DailyBar,
    PriceHistorySyncService,
    SyncSummary,
    SyncCoverage,
)
from portfolio_tracker.services.price_store import SqlAlchemyPriceStore
from portfolio_tracker.services.protocols import PriceStore

__all__ = [
    # Exceptions
    "ServiceError",
    "ValidationError",
    "NotFoundError",
    "HoldingNotFoundError",
    "DuplicateHoldingError",
    "MarketDataError",
    "ProviderConfigurationError",
    "ProviderUnavailableError",
    "RateLimitError",
    # Holdings
    "HoldingService",
    "HoldingMetrics",
    "BatchImportResult",
    "AllocationSummary",
    # Price history
    "MarketDataProvider",
    "DailyBar",
    "PriceHistorySyncService",
    "SyncSummary",
    "SyncCoverage",
    "SqlAlchemyPriceStore",
    "PriceStore",
]
