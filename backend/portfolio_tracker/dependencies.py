# backend/portfolio_tracker/dependencies.py
"""
Dependency injection module for FastAPI services.

Providers and services are singletons shared across requests, lazily
built on first use so importing the app never opens a network client.
The price store is request-scoped because it wraps the request's Session.

Usage in routers:
    from portfolio_tracker.dependencies import get_sync_service, get_price_store

    @router.post("/sync")
    def sync(
        service: PriceHistorySyncService = Depends(get_sync_service),
        store: SqlAlchemyPriceStore = Depends(get_price_store),
    ):
        ...
"""

import logging
from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from portfolio_tracker.config import settings
from portfolio_tracker.database import get_db
from portfolio_tracker.services.holding_service import HoldingService
from portfolio_tracker.services.market_data.alpaca import AlpacaBarsProvider
from portfolio_tracker.services.market_data.base import MarketDataProvider
from portfolio_tracker.services.market_data.sync_service import PriceHistorySyncService
from portfolio_tracker.services.market_data.yahoo import YahooFinanceProvider
from portfolio_tracker.services.price_store import SqlAlchemyPriceStore

logger = logging.getLogger(__name__)


# =============================================================================
# SINGLETON SERVICE INSTANCES
# =============================================================================
# Order matters: define dependencies before dependents
# 1. get_primary_provider (no deps)
# 2. get_fallback_providers (no deps)
# 3. get_sync_service (depends on both)


@lru_cache(maxsize=1)
def get_primary_provider() -> AlpacaBarsProvider:
    """Alpaca on the configured primary feed; errors abort the sync."""
    logger.debug("Initializing singleton primary AlpacaBarsProvider")
    return AlpacaBarsProvider(
        api_key=settings.alpaca_api_key,
        secret_key=settings.alpaca_secret_key,
        base_url=settings.alpaca_data_url,
        feed=settings.alpaca_feed,
        timeout=settings.alpaca_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_fallback_providers() -> tuple[MarketDataProvider, ...]:
    """
    Fallback chain, in the order it is tried.

    1. Alpaca secondary feed (lenient), unless ALPACA_SECONDARY_FEED is empty
    2. Yahoo Finance, unless YAHOO_FALLBACK_ENABLED is false
    """
    providers: list[MarketDataProvider] = []

    if settings.alpaca_secondary_feed:
        providers.append(AlpacaBarsProvider(
            api_key=settings.alpaca_api_key,
            secret_key=settings.alpaca_secret_key,
            base_url=settings.alpaca_data_url,
            feed=settings.alpaca_secondary_feed,
            lenient=True,
            timeout=settings.alpaca_timeout_seconds,
        ))

    if settings.yahoo_fallback_enabled:
        providers.append(YahooFinanceProvider())

    logger.debug(f"Fallback providers: {[p.name for p in providers]}")
    return tuple(providers)


@lru_cache(maxsize=1)
def get_sync_service() -> PriceHistorySyncService:
    """Singleton PriceHistorySyncService wired from settings."""
    logger.debug("Initializing singleton PriceHistorySyncService")
    return PriceHistorySyncService(
        primary=get_primary_provider(),
        fallbacks=get_fallback_providers(),
        start_date=settings.price_history_start_date,
    )


@lru_cache(maxsize=1)
def get_holding_service() -> HoldingService:
    return HoldingService()


# =============================================================================
# REQUEST-SCOPED DEPENDENCIES
# =============================================================================

def get_price_store(db: Annotated[Session, Depends(get_db)]) -> SqlAlchemyPriceStore:
    """Price store bound to this request's session."""
    return SqlAlchemyPriceStore(db)


# =============================================================================
# CACHE MANAGEMENT
# =============================================================================

def clear_service_caches() -> None:
    """
    Clear all service caches.

    Useful for testing or after changing settings at runtime.
    """
    get_primary_provider.cache_clear()
    get_fallback_providers.cache_clear()
    get_sync_service.cache_clear()
    get_holding_service.cache_clear()
    logger.info("Cleared all service singleton caches")
