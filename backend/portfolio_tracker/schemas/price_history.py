# backend/portfolio_tracker/schemas/price_history.py
"""
Pydantic schemas for price history and sync endpoints.

Sync responses use a {success, ...} envelope because the dashboard's sync
button reads `success` directly rather than the HTTP status.
"""

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# PRICE BARS
# =============================================================================

class PriceBarResponse(BaseModel):
    """One stored daily bar."""

    model_config = ConfigDict(from_attributes=True)

    ticker: str
    date: dt.date
    open_price: Decimal
    high_price: Decimal
    low_price: Decimal
    close_price: Decimal
    volume: int
    vwap: Decimal | None = None
    trade_count: int | None = None
    provider: str
    fetched_at: dt.datetime


class TickerPriceHistoryResponse(BaseModel):
    ticker: str
    count: int
    data: list[PriceBarResponse]


# =============================================================================
# SYNC
# =============================================================================

class SyncDetails(BaseModel):
    tickers_processed: int
    records_found: int
    records_inserted: int
    fallback_tickers: list[str] = Field(default_factory=list)
    fallback_sources: dict[str, str] = Field(
        default_factory=dict,
        description="Ticker -> provider that supplied its bars"
    )


class SyncResponse(BaseModel):
    success: bool = True
    synced: int
    message: str
    details: SyncDetails | None = None


class SyncErrorResponse(BaseModel):
    success: bool = False
    error: str


class TickerCoverageResponse(BaseModel):
    total: int
    existing: int
    missing: int


class SyncStatusResponse(BaseModel):
    """Calendar coverage from the configured start date to today."""

    start_date: dt.date
    end_date: dt.date
    trading_days: int
    tickers: dict[str, TickerCoverageResponse]
