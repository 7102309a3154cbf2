# backend/tests/conftest.py
"""
Pytest configuration and fixtures.

This module provides shared fixtures for all tests:
- Database session fixtures (in-memory SQLite)
- Fake market data providers with scripted bars and call logs
- An in-memory PriceStore with a controllable clock
- Sample data factories
"""

import os

# Must be set before portfolio_tracker.config is imported anywhere
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("APP_NAME", "Test App")

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from portfolio_tracker.models import Base, Holding
from portfolio_tracker.services.exceptions import ProviderConfigurationError
from portfolio_tracker.services.market_data.base import MarketDataProvider, DailyBar
from portfolio_tracker.utils.date_utils import as_utc


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def db(db_engine) -> Iterator[Session]:
    """Create a database session for testing."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# =============================================================================
# FAKE MARKET DATA PROVIDER
# =============================================================================

class FakeProvider(MarketDataProvider):
    """
    Scripted MarketDataProvider for testing.

    Bars are configured per ticker and filtered to the requested range,
    like a real provider. Every call is recorded as (symbols, start, end).
    """

    def __init__(self, name: str = "fake", configured: bool = True):
        self._name = name
        self._configured = configured
        self._bars: dict[str, list[DailyBar]] = {}
        self._error: Exception | None = None
        self.calls: list[tuple[list[str], date, date]] = []

    @property
    def name(self) -> str:
        return self._name

    def add_bars(self, ticker: str, bars: list[DailyBar]) -> None:
        self._bars.setdefault(ticker.upper(), []).extend(bars)

    def set_error(self, error: Exception | None) -> None:
        """Raise this error from every get_daily_bars call."""
        self._error = error

    def ensure_configured(self) -> None:
        if not self._configured:
            raise ProviderConfigurationError(provider=self._name, reason="missing credentials")

    def get_daily_bars(
            self,
            symbols: list[str],
            start_date: date,
            end_date: date,
    ) -> dict[str, list[DailyBar]]:
        self.calls.append((list(symbols), start_date, end_date))
        if self._error is not None:
            raise self._error

        return {
            s: [b for b in self._bars.get(s, []) if start_date <= b.date <= end_date]
            for s in symbols
        }


# =============================================================================
# IN-MEMORY PRICE STORE
# =============================================================================

class InMemoryPriceStore:
    """
    PriceStore backed by a dict, with a settable "now".

    `now` is stamped as fetched_at on every upsert, so tests can move the
    clock forward a day and observe the same-day refresh rule.
    """

    def __init__(self, tickers: list[str] | None = None, now: datetime | None = None):
        self.tickers = list(tickers or [])
        self.now = now or datetime.now(timezone.utc)
        self.rows: dict[tuple[str, date], dict[str, Any]] = {}
        self.upsert_calls = 0

    def all_tickers(self) -> list[str]:
        return sorted(set(self.tickers))

    def existing_dates(
            self,
            ticker: str,
            start_date: date,
            end_date: date,
            today: date | None = None,
    ) -> set[date]:
        today = today or self.now.date()
        return {
            d for (t, d), row in self.rows.items()
            if t == ticker and start_date <= d <= end_date
            and as_utc(row["fetched_at"]).date() != today
        }

    def batch_upsert(self, records, fetched_at: datetime | None = None) -> int:
        self.upsert_calls += 1
        written = set()
        for record in records:
            key = (record["ticker"].upper(), record["date"])
            self.rows[key] = {**record, "fetched_at": fetched_at or self.now}
            written.add(key)
        return len(written)

    def get_price_history(self, ticker, start_date=None, end_date=None):
        return [
            row for (t, d), row in sorted(self.rows.items())
            if t == ticker
            and (start_date is None or d >= start_date)
            and (end_date is None or d <= end_date)
        ]


# =============================================================================
# FACTORIES
# =============================================================================

def make_bar(
        bar_date: date,
        close: str = "100.00",
        volume: int = 1000,
        vwap: str | None = None,
        trade_count: int | None = None,
) -> DailyBar:
    """Build a valid DailyBar around a close price."""
    price = Decimal(close)
    return DailyBar(
        date=bar_date,
        open=price,
        high=price + Decimal("1"),
        low=price - Decimal("1"),
        close=price,
        volume=volume,
        vwap=Decimal(vwap) if vwap else None,
        trade_count=trade_count,
    )


def make_bars(dates: list[date], close: str = "100.00") -> list[DailyBar]:
    return [make_bar(d, close=close) for d in dates]


def make_record(
        ticker: str,
        bar_date: date,
        close: str = "100.00",
        provider: str = "alpaca",
) -> dict[str, Any]:
    """Build a price store record as produced by the sync service."""
    price = Decimal(close)
    return {
        "ticker": ticker,
        "date": bar_date,
        "open_price": price,
        "high_price": price + Decimal("1"),
        "low_price": price - Decimal("1"),
        "close_price": price,
        "volume": 1000,
        "vwap": None,
        "trade_count": None,
        "provider": provider,
    }


def create_holding(
        db: Session,
        ticker: str,
        shares: str = "10",
        cost_basis: str = "1000",
        current_price: str | None = None,
        desired_percent: str | None = None,
        company_name: str | None = None,
) -> Holding:
    holding = Holding(
        ticker=ticker,
        company_name=company_name or f"{ticker} Inc.",
        shares=Decimal(shares),
        cost_basis=Decimal(cost_basis),
        current_price=Decimal(current_price) if current_price else None,
        desired_percent=Decimal(desired_percent) if desired_percent else None,
    )
    db.add(holding)
    db.commit()
    db.refresh(holding)
    return holding


@pytest.fixture
def primary() -> FakeProvider:
    return FakeProvider(name="alpaca")


@pytest.fixture
def secondary() -> FakeProvider:
    return FakeProvider(name="alpaca_otc")


@pytest.fixture
def yahoo() -> FakeProvider:
    return FakeProvider(name="yahoo")
