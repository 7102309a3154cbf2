# backend/portfolio_tracker/services/market_data/sync_service.py
"""
Price history sync orchestration.

This service handles:
- Building the weekday trading calendar from the configured epoch to today
- Detecting, per ticker, which calendar dates have no trustworthy bar
- One batched primary fetch covering every gapped ticker
- A per-ticker fallback chain for tickers the primary returned nothing for
- Writing only the gap dates back through one idempotent batch upsert

Design Principles:
- Dependency Injection: providers, store and clock are passed in
- No HTTP Knowledge: raises domain exceptions, not HTTPException
- Idempotent: rows are keyed on (ticker, date), re-running is always safe

Usage:
    from portfolio_tracker.services.market_data import PriceHistorySyncService

    service = PriceHistorySyncService(primary=alpaca, fallbacks=[alpaca_otc, yahoo])
    summary = service.run_sync(SqlAlchemyPriceStore(db))
    print(summary.message)
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from portfolio_tracker.services.market_data.base import MarketDataProvider, DailyBar
from portfolio_tracker.services.protocols import PriceStore
from portfolio_tracker.utils.date_utils import get_business_days, get_missing_dates, utc_today

logger = logging.getLogger(__name__)

DEFAULT_START_DATE = date(2026, 1, 1)

UP_TO_DATE_MESSAGE = "All price data is up to date"
NO_TICKERS_MESSAGE = "No tickers found in database"


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class SyncGap:
    """Calendar dates one ticker still needs, in calendar order."""

    ticker: str
    missing_dates: list[date] = field(default_factory=list)

    @property
    def earliest(self) -> date:
        return self.missing_dates[0]


@dataclass
class SyncSummary:
    """Outcome of one sync run."""

    synced: int = 0
    tickers_processed: int = 0
    records_found: int = 0
    fallback_tickers: list[str] = field(default_factory=list)
    # Ticker -> provider name that filled it
    fallback_sources: dict[str, str] = field(default_factory=dict)
    message: str = UP_TO_DATE_MESSAGE


@dataclass
class TickerCoverage:
    total: int
    existing: int
    missing: int


@dataclass
class SyncCoverage:
    """Per-ticker coverage of the trading calendar, for the status endpoint."""

    start_date: date
    end_date: date
    trading_days: int
    tickers: dict[str, TickerCoverage] = field(default_factory=dict)


# =============================================================================
# SYNC SERVICE
# =============================================================================

class PriceHistorySyncService:
    """
    Fills gaps in stored daily price history.

    Attributes:
        _primary: Provider queried once per run for every gapped ticker
        _fallbacks: Providers tried in order, one ticker at a time, for
            tickers the primary returned no bars for
        _start_date: First calendar date tracked
        _clock: Returns today's date at the UTC day boundary

    Example:
        service = PriceHistorySyncService(primary=FakeProvider())
        summary = service.run_sync(store)
    """

    def __init__(
            self,
            primary: MarketDataProvider,
            fallbacks: Sequence[MarketDataProvider] | None = None,
            start_date: date | None = None,
            clock: Callable[[], date] | None = None,
    ) -> None:
        self._primary = primary
        self._fallbacks = list(fallbacks or [])
        self._start_date = start_date or DEFAULT_START_DATE
        self._clock = clock or utc_today

    @property
    def start_date(self) -> date:
        return self._start_date

    @property
    def provider_names(self) -> list[str]:
        return [self._primary.name] + [p.name for p in self._fallbacks]

    # =========================================================================
    # GAP DETECTION
    # =========================================================================

    def find_gaps(self, store: PriceStore, tickers: list[str], today: date) -> list[SyncGap]:
        """
        Compute each ticker's missing calendar dates.

        Tickers with nothing missing are left out of the result.
        """
        calendar = get_business_days(self._start_date, today)
        gaps = []

        for ticker in tickers:
            existing = store.existing_dates(ticker, self._start_date, today, today=today)
            missing = get_missing_dates(calendar, existing)
            if missing:
                gaps.append(SyncGap(ticker=ticker, missing_dates=missing))

        return gaps

    # =========================================================================
    # SYNC
    # =========================================================================

    def run_sync(self, store: PriceStore) -> SyncSummary:
        """
        Fetch and store every missing bar for every tracked ticker.

        Returns:
            SyncSummary with counts and fallback attribution

        Raises:
            ProviderConfigurationError: Primary provider lacks credentials
            ProviderUnavailableError: Primary provider failed after retries
            RateLimitError: Primary provider kept rate limiting
            SQLAlchemyError: Storage failed (the batch is rolled back)
        """
        self._primary.ensure_configured()

        tickers = store.all_tickers()
        if not tickers:
            logger.info("Price sync skipped: no holdings")
            return SyncSummary(message=NO_TICKERS_MESSAGE)

        today = self._clock()
        gaps = self.find_gaps(store, tickers, today)

        if not gaps:
            logger.info(f"Price sync: {len(tickers)} tickers already up to date")
            return SyncSummary(message=UP_TO_DATE_MESSAGE)

        gapped_tickers = [g.ticker for g in gaps]
        earliest_missing = min(g.earliest for g in gaps)

        logger.info(
            f"Price sync: {len(gaps)} of {len(tickers)} tickers need data "
            f"from {earliest_missing} to {today}"
        )

        bars = dict(self._primary.get_daily_bars(gapped_tickers, earliest_missing, today))

        fallback_sources = self._fill_from_fallbacks(gaps, bars, today)

        records = self._build_records(gaps, bars, fallback_sources)
        synced = store.batch_upsert(records)

        fallback_tickers = [t for t in gapped_tickers if t in fallback_sources]

        logger.info(
            f"Price sync completed: {synced} records for {len(gaps)} tickers",
            extra={
                "synced": synced,
                "tickers_processed": len(gaps),
                "fallback_tickers": fallback_tickers,
            },
        )

        return SyncSummary(
            synced=synced,
            tickers_processed=len(gaps),
            records_found=len(records),
            fallback_tickers=fallback_tickers,
            fallback_sources=fallback_sources,
            message=f"Successfully synced {synced} price records",
        )

    def _fill_from_fallbacks(
            self,
            gaps: list[SyncGap],
            bars: dict[str, list[DailyBar]],
            today: date,
    ) -> dict[str, str]:
        """
        Query fallback providers for tickers the primary returned nothing for.

        Mutates `bars` in place. The first provider with a non-empty answer
        wins; its bars are used as-is and later providers are not asked.

        Returns:
            Ticker -> name of the fallback provider that supplied its bars
        """
        sources: dict[str, str] = {}

        if not self._fallbacks:
            return sources

        empty = [g for g in gaps if not bars.get(g.ticker)]
        if not empty:
            return sources

        logger.info(
            f"Trying fallback providers for {len(empty)} tickers: "
            f"{', '.join(g.ticker for g in empty)}"
        )

        for gap in empty:
            for provider in self._fallbacks:
                try:
                    # From this ticker's own earliest gap, not the batch-wide start;
                    # the result is filtered to its gap dates either way
                    found = provider.get_daily_bars([gap.ticker], gap.earliest, today).get(gap.ticker, [])
                except Exception as e:
                    logger.warning(f"Fallback provider {provider.name} failed for {gap.ticker}: {e}")
                    continue

                if found:
                    bars[gap.ticker] = found
                    sources[gap.ticker] = provider.name
                    logger.debug(f"{gap.ticker}: {len(found)} bars from {provider.name}")
                    break
            else:
                logger.warning(f"No provider returned data for {gap.ticker}")

        return sources

    def _build_records(
            self,
            gaps: list[SyncGap],
            bars: dict[str, list[DailyBar]],
            fallback_sources: dict[str, str],
    ) -> list[dict[str, Any]]:
        """Turn bars into store records, keeping only each ticker's own gap dates."""
        records = []

        for gap in gaps:
            wanted = set(gap.missing_dates)
            provider = fallback_sources.get(gap.ticker, self._primary.name)

            for bar in bars.get(gap.ticker, []):
                if bar.date not in wanted:
                    continue
                records.append({
                    "ticker": gap.ticker,
                    "date": bar.date,
                    "open_price": bar.open,
                    "high_price": bar.high,
                    "low_price": bar.low,
                    "close_price": bar.close,
                    "volume": bar.volume,
                    "vwap": bar.vwap,
                    "trade_count": bar.trade_count,
                    "provider": provider,
                })

        return records

    # =========================================================================
    # STATUS
    # =========================================================================

    def get_status(self, store: PriceStore) -> SyncCoverage:
        """Coverage of the calendar (epoch to today) per tracked ticker."""
        today = self._clock()
        calendar = get_business_days(self._start_date, today)
        coverage = SyncCoverage(
            start_date=self._start_date,
            end_date=today,
            trading_days=len(calendar),
        )

        for ticker in store.all_tickers():
            existing = store.existing_dates(ticker, self._start_date, today, today=today)
            missing = get_missing_dates(calendar, existing)
            coverage.tickers[ticker] = TickerCoverage(
                total=len(calendar),
                existing=len(calendar) - len(missing),
                missing=len(missing),
            )

        return coverage
