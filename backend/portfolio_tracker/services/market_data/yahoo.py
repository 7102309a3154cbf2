# backend/portfolio_tracker/services/market_data/yahoo.py
"""
Yahoo Finance fallback provider.

Uses the yfinance library, one ticker per request. Yahoo covers many OTC
and foreign listings that Alpaca's free feed does not, so it sits at the
end of the fallback chain.

Limitations:
- Rate limits (not officially documented, but exist)
- No VWAP or trade count: those fields are always None
- Not suitable for high-frequency use
"""

import logging
from datetime import date, timedelta

import yfinance as yf

from portfolio_tracker.services.constants import PROVIDER_YAHOO
from portfolio_tracker.services.exceptions import (
    ProviderUnavailableError,
    RateLimitError,
)
from portfolio_tracker.services.market_data.base import MarketDataProvider, DailyBar
from portfolio_tracker.services.market_data.normalization import (
    YahooHistoryPayload,
    normalize_payload,
)

logger = logging.getLogger(__name__)


class YahooFinanceProvider(MarketDataProvider):
    """
    Yahoo Finance implementation of MarketDataProvider.

    Retry Behavior (inherited from MarketDataProvider):
        - Retries on ProviderUnavailableError and RateLimitError
        - Uses exponential backoff: 1s -> 2s -> 4s
        - Maximum 3 attempts

    Example:
        provider = YahooFinanceProvider()
        bars = provider.get_daily_bars(["OTCFX"], date(2026, 1, 1), date(2026, 1, 8))
    """

    def __init__(self, timeout: int = 10) -> None:
        self._timeout = timeout
        logger.info(f"YahooFinanceProvider initialized (timeout={timeout}s)")

    @property
    def name(self) -> str:
        return PROVIDER_YAHOO

    def get_daily_bars(
            self,
            symbols: list[str],
            start_date: date,
            end_date: date,
    ) -> dict[str, list[DailyBar]]:
        """
        Fetch daily bars one ticker at a time.

        A ticker that fails after retries is logged and reported with no
        bars, so one bad symbol does not hide data for the others.
        """
        result: dict[str, list[DailyBar]] = {}

        for symbol in symbols:
            ticker = symbol.strip().upper()
            try:
                result.update(self._execute_with_retry(
                    self._fetch_history,
                    ticker,
                    start_date,
                    end_date,
                ))
            except (ProviderUnavailableError, RateLimitError) as e:
                logger.warning(f"Yahoo Finance gave up on {ticker}: {e}")
                result[ticker] = []

        return result

    def _fetch_history(
            self,
            ticker: str,
            start_date: date,
            end_date: date,
    ) -> dict[str, list[DailyBar]]:
        """Internal method to fetch one ticker's history (called by retry wrapper)."""
        logger.debug(f"Fetching Yahoo history for {ticker}: {start_date} to {end_date}")

        try:
            yf_ticker = yf.Ticker(ticker)

            # Yahoo Finance end date is exclusive, so add 1 day
            yahoo_end = end_date + timedelta(days=1)

            df = yf_ticker.history(
                start=start_date.isoformat(),
                end=yahoo_end.isoformat(),
                interval="1d",
                auto_adjust=False,
                timeout=self._timeout,
            )
        except Exception as e:
            error_str = str(e).lower()
            if "rate limit" in error_str or "too many requests" in error_str:
                raise RateLimitError(provider=self.name)

            logger.error(f"Yahoo Finance error for {ticker}: {e}")
            raise ProviderUnavailableError(
                provider=self.name,
                reason=str(e),
            )

        if df is None or df.empty:
            logger.warning(f"No Yahoo price data for {ticker} between {start_date} and {end_date}")
            return {ticker: []}

        bars = normalize_payload(YahooHistoryPayload(ticker=ticker, frame=df))
        logger.debug(f"Fetched {len(bars[ticker])} days for {ticker} from Yahoo")
        return bars
