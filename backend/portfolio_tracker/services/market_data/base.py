# backend/portfolio_tracker/services/market_data/base.py
"""
Abstract interface for market data providers.

Every provider (Alpaca feeds, Yahoo Finance, test doubles) answers the same
question: "give me daily bars for these symbols between these dates". The
sync orchestrator only ever talks to this interface, so the primary
provider and the fallback chain are interchangeable.

Retry behavior lives here once: subclasses wrap their network call in
`_execute_with_retry` and get exponential backoff on transient failures.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TypeVar, Callable, Any

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from portfolio_tracker.services.exceptions import (
    ProviderUnavailableError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')


# =============================================================================
# DATA CLASSES - PRICE DATA (OHLCV)
# =============================================================================

@dataclass(frozen=True)
class DailyBar:
    """
    One trading day of OHLCV data, normalized across providers.

    Attributes:
        date: Trading date (no time component)
        open: Opening price
        high: Highest price during the day
        low: Lowest price during the day
        close: Closing price
        volume: Shares traded (0 when the provider does not report it)
        vwap: Volume-weighted average price, None when unavailable
        trade_count: Number of trades, None when unavailable
    """

    date: date
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: int = 0
    vwap: Decimal | None = None
    trade_count: int | None = None

    def __post_init__(self) -> None:
        """Validate price data."""
        for label, price in (("open", self.open), ("high", self.high),
                             ("low", self.low), ("close", self.close)):
            if price <= 0:
                raise ValueError(f"{label} price must be positive, got {price}")
        if self.high < self.low:
            raise ValueError(f"high ({self.high}) cannot be less than low ({self.low})")
        if self.volume < 0:
            raise ValueError(f"volume cannot be negative, got {self.volume}")


# =============================================================================
# ABSTRACT BASE CLASS
# =============================================================================

class MarketDataProvider(ABC):
    """
    Abstract base class for daily bar providers.

    Retry Behavior:
        `_execute_with_retry` implements exponential backoff. Subclasses can
        tune it with class attributes:

        - MAX_RETRY_ATTEMPTS: Total attempts (default: 3)
        - RETRY_MIN_WAIT: Minimum wait in seconds (default: 1)
        - RETRY_MAX_WAIT: Maximum wait in seconds (default: 10)
        - RETRY_MULTIPLIER: Exponential multiplier (default: 1)

    Retryable Exceptions:
        - ProviderUnavailableError: Network issues, timeouts, server errors
        - RateLimitError: API rate limit exceeded

    Non-Retryable Exceptions:
        - ProviderConfigurationError: Missing credentials
    """

    MAX_RETRY_ATTEMPTS: int = 3
    RETRY_MIN_WAIT: int = 1
    RETRY_MAX_WAIT: int = 10
    RETRY_MULTIPLIER: int = 1

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Unique identifier for this provider.

        Stored in price_bars.provider, so it must be stable
        (e.g., "alpaca", "alpaca_otc", "yahoo").
        """
        pass

    @abstractmethod
    def get_daily_bars(
            self,
            symbols: list[str],
            start_date: date,
            end_date: date,
    ) -> dict[str, list[DailyBar]]:
        """
        Fetch daily bars for several symbols over one date range.

        Args:
            symbols: Uppercase tickers
            start_date: First date (inclusive)
            end_date: Last date (inclusive)

        Returns:
            Mapping of ticker to its bars in date order. Tickers the provider
            has no data for may be absent or map to an empty list.

        Raises:
            ProviderUnavailableError: Network or API error (retryable)
            RateLimitError: Rate limit exceeded (retryable)
        """
        pass

    def ensure_configured(self) -> None:
        """
        Raise ProviderConfigurationError if the provider cannot be used.

        Called before any network traffic. Providers without credentials
        have nothing to check.
        """
        return None

    # =========================================================================
    # RETRY HELPER METHOD
    # =========================================================================

    def _execute_with_retry(
            self,
            func: Callable[..., T],
            *args: Any,
            **kwargs: Any,
    ) -> T:
        """
        Execute a function with retry logic for transient failures.

        Retries ProviderUnavailableError and RateLimitError with exponential
        backoff. Anything else propagates on the first attempt.

        Raises:
            The last exception if all retries fail
        """

        @retry(
            stop=stop_after_attempt(self.MAX_RETRY_ATTEMPTS),
            wait=wait_exponential(
                multiplier=self.RETRY_MULTIPLIER,
                min=self.RETRY_MIN_WAIT,
                max=self.RETRY_MAX_WAIT,
            ),
            retry=retry_if_exception_type((ProviderUnavailableError, RateLimitError)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        def _inner() -> T:
            return func(*args, **kwargs)

        return _inner()
