# backend/portfolio_tracker/services/market_data/alpaca.py
"""
Alpaca Market Data provider (REST v2 /stocks/bars).

One request covers every symbol and the whole date range; the response is
paginated with `next_page_token` and the pages are merged per ticker.

Two modes:
- Primary (feed "iex", the free tier): transport failures, 5xx and 429 are
  retried, then fatal for the sync run. Other 4xx responses fail at once.
- Lenient (secondary feed, "otc" by default): a non-2xx response means
  "this feed has nothing for these symbols" and yields an empty result.
  Free accounts are usually not entitled to the OTC feed, so a 403 there
  is routine.

Example:
    provider = AlpacaBarsProvider(api_key="...", secret_key="...")
    bars = provider.get_daily_bars(["AAPL", "MSFT"], date(2026, 1, 1), date(2026, 1, 8))
    print(len(bars["AAPL"]))
"""

import logging
from datetime import date
from typing import Any

import httpx

from portfolio_tracker.services.constants import (
    ALPACA_ADJUSTMENT,
    ALPACA_PAGE_LIMIT,
    ALPACA_TIMEFRAME,
    PROVIDER_ALPACA,
)
from portfolio_tracker.services.exceptions import (
    MarketDataError,
    ProviderConfigurationError,
    ProviderUnavailableError,
    RateLimitError,
)
from portfolio_tracker.services.market_data.base import MarketDataProvider, DailyBar
from portfolio_tracker.services.market_data.normalization import (
    AlpacaBarsPayload,
    normalize_payload,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://data.alpaca.markets/v2"


class AlpacaBarsProvider(MarketDataProvider):
    """
    Daily bars from Alpaca's historical stock bars endpoint.

    Configuration:
        api_key / secret_key: Sent as APCA-API-KEY-ID / APCA-API-SECRET-KEY
        base_url: Market data base URL
        feed: Alpaca data feed ("iex", "sip", "otc")
        lenient: Treat non-2xx responses as "no data" instead of failing
        timeout: Request timeout in seconds
        client: Optional httpx.Client (tests inject one with a MockTransport)
    """

    def __init__(
            self,
            api_key: str | None,
            secret_key: str | None,
            base_url: str = DEFAULT_BASE_URL,
            feed: str = "iex",
            lenient: bool = False,
            timeout: float = 30.0,
            client: httpx.Client | None = None,
    ) -> None:
        self._api_key = api_key
        self._secret_key = secret_key
        self._base_url = base_url.rstrip("/")
        self._feed = feed
        self._lenient = lenient
        self._client = client or httpx.Client(timeout=timeout)
        logger.info(
            f"AlpacaBarsProvider initialized (feed={feed}, lenient={lenient})"
        )

    @property
    def name(self) -> str:
        if self._lenient:
            return f"{PROVIDER_ALPACA}_{self._feed}"
        return PROVIDER_ALPACA

    @property
    def feed(self) -> str:
        return self._feed

    def ensure_configured(self) -> None:
        if not self._api_key or not self._secret_key:
            raise ProviderConfigurationError(
                provider=self.name,
                reason="Alpaca API credentials not configured. "
                       "Set ALPACA_API_KEY and ALPACA_SECRET_KEY.",
            )

    def close(self) -> None:
        self._client.close()

    # =========================================================================
    # DAILY BARS
    # =========================================================================

    def get_daily_bars(
            self,
            symbols: list[str],
            start_date: date,
            end_date: date,
    ) -> dict[str, list[DailyBar]]:
        """
        Fetch daily bars for all symbols in one paginated range query.

        Returns:
            Ticker -> bars. Every requested symbol is present (possibly with
            an empty list). In lenient mode a rejected request returns {}.

        Raises:
            ProviderConfigurationError: Credentials missing
            ProviderUnavailableError: Transport error or non-2xx (primary mode)
            RateLimitError: HTTP 429 (primary mode)
        """
        tickers = sorted({s.strip().upper() for s in symbols if s and s.strip()})
        if not tickers:
            return {}

        self.ensure_configured()

        merged: dict[str, list[dict[str, Any]]] = {t: [] for t in tickers}
        page_token: str | None = None
        pages = 0

        while True:
            data = self._execute_with_retry(
                self._fetch_page,
                tickers,
                start_date,
                end_date,
                page_token,
            )
            if data is None:
                return {}

            pages += 1
            for ticker, bars in (data.get("bars") or {}).items():
                merged.setdefault(ticker.upper(), []).extend(bars or [])

            page_token = data.get("next_page_token")
            if not page_token:
                break

        logger.debug(
            f"Alpaca {self._feed}: {sum(len(b) for b in merged.values())} bars "
            f"for {len(tickers)} symbols in {pages} page(s)"
        )

        return normalize_payload(AlpacaBarsPayload(bars=merged))

    def _fetch_page(
            self,
            tickers: list[str],
            start_date: date,
            end_date: date,
            page_token: str | None,
    ) -> dict[str, Any] | None:
        """Fetch one page. Returns None when lenient mode swallows a rejection."""
        params = {
            "symbols": ",".join(tickers),
            "start": f"{start_date.isoformat()}T00:00:00Z",
            "end": f"{end_date.isoformat()}T23:59:59Z",
            "timeframe": ALPACA_TIMEFRAME,
            "limit": str(ALPACA_PAGE_LIMIT),
            "adjustment": ALPACA_ADJUSTMENT,
            "feed": self._feed,
        }
        if page_token:
            params["page_token"] = page_token

        headers = {
            "APCA-API-KEY-ID": self._api_key or "",
            "APCA-API-SECRET-KEY": self._secret_key or "",
            "Accept": "application/json",
        }

        try:
            response = self._client.get(
                f"{self._base_url}/stocks/bars",
                params=params,
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.error(f"Alpaca request failed ({self._feed}): {e}")
            raise ProviderUnavailableError(provider=self.name, reason=str(e))

        if response.is_success:
            try:
                return response.json()
            except ValueError as e:
                logger.error(f"Alpaca {self._feed} returned a non-JSON body: {e}")
                raise ProviderUnavailableError(
                    provider=self.name,
                    reason="Alpaca API returned an unreadable response body",
                    status_code=response.status_code,
                )

        if self._lenient:
            logger.info(
                f"Alpaca {self._feed} feed returned {response.status_code}, "
                f"treating as no data for {len(tickers)} symbols"
            )
            return None

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                provider=self.name,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )

        if response.is_server_error:
            raise ProviderUnavailableError(
                provider=self.name,
                reason=f"Alpaca API error ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )

        # Bad request, bad keys or no feed entitlement: retrying cannot help
        raise MarketDataError(
            f"Alpaca API rejected the request ({response.status_code}): {response.text}",
            provider=self.name,
        )
