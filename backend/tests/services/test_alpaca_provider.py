# backend/tests/services/test_alpaca_provider.py
"""
Tests for the AlpacaBarsProvider.

This module tests:
- Request shape (URL, query parameters, auth headers)
- Pagination via next_page_token
- Primary mode failures (5xx, 429, transport errors) after retries
- Primary mode client errors (4xx) without retries
- Lenient mode (non-2xx means "no data")
- Credential pre-flight check

Note: HTTP is served by httpx.MockTransport; nothing leaves the process.
"""

from datetime import date
from decimal import Decimal

import httpx
import pytest

from portfolio_tracker.services.exceptions import (
    MarketDataError,
    ProviderConfigurationError,
    ProviderUnavailableError,
    RateLimitError,
)
from portfolio_tracker.services.market_data.alpaca import AlpacaBarsProvider

BASE_URL = "https://data.example.test/v2"


def bar(day: str, close: float = 10.0) -> dict:
    return {"t": f"{day}T05:00:00Z", "o": close, "h": close + 1, "l": close - 1,
            "c": close, "v": 100, "vw": close, "n": 5}


def make_provider(handler, lenient: bool = False, feed: str = "iex", **kwargs) -> AlpacaBarsProvider:
    """Provider wired to a MockTransport, with retries made instant."""
    provider = AlpacaBarsProvider(
        api_key=kwargs.pop("api_key", "key-id"),
        secret_key=kwargs.pop("secret_key", "secret"),
        base_url=BASE_URL,
        feed=feed,
        lenient=lenient,
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )
    provider.RETRY_MIN_WAIT = 0
    provider.RETRY_MAX_WAIT = 0
    provider.RETRY_MULTIPLIER = 0
    return provider


# =============================================================================
# INITIALIZATION
# =============================================================================

class TestAlpacaProviderInit:

    def test_primary_name(self):
        provider = make_provider(lambda r: httpx.Response(200, json={"bars": {}}))
        assert provider.name == "alpaca"

    def test_lenient_name_includes_feed(self):
        provider = make_provider(lambda r: httpx.Response(200, json={"bars": {}}), lenient=True, feed="otc")
        assert provider.name == "alpaca_otc"
        assert provider.feed == "otc"

    @pytest.mark.parametrize("api_key,secret_key", [
        (None, "secret"),
        ("key-id", None),
        ("", ""),
    ])
    def test_missing_credentials_fail_before_any_request(self, api_key, secret_key):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"bars": {}})

        provider = make_provider(handler, api_key=api_key, secret_key=secret_key)

        with pytest.raises(ProviderConfigurationError):
            provider.get_daily_bars(["AAPL"], date(2026, 1, 1), date(2026, 1, 8))
        assert requests == []


# =============================================================================
# REQUEST SHAPE
# =============================================================================

class TestAlpacaRequest:

    def test_query_parameters_and_headers(self):
        seen = []

        def handler(request: httpx.Request):
            seen.append(request)
            return httpx.Response(200, json={"bars": {}, "next_page_token": None})

        provider = make_provider(handler)
        provider.get_daily_bars(["msft", "AAPL"], date(2026, 1, 1), date(2026, 1, 8))

        assert len(seen) == 1
        request = seen[0]
        assert request.url.path == "/v2/stocks/bars"
        params = request.url.params
        assert params["symbols"] == "AAPL,MSFT"
        assert params["start"] == "2026-01-01T00:00:00Z"
        assert params["end"] == "2026-01-08T23:59:59Z"
        assert params["timeframe"] == "1Day"
        assert params["limit"] == "10000"
        assert params["adjustment"] == "split"
        assert params["feed"] == "iex"
        assert "page_token" not in params
        assert request.headers["APCA-API-KEY-ID"] == "key-id"
        assert request.headers["APCA-API-SECRET-KEY"] == "secret"

    def test_empty_symbol_list_makes_no_request(self):
        seen = []
        provider = make_provider(lambda r: seen.append(r) or httpx.Response(200, json={}))

        assert provider.get_daily_bars([], date(2026, 1, 1), date(2026, 1, 8)) == {}
        assert seen == []


# =============================================================================
# PAGINATION
# =============================================================================

class TestAlpacaPagination:

    def test_pages_are_merged_per_ticker(self):
        pages = {
            None: {"bars": {"AAPL": [bar("2026-01-05")]}, "next_page_token": "p2"},
            "p2": {"bars": {"AAPL": [bar("2026-01-06")], "MSFT": [bar("2026-01-05")]},
                   "next_page_token": "p3"},
            "p3": {"bars": {"MSFT": [bar("2026-01-06")]}, "next_page_token": None},
        }
        tokens = []

        def handler(request: httpx.Request):
            token = request.url.params.get("page_token")
            tokens.append(token)
            return httpx.Response(200, json=pages[token])

        provider = make_provider(handler)
        result = provider.get_daily_bars(["AAPL", "MSFT"], date(2026, 1, 5), date(2026, 1, 6))

        assert tokens == [None, "p2", "p3"]
        assert [b.date for b in result["AAPL"]] == [date(2026, 1, 5), date(2026, 1, 6)]
        assert [b.date for b in result["MSFT"]] == [date(2026, 1, 5), date(2026, 1, 6)]

    def test_requested_ticker_without_bars_maps_to_empty_list(self):
        provider = make_provider(lambda r: httpx.Response(200, json={
            "bars": {"AAPL": [bar("2026-01-05", close=187.5)]},
        }))

        result = provider.get_daily_bars(["AAPL", "OTCFX"], date(2026, 1, 5), date(2026, 1, 5))

        assert result["OTCFX"] == []
        assert result["AAPL"][0].close == Decimal("187.5")

    def test_null_bars_object(self):
        provider = make_provider(lambda r: httpx.Response(200, json={"bars": None}))
        assert provider.get_daily_bars(["AAPL"], date(2026, 1, 5), date(2026, 1, 5)) == {"AAPL": []}


# =============================================================================
# PRIMARY MODE ERRORS
# =============================================================================

class TestAlpacaPrimaryErrors:

    def test_server_error_raises_after_retries(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500, text="boom")

        provider = make_provider(handler)

        with pytest.raises(ProviderUnavailableError) as exc_info:
            provider.get_daily_bars(["AAPL"], date(2026, 1, 5), date(2026, 1, 5))

        assert exc_info.value.status_code == 500
        assert len(calls) == provider.MAX_RETRY_ATTEMPTS

    @pytest.mark.parametrize("status_code", [400, 401, 403])
    def test_client_error_is_fatal_without_retry(self, status_code):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(status_code, text="forbidden")

        provider = make_provider(handler)

        with pytest.raises(MarketDataError) as exc_info:
            provider.get_daily_bars(["AAPL"], date(2026, 1, 5), date(2026, 1, 5))
        assert not isinstance(exc_info.value, ProviderUnavailableError)
        assert str(status_code) in str(exc_info.value)
        assert len(calls) == 1

    def test_non_json_body_becomes_provider_unavailable(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, text="<html>maintenance</html>")

        provider = make_provider(handler)

        with pytest.raises(ProviderUnavailableError) as exc_info:
            provider.get_daily_bars(["AAPL"], date(2026, 1, 5), date(2026, 1, 5))
        assert exc_info.value.status_code == 200
        assert len(calls) == provider.MAX_RETRY_ATTEMPTS

    def test_rate_limit_raises_with_retry_after(self):
        provider = make_provider(lambda r: httpx.Response(429, headers={"Retry-After": "7"}))

        with pytest.raises(RateLimitError) as exc_info:
            provider.get_daily_bars(["AAPL"], date(2026, 1, 5), date(2026, 1, 5))
        assert exc_info.value.retry_after == 7

    def test_transient_failure_recovers_on_retry(self):
        responses = iter([
            httpx.Response(503, text="unavailable"),
            httpx.Response(200, json={"bars": {"AAPL": [bar("2026-01-05")]}}),
        ])
        provider = make_provider(lambda r: next(responses))

        result = provider.get_daily_bars(["AAPL"], date(2026, 1, 5), date(2026, 1, 5))

        assert len(result["AAPL"]) == 1

    def test_transport_error_becomes_provider_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = make_provider(handler)

        with pytest.raises(ProviderUnavailableError):
            provider.get_daily_bars(["AAPL"], date(2026, 1, 5), date(2026, 1, 5))


# =============================================================================
# LENIENT MODE
# =============================================================================

class TestAlpacaLenient:

    @pytest.mark.parametrize("status_code", [400, 403, 422, 500])
    def test_non_success_means_no_data(self, status_code):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(status_code, text="not entitled")

        provider = make_provider(handler, lenient=True, feed="otc")

        assert provider.get_daily_bars(["OTCFX"], date(2026, 1, 5), date(2026, 1, 5)) == {}
        assert len(calls) == 1

    def test_success_is_parsed_normally(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"bars": {"OTCFX": [bar("2026-01-05", close=3.25)]}})

        provider = make_provider(handler, lenient=True, feed="otc")
        result = provider.get_daily_bars(["OTCFX"], date(2026, 1, 5), date(2026, 1, 5))

        assert seen[0].url.params["feed"] == "otc"
        assert result["OTCFX"][0].close == Decimal("3.25")
