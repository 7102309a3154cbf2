# backend/portfolio_tracker/services/market_data/normalization.py
"""
Provider payload normalization.

Each provider hands back its raw response wrapped in a payload type, and
`normalize_payload` turns any of them into `DailyBar` lists keyed by ticker.
Supporting a new provider means adding a payload dataclass and one branch
below; the sync orchestrator never sees raw provider data.

Alpaca bar fields:
    t  - RFC 3339 timestamp of the bar ("2026-01-05T05:00:00Z")
    o, h, l, c - prices
    v  - volume
    vw - volume-weighted average price (optional)
    n  - trade count (optional)

Yahoo history frame (yfinance):
    DatetimeIndex with Open, High, Low, Close, Volume columns
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

import pandas as pd

from portfolio_tracker.services.constants import PRICE_QUANTUM
from portfolio_tracker.services.market_data.base import DailyBar

logger = logging.getLogger(__name__)


# =============================================================================
# PAYLOAD TYPES
# =============================================================================

@dataclass
class AlpacaBarsPayload:
    """Merged pages of an Alpaca /stocks/bars response: ticker -> raw bars."""

    bars: dict[str, list[dict[str, Any]]] = field(default_factory=dict)


@dataclass
class YahooHistoryPayload:
    """One ticker's yfinance daily history frame."""

    ticker: str
    frame: pd.DataFrame


ProviderPayload = AlpacaBarsPayload | YahooHistoryPayload


def normalize_payload(payload: ProviderPayload) -> dict[str, list[DailyBar]]:
    """
    Convert a provider payload into DailyBars keyed by uppercase ticker.

    Malformed rows are skipped with a warning rather than failing the batch.

    Raises:
        TypeError: If the payload type is not supported
    """
    if isinstance(payload, AlpacaBarsPayload):
        return _normalize_alpaca(payload)
    if isinstance(payload, YahooHistoryPayload):
        return _normalize_yahoo(payload)
    raise TypeError(f"Unsupported provider payload: {type(payload).__name__}")


# =============================================================================
# ALPACA
# =============================================================================

def _normalize_alpaca(payload: AlpacaBarsPayload) -> dict[str, list[DailyBar]]:
    result: dict[str, list[DailyBar]] = {}

    for ticker, raw_bars in payload.bars.items():
        bars = []
        for raw in raw_bars or []:
            try:
                bars.append(DailyBar(
                    date=_parse_bar_date(raw["t"]),
                    open=_require_decimal(raw, "o"),
                    high=_require_decimal(raw, "h"),
                    low=_require_decimal(raw, "l"),
                    close=_require_decimal(raw, "c"),
                    volume=_to_int(raw.get("v")) or 0,
                    vwap=_to_decimal(raw.get("vw")),
                    trade_count=_to_int(raw.get("n")),
                ))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed Alpaca bar for {ticker}: {e}")
                continue

        result[ticker.upper()] = sorted(bars, key=lambda b: b.date)

    return result


def _parse_bar_date(timestamp: str) -> date:
    """Alpaca daily bars are stamped at the session start; the date part is the trading day."""
    return date.fromisoformat(str(timestamp).split("T")[0])


def _require_decimal(raw: dict[str, Any], key: str) -> Decimal:
    value = _to_decimal(raw.get(key))
    if value is None:
        raise ValueError(f"missing '{key}'")
    return value


# =============================================================================
# YAHOO
# =============================================================================

def _normalize_yahoo(payload: YahooHistoryPayload) -> dict[str, list[DailyBar]]:
    ticker = payload.ticker.upper()
    df = payload.frame
    bars = []

    if df is None or df.empty:
        return {ticker: []}

    for idx, row in df.iterrows():
        price_date = idx.date() if hasattr(idx, 'date') else idx

        open_price = _to_decimal(row.get('Open'))
        high_price = _to_decimal(row.get('High'))
        low_price = _to_decimal(row.get('Low'))
        close_price = _to_decimal(row.get('Close'))

        # Partial rows show up for halted days; a bar needs all four prices
        if None in (open_price, high_price, low_price, close_price):
            logger.debug(f"Skipping {ticker} {price_date}: incomplete OHLC")
            continue

        try:
            bars.append(DailyBar(
                date=price_date,
                open=open_price,
                high=high_price,
                low=low_price,
                close=close_price,
                volume=_to_int(row.get('Volume')) or 0,
                vwap=None,
                trade_count=None,
            ))
        except ValueError as e:
            logger.warning(f"Skipping Yahoo row {ticker} {price_date}: {e}")
            continue

    return {ticker: bars}


# =============================================================================
# VALUE COERCION
# =============================================================================

def _to_decimal(value: Any) -> Decimal | None:
    """Convert a value to Decimal, returning None for NaN/None."""
    if value is None:
        return None
    try:
        if math.isnan(float(value)):
            return None
        return Decimal(str(value)).quantize(PRICE_QUANTUM)
    except (TypeError, ValueError, InvalidOperation):
        return None


def _to_int(value: Any) -> int | None:
    """Convert a value to int, returning None for NaN/None."""
    if value is None:
        return None
    try:
        if math.isnan(float(value)):
            return None
        return int(value)
    except (TypeError, ValueError):
        return None
