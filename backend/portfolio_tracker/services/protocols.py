# backend/portfolio_tracker/services/protocols.py
"""
Protocol interfaces for service dependency injection.

Using typing.Protocol enables structural subtyping:
- Existing classes satisfy protocols without modification
- Test fakes work without explicit inheritance
- Clear documentation of required interfaces
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime
from typing import Any, Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from portfolio_tracker.models import PriceBar


class PriceStore(Protocol):
    """Interface required by PriceHistorySyncService and the price history routes."""

    def all_tickers(self) -> list[str]:
        ...

    def existing_dates(
        self,
        ticker: str,
        start_date: date,
        end_date: date,
        today: date | None = None,
    ) -> set[date]:
        ...

    def batch_upsert(
        self,
        records: Iterable[dict[str, Any]],
        fetched_at: datetime | None = None,
    ) -> int:
        ...

    def get_price_history(
        self,
        ticker: str,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[PriceBar]:
        ...
