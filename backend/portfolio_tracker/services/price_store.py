# backend/portfolio_tracker/services/price_store.py
"""
SQLAlchemy-backed price store.

Wraps a Session handed in by the caller (request-scoped in the API), so no
module-level connection is ever held here. Implements the PriceStore
protocol used by the sync orchestrator.

Upserts go through the dialect's native INSERT ... ON CONFLICT DO UPDATE
(PostgreSQL and SQLite share the syntax), keyed on (ticker, date). A batch
is written in one transaction: either every row lands or none does.
"""

import logging
from collections.abc import Iterable
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from portfolio_tracker.models import Holding, PriceBar
from portfolio_tracker.utils.date_utils import as_utc, utc_today

logger = logging.getLogger(__name__)

# Keeps each statement under SQLite's bound-parameter limit
UPSERT_CHUNK_SIZE = 500

_UPDATABLE_COLUMNS = (
    "open_price",
    "high_price",
    "low_price",
    "close_price",
    "volume",
    "vwap",
    "trade_count",
    "provider",
    "fetched_at",
)


class SqlAlchemyPriceStore:
    """Price bar persistence over a SQLAlchemy Session."""

    def __init__(self, db: Session) -> None:
        self._db = db

    # =========================================================================
    # READS
    # =========================================================================

    def all_tickers(self) -> list[str]:
        """Distinct tickers of all holdings, sorted."""
        stmt = select(Holding.ticker).distinct().order_by(Holding.ticker)
        return [t for t in self._db.scalars(stmt).all() if t]

    def existing_dates(
            self,
            ticker: str,
            start_date: date,
            end_date: date,
            today: date | None = None,
    ) -> set[date]:
        """
        Dates in [start_date, end_date] that already have a trustworthy bar.

        A bar fetched on the current UTC day does not count: the session may
        not have closed when it was written, so it is refreshed on every run
        until the day rolls over.

        Args:
            today: Override for the current UTC date (tests, clocks)
        """
        today = today or utc_today()

        stmt = (
            select(PriceBar.date, PriceBar.fetched_at)
            .where(
                PriceBar.ticker == ticker.upper(),
                PriceBar.date >= start_date,
                PriceBar.date <= end_date,
            )
        )

        return {
            bar_date
            for bar_date, fetched_at in self._db.execute(stmt).all()
            if fetched_at is None or as_utc(fetched_at).date() != today
        }

    def get_price_history(
            self,
            ticker: str,
            start_date: date | None = None,
            end_date: date | None = None,
    ) -> list[PriceBar]:
        """Stored bars for one ticker in date order, optionally bounded."""
        stmt = select(PriceBar).where(PriceBar.ticker == ticker.upper())
        if start_date is not None:
            stmt = stmt.where(PriceBar.date >= start_date)
        if end_date is not None:
            stmt = stmt.where(PriceBar.date <= end_date)
        stmt = stmt.order_by(PriceBar.date)

        return list(self._db.scalars(stmt).all())

    # =========================================================================
    # WRITES
    # =========================================================================

    def batch_upsert(
            self,
            records: Iterable[dict[str, Any]],
            fetched_at: datetime | None = None,
    ) -> int:
        """
        Create or replace bars keyed on (ticker, date) in one transaction.

        Args:
            records: Dicts with ticker, date, open_price, high_price,
                low_price, close_price, volume, vwap, trade_count, provider
            fetched_at: Timestamp stamped on every row (default: now, UTC)

        Returns:
            Number of distinct (ticker, date) rows written

        Raises:
            SQLAlchemyError: On storage failure, after rolling back
        """
        fetched_at = fetched_at or datetime.now(timezone.utc)

        # Later records win when a batch repeats a key; PostgreSQL refuses
        # to touch the same row twice in one ON CONFLICT statement
        rows: dict[tuple[str, date], dict[str, Any]] = {}
        for record in records:
            row = {
                "ticker": record["ticker"].upper(),
                "date": record["date"],
                "open_price": record["open_price"],
                "high_price": record["high_price"],
                "low_price": record["low_price"],
                "close_price": record["close_price"],
                "volume": record.get("volume") or 0,
                "vwap": record.get("vwap"),
                "trade_count": record.get("trade_count"),
                "provider": record.get("provider") or "unknown",
                "fetched_at": fetched_at,
            }
            rows[(row["ticker"], row["date"])] = row

        if not rows:
            return 0

        insert = self._dialect_insert()
        values = list(rows.values())

        try:
            for i in range(0, len(values), UPSERT_CHUNK_SIZE):
                stmt = insert(PriceBar).values(values[i:i + UPSERT_CHUNK_SIZE])
                upsert_stmt = stmt.on_conflict_do_update(
                    index_elements=["ticker", "date"],
                    set_={col: stmt.excluded[col] for col in _UPDATABLE_COLUMNS},
                )
                self._db.execute(upsert_stmt)

            self._db.commit()
        except Exception as e:
            logger.error(f"Error batch storing price bars: {e}")
            self._db.rollback()
            raise

        logger.info(f"Batch stored {len(values)} price bars")
        return len(values)

    def _dialect_insert(self):
        dialect = self._db.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert
        if dialect == "sqlite":
            return sqlite_insert
        raise NotImplementedError(f"Upsert not supported for dialect '{dialect}'")
