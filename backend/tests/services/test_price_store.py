# backend/tests/services/test_price_store.py
"""
Tests for SqlAlchemyPriceStore.

This module tests:
- Idempotent (ticker, date) upsert and last-write-wins
- Same-day refresh rule in existing_dates
- Ticker listing and history reads
- Rollback on failure
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from portfolio_tracker.models import PriceBar
from portfolio_tracker.services.price_store import SqlAlchemyPriceStore, UPSERT_CHUNK_SIZE
from tests.conftest import create_holding, make_record

JAN_8_AFTERNOON = datetime(2026, 1, 8, 15, 0, tzinfo=timezone.utc)


def count_rows(db) -> int:
    return db.scalar(select(func.count()).select_from(PriceBar))


class TestAllTickers:

    def test_sorted_distinct(self, db):
        create_holding(db, "MSFT")
        create_holding(db, "AAPL")

        assert SqlAlchemyPriceStore(db).all_tickers() == ["AAPL", "MSFT"]

    def test_empty(self, db):
        assert SqlAlchemyPriceStore(db).all_tickers() == []


class TestBatchUpsert:

    def test_inserts_rows(self, db):
        store = SqlAlchemyPriceStore(db)
        written = store.batch_upsert([
            make_record("AAPL", date(2026, 1, 5)),
            make_record("AAPL", date(2026, 1, 6)),
        ])

        assert written == 2
        assert count_rows(db) == 2

    def test_same_batch_twice_equals_once(self, db):
        store = SqlAlchemyPriceStore(db)
        records = [make_record("AAPL", date(2026, 1, 5)), make_record("MSFT", date(2026, 1, 5))]

        store.batch_upsert(records)
        store.batch_upsert(records)

        assert count_rows(db) == 2

    def test_overwrites_existing_values(self, db):
        store = SqlAlchemyPriceStore(db)
        store.batch_upsert([make_record("AAPL", date(2026, 1, 5), close="100", provider="alpaca")])
        store.batch_upsert([make_record("AAPL", date(2026, 1, 5), close="105", provider="yahoo")])

        bar = store.get_price_history("AAPL")[0]
        assert bar.close_price == Decimal("105")
        assert bar.provider == "yahoo"

    def test_duplicate_keys_in_one_batch_last_wins(self, db):
        store = SqlAlchemyPriceStore(db)
        written = store.batch_upsert([
            make_record("AAPL", date(2026, 1, 5), close="100"),
            make_record("aapl", date(2026, 1, 5), close="101"),
        ])

        assert written == 1
        assert store.get_price_history("AAPL")[0].close_price == Decimal("101")

    def test_empty_batch(self, db):
        assert SqlAlchemyPriceStore(db).batch_upsert([]) == 0

    def test_stamps_fetched_at(self, db):
        store = SqlAlchemyPriceStore(db)
        store.batch_upsert([make_record("AAPL", date(2026, 1, 5))], fetched_at=JAN_8_AFTERNOON)

        bar = store.get_price_history("AAPL")[0]
        assert bar.fetched_at.replace(tzinfo=timezone.utc) == JAN_8_AFTERNOON

    def test_missing_optional_fields_get_defaults(self, db):
        record = make_record("AAPL", date(2026, 1, 5))
        del record["volume"]
        del record["provider"]

        store = SqlAlchemyPriceStore(db)
        store.batch_upsert([record])

        bar = store.get_price_history("AAPL")[0]
        assert bar.volume == 0
        assert bar.provider == "unknown"

    def test_large_batch_is_chunked(self, db):
        store = SqlAlchemyPriceStore(db)
        records = [
            make_record(f"T{i}", date(2026, 1, 5))
            for i in range(UPSERT_CHUNK_SIZE + 10)
        ]

        assert store.batch_upsert(records) == UPSERT_CHUNK_SIZE + 10
        assert count_rows(db) == UPSERT_CHUNK_SIZE + 10

    def test_failure_rolls_back_and_raises(self, db):
        store = SqlAlchemyPriceStore(db)
        store.batch_upsert([make_record("AAPL", date(2026, 1, 5))])

        with patch.object(db, "commit", side_effect=SQLAlchemyError("disk full")):
            with pytest.raises(SQLAlchemyError):
                store.batch_upsert([make_record("AAPL", date(2026, 1, 6))])

        assert [b.date for b in store.get_price_history("AAPL")] == [date(2026, 1, 5)]


class TestExistingDates:

    def test_bar_fetched_today_counts_as_missing(self, db):
        store = SqlAlchemyPriceStore(db)
        store.batch_upsert([make_record("AAPL", date(2026, 1, 8))], fetched_at=JAN_8_AFTERNOON)

        assert store.existing_dates("AAPL", date(2026, 1, 1), date(2026, 1, 8), today=date(2026, 1, 8)) == set()

    def test_bar_fetched_yesterday_counts_as_present(self, db):
        store = SqlAlchemyPriceStore(db)
        store.batch_upsert([make_record("AAPL", date(2026, 1, 8))], fetched_at=JAN_8_AFTERNOON)

        assert store.existing_dates("AAPL", date(2026, 1, 1), date(2026, 1, 9), today=date(2026, 1, 9)) == {
            date(2026, 1, 8)
        }

    def test_range_is_inclusive_and_bounded(self, db):
        store = SqlAlchemyPriceStore(db)
        store.batch_upsert(
            [make_record("AAPL", date(2026, 1, d)) for d in (2, 5, 6, 7)],
            fetched_at=JAN_8_AFTERNOON,
        )

        existing = store.existing_dates("AAPL", date(2026, 1, 5), date(2026, 1, 6), today=date(2026, 1, 12))

        assert existing == {date(2026, 1, 5), date(2026, 1, 6)}

    def test_other_tickers_are_ignored(self, db):
        store = SqlAlchemyPriceStore(db)
        store.batch_upsert([make_record("MSFT", date(2026, 1, 5))], fetched_at=JAN_8_AFTERNOON)

        assert store.existing_dates("AAPL", date(2026, 1, 1), date(2026, 1, 9), today=date(2026, 1, 9)) == set()


class TestGetPriceHistory:

    def test_ordered_and_bounded(self, db):
        store = SqlAlchemyPriceStore(db)
        store.batch_upsert([make_record("AAPL", date(2026, 1, d)) for d in (7, 5, 6)])

        assert [b.date for b in store.get_price_history("AAPL")] == [
            date(2026, 1, 5), date(2026, 1, 6), date(2026, 1, 7),
        ]
        assert [b.date for b in store.get_price_history("aapl", start_date=date(2026, 1, 6))] == [
            date(2026, 1, 6), date(2026, 1, 7),
        ]
        assert [b.date for b in store.get_price_history("AAPL", end_date=date(2026, 1, 5))] == [
            date(2026, 1, 5),
        ]
