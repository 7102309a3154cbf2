# backend/portfolio_tracker/utils/date_utils.py
"""
Trading calendar and gap detection helpers.

The calendar is a plain weekday calendar: Saturdays and Sundays are
excluded, market holidays are not. A holiday therefore shows up as a gap
on every sync; providers return no bar for it and the gap simply stays
open for the next run.

Usage:
    from portfolio_tracker.utils.date_utils import get_business_days, get_missing_dates

    calendar = get_business_days(start_date, end_date)
    missing = get_missing_dates(calendar, existing_dates)
"""

from collections.abc import Iterable
from datetime import date, datetime, timedelta, timezone


def get_business_days(start_date: date, end_date: date) -> list[date]:
    """
    Get list of business days (weekdays) in a date range.

    Args:
        start_date: First date in range (inclusive)
        end_date: Last date in range (inclusive)

    Returns:
        List of weekday dates, sorted chronologically. Empty when
        start_date is after end_date.

    Example:
        >>> get_business_days(date(2026, 1, 5), date(2026, 1, 11))
        [date(2026, 1, 5), date(2026, 1, 6), date(2026, 1, 7),
         date(2026, 1, 8), date(2026, 1, 9)]  # Mon-Fri
    """
    days = []
    current = start_date

    while current <= end_date:
        if current.weekday() < 5:  # Monday = 0, Friday = 4
            days.append(current)
        current += timedelta(days=1)

    return days


def get_missing_dates(calendar: Iterable[date], existing_dates: set[date]) -> list[date]:
    """
    Return the calendar dates that have no acceptable stored bar.

    Calendar order is preserved. existing_dates is expected to already
    exclude bars fetched today (see PriceStore.existing_dates).
    """
    return [d for d in calendar if d not in existing_dates]


def is_business_day(d: date) -> bool:
    """Check if a date is Monday-Friday."""
    return d.weekday() < 5


def utc_today() -> date:
    """Current calendar date at the UTC day boundary."""
    return datetime.now(timezone.utc).date()


def as_utc(value: datetime) -> datetime:
    """
    Return value as an aware UTC datetime.

    SQLite drops tzinfo on round-trip, so naive values read back from the
    database are taken to be UTC (the only zone this app writes).
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
