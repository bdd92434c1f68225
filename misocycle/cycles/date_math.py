"""Calendar arithmetic shared by the cycle engine.

Everything here works on ``datetime.date``.  Datetimes are truncated to their
calendar day first, so "start of day" is simply ``.date()``.  Weeks start on
Sunday, matching the month grid shown to users.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta

# Weekday numbering used by the month grid: Sunday = 1 … Saturday = 7
WEEKDAY_HEADERS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


def start_of_day(value: date | datetime) -> date:
    """Truncate a datetime to its calendar date (dates pass through)."""
    if isinstance(value, datetime):
        return value.date()
    return value


def days_between(start: date | datetime, end: date | datetime) -> int:
    """Signed number of calendar days from ``start`` to ``end``.

    Positive when ``end`` is later.  Time-of-day is ignored.
    """
    return (start_of_day(end) - start_of_day(start)).days


def add_days(value: date, days: int) -> date:
    return start_of_day(value) + timedelta(days=days)


def add_months(value: date, months: int) -> date:
    """Shift by whole months, clamping the day to the target month's length."""
    value = start_of_day(value)
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def start_of_month(value: date) -> date:
    return start_of_day(value).replace(day=1)


def days_in_month(value: date) -> int:
    value = start_of_day(value)
    return calendar.monthrange(value.year, value.month)[1]


def end_of_month(value: date) -> date:
    return start_of_day(value).replace(day=days_in_month(value))


def all_dates_in_month(value: date) -> list[date]:
    first = start_of_month(value)
    return [first.replace(day=d) for d in range(1, days_in_month(value) + 1)]


def first_weekday_of_month(value: date) -> int:
    """Weekday of the 1st of the month, Sunday = 1 … Saturday = 7."""
    # date.weekday(): Monday = 0 … Sunday = 6
    return (start_of_month(value).weekday() + 1) % 7 + 1


def is_same_month(a: date, b: date) -> bool:
    return (a.year, a.month) == (b.year, b.month)


def cycle_day(cycle_start: date, query_date: date) -> int:
    """Return the 1-indexed cycle day of ``query_date``.

    Day 1 is the first day of the period.  Dates before the start give zero
    or negative numbers.
    """
    return days_between(cycle_start, query_date) + 1


def date_range(start: date, end: date) -> list[date]:
    """Every date from ``start`` to ``end`` inclusive (empty if end < start)."""
    span = days_between(start, end)
    return [add_days(start, i) for i in range(span + 1)]
