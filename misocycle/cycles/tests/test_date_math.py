"""Tests for calendar-day arithmetic."""

from __future__ import annotations

from datetime import date, datetime

from misocycle.cycles.date_math import (
    add_days,
    add_months,
    all_dates_in_month,
    cycle_day,
    date_range,
    days_between,
    days_in_month,
    end_of_month,
    first_weekday_of_month,
    is_same_month,
    start_of_day,
)


class TestDayArithmetic:
    def test_days_between_is_signed(self) -> None:
        assert days_between(date(2024, 1, 1), date(2024, 1, 29)) == 28
        assert days_between(date(2024, 1, 29), date(2024, 1, 1)) == -28
        assert days_between(date(2024, 1, 1), date(2024, 1, 1)) == 0

    def test_time_of_day_ignored(self) -> None:
        late = datetime(2024, 1, 1, 23, 59)
        early = datetime(2024, 1, 2, 0, 1)
        assert days_between(late, early) == 1
        assert start_of_day(late) == date(2024, 1, 1)

    def test_add_days_crosses_leap_day(self) -> None:
        assert add_days(date(2024, 2, 28), 1) == date(2024, 2, 29)
        assert add_days(date(2024, 2, 28), 2) == date(2024, 3, 1)
        assert add_days(date(2024, 3, 1), -1) == date(2024, 2, 29)

    def test_add_months_clamps_day(self) -> None:
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
        assert add_months(date(2024, 11, 15), 3) == date(2025, 2, 15)
        assert add_months(date(2024, 1, 15), -1) == date(2023, 12, 15)

    def test_cycle_day_is_one_indexed(self) -> None:
        start = date(2024, 1, 1)
        assert cycle_day(start, start) == 1
        assert cycle_day(start, date(2024, 1, 14)) == 14
        assert cycle_day(start, date(2023, 12, 31)) == 0

    def test_date_range_inclusive(self) -> None:
        days = date_range(date(2024, 1, 30), date(2024, 2, 2))
        assert days == [
            date(2024, 1, 30),
            date(2024, 1, 31),
            date(2024, 2, 1),
            date(2024, 2, 2),
        ]
        assert date_range(date(2024, 1, 2), date(2024, 1, 1)) == []


class TestMonthHelpers:
    def test_days_in_month(self) -> None:
        assert days_in_month(date(2024, 2, 10)) == 29
        assert days_in_month(date(2023, 2, 10)) == 28
        assert end_of_month(date(2024, 4, 3)) == date(2024, 4, 30)

    def test_all_dates_in_month(self) -> None:
        dates = all_dates_in_month(date(2024, 2, 17))
        assert len(dates) == 29
        assert dates[0] == date(2024, 2, 1)
        assert dates[-1] == date(2024, 2, 29)

    def test_first_weekday_sunday_is_one(self) -> None:
        # September 2024 starts on a Sunday, February 2024 on a Thursday
        assert first_weekday_of_month(date(2024, 9, 20)) == 1
        assert first_weekday_of_month(date(2024, 2, 1)) == 5
        # June 2024 starts on a Saturday
        assert first_weekday_of_month(date(2024, 6, 1)) == 7

    def test_is_same_month(self) -> None:
        assert is_same_month(date(2024, 1, 1), date(2024, 1, 31))
        assert not is_same_month(date(2024, 1, 1), date(2023, 1, 1))
