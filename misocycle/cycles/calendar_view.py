"""Day-by-day calendar classification.

Every day of a displayed month gets exactly one category.  Categories can
overlap geometrically (a logged bleeding day inside the predicted fertile
window, say), so they are checked in a fixed order and the first match wins:

1. logged bleeding            → period(intensity)
2. future, predicted bleeding → predicted_period
3. fertile window             → ovulation on the ovulation date, else fertile
4. any other log              → logged
5. otherwise                  → normal

Padding cells before the first weekday of the month are ``empty`` and carry
no date.  Classification is pure: callers pass the active cycle and the logs
for the month.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum

from misocycle.cycles.config_loader import CycleConfig, get_cycle_config
from misocycle.cycles.date_math import (
    add_days,
    all_dates_in_month,
    first_weekday_of_month,
    start_of_day,
)
from misocycle.cycles.domain import Cycle, DailyLog, FlowIntensity


class DayCategory(str, Enum):
    empty = "empty"
    normal = "normal"
    logged = "logged"
    period = "period"
    predicted_period = "predicted_period"
    fertile = "fertile"
    ovulation = "ovulation"


@dataclass
class CalendarDay:
    """One cell of the month grid.

    ``intensity`` is set only for ``period`` days; ``day`` is None only for
    ``empty`` padding cells.
    """

    day: date | None
    category: DayCategory
    intensity: FlowIntensity | None = None
    log: DailyLog | None = None

    @property
    def is_period(self) -> bool:
        return self.category in (DayCategory.period, DayCategory.predicted_period)

    @property
    def day_number(self) -> int:
        return self.day.day if self.day else 0

    def is_today(self, today: date) -> bool:
        return self.day == today

    def is_future(self, today: date) -> bool:
        return self.day is not None and self.day > today


class CalendarClassifier:
    """Assign calendar categories from the active cycle and logged days."""

    def __init__(self, config: CycleConfig | None = None) -> None:
        self._config = config or get_cycle_config()

    def predicted_period_start(
        self, cycle: Cycle, fallback_cycle_length: int | None = None
    ) -> date:
        """Next period start for ``cycle``: its start plus its known length,
        or the fallback (default 28) while the length is unknown."""
        length = (
            cycle.cycle_length
            if cycle.is_complete
            else fallback_cycle_length or self._config.statistics.default_cycle_length
        )
        return add_days(cycle.start_date, length)

    def classify(
        self,
        day: date,
        active_cycle: Cycle | None,
        logs_by_date: dict[date, DailyLog],
        today: date,
        fallback_cycle_length: int | None = None,
    ) -> CalendarDay:
        target = start_of_day(day)
        log = logs_by_date.get(target)

        # 1. Logged bleeding always wins
        if log is not None:
            flow = FlowIntensity.from_value(log.flow_intensity)
            if flow.is_period:
                return CalendarDay(target, DayCategory.period, intensity=flow, log=log)

        if active_cycle is not None:
            # 2. Predicted bleeding, future days only
            if target > today:
                predicted_start = self.predicted_period_start(active_cycle, fallback_cycle_length)
                predicted_end = add_days(
                    predicted_start, self._config.calendar.predicted_period_days - 1
                )
                if predicted_start <= target <= predicted_end:
                    return CalendarDay(target, DayCategory.predicted_period, log=log)

            # 3. Fertile window
            start = active_cycle.fertile_window_start
            end = active_cycle.fertile_window_end
            if start is not None and end is not None and start <= target <= end:
                if active_cycle.ovulation_date == target:
                    return CalendarDay(target, DayCategory.ovulation, log=log)
                return CalendarDay(target, DayCategory.fertile, log=log)

        # 4. Logged without bleeding
        if log is not None:
            return CalendarDay(target, DayCategory.logged, log=log)

        return CalendarDay(target, DayCategory.normal)

    def month_grid(
        self,
        year: int,
        month: int,
        active_cycle: Cycle | None,
        logs_by_date: dict[date, DailyLog],
        today: date,
        fallback_cycle_length: int | None = None,
    ) -> list[CalendarDay]:
        """Sunday-first grid for one month: padding cells, then one cell per day."""
        first = date(year, month, 1)
        padding = [
            CalendarDay(None, DayCategory.empty)
            for _ in range(first_weekday_of_month(first) - 1)
        ]
        days = [
            self.classify(d, active_cycle, logs_by_date, today, fallback_cycle_length)
            for d in all_dates_in_month(first)
        ]
        return padding + days
