"""Cycle phase lookup by cycle day."""

from __future__ import annotations

from datetime import date
from enum import Enum

from misocycle.cycles.date_math import days_between
from misocycle.cycles.domain import Cycle, sort_cycles_desc


class CyclePhase(str, Enum):
    menstrual = "menstrual"
    follicular = "follicular"
    ovulation = "ovulation"
    luteal = "luteal"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @property
    def short_description(self) -> str:
        return _SHORT_DESCRIPTIONS[self]

    @classmethod
    def from_cycle_day(
        cls, cycle_day: int, cycle_length: int = 28, period_length: int = 5
    ) -> CyclePhase:
        """Phase for a 1-indexed cycle day.

        Ovulation is centred on ``cycle_length - 14`` and spans the day before
        and after it.
        """
        ovulation_day = cycle_length - 14
        if cycle_day <= period_length:
            return cls.menstrual
        if cycle_day < ovulation_day - 1:
            return cls.follicular
        if cycle_day <= ovulation_day + 1:
            return cls.ovulation
        return cls.luteal


_SHORT_DESCRIPTIONS = {
    CyclePhase.menstrual: "Period time",
    CyclePhase.follicular: "Rising energy",
    CyclePhase.ovulation: "Peak energy",
    CyclePhase.luteal: "Winding down",
}


def phase_for_date(day: date, cycles: list[Cycle], default_length: int = 28) -> CyclePhase:
    """Phase of ``day`` within whichever cycle covers it.

    Falls back to follicular when no cycle covers the date.
    """
    for cycle in sort_cycles_desc(cycles):
        since_start = days_between(cycle.start_date, day)
        length = cycle.cycle_length if cycle.is_complete else default_length
        if 0 <= since_start < length:
            return CyclePhase.from_cycle_day(since_start + 1, length)
    return CyclePhase.follicular
