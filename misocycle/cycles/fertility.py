"""Ovulation and fertile window estimation.

Ovulation is placed a fixed luteal phase (14 days) before the next expected
period, which is more stable than counting forward from the cycle start.
The fertile window runs from five days before ovulation to one day after:

    offset          = cycle_length - 14
    ovulation       = start + (offset - 1)
    fertile_start   = start + (offset - 6)
    fertile_end     = start + offset

For a 28-day cycle that is ovulation on day 14 (start + 13) and a fertile
window of start + 8 … start + 14.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from misocycle.cycles.config_loader import CycleConfig, get_cycle_config
from misocycle.cycles.date_math import add_days, days_between
from misocycle.cycles.domain import Cycle

logger = logging.getLogger("misocycle.cycles.fertility")


@dataclass(frozen=True)
class FertilityWindow:
    """Estimated ovulation date and fertile window for one cycle.

    Attributes:
        ovulation_date: Estimated day of ovulation.
        fertile_start:  First day of the fertile window.
        fertile_end:    Last day of the fertile window (inclusive).
    """

    ovulation_date: date
    fertile_start: date
    fertile_end: date

    @property
    def peak_days(self) -> list[date]:
        """The two days before ovulation plus ovulation day itself."""
        return [add_days(self.ovulation_date, offset) for offset in (-2, -1, 0)]

    def contains(self, day: date) -> bool:
        return self.fertile_start <= day <= self.fertile_end

    def is_active(self, today: date) -> bool:
        return self.contains(today)

    def days_until(self, today: date) -> int | None:
        """Days until the window opens, or None once it has started."""
        if today < self.fertile_start:
            return days_between(today, self.fertile_start)
        return None


class FertilityCalculator:
    """Derive ovulation and fertile window dates from a cycle length."""

    def __init__(self, config: CycleConfig | None = None) -> None:
        self._config = config or get_cycle_config()

    def window_for(self, start_date: date, cycle_length: int | None) -> FertilityWindow:
        """Compute the fertility window for a cycle starting on ``start_date``.

        A missing or non-positive ``cycle_length`` falls back to the default
        (28 days).
        """
        fc = self._config.fertility
        length = cycle_length if cycle_length and cycle_length > 0 else fc.default_cycle_length
        offset = length - fc.luteal_phase_days
        return FertilityWindow(
            ovulation_date=add_days(start_date, offset - 1),
            fertile_start=add_days(start_date, offset - 6),
            fertile_end=add_days(start_date, offset),
        )

    def compute(self, cycle: Cycle, cycle_length: int | None) -> FertilityWindow:
        return self.window_for(cycle.start_date, cycle_length)

    def apply(self, cycle: Cycle, cycle_length: int | None) -> bool:
        """Write the derived dates onto ``cycle``.

        Returns:
            True if any of the three dates changed.
        """
        window = self.compute(cycle, cycle_length)
        changed = (
            cycle.ovulation_date != window.ovulation_date
            or cycle.fertile_window_start != window.fertile_start
            or cycle.fertile_window_end != window.fertile_end
        )
        cycle.ovulation_date = window.ovulation_date
        cycle.fertile_window_start = window.fertile_start
        cycle.fertile_window_end = window.fertile_end
        if changed:
            logger.debug(
                "Fertility dates for cycle %s (length %s): ovulation %s, window %s…%s",
                cycle.cycle_id, cycle_length, window.ovulation_date,
                window.fertile_start, window.fertile_end,
            )
        return changed

    @staticmethod
    def window_of(cycle: Cycle) -> FertilityWindow | None:
        """Return the window already stored on ``cycle``, if complete."""
        if (
            cycle.ovulation_date is None
            or cycle.fertile_window_start is None
            or cycle.fertile_window_end is None
        ):
            return None
        return FertilityWindow(
            ovulation_date=cycle.ovulation_date,
            fertile_start=cycle.fertile_window_start,
            fertile_end=cycle.fertile_window_end,
        )
