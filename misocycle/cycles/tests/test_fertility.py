"""Tests for ovulation and fertile window estimation."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from misocycle.cycles.config_loader import CycleConfig
from misocycle.cycles.fertility import FertilityCalculator
from misocycle.cycles.tests.conftest import make_cycle

START = date(2024, 1, 1)


class TestFertilityWindow:
    def test_28_day_cycle(self, cycle_config: CycleConfig) -> None:
        window = FertilityCalculator(cycle_config).window_for(START, 28)
        assert window.ovulation_date == START + timedelta(days=13)
        assert window.fertile_start == START + timedelta(days=8)
        assert window.fertile_end == START + timedelta(days=14)

    @pytest.mark.parametrize("length", [21, 26, 30, 35])
    def test_ovulation_sits_a_luteal_phase_before_next_period(
        self, cycle_config: CycleConfig, length: int
    ) -> None:
        window = FertilityCalculator(cycle_config).window_for(START, length)
        next_period = START + timedelta(days=length)
        assert (next_period - window.ovulation_date).days == 15
        assert (window.fertile_end - window.fertile_start).days == 6
        assert window.contains(window.ovulation_date)

    @pytest.mark.parametrize("length", [None, 0, -3])
    def test_missing_length_uses_default(self, cycle_config: CycleConfig, length) -> None:
        calc = FertilityCalculator(cycle_config)
        assert calc.window_for(START, length) == calc.window_for(START, 28)

    def test_peak_days(self, cycle_config: CycleConfig) -> None:
        window = FertilityCalculator(cycle_config).window_for(START, 28)
        assert window.peak_days == [date(2024, 1, 12), date(2024, 1, 13), date(2024, 1, 14)]

    def test_days_until_and_active(self, cycle_config: CycleConfig) -> None:
        window = FertilityCalculator(cycle_config).window_for(START, 28)
        assert window.days_until(date(2024, 1, 4)) == 5
        assert not window.is_active(date(2024, 1, 4))
        assert window.days_until(date(2024, 1, 10)) is None
        assert window.is_active(date(2024, 1, 10))
        assert not window.is_active(date(2024, 1, 16))


class TestApply:
    def test_apply_writes_dates_and_reports_change(self, cycle_config: CycleConfig) -> None:
        calc = FertilityCalculator(cycle_config)
        cycle = make_cycle(START)
        assert calc.apply(cycle, 28) is True
        assert cycle.ovulation_date == date(2024, 1, 14)
        assert calc.apply(cycle, 28) is False
        assert calc.apply(cycle, 30) is True
        assert cycle.ovulation_date == date(2024, 1, 16)

    def test_window_of_requires_all_dates(self, cycle_config: CycleConfig) -> None:
        cycle = make_cycle(START)
        assert FertilityCalculator.window_of(cycle) is None
        FertilityCalculator(cycle_config).apply(cycle, 28)
        window = FertilityCalculator.window_of(cycle)
        assert window is not None
        assert window.fertile_start == date(2024, 1, 9)
