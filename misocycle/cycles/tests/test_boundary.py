"""Tests for cycle boundary resolution and recalculation."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from misocycle.cycles.boundary import (
    AttributionConfidence,
    CycleBoundaryResolver,
    InvalidCycleInputError,
    ResolutionOutcome,
)
from misocycle.cycles.config_loader import CycleConfig
from misocycle.cycles.cycle_stats import StatisticsEngine
from misocycle.cycles.date_math import date_range
from misocycle.cycles.domain import active_cycle
from misocycle.cycles.tests.conftest import make_cycle


def resolver_for(cycles, today: date, config: CycleConfig, average: int | None = None):
    return CycleBoundaryResolver(cycles, average_cycle_length=average, today=today, config=config)


class TestResolveRules:
    def test_first_cycle_created_and_active(self, cycle_config: CycleConfig) -> None:
        resolver = resolver_for([], date(2024, 1, 3), cycle_config)
        res = resolver.resolve(date(2024, 1, 1))
        assert res.outcome is ResolutionOutcome.first_cycle
        assert res.created is res.cycle
        assert res.cycle.is_active
        assert res.cycle.cycle_length is None

    def test_first_cycle_long_ago_is_inactive(self, cycle_config: CycleConfig) -> None:
        resolver = resolver_for([], date(2024, 3, 1), cycle_config)
        res = resolver.resolve(date(2024, 1, 1))
        assert res.outcome is ResolutionOutcome.first_cycle
        assert not res.cycle.is_active

    def test_exact_start_match(self, cycle_config: CycleConfig) -> None:
        existing = make_cycle(date(2024, 1, 1), is_active=True)
        res = resolver_for([existing], date(2024, 1, 5), cycle_config).resolve(date(2024, 1, 1))
        assert res.outcome is ResolutionOutcome.existing
        assert res.cycle is existing
        assert res.created is None

    def test_days_within_period_window(self, cycle_config: CycleConfig) -> None:
        existing = make_cycle(date(2024, 1, 1), is_active=True)
        resolver = resolver_for([existing], date(2024, 1, 10), cycle_config)
        for day in date_range(date(2024, 1, 2), date(2024, 1, 8)):
            res = resolver.resolve(day)
            assert res.outcome is ResolutionOutcome.within_period
            assert res.cycle is existing
        assert len(resolver.cycles) == 1

    def test_ambiguous_gap_falls_back_with_low_confidence(
        self, cycle_config: CycleConfig, caplog: pytest.LogCaptureFixture
    ) -> None:
        existing = make_cycle(date(2024, 1, 1), is_active=True)
        resolver = resolver_for([existing], date(2024, 1, 20), cycle_config)
        with caplog.at_level("WARNING", logger="misocycle.cycles.boundary"):
            res = resolver.resolve(date(2024, 1, 12))
        assert res.outcome is ResolutionOutcome.fallback
        assert res.confidence is AttributionConfidence.low
        assert res.is_low_confidence
        assert res.cycle is existing
        assert res.created is None
        assert "Low-confidence attribution" in caplog.text

    def test_gap_of_eighteen_days_opens_new_cycle(self, cycle_config: CycleConfig) -> None:
        existing = make_cycle(date(2024, 1, 1), is_active=True)
        resolver = resolver_for([existing], date(2024, 1, 19), cycle_config)
        res = resolver.resolve(date(2024, 1, 19))
        assert res.outcome is ResolutionOutcome.new_cycle
        assert existing.cycle_length == 18
        assert not existing.is_active
        assert res.cycle.is_active
        assert existing in res.updated

    def test_gap_of_seventeen_days_does_not(self, cycle_config: CycleConfig) -> None:
        existing = make_cycle(date(2024, 1, 1), is_active=True)
        res = resolver_for([existing], date(2024, 1, 18), cycle_config).resolve(date(2024, 1, 18))
        assert res.outcome is ResolutionOutcome.fallback

    def test_new_cycle_in_the_past_is_not_active(self, cycle_config: CycleConfig) -> None:
        existing = make_cycle(date(2023, 1, 1), is_active=True)
        resolver = resolver_for([existing], date(2024, 3, 15), cycle_config)
        res = resolver.resolve(date(2023, 1, 30))
        assert res.outcome is ResolutionOutcome.new_cycle
        assert not res.cycle.is_active
        assert existing.cycle_length == 29

    def test_historical_backfill(self, cycle_config: CycleConfig) -> None:
        existing = make_cycle(date(2024, 2, 1), is_active=True)
        resolver = resolver_for([existing], date(2024, 2, 10), cycle_config)
        res = resolver.resolve(date(2024, 1, 5))
        assert res.outcome is ResolutionOutcome.historical
        assert res.cycle.cycle_length == 27
        assert not res.cycle.is_active
        assert existing.is_active
        # Fertility dates use the known length: 27 - 14 - 1 = 12
        assert res.cycle.ovulation_date == date(2024, 1, 17)
        assert resolver.cycles[-1] is res.cycle

    def test_day_after_historical_start_joins_it(self, cycle_config: CycleConfig) -> None:
        existing = make_cycle(date(2024, 2, 1), is_active=True)
        resolver = resolver_for([existing], date(2024, 2, 10), cycle_config)
        historical = resolver.resolve(date(2024, 1, 5)).cycle
        res = resolver.resolve(date(2024, 1, 7))
        assert res.outcome is ResolutionOutcome.within_period
        assert res.cycle is historical

    def test_resolve_is_idempotent(self, cycle_config: CycleConfig) -> None:
        resolver = resolver_for([], date(2024, 1, 3), cycle_config)
        first = resolver.resolve(date(2024, 1, 1))
        second = resolver.resolve(date(2024, 1, 1))
        assert second.cycle is first.cycle
        assert second.created is None
        assert len(resolver.cycles) == 1

    def test_new_cycle_fertility_uses_average(self, cycle_config: CycleConfig) -> None:
        resolver = resolver_for([], date(2024, 1, 1), cycle_config, average=30)
        cycle = resolver.resolve(date(2024, 1, 1)).cycle
        assert cycle.ovulation_date == date(2024, 1, 16)
        assert cycle.fertile_window_start == date(2024, 1, 11)
        assert cycle.fertile_window_end == date(2024, 1, 17)


class TestValidation:
    def test_future_dates_rejected(self, cycle_config: CycleConfig) -> None:
        resolver = resolver_for([], date(2024, 1, 1), cycle_config)
        with pytest.raises(InvalidCycleInputError):
            resolver.validate_log_date(date(2024, 1, 2))
        assert resolver.validate_log_date(date(2024, 1, 1)) == date(2024, 1, 1)

    def test_close_period(self, cycle_config: CycleConfig) -> None:
        cycle = make_cycle(date(2024, 1, 1), is_active=True)
        resolver = resolver_for([cycle], date(2024, 1, 10), cycle_config)
        resolver.close_period(cycle, date(2024, 1, 5))
        assert cycle.end_date == date(2024, 1, 5)
        assert cycle.period_length == 5

    def test_close_period_before_start_rejected(self, cycle_config: CycleConfig) -> None:
        cycle = make_cycle(date(2024, 1, 10))
        resolver = resolver_for([cycle], date(2024, 1, 20), cycle_config)
        with pytest.raises(InvalidCycleInputError):
            resolver.close_period(cycle, date(2024, 1, 9))
        assert cycle.end_date is None

    def test_close_period_too_long_rejected(self, cycle_config: CycleConfig) -> None:
        cycle = make_cycle(date(2024, 1, 1))
        resolver = resolver_for([cycle], date(2024, 1, 20), cycle_config)
        resolver.close_period(cycle, date(2024, 1, 14))
        with pytest.raises(InvalidCycleInputError):
            resolver.close_period(cycle, date(2024, 1, 15))


class TestRecalculate:
    def test_lengths_follow_start_gaps(self, cycle_config: CycleConfig) -> None:
        starts = [date(2024, 1, 1), date(2024, 1, 29), date(2024, 2, 28), date(2024, 3, 24)]
        cycles = [make_cycle(s) for s in starts]
        resolver = resolver_for(cycles, date(2024, 3, 25), cycle_config)
        changed = resolver.recalculate()

        by_start = {c.start_date: c for c in resolver.cycles}
        assert by_start[starts[0]].cycle_length == 28
        assert by_start[starts[1]].cycle_length == 30
        assert by_start[starts[2]].cycle_length == 25
        assert by_start[starts[3]].cycle_length is None
        assert changed

    def test_newest_becomes_active_when_none_is(self, cycle_config: CycleConfig) -> None:
        cycles = [make_cycle(date(2024, 1, 1)), make_cycle(date(2024, 1, 29))]
        resolver = resolver_for(cycles, date(2024, 2, 1), cycle_config)
        resolver.recalculate()
        assert active_cycle(resolver.cycles).start_date == date(2024, 1, 29)
        assert sum(c.is_active for c in resolver.cycles) == 1

    def test_extra_active_flags_cleared(self, cycle_config: CycleConfig) -> None:
        cycles = [
            make_cycle(date(2024, 1, 1), is_active=True),
            make_cycle(date(2024, 1, 29), is_active=True),
        ]
        resolver = resolver_for(cycles, date(2024, 2, 1), cycle_config)
        resolver.recalculate()
        actives = [c for c in resolver.cycles if c.is_active]
        assert [c.start_date for c in actives] == [date(2024, 1, 29)]

    def test_implausible_gap_skipped(self, cycle_config: CycleConfig) -> None:
        cycles = [make_cycle(date(2023, 1, 1)), make_cycle(date(2023, 6, 1), is_active=True)]
        resolver = resolver_for(cycles, date(2023, 6, 2), cycle_config)
        resolver.recalculate()
        assert resolver.cycles[-1].cycle_length is None

    def test_recalculate_twice_changes_nothing(self, cycle_config: CycleConfig) -> None:
        cycles = [make_cycle(date(2024, 1, 1)), make_cycle(date(2024, 1, 29))]
        resolver = resolver_for(cycles, date(2024, 2, 1), cycle_config)
        resolver.recalculate()
        assert resolver.recalculate() == []


class TestEndToEnd:
    def test_log_period_then_next_period(self, cycle_config: CycleConfig) -> None:
        stats = StatisticsEngine(cycle_config)

        resolver = resolver_for([], date(2024, 1, 5), cycle_config)
        results = [resolver.resolve(d) for d in date_range(date(2024, 1, 1), date(2024, 1, 5))]
        cycle_a = results[0].cycle
        assert all(r.cycle is cycle_a for r in results)
        assert [r.outcome for r in results[1:]] == [ResolutionOutcome.within_period] * 4
        assert cycle_a.is_active

        # Before a second cycle exists, A has no length and stats fall back
        assert stats.summarize([cycle_a]).average_cycle_length == 28.0

        resolver = resolver_for(resolver.cycles, date(2024, 1, 29), cycle_config)
        res = resolver.resolve(date(2024, 1, 29))
        cycle_b = res.cycle
        assert res.outcome is ResolutionOutcome.new_cycle
        assert cycle_a.cycle_length == 28
        assert not cycle_a.is_active
        assert cycle_b.is_active
        assert cycle_a.ovulation_date == cycle_a.start_date + timedelta(days=13)

        resolver = resolver_for(resolver.cycles, date(2024, 2, 26), cycle_config)
        resolver.resolve(date(2024, 2, 26))
        assert cycle_b.cycle_length == 28
        assert stats.summarize(resolver.cycles).average_cycle_length == 28.0
