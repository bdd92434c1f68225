"""Shared fixtures and builders for cycle engine tests."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from misocycle.cycles.config_loader import CycleConfig, load_cycle_config
from misocycle.cycles.domain import Cycle, DailyLog, FlowIntensity, SymptomEntry, SymptomType

TEST_DATE = date(2024, 3, 15)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cycle_config() -> CycleConfig:
    """Load the real cycle config for tests."""
    return load_cycle_config()


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_cycle(
    start: date,
    length: int | None = None,
    is_active: bool = False,
    period_length: int | None = None,
) -> Cycle:
    return Cycle(
        start_date=start,
        cycle_length=length,
        is_active=is_active,
        period_length=period_length,
    )


def build_history(lengths: list[int], first_start: date = date(2023, 1, 1)) -> list[Cycle]:
    """Completed cycles with the given lengths, oldest first, plus an active one."""
    cycles = []
    start = first_start
    for length in lengths:
        cycles.append(make_cycle(start, length, period_length=5))
        start += timedelta(days=length)
    cycles.append(make_cycle(start, is_active=True))
    return cycles


def make_log(
    day: date,
    flow: FlowIntensity = FlowIntensity.none,
    mood: int | None = None,
    energy: int | None = None,
    symptoms: list[SymptomType] | None = None,
    cycle_id=None,
) -> DailyLog:
    return DailyLog(
        log_date=day,
        flow_intensity=flow,
        mood=mood,
        energy=energy,
        symptoms=[SymptomEntry(s) for s in symptoms or []],
        cycle_id=cycle_id,
    )
