"""Symptom, mood and cycle-length insights over recent history."""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date

from misocycle.cycles.config_loader import CycleConfig, get_cycle_config
from misocycle.cycles.cycle_stats import StatisticsEngine
from misocycle.cycles.date_math import add_days, days_between
from misocycle.cycles.domain import Cycle, DailyLog, SymptomType, UserSettings, find_cycle
from misocycle.cycles.phases import CyclePhase, phase_for_date


@dataclass
class SymptomFrequency:
    symptom: SymptomType
    count: int
    share_of_max: float


@dataclass
class DailyValue:
    day: date
    value: float


@dataclass
class LengthPoint:
    index: int
    length: int
    start_date: date


@dataclass
class CycleInsights:
    has_enough_data: bool
    total_cycles: int
    average_cycle_length: int
    average_period_length: int
    regularity_score: float
    is_regular: bool
    total_days_logged: int
    average_mood: float | None = None
    average_energy: float | None = None
    top_symptoms: list[SymptomFrequency] = field(default_factory=list)
    symptoms_by_phase: dict[CyclePhase, list[SymptomType]] = field(default_factory=dict)
    mood_by_phase: dict[CyclePhase, float] = field(default_factory=dict)
    mood_series: list[DailyValue] = field(default_factory=list)
    energy_series: list[DailyValue] = field(default_factory=list)
    cycle_lengths: list[LengthPoint] = field(default_factory=list)
    period_lengths: list[LengthPoint] = field(default_factory=list)

    @property
    def regularity_description(self) -> str:
        score = self.regularity_score
        if score >= 0.8:
            return "Your cycles are very consistent. Great for accurate predictions!"
        if score >= 0.6:
            return "Your cycles are fairly regular with some variation."
        if score >= 0.4:
            return "Your cycles vary moderately. This is normal for many people."
        return "Your cycles show significant variation. Consider tracking more data."


class InsightsEngine:
    """Aggregate logs and cycles into chart-ready insights."""

    SERIES_DAYS = 30
    TOP_SYMPTOMS_PER_PHASE = 4

    def __init__(self, config: CycleConfig | None = None) -> None:
        self._config = config or get_cycle_config()
        self._stats = StatisticsEngine(self._config)

    def build(
        self,
        cycles: list[Cycle],
        logs: list[DailyLog],
        today: date,
        settings: UserSettings | None = None,
    ) -> CycleInsights:
        """Build insights; ``settings`` supplies fallback averages for a new user."""
        completed = sorted((c for c in cycles if c.is_complete), key=lambda c: c.start_date)
        # Period lengths count every cycle, the active one included
        summary = self._stats.summarize(
            cycles,
            fallback_cycle_length=settings.average_cycle_length if settings else None,
            fallback_period_length=settings.average_period_length if settings else None,
        )

        insights = CycleInsights(
            has_enough_data=len(completed) >= 2 or len(logs) >= 7,
            total_cycles=len(completed),
            average_cycle_length=(
                sum(c.cycle_length for c in completed) // len(completed)
                if completed else summary.rounded_cycle_length
            ),
            average_period_length=round(summary.average_period_length),
            regularity_score=summary.regularity_score,
            is_regular=summary.is_regular,
            total_days_logged=len(logs),
        )

        insights.cycle_lengths = [
            LengthPoint(index=i, length=c.cycle_length, start_date=c.start_date)
            for i, c in enumerate(completed, start=1)
        ]
        insights.period_lengths = [
            LengthPoint(index=i, length=c.period_length, start_date=c.start_date)
            for i, c in enumerate(completed, start=1)
            if c.has_period_length
        ]

        self._add_symptoms(insights, cycles, logs)
        self._add_mood_energy(insights, cycles, logs, today)
        return insights

    def _add_symptoms(
        self, insights: CycleInsights, cycles: list[Cycle], logs: list[DailyLog]
    ) -> None:
        counts: Counter = Counter()
        by_phase: dict[CyclePhase, Counter] = defaultdict(Counter)
        default_length = self._config.statistics.default_cycle_length

        for log in logs:
            if not log.symptoms:
                continue
            phase = phase_for_date(log.log_date, cycles, default_length)
            for symptom in log.symptom_types:
                counts[symptom] += 1
                by_phase[phase][symptom] += 1

        if counts:
            max_count = max(counts.values())
            insights.top_symptoms = [
                SymptomFrequency(symptom=s, count=n, share_of_max=n / max_count)
                for s, n in counts.most_common()
            ]
        insights.symptoms_by_phase = {
            phase: [s for s, _ in counter.most_common(self.TOP_SYMPTOMS_PER_PHASE)]
            for phase, counter in by_phase.items()
        }

    def _add_mood_energy(
        self,
        insights: CycleInsights,
        cycles: list[Cycle],
        logs: list[DailyLog],
        today: date,
    ) -> None:
        mood_logs = sorted((l for l in logs if l.mood), key=lambda l: l.log_date)
        energy_logs = sorted((l for l in logs if l.energy), key=lambda l: l.log_date)

        if mood_logs:
            insights.average_mood = sum(l.mood for l in mood_logs) / len(mood_logs)
        if energy_logs:
            insights.average_energy = sum(l.energy for l in energy_logs) / len(energy_logs)

        since = add_days(today, -self.SERIES_DAYS)
        insights.mood_series = [
            DailyValue(l.log_date, float(l.mood)) for l in mood_logs if l.log_date >= since
        ]
        insights.energy_series = [
            DailyValue(l.log_date, float(l.energy)) for l in energy_logs if l.log_date >= since
        ]

        # Mood by phase only counts logs whose cycle still exists
        sums: dict[CyclePhase, list[int]] = defaultdict(list)
        default_length = self._config.statistics.default_cycle_length
        for log in mood_logs:
            cycle = find_cycle(cycles, log.cycle_id)
            if cycle is None:
                continue
            day = days_between(cycle.start_date, log.log_date) + 1
            length = cycle.cycle_length if cycle.is_complete else default_length
            sums[CyclePhase.from_cycle_day(day, length)].append(log.mood)
        insights.mood_by_phase = {
            phase: sum(values) / len(values) for phase, values in sums.items()
        }
