"""Prediction orchestration.

Combines the statistics, fertility and irregularity components into one
read-only ``Forecast`` for a user's current state.  Nothing here writes to
the cycle history; the forecast is recomputed from a snapshot on demand.

Next-period prediction:

- no completed cycles: start + 28 days, ±3 days, confidence 0.5
- otherwise: start + recency-weighted average length, confidence equal to the
  regularity score, margin ``ceil(1.5 * stdev)`` days either side
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date

from misocycle.cycles.config_loader import CycleConfig, get_cycle_config
from misocycle.cycles.cycle_stats import CycleStatistics, StatisticsEngine
from misocycle.cycles.date_math import add_days, cycle_day, days_between
from misocycle.cycles.domain import Cycle, DailyLog, UserSettings, active_cycle
from misocycle.cycles.fertility import FertilityCalculator, FertilityWindow
from misocycle.cycles.irregularity import IrregularityAlert, IrregularityDetector
from misocycle.cycles.phases import CyclePhase

logger = logging.getLogger("misocycle.cycles.predictions")


@dataclass
class PeriodPrediction:
    predicted_start: date
    early: date
    late: date
    confidence: float
    based_on_cycles: int
    days_until: int


@dataclass
class Forecast:
    """Everything the home screen and notifications need for one user."""

    statistics: CycleStatistics
    today: date
    active_cycle: Cycle | None = None
    next_period: PeriodPrediction | None = None
    fertile_window: FertilityWindow | None = None
    current_cycle_day: int | None = None
    current_phase: CyclePhase = CyclePhase.follicular
    alerts: list[IrregularityAlert] = field(default_factory=list)
    needs_attention: bool = False

    @property
    def in_fertile_window(self) -> bool:
        return self.fertile_window is not None and self.fertile_window.is_active(self.today)

    @property
    def days_until_fertile(self) -> int | None:
        if self.fertile_window is None:
            return None
        return self.fertile_window.days_until(self.today)

    @property
    def confidence(self) -> float:
        return self.next_period.confidence if self.next_period else 0.5

    @property
    def notification_payload(self) -> dict:
        """Dates a notification scheduler needs, as ISO strings or None."""
        return {
            "next_period_date": (
                self.next_period.predicted_start.isoformat() if self.next_period else None
            ),
            "fertile_window_start": (
                self.fertile_window.fertile_start.isoformat() if self.fertile_window else None
            ),
            "ovulation_date": (
                self.fertile_window.ovulation_date.isoformat() if self.fertile_window else None
            ),
        }

    @property
    def confidence_text(self) -> str:
        return confidence_text(self.confidence)

    @property
    def period_prediction_text(self) -> str:
        return period_prediction_text(self.next_period)

    @property
    def fertility_status_text(self) -> str:
        if self.in_fertile_window:
            return "Fertile window active"
        days = self.days_until_fertile
        if days is not None and days > 0:
            return f"Fertile window in {days} days"
        return "Not in fertile window"


def confidence_text(confidence: float) -> str:
    if confidence >= 0.8:
        return "High confidence"
    if confidence >= 0.6:
        return "Good confidence"
    if confidence >= 0.4:
        return "Moderate confidence"
    return "Learning your patterns"


def period_prediction_text(prediction: PeriodPrediction | None) -> str:
    if prediction is None:
        return "Log more cycles for predictions"
    days = prediction.days_until
    if days < 0:
        return "Period may have started"
    if days == 0:
        return "Period expected today"
    if days == 1:
        return "Period expected tomorrow"
    return f"Period in {days} days"


class PredictionOrchestrator:
    """Build forecasts from a snapshot of cycles, logs and settings."""

    def __init__(self, config: CycleConfig | None = None) -> None:
        self._config = config or get_cycle_config()
        self._stats = StatisticsEngine(self._config)
        self._fertility = FertilityCalculator(self._config)
        self._irregularity = IrregularityDetector(self._config)

    def predict_next_period(
        self, current: Cycle, history: list[Cycle], today: date
    ) -> PeriodPrediction:
        pc = self._config.prediction
        lengths = self._stats.recent_lengths(history)

        if not lengths:
            length = self._config.statistics.default_cycle_length
            margin = pc.default_margin_days
            confidence = 0.5
        else:
            length = self._stats.weighted_cycle_length(history)
            summary = self._stats.summarize(history)
            margin = math.ceil(summary.std_cycle_length * pc.margin_sigma_multiplier)
            confidence = summary.regularity_score

        predicted = add_days(current.start_date, length)
        return PeriodPrediction(
            predicted_start=predicted,
            early=add_days(predicted, -margin),
            late=add_days(predicted, margin),
            confidence=confidence,
            based_on_cycles=len(lengths),
            days_until=days_between(today, predicted),
        )

    def fertile_window(self, current: Cycle, average_cycle_length: int) -> FertilityWindow:
        """Window for the running cycle, estimated from the average length."""
        return self._fertility.window_for(current.start_date, average_cycle_length)

    def forecast(
        self,
        cycles: list[Cycle],
        recent_logs: list[DailyLog],
        settings: UserSettings,
        today: date,
    ) -> Forecast:
        stats = self._stats.summarize(
            cycles,
            fallback_cycle_length=settings.average_cycle_length,
            fallback_period_length=settings.average_period_length,
        )
        current = active_cycle(cycles)
        result = Forecast(statistics=stats, today=today, active_cycle=current)

        if current is not None:
            average = stats.rounded_cycle_length
            result.next_period = self.predict_next_period(current, cycles, today)
            result.fertile_window = self.fertile_window(current, average)
            result.current_cycle_day = cycle_day(current.start_date, today)
            result.current_phase = CyclePhase.from_cycle_day(
                result.current_cycle_day,
                current.cycle_length if current.is_complete else average,
                round(stats.average_period_length),
            )

        result.alerts = self._irregularity.detect(cycles, current, recent_logs, today)
        result.needs_attention = self._irregularity.needs_attention(current, cycles, today)

        logger.debug(
            "Forecast for %s: next period %s, %d alert(s)",
            today,
            result.next_period.predicted_start if result.next_period else None,
            len(result.alerts),
        )
        return result
