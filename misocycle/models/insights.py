"""Pydantic schemas for read models: calendar, forecast, insights."""

from __future__ import annotations

from datetime import date

from pydantic import Field

from misocycle.cycles.calendar_view import DayCategory
from misocycle.cycles.domain import FlowIntensity, SymptomType
from misocycle.cycles.irregularity import AlertSeverity, AlertType
from misocycle.cycles.phases import CyclePhase
from misocycle.models.base import MisoBase


# ---------- Calendar ----------

class CalendarDayRead(MisoBase):
    day: date | None = None
    category: DayCategory
    intensity: FlowIntensity | None = None
    is_today: bool = False


class CalendarMonthRead(MisoBase):
    year: int
    month: int
    weekday_headers: list[str]
    days: list[CalendarDayRead]


# ---------- Forecast ----------

class StatisticsRead(MisoBase):
    average_cycle_length: float
    average_period_length: float
    regularity_score: float
    is_regular: bool
    cycle_length_variance: float
    std_cycle_length: float
    shortest_cycle: int | None = None
    longest_cycle: int | None = None
    cycles_analyzed: int


class PeriodPredictionRead(MisoBase):
    predicted_start: date
    early: date
    late: date
    confidence: float
    based_on_cycles: int
    days_until: int


class FertilityWindowRead(MisoBase):
    ovulation_date: date
    fertile_start: date
    fertile_end: date
    peak_days: list[date]


class AlertRead(MisoBase):
    alert_type: AlertType
    severity: AlertSeverity
    title: str
    message: str
    recommendation: str
    detected_date: date


class NotificationPayload(MisoBase):
    next_period_date: date | None = None
    fertile_window_start: date | None = None
    ovulation_date: date | None = None


class ForecastRead(MisoBase):
    today: date
    statistics: StatisticsRead
    next_period: PeriodPredictionRead | None = None
    fertile_window: FertilityWindowRead | None = None
    current_cycle_day: int | None = None
    current_phase: CyclePhase
    in_fertile_window: bool
    alerts: list[AlertRead] = Field(default_factory=list)
    needs_attention: bool
    confidence_text: str
    period_prediction_text: str
    fertility_status_text: str
    notification_payload: NotificationPayload


# ---------- Insights ----------

class SymptomFrequencyRead(MisoBase):
    symptom: SymptomType
    count: int
    share_of_max: float


class DailyValueRead(MisoBase):
    day: date
    value: float


class LengthPointRead(MisoBase):
    index: int
    length: int
    start_date: date


class InsightsRead(MisoBase):
    has_enough_data: bool
    total_cycles: int
    average_cycle_length: int
    average_period_length: int
    regularity_score: float
    is_regular: bool
    regularity_description: str
    total_days_logged: int
    average_mood: float | None = None
    average_energy: float | None = None
    top_symptoms: list[SymptomFrequencyRead]
    symptoms_by_phase: dict[CyclePhase, list[SymptomType]]
    mood_by_phase: dict[CyclePhase, float]
    mood_series: list[DailyValueRead]
    energy_series: list[DailyValueRead]
    cycle_lengths: list[LengthPointRead]
    period_lengths: list[LengthPointRead]
