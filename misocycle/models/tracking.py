"""Pydantic schemas for daily logs, cycles and settings."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import Field, model_validator

from misocycle.cycles.boundary import AttributionConfidence, ResolutionOutcome
from misocycle.cycles.domain import FlowIntensity, SymptomType
from misocycle.models.base import MisoBase


# ---------- Daily logs ----------

class SymptomEntrySchema(MisoBase):
    symptom_type: SymptomType
    severity: int = Field(default=3, ge=1, le=5)


class DailyLogCreate(MisoBase):
    log_date: date
    flow_intensity: FlowIntensity = FlowIntensity.none
    mood: int | None = Field(default=None, ge=1, le=5)
    energy: int | None = Field(default=None, ge=1, le=5)
    symptoms: list[SymptomEntrySchema] | None = None
    notes: str | None = Field(default=None, max_length=2000)


class DailyLogRead(MisoBase):
    log_id: uuid.UUID
    log_date: date
    flow_intensity: FlowIntensity
    mood: int | None = None
    energy: int | None = None
    symptoms: list[SymptomEntrySchema] = Field(default_factory=list)
    notes: str | None = None
    cycle_id: uuid.UUID | None = None
    created_at: datetime
    updated_at: datetime


class PeriodRangeCreate(MisoBase):
    start_date: date
    end_date: date
    flow_intensity: FlowIntensity = FlowIntensity.medium
    apply_pattern: bool = True

    @model_validator(mode="after")
    def _check_order(self) -> PeriodRangeCreate:
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


# ---------- Cycles ----------

class CycleRead(MisoBase):
    cycle_id: uuid.UUID
    start_date: date
    end_date: date | None = None
    period_length: int | None = None
    cycle_length: int | None = None
    is_active: bool
    ovulation_date: date | None = None
    fertile_window_start: date | None = None
    fertile_window_end: date | None = None


class EndPeriodRequest(MisoBase):
    end_date: date


class LogResultRead(MisoBase):
    log: DailyLogRead
    cycle: CycleRead | None = None
    outcome: ResolutionOutcome | None = None
    confidence: AttributionConfidence
    created_cycle: bool
    logging_streak: int


class PeriodResultRead(MisoBase):
    cycle: CycleRead
    logs: list[DailyLogRead]
    outcome: ResolutionOutcome
    confidence: AttributionConfidence
    created_cycle: bool
    logging_streak: int


# ---------- Settings ----------

class SettingsRead(MisoBase):
    average_cycle_length: int
    average_period_length: int
    logging_streak: int
    onboarding_completed: bool
    last_logged_date: date | None = None


class SettingsUpdate(MisoBase):
    average_cycle_length: int | None = Field(default=None, ge=15, le=60)
    average_period_length: int | None = Field(default=None, ge=1, le=14)


class OnboardingRequest(MisoBase):
    average_cycle_length: int = Field(default=28, ge=15, le=60)
    average_period_length: int = Field(default=5, ge=1, le=14)
    last_period_start: date | None = None
