"""Miso Cycle heuristic engine.

Pure, synchronous logic over snapshots of one user's cycles and daily logs.
Nothing in this package touches storage; the service layer loads a snapshot,
hands it to these components and persists what they report as changed.

Core modules:
    date_math      — Calendar-day arithmetic
    domain         — Cycle, DailyLog, UserSettings and enums
    config_loader  — Load/validate/hot-reload cycle_config.yaml
    boundary       — Attribute logged days to cycles, recalculate lengths
    fertility      — Ovulation and fertile window estimation
    cycle_stats    — Averages and regularity score
    phases         — Cycle phase by cycle day
    calendar_view  — Month grid day classification
    streak         — Consecutive-day logging streak
    irregularity   — Informational alerts for unusual patterns
    predictions    — Forecast orchestration
    insights       — Symptom and mood aggregation
    export         — JSON-ready data export
"""

from misocycle.cycles.boundary import (
    BoundaryResolution,
    CycleBoundaryResolver,
    InvalidCycleInputError,
)
from misocycle.cycles.calendar_view import CalendarClassifier, CalendarDay, DayCategory
from misocycle.cycles.config_loader import CycleConfig, get_cycle_config
from misocycle.cycles.cycle_stats import CycleStatistics, StatisticsEngine
from misocycle.cycles.domain import Cycle, DailyLog, FlowIntensity, UserSettings
from misocycle.cycles.fertility import FertilityCalculator, FertilityWindow
from misocycle.cycles.predictions import Forecast, PredictionOrchestrator
from misocycle.cycles.streak import StreakTracker

__all__ = [
    "Cycle",
    "DailyLog",
    "FlowIntensity",
    "UserSettings",
    "CycleConfig",
    "get_cycle_config",
    "CycleBoundaryResolver",
    "BoundaryResolution",
    "InvalidCycleInputError",
    "FertilityCalculator",
    "FertilityWindow",
    "StatisticsEngine",
    "CycleStatistics",
    "CalendarClassifier",
    "CalendarDay",
    "DayCategory",
    "StreakTracker",
    "PredictionOrchestrator",
    "Forecast",
]
