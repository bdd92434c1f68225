"""Canonical records for the cycle engine.

Cycle, DailyLog and UserSettings are the types every component reads and the
stores persist.  A DailyLog points at its Cycle through ``cycle_id`` only; the
reference is weak and may dangle after a cycle is deleted, so readers must
never assume the cycle still exists.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum, IntEnum
from uuid import UUID, uuid4


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class FlowIntensity(IntEnum):
    """Ordinal bleeding intensity logged for a day."""

    none = 0
    spotting = 1
    light = 2
    medium = 3
    heavy = 4

    @property
    def is_period(self) -> bool:
        return self is not FlowIntensity.none

    @property
    def display_name(self) -> str:
        return self.name.capitalize()

    @classmethod
    def from_value(cls, value: int | None) -> FlowIntensity:
        """Lenient conversion used when reading stored rows."""
        try:
            return cls(value or 0)
        except ValueError:
            return cls.none


def flow_pattern(selected: FlowIntensity, total_days: int) -> list[FlowIntensity]:
    """Natural-looking flow for a multi-day period entry.

    Lighter on the first and last day, the selected intensity around the
    middle, a step lighter elsewhere.  Periods of one or two days use the
    selected intensity throughout.
    """
    if total_days <= 2:
        return [selected] * total_days

    midpoint = total_days // 2
    edge = FlowIntensity.medium if selected is FlowIntensity.heavy else FlowIntensity.light
    shoulder = FlowIntensity.light if selected is FlowIntensity.light else FlowIntensity.medium
    pattern = []
    for index in range(total_days):
        if index in (0, total_days - 1):
            pattern.append(edge)
        elif midpoint - 1 <= index <= midpoint + 1:
            pattern.append(selected)
        else:
            pattern.append(shoulder)
    return pattern


class SymptomCategory(str, Enum):
    physical = "physical"
    emotional = "emotional"
    digestive = "digestive"


class SymptomType(str, Enum):
    cramps = "cramps"
    headache = "headache"
    back_pain = "back_pain"
    breast_tenderness = "breast_tenderness"
    bloating = "bloating"
    nausea = "nausea"
    fatigue = "fatigue"
    acne = "acne"
    appetite_changes = "appetite_changes"
    cravings = "cravings"
    dizziness = "dizziness"
    hot_flashes = "hot_flashes"
    insomnia = "insomnia"
    joint_pain = "joint_pain"
    muscle_aches = "muscle_aches"
    mood_swings = "mood_swings"
    anxiety = "anxiety"
    irritability = "irritability"
    depression = "depression"
    brain_fog = "brain_fog"
    crying = "crying"
    constipation = "constipation"
    diarrhea = "diarrhea"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()

    @property
    def category(self) -> SymptomCategory:
        if self in _EMOTIONAL:
            return SymptomCategory.emotional
        if self in _DIGESTIVE:
            return SymptomCategory.digestive
        return SymptomCategory.physical


_EMOTIONAL = frozenset({
    SymptomType.mood_swings,
    SymptomType.anxiety,
    SymptomType.irritability,
    SymptomType.depression,
    SymptomType.brain_fog,
    SymptomType.crying,
})
_DIGESTIVE = frozenset({SymptomType.constipation, SymptomType.diarrhea})


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass
class SymptomEntry:
    """One symptom on a daily log, with a 1–5 severity."""

    symptom_type: SymptomType
    severity: int = 3


@dataclass
class Cycle:
    """A single menstrual cycle.

    Attributes:
        start_date:           First day of bleeding.
        cycle_id:             Stable identity.
        end_date:             Last bleeding day, once the period is closed.
        period_length:        Bleeding days (end - start + 1), once closed.
        cycle_length:         Days until the next cycle's start.  None until a
                              later cycle exists.
        is_active:            True for the current, still-open cycle.
        ovulation_date:       Estimated ovulation.
        fertile_window_start: First day of the estimated fertile window.
        fertile_window_end:   Last day of the estimated fertile window.
    """

    start_date: date
    cycle_id: UUID = field(default_factory=uuid4)
    end_date: date | None = None
    period_length: int | None = None
    cycle_length: int | None = None
    is_active: bool = False
    ovulation_date: date | None = None
    fertile_window_start: date | None = None
    fertile_window_end: date | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.cycle_length and self.cycle_length > 0)

    @property
    def has_period_length(self) -> bool:
        return bool(self.period_length and self.period_length > 0)

    def copy(self) -> Cycle:
        return dataclasses.replace(self)


@dataclass
class DailyLog:
    """Everything the user logged for one calendar day."""

    log_date: date
    log_id: UUID = field(default_factory=uuid4)
    flow_intensity: FlowIntensity = FlowIntensity.none
    mood: int | None = None
    energy: int | None = None
    symptoms: list[SymptomEntry] = field(default_factory=list)
    notes: str | None = None
    cycle_id: UUID | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def has_flow(self) -> bool:
        return FlowIntensity(self.flow_intensity).is_period

    @property
    def symptom_types(self) -> list[SymptomType]:
        return [s.symptom_type for s in self.symptoms]


@dataclass
class UserSettings:
    """Per-user defaults used whenever history is insufficient."""

    average_cycle_length: int = 28
    average_period_length: int = 5
    logging_streak: int = 0
    onboarding_completed: bool = False
    last_logged_date: date | None = None


# ---------------------------------------------------------------------------
# Queries over cycle lists
# ---------------------------------------------------------------------------


def sort_cycles_desc(cycles: list[Cycle]) -> list[Cycle]:
    """Newest first, the order stores hand cycles out in."""
    return sorted(cycles, key=lambda c: c.start_date, reverse=True)


def active_cycle(cycles: list[Cycle]) -> Cycle | None:
    """Return the newest cycle flagged active, if any."""
    for cycle in sort_cycles_desc(cycles):
        if cycle.is_active:
            return cycle
    return None


def find_cycle(cycles: list[Cycle], cycle_id: UUID | None) -> Cycle | None:
    """Look up a cycle by id; tolerates dangling references by returning None."""
    if cycle_id is None:
        return None
    return next((c for c in cycles if c.cycle_id == cycle_id), None)
