"""User data export.

``build_snapshot`` produces a JSON-ready dict with a fixed key set: ISO-8601
dates and timestamps, plain ints and bools.  Unknown integer fields export
as 0 so consumers never need to handle nulls for them; ``end_date`` and
``notes`` stay nullable.
"""

from __future__ import annotations

from datetime import date, datetime

from misocycle.cycles.domain import (
    Cycle,
    DailyLog,
    FlowIntensity,
    UserSettings,
    sort_cycles_desc,
)

EXPORT_FORMAT_VERSION = 1


def export_filename(today: date) -> str:
    return f"MisoCycle_Export_{today.isoformat()}.json"


def export_cycle(cycle: Cycle) -> dict:
    return {
        "id": str(cycle.cycle_id),
        "start_date": cycle.start_date.isoformat(),
        "end_date": cycle.end_date.isoformat() if cycle.end_date else None,
        "cycle_length": cycle.cycle_length or 0,
        "period_length": cycle.period_length or 0,
        "is_active": bool(cycle.is_active),
    }


def export_log(log: DailyLog) -> dict:
    return {
        "id": str(log.log_id),
        "date": log.log_date.isoformat(),
        "flow_intensity": int(FlowIntensity.from_value(log.flow_intensity)),
        "mood": log.mood or 0,
        "energy": log.energy or 0,
        "symptoms": [
            {"type": s.symptom_type.value, "severity": s.severity} for s in log.symptoms
        ],
        "notes": log.notes,
    }


def export_settings(settings: UserSettings) -> dict:
    return {
        "average_cycle_length": settings.average_cycle_length,
        "average_period_length": settings.average_period_length,
        "logging_streak": settings.logging_streak,
    }


def build_snapshot(
    cycles: list[Cycle],
    logs: list[DailyLog],
    settings: UserSettings,
    exported_at: datetime,
    app_version: str,
) -> dict:
    """Full export of one user's data; cycles and logs newest first."""
    return {
        "format_version": EXPORT_FORMAT_VERSION,
        "export_date": exported_at.isoformat(),
        "app_version": app_version,
        "cycles": [export_cycle(c) for c in sort_cycles_desc(cycles)],
        "daily_logs": [
            export_log(l) for l in sorted(logs, key=lambda l: l.log_date, reverse=True)
        ],
        "settings": export_settings(settings),
    }
