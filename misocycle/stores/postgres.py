"""PostgreSQL storage backend over the asyncpg pool in ``services.database``."""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, AsyncGenerator
from uuid import UUID

import asyncpg

from misocycle.cycles.domain import (
    Cycle,
    DailyLog,
    FlowIntensity,
    SymptomEntry,
    SymptomType,
    UserSettings,
)
from misocycle.services.database import bind_connection, execute, fetch, fetchrow
from misocycle.stores.base import LOG_FIELDS, CycleRepository

logger = logging.getLogger("misocycle.stores.postgres")

SCHEMA = """
CREATE TABLE IF NOT EXISTS cycles (
    cycle_id             UUID PRIMARY KEY,
    user_id              TEXT NOT NULL,
    start_date           DATE NOT NULL,
    end_date             DATE,
    period_length        INTEGER,
    cycle_length         INTEGER,
    is_active            BOOLEAN NOT NULL DEFAULT FALSE,
    ovulation_date       DATE,
    fertile_window_start DATE,
    fertile_window_end   DATE,
    created_at           TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at           TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS cycles_user_start_idx ON cycles (user_id, start_date DESC);

CREATE TABLE IF NOT EXISTS daily_logs (
    log_id         UUID PRIMARY KEY,
    user_id        TEXT NOT NULL,
    log_date       DATE NOT NULL,
    flow_intensity SMALLINT NOT NULL DEFAULT 0,
    mood           SMALLINT,
    energy         SMALLINT,
    symptoms       JSONB NOT NULL DEFAULT '[]'::jsonb,
    notes          TEXT,
    cycle_id       UUID,
    created_at     TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at     TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (user_id, log_date)
);

CREATE TABLE IF NOT EXISTS user_settings (
    user_id               TEXT PRIMARY KEY,
    average_cycle_length  INTEGER NOT NULL DEFAULT 28,
    average_period_length INTEGER NOT NULL DEFAULT 5,
    logging_streak        INTEGER NOT NULL DEFAULT 0,
    onboarding_completed  BOOLEAN NOT NULL DEFAULT FALSE,
    last_logged_date      DATE,
    updated_at            TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

_CYCLE_COLUMNS = (
    "cycle_id, start_date, end_date, period_length, cycle_length, is_active, "
    "ovulation_date, fertile_window_start, fertile_window_end"
)


def _cycle_from_row(row: asyncpg.Record) -> Cycle:
    return Cycle(
        cycle_id=row["cycle_id"],
        start_date=row["start_date"],
        end_date=row["end_date"],
        period_length=row["period_length"],
        cycle_length=row["cycle_length"],
        is_active=row["is_active"],
        ovulation_date=row["ovulation_date"],
        fertile_window_start=row["fertile_window_start"],
        fertile_window_end=row["fertile_window_end"],
    )


def _symptoms_to_json(symptoms: list[SymptomEntry] | None) -> str:
    return json.dumps(
        [{"type": s.symptom_type.value, "severity": s.severity} for s in symptoms or []]
    )


def _symptoms_from_json(raw: str | list | None) -> list[SymptomEntry]:
    items = json.loads(raw) if isinstance(raw, str) else raw or []
    entries = []
    for item in items:
        try:
            symptom = SymptomType(item["type"])
        except (KeyError, ValueError):
            logger.warning("Skipping unknown stored symptom %r", item)
            continue
        entries.append(SymptomEntry(symptom_type=symptom, severity=item.get("severity", 3)))
    return entries


def _log_from_row(row: asyncpg.Record) -> DailyLog:
    return DailyLog(
        log_id=row["log_id"],
        log_date=row["log_date"],
        flow_intensity=FlowIntensity.from_value(row["flow_intensity"]),
        mood=row["mood"],
        energy=row["energy"],
        symptoms=_symptoms_from_json(row["symptoms"]),
        notes=row["notes"],
        cycle_id=row["cycle_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PostgresStore(CycleRepository):
    """Cycles, logs and settings in three tables keyed by ``user_id``."""

    BACKEND = "postgres"

    async def ensure_schema(self) -> None:
        await execute(SCHEMA)
        logger.info("Database schema ensured")

    @asynccontextmanager
    async def transaction(self, user_id: str) -> AsyncGenerator[None, None]:
        async with bind_connection(user_id):
            yield

    # ------------------------------------------------------------------
    # Logs
    # ------------------------------------------------------------------

    async def create_or_update_log(
        self, user_id: str, log_date: date, fields: dict[str, Any]
    ) -> UUID:
        unknown = set(fields) - LOG_FIELDS
        if unknown:
            raise ValueError(f"Unknown log field(s): {sorted(unknown)}")

        values = dict(fields)
        if "flow_intensity" in values:
            values["flow_intensity"] = int(FlowIntensity.from_value(values["flow_intensity"]))
        if "symptoms" in values:
            values["symptoms"] = _symptoms_to_json(values["symptoms"])

        columns = list(values)
        params: list[Any] = [user_id, log_date, *values.values()]
        placeholders = [
            f"${i}::jsonb" if name == "symptoms" else f"${i}"
            for i, name in enumerate(columns, start=3)
        ]
        updates = ", ".join(f"{name} = EXCLUDED.{name}" for name in columns)
        insert_columns = "".join(f", {name}" for name in columns)
        insert_values = "".join(f", {p}" for p in placeholders)

        row = await fetchrow(
            f"""
            INSERT INTO daily_logs (log_id, user_id, log_date{insert_columns})
            VALUES (gen_random_uuid(), $1, $2{insert_values})
            ON CONFLICT (user_id, log_date) DO UPDATE SET
                {updates + ", " if updates else ""}updated_at = NOW()
            RETURNING log_id
            """,
            *params,
            user_id=user_id,
        )
        return row["log_id"]

    async def get_log(self, user_id: str, log_date: date) -> DailyLog | None:
        row = await fetchrow(
            "SELECT * FROM daily_logs WHERE user_id = $1 AND log_date = $2",
            user_id, log_date,
            user_id=user_id,
        )
        return _log_from_row(row) if row else None

    async def get_log_by_id(self, user_id: str, log_id: UUID) -> DailyLog | None:
        row = await fetchrow(
            "SELECT * FROM daily_logs WHERE user_id = $1 AND log_id = $2",
            user_id, log_id,
            user_id=user_id,
        )
        return _log_from_row(row) if row else None

    async def get_logs(self, user_id: str, start: date, end: date) -> list[DailyLog]:
        rows = await fetch(
            """
            SELECT * FROM daily_logs
            WHERE user_id = $1 AND log_date BETWEEN $2 AND $3
            ORDER BY log_date
            """,
            user_id, start, end,
            user_id=user_id,
        )
        return [_log_from_row(r) for r in rows]

    async def get_recent_logs(self, user_id: str, limit: int) -> list[DailyLog]:
        rows = await fetch(
            "SELECT * FROM daily_logs WHERE user_id = $1 ORDER BY log_date DESC LIMIT $2",
            user_id, limit,
            user_id=user_id,
        )
        return [_log_from_row(r) for r in rows]

    async def delete_log(self, user_id: str, log_id: UUID) -> bool:
        status = await execute(
            "DELETE FROM daily_logs WHERE user_id = $1 AND log_id = $2",
            user_id, log_id,
            user_id=user_id,
        )
        return status != "DELETE 0"

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------

    async def get_all_cycles(self, user_id: str) -> list[Cycle]:
        rows = await fetch(
            f"SELECT {_CYCLE_COLUMNS} FROM cycles WHERE user_id = $1 ORDER BY start_date DESC",
            user_id,
            user_id=user_id,
        )
        return [_cycle_from_row(r) for r in rows]

    async def create_cycle(self, user_id: str, cycle: Cycle) -> None:
        await execute(
            f"""
            INSERT INTO cycles (user_id, {_CYCLE_COLUMNS})
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
            """,
            user_id, *self._cycle_params(cycle),
            user_id=user_id,
        )

    async def update_cycle(self, user_id: str, cycle: Cycle) -> None:
        status = await execute(
            """
            UPDATE cycles SET
                start_date = $3,
                end_date = $4,
                period_length = $5,
                cycle_length = $6,
                is_active = $7,
                ovulation_date = $8,
                fertile_window_start = $9,
                fertile_window_end = $10,
                updated_at = NOW()
            WHERE user_id = $1 AND cycle_id = $2
            """,
            user_id, *self._cycle_params(cycle),
            user_id=user_id,
        )
        if status == "UPDATE 0":
            raise KeyError(f"Cycle {cycle.cycle_id} does not exist")

    async def delete_cycle(self, user_id: str, cycle_id: UUID) -> bool:
        status = await execute(
            "DELETE FROM cycles WHERE user_id = $1 AND cycle_id = $2",
            user_id, cycle_id,
            user_id=user_id,
        )
        return status != "DELETE 0"

    @staticmethod
    def _cycle_params(cycle: Cycle) -> tuple:
        return (
            cycle.cycle_id,
            cycle.start_date,
            cycle.end_date,
            cycle.period_length,
            cycle.cycle_length,
            cycle.is_active,
            cycle.ovulation_date,
            cycle.fertile_window_start,
            cycle.fertile_window_end,
        )

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def get_settings(self, user_id: str) -> UserSettings:
        row = await fetchrow(
            """
            INSERT INTO user_settings (user_id) VALUES ($1)
            ON CONFLICT (user_id) DO UPDATE SET user_id = EXCLUDED.user_id
            RETURNING *
            """,
            user_id,
            user_id=user_id,
        )
        return UserSettings(
            average_cycle_length=row["average_cycle_length"],
            average_period_length=row["average_period_length"],
            logging_streak=row["logging_streak"],
            onboarding_completed=row["onboarding_completed"],
            last_logged_date=row["last_logged_date"],
        )

    async def save_settings(self, user_id: str, settings: UserSettings) -> None:
        await execute(
            """
            INSERT INTO user_settings (
                user_id, average_cycle_length, average_period_length,
                logging_streak, onboarding_completed, last_logged_date
            ) VALUES ($1, $2, $3, $4, $5, $6)
            ON CONFLICT (user_id) DO UPDATE SET
                average_cycle_length = EXCLUDED.average_cycle_length,
                average_period_length = EXCLUDED.average_period_length,
                logging_streak = EXCLUDED.logging_streak,
                onboarding_completed = EXCLUDED.onboarding_completed,
                last_logged_date = EXCLUDED.last_logged_date,
                updated_at = NOW()
            """,
            user_id,
            settings.average_cycle_length,
            settings.average_period_length,
            settings.logging_streak,
            settings.onboarding_completed,
            settings.last_logged_date,
            user_id=user_id,
        )
