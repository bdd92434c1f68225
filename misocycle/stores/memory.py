"""In-memory storage backend.

The default backend for local runs and tests.  Data lives in per-user
buckets and is lost on restart.  ``transaction()`` snapshots the user's
bucket and restores it if the block raises.
"""

from __future__ import annotations

import copy
import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, AsyncGenerator
from uuid import UUID

from misocycle.cycles.domain import (
    Cycle,
    DailyLog,
    UserSettings,
    sort_cycles_desc,
    utc_now,
)
from misocycle.stores.base import LOG_FIELDS, CycleRepository

logger = logging.getLogger("misocycle.stores.memory")

_open_transactions: ContextVar[frozenset[str]] = ContextVar(
    "misocycle_memory_transactions", default=frozenset()
)


@dataclass
class _UserBucket:
    cycles: dict[UUID, Cycle] = field(default_factory=dict)
    logs: dict[date, DailyLog] = field(default_factory=dict)
    settings: UserSettings | None = None


def _copy_log(log: DailyLog) -> DailyLog:
    return replace(log, symptoms=[replace(s) for s in log.symptoms])


class InMemoryStore(CycleRepository):
    BACKEND = "memory"

    def __init__(self) -> None:
        self._users: dict[str, _UserBucket] = {}

    def _bucket(self, user_id: str) -> _UserBucket:
        bucket = self._users.get(user_id)
        if bucket is None:
            bucket = self._users[user_id] = _UserBucket()
        return bucket

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def transaction(self, user_id: str) -> AsyncGenerator[None, None]:
        open_ids = _open_transactions.get()
        if user_id in open_ids:
            # Nested: the outer block owns the snapshot
            yield
            return

        snapshot = copy.deepcopy(self._bucket(user_id))
        token = _open_transactions.set(open_ids | {user_id})
        try:
            yield
        except BaseException:
            self._users[user_id] = snapshot
            logger.debug("Rolled back in-memory transaction for user %s", user_id)
            raise
        finally:
            _open_transactions.reset(token)

    # ------------------------------------------------------------------
    # Logs
    # ------------------------------------------------------------------

    async def create_or_update_log(
        self, user_id: str, log_date: date, fields: dict[str, Any]
    ) -> UUID:
        unknown = set(fields) - LOG_FIELDS
        if unknown:
            raise ValueError(f"Unknown log field(s): {sorted(unknown)}")

        bucket = self._bucket(user_id)
        log = bucket.logs.get(log_date)
        if log is None:
            log = DailyLog(log_date=log_date)
            bucket.logs[log_date] = log
        else:
            log.updated_at = utc_now()

        for name, value in fields.items():
            if name == "symptoms":
                value = [replace(s) for s in value] if value else []
            setattr(log, name, value)
        return log.log_id

    async def get_log(self, user_id: str, log_date: date) -> DailyLog | None:
        log = self._bucket(user_id).logs.get(log_date)
        return _copy_log(log) if log else None

    async def get_log_by_id(self, user_id: str, log_id: UUID) -> DailyLog | None:
        for log in self._bucket(user_id).logs.values():
            if log.log_id == log_id:
                return _copy_log(log)
        return None

    async def get_logs(self, user_id: str, start: date, end: date) -> list[DailyLog]:
        logs = [l for d, l in self._bucket(user_id).logs.items() if start <= d <= end]
        return [_copy_log(l) for l in sorted(logs, key=lambda l: l.log_date)]

    async def get_recent_logs(self, user_id: str, limit: int) -> list[DailyLog]:
        logs = sorted(self._bucket(user_id).logs.values(), key=lambda l: l.log_date, reverse=True)
        return [_copy_log(l) for l in logs[:limit]]

    async def delete_log(self, user_id: str, log_id: UUID) -> bool:
        logs = self._bucket(user_id).logs
        for log_date, log in list(logs.items()):
            if log.log_id == log_id:
                del logs[log_date]
                return True
        return False

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------

    async def get_all_cycles(self, user_id: str) -> list[Cycle]:
        return [c.copy() for c in sort_cycles_desc(list(self._bucket(user_id).cycles.values()))]

    async def create_cycle(self, user_id: str, cycle: Cycle) -> None:
        cycles = self._bucket(user_id).cycles
        if cycle.cycle_id in cycles:
            raise ValueError(f"Cycle {cycle.cycle_id} already exists")
        cycles[cycle.cycle_id] = cycle.copy()

    async def update_cycle(self, user_id: str, cycle: Cycle) -> None:
        cycles = self._bucket(user_id).cycles
        if cycle.cycle_id not in cycles:
            raise KeyError(f"Cycle {cycle.cycle_id} does not exist")
        cycles[cycle.cycle_id] = cycle.copy()

    async def delete_cycle(self, user_id: str, cycle_id: UUID) -> bool:
        return self._bucket(user_id).cycles.pop(cycle_id, None) is not None

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def get_settings(self, user_id: str) -> UserSettings:
        bucket = self._bucket(user_id)
        if bucket.settings is None:
            bucket.settings = UserSettings()
        return replace(bucket.settings)

    async def save_settings(self, user_id: str, settings: UserSettings) -> None:
        self._bucket(user_id).settings = replace(settings)
