"""Storage interfaces for cycles, daily logs and user settings.

Every backend implements ``CycleRepository``, the union of the three store
interfaces below plus a per-user ``transaction()``.  Stores hand out
independent copies of their records: callers may mutate what they receive
and must call the matching update method to persist the change.

Users are identified by an opaque string id.  All methods are scoped to one
user; no operation reads or writes across users.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import date
from typing import Any
from uuid import UUID

from misocycle.cycles.domain import Cycle, DailyLog, UserSettings

#: Fields a caller may set on a daily log through ``create_or_update_log``.
LOG_FIELDS = frozenset({"flow_intensity", "mood", "energy", "symptoms", "notes", "cycle_id"})


class LogStore(ABC):
    """Daily logs, at most one per user per calendar date."""

    @abstractmethod
    async def create_or_update_log(
        self, user_id: str, log_date: date, fields: dict[str, Any]
    ) -> UUID:
        """Upsert the log for ``log_date``.

        Only keys present in ``fields`` are written; an existing log keeps
        its other values and its id.

        Args:
            user_id:  Owner of the log.
            log_date: Calendar date of the log.
            fields:   Subset of ``LOG_FIELDS``.

        Returns:
            The id of the created or updated log.
        """

    @abstractmethod
    async def get_log(self, user_id: str, log_date: date) -> DailyLog | None:
        """Return the log for ``log_date``, if any."""

    @abstractmethod
    async def get_log_by_id(self, user_id: str, log_id: UUID) -> DailyLog | None:
        """Return a log by id, if it exists and belongs to ``user_id``."""

    @abstractmethod
    async def get_logs(self, user_id: str, start: date, end: date) -> list[DailyLog]:
        """Logs with ``start <= log_date <= end``, oldest first."""

    @abstractmethod
    async def get_recent_logs(self, user_id: str, limit: int) -> list[DailyLog]:
        """Up to ``limit`` logs, newest first."""

    @abstractmethod
    async def delete_log(self, user_id: str, log_id: UUID) -> bool:
        """Delete a log; returns False if it did not exist."""


class CycleStore(ABC):
    @abstractmethod
    async def get_all_cycles(self, user_id: str) -> list[Cycle]:
        """All cycles for ``user_id``, newest start first."""

    @abstractmethod
    async def create_cycle(self, user_id: str, cycle: Cycle) -> None:
        """Insert ``cycle``; its ``cycle_id`` must be new."""

    @abstractmethod
    async def update_cycle(self, user_id: str, cycle: Cycle) -> None:
        """Overwrite the stored cycle with the same ``cycle_id``."""

    @abstractmethod
    async def delete_cycle(self, user_id: str, cycle_id: UUID) -> bool:
        """Delete a cycle; returns False if it did not exist.

        Logs pointing at the cycle keep their now-dangling ``cycle_id``.
        """


class SettingsStore(ABC):
    @abstractmethod
    async def get_settings(self, user_id: str) -> UserSettings:
        """Return the user's settings, creating defaults on first access."""

    @abstractmethod
    async def save_settings(self, user_id: str, settings: UserSettings) -> None:
        """Persist ``settings``."""


class CycleRepository(LogStore, CycleStore, SettingsStore):
    """A complete storage backend."""

    #: Short name used in logs and the health check.
    BACKEND: str = "unknown"

    @abstractmethod
    def transaction(self, user_id: str) -> AbstractAsyncContextManager[None]:
        """Group writes for ``user_id`` so they apply atomically.

        Usage::

            async with store.transaction(user_id):
                await store.create_cycle(user_id, cycle)
                await store.create_or_update_log(user_id, day, fields)

        On exception every write made inside the block is rolled back and
        the exception propagates.
        """

    async def close(self) -> None:
        """Release backend resources.  No-op by default."""
