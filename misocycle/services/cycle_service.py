"""Cycle tracking service.

The only writer of cycle history.  Each public method loads a snapshot of
the user's cycles and settings, runs the engine components over it, and
persists exactly what they report as changed inside one store transaction.

All operations for one user, reads included, are serialized on a per-user
``asyncio.Lock``.  Different users never contend.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable
from uuid import UUID

from misocycle.cycles.boundary import (
    AttributionConfidence,
    CycleBoundaryResolver,
    InvalidCycleInputError,
    ResolutionOutcome,
)
from misocycle.cycles.calendar_view import CalendarClassifier, CalendarDay
from misocycle.cycles.config_loader import CycleConfig, get_cycle_config
from misocycle.cycles.cycle_stats import StatisticsEngine
from misocycle.cycles.date_math import add_days, date_range, days_between, end_of_month
from misocycle.cycles.domain import (
    Cycle,
    DailyLog,
    FlowIntensity,
    SymptomEntry,
    UserSettings,
    active_cycle,
    find_cycle,
    flow_pattern,
    sort_cycles_desc,
)
from misocycle.cycles.export import build_snapshot
from misocycle.cycles.fertility import FertilityCalculator
from misocycle.cycles.insights import CycleInsights, InsightsEngine
from misocycle.cycles.predictions import Forecast, PredictionOrchestrator
from misocycle.cycles.streak import StreakTracker
from misocycle.stores.base import CycleRepository

logger = logging.getLogger("misocycle.services.cycles")


class CycleNotFoundError(LookupError):
    """Raised when a cycle id does not belong to the user."""


class LogNotFoundError(LookupError):
    """Raised when a log id does not belong to the user."""


@dataclass
class LogResult:
    """Outcome of logging one day.

    ``outcome`` is None for logs without bleeding, which never create or
    move cycles.
    """

    log: DailyLog | None
    cycle: Cycle | None
    outcome: ResolutionOutcome | None = None
    confidence: AttributionConfidence = AttributionConfidence.high
    created_cycle: bool = False
    logging_streak: int = 0


@dataclass
class PeriodResult:
    cycle: Cycle
    logs: list[DailyLog] = field(default_factory=list)
    outcome: ResolutionOutcome = ResolutionOutcome.existing
    confidence: AttributionConfidence = AttributionConfidence.high
    created_cycle: bool = False
    logging_streak: int = 0


class UserLockRegistry:
    """One ``asyncio.Lock`` per user, created on first use.

    Locks are held weakly: an entry disappears once no operation holds or
    waits on it, so the registry only grows with concurrently active users.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def __len__(self) -> int:
        return len(self._locks)

    def get(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        return lock


class CycleService:
    """Per-user cycle operations over a ``CycleRepository``.

    Args:
        store:       Storage backend.
        config:      Engine thresholds; the global singleton by default.
        clock:       Returns "today"; ``date.today`` by default.
        app_version: Stamped into exports.
    """

    def __init__(
        self,
        store: CycleRepository,
        config: CycleConfig | None = None,
        clock: Callable[[], date] | None = None,
        app_version: str = "0.1.0",
    ) -> None:
        self.store = store
        self._config = config or get_cycle_config()
        self._clock = clock or date.today
        self._app_version = app_version
        self._locks = UserLockRegistry()

        self._stats = StatisticsEngine(self._config)
        self._fertility = FertilityCalculator(self._config)
        self._calendar = CalendarClassifier(self._config)
        self._predictions = PredictionOrchestrator(self._config)
        self._insights = InsightsEngine(self._config)

    def today(self) -> date:
        return self._clock()

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    async def log_day(
        self,
        user_id: str,
        log_date: date,
        flow_intensity: FlowIntensity = FlowIntensity.none,
        mood: int | None = None,
        energy: int | None = None,
        symptoms: list[SymptomEntry] | None = None,
        notes: str | None = None,
    ) -> LogResult:
        """Create or update the log for one day.

        A day with bleeding is attributed to a cycle, opening or backfilling
        one if needed.  Any other log attaches to the cycle covering the date
        and never creates one.  ``None`` fields keep their stored values.

        Raises:
            InvalidCycleInputError: For future dates.
        """
        flow = FlowIntensity.from_value(flow_intensity)
        async with self._locks.get(user_id):
            today = self.today()
            cycles, settings = await self._snapshot(user_id)
            resolver = self._resolver(cycles, settings, today)
            log_date = resolver.validate_log_date(log_date)

            async with self.store.transaction(user_id):
                result = await self._write_day(
                    user_id, resolver, log_date, flow,
                    mood=mood, energy=energy, symptoms=symptoms, notes=notes,
                )
                await self._refresh_active_fertility(user_id, resolver.cycles, settings)
                if StreakTracker(settings, self._config).record_log(log_date, today):
                    await self.store.save_settings(user_id, settings)

            result.log = await self.store.get_log(user_id, log_date)
            result.logging_streak = settings.logging_streak
            return result

    async def log_period_range(
        self,
        user_id: str,
        start_date: date,
        end_date: date,
        flow_intensity: FlowIntensity = FlowIntensity.medium,
        apply_pattern: bool = True,
    ) -> PeriodResult:
        """Log every day of a period at once and close it.

        The start date is resolved like a single bleeding day; the remaining
        days attach to the same cycle.  All writes happen in one transaction.

        Raises:
            InvalidCycleInputError: If ``end_date`` precedes ``start_date``,
                the range exceeds ``max_period_days``, or any day is in the
                future.
        """
        if end_date < start_date:
            raise InvalidCycleInputError(
                f"Period end {end_date.isoformat()} is before start {start_date.isoformat()}"
            )
        total = days_between(start_date, end_date) + 1
        max_days = self._config.boundary.max_period_days
        if total > max_days:
            raise InvalidCycleInputError(
                f"Period of {total} days exceeds the {max_days}-day maximum"
            )

        selected = FlowIntensity.from_value(flow_intensity)
        if not selected.is_period:
            raise InvalidCycleInputError("A period entry needs a bleeding flow intensity")
        flows = flow_pattern(selected, total) if apply_pattern else [selected] * total
        days = date_range(start_date, end_date)

        async with self._locks.get(user_id):
            today = self.today()
            cycles, settings = await self._snapshot(user_id)
            resolver = self._resolver(cycles, settings, today)
            resolver.validate_log_date(end_date)

            async with self.store.transaction(user_id):
                first = await self._write_day(user_id, resolver, start_date, flows[0])
                cycle = first.cycle
                for day, flow in zip(days[1:], flows[1:]):
                    await self.store.create_or_update_log(
                        user_id, day, {"flow_intensity": flow, "cycle_id": cycle.cycle_id}
                    )

                resolver.close_period(cycle, end_date)
                await self.store.update_cycle(user_id, cycle)
                await self._refresh_active_fertility(user_id, resolver.cycles, settings)

                tracker = StreakTracker(settings, self._config)
                if any([tracker.record_log(day, today) for day in days]):
                    await self.store.save_settings(user_id, settings)

            logs = await self.store.get_logs(user_id, start_date, end_date)
            logger.info(
                "Logged %d-day period %s…%s for cycle %s", total, start_date, end_date, cycle.cycle_id
            )
            return PeriodResult(
                cycle=cycle,
                logs=logs,
                outcome=first.outcome,
                confidence=first.confidence,
                created_cycle=first.created_cycle,
                logging_streak=settings.logging_streak,
            )

    async def delete_log(self, user_id: str, log_id: UUID) -> None:
        async with self._locks.get(user_id):
            log = await self.store.get_log_by_id(user_id, log_id)
            if log is None or not await self.store.delete_log(user_id, log_id):
                raise LogNotFoundError(f"Log {log_id} not found")
            logger.info("Deleted log %s (%s)", log_id, log.log_date)

    async def get_log(self, user_id: str, log_date: date) -> DailyLog | None:
        async with self._locks.get(user_id):
            return await self.store.get_log(user_id, log_date)

    async def list_logs(self, user_id: str, start: date, end: date) -> list[DailyLog]:
        async with self._locks.get(user_id):
            return await self.store.get_logs(user_id, start, end)

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------

    async def list_cycles(self, user_id: str) -> list[Cycle]:
        async with self._locks.get(user_id):
            return await self.store.get_all_cycles(user_id)

    async def end_period(self, user_id: str, cycle_id: UUID, end_date: date) -> Cycle:
        """Record the last bleeding day of a cycle.

        Raises:
            CycleNotFoundError:     Unknown cycle.
            InvalidCycleInputError: End before start or period too long.
        """
        async with self._locks.get(user_id):
            cycles, settings = await self._snapshot(user_id)
            cycle = find_cycle(cycles, cycle_id)
            if cycle is None:
                raise CycleNotFoundError(f"Cycle {cycle_id} not found")
            resolver = self._resolver(cycles, settings, self.today())
            resolver.close_period(cycle, end_date)
            await self.store.update_cycle(user_id, cycle)
            logger.info("Closed period of cycle %s at %s", cycle_id, end_date)
            return cycle

    async def recalculate(self, user_id: str) -> list[Cycle]:
        """Rebuild cycle lengths and the active flag; returns all cycles."""
        async with self._locks.get(user_id):
            return await self._recalculate_locked(user_id)

    async def delete_cycle(self, user_id: str, cycle_id: UUID) -> list[Cycle]:
        """Delete a cycle and repair the remaining history.

        Logs that pointed at the cycle keep their dangling reference.  If the
        newest cycle is deleted, the next one becomes open-ended again.
        """
        async with self._locks.get(user_id):
            cycles = await self.store.get_all_cycles(user_id)
            target = find_cycle(cycles, cycle_id)
            if target is None:
                raise CycleNotFoundError(f"Cycle {cycle_id} not found")

            async with self.store.transaction(user_id):
                await self.store.delete_cycle(user_id, cycle_id)
                remaining = [c for c in cycles if c.cycle_id != cycle_id]
                if remaining and cycles[0].cycle_id == cycle_id:
                    newest = remaining[0]
                    newest.cycle_length = None
                    await self.store.update_cycle(user_id, newest)
                logger.info("Deleted cycle %s (%s)", cycle_id, target.start_date)
                return await self._recalculate_locked(user_id)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def get_settings(self, user_id: str) -> UserSettings:
        async with self._locks.get(user_id):
            return await self.store.get_settings(user_id)

    async def effective_streak(self, user_id: str) -> int:
        async with self._locks.get(user_id):
            settings = await self.store.get_settings(user_id)
            return StreakTracker(settings, self._config).effective_streak(self.today())

    async def update_settings(
        self,
        user_id: str,
        average_cycle_length: int | None = None,
        average_period_length: int | None = None,
    ) -> UserSettings:
        """Change the fallback averages and re-derive dependent fertility dates."""
        async with self._locks.get(user_id):
            cycles, settings = await self._snapshot(user_id)
            if average_cycle_length is not None:
                settings.average_cycle_length = average_cycle_length
            if average_period_length is not None:
                settings.average_period_length = average_period_length

            async with self.store.transaction(user_id):
                await self.store.save_settings(user_id, settings)
                average = self._average_length(cycles, settings)
                for cycle in cycles:
                    if not cycle.is_complete and self._fertility.apply(cycle, average):
                        await self.store.update_cycle(user_id, cycle)
            return settings

    async def complete_onboarding(
        self,
        user_id: str,
        average_cycle_length: int,
        average_period_length: int,
        last_period_start: date | None = None,
    ) -> UserSettings:
        """Store the user's initial averages and optionally their last period."""
        async with self._locks.get(user_id):
            today = self.today()
            cycles, settings = await self._snapshot(user_id)
            settings.average_cycle_length = average_cycle_length
            settings.average_period_length = average_period_length
            settings.onboarding_completed = True

            resolver = self._resolver(cycles, settings, today)
            if last_period_start is not None:
                last_period_start = resolver.validate_log_date(last_period_start)

            async with self.store.transaction(user_id):
                await self.store.save_settings(user_id, settings)
                if last_period_start is not None:
                    await self._write_day(
                        user_id, resolver, last_period_start, FlowIntensity.medium
                    )
                    await self._refresh_active_fertility(user_id, resolver.cycles, settings)
            logger.info("Onboarding completed for user %s", user_id)
            return settings

    async def reset_streak(self, user_id: str) -> UserSettings:
        async with self._locks.get(user_id):
            settings = await self.store.get_settings(user_id)
            StreakTracker(settings, self._config).reset()
            await self.store.save_settings(user_id, settings)
            return settings

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------

    async def calendar_month(self, user_id: str, year: int, month: int) -> list[CalendarDay]:
        first = date(year, month, 1)
        async with self._locks.get(user_id):
            cycles, settings = await self._snapshot(user_id)
            logs = await self.store.get_logs(user_id, first, end_of_month(first))
        return self._calendar.month_grid(
            year,
            month,
            active_cycle(cycles),
            {log.log_date: log for log in logs},
            self.today(),
            self._average_length(cycles, settings),
        )

    async def forecast(self, user_id: str) -> Forecast:
        async with self._locks.get(user_id):
            cycles, settings = await self._snapshot(user_id)
            logs = await self.store.get_recent_logs(
                user_id, self._config.prediction.recent_log_limit
            )
        return self._predictions.forecast(cycles, logs, settings, self.today())

    async def insights(self, user_id: str) -> CycleInsights:
        async with self._locks.get(user_id):
            cycles, settings = await self._snapshot(user_id)
            logs = await self.store.get_recent_logs(
                user_id, self._config.prediction.recent_log_limit
            )
        return self._insights.build(cycles, logs, self.today(), settings=settings)

    async def export(self, user_id: str) -> dict:
        async with self._locks.get(user_id):
            cycles, settings = await self._snapshot(user_id)
            logs = await self.store.get_logs(user_id, date.min, date.max)
        return build_snapshot(
            cycles, logs, settings, datetime.now(timezone.utc), self._app_version
        )

    # ------------------------------------------------------------------
    # Internals (callers hold the user's lock)
    # ------------------------------------------------------------------

    async def _snapshot(self, user_id: str) -> tuple[list[Cycle], UserSettings]:
        cycles = await self.store.get_all_cycles(user_id)
        settings = await self.store.get_settings(user_id)
        return cycles, settings

    def _average_length(self, cycles: list[Cycle], settings: UserSettings) -> int:
        return self._stats.summarize(
            cycles, fallback_cycle_length=settings.average_cycle_length
        ).rounded_cycle_length

    def _resolver(
        self, cycles: list[Cycle], settings: UserSettings, today: date
    ) -> CycleBoundaryResolver:
        return CycleBoundaryResolver(
            cycles,
            average_cycle_length=self._average_length(cycles, settings),
            today=today,
            config=self._config,
        )

    async def _write_day(
        self,
        user_id: str,
        resolver: CycleBoundaryResolver,
        log_date: date,
        flow: FlowIntensity,
        mood: int | None = None,
        energy: int | None = None,
        symptoms: list[SymptomEntry] | None = None,
        notes: str | None = None,
    ) -> LogResult:
        outcome = None
        confidence = AttributionConfidence.high
        created = False

        if flow.is_period:
            resolution = resolver.resolve(log_date)
            if resolution.created is not None:
                await self.store.create_cycle(user_id, resolution.created)
                await self._relink_logs(user_id, resolver, resolution.created)
                created = True
            for cycle in resolution.updated:
                await self.store.update_cycle(user_id, cycle)
            cycle = resolution.cycle
            outcome = resolution.outcome
            confidence = resolution.confidence
        else:
            cycle = resolver.containing_cycle(log_date)

        fields = {
            "flow_intensity": flow,
            "cycle_id": cycle.cycle_id if cycle else None,
        }
        for name, value in (
            ("mood", mood), ("energy", energy), ("symptoms", symptoms), ("notes", notes)
        ):
            if value is not None:
                fields[name] = value
        await self.store.create_or_update_log(user_id, log_date, fields)

        return LogResult(
            log=None,
            cycle=cycle,
            outcome=outcome,
            confidence=confidence,
            created_cycle=created,
        )

    async def _relink_logs(
        self, user_id: str, resolver: CycleBoundaryResolver, cycle: Cycle
    ) -> None:
        """Attach logs dated inside a newly created cycle to it.

        Covers backfilling: logs between the new start and the next cycle's
        start were attributed to an older cycle, or to none, before it existed.
        """
        later = [c.start_date for c in resolver.cycles if c.start_date > cycle.start_date]
        end = add_days(min(later), -1) if later else date.max
        moved = 0
        for log in await self.store.get_logs(user_id, cycle.start_date, end):
            owner = resolver.containing_cycle(log.log_date)
            if owner is not None and log.cycle_id != owner.cycle_id:
                await self.store.create_or_update_log(
                    user_id, log.log_date, {"cycle_id": owner.cycle_id}
                )
                moved += 1
        if moved:
            logger.info("Moved %d log(s) to new cycle %s", moved, cycle.cycle_id)

    async def _refresh_active_fertility(
        self, user_id: str, cycles: list[Cycle], settings: UserSettings
    ) -> None:
        current = active_cycle(cycles)
        if current is None or current.is_complete:
            return
        if self._fertility.apply(current, self._average_length(cycles, settings)):
            await self.store.update_cycle(user_id, current)

    async def _recalculate_locked(self, user_id: str) -> list[Cycle]:
        cycles, settings = await self._snapshot(user_id)
        resolver = self._resolver(cycles, settings, self.today())
        async with self.store.transaction(user_id):
            changed = resolver.recalculate()
            for cycle in changed:
                await self.store.update_cycle(user_id, cycle)
            await self._refresh_active_fertility(user_id, resolver.cycles, settings)
        if changed:
            logger.info("Recalculated %d cycle(s) for user %s", len(changed), user_id)
        return sort_cycles_desc(resolver.cycles)
