"""Cycle boundary resolution.

Users log bleeding days, not cycles.  The resolver decides, for each logged
day, whether it belongs to an existing cycle, opens a new one, or backfills a
historical cycle older than everything known.  Rules, first match wins:

1. A cycle starts on exactly that date.
2. The date is within ``period_attribution_window_days`` (7) after a cycle
   start: it is part of that cycle's bleeding period.
3. The date precedes every known cycle: a historical, inactive cycle is
   inserted, its length being the gap to the previously-oldest start.
4. The date is at least ``minimum_inter_cycle_gap_days`` (18) after the newest
   start: the newest cycle is closed and a new one opened.  The new cycle is
   active only when it started within ``active_window_days`` of today.
5. No cycles exist: the first one is created.
6. Anything else is attributed to the newest cycle with low confidence.

The resolver works on an in-memory snapshot of the user's cycles and mutates
it in place.  Each result lists the created and updated cycles so the caller
can persist exactly what changed.  It never raises for ambiguous input; only
invalid input (period end before start, future dates) is rejected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from misocycle.cycles.config_loader import CycleConfig, get_cycle_config
from misocycle.cycles.date_math import days_between, start_of_day
from misocycle.cycles.domain import Cycle, sort_cycles_desc
from misocycle.cycles.fertility import FertilityCalculator

logger = logging.getLogger("misocycle.cycles.boundary")


class InvalidCycleInputError(ValueError):
    """Raised for input that cannot be placed on the timeline."""


class ResolutionOutcome(str, Enum):
    existing = "existing"
    within_period = "within_period"
    historical = "historical"
    new_cycle = "new_cycle"
    first_cycle = "first_cycle"
    fallback = "fallback"


class AttributionConfidence(str, Enum):
    high = "high"
    low = "low"


@dataclass
class BoundaryResolution:
    """Result of attributing one date to a cycle.

    Attributes:
        cycle:      The cycle the date belongs to.
        outcome:    Which rule matched.
        confidence: ``low`` only for the fallback rule.
        created:    The newly created cycle, if any (same object as ``cycle``).
        updated:    Pre-existing cycles whose fields changed.
    """

    cycle: Cycle
    outcome: ResolutionOutcome
    confidence: AttributionConfidence = AttributionConfidence.high
    created: Cycle | None = None
    updated: list[Cycle] = field(default_factory=list)

    @property
    def is_low_confidence(self) -> bool:
        return self.confidence is AttributionConfidence.low


class CycleBoundaryResolver:
    """Attribute logged dates to cycles over a snapshot of one user's history.

    Usage::

        resolver = CycleBoundaryResolver(cycles, average_cycle_length=29, today=today)
        resolution = resolver.resolve(date(2024, 1, 29))
        if resolution.created:
            await store.create_cycle(user_id, resolution.created)
        for cycle in resolution.updated:
            await store.update_cycle(user_id, cycle)
    """

    def __init__(
        self,
        cycles: list[Cycle],
        average_cycle_length: int | None = None,
        today: date | None = None,
        config: CycleConfig | None = None,
    ) -> None:
        self._config = config or get_cycle_config()
        self._cycles = sort_cycles_desc(cycles)
        self._average_cycle_length = average_cycle_length
        self._today = today or date.today()
        self._fertility = FertilityCalculator(self._config)

    @property
    def cycles(self) -> list[Cycle]:
        """The working snapshot, newest first."""
        return list(self._cycles)

    @property
    def _bc(self):
        return self._config.boundary

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_log_date(self, log_date: date) -> date:
        """Reject dates too far in the future; returns the normalized date."""
        log_date = start_of_day(log_date)
        ahead = days_between(self._today, log_date)
        if ahead > self._bc.max_future_log_days:
            raise InvalidCycleInputError(
                f"Cannot log {log_date.isoformat()}: {ahead} day(s) in the future"
            )
        return log_date

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, log_date: date) -> BoundaryResolution:
        """Find or create the cycle that ``log_date`` belongs to."""
        target = start_of_day(log_date)

        # 1. Exact start match
        for cycle in self._cycles:
            if cycle.start_date == target:
                return BoundaryResolution(cycle=cycle, outcome=ResolutionOutcome.existing)

        # 2. Inside a cycle's bleeding period
        for cycle in self._cycles:
            gap = days_between(cycle.start_date, target)
            if 0 <= gap <= self._bc.period_attribution_window_days:
                return BoundaryResolution(cycle=cycle, outcome=ResolutionOutcome.within_period)

        # 3. Before all known cycles: backfilled history
        if self._cycles and target < self._cycles[-1].start_date:
            return self._create_historical(target, self._cycles[-1])

        # 4. Far enough after the newest cycle to be a new one
        if self._cycles:
            newest = self._cycles[0]
            gap = days_between(newest.start_date, target)
            if gap >= self._bc.minimum_inter_cycle_gap_days:
                return self._open_new_cycle(target, newest, gap)

        # 5. First cycle ever
        if not self._cycles:
            cycle = self._new_cycle(target, is_active=self._looks_current(target))
            logger.info(
                "Created first cycle %s starting %s (active=%s)",
                cycle.cycle_id, target, cycle.is_active,
            )
            return BoundaryResolution(
                cycle=cycle, outcome=ResolutionOutcome.first_cycle, created=cycle
            )

        # 6. Ambiguous: fall back to the newest cycle
        newest = self._cycles[0]
        logger.warning(
            "Low-confidence attribution: %s is %d day(s) after the newest cycle start %s; "
            "attributing to cycle %s",
            target, days_between(newest.start_date, target), newest.start_date, newest.cycle_id,
        )
        return BoundaryResolution(
            cycle=newest,
            outcome=ResolutionOutcome.fallback,
            confidence=AttributionConfidence.low,
        )

    def containing_cycle(self, day: date) -> Cycle | None:
        """Newest cycle that started on or before ``day``.

        Used to attach non-bleeding logs without creating cycles.
        """
        day = start_of_day(day)
        return next((c for c in self._cycles if c.start_date <= day), None)

    # ------------------------------------------------------------------
    # Recalculation
    # ------------------------------------------------------------------

    def recalculate(self) -> list[Cycle]:
        """Rebuild cycle lengths from the sequence of start dates.

        Walks oldest → newest and gives each cycle the gap to the next start,
        skipping implausible gaps.  Afterwards exactly one cycle is active:
        the newest one if none was, or the newest of several.

        Returns:
            The cycles whose fields changed.
        """
        changed: dict = {}
        ordered = list(reversed(self._cycles))  # oldest first

        for older, newer in zip(ordered, ordered[1:]):
            length = days_between(older.start_date, newer.start_date)
            if not (0 < length < self._bc.max_plausible_cycle_days):
                continue
            if older.cycle_length != length:
                older.cycle_length = length
                changed[older.cycle_id] = older
            if self._fertility.apply(older, length):
                changed[older.cycle_id] = older

        active = [c for c in self._cycles if c.is_active]
        if not active and self._cycles:
            newest = self._cycles[0]
            newest.is_active = True
            changed[newest.cycle_id] = newest
            logger.info("Marked cycle %s (%s) active", newest.cycle_id, newest.start_date)
        elif len(active) > 1:
            for extra in active[1:]:
                extra.is_active = False
                changed[extra.cycle_id] = extra
            logger.warning(
                "Found %d active cycles; kept %s", len(active), active[0].cycle_id
            )

        return list(changed.values())

    # ------------------------------------------------------------------
    # Period closing
    # ------------------------------------------------------------------

    def close_period(self, cycle: Cycle, end_date: date) -> Cycle:
        """Record the last bleeding day of ``cycle``.

        Raises:
            InvalidCycleInputError: If ``end_date`` precedes the cycle start or
                the period would exceed ``max_period_days``.
        """
        end_date = start_of_day(end_date)
        span = days_between(cycle.start_date, end_date)
        if span < 0:
            raise InvalidCycleInputError(
                f"Period end {end_date.isoformat()} is before cycle start "
                f"{cycle.start_date.isoformat()}"
            )
        period_length = span + 1
        if period_length > self._bc.max_period_days:
            raise InvalidCycleInputError(
                f"Period of {period_length} days exceeds the "
                f"{self._bc.max_period_days}-day maximum"
            )
        cycle.end_date = end_date
        cycle.period_length = period_length
        return cycle

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _looks_current(self, start: date) -> bool:
        return days_between(start, self._today) <= self._bc.active_window_days

    def _new_cycle(self, start: date, is_active: bool, cycle_length: int | None = None) -> Cycle:
        cycle = Cycle(start_date=start, is_active=is_active, cycle_length=cycle_length)
        self._fertility.apply(cycle, cycle_length or self._average_cycle_length)
        self._cycles.append(cycle)
        self._cycles = sort_cycles_desc(self._cycles)
        return cycle

    def _create_historical(self, target: date, oldest: Cycle) -> BoundaryResolution:
        length = days_between(target, oldest.start_date)
        cycle = self._new_cycle(target, is_active=False, cycle_length=length)
        logger.info(
            "Backfilled historical cycle %s starting %s (length %d)",
            cycle.cycle_id, target, length,
        )
        return BoundaryResolution(
            cycle=cycle, outcome=ResolutionOutcome.historical, created=cycle
        )

    def _open_new_cycle(self, target: date, newest: Cycle, gap: int) -> BoundaryResolution:
        updated: list[Cycle] = []

        newest.is_active = False
        newest.cycle_length = gap
        self._fertility.apply(newest, gap)
        updated.append(newest)

        is_active = self._looks_current(target)
        if is_active:
            for other in self._cycles:
                if other is not newest and other.is_active:
                    other.is_active = False
                    updated.append(other)

        cycle = self._new_cycle(target, is_active=is_active)
        logger.info(
            "Closed cycle %s at %d days; opened cycle %s starting %s (active=%s)",
            newest.cycle_id, gap, cycle.cycle_id, target, is_active,
        )
        return BoundaryResolution(
            cycle=cycle,
            outcome=ResolutionOutcome.new_cycle,
            created=cycle,
            updated=updated,
        )
