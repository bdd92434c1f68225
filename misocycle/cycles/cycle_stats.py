"""Aggregate cycle statistics.

Averages use a rolling window of the most recent completed cycles (6 by
default) so that old history does not drown out a change in pattern.

Regularity is the inverse coefficient of variation of recent cycle lengths:

    regularity = clamp(1 - stdev / mean, 0, 1)

With fewer than two completed cycles there is nothing to compare, so the
score is 0.5 ("neutral") for exactly one cycle and 0.0 when there is no data
at all.  ``is_regular`` means ``regularity >= 0.7``.
"""

from __future__ import annotations

import logging
import math
import statistics
from dataclasses import dataclass

from misocycle.cycles.config_loader import CycleConfig, get_cycle_config
from misocycle.cycles.domain import Cycle, sort_cycles_desc

logger = logging.getLogger("misocycle.cycles.statistics")


@dataclass
class CycleStatistics:
    """Summary of a user's cycle history.

    Attributes:
        average_cycle_length:  Mean of recent completed cycle lengths.
        average_period_length: Mean of known period lengths.
        regularity_score:      0.0–1.0, higher is more regular.
        is_regular:            regularity_score >= threshold (0.7).
        cycle_length_variance: Sample variance of the recent lengths.
        std_cycle_length:      Sample standard deviation of the recent lengths.
        shortest_cycle:        Shortest recent cycle, if any.
        longest_cycle:         Longest recent cycle, if any.
        cycles_analyzed:       Number of cycle lengths used.
    """

    average_cycle_length: float
    average_period_length: float
    regularity_score: float
    is_regular: bool
    cycle_length_variance: float = 0.0
    std_cycle_length: float = 0.0
    shortest_cycle: int | None = None
    longest_cycle: int | None = None
    cycles_analyzed: int = 0

    @property
    def has_enough_data(self) -> bool:
        return self.cycles_analyzed >= 2

    @property
    def rounded_cycle_length(self) -> int:
        return round(self.average_cycle_length)


class StatisticsEngine:
    """Compute averages and a regularity score from cycle history.

    Pure and deterministic: input order does not matter.
    """

    def __init__(self, config: CycleConfig | None = None) -> None:
        self._config = config or get_cycle_config()

    @property
    def _sc(self):
        return self._config.statistics

    def recent_lengths(self, cycles: list[Cycle]) -> list[int]:
        """Lengths of the most recent completed cycles, newest first."""
        completed = [c for c in sort_cycles_desc(cycles) if c.is_complete]
        return [c.cycle_length for c in completed[: self._sc.rolling_average_cycles]]

    def regularity(self, lengths: list[int]) -> float:
        """Inverse coefficient of variation of ``lengths``, clamped to [0, 1]."""
        if not lengths:
            return self._sc.no_data_regularity
        if len(lengths) < 2:
            return self._sc.single_cycle_regularity
        mean = statistics.mean(lengths)
        if mean <= 0:
            return 0.0
        cv = statistics.stdev(lengths) / mean
        return max(0.0, min(1.0, 1.0 - cv))

    def summarize(
        self,
        cycles: list[Cycle],
        fallback_cycle_length: float | None = None,
        fallback_period_length: float | None = None,
    ) -> CycleStatistics:
        """Summarize ``cycles``.

        Args:
            cycles:                 Any number of cycles, in any order.
            fallback_cycle_length:  Used when no cycle has a length (default 28).
            fallback_period_length: Used when no cycle has a period length (default 5).
        """
        sc = self._sc
        lengths = self.recent_lengths(cycles)
        period_lengths = [c.period_length for c in cycles if c.has_period_length]

        if lengths:
            avg_cycle = statistics.mean(lengths)
        else:
            avg_cycle = float(fallback_cycle_length or sc.default_cycle_length)

        if period_lengths:
            avg_period = statistics.mean(period_lengths)
        else:
            avg_period = float(fallback_period_length or sc.default_period_length)

        variance = statistics.variance(lengths) if len(lengths) > 1 else 0.0
        score = self.regularity(lengths)

        return CycleStatistics(
            average_cycle_length=float(avg_cycle),
            average_period_length=float(avg_period),
            regularity_score=score,
            is_regular=score >= sc.regular_threshold,
            cycle_length_variance=float(variance),
            std_cycle_length=math.sqrt(variance),
            shortest_cycle=min(lengths) if lengths else None,
            longest_cycle=max(lengths) if lengths else None,
            cycles_analyzed=len(lengths),
        )

    def weighted_cycle_length(self, cycles: list[Cycle]) -> int | None:
        """Recency-weighted average length over the rolling window.

        The newest of n cycles gets weight n, the oldest weight 1.  Returns
        None when no cycle has a length.
        """
        lengths = self.recent_lengths(cycles)
        if not lengths:
            return None
        n = len(lengths)
        weights = range(n, 0, -1)
        weighted_sum = sum(length * w for length, w in zip(lengths, weights))
        return round(weighted_sum / sum(range(1, n + 1)))
