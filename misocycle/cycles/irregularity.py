"""Irregularity detection over cycle history and recent logs.

Produces informational alerts, most severe first:

- short / long cycle among the 3 most recent completed cycles
- period running late against the average cycle length
- high variance in recent cycle lengths
- prolonged bleeding in the 2 most recent cycles
- repeated heavy flow in the last 30 days

These are heuristics for the user's attention, not diagnoses.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from enum import Enum, IntEnum

from misocycle.cycles.config_loader import CycleConfig, get_cycle_config
from misocycle.cycles.date_math import add_days, days_between
from misocycle.cycles.domain import Cycle, DailyLog, FlowIntensity, sort_cycles_desc

logger = logging.getLogger("misocycle.cycles.irregularity")


class AlertSeverity(IntEnum):
    info = 0
    mild = 1
    moderate = 2
    concern = 3


class AlertType(str, Enum):
    long_cycle = "long_cycle"
    short_cycle = "short_cycle"
    missed_period = "missed_period"
    high_variance = "high_variance"
    heavy_flow = "heavy_flow"
    prolonged_period = "prolonged_period"


@dataclass
class IrregularityAlert:
    alert_type: AlertType
    severity: AlertSeverity
    title: str
    message: str
    recommendation: str
    detected_date: date


class IrregularityDetector:
    """Flag unusual cycle lengths, late periods, variance and heavy flow."""

    def __init__(self, config: CycleConfig | None = None) -> None:
        self._config = config or get_cycle_config()

    @property
    def _ic(self):
        return self._config.irregularity

    def detect(
        self,
        cycles: list[Cycle],
        current_cycle: Cycle | None,
        recent_logs: list[DailyLog],
        today: date,
    ) -> list[IrregularityAlert]:
        """Run every check and return alerts sorted by severity, highest first."""
        history = sort_cycles_desc(cycles)
        alerts: list[IrregularityAlert] = []

        alerts.extend(self._check_cycle_lengths(history))

        if current_cycle is not None:
            missed = self._check_missed_period(current_cycle, history, today)
            if missed:
                alerts.append(missed)

        variance = self._check_cycle_variance(history, today)
        if variance:
            alerts.append(variance)

        alerts.extend(self._check_period_characteristics(history, recent_logs, today))

        alerts.sort(key=lambda a: a.severity, reverse=True)
        if alerts:
            logger.debug("Detected %d irregularity alert(s)", len(alerts))
        return alerts

    def needs_attention(self, current_cycle: Cycle | None, history: list[Cycle], today: date) -> bool:
        """True if the period is more than ``missed_period_days`` late."""
        if current_cycle is None:
            return False
        expected = add_days(current_cycle.start_date, self.average_cycle_length(history))
        return days_between(expected, today) > self._ic.missed_period_days

    def average_cycle_length(self, cycles: list[Cycle]) -> int:
        """Whole-day mean of up to 6 recent completed cycles (28 if none)."""
        completed = [c for c in sort_cycles_desc(cycles) if c.is_complete][:6]
        if not completed:
            return self._config.statistics.default_cycle_length
        return sum(c.cycle_length for c in completed) // len(completed)

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def _check_cycle_lengths(self, history: list[Cycle]) -> list[IrregularityAlert]:
        ic = self._ic
        alerts: list[IrregularityAlert] = []
        for cycle in history[:3]:
            if not cycle.is_complete:
                continue
            length = cycle.cycle_length
            if length < ic.normal_cycle_min_days:
                alerts.append(IrregularityAlert(
                    alert_type=AlertType.short_cycle,
                    severity=AlertSeverity.moderate if length < 18 else AlertSeverity.mild,
                    title="Short Cycle Detected",
                    message=(
                        f"Your cycle was {length} days, which is shorter than typical "
                        f"({ic.normal_cycle_min_days}-{ic.normal_cycle_max_days} days)."
                    ),
                    recommendation=(
                        "Short cycles occasionally happen due to stress, travel, or hormonal "
                        "changes. If this continues, consider tracking more details or "
                        "consulting a healthcare provider."
                    ),
                    detected_date=cycle.start_date,
                ))
            elif length > ic.normal_cycle_max_days:
                alerts.append(IrregularityAlert(
                    alert_type=AlertType.long_cycle,
                    severity=AlertSeverity.moderate if length > 45 else AlertSeverity.mild,
                    title="Long Cycle Detected",
                    message=(
                        f"Your cycle was {length} days, which is longer than typical "
                        f"({ic.normal_cycle_min_days}-{ic.normal_cycle_max_days} days)."
                    ),
                    recommendation=(
                        "Longer cycles can be normal for some people. Stress, weight changes, "
                        "or exercise can affect cycle length. Monitor for patterns."
                    ),
                    detected_date=cycle.start_date,
                ))
        return alerts

    def _check_missed_period(
        self, current_cycle: Cycle, history: list[Cycle], today: date
    ) -> IrregularityAlert | None:
        expected = add_days(current_cycle.start_date, self.average_cycle_length(history))
        days_late = days_between(expected, today)
        if days_late <= self._ic.missed_period_days:
            return None
        return IrregularityAlert(
            alert_type=AlertType.missed_period,
            severity=AlertSeverity.moderate if days_late > 14 else AlertSeverity.mild,
            title="Period May Be Late",
            message=(
                f"Your period is about {days_late} days later than expected "
                "based on your history."
            ),
            recommendation=(
                "Late periods can happen due to stress, lifestyle changes, or other factors. "
                "If you're sexually active and this is unusual for you, consider taking a "
                "pregnancy test."
            ),
            detected_date=today,
        )

    def _check_cycle_variance(self, history: list[Cycle], today: date) -> IrregularityAlert | None:
        completed = [c for c in history if c.is_complete]
        if len(completed) < 3:
            return None

        lengths = [c.cycle_length for c in completed[:6]]
        mean = sum(lengths) / len(lengths)
        # Population deviation here, unlike the sample deviation in statistics
        std_dev = math.sqrt(sum((x - mean) ** 2 for x in lengths) / len(lengths))
        if std_dev <= self._ic.high_variance_days:
            return None
        return IrregularityAlert(
            alert_type=AlertType.high_variance,
            severity=AlertSeverity.moderate if std_dev > 10 else AlertSeverity.mild,
            title="Irregular Cycle Pattern",
            message=(
                f"Your cycle lengths vary by about {int(std_dev)} days on average, "
                "which suggests some irregularity."
            ),
            recommendation=(
                "Some variation is normal, but consistent irregularity might be worth "
                "discussing with a healthcare provider, especially if it's new."
            ),
            detected_date=today,
        )

    def _check_period_characteristics(
        self, history: list[Cycle], logs: list[DailyLog], today: date
    ) -> list[IrregularityAlert]:
        ic = self._ic
        alerts: list[IrregularityAlert] = []

        for cycle in history[:2]:
            if not cycle.has_period_length:
                continue
            if cycle.period_length > ic.normal_period_max_days:
                alerts.append(IrregularityAlert(
                    alert_type=AlertType.prolonged_period,
                    severity=(
                        AlertSeverity.moderate if cycle.period_length > 10 else AlertSeverity.mild
                    ),
                    title="Longer Period Duration",
                    message=(
                        f"Your period lasted {cycle.period_length} days, which is longer "
                        f"than typical (2-{ic.normal_period_max_days} days)."
                    ),
                    recommendation=(
                        "Occasional longer periods can be normal. If this is a new pattern or "
                        "accompanied by heavy bleeding, consider consulting a healthcare provider."
                    ),
                    detected_date=cycle.start_date,
                ))

        recent_heavy = [
            log for log in logs
            if FlowIntensity.from_value(log.flow_intensity) is FlowIntensity.heavy
            and 0 <= days_between(log.log_date, today) <= ic.heavy_flow_lookback_days
        ]
        if len(recent_heavy) >= ic.heavy_flow_min_days:
            alerts.append(IrregularityAlert(
                alert_type=AlertType.heavy_flow,
                severity=AlertSeverity.info,
                title="Heavy Flow Days Noted",
                message="You've logged several days of heavy flow recently.",
                recommendation=(
                    "Some heavy days are normal. Stay hydrated and rest when needed. If you're "
                    "soaking through protection hourly, consider consulting a healthcare provider."
                ),
                detected_date=today,
            ))

        return alerts
