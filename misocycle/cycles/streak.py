"""Consecutive-day logging streak.

The streak lives on UserSettings and is changed only by explicit calls from
the logging flow.  With ``streak.lapse_detection`` enabled, a log for today
after a missed day restarts the streak at 1 instead of extending it, and a
second log on the same day is not counted twice.  Backfilled logs never move
the streak.
"""

from __future__ import annotations

import logging
from datetime import date

from misocycle.cycles.config_loader import CycleConfig, get_cycle_config
from misocycle.cycles.date_math import days_between
from misocycle.cycles.domain import UserSettings

logger = logging.getLogger("misocycle.cycles.streak")


class StreakTracker:
    """Maintain ``UserSettings.logging_streak``."""

    def __init__(self, settings: UserSettings, config: CycleConfig | None = None) -> None:
        self._settings = settings
        self._config = config or get_cycle_config()

    @property
    def streak(self) -> int:
        return self._settings.logging_streak

    def increment(self) -> int:
        self._settings.logging_streak += 1
        return self._settings.logging_streak

    def reset(self) -> int:
        self._settings.logging_streak = 0
        return 0

    def is_lapsed(self, today: date) -> bool:
        """True if the last log is older than yesterday."""
        last = self._settings.last_logged_date
        if last is None:
            return self._settings.logging_streak > 0
        return days_between(last, today) > 1

    def effective_streak(self, today: date) -> int:
        """Streak as it should be displayed today, without mutating anything."""
        if self._config.streak.lapse_detection and self.is_lapsed(today):
            return 0
        return self._settings.logging_streak

    def record_log(self, log_date: date, today: date) -> bool:
        """Count a log made on ``log_date``.

        Returns:
            True if the settings changed and need saving.
        """
        if log_date != today:
            return False

        if not self._config.streak.lapse_detection:
            self.increment()
            self._settings.last_logged_date = today
            return True

        if self._settings.last_logged_date == today:
            return False

        if self.is_lapsed(today):
            logger.debug("Streak of %d lapsed; restarting", self._settings.logging_streak)
            self.reset()
        self.increment()
        self._settings.last_logged_date = today
        return True
