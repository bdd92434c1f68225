"""Load, validate, and hot-reload the cycle engine configuration.

The config lives in ``cycle_config.yaml`` alongside this module.  At startup
it is loaded once and cached.  Call ``reload_cycle_config()`` to re-read from
disk after an admin update — no restart required.

Usage::

    from misocycle.cycles.config_loader import get_cycle_config

    config = get_cycle_config()
    config.boundary.minimum_inter_cycle_gap_days   # 18
    config.statistics.rolling_average_cycles       # 6
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("misocycle.cycles.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "cycle_config.yaml"


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class BoundaryConfig:
    """Thresholds used when attributing a logged day to a cycle."""

    period_attribution_window_days: int = 7
    minimum_inter_cycle_gap_days: int = 18
    active_window_days: int = 7
    max_plausible_cycle_days: int = 60
    max_period_days: int = 14
    max_future_log_days: int = 0


@dataclass
class FertilityConfig:
    """Ovulation / fertile window settings."""

    luteal_phase_days: int = 14
    default_cycle_length: int = 28


@dataclass
class StatisticsConfig:
    """Aggregate statistics settings."""

    rolling_average_cycles: int = 6
    default_cycle_length: int = 28
    default_period_length: int = 5
    regular_threshold: float = 0.7
    single_cycle_regularity: float = 0.5
    no_data_regularity: float = 0.0


@dataclass
class CalendarConfig:
    """Calendar classification settings."""

    predicted_period_days: int = 5


@dataclass
class PredictionConfig:
    """Next-period prediction settings."""

    default_margin_days: int = 3
    margin_sigma_multiplier: float = 1.5
    recent_log_limit: int = 90


@dataclass
class IrregularityConfig:
    """Thresholds for irregularity alerts."""

    normal_cycle_min_days: int = 21
    normal_cycle_max_days: int = 35
    normal_period_max_days: int = 7
    high_variance_days: float = 7.0
    missed_period_days: int = 7
    heavy_flow_min_days: int = 3
    heavy_flow_lookback_days: int = 30


@dataclass
class StreakConfig:
    """Logging streak settings."""

    lapse_detection: bool = True


@dataclass
class CycleConfig:
    """Complete, validated cycle engine configuration.

    This is the single in-memory representation of cycle_config.yaml.
    The resolver, calculators, and orchestrator all read from this object.
    """

    version: str
    boundary: BoundaryConfig = field(default_factory=BoundaryConfig)
    fertility: FertilityConfig = field(default_factory=FertilityConfig)
    statistics: StatisticsConfig = field(default_factory=StatisticsConfig)
    calendar: CalendarConfig = field(default_factory=CalendarConfig)
    prediction: PredictionConfig = field(default_factory=PredictionConfig)
    irregularity: IrregularityConfig = field(default_factory=IrregularityConfig)
    streak: StreakConfig = field(default_factory=StreakConfig)
    _raw: dict = field(default_factory=dict, repr=False)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when cycle_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Cycle config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> CycleConfig:
    """Validate the raw YAML dict and construct a CycleConfig.

    Missing sections and keys fall back to the dataclass defaults.

    Raises:
        ConfigValidationError: If a value has the wrong type or is out of range.
    """
    errors: list[str] = []

    def _section(name: str) -> dict:
        value = raw.get(name) or {}
        if not isinstance(value, dict):
            errors.append(f"'{name}' must be a mapping")
            return {}
        return value

    def _int(section: dict, key: str, default: int, where: str, minimum: int = 1) -> int:
        val = section.get(key, default)
        try:
            out = int(val)
        except (TypeError, ValueError):
            errors.append(f"{where}.{key} must be an integer, got {val!r}")
            return default
        if out < minimum:
            errors.append(f"{where}.{key} = {out} must be >= {minimum}")
        return out

    def _float(section: dict, key: str, default: float, where: str) -> float:
        val = section.get(key, default)
        try:
            return float(val)
        except (TypeError, ValueError):
            errors.append(f"{where}.{key} must be a number, got {val!r}")
            return default

    version = str(raw.get("version", "1.0"))

    # ── Boundary resolution ──
    b = _section("boundary")
    boundary = BoundaryConfig(
        period_attribution_window_days=_int(b, "period_attribution_window_days", 7, "boundary", 0),
        minimum_inter_cycle_gap_days=_int(b, "minimum_inter_cycle_gap_days", 18, "boundary"),
        active_window_days=_int(b, "active_window_days", 7, "boundary", 0),
        max_plausible_cycle_days=_int(b, "max_plausible_cycle_days", 60, "boundary"),
        max_period_days=_int(b, "max_period_days", 14, "boundary"),
        max_future_log_days=_int(b, "max_future_log_days", 0, "boundary", 0),
    )
    if boundary.period_attribution_window_days >= boundary.minimum_inter_cycle_gap_days:
        errors.append(
            "boundary.period_attribution_window_days must be smaller than "
            "boundary.minimum_inter_cycle_gap_days"
        )

    # ── Fertility ──
    f = _section("fertility")
    fertility = FertilityConfig(
        luteal_phase_days=_int(f, "luteal_phase_days", 14, "fertility"),
        default_cycle_length=_int(f, "default_cycle_length", 28, "fertility"),
    )

    # ── Statistics ──
    s = _section("statistics")
    statistics_cfg = StatisticsConfig(
        rolling_average_cycles=_int(s, "rolling_average_cycles", 6, "statistics"),
        default_cycle_length=_int(s, "default_cycle_length", 28, "statistics"),
        default_period_length=_int(s, "default_period_length", 5, "statistics"),
        regular_threshold=_float(s, "regular_threshold", 0.7, "statistics"),
        single_cycle_regularity=_float(s, "single_cycle_regularity", 0.5, "statistics"),
        no_data_regularity=_float(s, "no_data_regularity", 0.0, "statistics"),
    )
    for key in ("regular_threshold", "single_cycle_regularity", "no_data_regularity"):
        value = getattr(statistics_cfg, key)
        if not (0.0 <= value <= 1.0):
            errors.append(f"statistics.{key} = {value} is out of range [0.0, 1.0]")

    # ── Calendar ──
    c = _section("calendar")
    calendar = CalendarConfig(
        predicted_period_days=_int(c, "predicted_period_days", 5, "calendar"),
    )

    # ── Prediction ──
    p = _section("prediction")
    prediction = PredictionConfig(
        default_margin_days=_int(p, "default_margin_days", 3, "prediction", 0),
        margin_sigma_multiplier=_float(p, "margin_sigma_multiplier", 1.5, "prediction"),
        recent_log_limit=_int(p, "recent_log_limit", 90, "prediction"),
    )

    # ── Irregularity ──
    i = _section("irregularity")
    irregularity = IrregularityConfig(
        normal_cycle_min_days=_int(i, "normal_cycle_min_days", 21, "irregularity"),
        normal_cycle_max_days=_int(i, "normal_cycle_max_days", 35, "irregularity"),
        normal_period_max_days=_int(i, "normal_period_max_days", 7, "irregularity"),
        high_variance_days=_float(i, "high_variance_days", 7.0, "irregularity"),
        missed_period_days=_int(i, "missed_period_days", 7, "irregularity", 0),
        heavy_flow_min_days=_int(i, "heavy_flow_min_days", 3, "irregularity"),
        heavy_flow_lookback_days=_int(i, "heavy_flow_lookback_days", 30, "irregularity"),
    )
    if irregularity.normal_cycle_min_days > irregularity.normal_cycle_max_days:
        errors.append("irregularity.normal_cycle_min_days exceeds normal_cycle_max_days")

    # ── Streak ──
    st = _section("streak")
    streak = StreakConfig(lapse_detection=bool(st.get("lapse_detection", True)))

    if errors:
        raise ConfigValidationError(
            f"cycle_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return CycleConfig(
        version=version,
        boundary=boundary,
        fertility=fertility,
        statistics=statistics_cfg,
        calendar=calendar,
        prediction=prediction,
        irregularity=irregularity,
        streak=streak,
        _raw=raw,
    )


def load_cycle_config(path: Path | None = None) -> CycleConfig:
    """Load and validate the cycle config from disk.

    Args:
        path: Override path to YAML. Uses the bundled cycle_config.yaml by default.

    Returns:
        Validated CycleConfig instance.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded cycle config v%s from %s", config.version, target)
    return config


def config_from_dict(raw: dict[str, Any]) -> CycleConfig:
    """Build a validated config from an in-memory mapping (tests, overrides)."""
    return _validate_and_build(raw)


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: CycleConfig | None = None
_config_lock = threading.Lock()


def get_cycle_config() -> CycleConfig:
    """Return the global CycleConfig singleton, loading it on first call.

    Thread-safe.  Use ``reload_cycle_config()`` to refresh after YAML changes.
    """
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_cycle_config()
    return _config


def reload_cycle_config(path: Path | None = None) -> CycleConfig:
    """Reload the cycle config from disk and replace the global singleton.

    If validation fails, the old config is retained and the error is re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_cycle_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info(
        "Reloaded cycle config: %s → %s",
        old_version,
        new_config.version,
    )
    return new_config
