"""Calibration config — tunable constants of the outcome extraction.

Defaults live in configs/calibration.yml. Overrides for a single run are
merged with ``merge_overrides``; unknown keys are logged and ignored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping

import yaml

logger = logging.getLogger(__name__)

_CALIBRATION_YML = Path(__file__).resolve().parents[2] / "configs" / "calibration.yml"


@dataclass(frozen=True)
class CalibrationConfig:
    """Thresholds are percentages except the confidence fields."""

    opportunity_threshold: float = 0.5
    min_confidence_for_evaluation: float = 0.5
    hold_penalty_weight: float = 1.0
    close_too_early_threshold: float = 0.5
    close_penalty_weight: float = 1.0
    high_confidence_threshold: float = 0.7
    n_buckets: int = 10
    min_events: int = 10
    max_age_days: float = 7

    def __post_init__(self):
        if self.opportunity_threshold < 0:
            raise ValueError("opportunity_threshold must be >= 0")
        if self.close_too_early_threshold < 0:
            raise ValueError("close_too_early_threshold must be >= 0")
        if not 0.0 <= self.min_confidence_for_evaluation <= 1.0:
            raise ValueError("min_confidence_for_evaluation must be in [0, 1]")
        if not 0.0 <= self.high_confidence_threshold <= 1.0:
            raise ValueError("high_confidence_threshold must be in [0, 1]")
        if self.hold_penalty_weight < 0 or self.close_penalty_weight < 0:
            raise ValueError("penalty weights must be >= 0")
        if self.n_buckets < 1:
            raise ValueError("n_buckets must be >= 1")
        if self.min_events < 1:
            raise ValueError("min_events must be >= 1")
        if self.max_age_days <= 0:
            raise ValueError("max_age_days must be > 0")


_CONFIG_FIELDS = {f.name for f in fields(CalibrationConfig)}


def load_calibration_config(path: Path | str | None = None) -> CalibrationConfig:
    """Load CalibrationConfig from YAML, falling back to defaults if absent."""
    p = Path(path) if path is not None else _CALIBRATION_YML
    if not p.exists():
        if path is not None:
            raise FileNotFoundError(f"Calibration config not found: {p}")
        logger.warning("No calibration config at %s; using defaults", p)
        return CalibrationConfig()

    with open(p, encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Calibration config must be a mapping, got {type(raw).__name__}")

    unknown = sorted(k for k in raw if k not in _CONFIG_FIELDS)
    if unknown:
        logger.warning("Calibration config keys ignored (unknown): %s", ", ".join(unknown))
    return CalibrationConfig(**{k: v for k, v in raw.items() if k in _CONFIG_FIELDS})


def merge_overrides(
    base: CalibrationConfig,
    overrides: Mapping[str, Any] | None,
) -> CalibrationConfig:
    """Return a new config with known override fields applied."""
    if not overrides:
        return base

    kwargs = {f.name: getattr(base, f.name) for f in fields(base)}
    applied: list[str] = []
    ignored: list[str] = []
    for key, val in overrides.items():
        if key in _CONFIG_FIELDS:
            kwargs[key] = val
            applied.append(key)
        else:
            ignored.append(key)

    if applied:
        logger.info(
            "Calibration overrides applied: %s",
            ", ".join(f"{k}={overrides[k]}" for k in applied),
        )
    if ignored:
        logger.warning("Calibration overrides ignored (unknown fields): %s", ", ".join(ignored))

    return CalibrationConfig(**kwargs)
