"""Backtest defaults loaded from configs/backtest.yml."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from pathlib import Path

import yaml

from tradeeval.backtest.simulator import (
    DEPRECATED_HOLD_MODE,
    HIGH_CONFIDENCE_THRESHOLD,
    HOLD_MODES,
    BacktestSimulator,
)

logger = logging.getLogger(__name__)

_BACKTEST_YML = Path(__file__).resolve().parents[2] / "configs" / "backtest.yml"


@dataclass(frozen=True)
class BacktestConfig:
    default_size_usd: float = 1000.0
    capital_base: float = 0.0
    hold_mode: str = DEPRECATED_HOLD_MODE
    high_confidence_threshold: float = HIGH_CONFIDENCE_THRESHOLD
    max_suggestions: int = 6
    window_days: int | None = None

    def __post_init__(self):
        if self.default_size_usd <= 0:
            raise ValueError("default_size_usd must be > 0")
        if self.capital_base < 0:
            raise ValueError("capital_base must be >= 0")
        if self.hold_mode not in HOLD_MODES:
            raise ValueError(f"hold_mode must be one of {HOLD_MODES}, got '{self.hold_mode}'")
        if self.max_suggestions < 0:
            raise ValueError("max_suggestions must be >= 0")
        if self.window_days is not None and self.window_days <= 0:
            raise ValueError("window_days must be > 0")

    def simulator(self) -> BacktestSimulator:
        return BacktestSimulator(
            self.default_size_usd,
            high_confidence_threshold=self.high_confidence_threshold,
            max_suggestions=self.max_suggestions,
        )


_CONFIG_FIELDS = {f.name for f in fields(BacktestConfig)}


def load_backtest_config(path: Path | str | None = None) -> BacktestConfig:
    """Load BacktestConfig from YAML; defaults when the default file is missing."""
    p = Path(path) if path is not None else _BACKTEST_YML
    if not p.exists():
        if path is not None:
            raise FileNotFoundError(f"Backtest config not found: {p}")
        return BacktestConfig()

    with open(p, encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    unknown = sorted(k for k in raw if k not in _CONFIG_FIELDS)
    if unknown:
        logger.warning("Backtest config keys ignored (unknown): %s", ", ".join(unknown))
    return BacktestConfig(**{k: v for k, v in raw.items() if k in _CONFIG_FIELDS})
