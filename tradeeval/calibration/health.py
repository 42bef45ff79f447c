"""Calibration health — classify the latest calibration of a market.

Rules are evaluated worst first:

- no calibration                                    -> MISSING
- correlation below the floor, or older than max    -> NEEDS_RECALIBRATION
- correlation within the warning band, or aging     -> WARNING
- otherwise                                         -> HEALTHY

A calibration without a timestamp has an unknown age and needs
recalibration.
"""

from __future__ import annotations

import enum
import math
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

from tradeeval.calibration.curve import CalibrationData


class Health(enum.Enum):
    HEALTHY = "HEALTHY"
    WARNING = "WARNING"
    NEEDS_RECALIBRATION = "NEEDS_RECALIBRATION"
    MISSING = "MISSING"


@dataclass(frozen=True)
class HealthThresholds:
    min_correlation: float = 0.1
    warning_correlation: float = 0.2
    warning_age_days: int = 7
    max_age_days: int = 14

    def __post_init__(self):
        if self.warning_correlation < self.min_correlation:
            raise ValueError("warning_correlation must be >= min_correlation")
        if self.max_age_days < self.warning_age_days:
            raise ValueError("max_age_days must be >= warning_age_days")


@dataclass(frozen=True)
class CalibrationStatus:
    market: str
    has_calibration: bool
    health: Health
    recommendation: str
    age_days: int | None = None
    sample_size: int | None = None
    correlation: float | None = None
    high_conf_win_rate: float | None = None
    low_conf_win_rate: float | None = None
    win_rate_gap: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "market": self.market,
            "has_calibration": self.has_calibration,
            "health": self.health.value,
            "recommendation": self.recommendation,
            "age_days": self.age_days,
            "sample_size": self.sample_size,
            "correlation": self.correlation,
            "high_conf_win_rate": self.high_conf_win_rate,
            "low_conf_win_rate": self.low_conf_win_rate,
            "win_rate_gap": self.win_rate_gap,
        }


def _age_days(computed_at: datetime | None, now: datetime) -> int | None:
    if computed_at is None:
        return None
    if computed_at.tzinfo is None:
        computed_at = computed_at.replace(tzinfo=timezone.utc)
    return math.floor((now - computed_at).total_seconds() / 86400)


def classify(
    correlation: float,
    age_days: int | None,
    thresholds: HealthThresholds = HealthThresholds(),
) -> Health:
    t = thresholds
    if age_days is None or correlation < t.min_correlation or age_days > t.max_age_days:
        return Health.NEEDS_RECALIBRATION
    if (
        t.min_correlation <= correlation <= t.warning_correlation
        or t.warning_age_days <= age_days <= t.max_age_days
    ):
        return Health.WARNING
    return Health.HEALTHY


_RECOMMENDATIONS = {
    Health.MISSING: "No calibration; run: calibrate --market {market}",
    Health.NEEDS_RECALIBRATION: "Recalibrate now: calibrate --market {market}",
    Health.WARNING: "Consider recalibrating soon: calibrate --market {market}",
    Health.HEALTHY: "Calibration is in good health",
}


def evaluate_health(
    market: str,
    calibration: CalibrationData | None,
    *,
    now: datetime | None = None,
    thresholds: HealthThresholds = HealthThresholds(),
) -> CalibrationStatus:
    """Build the health status of ``market`` from its latest calibration."""
    if calibration is None:
        return CalibrationStatus(
            market=market,
            has_calibration=False,
            health=Health.MISSING,
            recommendation=_RECOMMENDATIONS[Health.MISSING].format(market=market),
        )

    now = now or datetime.now(timezone.utc)
    age = _age_days(calibration.computed_at, now)
    health = classify(calibration.correlation, age, thresholds)
    return CalibrationStatus(
        market=market,
        has_calibration=True,
        health=health,
        recommendation=_RECOMMENDATIONS[health].format(market=market),
        age_days=age,
        sample_size=calibration.sample_size,
        correlation=calibration.correlation,
        high_conf_win_rate=calibration.high_conf_win_rate,
        low_conf_win_rate=calibration.low_conf_win_rate,
        win_rate_gap=calibration.high_conf_win_rate - calibration.low_conf_win_rate,
    )


def summarize(statuses: Iterable[CalibrationStatus]) -> dict[str, int]:
    """Count of markets per health level, every level present."""
    counts = Counter(s.health for s in statuses)
    return {h.value: counts.get(h, 0) for h in Health}
