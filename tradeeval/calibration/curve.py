"""Calibration curve — points, persisted record and the applier.

The curve is piecewise linear over raw confidence in [0, 1]. It always
starts at (0, 0). When the last calibrated bucket does not reach 1.0, a
terminal point at 1.0 carries the previous calibrated value forward instead
of extrapolating from data.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Sequence

from tradeeval.calibration.isotonic import ConfidenceBucket
from tradeeval.errors import CalibrationApplicationError
from tradeeval.events import coerce_datetime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalibrationPoint:
    raw_confidence: float
    calibrated_confidence: float

    def to_dict(self) -> dict[str, float]:
        return {
            "raw_confidence": self.raw_confidence,
            "calibrated_confidence": self.calibrated_confidence,
        }


@dataclass(frozen=True)
class CalibrationData:
    """A fitted curve plus the statistics of the window it was fit on.

    Win rates are fractions in [0, 1]. ``computed_at`` is set by the store
    when the record is saved or loaded.
    """

    market: str
    window_days: int
    points: tuple[CalibrationPoint, ...]
    sample_size: int
    correlation: float
    high_conf_win_rate: float
    low_conf_win_rate: float
    computed_at: datetime | None = None
    record_id: int | None = field(default=None, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "market": self.market,
            "window_days": self.window_days,
            "points": [p.to_dict() for p in self.points],
            "sample_size": self.sample_size,
            "correlation": self.correlation,
            "high_conf_win_rate": self.high_conf_win_rate,
            "low_conf_win_rate": self.low_conf_win_rate,
            "computed_at": self.computed_at.isoformat() if self.computed_at else None,
            "record_id": self.record_id,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> CalibrationData:
        computed_at = d.get("computed_at")
        return cls(
            market=str(d["market"]),
            window_days=int(d["window_days"]),
            points=points_from_list(d.get("points") or []),
            sample_size=int(d["sample_size"]),
            correlation=float(d["correlation"]),
            high_conf_win_rate=float(d["high_conf_win_rate"]),
            low_conf_win_rate=float(d["low_conf_win_rate"]),
            computed_at=coerce_datetime(computed_at) if computed_at is not None else None,
            record_id=d.get("record_id"),
        )


def points_from_list(raw: Sequence[Any]) -> tuple[CalibrationPoint, ...]:
    """Decode stored points.

    Accepts snake_case or camelCase keys. Raises CalibrationApplicationError
    for entries that are not mappings or lack a numeric value.
    """
    points: list[CalibrationPoint] = []
    for i, item in enumerate(raw):
        if not isinstance(item, Mapping):
            raise CalibrationApplicationError(f"Calibration point {i} is not a mapping: {item!r}")
        try:
            rc = item["raw_confidence"] if "raw_confidence" in item else item["rawConfidence"]
            cc = (
                item["calibrated_confidence"] if "calibrated_confidence" in item
                else item["calibratedConfidence"]
            )
            points.append(CalibrationPoint(float(rc), float(cc)))
        except (KeyError, TypeError, ValueError) as exc:
            raise CalibrationApplicationError(
                f"Malformed calibration point {i}: {item!r}"
            ) from exc
    return tuple(points)


def buckets_to_points(buckets: Sequence[ConfidenceBucket]) -> list[CalibrationPoint]:
    """Curve through (0, 0), each bucket midpoint, and a terminal point at 1.0."""
    points = [CalibrationPoint(0.0, 0.0)]
    for bucket in buckets:
        points.append(CalibrationPoint(
            raw_confidence=bucket.midpoint,
            calibrated_confidence=_clamp(bucket.win_rate),
        ))
    last = points[-1]
    if last.raw_confidence < 1.0:
        points.append(CalibrationPoint(1.0, _clamp(last.calibrated_confidence)))
    return points


# ---------------------------------------------------------------------------
# Applier
# ---------------------------------------------------------------------------

def _clamp(x: float) -> float:
    return max(0.0, min(1.0, x))


def _coords(point: Any) -> tuple[float, float]:
    try:
        return float(point.raw_confidence), float(point.calibrated_confidence)
    except (AttributeError, TypeError, ValueError) as exc:
        raise CalibrationApplicationError(f"Malformed calibration point: {point!r}") from exc


def apply_calibration(raw: float, calibration: CalibrationData) -> float:
    """Map a raw confidence through the calibration curve.

    Raw is clamped to [0, 1]. With no points it is returned as is, with one
    point that point's value is returned. Otherwise the first bracketing
    pair is interpolated, falling back to the outer points.
    """
    score = _clamp(raw)
    coords = [_coords(p) for p in calibration.points]

    if not coords:
        return score
    if len(coords) == 1:
        return coords[0][1]

    lo, hi = coords[0], coords[-1]
    for a, b in zip(coords, coords[1:]):
        if a[0] <= score <= b[0]:
            lo, hi = a, b
            break

    if score == lo[0]:
        return lo[1]
    if score == hi[0]:
        return hi[1]

    span = hi[0] - lo[0]
    if span == 0:
        return lo[1]
    return _clamp(lo[1] + (score - lo[0]) / span * (hi[1] - lo[1]))


def is_stale(
    computed_at: datetime | None,
    max_age_days: float,
    now: datetime | None = None,
) -> bool:
    """True when there is no timestamp or it is older than ``max_age_days``."""
    if computed_at is None:
        return True
    now = now or datetime.now(timezone.utc)
    if computed_at.tzinfo is None:
        computed_at = computed_at.replace(tzinfo=timezone.utc)
    return now - computed_at > timedelta(days=max_age_days)
