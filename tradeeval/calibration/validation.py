"""Retroactive validation — does the curve separate winners from losers?

Re-scores every outcome's confidence through the curve and compares the
raw and calibrated confidence statistics over the same outcomes.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Sequence

from tradeeval.calibration.curve import CalibrationData, apply_calibration
from tradeeval.eval import stats
from tradeeval.events import TradeOutcome

MIN_CORRELATION_IMPROVEMENT = 0.10


@dataclass(frozen=True)
class ConfidenceMetrics:
    correlation: float
    high_win_rate: float
    low_win_rate: float

    @property
    def gap(self) -> float:
        return self.high_win_rate - self.low_win_rate


@dataclass(frozen=True)
class ValidationResult:
    market: str
    sample_size: int
    raw: ConfidenceMetrics
    calibrated: ConfidenceMetrics
    issues: list[str] = field(default_factory=list)

    @property
    def correlation_improvement(self) -> float:
        return self.calibrated.correlation - self.raw.correlation

    @property
    def gap_improvement(self) -> float:
        return self.calibrated.gap - self.raw.gap

    @property
    def passed(self) -> bool:
        return not self.issues

    def to_dict(self) -> dict[str, Any]:
        return {
            "market": self.market,
            "sample_size": self.sample_size,
            "raw": {**asdict(self.raw), "gap": self.raw.gap},
            "calibrated": {**asdict(self.calibrated), "gap": self.calibrated.gap},
            "correlation_improvement": self.correlation_improvement,
            "gap_improvement": self.gap_improvement,
            "passed": self.passed,
            "issues": list(self.issues),
        }


def _metrics(
    confidences: Sequence[float],
    outcomes: Sequence[TradeOutcome],
    threshold: float,
) -> ConfidenceMetrics:
    wins = [o.is_winner for o in outcomes]
    high, low = stats.split_win_rates(confidences, wins, threshold)
    return ConfidenceMetrics(
        correlation=stats.pearson_correlation(confidences, [o.pnl_percent for o in outcomes]),
        high_win_rate=high,
        low_win_rate=low,
    )


def validate_calibration(
    outcomes: Sequence[TradeOutcome],
    calibration: CalibrationData,
    high_threshold: float = 0.7,
    *,
    min_correlation_improvement: float = MIN_CORRELATION_IMPROVEMENT,
) -> ValidationResult:
    raw_conf = [o.confidence for o in outcomes]
    cal_conf = [apply_calibration(c, calibration) for c in raw_conf]
    raw = _metrics(raw_conf, outcomes, high_threshold)
    calibrated = _metrics(cal_conf, outcomes, high_threshold)

    issues: list[str] = []
    improvement = calibrated.correlation - raw.correlation
    if improvement < min_correlation_improvement:
        issues.append(
            f"Correlation improvement ({improvement:.3f}) is below target "
            f"({min_correlation_improvement:.2f})"
        )
    if calibrated.high_win_rate <= calibrated.low_win_rate:
        issues.append("Calibrated high confidence win rate not exceeding low confidence")
    if calibrated.gap - raw.gap < 0:
        issues.append("Win rate gap decreased after calibration")

    return ValidationResult(
        market=calibration.market,
        sample_size=len(outcomes),
        raw=raw,
        calibrated=calibrated,
        issues=issues,
    )
