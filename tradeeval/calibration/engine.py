"""Calibration engine — fit a confidence -> win-probability curve.

``compute_calibration`` is pure: outcomes are extracted from the history,
bucketed by confidence, made monotonic with isotonic regression and turned
into a piecewise-linear curve. ``CalibrationService`` adds the store seam
and the fallback policy used at recommendation time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Sequence

from tradeeval.calibration.config import CalibrationConfig
from tradeeval.calibration.curve import (
    CalibrationData,
    apply_calibration,
    buckets_to_points,
    is_stale,
)
from tradeeval.calibration.isotonic import create_buckets, isotonic_regression
from tradeeval.calibration.outcomes import extract_outcomes
from tradeeval.calibration.validation import ValidationResult, validate_calibration
from tradeeval.errors import (
    CalibrationApplicationError,
    InsufficientDataError,
    StorageError,
)
from tradeeval.eval import stats
from tradeeval.events import RecommendationEvent
from tradeeval.store.base import RecommendationStore

logger = logging.getLogger(__name__)

def compute_calibration(
    history: Sequence[RecommendationEvent],
    market: str,
    window_days: int,
    config: CalibrationConfig | None = None,
) -> CalibrationData:
    """Fit a calibration curve on one market's ascending history.

    Raises:
        InsufficientDataError: fewer than ``config.min_events`` events. Every
            ``Action`` qualifies; unknown actions are rejected when
            ``RecommendationEvent`` is built.
    """
    cfg = config or CalibrationConfig()
    events = list(history)
    if len(events) < cfg.min_events:
        raise InsufficientDataError(
            f"Insufficient data: need at least {cfg.min_events} recommendations "
            f"for {market}, found {len(events)}",
            required=cfg.min_events,
            found=len(events),
        )

    outcomes = extract_outcomes(events, cfg)
    buckets = isotonic_regression(create_buckets(outcomes, cfg.n_buckets))
    points = buckets_to_points(buckets)

    confidences = [o.confidence for o in outcomes]
    high, low = stats.split_win_rates(
        confidences, [o.is_winner for o in outcomes], cfg.high_confidence_threshold,
    )
    return CalibrationData(
        market=market,
        window_days=window_days,
        points=tuple(points),
        sample_size=len(outcomes),
        correlation=stats.pearson_correlation(confidences, [o.pnl_percent for o in outcomes]),
        high_conf_win_rate=high,
        low_conf_win_rate=low,
    )


@dataclass(frozen=True)
class CalibratedScore:
    """Result of calibrating one raw score.

    ``fallback_reason`` is set whenever the raw score was used instead.
    """

    value: float
    raw: float
    calibrated: bool
    fallback_reason: str | None = None
    calibration_id: int | None = None


class CalibrationService:
    """Compute, persist and apply calibrations through a store."""

    DEFAULT_WINDOW_DAYS = 60

    def __init__(
        self,
        store: RecommendationStore,
        config: CalibrationConfig | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self.config = config or CalibrationConfig()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _history(self, market: str, window_days: int) -> list[RecommendationEvent]:
        since = self._clock() - timedelta(days=window_days)
        return self._store.get_events(market, since=since)

    def compute(self, market: str, window_days: int = DEFAULT_WINDOW_DAYS) -> CalibrationData:
        market = market.upper()
        return compute_calibration(
            self._history(market, window_days), market, window_days, self.config,
        )

    def compute_and_save(
        self,
        market: str,
        window_days: int = DEFAULT_WINDOW_DAYS,
        *,
        dry_run: bool = False,
    ) -> CalibrationData:
        calibration = self.compute(market, window_days)
        if dry_run:
            logger.info(
                "Dry run: calibration for %s not saved (%d outcomes, r=%.3f)",
                calibration.market, calibration.sample_size, calibration.correlation,
            )
            return calibration

        record_id = self._store.save_calibration(calibration)
        logger.info(
            "Saved calibration %s for %s (%d outcomes, %d points, r=%.3f)",
            record_id, calibration.market, calibration.sample_size,
            len(calibration.points), calibration.correlation,
        )
        return replace(calibration, record_id=record_id, computed_at=self._clock())

    def latest(self, market: str) -> CalibrationData | None:
        return self._store.get_latest_calibration(market.upper())

    def is_stale(self, market: str, max_age_days: float | None = None) -> bool:
        latest = self.latest(market)
        if latest is None:
            return True
        max_age = self.config.max_age_days if max_age_days is None else max_age_days
        return is_stale(latest.computed_at, max_age, now=self._clock())

    def calibrate_score(self, raw_confidence: float, market: str) -> CalibratedScore:
        """Calibrate a raw score, falling back to the clamped raw score.

        Missing or stale calibrations, store failures and malformed curves
        never propagate; the reason is logged and returned.
        """
        raw = max(0.0, min(1.0, raw_confidence))

        def fallback(reason: str) -> CalibratedScore:
            logger.warning("Using raw confidence for %s: %s", market, reason)
            return CalibratedScore(value=raw, raw=raw_confidence, calibrated=False,
                                   fallback_reason=reason)

        try:
            latest = self.latest(market)
        except (StorageError, CalibrationApplicationError) as exc:
            return fallback(f"calibration lookup failed: {exc}")

        if latest is None:
            return fallback("no calibration")
        if is_stale(latest.computed_at, self.config.max_age_days, now=self._clock()):
            return fallback(f"calibration older than {self.config.max_age_days} days")

        try:
            value = apply_calibration(raw, latest)
        except CalibrationApplicationError as exc:
            return fallback(f"calibration could not be applied: {exc}")

        return CalibratedScore(
            value=value, raw=raw_confidence, calibrated=True,
            calibration_id=latest.record_id,
        )

    def apply(self, raw_confidence: float, market: str) -> float:
        return self.calibrate_score(raw_confidence, market).value

    def validate(
        self, market: str, window_days: int = DEFAULT_WINDOW_DAYS,
    ) -> ValidationResult:
        """Fit on the window and score the same window's outcomes."""
        market = market.upper()
        history = self._history(market, window_days)
        calibration = compute_calibration(history, market, window_days, self.config)
        outcomes = extract_outcomes(history, self.config)
        return validate_calibration(
            outcomes, calibration, self.config.high_confidence_threshold,
        )
