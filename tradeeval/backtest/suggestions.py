"""Improvement suggestions derived from a backtest.

Rules are evaluated in a fixed priority order and each contributes at most
one suggestion; evaluation stops once ``max_suggestions`` are collected.

    a. high-confidence trades win less often than low-confidence trades
    b. confidence/return correlation above 0.3 or below -0.3
    c. long vs short win rate differs by more than 10 points
    d. recommended PnL captures less than 30% of the perfect baseline
    e. hold_mode still set to the deprecated default
    f. overall win rate below 50%
    g. position-size standard deviation above half the mean size
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from tradeeval.eval import stats

if TYPE_CHECKING:
    from tradeeval.backtest.simulator import (
        ActionBreakdown,
        ConfidenceAnalysis,
        StrategyPerformance,
    )

CORRELATION_THRESHOLD = 0.3
DIRECTIONAL_BIAS_POINTS = 10.0
PERFECT_GAP_PERCENT = 70.0
MIN_WIN_RATE = 50.0
SIZE_DISPERSION_RATIO = 0.5
# hold_mode is vestigial: it only feeds the deprecated-default rule below.
DEPRECATED_HOLD_MODE = "maintain"


def _confidence_inversion(confidence: ConfidenceAnalysis) -> str | None:
    if confidence.high_confidence_win_rate < confidence.low_confidence_win_rate:
        return (
            f"High-confidence signals underperform low-confidence ones "
            f"({confidence.high_confidence_win_rate:.1f}% vs "
            f"{confidence.low_confidence_win_rate:.1f}% win rate). "
            f"Recalibrate model confidence."
        )
    return None


def _confidence_scaling(confidence: ConfidenceAnalysis) -> str | None:
    r = confidence.correlation
    if r > CORRELATION_THRESHOLD:
        return f"Scale position size with confidence (r={r:.2f} shows predictive value)."
    if r < -CORRELATION_THRESHOLD:
        return f"Negative confidence correlation (r={r:.2f}); consider inverting confidence weighting."
    return None


def _directional_bias(by_action: ActionBreakdown) -> str | None:
    long_wr = by_action.long.win_rate
    short_wr = by_action.short.win_rate
    if abs(long_wr - short_wr) <= DIRECTIONAL_BIAS_POINTS:
        return None
    if long_wr > short_wr:
        return (
            f"Long bias detected: long win rate {long_wr:.1f}% vs short "
            f"{short_wr:.1f}%. Filter weak short signals."
        )
    return (
        f"Short bias detected: short win rate {short_wr:.1f}% vs long "
        f"{long_wr:.1f}%. Filter weak long signals."
    )


def _perfect_gap(
    recommended: StrategyPerformance, perfect: StrategyPerformance,
) -> str | None:
    if perfect.total_pnl_usd <= 0:
        return None
    gap = (perfect.total_pnl_usd - recommended.total_pnl_usd) / perfect.total_pnl_usd * 100.0
    if gap > PERFECT_GAP_PERCENT:
        return (
            f"Large gap to perfect strategy ({gap:.1f}% of achievable PnL missed); "
            f"react faster to price moves."
        )
    return None


def _legacy_hold_mode(hold_mode: str) -> str | None:
    if hold_mode == DEPRECATED_HOLD_MODE:
        return (
            f"Hold mode '{hold_mode}' is the deprecated default; run the dual-mode "
            f"comparison (maintain vs flat) to check how holds are interpreted."
        )
    return None


def _low_win_rate(recommended: StrategyPerformance) -> str | None:
    if recommended.win_rate < MIN_WIN_RATE:
        return (
            f"Win rate below 50% ({recommended.win_rate:.1f}%); consider raising "
            f"the confidence threshold or filtering signals."
        )
    return None


def _size_dispersion(recommended: StrategyPerformance) -> str | None:
    sizes = [t.size_usd for t in recommended.trades]
    if sizes and stats.population_std(sizes) > stats.mean(sizes) * SIZE_DISPERSION_RATIO:
        return (
            "High variance in position sizes; consider normalizing or using "
            "volatility-based sizing."
        )
    return None


def generate_suggestions(
    recommended: StrategyPerformance,
    perfect: StrategyPerformance,
    by_action: ActionBreakdown,
    confidence: ConfidenceAnalysis,
    *,
    hold_mode: str = DEPRECATED_HOLD_MODE,
    max_suggestions: int = 6,
) -> list[str]:
    """Evaluate the rules in priority order, capped at ``max_suggestions``."""
    rules: list[Callable[[], str | None]] = [
        lambda: _confidence_inversion(confidence),
        lambda: _confidence_scaling(confidence),
        lambda: _directional_bias(by_action),
        lambda: _perfect_gap(recommended, perfect),
        lambda: _legacy_hold_mode(hold_mode),
        lambda: _low_win_rate(recommended),
        lambda: _size_dispersion(recommended),
    ]

    suggestions: list[str] = []
    for rule in rules:
        if len(suggestions) >= max_suggestions:
            break
        message = rule()
        if message is not None:
            suggestions.append(message)
    return suggestions
