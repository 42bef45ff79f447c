"""Backtest simulator — replay recommendations against realized prices.

Runs the position tracker over the recommended action sequence, runs a
clairvoyant one-step-lookahead baseline over the same prices, and compares
the two. The perfect baseline trades every consecutive price change
independently; it is an upper bound, not a strategy with multi-step holds.

All win rates and returns in this module are percentages.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence

import pandas as pd

from tradeeval.backtest.suggestions import DEPRECATED_HOLD_MODE, generate_suggestions
from tradeeval.errors import InsufficientDataError
from tradeeval.eval import stats
from tradeeval.events import (
    Action,
    Direction,
    RecommendationEvent,
    TradeResult,
)
from tradeeval.tracking.position_tracker import PositionTracker

logger = logging.getLogger(__name__)

HIGH_CONFIDENCE_THRESHOLD = 0.7

HOLD_MODES = (DEPRECATED_HOLD_MODE, "flat")


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StrategyPerformance:
    total_pnl_usd: float
    total_return_percent: float
    win_rate: float
    avg_trade_return_usd: float
    avg_trade_return_percent: float
    num_trades: int
    trades: tuple[TradeResult, ...] = ()


@dataclass(frozen=True)
class ActionStats:
    count: int
    win_rate: float = 0.0
    avg_pnl: float = 0.0


@dataclass(frozen=True)
class ActionBreakdown:
    long: ActionStats
    short: ActionStats
    hold: ActionStats
    close: ActionStats


@dataclass(frozen=True)
class ConfidenceAnalysis:
    high_confidence_win_rate: float
    low_confidence_win_rate: float
    correlation: float


@dataclass(frozen=True)
class BacktestResult:
    """Full backtest comparison for a single market."""

    market: str
    date_range: tuple[datetime, datetime]
    total_recommendations: int
    capital_base: float
    hold_mode: str
    recommended_strategy: StrategyPerformance
    perfect_strategy: StrategyPerformance
    by_action: ActionBreakdown
    confidence_analysis: ConfidenceAnalysis
    raw_confidence_analysis: ConfidenceAnalysis | None
    improvement_suggestions: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Strategy simulation
# ---------------------------------------------------------------------------

def simulate_recommended(
    history: Sequence[RecommendationEvent],
    default_size_usd: float = 1000.0,
) -> list[TradeResult]:
    """Trades produced by following the recommended actions verbatim."""
    return PositionTracker(default_size_usd=default_size_usd).run(history)


def simulate_perfect(
    history: Sequence[RecommendationEvent],
    default_size_usd: float = 1000.0,
) -> list[TradeResult]:
    """One trade per consecutive price change, always on the right side.

    Pairs with equal prices are skipped. Size comes from the entry event.
    """
    trades: list[TradeResult] = []
    for entry, exit_ in zip(history, history[1:]):
        if exit_.price == entry.price:
            continue
        r = exit_.price / entry.price
        if exit_.price > entry.price:
            direction, ratio = Direction.LONG, r - 1.0
        else:
            direction, ratio = Direction.SHORT, 1.0 - r
        size = entry.size_usd or default_size_usd
        trades.append(TradeResult(
            market=entry.market,
            entry_time=entry.timestamp,
            exit_time=exit_.timestamp,
            direction=direction,
            entry_price=entry.price,
            exit_price=exit_.price,
            size_usd=size,
            confidence=1.0,
            pnl_usd=size * ratio,
            pnl_percent=ratio * 100.0,
        ))
    return trades


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

def _trades_frame(trades: Sequence[TradeResult]) -> pd.DataFrame:
    return pd.DataFrame({
        "direction": [t.direction.value for t in trades],
        "size_usd": [t.size_usd for t in trades],
        "pnl_usd": [t.pnl_usd for t in trades],
        "pnl_percent": [t.pnl_percent for t in trades],
    })


def compute_performance(
    trades: Sequence[TradeResult],
    capital_base: float = 0.0,
) -> StrategyPerformance:
    """Aggregate PnL, return and win rate for a set of trades.

    Return is measured against ``capital_base`` when positive, otherwise
    against the summed position sizes.
    """
    if not trades:
        return StrategyPerformance(
            total_pnl_usd=0.0,
            total_return_percent=0.0,
            win_rate=0.0,
            avg_trade_return_usd=0.0,
            avg_trade_return_percent=0.0,
            num_trades=0,
        )

    frame = _trades_frame(trades)
    total_pnl = float(frame["pnl_usd"].sum())
    denominator = capital_base if capital_base > 0 else float(frame["size_usd"].sum())
    total_return = total_pnl / denominator * 100.0 if denominator > 0 else 0.0

    return StrategyPerformance(
        total_pnl_usd=total_pnl,
        total_return_percent=total_return,
        win_rate=stats.win_rate(frame["pnl_usd"] > 0) * 100.0,
        avg_trade_return_usd=float(frame["pnl_usd"].mean()),
        avg_trade_return_percent=float(frame["pnl_percent"].mean()),
        num_trades=len(trades),
        trades=tuple(trades),
    )


def _action_stats(trades: Sequence[TradeResult], count: int) -> ActionStats:
    if not trades:
        return ActionStats(count=count)
    pnl = pd.Series([t.pnl_usd for t in trades], dtype=float)
    return ActionStats(
        count=count,
        win_rate=stats.win_rate(pnl > 0) * 100.0,
        avg_pnl=float(pnl.mean()),
    )


def compute_action_breakdown(
    history: Sequence[RecommendationEvent],
    trades: Sequence[TradeResult],
) -> ActionBreakdown:
    """Count actions in the raw history; score Long/Short by their trades.

    Hold and Close never own a trade, so they report a count only.
    """
    counts = pd.Series([e.action.value for e in history], dtype=object).value_counts()

    def count(action: Action) -> int:
        return int(counts.get(action.value, 0))

    longs = [t for t in trades if t.direction is Direction.LONG]
    shorts = [t for t in trades if t.direction is Direction.SHORT]
    return ActionBreakdown(
        long=_action_stats(longs, count(Action.LONG)),
        short=_action_stats(shorts, count(Action.SHORT)),
        hold=ActionStats(count=count(Action.HOLD)),
        close=ActionStats(count=count(Action.CLOSE)),
    )


def compute_confidence_analysis(
    trades: Sequence[TradeResult],
    threshold: float = HIGH_CONFIDENCE_THRESHOLD,
) -> ConfidenceAnalysis:
    """High/low confidence win rates and confidence-vs-return correlation."""
    if not trades:
        return ConfidenceAnalysis(0.0, 0.0, 0.0)
    confidences = [t.confidence for t in trades]
    high, low = stats.split_win_rates(confidences, [t.is_winner for t in trades], threshold)
    return ConfidenceAnalysis(
        high_confidence_win_rate=high * 100.0,
        low_confidence_win_rate=low * 100.0,
        correlation=stats.pearson_correlation(confidences, [t.pnl_percent for t in trades]),
    )


def compute_raw_confidence_analysis(
    trades: Sequence[TradeResult],
    threshold: float = HIGH_CONFIDENCE_THRESHOLD,
) -> ConfidenceAnalysis | None:
    """Same analysis keyed on the pre-calibration confidence.

    None when no trade carries a raw confidence.
    """
    with_raw = [t for t in trades if t.raw_confidence is not None]
    if not with_raw:
        return None
    raw = [t.raw_confidence for t in with_raw]
    high, low = stats.split_win_rates(raw, [t.is_winner for t in with_raw], threshold)
    return ConfidenceAnalysis(
        high_confidence_win_rate=high * 100.0,
        low_confidence_win_rate=low * 100.0,
        correlation=stats.pearson_correlation(raw, [t.pnl_percent for t in with_raw]),
    )


# ---------------------------------------------------------------------------
# Simulator
# ---------------------------------------------------------------------------

class BacktestSimulator:
    """Compare recommended actions against the one-step perfect baseline."""

    def __init__(
        self,
        default_size_usd: float = 1000.0,
        *,
        high_confidence_threshold: float = HIGH_CONFIDENCE_THRESHOLD,
        max_suggestions: int = 6,
    ) -> None:
        if default_size_usd <= 0:
            raise ValueError("default_size_usd must be > 0")
        self.default_size_usd = default_size_usd
        self.high_confidence_threshold = high_confidence_threshold
        self.max_suggestions = max_suggestions

    def run(
        self,
        history: Sequence[RecommendationEvent],
        *,
        hold_mode: str = DEPRECATED_HOLD_MODE,
        capital_base: float = 0.0,
    ) -> BacktestResult:
        if hold_mode not in HOLD_MODES:
            raise ValueError(f"hold_mode must be one of {HOLD_MODES}, got '{hold_mode}'")
        if not history:
            raise InsufficientDataError(
                "No recommendations found for the specified criteria",
                required=1, found=0,
            )

        recommended_trades = simulate_recommended(history, self.default_size_usd)
        perfect_trades = simulate_perfect(history, self.default_size_usd)

        recommended = compute_performance(recommended_trades, capital_base)
        perfect = compute_performance(perfect_trades, capital_base)
        by_action = compute_action_breakdown(history, recommended_trades)
        confidence = compute_confidence_analysis(
            recommended_trades, self.high_confidence_threshold,
        )
        raw_confidence = compute_raw_confidence_analysis(
            recommended_trades, self.high_confidence_threshold,
        )

        suggestions = generate_suggestions(
            recommended,
            perfect,
            by_action,
            confidence,
            hold_mode=hold_mode,
            max_suggestions=self.max_suggestions,
        )

        logger.info(
            "Backtest %s: %d recommendations, %d trades, pnl=%.2f (perfect=%.2f)",
            history[0].market, len(history), recommended.num_trades,
            recommended.total_pnl_usd, perfect.total_pnl_usd,
        )

        return BacktestResult(
            market=history[0].market,
            date_range=(history[0].timestamp, history[-1].timestamp),
            total_recommendations=len(history),
            capital_base=capital_base,
            hold_mode=hold_mode,
            recommended_strategy=recommended,
            perfect_strategy=perfect,
            by_action=by_action,
            confidence_analysis=confidence,
            raw_confidence_analysis=raw_confidence,
            improvement_suggestions=suggestions,
        )
