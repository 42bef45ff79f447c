"""Outcome extraction — turn a recommendation history into training samples.

Walks the history with the shared PositionTracker. Every closed position
yields an outcome tied to its entry confidence. Passive decisions are scored
against the next event's price:

- Hold that missed a move larger than ``opportunity_threshold`` is penalized
- Close is penalized when the price kept moving in the position's favor by
  more than ``close_too_early_threshold``, otherwise rewarded with the
  drawdown it avoided

The last event only supplies the lookahead and force-close price; its
action is not applied.
"""

from __future__ import annotations

import logging
from typing import Sequence

from tradeeval.calibration.config import CalibrationConfig
from tradeeval.events import (
    Action,
    OutcomeSource,
    Position,
    RecommendationEvent,
    TradeOutcome,
)
from tradeeval.tracking.position_tracker import CloseReason, PositionTracker

logger = logging.getLogger(__name__)


def extract_outcomes(
    history: Sequence[RecommendationEvent],
    config: CalibrationConfig | None = None,
) -> list[TradeOutcome]:
    """Ordered outcomes for one market's ascending history."""
    cfg = config or CalibrationConfig()
    if len(history) < 2:
        return []

    outcomes: list[TradeOutcome] = []

    def score_hold(event: RecommendationEvent, index: int, _position: Position | None) -> None:
        if event.action is not Action.HOLD:
            return
        if event.confidence < cfg.min_confidence_for_evaluation:
            return
        next_price = history[index + 1].price
        pnl_long = (next_price - event.price) / event.price * 100.0
        pnl_short = (event.price - next_price) / event.price * 100.0
        if pnl_long > cfg.opportunity_threshold or pnl_short > cfg.opportunity_threshold:
            outcomes.append(TradeOutcome(
                confidence=event.confidence,
                is_winner=False,
                pnl_percent=-abs(max(pnl_long, pnl_short)) * cfg.hold_penalty_weight,
                source=OutcomeSource.HOLD_PENALTY,
            ))
            logger.debug("Hold missed opportunity at index %d", index)

    def score_close(
        position: Position,
        exit_event: RecommendationEvent,
        exit_index: int,
        reason: CloseReason,
    ) -> None:
        pnl_at_close = position.pnl_percent(exit_event.price)

        if reason is CloseReason.CLOSE:
            if exit_event.confidence < cfg.min_confidence_for_evaluation:
                return
            pnl_if_held = position.pnl_percent(history[exit_index + 1].price)
            missed_gain = pnl_if_held - pnl_at_close
            if missed_gain > cfg.close_too_early_threshold:
                outcomes.append(TradeOutcome(
                    confidence=exit_event.confidence,
                    is_winner=False,
                    pnl_percent=-abs(missed_gain) * cfg.close_penalty_weight,
                    source=OutcomeSource.CLOSE_EVALUATION,
                ))
            else:
                outcomes.append(TradeOutcome(
                    confidence=exit_event.confidence,
                    is_winner=True,
                    pnl_percent=max(0.0, -missed_gain),
                    source=OutcomeSource.CLOSE_EVALUATION,
                ))

        outcomes.append(TradeOutcome(
            confidence=position.entry_confidence,
            is_winner=pnl_at_close > 0,
            pnl_percent=pnl_at_close,
            source=OutcomeSource.TRADE,
        ))

    tracker = PositionTracker(on_close=score_close, before_event=score_hold)
    tracker.walk(history[:-1], final_event=history[-1])
    return outcomes
