"""Tests for tradeeval.calibration.outcomes — outcome extraction rules."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from tradeeval.calibration.config import CalibrationConfig
from tradeeval.calibration.outcomes import extract_outcomes
from tradeeval.events import Action, OutcomeSource, RecommendationEvent

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _seq(*steps):
    return [
        RecommendationEvent(
            timestamp=T0 + timedelta(hours=i), market="BTC", price=price,
            action=Action(action), confidence=confidence,
        )
        for i, (action, price, confidence) in enumerate(steps)
    ]


class TestHold:
    def test_missed_opportunity_penalized(self):
        out = extract_outcomes(_seq(("hold", 100.0, 0.6), ("hold", 101.0, 0.6)))
        assert len(out) == 1
        o = out[0]
        assert o.confidence == 0.6
        assert o.is_winner is False
        assert o.pnl_percent == pytest.approx(-1.0)
        assert o.source is OutcomeSource.HOLD_PENALTY

    def test_missed_short_move_penalized(self):
        out = extract_outcomes(_seq(("hold", 100.0, 0.6), ("hold", 98.0, 0.6)))
        assert out[0].pnl_percent == pytest.approx(-2.0)

    def test_correct_hold_emits_nothing(self):
        assert extract_outcomes(_seq(("hold", 100.0, 0.6), ("hold", 100.3, 0.6))) == []

    def test_low_confidence_hold_ignored(self):
        assert extract_outcomes(_seq(("hold", 100.0, 0.4), ("hold", 110.0, 0.4))) == []

    def test_penalty_weight_applied(self):
        cfg = CalibrationConfig(hold_penalty_weight=2.0)
        out = extract_outcomes(_seq(("hold", 100.0, 0.6), ("hold", 101.0, 0.6)), cfg)
        assert out[0].pnl_percent == pytest.approx(-2.0)


class TestClose:
    def test_closed_too_early(self):
        out = extract_outcomes(_seq(
            ("long", 100.0, 0.8), ("close", 110.0, 0.6), ("hold", 120.0, 0.5),
        ))
        assert len(out) == 2
        penalty, entry = out
        assert penalty.source is OutcomeSource.CLOSE_EVALUATION
        assert (penalty.confidence, penalty.is_winner) == (0.6, False)
        assert penalty.pnl_percent == pytest.approx(-10.0)
        assert entry.source is OutcomeSource.TRADE
        assert (entry.confidence, entry.is_winner) == (0.8, True)
        assert entry.pnl_percent == pytest.approx(10.0)

    def test_good_close_rewarded_with_avoided_drawdown(self):
        out = extract_outcomes(_seq(
            ("long", 100.0, 0.8), ("close", 110.0, 0.6), ("hold", 105.0, 0.5),
        ))
        reward = out[0]
        assert reward.is_winner is True
        assert reward.pnl_percent == pytest.approx(5.0)

    def test_small_continuation_still_rewarded(self):
        out = extract_outcomes(_seq(
            ("short", 100.0, 0.8), ("close", 90.0, 0.6), ("hold", 89.8, 0.5),
        ))
        assert out[0].is_winner is True
        assert out[0].pnl_percent == 0.0

    def test_low_confidence_close_clears_without_outcome(self):
        out = extract_outcomes(_seq(
            ("long", 100.0, 0.8), ("close", 110.0, 0.3), ("hold", 120.0, 0.5),
        ))
        assert out == []

    def test_close_while_flat_ignored(self):
        assert extract_outcomes(_seq(("close", 100.0, 0.9), ("close", 120.0, 0.9))) == []


class TestEntries:
    def test_flip_and_force_close_use_entry_confidence(self):
        out = extract_outcomes(_seq(
            ("long", 100.0, 0.8), ("short", 110.0, 0.6), ("hold", 105.0, 0.4),
        ))
        assert len(out) == 2
        assert (out[0].confidence, out[0].is_winner) == (0.8, True)
        assert out[0].pnl_percent == pytest.approx(10.0)
        assert out[1].confidence == 0.6
        assert out[1].pnl_percent == pytest.approx((1 - 105.0 / 110.0) * 100)

    def test_last_event_action_not_applied(self):
        assert extract_outcomes(_seq(("hold", 100.0, 0.4), ("long", 110.0, 0.9))) == []

    def test_trailing_close_left_to_force_close(self):
        out = extract_outcomes(_seq(("long", 100.0, 0.7), ("close", 90.0, 0.9)))
        assert len(out) == 1
        assert out[0].source is OutcomeSource.TRADE
        assert out[0].is_winner is False
        assert out[0].pnl_percent == pytest.approx(-10.0)

    def test_short_history(self):
        assert extract_outcomes([]) == []
        assert extract_outcomes(_seq(("long", 100.0, 0.9))) == []
