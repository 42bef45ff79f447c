"""Tests for tradeeval.events — data model validation and row coercion."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from tradeeval.events import (
    Action,
    Direction,
    Position,
    RecommendationEvent,
    TradeResult,
    coerce_datetime,
    direction_for,
)

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _event(**overrides):
    kwargs = {
        "timestamp": T0,
        "market": "BTC",
        "price": 100_000.0,
        "action": Action.LONG,
        "confidence": 0.6,
    }
    kwargs.update(overrides)
    return RecommendationEvent(**kwargs)


class TestRecommendationEvent:
    def test_valid_event(self):
        e = _event(size_usd=500.0)
        assert e.action is Action.LONG
        assert e.size_usd == 500.0
        assert e.raw_confidence is None

    def test_action_string_coerced(self):
        e = _event(action="SHORT")
        assert e.action is Action.SHORT

    @pytest.mark.parametrize("price", [0.0, -1.0])
    def test_non_positive_price_rejected(self, price):
        with pytest.raises(ValueError, match="price"):
            _event(price=price)

    @pytest.mark.parametrize("confidence", [-0.01, 1.01])
    def test_confidence_out_of_range_rejected(self, confidence):
        with pytest.raises(ValueError, match="confidence"):
            _event(confidence=confidence)

    def test_non_positive_size_rejected(self):
        with pytest.raises(ValueError, match="size_usd"):
            _event(size_usd=0.0)

    def test_empty_market_rejected(self):
        with pytest.raises(ValueError, match="market"):
            _event(market="")

    def test_unknown_action_rejected(self):
        with pytest.raises(ValueError):
            _event(action="buy")


class TestFromRow:
    def test_coerces_storage_types(self):
        row = {
            "timestamp": datetime(2024, 1, 1, 12, 0),
            "market": "eth",
            "price": Decimal("3500.5"),
            "action": "Hold",
            "confidence": "0.75",
            "size_usd": None,
            "raw_confidence": 0.8,
        }
        e = RecommendationEvent.from_row(row)
        assert e.market == "ETH"
        assert e.price == pytest.approx(3500.5)
        assert e.action is Action.HOLD
        assert e.confidence == pytest.approx(0.75)
        assert e.size_usd is None
        assert e.raw_confidence == pytest.approx(0.8)
        assert e.timestamp.tzinfo is not None

    def test_zero_size_treated_as_missing(self):
        row = {
            "timestamp": T0, "market": "BTC", "price": 1.0,
            "action": "long", "confidence": 0.5, "size_usd": 0,
        }
        assert RecommendationEvent.from_row(row).size_usd is None


class TestCoerceDatetime:
    def test_epoch_millis(self):
        assert coerce_datetime(1_704_067_200_000) == T0

    def test_iso_string_naive_gets_utc(self):
        assert coerce_datetime("2024-01-01T00:00:00") == T0

    def test_aware_datetime_unchanged(self):
        assert coerce_datetime(T0) is T0


class TestPosition:
    def test_long_pnl(self):
        p = Position(Direction.LONG, 100_000.0, T0, 1000.0, 0.6)
        assert p.pnl_usd(101_000.0) == pytest.approx(10.0)
        assert p.pnl_percent(101_000.0) == pytest.approx(1.0)

    def test_short_pnl(self):
        p = Position(Direction.SHORT, 100_000.0, T0, 1000.0, 0.6)
        assert p.pnl_usd(99_000.0) == pytest.approx(10.0)
        assert p.pnl_percent(99_000.0) == pytest.approx(1.0)


class TestTradeResult:
    def test_is_winner_and_to_dict(self):
        t = TradeResult(
            market="BTC", entry_time=T0, exit_time=T0, direction=Direction.LONG,
            entry_price=1.0, exit_price=2.0, size_usd=10.0, confidence=0.5,
            pnl_usd=10.0, pnl_percent=100.0, raw_confidence=0.4,
        )
        assert t.is_winner
        d = t.to_dict()
        assert d["direction"] == "long"
        assert d["raw_confidence"] == 0.4
        assert d["entry_time"] == T0.isoformat()


def test_direction_for():
    assert direction_for(Action.LONG) is Direction.LONG
    assert direction_for(Action.SHORT) is Direction.SHORT
    assert direction_for(Action.HOLD) is None
    assert direction_for(Action.CLOSE) is None
