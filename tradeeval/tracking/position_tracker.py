"""Position tracker — FLAT/LONG/SHORT state machine over recommendations.

Consumes an ordered sequence of recommendation events for one market and
reports every position it closes to an ``on_close`` visitor:

- Long/Short while flat opens a position at the event price
- Long/Short against an open opposite position closes it (flip) and opens
  the new direction at the same price
- Long/Short in the current direction maintains the position
- Close closes an open position, no-op while flat
- Hold never changes state
- After the last event an open position is force-closed

Both the backtest simulator and the calibration engine drive this class so
the transition rules are defined in one place.
"""

from __future__ import annotations

import enum
import logging
from typing import Callable, Sequence

from tradeeval.events import (
    Action,
    Position,
    RecommendationEvent,
    TradeResult,
    direction_for,
)

logger = logging.getLogger(__name__)


class CloseReason(enum.Enum):
    """Why a position was closed."""

    FLIP = "flip"
    CLOSE = "close"
    END_OF_SEQUENCE = "end_of_sequence"


CloseVisitor = Callable[[Position, RecommendationEvent, int, CloseReason], None]
EventHook = Callable[[RecommendationEvent, int, "Position | None"], None]


class PositionTracker:
    """Deterministic single-market position state machine.

    Args:
        default_size_usd: Position size used when an event carries none.
        on_close: Visitor invoked as ``(position, exit_event, exit_index,
            reason)`` for every closed position, before state is cleared.
        before_event: Hook invoked as ``(event, index, current_position)``
            before each event's transition is applied.
    """

    def __init__(
        self,
        *,
        default_size_usd: float = 1000.0,
        on_close: CloseVisitor | None = None,
        before_event: EventHook | None = None,
    ) -> None:
        if default_size_usd <= 0:
            raise ValueError("default_size_usd must be > 0")
        self._default_size_usd = default_size_usd
        self._on_close = on_close
        self._before_event = before_event
        self._current: Position | None = None

    @property
    def current(self) -> Position | None:
        return self._current

    def walk(
        self,
        events: Sequence[RecommendationEvent],
        *,
        final_event: RecommendationEvent | None = None,
    ) -> None:
        """Apply every event in order, then force-close any open position.

        The force close uses ``final_event`` when given (its action is not
        applied), otherwise the last walked event.
        """
        self._current = None
        for i, event in enumerate(events):
            if self._before_event is not None:
                self._before_event(event, i, self._current)
            self._apply(event, i)

        if self._current is None:
            return
        if final_event is not None:
            self._close(final_event, len(events), CloseReason.END_OF_SEQUENCE)
        elif events:
            self._close(events[-1], len(events) - 1, CloseReason.END_OF_SEQUENCE)

    def run(self, events: Sequence[RecommendationEvent]) -> list[TradeResult]:
        """Walk ``events`` and return the closed trades in order."""
        trades: list[TradeResult] = []
        visitor = self._on_close

        def collect(position, exit_event, exit_index, reason):
            trades.append(close_trade(position, exit_event))
            if visitor is not None:
                visitor(position, exit_event, exit_index, reason)

        self._on_close = collect
        try:
            self.walk(events)
        finally:
            self._on_close = visitor
        return trades

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _apply(self, event: RecommendationEvent, index: int) -> None:
        if event.action is Action.HOLD:
            return

        if event.action is Action.CLOSE:
            if self._current is not None:
                self._close(event, index, CloseReason.CLOSE)
            return

        direction = direction_for(event.action)
        if self._current is not None:
            if self._current.direction is direction:
                return
            self._close(event, index, CloseReason.FLIP)

        self._current = Position(
            direction=direction,
            entry_price=event.price,
            entry_time=event.timestamp,
            size_usd=event.size_usd or self._default_size_usd,
            entry_confidence=event.confidence,
            entry_raw_confidence=event.raw_confidence,
            entry_index=index,
        )
        logger.debug(
            "Opened %s %s @ %.4f (confidence=%.2f)",
            event.market, direction.value, event.price, event.confidence,
        )

    def _close(
        self, event: RecommendationEvent, index: int, reason: CloseReason,
    ) -> None:
        position = self._current
        if self._on_close is not None:
            self._on_close(position, event, index, reason)
        self._current = None


def close_trade(position: Position, exit_event: RecommendationEvent) -> TradeResult:
    """Convert a position closed at ``exit_event``'s price into a TradeResult."""
    exit_price = exit_event.price
    return TradeResult(
        market=exit_event.market,
        entry_time=position.entry_time,
        exit_time=exit_event.timestamp,
        direction=position.direction,
        entry_price=position.entry_price,
        exit_price=exit_price,
        size_usd=position.size_usd,
        confidence=position.entry_confidence,
        pnl_usd=position.pnl_usd(exit_price),
        pnl_percent=position.pnl_percent(exit_price),
        raw_confidence=position.entry_raw_confidence,
    )
