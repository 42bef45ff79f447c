"""BacktestService — fetch history from the store and run the simulator."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from tradeeval.backtest.simulator import (
    DEPRECATED_HOLD_MODE,
    BacktestResult,
    BacktestSimulator,
)
from tradeeval.errors import InsufficientDataError
from tradeeval.store.base import RecommendationStore

logger = logging.getLogger(__name__)


class BacktestService:
    """Backtest entry point for callers holding a store.

    Storage errors propagate unchanged; an empty window raises
    InsufficientDataError.
    """

    def __init__(
        self,
        store: RecommendationStore,
        simulator: BacktestSimulator | None = None,
    ) -> None:
        self._store = store
        self._simulator = simulator or BacktestSimulator()

    def run(
        self,
        market: str | None = None,
        days: int | None = None,
        *,
        hold_mode: str = DEPRECATED_HOLD_MODE,
        capital_base: float = 0.0,
        now: datetime | None = None,
    ) -> BacktestResult:
        """Backtest one market over the last ``days`` (all history if None).

        Without a market, the run covers the market of the earliest event.
        """
        since = None
        if days is not None and days > 0:
            since = (now or datetime.now(timezone.utc)) - timedelta(days=days)

        normalized = market.upper() if market else None
        events = self._store.get_events(normalized, since=since)
        if not events:
            raise InsufficientDataError(
                "No recommendations found for the specified criteria",
                required=1, found=0,
            )

        if normalized is None:
            normalized = events[0].market
            events = [e for e in events if e.market == normalized]
            logger.info("No market given; backtesting earliest market %s", normalized)

        return self._simulator.run(events, hold_mode=hold_mode, capital_base=capital_base)
