"""Recommendation events and the records derived from them.

RecommendationEvent is the externally supplied input. Position is the
ephemeral state of one tracker run, TradeResult is a closed trade and
TradeOutcome is a calibration training sample that may or may not
correspond to an executed trade.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping


class Action(enum.Enum):
    """Directive carried by a recommendation."""

    LONG = "long"
    SHORT = "short"
    HOLD = "hold"
    CLOSE = "close"


class Direction(enum.Enum):
    """Side of an open position."""

    LONG = "long"
    SHORT = "short"


class OutcomeSource(enum.Enum):
    """Provenance of a calibration outcome."""

    TRADE = "trade"
    HOLD_PENALTY = "hold_penalty"
    CLOSE_EVALUATION = "close_evaluation"


_ENTRY_ACTIONS = {Action.LONG: Direction.LONG, Action.SHORT: Direction.SHORT}


def direction_for(action: Action) -> Direction | None:
    """Direction opened by an entry action, None for Hold/Close."""
    return _ENTRY_ACTIONS.get(action)


@dataclass(frozen=True)
class RecommendationEvent:
    """One timestamped recommendation for a market."""

    timestamp: datetime
    market: str
    price: float
    action: Action
    confidence: float
    size_usd: float | None = None
    raw_confidence: float | None = None

    def __post_init__(self):
        if not self.market:
            raise ValueError("market must be non-empty")
        if self.price <= 0:
            raise ValueError(f"price must be > 0, got {self.price}")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0, 1], got {self.confidence}")
        if self.size_usd is not None and self.size_usd <= 0:
            raise ValueError(f"size_usd must be > 0, got {self.size_usd}")
        if not isinstance(self.action, Action):
            object.__setattr__(self, "action", Action(str(self.action).lower()))

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> RecommendationEvent:
        """Build an event from a storage row (column name -> value)."""
        size = row.get("size_usd")
        raw = row.get("raw_confidence")
        return cls(
            timestamp=coerce_datetime(row["timestamp"]),
            market=str(row["market"]).upper(),
            price=_to_float(row["price"]),
            action=Action(str(row["action"]).lower()),
            confidence=_to_float(row["confidence"]),
            size_usd=_to_float(size) if size not in (None, 0) else None,
            raw_confidence=_to_float(raw) if raw is not None else None,
        )


@dataclass
class Position:
    """Open exposure owned by a single tracker run."""

    direction: Direction
    entry_price: float
    entry_time: datetime
    size_usd: float
    entry_confidence: float
    entry_raw_confidence: float | None = None
    entry_index: int = 0

    def pnl_ratio(self, exit_price: float) -> float:
        """Signed fractional return of the position at exit_price."""
        r = exit_price / self.entry_price
        if self.direction is Direction.LONG:
            return r - 1.0
        return 1.0 - r

    def pnl_percent(self, exit_price: float) -> float:
        return self.pnl_ratio(exit_price) * 100.0

    def pnl_usd(self, exit_price: float) -> float:
        return self.size_usd * self.pnl_ratio(exit_price)


@dataclass(frozen=True)
class TradeResult:
    """A closed trade. Confidence is always the entry recommendation's."""

    market: str
    entry_time: datetime
    exit_time: datetime
    direction: Direction
    entry_price: float
    exit_price: float
    size_usd: float
    confidence: float
    pnl_usd: float
    pnl_percent: float
    raw_confidence: float | None = None

    @property
    def is_winner(self) -> bool:
        return self.pnl_usd > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "market": self.market,
            "entry_time": self.entry_time.isoformat(),
            "exit_time": self.exit_time.isoformat(),
            "direction": self.direction.value,
            "entry_price": self.entry_price,
            "exit_price": self.exit_price,
            "size_usd": self.size_usd,
            "confidence": self.confidence,
            "raw_confidence": self.raw_confidence,
            "pnl_usd": self.pnl_usd,
            "pnl_percent": self.pnl_percent,
        }


@dataclass(frozen=True)
class TradeOutcome:
    """Calibration training sample; synthetic outcomes are not trades."""

    confidence: float
    is_winner: bool
    pnl_percent: float
    source: OutcomeSource = OutcomeSource.TRADE


# ---------------------------------------------------------------------------
# Row coercion helpers
# ---------------------------------------------------------------------------

def _to_float(val: Any) -> float:
    """Coerce numeric columns (Decimal, str, int) to float."""
    return float(val)


def coerce_datetime(val: Any) -> datetime:
    """Accept datetimes, epoch milliseconds or ISO strings."""
    if isinstance(val, datetime):
        return val if val.tzinfo else val.replace(tzinfo=timezone.utc)
    if isinstance(val, (int, float)):
        return datetime.fromtimestamp(val / 1000.0, tz=timezone.utc)
    parsed = datetime.fromisoformat(str(val))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
