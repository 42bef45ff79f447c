"""Confidence bucketing and pool-adjacent-violators isotonic regression."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from tradeeval.events import TradeOutcome


@dataclass(frozen=True)
class ConfidenceBucket:
    min_confidence: float
    max_confidence: float
    outcomes: tuple[TradeOutcome, ...]
    win_rate: float
    count: int

    @property
    def midpoint(self) -> float:
        return (self.min_confidence + self.max_confidence) / 2


def create_buckets(
    outcomes: Sequence[TradeOutcome],
    n_buckets: int = 10,
) -> list[ConfidenceBucket]:
    """Equal-width buckets over [0, 1]; the last bucket is closed on both ends."""
    buckets: list[ConfidenceBucket] = []
    for i in range(n_buckets):
        lo = i / n_buckets
        hi = (i + 1) / n_buckets
        last = i == n_buckets - 1
        members = tuple(
            o for o in outcomes
            if o.confidence >= lo and (o.confidence <= hi if last else o.confidence < hi)
        )
        wins = sum(1 for o in members if o.is_winner)
        buckets.append(ConfidenceBucket(
            min_confidence=lo,
            max_confidence=hi,
            outcomes=members,
            win_rate=wins / len(members) if members else 0.0,
            count=len(members),
        ))
    return buckets


def _pool(a: ConfidenceBucket, b: ConfidenceBucket) -> ConfidenceBucket:
    count = a.count + b.count
    return ConfidenceBucket(
        min_confidence=a.min_confidence,
        max_confidence=b.max_confidence,
        outcomes=a.outcomes + b.outcomes,
        win_rate=(a.win_rate * a.count + b.win_rate * b.count) / count,
        count=count,
    )


def isotonic_regression(buckets: Sequence[ConfidenceBucket]) -> list[ConfidenceBucket]:
    """Pool adjacent violators until win rates are non-decreasing.

    Empty buckets are dropped first. If every bucket is empty the input is
    returned unchanged. Each merge builds a new list and restarts the scan.
    """
    calibrated = [b for b in buckets if b.count > 0]
    if not calibrated:
        return list(buckets)

    changed = True
    while changed:
        changed = False
        for i in range(len(calibrated) - 1):
            if calibrated[i].win_rate > calibrated[i + 1].win_rate:
                calibrated = (
                    calibrated[:i]
                    + [_pool(calibrated[i], calibrated[i + 1])]
                    + calibrated[i + 2:]
                )
                changed = True
                break
    return calibrated
