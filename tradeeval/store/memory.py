"""In-memory store for tests and replays of exported histories."""

from __future__ import annotations

import json
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable

from tradeeval.calibration.curve import CalibrationData
from tradeeval.events import RecommendationEvent


class InMemoryStore:
    """List-backed RecommendationStore."""

    def __init__(
        self,
        events: Iterable[RecommendationEvent] = (),
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._events: list[RecommendationEvent] = list(events)
        self._calibrations: list[CalibrationData] = []
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def from_json(cls, path: Path | str) -> InMemoryStore:
        """Load events from a JSON array of recommendation rows."""
        with open(path, encoding="utf-8") as f:
            rows = json.load(f)
        return cls(RecommendationEvent.from_row(r) for r in rows)

    def add_calibration(self, data: CalibrationData) -> None:
        """Insert a calibration as is, keeping its ``computed_at``."""
        self._calibrations.append(data)

    def get_events(
        self,
        market: str | None,
        *,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[RecommendationEvent]:
        selected = [
            e for e in self._events
            if (market is None or e.market == market)
            and (since is None or e.timestamp >= since)
        ]
        selected.sort(key=lambda e: e.timestamp)
        return selected[:limit] if limit is not None else selected

    def list_markets(self) -> list[str]:
        return sorted({e.market for e in self._events})

    def save_calibration(self, data: CalibrationData) -> int:
        record_id = len(self._calibrations) + 1
        self._calibrations.append(
            replace(data, computed_at=self._clock(), record_id=record_id),
        )
        return record_id

    def get_latest_calibration(self, market: str) -> CalibrationData | None:
        candidates = [c for c in self._calibrations if c.market == market]
        if not candidates:
            return None
        floor = datetime.min.replace(tzinfo=timezone.utc)
        return max(candidates, key=lambda c: (c.computed_at or floor, c.record_id or 0))
