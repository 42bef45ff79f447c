"""RecommendationStore — the read/write surface of the historical-record store."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from tradeeval.calibration.curve import CalibrationData
from tradeeval.events import RecommendationEvent


class RecommendationStore(Protocol):
    """Protocol for stores. Implementations raise StorageError on failure."""

    def get_events(
        self,
        market: str | None,
        *,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[RecommendationEvent]:
        """Events ascending by timestamp; all markets when ``market`` is None."""
        ...

    def save_calibration(self, data: CalibrationData) -> int:
        """Append a calibration record and return its id."""
        ...

    def get_latest_calibration(self, market: str) -> CalibrationData | None:
        """Most recent calibration of ``market`` with ``computed_at`` set."""
        ...
