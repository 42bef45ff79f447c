"""Error taxonomy for the evaluation engine.

InsufficientDataError is surfaced verbatim to callers, StorageError is raised
only by store adapters and propagated unchanged, and
CalibrationApplicationError is caught by the calibration service, which
falls back to the raw confidence.
"""

from __future__ import annotations


class InsufficientDataError(Exception):
    """Raised when a history holds fewer qualifying events than required."""

    def __init__(self, message: str, *, required: int = 1, found: int = 0):
        super().__init__(message)
        self.required = required
        self.found = found


class StorageError(Exception):
    """Normalized failure from the historical-record store."""


class CalibrationApplicationError(Exception):
    """Raised when a stored calibration curve cannot be applied."""
