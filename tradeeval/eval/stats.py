"""Summary statistics shared by the backtest and calibration paths.

Win rates here are fractions in [0, 1]; callers that report percentages
multiply by 100.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean, 0.0 for an empty sequence."""
    if len(values) == 0:
        return 0.0
    return float(np.mean(np.asarray(values, dtype=np.float64)))


def population_std(values: Sequence[float]) -> float:
    """Population standard deviation (ddof=0), 0.0 for an empty sequence."""
    if len(values) == 0:
        return 0.0
    return float(np.std(np.asarray(values, dtype=np.float64), ddof=0))


def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson correlation coefficient.

    Returns 0.0 when the lengths differ, fewer than 2 samples exist, or
    either series has zero variance.
    """
    if len(x) != len(y) or len(x) < 2:
        return 0.0
    xs = np.asarray(x, dtype=np.float64)
    ys = np.asarray(y, dtype=np.float64)
    dx = xs - xs.mean()
    dy = ys - ys.mean()
    denominator = np.sqrt((dx * dx).sum() * (dy * dy).sum())
    if denominator == 0:
        return 0.0
    return float((dx * dy).sum() / denominator)


def win_rate(wins: pd.Series) -> float:
    """Fraction of True entries in a boolean series."""
    if len(wins) == 0:
        return 0.0
    return float(wins.sum() / len(wins))


def split_win_rates(
    confidences: Sequence[float],
    wins: Sequence[bool],
    threshold: float = 0.7,
) -> tuple[float, float]:
    """Win rates of the high (>= threshold) and low (< threshold) groups."""
    frame = pd.DataFrame({
        "confidence": pd.Series(confidences, dtype=float),
        "win": pd.Series(wins, dtype=bool),
    })
    high = frame["confidence"] >= threshold
    return win_rate(frame.loc[high, "win"]), win_rate(frame.loc[~high, "win"])
