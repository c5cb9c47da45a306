"""
Statistical primitives shared by the grid analyzers.

Provides ordinary least squares fitting, sliding means, population standard
deviation, a split-half trend test and deterministic half-up rounding.
Degenerate input (too few points, zero variance) returns defined defaults
instead of raising, so callers can treat "not enough history" as an ordinary
outcome.
"""
from __future__ import annotations

import math
from typing import NamedTuple, Sequence, Tuple

import numpy as np

from gridoutlook.utils.metrics import r2_score


class RegressionResult(NamedTuple):
    slope: float
    intercept: float
    r_squared: float

    def predict(self, x: float) -> float:
        return self.slope * x + self.intercept


NO_TREND = RegressionResult(0.0, 0.0, 0.0)


def linear_regression(points: Sequence[Tuple[float, float]]) -> RegressionResult:
    """
    Fit y = slope * x + intercept by ordinary least squares.

    Args:
        points: (x, y) pairs, at least two with distinct x values

    Returns:
        RegressionResult(slope, intercept, r_squared). Fewer than two points
        or identical x values give (0, 0, 0).
    """
    if points is None or len(points) < 2:
        return NO_TREND

    data = np.asarray(points, dtype=float)
    x = data[:, 0]
    y = data[:, 1]
    n = float(len(data))

    sum_x = x.sum()
    sum_y = y.sum()
    denom = n * np.sum(x * x) - sum_x * sum_x
    if denom == 0:
        return NO_TREND

    slope = (n * np.sum(x * y) - sum_x * sum_y) / denom
    intercept = (sum_y - slope * sum_x) / n
    r_squared = r2_score(y, slope * x + intercept)
    return RegressionResult(float(slope), float(intercept), r_squared)


def moving_average(values: Sequence[float], window: int) -> list[float]:
    """Sliding mean over ``window`` points; shorter input is returned unchanged."""
    if len(values) < window or window <= 0:
        return list(values)
    arr = np.asarray(values, dtype=float)
    windows = np.lib.stride_tricks.sliding_window_view(arr, window)
    return windows.mean(axis=1).tolist()


def std_dev(values: Sequence[float]) -> float:
    """Population standard deviation, 0 for fewer than two values."""
    if len(values) < 2:
        return 0.0
    return float(np.std(np.asarray(values, dtype=float)))


def mean(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.mean(np.asarray(values, dtype=float)))


def split_half_trend(
    values: Sequence[float],
    tolerance: float,
    up: str = "increasing",
    down: str = "decreasing",
) -> str:
    """
    Compare the mean of the second half of a series against the first half.

    The series is split at ``len // 2``. The trend is ``up`` when the second
    mean exceeds the first by more than ``tolerance`` (relative), ``down`` when
    it falls below by more than ``tolerance``, otherwise "stable".
    """
    mid = len(values) // 2
    if mid == 0:
        return "stable"
    first = mean(values[:mid])
    second = mean(values[mid:])
    if second > first * (1 + tolerance):
        return up
    if second < first * (1 - tolerance):
        return down
    return "stable"


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round halves upward; 0.5 steps never fall to the even neighbour."""
    factor = 10 ** ndigits
    # repr-based scaling keeps 2.675 -> 2.68 instead of 2.67
    scaled = float(f"{value * factor:.9f}")
    return math.floor(scaled + 0.5) / factor
