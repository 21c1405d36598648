"""
Numerical helpers shared by the analyzers.

All functions return plain Python floats and resolve degenerate inputs
(zero variance, too few points) to defined values instead of NaN/inf.
"""

import math
from typing import NamedTuple, Sequence

import numpy as np


class LinearFit(NamedTuple):
    slope: float
    intercept: float
    r_squared: float


def mean(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.mean(np.asarray(values, dtype=float)))


def population_std(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.std(np.asarray(values, dtype=float)))


def linear_fit(values: Sequence[float]) -> LinearFit:
    """
    Ordinary least squares over (index, value) pairs.

    Points are treated as equally spaced; x is the position in the sequence.
    R^2 is clamped into [0, 1] and is 0 when the values are constant.
    """
    y = np.asarray(values, dtype=float)
    n = len(y)
    if n < 2:
        return LinearFit(0.0, float(y[0]) if n else 0.0, 0.0)

    x = np.arange(n, dtype=float)
    x_centered = x - x.mean()
    # Centered x keeps the sums exact for integer scores
    slope = float(np.dot(x_centered, y) / np.dot(x_centered, x_centered))
    intercept = float(y.mean() - slope * x.mean())

    total_ss = float(np.sum((y - y.mean()) ** 2))
    if total_ss == 0:
        return LinearFit(slope, intercept, 0.0)

    residual_ss = float(np.sum((y - (slope * x + intercept)) ** 2))
    r_squared = 1 - residual_ss / total_ss
    return LinearFit(slope, intercept, min(1.0, max(0.0, r_squared)))


def pearson(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson correlation coefficient, 0 when either series has no variance."""
    if len(x) != len(y) or len(x) < 2:
        return 0.0

    xs = np.asarray(x, dtype=float)
    ys = np.asarray(y, dtype=float)
    dx = xs - xs.mean()
    dy = ys - ys.mean()
    denominator = math.sqrt(float(np.dot(dx, dx)) * float(np.dot(dy, dy)))
    if denominator == 0:
        return 0.0
    return float(np.clip(np.dot(dx, dy) / denominator, -1.0, 1.0))


def correlation_significance(r: float, n: int) -> float:
    """
    Rough significance proxy for a correlation coefficient.

    Computes t = r * sqrt((n - 2) / (1 - r^2)) and compresses |t| into [0, 1)
    with |t| / (2 + |t|). This is a heuristic, not a p-value. A perfect
    correlation (r^2 == 1) has unbounded t and maps to 1.0.
    """
    if n <= 2:
        return 0.0
    unexplained = 1 - r * r
    if unexplained <= 0:
        return 1.0
    t_stat = abs(r * math.sqrt((n - 2) / unexplained))
    return min(1.0, t_stat / (2 + t_stat))


def coefficient_of_variation(values: Sequence[float]) -> float:
    """Population standard deviation divided by the mean (0 for a zero mean)."""
    avg = mean(values)
    if avg == 0:
        return 0.0
    return population_std(values) / avg
