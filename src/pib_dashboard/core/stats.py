from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

import math


def is_finite(value: Optional[float]) -> bool:
    """True for real numbers that are not NaN/inf. None is never finite."""
    if value is None:
        return False
    try:
        return math.isfinite(value)
    except TypeError:
        return False


def finite_items(vector: Sequence[Optional[float]]) -> List[Tuple[int, float]]:
    """(index, value) pairs for every finite slot, in vector order."""
    return [(i, v) for i, v in enumerate(vector) if is_finite(v)]


# ---------------------------------------------------------------------------
# Quantiles / color scale
# ---------------------------------------------------------------------------

def quantile(sorted_values: Sequence[float], p: float) -> Optional[float]:
    """
    Linear-interpolation quantile over an ascending sequence.
    Returns None for an empty sequence.
    """
    n = len(sorted_values)
    if not n:
        return None
    pos = (n - 1) * p
    base = math.floor(pos)
    rest = pos - base
    if base + 1 < n:
        return sorted_values[base] + rest * (sorted_values[base + 1] - sorted_values[base])
    return sorted_values[base]


@dataclass(frozen=True)
class ColorScale:
    cmin: float
    cmax: float


def color_scale(
    vector: Sequence[Optional[float]],
    lower_p: float = 0.05,
    upper_p: float = 0.95,
) -> ColorScale:
    """
    Per-year color bounds (p05–p95 of the finite values).

    Defaults to [0, 1] without data; a collapsed range is widened by 1.
    """
    vals = sorted(v for _, v in finite_items(vector))
    cmin = quantile(vals, lower_p)
    cmax = quantile(vals, upper_p)
    if cmin is None or cmax is None:
        cmin, cmax = 0.0, 1.0
    if cmax <= cmin:
        cmax = cmin + 1
    return ColorScale(cmin=cmin, cmax=cmax)


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------

def top_n(vector: Sequence[Optional[float]], n: int) -> List[Tuple[int, float]]:
    """
    The n largest finite values as (index, value), descending.
    The sort is stable: ties keep vector order.
    """
    if n <= 0:
        return []
    items = sorted(finite_items(vector), key=lambda item: item[1], reverse=True)
    return items[:n]


def global_max(vectors: Iterable[Sequence[Optional[float]]]) -> float:
    """Largest finite value across all vectors; 1 when there is none."""
    best = 0.0
    for vec in vectors:
        for _, v in finite_items(vec):
            if v > best:
                best = v
    return best if best else 1.0


# ---------------------------------------------------------------------------
# Means
# ---------------------------------------------------------------------------

def subset_mean(vector: Sequence[Optional[float]], indices: Iterable[int]) -> Optional[float]:
    """Mean of the finite values at the given positions, None if there are none."""
    total = 0.0
    count = 0
    for idx in indices:
        v = vector[idx]
        if not is_finite(v):
            continue
        total += v
        count += 1
    return total / count if count else None


def period_mean(
    vectors: Iterable[Sequence[Optional[float]]],
    indices: Sequence[int],
) -> Optional[float]:
    """Mean over every finite (year, entity) pair of the subset."""
    total = 0.0
    count = 0
    for vec in vectors:
        for idx in indices:
            v = vec[idx]
            if not is_finite(v):
                continue
            total += v
            count += 1
    return total / count if count else None


# ---------------------------------------------------------------------------
# Trend
# ---------------------------------------------------------------------------

@dataclass
class TrendLine:
    slope: float
    intercept: float
    values: List[float]


def ols_trend(
    xs: Sequence[float],
    ys: Sequence[Optional[float]],
    eval_at: Optional[Sequence[float]] = None,
) -> Optional[TrendLine]:
    """
    Ordinary least squares line through the finite (x, y) points.

    Needs at least two finite points. A zero x-variance gives slope 0.
    The fitted line is evaluated at every x in eval_at (defaults to xs),
    including positions whose y is missing.
    """
    points = [(float(x), float(y)) for x, y in zip(xs, ys) if is_finite(y)]
    if len(points) < 2:
        return None

    n = len(points)
    xbar = sum(x for x, _ in points) / n
    ybar = sum(y for _, y in points) / n

    num = 0.0
    den = 0.0
    for x, y in points:
        num += (x - xbar) * (y - ybar)
        den += (x - xbar) * (x - xbar)

    slope = num / den if den else 0.0
    intercept = ybar - slope * xbar

    grid = xs if eval_at is None else eval_at
    return TrendLine(
        slope=slope,
        intercept=intercept,
        values=[slope * float(x) + intercept for x in grid],
    )
