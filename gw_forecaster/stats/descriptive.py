"""
Descriptive statistics over an ordered sequence of floats.

All functions are pure and total: degenerate inputs (empty, too short,
constant) return a neutral value instead of raising.

Conventions
-----------
stddev     Sample form, denominator ``n - 1``.  ``0`` when ``n < 2``.
skewness   Population third standardized moment ``Σz³ / n`` using the
           sample standard deviation for ``z``.  ``0`` when ``n < 3`` or
           the standard deviation is ``0``.
kurtosis   Excess kurtosis ``Σz⁴ / n − 3``, same ``z``.  ``0`` when
           ``n < 4`` or the standard deviation is ``0``.
acf        Lag-k autocorrelation normalized by the lag-0 sum of squares,
           with the large-sample band ``±1.96 / √n``.

QQ points
---------
``qq_plot_data`` pairs each sorted value with a *linearly interpolated*
theoretical value across ``[min, max]``.  This is a visual approximation,
not an inverse-normal quantile: a straight line means "evenly spread", not
"normally distributed".  Swap in ``statistics.NormalDist().inv_cdf`` if a
true normal QQ plot is needed.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

Z_95 = 1.96


@dataclass(frozen=True)
class AcfPoint:
    """Autocorrelation at one lag with its symmetric confidence band."""

    lag: int
    value: float
    ci_upper: float
    ci_lower: float


@dataclass(frozen=True)
class HistogramBin:
    """One equal-width histogram bin.

    Attributes:
        label: ``"lo - hi"`` to 2 decimals (single-bin case: ``"v"``).
        count: Number of values in the bin.
        mid_point: Bin centre.
    """

    label: str
    count: int
    mid_point: float


@dataclass(frozen=True)
class QQPoint:
    """One (theoretical, sample) pair for a QQ plot."""

    theoretical: float
    sample: float


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean; ``0.0`` for an empty sequence."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def stddev(values: Sequence[float]) -> float:
    """Sample standard deviation (``n - 1``); ``0.0`` when ``n < 2``."""
    n = len(values)
    if n < 2:
        return 0.0
    mu = mean(values)
    return math.sqrt(sum((x - mu) ** 2 for x in values) / (n - 1))


def skewness(values: Sequence[float]) -> float:
    """Population skewness ``Σz³/n``; ``0.0`` when ``n < 3`` or constant."""
    n = len(values)
    if n < 3:
        return 0.0
    sd = stddev(values)
    if sd == 0:
        return 0.0
    mu = mean(values)
    return sum(((x - mu) / sd) ** 3 for x in values) / n


def kurtosis(values: Sequence[float]) -> float:
    """Excess kurtosis ``Σz⁴/n − 3``; ``0.0`` when ``n < 4`` or constant."""
    n = len(values)
    if n < 4:
        return 0.0
    sd = stddev(values)
    if sd == 0:
        return 0.0
    mu = mean(values)
    return sum(((x - mu) / sd) ** 4 for x in values) / n - 3.0


def acf(values: Sequence[float], max_lag: int) -> list[AcfPoint]:
    """Autocorrelation function for lags ``0..max_lag``.

    Args:
        values: Ordered series.
        max_lag: Highest lag to compute (inclusive).

    Returns:
        One ``AcfPoint`` per lag.  Empty when ``values`` is empty.  Lags with
        ``n - k <= 0`` are not emitted.  A constant series yields
        ``max_lag + 1`` all-zero points.
    """
    n = len(values)
    if n == 0:
        return []

    mu = mean(values)
    denominator = sum((x - mu) ** 2 for x in values)
    if denominator == 0:
        return [AcfPoint(lag=k, value=0.0, ci_upper=0.0, ci_lower=0.0) for k in range(max_lag + 1)]

    band = Z_95 / math.sqrt(n)
    points: list[AcfPoint] = []
    for k in range(max_lag + 1):
        if n - k <= 0:
            break
        numerator = sum((values[i] - mu) * (values[i + k] - mu) for i in range(n - k))
        points.append(AcfPoint(lag=k, value=numerator / denominator, ci_upper=band, ci_lower=-band))
    return points


def histogram_bins(values: Sequence[float], num_bins: int) -> list[HistogramBin]:
    """Equal-width histogram over ``[min, max]``.

    Values on the upper edge are clamped into the last bin.

    Args:
        values: Data to bin.
        num_bins: Number of bins (``<= 0`` yields no bins).

    Returns:
        Bins in ascending order; counts sum to ``len(values)``.
    """
    if not values or num_bins <= 0:
        return []

    lo, hi = min(values), max(values)
    if hi == lo:
        return [HistogramBin(label=f"{lo:.2f}", count=len(values), mid_point=lo)]

    width = (hi - lo) / num_bins
    counts = [0] * num_bins
    for x in values:
        idx = math.floor((x - lo) / width)
        counts[min(max(idx, 0), num_bins - 1)] += 1

    bins: list[HistogramBin] = []
    for i, count in enumerate(counts):
        start = lo + i * width
        end = start + width
        bins.append(HistogramBin(label=f"{start:.2f} - {end:.2f}", count=count, mid_point=start + width / 2))
    return bins


def qq_plot_data(values: Sequence[float]) -> list[QQPoint]:
    """Sorted sample values against linearly interpolated theoretical values.

    For ``n == 1`` the theoretical value is the sample itself.
    """
    n = len(values)
    if n == 0:
        return []
    ordered = sorted(values)
    lo, hi = ordered[0], ordered[-1]
    if n == 1:
        return [QQPoint(theoretical=lo, sample=lo)]
    span = hi - lo
    return [
        QQPoint(theoretical=lo + (i / (n - 1)) * span, sample=x)
        for i, x in enumerate(ordered)
    ]
