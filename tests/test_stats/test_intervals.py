"""
Tests for prediction intervals.

What we test
------------
1. factor_interval: forecast ± z·σ·√(i+1).
2. hybrid_intervals with bootstrap_step=0 equals the factor form exactly.
3. Empty residuals give None bounds; empty forecasts give [].
4. Bootstrap bounds bracket the forecast and widen with the horizon.
5. Zero-spread residuals collapse bootstrap bounds onto the forecast.
6. A seeded Random makes bootstrap bounds reproducible.
"""

from __future__ import annotations

import math
import random

import pytest

from gw_forecaster.stats.descriptive import stddev
from gw_forecaster.stats.intervals import (
    bootstrap_intervals,
    factor_interval,
    hybrid_intervals,
)

_RESIDUALS = [0.3, -0.2, 0.1, -0.4, 0.25, -0.05, 0.15, -0.1, 0.2, -0.3]
_FORECAST = [12.0, 12.1, 12.2, 12.3, 12.4, 12.5, 12.6]


def test_factor_interval_known_values() -> None:
    b = factor_interval(10.0, sigma=0.5, step=3, z=1.96)
    half = 1.96 * 0.5 * 2.0  # sqrt(3 + 1) = 2
    assert b.lower == pytest.approx(10.0 - half)
    assert b.upper == pytest.approx(10.0 + half)


def test_hybrid_step_zero_is_fully_factor_based() -> None:
    bounds = hybrid_intervals(_RESIDUALS, _FORECAST, bootstrap_step=0, rng=random.Random(0))
    sigma = stddev(_RESIDUALS)
    for i, (f, b) in enumerate(zip(_FORECAST, bounds)):
        half = 1.96 * sigma * math.sqrt(i + 1)
        assert b.lower == pytest.approx(f - half)
        assert b.upper == pytest.approx(f + half)


def test_hybrid_empty_residuals_gives_none_bounds() -> None:
    bounds = hybrid_intervals([], _FORECAST, bootstrap_step=3)
    assert len(bounds) == len(_FORECAST)
    assert all(b.lower is None and b.upper is None for b in bounds)
    assert not any(b.is_defined for b in bounds)


def test_hybrid_empty_forecast_gives_empty_list() -> None:
    assert hybrid_intervals(_RESIDUALS, [], bootstrap_step=3) == []


def test_hybrid_switches_family_at_bootstrap_step() -> None:
    bounds = hybrid_intervals(_RESIDUALS, _FORECAST, bootstrap_step=3, rng=random.Random(7))
    sigma = stddev(_RESIDUALS)
    for i in range(3, len(_FORECAST)):
        expected = factor_interval(_FORECAST[i], sigma, i)
        assert bounds[i].lower == pytest.approx(expected.lower)
        assert bounds[i].upper == pytest.approx(expected.upper)
    assert all(b.is_defined for b in bounds)


def test_hybrid_step_n_is_fully_bootstrap_based() -> None:
    n = len(_FORECAST)
    bounds = hybrid_intervals(_RESIDUALS, _FORECAST, bootstrap_step=n, rng=random.Random(11))
    boot = bootstrap_intervals(_RESIDUALS, _FORECAST, bootstrap_step=n, rng=random.Random(11))
    sigma = stddev(_RESIDUALS)
    assert bounds == boot
    for i, b in enumerate(bounds):
        assert b.is_defined
        factor = factor_interval(_FORECAST[i], sigma, i)
        assert b.lower != factor.lower
        assert b.upper != factor.upper


def test_bootstrap_bounds_bracket_forecast_and_widen() -> None:
    bounds = bootstrap_intervals(
        _RESIDUALS, _FORECAST, bootstrap_step=len(_FORECAST),
        num_simulations=2000, rng=random.Random(42),
    )
    widths = []
    for f, b in zip(_FORECAST, bounds):
        assert b.lower <= f <= b.upper
        widths.append(b.upper - b.lower)
    assert widths[-1] > widths[0]


def test_bootstrap_steps_beyond_bootstrap_step_are_undefined() -> None:
    bounds = bootstrap_intervals(_RESIDUALS, _FORECAST, bootstrap_step=2, rng=random.Random(1))
    assert bounds[0].is_defined and bounds[1].is_defined
    assert all(not b.is_defined for b in bounds[2:])


def test_bootstrap_constant_residuals_collapse_to_forecast() -> None:
    # Centring removes the constant bias, so every draw is 0.
    bounds = bootstrap_intervals([0.5] * 8, _FORECAST, bootstrap_step=7, num_simulations=50)
    for f, b in zip(_FORECAST, bounds):
        assert b.lower == pytest.approx(f)
        assert b.upper == pytest.approx(f)


def test_bootstrap_is_reproducible_with_seed() -> None:
    a = bootstrap_intervals(_RESIDUALS, _FORECAST, 7, num_simulations=300, rng=random.Random(99))
    b = bootstrap_intervals(_RESIDUALS, _FORECAST, 7, num_simulations=300, rng=random.Random(99))
    assert a == b
