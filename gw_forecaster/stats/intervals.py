"""
Prediction intervals for horizon-``N`` point forecasts.

Two interval families are combined by ``hybrid_intervals``:

Bootstrap (steps ``0 .. bootstrap_step - 1``)
  Residuals are bias-corrected (mean subtracted), then each of
  ``num_simulations`` independent trials walks the forecast steps drawing one
  centred residual per step with replacement and *accumulating* it, so the
  simulated error at step ``k`` is a sum of ``k + 1`` draws.  The
  ``α/2`` and ``1 − α/2`` percentiles of the simulated values at each step
  become that step's bounds.

Factor-based (steps ``bootstrap_step .. N - 1``)
  ``forecast[i] ± z · σ · √(i + 1)`` with ``σ`` the sample standard deviation
  of the raw residuals.  The ``√(i + 1)`` term is the closed-form analogue of
  the bootstrap's cumulative error.

Degenerate inputs never raise: empty forecasts give ``[]`` and empty
residuals give ``None`` bounds at every step.
"""

from __future__ import annotations

import logging
import math
import random
from typing import Optional, Sequence

from gw_forecaster.models.forecast import IntervalBound
from gw_forecaster.stats.descriptive import Z_95, mean, stddev

logger = logging.getLogger(__name__)

DEFAULT_NUM_SIMULATIONS = 1000
DEFAULT_CONFIDENCE_LEVEL = 0.95


def bootstrap_intervals(
    residuals: Sequence[float],
    point_forecasts: Sequence[float],
    bootstrap_step: int,
    num_simulations: int = DEFAULT_NUM_SIMULATIONS,
    confidence_level: float = DEFAULT_CONFIDENCE_LEVEL,
    rng: Optional[random.Random] = None,
) -> list[IntervalBound]:
    """Cumulative-error bootstrap bounds for the first ``bootstrap_step`` steps.

    Args:
        residuals:        Historical errors (``predicted - actual``).
        point_forecasts:  Forecast values, one per horizon step.
        bootstrap_step:   Number of leading steps to simulate (clamped to ``N``).
        num_simulations:  Independent simulated paths.
        confidence_level: Two-sided coverage, e.g. ``0.95``.
        rng:              Random source; a fresh ``random.Random()`` if omitted.

    Returns:
        One ``IntervalBound`` per forecast step.  Steps at or beyond
        ``bootstrap_step`` (and every step when ``residuals`` is empty) get
        ``None`` bounds.
    """
    n_steps = len(point_forecasts)
    if n_steps == 0:
        return []
    if not residuals:
        return [IntervalBound() for _ in range(n_steps)]

    rng = rng or random.Random()
    steps = max(0, min(bootstrap_step, n_steps))

    bias = mean(residuals)
    centred = [r - bias for r in residuals]

    simulated: list[list[float]] = [[] for _ in range(n_steps)]
    for _ in range(num_simulations):
        cumulative = 0.0
        for i in range(steps):
            cumulative += rng.choice(centred)
            simulated[i].append(point_forecasts[i] + cumulative)

    alpha = 1.0 - confidence_level
    lower_pct = alpha / 2
    upper_pct = 1.0 - alpha / 2

    bounds: list[IntervalBound] = []
    for values in simulated:
        if not values:
            bounds.append(IntervalBound())
            continue
        values.sort()
        size = len(values)
        lower_idx = min(max(math.floor(size * lower_pct), 0), size - 1)
        upper_idx = min(max(math.ceil(size * upper_pct) - 1, 0), size - 1)
        bounds.append(IntervalBound(lower=values[lower_idx], upper=values[upper_idx]))
    return bounds


def factor_interval(
    point_forecast: float,
    sigma: float,
    step: int,
    z: float = Z_95,
) -> IntervalBound:
    """Closed-form interval ``point ± z · σ · √(step + 1)``."""
    half_width = z * sigma * math.sqrt(step + 1)
    return IntervalBound(lower=point_forecast - half_width, upper=point_forecast + half_width)


def hybrid_intervals(
    residuals: Sequence[float],
    point_forecasts: Sequence[float],
    bootstrap_step: int,
    num_simulations: int = DEFAULT_NUM_SIMULATIONS,
    confidence_level: float = DEFAULT_CONFIDENCE_LEVEL,
    z: float = Z_95,
    rng: Optional[random.Random] = None,
) -> list[IntervalBound]:
    """Bootstrap bounds before ``bootstrap_step``, factor-based bounds after.

    ``bootstrap_step = 0`` is fully factor-based; ``bootstrap_step = N`` is
    fully bootstrap-based.

    Returns:
        One ``IntervalBound`` per forecast step (``[]`` for no forecasts,
        all-``None`` bounds for no residuals).
    """
    n_steps = len(point_forecasts)
    if n_steps == 0:
        return []
    if not residuals:
        logger.debug("No residuals; returning undefined bounds for %d steps", n_steps)
        return [IntervalBound() for _ in range(n_steps)]

    boot = bootstrap_intervals(
        residuals,
        point_forecasts,
        bootstrap_step,
        num_simulations=num_simulations,
        confidence_level=confidence_level,
        rng=rng,
    )
    sigma = stddev(residuals)

    blended: list[IntervalBound] = []
    for i, forecast in enumerate(point_forecasts):
        if i < bootstrap_step:
            blended.append(boot[i])
        else:
            blended.append(factor_interval(forecast, sigma, i, z=z))
    return blended
