"""
Forecast evaluation metrics.

Metric design rationale
-----------------------
MAE (Mean Absolute Error)
  "On average the forecast is off by X metres."  Equally weights all errors,
  so it is the number to quote when describing a well's forecast quality.

MSE (Mean Squared Error)
  Squares errors before averaging; reported in m².  Mostly useful as the
  quantity RMSE is built from and for comparing models on the same well.

RMSE (Root Mean Squared Error)
  Back in metres, but penalizes large misses more than MAE.  RMSE well above
  MAE means a few steps were badly wrong (e.g. a pumping surge the function
  did not see coming).  This is the default selection metric.

No-data convention
------------------
All three return ``math.inf`` when there is nothing to score: empty inputs,
or ``predictions`` and ``actuals`` of different lengths.  ``inf`` sorts after
every real score, so "best model" selection never picks an unscored entry.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Sequence

from gw_forecaster.models.forecast import PredictionErrorRecord


def _aligned(predictions: Sequence[float], actuals: Sequence[float]) -> bool:
    return bool(predictions) and bool(actuals) and len(predictions) == len(actuals)


def calculate_mse(predictions: Sequence[float], actuals: Sequence[float]) -> float:
    """Mean squared error; ``inf`` for empty or mismatched inputs."""
    if not _aligned(predictions, actuals):
        return math.inf
    return sum((p - a) ** 2 for p, a in zip(predictions, actuals)) / len(predictions)


def calculate_rmse(predictions: Sequence[float], actuals: Sequence[float]) -> float:
    """Root mean squared error; ``inf`` for empty or mismatched inputs."""
    mse = calculate_mse(predictions, actuals)
    return math.sqrt(mse) if math.isfinite(mse) else math.inf


def calculate_mae(predictions: Sequence[float], actuals: Sequence[float]) -> float:
    """Mean absolute error; ``inf`` for empty or mismatched inputs."""
    if not _aligned(predictions, actuals):
        return math.inf
    return sum(abs(p - a) for p, a in zip(predictions, actuals)) / len(predictions)


@dataclass(frozen=True)
class PerformanceMetric:
    """Registry entry for one metric.

    Attributes:
        key:        Registry key (``"rmse"``).
        name:       Display name sent to the generative endpoint.
        unit:       Unit of the metric value.
        calculate:  ``(predictions, actuals) -> float``.
    """

    key: str
    name: str
    unit: str
    calculate: Callable[[Sequence[float], Sequence[float]], float]


PERFORMANCE_METRICS: dict[str, PerformanceMetric] = {
    "rmse": PerformanceMetric("rmse", "RMSE (Root Mean Squared Error)", "m", calculate_rmse),
    "mse":  PerformanceMetric("mse", "MSE (Mean Squared Error)", "m²", calculate_mse),
    "mae":  PerformanceMetric("mae", "MAE (Mean Absolute Error)", "m", calculate_mae),
}


def get_metric(key: str) -> PerformanceMetric:
    """Look up a registry entry.

    Raises:
        ValueError: If ``key`` is not a registered metric.
    """
    try:
        return PERFORMANCE_METRICS[key.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown metric '{key}'. Must be one of {sorted(PERFORMANCE_METRICS)}."
        ) from None


def compute_metrics(records: Sequence[PredictionErrorRecord]) -> dict[str, float]:
    """Compute every registered metric over a set of backtest records.

    Args:
        records: Backtest comparisons (order does not matter).

    Returns:
        ``{"rmse": ..., "mse": ..., "mae": ...}``; all ``inf`` when empty.
    """
    predictions = [r.predicted for r in records]
    actuals = [r.actual for r in records]
    return {key: metric.calculate(predictions, actuals) for key, metric in PERFORMANCE_METRICS.items()}


def is_scored(value: float | None) -> bool:
    """True for a finite, non-NaN metric value."""
    return value is not None and math.isfinite(value)
