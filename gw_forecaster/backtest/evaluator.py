"""
Rolling backtest evaluator: replay a forecast function over held-out points.

How it works
------------
1. Receive one well's ``WellSeries`` (four timestamp-sorted collections).
2. Choose the evaluation indices: the last ``last_n`` groundwater points
   (the check run) or every point (the statistics panel).
3. For each index ``i``:
   a. ``history = series.truncate_before(groundwater[i].timestamp)``.
   b. Skip when the groundwater history is empty or the actual GWL is null.
   c. Call ``forecast_fn(history.groundwater, history.water_quality,
      history.weather, history.usage)``.
   d. Skip (log, continue) when it raises or returns anything other than
      ``horizon`` finite numbers.
   e. Score only the first predicted value: ``error = predicted - actual``.
4. Sort the surviving records by timestamp and compute every registered metric.

Leakage proof
-------------
- All four inputs are filtered to ``timestamp < actual.timestamp`` (strict).
- The actual value is read from the full series only after the call returns;
  the function never receives it.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from numbers import Real
from typing import Any, Callable, Optional, Sequence

from gw_forecaster.backtest.metrics import compute_metrics
from gw_forecaster.data.dataset import WellSeries
from gw_forecaster.exceptions import ForecastShapeError
from gw_forecaster.models.forecast import PredictionErrorRecord
from gw_forecaster.models.observation import (
    GroundwaterObservation,
    UsageObservation,
    WaterQualityObservation,
    WeatherObservation,
)
from gw_forecaster.utils.time_utils import sort_key

log = logging.getLogger(__name__)

ForecastFunction = Callable[
    [
        Sequence[GroundwaterObservation],
        Sequence[WaterQualityObservation],
        Sequence[WeatherObservation],
        Sequence[UsageObservation],
    ],
    Sequence[float],
]


@dataclass(frozen=True)
class BacktestResult:
    """Output of one rolling evaluation.

    Attributes:
        errors:      Scored comparisons, ascending by timestamp.
        metrics:     ``{"rmse", "mse", "mae"}``; ``inf`` when nothing scored.
        n_attempted: Indices walked.
        n_skipped:   Indices without a usable prediction.
    """

    errors: list[PredictionErrorRecord] = field(default_factory=list)
    metrics: dict[str, float] = field(default_factory=dict)
    n_attempted: int = 0
    n_skipped: int = 0

    @property
    def residuals(self) -> list[float]:
        return [r.error for r in self.errors]


def validate_forecast(values: Any, horizon: int) -> list[float]:
    """Check a forecast function's output against the ``N``-numbers contract.

    Args:
        values: Whatever the function returned.
        horizon: Required length ``N``.

    Returns:
        The values as a list of floats.

    Raises:
        ForecastShapeError: If ``values`` is not a sequence of exactly
            ``horizon`` finite numbers.
    """
    if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
        raise ForecastShapeError(
            f"Forecast function must return a sequence of {horizon} numbers, "
            f"got {type(values).__name__}."
        )
    if len(values) != horizon:
        raise ForecastShapeError(
            f"Forecast function must return {horizon} numbers, got {len(values)}."
        )
    out: list[float] = []
    for i, v in enumerate(values):
        if isinstance(v, bool) or not isinstance(v, Real) or not math.isfinite(v):
            raise ForecastShapeError(f"Forecast value at step {i} is not a finite number: {v!r}.")
        out.append(float(v))
    return out


def run_backtest(
    series: WellSeries,
    forecast_fn: ForecastFunction,
    horizon: int,
    last_n: Optional[int] = None,
) -> BacktestResult:
    """Evaluate ``forecast_fn`` one step ahead over held-out points.

    Args:
        series:      One well's observations.
        forecast_fn: Function under test.
        horizon:     Required output length ``N``.
        last_n:      Evaluate only the last ``last_n`` groundwater points;
                     ``None`` walks the whole series.

    Returns:
        BacktestResult with timestamp-ordered errors and all metrics.
    """
    groundwater = series.groundwater
    n = len(groundwater)
    start = 0 if last_n is None else max(0, n - last_n)

    records: list[PredictionErrorRecord] = []
    skipped = 0

    for idx in range(start, n):
        actual = groundwater[idx]
        if actual.gwl is None:
            log.debug("Index %d: actual GWL is null, skipped", idx)
            skipped += 1
            continue

        history = series.truncate_before(actual.timestamp)
        if not history.groundwater:
            log.debug("Index %d: no history before %s, skipped", idx, actual.timestamp)
            skipped += 1
            continue

        try:
            raw = forecast_fn(
                history.groundwater, history.water_quality, history.weather, history.usage
            )
            predicted = validate_forecast(raw, horizon)[0]
        except ForecastShapeError as exc:
            log.warning("Index %d (%s): invalid forecast: %s", idx, actual.timestamp, exc)
            skipped += 1
            continue
        except Exception as exc:  # the function under test is arbitrary code
            log.warning("Index %d (%s): forecast function raised %r", idx, actual.timestamp, exc)
            skipped += 1
            continue

        records.append(
            PredictionErrorRecord(
                timestamp=actual.timestamp,
                actual=actual.gwl,
                predicted=predicted,
                error=predicted - actual.gwl,
            )
        )

    records.sort(key=lambda r: sort_key(r.timestamp))
    metrics = compute_metrics(records)

    log.info(
        "Backtest %s: %d/%d points scored | rmse=%.4f",
        series.well_id, len(records), n - start, metrics["rmse"],
    )
    return BacktestResult(
        errors=records, metrics=metrics, n_attempted=n - start, n_skipped=skipped
    )


def forecast_future(
    series: WellSeries,
    forecast_fn: ForecastFunction,
    horizon: int,
) -> list[float]:
    """Run ``forecast_fn`` on the full history for the next ``horizon`` steps.

    Raises:
        ForecastShapeError: If the output violates the contract.  Exceptions
            raised by the function itself propagate unchanged.
    """
    raw = forecast_fn(series.groundwater, series.water_quality, series.weather, series.usage)
    return validate_forecast(raw, horizon)
