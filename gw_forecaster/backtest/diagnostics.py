"""
Residual diagnostics.

Two views over backtest residuals (``predicted - actual``):

``summarize_residuals``
  Compact ``ResidualDiagnostics`` saved with every valid function state and
  fed back to the generative endpoint.  Its ``ai_summary`` applies three
  rules of thumb:

    |mean| < 0.1                       residual mean is close to zero
    |skewness| < 0.5 and |kurtosis| < 1  distribution is near symmetric
    |acf(1)| < CI upper                residuals look independent
                                       (otherwise: possibly autocorrelated)

``build_statistics_panel``
  The full statistical analysis for one well: a full-history backtest
  (every point, not just the check window), moments, ACF, QQ points and a
  histogram of the residuals, plus the ACF of the raw GWL series for
  choosing ARIMA orders.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from gw_forecaster.backtest.evaluator import ForecastFunction, run_backtest
from gw_forecaster.data.dataset import WellSeries
from gw_forecaster.models.forecast import AcfValue, ResidualDiagnostics
from gw_forecaster.stats.descriptive import (
    AcfPoint,
    HistogramBin,
    QQPoint,
    acf,
    histogram_bins,
    kurtosis,
    mean,
    qq_plot_data,
    skewness,
    stddev,
)

logger = logging.getLogger(__name__)

MEAN_NEAR_ZERO = 0.1
SKEW_SYMMETRIC = 0.5
KURT_SYMMETRIC = 1.0


def _to_acf_values(points: Sequence[AcfPoint]) -> list[AcfValue]:
    return [
        AcfValue(lag=p.lag, value=p.value, ci_upper=p.ci_upper, ci_lower=p.ci_lower)
        for p in points
    ]


def residual_summary_text(
    mean_res: float, skew_res: float, kurt_res: float, acf_points: Sequence[AcfPoint]
) -> str:
    """Rule-based one-line reading of the residual statistics."""
    parts: list[str] = []
    if abs(mean_res) < MEAN_NEAR_ZERO:
        parts.append("Residual mean is close to zero.")
    if abs(skew_res) < SKEW_SYMMETRIC and abs(kurt_res) < KURT_SYMMETRIC:
        parts.append("Residual distribution is near symmetric with light tails.")
    if len(acf_points) > 1:
        lag1 = acf_points[1]
        if abs(lag1.value) < lag1.ci_upper:
            parts.append("Residuals appear independent.")
        else:
            parts.append("Residuals may be significantly autocorrelated.")
    return " ".join(parts)


def summarize_residuals(residuals: Sequence[float], max_lag: int = 7) -> ResidualDiagnostics:
    """Moments, ACF and rule-based summary for a residual set."""
    mean_res = mean(residuals)
    skew_res = skewness(residuals)
    kurt_res = kurtosis(residuals)
    acf_points = acf(residuals, max_lag)
    return ResidualDiagnostics(
        mean_residual=mean_res,
        std_dev_residuals=stddev(residuals),
        skewness_residuals=skew_res,
        kurtosis_residuals=kurt_res,
        acf_residuals_data=_to_acf_values(acf_points),
        ai_summary=residual_summary_text(mean_res, skew_res, kurt_res, acf_points),
    )


@dataclass(frozen=True)
class StatisticsPanel:
    """Full statistical analysis of one well's residuals."""

    well_id: str
    residuals: list[float]
    mean: float
    std_dev: float
    skewness: float
    kurtosis: float
    acf_residuals: list[AcfPoint] = field(default_factory=list)
    qq_points: list[QQPoint] = field(default_factory=list)
    histogram: list[HistogramBin] = field(default_factory=list)
    acf_raw_gwl: list[AcfPoint] = field(default_factory=list)

    @property
    def has_residuals(self) -> bool:
        return bool(self.residuals)


def build_statistics_panel(
    series: WellSeries,
    forecast_fn: ForecastFunction,
    horizon: int,
    max_lag: int = 7,
    num_bins: int = 10,
) -> StatisticsPanel:
    """Backtest every point of ``series`` and describe the residuals.

    Returns:
        A ``StatisticsPanel``; with no scored points every statistic is the
        degenerate value (``0`` / empty list), never an exception.
    """
    result = run_backtest(series, forecast_fn, horizon, last_n=None)
    residuals = result.residuals
    if not residuals:
        logger.warning("Well %s: no residuals for the statistics panel", series.well_id)

    return StatisticsPanel(
        well_id=series.well_id,
        residuals=residuals,
        mean=mean(residuals),
        std_dev=stddev(residuals),
        skewness=skewness(residuals),
        kurtosis=kurtosis(residuals),
        acf_residuals=acf(residuals, max_lag),
        qq_points=qq_plot_data(residuals),
        histogram=histogram_bins(residuals, num_bins),
        acf_raw_gwl=acf(series.gwl_values(), max_lag),
    )
