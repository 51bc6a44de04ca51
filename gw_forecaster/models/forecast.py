"""
Forecast, backtest-error and residual-diagnostic models.

``WellForecast`` is what the session document stores per well after a check:
the horizon-``N`` point forecast with its dates and interval bounds, plus the
backtest errors and metrics that justified it.

Invariant: ``predictions``, ``dates`` and ``interval_bounds`` have equal
length, either ``0`` (cleared after a failed check) or the forecast horizon.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Optional

from pydantic import Field, field_serializer, field_validator, model_validator

from gw_forecaster.models.base import CamelModel


class PredictionErrorRecord(CamelModel):
    """One rolling-backtest comparison.

    Attributes:
        timestamp: Timestamp of the held-out actual observation.
        actual: Observed GWL.
        predicted: First value returned by the forecast function.
        error: ``predicted - actual``.
    """

    timestamp: datetime
    actual: float
    predicted: float
    error: float


class IntervalBound(CamelModel):
    """Prediction interval for one horizon step; ``None`` bounds mean unknown."""

    lower: Optional[float] = None
    upper: Optional[float] = None

    @property
    def is_defined(self) -> bool:
        return self.lower is not None and self.upper is not None


class AcfValue(CamelModel):
    """Serializable autocorrelation point."""

    lag: int
    value: float
    ci_upper: float
    ci_lower: float


class ResidualDiagnostics(CamelModel):
    """Summary statistics of backtest residuals saved with a valid state.

    ``ai_summary`` is a short rule-based reading of the numbers that is sent
    back to the generative endpoint as context for the next iteration.
    """

    mean_residual: float
    std_dev_residuals: float
    skewness_residuals: float
    kurtosis_residuals: float
    acf_residuals_data: list[AcfValue] = Field(default_factory=list)
    ai_summary: str = ""


def _metric_out(v: float) -> float | None:
    return v if math.isfinite(v) else None


class WellForecast(CamelModel):
    """Per-well result of the latest check."""

    predictions: list[float] = Field(default_factory=list)
    dates: list[str] = Field(default_factory=list)
    interval_bounds: list[IntervalBound] = Field(default_factory=list, alias="futureCiBounds")
    errors: list[PredictionErrorRecord] = Field(default_factory=list)
    metrics: dict[str, float] = Field(default_factory=dict)
    bootstrap_step: int = Field(default=0, alias="bootstrapStartStep")

    @field_validator("metrics", mode="before")
    @classmethod
    def restore_infinity(cls, v: object) -> object:
        # JSON has no Infinity; "no valid pairs" is written as null.
        if isinstance(v, dict):
            return {k: (math.inf if val is None else val) for k, val in v.items()}
        return v

    @field_serializer("metrics")
    def serialize_metrics(self, v: dict[str, float]) -> dict[str, float | None]:
        return {k: _metric_out(val) for k, val in v.items()}

    @model_validator(mode="after")
    def validate_lengths(self) -> "WellForecast":
        n = len(self.predictions)
        if len(self.dates) != n:
            raise ValueError(f"dates has {len(self.dates)} entries, predictions has {n}.")
        if self.interval_bounds and len(self.interval_bounds) != n:
            raise ValueError(
                f"interval_bounds has {len(self.interval_bounds)} entries, predictions has {n}."
            )
        return self
