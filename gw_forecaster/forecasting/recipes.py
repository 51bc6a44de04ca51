"""
Declarative forecast recipes.

The generative endpoint does not send code.  It sends a recipe: a JSON object
naming a forecasting method plus its parameters, e.g.::

    {"method": "linear_trend", "window": 10}
    {"method": "autoregressive", "p": 2, "d": 1, "q": 0}
    {"method": "gaussian_process", "kernel": "Matern", "lengthScale": 5}

Recipes are validated by pydantic (unknown methods, out-of-range parameters
and extra keys are rejected) and turned into a forecast function by
``build_forecast_function``.  The resulting callable satisfies the
forecast-function contract used by the backtest:

    (groundwater, water_quality, weather, usage) -> list[float] of length N

and returns ``[0.0] * N`` when there is no groundwater history at all.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import ConfigDict, Field, TypeAdapter

from gw_forecaster.backtest.evaluator import ForecastFunction
from gw_forecaster.data.dataset import WellSeries
from gw_forecaster.forecasting.models import (
    AutoregressiveModel,
    DriftModel,
    GaussianProcessModel,
    LastValueModel,
    LinearTrendModel,
    RollingMeanModel,
    WaterBalanceModel,
)
from gw_forecaster.models.base import CamelModel

GpKernel = Literal["RBF", "Matern", "Linear", "Periodic"]


class _Recipe(CamelModel):
    model_config = ConfigDict(extra="forbid")

    def describe(self) -> str:
        params = self.model_dump(exclude={"method"})
        if not params:
            return self.method  # type: ignore[attr-defined]
        joined = ", ".join(f"{k}={v}" for k, v in params.items())
        return f"{self.method}({joined})"  # type: ignore[attr-defined]


class LastValueRecipe(_Recipe):
    """Persistence: repeat the most recent GWL."""

    method: Literal["last_value"] = "last_value"

    def build_model(self) -> LastValueModel:
        return LastValueModel()


class RollingMeanRecipe(_Recipe):
    method: Literal["rolling_mean"] = "rolling_mean"
    window: int = Field(default=7, ge=1, le=365)

    def build_model(self) -> RollingMeanModel:
        return RollingMeanModel(window=self.window)


class LinearTrendRecipe(_Recipe):
    method: Literal["linear_trend"] = "linear_trend"
    window: int = Field(default=14, ge=2, le=365)

    def build_model(self) -> LinearTrendModel:
        return LinearTrendModel(window=self.window)


class DriftRecipe(_Recipe):
    method: Literal["drift"] = "drift"

    def build_model(self) -> DriftModel:
        return DriftModel()


class WaterBalanceRecipe(_Recipe):
    """Persistence plus a driver-based daily change (see ``WaterBalanceModel``)."""

    method: Literal["water_balance"] = "water_balance"
    window: int = Field(default=7, ge=1, le=365)
    intercept: float = 0.0
    precipitation_coef: float = 0.0
    pumping_coef: float = 0.0
    consumption_coef: float = 0.0

    def build_model(self) -> WaterBalanceModel:
        return WaterBalanceModel(
            window=self.window,
            intercept=self.intercept,
            precipitation_coef=self.precipitation_coef,
            pumping_coef=self.pumping_coef,
            consumption_coef=self.consumption_coef,
        )


class AutoregressiveRecipe(_Recipe):
    method: Literal["autoregressive"] = "autoregressive"
    p: int = Field(default=1, ge=0, le=10)
    d: int = Field(default=1, ge=0, le=2)
    q: int = Field(default=1, ge=0, le=10)

    def build_model(self) -> AutoregressiveModel:
        return AutoregressiveModel(p=self.p, d=self.d, q=self.q)


class GaussianProcessRecipe(_Recipe):
    method: Literal["gaussian_process"] = "gaussian_process"
    kernel: GpKernel = "RBF"
    length_scale: float = Field(default=7.0, gt=0)
    noise: float = Field(default=0.1, gt=0)
    window: int = Field(default=30, ge=1, le=365)
    period: float = Field(default=7.0, gt=0)

    def build_model(self) -> GaussianProcessModel:
        return GaussianProcessModel(
            kernel=self.kernel,
            length_scale=self.length_scale,
            noise=self.noise,
            window=self.window,
            period=self.period,
        )


ForecastRecipe = Annotated[
    Union[
        LastValueRecipe,
        RollingMeanRecipe,
        LinearTrendRecipe,
        DriftRecipe,
        WaterBalanceRecipe,
        AutoregressiveRecipe,
        GaussianProcessRecipe,
    ],
    Field(discriminator="method"),
]

RECIPE_ADAPTER: TypeAdapter[Any] = TypeAdapter(ForecastRecipe)

RECIPE_METHODS = (
    "last_value", "rolling_mean", "linear_trend", "drift",
    "water_balance", "autoregressive", "gaussian_process",
)

DEFAULT_RECIPE = LastValueRecipe()


def parse_recipe(data: Any) -> ForecastRecipe:
    """Validate a decoded JSON object into a recipe.

    Raises:
        pydantic.ValidationError: On unknown method or invalid parameters.
    """
    return RECIPE_ADAPTER.validate_python(data)


def recipe_schema() -> dict[str, Any]:
    """JSON schema of the recipe union, sent to the generative endpoint."""
    return RECIPE_ADAPTER.json_schema(by_alias=True)


def build_forecast_function(recipe: ForecastRecipe, horizon: int) -> ForecastFunction:
    """Turn a recipe into a forecast function for ``horizon`` steps.

    A fresh model is fitted on every call, so the function holds no state
    between backtest indices.
    """

    def forecast(groundwater, water_quality, weather, usage) -> list[float]:
        if not groundwater:
            return [0.0] * horizon
        series = WellSeries(
            well_id=groundwater[-1].well_id,
            groundwater=list(groundwater),
            water_quality=list(water_quality),
            weather=list(weather),
            usage=list(usage),
        )
        model = recipe.build_model()
        model.fit(series)
        return model.predict(horizon)

    forecast.__name__ = f"forecast_{recipe.method}"
    return forecast
