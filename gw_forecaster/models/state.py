"""
Forecast-function state per model kind.

Each ``ModelKind`` owns a fixed-schema ``ModelState``: the recipe currently
under evaluation, the endpoint's theory/explanation text, kind-specific
parameters (ARIMA orders, GP kernel) and the ``last_valid_state`` snapshot
taken after the most recent successful check.

Lifecycle (``FunctionStatus``)::

    unchecked --check ok--> checked
    unchecked --check fails--> error      (last_valid_state untouched)
    any --revert--> unchecked             (restored from last_valid_state)
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import Field

from gw_forecaster.forecasting.recipes import DEFAULT_RECIPE, ForecastRecipe, GpKernel
from gw_forecaster.models.base import CamelModel, MutableCamelModel
from gw_forecaster.models.forecast import ResidualDiagnostics


class ModelKind(str, Enum):
    GENERAL = "general"
    ARIMA = "arima"
    GAUSSIAN_PROCESS = "gaussian_process"


class FunctionStatus(str, Enum):
    UNCHECKED = "unchecked"
    CHECKED = "checked"
    ERROR = "error"


class ArimaParams(CamelModel):
    """ARIMA orders ``(p, d, q)``."""

    p: int = Field(default=1, ge=0, le=10)
    d: int = Field(default=1, ge=0, le=2)
    q: int = Field(default=1, ge=0, le=10)


class ValidState(CamelModel):
    """Snapshot of a function that passed a check."""

    recipe: ForecastRecipe = DEFAULT_RECIPE
    theory: str = ""
    explanation: str = ""
    arima_params: Optional[ArimaParams] = None
    gp_kernel_type: Optional[GpKernel] = None
    performance: Optional[dict[str, Optional[float]]] = None
    diagnostics: Optional[ResidualDiagnostics] = None


class ModelState(MutableCamelModel):
    """Mutable per-kind state held in the session document."""

    recipe: ForecastRecipe = DEFAULT_RECIPE
    theory: str = ""
    explanation: str = ""
    legacy_function_body: Optional[str] = None
    arima_params: Optional[ArimaParams] = None
    gp_kernel_type: Optional[GpKernel] = None
    last_valid_state: Optional[ValidState] = None


def default_model_states() -> dict[ModelKind, ModelState]:
    """Fresh state for every kind, with ARIMA (1,1,1) and an RBF kernel."""
    return {
        ModelKind.GENERAL: ModelState(),
        ModelKind.ARIMA: ModelState(arima_params=ArimaParams()),
        ModelKind.GAUSSIAN_PROCESS: ModelState(gp_kernel_type="RBF"),
    }


class GeneratedRecipe(CamelModel):
    """Validated response of the recipe-generation endpoint.

    Attributes:
        recipe:                  Forecast recipe to evaluate.
        theory:                  Hydrological reasoning behind the recipe.
        explanation:             Plain-language description for operators.
        optimal_arima_params:    Suggested orders (ARIMA kind only).
        optimal_gp_kernel_type:  Suggested kernel (Gaussian-process kind only).
    """

    recipe: ForecastRecipe
    theory: str
    explanation: str
    optimal_arima_params: Optional[ArimaParams] = None
    optimal_gp_kernel_type: Optional[GpKernel] = None
