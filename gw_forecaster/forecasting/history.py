"""
Iteration history of checked forecast functions.

Every successful check upserts one ``HistoryEntry`` keyed by
``(iteration, model_kind)``: re-checking the same generated function replaces
its entry instead of adding a duplicate.

The history serves two purposes:

* ``best_entry`` picks the entry with the lowest finite value of a metric
  (``None``/``inf``/``NaN`` values never win) for "select best model".
* ``history_for_prompt`` sends a truncated tail back to the generative
  endpoint so the next iteration can learn from the previous ones.  The
  amount sent depends on the prompt mode:

    ============  ========  ====================================
    mode          entries   lines kept of theory / explanation
    ============  ========  ====================================
    high-end      last 2    3
    mid-end       last 2    2
    low-end       last 1    1
    ============  ========  ====================================
"""

from __future__ import annotations

import math
from typing import Any, Optional, Sequence

from pydantic import Field

from gw_forecaster.backtest.metrics import is_scored
from gw_forecaster.forecasting.recipes import DEFAULT_RECIPE, ForecastRecipe, GpKernel
from gw_forecaster.models.base import CamelModel
from gw_forecaster.models.forecast import ResidualDiagnostics
from gw_forecaster.models.state import ArimaParams, ModelKind

PROMPT_HISTORY_LIMITS: dict[str, tuple[int, int]] = {
    "high-end": (2, 3),
    "mid-end": (2, 2),
    "low-end": (1, 1),
}


class HistoryEntry(CamelModel):
    """One checked iteration.

    Attributes:
        iteration:      Generation counter value when the function was created.
        model_type:     Model kind that was active.
        recipe:         The recipe that was checked.
        theory:         Endpoint-provided theory text.
        explanation:    Endpoint-provided explanation text.
        forecast:       The horizon forecast produced by the check.
        metrics:        Metric values; ``None`` where nothing was scored.
        diagnostics:    Residual diagnostics of the check.
        arima_params:   Orders, for ARIMA entries only.
        gp_kernel_type: Kernel, for Gaussian-process entries only.
    """

    iteration: int
    model_type: ModelKind
    recipe: ForecastRecipe = DEFAULT_RECIPE
    theory: str = ""
    explanation: str = ""
    forecast: list[float] = Field(default_factory=list, alias="sevenDayGroundwaterForecast")
    metrics: dict[str, Optional[float]] = Field(default_factory=dict)
    diagnostics: Optional[ResidualDiagnostics] = None
    arima_params: Optional[ArimaParams] = None
    gp_kernel_type: Optional[GpKernel] = None


def finite_metrics(metrics: dict[str, float]) -> dict[str, Optional[float]]:
    """Replace ``inf``/``NaN`` with ``None`` for storage."""
    return {k: (v if is_scored(v) else None) for k, v in metrics.items()}


def upsert_entry(history: Sequence[HistoryEntry], entry: HistoryEntry) -> list[HistoryEntry]:
    """Replace the entry with the same ``(iteration, model_type)`` or append."""
    out = list(history)
    for i, existing in enumerate(out):
        if existing.iteration == entry.iteration and existing.model_type == entry.model_type:
            out[i] = entry
            return out
    out.append(entry)
    return out


def best_entry(history: Sequence[HistoryEntry], metric: str) -> Optional[HistoryEntry]:
    """Entry with the minimal finite ``metric``; earliest wins ties.

    Returns:
        The best entry, or ``None`` if no entry has a usable value.
    """
    best: Optional[HistoryEntry] = None
    best_value = math.inf
    for entry in history:
        value = entry.metrics.get(metric)
        if not is_scored(value):
            continue
        if value < best_value:  # type: ignore[operator]
            best, best_value = entry, value  # type: ignore[assignment]
    return best


def truncate_to_lines(text: str, max_lines: int) -> str:
    """Keep the first ``max_lines`` non-blank lines, appending ``...`` if cut.

    Text that already fits is returned unchanged (blank lines included).
    """
    if not text:
        return ""
    lines = [line for line in text.split("\n") if line.strip()]
    if len(lines) <= max_lines:
        return text
    return "\n".join(lines[:max_lines]) + "..."


def history_for_prompt(history: Sequence[HistoryEntry], prompt_mode: str) -> list[dict[str, Any]]:
    """Truncated history tail for the generation payload.

    Raises:
        ValueError: If ``prompt_mode`` is unknown.
    """
    if prompt_mode not in PROMPT_HISTORY_LIMITS:
        raise ValueError(
            f"Unknown prompt mode '{prompt_mode}'. Must be one of {sorted(PROMPT_HISTORY_LIMITS)}."
        )
    if not history:
        return []
    count, max_lines = PROMPT_HISTORY_LIMITS[prompt_mode]
    return [
        {
            "iteration": entry.iteration,
            "modelType": entry.model_type.value,
            "metrics": entry.metrics,
            "recipe": entry.recipe.to_wire(),
            "theory": truncate_to_lines(entry.theory, max_lines),
            "explanation": truncate_to_lines(entry.explanation, max_lines),
            "arimaParams": entry.arima_params.to_wire() if entry.arima_params else None,
            "gpKernelType": entry.gp_kernel_type,
            "diagnostics": entry.diagnostics.to_wire() if entry.diagnostics else None,
        }
        for entry in history[-count:]
    ]
