"""
Tests for the forecast-function lifecycle in ForecastWorkspace.

Scenarios
---------
- A successful check stores an N-step forecast with dates and bounds, saves
  the last valid state and adds a history entry.
- A failing recipe moves the status to ``error``, clears predictions and
  leaves the last valid state untouched.
- revert_to_last_valid raises until a check has passed.
- select_best restores the lowest-metric entry and re-checks it.
- Generated ARIMA orders and GP kernels override the recipe's own values.
- A well with no groundwater levels is reported, not failed.
"""

from __future__ import annotations

import pytest

from gw_forecaster.exceptions import NoValidStateError
from gw_forecaster.forecasting.recipes import (
    AutoregressiveRecipe,
    GaussianProcessRecipe,
    LastValueRecipe,
    LinearTrendRecipe,
    RollingMeanRecipe,
    WaterBalanceRecipe,
)
from gw_forecaster.forecasting.workspace import ForecastWorkspace
from gw_forecaster.models.observation import WellLocation
from gw_forecaster.models.state import (
    ArimaParams,
    FunctionStatus,
    GeneratedRecipe,
    ModelKind,
)

# Overflows to inf on the second step, so every forecast fails the shape check.
EXPLODING = WaterBalanceRecipe(intercept=1e308)


@pytest.fixture
def workspace(sample_session, forecast_config, backtest_config, rng) -> ForecastWorkspace:
    return ForecastWorkspace(sample_session, forecast_config, backtest_config, rng)


# ── check ──────────────────────────────────────────────────────────────────────

def test_check_success(workspace) -> None:
    outcome = workspace.check()

    assert outcome.ok
    assert outcome.well_id == "W1"
    forecast = outcome.forecast
    assert forecast.predictions == pytest.approx([13.9] * 7)
    assert forecast.dates[0] == "2024-05-21"
    assert len(forecast.interval_bounds) == 7
    assert len(forecast.errors) == 7
    assert forecast.metrics["mae"] == pytest.approx(0.1)
    assert forecast.bootstrap_step == 3

    session = workspace.session
    assert session.function_status is FunctionStatus.CHECKED
    assert session.all_well_forecasts["W1"] == forecast
    assert workspace.state.last_valid_state.recipe == LastValueRecipe()
    assert len(session.ai_theory_history) == 1
    assert session.ai_theory_history[0].metrics["rmse"] == pytest.approx(0.1)


def test_check_failure_keeps_last_valid_state(workspace) -> None:
    workspace.check()
    snapshot = workspace.state.last_valid_state

    workspace.set_recipe(EXPLODING)
    outcome = workspace.check()

    assert not outcome.ok
    assert "invalid result" in outcome.message
    assert outcome.forecast.predictions == []
    assert workspace.status is FunctionStatus.ERROR
    assert workspace.session.ai_function_error == outcome.message
    assert workspace.session.all_well_forecasts["W1"].predictions == []
    assert workspace.session.all_well_forecasts["W1"].dates == []
    assert workspace.session.all_well_forecasts["W1"].interval_bounds == []
    assert workspace.state.last_valid_state == snapshot
    assert len(workspace.session.ai_theory_history) == 1


def test_check_without_groundwater_is_not_an_error(workspace) -> None:
    dataset = workspace.session.dataset
    dataset.upsert_well(WellLocation(id="W3", name="Dry", lat=0.0, lon=0.0))
    workspace.session.apply_dataset(dataset)

    outcome = workspace.check("W3")

    assert not outcome.ok
    assert "Not enough data" in outcome.message
    assert workspace.status is FunctionStatus.UNCHECKED


def test_check_without_selected_well(workspace) -> None:
    workspace.session.selected_well_id = ""
    with pytest.raises(ValueError, match="No well selected"):
        workspace.check()


# ── revert ─────────────────────────────────────────────────────────────────────

def test_revert_requires_valid_state(workspace) -> None:
    with pytest.raises(NoValidStateError):
        workspace.revert_to_last_valid()


def test_revert_restores_recipe(workspace) -> None:
    workspace.set_recipe(RollingMeanRecipe(window=3), theory="smooth")
    workspace.check()
    workspace.set_recipe(EXPLODING, theory="broken")
    workspace.check()

    snapshot = workspace.revert_to_last_valid()

    assert snapshot.recipe == RollingMeanRecipe(window=3)
    assert workspace.state.recipe == RollingMeanRecipe(window=3)
    assert workspace.state.theory == "smooth"
    assert workspace.status is FunctionStatus.UNCHECKED
    assert workspace.session.ai_function_error is None


# ── select_model / apply_generated ─────────────────────────────────────────────

def test_select_model_resets_status(workspace) -> None:
    workspace.check()
    workspace.select_model(ModelKind.ARIMA)
    assert workspace.kind is ModelKind.ARIMA
    assert workspace.status is FunctionStatus.UNCHECKED
    assert workspace.state.arima_params == ArimaParams()


def test_apply_generated_bumps_iteration(workspace) -> None:
    workspace.apply_generated(
        GeneratedRecipe(recipe=LinearTrendRecipe(window=5), theory="trend", explanation="line")
    )
    assert workspace.session.ai_iteration_count == 1
    assert workspace.state.recipe == LinearTrendRecipe(window=5)
    assert workspace.state.explanation == "line"


def test_apply_generated_arima_orders_override_recipe(workspace) -> None:
    workspace.select_model(ModelKind.ARIMA)
    workspace.apply_generated(
        GeneratedRecipe(
            recipe=AutoregressiveRecipe(p=1, d=1, q=1),
            theory="t",
            explanation="e",
            optimal_arima_params=ArimaParams(p=2, d=0, q=0),
        )
    )
    assert workspace.state.recipe == AutoregressiveRecipe(p=2, d=0, q=0)
    assert workspace.state.arima_params == ArimaParams(p=2, d=0, q=0)

    outcome = workspace.check()
    assert outcome.ok
    entry = workspace.session.ai_theory_history[-1]
    assert entry.model_type is ModelKind.ARIMA
    assert entry.arima_params == ArimaParams(p=2, d=0, q=0)
    assert entry.gp_kernel_type is None


def test_apply_generated_gp_kernel_overrides_recipe(workspace) -> None:
    workspace.select_model(ModelKind.GAUSSIAN_PROCESS)
    workspace.apply_generated(
        GeneratedRecipe(
            recipe=GaussianProcessRecipe(),
            theory="t",
            explanation="e",
            optimal_gp_kernel_type="Matern",
        )
    )
    assert workspace.state.recipe.kernel == "Matern"
    assert workspace.state.gp_kernel_type == "Matern"


# ── select_best ────────────────────────────────────────────────────────────────

def test_select_best_restores_lowest_rmse(workspace) -> None:
    workspace.check()
    workspace.apply_generated(
        GeneratedRecipe(recipe=LinearTrendRecipe(window=14), theory="trend", explanation="")
    )
    workspace.check()
    workspace.set_recipe(RollingMeanRecipe(window=7))

    outcome = workspace.select_best("RMSE")

    assert outcome.ok
    assert workspace.state.recipe == LinearTrendRecipe(window=14)
    assert workspace.state.theory == "trend"
    assert outcome.forecast.metrics["rmse"] < 1e-6
    # Re-checking updates iteration 1 in place.
    assert [e.iteration for e in workspace.session.ai_theory_history] == [0, 1]


def test_select_best_without_history(workspace) -> None:
    with pytest.raises(NoValidStateError):
        workspace.select_best()


def test_select_best_unknown_metric(workspace) -> None:
    workspace.check()
    with pytest.raises(ValueError):
        workspace.select_best("r2")


# ── bootstrap step / statistics ────────────────────────────────────────────────

def test_set_bootstrap_step_recomputes_bounds(workspace) -> None:
    workspace.check()
    updated = workspace.set_bootstrap_step("W1", 7)
    assert updated.bootstrap_step == 7
    assert len(updated.interval_bounds) == 7
    assert workspace.session.all_well_forecasts["W1"].bootstrap_step == 7

    # The chosen step survives the next check.
    assert workspace.check().forecast.bootstrap_step == 7


@pytest.mark.parametrize("step", [-1, 8])
def test_set_bootstrap_step_out_of_range(workspace, step) -> None:
    with pytest.raises(ValueError, match="bootstrap step"):
        workspace.set_bootstrap_step("W1", step)


def test_statistics_panel_updates_session(workspace) -> None:
    panel = workspace.statistics_panel()
    assert panel.well_id == "W1"
    assert len(panel.residuals) == 19
    assert workspace.session.residual_statistics is not None
    assert workspace.session.residual_statistics.mean_residual == pytest.approx(-0.1)
