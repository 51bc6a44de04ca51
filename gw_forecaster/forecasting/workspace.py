"""
Forecast-function workspace: the lifecycle of generated recipes.

``ForecastWorkspace`` wraps a ``SessionDocument`` and implements every
operation that changes forecast-function state:

  select_model        switch the active model kind
  apply_generated     install a freshly generated recipe (iteration + 1)
  set_recipe          install a hand-written recipe
  check               backtest, forecast, intervals, diagnostics, history
  revert_to_last_valid restore the last function that passed a check
  select_best         restore the best history entry by a metric, re-check
  set_bootstrap_step  change a well's bootstrap/factor split, recompute bounds
  statistics_panel    full-history residual analysis for one well

Failure semantics
-----------------
A check that cannot produce ``N`` finite predictions moves the status to
``error``, clears that well's forecast and records the message.  It never
touches ``last_valid_state``; that snapshot only changes on success.
Missing data is not an error: ``check`` returns an unsuccessful outcome with
a "not enough data" message and leaves the status alone.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Optional

from gw_forecaster.backtest.diagnostics import (
    StatisticsPanel,
    build_statistics_panel,
    summarize_residuals,
)
from gw_forecaster.backtest.evaluator import forecast_future, run_backtest
from gw_forecaster.backtest.metrics import get_metric
from gw_forecaster.config import BacktestConfig, ForecastConfig
from gw_forecaster.data.dataset import WellSeries
from gw_forecaster.exceptions import NoValidStateError
from gw_forecaster.forecasting.history import (
    HistoryEntry,
    best_entry,
    finite_metrics,
    upsert_entry,
)
from gw_forecaster.forecasting.recipes import (
    AutoregressiveRecipe,
    ForecastRecipe,
    GaussianProcessRecipe,
    build_forecast_function,
)
from gw_forecaster.models.forecast import IntervalBound, ResidualDiagnostics, WellForecast
from gw_forecaster.models.session import SessionDocument
from gw_forecaster.models.state import (
    FunctionStatus,
    GeneratedRecipe,
    ModelKind,
    ModelState,
    ValidState,
)
from gw_forecaster.stats.intervals import hybrid_intervals
from gw_forecaster.utils.logging import log_context
from gw_forecaster.utils.time_utils import future_dates

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckOutcome:
    """Result of one ``check`` call.

    Attributes:
        well_id:     Well that was checked.
        ok:          True when a full forecast was produced.
        forecast:    Stored well forecast (cleared on failure).
        diagnostics: Residual diagnostics (``None`` on failure).
        message:     Error or "not enough data" text when ``ok`` is False.
    """

    well_id: str
    ok: bool
    forecast: WellForecast
    diagnostics: Optional[ResidualDiagnostics] = None
    message: Optional[str] = None


class ForecastWorkspace:
    """Stateful operations on one session's forecast functions.

    Args:
        session:  Document to read and modify in place.
        forecast: Horizon and interval settings.
        backtest: Check window and statistics settings.
        rng:      Random source for the bootstrap (seeded from config if omitted).
    """

    def __init__(
        self,
        session: SessionDocument,
        forecast: ForecastConfig,
        backtest: BacktestConfig,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.session = session
        self.forecast_config = forecast
        self.backtest_config = backtest
        self.rng = rng or random.Random(forecast.random_seed)

    # ── Accessors ──────────────────────────────────────────────────────────────

    @property
    def kind(self) -> ModelKind:
        return self.session.selected_prediction_model

    @property
    def state(self) -> ModelState:
        return self.session.current_state

    @property
    def status(self) -> FunctionStatus:
        return self.session.function_status

    @property
    def horizon(self) -> int:
        return self.forecast_config.horizon

    def _series(self, well_id: Optional[str]) -> WellSeries:
        well = well_id or self.session.selected_well_id
        if not well:
            raise ValueError("No well selected.")
        return self.session.dataset.for_well(well)

    # ── State transitions ──────────────────────────────────────────────────────

    def select_model(self, kind: ModelKind) -> None:
        """Switch the active model kind; the new kind starts unchecked."""
        self.session.selected_prediction_model = kind
        self.session.function_status = FunctionStatus.UNCHECKED
        self.session.ai_function_error = None
        logger.info("Selected model kind: %s", kind.value)

    def set_recipe(self, recipe: ForecastRecipe, theory: str = "", explanation: str = "") -> None:
        """Install a recipe by hand (no iteration bump)."""
        state = self.state
        state.recipe = recipe
        state.theory = theory
        state.explanation = explanation
        state.legacy_function_body = None
        self.session.function_status = FunctionStatus.UNCHECKED
        self.session.ai_function_error = None

    def apply_generated(self, generated: GeneratedRecipe) -> None:
        """Install a generated recipe and its kind-specific parameters."""
        state = self.state
        recipe = generated.recipe

        if self.kind is ModelKind.ARIMA and generated.optimal_arima_params is not None:
            params = generated.optimal_arima_params
            state.arima_params = params
            if isinstance(recipe, AutoregressiveRecipe):
                recipe = recipe.model_copy(update={"p": params.p, "d": params.d, "q": params.q})
        if self.kind is ModelKind.GAUSSIAN_PROCESS and generated.optimal_gp_kernel_type:
            state.gp_kernel_type = generated.optimal_gp_kernel_type
            if isinstance(recipe, GaussianProcessRecipe):
                recipe = recipe.model_copy(update={"kernel": generated.optimal_gp_kernel_type})

        self.set_recipe(recipe, generated.theory, generated.explanation)
        self.session.ai_iteration_count += 1
        logger.info(
            "Iteration %d (%s): installed recipe %s",
            self.session.ai_iteration_count, self.kind.value, recipe.describe(),
        )

    def revert_to_last_valid(self) -> ValidState:
        """Restore the current kind's last valid state; status becomes unchecked.

        Raises:
            NoValidStateError: If this kind has never passed a check.
        """
        snapshot = self.state.last_valid_state
        if snapshot is None:
            raise NoValidStateError(
                f"No valid state saved for model kind '{self.kind.value}'."
            )
        state = self.state
        state.recipe = snapshot.recipe
        state.theory = snapshot.theory
        state.explanation = snapshot.explanation
        state.legacy_function_body = None
        if snapshot.arima_params is not None:
            state.arima_params = snapshot.arima_params
        if snapshot.gp_kernel_type is not None:
            state.gp_kernel_type = snapshot.gp_kernel_type
        self.session.function_status = FunctionStatus.UNCHECKED
        self.session.ai_function_error = None
        logger.info("Reverted %s to last valid recipe %s", self.kind.value, snapshot.recipe.describe())
        return snapshot

    def select_best(self, metric: Optional[str] = None, well_id: Optional[str] = None) -> CheckOutcome:
        """Restore the history entry with the lowest ``metric`` and re-check it.

        Raises:
            ValueError: If ``metric`` is not registered.
            NoValidStateError: If no history entry has a finite value.
        """
        key = get_metric(metric or self.session.selected_performance_metric).key
        entry = best_entry(self.session.ai_theory_history, key)
        if entry is None:
            raise NoValidStateError(f"No history entry has a usable '{key}' value.")

        self.session.selected_prediction_model = entry.model_type
        state = self.state
        state.recipe = entry.recipe
        state.theory = entry.theory
        state.explanation = entry.explanation
        state.legacy_function_body = None
        if entry.arima_params is not None:
            state.arima_params = entry.arima_params
        if entry.gp_kernel_type is not None:
            state.gp_kernel_type = entry.gp_kernel_type
        self.session.function_status = FunctionStatus.UNCHECKED
        logger.info(
            "Best %s: iteration %d (%s) = %.4f",
            key, entry.iteration, entry.model_type.value, entry.metrics[key],
        )
        return self.check(well_id, iteration=entry.iteration)

    # ── Evaluation ─────────────────────────────────────────────────────────────

    def check(self, well_id: Optional[str] = None, iteration: Optional[int] = None) -> CheckOutcome:
        """Backtest the active recipe on one well and forecast ``N`` steps.

        Args:
            well_id:   Well to check; defaults to the selected well.
            iteration: History key override (used when re-checking an old entry).

        Returns:
            CheckOutcome; never raises for data or forecast-shape problems.
        """
        series = self._series(well_id)
        with log_context(well_id=series.well_id, model_kind=self.kind.value):
            return self._check_series(series, iteration)

    def _check_series(self, series: WellSeries, iteration: Optional[int]) -> CheckOutcome:
        well = series.well_id
        previous = self.session.all_well_forecasts.get(well)
        bootstrap_step = previous.bootstrap_step if previous else self.forecast_config.bootstrap_step

        if not series.gwl_values():
            message = f"Not enough data: well '{well}' has no groundwater levels."
            logger.warning(message)
            return CheckOutcome(well_id=well, ok=False, forecast=previous or WellForecast(), message=message)

        state = self.state
        forecast_fn = build_forecast_function(state.recipe, self.horizon)
        backtest = run_backtest(series, forecast_fn, self.horizon, last_n=self.backtest_config.leading_period)

        try:
            predictions = forecast_future(series, forecast_fn, self.horizon)
        except Exception as exc:  # shape violations and model failures are both recoverable
            message = f"Forecast function failed or returned an invalid result: {exc}"
            logger.error("Check failed for well %s: %s", well, exc)
            cleared = WellForecast(
                errors=backtest.errors, metrics=backtest.metrics, bootstrap_step=bootstrap_step
            )
            self.session.all_well_forecasts[well] = cleared
            self.session.function_status = FunctionStatus.ERROR
            self.session.ai_function_error = message
            return CheckOutcome(well_id=well, ok=False, forecast=cleared, message=message)

        residuals = backtest.residuals
        bounds = self._intervals(residuals, predictions, bootstrap_step)
        diagnostics = summarize_residuals(residuals, self.backtest_config.acf_max_lag)

        forecast = WellForecast(
            predictions=predictions,
            dates=future_dates(series.last_timestamp, self.horizon),  # type: ignore[arg-type]
            interval_bounds=bounds,
            errors=backtest.errors,
            metrics=backtest.metrics,
            bootstrap_step=bootstrap_step,
        )
        self.session.all_well_forecasts[well] = forecast

        stored_metrics = finite_metrics(backtest.metrics)
        arima = state.arima_params if self.kind is ModelKind.ARIMA else None
        kernel = state.gp_kernel_type if self.kind is ModelKind.GAUSSIAN_PROCESS else None
        state.last_valid_state = ValidState(
            recipe=state.recipe,
            theory=state.theory,
            explanation=state.explanation,
            arima_params=arima,
            gp_kernel_type=kernel,
            performance=stored_metrics,
            diagnostics=diagnostics,
        )
        self.session.ai_theory_history = upsert_entry(
            self.session.ai_theory_history,
            HistoryEntry(
                iteration=self.session.ai_iteration_count if iteration is None else iteration,
                model_type=self.kind,
                recipe=state.recipe,
                theory=state.theory,
                explanation=state.explanation,
                forecast=predictions,
                metrics=stored_metrics,
                diagnostics=diagnostics,
                arima_params=arima,
                gp_kernel_type=kernel,
            ),
        )
        self.session.function_status = FunctionStatus.CHECKED
        self.session.ai_function_error = None

        logger.info(
            "Checked %s on well %s: %d errors, rmse=%.4f",
            state.recipe.describe(), well, len(backtest.errors), backtest.metrics["rmse"],
        )
        return CheckOutcome(well_id=well, ok=True, forecast=forecast, diagnostics=diagnostics)

    def set_bootstrap_step(self, well_id: str, step: int) -> WellForecast:
        """Change a well's bootstrap step and recompute its interval bounds.

        Raises:
            ValueError: If ``step`` is outside ``[0, N]``.
        """
        if not 0 <= step <= self.horizon:
            raise ValueError(f"bootstrap step must be in [0, {self.horizon}], got {step}.")
        current = self.session.all_well_forecasts.get(well_id) or WellForecast()
        bounds = self._intervals([e.error for e in current.errors], current.predictions, step)
        updated = current.model_copy(update={"bootstrap_step": step, "interval_bounds": bounds})
        self.session.all_well_forecasts[well_id] = updated
        return updated

    def statistics_panel(self, well_id: Optional[str] = None) -> StatisticsPanel:
        """Full-history residual analysis of the active recipe."""
        series = self._series(well_id)
        forecast_fn = build_forecast_function(self.state.recipe, self.horizon)
        panel = build_statistics_panel(
            series,
            forecast_fn,
            self.horizon,
            max_lag=self.backtest_config.acf_max_lag,
            num_bins=self.backtest_config.histogram_bins,
        )
        self.session.residual_statistics = summarize_residuals(
            panel.residuals, self.backtest_config.acf_max_lag
        )
        return panel

    def _intervals(
        self, residuals: list[float], predictions: list[float], bootstrap_step: int
    ) -> list[IntervalBound]:
        cfg = self.forecast_config
        return hybrid_intervals(
            residuals,
            predictions,
            bootstrap_step,
            num_simulations=cfg.num_simulations,
            confidence_level=cfg.confidence_level,
            z=cfg.z_score,
            rng=self.rng,
        )
