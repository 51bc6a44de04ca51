"""
Groundwater Forecaster: CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Load the session document from the configured store.
  4. Execute the action (import, generate, check, report, ...).
  5. Save the session if it changed and report the result to stdout.

Install and run::

    pip install -e .
    gw-forecaster --help
    gw-forecaster import-records data/raw/gwl.json --kind groundwaterData
    gw-forecaster select-well W1
    gw-forecaster generate
    gw-forecaster show-forecast
    gw-forecaster compliance-report --output data/exports/W1.md
"""

from __future__ import annotations

import json
import random
from pathlib import Path
from typing import Optional

import typer

from gw_forecaster.models.observation import ObservationKind
from gw_forecaster.models.state import ModelKind

app = typer.Typer(
    name="gw-forecaster",
    help="Groundwater level forecasting with generated recipes, backtests and compliance checks.",
    add_completion=False,
)

_CONFIG_OPTION = typer.Option(None, "--config", help="Path to TOML config file.")
_WELL_OPTION = typer.Option(None, "--well", "-w", help="Well id (default: the selected well).")


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from gw_forecaster.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from gw_forecaster.utils.logging import configure_logging
    configure_logging(config.logging)


def _open_session(config):
    """Return ``(store, session)``, exiting on an unreadable session."""
    from gw_forecaster.exceptions import SessionStoreError
    from gw_forecaster.session.store import get_session_store, load_or_new

    store = get_session_store(config)
    try:
        return store, load_or_new(store, config)
    except SessionStoreError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)


def _save_session(store, session) -> None:
    from gw_forecaster.exceptions import SessionStoreError

    try:
        store.save(session)
    except SessionStoreError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)


def _resolve_well(session, well: Optional[str]) -> str:
    well_id = well or session.selected_well_id
    if not well_id:
        typer.echo("[ERROR] No well selected. Pass --well or run 'select-well' first.", err=True)
        raise typer.Exit(code=1)
    if not session.dataset.has_well(well_id):
        typer.echo(f"[ERROR] Unknown well '{well_id}'.", err=True)
        raise typer.Exit(code=1)
    return well_id


def _workspace(config, session):
    from gw_forecaster.forecasting.workspace import ForecastWorkspace
    return ForecastWorkspace(session, config.forecast, config.backtest)


def _advisor(config):
    from gw_forecaster.ai.client import GenerativeClient
    from gw_forecaster.ai.generator import ForecastAdvisor

    client = GenerativeClient.from_config(config.generative)
    if client.is_fixture:
        typer.echo("  (no endpoint credentials; using fixture responses)")
    return ForecastAdvisor(client, config.generative, config.backtest, config.forecast.horizon)


def _report_check(config, session, outcome, advisor=None) -> None:
    """Print a check outcome and, when enabled, fetch the follow-up hint."""
    from gw_forecaster.exceptions import GenerativeResponseError
    from gw_forecaster.reporting.formatters import format_forecast_table

    if outcome.ok:
        typer.echo(format_forecast_table(outcome.well_id, outcome.forecast, config.forecast.confidence_level))
        if outcome.diagnostics:
            typer.echo("")
            typer.echo(f"  {outcome.diagnostics.ai_summary}")
    else:
        typer.echo(f"[ERROR] {outcome.message}", err=True)

    if advisor is None or not (session.is_ai_suggesting_hint or config.generative.suggest_hints):
        return
    series = session.dataset.for_well(outcome.well_id)
    if outcome.ok:
        try:
            session.user_hint = advisor.suggest_hint(session, series, outcome.forecast.errors)
        except GenerativeResponseError as exc:
            typer.echo(f"  Hint suggestion failed: {exc}", err=True)
            return
        typer.echo("")
        typer.echo(f"  Suggested hint: {session.user_hint}")
    elif session.ai_function_error:
        session.user_hint = advisor.explain_failure(
            session.ai_function_error,
            f"The recipe must forecast groundwater level for the next "
            f"{config.forecast.horizon} days as finite numbers.",
        )
        typer.echo("")
        typer.echo(f"  Failure analysis: {session.user_hint}")


# ── Configuration ─────────────────────────────────────────────────────────────

@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = _CONFIG_OPTION,
    show_full: bool = typer.Option(False, "--full", help="Print full config including all fields."),
) -> None:
    """Validate the configuration file and print parsed values.

    Exits with code 1 if the config fails validation.
    """
    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Session backend:   {config.session.backend}")
    typer.echo(f"  Forecast horizon:  {config.forecast.horizon}")
    typer.echo(f"  Confidence level:  {config.forecast.confidence_level}")
    typer.echo(f"  Leading period:    {config.backtest.leading_period}")
    typer.echo(f"  Endpoint:          {config.generative.api_url or '(fixture mode)'}")
    typer.echo(f"  Prompt mode:       {config.generative.prompt_mode}")
    typer.echo(f"  Log level:         {config.logging.level}")
    typer.echo(f"  Debug mode:        {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        dumped = config.model_dump()
        dumped["generative"]["client_key"] = "***" if config.generative.client_key else ""
        typer.echo(json.dumps(dumped, indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


# ── Data ──────────────────────────────────────────────────────────────────────

@app.command("import-records")
def import_records_cmd(
    records_file: str = typer.Argument(..., help="JSON file holding an array of records."),
    kind: ObservationKind = typer.Option(..., "--kind", "-k", help="Collection to import into."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate records but do not save."),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Import observations from a JSON array.

    Records are upserted by (wellId, timestamp); fields missing from an
    incoming record keep their stored values.  Unknown wells are registered
    with placeholder coordinates.  A file with any invalid record is rejected
    as a whole.
    """
    from gw_forecaster.exceptions import RecordImportError
    from gw_forecaster.ingestion.records import import_records, load_records_file

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    path = Path(records_file)
    typer.echo(f"Loading {kind.value} records from: {path}")
    try:
        records = load_records_file(path, kind)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except RecordImportError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"  Validated {len(records)} record(s).")
    if dry_run:
        typer.echo("[DRY RUN] Nothing saved.")
        return

    store, session = _open_session(config)
    dataset = session.dataset
    created = import_records(dataset, records, kind, random.Random())
    session.apply_dataset(dataset)
    if not session.selected_well_id and dataset.wells:
        session.selected_well_id = dataset.wells[0].id
    _save_session(store, session)

    if created:
        typer.echo(f"  Registered {len(created)} new well(s): {', '.join(w.id for w in created)}")
    typer.echo("[OK] Records imported.")


@app.command("wells")
def wells_cmd(config_path: Optional[str] = _CONFIG_OPTION) -> None:
    """List wells with their groundwater record counts."""
    from gw_forecaster.reporting.formatters import format_wells_table

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    _, session = _open_session(config)

    counts: dict[str, int] = {}
    for r in session.groundwater_data:
        counts[r.well_id] = counts.get(r.well_id, 0) + 1
    typer.echo(format_wells_table(session.well_locations, counts, session.selected_well_id))


@app.command("upsert-well")
def upsert_well_cmd(
    well_id: str = typer.Argument(..., help="Well id."),
    name: str = typer.Option(..., "--name", help="Display name."),
    lat: float = typer.Option(..., "--lat", help="Latitude."),
    lon: float = typer.Option(..., "--lon", help="Longitude."),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Add a well or update its name and coordinates."""
    from pydantic import ValidationError

    from gw_forecaster.models.observation import WellLocation

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    try:
        well = WellLocation(id=well_id, name=name, lat=lat, lon=lon)
    except ValidationError as exc:
        typer.echo(f"[ERROR] Invalid well: {exc}", err=True)
        raise typer.Exit(code=1)

    store, session = _open_session(config)
    dataset = session.dataset
    dataset.upsert_well(well)
    session.apply_dataset(dataset)
    _save_session(store, session)
    typer.echo(f"[OK] Well {well_id} saved.")


@app.command("delete-well")
def delete_well_cmd(
    well_id: str = typer.Argument(..., help="Well id."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Delete a well and every observation referencing it."""
    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store, session = _open_session(config)
    _resolve_well(session, well_id)

    if not yes:
        typer.confirm(f"Delete well {well_id} and all its observations?", abort=True)

    dataset = session.dataset
    removed = dataset.delete_well(well_id)
    session.apply_dataset(dataset)
    _save_session(store, session)
    typer.echo(f"[OK] Deleted well {well_id} ({removed} observation(s)).")


@app.command("select-well")
def select_well_cmd(
    well_id: str = typer.Argument(..., help="Well id."),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Make a well the default target of other commands."""
    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store, session = _open_session(config)
    session.selected_well_id = _resolve_well(session, well_id)
    _save_session(store, session)
    typer.echo(f"[OK] Selected well {well_id}.")


@app.command("generate-data")
def generate_data_cmd(
    well: Optional[str] = _WELL_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Replace a well's observations with generated plausible data."""
    from gw_forecaster.exceptions import GenerativeResponseError

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store, session = _open_session(config)
    well_id = _resolve_well(session, well)

    try:
        data = _advisor(config).plausible_data(well_id)
    except GenerativeResponseError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    dataset = session.dataset
    dataset.replace_well(ObservationKind.GROUNDWATER, well_id, data.groundwater)
    dataset.replace_well(ObservationKind.WATER_QUALITY, well_id, data.water_quality)
    dataset.replace_well(ObservationKind.WEATHER, well_id, data.weather)
    dataset.replace_well(ObservationKind.USAGE, well_id, data.usage)
    session.apply_dataset(dataset)
    _save_session(store, session)

    typer.echo(
        f"  groundwater={len(data.groundwater)} quality={len(data.water_quality)} "
        f"weather={len(data.weather)} usage={len(data.usage)}"
    )
    typer.echo(f"[OK] Generated data for well {well_id}.")


@app.command("explain-schema")
def explain_schema_cmd(
    question: str = typer.Option("", "--question", "-q", help="Follow-up question."),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Explain the data schema, or answer a follow-up about the last explanation."""
    from gw_forecaster.exceptions import GenerativeResponseError

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store, session = _open_session(config)

    try:
        text = _advisor(config).explain_data_schema(session.ai_data_schema_explanation, question)
    except (ValueError, GenerativeResponseError) as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    session.ai_data_schema_explanation = text
    _save_session(store, session)
    typer.echo(text)


# ── Forecast functions ────────────────────────────────────────────────────────

@app.command("select-model")
def select_model_cmd(
    kind: ModelKind = typer.Argument(..., help="Model kind."),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Switch the active model kind."""
    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store, session = _open_session(config)
    _workspace(config, session).select_model(kind)
    _save_session(store, session)
    typer.echo(f"[OK] Active model: {kind.value}")


@app.command("set-hint")
def set_hint_cmd(
    hint: str = typer.Argument("", help="Hint text; empty clears it."),
    suggest: Optional[bool] = typer.Option(
        None, "--suggest/--no-suggest", help="Turn automatic hint suggestion on or off."
    ),
    prompt_mode: Optional[str] = typer.Option(None, "--prompt-mode", help="high-end, mid-end or low-end."),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Set the user hint and prompt options for the next generation."""
    from pydantic import ValidationError

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store, session = _open_session(config)
    try:
        session.user_hint = hint
        if suggest is not None:
            session.is_ai_suggesting_hint = suggest
        if prompt_mode is not None:
            session.prompt_mode = prompt_mode
    except ValidationError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    _save_session(store, session)
    typer.echo("[OK] Prompt options saved.")


@app.command("set-recipe")
def set_recipe_cmd(
    recipe_json: str = typer.Argument(..., help='Recipe JSON, e.g. \'{"method": "drift"}\'.'),
    theory: str = typer.Option("", "--theory", help="Reasoning behind the recipe."),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Install a hand-written recipe for the active model kind."""
    from pydantic import ValidationError

    from gw_forecaster.forecasting.recipes import parse_recipe

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    try:
        recipe = parse_recipe(json.loads(recipe_json))
    except (json.JSONDecodeError, ValidationError) as exc:
        typer.echo(f"[ERROR] Invalid recipe: {exc}", err=True)
        raise typer.Exit(code=1)

    store, session = _open_session(config)
    _workspace(config, session).set_recipe(recipe, theory=theory)
    _save_session(store, session)
    typer.echo(f"[OK] Recipe set: {recipe.describe()}")


@app.command("generate")
def generate_cmd(
    well: Optional[str] = _WELL_OPTION,
    no_check: bool = typer.Option(False, "--no-check", help="Install the recipe without checking it."),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Ask the endpoint for a new recipe for the active model kind, then check it."""
    from gw_forecaster.exceptions import GenerativeResponseError, MalformedResponseError

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store, session = _open_session(config)
    well_id = _resolve_well(session, well)
    workspace = _workspace(config, session)
    advisor = _advisor(config)

    try:
        generated = advisor.generate_recipe(session, session.dataset.for_well(well_id))
    except MalformedResponseError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        if exc.analysis:
            session.user_hint = exc.analysis
            typer.echo(f"  Failure analysis: {exc.analysis}")
            _save_session(store, session)
        raise typer.Exit(code=1)
    except GenerativeResponseError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    workspace.apply_generated(generated)
    typer.echo(f"  Iteration {session.ai_iteration_count}: {generated.recipe.describe()}")
    typer.echo(f"  Theory: {generated.theory}")

    if not no_check:
        _report_check(config, session, workspace.check(well_id), advisor)
    _save_session(store, session)
    typer.echo("[OK] Recipe generated.")


@app.command("check")
def check_cmd(
    well: Optional[str] = _WELL_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Backtest the active recipe on a well and forecast the horizon."""
    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store, session = _open_session(config)
    well_id = _resolve_well(session, well)

    outcome = _workspace(config, session).check(well_id)
    _report_check(config, session, outcome, _advisor(config))
    _save_session(store, session)
    if not outcome.ok:
        raise typer.Exit(code=1)
    typer.echo("[OK] Check passed.")


@app.command("revert")
def revert_cmd(config_path: Optional[str] = _CONFIG_OPTION) -> None:
    """Restore the active kind's last recipe that passed a check."""
    from gw_forecaster.exceptions import NoValidStateError

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store, session = _open_session(config)
    try:
        snapshot = _workspace(config, session).revert_to_last_valid()
    except NoValidStateError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    _save_session(store, session)
    typer.echo(f"[OK] Reverted to {snapshot.recipe.describe()}.")


@app.command("select-best")
def select_best_cmd(
    metric: Optional[str] = typer.Option(None, "--metric", "-m", help="rmse, mse or mae."),
    well: Optional[str] = _WELL_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Restore the history entry with the lowest metric and re-check it."""
    from gw_forecaster.exceptions import NoValidStateError

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store, session = _open_session(config)
    well_id = _resolve_well(session, well)
    try:
        outcome = _workspace(config, session).select_best(metric, well_id)
    except (ValueError, NoValidStateError) as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    _report_check(config, session, outcome)
    _save_session(store, session)
    typer.echo(f"[OK] Selected {session.selected_prediction_model.value}: {session.current_state.recipe.describe()}")


@app.command("history")
def history_cmd(
    metric: Optional[str] = typer.Option(None, "--metric", "-m", help="rmse, mse or mae."),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Show the checked-iteration history."""
    from gw_forecaster.backtest.metrics import get_metric
    from gw_forecaster.reporting.formatters import format_history_table

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    _, session = _open_session(config)
    try:
        key = get_metric(metric or session.selected_performance_metric).key
    except ValueError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(format_history_table(session.ai_theory_history, key))


@app.command("set-bootstrap-step")
def set_bootstrap_step_cmd(
    step: int = typer.Argument(..., help="Steps using bootstrap bounds (0..horizon)."),
    well: Optional[str] = _WELL_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Change how many leading steps use bootstrap intervals and recompute bounds."""
    from gw_forecaster.reporting.formatters import format_forecast_table

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store, session = _open_session(config)
    well_id = _resolve_well(session, well)
    try:
        forecast = _workspace(config, session).set_bootstrap_step(well_id, step)
    except ValueError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    _save_session(store, session)
    typer.echo(format_forecast_table(well_id, forecast, config.forecast.confidence_level))
    typer.echo("[OK] Bounds recomputed.")


# ── Analysis and reporting ────────────────────────────────────────────────────

@app.command("statistics")
def statistics_cmd(
    well: Optional[str] = _WELL_OPTION,
    analyze: bool = typer.Option(False, "--analyze", help="Ask the endpoint for a narrative."),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Full-history residual statistics of the active recipe."""
    from gw_forecaster.exceptions import GenerativeResponseError
    from gw_forecaster.reporting.formatters import format_statistics_panel

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store, session = _open_session(config)
    well_id = _resolve_well(session, well)

    panel = _workspace(config, session).statistics_panel(well_id)
    typer.echo(format_statistics_panel(panel))

    if analyze and panel.has_residuals:
        state = session.current_state
        arima = state.arima_params.to_wire() if state.arima_params else None
        try:
            session.ai_statistical_analysis = _advisor(config).analyze_statistics(
                panel, session.selected_prediction_model, arima
            )
        except GenerativeResponseError as exc:
            typer.echo(f"[ERROR] {exc}", err=True)
            raise typer.Exit(code=1)
        typer.echo("")
        typer.echo(session.ai_statistical_analysis)
    _save_session(store, session)


@app.command("compliance-report")
def compliance_report_cmd(
    well: Optional[str] = _WELL_OPTION,
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write the Markdown report here."),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Sustainability compliance report for a well."""
    from gw_forecaster.reporting.compliance import assess_compliance, render_compliance_report

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    _, session = _open_session(config)
    well_id = _resolve_well(session, well)

    status = assess_compliance(session.dataset.for_well(well_id), config.compliance)
    report = render_compliance_report(well_id, status, config.compliance)
    if output:
        path = Path(output)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(report, encoding="utf-8")
        typer.echo(f"[OK] Report written to {path}")
    else:
        typer.echo(report)


@app.command("insights")
def insights_cmd(
    well: Optional[str] = _WELL_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Sustainability insights and a dashboard recommendation for a well."""
    from gw_forecaster.exceptions import GenerativeResponseError
    from gw_forecaster.models.session import SustainabilityInsights
    from gw_forecaster.reporting.compliance import assess_compliance

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store, session = _open_session(config)
    well_id = _resolve_well(session, well)

    series = session.dataset.for_well(well_id)
    status = assess_compliance(series, config.compliance)
    try:
        result = _advisor(config).sustainability_insights(
            series, status, config.compliance, session.all_well_forecasts.get(well_id)
        )
    except GenerativeResponseError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    session.sustainability_insights = SustainabilityInsights(
        details=result.details, recommendations=result.recommendations
    )
    session.ai_dashboard_recommendation = result.dashboard_recommendation
    _save_session(store, session)

    typer.echo(result.details)
    typer.echo("")
    typer.echo(result.recommendations)
    typer.echo("")
    typer.echo(f"Dashboard: {result.dashboard_recommendation}")


@app.command("show-forecast")
def show_forecast_cmd(
    well: Optional[str] = _WELL_OPTION,
    errors: bool = typer.Option(False, "--errors", help="Also list backtest errors."),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Show the stored forecast and backtest metrics for a well."""
    from gw_forecaster.models.forecast import WellForecast
    from gw_forecaster.reporting.formatters import format_backtest_errors, format_forecast_table

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    _, session = _open_session(config)
    well_id = _resolve_well(session, well)

    forecast = session.all_well_forecasts.get(well_id) or WellForecast()
    typer.echo(f"  Model: {session.selected_prediction_model.value}  Status: {session.function_status.value}")
    typer.echo(format_forecast_table(well_id, forecast, config.forecast.confidence_level))
    if errors:
        typer.echo(format_backtest_errors(forecast))


@app.command("export-forecast")
def export_forecast_cmd(
    output: str = typer.Argument(..., help="Destination .csv or .json file."),
    well: Optional[str] = _WELL_OPTION,
    errors_output: Optional[str] = typer.Option(
        None, "--errors", help="Also write the backtest errors to this CSV file."
    ),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Export a well's stored forecast to CSV or JSON."""
    from gw_forecaster.reporting.export import export_backtest_errors, export_forecast

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    _, session = _open_session(config)
    well_id = _resolve_well(session, well)

    forecast = session.all_well_forecasts.get(well_id)
    if forecast is None or not forecast.predictions:
        typer.echo(f"[ERROR] No forecast stored for well '{well_id}'. Run 'check' first.", err=True)
        raise typer.Exit(code=1)
    try:
        path = export_forecast(well_id, forecast, Path(output))
    except ValueError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"[OK] Forecast exported to {path}")
    if errors_output:
        errors_path = export_backtest_errors(well_id, forecast, Path(errors_output))
        typer.echo(f"[OK] {len(forecast.errors)} backtest error(s) exported to {errors_path}")


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    app()
