"""
End-to-end CLI tests with typer's CliRunner.

Each test gets its own config file pointing the session file, logs and
exports into ``tmp_path``.  No endpoint credentials are configured, so every
generative call is answered from fixture responses.
"""

from __future__ import annotations

import csv
import json

import pytest
from typer.testing import CliRunner

from gw_forecaster.cli import app
from gw_forecaster.models.session import SessionDocument


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("GW_FORECASTER_API_URL", "GW_FORECASTER_CLIENT_KEY", "GW_FORECASTER_SESSION_BACKEND",
                 "GW_FORECASTER_SESSION_FILE", "GW_FORECASTER_DB_PATH", "GW_FORECASTER_LOG_LEVEL",
                 "GW_FORECASTER_DEBUG"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def config_path(tmp_path) -> str:
    path = tmp_path / "config.toml"
    path.write_text(
        "[forecast]\nhorizon = 7\nnum_simulations = 100\nrandom_seed = 7\n\n"
        f'[session]\nsession_file = "{(tmp_path / "session.json").as_posix()}"\n\n'
        f'[logging]\nlevel = "WARNING"\nlog_file = "{(tmp_path / "logs" / "cli.log").as_posix()}"\n',
        encoding="utf-8",
    )
    return str(path)


@pytest.fixture
def records_file(tmp_path) -> str:
    records = [
        {"wellId": "W1", "timestamp": f"2024-05-{i + 1:02d}", "gwl": 12.0 + 0.1 * i, "ec": 800}
        for i in range(20)
    ]
    path = tmp_path / "gwl.json"
    path.write_text(json.dumps(records), encoding="utf-8")
    return str(path)


def invoke(runner, config_path, *args):
    return runner.invoke(app, [*args, "--config", config_path])


def load_session(tmp_path) -> SessionDocument:
    return SessionDocument.from_json((tmp_path / "session.json").read_text(encoding="utf-8"))


@pytest.fixture
def imported(runner, config_path, records_file, tmp_path):
    result = invoke(runner, config_path, "import-records", records_file, "--kind", "groundwaterData")
    assert result.exit_code == 0, result.output
    return tmp_path


# ── Config / data ──────────────────────────────────────────────────────────────

def test_validate_config(runner, config_path) -> None:
    result = invoke(runner, config_path, "validate-config", "--full")
    assert result.exit_code == 0
    assert "[OK] Config valid." in result.output
    assert "(fixture mode)" in result.output


def test_validate_config_missing_file(runner, tmp_path) -> None:
    result = runner.invoke(app, ["validate-config", "--config", str(tmp_path / "nope.toml")])
    assert result.exit_code == 1


def test_import_registers_and_selects_well(runner, config_path, imported) -> None:
    session = load_session(imported)
    assert session.selected_well_id == "W1"
    assert len(session.groundwater_data) == 20
    assert session.well_locations[0].name == "Well W1"

    result = invoke(runner, config_path, "wells")
    assert "W1" in result.output


def test_import_dry_run_saves_nothing(runner, config_path, records_file, tmp_path) -> None:
    result = invoke(runner, config_path, "import-records", records_file, "--kind", "groundwaterData", "--dry-run")
    assert result.exit_code == 0
    assert "[DRY RUN]" in result.output
    assert not (tmp_path / "session.json").exists()


def test_import_invalid_file(runner, config_path, tmp_path) -> None:
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps([{"timestamp": "2024-05-01"}]), encoding="utf-8")
    result = invoke(runner, config_path, "import-records", str(bad), "--kind", "groundwaterData")
    assert result.exit_code == 1
    assert "missing wellId" in result.output


def test_well_management(runner, config_path, imported) -> None:
    assert invoke(runner, config_path, "upsert-well", "W2", "--name", "South", "--lat", "10.1", "--lon", "106.1").exit_code == 0
    assert invoke(runner, config_path, "select-well", "W2").exit_code == 0
    assert load_session(imported).selected_well_id == "W2"

    assert invoke(runner, config_path, "select-well", "W9").exit_code == 1

    result = invoke(runner, config_path, "delete-well", "W1", "--yes")
    assert result.exit_code == 0
    assert "20 observation(s)" in result.output
    assert load_session(imported).groundwater_data == []


# ── Forecast lifecycle ─────────────────────────────────────────────────────────

def test_check_then_show_and_export(runner, config_path, imported) -> None:
    result = invoke(runner, config_path, "check")
    assert result.exit_code == 0, result.output
    assert "[OK] Check passed." in result.output

    result = invoke(runner, config_path, "show-forecast", "--errors")
    assert "=== Forecast: W1 ===" in result.output
    assert "Backtest errors" in result.output

    out = imported / "exports" / "w1.csv"
    errors_out = imported / "exports" / "w1_errors.csv"
    result = invoke(runner, config_path, "export-forecast", str(out), "--errors", str(errors_out))
    assert result.exit_code == 0, result.output
    with out.open(newline="", encoding="utf-8") as f:
        assert len(list(csv.DictReader(f))) == 7
    with errors_out.open(newline="", encoding="utf-8") as f:
        assert len(list(csv.DictReader(f))) > 0


def test_export_without_forecast(runner, config_path, imported) -> None:
    result = invoke(runner, config_path, "export-forecast", str(imported / "x.csv"))
    assert result.exit_code == 1
    assert "Run 'check' first" in result.output


def test_generate_with_fixture_recipe(runner, config_path, imported) -> None:
    result = invoke(runner, config_path, "generate")
    assert result.exit_code == 0, result.output
    assert "fixture responses" in result.output
    assert "linear_trend(window=10)" in result.output

    session = load_session(imported)
    assert session.ai_iteration_count == 1
    assert session.function_status.value == "checked"
    assert len(session.ai_theory_history) == 1

    result = invoke(runner, config_path, "history")
    assert "linear_trend(window=10)" in result.output


def test_set_recipe_and_revert(runner, config_path, imported) -> None:
    assert invoke(runner, config_path, "set-recipe", '{"method": "drift"}').exit_code == 0
    assert invoke(runner, config_path, "revert").exit_code == 1

    assert invoke(runner, config_path, "check").exit_code == 0
    assert invoke(runner, config_path, "set-recipe", '{"method": "rolling_mean", "window": 3}').exit_code == 0
    result = invoke(runner, config_path, "revert")
    assert result.exit_code == 0
    assert "Reverted to drift" in result.output


def test_set_recipe_invalid(runner, config_path, imported) -> None:
    result = invoke(runner, config_path, "set-recipe", '{"method": "neural_net"}')
    assert result.exit_code == 1
    assert "Invalid recipe" in result.output


def test_select_model_and_best(runner, config_path, imported) -> None:
    assert invoke(runner, config_path, "select-best").exit_code == 1
    assert invoke(runner, config_path, "check").exit_code == 0
    assert invoke(runner, config_path, "select-model", "arima").exit_code == 0
    assert load_session(imported).selected_prediction_model.value == "arima"

    result = invoke(runner, config_path, "select-best", "--metric", "mae")
    assert result.exit_code == 0, result.output
    assert "[OK] Selected general: last_value" in result.output


def test_set_hint_options(runner, config_path, imported) -> None:
    assert invoke(runner, config_path, "set-hint", "rain matters", "--suggest", "--prompt-mode", "low-end").exit_code == 0
    session = load_session(imported)
    assert session.user_hint == "rain matters"
    assert session.is_ai_suggesting_hint is True
    assert session.prompt_mode == "low-end"

    assert invoke(runner, config_path, "set-hint", "--prompt-mode", "ultra").exit_code == 1


def test_set_bootstrap_step(runner, config_path, imported) -> None:
    invoke(runner, config_path, "check")
    assert invoke(runner, config_path, "set-bootstrap-step", "7").exit_code == 0
    assert load_session(imported).all_well_forecasts["W1"].bootstrap_step == 7
    assert invoke(runner, config_path, "set-bootstrap-step", "9").exit_code == 1


# ── Reports ────────────────────────────────────────────────────────────────────

def test_statistics(runner, config_path, imported) -> None:
    result = invoke(runner, config_path, "statistics", "--analyze")
    assert result.exit_code == 0, result.output
    assert "Residual statistics: W1" in result.output
    assert load_session(imported).ai_statistical_analysis != ""


def test_compliance_report_to_file(runner, config_path, imported) -> None:
    out = imported / "reports" / "W1.md"
    result = invoke(runner, config_path, "compliance-report", "--output", str(out))
    assert result.exit_code == 0
    assert "Sustainability Compliance Report for Well: W1" in out.read_text(encoding="utf-8")


def test_insights(runner, config_path, imported) -> None:
    result = invoke(runner, config_path, "insights")
    assert result.exit_code == 0, result.output
    assert "Dashboard:" in result.output
    assert load_session(imported).ai_dashboard_recommendation != ""


def test_explain_schema_follow_up_needs_initial(runner, config_path, imported) -> None:
    assert invoke(runner, config_path, "explain-schema", "--question", "What is EC?").exit_code == 1
    assert invoke(runner, config_path, "explain-schema").exit_code == 0
    assert invoke(runner, config_path, "explain-schema", "--question", "What is EC?").exit_code == 0
