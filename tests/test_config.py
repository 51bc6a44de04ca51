"""
Tests for layered configuration loading: TOML file, local.toml overrides,
GW_FORECASTER_* environment variables and section validators.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from gw_forecaster.config import (
    BacktestConfig,
    ComplianceConfig,
    ForecastConfig,
    GenerativeConfig,
    LoggingConfig,
    SessionConfig,
    load_config,
)

ENV_VARS = (
    "GW_FORECASTER_API_URL",
    "GW_FORECASTER_CLIENT_KEY",
    "GW_FORECASTER_SESSION_BACKEND",
    "GW_FORECASTER_SESSION_FILE",
    "GW_FORECASTER_DB_PATH",
    "GW_FORECASTER_LOG_LEVEL",
    "GW_FORECASTER_DEBUG",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "default.toml"
    path.write_text(
        '[project]\ndebug = true\n\n'
        '[forecast]\nhorizon = 5\nbootstrap_step = 2\n\n'
        '[backtest]\ndefault_metric = "MAE"\n\n'
        '[generative]\nprompt_mode = "low-end"\n',
        encoding="utf-8",
    )
    return path


def test_load_from_toml(config_file) -> None:
    config = load_config(config_file)
    assert config.forecast.horizon == 5
    assert config.forecast.bootstrap_step == 2
    assert config.backtest.default_metric == "mae"
    assert config.generative.prompt_mode == "low-end"
    assert config.debug is True
    assert config.compliance.max_ec == 1000.0


def test_missing_file(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.toml")


def test_local_toml_overrides(config_file) -> None:
    (config_file.parent / "local.toml").write_text("[forecast]\nhorizon = 10\n", encoding="utf-8")
    config = load_config(config_file)
    assert config.forecast.horizon == 10
    assert config.forecast.bootstrap_step == 2


def test_env_overrides(config_file, monkeypatch) -> None:
    monkeypatch.setenv("GW_FORECASTER_API_URL", "https://proxy.test")
    monkeypatch.setenv("GW_FORECASTER_CLIENT_KEY", "abc")
    monkeypatch.setenv("GW_FORECASTER_SESSION_BACKEND", "Document")
    monkeypatch.setenv("GW_FORECASTER_LOG_LEVEL", "debug")
    monkeypatch.setenv("GW_FORECASTER_DEBUG", "no")

    config = load_config(config_file)

    assert config.generative.api_url == "https://proxy.test"
    assert config.generative.client_key == "abc"
    assert config.session.backend == "document"
    assert config.logging.level == "DEBUG"
    assert config.debug is False


def test_env_debug_flag_spellings(config_file, monkeypatch) -> None:
    for value, expected in (("on", True), ("1", True), ("off", False)):
        monkeypatch.setenv("GW_FORECASTER_DEBUG", value)
        assert load_config(config_file).debug is expected


def test_env_override_creates_missing_section(config_file, monkeypatch) -> None:
    monkeypatch.setenv("GW_FORECASTER_DB_PATH", "elsewhere/sessions.db")
    assert load_config(config_file).session.db_path == "elsewhere/sessions.db"


def test_shipped_default_config_loads() -> None:
    config = load_config()
    assert config.forecast.horizon == 7
    assert config.session.backend == "file"


class TestValidators:
    def test_bootstrap_step_within_horizon(self) -> None:
        with pytest.raises(ValidationError):
            ForecastConfig(horizon=7, bootstrap_step=8)

    @pytest.mark.parametrize("level", [0.0, 1.0, 1.5])
    def test_confidence_level(self, level) -> None:
        with pytest.raises(ValidationError):
            ForecastConfig(confidence_level=level)

    def test_horizon_positive(self) -> None:
        with pytest.raises(ValidationError):
            ForecastConfig(horizon=0)

    def test_metric(self) -> None:
        with pytest.raises(ValidationError):
            BacktestConfig(default_metric="r2")

    def test_ph_range(self) -> None:
        with pytest.raises(ValidationError):
            ComplianceConfig(min_ph=9.0, max_ph=8.0)

    def test_prompt_mode(self) -> None:
        with pytest.raises(ValidationError):
            GenerativeConfig(prompt_mode="ultra")

    def test_session_backend(self) -> None:
        with pytest.raises(ValidationError):
            SessionConfig(backend="firestore")

    def test_log_level(self) -> None:
        with pytest.raises(ValidationError):
            LoggingConfig(level="verbose")
