"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      committed static defaults
  2. ``config/local.toml``        optional local overrides (gitignored)
  3. ``.env``                     local secrets and env overrides (gitignored)
  4. Environment variables        ``GW_FORECASTER_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

CLI commands and services receive an ``AppConfig`` instance, never raw dicts
or individual env var lookups scattered through the codebase.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

PROMPT_MODES = ("high-end", "mid-end", "low-end")

# ── Sub-config models ─────────────────────────────────────────────────────────


class DataConfig(BaseModel):
    """Filesystem paths for imported records and exports."""

    model_config = ConfigDict(frozen=True)

    raw_dir: str = "data/raw"
    exports_dir: str = "data/exports"


class ForecastConfig(BaseModel):
    """Forecast horizon and prediction-interval settings."""

    model_config = ConfigDict(frozen=True)

    horizon: int = 7
    confidence_level: float = 0.95
    num_simulations: int = 1000
    bootstrap_step: int = 0
    z_score: float = 1.96
    random_seed: Optional[int] = None

    @field_validator("confidence_level")
    @classmethod
    def validate_confidence(cls, v: float) -> float:
        if not 0.0 < v < 1.0:
            raise ValueError(f"confidence_level must be in (0.0, 1.0), got {v}.")
        return v

    @field_validator("horizon", "num_simulations")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Value must be >= 1, got {v}.")
        return v

    @model_validator(mode="after")
    def validate_bootstrap_step(self) -> "ForecastConfig":
        if not 0 <= self.bootstrap_step <= self.horizon:
            raise ValueError(
                f"bootstrap_step must be in [0, {self.horizon}], got {self.bootstrap_step}."
            )
        return self


class BacktestConfig(BaseModel):
    """Rolling evaluation and statistics-panel parameters."""

    model_config = ConfigDict(frozen=True)

    leading_period: int = 7
    training_period: int = 14
    acf_max_lag: int = 7
    histogram_bins: int = 10
    default_metric: str = "rmse"

    @field_validator("default_metric")
    @classmethod
    def validate_metric(cls, v: str) -> str:
        valid = {"rmse", "mse", "mae"}
        if v.lower() not in valid:
            raise ValueError(f"default_metric must be one of {sorted(valid)}, got '{v}'.")
        return v.lower()


class ComplianceConfig(BaseModel):
    """Regulatory thresholds for the compliance report."""

    model_config = ConfigDict(frozen=True)

    min_gwl: float = 10.0
    max_ec: float = 1000.0
    min_ph: float = 6.5
    max_ph: float = 8.5

    @model_validator(mode="after")
    def validate_ph_range(self) -> "ComplianceConfig":
        if self.min_ph >= self.max_ph:
            raise ValueError(
                f"min_ph ({self.min_ph}) must be below max_ph ({self.max_ph})."
            )
        return self


class GenerativeConfig(BaseModel):
    """Remote generative-text endpoint settings.

    An empty ``api_url`` or ``client_key`` puts the client in fixture mode.
    """

    model_config = ConfigDict(frozen=True)

    api_url: str = ""
    client_key: str = ""
    timeout_s: float = 60.0
    prompt_mode: str = "mid-end"
    prompt_records: int = 5
    suggest_hints: bool = False

    @field_validator("prompt_mode")
    @classmethod
    def validate_prompt_mode(cls, v: str) -> str:
        if v not in PROMPT_MODES:
            raise ValueError(f"prompt_mode must be one of {list(PROMPT_MODES)}, got '{v}'.")
        return v


class SessionConfig(BaseModel):
    """Where the session document lives."""

    model_config = ConfigDict(frozen=True)

    backend: str = "file"
    session_file: str = "data/session/current_session.json"
    db_path: str = "data/db/sessions.db"
    app_id: str = "ground-water_firestore-app"
    user_id: str = "local-user"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        valid = {"file", "document"}
        if v.lower() not in valid:
            raise ValueError(f"Session backend must be one of {sorted(valid)}, got '{v}'.")
        return v.lower()


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/gw_forecaster.log"
    max_bytes: int = Field(default=1_000_000, ge=0)
    backup_count: int = Field(default=3, ge=0)
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class AppConfig(BaseModel):
    """Complete application configuration.

    It is constructed by ``load_config()`` which merges TOML + .env.
    """

    model_config = ConfigDict(frozen=True)

    data: DataConfig = DataConfig()
    forecast: ForecastConfig = ForecastConfig()
    backtest: BacktestConfig = BacktestConfig()
    compliance: ComplianceConfig = ComplianceConfig()
    generative: GenerativeConfig = GenerativeConfig()
    session: SessionConfig = SessionConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

ENV_PREFIX = "GW_FORECASTER_"


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# Environment variable suffix -> (section, key, cast).  ``section=None``
# targets a top-level field.
ENV_OVERRIDES: dict[str, tuple[Optional[str], str, Callable[[str], Any]]] = {
    "API_URL":         ("generative", "api_url", str),
    "CLIENT_KEY":      ("generative", "client_key", str),
    "SESSION_BACKEND": ("session", "backend", str),
    "SESSION_FILE":    ("session", "session_file", str),
    "DB_PATH":         ("session", "db_path", str),
    "LOG_LEVEL":       ("logging", "level", str),
    "DEBUG":           (None, "debug", _env_bool),
}


def _project_root() -> Path:
    """Nearest ancestor of this package holding ``pyproject.toml``."""
    here = Path(__file__).resolve().parent
    for candidate in (here, *here.parents):
        if (candidate / "pyproject.toml").exists():
            return candidate
    return here.parent


def _read_toml(path: Path) -> dict[str, Any]:
    with path.open("rb") as f:
        return tomllib.load(f)


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load, merge and validate the configuration layers.

    Args:
        config_path: Base TOML file; ``local.toml`` beside it is merged on
            top.  Defaults to ``<project_root>/config/default.toml``.

    Raises:
        FileNotFoundError: If the base file does not exist.
        pydantic.ValidationError: If a merged value is rejected.
    """
    root = _project_root()
    load_dotenv(dotenv_path=root / ".env", override=False)

    base = Path(config_path) if config_path is not None else root / "config" / "default.toml"
    if not base.exists():
        raise FileNotFoundError(f"Config file not found: {base}\nCreate config/default.toml or pass --config.")

    raw = _read_toml(base)
    local = base.parent / "local.toml"
    if local.exists():
        raw = _deep_merge(raw, _read_toml(local))

    raw = _apply_env_overrides(raw, os.environ)

    # [project] only carries the debug flag; a top-level ``debug`` wins.
    project = raw.pop("project", {})
    raw.setdefault("debug", project.get("debug", False))
    return AppConfig.model_validate(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(merged.get(key), dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _apply_env_overrides(raw: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Apply every set ``GW_FORECASTER_*`` variable listed in ``ENV_OVERRIDES``."""
    for suffix, (section, key, cast) in ENV_OVERRIDES.items():
        value = environ.get(ENV_PREFIX + suffix)
        if not value:
            continue
        target = raw if section is None else raw.setdefault(section, {})
        target[key] = cast(value)
    return raw
