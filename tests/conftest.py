"""
Shared pytest fixtures for the Groundwater Forecaster test suite.

Provides:
  - ``make_series``: factory for a single-well ``WellSeries`` from GWL values
    (one record per day starting 2024-05-01).
  - ``sample_series``: 20 days of a slow linear recession with weather and
    usage records.
  - ``sample_dataset`` / ``sample_session``: two wells built from the above.
  - Config sections with small, deterministic settings.
  - ``in_memory_db``: a fresh in-memory SQLite connection with the session
    schema applied.
"""

from __future__ import annotations

import random
import sqlite3
from datetime import datetime, timedelta
from typing import Callable, Generator, Optional, Sequence

import pytest

from gw_forecaster.config import (
    BacktestConfig,
    ComplianceConfig,
    ForecastConfig,
    GenerativeConfig,
)
from gw_forecaster.data.dataset import WellDataset, WellSeries
from gw_forecaster.db.schema import apply_schema
from gw_forecaster.models.observation import (
    GroundwaterObservation,
    UsageObservation,
    WaterQualityObservation,
    WeatherObservation,
    WellLocation,
)
from gw_forecaster.models.session import SessionDocument

START = datetime(2024, 5, 1)


def day(i: int) -> datetime:
    return START + timedelta(days=i)


def gw_records(well_id: str, values: Sequence[Optional[float]], ec: float = 800.0) -> list[GroundwaterObservation]:
    return [
        GroundwaterObservation(well_id=well_id, timestamp=day(i), gwl=v, ec=ec)
        for i, v in enumerate(values)
    ]


# ── Series factories ──────────────────────────────────────────────────────────

@pytest.fixture
def make_series() -> Callable[..., WellSeries]:
    """Build a ``WellSeries`` for well ``W1`` from a list of GWL values."""

    def _make(values: Sequence[Optional[float]], well_id: str = "W1") -> WellSeries:
        return WellSeries(well_id=well_id, groundwater=gw_records(well_id, values))

    return _make


@pytest.fixture
def sample_series() -> WellSeries:
    """20 days: GWL 12.0, 12.1, ... with rain every 5th day and steady pumping."""
    n = 20
    return WellSeries(
        well_id="W1",
        groundwater=gw_records("W1", [12.0 + 0.1 * i for i in range(n)]),
        water_quality=[
            WaterQualityObservation(well_id="W1", timestamp=day(i), ph=7.2, dissolved_oxygen=6.0, turbidity=1.0)
            for i in range(n)
        ],
        weather=[
            WeatherObservation(well_id="W1", timestamp=day(i), precipitation=10.0 if i % 5 == 0 else 0.0, temperature=28.0)
            for i in range(n)
        ],
        usage=[
            UsageObservation(well_id="W1", timestamp=day(i), pumping=500.0, consumption=450.0)
            for i in range(n)
        ],
    )


@pytest.fixture
def sample_dataset(sample_series: WellSeries) -> WellDataset:
    """Wells ``W1`` (full sample series) and ``W2`` (5 flat GWL readings)."""
    return WellDataset(
        wells=[
            WellLocation(id="W1", name="Well W1", lat=10.76, lon=106.70),
            WellLocation(id="W2", name="Well W2", lat=10.80, lon=106.65),
        ],
        groundwater=list(sample_series.groundwater) + gw_records("W2", [15.0] * 5),
        water_quality=list(sample_series.water_quality),
        weather=list(sample_series.weather),
        usage=list(sample_series.usage),
    )


@pytest.fixture
def sample_session(sample_dataset: WellDataset) -> SessionDocument:
    session = SessionDocument(selected_well_id="W1")
    session.apply_dataset(sample_dataset)
    return session


# ── Config sections ───────────────────────────────────────────────────────────

@pytest.fixture
def forecast_config() -> ForecastConfig:
    return ForecastConfig(horizon=7, num_simulations=200, bootstrap_step=3, random_seed=42)


@pytest.fixture
def backtest_config() -> BacktestConfig:
    return BacktestConfig()


@pytest.fixture
def compliance_config() -> ComplianceConfig:
    return ComplianceConfig()


@pytest.fixture
def generative_config() -> GenerativeConfig:
    return GenerativeConfig(api_url="https://example.test", client_key="test-key")


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


# ── Database ──────────────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a fresh in-memory SQLite connection with the schema applied."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    apply_schema(conn)
    yield conn
    conn.close()
