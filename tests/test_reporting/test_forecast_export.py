"""Tests for forecast CSV/JSON export."""

from __future__ import annotations

import csv
import json
import math
from datetime import datetime

import pytest

from gw_forecaster.models.forecast import IntervalBound, PredictionErrorRecord, WellForecast
from gw_forecaster.reporting.export import (
    ERRORS_CSV_COLUMNS,
    FORECAST_CSV_COLUMNS,
    export_backtest_errors,
    export_forecast,
    flatten_errors_for_export,
    flatten_forecast_for_export,
)


@pytest.fixture
def forecast() -> WellForecast:
    return WellForecast(
        predictions=[12.34567, 12.5],
        dates=["2024-05-21", "2024-05-22"],
        interval_bounds=[IntervalBound(lower=12.0, upper=12.7), IntervalBound()],
        errors=[
            PredictionErrorRecord(timestamp=datetime(2024, 5, 19), actual=12.2, predicted=12.25, error=0.05),
            PredictionErrorRecord(timestamp=datetime(2024, 5, 20), actual=12.3, predicted=12.15, error=-0.15),
        ],
        metrics={"rmse": 0.1, "mae": math.inf},
        bootstrap_step=1,
    )


def test_flatten_rows(forecast) -> None:
    rows = flatten_forecast_for_export("W1", forecast)
    assert rows[0] == {
        "well_id": "W1", "date": "2024-05-21", "step": 1,
        "predicted_gwl": 12.3457, "ci_lower": 12.0, "ci_upper": 12.7,
    }
    assert rows[1]["ci_lower"] == ""
    assert rows[1]["ci_upper"] == ""


def test_flatten_empty_forecast() -> None:
    assert flatten_forecast_for_export("W1", WellForecast()) == []


def test_export_csv(tmp_path, forecast) -> None:
    path = export_forecast("W1", forecast, tmp_path / "out" / "w1.csv")
    with path.open(newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        rows = list(reader)
    assert reader.fieldnames == FORECAST_CSV_COLUMNS
    assert len(rows) == 2
    assert rows[1]["date"] == "2024-05-22"
    assert rows[1]["ci_upper"] == ""


def test_export_json_keeps_wire_shape(tmp_path, forecast) -> None:
    path = export_forecast("W1", forecast, tmp_path / "w1.JSON")
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["wellId"] == "W1"
    assert data["futureCiBounds"][1] == {"lower": None, "upper": None}
    assert data["metrics"]["mae"] is None
    assert data["bootstrapStartStep"] == 1


def test_export_unsupported_suffix(tmp_path, forecast) -> None:
    with pytest.raises(ValueError, match="Unsupported export format"):
        export_forecast("W1", forecast, tmp_path / "w1.xlsx")


def test_empty_forecast_csv_has_header_only(tmp_path) -> None:
    path = export_forecast("W1", WellForecast(), tmp_path / "empty.csv")
    assert path.read_text(encoding="utf-8").splitlines() == [",".join(FORECAST_CSV_COLUMNS)]


def test_flatten_errors(forecast) -> None:
    rows = flatten_errors_for_export("W1", forecast)
    assert rows[0] == {
        "well_id": "W1", "timestamp": "2024-05-19T00:00:00",
        "actual_gwl": 12.2, "predicted_gwl": 12.25, "error": 0.05,
    }
    assert rows[1]["error"] == -0.15


def test_export_backtest_errors(tmp_path, forecast) -> None:
    path = export_backtest_errors("W1", forecast, tmp_path / "errors" / "w1.csv")
    with path.open(newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        rows = list(reader)
    assert reader.fieldnames == ERRORS_CSV_COLUMNS
    assert [r["timestamp"] for r in rows] == ["2024-05-19T00:00:00", "2024-05-20T00:00:00"]
