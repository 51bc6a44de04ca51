"""
Forecast and backtest export.

CSV files are flat, one row per forecast day (or per backtest point), and
always carry a header row so an empty export still opens in a spreadsheet
with its columns.  Undefined interval bounds are empty cells.  JSON exports
keep the camelCase wire shape of the stored forecast.
"""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any, Iterable

from gw_forecaster.models.forecast import WellForecast

FORECAST_CSV_COLUMNS = ["well_id", "date", "step", "predicted_gwl", "ci_lower", "ci_upper"]
ERRORS_CSV_COLUMNS = ["well_id", "timestamp", "actual_gwl", "predicted_gwl", "error"]

_DIGITS = 4


def _cell(value: float | None) -> float | str:
    return "" if value is None else round(value, _DIGITS)


def _write_csv(rows: Iterable[dict[str, Any]], columns: list[str], path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=columns)
        writer.writeheader()
        writer.writerows(rows)
    return path


def flatten_forecast_for_export(well_id: str, forecast: WellForecast) -> list[dict]:
    """One row per forecast step, keyed by ``FORECAST_CSV_COLUMNS``."""
    bounds = forecast.interval_bounds
    return [
        {
            "well_id": well_id,
            "date": forecast.dates[i] if i < len(forecast.dates) else "",
            "step": i + 1,
            "predicted_gwl": _cell(value),
            "ci_lower": _cell(bounds[i].lower) if i < len(bounds) else "",
            "ci_upper": _cell(bounds[i].upper) if i < len(bounds) else "",
        }
        for i, value in enumerate(forecast.predictions)
    ]


def flatten_errors_for_export(well_id: str, forecast: WellForecast) -> list[dict]:
    """One row per backtest comparison, oldest first."""
    return [
        {
            "well_id": well_id,
            "timestamp": rec.timestamp.isoformat(),
            "actual_gwl": _cell(rec.actual),
            "predicted_gwl": _cell(rec.predicted),
            "error": _cell(rec.error),
        }
        for rec in forecast.errors
    ]


def export_forecast(well_id: str, forecast: WellForecast, path: Path) -> Path:
    """Write one well's forecast; ``.csv`` or ``.json`` (any case) picks the format.

    Returns:
        ``path`` as written.

    Raises:
        ValueError: For any other suffix.
    """
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return _write_csv(flatten_forecast_for_export(well_id, forecast), FORECAST_CSV_COLUMNS, path)
    if suffix == ".json":
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"wellId": well_id, **forecast.to_wire()}
        path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        return path
    raise ValueError(f"Unsupported export format '{suffix}'; use .csv or .json.")


def export_backtest_errors(well_id: str, forecast: WellForecast, path: Path) -> Path:
    """Write the backtest comparisons behind a forecast's metrics as CSV."""
    return _write_csv(flatten_errors_for_export(well_id, forecast), ERRORS_CSV_COLUMNS, path)
