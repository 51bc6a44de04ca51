"""
ASCII terminal formatters for CLI commands.

All formatters accept domain objects and return plain multi-line strings
suitable for ``typer.echo()``.  No third-party dependencies.

Unknown values
--------------
Metrics with no valid backtest pairs are ``inf`` and print as ``N/A``.
Interval bounds that could not be computed print as ``--``.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

from gw_forecaster.backtest.diagnostics import StatisticsPanel
from gw_forecaster.backtest.metrics import PERFORMANCE_METRICS
from gw_forecaster.forecasting.history import HistoryEntry
from gw_forecaster.models.forecast import WellForecast
from gw_forecaster.models.observation import WellLocation


def _num(value: Optional[float], digits: int = 4) -> str:
    if value is None or not math.isfinite(value):
        return "N/A"
    return f"{value:.{digits}f}"


def _bound(value: Optional[float]) -> str:
    return "--" if value is None else f"{value:.3f}"


# ── Wells ─────────────────────────────────────────────────────────────────────


def format_wells_table(wells: Sequence[WellLocation], counts: dict[str, int], selected: str = "") -> str:
    """Wells with their groundwater record counts; ``*`` marks the selected well."""
    lines: list[str] = ["", "=== Wells ==="]
    if not wells:
        lines.append("  (no wells; run 'import-records' first)")
        return "\n".join(lines)

    header = f"    {'ID':<12}  {'Name':<24}  {'Lat':>9}  {'Lon':>10}  {'GWL recs':>8}"
    lines.append(header)
    lines.append("    " + "-" * (len(header) - 4))
    for w in wells:
        marker = "*" if w.id == selected else " "
        lines.append(
            f"  {marker} {w.id[:12]:<12}  {w.name[:24]:<24}  {w.lat:>9.4f}  {w.lon:>10.4f}  "
            f"{counts.get(w.id, 0):>8}"
        )
    return "\n".join(lines)


# ── Forecast ──────────────────────────────────────────────────────────────────


def format_forecast_table(well_id: str, forecast: WellForecast, confidence_level: float = 0.95) -> str:
    """Future forecast with interval bounds, followed by backtest metrics."""
    lines: list[str] = ["", f"=== Forecast: {well_id} ==="]
    if not forecast.predictions:
        lines.append("  (no forecast stored; run 'check' first)")
    else:
        lines.append(f"  Bootstrap steps: {forecast.bootstrap_step}  CI: {confidence_level:.0%}")
        header = f"    {'Step':>4}  {'Date':<10}  {'GWL':>9}  {'Lower':>9}  {'Upper':>9}"
        lines.append(header)
        lines.append("    " + "-" * (len(header) - 4))
        for i, value in enumerate(forecast.predictions):
            bound = forecast.interval_bounds[i] if i < len(forecast.interval_bounds) else None
            lower = bound.lower if bound else None
            upper = bound.upper if bound else None
            lines.append(
                f"    {i + 1:>4}  {forecast.dates[i]:<10}  {value:>9.3f}  "
                f"{_bound(lower):>9}  {_bound(upper):>9}"
            )

    lines.append("")
    lines.append(format_metrics_line(forecast.metrics))
    return "\n".join(lines)


def format_metrics_line(metrics: dict[str, float]) -> str:
    parts = []
    for metric in PERFORMANCE_METRICS.values():
        value = metrics.get(metric.key, math.inf)
        parts.append(f"{metric.key.upper()}={_num(value)} {metric.unit}")
    return "  Backtest: " + "  ".join(parts)


def format_backtest_errors(forecast: WellForecast, limit: int = 20) -> str:
    """Most recent backtest comparisons, newest last."""
    lines: list[str] = ["", "  ---- Backtest errors ----"]
    if not forecast.errors:
        lines.append("  (no comparable backtest points)")
        return "\n".join(lines)
    header = f"    {'Timestamp':<20}  {'Actual':>9}  {'Predicted':>9}  {'Error':>9}"
    lines.append(header)
    lines.append("    " + "-" * (len(header) - 4))
    for rec in forecast.errors[-limit:]:
        lines.append(
            f"    {rec.timestamp.strftime('%Y-%m-%d %H:%M'):<20}  {rec.actual:>9.3f}  "
            f"{rec.predicted:>9.3f}  {rec.error:>+9.3f}"
        )
    if len(forecast.errors) > limit:
        lines.append(f"    ... showing {limit} of {len(forecast.errors)}")
    return "\n".join(lines)


# ── Statistics ────────────────────────────────────────────────────────────────


def format_statistics_panel(panel: StatisticsPanel) -> str:
    """Residual moments, ACF table and histogram for one well."""
    lines: list[str] = ["", f"=== Residual statistics: {panel.well_id} ==="]
    if not panel.has_residuals:
        lines.append("  (no residuals; the forecast function produced no comparable points)")
        return "\n".join(lines)

    lines.append(f"  Residuals: {len(panel.residuals)}")
    lines.append(f"  Mean:      {_num(panel.mean)}")
    lines.append(f"  Std dev:   {_num(panel.std_dev)}")
    lines.append(f"  Skewness:  {_num(panel.skewness)}")
    lines.append(f"  Kurtosis:  {_num(panel.kurtosis)} (excess)")

    lines.append("")
    header = f"    {'Lag':>3}  {'ACF resid':>10}  {'ACF GWL':>10}  {'95% band':>10}"
    lines.append(header)
    lines.append("    " + "-" * (len(header) - 4))
    raw = {p.lag: p for p in panel.acf_raw_gwl}
    for p in panel.acf_residuals:
        flag = " !" if p.lag > 0 and abs(p.value) > p.ci_upper else ""
        gwl = raw.get(p.lag)
        lines.append(
            f"    {p.lag:>3}  {p.value:>10.4f}  {(gwl.value if gwl else 0.0):>10.4f}  "
            f"{p.ci_upper:>+10.4f}{flag}"
        )

    if panel.histogram:
        lines.append("")
        lines.append("  Histogram:")
        peak = max(b.count for b in panel.histogram) or 1
        for b in panel.histogram:
            bar = "#" * round(30 * b.count / peak)
            lines.append(f"    {b.label:>18}  {b.count:>4}  {bar}")
    return "\n".join(lines)


# ── History ───────────────────────────────────────────────────────────────────


def format_history_table(history: Sequence[HistoryEntry], metric: str = "rmse") -> str:
    """Iteration history with the chosen metric; unscored entries print N/A."""
    lines: list[str] = ["", "=== Iteration history ==="]
    if not history:
        lines.append("  (no checked iterations yet)")
        return "\n".join(lines)
    header = f"    {'Iter':>4}  {'Model':<16}  {'Recipe':<36}  {metric.upper():>10}"
    lines.append(header)
    lines.append("    " + "-" * (len(header) - 4))
    for e in history:
        value = (e.metrics or {}).get(metric)
        lines.append(
            f"    {e.iteration:>4}  {e.model_type.value:<16}  {e.recipe.describe()[:36]:<36}  "
            f"{_num(value):>10}"
        )
    return "\n".join(lines)
