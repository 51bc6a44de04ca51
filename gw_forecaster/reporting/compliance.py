"""
Sustainability compliance checks and the Markdown compliance report.

Thresholds (``[compliance]`` in config/default.toml):
  GWL  every reading >= ``min_gwl`` m bgs
  EC   every reading <= ``max_ec`` µS/cm
  pH   every reading within ``[min_ph, max_ph]``

Each check is three-valued: ``True`` (compliant), ``False`` (at least one
reading violates the threshold) or ``None`` (no readings to judge).  Null
readings are ignored, so a well with only null pH values is ``None`` for pH.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from gw_forecaster.config import ComplianceConfig
from gw_forecaster.data.dataset import WellSeries
from gw_forecaster.stats.descriptive import mean


@dataclass(frozen=True)
class ComplianceStatus:
    """Compliance of one well's readings.

    Attributes:
        gwl_compliant: All GWL readings at or above the minimum.
        ec_compliant:  All EC readings at or below the maximum.
        ph_compliant:  All pH readings inside the allowed range.
        average_gwl:   Mean GWL to 2 decimals, or ``"N/A"``.
        latest_ec:     Most recent EC reading.
        latest_ph:     Most recent pH reading.
    """

    gwl_compliant: Optional[bool]
    ec_compliant: Optional[bool]
    ph_compliant: Optional[bool]
    average_gwl: str
    latest_ec: Optional[float] = None
    latest_ph: Optional[float] = None

    @property
    def all_unknown(self) -> bool:
        return self.gwl_compliant is None and self.ec_compliant is None and self.ph_compliant is None

    @property
    def has_violation(self) -> bool:
        return False in (self.gwl_compliant, self.ec_compliant, self.ph_compliant)


def _all_or_none(values: list[float], ok) -> Optional[bool]:
    if not values:
        return None
    return all(ok(v) for v in values)


def assess_compliance(series: WellSeries, thresholds: ComplianceConfig) -> ComplianceStatus:
    """Evaluate the three compliance checks for one well."""
    gwl = [r.gwl for r in series.groundwater if r.gwl is not None]
    ec = [r.ec for r in series.groundwater if r.ec is not None]
    ph = [r.ph for r in series.water_quality if r.ph is not None]

    return ComplianceStatus(
        gwl_compliant=_all_or_none(gwl, lambda v: v >= thresholds.min_gwl),
        ec_compliant=_all_or_none(ec, lambda v: v <= thresholds.max_ec),
        ph_compliant=_all_or_none(ph, lambda v: thresholds.min_ph <= v <= thresholds.max_ph),
        average_gwl=f"{mean(gwl):.2f}" if gwl else "N/A",
        latest_ec=ec[-1] if ec else None,
        latest_ph=ph[-1] if ph else None,
    )


def status_label(value: Optional[bool]) -> str:
    if value is None:
        return "N/A (insufficient data)"
    return "COMPLIANT" if value else "NON-COMPLIANT"


def render_compliance_report(
    well_id: str,
    status: ComplianceStatus,
    thresholds: ComplianceConfig,
    report_date: Optional[date] = None,
) -> str:
    """Markdown compliance report for one well.

    Args:
        well_id:     Well identifier for the title.
        status:      Output of :func:`assess_compliance`.
        thresholds:  Thresholds quoted in the report.
        report_date: Date printed in the header (default: today).

    Returns:
        Markdown text ending with a newline.
    """
    report_date = report_date or date.today()
    lines = [
        f"# Sustainability Compliance Report for Well: {well_id}",
        "",
        f"Report date: {report_date.isoformat()}",
        "",
        "## 1. Groundwater Level (GWL)",
        f"- Average groundwater level: {status.average_gwl} m bgs",
        f"- Recommended minimum: {thresholds.min_gwl:g} m bgs",
        f"- Compliance status: **{status_label(status.gwl_compliant)}**",
        "",
        "## 2. Electrical Conductivity (EC)",
        f"- Recommended maximum: {thresholds.max_ec:g} µS/cm",
        f"- Compliance status: **{status_label(status.ec_compliant)}**",
        "",
        "## 3. Water Quality pH",
        f"- Recommended pH range: {thresholds.min_ph:g} - {thresholds.max_ph:g}",
        f"- Compliance status: **{status_label(status.ph_compliant)}**",
        "",
        "## 4. Recommendations & Remarks",
    ]

    if status.gwl_compliant is False:
        lines.append(
            "- **GWL warning:** groundwater level is below the safe threshold. "
            "Consider reducing pumping or adding recharge measures."
        )
    if status.ec_compliant is False:
        lines.append(
            "- **EC warning:** conductivity exceeds the safe threshold, suggesting "
            "salinization or other contamination. Investigate further."
        )
    if status.ph_compliant is False:
        lines.append(
            "- **pH warning:** pH is outside the safe range. Identify the cause "
            "and plan treatment."
        )

    if status.all_unknown:
        lines.append(
            "- Not enough data for a comprehensive compliance assessment. "
            "Please add more data."
        )
    elif not status.has_violation:
        lines.append(
            "- The well is operating within sustainable, compliant limits "
            "(based on available data). Continue monitoring."
        )

    return "\n".join(lines) + "\n"
