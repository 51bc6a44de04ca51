"""
Tests for compliance assessment and the Markdown compliance report.
"""

from __future__ import annotations

from datetime import date

from gw_forecaster.data.dataset import WellSeries
from gw_forecaster.models.observation import GroundwaterObservation, WaterQualityObservation
from gw_forecaster.reporting.compliance import (
    ComplianceStatus,
    assess_compliance,
    render_compliance_report,
    status_label,
)


def _series(gwl=(), ec=(), ph=()) -> WellSeries:
    n = max(len(gwl), len(ec))
    groundwater = [
        GroundwaterObservation(
            well_id="W1",
            timestamp=f"2024-05-{i + 1:02d}",
            gwl=gwl[i] if i < len(gwl) else None,
            ec=ec[i] if i < len(ec) else None,
        )
        for i in range(n)
    ]
    quality = [
        WaterQualityObservation(well_id="W1", timestamp=f"2024-05-{i + 1:02d}", ph=v)
        for i, v in enumerate(ph)
    ]
    return WellSeries(well_id="W1", groundwater=groundwater, water_quality=quality)


class TestAssessCompliance:
    def test_all_compliant(self, sample_series, compliance_config) -> None:
        status = assess_compliance(sample_series, compliance_config)
        assert status.gwl_compliant is True
        assert status.ec_compliant is True
        assert status.ph_compliant is True
        assert status.average_gwl == "12.95"
        assert status.latest_ph == 7.2
        assert not status.has_violation

    def test_single_violation_fails_the_check(self, compliance_config) -> None:
        status = assess_compliance(
            _series(gwl=[12.0, 9.5], ec=[800.0, 1200.0], ph=[7.0, 9.0]), compliance_config
        )
        assert status.gwl_compliant is False
        assert status.ec_compliant is False
        assert status.ph_compliant is False
        assert status.latest_ec == 1200.0
        assert status.has_violation

    def test_boundaries_are_inclusive(self, compliance_config) -> None:
        status = assess_compliance(
            _series(gwl=[10.0], ec=[1000.0], ph=[6.5, 8.5]), compliance_config
        )
        assert status.gwl_compliant is True
        assert status.ec_compliant is True
        assert status.ph_compliant is True

    def test_no_readings_is_unknown(self, compliance_config) -> None:
        status = assess_compliance(WellSeries(well_id="W1"), compliance_config)
        assert status.all_unknown
        assert status.average_gwl == "N/A"
        assert status.latest_ec is None

    def test_null_readings_are_ignored(self, compliance_config) -> None:
        status = assess_compliance(_series(gwl=[None, 12.0], ec=[None, None]), compliance_config)
        assert status.gwl_compliant is True
        assert status.ec_compliant is None
        assert status.average_gwl == "12.00"


def test_status_label() -> None:
    assert status_label(True) == "COMPLIANT"
    assert status_label(False) == "NON-COMPLIANT"
    assert status_label(None).startswith("N/A")


class TestRenderReport:
    def test_compliant_report(self, compliance_config) -> None:
        status = ComplianceStatus(True, True, True, average_gwl="12.30")
        report = render_compliance_report("W1", status, compliance_config, report_date=date(2024, 6, 1))

        assert report.startswith("# Sustainability Compliance Report for Well: W1\n")
        assert "Report date: 2024-06-01" in report
        assert "- Average groundwater level: 12.30 m bgs" in report
        assert "- Recommended minimum: 10 m bgs" in report
        assert "- Recommended pH range: 6.5 - 8.5" in report
        assert "within sustainable, compliant limits" in report
        assert "warning" not in report
        assert report.endswith("\n")

    def test_violations_add_warnings(self, compliance_config) -> None:
        status = ComplianceStatus(False, False, None, average_gwl="8.00")
        report = render_compliance_report("W1", status, compliance_config, report_date=date(2024, 6, 1))

        assert "**GWL warning:**" in report
        assert "**EC warning:**" in report
        assert "**pH warning:**" not in report
        assert "**N/A (insufficient data)**" in report
        assert "compliant limits" not in report

    def test_insufficient_data(self, compliance_config) -> None:
        status = ComplianceStatus(None, None, None, average_gwl="N/A")
        report = render_compliance_report("W9", status, compliance_config)
        assert "Not enough data for a comprehensive compliance assessment" in report
        assert f"Report date: {date.today().isoformat()}" in report
