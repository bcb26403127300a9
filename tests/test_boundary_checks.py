"""
Tests for the boundary check battery.
"""

import pytest

from equity_hysteresis.boundary import (
    BOUNDARY_CHECKS,
    BoundaryCheckFailure,
    CheckNotApplicable,
    CheckStatus,
    run_boundary_checks,
)
from equity_hysteresis.types import HysteresisParams


def failing_check(params):
    raise BoundaryCheckFailure("deliberate failure")


def inapplicable_check(params):
    raise CheckNotApplicable("no region")


def passing_check(params):
    return None


class TestDefaultBattery:
    """Tests for the battery with the default parameters."""

    def test_all_checks_pass(self):
        report = run_boundary_checks(HysteresisParams())

        failures = [r.to_dict() for r in report.results if r.status != CheckStatus.PASS]
        assert failures == []
        assert report.total == len(BOUNDARY_CHECKS)
        assert report.passed

    def test_ids_unique(self):
        ids = [check_id for check_id, _, _ in BOUNDARY_CHECKS]
        assert len(ids) == len(set(ids))

    def test_summary(self):
        summary = run_boundary_checks(HysteresisParams()).summary()

        assert summary == {
            "total": len(BOUNDARY_CHECKS),
            "pass": len(BOUNDARY_CHECKS),
            "fail": 0,
            "not_applicable": 0,
        }


class TestOtherParameterSets:
    """The battery derives its ratios from any valid parameter set."""

    @pytest.mark.parametrize(
        "params",
        [
            HysteresisParams(t_enter_major=0.40, t_enter_standard=0.55, t_exit=0.70,
                             stalled_min_ratio=0.45, stalled_max_ratio_below_exit=0.60),
            HysteresisParams(consecutive_required_standard=1),
            HysteresisParams(cooldown_snapshots_after_exit=0),
            HysteresisParams(stalled_window_snapshots=1),
        ],
    )
    def test_no_failures(self, params):
        report = run_boundary_checks(params)

        assert report.fail_count == 0, [r.to_dict() for r in report.results]

    def test_wide_stall_band_reports_not_applicable(self):
        """Checks without a ratio region are reported, never dropped."""
        params = HysteresisParams(stalled_min_ratio=0.50, stalled_max_ratio_below_exit=0.65)

        report = run_boundary_checks(params)
        statuses = {r.check_id: r.status for r in report.results}

        assert report.total == len(BOUNDARY_CHECKS)
        assert statuses["BC06"] == CheckStatus.NOT_APPLICABLE
        assert statuses["BC07"] == CheckStatus.NOT_APPLICABLE
        assert report.not_applicable_count == 2
        assert report.passed


class TestRunner:
    """Tests for result collection."""

    def test_failure_recorded_with_message(self):
        checks = (
            ("T1", "passes", passing_check),
            ("T2", "fails", failing_check),
            ("T3", "not applicable", inapplicable_check),
        )

        report = run_boundary_checks(HysteresisParams(), checks)

        assert [r.status for r in report.results] == [
            CheckStatus.PASS,
            CheckStatus.FAIL,
            CheckStatus.NOT_APPLICABLE,
        ]
        assert report.results[1].error == "deliberate failure"
        assert not report.passed

    def test_report_document(self):
        checks = (("T2", "fails", failing_check),)

        data = run_boundary_checks(HysteresisParams(), checks).to_dict()

        assert data["summary"]["fail"] == 1
        assert data["results"] == [
            {"id": "T2", "description": "fails", "status": "FAIL", "error": "deliberate failure"}
        ]
