"""
Tests for the Scenario Simulator and invariant checks.
"""

import pytest

from equity_hysteresis.simulation import (
    ALLOWED_TRANSITIONS,
    DEFAULT_SCENARIOS,
    ScenarioSimulator,
    check_sequence,
    check_step,
    detection_delay,
    get_scenario,
)
from equity_hysteresis.simulation.invariants import (
    RULE_COOLDOWN_OUTSIDE_CLEARED,
    RULE_COOLDOWN_OVERRANGE,
    RULE_ILLEGAL_TRANSITION,
)
from equity_hysteresis.runner import run_sequence
from equity_hysteresis.types import (
    EngineState,
    HysteresisParams,
    Scenario,
    ScenarioExpectation,
    TransitionReason,
    UnitState,
)


PARAMS = HysteresisParams()


def make_scenario(sequence, final_state=None, entry_reason=None, scenario_id="X01"):
    """Helper to build a one-off scenario."""
    return Scenario(
        scenario_id,
        "test scenario",
        tuple(sequence),
        ScenarioExpectation(final_state=final_state, entry_reason=entry_reason),
    )


class TestDefaultScenarios:
    """Tests for the built-in scenario table."""

    def test_table_size_and_unique_ids(self):
        ids = [s.id for s in DEFAULT_SCENARIOS]
        assert len(ids) >= 10
        assert len(ids) == len(set(ids))

    @pytest.mark.parametrize("scenario", DEFAULT_SCENARIOS, ids=lambda s: s.id)
    def test_scenario_passes_with_defaults(self, scenario):
        result = ScenarioSimulator(PARAMS).run_scenario(scenario)

        assert result.passed, result.mismatches
        assert result.violations == ()

    def test_summary_with_defaults(self):
        summary = ScenarioSimulator(PARAMS).run().summary

        assert summary.scenarios_total == len(DEFAULT_SCENARIOS)
        assert summary.all_passed
        assert summary.active_entries_total == 11
        assert summary.reentries_total == 1
        assert summary.exits_total == 6
        assert summary.churn_ratio == 0.091
        assert summary.detection_delay_avg_snapshots == 0.182
        assert summary.illegal_transitions_total == 0

    def test_get_scenario(self):
        assert get_scenario("S03_consecutive_borderline").sequence == (0.58, 0.59, 0.59)

        with pytest.raises(KeyError):
            get_scenario("S99_missing")


class TestScenarioSimulator:
    """Tests for running custom scenario tables."""

    def test_mismatch_reported(self):
        scenario = make_scenario([0.58, 0.62], final_state=UnitState.ACTIVE)

        result = ScenarioSimulator(PARAMS, [scenario]).run_scenario(scenario)

        assert not result.passed
        assert result.mismatches == ("final_state: expected ACTIVE, got NONE",)

    def test_entry_reason_mismatch(self):
        scenario = make_scenario(
            [0.49], final_state=UnitState.ACTIVE, entry_reason=TransitionReason.CONSECUTIVE
        )

        result = ScenarioSimulator(PARAMS, [scenario]).run_scenario(scenario)

        assert not result.passed
        assert "entry_reason" in result.mismatches[0]

    def test_unset_expectations_not_checked(self):
        scenario = make_scenario([0.49, 0.70])

        assert ScenarioSimulator(PARAMS, [scenario]).run_scenario(scenario).passed

    def test_duplicate_ids_rejected(self):
        scenario = make_scenario([0.49])

        with pytest.raises(ValueError):
            ScenarioSimulator(PARAMS, [scenario, scenario])

    def test_empty_sequence_rejected(self):
        with pytest.raises(ValueError):
            make_scenario([])

    def test_churn_without_entries(self):
        report = ScenarioSimulator(PARAMS, [make_scenario([0.70, 0.71])]).run()

        assert report.summary.churn_ratio == 0.0
        assert report.summary.detection_delay_avg_snapshots is None

    def test_report_document(self):
        scenario = make_scenario([0.49, 0.66], final_state=UnitState.CLEARED)

        data = ScenarioSimulator(PARAMS, [scenario]).run().to_dict()

        assert data["params_version"] == "v1"
        assert len(data["params_fingerprint"]) == 64
        entry = data["results"][0]
        assert entry["id"] == "X01"
        assert entry["sequence"] == [0.49, 0.66]
        assert entry["pass"] is True
        assert entry["result"]["final_state"] == "CLEARED"
        assert entry["result"]["entry_reason"] == "severe"
        assert entry["result"]["detection_delay_snapshots"] == 0
        assert [t["type"] for t in entry["result"]["transitions"]] == ["ENTER", "EXIT"]
        assert data["summary"]["scenarios_pass"] == 1

    def test_other_params_change_outcome(self):
        """Expectations are calibrated for the defaults only."""
        strict = HysteresisParams(consecutive_required_standard=5, version="strict")
        scenario = get_scenario("S03_consecutive_borderline")

        result = ScenarioSimulator(strict, [scenario]).run_scenario(scenario)

        assert not result.passed
        assert result.final_state == UnitState.CANDIDATE


class TestDetectionDelay:
    """Tests for the detection delay measure."""

    def test_consecutive_delay(self):
        sequence = [0.70, 0.58, 0.59, 0.59]
        trace = run_sequence(PARAMS, sequence)

        assert detection_delay(PARAMS, sequence, trace) == 2

    def test_no_entry_no_delay(self):
        sequence = [0.58, 0.62]
        trace = run_sequence(PARAMS, sequence)

        assert detection_delay(PARAMS, sequence, trace) is None

    def test_immediate_entry(self):
        sequence = [0.49]
        assert detection_delay(PARAMS, sequence, run_sequence(PARAMS, sequence)) == 0


class TestInvariants:
    """Tests for per-tick invariant checks."""

    def test_engine_traces_are_legal(self):
        sequence = [0.58, 0.59, 0.59, 0.58, 0.58, 0.58, 0.58, 0.52, 0.66, 0.70, 0.49]
        assert check_sequence(PARAMS, sequence) == ()

    def test_illegal_transition_detected(self):
        prev = EngineState(state=UnitState.NONE)
        new = EngineState(state=UnitState.STALLED)

        violations = check_step(PARAMS, 3, prev, new)

        assert [v.rule for v in violations] == [RULE_ILLEGAL_TRANSITION]
        assert violations[0].index == 3

    def test_cooldown_overrange_detected(self):
        prev = EngineState(state=UnitState.ACTIVE)
        new = EngineState(state=UnitState.CLEARED, cooldown_left=9)

        assert [v.rule for v in check_step(PARAMS, 0, prev, new)] == [RULE_COOLDOWN_OVERRANGE]

    def test_cooldown_outside_cleared_detected(self):
        prev = EngineState(state=UnitState.CLEARED, cooldown_left=1)
        new = EngineState(state=UnitState.ACTIVE, cooldown_left=1)

        assert [v.rule for v in check_step(PARAMS, 0, prev, new)] == [RULE_COOLDOWN_OUTSIDE_CLEARED]

    def test_every_state_can_stay(self):
        for state, targets in ALLOWED_TRANSITIONS.items():
            assert state in targets
