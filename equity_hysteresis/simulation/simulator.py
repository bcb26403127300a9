"""
Scenario Simulator - Validates engine behaviour against named cases.

Runs every scenario of a table through the engine, compares the outcome
with its expectation, and summarizes churn and detection delay.
"""

from __future__ import annotations

import logging

from collections.abc import Sequence

import numpy as np

from ..config import params_fingerprint
from ..runner import run_sequence
from ..types import (
    HysteresisParams,
    Scenario,
    ScenarioResult,
    SequenceTrace,
    SimulationReport,
    SimulationSummary,
    TransitionType,
)
from .invariants import check_sequence
from .scenarios import DEFAULT_SCENARIOS

logger = logging.getLogger(__name__)


def detection_delay(
    params: HysteresisParams,
    sequence: Sequence[float],
    trace: SequenceTrace,
) -> int | None:
    """
    Snapshots between the first sign of trouble and formal entry.

    Returns:
        Index of the first ENTER minus index of the first ratio below
        T_enter_standard, or None if either does not exist
    """
    entry = trace.first_entry
    if entry is None:
        return None

    for idx, ratio in enumerate(sequence):
        if ratio < params.t_enter_standard:
            return entry.index - idx
    return None


class ScenarioSimulator:
    """
    Runs a scenario table through the decision engine.

    Usage:
        >>> simulator = ScenarioSimulator(params)
        >>> report = simulator.run()
        >>> print(report.summary.scenarios_pass)
    """

    def __init__(
        self,
        params: HysteresisParams,
        scenarios: Sequence[Scenario] | None = None,
    ) -> None:
        """
        Initialize the simulator.

        Args:
            params: Parameter set to run the scenarios with
            scenarios: Scenario table (defaults to DEFAULT_SCENARIOS)
        """
        self.params = params
        self.scenarios = tuple(scenarios) if scenarios is not None else DEFAULT_SCENARIOS

        ids = [s.id for s in self.scenarios]
        if len(ids) != len(set(ids)):
            raise ValueError("scenario ids must be unique")

    def run_scenario(self, scenario: Scenario) -> ScenarioResult:
        """
        Run one scenario and compare it with its expectation.

        Args:
            scenario: Scenario to run

        Returns:
            ScenarioResult with trace, delay, pass flag and mismatches
        """
        trace = run_sequence(self.params, scenario.sequence)
        expected = scenario.expected
        mismatches: list[str] = []

        if expected.final_state is not None and trace.final_state != expected.final_state:
            mismatches.append(
                f"final_state: expected {expected.final_state.value}, "
                f"got {trace.final_state.value}"
            )

        if expected.entry_reason is not None and trace.entry_reason != expected.entry_reason:
            got = trace.entry_reason.value if trace.entry_reason else None
            mismatches.append(
                f"entry_reason: expected {expected.entry_reason.value}, got {got}"
            )

        violations = check_sequence(self.params, scenario.sequence)
        if violations:
            logger.warning(f"Scenario {scenario.id}: {len(violations)} invariant violations")

        result = ScenarioResult(
            scenario=scenario,
            trace=trace,
            detection_delay_snapshots=detection_delay(self.params, scenario.sequence, trace),
            passed=not mismatches,
            mismatches=tuple(mismatches),
            violations=violations,
        )

        if not result.passed:
            logger.warning(f"Scenario {scenario.id} FAILED: {'; '.join(mismatches)}")
        return result

    def run(self) -> SimulationReport:
        """
        Run every scenario and summarize.

        Returns:
            SimulationReport with per-scenario results and summary
        """
        results = tuple(self.run_scenario(s) for s in self.scenarios)
        summary = summarize(results)

        logger.info(
            f"Simulation: {summary.scenarios_pass}/{summary.scenarios_total} passed, "
            f"churn={summary.churn_ratio}, "
            f"delay_avg={summary.detection_delay_avg_snapshots}"
        )

        return SimulationReport(
            results=results,
            summary=summary,
            params_version=self.params.version,
            params_fingerprint=params_fingerprint(self.params),
        )


def summarize(results: Sequence[ScenarioResult]) -> SimulationSummary:
    """
    Aggregate scenario results.

    churn_ratio is REENTER / ENTER (0.0 without entries); the detection
    delay average only covers scenarios that have a delay.
    """
    entries = sum(r.trace.count(TransitionType.ENTER) for r in results)
    reentries = sum(r.trace.count(TransitionType.REENTER) for r in results)
    exits = sum(r.trace.count(TransitionType.EXIT) for r in results)

    delays = [
        r.detection_delay_snapshots
        for r in results
        if r.detection_delay_snapshots is not None
    ]
    delay_avg = round(float(np.mean(delays)), 3) if delays else None

    return SimulationSummary(
        scenarios_total=len(results),
        scenarios_pass=sum(1 for r in results if r.passed),
        active_entries_total=entries,
        reentries_total=reentries,
        exits_total=exits,
        churn_ratio=round(reentries / entries, 3) if entries else 0.0,
        detection_delay_avg_snapshots=delay_avg,
        illegal_transitions_total=sum(len(r.violations) for r in results),
    )
