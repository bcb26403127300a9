"""
Metrics Aggregator - Summarizes transition activity.

Tallies transition types, final-state distribution and time spent in each
state over a set of sequences, and merges an optional boundary-check
summary. Works from fresh engine runs or from persisted transition logs.
"""

from __future__ import annotations

import logging

from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Union

from ..boundary import BoundaryReport
from ..runner import run_sequence
from ..types import (
    HysteresisParams,
    MetricsReport,
    Scenario,
    SequenceTrace,
    TransitionRecord,
    TransitionType,
    UnitState,
)

logger = logging.getLogger(__name__)

UnitTestSummary = Union[BoundaryReport, Mapping[str, Any]]


class MetricsAggregator:
    """
    Aggregates engine traces into a MetricsReport.

    Usage:
        >>> aggregator = MetricsAggregator(params)
        >>> report = aggregator.aggregate_scenarios(DEFAULT_SCENARIOS)
        >>> print(report.transitions["ENTER"])
    """

    def __init__(self, params: HysteresisParams) -> None:
        self.params = params

    def aggregate_scenarios(
        self,
        scenarios: Sequence[Scenario],
        unit_tests: UnitTestSummary | None = None,
    ) -> MetricsReport:
        """
        Re-run each scenario's sequence and aggregate the traces.

        Args:
            scenarios: Scenarios to run
            unit_tests: Optional boundary-check summary to merge

        Returns:
            MetricsReport over all scenarios
        """
        traces = [run_sequence(self.params, s.sequence) for s in scenarios]
        return self.aggregate_traces(traces, unit_tests=unit_tests)

    def aggregate_traces(
        self,
        traces: Sequence[SequenceTrace],
        unit_tests: UnitTestSummary | None = None,
    ) -> MetricsReport:
        """
        Aggregate already computed traces.

        Args:
            traces: Engine traces, one per sequence
            unit_tests: Optional boundary-check summary to merge

        Returns:
            MetricsReport over all traces
        """
        final_states = _zeroed(UnitState)
        time_in_state = _zeroed(UnitState)

        for trace in traces:
            final_states[trace.final_state.value] += 1
            for state in trace.states:
                time_in_state[state.value] += 1

        report = MetricsReport(
            transitions=self.count_transitions(r for t in traces for r in t.records),
            final_state_distribution=final_states,
            time_in_state_snapshots=time_in_state,
            scenario_count=len(traces),
            unit_tests=_unit_test_summary(unit_tests),
        )

        logger.info(
            f"Metrics: sequences={report.scenario_count} "
            f"transitions={sum(report.transitions.values())}"
        )
        return report

    @staticmethod
    def count_transitions(records: Iterable[TransitionRecord]) -> dict[str, int]:
        """
        Count transitions by type.

        Accepts records from fresh traces or read back from the
        transition log. Every type is present in the result.
        """
        counts = _zeroed(TransitionType)
        for record in records:
            counts[record.type.value] += 1
        return counts


def _zeroed(enum_cls: Any) -> dict[str, int]:
    return {member.value: 0 for member in enum_cls}


def _unit_test_summary(summary: UnitTestSummary | None) -> dict[str, int] | None:
    """
    Normalize a boundary-check summary to {total, pass, fail}.

    Accepts a BoundaryReport, a mapping with pass/fail keys, or a report
    mapping with a nested "summary". Absent input is not an error.
    """
    if summary is None:
        return None

    if isinstance(summary, BoundaryReport):
        data: Mapping[str, Any] = summary.summary()
    else:
        data = summary.get("summary", summary)

    if "pass" not in data or "fail" not in data:
        logger.warning("Unit-test summary has no pass/fail counts; ignoring it")
        return None

    passed = int(data["pass"])
    failed = int(data["fail"])
    return {
        "total": int(data.get("total", passed + failed)),
        "pass": passed,
        "fail": failed,
    }
