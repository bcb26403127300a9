"""
Equity Hysteresis - Main orchestration module.

Wires configuration, the state store, the transition log and the
engine-driven reports into a single entry point.
"""

import logging

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from .boundary import BoundaryReport, run_boundary_checks
from .config import load_config, params_fingerprint
from .decision import DecisionEngine
from .logging import TransitionLogger, TransitionLogReader
from .metrics import MetricsAggregator
from .runner import FeedResult, apply_feed, roster_from_classifications
from .simulation import RuntimeHarness, ScenarioSimulator
from .simulation.runtime import SequenceFactory
from .state_store import StateStore
from .types import (
    HysteresisParams,
    MetricsReport,
    MonitorConfig,
    RuntimeReport,
    Scenario,
    SimulationReport,
    Snapshot,
    UnderServedRoster,
    UnitState,
)

logger = logging.getLogger(__name__)


class HysteresisMonitor:
    """
    Main orchestration class for Equity Hysteresis.

    Usage:
        monitor = HysteresisMonitor()

        # Apply a feed of snapshots on top of the carried state
        result = monitor.process(snapshots)

        # Units currently ACTIVE or STALLED
        roster = monitor.roster()
    """

    def __init__(self, config: MonitorConfig | None = None):
        """
        Initialize the monitor.

        Args:
            config: Configuration (loads from file if not provided)
        """
        self.config = config or load_config()

        self.engine = DecisionEngine(self.config.params)
        self.state_store = StateStore(self.config.state_path)
        self.log_reader = TransitionLogReader(self.config.log_directory)
        self.aggregator = MetricsAggregator(self.config.params)

    @property
    def params(self) -> HysteresisParams:
        return self.config.params

    def process(self, snapshots: Sequence[Snapshot]) -> FeedResult:
        """
        Apply a snapshot feed and persist the outcome.

        Loads the carried state, folds the feed, appends every produced
        transition to the log and only then saves the new state. A failed
        log write leaves the carried state untouched, so the same feed can
        be processed again.

        Args:
            snapshots: Snapshots for any number of units

        Returns:
            FeedResult with updated states and the new transitions
        """
        states = self.state_store.load()
        result = apply_feed(self.params, states, snapshots)

        if result.records:
            with TransitionLogger(
                self.config.log_directory, params_version=self.params.version
            ) as transition_log:
                transition_log.log_many(result.records)
            logger.debug(
                f"Appended {transition_log.written} transitions under {self.config.log_directory}"
            )

        self.state_store.save(result.states)
        return result

    def roster(self) -> UnderServedRoster:
        """Build the under-served roster from the carried state."""
        states = self.state_store.load()
        return roster_from_classifications(states[unit] for unit in sorted(states))

    def explain(self, unit: str) -> str:
        """
        Explain a unit's carried state.

        Raises:
            KeyError: If the unit has no carried state
        """
        states = self.state_store.load()
        if unit not in states:
            raise KeyError(f"unknown unit: {unit}")
        return self.engine.explain(states[unit])

    def simulate(self, scenarios: Sequence[Scenario] | None = None) -> SimulationReport:
        """Run the scenario table (defaults to the built-in one)."""
        return ScenarioSimulator(self.params, scenarios).run()

    def boundary_checks(self) -> BoundaryReport:
        """Run the boundary battery against the configured parameters."""
        return run_boundary_checks(self.params)

    def metrics(
        self,
        scenarios: Sequence[Scenario] | None = None,
        include_boundary: bool = True,
    ) -> MetricsReport:
        """
        Aggregate transition metrics over a scenario table.

        Args:
            scenarios: Scenarios to aggregate (defaults to the built-in table)
            include_boundary: Merge a fresh boundary-check summary

        Returns:
            MetricsReport
        """
        simulator = ScenarioSimulator(self.params, scenarios)
        unit_tests = self.boundary_checks() if include_boundary else None
        return self.aggregator.aggregate_scenarios(simulator.scenarios, unit_tests=unit_tests)

    def logged_transition_counts(self, unit: str | None = None) -> dict[str, int]:
        """Count transitions by type from the persisted log."""
        return self.aggregator.count_transitions(self.log_reader.stream(unit=unit))

    def runtime(
        self,
        sequence: Sequence[float] | None = None,
        sequence_factory: SequenceFactory | None = None,
    ) -> RuntimeReport:
        """
        Run a single sequence through the runtime harness.

        Args:
            sequence: Ratios to run; generated when omitted
            sequence_factory: Generator used when no sequence is given
        """
        return RuntimeHarness(self.params, sequence_factory).run(sequence)

    def get_status(self) -> dict[str, Any]:
        """
        Get current system status.

        Returns information about:
        - Parameter version and fingerprint
        - Tracked units per state
        - Persisted transitions
        """
        states = self.state_store.load()
        per_state = {state.value: 0 for state in UnitState}
        for classification in states.values():
            per_state[classification.state.value] += 1

        return {
            "timestamp": datetime.now().isoformat(),
            "params_version": self.params.version,
            "params_fingerprint": params_fingerprint(self.params),
            "state_path": str(self.state_store.path),
            "units_tracked": len(states),
            "units_by_state": per_state,
            "under_served": per_state[UnitState.ACTIVE.value] + per_state[UnitState.STALLED.value],
            "logged_transitions": self.log_reader.count(),
        }
