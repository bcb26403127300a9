"""
Example: Comparing parameter sets on scenarios and random sequences.

This demonstrates:
1. Running the scenario table under the default parameters
2. Running the same table under a stricter parameter set
3. Time-in-state for a seeded random sequence
"""

import sys
sys.path.insert(0, "..")

from equity_hysteresis.boundary import run_boundary_checks
from equity_hysteresis.metrics import MetricsAggregator
from equity_hysteresis.simulation import (
    DEFAULT_SCENARIOS,
    RuntimeHarness,
    ScenarioSimulator,
    uniform_sequence_factory,
)
from equity_hysteresis.types import HysteresisParams


def report(label, params):
    print(f"\n=== {label} ===")

    simulation = ScenarioSimulator(params).run()
    summary = simulation.summary
    print(f"Scenarios passed:  {summary.scenarios_pass}/{summary.scenarios_total}")
    print(f"Churn ratio:       {summary.churn_ratio}")
    print(f"Detection delay:   {summary.detection_delay_avg_snapshots}")
    for result in simulation.results:
        if not result.passed:
            print(f"  {result.scenario.id}: {'; '.join(result.mismatches)}")

    boundary = run_boundary_checks(params)
    metrics = MetricsAggregator(params).aggregate_scenarios(DEFAULT_SCENARIOS, unit_tests=boundary)
    print(f"Transitions:       {metrics.transitions}")
    print(f"Boundary checks:   {metrics.unit_tests}")

    runtime = RuntimeHarness(params, uniform_sequence_factory(length=100, seed=7)).run()
    print("Time in state (100 random snapshots):")
    for state, share in runtime.state_distribution.items():
        print(f"  {state:<10} {share:.1%}")


def main():
    report("Default parameters", HysteresisParams())
    report(
        "Strict parameters",
        HysteresisParams(
            t_enter_major=0.45,
            consecutive_required_standard=5,
            cooldown_snapshots_after_exit=4,
            version="strict",
        ),
    )


if __name__ == "__main__":
    main()
