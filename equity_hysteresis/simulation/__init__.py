"""
Scenario simulation for Equity Hysteresis.

Named scenarios, invariant checks and the runtime harness.
"""

from .invariants import ALLOWED_TRANSITIONS, check_sequence, check_step
from .runtime import RuntimeHarness, uniform_sequence_factory
from .scenarios import DEFAULT_SCENARIOS, get_scenario
from .simulator import ScenarioSimulator, detection_delay, summarize

__all__ = [
    "ALLOWED_TRANSITIONS",
    "DEFAULT_SCENARIOS",
    "RuntimeHarness",
    "ScenarioSimulator",
    "check_sequence",
    "check_step",
    "detection_delay",
    "get_scenario",
    "summarize",
    "uniform_sequence_factory",
]
