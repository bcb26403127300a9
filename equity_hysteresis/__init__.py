"""
Equity Hysteresis - Under-served unit classification with hysteresis.

Classifies monitored units as under-served from a stream of ratio
snapshots. Entry and exit thresholds are separated, borderline readings
are debounced, a cooldown follows every exit and a stall state flags
units that stop improving.

Quick Start:
    >>> from equity_hysteresis import HysteresisParams, decide
    >>> params = HysteresisParams()
    >>> decision = decide(params, None, 0.49)
    >>> print(decision.state.state)
    ACTIVE

For a full feed with persisted state:
    >>> from equity_hysteresis import HysteresisMonitor
    >>> monitor = HysteresisMonitor()
    >>> monitor.process(snapshots)
    >>> print(monitor.roster().to_dict())

Key Components:
    - decide / DecisionEngine: Pure state transition per snapshot
    - Sequence runner: Folds snapshots per unit, builds the roster
    - ScenarioSimulator: Named synthetic sequences with expectations
    - MetricsAggregator: Transition and time-in-state counts
    - run_boundary_checks: Exact-threshold and edge-case battery

Design Principles:
    - Explicit state: the caller threads every unit's state
    - Immutable parameters: validated once, never mutated
    - Deterministic: same inputs, same outputs

Version: 0.1.0
License: MIT
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

from equity_hysteresis.boundary import BoundaryReport, run_boundary_checks
from equity_hysteresis.config import load_config, params_fingerprint, save_config
from equity_hysteresis.decision import INITIAL_STATE, DecisionEngine, decide
from equity_hysteresis.metrics import MetricsAggregator
from equity_hysteresis.monitor import HysteresisMonitor
from equity_hysteresis.runner import build_roster, classify_unit, classify_units, run_sequence
from equity_hysteresis.simulation import DEFAULT_SCENARIOS, RuntimeHarness, ScenarioSimulator
from equity_hysteresis.types import (
    ConfigurationError,
    Decision,
    EngineState,
    HysteresisParams,
    InvalidRatioError,
    MonitorConfig,
    Snapshot,
    TransitionEvent,
    TransitionReason,
    TransitionType,
    UnitClassification,
    UnitState,
)

__all__ = [
    "DEFAULT_SCENARIOS",
    "INITIAL_STATE",
    "BoundaryReport",
    # Errors
    "ConfigurationError",
    "Decision",
    # Engine
    "DecisionEngine",
    "EngineState",
    # Types
    "HysteresisMonitor",
    "HysteresisParams",
    "InvalidRatioError",
    "MetricsAggregator",
    "MonitorConfig",
    "RuntimeHarness",
    "ScenarioSimulator",
    "Snapshot",
    "TransitionEvent",
    "TransitionReason",
    "TransitionType",
    "UnitClassification",
    "UnitState",
    "__license__",
    # Version info
    "__version__",
    "build_roster",
    "classify_unit",
    "classify_units",
    "decide",
    "load_config",
    "params_fingerprint",
    "run_boundary_checks",
    "run_sequence",
    "save_config",
]
