"""
Core type definitions for Equity Hysteresis.

This module defines all data structures used throughout the system.
Design principles:
- Immutable where possible (frozen dataclasses)
- Explicit validation at construction time
- Engine state is a value passed in and returned, never held internally
- Serialization/deserialization with explicit methods
- No magic strings - all states are enums

Author: Equity Hysteresis Team
"""

from __future__ import annotations

import logging
import math

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Final

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

PARAMS_DOCUMENT_VERSION: Final[str] = "v1"

# Document keys whose spelling differs from the attribute name
_DOCUMENT_KEYS: Final[dict[str, str]] = {
    "t_enter_major": "T_enter_major",
    "t_enter_standard": "T_enter_standard",
    "t_exit": "T_exit",
}


# =============================================================================
# ERRORS
# =============================================================================

class ConfigurationError(ValueError):
    """Raised when a parameter set or config document is malformed."""


class InvalidRatioError(ValueError):
    """Raised when a ratio is missing, non-numeric or not finite."""


# =============================================================================
# ENUMS - Explicit states with no ambiguity
# =============================================================================

class UnitState(str, Enum):
    """
    Classification states of a monitored unit.

    - NONE: No sign of under-service
    - CANDIDATE: Borderline readings seen, debounce in progress
    - ACTIVE: Under-served
    - STALLED: Under-served and stuck in the stall band
    - CLEARED: Recovered, possibly still cooling down
    """

    NONE = "NONE"
    CANDIDATE = "CANDIDATE"
    ACTIVE = "ACTIVE"
    STALLED = "STALLED"
    CLEARED = "CLEARED"

    def __str__(self) -> str:
        return self.value

    @property
    def is_under_served(self) -> bool:
        """Returns True if a unit in this state counts as under-served."""
        return self in (UnitState.ACTIVE, UnitState.STALLED)


class TransitionType(str, Enum):
    """Transition events emitted by the decision engine."""

    ENTER = "ENTER"
    """First entry into ACTIVE from NONE or CANDIDATE."""

    REENTER = "REENTER"
    """Entry into ACTIVE from CLEARED."""

    EXIT = "EXIT"
    """Recovery from ACTIVE or STALLED into CLEARED."""

    STALL = "STALL"
    """ACTIVE unit promoted to STALLED."""

    STALL_BREAK = "STALL_BREAK"
    """STALLED unit left the stall band without recovering."""

    def __str__(self) -> str:
        return self.value


class TransitionReason(str, Enum):
    """Why an ENTER, REENTER or STALL_BREAK event fired."""

    SEVERE = "severe"
    CONSECUTIVE = "consecutive"
    BORDERLINE = "borderline"
    DRIFT = "drift"

    def __str__(self) -> str:
        return self.value


# =============================================================================
# PARAMETERS
# =============================================================================

@dataclass(frozen=True, slots=True)
class HysteresisParams:
    """
    Immutable hysteresis parameter set.

    Loaded once and shared by reference across all units and calls.
    Validation happens here, at construction time, so that the decision
    engine never has to re-check its configuration per call.

    Attributes:
        t_enter_major: Severe threshold; a ratio below it enters immediately
        t_enter_standard: Borderline threshold (> t_enter_major)
        t_exit: Recovery threshold (> t_enter_standard)
        consecutive_required_standard: Borderline readings needed to enter
        cooldown_snapshots_after_exit: Snapshots during which re-entry needs
            a severe reading
        stalled_min_ratio: Lower (inclusive) bound of the stall band
        stalled_max_ratio_below_exit: Upper (exclusive) bound of the stall
            band, at most t_exit
        stalled_window_snapshots: Stall-band readings needed to mark STALLED
        version: Opaque version label of the parameter document
    """

    REQUIRED_FIELDS: ClassVar[tuple[str, ...]] = (
        "t_enter_major",
        "t_enter_standard",
        "t_exit",
        "consecutive_required_standard",
        "cooldown_snapshots_after_exit",
        "stalled_min_ratio",
        "stalled_max_ratio_below_exit",
        "stalled_window_snapshots",
    )

    t_enter_major: float = 0.50
    t_enter_standard: float = 0.60
    t_exit: float = 0.65
    consecutive_required_standard: int = 3
    cooldown_snapshots_after_exit: int = 2
    stalled_min_ratio: float = 0.55
    stalled_max_ratio_below_exit: float = 0.62
    stalled_window_snapshots: int = 4
    version: str | None = PARAMS_DOCUMENT_VERSION

    def __post_init__(self) -> None:
        """Validate the parameter set."""
        self._validate_numbers()
        self._validate_thresholds()
        self._validate_stall_band()

    def _validate_numbers(self) -> None:
        for name in ("t_enter_major", "t_enter_standard", "t_exit",
                     "stalled_min_ratio", "stalled_max_ratio_below_exit"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigurationError(f"{name} must be a number, got {value!r}")
            if not math.isfinite(value):
                raise ConfigurationError(f"{name} must be finite, got {value}")

        counters = [
            ("consecutive_required_standard", self.consecutive_required_standard, 1),
            ("cooldown_snapshots_after_exit", self.cooldown_snapshots_after_exit, 0),
            ("stalled_window_snapshots", self.stalled_window_snapshots, 1),
        ]
        for name, value, minimum in counters:
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
            if value < minimum:
                raise ConfigurationError(f"{name} must be at least {minimum}, got {value}")

    def _validate_thresholds(self) -> None:
        if not (self.t_enter_major < self.t_enter_standard < self.t_exit):
            raise ConfigurationError(
                "thresholds must be strictly increasing "
                "(T_enter_major < T_enter_standard < T_exit), got "
                f"{self.t_enter_major}, {self.t_enter_standard}, {self.t_exit}"
            )

    def _validate_stall_band(self) -> None:
        if self.stalled_min_ratio >= self.stalled_max_ratio_below_exit:
            raise ConfigurationError(
                f"stalled_min_ratio ({self.stalled_min_ratio}) must be below "
                f"stalled_max_ratio_below_exit ({self.stalled_max_ratio_below_exit})"
            )
        if self.stalled_max_ratio_below_exit > self.t_exit:
            raise ConfigurationError(
                f"stalled_max_ratio_below_exit ({self.stalled_max_ratio_below_exit}) "
                f"must not exceed T_exit ({self.t_exit})"
            )

    def is_severe(self, ratio: float) -> bool:
        return ratio < self.t_enter_major

    def is_borderline(self, ratio: float) -> bool:
        return self.t_enter_major <= ratio < self.t_enter_standard

    def in_stall_band(self, ratio: float) -> bool:
        return self.stalled_min_ratio <= ratio < self.stalled_max_ratio_below_exit

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the parameter document key names."""
        data: dict[str, Any] = {}
        for name in self.REQUIRED_FIELDS:
            data[_DOCUMENT_KEYS.get(name, name)] = getattr(self, name)
        data["version"] = self.version
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HysteresisParams:
        """
        Create a parameter set from a document mapping.

        Every field except `version` is required: a missing value is a
        configuration error, never silently defaulted.

        Raises:
            ConfigurationError: If a field is missing, unknown or invalid.
        """
        reverse = {doc: attr for attr, doc in _DOCUMENT_KEYS.items()}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            attr = reverse.get(key, key)
            if attr not in cls.REQUIRED_FIELDS and attr != "version":
                raise ConfigurationError(f"unknown parameter: {key}")
            kwargs[attr] = value

        missing = [
            _DOCUMENT_KEYS.get(name, name)
            for name in cls.REQUIRED_FIELDS
            if name not in kwargs
        ]
        if missing:
            raise ConfigurationError(f"missing parameters: {', '.join(missing)}")

        kwargs.setdefault("version", None)
        return cls(**kwargs)


# =============================================================================
# ENGINE STATE AND EVENTS
# =============================================================================

@dataclass(frozen=True, slots=True)
class EngineState:
    """
    Complete machine state of one unit between engine invocations.

    The caller owns and threads this value; the engine never retains it.

    Attributes:
        state: Current classification
        consecutive: Borderline readings counted while CANDIDATE
        cooldown_left: Remaining cooldown snapshots while CLEARED
        stall_consec: Stall-band readings counted while ACTIVE/STALLED
    """

    state: UnitState = UnitState.NONE
    consecutive: int = 0
    cooldown_left: int = 0
    stall_consec: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "consecutive": self.consecutive,
            "cooldown_left": self.cooldown_left,
            "stall_consec": self.stall_consec,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EngineState:
        return cls(
            state=UnitState(data.get("state", UnitState.NONE.value)),
            consecutive=int(data.get("consecutive", 0)),
            cooldown_left=int(data.get("cooldown_left", 0)),
            stall_consec=int(data.get("stall_consec", 0)),
        )


@dataclass(frozen=True, slots=True)
class TransitionEvent:
    """A single transition emitted by one engine invocation."""

    type: TransitionType
    reason: TransitionReason | None = None
    window: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type.value}
        if self.reason is not None:
            data["reason"] = self.reason.value
        if self.window is not None:
            data["window"] = self.window
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransitionEvent:
        reason = data.get("reason")
        window = data.get("window")
        return cls(
            type=TransitionType(data["type"]),
            reason=TransitionReason(reason) if reason is not None else None,
            window=int(window) if window is not None else None,
        )


@dataclass(frozen=True, slots=True)
class Decision:
    """
    Output of one decision engine call.

    Attributes:
        state: New engine state to thread into the next call
        events: Transition events produced by this call (usually 0 or 1)
    """

    state: EngineState
    events: tuple[TransitionEvent, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        data = self.state.to_dict()
        data["events"] = [e.to_dict() for e in self.events]
        return data


@dataclass(frozen=True, slots=True)
class Snapshot:
    """
    One ratio measurement for a unit.

    Attributes:
        unit: Identifier of the monitored unit
        ratio: Measured ratio (not clamped; compared as-is)
        ts: Measurement timestamp
    """

    unit: str
    ratio: float
    ts: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"unit": self.unit, "ratio": self.ratio, "ts": self.ts.isoformat()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Snapshot:
        """
        Deserialize from a feed record.

        Raises:
            KeyError: If a required field is missing.
            ValueError: If the timestamp or ratio is malformed.
        """
        ts = data["ts"]
        if isinstance(ts, str):
            # fromisoformat() only accepts a trailing "Z" from 3.11 on
            ts = datetime.fromisoformat(ts.replace("Z", "+00:00"))
        elif not isinstance(ts, datetime):
            raise ValueError(f"ts must be an ISO-8601 string, got {type(ts).__name__}: {ts!r}")
        return cls(unit=str(data["unit"]), ratio=float(data["ratio"]), ts=ts)


@dataclass(frozen=True, slots=True)
class TransitionRecord:
    """
    A transition event placed in its sequence context.

    Attributes:
        index: Position of the triggering snapshot in its (sorted) sequence
        ratio: Ratio of the triggering snapshot
        event: The transition event itself
        unit: Unit identifier, when known
        ts: Snapshot timestamp, when known
    """

    index: int
    ratio: float
    event: TransitionEvent
    unit: str | None = None
    ts: datetime | None = None

    @property
    def type(self) -> TransitionType:
        return self.event.type

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.unit is not None:
            data["unit"] = self.unit
        if self.ts is not None:
            data["ts"] = self.ts.isoformat()
        data["idx"] = self.index
        data["ratio"] = self.ratio
        data.update(self.event.to_dict())
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransitionRecord:
        ts = data.get("ts")
        return cls(
            index=int(data.get("idx", 0)),
            ratio=float(data["ratio"]),
            event=TransitionEvent.from_dict(data),
            unit=data.get("unit"),
            ts=datetime.fromisoformat(ts) if ts else None,
        )


# =============================================================================
# RUNNER OUTPUTS
# =============================================================================

@dataclass(frozen=True, slots=True)
class SequenceTrace:
    """
    Full trace of a sequence folded through the engine.

    Attributes:
        final: Engine state after the last snapshot
        states: Classification after each snapshot, in order
        records: Every transition produced, with its index
    """

    final: EngineState
    states: tuple[UnitState, ...]
    records: tuple[TransitionRecord, ...]

    @property
    def final_state(self) -> UnitState:
        return self.final.state

    @property
    def first_entry(self) -> TransitionRecord | None:
        """The first ENTER record, if any."""
        for record in self.records:
            if record.type == TransitionType.ENTER:
                return record
        return None

    @property
    def entry_reason(self) -> TransitionReason | None:
        entry = self.first_entry
        return entry.event.reason if entry is not None else None

    def count(self, event_type: TransitionType) -> int:
        return sum(1 for r in self.records if r.type == event_type)


@dataclass(frozen=True, slots=True)
class UnitClassification:
    """
    Classification of a unit after folding its snapshots.

    Also the persisted per-unit record of the state store.
    """

    unit: str
    engine_state: EngineState = field(default_factory=EngineState)
    last_ratio: float | None = None
    last_ts: datetime | None = None
    records: tuple[TransitionRecord, ...] = ()

    @property
    def state(self) -> UnitState:
        return self.engine_state.state

    @property
    def is_under_served(self) -> bool:
        return self.state.is_under_served

    def to_dict(self) -> dict[str, Any]:
        """Serialize as a roster entry."""
        return {
            "unit": self.unit,
            "state": self.state.value,
            "last_ratio": self.last_ratio,
            "last_ts": self.last_ts.isoformat() if self.last_ts else None,
        }

    def to_state_dict(self) -> dict[str, Any]:
        """Serialize with the full engine state, for persistence."""
        data = self.engine_state.to_dict()
        data["last_ratio"] = self.last_ratio
        data["last_ts"] = self.last_ts.isoformat() if self.last_ts else None
        return data

    @classmethod
    def from_state_dict(cls, unit: str, data: dict[str, Any]) -> UnitClassification:
        last_ts = data.get("last_ts")
        last_ratio = data.get("last_ratio")
        return cls(
            unit=unit,
            engine_state=EngineState.from_dict(data),
            last_ratio=float(last_ratio) if last_ratio is not None else None,
            last_ts=datetime.fromisoformat(last_ts) if last_ts else None,
        )


@dataclass(frozen=True, slots=True)
class UnderServedRoster:
    """Units whose final state is ACTIVE or STALLED."""

    units: tuple[UnitClassification, ...]

    @property
    def total(self) -> int:
        return len(self.units)

    def to_dict(self) -> dict[str, Any]:
        return {"total": self.total, "units": [u.to_dict() for u in self.units]}


# =============================================================================
# SCENARIOS
# =============================================================================

@dataclass(frozen=True, slots=True)
class ScenarioExpectation:
    """Expected outcome of a scenario. Unset fields are not checked."""

    final_state: UnitState | None = None
    entry_reason: TransitionReason | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.final_state is not None:
            data["final_state"] = self.final_state.value
        if self.entry_reason is not None:
            data["entry_reason"] = self.entry_reason.value
        return data


@dataclass(frozen=True, slots=True)
class Scenario:
    """A named synthetic ratio sequence with its expected outcome."""

    id: str
    description: str
    sequence: tuple[float, ...]
    expected: ScenarioExpectation = field(default_factory=ScenarioExpectation)

    def __post_init__(self) -> None:
        if not self.sequence:
            raise ValueError(f"scenario {self.id} has an empty sequence")


@dataclass(frozen=True, slots=True)
class InvariantViolation:
    """A per-tick rule broken by a trace."""

    index: int
    rule: str
    detail: str

    def to_dict(self) -> dict[str, Any]:
        return {"idx": self.index, "rule": self.rule, "detail": self.detail}


@dataclass(frozen=True, slots=True)
class ScenarioResult:
    """
    Outcome of running one scenario.

    Attributes:
        scenario: The scenario that was run
        trace: Full engine trace of the sequence
        detection_delay_snapshots: Snapshots between the first ratio below
            T_enter_standard and the first ENTER, or None
        passed: True if every expectation matched
        mismatches: Human-readable description of each failed expectation
        violations: Invariant violations found in the trace
    """

    scenario: Scenario
    trace: SequenceTrace
    detection_delay_snapshots: int | None
    passed: bool
    mismatches: tuple[str, ...] = ()
    violations: tuple[InvariantViolation, ...] = ()

    @property
    def final_state(self) -> UnitState:
        return self.trace.final_state

    @property
    def entry_reason(self) -> TransitionReason | None:
        return self.trace.entry_reason

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.scenario.id,
            "description": self.scenario.description,
            "sequence": list(self.scenario.sequence),
            "expected": self.scenario.expected.to_dict(),
            "result": {
                "final_state": self.final_state.value,
                "entry_reason": self.entry_reason.value if self.entry_reason else None,
                "transitions": [r.to_dict() for r in self.trace.records],
                "detection_delay_snapshots": self.detection_delay_snapshots,
            },
            "pass": self.passed,
            "mismatches": list(self.mismatches),
            "illegal_rules": [v.to_dict() for v in self.violations],
        }


@dataclass(frozen=True, slots=True)
class SimulationSummary:
    """Aggregate figures over all scenario results."""

    scenarios_total: int
    scenarios_pass: int
    active_entries_total: int
    reentries_total: int
    exits_total: int
    churn_ratio: float
    detection_delay_avg_snapshots: float | None
    illegal_transitions_total: int = 0

    @property
    def all_passed(self) -> bool:
        return self.scenarios_pass == self.scenarios_total

    def to_dict(self) -> dict[str, Any]:
        return {
            "scenarios_total": self.scenarios_total,
            "scenarios_pass": self.scenarios_pass,
            "active_entries_total": self.active_entries_total,
            "reentries_total": self.reentries_total,
            "exits_total": self.exits_total,
            "churn_ratio": self.churn_ratio,
            "detection_delay_avg_snapshots": self.detection_delay_avg_snapshots,
            "illegal_transitions_total": self.illegal_transitions_total,
        }


@dataclass(frozen=True, slots=True)
class SimulationReport:
    """Scenario results plus their summary."""

    results: tuple[ScenarioResult, ...]
    summary: SimulationSummary
    params_version: str | None = None
    params_fingerprint: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "params_version": self.params_version,
            "params_fingerprint": self.params_fingerprint,
            "results": [r.to_dict() for r in self.results],
            "summary": self.summary.to_dict(),
        }


# =============================================================================
# METRICS
# =============================================================================

@dataclass(frozen=True, slots=True)
class MetricsReport:
    """
    Aggregated transition and time-in-state metrics.

    Attributes:
        transitions: Count per transition type (all types present)
        final_state_distribution: Sequences ending in each state
        time_in_state_snapshots: Snapshot-ticks spent in each state
        scenario_count: Number of sequences aggregated
        unit_tests: Merged boundary-check summary {total, pass, fail}, if any
    """

    transitions: dict[str, int]
    final_state_distribution: dict[str, int]
    time_in_state_snapshots: dict[str, int]
    scenario_count: int
    unit_tests: dict[str, int] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "transitions": dict(self.transitions),
            "final_state_distribution": dict(self.final_state_distribution),
            "time_in_state_snapshots": dict(self.time_in_state_snapshots),
            "scenario_count": self.scenario_count,
        }
        if self.unit_tests is not None:
            data["unit_tests"] = dict(self.unit_tests)
        return data


@dataclass(frozen=True, slots=True)
class RuntimeReport:
    """Result of a single runtime-harness run."""

    sequence: tuple[float, ...]
    final_state: UnitState
    enters: int
    reenters: int
    exits: int
    transitions: int
    state_durations: dict[str, int]
    state_distribution: dict[str, float]
    params_version: str | None = None

    @property
    def total_snapshots(self) -> int:
        return len(self.sequence)

    def to_dict(self) -> dict[str, Any]:
        return {
            "params_version": self.params_version,
            "total_snapshots": self.total_snapshots,
            "transitions": self.transitions,
            "enters": self.enters,
            "reenters": self.reenters,
            "exits": self.exits,
            "final_state": self.final_state.value,
            "state_durations": dict(self.state_durations),
            "state_distribution": dict(self.state_distribution),
            "sequence": list(self.sequence),
        }


@dataclass
class MonitorConfig:
    """
    Configuration of a HysteresisMonitor.

    Mutable and path-bearing, unlike the parameter set it wraps.

    Attributes:
        params: Immutable hysteresis parameter set
        state_path: JSON file holding carried per-unit engine state
        log_directory: Directory for the append-only transition log
        artifact_directory: Directory for reports written by the CLI
    """

    params: HysteresisParams = field(default_factory=HysteresisParams)
    state_path: str = "./artifacts/hysteresis-state.json"
    log_directory: str = "./artifacts/transitions"
    artifact_directory: str = "./artifacts"

    def __post_init__(self) -> None:
        if not self.state_path:
            raise ConfigurationError("state_path cannot be empty")
        if not self.log_directory:
            raise ConfigurationError("log_directory cannot be empty")

    def to_dict(self) -> dict[str, Any]:
        return {
            "parameters": self.params.to_dict(),
            "state_path": self.state_path,
            "log_directory": self.log_directory,
            "artifact_directory": self.artifact_directory,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MonitorConfig:
        """
        Create configuration from a document.

        The parameter set may sit under "parameters" or at the top level.
        """
        data = dict(data)
        paths = {
            key: data.pop(key)
            for key in ("state_path", "log_directory", "artifact_directory")
            if key in data
        }
        raw_params = data.pop("parameters", None)
        if raw_params is None:
            raw_params = data
        elif data:
            raise ConfigurationError(f"unknown config keys: {', '.join(sorted(data))}")
        if not isinstance(raw_params, dict):
            raise ConfigurationError("parameters must be a mapping")

        return cls(params=HysteresisParams.from_dict(raw_params), **paths)
