"""
Per-tick invariant checks over engine traces.

Used by the scenario simulator to catch illegal state moves and cooldown
bookkeeping errors independently of the scenario expectations.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Final

from ..decision import decide
from ..types import EngineState, HysteresisParams, InvariantViolation, UnitState

RULE_ILLEGAL_TRANSITION: Final[str] = "ILLEGAL_TRANSITION"
RULE_COOLDOWN_OVERRANGE: Final[str] = "COOLDOWN_OVERRANGE"
RULE_COOLDOWN_OUTSIDE_CLEARED: Final[str] = "COOLDOWN_OUTSIDE_CLEARED"

ALLOWED_TRANSITIONS: Final[dict[UnitState, frozenset[UnitState]]] = {
    UnitState.NONE: frozenset({UnitState.NONE, UnitState.CANDIDATE, UnitState.ACTIVE}),
    UnitState.CANDIDATE: frozenset({UnitState.CANDIDATE, UnitState.NONE, UnitState.ACTIVE}),
    UnitState.ACTIVE: frozenset({UnitState.ACTIVE, UnitState.STALLED, UnitState.CLEARED}),
    UnitState.STALLED: frozenset({UnitState.STALLED, UnitState.ACTIVE, UnitState.CLEARED}),
    UnitState.CLEARED: frozenset({UnitState.CLEARED, UnitState.ACTIVE, UnitState.CANDIDATE}),
}


def check_step(
    params: HysteresisParams,
    index: int,
    prev: EngineState,
    new: EngineState,
) -> list[InvariantViolation]:
    """Check a single prev -> new step."""
    violations: list[InvariantViolation] = []

    if new.state not in ALLOWED_TRANSITIONS[prev.state]:
        violations.append(InvariantViolation(
            index, RULE_ILLEGAL_TRANSITION, f"{prev.state.value} -> {new.state.value}",
        ))

    if new.state == UnitState.CLEARED:
        if new.cooldown_left > params.cooldown_snapshots_after_exit:
            violations.append(InvariantViolation(
                index, RULE_COOLDOWN_OVERRANGE,
                f"cooldown_left={new.cooldown_left} > {params.cooldown_snapshots_after_exit}",
            ))
    elif new.cooldown_left != 0:
        violations.append(InvariantViolation(
            index, RULE_COOLDOWN_OUTSIDE_CLEARED,
            f"cooldown_left={new.cooldown_left} in {new.state.value}",
        ))

    return violations


def check_sequence(
    params: HysteresisParams,
    ratios: Iterable[float],
) -> tuple[InvariantViolation, ...]:
    """Fold a ratio sequence and collect every invariant violation."""
    violations: list[InvariantViolation] = []
    prev = EngineState()
    for idx, ratio in enumerate(ratios):
        new = decide(params, prev, ratio).state
        violations.extend(check_step(params, idx, prev, new))
        prev = new
    return tuple(violations)
