"""
Decision Engine - The state machine of Equity Hysteresis.

This module converts one ratio reading into a new classification for a
unit, given the unit's previous state. It debounces threshold crossings
so that a ratio hovering near a threshold does not flap the result.

Design Principles:
1. Pure: output depends only on (params, previous state, ratio)
2. State is threaded by the caller, never kept here
3. One severe reading is enough; borderline readings must repeat
4. Recovery starts a cooldown during which only severe readings re-enter

Transition Table:
    | From      | Condition                   | To        | Event            |
    |-----------|-----------------------------|-----------|------------------|
    | NONE      | severe                      | ACTIVE    | ENTER(severe)    |
    | NONE      | borderline                  | CANDIDATE |                  |
    | CANDIDATE | severe                      | ACTIVE    | ENTER(severe)    |
    | CANDIDATE | borderline x required       | ACTIVE    | ENTER(consec.)   |
    | CANDIDATE | otherwise                   | NONE      |                  |
    | ACTIVE    | ratio >= T_exit             | CLEARED   | EXIT             |
    | ACTIVE    | stall band x window         | STALLED   | STALL(window)    |
    | STALLED   | ratio >= T_exit             | CLEARED   | EXIT             |
    | STALLED   | leaves stall band           | ACTIVE    | STALL_BREAK(...) |
    | CLEARED   | severe                      | ACTIVE    | REENTER(severe)  |
    | CLEARED   | borderline, cooldown over   | CANDIDATE |                  |

Author: Equity Hysteresis Team
"""

from __future__ import annotations

import logging
import math

from numbers import Real

from ..types import (
    Decision,
    EngineState,
    HysteresisParams,
    InvalidRatioError,
    TransitionEvent,
    TransitionReason,
    TransitionType,
    UnitClassification,
    UnitState,
)

logger = logging.getLogger(__name__)

INITIAL_STATE = EngineState()


def decide(
    params: HysteresisParams,
    prev_state: EngineState | None,
    ratio: float,
) -> Decision:
    """
    Apply one ratio reading to a unit's previous state.

    Args:
        params: Validated hysteresis parameter set
        prev_state: State returned by the previous call, or None for a
            fresh unit
        ratio: Finite ratio reading; values outside [0, 1] are compared
            as-is

    Returns:
        Decision with the new state and any transition events

    Raises:
        InvalidRatioError: If ratio is not a finite real number
    """
    ratio = _check_ratio(ratio)
    prev = prev_state or INITIAL_STATE

    severe = params.is_severe(ratio)
    borderline = params.is_borderline(ratio)
    in_stall_band = params.in_stall_band(ratio)

    state = prev.state
    consecutive = prev.consecutive
    stall_consec = prev.stall_consec
    events: list[TransitionEvent] = []

    if prev.state == UnitState.NONE:
        stall_consec = 0
        if severe:
            state = UnitState.ACTIVE
            events.append(TransitionEvent(TransitionType.ENTER, TransitionReason.SEVERE))
        elif borderline:
            state = UnitState.CANDIDATE
            consecutive = 1

    elif prev.state == UnitState.CANDIDATE:
        stall_consec = 0
        if severe:
            state = UnitState.ACTIVE
            events.append(TransitionEvent(TransitionType.ENTER, TransitionReason.SEVERE))
        elif borderline:
            consecutive += 1
            if consecutive >= params.consecutive_required_standard:
                state = UnitState.ACTIVE
                events.append(
                    TransitionEvent(TransitionType.ENTER, TransitionReason.CONSECUTIVE)
                )
        else:
            state = UnitState.NONE

    elif prev.state == UnitState.ACTIVE:
        if ratio >= params.t_exit:
            state = UnitState.CLEARED
            stall_consec = 0
            events.append(TransitionEvent(TransitionType.EXIT))
        elif in_stall_band:
            stall_consec += 1
            if stall_consec >= params.stalled_window_snapshots:
                state = UnitState.STALLED
                events.append(TransitionEvent(TransitionType.STALL, window=stall_consec))
        else:
            stall_consec = 0

    elif prev.state == UnitState.STALLED:
        if ratio >= params.t_exit:
            state = UnitState.CLEARED
            stall_consec = 0
            events.append(TransitionEvent(TransitionType.EXIT))
        elif not in_stall_band:
            state = UnitState.ACTIVE
            stall_consec = 0
            if severe:
                reason = TransitionReason.SEVERE
            elif borderline:
                reason = TransitionReason.BORDERLINE
            else:
                # Left the band upwards but still below T_exit
                reason = TransitionReason.DRIFT
            events.append(TransitionEvent(TransitionType.STALL_BREAK, reason))

    elif prev.state == UnitState.CLEARED:
        stall_consec = 0
        if severe:
            state = UnitState.ACTIVE
            events.append(TransitionEvent(TransitionType.REENTER, TransitionReason.SEVERE))
        elif prev.cooldown_left == 0 and borderline:
            state = UnitState.CANDIDATE
            consecutive = 1

    if state != UnitState.CANDIDATE:
        consecutive = 0

    # Cooldown is set on the tick that enters CLEARED and only consumed
    # on later ticks that stay CLEARED.
    if state == UnitState.CLEARED:
        if prev.state != UnitState.CLEARED:
            cooldown_left = params.cooldown_snapshots_after_exit
        else:
            cooldown_left = max(prev.cooldown_left - 1, 0)
    else:
        cooldown_left = 0

    new_state = EngineState(
        state=state,
        consecutive=consecutive,
        cooldown_left=cooldown_left,
        stall_consec=stall_consec,
    )

    logger.debug(f"decide: {prev.state.value} -> {state.value} at ratio={ratio}")
    for event in events:
        logger.info(
            f"Transition {event.type.value}"
            f"{f'({event.reason.value})' if event.reason else ''}: "
            f"{prev.state.value} -> {state.value} at ratio={ratio}"
        )

    return Decision(state=new_state, events=tuple(events))


def _check_ratio(ratio: float) -> float:
    """Reject ratios the engine cannot compare safely."""
    if ratio is None or isinstance(ratio, bool) or not isinstance(ratio, Real):
        raise InvalidRatioError(f"ratio must be a real number, got {ratio!r}")
    value = float(ratio)
    if not math.isfinite(value):
        raise InvalidRatioError(f"ratio must be finite, got {ratio}")
    return value


class DecisionEngine:
    """
    Binds a parameter set to the decide() function.

    Holds only the immutable parameters; every call still takes and
    returns the unit's state explicitly.

    Usage:
        >>> engine = DecisionEngine(params)
        >>> decision = engine.decide(None, 0.49)
        >>> print(decision.state.state)
        ACTIVE
    """

    def __init__(self, params: HysteresisParams) -> None:
        """
        Initialize the decision engine.

        Args:
            params: Validated hysteresis parameter set
        """
        self._params = params
        logger.debug(
            f"DecisionEngine initialized with thresholds: "
            f"major={params.t_enter_major}, "
            f"standard={params.t_enter_standard}, "
            f"exit={params.t_exit}"
        )

    @property
    def params(self) -> HysteresisParams:
        """Read-only access to the parameter set."""
        return self._params

    def decide(self, prev_state: EngineState | None, ratio: float) -> Decision:
        return decide(self._params, prev_state, ratio)

    def explain(self, classification: UnitClassification) -> str:
        """
        Generate a human-readable explanation of a unit's classification.

        Args:
            classification: Result of folding a unit's snapshots

        Returns:
            Multi-line string explanation
        """
        p = self._params
        es = classification.engine_state
        lines = [
            "=" * 40,
            "UNIT CLASSIFICATION",
            "=" * 40,
            f"Unit:          {classification.unit}",
            f"State:         {es.state.value}",
            f"Under-served:  {'yes' if classification.is_under_served else 'no'}",
            f"Last ratio:    {_fmt(classification.last_ratio)}",
            f"Last snapshot: {classification.last_ts.isoformat() if classification.last_ts else '-'}",
            "",
            "COUNTERS:",
            f"  consecutive: {es.consecutive}/{p.consecutive_required_standard}",
            f"  stall:       {es.stall_consec}/{p.stalled_window_snapshots}",
            f"  cooldown:    {es.cooldown_left}",
            "",
            "TRANSITIONS:",
        ]

        if classification.records:
            for record in classification.records:
                reason = f" ({record.event.reason.value})" if record.event.reason else ""
                lines.append(f"  • #{record.index} {record.type.value}{reason} at {record.ratio}")
        else:
            lines.append("  • None recorded")

        lines.append("=" * 40)

        return "\n".join(lines)


def _fmt(value: float | None) -> str:
    return "-" if value is None else f"{value:.4f}"
