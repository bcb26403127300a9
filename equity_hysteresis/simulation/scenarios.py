"""
Named synthetic scenarios for validating the hysteresis engine.

Expectations are calibrated for the default HysteresisParams:
T_enter_major=0.50, T_enter_standard=0.60, T_exit=0.65,
consecutive_required_standard=3, cooldown_snapshots_after_exit=2,
stall band [0.55, 0.62), stalled_window_snapshots=4.
"""

from __future__ import annotations

from typing import Final

from ..types import Scenario, ScenarioExpectation, TransitionReason, UnitState

_STALL = (0.58, 0.58, 0.58, 0.58)


def _expect(
    final_state: UnitState,
    entry_reason: TransitionReason | None = None,
) -> ScenarioExpectation:
    return ScenarioExpectation(final_state=final_state, entry_reason=entry_reason)


DEFAULT_SCENARIOS: Final[tuple[Scenario, ...]] = (
    Scenario(
        "S01_severe_immediate",
        "A single severe reading enters ACTIVE at once",
        (0.49,),
        _expect(UnitState.ACTIVE, TransitionReason.SEVERE),
    ),
    Scenario(
        "S02_single_borderline",
        "One borderline reading only makes the unit a candidate",
        (0.55,),
        _expect(UnitState.CANDIDATE),
    ),
    Scenario(
        "S03_consecutive_borderline",
        "Three consecutive borderline readings enter ACTIVE",
        (0.58, 0.59, 0.59),
        _expect(UnitState.ACTIVE, TransitionReason.CONSECUTIVE),
    ),
    Scenario(
        "S04_false_start",
        "A borderline reading followed by a normal one falls back to NONE",
        (0.58, 0.62),
        _expect(UnitState.NONE),
    ),
    Scenario(
        "S05_severe_then_exit",
        "Severe entry, partial recovery, then exit at or above T_exit",
        (0.49, 0.52, 0.66),
        _expect(UnitState.CLEARED, TransitionReason.SEVERE),
    ),
    Scenario(
        "S06_reenter_during_cooldown",
        "A severe reading re-enters even while the cooldown is running",
        (0.49, 0.70, 0.49),
        _expect(UnitState.ACTIVE, TransitionReason.SEVERE),
    ),
    Scenario(
        "S07_cooldown_suppresses_candidacy",
        "A borderline reading right after exit keeps the unit CLEARED",
        (0.49, 0.66, 0.58),
        _expect(UnitState.CLEARED, TransitionReason.SEVERE),
    ),
    Scenario(
        "S08_candidacy_after_cooldown",
        "Once the cooldown has run out a borderline reading starts candidacy",
        (0.49, 0.66, 0.70, 0.70, 0.58),
        _expect(UnitState.CANDIDATE, TransitionReason.SEVERE),
    ),
    Scenario(
        "S09_stall_detection",
        "An ACTIVE unit parked inside the stall band becomes STALLED",
        (0.48,) + _STALL,
        _expect(UnitState.STALLED, TransitionReason.SEVERE),
    ),
    Scenario(
        "S10_stall_break_drift",
        "A STALLED unit drifting above the band but below T_exit is ACTIVE again",
        (0.48,) + _STALL + (0.63,),
        _expect(UnitState.ACTIVE, TransitionReason.SEVERE),
    ),
    Scenario(
        "S11_stall_exit",
        "A STALLED unit recovering past T_exit is CLEARED",
        (0.48,) + _STALL + (0.66,),
        _expect(UnitState.CLEARED, TransitionReason.SEVERE),
    ),
    Scenario(
        "S12_flapping_near_threshold",
        "Alternating borderline/normal readings never enter ACTIVE",
        (0.59, 0.61, 0.59, 0.61, 0.59, 0.61),
        _expect(UnitState.NONE),
    ),
    Scenario(
        "S13_hover_below_exit",
        "Readings just below T_exit and outside the stall band stay ACTIVE",
        (0.49, 0.63, 0.64, 0.63),
        _expect(UnitState.ACTIVE, TransitionReason.SEVERE),
    ),
    Scenario(
        "S14_exact_exit_threshold",
        "A reading exactly at T_exit exits",
        (0.49, 0.65),
        _expect(UnitState.CLEARED, TransitionReason.SEVERE),
    ),
    Scenario(
        "S15_exact_major_threshold",
        "A reading exactly at T_enter_major is borderline, not severe",
        (0.50,),
        _expect(UnitState.CANDIDATE),
    ),
)


def get_scenario(scenario_id: str) -> Scenario:
    """Look up a default scenario by id."""
    for scenario in DEFAULT_SCENARIOS:
        if scenario.id == scenario_id:
            return scenario
    raise KeyError(f"unknown scenario: {scenario_id}")
