"""
Boundary Checks - A fixed battery of edge cases run against the engine.

Every ratio used here is derived from the parameter set, so the battery
can validate any well-formed configuration, not just the defaults. Each
check reports PASS or FAIL with a message; a check whose ratio region
does not exist for the given parameters reports NOT_APPLICABLE.
"""

from __future__ import annotations

import logging

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Final

from ..decision import decide
from ..runner import run_sequence
from ..types import (
    EngineState,
    HysteresisParams,
    SequenceTrace,
    TransitionReason,
    TransitionRecord,
    TransitionType,
    UnitState,
)

logger = logging.getLogger(__name__)

STEP: Final[float] = 0.01


class CheckStatus(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    NOT_APPLICABLE = "NOT_APPLICABLE"

    def __str__(self) -> str:
        return self.value


class BoundaryCheckFailure(AssertionError):
    """An expectation of a boundary check did not hold."""


class CheckNotApplicable(Exception):
    """The parameter set leaves no ratio region for this check."""


@dataclass(frozen=True, slots=True)
class BoundaryCheckResult:
    check_id: str
    description: str
    status: CheckStatus
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.check_id,
            "description": self.description,
            "status": self.status.value,
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass(frozen=True, slots=True)
class BoundaryReport:
    """Results of a battery run."""

    results: tuple[BoundaryCheckResult, ...]

    def _count(self, status: CheckStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def pass_count(self) -> int:
        return self._count(CheckStatus.PASS)

    @property
    def fail_count(self) -> int:
        return self._count(CheckStatus.FAIL)

    @property
    def not_applicable_count(self) -> int:
        return self._count(CheckStatus.NOT_APPLICABLE)

    @property
    def passed(self) -> bool:
        return self.fail_count == 0

    def summary(self) -> dict[str, int]:
        return {
            "total": self.total,
            "pass": self.pass_count,
            "fail": self.fail_count,
            "not_applicable": self.not_applicable_count,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary(),
            "results": [r.to_dict() for r in self.results],
        }


# =============================================================================
# HELPERS
# =============================================================================

def _expect(condition: bool, message: str) -> None:
    if not condition:
        raise BoundaryCheckFailure(message)


def _first(trace: SequenceTrace, event_type: TransitionType) -> TransitionRecord | None:
    for record in trace.records:
        if record.type == event_type:
            return record
    return None


def _severe(p: HysteresisParams) -> float:
    return p.t_enter_major - STEP


def _borderline(p: HysteresisParams) -> float:
    return (p.t_enter_major + p.t_enter_standard) / 2


def _recovered(p: HysteresisParams) -> float:
    return p.t_exit + STEP


def _normal(p: HysteresisParams) -> float:
    return (p.t_enter_standard + p.t_exit) / 2


def _stall_prefix(p: HysteresisParams) -> list[float]:
    band_mid = (p.stalled_min_ratio + p.stalled_max_ratio_below_exit) / 2
    return [_severe(p)] + [band_mid] * p.stalled_window_snapshots


def _run_stalled(p: HysteresisParams, tail: Sequence[float]) -> SequenceTrace:
    trace = run_sequence(p, _stall_prefix(p) + list(tail))
    _expect(
        _first(trace, TransitionType.STALL) is not None,
        "stall prefix did not produce a STALL event",
    )
    return trace


# =============================================================================
# CHECKS
# =============================================================================

def check_severe_entry_and_exit(p: HysteresisParams) -> None:
    trace = run_sequence(p, [_severe(p), _borderline(p), _recovered(p)])
    enter = _first(trace, TransitionType.ENTER)
    _expect(enter is not None and enter.event.reason == TransitionReason.SEVERE,
            "expected ENTER(severe) on the first snapshot")
    _expect(enter.index == 0, f"expected ENTER at index 0, got {enter.index}")
    _expect(_first(trace, TransitionType.EXIT) is not None, "expected EXIT")
    _expect(trace.final_state == UnitState.CLEARED,
            f"expected final CLEARED, got {trace.final_state.value}")


def check_consecutive_entry_and_exit(p: HysteresisParams) -> None:
    # NONE -> CANDIDATE never promotes on the same tick
    needed = max(p.consecutive_required_standard, 2)
    trace = run_sequence(p, [_borderline(p)] * needed + [_recovered(p)])
    enter = _first(trace, TransitionType.ENTER)
    _expect(enter is not None and enter.event.reason == TransitionReason.CONSECUTIVE,
            "expected ENTER(consecutive)")
    _expect(enter.index == needed - 1,
            f"expected ENTER at index {needed - 1}, got {enter.index}")
    _expect(_first(trace, TransitionType.EXIT) is not None, "expected EXIT")


def check_false_start(p: HysteresisParams) -> None:
    hits = max(p.consecutive_required_standard, 2) - 1
    trace = run_sequence(p, [_borderline(p)] * hits + [_normal(p)])
    _expect(_first(trace, TransitionType.ENTER) is None,
            f"{hits} borderline snapshots must not ENTER")
    _expect(trace.final_state == UnitState.NONE,
            f"expected final NONE, got {trace.final_state.value}")


def check_stall_detection(p: HysteresisParams) -> None:
    trace = run_sequence(p, _stall_prefix(p))
    stall = _first(trace, TransitionType.STALL)
    _expect(stall is not None, "expected STALL event")
    _expect(stall.event.window == p.stalled_window_snapshots,
            f"expected STALL window {p.stalled_window_snapshots}, got {stall.event.window}")
    _expect(trace.final_state == UnitState.STALLED,
            f"expected final STALLED, got {trace.final_state.value}")


def _check_stall_break(p: HysteresisParams, ratio: float, reason: TransitionReason) -> None:
    trace = _run_stalled(p, [ratio])
    brk = _first(trace, TransitionType.STALL_BREAK)
    _expect(brk is not None, f"expected STALL_BREAK at ratio {ratio}")
    _expect(brk.event.reason == reason,
            f"expected STALL_BREAK({reason.value}), got {brk.event.reason}")
    _expect(trace.final_state == UnitState.ACTIVE,
            f"expected final ACTIVE, got {trace.final_state.value}")
    _expect(trace.final.stall_consec == 0, "stall counter must reset on STALL_BREAK")


def check_stall_break_severe(p: HysteresisParams) -> None:
    ratio = min(p.t_enter_major, p.stalled_min_ratio) - STEP
    _check_stall_break(p, ratio, TransitionReason.SEVERE)


def check_stall_break_borderline(p: HysteresisParams) -> None:
    if p.stalled_min_ratio > p.t_enter_major:
        ratio = (p.t_enter_major + min(p.stalled_min_ratio, p.t_enter_standard)) / 2
    elif p.stalled_max_ratio_below_exit < p.t_enter_standard:
        ratio = (p.stalled_max_ratio_below_exit + p.t_enter_standard) / 2
    else:
        raise CheckNotApplicable("stall band covers the whole borderline zone")
    _check_stall_break(p, ratio, TransitionReason.BORDERLINE)


def check_stall_break_drift(p: HysteresisParams) -> None:
    low = max(p.t_enter_standard, p.stalled_max_ratio_below_exit)
    if low < p.t_exit:
        ratio = (low + p.t_exit) / 2
    elif p.stalled_min_ratio > p.t_enter_standard:
        ratio = (p.t_enter_standard + p.stalled_min_ratio) / 2
    else:
        raise CheckNotApplicable("no ratio between T_enter_standard and T_exit outside the stall band")
    _check_stall_break(p, ratio, TransitionReason.DRIFT)


def check_stalled_exit_with_cooldown(p: HysteresisParams) -> None:
    trace = _run_stalled(p, [_recovered(p), _borderline(p)])
    _expect(_first(trace, TransitionType.EXIT) is not None, "expected EXIT from STALLED")
    if p.cooldown_snapshots_after_exit > 0:
        _expect(trace.final_state == UnitState.CLEARED,
                f"cooldown should keep the unit CLEARED, got {trace.final_state.value}")
    else:
        _expect(trace.final_state == UnitState.CANDIDATE,
                f"without cooldown expected CANDIDATE, got {trace.final_state.value}")


def check_reenter_during_cooldown(p: HysteresisParams) -> None:
    trace = run_sequence(p, [_severe(p), _recovered(p), _severe(p)])
    reenter = _first(trace, TransitionType.REENTER)
    _expect(reenter is not None and reenter.event.reason == TransitionReason.SEVERE,
            "expected REENTER(severe) despite cooldown")
    _expect(trace.final_state == UnitState.ACTIVE,
            f"expected final ACTIVE, got {trace.final_state.value}")


def check_major_threshold_is_borderline(p: HysteresisParams) -> None:
    decision = decide(p, None, p.t_enter_major)
    _expect(not decision.events, "ratio == T_enter_major must not be severe")
    _expect(decision.state.state == UnitState.CANDIDATE,
            f"ratio == T_enter_major should give CANDIDATE, got {decision.state.state.value}")


def check_standard_threshold_is_not_borderline(p: HysteresisParams) -> None:
    fresh = decide(p, None, p.t_enter_standard)
    _expect(fresh.state.state == UnitState.NONE,
            f"ratio == T_enter_standard from NONE should stay NONE, got {fresh.state.state.value}")
    candidate = decide(p, EngineState(state=UnitState.CANDIDATE, consecutive=1), p.t_enter_standard)
    _expect(candidate.state.state == UnitState.NONE,
            "ratio == T_enter_standard should end candidacy, "
            f"got {candidate.state.state.value}")


def check_exit_threshold_exits(p: HysteresisParams) -> None:
    decision = decide(p, EngineState(state=UnitState.ACTIVE), p.t_exit)
    _expect([e.type for e in decision.events] == [TransitionType.EXIT],
            "ratio == T_exit should EXIT")
    _expect(decision.state.cooldown_left == p.cooldown_snapshots_after_exit,
            f"fresh CLEARED should hold cooldown {p.cooldown_snapshots_after_exit}, "
            f"got {decision.state.cooldown_left}")


def check_stall_band_edges(p: HysteresisParams) -> None:
    active = EngineState(state=UnitState.ACTIVE)

    low = decide(p, active, p.stalled_min_ratio).state
    _expect(low.stall_consec == 1,
            f"ratio == stalled_min_ratio is inside the band, got stall_consec={low.stall_consec}")

    high = decide(p, active, p.stalled_max_ratio_below_exit)
    if p.stalled_max_ratio_below_exit >= p.t_exit:
        _expect(high.state.state == UnitState.CLEARED, "band upper edge at T_exit should EXIT")
    else:
        _expect(high.state.stall_consec == 0 and high.state.state == UnitState.ACTIVE,
                "ratio == stalled_max_ratio_below_exit is outside the band")


BoundaryCheck = Callable[[HysteresisParams], None]

BOUNDARY_CHECKS: Final[tuple[tuple[str, str, BoundaryCheck], ...]] = (
    ("BC01", "Severe immediate entry then exit", check_severe_entry_and_exit),
    ("BC02", "Consecutive borderline entry then exit", check_consecutive_entry_and_exit),
    ("BC03", "Borderline false start stays non-active", check_false_start),
    ("BC04", "Stall band residence promotes ACTIVE to STALLED", check_stall_detection),
    ("BC05", "Severe reading breaks a stall", check_stall_break_severe),
    ("BC06", "Borderline reading breaks a stall", check_stall_break_borderline),
    ("BC07", "Drift above the band breaks a stall", check_stall_break_drift),
    ("BC08", "Exit from STALLED with cooldown suppressing candidacy", check_stalled_exit_with_cooldown),
    ("BC09", "Severe reading re-enters during cooldown", check_reenter_during_cooldown),
    ("BC10", "ratio == T_enter_major is borderline", check_major_threshold_is_borderline),
    ("BC11", "ratio == T_enter_standard is not borderline", check_standard_threshold_is_not_borderline),
    ("BC12", "ratio == T_exit exits", check_exit_threshold_exits),
    ("BC13", "Stall band is [min, max)", check_stall_band_edges),
)


def run_boundary_checks(
    params: HysteresisParams,
    checks: Sequence[tuple[str, str, BoundaryCheck]] = BOUNDARY_CHECKS,
) -> BoundaryReport:
    """
    Run the battery and collect a result for every check.

    No check is ever dropped: failures carry their message and checks
    that cannot apply to the parameter set say why.
    """
    results: list[BoundaryCheckResult] = []

    for check_id, description, check in checks:
        try:
            check(params)
        except BoundaryCheckFailure as e:
            logger.warning(f"Boundary check {check_id} FAILED: {e}")
            results.append(BoundaryCheckResult(check_id, description, CheckStatus.FAIL, str(e)))
        except CheckNotApplicable as e:
            logger.info(f"Boundary check {check_id} not applicable: {e}")
            results.append(
                BoundaryCheckResult(check_id, description, CheckStatus.NOT_APPLICABLE, str(e))
            )
        else:
            results.append(BoundaryCheckResult(check_id, description, CheckStatus.PASS))

    report = BoundaryReport(results=tuple(results))
    logger.info(f"Boundary checks: {report.summary()}")
    return report
