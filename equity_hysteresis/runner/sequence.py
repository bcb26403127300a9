"""
Sequence Runner - Folds snapshot series through the decision engine.

Sorts each unit's snapshots by timestamp, threads the engine state from
one snapshot to the next, and builds the under-served roster. Units are
independent, so folding them in parallel needs no locking.
"""

from __future__ import annotations

import logging

from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from ..decision import decide
from ..types import (
    EngineState,
    HysteresisParams,
    Snapshot,
    SequenceTrace,
    TransitionRecord,
    UnderServedRoster,
    UnitClassification,
    UnitState,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FeedResult:
    """
    Result of applying a multi-unit snapshot feed.

    Attributes:
        states: Classification of every known unit after the feed
        records: Transitions produced by the feed, in processing order
        processed: Number of snapshots applied
    """

    states: dict[str, UnitClassification]
    records: tuple[TransitionRecord, ...]
    processed: int


def sort_snapshots(snapshots: Iterable[Snapshot]) -> list[Snapshot]:
    """
    Sort snapshots ascending by timestamp.

    The sort is stable: snapshots with equal timestamps keep their
    insertion order, which keeps results deterministic.
    """
    return sorted(snapshots, key=lambda s: s.ts)


def run_sequence(
    params: HysteresisParams,
    ratios: Iterable[float],
    initial_state: EngineState | None = None,
) -> SequenceTrace:
    """
    Fold a bare ratio sequence through the engine.

    Args:
        params: Hysteresis parameter set
        ratios: Ratios in time order
        initial_state: State to start from (None for a fresh unit)

    Returns:
        SequenceTrace with per-tick states and indexed transitions
    """
    state = initial_state
    states: list[UnitState] = []
    records: list[TransitionRecord] = []

    for idx, ratio in enumerate(ratios):
        decision = decide(params, state, ratio)
        state = decision.state
        states.append(state.state)
        records.extend(
            TransitionRecord(index=idx, ratio=float(ratio), event=event)
            for event in decision.events
        )

    return SequenceTrace(
        final=state or EngineState(),
        states=tuple(states),
        records=tuple(records),
    )


def classify_unit(
    params: HysteresisParams,
    unit: str,
    snapshots: Iterable[Snapshot],
    retain_events: bool = False,
    initial: UnitClassification | None = None,
) -> UnitClassification:
    """
    Classify one unit from its snapshots.

    Args:
        params: Hysteresis parameter set
        unit: Unit identifier
        snapshots: The unit's snapshots, in any order
        retain_events: Keep the transition records on the result
        initial: Carried-over classification to continue from

    Returns:
        UnitClassification with the final state and last ratio/timestamp

    Raises:
        ValueError: If a snapshot belongs to a different unit
    """
    ordered = sort_snapshots(snapshots)
    for snap in ordered:
        if snap.unit != unit:
            raise ValueError(f"snapshot for unit {snap.unit!r} passed to classify_unit({unit!r})")

    state = initial.engine_state if initial else None
    last_ratio = initial.last_ratio if initial else None
    last_ts = initial.last_ts if initial else None
    records: list[TransitionRecord] = []

    for idx, snap in enumerate(ordered):
        decision = decide(params, state, snap.ratio)
        state = decision.state
        last_ratio = snap.ratio
        last_ts = snap.ts
        if retain_events:
            records.extend(
                TransitionRecord(index=idx, ratio=snap.ratio, event=event, unit=unit, ts=snap.ts)
                for event in decision.events
            )

    return UnitClassification(
        unit=unit,
        engine_state=state or EngineState(),
        last_ratio=last_ratio,
        last_ts=last_ts,
        records=tuple(records),
    )


def group_by_unit(snapshots: Iterable[Snapshot]) -> dict[str, list[Snapshot]]:
    """Group snapshots by unit, keeping first-appearance order of units."""
    by_unit: dict[str, list[Snapshot]] = {}
    for snap in snapshots:
        by_unit.setdefault(snap.unit, []).append(snap)
    return by_unit


def classify_units(
    params: HysteresisParams,
    snapshots: Iterable[Snapshot],
    retain_events: bool = False,
    max_workers: int | None = None,
) -> list[UnitClassification]:
    """
    Classify every unit in a snapshot feed.

    Args:
        params: Hysteresis parameter set
        snapshots: Snapshots for any number of units
        retain_events: Keep transition records on each result
        max_workers: Fold units on a thread pool when greater than 1

    Returns:
        One classification per unit, in first-appearance order
    """
    by_unit = group_by_unit(snapshots)

    if max_workers is not None and max_workers > 1 and len(by_unit) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = [
                pool.submit(classify_unit, params, unit, snaps, retain_events)
                for unit, snaps in by_unit.items()
            ]
            results = [f.result() for f in futures]
    else:
        results = [
            classify_unit(params, unit, snaps, retain_events)
            for unit, snaps in by_unit.items()
        ]

    logger.debug(f"Classified {len(results)} units")
    return results


def build_roster(
    params: HysteresisParams,
    snapshots: Iterable[Snapshot],
    max_workers: int | None = None,
) -> UnderServedRoster:
    """
    Build the under-served roster from a snapshot feed.

    Returns:
        Roster of units whose final state is ACTIVE or STALLED
    """
    classifications = classify_units(params, snapshots, max_workers=max_workers)
    return roster_from_classifications(classifications)


def roster_from_classifications(
    classifications: Iterable[UnitClassification],
) -> UnderServedRoster:
    under_served = tuple(c for c in classifications if c.is_under_served)
    logger.info(f"Under-served roster: total={len(under_served)}")
    return UnderServedRoster(units=under_served)


def apply_feed(
    params: HysteresisParams,
    states: Mapping[str, UnitClassification],
    snapshots: Sequence[Snapshot],
) -> FeedResult:
    """
    Apply a snapshot feed on top of carried-over unit states.

    The input mapping is not modified. Snapshots are applied in timestamp
    order (stable for ties); each produced transition is tagged with its
    unit, timestamp and ratio. Record indexes count snapshots within the
    feed.

    Args:
        params: Hysteresis parameter set
        states: Classification per unit from earlier feeds
        snapshots: New snapshots for any number of units

    Returns:
        FeedResult with the updated state map and the new transitions
    """
    updated = dict(states)
    records: list[TransitionRecord] = []
    ordered = sort_snapshots(snapshots)

    for idx, snap in enumerate(ordered):
        prev = updated.get(snap.unit)
        decision = decide(params, prev.engine_state if prev else None, snap.ratio)
        updated[snap.unit] = UnitClassification(
            unit=snap.unit,
            engine_state=decision.state,
            last_ratio=snap.ratio,
            last_ts=snap.ts,
        )
        records.extend(
            TransitionRecord(index=idx, ratio=snap.ratio, event=event, unit=snap.unit, ts=snap.ts)
            for event in decision.events
        )

    logger.info(
        f"Processed {len(ordered)} snapshots; units={len(updated)}; "
        f"transitions={len(records)}"
    )
    return FeedResult(states=updated, records=tuple(records), processed=len(ordered))
