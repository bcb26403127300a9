"""
Runtime Harness - Runs one long sequence and reports time in each state.

The sequence is either supplied by the caller or produced by an injectable
generator. The default generator draws ratios biased towards the
borderline zone so that transitions get exercised.
"""

from __future__ import annotations

import logging

from collections.abc import Callable, Sequence

import numpy as np

from ..runner import run_sequence
from ..types import HysteresisParams, RuntimeReport, TransitionType, UnitState

logger = logging.getLogger(__name__)

SequenceFactory = Callable[[], Sequence[float]]

DEFAULT_SEQUENCE_LENGTH = 40


def uniform_sequence_factory(
    length: int = DEFAULT_SEQUENCE_LENGTH,
    low: float = 0.45,
    high: float = 0.75,
    seed: int | None = None,
) -> SequenceFactory:
    """
    Build a generator of uniformly distributed ratio sequences.

    Ratios are rounded to two decimals. With a seed, every call of the
    returned factory yields the same sequence.

    Args:
        length: Snapshots per sequence
        low: Lowest ratio (inclusive)
        high: Highest ratio (exclusive)
        seed: Seed for numpy's default_rng
    """
    if length < 1:
        raise ValueError(f"length must be at least 1, got {length}")
    if low >= high:
        raise ValueError(f"low ({low}) must be below high ({high})")

    def factory() -> list[float]:
        rng = np.random.default_rng(seed)
        return np.round(rng.uniform(low, high, size=length), 2).tolist()

    return factory


class RuntimeHarness:
    """
    Executes a single sequence and reports state durations.

    Usage:
        >>> harness = RuntimeHarness(params, uniform_sequence_factory(seed=7))
        >>> report = harness.run()
        >>> print(report.state_distribution)
    """

    def __init__(
        self,
        params: HysteresisParams,
        sequence_factory: SequenceFactory | None = None,
    ) -> None:
        self.params = params
        self.sequence_factory = sequence_factory or uniform_sequence_factory()

    def run(self, sequence: Sequence[float] | None = None) -> RuntimeReport:
        """
        Run a sequence through the engine.

        Args:
            sequence: Ratios to run; generated when omitted

        Returns:
            RuntimeReport with transition counts and time in each state
        """
        ratios = tuple(float(r) for r in (sequence if sequence is not None else self.sequence_factory()))
        if not ratios:
            raise ValueError("runtime harness needs at least one snapshot")

        trace = run_sequence(self.params, ratios)

        order = list(UnitState)
        counts = np.zeros(len(order), dtype=np.int64)
        for state in trace.states:
            counts[order.index(state)] += 1
        fractions = np.round(counts / len(ratios), 3)

        report = RuntimeReport(
            sequence=ratios,
            final_state=trace.final_state,
            enters=trace.count(TransitionType.ENTER),
            reenters=trace.count(TransitionType.REENTER),
            exits=trace.count(TransitionType.EXIT),
            transitions=len(trace.records),
            state_durations={s.value: int(c) for s, c in zip(order, counts)},
            state_distribution={s.value: float(f) for s, f in zip(order, fractions)},
            params_version=self.params.version,
        )

        logger.info(
            f"Runtime run: final={report.final_state.value} enters={report.enters} "
            f"reenters={report.reenters} exits={report.exits}"
        )
        return report
