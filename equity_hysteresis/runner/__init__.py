"""
Sequence Runner for Equity Hysteresis.

Folds per-unit snapshot series through the decision engine.
"""

from .sequence import (
    FeedResult,
    apply_feed,
    build_roster,
    classify_unit,
    classify_units,
    group_by_unit,
    roster_from_classifications,
    run_sequence,
    sort_snapshots,
)

__all__ = [
    "FeedResult",
    "apply_feed",
    "build_roster",
    "classify_unit",
    "classify_units",
    "group_by_unit",
    "roster_from_classifications",
    "run_sequence",
    "sort_snapshots",
]
