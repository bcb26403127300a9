"""
Boundary checks for Equity Hysteresis.

Exercises exact thresholds, cooldown and stall edge cases.
"""

from .checks import (
    BOUNDARY_CHECKS,
    BoundaryCheckFailure,
    BoundaryCheckResult,
    BoundaryReport,
    CheckNotApplicable,
    CheckStatus,
    run_boundary_checks,
)

__all__ = [
    "BOUNDARY_CHECKS",
    "BoundaryCheckFailure",
    "BoundaryCheckResult",
    "BoundaryReport",
    "CheckNotApplicable",
    "CheckStatus",
    "run_boundary_checks",
]
