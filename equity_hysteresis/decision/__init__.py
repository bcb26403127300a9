"""
Decision Engine for Equity Hysteresis.

Converts one ratio reading and a unit's previous state into a new state.
"""

from .engine import INITIAL_STATE, DecisionEngine, decide

__all__ = ["INITIAL_STATE", "DecisionEngine", "decide"]
