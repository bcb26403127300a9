"""
Transition logging for Equity Hysteresis.
"""

from .log_reader import TransitionLogReader
from .transition_logger import TransitionLogger

__all__ = ["TransitionLogReader", "TransitionLogger"]
