"""
Metrics aggregation for Equity Hysteresis.
"""

from .aggregator import MetricsAggregator

__all__ = ["MetricsAggregator"]
