"""
stakegov Metrics Module

Prometheus-compatible metrics for monitoring governance activity.
"""

from .collector import (
    Counter,
    Gauge,
    GovernanceMetrics,
    MetricsRegistry,
)

__all__ = [
    "Counter",
    "Gauge",
    "GovernanceMetrics",
    "MetricsRegistry",
]
