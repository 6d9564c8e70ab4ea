"""
stakegov Prometheus Metrics Collector

Prometheus text exposition format (version 0.0.4) for governance activity.

Metric types:
    - Counter: monotonically increasing (e.g. votes cast)
    - Gauge: can go up and down (e.g. proposal count)
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


# ---------------------------------------------------------------------------
# Metric primitives
# ---------------------------------------------------------------------------

@dataclass
class Counter:
    """Monotonically increasing counter, optionally split by one label."""
    name: str
    help: str = ""
    label: Optional[str] = None
    _value: float = 0.0
    _labelled: Dict[str, float] = field(default_factory=dict, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def inc(self, amount: float = 1.0, label_value: Optional[str] = None) -> None:
        if amount < 0:
            raise ValueError("Counter can only be incremented")
        with self._lock:
            self._value += amount
            if self.label and label_value is not None:
                self._labelled[label_value] = self._labelled.get(label_value, 0.0) + amount

    @property
    def value(self) -> float:
        return self._value

    def labelled_value(self, label_value: str) -> float:
        return self._labelled.get(label_value, 0.0)

    def expose(self) -> str:
        lines = []
        if self.help:
            lines.append(f"# HELP {self.name} {self.help}")
        lines.append(f"# TYPE {self.name} counter")
        if self.label and self._labelled:
            for lv in sorted(self._labelled):
                lines.append(f'{self.name}{{{self.label}="{lv}"}} {self._labelled[lv]}')
        else:
            lines.append(f"{self.name} {self._value}")
        return "\n".join(lines)


@dataclass
class Gauge:
    """Gauge that can go up and down."""
    name: str
    help: str = ""
    _value: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def set(self, value: float) -> None:
        with self._lock:
            self._value = value

    def inc(self, amount: float = 1.0) -> None:
        with self._lock:
            self._value += amount

    @property
    def value(self) -> float:
        return self._value

    def expose(self) -> str:
        lines = []
        if self.help:
            lines.append(f"# HELP {self.name} {self.help}")
        lines.append(f"# TYPE {self.name} gauge")
        lines.append(f"{self.name} {self._value}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class MetricsRegistry:
    """
    Central registry holding all metrics.

    Provides ``expose()`` to render all metrics in Prometheus text format.
    """

    def __init__(self):
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def register(self, metric: Any) -> None:
        """Register a metric (Counter or Gauge)."""
        with self._lock:
            if metric.name in self._metrics:
                raise ValueError(f"Metric already registered: {metric.name}")
            self._metrics[metric.name] = metric

    def get(self, name: str) -> Optional[Any]:
        return self._metrics.get(name)

    @property
    def metric_count(self) -> int:
        return len(self._metrics)

    def expose(self) -> str:
        parts: List[str] = []
        with self._lock:
            for metric in self._metrics.values():
                parts.append(metric.expose())
        return "\n\n".join(parts) + "\n"


# ---------------------------------------------------------------------------
# Governance collector
# ---------------------------------------------------------------------------

class GovernanceMetrics:
    """
    Pre-configured metrics for a governance engine.

    Pass an instance to ``GovernanceEngine`` and call ``expose()`` to get
    the Prometheus endpoint body.
    """

    def __init__(self):
        self.registry = MetricsRegistry()

        self.proposals_created = Counter(
            "stakegov_proposals_created_total",
            "Total proposals created",
        )
        self.votes_cast = Counter(
            "stakegov_votes_cast_total",
            "Total votes cast by direction",
            label="direction",
        )
        self.vote_weight = Counter(
            "stakegov_vote_weight_total",
            "Total voting power cast by direction",
            label="direction",
        )
        self.proposals_executed = Counter(
            "stakegov_proposals_executed_total",
            "Total proposals executed",
        )
        self.proposals_cancelled = Counter(
            "stakegov_proposals_cancelled_total",
            "Total proposals cancelled",
        )
        self.operation_errors = Counter(
            "stakegov_operation_errors_total",
            "Governance operations rejected, by error kind",
            label="kind",
        )
        self.proposal_count = Gauge(
            "stakegov_proposal_count",
            "Number of proposals ever created",
        )

        for attr_name in sorted(vars(self)):
            attr = getattr(self, attr_name)
            if isinstance(attr, (Counter, Gauge)):
                self.registry.register(attr)

    def expose(self) -> str:
        return self.registry.expose()
