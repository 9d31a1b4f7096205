"""Metrics collection for observability.

This module keeps in-process counters for the lifecycle manager:
- Issues evaluated and skipped
- Actions applied, by kind
- Action and signal lookup failures
- Open issues per repository
- Sweep durations

Metrics can be exported in Prometheus text format.
"""

from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from threading import Lock
from typing import Any


LabelKey = tuple[tuple[str, str], ...]


def _label_key(labels: dict[str, str] | None) -> LabelKey:
    return tuple(sorted(labels.items())) if labels else ()


class MetricType(StrEnum):
    """Types of metrics."""

    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"


@dataclass
class MetricValue:
    """A single metric value with metadata."""

    name: str
    type: MetricType
    value: float
    labels: dict[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    help_text: str = ""


class _LabeledMetric:
    """Shared storage for label-keyed scalar metrics."""

    type: MetricType

    def __init__(self, name: str, help_text: str = "") -> None:
        self.name = name
        self.help_text = help_text
        self._values: dict[LabelKey, float] = defaultdict(float)
        self._lock = Lock()

    def get(self, labels: dict[str, str] | None = None) -> float:
        """Get the current value for a label set."""
        with self._lock:
            return self._values.get(_label_key(labels), 0)

    def total(self) -> float:
        """Get the sum over all label sets."""
        with self._lock:
            return sum(self._values.values())

    def get_all(self) -> list[MetricValue]:
        """Get all values with their labels."""
        with self._lock:
            return [
                MetricValue(
                    name=self.name,
                    type=self.type,
                    value=value,
                    labels=dict(label_key),
                    help_text=self.help_text,
                )
                for label_key, value in self._values.items()
            ]


class Counter(_LabeledMetric):
    """A monotonically increasing counter.

    Example:
        counter = Counter("actions_applied", "Total actions applied")
        counter.inc()
        counter.inc(labels={"kind": "add_label"})
    """

    type = MetricType.COUNTER

    def inc(self, value: float = 1, labels: dict[str, str] | None = None) -> None:
        """Increment the counter.

        Args:
            value: Amount to increment (default 1)
            labels: Optional labels for this observation
        """
        if value < 0:
            raise ValueError("Counter can only increase")

        with self._lock:
            self._values[_label_key(labels)] += value


class Gauge(_LabeledMetric):
    """A metric that can go up or down."""

    type = MetricType.GAUGE

    def set(self, value: float, labels: dict[str, str] | None = None) -> None:
        """Set the gauge value."""
        with self._lock:
            self._values[_label_key(labels)] = value

    def inc(self, value: float = 1, labels: dict[str, str] | None = None) -> None:
        """Increment the gauge."""
        with self._lock:
            self._values[_label_key(labels)] += value

    def dec(self, value: float = 1, labels: dict[str, str] | None = None) -> None:
        """Decrement the gauge."""
        with self._lock:
            self._values[_label_key(labels)] -= value


class Histogram:
    """A histogram metric for tracking value distributions.

    Example:
        histogram = Histogram("sweep_duration_seconds", "Sweep duration")
        histogram.observe(12.5)
    """

    # Sweeps take seconds to minutes
    DEFAULT_BUCKETS = (1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0, 600.0, 1800.0, float("inf"))

    def __init__(
        self,
        name: str,
        help_text: str = "",
        buckets: tuple[float, ...] | None = None,
    ) -> None:
        self.name = name
        self.help_text = help_text
        self._buckets = buckets or self.DEFAULT_BUCKETS
        self._observations: dict[LabelKey, list[float]] = defaultdict(list)
        self._lock = Lock()

    def observe(self, value: float, labels: dict[str, str] | None = None) -> None:
        """Record an observation."""
        with self._lock:
            self._observations[_label_key(labels)].append(value)

    def get_stats(self, labels: dict[str, str] | None = None) -> dict[str, float]:
        """Get histogram statistics.

        Returns:
            Dictionary with count, sum, min, max, mean
        """
        with self._lock:
            values = list(self._observations.get(_label_key(labels), []))

        if not values:
            return {"count": 0, "sum": 0, "min": 0, "max": 0, "mean": 0}

        return {
            "count": len(values),
            "sum": sum(values),
            "min": min(values),
            "max": max(values),
            "mean": sum(values) / len(values),
        }

    def get_buckets(self, labels: dict[str, str] | None = None) -> dict[float, int]:
        """Get the count of observations falling into each bucket."""
        with self._lock:
            values = list(self._observations.get(_label_key(labels), []))

        bucket_counts: dict[float, int] = dict.fromkeys(self._buckets, 0)
        for value in values:
            for bucket in self._buckets:
                if value <= bucket:
                    bucket_counts[bucket] += 1
                    break

        return bucket_counts


class MetricsRegistry:
    """Registry for all lifecycle manager metrics.

    Example:
        registry = MetricsRegistry.get_instance()
        registry.issues_evaluated.inc()
        metrics = registry.get_all_metrics()
    """

    _instance: MetricsRegistry | None = None
    _lock = Lock()

    def __init__(self) -> None:
        self.issues_evaluated = Counter(
            "lifecycle_issues_evaluated_total",
            "Total issues and pull requests evaluated",
        )
        self.issues_skipped = Counter(
            "lifecycle_issues_skipped_total",
            "Total evaluations that stopped before any policy applied",
        )
        self.actions_applied = Counter(
            "lifecycle_actions_applied_total",
            "Total lifecycle actions applied to GitHub",
        )
        self.action_failures = Counter(
            "lifecycle_action_failures_total",
            "Total lifecycle actions that failed to apply",
        )
        self.signal_failures = Counter(
            "lifecycle_signal_failures_total",
            "Total activity or pipeline lookups that failed",
        )
        self.repo_failures = Counter(
            "lifecycle_repo_failures_total",
            "Total repositories whose issues could not be enumerated",
        )
        self.open_issues = Gauge(
            "lifecycle_open_issues",
            "Open issues and pull requests seen by the last sweep",
        )
        self.sweep_duration = Histogram(
            "lifecycle_sweep_duration_seconds",
            "Full sweep duration in seconds",
        )

        self._start_time = time.time()

    @classmethod
    def get_instance(cls) -> MetricsRegistry:
        """Get the singleton metrics registry instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def get_uptime_seconds(self) -> float:
        """Get process uptime in seconds."""
        return time.time() - self._start_time

    def get_all_metrics(self) -> dict[str, Any]:
        """Get all metrics as a dictionary."""
        return {
            "uptime_seconds": self.get_uptime_seconds(),
            "issues": {
                "evaluated": self.issues_evaluated.get(),
                "skipped": self.issues_skipped.get(),
                "open": self.open_issues.total(),
            },
            "actions": {
                "applied": self.actions_applied.total(),
                "failed": self.action_failures.total(),
            },
            "failures": {
                "signals": self.signal_failures.get(),
                "repos": self.repo_failures.total(),
            },
            "sweeps": self.sweep_duration.get_stats(),
        }

    def to_prometheus_format(self) -> str:
        """Export metrics in Prometheus text format."""
        lines: list[str] = []

        scalars: list[_LabeledMetric] = [
            self.issues_evaluated,
            self.issues_skipped,
            self.actions_applied,
            self.action_failures,
            self.signal_failures,
            self.repo_failures,
            self.open_issues,
        ]
        for metric in scalars:
            if metric.help_text:
                lines.append(f"# HELP {metric.name} {metric.help_text}")
            lines.append(f"# TYPE {metric.name} {metric.type.value}")
            for value in metric.get_all():
                if value.labels:
                    label_str = ",".join(f'{k}="{v}"' for k, v in value.labels.items())
                    lines.append(f"{metric.name}{{{label_str}}} {value.value}")
                else:
                    lines.append(f"{metric.name} {value.value}")

        stats = self.sweep_duration.get_stats()
        lines.append(f"# HELP {self.sweep_duration.name} {self.sweep_duration.help_text}")
        lines.append(f"# TYPE {self.sweep_duration.name} summary")
        lines.append(f"{self.sweep_duration.name}_count {stats['count']}")
        lines.append(f"{self.sweep_duration.name}_sum {stats['sum']}")

        return "\n".join(lines)


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry."""
    return MetricsRegistry.get_instance()


class Timer:
    """Context manager for timing operations.

    Example:
        with Timer(metrics.sweep_duration):
            await manager.sweep_all()
    """

    def __init__(
        self,
        histogram: Histogram,
        labels: dict[str, str] | None = None,
    ) -> None:
        self._histogram = histogram
        self._labels = labels
        self._start: float | None = None
        self.elapsed: float | None = None

    def __enter__(self) -> Timer:
        """Start timing."""
        self._start = time.perf_counter()
        return self

    def __exit__(self, *args: Any) -> None:
        """Stop timing and record."""
        if self._start is not None:
            self.elapsed = time.perf_counter() - self._start
            self._histogram.observe(self.elapsed, labels=self._labels)
