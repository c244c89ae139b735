"""
Metrics collection for chargeflow with Prometheus integration.
"""
import statistics
import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

from chargeflow.utils.logger import setup_logger


@dataclass
class MetricSummary:
    """Statistical summary of recorded values."""
    count: int
    min_value: float
    max_value: float
    mean: float
    median: float


class MetricsCollector:
    """Collects frame, validation and schema lookup metrics."""

    def __init__(self, config: Dict[str, Any] = None):
        """Initialize the metrics collector.

        Args:
            config: Metrics configuration dictionary
        """
        self.config = config or {}
        self.logger = setup_logger(__name__)
        self.enabled = self.config.get('enabled', True)
        self.max_history_size = self.config.get('max_history_size', 10000)

        self._counters: Dict[str, int] = defaultdict(int)
        self._timers: Dict[str, List[float]] = defaultdict(list)
        self._lock = threading.RLock()

        self.prometheus_registry = CollectorRegistry()
        self.prometheus_metrics = {
            'frames_total': Counter(
                'chargeflow_frames_total',
                'Total number of captured frames decoded',
                ['outcome'],
                registry=self.prometheus_registry
            ),
            'messages_validated_total': Counter(
                'chargeflow_messages_validated_total',
                'Total number of messages validated',
                ['kind', 'outcome'],
                registry=self.prometheus_registry
            ),
            'schema_misses_total': Counter(
                'chargeflow_schema_misses_total',
                'Total number of messages without a registered schema',
                ['registry'],
                registry=self.prometheus_registry
            ),
            'validation_duration': Histogram(
                'chargeflow_validation_duration_seconds',
                'Time spent decoding and validating a batch of frames',
                registry=self.prometheus_registry
            ),
        }

    def increment_counter(self, name: str, value: int = 1, labels: Dict[str, str] = None) -> None:
        """Increment a counter metric.

        Args:
            name: Metric name
            value: Value to increment by
            labels: Optional labels for the metric
        """
        if not self.enabled:
            return

        with self._lock:
            self._counters[name] += value

        metric = self.prometheus_metrics.get(name)
        if metric is not None:
            if labels:
                metric.labels(**labels).inc(value)
            else:
                metric.inc(value)

    def record_timer(self, name: str, duration: float, labels: Dict[str, str] = None) -> None:
        """Record a timing measurement.

        Args:
            name: Timer name
            duration: Duration in seconds
            labels: Optional labels for the metric
        """
        if not self.enabled:
            return

        with self._lock:
            history = self._timers[name]
            history.append(duration)
            if len(history) > self.max_history_size:
                history.pop(0)

        metric = self.prometheus_metrics.get(f"{name}_duration")
        if metric is not None:
            if labels:
                metric.labels(**labels).observe(duration)
            else:
                metric.observe(duration)

    @contextmanager
    def timer(self, name: str, labels: Dict[str, str] = None):
        """Context manager for timing operations.

        Args:
            name: Timer name
            labels: Optional labels for the metric

        Usage:
            with metrics.timer('validation'):
                service.parse_and_validate(version, lines)
        """
        start_time = time.perf_counter()
        try:
            yield
        finally:
            self.record_timer(name, time.perf_counter() - start_time, labels)

    def get_counter(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def get_timer_summary(self, name: str) -> Optional[MetricSummary]:
        """Get statistical summary of timer values.

        Args:
            name: Timer name

        Returns:
            MetricSummary or None if nothing was recorded
        """
        with self._lock:
            values = list(self._timers.get(name, []))

        if not values:
            return None

        return MetricSummary(
            count=len(values),
            min_value=min(values),
            max_value=max(values),
            mean=statistics.mean(values),
            median=statistics.median(values),
        )

    def get_all_metrics(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'counters': dict(self._counters),
                'timers': {name: list(values) for name, values in self._timers.items()}
            }

    def reset_metrics(self) -> None:
        """Reset the in-memory counters and timers.

        Prometheus counters are monotonic and keep their values.
        """
        with self._lock:
            self._counters.clear()
            self._timers.clear()

        self.logger.debug("In-memory metrics reset")

    def export_prometheus_metrics(self) -> str:
        """Export metrics in the Prometheus text exposition format.

        Returns:
            Prometheus formatted metrics string
        """
        return generate_latest(self.prometheus_registry).decode('utf-8')


_global_metrics: Optional[MetricsCollector] = None


def get_metrics_collector(config: Dict[str, Any] = None) -> MetricsCollector:
    """Get the global metrics collector instance.

    Args:
        config: Optional configuration for first-time initialization

    Returns:
        MetricsCollector instance
    """
    global _global_metrics

    if _global_metrics is None:
        _global_metrics = MetricsCollector(config)

    return _global_metrics


def reset_global_metrics() -> None:
    """Drop the global metrics collector so the next access builds a fresh one."""
    global _global_metrics
    _global_metrics = None
