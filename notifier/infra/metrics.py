# notifier/infra/metrics.py
from __future__ import annotations
import time
from collections import defaultdict, deque
from enum import Enum
from threading import Lock
from typing import Dict
from dataclasses import dataclass, field
from notifier.infra.logging_config import get_logger

logger = get_logger(__name__)

HISTOGRAM_MAX_SAMPLES = 1024


@dataclass
class Counter:
    """Simple counter metric"""
    value: int = 0

    def inc(self, amount: int = 1) -> None:
        self.value += amount


@dataclass
class Histogram:
    """Track distribution of the most recent values (e.g., send latency)"""
    values: deque = field(default_factory=lambda: deque(maxlen=HISTOGRAM_MAX_SAMPLES))
    total: int = 0

    def observe(self, value: float) -> None:
        self.values.append(value)
        self.total += 1

    def get_stats(self) -> dict:
        if not self.values:
            return {"count": 0, "total": self.total, "min": 0, "max": 0, "avg": 0, "p95": 0, "p99": 0}

        sorted_values = sorted(self.values)
        count = len(sorted_values)

        def percentile(p: float) -> float:
            idx = int(count * p)
            return sorted_values[min(idx, count - 1)]

        return {
            "count": count,
            "total": self.total,
            "min": sorted_values[0],
            "max": sorted_values[-1],
            "avg": sum(sorted_values) / count,
            "p95": percentile(0.95),
            "p99": percentile(0.99),
        }


class MetricsCollector:
    """
    Lightweight metrics collection.
    For production, consider Prometheus client or similar.
    """

    def __init__(self):
        self._counters: Dict[str, Counter] = defaultdict(Counter)
        self._histograms: Dict[str, Histogram] = defaultdict(Histogram)
        self._lock = Lock()

    def inc_counter(self, name: str, amount: int = 1, labels: dict | None = None) -> None:
        """Increment a counter metric"""
        key = self._make_key(name, labels)
        with self._lock:
            self._counters[key].inc(amount)

    def observe_histogram(self, name: str, value: float, labels: dict | None = None) -> None:
        """Add a value to histogram"""
        key = self._make_key(name, labels)
        with self._lock:
            self._histograms[key].observe(value)

    def get_counter(self, name: str, labels: dict | None = None) -> int:
        key = self._make_key(name, labels)
        with self._lock:
            counter = self._counters.get(key)
            return counter.value if counter else 0

    def get_metrics(self) -> dict:
        """Get all current metrics"""
        with self._lock:
            counters = {k: v.value for k, v in self._counters.items()}
            histograms = {k: v.get_stats() for k, v in self._histograms.items()}

        return {
            "counters": counters,
            "histograms": histograms,
        }

    def reset(self) -> None:
        """Reset all metrics"""
        with self._lock:
            self._counters.clear()
            self._histograms.clear()
        logger.info("Metrics reset")

    @staticmethod
    def _make_key(name: str, labels: dict | None) -> str:
        """Create a metric key from name and labels"""
        if not labels:
            return name
        label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"


class AtomicCounter:
    """Process-wide counter shared by many workers (e.g. simulated notifications)"""

    def __init__(self, value: int = 0):
        self._value = value
        self._lock = Lock()

    def inc(self, amount: int = 1) -> int:
        """Add ``amount`` and return the previous value"""
        with self._lock:
            previous = self._value
            self._value += amount
            return previous

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def reset(self) -> None:
        with self._lock:
            self._value = 0


class StatisticEvent(str, Enum):
    NOTIFY_CONTEXT_SENT = "notify_context_sent"


class NotificationStatistics:
    """Statistics sink bucketing notification events by mime type"""

    def __init__(self, collector: MetricsCollector | None = None):
        self._collector = collector or get_metrics_collector()

    def increment(self, event_kind: StatisticEvent | str, mime_type: str) -> None:
        name = event_kind.value if isinstance(event_kind, StatisticEvent) else event_kind
        self._collector.inc_counter(name, 1, {"mime_type": mime_type or "unknown"})

    def count(self, event_kind: StatisticEvent | str, mime_type: str) -> int:
        name = event_kind.value if isinstance(event_kind, StatisticEvent) else event_kind
        return self._collector.get_counter(name, {"mime_type": mime_type or "unknown"})


# Global metrics collector
_metrics = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector"""
    return _metrics


# Convenience functions
def inc_counter(name: str, amount: int = 1, **labels) -> None:
    """Increment a counter metric"""
    _metrics.inc_counter(name, amount, labels or None)


def observe_histogram(name: str, value: float, **labels) -> None:
    """Record a histogram value"""
    _metrics.observe_histogram(name, value, labels or None)


class Timer:
    """Context manager to time operations"""

    def __init__(self, metric_name: str, collector: MetricsCollector | None = None, **labels):
        self.metric_name = metric_name
        self.collector = collector or _metrics
        self.labels = labels
        self.start_time: float | None = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is not None:
            duration = time.time() - self.start_time
            self.collector.observe_histogram(self.metric_name, duration, self.labels or None)
