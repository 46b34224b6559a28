"""
imagesign Metrics.

Prometheus metrics for sign and verify operations, mirrored in a simple
in-memory store for tests and debugging.
"""

import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

DURATION_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)


class SigningMetrics:
    """
    Metrics collector for image signing operations.

    Each instance owns its own CollectorRegistry, so several collectors
    (e.g. one per test) never clash on metric names.

    Example:
        >>> metrics = SigningMetrics()
        >>> metrics.record_signature("png", signed=True)
        >>> metrics.record_verification(success=False)
        >>> print(metrics.get_stats())
    """

    def __init__(self, namespace: str = "imagesign", registry: Optional[CollectorRegistry] = None):
        """
        Initialize metrics collector.

        Args:
            namespace: Metric name prefix.
            registry: Optional Prometheus registry (a private one if None).
        """
        self._namespace = namespace
        self._lock = threading.Lock()
        self._registry = registry or CollectorRegistry()

        self._counters: Dict[str, float] = {}
        self._histograms: Dict[str, list] = {}

        self._signatures_total = Counter(
            f"{namespace}_signatures_total",
            "Total number of sign operations",
            ["format", "status"],
            registry=self._registry,
        )
        self._verifications_total = Counter(
            f"{namespace}_verifications_total",
            "Total number of verification attempts",
            ["status"],
            registry=self._registry,
        )
        self._sign_duration = Histogram(
            f"{namespace}_sign_duration_seconds",
            "Sign latency in seconds",
            buckets=DURATION_BUCKETS,
            registry=self._registry,
        )
        self._verification_duration = Histogram(
            f"{namespace}_verification_duration_seconds",
            "Verification latency in seconds",
            buckets=DURATION_BUCKETS,
            registry=self._registry,
        )

    def _increment(self, key: str) -> None:
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + 1

    def _observe(self, key: str, value: float) -> None:
        with self._lock:
            self._histograms.setdefault(key, []).append(value)

    def record_signature(self, image_format: str, signed: bool) -> None:
        """Record a sign operation; ``signed`` is False for pass-through output."""
        status = "signed" if signed else "unsigned"
        self._increment(f"signatures_{status}")
        self._signatures_total.labels(format=image_format, status=status).inc()

    def record_verification(self, success: bool) -> None:
        """Record a verification attempt."""
        status = "success" if success else "failure"
        self._increment(f"verifications_{status}")
        self._verifications_total.labels(status=status).inc()

    @contextmanager
    def sign_timer(self):
        """Context manager for timing sign operations."""
        start = time.perf_counter()
        try:
            yield
        finally:
            duration = time.perf_counter() - start
            self._observe("sign_durations", duration)
            self._sign_duration.observe(duration)

    @contextmanager
    def verification_timer(self):
        """Context manager for timing verifications."""
        start = time.perf_counter()
        try:
            yield
        finally:
            duration = time.perf_counter() - start
            self._observe("verification_durations", duration)
            self._verification_duration.observe(duration)

    def get_stats(self) -> Dict[str, Any]:
        """Get current metrics as a dictionary."""
        with self._lock:
            stats: Dict[str, Any] = dict(self._counters)

            for name, values in self._histograms.items():
                if values:
                    stats[f"{name}_avg"] = sum(values) / len(values)
                    stats[f"{name}_count"] = len(values)

            total = stats.get("verifications_success", 0) + stats.get("verifications_failure", 0)
            if total > 0:
                stats["verification_success_rate"] = stats.get("verifications_success", 0) / total

            return stats

    def get_prometheus_metrics(self) -> bytes:
        """Get metrics in Prometheus text format."""
        return generate_latest(self._registry)


# Global metrics instance
_global_metrics: Optional[SigningMetrics] = None


def get_metrics() -> SigningMetrics:
    """Get or create the global metrics instance."""
    global _global_metrics
    if _global_metrics is None:
        _global_metrics = SigningMetrics()
    return _global_metrics
