"""
Shared metrics configuration for the restaurant access core.
"""

from prometheus_client import Counter, Histogram, Info, CollectorRegistry
from typing import Dict, Any, Optional
import time
from contextlib import contextmanager


class MetricsCollector:
    """Centralized metrics collector for the access core.

    Each collector owns its registry, so several cores (one per terminal,
    or one per test) can coexist in a process without name collisions.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up metrics for permission resolution and session gates."""

        # Service info
        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # Error metrics
        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        # Permission resolution
        self._metrics["permission_resolutions_total"] = Counter(
            "permission_resolutions_total",
            "Total permission resolutions",
            ["role"],
            registry=self.registry
        )

        self._metrics["permission_resolution_duration_seconds"] = Histogram(
            "permission_resolution_duration_seconds",
            "Permission resolution duration in seconds",
            registry=self.registry
        )

        self._metrics["resolution_fallbacks_total"] = Counter(
            "resolution_fallbacks_total",
            "Resolver fallbacks to a default policy",
            ["source", "policy"],
            registry=self.registry
        )

        self._metrics["plan_cache_requests_total"] = Counter(
            "plan_cache_requests_total",
            "Plan entitlement cache lookups",
            ["result"],
            registry=self.registry
        )

        # Session lock
        self._metrics["pin_attempts_total"] = Counter(
            "pin_attempts_total",
            "Total PIN unlock attempts",
            ["result"],
            registry=self.registry
        )

        # Attendance identity
        self._metrics["network_probes_total"] = Counter(
            "network_probes_total",
            "Total network identity probes",
            ["result"],
            registry=self.registry
        )

        self._metrics["attendance_decisions_total"] = Counter(
            "attendance_decisions_total",
            "Total attendance identity decisions",
            ["result"],
            registry=self.registry
        )

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    @contextmanager
    def time_operation(self, operation_name: str, **labels):
        """Context manager to time an operation."""
        start_time = time.time()
        try:
            yield
        finally:
            duration = time.time() - start_time
            if operation_name in self._metrics:
                metric = self._metrics[operation_name]
                (metric.labels(**labels) if labels else metric).observe(duration)

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).inc()

    def get_sample_value(self, name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        """Read a sample back from this collector's registry."""
        return self.registry.get_sample_value(name, labels or {})


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)

