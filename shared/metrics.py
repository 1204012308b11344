"""
Shared metrics configuration for 254Carbon Access Layer.

Metrics are declared as (type, name, help, labels) rows. Every service
gets the common rows; services with their own rows register them under
their service name in ``SERVICE_METRICS``.
"""

from prometheus_client import Counter, Histogram, Info, start_http_server, CollectorRegistry, REGISTRY
from typing import Dict, Any, Iterable, Optional, Tuple
import time
import threading
from contextlib import contextmanager

MetricSpec = Tuple[type, str, str, Tuple[str, ...]]

COMMON_METRICS: Tuple[MetricSpec, ...] = (
    (Counter, "http_requests_total", "Total HTTP requests", ("method", "endpoint", "status_code")),
    (Histogram, "http_request_duration_seconds", "HTTP request duration in seconds", ("method", "endpoint")),
    (Counter, "health_check_total", "Total health check requests", ("status",)),
    (Counter, "errors_total", "Total errors", ("error_type", "service")),
    (Counter, "business_events_total", "Total business events", ("event_type", "service")),
)

PRIVILEGES_METRICS: Tuple[MetricSpec, ...] = (
    (Counter, "privilege_passes_total", "Total reconciliation passes", ("direction", "outcome")),
    (Histogram, "privilege_pass_duration_seconds", "Reconciliation pass duration in seconds", ("direction",)),
    (Counter, "privilege_store_mutations_total", "Total store mutations issued by reconciliation passes", ("action",)),
)

SERVICE_METRICS: Dict[str, Tuple[MetricSpec, ...]] = {
    "privileges": PRIVILEGES_METRICS,
}


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()

        info = Info("service_info", "Service information", registry=registry)
        info.info({"service": service_name, "version": "1.0.0"})
        self._metrics["service_info"] = info

        for row in COMMON_METRICS + SERVICE_METRICS.get(service_name, ()):
            self._register(*row)

    def _register(self, metric_type: type, name: str, documentation: str, labels: Tuple[str, ...]):
        self._metrics[name] = metric_type(name, documentation, list(labels), registry=self.registry)

    def start_metrics_server(self, port: int = 9090):
        """Start the Prometheus metrics server."""
        start_http_server(port, registry=self.registry or REGISTRY)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self.increment_counter("http_requests_total", method=method, endpoint=endpoint, status_code=str(status_code))
        self._metrics["http_request_duration_seconds"].labels(method=method, endpoint=endpoint).observe(duration)

    def record_health_check(self, status: str):
        self.increment_counter("health_check_total", status=status)

    def record_error(self, error_type: str, service: Optional[str] = None):
        self.increment_counter("errors_total", error_type=error_type, service=service or self.service_name)

    def record_business_event(self, event_type: str, service: Optional[str] = None):
        self.increment_counter("business_events_total", event_type=event_type, service=service or self.service_name)

    def record_pass(self, direction: str, success: bool, mutations: Iterable[str] = ()):
        """Record the outcome of one reconciliation pass and the mutations it issued."""
        outcome = "success" if success else "failure"
        self.increment_counter("privilege_passes_total", direction=direction, outcome=outcome)
        for action in mutations:
            self.increment_counter("privilege_store_mutations_total", action=action)

    @contextmanager
    def time_operation(self, operation_name: str, **labels):
        """Context manager to time an operation."""
        start_time = time.time()
        try:
            yield
        finally:
            if operation_name in self._metrics:
                self._metrics[operation_name].labels(**labels).observe(time.time() - start_time)

    def increment_counter(self, metric_name: str, amount: float = 1, **labels):
        """Increment a counter metric."""
        if metric_name in self._metrics:
            with self._lock:
                self._metrics[metric_name].labels(**labels).inc(amount)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
