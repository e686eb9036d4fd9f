"""
Prometheus metrics module for Coursehub chat.

Service timings come from the @measure_operation decorator; the real-time
layer reports live connections, emitted frames and relay traffic.
"""

from threading import Lock
from time import monotonic
from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "coursehub_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "coursehub_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "coursehub_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

ws_connections = Gauge(
    "coursehub_ws_connections",
    "Live WebSocket connections per namespace",
    ["namespace"],
    registry=REGISTRY,
)

ws_events_total = Counter(
    "coursehub_ws_events_total",
    "Client events handled, by outcome",
    ["namespace", "event", "status"],
    registry=REGISTRY,
)

fanout_pushes_total = Counter(
    "coursehub_fanout_pushes_total",
    "Frames pushed to live connections by the fan-out notifier",
    ["namespace", "event"],
    registry=REGISTRY,
)

relay_messages_total = Counter(
    "coursehub_relay_messages_total",
    "Cross-process relay envelopes",
    ["direction"],  # published | received
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    _cache_lock: Lock = Lock()
    _cache_payload: Optional[bytes] = None
    _cache_ts: Optional[float] = None
    _cache_ttl_seconds: float = 1.0

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'MessageService')
            operation: Operation/method name (e.g., 'send_message')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()

        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def set_ws_connections(namespace: str, count: int) -> None:
        ws_connections.labels(namespace=namespace).set(count)
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_ws_event(namespace: str, event: str, status: str) -> None:
        ws_events_total.labels(namespace=namespace, event=event, status=status).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_fanout_push(namespace: str, event: str, count: int = 1) -> None:
        if count <= 0:
            return
        fanout_pushes_total.labels(namespace=namespace, event=event).inc(count)
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_relay(direction: str) -> None:
        relay_messages_total.labels(direction=direction).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def get_metrics() -> bytes:
        """
        Generate Prometheus metrics in exposition format.

        Returns:
            Metrics data in Prometheus text format
        """
        now = monotonic()
        payload = PrometheusMetrics._cache_payload
        ts = PrometheusMetrics._cache_ts

        if payload is not None and ts is not None and (now - ts) <= PrometheusMetrics._cache_ttl_seconds:
            return payload

        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_payload = cast(bytes, generate_latest(REGISTRY))
            PrometheusMetrics._cache_ts = monotonic()
            return PrometheusMetrics._cache_payload

    @staticmethod
    def get_content_type() -> str:
        """Get the content type for Prometheus metrics."""
        return cast(str, CONTENT_TYPE_LATEST)

    @staticmethod
    def _invalidate_cache() -> None:
        """Invalidate cached metrics so next scrape refreshes."""

        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_ts = None
            PrometheusMetrics._cache_payload = None


# Singleton instance
prometheus_metrics = PrometheusMetrics()
