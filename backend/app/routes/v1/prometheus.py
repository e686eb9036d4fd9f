# backend/app/routes/v1/prometheus.py
"""
Prometheus metrics endpoint.

PUBLIC endpoint (no authentication) following standard Prometheus
practice; exposes the @measure_operation timings and real-time counters.
"""

from fastapi import APIRouter, Response

from ...monitoring.prometheus_metrics import prometheus_metrics

router = APIRouter()


@router.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
    )
