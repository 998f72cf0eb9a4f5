"""
Metrics sink: Prometheus counters over trace events plus a pull endpoint.
"""

from hypertrace.metrics.adapter import (
    BASE_LABELS,
    METRIC_NAME,
    MetricsAdapter,
    sanitize_label_name,
)
from hypertrace.metrics.server import MetricsServer, create_metrics_app

__all__ = [
    "BASE_LABELS",
    "METRIC_NAME",
    "MetricsAdapter",
    "MetricsServer",
    "create_metrics_app",
    "sanitize_label_name",
]
