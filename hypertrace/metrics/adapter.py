"""
Metrics Adapter — Prometheus Counter Sink
==========================================

Turns trace events into a labelled Prometheus counter. Installed into the
metrics slot of a ``TracingContext`` by ``set_metrics_target``.

Design:
  - Private CollectorRegistry per adapter, so replacing the metrics target
    never collides with names already registered on the global REGISTRY
  - One counter, fixed caller labels plus allow-listed custom props
  - Label names sanitized to [A-Za-z0-9_]; values passed through as str
    (exposition quoting is left to prometheus_client)

Metric Naming Convention:
  - hypertrace_function_calls_total{caller_classname, caller_object_id,
    caller_functionname, caller_filename, <allowed props>...}
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from prometheus_client import (
    CollectorRegistry,
    Counter,
    GCCollector,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)

from hypertrace.core.types import TraceEvent
from hypertrace.telemetry.logger import get_logger

logger = get_logger(__name__)

METRIC_NAME = "hypertrace_function_calls"
BASE_LABELS = (
    "caller_classname",
    "caller_object_id",
    "caller_functionname",
    "caller_filename",
)

_INVALID_LABEL_CHARS = re.compile(r"[^A-Za-z0-9_]")

def sanitize_label_name(name: str) -> str:
    """``foo-bar`` -> ``foo_bar``; the result is always a legal label name."""
    sanitized = _INVALID_LABEL_CHARS.sub("_", name)
    if not sanitized or sanitized[0].isdigit():
        sanitized = "_" + sanitized
    # Double-underscore prefixes are reserved by Prometheus
    if sanitized.startswith("__"):
        sanitized = "_" + sanitized.lstrip("_")
    return sanitized

class MetricsAdapter:
    """
    Counts traced calls per (object, caller) label set.

    An allow-listed prop missing from the instance is exported with the
    empty value (``tenant=""``), which Prometheus treats as an absent label.

    Usage:
        adapter = context.set_metrics_target(
            {"port": 9100, "allowed_custom_properties": ["tenant", "shard-id"]}
        )
        ...
        adapter.exposition()  # Prometheus text format, labels tenant / shard_id
    """

    def __init__(
        self,
        allowed_custom_properties: Iterable[str] = (),
        *,
        collect_runtime_defaults: bool = True,
        registry: CollectorRegistry | None = None,
    ):
        self.registry = registry if registry is not None else CollectorRegistry()
        self._property_labels = self._build_property_labels(allowed_custom_properties)

        self.calls = Counter(
            METRIC_NAME,
            "Traced calls per caller object and call site",
            labelnames=[*BASE_LABELS, *(label for _, label in self._property_labels)],
            registry=self.registry,
        )

        if collect_runtime_defaults:
            ProcessCollector(registry=self.registry)
            PlatformCollector(registry=self.registry)
            GCCollector(registry=self.registry)

    @staticmethod
    def _build_property_labels(names: Iterable[str]) -> tuple[tuple[str, str], ...]:
        pairs: list[tuple[str, str]] = []
        taken = set(BASE_LABELS)
        for name in names:
            label = sanitize_label_name(name)
            if label in taken:
                logger.warning("metrics_label_collision", property=name, label=label)
                continue
            taken.add(label)
            pairs.append((name, label))
        return tuple(pairs)

    @property
    def label_names(self) -> tuple[str, ...]:
        return (*BASE_LABELS, *(label for _, label in self._property_labels))

    def labels_for(self, event: TraceEvent) -> dict[str, str]:
        """Label values for ``event``. Missing allow-listed props map to ''."""
        labels = {
            "caller_classname": event.object.class_name,
            "caller_object_id": str(event.object.object_id),
            "caller_functionname": event.caller.function_name,
            "caller_filename": event.caller.filename,
        }
        props = event.object.props or {}
        for name, label in self._property_labels:
            labels[label] = str(props[name]) if name in props else ""
        return labels

    def record(self, event: TraceEvent) -> None:
        self.calls.labels(**self.labels_for(event)).inc()

    def exposition(self) -> bytes:
        """Current registry contents in Prometheus text format."""
        return generate_latest(self.registry)
