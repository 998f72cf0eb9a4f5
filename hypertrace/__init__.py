"""
Hypertrace — Call-Site Instrumentation
=======================================

Attach a tracer to each instance of a class and have it report who called,
from where and with what, to sinks the host installs. With no sink
installed, tracers are inert and cost one no-op call.

Provides:
  - Per-class object ids and live-instance counts (weakref based)
  - Caller resolution (function, file relative to a base dir, line, column)
  - Parent/child snapshots to correlate nested object graphs
  - Trace, memory (alloc/free) and Prometheus metrics sinks

Usage:
    import hypertrace

    hypertrace.set_trace_function(lambda event: print(event.to_dict()))

    class Pool:
        def __init__(self):
            self.tracer = hypertrace.create_tracer(self, props={"name": "main"})

        def acquire(self):
            self.tracer.trace("acquire")

The module-level functions act on a process-wide default
``TracingContext``; build your own context for isolated state.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from hypertrace.core.exceptions import (
    HypertraceException,
    InvalidArgumentError,
    MalformedStackFrameError,
    MetricsTargetError,
)
from hypertrace.core.types import (
    CallerInfo,
    LifecycleEvent,
    LifecycleType,
    MetricsTargetConfig,
    ObjectInfo,
    ParentSnapshot,
    ResolvedCallSite,
    TraceEvent,
)
from hypertrace.metrics.adapter import MetricsAdapter
from hypertrace.tracing.context import (
    MetricsSink,
    SinkSet,
    TraceSink,
    TracingContext,
    get_default_context,
    reset_default_context,
)
from hypertrace.tracing.lifecycle import MemorySink
from hypertrace.tracing.tracer import ActiveTracer, InertTracer, TracerHandle

__version__ = "1.0.0"

def set_trace_function(fn: TraceSink) -> None:
    get_default_context().set_trace_function(fn)

def clear_trace_function() -> None:
    get_default_context().clear_trace_function()

def set_memory_function(fn: MemorySink) -> None:
    get_default_context().set_memory_function(fn)

def clear_memory_function() -> None:
    get_default_context().clear_memory_function()

def set_metrics_target(config: MetricsTargetConfig | Mapping[str, Any]) -> MetricsAdapter:
    return get_default_context().set_metrics_target(config)

def clear_metrics_target() -> None:
    get_default_context().clear_metrics_target()

def create_tracer(
    owner: object,
    parent: TracerHandle | None = None,
    props: Mapping[str, Any] | None = None,
    *,
    context: TracingContext | None = None,
) -> TracerHandle:
    """Create a tracer for ``owner`` on ``context`` (default: process-wide)."""
    return (context or get_default_context()).create_tracer(owner, parent=parent, props=props)

__all__ = [
    "ActiveTracer",
    "CallerInfo",
    "HypertraceException",
    "InertTracer",
    "InvalidArgumentError",
    "LifecycleEvent",
    "LifecycleType",
    "MalformedStackFrameError",
    "MemorySink",
    "MetricsAdapter",
    "MetricsSink",
    "MetricsTargetConfig",
    "MetricsTargetError",
    "ObjectInfo",
    "ParentSnapshot",
    "ResolvedCallSite",
    "SinkSet",
    "TraceEvent",
    "TraceSink",
    "TracerHandle",
    "TracingContext",
    "__version__",
    "clear_memory_function",
    "clear_metrics_target",
    "clear_trace_function",
    "create_tracer",
    "get_default_context",
    "reset_default_context",
    "set_memory_function",
    "set_metrics_target",
    "set_trace_function",
]
