"""
Tracing Context — Sink Registry
================================

A ``TracingContext`` owns everything tracers share: the three sink slots
(trace, memory, metrics), the class identity registry, the lifecycle
tracker and the call-site resolver. Hosts may build their own context and
pass it around; the module-level API in ``hypertrace`` uses a lazily created
process-wide default.

Sink slots live in one immutable ``SinkSet``. Writers swap the whole value
under a lock; ``trace()`` reads the current reference once and never takes
a lock, so installing or clearing a sink never blocks tracing and tracing
never blocks sink installation.

Sink exceptions are not isolated: whatever a sink raises propagates to the
code that called ``trace()`` / ``create_tracer()``.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from typing import Any

from pydantic import ValidationError

from hypertrace.core.exceptions import InvalidArgumentError
from hypertrace.core.types import LifecycleEvent, MetricsTargetConfig, TraceEvent
from hypertrace.metrics.adapter import MetricsAdapter
from hypertrace.metrics.server import MetricsServer
from hypertrace.telemetry.logger import get_logger
from hypertrace.tracing.callsite import CallSiteResolver
from hypertrace.tracing.identity import ClassIdentityRegistry
from hypertrace.tracing.lifecycle import LifecycleTracker, MemorySink
from hypertrace.tracing.tracer import INERT_TRACER, ActiveTracer, TracerHandle
from hypertrace.utils.lock_factory import create_lock

logger = get_logger(__name__)

TraceSink = Callable[[TraceEvent], Any]
MetricsSink = Callable[[TraceEvent], Any]

@dataclass(frozen=True, slots=True)
class SinkSet:
    """Immutable view of the installed sinks."""

    trace: TraceSink | None = None
    memory: MemorySink | None = None
    metrics: MetricsSink | None = None

    @property
    def any_active(self) -> bool:
        return self.trace is not None or self.memory is not None or self.metrics is not None

def _require_callable(fn: object, slot: str) -> None:
    if not callable(fn):
        raise InvalidArgumentError(f"{slot} sink must be callable, got {type(fn).__name__}")

def _describe(fn: Callable[..., Any]) -> str:
    return getattr(fn, "__qualname__", None) or type(fn).__name__

class TracingContext:
    """
    Explicitly owned tracing state.

    Usage:
        ctx = TracingContext(base_dir="/srv/app")
        ctx.set_trace_function(events.append)

        class Worker:
            def __init__(self):
                self.tracer = ctx.create_tracer(self)

            def run(self):
                self.tracer.trace()

        ...
        ctx.shutdown()
    """

    def __init__(self, *, base_dir: str | os.PathLike[str] | None = None):
        self._sinks = SinkSet()
        self._lock = create_lock()
        self._metrics_lock = create_lock()
        self._metrics_adapter: MetricsAdapter | None = None
        self._metrics_server: MetricsServer | None = None

        self.identities = ClassIdentityRegistry()
        self.lifecycle = LifecycleTracker(self._current_memory_sink)
        self.resolver = CallSiteResolver(base_dir)

    # ── Sink slots ─────────────────────────────────────────────────

    @property
    def sinks(self) -> SinkSet:
        return self._sinks

    def is_active(self) -> bool:
        """True if any sink slot is set; decides Active vs Inert tracers."""
        return self._sinks.any_active

    def _current_memory_sink(self) -> MemorySink | None:
        return self._sinks.memory

    def _swap(self, **changes: Any) -> None:
        with self._lock:
            self._sinks = replace(self._sinks, **changes)

    def set_trace_function(self, fn: TraceSink) -> None:
        _require_callable(fn, "trace")
        self._swap(trace=fn)
        logger.info("trace_sink_set", sink=_describe(fn))

    def clear_trace_function(self) -> None:
        self._swap(trace=None)
        logger.info("trace_sink_cleared")

    def set_memory_function(self, fn: MemorySink) -> None:
        _require_callable(fn, "memory")
        self._swap(memory=fn)
        logger.info("memory_sink_set", sink=_describe(fn))

    def clear_memory_function(self) -> None:
        self._swap(memory=None)
        logger.info("memory_sink_cleared")

    # ── Metrics target ─────────────────────────────────────────────

    @property
    def metrics_adapter(self) -> MetricsAdapter | None:
        return self._metrics_adapter

    @property
    def metrics_server(self) -> MetricsServer | None:
        return self._metrics_server

    def set_metrics_target(
        self, config: MetricsTargetConfig | Mapping[str, Any]
    ) -> MetricsAdapter:
        """
        Install a Prometheus metrics sink, replacing any previous one.

        Args:
            config: MetricsTargetConfig or a mapping with ``port``,
                ``allowed_custom_properties``, ``collect_runtime_defaults``
                and ``host``. ``port=None`` skips the HTTP listener.

        Raises:
            InvalidArgumentError: config failed validation.
            MetricsTargetError: the HTTP listener could not start.
        """
        if not isinstance(config, MetricsTargetConfig):
            if not isinstance(config, Mapping):
                raise InvalidArgumentError(
                    f"metrics config must be a mapping, got {type(config).__name__}"
                )
            try:
                config = MetricsTargetConfig.model_validate(dict(config))
            except ValidationError as exc:
                raise InvalidArgumentError(f"Invalid metrics config: {exc}") from exc

        # Held across clear, start and install so concurrent calls never
        # leave an orphaned listener behind
        with self._metrics_lock:
            # The old listener may hold the port we are about to bind
            self._clear_metrics_target_locked()

            adapter = MetricsAdapter(
                config.allowed_custom_properties,
                collect_runtime_defaults=config.collect_runtime_defaults,
            )
            server = None
            if config.port is not None:
                server = MetricsServer(adapter, host=config.host, port=config.port)
                server.start()

            with self._lock:
                self._metrics_adapter = adapter
                self._metrics_server = server
                self._sinks = replace(self._sinks, metrics=adapter.record)

        logger.info(
            "metrics_target_set",
            port=server.port if server else None,
            labels=",".join(adapter.label_names),
        )
        return adapter

    def clear_metrics_target(self) -> None:
        with self._metrics_lock:
            self._clear_metrics_target_locked()

    def _clear_metrics_target_locked(self) -> None:
        with self._lock:
            server = self._metrics_server
            had_target = self._metrics_adapter is not None
            self._metrics_adapter = None
            self._metrics_server = None
            self._sinks = replace(self._sinks, metrics=None)
        if server is not None:
            server.stop()
        if had_target:
            logger.info("metrics_target_cleared")

    def live_instances(self) -> dict[str, int]:
        """Live instance counts of every traced class, keyed by ``module.QualName``."""
        return self.lifecycle.snapshot()

    def metrics_exposition(self) -> bytes:
        """Prometheus text exposition of the current target, or b'' if none."""
        adapter = self._metrics_adapter
        return adapter.exposition() if adapter is not None else b""

    # ── Tracers ────────────────────────────────────────────────────

    def create_tracer(
        self,
        owner: object,
        parent: TracerHandle | None = None,
        props: Mapping[str, Any] | None = None,
    ) -> TracerHandle:
        """
        Create the tracer for ``owner``.

        Returns an ActiveTracer if any sink is installed right now, otherwise
        the shared InertTracer. The choice is permanent for that tracer.

        Raises:
            InvalidArgumentError: ``owner`` is None.
        """
        if owner is None:
            raise InvalidArgumentError("An owning object is required to create a tracer")
        if not self._sinks.any_active:
            return INERT_TRACER
        return ActiveTracer(owner, self, parent=parent, props=props)

    def shutdown(self) -> None:
        """Clear every sink slot and stop the metrics listener."""
        self.clear_metrics_target()
        self._swap(trace=None, memory=None)
        logger.info("tracing_context_shutdown")

# ── Default Context ───────────────────────────────────────────────

_default_context: TracingContext | None = None
_default_lock = create_lock()

def get_default_context() -> TracingContext:
    """Process-wide context, created on first use."""
    global _default_context
    context = _default_context
    if context is not None:
        return context
    # Locked: two defaults would hand out duplicate object ids
    with _default_lock:
        if _default_context is None:
            _default_context = TracingContext()
        return _default_context

def reset_default_context() -> None:
    """Shut down the default context; the next use creates a fresh one.

    Tracers created from the old context stay bound to it.
    """
    global _default_context
    with _default_lock:
        context = _default_context
        _default_context = None
    if context is not None:
        context.shutdown()
