"""
Tracing core: identity, call-site resolution, lifecycle accounting,
tracer handles and the sink-owning context.
"""

from hypertrace.tracing.callsite import (
    CALLER_FRAME_INDEX,
    CallSiteResolver,
    StackFrame,
    capture_stack,
    normalize_function_name,
)
from hypertrace.tracing.context import (
    SinkSet,
    TracingContext,
    get_default_context,
    reset_default_context,
)
from hypertrace.tracing.identity import ClassIdentityRegistry, ClassState
from hypertrace.tracing.lifecycle import (
    LifecyclePayload,
    LifecycleTracker,
    supports_weak_observation,
)
from hypertrace.tracing.tracer import INERT_TRACER, ActiveTracer, InertTracer, TracerHandle

__all__ = [
    "CALLER_FRAME_INDEX",
    "INERT_TRACER",
    "ActiveTracer",
    "CallSiteResolver",
    "ClassIdentityRegistry",
    "ClassState",
    "InertTracer",
    "LifecyclePayload",
    "LifecycleTracker",
    "SinkSet",
    "StackFrame",
    "TracerHandle",
    "TracingContext",
    "capture_stack",
    "get_default_context",
    "normalize_function_name",
    "reset_default_context",
    "supports_weak_observation",
]
