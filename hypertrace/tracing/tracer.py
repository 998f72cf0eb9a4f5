"""
Tracer Handles
===============

Per-instance handles bound to one owning object. Two variants share the
``TracerHandle`` surface:

  - ActiveTracer: created while at least one sink was installed. Holds the
    object's identity, custom props and parent snapshot; emits events.
  - InertTracer: created while no sink was installed. Every method is a
    no-op; a single shared instance is handed out.

The variant is latched at construction. A tracer created while tracing was
off stays inert for its whole life even if a sink is installed later, so
instrumented code pays one attribute lookup and one call on the disabled
path and never re-checks sink state per call.

Usage:
    from hypertrace import create_tracer

    class Connection:
        def __init__(self, pool):
            self.tracer = create_tracer(self, parent=pool.tracer, props={"host": "db1"})

        def send(self, payload):
            self.tracer.trace("send", {"size": len(payload)})
"""

from __future__ import annotations

import sys
import weakref
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol

from hypertrace.core.exceptions import InvalidArgumentError
from hypertrace.core.types import (
    CallerInfo,
    ObjectInfo,
    ParentSnapshot,
    TraceEvent,
    copy_props,
)
from hypertrace.tracing.callsite import capture_stack
from hypertrace.tracing.lifecycle import LifecyclePayload

if TYPE_CHECKING:
    from hypertrace.tracing.context import TracingContext

class TracerHandle(Protocol):
    """Surface shared by ActiveTracer and InertTracer."""

    enabled: bool

    def trace(self, cache_key: str | None = None, props: Mapping[str, Any] | None = None) -> None: ...

    def get_object_id(self) -> int | None: ...

    def get_class_name(self) -> str | None: ...

    def get_props(self) -> dict[str, Any] | None: ...

    def get_instance_count(self) -> int: ...

    def get_parent_object(self) -> ObjectInfo | None: ...

    def set_parent(self, parent: TracerHandle | None) -> None: ...

    def snapshot(self) -> ParentSnapshot | None: ...

def _snapshot_of(parent: object) -> ParentSnapshot | None:
    if parent is None:
        return None
    if not isinstance(parent, (ActiveTracer, InertTracer)):
        raise InvalidArgumentError(
            f"parent must be a tracer handle or None, got {type(parent).__name__}"
        )
    return parent.snapshot()

# ── No-Op Implementation ──────────────────────────────────────────

class InertTracer:
    """Zero-cost tracer handed out while no sink is installed."""

    __slots__ = ()

    enabled = False

    def trace(self, cache_key: str | None = None, props: Mapping[str, Any] | None = None) -> None:
        pass

    def get_object_id(self) -> None:
        return None

    def get_class_name(self) -> None:
        return None

    def get_props(self) -> None:
        return None

    def get_instance_count(self) -> int:
        return 0

    def get_parent_object(self) -> None:
        return None

    def set_parent(self, parent: TracerHandle | None) -> None:
        pass

    def snapshot(self) -> None:
        return None

    def __repr__(self) -> str:
        return "InertTracer()"

INERT_TRACER = InertTracer()

# ── Active Tracer ─────────────────────────────────────────────────

class ActiveTracer:
    """
    Tracer bound to one owning object.

    The owner is held through a weak reference only; the usual pattern
    (``self.tracer = create_tracer(self)``) must not turn into a cycle that
    delays the owner's free notification until a full GC pass.
    """

    __slots__ = (
        "__weakref__",
        "_cache_keys",
        "_class_state",
        "_cls",
        "_context",
        "_owner_ref",
        "_parent",
        "_props",
        "class_name",
        "object_id",
    )

    enabled = True

    def __init__(
        self,
        owner: object,
        context: TracingContext,
        *,
        parent: TracerHandle | None = None,
        props: Mapping[str, Any] | None = None,
    ):
        if owner is None:
            raise InvalidArgumentError("An owning object is required to create a tracer")
        if props is not None and not isinstance(props, Mapping):
            raise InvalidArgumentError(
                f"props must be a mapping or None, got {type(props).__name__}"
            )

        cls = type(owner)
        self._context = context
        self._cls = cls
        self._class_state = context.identities.get_or_create(cls)
        self._props = props
        self._parent = _snapshot_of(parent)
        self._cache_keys: set[str] = set()
        self.class_name = cls.__name__
        self.object_id = self._class_state.assign_object_id()

        try:
            self._owner_ref: weakref.ref[Any] | None = weakref.ref(owner)
        except TypeError:
            self._owner_ref = None

        context.lifecycle.register(
            owner,
            cls,
            LifecyclePayload.capture(self.class_name, self.object_id, props, self._parent),
        )

    # ── Identity ───────────────────────────────────────────────────

    @property
    def owner(self) -> Any:
        """The owning object, or None once it is gone (or not weakly referenceable)."""
        return self._owner_ref() if self._owner_ref is not None else None

    @property
    def parent_snapshot(self) -> ParentSnapshot | None:
        return self._parent

    @property
    def call_site_cache_keys(self) -> frozenset[str]:
        """Cache keys this tracer populated in its class's call-site cache."""
        return frozenset(self._cache_keys)

    def get_object_id(self) -> int:
        return self.object_id

    def get_class_name(self) -> str:
        return self.class_name

    def get_props(self) -> dict[str, Any] | None:
        return copy_props(self._props)

    def get_instance_count(self) -> int:
        return self._context.lifecycle.current_count(self._cls)

    def get_parent_object(self) -> ObjectInfo | None:
        if self._parent is None:
            return None
        return self._parent.to_object_info()

    def snapshot(self) -> ParentSnapshot:
        """By-value copy of this tracer's identity, for use as a child's parent."""
        return ParentSnapshot.capture(self.class_name, self.object_id, self._props)

    def set_parent(self, parent: TracerHandle | None) -> None:
        """Re-link to ``parent`` (or unlink). Already emitted events are unaffected."""
        self._parent = _snapshot_of(parent)

    # ── Tracing ────────────────────────────────────────────────────

    def trace(self, cache_key: str | None = None, props: Mapping[str, Any] | None = None) -> None:
        """
        Emit a trace event describing the caller of this method.

        Must be called directly from the owner's method: the caller is
        resolved from a fixed frame depth.

        Args:
            cache_key: Reuse (or populate) the class-wide call-site cache
                under this key instead of inspecting the stack every call.
            props: Caller payload, copied into ``caller.props``.
        """
        sinks = self._context.sinks
        if sinks.trace is None and sinks.metrics is None:
            return
        if props is not None and not isinstance(props, Mapping):
            raise InvalidArgumentError(
                f"props must be a mapping or None, got {type(props).__name__}"
            )

        site = self._class_state.lookup(cache_key) if cache_key is not None else None
        if site is None:
            snapshot = capture_stack(sys._getframe(0))
            site = self._context.resolver.resolve(snapshot, self.class_name)
            if cache_key is not None:
                site = self._class_state.store(cache_key, site)
                self._cache_keys.add(cache_key)

        event = TraceEvent(
            object=ObjectInfo(
                class_name=self.class_name,
                object_id=self.object_id,
                props=copy_props(self._props),
                instance_count=self._context.lifecycle.current_count(self._cls),
            ),
            parent_object=self._parent.to_object_info() if self._parent else None,
            caller=CallerInfo.from_call_site(site, props),
        )

        # Metrics first: the trace sink is free to mutate the event
        if sinks.metrics is not None:
            sinks.metrics(event)
        if sinks.trace is not None:
            sinks.trace(event)

    def __repr__(self) -> str:
        return f"ActiveTracer({self.class_name}#{self.object_id})"
