"""
Lifecycle Tracker
==================

Live-instance accounting per owner class.

``register`` increments the class counter and arms a ``weakref.finalize``
on the owning object. The finalizer's arguments are the class object and a
by-value ``LifecyclePayload``; neither references the owner, its tracer or
the parent tracer, otherwise the observed object could never become
unreachable. When the owner is collected the counter is decremented exactly
once and a ``free`` event is pushed to whatever memory sink is installed at
that moment.

Owners that cannot be weakly referenced (``__slots__`` without
``__weakref__``, most built-ins) are counted on allocation only. Their
counter is never decremented; this is a capability limit and is logged once
per class rather than papered over.

Finalizers may run on any thread, and may run on a thread that is already
inside ``register`` (a GC pass triggered by an allocation in the critical
section), so the counter lock is reentrant.
"""

from __future__ import annotations

import weakref
from collections import Counter
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from hypertrace.core.types import (
    LifecycleEvent,
    LifecycleType,
    ObjectInfo,
    ParentSnapshot,
    copy_props,
)
from hypertrace.telemetry.logger import get_logger
from hypertrace.utils.lock_factory import create_rlock

logger = get_logger(__name__)

MemorySink = Callable[[LifecycleEvent], Any]

@dataclass(frozen=True, slots=True)
class LifecyclePayload:
    """Everything a free notification needs, captured at registration."""

    class_name: str
    object_id: int
    props: Mapping[str, Any] | None = None
    parent: ParentSnapshot | None = None

    @classmethod
    def capture(
        cls,
        class_name: str,
        object_id: int,
        props: Mapping[str, Any] | None,
        parent: ParentSnapshot | None,
    ) -> LifecyclePayload:
        frozen = None if props is None else MappingProxyType(dict(props))
        return cls(class_name=class_name, object_id=object_id, props=frozen, parent=parent)

    def to_event(self, kind: LifecycleType, instance_count: int) -> LifecycleEvent:
        return LifecycleEvent(
            type=kind,
            instance_count=instance_count,
            object=ObjectInfo(
                class_name=self.class_name,
                object_id=self.object_id,
                props=copy_props(self.props),
            ),
            parent_object=self.parent.to_object_info() if self.parent else None,
        )

def supports_weak_observation(cls: type) -> bool:
    """True if instances of ``cls`` can be weakly referenced."""
    return getattr(cls, "__weakrefoffset__", 0) != 0

class LifecycleTracker:
    """Counts live instances per class and emits alloc/free events."""

    def __init__(self, memory_sink: Callable[[], MemorySink | None]):
        self._memory_sink = memory_sink
        self._counts: Counter[type] = Counter()
        self._unwatchable: set[type] = set()
        self._lock = create_rlock()

    def register(self, owner: object, cls: type, payload: LifecyclePayload) -> int:
        """Count ``owner`` as live and arm its free notification.

        Returns the instance count after the increment.
        """
        if self.is_watchable(cls):
            try:
                finalizer = weakref.finalize(owner, self._release, cls, payload)
            except TypeError:
                self._note_unwatchable(cls)
            else:
                # Interpreter shutdown is not a free
                finalizer.atexit = False
        else:
            self._note_unwatchable(cls)

        with self._lock:
            self._counts[cls] += 1
            count = self._counts[cls]

        sink = self._memory_sink()
        if sink is not None:
            sink(payload.to_event(LifecycleType.ALLOC, count))
        return count

    def current_count(self, cls: type) -> int:
        with self._lock:
            return self._counts.get(cls, 0)

    def snapshot(self) -> dict[str, int]:
        """Live counts keyed by ``module.QualName``."""
        with self._lock:
            return {
                f"{cls.__module__}.{cls.__qualname__}": count
                for cls, count in self._counts.items()
            }

    def is_watchable(self, cls: type) -> bool:
        return cls not in self._unwatchable and supports_weak_observation(cls)

    def _note_unwatchable(self, cls: type) -> None:
        with self._lock:
            if cls in self._unwatchable:
                return
            self._unwatchable.add(cls)
        logger.warning(
            "weak_observation_unsupported",
            class_name=cls.__name__,
            class_module=cls.__module__,
            detail="Instances are counted on allocation only; free events will not fire",
        )

    def _release(self, cls: type, payload: LifecyclePayload) -> None:
        with self._lock:
            current = self._counts.get(cls, 0)
            if current <= 0:
                logger.warning(
                    "instance_count_underflow",
                    class_name=payload.class_name,
                    object_id=payload.object_id,
                )
                count = 0
            else:
                count = current - 1
            self._counts[cls] = count

        sink = self._memory_sink()
        if sink is None:
            return
        try:
            sink(payload.to_event(LifecycleType.FREE, count))
        except Exception as exc:
            # Raised inside a finalizer: the interpreter routes it to
            # sys.unraisablehook after we log it.
            logger.error(
                "memory_sink_failed",
                exc=exc,
                class_name=payload.class_name,
                object_id=payload.object_id,
            )
            raise
