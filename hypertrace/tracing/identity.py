"""
Class Identity Registry
========================

Maps each owner class object to a ``ClassState``: a monotonic object-id
counter and a call-site cache shared by all instances of that class.

Keys are class objects, not names, so two unrelated classes that happen to
share a ``__name__`` get independent id sequences. Entries are never
removed; the key space is bounded by the number of distinct traced classes.
"""

from __future__ import annotations

from hypertrace.core.types import ResolvedCallSite
from hypertrace.telemetry.logger import get_logger
from hypertrace.utils.lock_factory import create_lock

logger = get_logger(__name__)

class ClassState:
    """Per-class identity counter and call-site cache."""

    __slots__ = ("_cache", "_lock", "class_name", "next_object_id")

    def __init__(self, class_name: str):
        self.class_name = class_name
        self.next_object_id = 0
        self._cache: dict[str, ResolvedCallSite] = {}
        self._lock = create_lock()

    def assign_object_id(self) -> int:
        with self._lock:
            self.next_object_id += 1
            return self.next_object_id

    def lookup(self, key: str) -> ResolvedCallSite | None:
        # dict.get is atomic; readers never block on writers
        return self._cache.get(key)

    def store(self, key: str, site: ResolvedCallSite) -> ResolvedCallSite:
        """Store ``site`` unless another thread won the race; return the kept value."""
        with self._lock:
            return self._cache.setdefault(key, site)

    def cache_keys(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._cache)

class ClassIdentityRegistry:
    """Process-scoped ``class -> ClassState`` mapping."""

    def __init__(self) -> None:
        self._states: dict[type, ClassState] = {}
        self._lock = create_lock()

    def get_or_create(self, cls: type) -> ClassState:
        state = self._states.get(cls)
        if state is not None:
            return state
        with self._lock:
            state = self._states.get(cls)
            if state is None:
                state = ClassState(cls.__name__)
                self._states[cls] = state
                logger.debug(
                    "class_state_created",
                    class_name=cls.__name__,
                    class_module=cls.__module__,
                )
        return state

    def assign_object_id(self, cls: type) -> int:
        """Next id for ``cls``: 1, 2, 3, ... with no gaps or duplicates."""
        return self.get_or_create(cls).assign_object_id()

    def last_object_id(self, cls: type) -> int:
        """Highest id handed out for ``cls`` so far (0 if none)."""
        state = self._states.get(cls)
        return state.next_object_id if state is not None else 0

    def __contains__(self, cls: object) -> bool:
        return cls in self._states

    def __len__(self) -> int:
        return len(self._states)
