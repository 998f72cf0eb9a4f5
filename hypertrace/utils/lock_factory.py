"""
Centralized lock factory for dependency injection.

Every lock guarding hypertrace's process-wide state (class identity
counters, call-site caches, live-instance counters, sink slots) is created
through this module so tests can swap in instrumented or no-op locks.

Usage:
    from hypertrace.utils.lock_factory import create_lock, create_rlock

    _state_lock = create_lock()
    _counter_lock = create_rlock()

    # Override in tests:
    from hypertrace.utils import lock_factory
    lock_factory.set_factory(lambda: NoOpLock())
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Union

# threading.Lock and threading.RLock are factory functions, not types.
LockType = Union[threading._RLock, "threading.Lock", "NoOpLock"]

_factory: Callable[[], LockType] = threading.Lock
_rfactory: Callable[[], LockType] = threading.RLock

def create_lock() -> LockType:
    """Create a non-reentrant lock using the current factory."""
    return _factory()

def create_rlock() -> LockType:
    """Create a reentrant lock.

    Used where a ``weakref.finalize`` callback may run on the thread that
    already holds the lock (a GC pass triggered inside the critical section).
    """
    return _rfactory()

def set_factory(
    factory: Callable[[], LockType],
    rfactory: Callable[[], LockType] | None = None,
) -> None:
    """Override the global lock factories.

    When ``rfactory`` is omitted the reentrant factory is left untouched.
    """
    global _factory, _rfactory
    _factory = factory
    if rfactory is not None:
        _rfactory = rfactory

def reset_factory() -> None:
    """Restore the default factories (threading.Lock / threading.RLock)."""
    global _factory, _rfactory
    _factory = threading.Lock
    _rfactory = threading.RLock

class NoOpLock:
    """A no-op lock for use in single-threaded test environments."""

    def acquire(self, blocking: bool = True, timeout: float = -1) -> bool:
        return True

    def release(self) -> None:
        pass

    def __enter__(self) -> NoOpLock:
        return self

    def __exit__(self, *args: object) -> None:
        pass
