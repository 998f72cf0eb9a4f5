"""
Lifecycle Tracker — Unit Tests
===============================

Live-instance counting, alloc/free events and the weakref capability limit.
"""

import gc
from concurrent.futures import ThreadPoolExecutor

import pytest

from hypertrace import LifecycleType
from hypertrace.core.types import ParentSnapshot
from hypertrace.tracing.lifecycle import (
    LifecyclePayload,
    LifecycleTracker,
    supports_weak_observation,
)
from tests.conftest import EventCollector
from tests.fixtures.some_module import SlottedModule, SomeModule


class Plain:
    pass


class Slotted:
    __slots__ = ("value",)


def _payload(object_id=1, props=None, parent=None):
    return LifecyclePayload.capture("Plain", object_id, props, parent)


class TestLifecycleTracker:
    def setup_method(self):
        self.events = EventCollector()
        self.sink = self.events
        self.tracker = LifecycleTracker(lambda: self.sink)

    def test_register_counts_and_emits_alloc(self):
        owner = Plain()
        assert self.tracker.register(owner, Plain, _payload()) == 1
        assert self.tracker.current_count(Plain) == 1

        event = self.events.last
        assert event.type == LifecycleType.ALLOC
        assert event.instance_count == 1
        assert (event.object.class_name, event.object.object_id) == ("Plain", 1)

    def test_free_decrements_exactly_once(self):
        first, second = Plain(), Plain()
        self.tracker.register(first, Plain, _payload(1))
        self.tracker.register(second, Plain, _payload(2))

        del first
        gc.collect()

        frees = [e for e in self.events.events if e.type == LifecycleType.FREE]
        assert len(frees) == 1
        assert frees[0].object.object_id == 1
        assert frees[0].instance_count == 1
        assert self.tracker.current_count(Plain) == 1

        gc.collect()
        assert self.tracker.current_count(Plain) == 1

    def test_payload_does_not_keep_owner_alive(self):
        owner = Plain()
        parent = ParentSnapshot.capture("Pool", 7, {"size": 4})
        self.tracker.register(owner, Plain, _payload(props={"k": "v"}, parent=parent))
        del owner
        gc.collect()

        free = self.events.last
        assert free.type == LifecycleType.FREE
        assert free.object.props == {"k": "v"}
        assert free.parent_object.class_name == "Pool"
        assert free.parent_object.props == {"size": 4}

    def test_free_uses_sink_installed_at_free_time(self):
        owner = Plain()
        self.tracker.register(owner, Plain, _payload())
        late = EventCollector()
        self.sink = late
        del owner
        gc.collect()

        assert [e.type for e in self.events.events] == [LifecycleType.ALLOC]
        assert [e.type for e in late.events] == [LifecycleType.FREE]

    def test_no_sink_still_counts(self):
        self.sink = None
        owner = Plain()
        self.tracker.register(owner, Plain, _payload())
        del owner
        gc.collect()
        assert self.tracker.current_count(Plain) == 0
        assert len(self.events) == 0

    def test_count_never_negative(self):
        self.tracker._release(Plain, _payload())
        assert self.tracker.current_count(Plain) == 0
        assert self.events.last.instance_count == 0

    def test_unweakrefable_owner_counted_but_never_freed(self):
        owner = Slotted()
        assert not supports_weak_observation(Slotted)
        self.tracker.register(owner, Slotted, _payload())
        del owner
        gc.collect()

        assert self.tracker.current_count(Slotted) == 1
        assert not self.tracker.is_watchable(Slotted)
        assert [e.type for e in self.events.events] == [LifecycleType.ALLOC]

    def test_snapshot_keys_are_qualified(self):
        owner = Plain()
        self.tracker.register(owner, Plain, _payload())
        assert self.tracker.snapshot() == {f"{Plain.__module__}.Plain": 1}

    def test_concurrent_register_and_free(self):
        def churn(_):
            owner = Plain()
            self.tracker.register(owner, Plain, _payload())

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(churn, range(500)))
        gc.collect()
        assert self.tracker.current_count(Plain) == 0


class TestTracerLifecycle:
    def test_instance_count_on_trace_events(self, context, trace_events, memory_events):
        first = SomeModule(context)
        first.foo()
        second = SomeModule(context)
        second.foo()

        assert [e.object.instance_count for e in trace_events.events] == [1, 2]

        del first
        gc.collect()

        free = memory_events.last
        assert free.type == LifecycleType.FREE
        assert free.instance_count == 1
        assert free.object.object_id == 1

        second.foo()
        assert trace_events.last.object.instance_count == 1

    def test_alloc_event_carries_parent(self, context, memory_events):
        parent = SomeModule(context, props={"role": "parent"})
        child = SomeModule(context, parent=parent.tracer)

        allocs = [e for e in memory_events.events if e.type == LifecycleType.ALLOC]
        alloc = allocs[-1]
        assert alloc.object.object_id == child.tracer.get_object_id()
        assert alloc.instance_count == 2
        assert alloc.parent_object.object_id == parent.tracer.get_object_id()
        assert alloc.parent_object.props == {"role": "parent"}

    def test_child_does_not_keep_parent_alive(self, context, memory_events):
        parent = SomeModule(context)
        child = SomeModule(context, parent=parent.tracer)
        parent_id = parent.tracer.get_object_id()

        del parent
        gc.collect()

        frees = [e for e in memory_events.events if e.type == LifecycleType.FREE]
        assert [e.object.object_id for e in frees] == [parent_id]
        assert child.tracer.get_parent_object().object_id == parent_id

    def test_slotted_owner_degrades_to_alloc_counting(self, context, memory_events):
        owner = SlottedModule(context)
        assert owner.tracer.owner is None
        del owner
        gc.collect()
        assert context.lifecycle.current_count(SlottedModule) == 1

    def test_memory_sink_error_is_logged_then_raised(self, context, caplog):
        def broken(event):
            if event.type == LifecycleType.FREE:
                raise RuntimeError("memory sink down")

        context.set_memory_function(broken)
        owner = SomeModule(context)
        with pytest.raises(RuntimeError, match="memory sink down"):
            context.lifecycle._release(Plain, _payload())
        assert "memory_sink_failed" in caplog.text

        # Keep the real finalizer from raising into the unraisable hook
        context.clear_memory_function()
        del owner


class TestWatchability:
    def test_unwatchable_class_logged_once(self, caplog):
        tracker = LifecycleTracker(lambda: None)
        first, second = Slotted(), Slotted()
        tracker.register(first, Slotted, _payload(1))
        tracker.register(second, Slotted, _payload(2))

        warnings = [r for r in caplog.records if r.getMessage() == "weak_observation_unsupported"]
        assert len(warnings) == 1
        assert tracker.current_count(Slotted) == 2
        assert tracker.is_watchable(Plain)
