"""Unit tests for event types and exceptions."""

import pytest

from hypertrace import (
    HypertraceException,
    InvalidArgumentError,
    MalformedStackFrameError,
    MetricsTargetError,
)
from hypertrace.core.types import (
    CallerInfo,
    LifecycleEvent,
    LifecycleType,
    ObjectInfo,
    ParentSnapshot,
    ResolvedCallSite,
    TraceEvent,
    copy_props,
)


class TestParentSnapshot:
    def test_capture_copies_props(self):
        source = {"role": "pool"}
        snapshot = ParentSnapshot.capture("Pool", 2, source)
        source["role"] = "changed"
        assert snapshot.props["role"] == "pool"

    def test_props_are_read_only(self):
        snapshot = ParentSnapshot.capture("Pool", 2, {"role": "pool"})
        with pytest.raises(TypeError):
            snapshot.props["role"] = "other"

    def test_to_object_info_gives_mutable_copy(self):
        snapshot = ParentSnapshot.capture("Pool", 2, {"role": "pool"})
        info = snapshot.to_object_info()
        info.props["role"] = "other"
        assert snapshot.props["role"] == "pool"
        assert info.instance_count is None

    def test_none_props(self):
        assert ParentSnapshot.capture("Pool", 2, None).to_object_info().props is None


class TestEventDicts:
    def test_trace_event_to_dict(self):
        site = ResolvedCallSite("foo", "/pkg/mod.py", 4, 9)
        event = TraceEvent(
            object=ObjectInfo("SomeModule", 1, {"a": 1}, instance_count=1),
            parent_object=ObjectInfo("Pool", 3),
            caller=CallerInfo.from_call_site(site, {"x": True}),
        )
        assert event.to_dict() == {
            "object": {"class_name": "SomeModule", "object_id": 1, "props": {"a": 1}, "instance_count": 1},
            "parent_object": {"class_name": "Pool", "object_id": 3, "props": None},
            "caller": {
                "function_name": "foo",
                "filename": "/pkg/mod.py",
                "line": 4,
                "column": 9,
                "props": {"x": True},
            },
        }

    def test_lifecycle_event_to_dict(self):
        event = LifecycleEvent(LifecycleType.FREE, 0, ObjectInfo("SomeModule", 1))
        data = event.to_dict()
        assert data["type"] == "free"
        assert data["instance_count"] == 0
        assert data["parent_object"] is None

    def test_caller_props_are_copied(self):
        payload = {"x": 1}
        caller = CallerInfo.from_call_site(ResolvedCallSite("f", "/m.py", 1, 1), payload)
        payload["x"] = 2
        assert caller.props == {"x": 1}

    def test_copy_props(self):
        assert copy_props(None) is None
        source = {"k": "v"}
        copied = copy_props(source)
        assert copied == source and copied is not source


class TestExceptions:
    def test_invalid_argument(self):
        exc = InvalidArgumentError("owner required")
        assert isinstance(exc, HypertraceException)
        assert isinstance(exc, ValueError)
        data = exc.to_dict()
        assert data["error"] == "INVALID_ARGUMENT"
        assert data["detail"] == "owner required"
        assert "timestamp" in data

    def test_malformed_stack_frame(self):
        exc = MalformedStackFrameError("no line number", frame="frame")
        assert isinstance(exc, RuntimeError)
        assert exc.frame == "frame"
        assert "no line number" in str(exc)

    def test_metrics_target(self):
        exc = MetricsTargetError("127.0.0.1", 9100, "address in use")
        assert exc.error_code == "METRICS_TARGET_FAILED"
        assert (exc.host, exc.port) == ("127.0.0.1", 9100)
        assert "127.0.0.1:9100" in exc.detail
