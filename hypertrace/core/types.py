"""
Canonical Type Definitions
===========================

Single source of truth for the values that cross component boundaries:

- ResolvedCallSite: positional metadata of a trace call (cacheable)
- ParentSnapshot: by-value copy of a parent tracer's identity and props
- ObjectInfo / CallerInfo: the two halves of an emitted event
- TraceEvent / LifecycleEvent: what sinks receive
- MetricsTargetConfig: validated options for the metrics sink

Events are built fresh for every dispatch and are never stored by the core,
so sinks may mutate them freely.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "CallerInfo",
    "LifecycleEvent",
    "LifecycleType",
    "MetricsTargetConfig",
    "ObjectInfo",
    "ParentSnapshot",
    "ResolvedCallSite",
    "TraceEvent",
    "copy_props",
]

def copy_props(props: Mapping[str, Any] | None) -> dict[str, Any] | None:
    """Shallow defensive copy; ``None`` stays ``None``."""
    if props is None:
        return None
    return dict(props)

class LifecycleType(StrEnum):
    """Kind of lifecycle notification."""

    ALLOC = "alloc"
    FREE = "free"

@dataclass(frozen=True, slots=True)
class ResolvedCallSite:
    """Where a trace call was issued from.

    ``filename`` is relative to the resolver's base directory and starts
    with a path separator. ``line`` and ``column`` are 1-based; ``column``
    is 0 when the interpreter carries no column information.
    """

    function_name: str
    filename: str
    line: int
    column: int

@dataclass(frozen=True, slots=True)
class ParentSnapshot:
    """Immutable copy of a parent tracer's identity at link time."""

    class_name: str
    object_id: int
    props: Mapping[str, Any] | None = None

    @classmethod
    def capture(
        cls,
        class_name: str,
        object_id: int,
        props: Mapping[str, Any] | None,
    ) -> ParentSnapshot:
        frozen = None if props is None else MappingProxyType(dict(props))
        return cls(class_name=class_name, object_id=object_id, props=frozen)

    def to_object_info(self) -> ObjectInfo:
        return ObjectInfo(
            class_name=self.class_name,
            object_id=self.object_id,
            props=copy_props(self.props),
        )

@dataclass(slots=True)
class ObjectInfo:
    """Identity block of an event (the traced object or its parent)."""

    class_name: str
    object_id: int
    props: dict[str, Any] | None = None
    instance_count: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "class_name": self.class_name,
            "object_id": self.object_id,
            "props": copy_props(self.props),
        }
        if self.instance_count is not None:
            data["instance_count"] = self.instance_count
        return data

@dataclass(slots=True)
class CallerInfo:
    """Call-site block of a trace event plus the caller-supplied payload."""

    function_name: str
    filename: str
    line: int
    column: int
    props: dict[str, Any] | None = None

    @classmethod
    def from_call_site(
        cls, site: ResolvedCallSite, props: Mapping[str, Any] | None
    ) -> CallerInfo:
        return cls(
            function_name=site.function_name,
            filename=site.filename,
            line=site.line,
            column=site.column,
            props=copy_props(props),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "function_name": self.function_name,
            "filename": self.filename,
            "line": self.line,
            "column": self.column,
            "props": copy_props(self.props),
        }

@dataclass(slots=True)
class TraceEvent:
    """Delivered to the trace sink (and the metrics sink) on every ``trace()``."""

    object: ObjectInfo
    parent_object: ObjectInfo | None
    caller: CallerInfo

    def to_dict(self) -> dict[str, Any]:
        return {
            "object": self.object.to_dict(),
            "parent_object": self.parent_object.to_dict() if self.parent_object else None,
            "caller": self.caller.to_dict(),
        }

@dataclass(slots=True)
class LifecycleEvent:
    """Delivered to the memory sink on allocation and on finalization."""

    type: LifecycleType
    instance_count: int
    object: ObjectInfo
    parent_object: ObjectInfo | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "instance_count": self.instance_count,
            "object": self.object.to_dict(),
            "parent_object": self.parent_object.to_dict() if self.parent_object else None,
        }

class MetricsTargetConfig(BaseModel):
    """Options accepted by ``set_metrics_target``.

    ``port=None`` installs the metrics sink without an HTTP listener; the
    exposition is then only reachable via ``TracingContext.metrics_exposition()``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    port: int | None = Field(..., ge=0, le=65535)
    allowed_custom_properties: list[str] = Field(default_factory=list)
    collect_runtime_defaults: bool = True
    host: str | None = None
