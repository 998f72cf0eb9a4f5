"""
Call-Site Resolver
===================

Turns a captured stack snapshot into a ``ResolvedCallSite``.

Frame depth is fixed by construction: ``ActiveTracer.trace`` passes its own
frame to ``capture_stack``, so index 0 of the snapshot is ``trace`` itself
and index ``CALLER_FRAME_INDEX`` (1) is the method of the owning object that
called it. The resolver never walks further up. Any wrapper inserted
between the owner's method and ``trace()`` therefore shows up as the
caller; instrumented code must call ``trace()`` directly.

Paths are reported relative to a base directory (the longest common path
is stripped and the remainder starts with ``os.sep``) so exported traces
do not leak the absolute filesystem layout.
"""

from __future__ import annotations

import itertools
import os
from types import FrameType
from typing import NamedTuple

from hypertrace.core.config import settings
from hypertrace.core.exceptions import MalformedStackFrameError
from hypertrace.core.types import ResolvedCallSite

CALLER_FRAME_INDEX = 1

class StackFrame(NamedTuple):
    """One captured frame. ``column`` is the 0-based offset, or None."""

    qualname: str
    filename: str
    lineno: int | None
    column: int | None

StackSnapshot = tuple[StackFrame, ...]

def _frame_column(frame: FrameType) -> int | None:
    lasti = frame.f_lasti
    if lasti < 0:
        return None
    # co_positions() yields one entry per 2-byte code unit
    position = next(itertools.islice(frame.f_code.co_positions(), lasti // 2, None), None)
    if position is None:
        return None
    return position[2]

def capture_stack(
    frame: FrameType | None,
    limit: int = CALLER_FRAME_INDEX + 1,
) -> StackSnapshot:
    """Record ``limit`` frames walking outward from ``frame``."""
    records: list[StackFrame] = []
    while frame is not None and len(records) < limit:
        code = frame.f_code
        records.append(
            StackFrame(
                qualname=code.co_qualname,
                filename=code.co_filename,
                lineno=frame.f_lineno,
                column=_frame_column(frame),
            )
        )
        frame = frame.f_back
    return tuple(records)

def normalize_function_name(qualname: str, class_name: str) -> str:
    """``SomeModule.foo`` -> ``foo`` when the tracer belongs to ``SomeModule``."""
    head, sep, tail = qualname.partition(".")
    if sep and head == class_name and tail:
        return tail
    return qualname

class CallSiteResolver:
    """Resolves the caller frame of a snapshot against a base directory."""

    __slots__ = ("_base_dir",)

    def __init__(self, base_dir: str | os.PathLike[str] | None = None):
        self._base_dir = os.path.abspath(os.fspath(base_dir or settings.BASE_DIR))

    @property
    def base_dir(self) -> str:
        return self._base_dir

    def relative_path(self, filename: str) -> str:
        # Pseudo files: <string>, <stdin>, <frozen importlib._bootstrap>
        if filename.startswith("<") and filename.endswith(">"):
            return filename

        absolute = os.path.abspath(filename)
        try:
            common = os.path.commonpath([absolute, self._base_dir])
        except ValueError:
            # Different drives (Windows): nothing in common
            return absolute
        if os.path.dirname(common) == common:
            # Only the filesystem root is shared
            return absolute

        remainder = absolute[len(common):]
        if not remainder.startswith(os.sep):
            remainder = os.sep + remainder
        return remainder

    def resolve(self, snapshot: StackSnapshot, class_name: str) -> ResolvedCallSite:
        """Resolve ``snapshot[CALLER_FRAME_INDEX]``.

        Raises:
            MalformedStackFrameError: the caller frame is missing or lacks a
                function name, a filename or a line number.
        """
        if len(snapshot) <= CALLER_FRAME_INDEX:
            raise MalformedStackFrameError(
                f"expected at least {CALLER_FRAME_INDEX + 1} frames, got {len(snapshot)}"
            )
        frame = snapshot[CALLER_FRAME_INDEX]
        if not frame.qualname:
            raise MalformedStackFrameError("caller frame has no function name", frame)
        if not frame.filename:
            raise MalformedStackFrameError("caller frame has no filename", frame)
        if frame.lineno is None or frame.lineno < 1:
            raise MalformedStackFrameError("caller frame has no line number", frame)

        return ResolvedCallSite(
            function_name=normalize_function_name(frame.qualname, class_name),
            filename=self.relative_path(frame.filename),
            line=frame.lineno,
            column=frame.column + 1 if frame.column is not None else 0,
        )
