"""Pytest configuration and fixtures."""

import os
from pathlib import Path

import pytest

from hypertrace import TracingContext, reset_default_context

REPO_ROOT = Path(os.path.abspath(__file__)).parent.parent


class EventCollector:
    """Sink that records every event it receives."""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    def __len__(self):
        return len(self.events)

    def __getitem__(self, index):
        return self.events[index]

    @property
    def last(self):
        return self.events[-1]


@pytest.fixture
def context():
    """Fresh tracing context rooted at the repository."""
    ctx = TracingContext(base_dir=REPO_ROOT)
    yield ctx
    ctx.shutdown()


@pytest.fixture
def trace_events(context):
    collector = EventCollector()
    context.set_trace_function(collector)
    return collector


@pytest.fixture
def memory_events(context):
    collector = EventCollector()
    context.set_memory_function(collector)
    return collector


@pytest.fixture(autouse=True)
def _isolate_default_context():
    """Tests touching the module-level API must not leak sinks."""
    yield
    reset_default_context()
