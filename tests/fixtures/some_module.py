"""Instrumented sample class used across the tracer tests."""

from hypertrace import create_tracer


class SomeModule:
    def __init__(self, context=None, **options):
        self.tracer = create_tracer(self, context=context, **options)

    def foo(self, props=None):
        self.tracer.trace(props=props)

    def cached_foo(self, props=None):
        self.tracer.trace("cached_foo", props)

    def get_tracing_object_id(self):
        self.tracer.trace()
        return self.tracer.get_object_id()


class SlottedModule:
    """Owner without ``__weakref__``: lifecycle can only count allocations."""

    __slots__ = ("tracer",)

    def __init__(self, context=None):
        self.tracer = create_tracer(self, context=context)

    def foo(self):
        self.tracer.trace()
