"""
Span helpers for migration and reconciliation operations.
"""

from contextlib import contextmanager

from opentelemetry import trace

from .tracer import get_tracer


@contextmanager
def trace_operation(
    operation_name: str,
    kind: trace.SpanKind = trace.SpanKind.INTERNAL,
    **attributes
):
    """
    Context manager for tracing an operation.

    Attribute values are stringified. Exceptions are recorded on the span
    and re-raised.

    Example:
        >>> with trace_operation("migrate_table", entity_kind="collection") as span:
        ...     summary = migrator.run(cursor, "collection")
        ...     span.set_attribute("inserted", summary.inserted)
    """
    tracer = get_tracer()

    with tracer.start_as_current_span(operation_name, kind=kind) as span:
        for key, value in attributes.items():
            span.set_attribute(key, str(value))

        try:
            yield span
        except Exception as e:
            span.set_attribute("error", True)
            span.set_attribute("error.type", type(e).__name__)
            span.set_attribute("error.message", str(e))
            span.record_exception(e)
            raise
