"""
Distributed tracing using OpenTelemetry.

Spans cover migration runs, per-record loads, count fan-out and
individual count queries.
"""

from .context import trace_operation
from .tracer import get_tracer, initialize_tracing, shutdown_tracing

__all__ = [
    "initialize_tracing",
    "get_tracer",
    "shutdown_tracing",
    "trace_operation",
]
