"""OpenTelemetry-based observability for statuswrap."""

from statuswrap.observability.tracing import get_tracer, span

__all__ = [
    "get_tracer",
    "span",
]
