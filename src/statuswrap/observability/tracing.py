"""OpenTelemetry span helpers.

Spans are no-ops until an SDK tracer provider is configured by the host.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace

TRACER_NAME = "statuswrap"


def get_tracer(name: str = TRACER_NAME) -> trace.Tracer:
    """Return the OTel tracer for *name*."""
    return trace.get_tracer(name)


@contextmanager
def span(
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Generator[trace.Span, None, None]:
    """Context manager that creates an OTel span."""
    tracer = get_tracer()
    with tracer.start_as_current_span(name, attributes=attributes) as s:
        yield s
