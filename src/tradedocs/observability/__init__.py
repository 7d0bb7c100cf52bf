"""Observability module: OpenTelemetry tracing."""

from tradedocs.observability.tracing import configure_tracing, start_span

__all__ = ["configure_tracing", "start_span"]
