"""OpenTelemetry tracing for the document engine.

Spans wrap prefill, regenerate, issue and export. Tracing is off unless
TRADEDOCS_OTEL_ENABLED=1; with it off, spans are no-ops.

Environment Variables:
    TRADEDOCS_OTEL_ENABLED: Set to "1" to enable tracing (default: disabled)
    TRADEDOCS_OTEL_SERVICE_NAME: Service name for spans (default: "tradedocs")
    TRADEDOCS_OTEL_EXPORTER: "otlp" or "console" (default: "otlp")
    TRADEDOCS_OTEL_EXPORTER_OTLP_ENDPOINT: OTLP endpoint URL (optional)
    TRADEDOCS_OTEL_TEST_CAPTURE: Set to "1" to use the in-memory exporter

Span attributes carry ids only (job_id, doc_type, record ids), never
document content or issuer details.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
    from opentelemetry.sdk.trace.export import SpanExporter

logger = logging.getLogger(__name__)

OTEL_ENABLED_ENV = "TRADEDOCS_OTEL_ENABLED"
OTEL_SERVICE_NAME_ENV = "TRADEDOCS_OTEL_SERVICE_NAME"
OTEL_EXPORTER_ENV = "TRADEDOCS_OTEL_EXPORTER"
OTEL_ENDPOINT_ENV = "TRADEDOCS_OTEL_EXPORTER_OTLP_ENDPOINT"
OTEL_TEST_CAPTURE_ENV = "TRADEDOCS_OTEL_TEST_CAPTURE"

TRACER_NAME = "tradedocs"

_tracer_provider: TracerProvider | None = None
_is_configured: bool = False
_test_exporter: Any = None


def _get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    val = os.environ.get(key, "").strip().lower()
    if val in ("1", "true", "yes"):
        return True
    return default


def _get_env_str(key: str, default: str = "") -> str:
    """Get string from environment variable."""
    return os.environ.get(key, default).strip()


def _create_otlp_exporter(endpoint: str | None) -> SpanExporter:
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

    kwargs: dict[str, Any] = {}
    if endpoint:
        kwargs["endpoint"] = endpoint
    return OTLPSpanExporter(**kwargs)


def _create_console_exporter() -> SpanExporter:
    from opentelemetry.sdk.trace.export import ConsoleSpanExporter

    return ConsoleSpanExporter()


def is_tracing_enabled() -> bool:
    return _get_env_bool(OTEL_ENABLED_ENV, False)


def configure_tracing() -> bool:
    """Configure OpenTelemetry tracing. Idempotent.

    Returns:
        True if tracing is enabled and configured, False otherwise. A failed
        exporter setup is logged and leaves tracing disabled.
    """
    global _tracer_provider, _is_configured, _test_exporter

    if not is_tracing_enabled():
        _is_configured = True
        logger.debug("OpenTelemetry tracing disabled (%s not set)", OTEL_ENABLED_ENV)
        return False

    test_capture = _get_env_bool(OTEL_TEST_CAPTURE_ENV, False)
    if _test_exporter is not None and test_capture:
        return True
    if _is_configured and _tracer_provider is not None:
        return True

    _is_configured = True

    try:
        from opentelemetry import trace
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor

        service_name = _get_env_str(OTEL_SERVICE_NAME_ENV, "tradedocs")
        exporter_type = _get_env_str(OTEL_EXPORTER_ENV, "otlp")

        provider = TracerProvider(resource=Resource.create({"service.name": service_name}))

        if test_capture:
            from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
                InMemorySpanExporter,
            )

            _test_exporter = InMemorySpanExporter()
            provider.add_span_processor(SimpleSpanProcessor(_test_exporter))
        elif exporter_type == "console":
            provider.add_span_processor(SimpleSpanProcessor(_create_console_exporter()))
        else:
            endpoint = _get_env_str(OTEL_ENDPOINT_ENV) or None
            provider.add_span_processor(BatchSpanProcessor(_create_otlp_exporter(endpoint)))

        trace.set_tracer_provider(provider)
        _tracer_provider = provider

        logger.info(
            "OpenTelemetry tracing configured: service=%s, exporter=%s",
            service_name,
            "in-memory" if test_capture else exporter_type,
        )
        return True

    except Exception as e:
        logger.error("Failed to configure OpenTelemetry tracing: %s", e)
        return False


def instrument_fastapi(app: Any) -> None:
    """Instrument a FastAPI application (requires the ``otel`` extra)."""
    if not is_tracing_enabled():
        return

    try:
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

        FastAPIInstrumentor.instrument_app(app, excluded_urls="health")
        logger.debug("FastAPI instrumented with OpenTelemetry")
    except Exception as e:
        logger.warning("Failed to instrument FastAPI: %s", e)


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None) -> Iterator[Any]:
    """Open a span as the current span. A no-op span when tracing is off."""
    from opentelemetry import trace

    tracer = trace.get_tracer(TRACER_NAME)
    with tracer.start_as_current_span(name) as span:
        if attributes:
            set_span_attributes(attributes)
        yield span


def set_span_attributes(attributes: dict[str, Any]) -> None:
    """Set attributes on the current span, skipping None values."""
    try:
        from opentelemetry import trace

        span = trace.get_current_span()
        if span is not None and span.is_recording():
            for key, value in attributes.items():
                if value is None:
                    continue
                if isinstance(value, list):
                    span.set_attribute(key, ",".join(str(v) for v in value))
                elif isinstance(value, bool | int | float):
                    span.set_attribute(key, value)
                else:
                    span.set_attribute(key, str(value))
    except Exception as e:
        logger.debug("Failed to set span attributes: %s", e)


def get_test_spans() -> list[ReadableSpan]:
    """Return spans captured by the in-memory exporter."""
    if _test_exporter is not None and hasattr(_test_exporter, "get_finished_spans"):
        return list(_test_exporter.get_finished_spans())
    return []


def clear_test_spans() -> None:
    """Clear spans captured by the in-memory exporter."""
    if _test_exporter is not None and hasattr(_test_exporter, "clear"):
        _test_exporter.clear()


def reset_tracing() -> None:
    """Allow reconfiguration in tests.

    The global TracerProvider cannot be replaced once set, so the test
    exporter is kept and only its spans are cleared.
    """
    global _is_configured
    clear_test_spans()
    _is_configured = False
