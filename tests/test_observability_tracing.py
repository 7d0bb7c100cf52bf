"""Tests for tradedocs OpenTelemetry tracing.

- Tracing OFF by default, ON via TRADEDOCS_OTEL_ENABLED=1
- Service operations emit spans carrying ids only
- Everything works with tracing disabled
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator

import pytest
from opentelemetry import trace

from tests.fixtures.job_pack import JOB_ID
from tradedocs.docengine.service import DocumentService
from tradedocs.models.template import DocType
from tradedocs.models.user import UserContext
from tradedocs.observability.tracing import (
    OTEL_ENABLED_ENV,
    OTEL_SERVICE_NAME_ENV,
    OTEL_TEST_CAPTURE_ENV,
    configure_tracing,
    get_test_spans,
    reset_tracing,
    set_span_attributes,
    start_span,
)


@pytest.fixture(autouse=True)
def reset_tracing_state() -> Iterator[None]:
    """Reset tracing state before and after each test."""
    reset_tracing()
    yield
    reset_tracing()


@pytest.fixture
def capture(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(OTEL_ENABLED_ENV, "1")
    monkeypatch.setenv(OTEL_TEST_CAPTURE_ENV, "1")
    assert configure_tracing() is True


class TestTracingConfiguration:
    """Tests for tracing configuration behavior."""

    def test_tracing_disabled_by_default(self) -> None:
        """Tracing should be OFF when TRADEDOCS_OTEL_ENABLED is not set."""
        assert configure_tracing() is False
        assert get_test_spans() == []

    def test_tracing_idempotent(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """configure_tracing() should be idempotent."""
        monkeypatch.setenv(OTEL_ENABLED_ENV, "1")
        monkeypatch.setenv(OTEL_TEST_CAPTURE_ENV, "1")
        monkeypatch.setenv(OTEL_SERVICE_NAME_ENV, "tradedocs-test")

        assert configure_tracing() is True
        assert configure_tracing() is True


class TestSpanAttributes:
    def test_set_span_attributes_helper(self, capture: None) -> None:
        """set_span_attributes joins lists and skips None values."""
        tracer = trace.get_tracer("test")

        with tracer.start_as_current_span("test-span") as span:
            set_span_attributes(
                {
                    "job_id": JOB_ID,
                    "doc_types": ["SWMS", "VARIATION"],
                    "version": 3,
                    "issued_record_id": None,
                }
            )
            attrs = dict(span.attributes) if span.attributes else {}

        assert attrs == {"job_id": JOB_ID, "doc_types": "SWMS,VARIATION", "version": 3}

    def test_start_span_records_attributes(self, capture: None) -> None:
        with start_span("docs.test", {"doc_type": "SWMS"}):
            pass

        span = get_test_spans()[-1]
        assert span.name == "docs.test"
        assert span.attributes["doc_type"] == "SWMS"


class TestServiceSpans:
    def test_prefill_span(
        self, capture: None, service: DocumentService, owner: UserContext
    ) -> None:
        draft = asyncio.run(service.prefill(owner, JOB_ID, DocType.PROGRESS_CLAIM))

        spans = {s.name: s for s in get_test_spans()}
        attrs = spans["docs.prefill"].attributes
        assert attrs["job_id"] == JOB_ID
        assert attrs["doc_type"] == "PROGRESS_CLAIM"
        assert attrs["record_id"] == draft.data.record_id
        assert attrs["version"] == 1

    def test_issue_span(self, capture: None, service: DocumentService, owner: UserContext) -> None:
        asyncio.run(service.prefill(owner, JOB_ID, DocType.PROGRESS_CLAIM))
        outcome = asyncio.run(service.issue(owner, JOB_ID, DocType.PROGRESS_CLAIM))

        spans = {s.name: s for s in get_test_spans()}
        assert spans["docs.issue"].attributes["issued_record_id"] == (
            outcome.draft.issued_record_id
        )


class TestTracingDisabled:
    def test_service_works_without_tracing(
        self, service: DocumentService, owner: UserContext
    ) -> None:
        configure_tracing()

        draft = asyncio.run(service.prefill(owner, JOB_ID, DocType.SWMS))

        assert draft.version == 1
