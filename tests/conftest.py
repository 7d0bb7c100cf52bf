"""Pytest configuration and fixtures for tradedocs tests.

Provides a painting job with a complete WA business profile, in-memory
collaborators and a DocumentService with a fixed clock.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from tests.fixtures.job_pack import (
    FIXED_NOW,
    make_business_profile,
    make_job,
    make_owner,
)
from tradedocs.api.auth import TRADEDOCS_API_KEYS_ENV
from tradedocs.api.routes.docs import DOC_ENGINE_ENABLED_ENV
from tradedocs.audit.sink import AUDIT_LOG_PATH_ENV, InMemoryAuditSink
from tradedocs.docengine.autosave import AUTOSAVE_DEBOUNCE_MS_ENV
from tradedocs.docengine.registry import DEFAULT_TEMPLATES_DIR, TEMPLATES_DIR_ENV, TemplateRegistry
from tradedocs.docengine.service import DocumentService
from tradedocs.generation import GENERATION_BACKEND_ENV
from tradedocs.generation.client import DeterministicTextGenerator
from tradedocs.models.job import BusinessProfile, JobRecord
from tradedocs.models.user import UserContext
from tradedocs.observability.tracing import OTEL_ENABLED_ENV
from tradedocs.persistence.db import TRADEDOCS_DATABASE_URL_ENV, reset_engine
from tradedocs.persistence.drafts import InMemoryDraftRepository
from tradedocs.persistence.jobs import InMemoryJobSource
from tradedocs.validators.issuer import ISSUER_POLICY_PATH_ENV


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    """Clear tradedocs configuration so no test depends on the host environment."""
    for name in (
        TRADEDOCS_DATABASE_URL_ENV,
        TEMPLATES_DIR_ENV,
        GENERATION_BACKEND_ENV,
        OTEL_ENABLED_ENV,
        DOC_ENGINE_ENABLED_ENV,
        TRADEDOCS_API_KEYS_ENV,
        ISSUER_POLICY_PATH_ENV,
        AUTOSAVE_DEBOUNCE_MS_ENV,
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv(AUDIT_LOG_PATH_ENV, str(tmp_path / "audit" / "events.jsonl"))
    yield
    reset_engine()


@pytest.fixture
def owner() -> UserContext:
    return make_owner()


@pytest.fixture
def business_profile() -> BusinessProfile:
    return make_business_profile()


@pytest.fixture
def job() -> JobRecord:
    return make_job()


@pytest.fixture
def job_source(job: JobRecord, business_profile: BusinessProfile) -> InMemoryJobSource:
    return InMemoryJobSource(jobs=[job], profiles=[business_profile])


@pytest.fixture
def drafts() -> InMemoryDraftRepository:
    return InMemoryDraftRepository()


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture(scope="session")
def templates() -> TemplateRegistry:
    return TemplateRegistry(DEFAULT_TEMPLATES_DIR).load()


@pytest.fixture
def service(
    job_source: InMemoryJobSource,
    drafts: InMemoryDraftRepository,
    templates: TemplateRegistry,
    audit_sink: InMemoryAuditSink,
) -> DocumentService:
    return DocumentService(
        jobs=job_source,
        drafts=drafts,
        templates=templates,
        generator=DeterministicTextGenerator(),
        audit_sink=audit_sink,
        clock=lambda: FIXED_NOW,
    )
