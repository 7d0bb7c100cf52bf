"""FastAPI application factory.

This module provides the create_app() factory for bootstrapping the document
engine API.
"""

import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException

from tradedocs import __version__
from tradedocs.api.errors import (
    ApiHttpError,
    api_http_error_handler,
    doc_engine_error_handler,
    generic_exception_handler,
    http_exception_handler,
    request_validation_error_handler,
)
from tradedocs.api.middleware.request_id import RequestIdMiddleware
from tradedocs.api.routes.docs import router as docs_router
from tradedocs.api.routes.health import router as health_router
from tradedocs.audit.sink import AuditSink, get_audit_sink
from tradedocs.docengine.registry import TemplateRegistry
from tradedocs.docengine.service import DocumentService
from tradedocs.errors import DocEngineError
from tradedocs.generation import build_text_generator
from tradedocs.generation.client import TextGenerator
from tradedocs.observability.tracing import configure_tracing, instrument_fastapi
from tradedocs.persistence.db import get_engine, is_database_configured
from tradedocs.persistence.drafts import (
    DraftRepository,
    InMemoryDraftRepository,
    SqlDraftRepository,
)
from tradedocs.persistence.jobs import InMemoryJobSource, JobSource

logger = logging.getLogger(__name__)


def _default_drafts() -> DraftRepository:
    if is_database_configured():
        return SqlDraftRepository(get_engine())
    logger.warning("TRADEDOCS_DATABASE_URL not set; drafts are kept in memory")
    return InMemoryDraftRepository()


def create_app(
    service: DocumentService | None = None,
    jobs: JobSource | None = None,
    drafts: DraftRepository | None = None,
    templates: TemplateRegistry | None = None,
    generator: TextGenerator | None = None,
    audit_sink: AuditSink | None = None,
) -> FastAPI:
    """Create and configure the document engine application.

    This factory:
    - Builds the DocumentService from the given collaborators (or defaults)
    - Loads and validates every template once, failing startup on a bad file
    - Registers the request id middleware and the exception handlers
    - Mounts the health router (no auth) and the /v1/docs router (auth required)

    Args:
        service: Fully built service; when given, the other collaborators are ignored.
        jobs: Job and business profile source (in-memory if omitted).
        drafts: Draft repository; SQL when TRADEDOCS_DATABASE_URL is set, else in-memory.
        templates: Template registry (packaged templates if omitted).
        generator: Text generator (TRADEDOCS_GENERATION_BACKEND if omitted).
        audit_sink: Audit sink (JSONL file if omitted).

    Returns:
        Configured FastAPI application instance.
    """
    if service is None:
        service = DocumentService(
            jobs=jobs or InMemoryJobSource(),
            drafts=drafts or _default_drafts(),
            templates=(templates or TemplateRegistry()).load(),
            generator=generator or build_text_generator(),
            audit_sink=audit_sink or get_audit_sink(),
        )

    app = FastAPI(
        title="Tradedocs API",
        description="Job pack document generation and lifecycle engine",
        version=__version__,
    )

    app.state.doc_service = service
    app.state.template_registry = service.templates

    configure_tracing()

    app.add_middleware(RequestIdMiddleware)

    instrument_fastapi(app)

    app.add_exception_handler(ApiHttpError, api_http_error_handler)
    app.add_exception_handler(DocEngineError, doc_engine_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(health_router)
    app.include_router(docs_router)

    return app
