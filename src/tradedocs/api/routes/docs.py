"""Document engine routes.

Provides the /v1/docs endpoints: draft fetch and save, prefill, regenerate,
approve, issue and the PDF / DOCX / text renderers.

All routes require an API key and the TRADEDOCS_DOC_ENGINE_ENABLED flag
(default on). Domain errors propagate to the DocEngineError handler.
"""

from __future__ import annotations

import os

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import BaseModel

from tradedocs.api.auth import RequireUserContext
from tradedocs.api.errors import ApiHttpError
from tradedocs.docengine.service import DocumentService
from tradedocs.exporters.export import DocumentExportResult, ExportFormat
from tradedocs.models.draft import Audience, DocumentDraft, IssuerProfile
from tradedocs.models.render_model import RenderModel
from tradedocs.models.template import DocType

DOC_ENGINE_ENABLED_ENV = "TRADEDOCS_DOC_ENGINE_ENABLED"


def is_doc_engine_enabled() -> bool:
    val = os.environ.get(DOC_ENGINE_ENABLED_ENV, "1").strip().lower()
    return val not in ("0", "false", "no", "off")


def require_doc_engine_enabled() -> None:
    """Router dependency that rejects every docs call when the engine is switched off."""
    if not is_doc_engine_enabled():
        raise ApiHttpError(
            status_code=403,
            code="DOC_ENGINE_DISABLED",
            message="Document engine is not enabled",
        )


router = APIRouter(
    prefix="/v1/docs",
    tags=["Docs"],
    dependencies=[Depends(require_doc_engine_enabled)],
)


class DocTarget(BaseModel):
    """Identifies one draft: a job and a document type."""

    job_id: str
    doc_type: DocType


class PrefillRequest(DocTarget):
    include_materials_markup: bool = False


class SaveDraftRequest(DocTarget):
    data: RenderModel
    approved: bool | None = None
    expected_version: int | None = None


class RegenerateRequest(DocTarget):
    current_model: RenderModel | None = None
    include_materials_markup: bool | None = None


class IssueRequest(DocTarget):
    strict: bool = True


class RenderRequest(DocTarget):
    """Export request. ``render_model`` is the unsaved editor model (INTERNAL only)."""

    render_model: RenderModel | None = None
    audience: Audience = Audience.INTERNAL


class RenderTextRequest(RenderRequest):
    as_email: bool = False


class DraftEnvelope(BaseModel):
    draft: DocumentDraft | None


class PrefillResponse(BaseModel):
    model: RenderModel
    draft: DocumentDraft


class SaveDraftResponse(BaseModel):
    ok: bool
    draft: DocumentDraft


class IssueResponse(BaseModel):
    draft: DocumentDraft
    issuer: IssuerProfile | None
    already_issued: bool
    missing_recommended: list[str]
    warnings: list[str]


class DocTypesResponse(BaseModel):
    doc_types: list[DocType]


class TextRenderResponse(BaseModel):
    record_id: str
    audience: Audience
    subject: str | None = None
    body: str
    includes_disclaimer: bool


def _service(request: Request) -> DocumentService:
    service: DocumentService = request.app.state.doc_service
    return service


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _file_response(result: DocumentExportResult) -> Response:
    return Response(
        content=result.content_bytes,
        media_type=result.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{result.filename}"',
            "X-Record-Id": result.record_id,
        },
    )


@router.get("/types", response_model=DocTypesResponse)
def list_doc_types(request: Request, user: RequireUserContext) -> DocTypesResponse:
    """List document types with a deployed template."""
    return DocTypesResponse(doc_types=_service(request).templates.available_doc_types())


@router.get("/draft", response_model=DraftEnvelope)
async def get_draft(
    request: Request,
    user: RequireUserContext,
    job_id: str = Query(...),
    doc_type: DocType = Query(...),
) -> DraftEnvelope:
    """Fetch the stored draft; ``{"draft": null}`` when none exists."""
    draft = await _service(request).get_draft(user, job_id, doc_type)
    return DraftEnvelope(draft=draft)


@router.post("/prefill", response_model=PrefillResponse)
async def prefill(
    body: PrefillRequest, request: Request, user: RequireUserContext
) -> PrefillResponse:
    """Generate a fresh model from template and job data and persist it."""
    draft = await _service(request).prefill(
        user,
        body.job_id,
        body.doc_type,
        body.include_materials_markup,
        request_id=_request_id(request),
    )
    return PrefillResponse(model=draft.data, draft=draft)


@router.post("/draft", response_model=SaveDraftResponse)
async def save_draft(
    body: SaveDraftRequest, request: Request, user: RequireUserContext
) -> SaveDraftResponse:
    """Full-overwrite save of the editor model."""
    draft = await _service(request).save_draft(
        user,
        body.job_id,
        body.doc_type,
        body.data,
        approved=body.approved,
        expected_version=body.expected_version,
        request_id=_request_id(request),
    )
    return SaveDraftResponse(ok=True, draft=draft)


@router.post("/regenerate", response_model=DraftEnvelope)
async def regenerate(
    body: RegenerateRequest, request: Request, user: RequireUserContext
) -> DraftEnvelope:
    """Refresh the draft from job data, keeping the user's values."""
    draft = await _service(request).regenerate_and_merge(
        user,
        body.job_id,
        body.doc_type,
        current_model=body.current_model,
        include_materials_markup=body.include_materials_markup,
        request_id=_request_id(request),
    )
    return DraftEnvelope(draft=draft)


@router.post("/approve", response_model=DraftEnvelope)
async def approve(body: DocTarget, request: Request, user: RequireUserContext) -> DraftEnvelope:
    draft = await _service(request).approve(
        user, body.job_id, body.doc_type, request_id=_request_id(request)
    )
    return DraftEnvelope(draft=draft)


@router.post("/issue", response_model=IssueResponse)
async def issue(body: IssueRequest, request: Request, user: RequireUserContext) -> IssueResponse:
    """Issue the draft. Incomplete issuer details return 400 ISSUER_VALIDATION_FAILED."""
    outcome = await _service(request).issue(
        user, body.job_id, body.doc_type, body.strict, request_id=_request_id(request)
    )
    return IssueResponse(
        draft=outcome.draft,
        issuer=outcome.draft.issuer,
        already_issued=outcome.already_issued,
        missing_recommended=outcome.validation.missing_recommended,
        warnings=outcome.validation.warnings,
    )


async def _export(
    body: RenderRequest, request: Request, user: RequireUserContext, fmt: ExportFormat
) -> DocumentExportResult:
    return await _service(request).export(
        user,
        body.job_id,
        body.doc_type,
        fmt,
        audience=body.audience,
        model=body.render_model,
        request_id=_request_id(request),
    )


@router.post("/render")
async def render_pdf(body: RenderRequest, request: Request, user: RequireUserContext) -> Response:
    """Render the document as PDF bytes."""
    return _file_response(await _export(body, request, user, ExportFormat.PDF))


@router.post("/render-word")
async def render_word(body: RenderRequest, request: Request, user: RequireUserContext) -> Response:
    """Render the document as DOCX bytes."""
    return _file_response(await _export(body, request, user, ExportFormat.DOCX))


@router.post("/render-text", response_model=TextRenderResponse)
async def render_text(
    body: RenderTextRequest, request: Request, user: RequireUserContext
) -> TextRenderResponse:
    """Render the document as plain text, or as an email subject and body."""
    fmt = ExportFormat.EMAIL if body.as_email else ExportFormat.TEXT
    result = await _export(body, request, user, fmt)
    return TextRenderResponse(
        record_id=result.record_id,
        audience=result.audience,
        subject=result.subject,
        body=result.content_bytes.decode("utf-8"),
        includes_disclaimer=result.includes_disclaimer,
    )
