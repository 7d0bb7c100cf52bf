"""DocumentService - prefill, save, regenerate, approve, issue and export.

Every operation checks job ownership first. Blocking work (repository I/O,
text generation, PDF/DOCX rendering) runs in a worker thread so no operation
blocks the event loop. A failed prefill or regeneration never touches the
stored draft.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from tradedocs.audit.sink import AuditSink, InMemoryAuditSink
from tradedocs.docengine.access import (
    require_document_access,
    require_job_owner,
    require_verified,
)
from tradedocs.docengine.editor import merge_models
from tradedocs.docengine.lifecycle import (
    IssuanceOutcome,
    approve_draft,
    issue_draft,
    issuer_from_business,
)
from tradedocs.docengine.ovis import recompute_warnings
from tradedocs.docengine.prefill import build_prefill_data
from tradedocs.docengine.registry import TemplateRegistry
from tradedocs.docengine.render import generate_render_model
from tradedocs.errors import DraftNotFoundError, EditorError, IssuanceValidationError, JobNotFoundError
from tradedocs.exporters.export import DocumentExporter, DocumentExportResult, ExportFormat
from tradedocs.generation.client import TextGenerator
from tradedocs.models.draft import Audience, DocumentDraft
from tradedocs.models.job import JobRecord
from tradedocs.models.render_model import RenderModel
from tradedocs.models.template import DocType
from tradedocs.models.user import UserContext
from tradedocs.observability.tracing import set_span_attributes, start_span
from tradedocs.persistence.drafts import DraftRepository
from tradedocs.persistence.jobs import JobSource
from tradedocs.validators.issuer import IssuerPolicy, resolve_policy

logger = logging.getLogger(__name__)


class DocumentService:
    """Document engine operations for one deployment.

    Args:
        jobs: Source of job records and business profiles.
        drafts: Draft repository.
        templates: Loaded template registry.
        generator: Text generator for SWMS hazards and toolbox talks.
        audit_sink: Sink for lifecycle audit events (in-memory if omitted).
        exporter: Renderer (default DocumentExporter).
        issuer_policies: Jurisdiction policy map; the packaged policies if omitted.
        clock: Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        *,
        jobs: JobSource,
        drafts: DraftRepository,
        templates: TemplateRegistry,
        generator: TextGenerator,
        audit_sink: AuditSink | None = None,
        exporter: DocumentExporter | None = None,
        issuer_policies: dict[str, IssuerPolicy] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._jobs = jobs
        self._drafts = drafts
        self._templates = templates
        self._generator = generator
        self._audit_sink: AuditSink = audit_sink or InMemoryAuditSink()
        self._exporter = exporter or DocumentExporter()
        self._issuer_policies = issuer_policies
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def templates(self) -> TemplateRegistry:
        return self._templates

    def _emit_audit_event(
        self,
        event_type: str,
        user: UserContext,
        draft: DocumentDraft,
        details: dict[str, Any] | None = None,
        request_id: str | None = None,
    ) -> None:
        event: dict[str, Any] = {
            "event_id": str(uuid.uuid4()),
            "occurred_at": self._clock().isoformat().replace("+00:00", "Z"),
            "event_type": event_type,
            "resource": {
                "resource_type": "document_draft",
                "resource_id": draft.id,
                "job_id": draft.job_id,
                "doc_type": draft.doc_type.value,
            },
            "actor": {
                "actor_type": "ADMIN" if user.is_admin else "USER",
                "actor_id": user.user_id,
            },
            "request": {"request_id": request_id or str(uuid.uuid4())},
            "summary": f"{event_type} for {draft.doc_type.value} on job {draft.job_id}",
            "payload": {
                "record_id": draft.data.record_id,
                "status": draft.status.value,
                "version": draft.version,
            },
        }
        if details:
            event["payload"]["details"] = details
        try:
            self._audit_sink.emit(event)
        except Exception as e:
            logger.warning("Failed to emit audit event %s: %s", event_type, e)

    async def _load_job(self, user: UserContext, job_id: str) -> JobRecord:
        job = await asyncio.to_thread(self._jobs.get_job, job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        require_job_owner(user, job)
        return job

    async def _require_draft(self, job_id: str, doc_type: DocType) -> DocumentDraft:
        draft = await asyncio.to_thread(self._drafts.get, job_id, doc_type)
        if draft is None:
            raise DraftNotFoundError(job_id, doc_type.value)
        return draft

    def _policy_for(self, jurisdiction: str) -> IssuerPolicy:
        return resolve_policy(jurisdiction, self._issuer_policies)

    async def _build_fresh_model(
        self, job: JobRecord, doc_type: DocType, include_materials_markup: bool
    ) -> RenderModel:
        """Generate a fresh model from the template and live job data. Persists nothing."""
        template = self._templates.get(doc_type)
        business = await asyncio.to_thread(self._jobs.get_business_profile, job.user_id)
        existing_count = await asyncio.to_thread(self._drafts.count_for_job, job.id, doc_type)
        attachments = await asyncio.to_thread(self._jobs.list_attachments, job.id)
        now = self._clock()

        data = await asyncio.to_thread(
            build_prefill_data,
            doc_type,
            job,
            business,
            generator=self._generator,
            today=now.date(),
            existing_count=existing_count,
            include_materials_markup=include_materials_markup,
            attachments=attachments,
        )
        return generate_render_model(
            template, data, include_materials_markup=include_materials_markup, now=now
        )

    async def get_draft(
        self, user: UserContext, job_id: str, doc_type: DocType
    ) -> DocumentDraft | None:
        """Return the stored draft for (job_id, doc_type), or None."""
        await self._load_job(user, job_id)
        return await asyncio.to_thread(self._drafts.get, job_id, doc_type)

    async def prefill(
        self,
        user: UserContext,
        job_id: str,
        doc_type: DocType,
        include_materials_markup: bool = False,
        *,
        request_id: str | None = None,
    ) -> DocumentDraft:
        """Generate a fresh model from job data and persist it as the draft.

        An existing DRAFT row is overwritten (approval cleared). An ISSUED
        draft keeps its issuance fields and status.

        Raises:
            JobNotFoundError: If the job does not exist.
            AccessError: If the caller does not own the job or lacks document access.
            TemplateNotFoundError: If no template is registered for ``doc_type``.
            GenerationError: If text generation fails. Nothing is persisted.
        """
        with start_span("docs.prefill", {"job_id": job_id, "doc_type": str(doc_type)}):
            job = await self._load_job(user, job_id)
            require_document_access(user)

            model = await self._build_fresh_model(job, doc_type, include_materials_markup)
            now = self._clock()
            existing = await asyncio.to_thread(self._drafts.get, job_id, doc_type)

            if existing is not None and existing.is_issued:
                draft = existing.model_copy(update={"data": model, "updated_at": now})
            else:
                draft = DocumentDraft(
                    id=existing.id if existing else str(uuid.uuid4()),
                    job_id=job_id,
                    doc_type=doc_type,
                    user_id=job.user_id,
                    data=model,
                    created_at=existing.created_at if existing else now,
                    updated_at=now,
                )

            stored = await asyncio.to_thread(self._drafts.save, draft)
            set_span_attributes({"record_id": model.record_id, "version": stored.version})

        logger.info(
            "Prefilled %s for job %s (record %s)",
            doc_type,
            job_id,
            model.record_id,
            extra={"job_id": job_id, "doc_type": str(doc_type), "request_id": request_id},
        )
        self._emit_audit_event(
            "document.prefilled",
            user,
            stored,
            {"include_materials_markup": include_materials_markup},
            request_id,
        )
        return stored

    async def load_or_create(
        self,
        user: UserContext,
        job_id: str,
        doc_type: DocType,
        include_materials_markup: bool = False,
    ) -> DocumentDraft:
        """Return the existing draft, prefilling one only if none exists."""
        existing = await self.get_draft(user, job_id, doc_type)
        if existing is not None:
            return existing
        return await self.prefill(user, job_id, doc_type, include_materials_markup)

    async def save_draft(
        self,
        user: UserContext,
        job_id: str,
        doc_type: DocType,
        data: RenderModel,
        approved: bool | None = None,
        expected_version: int | None = None,
        *,
        request_id: str | None = None,
    ) -> DocumentDraft:
        """Full-overwrite save of the editor model.

        ``approved`` can only turn approval on; lifecycle status is never
        changed by a save.

        Raises:
            AccessError: If the business is not verified or the job is not owned.
            ConflictError: If ``expected_version`` is stale.
            EditorError: If the model's doc type does not match ``doc_type``.
        """
        require_verified(user)
        job = await self._load_job(user, job_id)
        if data.doc_type != doc_type:
            raise EditorError(f"Model doc type {data.doc_type} does not match {doc_type}")

        now = self._clock()
        existing = await asyncio.to_thread(self._drafts.get, job_id, doc_type)

        if existing is None:
            draft = DocumentDraft(
                id=str(uuid.uuid4()),
                job_id=job_id,
                doc_type=doc_type,
                user_id=job.user_id,
                data=data,
                created_at=now,
                updated_at=now,
            )
        else:
            draft = existing.model_copy(update={"data": data, "updated_at": now})

        if approved:
            draft = approve_draft(draft, user.user_id, now)

        stored = await asyncio.to_thread(self._drafts.save, draft, expected_version)
        logger.debug("Saved draft %s v%s", stored.id, stored.version)
        self._emit_audit_event("document.saved", user, stored, request_id=request_id)
        return stored

    async def regenerate_and_merge(
        self,
        user: UserContext,
        job_id: str,
        doc_type: DocType,
        current_model: RenderModel | None = None,
        *,
        include_materials_markup: bool | None = None,
        request_id: str | None = None,
    ) -> DocumentDraft:
        """Refresh a draft from job data without overwriting the user's values.

        The fresh model is generated with ``include_materials_markup`` when
        given, otherwise with the current model's markup preference. It is
        never persisted on its own; only the merged result is saved. Cells the
        user filled keep their values, so toggling markup only changes the
        amounts that are still empty.

        Raises:
            DraftNotFoundError: If no model is given and no draft exists.
            GenerationError: If text generation fails. The stored draft is untouched.
        """
        with start_span("docs.regenerate", {"job_id": job_id, "doc_type": str(doc_type)}):
            job = await self._load_job(user, job_id)
            require_document_access(user)

            existing = await asyncio.to_thread(self._drafts.get, job_id, doc_type)
            if current_model is None:
                if existing is None:
                    raise DraftNotFoundError(job_id, doc_type.value)
                current_model = existing.data

            markup = (
                current_model.include_materials_markup
                if include_materials_markup is None
                else include_materials_markup
            )
            fresh = await self._build_fresh_model(job, doc_type, markup)
            template = self._templates.get(doc_type)
            merged = recompute_warnings(template, merge_models(current_model, fresh))

            now = self._clock()
            if existing is None:
                draft = DocumentDraft(
                    id=str(uuid.uuid4()),
                    job_id=job_id,
                    doc_type=doc_type,
                    user_id=job.user_id,
                    data=merged,
                    created_at=now,
                    updated_at=now,
                )
            else:
                draft = existing.model_copy(update={"data": merged, "updated_at": now})

            stored = await asyncio.to_thread(self._drafts.save, draft)
            set_span_attributes({"record_id": merged.record_id, "version": stored.version})

        logger.info("Regenerated and merged %s for job %s", doc_type, job_id)
        self._emit_audit_event("document.regenerated", user, stored, request_id=request_id)
        return stored

    async def approve(
        self,
        user: UserContext,
        job_id: str,
        doc_type: DocType,
        *,
        request_id: str | None = None,
    ) -> DocumentDraft:
        """Mark the draft approved. Idempotent."""
        await self._load_job(user, job_id)
        draft = await self._require_draft(job_id, doc_type)

        approved = approve_draft(draft, user.user_id, self._clock())
        if approved is draft:
            return draft

        stored = await asyncio.to_thread(self._drafts.save, approved)
        self._emit_audit_event("document.approved", user, stored, request_id=request_id)
        return stored

    async def issue(
        self,
        user: UserContext,
        job_id: str,
        doc_type: DocType,
        strict: bool = True,
        *,
        request_id: str | None = None,
    ) -> IssuanceOutcome:
        """Validate the issuer and move the draft to ISSUED.

        Raises:
            DraftNotFoundError: If no draft exists.
            IssuanceValidationError: If required issuer details are missing.
        """
        with start_span("docs.issue", {"job_id": job_id, "doc_type": str(doc_type)}):
            job = await self._load_job(user, job_id)
            draft = await self._require_draft(job_id, doc_type)
            business = await asyncio.to_thread(self._jobs.get_business_profile, job.user_id)
            issuer = issuer_from_business(business)

            try:
                outcome = issue_draft(
                    draft,
                    issuer,
                    strict=strict,
                    policy=self._policy_for(draft.data.jurisdiction),
                    now=self._clock(),
                )
            except IssuanceValidationError as e:
                logger.info(
                    "Issuance blocked for %s on job %s: missing %s",
                    doc_type,
                    job_id,
                    e.missing_required,
                )
                raise

            if outcome.already_issued:
                return outcome

            stored = await asyncio.to_thread(self._drafts.save, outcome.draft)
            set_span_attributes({"issued_record_id": stored.issued_record_id})

        logger.info("Issued %s for job %s as %s", doc_type, job_id, stored.issued_record_id)
        self._emit_audit_event(
            "document.issued",
            user,
            stored,
            {"issued_record_id": stored.issued_record_id, "strict": strict},
            request_id,
        )
        return IssuanceOutcome(draft=stored, validation=outcome.validation)

    async def export(
        self,
        user: UserContext,
        job_id: str,
        doc_type: DocType,
        fmt: ExportFormat,
        audience: Audience = Audience.INTERNAL,
        model: RenderModel | None = None,
        *,
        request_id: str | None = None,
    ) -> DocumentExportResult:
        """Render the document for download or email.

        INTERNAL exports may pass the unsaved editor model; without a stored
        draft it is exported as an unapproved draft.

        Raises:
            AccessError: If the caller lacks document feature access.
            DraftNotFoundError: If there is neither a stored draft nor a model.
            IssuanceRequiredError: If CLIENT is requested before issuance.
        """
        with start_span(
            "docs.export",
            {"job_id": job_id, "doc_type": str(doc_type), "format": str(fmt), "audience": str(audience)},
        ):
            job = await self._load_job(user, job_id)
            require_document_access(user)

            draft = await asyncio.to_thread(self._drafts.get, job_id, doc_type)
            if draft is None:
                if model is None or audience == Audience.CLIENT:
                    raise DraftNotFoundError(job_id, doc_type.value)
                now = self._clock()
                draft = DocumentDraft(
                    id=f"unsaved-{model.record_id}",
                    job_id=job_id,
                    doc_type=doc_type,
                    user_id=job.user_id,
                    data=model,
                    created_at=now,
                    updated_at=now,
                )

            result = await asyncio.to_thread(
                self._exporter.export, draft, fmt, audience=audience, model=model, job=job
            )

        self._emit_audit_event(
            "document.exported",
            user,
            draft,
            {"format": fmt.value, "audience": audience.value, "bytes": result.content_length},
            request_id,
        )
        return result
