"""Tests for DocumentService.

Covers:
1. Prefill persistence, audit events and access gates
2. Save: verification gate, doc type check, optimistic versioning, approval
3. Regenerate-and-merge keeps user edits and refills cleared values
4. Failed generation never touches the stored draft
5. Issuance gate and idempotent re-issue
6. Export gate and formats
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from tests.fixtures.job_pack import (
    FIXED_NOW,
    JOB_ID,
    OTHER_USER_ID,
    make_business_profile,
    make_owner,
)
from tradedocs.audit.sink import AuditSinkError, InMemoryAuditSink
from tradedocs.docengine.editor import mutate_field, mutate_table_cell
from tradedocs.docengine.registry import TemplateRegistry
from tradedocs.docengine.render import generate_render_model
from tradedocs.docengine.service import DocumentService
from tradedocs.errors import (
    AccessError,
    ConflictError,
    DraftNotFoundError,
    EditorError,
    GenerationError,
    IssuanceRequiredError,
    IssuanceValidationError,
    JobNotFoundError,
)
from tradedocs.exporters.export import ExportFormat
from tradedocs.models.draft import Audience, DocumentStatus
from tradedocs.models.render_model import RenderModel
from tradedocs.models.template import DocType
from tradedocs.models.user import UserContext
from tradedocs.persistence.drafts import InMemoryDraftRepository
from tradedocs.persistence.jobs import InMemoryJobSource

PC = DocType.PROGRESS_CLAIM


class FailingGenerator:
    def call(self, prompt: str, *, json_mode: bool = False) -> str:
        raise RuntimeError("rate limited")


class BrokenAuditSink:
    def emit(self, event: dict[str, Any]) -> None:
        raise AuditSinkError("disk full")


def _value(model: RenderModel, section_id: str, field_id: str) -> Any:
    return model.section(section_id).field(field_id).value


def _blank_model(templates: TemplateRegistry) -> RenderModel:
    return generate_render_model(templates.get(PC), {}, now=FIXED_NOW)


class TestPrefill:
    def test_creates_first_version(
        self, service: DocumentService, owner: UserContext, audit_sink: InMemoryAuditSink
    ) -> None:
        draft = asyncio.run(service.prefill(owner, JOB_ID, PC, request_id="req-1"))

        assert draft.version == 1
        assert draft.status == DocumentStatus.DRAFT
        assert draft.approved is False
        assert draft.created_at == FIXED_NOW
        assert _value(draft.data, "totals", "total_incl_gst") == "$6,138.00"

        assert audit_sink.event_types() == ["document.prefilled"]
        event = audit_sink.events[0]
        assert event["resource"]["resource_id"] == draft.id
        assert event["resource"]["doc_type"] == "PROGRESS_CLAIM"
        assert event["actor"] == {"actor_type": "USER", "actor_id": owner.user_id}
        assert event["request"]["request_id"] == "req-1"
        assert event["payload"]["record_id"] == draft.data.record_id
        assert event["payload"]["details"] == {"include_materials_markup": False}

    def test_markup_preference_recorded(
        self, service: DocumentService, owner: UserContext
    ) -> None:
        draft = asyncio.run(service.prefill(owner, JOB_ID, PC, include_materials_markup=True))

        assert draft.data.include_materials_markup is True
        assert draft.data.section("line_items").table.rows[1]["amount"] == "$1,380.00"

    def test_re_prefill_overwrites_and_clears_approval(
        self, service: DocumentService, owner: UserContext
    ) -> None:
        first = asyncio.run(service.prefill(owner, JOB_ID, PC))
        asyncio.run(service.approve(owner, JOB_ID, PC))

        second = asyncio.run(service.prefill(owner, JOB_ID, PC))

        assert second.id == first.id
        assert second.version == 3
        assert second.approved is False
        assert second.data.record_id != first.data.record_id

    def test_re_prefill_keeps_issuance(self, service: DocumentService, owner: UserContext) -> None:
        asyncio.run(service.prefill(owner, JOB_ID, PC))
        issued = asyncio.run(service.issue(owner, JOB_ID, PC)).draft

        refreshed = asyncio.run(service.prefill(owner, JOB_ID, PC))

        assert refreshed.status == DocumentStatus.ISSUED
        assert refreshed.issued_record_id == issued.issued_record_id
        assert refreshed.issuer == issued.issuer

    def test_unknown_job(self, service: DocumentService, owner: UserContext) -> None:
        with pytest.raises(JobNotFoundError):
            asyncio.run(service.prefill(owner, "job-missing", PC))

    def test_other_users_job_forbidden(
        self, service: DocumentService, drafts: InMemoryDraftRepository
    ) -> None:
        with pytest.raises(AccessError, match="Forbidden"):
            asyncio.run(service.prefill(make_owner(user_id=OTHER_USER_ID), JOB_ID, PC))

        assert drafts.get(JOB_ID, PC) is None

    def test_free_plan_rejected(
        self, service: DocumentService, drafts: InMemoryDraftRepository
    ) -> None:
        free = make_owner(plan_tier="FREE", plan_status="ACTIVE")

        with pytest.raises(AccessError) as exc_info:
            asyncio.run(service.prefill(free, JOB_ID, PC))

        assert exc_info.value.code == "PLAN_REQUIRED"
        assert drafts.get(JOB_ID, PC) is None

    def test_generation_failure_persists_nothing(
        self,
        job_source: InMemoryJobSource,
        drafts: InMemoryDraftRepository,
        templates: TemplateRegistry,
        owner: UserContext,
    ) -> None:
        failing = DocumentService(
            jobs=job_source, drafts=drafts, templates=templates, generator=FailingGenerator()
        )

        with pytest.raises(GenerationError):
            asyncio.run(failing.prefill(owner, JOB_ID, DocType.SWMS))

        assert drafts.get(JOB_ID, DocType.SWMS) is None

    def test_load_or_create_reuses_existing(
        self, service: DocumentService, owner: UserContext
    ) -> None:
        created = asyncio.run(service.load_or_create(owner, JOB_ID, PC))
        loaded = asyncio.run(service.load_or_create(owner, JOB_ID, PC))

        assert loaded == created
        assert loaded.version == 1


class TestSaveDraft:
    def test_save_increments_version(self, service: DocumentService, owner: UserContext) -> None:
        draft = asyncio.run(service.prefill(owner, JOB_ID, PC))
        edited = mutate_field(draft.data, "details", "claim_period", "1-31 March")

        saved = asyncio.run(
            service.save_draft(owner, JOB_ID, PC, edited, expected_version=draft.version)
        )

        assert saved.version == 2
        assert _value(saved.data, "details", "claim_period") == "1-31 March"

    def test_save_without_existing_draft_creates_one(
        self, service: DocumentService, owner: UserContext, templates: TemplateRegistry
    ) -> None:
        saved = asyncio.run(service.save_draft(owner, JOB_ID, PC, _blank_model(templates)))

        assert saved.version == 1
        assert saved.doc_type == PC

    def test_stale_version_conflicts(self, service: DocumentService, owner: UserContext) -> None:
        draft = asyncio.run(service.prefill(owner, JOB_ID, PC))
        asyncio.run(service.save_draft(owner, JOB_ID, PC, draft.data))

        with pytest.raises(ConflictError) as exc_info:
            asyncio.run(service.save_draft(owner, JOB_ID, PC, draft.data, expected_version=1))

        assert (exc_info.value.expected_version, exc_info.value.actual_version) == (1, 2)

    def test_unverified_business_rejected(
        self, service: DocumentService, owner: UserContext
    ) -> None:
        draft = asyncio.run(service.prefill(owner, JOB_ID, PC))

        with pytest.raises(AccessError) as exc_info:
            asyncio.run(
                service.save_draft(make_owner(verified=False), JOB_ID, PC, draft.data)
            )

        assert exc_info.value.code == "VERIFICATION_REQUIRED"

    def test_doc_type_mismatch_rejected(
        self, service: DocumentService, owner: UserContext
    ) -> None:
        variation = asyncio.run(service.prefill(owner, JOB_ID, DocType.VARIATION))

        with pytest.raises(EditorError):
            asyncio.run(service.save_draft(owner, JOB_ID, PC, variation.data))

    def test_approval_only_turns_on(self, service: DocumentService, owner: UserContext) -> None:
        draft = asyncio.run(service.prefill(owner, JOB_ID, PC))

        approved = asyncio.run(service.save_draft(owner, JOB_ID, PC, draft.data, approved=True))
        still_approved = asyncio.run(
            service.save_draft(owner, JOB_ID, PC, draft.data, approved=False)
        )

        assert approved.approved is True
        assert approved.approved_by_user_id == owner.user_id
        assert still_approved.approved is True
        assert still_approved.approved_at == approved.approved_at

    def test_save_never_changes_status(
        self, service: DocumentService, owner: UserContext
    ) -> None:
        asyncio.run(service.prefill(owner, JOB_ID, PC))
        issued = asyncio.run(service.issue(owner, JOB_ID, PC)).draft
        edited = mutate_field(issued.data, "details", "claim_period", "April")

        saved = asyncio.run(service.save_draft(owner, JOB_ID, PC, edited))

        assert saved.status == DocumentStatus.ISSUED
        assert saved.issued_record_id == issued.issued_record_id


class TestRegenerate:
    def test_keeps_edits_and_refills_cleared_values(
        self,
        service: DocumentService,
        owner: UserContext,
        job_source: InMemoryJobSource,
        audit_sink: InMemoryAuditSink,
    ) -> None:
        draft = asyncio.run(service.prefill(owner, JOB_ID, PC))
        model = mutate_field(draft.data, "client", "client_name", "Sam & Alex Client")
        model = mutate_field(model, "contractor", "company_email", None)
        model = mutate_field(model, "payment", "company_bsb", "")
        asyncio.run(service.save_draft(owner, JOB_ID, PC, model))

        job_source.add_business_profile(make_business_profile(email="accounts@coastline.example"))
        regenerated = asyncio.run(service.regenerate_and_merge(owner, JOB_ID, PC))

        assert _value(regenerated.data, "client", "client_name") == "Sam & Alex Client"
        assert _value(regenerated.data, "contractor", "company_email") == "accounts@coastline.example"
        assert _value(regenerated.data, "payment", "company_bsb") == "066-000"
        assert regenerated.data.record_id == draft.data.record_id
        assert regenerated.version == 3
        assert audit_sink.event_types()[-1] == "document.regenerated"

    def test_warnings_recomputed_after_merge(
        self, service: DocumentService, owner: UserContext, job_source: InMemoryJobSource
    ) -> None:
        draft = asyncio.run(service.prefill(owner, JOB_ID, PC))
        job_source.add_business_profile(make_business_profile(bsb=None))
        model = mutate_field(draft.data, "payment", "company_bsb", None)

        regenerated = asyncio.run(
            service.regenerate_and_merge(owner, JOB_ID, PC, current_model=model)
        )

        assert [w.id for w in regenerated.data.ovis_warnings] == ["bank_details_missing"]

    def test_uses_unsaved_editor_model(self, service: DocumentService, owner: UserContext) -> None:
        draft = asyncio.run(service.prefill(owner, JOB_ID, PC))
        unsaved = mutate_field(draft.data, "details", "claim_period", "Stage 2")

        regenerated = asyncio.run(
            service.regenerate_and_merge(owner, JOB_ID, PC, current_model=unsaved)
        )

        assert _value(regenerated.data, "details", "claim_period") == "Stage 2"

    def test_keeps_markup_preference(self, service: DocumentService, owner: UserContext) -> None:
        asyncio.run(service.prefill(owner, JOB_ID, PC, include_materials_markup=True))

        regenerated = asyncio.run(service.regenerate_and_merge(owner, JOB_ID, PC))

        assert regenerated.data.include_materials_markup is True

    def test_markup_toggle_fills_only_empty_amounts(
        self, service: DocumentService, owner: UserContext
    ) -> None:
        draft = asyncio.run(service.prefill(owner, JOB_ID, PC))
        model = mutate_table_cell(draft.data, "materials", 0, "unit_cost", None)
        model = mutate_table_cell(model, "materials", 0, "line_total", "")
        model = mutate_table_cell(model, "materials", 1, "unit_cost", "$14.00")
        asyncio.run(service.save_draft(owner, JOB_ID, PC, model))

        regenerated = asyncio.run(
            service.regenerate_and_merge(owner, JOB_ID, PC, include_materials_markup=True)
        )

        rows = regenerated.data.section("materials").table.rows
        assert regenerated.data.include_materials_markup is True
        assert rows[0]["unit_cost"] == "$226.80"
        assert rows[0]["line_total"] == "$907.20"
        assert rows[1]["unit_cost"] == "$14.00"
        assert rows[1]["line_total"] == "$25.00"

    def test_markup_override_can_switch_markup_off(
        self, service: DocumentService, owner: UserContext
    ) -> None:
        asyncio.run(service.prefill(owner, JOB_ID, PC, include_materials_markup=True))

        regenerated = asyncio.run(
            service.regenerate_and_merge(owner, JOB_ID, PC, include_materials_markup=False)
        )

        assert regenerated.data.include_materials_markup is False

    def test_without_draft_or_model(self, service: DocumentService, owner: UserContext) -> None:
        with pytest.raises(DraftNotFoundError):
            asyncio.run(service.regenerate_and_merge(owner, JOB_ID, PC))

    def test_generation_failure_leaves_draft_untouched(
        self,
        service: DocumentService,
        job_source: InMemoryJobSource,
        drafts: InMemoryDraftRepository,
        templates: TemplateRegistry,
        owner: UserContext,
    ) -> None:
        stored = asyncio.run(service.prefill(owner, JOB_ID, DocType.SWMS))
        failing = DocumentService(
            jobs=job_source, drafts=drafts, templates=templates, generator=FailingGenerator()
        )

        with pytest.raises(GenerationError):
            asyncio.run(failing.regenerate_and_merge(owner, JOB_ID, DocType.SWMS))

        assert drafts.get(JOB_ID, DocType.SWMS) == stored


class TestApproveAndIssue:
    def test_approve_is_idempotent(
        self, service: DocumentService, owner: UserContext, audit_sink: InMemoryAuditSink
    ) -> None:
        asyncio.run(service.prefill(owner, JOB_ID, PC))

        first = asyncio.run(service.approve(owner, JOB_ID, PC))
        second = asyncio.run(service.approve(owner, JOB_ID, PC))

        assert first.approved is True
        assert second.version == first.version
        assert audit_sink.event_types().count("document.approved") == 1

    def test_approve_without_draft(self, service: DocumentService, owner: UserContext) -> None:
        with pytest.raises(DraftNotFoundError):
            asyncio.run(service.approve(owner, JOB_ID, PC))

    def test_issue(
        self, service: DocumentService, owner: UserContext, audit_sink: InMemoryAuditSink
    ) -> None:
        asyncio.run(service.prefill(owner, JOB_ID, PC))

        outcome = asyncio.run(service.issue(owner, JOB_ID, PC))

        assert outcome.draft.status == DocumentStatus.ISSUED
        assert outcome.draft.issuer.legal_name == "Coastline Painting Pty Ltd"
        assert outcome.draft.issued_at == FIXED_NOW
        assert outcome.validation.can_issue is True
        assert audit_sink.event_types()[-1] == "document.issued"
        assert audit_sink.events[-1]["payload"]["details"]["issued_record_id"] == (
            outcome.draft.issued_record_id
        )

    def test_issue_blocked_without_abn(
        self,
        service: DocumentService,
        owner: UserContext,
        job_source: InMemoryJobSource,
        drafts: InMemoryDraftRepository,
    ) -> None:
        asyncio.run(service.prefill(owner, JOB_ID, PC))
        job_source.add_business_profile(make_business_profile(abn=None))

        with pytest.raises(IssuanceValidationError) as exc_info:
            asyncio.run(service.issue(owner, JOB_ID, PC, strict=True))

        assert exc_info.value.missing_required == ["ABN"]
        assert drafts.get(JOB_ID, PC).status == DocumentStatus.DRAFT

    def test_issue_non_strict_without_abn(
        self, service: DocumentService, owner: UserContext, job_source: InMemoryJobSource
    ) -> None:
        asyncio.run(service.prefill(owner, JOB_ID, PC))
        job_source.add_business_profile(make_business_profile(abn=None))

        outcome = asyncio.run(service.issue(owner, JOB_ID, PC, strict=False))

        assert outcome.draft.is_issued is True
        assert "ABN" in outcome.validation.missing_recommended

    def test_reissue_is_idempotent(self, service: DocumentService, owner: UserContext) -> None:
        asyncio.run(service.prefill(owner, JOB_ID, PC))
        first = asyncio.run(service.issue(owner, JOB_ID, PC))

        second = asyncio.run(service.issue(owner, JOB_ID, PC))

        assert second.already_issued is True
        assert second.draft.issued_record_id == first.draft.issued_record_id
        assert second.draft.version == first.draft.version

    def test_issue_without_draft(self, service: DocumentService, owner: UserContext) -> None:
        with pytest.raises(DraftNotFoundError):
            asyncio.run(service.issue(owner, JOB_ID, PC))


class TestExport:
    def test_internal_pdf_before_issuance(
        self, service: DocumentService, owner: UserContext, audit_sink: InMemoryAuditSink
    ) -> None:
        draft = asyncio.run(service.prefill(owner, JOB_ID, PC))

        result = asyncio.run(service.export(owner, JOB_ID, PC, ExportFormat.PDF))

        assert result.content_bytes.startswith(b"%PDF")
        assert result.media_type == "application/pdf"
        assert result.filename == f"progress_claim-{draft.data.record_id}.pdf"
        assert result.includes_disclaimer is True
        assert audit_sink.events[-1]["payload"]["details"]["format"] == "pdf"

    def test_client_export_requires_issuance(
        self, service: DocumentService, owner: UserContext
    ) -> None:
        asyncio.run(service.prefill(owner, JOB_ID, PC))
        asyncio.run(service.approve(owner, JOB_ID, PC))

        with pytest.raises(IssuanceRequiredError):
            asyncio.run(
                service.export(owner, JOB_ID, PC, ExportFormat.PDF, audience=Audience.CLIENT)
            )

    def test_client_docx_after_issuance(self, service: DocumentService, owner: UserContext) -> None:
        asyncio.run(service.prefill(owner, JOB_ID, PC))
        issued = asyncio.run(service.issue(owner, JOB_ID, PC)).draft

        result = asyncio.run(
            service.export(owner, JOB_ID, PC, ExportFormat.DOCX, audience=Audience.CLIENT)
        )

        assert result.content_bytes.startswith(b"PK")
        assert result.record_id == issued.issued_record_id
        assert result.includes_disclaimer is False

    def test_client_export_ignores_unsaved_model(
        self, service: DocumentService, owner: UserContext
    ) -> None:
        asyncio.run(service.prefill(owner, JOB_ID, PC))
        issued = asyncio.run(service.issue(owner, JOB_ID, PC)).draft
        unsaved = mutate_field(issued.data, "client", "client_name", "Someone Else")

        result = asyncio.run(
            service.export(
                owner, JOB_ID, PC, ExportFormat.TEXT, audience=Audience.CLIENT, model=unsaved
            )
        )
        text = result.content_bytes.decode("utf-8")

        assert "Client name: Sam Client" in text
        assert "Someone Else" not in text

    def test_email(self, service: DocumentService, owner: UserContext) -> None:
        asyncio.run(service.prefill(owner, JOB_ID, PC))

        result = asyncio.run(service.export(owner, JOB_ID, PC, ExportFormat.EMAIL))

        assert result.subject == "Progress Claim / Tax Invoice - Repaint weatherboard house"
        assert result.content_bytes.decode("utf-8").startswith("Hi Sam Client,")

    def test_internal_export_of_unsaved_model(
        self,
        service: DocumentService,
        owner: UserContext,
        drafts: InMemoryDraftRepository,
        templates: TemplateRegistry,
    ) -> None:
        model = _blank_model(templates)

        result = asyncio.run(service.export(owner, JOB_ID, PC, ExportFormat.TEXT, model=model))

        assert result.record_id == model.record_id
        assert drafts.get(JOB_ID, PC) is None

    def test_no_draft_no_model(self, service: DocumentService, owner: UserContext) -> None:
        with pytest.raises(DraftNotFoundError):
            asyncio.run(service.export(owner, JOB_ID, PC, ExportFormat.PDF))

    def test_free_plan_rejected(self, service: DocumentService, owner: UserContext) -> None:
        asyncio.run(service.prefill(owner, JOB_ID, PC))
        free = make_owner(plan_tier="FREE", plan_status="ACTIVE")

        with pytest.raises(AccessError):
            asyncio.run(service.export(free, JOB_ID, PC, ExportFormat.PDF))


class TestAuditFailures:
    def test_broken_sink_does_not_fail_operation(
        self,
        job_source: InMemoryJobSource,
        drafts: InMemoryDraftRepository,
        templates: TemplateRegistry,
        owner: UserContext,
    ) -> None:
        service = DocumentService(
            jobs=job_source,
            drafts=drafts,
            templates=templates,
            generator=FailingGenerator(),
            audit_sink=BrokenAuditSink(),
        )

        draft = asyncio.run(service.prefill(owner, JOB_ID, PC))

        assert drafts.get(JOB_ID, PC) == draft
