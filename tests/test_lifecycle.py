"""Tests for draft approval, issuance and the client-export gate."""

from __future__ import annotations

import re
from datetime import timedelta

import pytest

from tests.fixtures.job_pack import FIXED_NOW, JOB_ID, OWNER_ID, make_business_profile
from tradedocs.docengine.lifecycle import (
    approve_draft,
    generate_issued_record_id,
    issue_draft,
    issuer_from_business,
    require_export_allowed,
    to_base36,
)
from tradedocs.docengine.registry import TemplateRegistry
from tradedocs.docengine.render import generate_render_model
from tradedocs.errors import IssuanceRequiredError, IssuanceValidationError
from tradedocs.models.draft import Audience, DocumentDraft, DocumentStatus
from tradedocs.models.template import DocType


@pytest.fixture
def draft(templates: TemplateRegistry) -> DocumentDraft:
    model = generate_render_model(
        templates.get(DocType.PROGRESS_CLAIM), {"total_incl_gst": 990}, now=FIXED_NOW
    )
    return DocumentDraft(
        id="draft-1",
        job_id=JOB_ID,
        doc_type=DocType.PROGRESS_CLAIM,
        user_id=OWNER_ID,
        data=model,
        created_at=FIXED_NOW,
        updated_at=FIXED_NOW,
    )


class TestIssuedRecordId:
    @pytest.mark.parametrize(
        ("number", "expected"), [(0, "0"), (35, "Z"), (36, "10"), (46655, "ZZZ")]
    )
    def test_base36(self, number: int, expected: str) -> None:
        assert to_base36(number) == expected

    def test_base36_rejects_negative(self) -> None:
        with pytest.raises(ValueError):
            to_base36(-1)

    def test_format(self) -> None:
        record_id = generate_issued_record_id("PROGRESS_CLAIM", FIXED_NOW)
        millis = int(FIXED_NOW.timestamp() * 1000)

        assert re.fullmatch(r"PRO-[0-9A-Z]+-[0-9A-Z]{4}", record_id)
        assert record_id.split("-")[1] == to_base36(millis)


class TestApprove:
    def test_sets_approval_stamp(self, draft: DocumentDraft) -> None:
        approved = approve_draft(draft, OWNER_ID, FIXED_NOW)

        assert approved.approved is True
        assert approved.approved_at == FIXED_NOW
        assert approved.approved_by_user_id == OWNER_ID
        assert approved.status == DocumentStatus.DRAFT
        assert draft.approved is False

    def test_second_approval_keeps_first_stamp(self, draft: DocumentDraft) -> None:
        approved = approve_draft(draft, OWNER_ID, FIXED_NOW)

        again = approve_draft(approved, "someone-else", FIXED_NOW + timedelta(hours=1))

        assert again is approved


class TestIssue:
    def test_issue_snapshots_issuer(self, draft: DocumentDraft) -> None:
        issuer = issuer_from_business(make_business_profile())

        outcome = issue_draft(draft, issuer, now=FIXED_NOW)
        issued = outcome.draft

        assert outcome.already_issued is False
        assert issued.status == DocumentStatus.ISSUED
        assert issued.is_issued is True
        assert issued.issued_at == FIXED_NOW
        assert issued.issuer == issuer
        assert issued.approved is True
        assert issued.approved_at == FIXED_NOW
        assert issued.issued_record_id != draft.data.record_id
        assert issued.issued_record_id.startswith("PRO-")

    def test_issue_keeps_existing_approval_time(self, draft: DocumentDraft) -> None:
        earlier = FIXED_NOW - timedelta(days=1)
        approved = approve_draft(draft, OWNER_ID, earlier)

        issued = issue_draft(
            approved, issuer_from_business(make_business_profile()), now=FIXED_NOW
        ).draft

        assert issued.approved_at == earlier

    def test_missing_abn_blocks_issuance(self, draft: DocumentDraft) -> None:
        issuer = issuer_from_business(make_business_profile(abn=None))

        with pytest.raises(IssuanceValidationError) as exc_info:
            issue_draft(draft, issuer, strict=True, now=FIXED_NOW)

        assert exc_info.value.missing_required == ["ABN"]
        assert exc_info.value.redirect_to == "/settings/business-profile"
        assert draft.status == DocumentStatus.DRAFT

    def test_non_strict_issues_without_abn(self, draft: DocumentDraft) -> None:
        issuer = issuer_from_business(make_business_profile(abn=None))

        outcome = issue_draft(draft, issuer, strict=False, now=FIXED_NOW)

        assert outcome.draft.is_issued is True
        assert outcome.validation.missing_recommended == ["ABN"]

    def test_no_profile_blocks_issuance(self, draft: DocumentDraft) -> None:
        with pytest.raises(IssuanceValidationError) as exc_info:
            issue_draft(draft, issuer_from_business(None), now=FIXED_NOW)

        assert exc_info.value.missing_required == ["Business profile not configured"]

    def test_reissue_returns_existing_issuance(self, draft: DocumentDraft) -> None:
        first = issue_draft(draft, issuer_from_business(make_business_profile()), now=FIXED_NOW)

        second = issue_draft(first.draft, None, now=FIXED_NOW + timedelta(days=2))

        assert second.already_issued is True
        assert second.draft is first.draft
        assert second.draft.issued_record_id == first.draft.issued_record_id


class TestExportGate:
    def test_internal_always_allowed(self, draft: DocumentDraft) -> None:
        require_export_allowed(draft, Audience.INTERNAL)
        require_export_allowed(None, Audience.INTERNAL)

    def test_client_requires_issued(self, draft: DocumentDraft) -> None:
        with pytest.raises(IssuanceRequiredError) as exc_info:
            require_export_allowed(draft, Audience.CLIENT)

        assert exc_info.value.redirect_to == "issue"

    def test_approved_is_not_enough(self, draft: DocumentDraft) -> None:
        with pytest.raises(IssuanceRequiredError):
            require_export_allowed(approve_draft(draft, OWNER_ID, FIXED_NOW), Audience.CLIENT)

    def test_client_allowed_once_issued(self, draft: DocumentDraft) -> None:
        issued = issue_draft(draft, issuer_from_business(make_business_profile()), now=FIXED_NOW)

        require_export_allowed(issued.draft, Audience.CLIENT)
