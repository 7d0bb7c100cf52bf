"""Tests for issuer validation and jurisdiction policies."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from tests.fixtures.job_pack import make_business_profile
from tradedocs.docengine.lifecycle import issuer_from_business
from tradedocs.models.draft import IssuerProfile
from tradedocs.models.template import DocType
from tradedocs.validators.issuer import (
    ISSUER_POLICY_PATH_ENV,
    PROFILE_NOT_CONFIGURED,
    IssuerPolicy,
    load_issuer_policies,
    resolve_policy,
    validate_issuer_for_doc,
)


def _issuer(**overrides: object) -> IssuerProfile:
    issuer = issuer_from_business(make_business_profile())
    assert issuer is not None
    return issuer.model_copy(update=overrides)


class TestPolicies:
    def test_packaged_policies_load(self) -> None:
        policies = load_issuer_policies()

        assert {"default", "AU", "AU-WA"} <= set(policies)
        assert "licence_number" in policies["AU-WA"].recommended
        assert DocType.PROGRESS_CLAIM in policies["AU"].abn_required_doc_types

    @pytest.mark.parametrize(
        ("jurisdiction", "expected"),
        [("AU-WA", "AU-WA"), ("AU-NSW", "AU"), ("AU", "AU"), ("NZ", "default"), ("", "default")],
    )
    def test_resolve_falls_back(self, jurisdiction: str, expected: str) -> None:
        assert resolve_policy(jurisdiction).jurisdiction == expected

    def test_policy_path_from_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "policies.json"
        path.write_text(
            json.dumps({"default": {"required": ["legal_name", "abn"], "recommended": []}}),
            encoding="utf-8",
        )
        monkeypatch.setenv(ISSUER_POLICY_PATH_ENV, str(path))

        policies = load_issuer_policies()

        assert policies["default"].required == ["legal_name", "abn"]

    def test_missing_default_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "policies.json"
        path.write_text(json.dumps({"AU": {"required": ["legal_name"]}}), encoding="utf-8")

        with pytest.raises(ValueError, match="no 'default' entry"):
            load_issuer_policies(path)

    def test_unknown_item_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "policies.json"
        path.write_text(json.dumps({"default": {"required": ["shoe_size"]}}), encoding="utf-8")

        with pytest.raises(ValueError, match="shoe_size"):
            load_issuer_policies(path)


class TestValidateIssuer:
    """validate_issuer_for_doc findings per document type."""

    def test_complete_profile_passes(self) -> None:
        result = validate_issuer_for_doc(
            DocType.PROGRESS_CLAIM, _issuer(), policy=resolve_policy("AU-WA")
        )

        assert result.can_issue is True
        assert result.missing_required == []
        assert result.missing_recommended == []
        assert result.warnings == []

    def test_no_profile_blocks(self) -> None:
        result = validate_issuer_for_doc(DocType.SWMS, None)

        assert result.can_issue is False
        assert result.missing_required == [PROFILE_NOT_CONFIGURED]
        assert len(result.warnings) == 1

    def test_missing_legal_name_blocks_every_type(self) -> None:
        result = validate_issuer_for_doc(DocType.TOOLBOX_TALK, _issuer(legal_name=""))

        assert result.missing_required == ["Business legal name"]

    def test_missing_abn_blocks_invoice_when_strict(self) -> None:
        result = validate_issuer_for_doc(DocType.PROGRESS_CLAIM, _issuer(abn=None), strict=True)

        assert result.can_issue is False
        assert result.missing_required == ["ABN"]

    def test_missing_abn_recommended_when_not_strict(self) -> None:
        result = validate_issuer_for_doc(DocType.PAYMENT_CLAIM, _issuer(abn=""), strict=False)

        assert result.can_issue is True
        assert result.missing_recommended == ["ABN"]
        assert any("strongly recommended" in w for w in result.warnings)

    def test_missing_abn_only_recommended_for_variation(self) -> None:
        result = validate_issuer_for_doc(DocType.VARIATION, _issuer(abn=None))

        assert result.can_issue is True
        assert result.missing_recommended == ["ABN"]

    def test_missing_abn_ignored_for_swms(self) -> None:
        result = validate_issuer_for_doc(DocType.SWMS, _issuer(abn=None))

        assert result.missing_required == []
        assert result.missing_recommended == []

    def test_malformed_abn_warns(self) -> None:
        result = validate_issuer_for_doc(DocType.PROGRESS_CLAIM, _issuer(abn="1234"))

        assert result.can_issue is True
        assert "ABN format appears invalid. Expected 11 digits." in result.warnings

    def test_spaced_abn_is_valid(self) -> None:
        result = validate_issuer_for_doc(DocType.PROGRESS_CLAIM, _issuer(abn="51 824 753 556"))

        assert result.warnings == []

    def test_gst_advisory(self) -> None:
        result = validate_issuer_for_doc(DocType.PROGRESS_CLAIM, _issuer(gst_registered=False))

        assert result.can_issue is True
        assert any("GST" in w for w in result.warnings)

    def test_recommended_items_reported(self) -> None:
        issuer = _issuer(email=None, phone=None, logo_url=None, licence_number=None)

        result = validate_issuer_for_doc(DocType.SWMS, issuer, policy=resolve_policy("AU-WA"))

        assert result.can_issue is True
        assert result.missing_recommended == [
            "Contact details (email or phone)",
            "Business logo",
            "Licence number",
        ]

    def test_custom_policy(self) -> None:
        policy = IssuerPolicy(required=["legal_name", "insurance_reference"])

        result = validate_issuer_for_doc(DocType.SWMS, _issuer(), policy=policy)

        assert result.missing_required == ["Insurance reference"]

    def test_abn_listed_once_when_policy_requires_it(self) -> None:
        policy = IssuerPolicy(
            required=["legal_name", "abn"],
            abn_required_doc_types=[DocType.PROGRESS_CLAIM],
        )

        result = validate_issuer_for_doc(DocType.PROGRESS_CLAIM, _issuer(abn=None), policy=policy)

        assert result.can_issue is False
        assert result.missing_required == ["ABN"]
        assert result.missing_recommended == []
