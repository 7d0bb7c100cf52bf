"""Tests for ownership, plan-tier and verification gates."""

from __future__ import annotations

import pytest

from tests.fixtures.job_pack import OTHER_USER_ID, make_job, make_owner
from tradedocs.docengine.access import (
    has_document_feature_access,
    require_document_access,
    require_job_owner,
    require_verified,
)
from tradedocs.errors import AccessError
from tradedocs.models.user import UserContext


class TestDocumentFeatureAccess:
    @pytest.mark.parametrize(
        ("tier", "status", "expected"),
        [
            ("PRO", "ACTIVE", True),
            ("FREE", "TRIAL", True),
            ("TRIAL", "ACTIVE", True),
            ("PILOT", "ACTIVE", True),
            ("FREE", "ACTIVE", False),
        ],
    )
    def test_plan_matrix(self, tier: str, status: str, expected: bool) -> None:
        user = UserContext(user_id="u", plan_tier=tier, plan_status=status)

        assert has_document_feature_access(user) is expected

    def test_admin_bypasses_plan(self) -> None:
        admin = UserContext(user_id="a", plan_tier="FREE", plan_status="ACTIVE", is_admin=True)

        assert has_document_feature_access(admin) is True

    def test_no_user(self) -> None:
        assert has_document_feature_access(None) is False

    def test_require_raises_plan_required(self) -> None:
        user = UserContext(user_id="u", plan_tier="FREE", plan_status="ACTIVE")

        with pytest.raises(AccessError) as exc_info:
            require_document_access(user)

        assert exc_info.value.code == "PLAN_REQUIRED"


class TestOwnershipAndVerification:
    def test_owner_passes(self) -> None:
        require_job_owner(make_owner(), make_job())

    def test_other_user_forbidden(self) -> None:
        with pytest.raises(AccessError, match="Forbidden") as exc_info:
            require_job_owner(make_owner(user_id=OTHER_USER_ID), make_job())

        assert exc_info.value.code == "FORBIDDEN"

    def test_admin_may_access_any_job(self) -> None:
        require_job_owner(make_owner(user_id=OTHER_USER_ID, is_admin=True), make_job())

    def test_unverified_rejected(self) -> None:
        with pytest.raises(AccessError) as exc_info:
            require_verified(make_owner(verified=False))

        assert exc_info.value.code == "VERIFICATION_REQUIRED"

    def test_admin_skips_verification(self) -> None:
        require_verified(make_owner(verified=False, is_admin=True))
