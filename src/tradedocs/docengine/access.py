"""Ownership, plan-tier and verification gates for document operations."""

from __future__ import annotations

from tradedocs.errors import AccessError
from tradedocs.models.job import JobRecord
from tradedocs.models.user import UserContext

DOCUMENT_ACCESS_MESSAGE = (
    "A paid plan or pilot program membership is required to download PDFs and "
    "email documents. Free users can create job packs only."
)
VERIFICATION_REQUIRED_MESSAGE = (
    "Business verification is required before creating document drafts."
)


def has_document_feature_access(user: UserContext | None) -> bool:
    """Admins, trial/pilot users and any non-FREE plan get document features."""
    if user is None:
        return False
    if user.is_admin:
        return True
    if user.plan_status == "TRIAL" or user.plan_tier == "TRIAL":
        return True
    return user.plan_tier != "FREE"


def require_document_access(user: UserContext) -> None:
    """Raise AccessError unless the user may use document features."""
    if not has_document_feature_access(user):
        raise AccessError(DOCUMENT_ACCESS_MESSAGE, code="PLAN_REQUIRED")


def require_job_owner(user: UserContext, job: JobRecord) -> None:
    """Raise AccessError unless the user owns the job or is an admin."""
    if job.user_id != user.user_id and not user.is_admin:
        raise AccessError("Forbidden")


def require_verified(user: UserContext) -> None:
    """Raise AccessError unless the user's business is verified."""
    if not (user.verified or user.is_admin):
        raise AccessError(VERIFICATION_REQUIRED_MESSAGE, code="VERIFICATION_REQUIRED")
