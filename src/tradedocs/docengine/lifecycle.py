"""Draft lifecycle: approval, issuance and the client-export gate.

DRAFT -> (approved) -> ISSUED. Issuance is one-way: an ISSUED draft never
returns to DRAFT and re-issuing returns the existing issuance unchanged.
"""

from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass
from datetime import UTC, datetime

from tradedocs.errors import IssuanceRequiredError, IssuanceValidationError
from tradedocs.models.draft import Audience, DocumentDraft, DocumentStatus, IssuerProfile
from tradedocs.models.job import BusinessProfile
from tradedocs.validators.issuer import (
    IssuerPolicy,
    IssuerValidationResult,
    resolve_policy,
    validate_issuer_for_doc,
)

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_uppercase


def to_base36(number: int) -> str:
    """Encode a non-negative integer in upper-case base 36."""
    if number < 0:
        raise ValueError("number must be non-negative")
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_issued_record_id(doc_type: str, now: datetime | None = None) -> str:
    """Return ``<first 3 letters of doc type>-<base36 epoch millis>-<4 chars>``."""
    now = now or datetime.now(UTC)
    millis = int(now.timestamp() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(4))
    return f"{doc_type[:3].upper()}-{to_base36(millis)}-{suffix}"


def issuer_from_business(business: BusinessProfile | None) -> IssuerProfile | None:
    """Snapshot the issuer identity from the live business profile."""
    if business is None:
        return None
    return IssuerProfile(
        legal_name=business.business_name,
        trading_name=business.trading_name,
        abn=business.abn,
        email=business.email,
        phone=business.phone,
        address_line1=business.address_line1,
        address_line2=business.address_line2,
        suburb=business.suburb,
        state=business.state,
        postcode=business.postcode,
        logo_url=business.logo_url,
        licence_number=business.licence_number,
        insurance_reference=business.insurance_reference,
        gst_registered=business.gst_registered,
    )


@dataclass
class IssuanceOutcome:
    """Result of an issue attempt that passed the gate."""

    draft: DocumentDraft
    validation: IssuerValidationResult
    already_issued: bool = False


def approve_draft(draft: DocumentDraft, user_id: str, now: datetime | None = None) -> DocumentDraft:
    """Mark a draft approved. Approving twice keeps the original approval stamp."""
    if draft.approved and draft.approved_at is not None:
        return draft
    now = now or datetime.now(UTC)
    return draft.model_copy(
        update={
            "approved": True,
            "approved_at": now,
            "approved_by_user_id": user_id,
            "updated_at": now,
        }
    )


def issue_draft(
    draft: DocumentDraft,
    issuer: IssuerProfile | None,
    *,
    strict: bool = True,
    policy: IssuerPolicy | None = None,
    now: datetime | None = None,
) -> IssuanceOutcome:
    """Validate the issuer and move a draft to ISSUED.

    Args:
        draft: Draft to issue.
        issuer: Snapshot of the business identity, or None if no profile exists.
        strict: Whether a missing ABN blocks ABN-required document types.
        policy: Issuer policy; resolved from the model's jurisdiction when omitted.
        now: Issue time (defaults to the current UTC time).

    Returns:
        IssuanceOutcome with the issued draft and the validation findings.

    Raises:
        IssuanceValidationError: If any required issuer item is missing. The
            draft is not modified.
    """
    if policy is None:
        policy = resolve_policy(draft.data.jurisdiction)

    if draft.is_issued:
        validation = validate_issuer_for_doc(draft.doc_type, draft.issuer, strict=False, policy=policy)
        logger.info(
            "Draft %s already issued as %s; returning existing issuance",
            draft.id,
            draft.issued_record_id,
        )
        return IssuanceOutcome(draft=draft, validation=validation, already_issued=True)

    validation = validate_issuer_for_doc(draft.doc_type, issuer, strict=strict, policy=policy)
    if not validation.can_issue:
        raise IssuanceValidationError(
            validation.missing_required,
            validation.missing_recommended,
            validation.warnings,
        )

    now = now or datetime.now(UTC)
    issued_record_id = generate_issued_record_id(draft.doc_type.value, now)
    while issued_record_id == draft.data.record_id:
        issued_record_id = generate_issued_record_id(draft.doc_type.value, now)

    issued = draft.model_copy(
        update={
            "status": DocumentStatus.ISSUED,
            "issued_record_id": issued_record_id,
            "issued_at": now,
            "issuer": issuer,
            "approved": True,
            "approved_at": draft.approved_at or now,
            "updated_at": now,
        }
    )
    return IssuanceOutcome(draft=issued, validation=validation)


def require_export_allowed(draft: DocumentDraft | None, audience: Audience) -> None:
    """Enforce the client-export gate.

    Raises:
        IssuanceRequiredError: If a CLIENT export is requested for a draft that
            has not been issued.
    """
    if audience == Audience.CLIENT and (draft is None or draft.status != DocumentStatus.ISSUED):
        raise IssuanceRequiredError()
