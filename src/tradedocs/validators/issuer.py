"""Issuer profile validation for document issuance.

Decides whether the business profile is complete enough to issue a given
document type. Which items are required or recommended is a policy keyed by
jurisdiction, loaded from ``issuer_policies.json`` (or the file named by
TRADEDOCS_ISSUER_POLICY_PATH). Lookup falls back from ``AU-WA`` to ``AU`` to
``default``.
"""

from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tradedocs.models.draft import IssuerProfile
from tradedocs.models.template import DocType

logger = logging.getLogger(__name__)

ISSUER_POLICY_PATH_ENV = "TRADEDOCS_ISSUER_POLICY_PATH"
DEFAULT_POLICY_PATH = Path(__file__).parent / "issuer_policies.json"
DEFAULT_JURISDICTION = "default"

PROFILE_NOT_CONFIGURED = "Business profile not configured"

ITEM_LABELS: dict[str, str] = {
    "legal_name": "Business legal name",
    "abn": "ABN",
    "contact": "Contact details (email or phone)",
    "address": "Business address",
    "logo": "Business logo",
    "licence_number": "Licence number",
    "insurance_reference": "Insurance reference",
}

_ABN_PATTERN = re.compile(r"^\d{11}$")


def _has(value: str | None) -> bool:
    return bool(value and value.strip())


ITEM_CHECKS: dict[str, Callable[[IssuerProfile], bool]] = {
    "legal_name": lambda p: _has(p.legal_name),
    "abn": lambda p: _has(p.abn),
    "contact": lambda p: _has(p.email) or _has(p.phone),
    "address": lambda p: _has(p.address_line1) or _has(p.suburb),
    "logo": lambda p: _has(p.logo_url),
    "licence_number": lambda p: _has(p.licence_number),
    "insurance_reference": lambda p: _has(p.insurance_reference),
}


class IssuerPolicy(BaseModel):
    """Required/recommended issuer items for one jurisdiction."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    jurisdiction: str = DEFAULT_JURISDICTION
    required: list[str] = Field(default_factory=lambda: ["legal_name"])
    recommended: list[str] = Field(default_factory=list)
    abn_required_doc_types: list[DocType] = Field(default_factory=list)
    abn_recommended_doc_types: list[DocType] = Field(default_factory=list)
    gst_advisory_doc_types: list[DocType] = Field(default_factory=list)


@dataclass
class IssuerValidationResult:
    """Outcome of issuer validation. ``can_issue`` is False when anything required is missing."""

    missing_required: list[str] = field(default_factory=list)
    missing_recommended: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.missing_required

    @property
    def can_issue(self) -> bool:
        return self.is_valid


def load_issuer_policies(path: Path | str | None = None) -> dict[str, IssuerPolicy]:
    """Load jurisdiction policies from JSON.

    Raises:
        ValueError: If the file has no ``default`` policy or an unknown item key.
    """
    if path is None:
        path = os.environ.get(ISSUER_POLICY_PATH_ENV) or DEFAULT_POLICY_PATH

    with open(path, encoding="utf-8") as f:
        raw = json.load(f)

    policies: dict[str, IssuerPolicy] = {}
    for jurisdiction, body in raw.items():
        policy = IssuerPolicy.model_validate({**body, "jurisdiction": jurisdiction})
        unknown = [i for i in (*policy.required, *policy.recommended) if i not in ITEM_CHECKS]
        if unknown:
            raise ValueError(f"Unknown issuer policy items for {jurisdiction}: {unknown}")
        policies[jurisdiction] = policy

    if DEFAULT_JURISDICTION not in policies:
        raise ValueError(f"Issuer policy file {path} has no '{DEFAULT_JURISDICTION}' entry")

    return policies


@lru_cache(maxsize=1)
def _packaged_policies() -> dict[str, IssuerPolicy]:
    return load_issuer_policies()


def resolve_policy(
    jurisdiction: str, policies: dict[str, IssuerPolicy] | None = None
) -> IssuerPolicy:
    """Find the policy for a jurisdiction, falling back to its parent and then the default."""
    if policies is None:
        policies = _packaged_policies()

    candidate = jurisdiction
    while candidate:
        if candidate in policies:
            return policies[candidate]
        candidate = candidate.rpartition("-")[0]

    return policies[DEFAULT_JURISDICTION]


def validate_issuer_for_doc(
    doc_type: DocType,
    issuer: IssuerProfile | None,
    *,
    strict: bool = True,
    policy: IssuerPolicy | None = None,
) -> IssuerValidationResult:
    """Validate an issuer profile for a document type.

    Args:
        doc_type: Document type being issued.
        issuer: Issuer snapshot built from the business profile, or None.
        strict: When True, ABN blocks issuance for ABN-required doc types;
            when False it is only recommended (with a warning).
        policy: Jurisdiction policy; defaults to the packaged ``default``.

    Returns:
        IssuerValidationResult with itemised findings.
    """
    if policy is None:
        policy = resolve_policy(DEFAULT_JURISDICTION)

    if issuer is None:
        return IssuerValidationResult(
            missing_required=[PROFILE_NOT_CONFIGURED],
            warnings=["Please complete your business profile in Settings before issuing documents."],
        )

    result = IssuerValidationResult()

    for item in policy.required:
        if not ITEM_CHECKS[item](issuer):
            result.missing_required.append(ITEM_LABELS[item])

    # A policy that always requires ABN has already listed it above.
    abn_listed = "abn" in policy.required
    abn_required = not abn_listed and doc_type in policy.abn_required_doc_types
    abn_recommended = not abn_listed and doc_type in policy.abn_recommended_doc_types

    if not _has(issuer.abn):
        if abn_required and strict:
            result.missing_required.append(ITEM_LABELS["abn"])
        elif abn_required:
            result.missing_recommended.append(ITEM_LABELS["abn"])
            result.warnings.append(
                "ABN is strongly recommended for tax invoices. Without it, the document "
                "may not be legally valid for tax purposes."
            )
        elif abn_recommended:
            result.missing_recommended.append(ITEM_LABELS["abn"])
    elif not _ABN_PATTERN.match(re.sub(r"\s", "", issuer.abn or "")):
        result.warnings.append("ABN format appears invalid. Expected 11 digits.")

    for item in policy.recommended:
        if item in policy.required:
            continue
        if not ITEM_CHECKS[item](issuer):
            result.missing_recommended.append(ITEM_LABELS[item])

    if doc_type in policy.gst_advisory_doc_types and _has(issuer.abn) and not issuer.gst_registered:
        result.warnings.append(
            "If registered for GST, ensure your profile indicates GST registration."
        )

    logger.debug(
        "Issuer validation for %s (%s): required=%s recommended=%s",
        doc_type,
        policy.jurisdiction,
        result.missing_required,
        result.missing_recommended,
    )

    return result
