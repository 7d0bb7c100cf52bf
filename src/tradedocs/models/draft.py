"""Persisted document draft and issuer snapshot models."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from tradedocs.models.render_model import RenderModel
from tradedocs.models.template import DocType


class DocumentStatus(StrEnum):
    """Lifecycle status. ISSUED is terminal."""

    DRAFT = "DRAFT"
    ISSUED = "ISSUED"


class Audience(StrEnum):
    """Export audience."""

    INTERNAL = "INTERNAL"
    CLIENT = "CLIENT"


class IssuerProfile(BaseModel):
    """Snapshot of the business's legal identity at the moment of issuance."""

    model_config = ConfigDict(frozen=True)

    legal_name: str = ""
    trading_name: str | None = None
    abn: str | None = None
    email: str | None = None
    phone: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    suburb: str | None = None
    state: str | None = None
    postcode: str | None = None
    logo_url: str | None = None
    licence_number: str | None = None
    insurance_reference: str | None = None
    gst_registered: bool = False

    def formatted_address(self) -> str:
        parts = [p for p in (self.address_line1, self.address_line2) if p]
        locality = " ".join(p for p in (self.suburb, self.state, self.postcode) if p)
        if locality:
            parts.append(locality)
        return ", ".join(parts)


class DocumentDraft(BaseModel):
    """One persisted document per (job_id, doc_type)."""

    model_config = ConfigDict(frozen=True)

    id: str
    job_id: str
    doc_type: DocType
    user_id: str
    data: RenderModel
    approved: bool = False
    approved_at: datetime | None = None
    approved_by_user_id: str | None = None
    status: DocumentStatus = DocumentStatus.DRAFT
    issued_record_id: str | None = None
    issued_at: datetime | None = None
    issuer: IssuerProfile | None = None
    version: int = Field(default=1, ge=1)
    created_at: datetime
    updated_at: datetime

    @property
    def is_issued(self) -> bool:
        return self.status == DocumentStatus.ISSUED
