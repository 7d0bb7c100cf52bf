"""Collaborator inputs consumed by the document engine.

Jobs, business profiles and the materials ledger are owned by other parts of
the platform; these models describe the subset the engine reads.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MaterialLine(BaseModel):
    """A line of the job materials ledger."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    unit_label: str = "each"
    unit_cost: Decimal | None = None
    quantity: Decimal = Decimal("0")
    markup_percent: Decimal | None = None

    @property
    def base_cost(self) -> Decimal:
        return (self.unit_cost or Decimal("0")) * self.quantity

    @property
    def markup_amount(self) -> Decimal:
        return self.base_cost * (self.markup_percent or Decimal("0")) / Decimal("100")

    @property
    def line_total(self) -> Decimal:
        return self.base_cost + self.markup_amount


class JobRecord(BaseModel):
    """A job as seen by the document engine."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    title: str
    trade_type: str = ""
    property_type: str = ""
    address: str | None = None
    notes: str | None = None
    client_name: str | None = None
    client_email: str | None = None
    client_phone: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    ai_summary: str | None = None
    ai_scope_of_work: str | None = None
    ai_inclusions: str | None = None
    ai_exclusions: str | None = None
    ai_materials: Any = None
    ai_quote: dict[str, Any] | str | None = None
    materials_override_text: str | None = None
    materials_subtotal: Decimal | None = None
    materials_markup_total: Decimal | None = None
    materials_total: Decimal | None = None
    materials: list[MaterialLine] = Field(default_factory=list)
    hazards: list[dict[str, Any]] = Field(default_factory=list)


class BusinessProfile(BaseModel):
    """The live business profile of the job owner."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    business_name: str = ""
    trading_name: str | None = None
    abn: str | None = None
    email: str | None = None
    phone: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    suburb: str | None = None
    state: str | None = None
    postcode: str | None = None
    service_area: str | None = None
    logo_url: str | None = None
    gst_registered: bool = False
    hourly_rate: Decimal | None = None
    bsb: str | None = None
    account_number: str | None = None
    licence_number: str | None = None
    insurance_reference: str | None = None
    verified: bool = False

    def formatted_address(self) -> str:
        parts = [p for p in (self.address_line1, self.address_line2) if p]
        locality = " ".join(p for p in (self.suburb, self.state, self.postcode) if p)
        if locality:
            parts.append(locality)
        return ", ".join(parts) or (self.service_area or "")
