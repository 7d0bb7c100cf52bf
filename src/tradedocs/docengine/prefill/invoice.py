"""Progress claim / tax invoice and payment claim prefill.

Line items come from the job's pricing snapshot (labour and materials as
two rows). The materials amount excludes markup unless the caller asks for
it. Due date defaults to the issue date plus seven days.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

from tradedocs.docengine.prefill.common import next_reference
from tradedocs.docengine.prefill.materials import compute_materials_totals, materials_rows
from tradedocs.models.job import JobRecord

logger = logging.getLogger(__name__)

DUE_DAYS = 7
DEFAULT_PAYMENT_TERMS = "Payment due within 14 days"


@dataclass(frozen=True)
class PricingSnapshot:
    labour_subtotal: Decimal | None = None
    materials_amount: Decimal | None = None
    subtotal: Decimal | None = None
    gst_amount: Decimal | None = None
    total_incl_gst: Decimal | None = None


def _decimal(value: Any) -> Decimal | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _first(quote: dict[str, Any], *keys: str) -> Decimal | None:
    estimate = quote.get("totalEstimate") or quote.get("total_estimate") or {}
    for key in keys:
        for source in (estimate, quote):
            if isinstance(source, dict) and (value := _decimal(source.get(key))):
                return value
    return None


def parse_pricing(job: JobRecord, include_markup: bool) -> PricingSnapshot:
    """Extract pricing from the AI quote, falling back to the job materials totals."""
    if job.materials and job.materials_subtotal is None:
        totals = compute_materials_totals(job.materials)
        subtotal, total = totals.subtotal, totals.total
    else:
        subtotal, total = job.materials_subtotal, job.materials_total

    fallback_materials = total if include_markup else subtotal

    quote = job.ai_quote
    if isinstance(quote, str):
        try:
            quote = json.loads(quote)
        except json.JSONDecodeError:
            logger.warning("Unparseable AI quote for job %s; using materials totals", job.id)
            quote = None

    if not isinstance(quote, dict):
        return PricingSnapshot(materials_amount=fallback_materials)

    quote_materials = _first(quote, "materialsTotal", "materials_total")
    if include_markup:
        materials_amount = quote_materials or total
    else:
        materials_amount = subtotal if subtotal is not None else quote_materials

    return PricingSnapshot(
        labour_subtotal=_first(quote, "labourSubtotal", "labour_subtotal"),
        materials_amount=materials_amount,
        subtotal=_first(quote, "subtotal"),
        gst_amount=_first(quote, "gstAmount", "gst_amount"),
        total_incl_gst=_first(quote, "totalJobEstimate", "totalInclGst", "total"),
    )


def _line(description: str, amount: Decimal | None) -> dict[str, Any]:
    return {"description": description, "quantity": None, "unit": "Item", "rate": None, "amount": amount}


def map_invoice(
    job: JobRecord,
    common: dict[str, Any],
    existing_count: int = 0,
    include_markup: bool = False,
    today: date | None = None,
) -> dict[str, Any]:
    """Invoice / progress claim fields, line items and materials schedule."""
    issue_date = today or date.fromisoformat(common["date_issued"])
    pricing = parse_pricing(job, include_markup)

    line_items = []
    if pricing.labour_subtotal and pricing.labour_subtotal > 0:
        line_items.append(_line("Labour", pricing.labour_subtotal))
    if pricing.materials_amount and pricing.materials_amount > 0:
        line_items.append(_line("Materials", pricing.materials_amount))
    if not line_items:
        line_items.append({"description": "", "quantity": None, "unit": "", "rate": None, "amount": None})

    return {
        **common,
        "invoice_number": next_reference("INV", existing_count, width=4),
        "claim_number": next_reference("PC", existing_count),
        "issue_date": issue_date.isoformat(),
        "due_date": (issue_date + timedelta(days=DUE_DAYS)).isoformat(),
        "claim_period": "",
        "line_items": line_items,
        "materials": materials_rows(job, include_markup),
        "subtotal": pricing.subtotal,
        "gst_amount": pricing.gst_amount,
        "total_incl_gst": pricing.total_incl_gst,
        "payment_terms": DEFAULT_PAYMENT_TERMS,
    }
