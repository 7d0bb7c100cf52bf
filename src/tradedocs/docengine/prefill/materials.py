"""Materials ledger rows and totals.

Client-facing documents exclude markup by default: unit costs are the raw
ledger cost. With markup included, each line's markup percentage is folded
into its unit cost and line total.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from tradedocs.models.job import JobRecord, MaterialLine

_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class MaterialsTotals:
    """Ledger totals: subtotal excludes markup, total includes it."""

    subtotal: Decimal
    markup_total: Decimal
    total: Decimal


def compute_materials_totals(lines: list[MaterialLine]) -> MaterialsTotals:
    subtotal = sum((line.base_cost for line in lines), Decimal("0"))
    markup = sum((line.markup_amount for line in lines), Decimal("0"))
    return MaterialsTotals(
        subtotal=subtotal.quantize(_CENTS),
        markup_total=markup.quantize(_CENTS),
        total=(subtotal + markup).quantize(_CENTS),
    )


def material_row(line: MaterialLine, include_markup: bool) -> dict[str, Any]:
    unit_cost = line.unit_cost
    line_total = line.base_cost
    if include_markup:
        factor = Decimal("1") + (line.markup_percent or Decimal("0")) / Decimal("100")
        unit_cost = unit_cost * factor if unit_cost is not None else None
        line_total = line.line_total

    return {
        "item": line.name,
        "unit": line.unit_label,
        "quantity": line.quantity,
        "unit_cost": unit_cost.quantize(_CENTS) if unit_cost is not None else None,
        "line_total": line_total.quantize(_CENTS),
    }


def materials_rows(job: JobRecord, include_markup: bool) -> list[dict[str, Any]]:
    """Ledger lines as table rows keyed by the materials table column ids."""
    return [material_row(line, include_markup) for line in job.materials]


def _material_name(item: Any) -> str:
    if isinstance(item, dict):
        return str(item.get("item") or item.get("name") or "")
    return str(item)


def materials_summary(job: JobRecord) -> str:
    """Human-readable list of materials used: override text, then ledger, then AI list."""
    if job.materials_override_text:
        return job.materials_override_text
    if job.materials:
        return ", ".join(line.name for line in job.materials)

    materials = job.ai_materials
    if isinstance(materials, str):
        try:
            materials = json.loads(materials)
        except json.JSONDecodeError:
            return materials
    if isinstance(materials, list):
        return ", ".join(name for name in (_material_name(m) for m in materials) if name)
    return str(materials) if materials else ""
