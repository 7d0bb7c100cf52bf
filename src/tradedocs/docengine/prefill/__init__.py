"""Prefill data mappers, one per document type.

``build_prefill_data`` maps a job and business profile into the flat data
mapping consumed by ``generate_render_model``. It may call the text
generator (SWMS, toolbox talk) and is therefore blocking.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from tradedocs.docengine.prefill.common import map_common
from tradedocs.docengine.prefill.completion import map_handover, map_maintenance
from tradedocs.docengine.prefill.eot import map_eot
from tradedocs.docengine.prefill.invoice import map_invoice
from tradedocs.docengine.prefill.materials import compute_materials_totals, materials_rows
from tradedocs.docengine.prefill.safety import (
    generate_hazards,
    generate_toolbox_talk,
    map_swms,
    map_toolbox_talk,
)
from tradedocs.docengine.prefill.variation import map_variation
from tradedocs.generation.client import TextGenerator
from tradedocs.models.job import BusinessProfile, JobRecord
from tradedocs.models.template import DocType


def build_prefill_data(
    doc_type: DocType,
    job: JobRecord,
    business: BusinessProfile | None,
    *,
    generator: TextGenerator,
    today: date,
    existing_count: int = 0,
    include_materials_markup: bool = False,
    attachments: list[str] | None = None,
) -> dict[str, Any]:
    """Return prefill data for a document type.

    Raises:
        GenerationError: If a generator-backed mapper fails.
    """
    common = map_common(job, business, today)

    match doc_type:
        case DocType.VARIATION:
            return map_variation(job, common, existing_count)
        case DocType.EOT:
            return map_eot(job, common, existing_count, attachments)
        case DocType.PROGRESS_CLAIM | DocType.PAYMENT_CLAIM:
            return map_invoice(job, common, existing_count, include_materials_markup, today)
        case DocType.HANDOVER:
            return map_handover(job, common)
        case DocType.MAINTENANCE:
            data = map_maintenance(job, common)
            data["materials"] = materials_rows(job, include_materials_markup)
            return data
        case DocType.SWMS:
            return map_swms(job, common, generate_hazards(job, generator))
        case DocType.TOOLBOX_TALK:
            return map_toolbox_talk(job, common, generate_toolbox_talk(job, generator))

    raise ValueError(f"Unsupported document type: {doc_type}")


__all__ = [
    "build_prefill_data",
    "compute_materials_totals",
    "map_common",
    "materials_rows",
]
