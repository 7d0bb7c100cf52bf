"""Variation / change order prefill."""

from __future__ import annotations

from typing import Any

from tradedocs.docengine.prefill.common import STATUS_DISPLAY, next_reference
from tradedocs.models.job import JobRecord

TBC = "TBC"


def _original_scope_reference(job: JobRecord) -> str:
    parts = []
    if job.ai_scope_of_work:
        parts.append(f"Scope: {job.ai_scope_of_work}")
    if job.ai_inclusions:
        parts.append(f"Inclusions: {job.ai_inclusions}")
    if job.ai_exclusions:
        parts.append(f"Exclusions: {job.ai_exclusions}")
    return "\n\n".join(parts)


def map_variation(job: JobRecord, common: dict[str, Any], existing_count: int = 0) -> dict[str, Any]:
    """Variation fields. Description and reason are left for the user; impacts show TBC."""
    return {
        **common,
        "variation_number": next_reference("VAR", existing_count),
        "variation_date": common["date_issued"],
        "contract_reference": job.id,
        "original_scope_reference": _original_scope_reference(job),
        "variation_description": "",
        "variation_reason": "",
        "cost_impact": TBC,
        "time_impact": TBC,
        "status": STATUS_DISPLAY["DRAFT"],
    }
