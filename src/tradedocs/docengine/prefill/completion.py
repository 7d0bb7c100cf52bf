"""Handover / practical completion and maintenance guide prefill."""

from __future__ import annotations

from typing import Any

from tradedocs.docengine.prefill.materials import materials_summary
from tradedocs.models.job import JobRecord

DEFAULT_DEFECTS = "None"
DEFAULT_RECOAT_INTERVAL = "5-7 years (interior)"


def map_handover(job: JobRecord, common: dict[str, Any]) -> dict[str, Any]:
    """Completion is today; summary of works comes from the scope and AI summary."""
    parts = [p for p in (job.ai_scope_of_work, job.ai_summary) if p]
    summary = "\n\n".join(parts) if parts else (job.notes or "")

    return {
        **common,
        "completion_date": common["date_issued"],
        "summary_of_works": summary,
        "defects": DEFAULT_DEFECTS,
        "documents_handed_over": "",
        "keys_returned": "No",
        "manuals_provided": "No",
    }


def map_maintenance(job: JobRecord, common: dict[str, Any]) -> dict[str, Any]:
    """Materials used are prefilled; care instructions are left for the user."""
    return {
        **common,
        "materials_used": materials_summary(job),
        "finishes": "",
        "general_care": "",
        "specific_instructions": "",
        "recoat_interval": DEFAULT_RECOAT_INTERVAL,
        "warranty_info": "",
    }
