"""Extension of time prefill."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

from tradedocs.docengine.prefill.common import STATUS_DISPLAY, next_reference
from tradedocs.models.job import JobRecord

DEFAULT_PROGRAMME_DAYS = 14


def map_eot(
    job: JobRecord,
    common: dict[str, Any],
    existing_count: int = 0,
    attachments: list[str] | None = None,
) -> dict[str, Any]:
    """EOT fields.

    The original completion date is estimated as job creation plus two
    weeks; the delay cause and days requested are left for the user.
    """
    original_completion = (job.created_at + timedelta(days=DEFAULT_PROGRAMME_DAYS)).date()
    attachments = attachments or []

    return {
        **common,
        "eot_number": next_reference("EOT", existing_count),
        "eot_date": common["date_issued"],
        "contract_reference": job.id,
        "delay_cause": "",
        "delay_circumstances": "",
        "original_completion_date": original_completion.isoformat(),
        "revised_completion_date": "",
        "days_requested": None,
        "evidence_reference": (
            f"{len(attachments)} attachment(s) attached" if attachments else "None attached"
        ),
        "attachment_list": ", ".join(attachments) if attachments else "None attached",
        "status": STATUS_DISPLAY["DRAFT"],
    }
