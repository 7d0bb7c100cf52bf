"""Common prefill fields shared by every document type.

Company, client and job details plus the issue date.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from tradedocs.models.job import BusinessProfile, JobRecord


def map_common(job: JobRecord, business: BusinessProfile | None, today: date) -> dict[str, Any]:
    """Map job and business profile data into the common prefill keys."""
    profile = business or BusinessProfile(user_id=job.user_id)

    return {
        "company_legal_name": profile.business_name,
        "company_trading_name": profile.trading_name or "",
        "company_abn": profile.abn or "",
        "company_address": profile.formatted_address(),
        "company_email": profile.email or "",
        "company_phone": profile.phone or "",
        "company_bsb": profile.bsb or "",
        "company_account_number": profile.account_number or "",
        "company_licence_number": profile.licence_number or "",
        "company_insurance_reference": profile.insurance_reference or "",
        "company_hourly_rate": profile.hourly_rate,
        "client_name": job.client_name or "",
        "client_email": job.client_email or "",
        "client_phone": job.client_phone or "",
        "client_billing_address": job.address or "",
        "job_id": job.id,
        "job_title": job.title,
        "site_address": job.address or "",
        "job_summary": job.ai_summary or job.notes or "",
        "trade_type": job.trade_type,
        "property_type": job.property_type,
        "date_issued": today.isoformat(),
    }


def next_reference(prefix: str, existing_count: int, width: int = 3) -> str:
    """Sequential document reference, e.g. ``VAR-001`` or ``INV-0001``."""
    return f"{prefix}-{existing_count + 1:0{width}d}"


STATUS_DISPLAY = {
    "DRAFT": "Draft",
    "PENDING_APPROVAL": "Pending Approval",
    "APPROVED": "Approved",
    "REJECTED": "Rejected",
}
