"""Read-only access to jobs and business profiles.

Jobs, materials and business profiles are owned by the surrounding
application; the document engine only reads them through ``JobSource``.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from tradedocs.models.job import BusinessProfile, JobRecord


@runtime_checkable
class JobSource(Protocol):
    """Structural interface for loading job context."""

    def get_job(self, job_id: str) -> JobRecord | None: ...

    def get_business_profile(self, user_id: str) -> BusinessProfile | None: ...

    def list_attachments(self, job_id: str) -> list[str]: ...


class InMemoryJobSource:
    """Dict-backed job source for development and tests."""

    def __init__(
        self,
        jobs: list[JobRecord] | None = None,
        profiles: list[BusinessProfile] | None = None,
    ) -> None:
        self._jobs: dict[str, JobRecord] = {job.id: job for job in jobs or []}
        self._profiles: dict[str, BusinessProfile] = {p.user_id: p for p in profiles or []}
        self._attachments: dict[str, list[str]] = {}

    def add_job(self, job: JobRecord) -> None:
        self._jobs[job.id] = job

    def add_business_profile(self, profile: BusinessProfile) -> None:
        self._profiles[profile.user_id] = profile

    def add_attachment(self, job_id: str, file_name: str) -> None:
        self._attachments.setdefault(job_id, []).append(file_name)

    def get_job(self, job_id: str) -> JobRecord | None:
        return self._jobs.get(job_id)

    def get_business_profile(self, user_id: str) -> BusinessProfile | None:
        return self._profiles.get(user_id)

    def list_attachments(self, job_id: str) -> list[str]:
        return list(self._attachments.get(job_id, []))
