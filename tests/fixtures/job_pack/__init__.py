"""Deterministic job pack fixtures for tradedocs tests."""

from tests.fixtures.job_pack.job_pack_fixture import (
    FIXED_NOW,
    JOB_ID,
    OTHER_USER_ID,
    OWNER_ID,
    make_business_profile,
    make_job,
    make_owner,
)

__all__ = [
    "FIXED_NOW",
    "JOB_ID",
    "OTHER_USER_ID",
    "OWNER_ID",
    "make_business_profile",
    "make_job",
    "make_owner",
]
