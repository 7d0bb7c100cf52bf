"""Draft persistence, job access and migration support."""

from tradedocs.persistence.db import (
    DatabaseConfigError,
    begin_conn,
    get_database_url,
    get_engine,
    is_database_configured,
)
from tradedocs.persistence.drafts import (
    DraftRepository,
    InMemoryDraftRepository,
    SqlDraftRepository,
)
from tradedocs.persistence.jobs import InMemoryJobSource, JobSource

__all__ = [
    "DatabaseConfigError",
    "DraftRepository",
    "InMemoryDraftRepository",
    "InMemoryJobSource",
    "JobSource",
    "SqlDraftRepository",
    "begin_conn",
    "get_database_url",
    "get_engine",
    "is_database_configured",
]
