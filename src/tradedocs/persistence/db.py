"""Database connectivity for draft persistence.

Environment Variables:
    TRADEDOCS_DATABASE_URL: SQLAlchemy connection string. When unset the
        service falls back to the in-memory draft repository.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Generator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from sqlalchemy import create_engine

if TYPE_CHECKING:
    from sqlalchemy import Connection, Engine

logger = logging.getLogger(__name__)

TRADEDOCS_DATABASE_URL_ENV = "TRADEDOCS_DATABASE_URL"

_engine: Engine | None = None


class DatabaseConfigError(Exception):
    """Raised when database configuration is missing or invalid."""

    pass


def is_database_configured() -> bool:
    """Return True if TRADEDOCS_DATABASE_URL is set."""
    return bool(os.environ.get(TRADEDOCS_DATABASE_URL_ENV))


def _normalise_url(url: str) -> str:
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def get_database_url() -> str:
    """Get the database URL from the environment.

    Raises:
        DatabaseConfigError: If TRADEDOCS_DATABASE_URL is not set.
    """
    url = os.environ.get(TRADEDOCS_DATABASE_URL_ENV)
    if not url:
        raise DatabaseConfigError(
            f"Database URL not configured. Set {TRADEDOCS_DATABASE_URL_ENV} environment variable."
        )
    return _normalise_url(url)


def get_engine() -> Engine:
    """Get or create the process-wide engine.

    Raises:
        DatabaseConfigError: If TRADEDOCS_DATABASE_URL is not set.
    """
    global _engine

    if _engine is None:
        url = get_database_url()
        if url.startswith("sqlite"):
            _engine = create_engine(url, echo=False)
        else:
            _engine = create_engine(
                url,
                pool_size=5,
                max_overflow=10,
                pool_pre_ping=True,
                echo=False,
            )
        logger.info("Created database engine")

    return _engine


@contextmanager
def begin_conn() -> Generator[Connection, None, None]:
    """Yield a connection inside a transaction that commits on success."""
    engine = get_engine()
    with engine.connect() as conn, conn.begin():
        yield conn


def reset_engine() -> None:
    """Dispose the cached engine. Used by tests."""
    global _engine
    if _engine is not None:
        _engine.dispose()
        _engine = None
