"""Alembic environment for tradedocs migrations.

Migrations are run programmatically through
:func:`tradedocs.persistence.migrate.run_upgrade`, which passes an open
connection in ``config.attributes["connection"]``. Without one, the engine is
built from TRADEDOCS_DATABASE_URL.
"""

from __future__ import annotations

import logging

from alembic import context

from tradedocs.persistence.db import get_database_url, get_engine

logger = logging.getLogger(__name__)

target_metadata = None


def run_migrations_offline() -> None:
    """Emit SQL for the configured URL without connecting."""
    context.configure(
        url=get_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations against a live connection."""
    connection = context.config.attributes.get("connection")
    if connection is not None:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()
        return

    with get_engine().connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
