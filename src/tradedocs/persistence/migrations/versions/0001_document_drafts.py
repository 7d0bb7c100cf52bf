"""Create the document_drafts table.

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Tables created:
- document_drafts: one editable document per (job_id, doc_type)

Timestamps are stored as ISO-8601 text and JSON payloads as text so the
same DDL runs on PostgreSQL and SQLite.
"""

from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS document_drafts (
            id TEXT NOT NULL PRIMARY KEY,
            job_id TEXT NOT NULL,
            doc_type TEXT NOT NULL,
            user_id TEXT NOT NULL,
            data_json TEXT NOT NULL,
            approved BOOLEAN NOT NULL DEFAULT FALSE,
            approved_at TEXT,
            approved_by_user_id TEXT,
            status TEXT NOT NULL DEFAULT 'DRAFT',
            issued_record_id TEXT,
            issued_at TEXT,
            issuer_json TEXT,
            version INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            CONSTRAINT document_drafts_job_doc_type_uq UNIQUE (job_id, doc_type),
            CONSTRAINT document_drafts_status_ck CHECK (status IN ('DRAFT', 'ISSUED'))
        )
        """
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS idx_document_drafts_user ON document_drafts (user_id)"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS document_drafts")
