"""Document draft repositories.

One draft per (job_id, doc_type). Every save increments ``version``; a save
that passes ``expected_version`` fails with ConflictError when the stored
version differs. Without it the save is last-write-wins.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from sqlalchemy import text

from tradedocs.errors import ConflictError
from tradedocs.models.draft import DocumentDraft, IssuerProfile
from tradedocs.models.render_model import RenderModel
from tradedocs.models.template import DocType

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


@runtime_checkable
class DraftRepository(Protocol):
    """Structural interface for draft storage backends."""

    def get(self, job_id: str, doc_type: DocType) -> DocumentDraft | None: ...

    def count_for_job(self, job_id: str, doc_type: DocType) -> int: ...

    def save(self, draft: DocumentDraft, expected_version: int | None = None) -> DocumentDraft: ...

    def delete(self, job_id: str, doc_type: DocType) -> bool: ...


def _next_version(
    existing: DocumentDraft | None, draft: DocumentDraft, expected_version: int | None
) -> DocumentDraft:
    """Apply the version check and carry the stored identity forward."""
    if existing is None:
        if expected_version is not None and expected_version != 0:
            raise ConflictError(expected_version, 0)
        return draft.model_copy(update={"version": 1})

    if expected_version is not None and expected_version != existing.version:
        raise ConflictError(expected_version, existing.version)

    return draft.model_copy(
        update={
            "id": existing.id,
            "created_at": existing.created_at,
            "version": existing.version + 1,
        }
    )


class InMemoryDraftRepository:
    """Dict-backed draft repository for development and tests."""

    def __init__(self) -> None:
        self._store: dict[tuple[str, str], DocumentDraft] = {}

    def get(self, job_id: str, doc_type: DocType) -> DocumentDraft | None:
        return self._store.get((job_id, str(doc_type)))

    def count_for_job(self, job_id: str, doc_type: DocType) -> int:
        return 1 if (job_id, str(doc_type)) in self._store else 0

    def save(self, draft: DocumentDraft, expected_version: int | None = None) -> DocumentDraft:
        key = (draft.job_id, str(draft.doc_type))
        stored = _next_version(self._store.get(key), draft, expected_version)
        self._store[key] = stored
        return stored

    def delete(self, job_id: str, doc_type: DocType) -> bool:
        return self._store.pop((job_id, str(doc_type)), None) is not None

    def clear(self) -> None:
        """Remove every draft. For testing only."""
        self._store.clear()


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_dt(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _row_to_draft(row: Any) -> DocumentDraft:
    return DocumentDraft(
        id=row.id,
        job_id=row.job_id,
        doc_type=DocType(row.doc_type),
        user_id=row.user_id,
        data=RenderModel.model_validate_json(row.data_json),
        approved=bool(row.approved),
        approved_at=_parse_dt(row.approved_at),
        approved_by_user_id=row.approved_by_user_id,
        status=row.status,
        issued_record_id=row.issued_record_id,
        issued_at=_parse_dt(row.issued_at),
        issuer=IssuerProfile.model_validate_json(row.issuer_json) if row.issuer_json else None,
        version=row.version,
        created_at=_parse_dt(row.created_at),
        updated_at=_parse_dt(row.updated_at),
    )


def _draft_params(draft: DocumentDraft) -> dict[str, Any]:
    return {
        "id": draft.id,
        "job_id": draft.job_id,
        "doc_type": draft.doc_type.value,
        "user_id": draft.user_id,
        "data_json": draft.data.model_dump_json(),
        "approved": draft.approved,
        "approved_at": _iso(draft.approved_at),
        "approved_by_user_id": draft.approved_by_user_id,
        "status": draft.status.value,
        "issued_record_id": draft.issued_record_id,
        "issued_at": _iso(draft.issued_at),
        "issuer_json": draft.issuer.model_dump_json() if draft.issuer else None,
        "version": draft.version,
        "created_at": _iso(draft.created_at),
        "updated_at": _iso(draft.updated_at),
    }


_SELECT = text(
    """
    SELECT id, job_id, doc_type, user_id, data_json, approved, approved_at,
           approved_by_user_id, status, issued_record_id, issued_at, issuer_json,
           version, created_at, updated_at
    FROM document_drafts
    WHERE job_id = :job_id AND doc_type = :doc_type
    """
)

_INSERT = text(
    """
    INSERT INTO document_drafts (
        id, job_id, doc_type, user_id, data_json, approved, approved_at,
        approved_by_user_id, status, issued_record_id, issued_at, issuer_json,
        version, created_at, updated_at
    ) VALUES (
        :id, :job_id, :doc_type, :user_id, :data_json, :approved, :approved_at,
        :approved_by_user_id, :status, :issued_record_id, :issued_at, :issuer_json,
        :version, :created_at, :updated_at
    )
    """
)

# Conditional on the previous version so concurrent writers cannot both win.
_UPDATE = text(
    """
    UPDATE document_drafts SET
        user_id = :user_id,
        data_json = :data_json,
        approved = :approved,
        approved_at = :approved_at,
        approved_by_user_id = :approved_by_user_id,
        status = :status,
        issued_record_id = :issued_record_id,
        issued_at = :issued_at,
        issuer_json = :issuer_json,
        version = :version,
        updated_at = :updated_at
    WHERE id = :id AND version = :previous_version
    """
)


class SqlDraftRepository:
    """SQLAlchemy Core repository over the ``document_drafts`` table.

    Calls are synchronous; the service runs them in a worker thread.
    """

    def __init__(self, engine: Engine) -> None:
        """Initialize with an engine.

        Args:
            engine: Engine whose database has the ``0001`` migration applied.
        """
        self._engine = engine

    def get(self, job_id: str, doc_type: DocType) -> DocumentDraft | None:
        with self._engine.connect() as conn:
            row = conn.execute(_SELECT, {"job_id": job_id, "doc_type": str(doc_type)}).fetchone()
        return _row_to_draft(row) if row is not None else None

    def count_for_job(self, job_id: str, doc_type: DocType) -> int:
        with self._engine.connect() as conn:
            result = conn.execute(
                text(
                    "SELECT COUNT(*) FROM document_drafts "
                    "WHERE job_id = :job_id AND doc_type = :doc_type"
                ),
                {"job_id": job_id, "doc_type": str(doc_type)},
            )
            return int(result.scalar_one())

    def save(self, draft: DocumentDraft, expected_version: int | None = None) -> DocumentDraft:
        with self._engine.begin() as conn:
            row = conn.execute(
                _SELECT, {"job_id": draft.job_id, "doc_type": draft.doc_type.value}
            ).fetchone()
            existing = _row_to_draft(row) if row is not None else None
            stored = _next_version(existing, draft, expected_version)
            params = _draft_params(stored)

            if existing is None:
                conn.execute(_INSERT, params)
            else:
                result = conn.execute(_UPDATE, {**params, "previous_version": existing.version})
                if result.rowcount != 1:
                    raise ConflictError(existing.version, existing.version + 1)

        logger.debug(
            "Saved draft %s (%s/%s) at version %s",
            stored.id,
            stored.job_id,
            stored.doc_type,
            stored.version,
        )
        return stored

    def delete(self, job_id: str, doc_type: DocType) -> bool:
        with self._engine.begin() as conn:
            result = conn.execute(
                text("DELETE FROM document_drafts WHERE job_id = :job_id AND doc_type = :doc_type"),
                {"job_id": job_id, "doc_type": str(doc_type)},
            )
            return result.rowcount > 0
