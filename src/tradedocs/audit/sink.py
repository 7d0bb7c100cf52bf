"""Audit event sinks for document lifecycle events.

Events are plain dicts (``document.prefilled``, ``document.saved``,
``document.regenerated``, ``document.approved``, ``document.issued``,
``document.exported``). Sinks are append-only and serialize with sorted keys.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

AUDIT_LOG_PATH_ENV = "TRADEDOCS_AUDIT_LOG_PATH"
DEFAULT_AUDIT_LOG_PATH = "./var/audit/document_events.jsonl"


class AuditSinkError(Exception):
    """Raised when an audit event cannot be serialized or written."""

    pass


@runtime_checkable
class AuditSink(Protocol):
    """Protocol for audit event sinks."""

    def emit(self, event: dict[str, Any]) -> None:
        """Emit an audit event.

        Raises:
            AuditSinkError: If emission fails for any reason
        """
        ...


class JsonlFileAuditSink:
    """Append-only JSONL file sink.

    The path comes from the constructor, else TRADEDOCS_AUDIT_LOG_PATH, else
    ``./var/audit/document_events.jsonl``. Parent directories are created on
    first write.
    """

    def __init__(self, file_path: str | None = None) -> None:
        if file_path is not None:
            self._file_path = Path(file_path)
        else:
            self._file_path = Path(os.environ.get(AUDIT_LOG_PATH_ENV) or DEFAULT_AUDIT_LOG_PATH)
        self._lock = threading.Lock()

    @property
    def file_path(self) -> Path:
        """Return the configured file path."""
        return self._file_path

    def emit(self, event: dict[str, Any]) -> None:
        """Append one event as a single JSON line.

        Raises:
            AuditSinkError: If serialization or the file write fails
        """
        try:
            line = json.dumps(event, sort_keys=True, separators=(",", ":")) + "\n"
        except (TypeError, ValueError) as e:
            raise AuditSinkError(f"Failed to serialize audit event: {e}") from e

        parent = self._file_path.parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise AuditSinkError(f"Failed to create audit log directory {parent}: {e}") from e

        try:
            with self._lock, open(self._file_path, mode="a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            raise AuditSinkError(f"Failed to write audit event to {self._file_path}: {e}") from e


class InMemoryAuditSink:
    """In-memory audit sink for tests and local development."""

    def __init__(self) -> None:
        self._events: list[dict[str, Any]] = []

    def emit(self, event: dict[str, Any]) -> None:
        # Round-trip through JSON so stored events match what the file sink writes.
        try:
            self._events.append(json.loads(json.dumps(event, sort_keys=True)))
        except (TypeError, ValueError) as e:
            raise AuditSinkError(f"Failed to serialize audit event: {e}") from e

    @property
    def events(self) -> list[dict[str, Any]]:
        """Return all emitted events."""
        return list(self._events)

    def event_types(self) -> list[str]:
        return [e.get("event_type", "") for e in self._events]

    def clear(self) -> None:
        """Clear all stored events."""
        self._events.clear()


def get_audit_sink() -> AuditSink:
    """Return the configured audit sink (JSONL file)."""
    return JsonlFileAuditSink()
