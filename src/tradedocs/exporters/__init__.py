"""Document exporters: PDF, DOCX, plain text and email."""

from tradedocs.exporters.export import (
    MEDIA_TYPES,
    DocumentExporter,
    DocumentExportError,
    DocumentExportResult,
    EmailContent,
    ExportFormat,
)

__all__ = [
    "MEDIA_TYPES",
    "DocumentExportError",
    "DocumentExportResult",
    "DocumentExporter",
    "EmailContent",
    "ExportFormat",
]
