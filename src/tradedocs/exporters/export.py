"""Document export: PDF, DOCX, plain text and email body.

Export rules:
- CLIENT audience requires an ISSUED draft (IssuanceRequiredError otherwise)
- Disclaimer and OVIS warnings are omitted once a draft is approved or issued
- CLIENT exports carry the issuer snapshot header and the issued record id
- Sections render in model order; empty optional fields are skipped
"""

from __future__ import annotations

import io
import logging
from datetime import datetime
from enum import StrEnum
from xml.sax.saxutils import escape

from docx import Document
from docx.shared import Pt
from pydantic import BaseModel, ConfigDict
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from tradedocs.docengine.formatting import format_abn
from tradedocs.docengine.lifecycle import require_export_allowed
from tradedocs.errors import DocEngineError
from tradedocs.models.draft import Audience, DocumentDraft, IssuerProfile
from tradedocs.models.job import JobRecord
from tradedocs.models.render_model import CellValue, RenderModel, RenderSection

logger = logging.getLogger(__name__)

REQUIRED_PLACEHOLDER = "[Required]"


class DocumentExportError(DocEngineError):
    """Raised when a renderer fails to produce output."""

    code = "EXPORT_ERROR"


class ExportFormat(StrEnum):
    """Supported export formats."""

    PDF = "pdf"
    DOCX = "docx"
    TEXT = "text"
    EMAIL = "email"


MEDIA_TYPES: dict[ExportFormat, str] = {
    ExportFormat.PDF: "application/pdf",
    ExportFormat.DOCX: "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ExportFormat.TEXT: "text/plain; charset=utf-8",
    ExportFormat.EMAIL: "text/plain; charset=utf-8",
}

_EXTENSIONS: dict[ExportFormat, str] = {
    ExportFormat.PDF: "pdf",
    ExportFormat.DOCX: "docx",
    ExportFormat.TEXT: "txt",
    ExportFormat.EMAIL: "txt",
}


class EmailContent(BaseModel):
    """Pre-filled email for sending a document to the client."""

    model_config = ConfigDict(frozen=True)

    to: str | None
    subject: str
    body: str


class DocumentExportResult(BaseModel):
    """Rendered document bytes plus export metadata."""

    model_config = ConfigDict(frozen=True)

    record_id: str
    format: ExportFormat
    audience: Audience
    content_bytes: bytes
    content_length: int
    media_type: str
    filename: str
    includes_disclaimer: bool
    subject: str | None = None


def display_value(value: CellValue) -> str:
    """String form of a model value; None becomes the empty string."""
    if value is None:
        return ""
    return str(value)


def _format_generated(timestamp: str) -> str:
    try:
        return datetime.fromisoformat(timestamp).strftime("%d/%m/%Y %H:%M UTC")
    except ValueError:
        return timestamp


def _field_lines(section: RenderSection) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    for field in section.fields or []:
        value = display_value(field.value)
        if value or field.required:
            pairs.append((field.label, value or REQUIRED_PLACEHOLDER))
    return pairs


def _issuer_lines(issuer: IssuerProfile) -> list[str]:
    lines = [issuer.legal_name]
    if issuer.trading_name and issuer.trading_name != issuer.legal_name:
        lines.append(f"Trading as {issuer.trading_name}")
    if issuer.abn:
        lines.append(f"ABN {format_abn(issuer.abn)}")
    address = issuer.formatted_address()
    if address:
        lines.append(address)
    contact = " | ".join(c for c in (issuer.phone, issuer.email) if c)
    if contact:
        lines.append(contact)
    if issuer.licence_number:
        lines.append(f"Licence {issuer.licence_number}")
    return [line for line in lines if line]


class DocumentExporter:
    """Renders a RenderModel to PDF, DOCX, text or an email body."""

    def render_text(
        self,
        model: RenderModel,
        *,
        approved: bool = False,
        issued: bool = False,
        issued_record_id: str | None = None,
        issuer: IssuerProfile | None = None,
    ) -> str:
        """Render a model as plain text.

        Fields print as ``Label: value``; empty required fields show
        ``[Required]`` and empty optional fields are omitted. Tables print a
        ``|``-joined header and rows.
        """
        finalised = approved or issued
        lines: list[str] = []

        if issuer is not None:
            lines.extend(_issuer_lines(issuer))
            lines.append("")

        lines.append(model.title)
        lines.append("")
        lines.append(f"Record ID: {model.record_id}")
        if issued_record_id:
            lines.append(f"Issued Record ID: {issued_record_id}")
        lines.append(f"Generated: {_format_generated(model.timestamp)}")
        lines.append("")
        lines.append("---")
        lines.append("")

        for section in model.sections:
            if section.title:
                lines.append(section.title.upper())
                lines.append("")

            pairs = _field_lines(section)
            if pairs:
                lines.extend(f"{label}: {value}" for label, value in pairs)
                lines.append("")

            table = section.table
            if table is not None and table.rows:
                header = " | ".join(column.label for column in table.columns)
                lines.append(header)
                lines.append("-" * len(header))
                for row in table.rows:
                    lines.append(
                        " | ".join(display_value(row.get(column.id)) for column in table.columns)
                    )
                lines.append("")

        if not finalised and model.ovis_warnings:
            lines.append("WARNINGS")
            for warning in model.ovis_warnings:
                lines.append(f"[{warning.severity.upper()}] {warning.message}")
            lines.append("")

        if not finalised:
            lines.append("---")
            lines.append("")
            lines.append(model.disclaimer)

        return "\n".join(lines)

    def render_email(
        self,
        model: RenderModel,
        job: JobRecord,
        *,
        approved: bool = False,
        issued: bool = False,
        issued_record_id: str | None = None,
        issuer: IssuerProfile | None = None,
    ) -> EmailContent:
        """Build the client email: subject plus a body wrapping the text rendering."""
        text = self.render_text(
            model,
            approved=approved,
            issued=issued,
            issued_record_id=issued_record_id,
            issuer=issuer,
        )
        subject = f"{model.title} - {job.title or 'Job'}"

        body_lines = [
            f"Hi {job.client_name or 'there'},",
            "",
            f"Please find the {model.title.lower()} for the following job:",
            "",
            f"Job: {job.title or 'N/A'}",
        ]
        if job.address:
            body_lines.append(f"Address: {job.address}")
        body_lines.extend(["", "---", "", text, "", "---", "", "Kind regards"])
        if issuer is not None and issuer.legal_name:
            body_lines.append(issuer.trading_name or issuer.legal_name)

        return EmailContent(to=job.client_email, subject=subject, body="\n".join(body_lines))

    def render_pdf(
        self,
        model: RenderModel,
        *,
        approved: bool = False,
        issued: bool = False,
        issued_record_id: str | None = None,
        issuer: IssuerProfile | None = None,
    ) -> bytes:
        """Render a model to PDF bytes with reportlab."""
        finalised = approved or issued
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            topMargin=15 * mm,
            bottomMargin=15 * mm,
            title=model.title,
        )
        styles = getSampleStyleSheet()
        small = ParagraphStyle("Small", parent=styles["Normal"], fontSize=8, textColor=colors.grey)
        cell = ParagraphStyle("Cell", parent=styles["Normal"], fontSize=9, leading=11)
        warning_style = ParagraphStyle(
            "Warning", parent=styles["Normal"], fontSize=9, textColor=colors.HexColor("#9A3412")
        )

        elements: list = []

        if issuer is not None:
            for line in _issuer_lines(issuer):
                elements.append(Paragraph(escape(line), styles["Normal"]))
            elements.append(Spacer(1, 6 * mm))

        elements.append(Paragraph(escape(model.title), styles["Title"]))
        record_line = f"Record ID: {model.record_id}"
        if issued_record_id:
            record_line += f" | Issued Record ID: {issued_record_id}"
        elements.append(Paragraph(escape(record_line), small))
        elements.append(
            Paragraph(escape(f"Generated: {_format_generated(model.timestamp)}"), small)
        )
        elements.append(Spacer(1, 4 * mm))

        for section in model.sections:
            elements.append(Paragraph(escape(section.title), styles["Heading2"]))

            pairs = _field_lines(section)
            if pairs:
                data = [
                    [Paragraph(f"<b>{escape(label)}</b>", cell), Paragraph(escape(value), cell)]
                    for label, value in pairs
                ]
                field_table = Table(data, colWidths=[55 * mm, 115 * mm])
                field_table.setStyle(
                    TableStyle(
                        [
                            ("VALIGN", (0, 0), (-1, -1), "TOP"),
                            ("LINEBELOW", (0, 0), (-1, -1), 0.25, colors.HexColor("#D1D5DB")),
                        ]
                    )
                )
                elements.append(field_table)

            table = section.table
            if table is not None and table.rows:
                data = [[Paragraph(f"<b>{escape(c.label)}</b>", cell) for c in table.columns]]
                for row in table.rows:
                    data.append(
                        [Paragraph(escape(display_value(row.get(c.id))), cell) for c in table.columns]
                    )
                rows_table = Table(data, repeatRows=1)
                rows_table.setStyle(
                    TableStyle(
                        [
                            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#E5E7EB")),
                            ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#9CA3AF")),
                            ("VALIGN", (0, 0), (-1, -1), "TOP"),
                        ]
                    )
                )
                elements.append(rows_table)

            elements.append(Spacer(1, 3 * mm))

        if not finalised and model.ovis_warnings:
            elements.append(Paragraph("Warnings", styles["Heading3"]))
            for warning in model.ovis_warnings:
                elements.append(
                    Paragraph(escape(f"[{warning.severity.upper()}] {warning.message}"), warning_style)
                )

        if not finalised:
            elements.append(Spacer(1, 6 * mm))
            elements.append(Paragraph(escape(model.disclaimer), small))

        try:
            doc.build(elements)
        except Exception as e:
            raise DocumentExportError(f"Failed to render PDF: {e}") from e
        return buffer.getvalue()

    def render_docx(
        self,
        model: RenderModel,
        *,
        approved: bool = False,
        issued: bool = False,
        issued_record_id: str | None = None,
        issuer: IssuerProfile | None = None,
    ) -> bytes:
        """Render a model to DOCX bytes with python-docx."""
        finalised = approved or issued
        doc = Document()

        if issuer is not None:
            for line in _issuer_lines(issuer):
                doc.add_paragraph(line)

        doc.add_heading(model.title, level=0)
        meta = doc.add_paragraph()
        meta_run = meta.add_run(
            f"Record ID: {model.record_id}"
            + (f" | Issued Record ID: {issued_record_id}" if issued_record_id else "")
            + f"\nGenerated: {_format_generated(model.timestamp)}"
        )
        meta_run.font.size = Pt(8)

        for section in model.sections:
            doc.add_heading(section.title, level=1)

            pairs = _field_lines(section)
            if pairs:
                field_table = doc.add_table(rows=0, cols=2)
                field_table.style = "Table Grid"
                for label, value in pairs:
                    cells = field_table.add_row().cells
                    cells[0].text = label
                    cells[1].text = value

            table = section.table
            if table is not None and table.rows:
                rows_table = doc.add_table(rows=1, cols=len(table.columns))
                rows_table.style = "Table Grid"
                for index, column in enumerate(table.columns):
                    rows_table.rows[0].cells[index].text = column.label
                for row in table.rows:
                    cells = rows_table.add_row().cells
                    for index, column in enumerate(table.columns):
                        cells[index].text = display_value(row.get(column.id))

        if not finalised and model.ovis_warnings:
            doc.add_heading("Warnings", level=2)
            for warning in model.ovis_warnings:
                doc.add_paragraph(f"[{warning.severity.upper()}] {warning.message}")

        if not finalised:
            disclaimer = doc.add_paragraph().add_run(model.disclaimer)
            disclaimer.italic = True
            disclaimer.font.size = Pt(8)

        buffer = io.BytesIO()
        try:
            doc.save(buffer)
        except Exception as e:
            raise DocumentExportError(f"Failed to render DOCX: {e}") from e
        return buffer.getvalue()

    def export(
        self,
        draft: DocumentDraft,
        fmt: ExportFormat,
        *,
        audience: Audience = Audience.INTERNAL,
        model: RenderModel | None = None,
        job: JobRecord | None = None,
    ) -> DocumentExportResult:
        """Export a draft in the requested format for an audience.

        Args:
            draft: Persisted draft supplying lifecycle state.
            fmt: Output format.
            audience: INTERNAL or CLIENT.
            model: Unsaved editor model to export instead of ``draft.data``.
                Ignored for CLIENT exports, which always use the issued content.
            job: Job record, required for the EMAIL format.

        Raises:
            IssuanceRequiredError: If CLIENT is requested for a non-issued draft.
            DocumentExportError: If rendering fails or EMAIL lacks a job.
        """
        require_export_allowed(draft, audience)

        is_client = audience == Audience.CLIENT
        source = draft.data if is_client or model is None else model
        issuer = draft.issuer if is_client else None
        issued_record_id = draft.issued_record_id if draft.is_issued else None
        options = {
            "approved": draft.approved,
            "issued": draft.is_issued,
            "issued_record_id": issued_record_id,
            "issuer": issuer,
        }

        subject: str | None = None
        match fmt:
            case ExportFormat.PDF:
                content = self.render_pdf(source, **options)
            case ExportFormat.DOCX:
                content = self.render_docx(source, **options)
            case ExportFormat.TEXT:
                content = self.render_text(source, **options).encode("utf-8")
            case ExportFormat.EMAIL:
                if job is None:
                    raise DocumentExportError("Email export requires the job record")
                email = self.render_email(source, job, **options)
                subject = email.subject
                content = email.body.encode("utf-8")
            case _:
                raise DocumentExportError(f"Unsupported export format: {fmt}")

        record_id = issued_record_id or source.record_id
        logger.info(
            "Exported %s as %s for %s audience (%d bytes)",
            record_id,
            fmt,
            audience,
            len(content),
        )
        return DocumentExportResult(
            record_id=record_id,
            format=fmt,
            audience=audience,
            content_bytes=content,
            content_length=len(content),
            media_type=MEDIA_TYPES[fmt],
            filename=f"{draft.doc_type.value.lower()}-{record_id}.{_EXTENSIONS[fmt]}",
            includes_disclaimer=not (draft.approved or draft.is_issued),
            subject=subject,
        )
