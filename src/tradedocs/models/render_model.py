"""Render model: the editable, persisted representation of one document instance.

Every editor operation returns a new model via ``model_copy``; instances are
never mutated in place.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from tradedocs.models.template import DocType, FieldType, OvisSeverity, TableColumn

CellValue = str | int | float | None


def is_empty_value(value: Any) -> bool:
    """A value is empty when it is None or the empty string."""
    return value is None or value == ""


class RenderField(BaseModel):
    """A populated template field."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    type: FieldType
    value: CellValue = None
    required: bool = False
    placeholder: str | None = None
    options: list[str] | None = None


class RenderTable(BaseModel):
    """A populated template table. Rows are keyed by column id."""

    model_config = ConfigDict(frozen=True)

    id: str
    columns: list[TableColumn]
    rows_key: str
    rows: list[dict[str, CellValue]] = Field(default_factory=list)
    min_rows: int = 0

    def empty_row(self) -> dict[str, CellValue]:
        return {column.id: None for column in self.columns}


class RenderSection(BaseModel):
    """A populated template section."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    fields: list[RenderField] | None = None
    table: RenderTable | None = None

    def field(self, field_id: str) -> RenderField | None:
        for field in self.fields or []:
            if field.id == field_id:
                return field
        return None


class OvisWarning(BaseModel):
    """Integrity warning raised by a triggered OVIS check."""

    model_config = ConfigDict(frozen=True)

    id: str
    severity: OvisSeverity
    message: str


class RenderModel(BaseModel):
    """A live document instance."""

    model_config = ConfigDict(frozen=True)

    doc_type: DocType
    title: str
    disclaimer: str
    record_id: str = Field(..., description="OX-<DOCTYPE>-<YYYYMMDD>-<6 chars>")
    timestamp: str = Field(..., description="ISO-8601 UTC generation time")
    jurisdiction: str = ""
    include_materials_markup: bool = Field(
        default=False,
        description="Markup preference used at prefill; reused on regenerate",
    )
    sections: list[RenderSection]
    ovis_warnings: list[OvisWarning] = Field(default_factory=list)

    def section(self, section_id: str) -> RenderSection | None:
        for section in self.sections:
            if section.id == section_id:
                return section
        return None

    def structure(self) -> dict[str, Any]:
        """Return the id skeleton (sections, fields, table columns) of the model."""
        skeleton: dict[str, Any] = {}
        for section in self.sections:
            skeleton[section.id] = {
                "fields": [f.id for f in section.fields or []],
                "columns": [c.id for c in section.table.columns] if section.table else [],
            }
        return skeleton
