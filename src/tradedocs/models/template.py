"""Document template models.

Templates are static configuration loaded once per process. The wire format
is camelCase JSON (``schemaVersion``, ``docType``, ``rowsKey`` ...); Python
attributes are snake_case.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class DocType(StrEnum):
    """Supported document types."""

    SWMS = "SWMS"
    PAYMENT_CLAIM = "PAYMENT_CLAIM"
    TOOLBOX_TALK = "TOOLBOX_TALK"
    VARIATION = "VARIATION"
    EOT = "EOT"
    PROGRESS_CLAIM = "PROGRESS_CLAIM"
    HANDOVER = "HANDOVER"
    MAINTENANCE = "MAINTENANCE"


class FieldType(StrEnum):
    """Input type of a template field or table column."""

    TEXT = "text"
    TEXTAREA = "textarea"
    DATE = "date"
    SELECT = "select"
    MULTI_SELECT = "multiSelect"
    CURRENCY = "currency"
    NUMBER = "number"


class OvisSeverity(StrEnum):
    """Severity of an integrity warning."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class _TemplateModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class TemplateField(_TemplateModel):
    """A single input field within a section."""

    id: str
    label: str
    type: FieldType
    required: bool = False
    placeholder: str | None = None
    options: list[str] | None = None
    default_value: Any = Field(
        default=None,
        description="Value used when prefill data has nothing for this field",
    )
    data_path: str | None = Field(
        default=None,
        description="Dotted path into prefill data (defaults to the field id)",
    )

    @property
    def source_path(self) -> str:
        return self.data_path or self.id


class TableColumn(_TemplateModel):
    """A column of a template table."""

    id: str
    label: str
    type: FieldType = FieldType.TEXT
    width: str | int | None = None


class TemplateTable(_TemplateModel):
    """Tabular block of a section, populated from a named row collection."""

    id: str
    columns: list[TableColumn] = Field(..., min_length=1)
    rows_key: str
    min_rows: int = Field(default=0, ge=0)


class TemplateSection(_TemplateModel):
    """An ordered block of fields and/or a table."""

    id: str
    title: str
    fields: list[TemplateField] | None = None
    table: TemplateTable | None = None
    order: int | None = None


class OvisCheck(_TemplateModel):
    """Integrity rule evaluated against document data."""

    id: str
    severity: OvisSeverity
    rule: str
    message: str


class DocumentTemplate(_TemplateModel):
    """Immutable document definition."""

    schema_version: str
    jurisdiction: str
    doc_type: DocType
    title: str
    disclaimer: str
    sections: list[TemplateSection] = Field(..., min_length=1)
    ovis_checks: list[OvisCheck] = Field(default_factory=list)

    def ordered_sections(self) -> list[TemplateSection]:
        """Return sections sorted by ``order``; unordered sections keep file order."""
        return sorted(self.sections, key=lambda s: s.order or 0)

    def section(self, section_id: str) -> TemplateSection | None:
        for section in self.sections:
            if section.id == section_id:
                return section
        return None
