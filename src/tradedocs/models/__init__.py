"""Domain models for the document engine."""

from tradedocs.models.draft import Audience, DocumentDraft, DocumentStatus, IssuerProfile
from tradedocs.models.job import BusinessProfile, JobRecord, MaterialLine
from tradedocs.models.render_model import (
    OvisWarning,
    RenderField,
    RenderModel,
    RenderSection,
    RenderTable,
)
from tradedocs.models.template import (
    DocType,
    DocumentTemplate,
    FieldType,
    OvisCheck,
    OvisSeverity,
    TableColumn,
    TemplateField,
    TemplateSection,
    TemplateTable,
)
from tradedocs.models.user import UserContext

__all__ = [
    "Audience",
    "BusinessProfile",
    "DocType",
    "DocumentDraft",
    "DocumentStatus",
    "DocumentTemplate",
    "FieldType",
    "IssuerProfile",
    "JobRecord",
    "MaterialLine",
    "OvisCheck",
    "OvisSeverity",
    "OvisWarning",
    "RenderField",
    "RenderModel",
    "RenderSection",
    "RenderTable",
    "TableColumn",
    "TemplateField",
    "TemplateSection",
    "TemplateTable",
    "UserContext",
]
