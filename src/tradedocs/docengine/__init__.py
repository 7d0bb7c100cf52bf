"""Document engine: templates, prefill, editing, lifecycle and the service facade."""

from tradedocs.docengine.autosave import DebouncedDraftSaver, SaveStatus
from tradedocs.docengine.editor import (
    add_table_row,
    merge_models,
    mutate_field,
    mutate_table_cell,
    recompute_warnings,
    remove_table_row,
)
from tradedocs.docengine.lifecycle import IssuanceOutcome, approve_draft, issue_draft
from tradedocs.docengine.registry import TemplateRegistry, get_template_registry
from tradedocs.docengine.render import generate_render_model
from tradedocs.docengine.service import DocumentService
from tradedocs.docengine.session import DocumentEditor

__all__ = [
    "DebouncedDraftSaver",
    "DocumentEditor",
    "DocumentService",
    "IssuanceOutcome",
    "SaveStatus",
    "TemplateRegistry",
    "add_table_row",
    "approve_draft",
    "generate_render_model",
    "get_template_registry",
    "issue_draft",
    "merge_models",
    "mutate_field",
    "mutate_table_cell",
    "recompute_warnings",
    "remove_table_row",
]
