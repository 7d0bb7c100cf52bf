"""Editor operations and id-based merge for render models.

All functions are pure: they return a new RenderModel and leave their inputs
untouched. Lookups are by section, field and column id; table rows are
addressed by position.
"""

from __future__ import annotations

import logging
from typing import Any

from tradedocs.docengine.ovis import recompute_warnings
from tradedocs.errors import EditorError, MinRowsViolationError
from tradedocs.models.render_model import (
    CellValue,
    RenderField,
    RenderModel,
    RenderSection,
    RenderTable,
    is_empty_value,
)

logger = logging.getLogger(__name__)

__all__ = [
    "add_table_row",
    "merge_models",
    "mutate_field",
    "mutate_table_cell",
    "recompute_warnings",
    "remove_table_row",
]


def _section_index(model: RenderModel, section_id: str) -> int:
    for index, section in enumerate(model.sections):
        if section.id == section_id:
            return index
    raise EditorError(f"Unknown section: {section_id}")


def _replace_section(model: RenderModel, index: int, section: RenderSection) -> RenderModel:
    sections = list(model.sections)
    sections[index] = section
    return model.model_copy(update={"sections": sections})


def _table_of(model: RenderModel, section_id: str) -> tuple[int, RenderSection, RenderTable]:
    index = _section_index(model, section_id)
    section = model.sections[index]
    if section.table is None:
        raise EditorError(f"Section '{section_id}' has no table")
    return index, section, section.table


def _with_rows(
    model: RenderModel,
    index: int,
    section: RenderSection,
    table: RenderTable,
    rows: list[dict[str, CellValue]],
) -> RenderModel:
    new_table = table.model_copy(update={"rows": rows})
    return _replace_section(model, index, section.model_copy(update={"table": new_table}))


def mutate_field(model: RenderModel, section_id: str, field_id: str, value: CellValue) -> RenderModel:
    """Set the value of one field."""
    index = _section_index(model, section_id)
    section = model.sections[index]

    fields = list(section.fields or [])
    for position, field in enumerate(fields):
        if field.id == field_id:
            fields[position] = field.model_copy(update={"value": value})
            return _replace_section(model, index, section.model_copy(update={"fields": fields}))

    raise EditorError(f"Unknown field '{field_id}' in section '{section_id}'")


def mutate_table_cell(
    model: RenderModel,
    section_id: str,
    row_index: int,
    column_id: str,
    value: CellValue,
) -> RenderModel:
    """Set one table cell."""
    index, section, table = _table_of(model, section_id)

    if column_id not in {column.id for column in table.columns}:
        raise EditorError(f"Unknown column '{column_id}' in section '{section_id}'")
    if not 0 <= row_index < len(table.rows):
        raise EditorError(f"Row {row_index} out of range in section '{section_id}'")

    rows = [dict(row) for row in table.rows]
    rows[row_index][column_id] = value
    return _with_rows(model, index, section, table, rows)


def add_table_row(model: RenderModel, section_id: str) -> RenderModel:
    """Append an empty row (every column None)."""
    index, section, table = _table_of(model, section_id)
    rows = [dict(row) for row in table.rows]
    rows.append(table.empty_row())
    return _with_rows(model, index, section, table, rows)


def remove_table_row(model: RenderModel, section_id: str, row_index: int) -> RenderModel:
    """Remove a row.

    Raises:
        MinRowsViolationError: If the table is already at its minimum row count.
        EditorError: If the section has no table or the row does not exist.
    """
    index, section, table = _table_of(model, section_id)

    if not 0 <= row_index < len(table.rows):
        raise EditorError(f"Row {row_index} out of range in section '{section_id}'")
    if len(table.rows) <= table.min_rows:
        raise MinRowsViolationError(section_id, table.min_rows)

    rows = [dict(row) for i, row in enumerate(table.rows) if i != row_index]
    return _with_rows(model, index, section, table, rows)


def _prefer_current(current: Any, fresh: Any) -> Any:
    return fresh if is_empty_value(current) else current


def _merge_fields(
    current: list[RenderField] | None, fresh: list[RenderField] | None
) -> list[RenderField] | None:
    if fresh is None:
        return None
    current_by_id = {field.id: field for field in current or []}
    merged: list[RenderField] = []
    for field in fresh:
        existing = current_by_id.get(field.id)
        if existing is None:
            merged.append(field)
        else:
            merged.append(field.model_copy(update={"value": _prefer_current(existing.value, field.value)}))
    return merged


def _merge_tables(current: RenderTable | None, fresh: RenderTable | None) -> RenderTable | None:
    if fresh is None:
        return None
    if current is None:
        return fresh

    column_ids = [column.id for column in fresh.columns]
    rows: list[dict[str, CellValue]] = []
    for position, fresh_row in enumerate(fresh.rows):
        if position < len(current.rows):
            current_row = current.rows[position]
            rows.append(
                {cid: _prefer_current(current_row.get(cid), fresh_row.get(cid)) for cid in column_ids}
            )
        else:
            rows.append(dict(fresh_row))

    # User-added rows beyond the fresh row count.
    for current_row in current.rows[len(fresh.rows):]:
        rows.append({cid: current_row.get(cid) for cid in column_ids})

    return fresh.model_copy(update={"rows": rows})


def merge_models(current: RenderModel, fresh: RenderModel) -> RenderModel:
    """Merge a freshly generated model into the user's current model.

    Sections, fields and columns are matched by id and rows by position. A
    non-empty current value always wins; empty current values take the fresh
    value. Structure comes from ``fresh``: sections or fields that only exist
    in ``current`` are dropped. The envelope is fresh except for ``record_id``,
    which is kept from ``current``.

    OVIS warnings are carried over from ``fresh`` unchanged; call
    :func:`recompute_warnings` with the template to refresh them.
    """
    current_sections = {section.id: section for section in current.sections}

    sections: list[RenderSection] = []
    for fresh_section in fresh.sections:
        existing = current_sections.get(fresh_section.id)
        if existing is None:
            sections.append(fresh_section)
            continue
        sections.append(
            fresh_section.model_copy(
                update={
                    "fields": _merge_fields(existing.fields, fresh_section.fields),
                    "table": _merge_tables(existing.table, fresh_section.table),
                }
            )
        )

    dropped = set(current_sections) - {section.id for section in fresh.sections}
    if dropped:
        logger.info("Merge dropped sections no longer in template: %s", sorted(dropped))

    return fresh.model_copy(update={"sections": sections, "record_id": current.record_id})
