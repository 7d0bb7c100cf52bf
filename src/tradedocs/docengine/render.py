"""Render model generation: template + prefill data -> RenderModel."""

from __future__ import annotations

import copy
import secrets
import string
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from tradedocs.docengine.formatting import format_field_value
from tradedocs.docengine.ovis import evaluate_ovis, get_by_path, set_by_path
from tradedocs.models.render_model import (
    CellValue,
    RenderField,
    RenderModel,
    RenderSection,
    RenderTable,
    is_empty_value,
)
from tradedocs.models.template import DocumentTemplate, FieldType, TemplateSection, TemplateTable

RECORD_ID_PREFIX = "OX"
_RECORD_ID_ALPHABET = string.ascii_uppercase + string.digits


def generate_record_id(doc_type: str, now: datetime | None = None) -> str:
    """Return ``OX-<DOCTYPE>-<YYYYMMDD>-<6 chars>``."""
    now = now or datetime.now(UTC)
    suffix = "".join(secrets.choice(_RECORD_ID_ALPHABET) for _ in range(6))
    return f"{RECORD_ID_PREFIX}-{doc_type}-{now.strftime('%Y%m%d')}-{suffix}"


def _empty_for_type(field_type: FieldType) -> Any:
    if field_type in (FieldType.NUMBER, FieldType.CURRENCY):
        return None
    if field_type == FieldType.MULTI_SELECT:
        return []
    return ""


def merge_defaults(template: DocumentTemplate, data: Mapping[str, Any]) -> dict[str, Any]:
    """Fill template defaults into a copy of the prefill data.

    Fields with no value get their ``defaultValue`` or a type-appropriate
    empty value; every table's ``rowsKey`` is guaranteed to hold a list.
    """
    merged = copy.deepcopy(dict(data))
    for section in template.sections:
        for field in section.fields or []:
            path = field.source_path
            if is_empty_value(get_by_path(merged, path)):
                if field.default_value is not None:
                    set_by_path(merged, path, copy.deepcopy(field.default_value))
                else:
                    set_by_path(merged, path, _empty_for_type(field.type))
        if section.table is not None and not get_by_path(merged, section.table.rows_key):
            set_by_path(merged, section.table.rows_key, [])
    return merged


def _render_fields(section: TemplateSection, merged: Mapping[str, Any]) -> list[RenderField]:
    return [
        RenderField(
            id=field.id,
            label=field.label,
            type=field.type,
            value=format_field_value(get_by_path(merged, field.source_path), field.type, field.id),
            required=field.required,
            placeholder=field.placeholder,
            options=field.options,
        )
        for field in section.fields or []
    ]


def _render_table(table: TemplateTable, merged: Mapping[str, Any]) -> RenderTable:
    source_rows = get_by_path(merged, table.rows_key)
    rows: list[dict[str, CellValue]] = []
    if isinstance(source_rows, list):
        for source in source_rows:
            if not isinstance(source, Mapping):
                continue
            row: dict[str, CellValue] = {}
            for column in table.columns:
                raw = source.get(column.id)
                if raw is None:
                    raw = get_by_path(source, column.id)
                row[column.id] = format_field_value(raw, column.type)
            rows.append(row)

    while len(rows) < table.min_rows:
        rows.append({column.id: None for column in table.columns})

    return RenderTable(
        id=table.id,
        columns=table.columns,
        rows_key=table.rows_key,
        rows=rows,
        min_rows=table.min_rows,
    )


def generate_render_model(
    template: DocumentTemplate,
    data: Mapping[str, Any],
    *,
    include_materials_markup: bool = False,
    now: datetime | None = None,
) -> RenderModel:
    """Build a fresh RenderModel from a template and prefill data.

    Args:
        template: Validated document template.
        data: Prefill data keyed by field ``dataPath``/id and table ``rowsKey``.
        include_materials_markup: Markup preference recorded on the model.
        now: Generation time (defaults to the current UTC time).

    Returns:
        RenderModel with a new record id, formatted values, tables padded to
        their minimum row count and evaluated OVIS warnings.
    """
    now = now or datetime.now(UTC)
    merged = merge_defaults(template, data)

    sections: list[RenderSection] = []
    for section in template.ordered_sections():
        sections.append(
            RenderSection(
                id=section.id,
                title=section.title,
                fields=_render_fields(section, merged) if section.fields is not None else None,
                table=_render_table(section.table, merged) if section.table is not None else None,
            )
        )

    return RenderModel(
        doc_type=template.doc_type,
        title=template.title,
        disclaimer=template.disclaimer,
        record_id=generate_record_id(template.doc_type.value, now),
        timestamp=now.isoformat(),
        jurisdiction=template.jurisdiction,
        include_materials_markup=include_materials_markup,
        sections=sections,
        ovis_warnings=evaluate_ovis(template, merged),
    )
