"""OVIS (Output Variance & Integrity Signals) rule evaluation.

Rules are non-blocking warnings. Supported syntax (arguments may be quoted):

    exists(path)        value present and non-empty
    empty(path)         value missing or empty
    len(path) < N       string/list shorter than N (non-sized values count as empty)
    len(path) === N     string/list of exactly N (``==`` also accepted)
    equals(path, value) string form of the value equals ``value``

A rule that evaluates true emits its check's warning. Unknown syntax is
logged and never triggers.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any

from tradedocs.models.render_model import OvisWarning, RenderModel, is_empty_value
from tradedocs.models.template import DocumentTemplate

logger = logging.getLogger(__name__)

_ARG = r"[\"']?([^\"')]+)[\"']?"
_EXISTS = re.compile(rf"^exists\({_ARG}\)$")
_EMPTY = re.compile(rf"^empty\({_ARG}\)$")
_LEN_LT = re.compile(rf"^len\({_ARG}\)\s*<\s*(\d+)$")
_LEN_EQ = re.compile(rf"^len\({_ARG}\)\s*={{2,3}}\s*(\d+)$")
_EQUALS = re.compile(r"^equals\([\"']?([^\"',)]+)[\"']?,\s*[\"']?([^\"')]*)[\"']?\)$")


def get_by_path(data: Any, path: str) -> Any:
    """Resolve a dotted path; numeric parts index into lists. Missing parts yield None."""
    current = data
    for part in path.split("."):
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(part)
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            current = current[index] if index < len(current) else None
        else:
            return None
    return current


def set_by_path(data: dict[str, Any], path: str, value: Any) -> None:
    """Assign a value at a dotted path, creating intermediate dicts."""
    parts = path.split(".")
    current = data
    for part in parts[:-1]:
        nxt = current.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            current[part] = nxt
        current = nxt
    current[parts[-1]] = value


def _is_blank(value: Any) -> bool:
    return is_empty_value(value) or (isinstance(value, list | dict) and len(value) == 0)


def _as_rule_string(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def evaluate_rule(rule: str, data: Mapping[str, Any]) -> bool:
    """Evaluate one rule against a data mapping."""
    trimmed = rule.strip()

    if match := _EXISTS.match(trimmed):
        return not _is_blank(get_by_path(data, match.group(1)))

    if match := _EMPTY.match(trimmed):
        return _is_blank(get_by_path(data, match.group(1)))

    if match := _LEN_LT.match(trimmed):
        value = get_by_path(data, match.group(1))
        if isinstance(value, str | list):
            return len(value) < int(match.group(2))
        return True

    if match := _LEN_EQ.match(trimmed):
        value = get_by_path(data, match.group(1))
        if isinstance(value, str | list):
            return len(value) == int(match.group(2))
        return False

    if match := _EQUALS.match(trimmed):
        value = get_by_path(data, match.group(1))
        return _as_rule_string(value) == match.group(2)

    logger.warning("Unknown OVIS rule syntax: %s", rule)
    return False


def evaluate_ovis(template: DocumentTemplate, data: Mapping[str, Any]) -> list[OvisWarning]:
    """Run every OVIS check of a template and return the triggered warnings, in check order."""
    return [
        OvisWarning(id=check.id, severity=check.severity, message=check.message)
        for check in template.ovis_checks
        if evaluate_rule(check.rule, data)
    ]


def _row_has_content(row: Mapping[str, Any]) -> bool:
    return any(not is_empty_value(v) for v in row.values())


def model_data_view(model: RenderModel, template: DocumentTemplate | None = None) -> dict[str, Any]:
    """Project a render model back into the data shape OVIS rules are written against.

    Field values are keyed by field id (and by ``dataPath`` when the template
    is given); tables contribute their non-empty rows under ``rowsKey``.
    """
    data: dict[str, Any] = {}
    for section in model.sections:
        template_section = template.section(section.id) if template else None
        paths: dict[str, str] = {}
        if template_section is not None:
            paths = {f.id: f.source_path for f in template_section.fields or []}

        for field in section.fields or []:
            data[field.id] = field.value
            path = paths.get(field.id)
            if path and path != field.id:
                set_by_path(data, path, field.value)

        if section.table is not None:
            data[section.table.rows_key] = [
                dict(row) for row in section.table.rows if _row_has_content(row)
            ]
    return data


def recompute_warnings(template: DocumentTemplate, model: RenderModel) -> RenderModel:
    """Return the model with ``ovis_warnings`` re-evaluated against its current values."""
    warnings = evaluate_ovis(template, model_data_view(model, template))
    return model.model_copy(update={"ovis_warnings": warnings})
