"""Document template validator.

Validates raw template JSON at load time and returns a typed
DocumentTemplate. Structure is checked against ``template.schema.json``
(JSON Schema draft 2020-12); id uniqueness, which JSON Schema cannot
express, is checked afterwards. Fails fast: the first problem raises
TemplateValidationError with a ``sections[0].fields[1]`` style path.

Pure: no I/O beyond loading the packaged schema once, no logging.
"""

from __future__ import annotations

import functools
import json
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError as SchemaValidationError
from pydantic import ValidationError as PydanticValidationError

from tradedocs.models.template import DocumentTemplate

TEMPLATE_SCHEMA_PATH = Path(__file__).parent / "template.schema.json"


class TemplateValidationError(Exception):
    """Malformed template.

    Attributes:
        message: Human-readable description of the first problem found.
        path: Location of the problem within the template ("$" for the root).
    """

    code = "TEMPLATE_INVALID"

    def __init__(self, message: str, path: str = "$") -> None:
        super().__init__(f"{message} (at {path})")
        self.message = message
        self.path = path


@functools.cache
def load_template_schema() -> dict[str, Any]:
    with TEMPLATE_SCHEMA_PATH.open("r", encoding="utf-8") as f:
        schema: dict[str, Any] = json.load(f)
    Draft202012Validator.check_schema(schema)
    return schema


@functools.cache
def _validator() -> Draft202012Validator:
    return Draft202012Validator(load_template_schema())


def format_path(parts: Sequence[str | int]) -> str:
    """Render a JSON path as ``sections[0].fields[1]`` ("$" for the root)."""
    out = ""
    for part in parts:
        if isinstance(part, int):
            out += f"[{part}]"
        else:
            out += f".{part}" if out else part
    return out or "$"


def _error_location(error: SchemaValidationError) -> list[str | int]:
    # Below the top level, a bad property is reported at the object holding it.
    parts = list(error.absolute_path)
    if len(parts) > 1 and isinstance(parts[-1], str):
        parts.pop()
    return parts


def _error_message(error: SchemaValidationError) -> str:
    messages = error.schema.get("x-errors", {}) if isinstance(error.schema, dict) else {}
    message = messages.get(error.validator, error.message)
    parts = list(error.absolute_path)
    if parts and isinstance(parts[-1], str) and parts[-1] not in message:
        message = f"'{parts[-1]}': {message}"
    return message


def _sort_key(error: SchemaValidationError) -> tuple[Any, ...]:
    parts = list(error.absolute_path)
    return (len(parts), tuple((isinstance(p, str), p) for p in parts))


def _check_unique(ids: Iterable[tuple[str, str]], what: str) -> None:
    seen: set[str] = set()
    for item_id, path in ids:
        if item_id in seen:
            raise TemplateValidationError(f"Duplicate {what} id '{item_id}'", path)
        seen.add(item_id)


def _check_unique_ids(template: DocumentTemplate) -> None:
    _check_unique(
        ((s.id, f"sections[{i}]") for i, s in enumerate(template.sections)), "section"
    )
    for i, section in enumerate(template.sections):
        _check_unique(
            (
                (f.id, f"sections[{i}].fields[{j}]")
                for j, f in enumerate(section.fields or [])
            ),
            "field",
        )
        if section.table is not None:
            _check_unique(
                (
                    (c.id, f"sections[{i}].table.columns[{j}]")
                    for j, c in enumerate(section.table.columns)
                ),
                "column",
            )
    _check_unique(
        ((c.id, f"ovisChecks[{i}]") for i, c in enumerate(template.ovis_checks)), "OVIS check"
    )


def validate_template(raw: Any) -> DocumentTemplate:
    """Validate a raw template mapping and return the typed template.

    Args:
        raw: Parsed template JSON.

    Returns:
        The validated DocumentTemplate.

    Raises:
        TemplateValidationError: On the first structural problem found.
    """
    errors = sorted(_validator().iter_errors(raw), key=_sort_key)
    if errors:
        first = errors[0]
        raise TemplateValidationError(_error_message(first), format_path(_error_location(first)))

    try:
        template = DocumentTemplate.model_validate(raw)
    except PydanticValidationError as e:
        first_error = e.errors()[0]
        raise TemplateValidationError(
            first_error.get("msg", "Invalid template"), format_path(first_error.get("loc", ()))
        ) from e

    _check_unique_ids(template)
    return template
