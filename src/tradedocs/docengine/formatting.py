"""Australian display formatting for render model values."""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from tradedocs.models.render_model import CellValue, is_empty_value
from tradedocs.models.template import FieldType

_WHITESPACE = re.compile(r"\s")


def format_abn(abn: str | None) -> str:
    """Format an 11-digit ABN as ``XX XXX XXX XXX``; anything else is returned unchanged."""
    if not abn:
        return ""
    cleaned = _WHITESPACE.sub("", abn)
    if len(cleaned) == 11:
        return f"{cleaned[:2]} {cleaned[2:5]} {cleaned[5:8]} {cleaned[8:]}"
    return abn


def format_currency(amount: Decimal | int | float) -> str:
    """Format an amount in AUD, e.g. ``$1,234.56`` or ``-$80.00``."""
    quantized = Decimal(str(amount)).quantize(Decimal("0.01"))
    sign = "-" if quantized < 0 else ""
    return f"{sign}${abs(quantized):,.2f}"


def format_date(value: date | datetime | str) -> str:
    """Format a date (or ISO-8601 string) as ``DD/MM/YYYY``. Unparseable strings pass through."""
    if isinstance(value, datetime):
        return value.strftime("%d/%m/%Y")
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    try:
        return datetime.fromisoformat(value.strip()).strftime("%d/%m/%Y")
    except ValueError:
        return value


def format_long_date(value: date | datetime | str | None) -> str:
    """Format as ``5 March 2025`` for display-only text fields."""
    if value is None or value == "":
        return "Not provided"
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip())
        except ValueError:
            return value
    return f"{value.day} {value.strftime('%B %Y')}"


def _to_number(value: Any) -> int | float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        number = value
    else:
        try:
            number = float(Decimal(str(value).strip()))
        except (InvalidOperation, ValueError):
            return None
    if isinstance(number, float):
        if number != number:
            return None
        if number.is_integer():
            return int(number)
    return number


def format_field_value(value: Any, field_type: FieldType | str, field_id: str | None = None) -> CellValue:
    """Convert raw prefill data into the display value stored in the render model."""
    if is_empty_value(value) or (isinstance(value, list) and not value):
        return None

    if field_id and "abn" in field_id.lower():
        return format_abn(str(value))

    field_type = FieldType(field_type)

    if field_type == FieldType.CURRENCY:
        if isinstance(value, int | float | Decimal) and not isinstance(value, bool):
            return format_currency(value)
        return str(value)

    if field_type == FieldType.NUMBER:
        return _to_number(value)

    if field_type == FieldType.DATE:
        if isinstance(value, date | str):
            return format_date(value)
        return str(value)

    if isinstance(value, bool):
        return "Yes" if value else "No"

    if isinstance(value, list | tuple):
        return ", ".join(str(v) for v in value)

    if isinstance(value, Decimal):
        return str(value)

    return str(value) if not isinstance(value, str) else value
