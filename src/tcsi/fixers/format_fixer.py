"""Fixers that normalize dates and phone numbers to their canonical forms."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any

from tcsi.fixers.base import CannotFixError, FieldFixer

# Tried in order; the first format that reproduces the input exactly wins
DATE_INPUT_FORMATS: tuple[str, ...] = (
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d/%m/%y",
    "%Y-%m-%d",
    "%d %b %Y",
    "%d.%m.%Y",
)
CANONICAL_DATE_FORMAT = "%Y-%m-%d"

_NON_DIGITS = re.compile(r"[^0-9]")


def normalize_date(value: str) -> str | None:
    """Convert a date in a known input format to YYYY-MM-DD.

    Args:
        value: The submitted date string.

    Returns:
        The canonical date, or None if no known format round-trips.
    """
    for fmt in DATE_INPUT_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        if parsed.strftime(fmt) == value:
            return parsed.strftime(CANONICAL_DATE_FORMAT)
    return None


def normalize_phone(value: str) -> str | None:
    """Convert a phone number to a 10-digit local number starting with 0.

    Returns:
        The normalized number, or None if it cannot be normalized.
    """
    digits = _NON_DIGITS.sub("", value)
    if len(digits) == 11 and digits.startswith("61"):
        digits = "0" + digits[2:]
    if len(digits) == 9 and not digits.startswith("0"):
        digits = "0" + digits
    if len(digits) != 10 or not digits.startswith("0"):
        return None
    return digits


class DateFormatFixer(FieldFixer):
    """Rewrite the error's date field in YYYY-MM-DD form."""

    fix_id = "fix_date_format"
    label = "date"
    verb = "Converted"

    def compute(self, value: Any, record: dict[str, Any]) -> str:
        if value is None or not str(value).strip():
            raise CannotFixError("Date field is empty")
        fixed = normalize_date(str(value))
        if fixed is None:
            raise CannotFixError(f"Cannot parse date '{value}'")
        return fixed


class PhoneFormatFixer(FieldFixer):
    fix_id = "fix_phone_format"
    field_name = "phone"
    label = "phone"
    verb = "Formatted"

    def compute(self, value: Any, record: dict[str, Any]) -> str:
        original = "" if value is None else str(value)
        fixed = normalize_phone(original)
        if fixed is None:
            raise CannotFixError(f"Cannot convert '{original}' to valid phone format")
        return fixed
