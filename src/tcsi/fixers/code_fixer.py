"""Fixers that sanitize course and unit codes."""

from __future__ import annotations

import re
from typing import Any

from tcsi.fixers.base import CannotFixError, FieldFixer

_INVALID_CODE_CHARS = re.compile(r"[^A-Za-z0-9-]")


class SanitizeCodeFixer(FieldFixer):
    """Drop characters outside [A-Za-z0-9-] and upper-case the rest."""

    verb = "Sanitized"

    def compute(self, value: Any, record: dict[str, Any]) -> str:
        fixed = _INVALID_CODE_CHARS.sub("", "" if value is None else str(value)).upper()
        if not fixed:
            raise CannotFixError(f"Cannot sanitize empty {self.label}")
        return fixed


class SanitizeCourseCodeFixer(SanitizeCodeFixer):
    fix_id = "sanitize_course_code"
    field_name = "course_code"
    label = "course code"


class SanitizeUnitCodeFixer(SanitizeCodeFixer):
    fix_id = "sanitize_unit_code"
    field_name = "unit_code"
    label = "unit code"
