"""Fixer that sets FTE to 1.0 for full-time staff."""

from __future__ import annotations

from typing import Any

from tcsi.fixers.base import CannotFixError, FieldFixer

FULL_TIME = "FULL_TIME"
FULL_TIME_FTE = 1.0


class FullTimeFteFixer(FieldFixer):
    """Force the FTE of a FULL_TIME staff record to 1.0.

    Records with any other employment type are declined and left untouched.
    """

    fix_id = "fix_full_time_fte"
    field_name = "fte"
    label = "FTE"
    verb = "Set"

    def compute(self, value: Any, record: dict[str, Any]) -> float:
        if record.get("employment_type") != FULL_TIME:
            raise CannotFixError("Employment type is not FULL_TIME")
        return FULL_TIME_FTE
