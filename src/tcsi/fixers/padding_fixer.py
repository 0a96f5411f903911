"""Fixers that left-pad numeric identifiers with zeros.

Covers CHESSN (10 digits), residential postcode (4 digits) and ASCED
field-of-education codes (6 digits).
"""

from __future__ import annotations

import re
from typing import Any

from tcsi.fixers.base import CannotFixError, FieldFixer

_NON_DIGITS = re.compile(r"[^0-9]")


class PaddingFixer(FieldFixer):
    """Strip non-digits and left-pad to a fixed width."""

    width: int = 0
    verb = "Padded"

    def compute(self, value: Any, record: dict[str, Any]) -> str:
        original = "" if value is None else str(value)
        digits = _NON_DIGITS.sub("", original)
        if not digits:
            raise CannotFixError(f"Cannot pad {self.label} '{original}': no digits to keep")
        fixed = digits.zfill(self.width)
        if len(fixed) != self.width:
            raise CannotFixError(f"Cannot pad {self.label} '{original}' to valid format")
        return fixed


class PadChessnFixer(PaddingFixer):
    fix_id = "pad_chessn"
    field_name = "chessn"
    label = "CHESSN"
    width = 10


class PadPostcodeFixer(PaddingFixer):
    fix_id = "pad_postcode"
    field_name = "residential_postcode"
    label = "postcode"
    width = 4


class PadAscedCodeFixer(PaddingFixer):
    fix_id = "pad_asced_code"
    field_name = "field_of_education"
    label = "ASCED code"
    width = 6
