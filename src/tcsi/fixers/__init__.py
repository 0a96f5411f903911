"""Fixer framework for automatically remediating TCSI validation errors.

Provides fixers that rewrite one field of the record a persisted error was
raised against, keyed by the fix_id carried on the error's rule definition.
"""

from __future__ import annotations

from tcsi.fixers.base import BaseFixer, CannotFixError, FieldFixer, FixResult
from tcsi.fixers.code_fixer import SanitizeCourseCodeFixer, SanitizeUnitCodeFixer
from tcsi.fixers.format_fixer import DateFormatFixer, PhoneFormatFixer
from tcsi.fixers.fte_fixer import FullTimeFteFixer
from tcsi.fixers.padding_fixer import PadAscedCodeFixer, PadChessnFixer, PadPostcodeFixer
from tcsi.fixers.registry import (
    FixerRegistry,
    get_global_registry,
)

__all__ = [
    # Base types
    "BaseFixer",
    "CannotFixError",
    "FieldFixer",
    "FixResult",
    # Registry
    "FixerRegistry",
    "get_global_registry",
    # Fixers
    "DateFormatFixer",
    "FullTimeFteFixer",
    "PadAscedCodeFixer",
    "PadChessnFixer",
    "PadPostcodeFixer",
    "PhoneFormatFixer",
    "SanitizeCourseCodeFixer",
    "SanitizeUnitCodeFixer",
]
