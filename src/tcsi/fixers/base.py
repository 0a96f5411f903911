"""Base classes for TCSI auto-fixers.

Provides core abstractions for implementing fixers that remediate a
persisted validation error by rewriting one field of the record it was
raised against.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from tcsi.crud import update_record_field
from tcsi.database import RecordDB
from tcsi.validators.base import format_value

logger = logging.getLogger(__name__)


@dataclass
class FixResult:
    """Result of a fixer execution.

    Attributes:
        success: Whether the fix was applied successfully.
        message: Human-readable description of what happened.
        action_taken: Description of the change, stored on the error row.
        original_value: Field value before the fix.
        new_value: Field value after the fix.
    """

    success: bool
    message: str
    action_taken: str | None = None
    original_value: str | None = None
    new_value: str | None = None


class CannotFixError(Exception):
    """Raised by a fixer when a value cannot be remediated.

    This is an expected outcome: the record is left untouched and the
    message is reported to the caller as a failed fix.
    """


class BaseFixer(ABC):
    """Abstract base class for all fixers.

    Attributes:
        db: Open connection the fix is applied through. The caller owns the
            surrounding transaction.
    """

    # The fix_id this fixer handles (must be set by subclasses)
    fix_id: str = ""

    def __init__(self, db: RecordDB) -> None:
        """Initialize fixer.

        Args:
            db: Open database connection.
        """
        self.db = db

    @abstractmethod
    def fix(self, error: dict[str, Any], record: dict[str, Any]) -> FixResult:
        """Apply a fix for the given error.

        Fixers should be idempotent - running one on an already-fixed record
        rewrites the same value.

        Args:
            error: The persisted error row.
            record: The record the error was raised against.

        Returns:
            FixResult containing the outcome and the before/after values.
        """

    def can_fix(self, error: dict[str, Any]) -> bool:
        """Check if this fixer handles the given error's rule."""
        return error.get("fix_id") == self.fix_id


class FieldFixer(BaseFixer):
    """Fixer that rewrites a single field of the target record.

    Subclasses set ``field_name`` (or leave it None to use the error's own
    field) and a ``label`` for messages, and implement ``compute``.
    """

    field_name: str | None = None
    label: str = "value"
    verb: str = "Fixed"

    def target_field(self, error: dict[str, Any]) -> str:
        """Return the record field this fix rewrites.

        Raises:
            CannotFixError: If neither the fixer nor the error names a field.
        """
        name = self.field_name or error.get("field_name")
        if not name:
            raise CannotFixError("Error does not name a field to fix")
        return name

    @abstractmethod
    def compute(self, value: Any, record: dict[str, Any]) -> Any:
        """Return the remediated value.

        Raises:
            CannotFixError: If the value cannot be remediated.
        """

    def fix(self, error: dict[str, Any], record: dict[str, Any]) -> FixResult:
        try:
            field_name = self.target_field(error)
            original = record.get(field_name)
            fixed = self.compute(original, record)
        except CannotFixError as e:
            logger.debug("%s declined error %s: %s", self.fix_id, error.get("id"), e)
            return FixResult(success=False, message=str(e))

        update_record_field(self.db, error["item_type"], record["id"], field_name, fixed)

        original_text = format_value(original)
        fixed_text = format_value(fixed)
        action = f"{self.verb} {self.label} from '{original_text or ''}' to '{fixed_text}'"
        return FixResult(
            success=True,
            message=action,
            action_taken=action,
            original_value=original_text,
            new_value=fixed_text,
        )
