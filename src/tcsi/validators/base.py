"""Base validator classes and models for the TCSI validation framework.

Provides the issue and result types every entity validator returns, and the
reusable check primitives (mandatory, date format, enumerations, numeric
bounds, email, exact length and pattern) the validators compose.

Per-call state (the record under validation and the issues found so far)
lives in a ValidationContext created by ``validate``, so a validator instance
only holds read-only collaborators and can be shared between threads.
"""

from __future__ import annotations

import json
import logging
import math
import re
from abc import ABC, abstractmethod
from collections.abc import Collection
from dataclasses import asdict, dataclass, field
from datetime import date
from string import Template
from typing import Any

from email_validator import EmailNotValidError, validate_email

from tcsi.database import RecordDB
from tcsi.rule_library import RuleDefinition, RuleLibrary, RuleLibraryUnavailableError, Severity

logger = logging.getLogger(__name__)

_ISO_DATE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
_NUMERIC = re.compile(r"\s*[+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)([eE][+-]?[0-9]+)?\s*")


@dataclass
class ValidationIssue:
    """A single validation issue found during checking.

    Attributes:
        error_code: Code of the rule that failed.
        field_name: Field the issue is about.
        message: Rendered message from the rule definition.
        severity: "ERROR" or "WARNING".
        submitted_value: The offending value, rendered as a string.
        record_identifier: Human-readable label of the record.
        expected_format: Example of a value that would pass.
        resolution_guidance: How to correct the value.
        is_auto_fixable: Whether a fixer can resolve the issue.
        fix_id: Fixer identifier copied from the rule definition.
        example_correct_value: Example value copied from the rule definition.
    """

    error_code: str
    field_name: str | None
    message: str
    severity: Severity
    submitted_value: str | None = None
    record_identifier: str | None = None
    expected_format: str | None = None
    resolution_guidance: str | None = None
    is_auto_fixable: bool = False
    fix_id: str | None = None
    example_correct_value: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the issue as a plain dictionary."""
        return asdict(self)


@dataclass
class EvaluationResult:
    """Result of validating one record.

    Attributes:
        entity_type: Entity type tag of the record.
        record_identifier: Human-readable label of the record.
        reporting_period: Collection period the record was validated for.
        errors: Issues with ERROR severity, in the order they were raised.
        warnings: Issues with WARNING severity, in the order they were raised.
    """

    entity_type: str
    record_identifier: str
    reporting_period: str
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        """True when no errors were found; warnings never affect validity."""
        return not self.errors

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    @property
    def all_issues(self) -> list[ValidationIssue]:
        """Errors followed by warnings."""
        return [*self.errors, *self.warnings]

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable summary of the result."""
        return {
            "entity_type": self.entity_type,
            "record_identifier": self.record_identifier,
            "reporting_period": self.reporting_period,
            "valid": self.valid,
            "error_count": self.error_count,
            "warning_count": self.warning_count,
            "errors": [issue.to_dict() for issue in self.errors],
            "warnings": [issue.to_dict() for issue in self.warnings],
        }


@dataclass
class ValidationContext:
    """Working state of one ``validate`` call."""

    record: dict[str, Any]
    reporting_period: str
    record_identifier: str
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    def value(self, field_name: str) -> Any:
        """Get a field of the record, or None when absent."""
        return self.record.get(field_name)


def is_empty(value: Any) -> bool:
    """Check if a value is null or a blank string."""
    if value is None:
        return True
    return isinstance(value, str) and value.strip() == ""


def format_value(value: Any) -> str | None:
    """Render a submitted value for display."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    return str(value)


def is_numeric(value: Any) -> bool:
    """Check if a value is a finite number or a numeric string."""
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return math.isfinite(value)
    if isinstance(value, str):
        return _NUMERIC.fullmatch(value) is not None
    return False


def to_float(value: Any) -> float | None:
    """Convert a numeric value to float, or None if it is not numeric."""
    if not is_numeric(value):
        return None
    return float(value)


def parse_date(value: Any) -> date | None:
    """Parse a strict YYYY-MM-DD date, or None if it is not one."""
    if not isinstance(value, str) or _ISO_DATE.fullmatch(value) is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


class BaseValidator(ABC):
    """Abstract base class for all entity validators.

    Subclasses declare their ``entity_type``, produce a record identifier and
    implement the four checking phases. ``validate`` runs every phase in
    order; later phases run even if earlier ones found errors, so one pass
    reports the full issue set for the record.

    Attributes:
        library: Rule library used to resolve error codes.
        db: Record store used for existence and uniqueness checks.
    """

    entity_type: str = ""

    def __init__(self, library: RuleLibrary, db: RecordDB) -> None:
        """Initialize validator.

        Args:
            library: Rule library used to resolve error codes.
            db: Open record store connection.
        """
        self.library = library
        self.db = db

    def validate(self, record: dict[str, Any], reporting_period: str) -> EvaluationResult:
        """Validate one record.

        Args:
            record: The record as a field-name to value mapping.
            reporting_period: Collection period the record belongs to.

        Returns:
            EvaluationResult with the errors and warnings found.
        """
        ctx = ValidationContext(
            record=record,
            reporting_period=reporting_period,
            record_identifier=self.record_identifier(record),
        )

        self.check_mandatory_fields(ctx)
        self.check_formats(ctx)
        self.check_reference_data(ctx)
        self.check_business_rules(ctx)

        logger.debug(
            "%s %s: %d error(s), %d warning(s)",
            self.entity_type,
            ctx.record_identifier,
            len(ctx.errors),
            len(ctx.warnings),
        )
        return EvaluationResult(
            entity_type=self.entity_type,
            record_identifier=ctx.record_identifier,
            reporting_period=reporting_period,
            errors=ctx.errors,
            warnings=ctx.warnings,
        )

    @abstractmethod
    def record_identifier(self, record: dict[str, Any]) -> str:
        """Return a stable, human-readable label for the record."""

    @abstractmethod
    def check_mandatory_fields(self, ctx: ValidationContext) -> None:
        """Phase 1: required fields."""

    @abstractmethod
    def check_formats(self, ctx: ValidationContext) -> None:
        """Phase 2: format and structural checks."""

    @abstractmethod
    def check_reference_data(self, ctx: ValidationContext) -> None:
        """Phase 3: enumerations and lookups."""

    @abstractmethod
    def check_business_rules(self, ctx: ValidationContext) -> None:
        """Phase 4: cross-field and cross-record rules."""

    # -------------------------------------------------------------------------
    # Issue collection
    # -------------------------------------------------------------------------

    def add_error(
        self,
        ctx: ValidationContext,
        error_code: str,
        field_name: str | None = None,
        submitted_value: Any = None,
    ) -> None:
        """Record an issue for an error code.

        Severity, message and fix metadata come from the rule definition. If
        the definition is missing, or the library cannot be loaded at all, a
        generic ERROR issue is recorded instead. Never raises.
        """
        try:
            definition = self.library.lookup(error_code)
        except RuleLibraryUnavailableError as e:
            logger.debug("Rule library unavailable for %s: %s", error_code, e)
            definition = None

        rendered = format_value(submitted_value)

        if definition is None:
            ctx.errors.append(
                ValidationIssue(
                    error_code=error_code,
                    field_name=field_name,
                    message=f"Validation error: {error_code}",
                    severity="ERROR",
                    submitted_value=rendered,
                    record_identifier=ctx.record_identifier,
                    resolution_guidance="Please check the field value",
                )
            )
            return

        issue = self._issue_from_definition(definition, ctx, field_name, rendered)
        if issue.severity == "WARNING":
            ctx.warnings.append(issue)
        else:
            ctx.errors.append(issue)

    def _issue_from_definition(
        self,
        definition: RuleDefinition,
        ctx: ValidationContext,
        field_name: str | None,
        rendered: str | None,
    ) -> ValidationIssue:
        name = field_name or definition.field_name
        message = Template(definition.description).safe_substitute(
            field=name or "",
            value=rendered if rendered is not None else "",
            record=ctx.record_identifier,
        )
        return ValidationIssue(
            error_code=definition.error_code,
            field_name=name,
            message=message,
            severity=definition.severity,
            submitted_value=rendered,
            record_identifier=ctx.record_identifier,
            expected_format=definition.example_correct_value,
            resolution_guidance=definition.resolution_guidance,
            is_auto_fixable=definition.is_auto_fixable,
            fix_id=definition.fix_id,
            example_correct_value=definition.example_correct_value,
        )

    # -------------------------------------------------------------------------
    # Check primitives
    # -------------------------------------------------------------------------
    # Every primitive except check_mandatory passes on an empty value, so
    # optional fields are only format-checked when present.

    def check_mandatory(self, ctx: ValidationContext, field_name: str, error_code: str) -> bool:
        """Fail if the field is null or a blank string."""
        value = ctx.value(field_name)
        if is_empty(value):
            self.add_error(ctx, error_code, field_name, value)
            return False
        return True

    def check_date_format(self, ctx: ValidationContext, field_name: str, error_code: str) -> bool:
        """Fail unless the value is a calendar-valid YYYY-MM-DD date."""
        value = ctx.value(field_name)
        if is_empty(value):
            return True
        if parse_date(value) is None:
            self.add_error(ctx, error_code, field_name, value)
            return False
        return True

    def check_in_list(
        self,
        ctx: ValidationContext,
        field_name: str,
        allowed_values: Collection[Any],
        error_code: str,
    ) -> bool:
        """Fail unless the value is an exact, case-sensitive member of the set."""
        value = ctx.value(field_name)
        if is_empty(value):
            return True
        try:
            is_member = value in allowed_values
        except TypeError:
            # Unhashable values (lists, dicts) are never members
            is_member = False
        if not is_member:
            self.add_error(ctx, error_code, field_name, value)
            return False
        return True

    def check_numeric(
        self,
        ctx: ValidationContext,
        field_name: str,
        error_code: str,
        minimum: float | None = None,
        maximum: float | None = None,
    ) -> bool:
        """Fail if the value is not numeric or lies outside [minimum, maximum]."""
        value = ctx.value(field_name)
        if is_empty(value):
            return True
        number = to_float(value)
        if (
            number is None
            or (minimum is not None and number < minimum)
            or (maximum is not None and number > maximum)
        ):
            self.add_error(ctx, error_code, field_name, value)
            return False
        return True

    def check_email(self, ctx: ValidationContext, field_name: str, error_code: str) -> bool:
        """Fail if the value is not a well-formed email address."""
        value = ctx.value(field_name)
        if is_empty(value):
            return True
        try:
            validate_email(str(value), check_deliverability=False)
        except EmailNotValidError:
            self.add_error(ctx, error_code, field_name, value)
            return False
        return True

    def check_length(
        self, ctx: ValidationContext, field_name: str, exact_length: int, error_code: str
    ) -> bool:
        """Fail if the value's character count differs from exact_length."""
        value = ctx.value(field_name)
        if is_empty(value):
            return True
        if len(str(value)) != exact_length:
            self.add_error(ctx, error_code, field_name, value)
            return False
        return True

    def check_pattern(
        self,
        ctx: ValidationContext,
        field_name: str,
        pattern: str | re.Pattern[str],
        error_code: str,
    ) -> bool:
        """Fail unless the whole value matches the pattern."""
        value = ctx.value(field_name)
        if is_empty(value):
            return True
        if re.fullmatch(pattern, str(value)) is None:
            self.add_error(ctx, error_code, field_name, value)
            return False
        return True

    def check_digits(
        self, ctx: ValidationContext, field_name: str, exact_length: int, error_code: str
    ) -> bool:
        """Fail unless the value is exactly ``exact_length`` digits.

        The digit pattern is only checked once the length passes, so a value
        with a single defect yields a single issue.
        """
        if not self.check_length(ctx, field_name, exact_length, error_code):
            return False
        return self.check_pattern(ctx, field_name, rf"[0-9]{{{exact_length}}}", error_code)

    # -------------------------------------------------------------------------
    # Helpers for record identifiers
    # -------------------------------------------------------------------------

    @staticmethod
    def first_present(record: dict[str, Any], *field_names: str) -> str | None:
        """Return the first non-empty field value, as a string."""
        for name in field_names:
            value = record.get(name)
            if not is_empty(value):
                return str(value)
        return None

    @staticmethod
    def full_name(record: dict[str, Any]) -> str | None:
        """Compose "first last" from the record, or None if both are blank."""
        parts = [str(record.get(name) or "").strip() for name in ("first_name", "last_name")]
        name = " ".join(part for part in parts if part)
        return name or None
