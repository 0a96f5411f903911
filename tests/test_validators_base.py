"""Tests for tcsi.validators.base (issue collection and check primitives)."""

from __future__ import annotations

from typing import Any

import pytest

from tcsi.database import RecordDB
from tcsi.rule_library import RuleDefinition, RuleLibrary
from tcsi.validators.base import (
    BaseValidator,
    EvaluationResult,
    ValidationContext,
    ValidationIssue,
    format_value,
    is_empty,
    is_numeric,
    parse_date,
    to_float,
)


class SampleValidator(BaseValidator):
    """Minimal validator used to exercise the primitives directly."""

    entity_type = "SAMPLE"

    def __init__(self, library: RuleLibrary, db: RecordDB) -> None:
        super().__init__(library, db)
        self.phases: list[str] = []

    def record_identifier(self, record: dict[str, Any]) -> str:
        return self.first_present(record, "name") or "Unknown Sample"

    def check_mandatory_fields(self, ctx: ValidationContext) -> None:
        self.phases.append("mandatory")
        self.check_mandatory(ctx, "name", "SAMPLE_MANDATORY")

    def check_formats(self, ctx: ValidationContext) -> None:
        self.phases.append("formats")
        self.check_pattern(ctx, "name", r"[a-z]+", "SAMPLE_FORMAT")

    def check_reference_data(self, ctx: ValidationContext) -> None:
        self.phases.append("reference")

    def check_business_rules(self, ctx: ValidationContext) -> None:
        self.phases.append("business")
        if ctx.value("flag"):
            self.add_error(ctx, "SAMPLE_WARNING", "flag", ctx.value("flag"))


def _definition(code: str, severity: str = "ERROR", **overrides: Any) -> RuleDefinition:
    values: dict[str, Any] = {
        "error_code": code,
        "file_type": "SAMPLE",
        "category": "FORMAT",
        "field_name": "name",
        "description": "Bad $field '$value' on $record",
        "severity": severity,
    }
    values.update(overrides)
    return RuleDefinition(**values)


@pytest.fixture
def sample_library() -> RuleLibrary:
    return RuleLibrary.from_definitions(
        [
            _definition("SAMPLE_MANDATORY", category="MANDATORY"),
            _definition(
                "SAMPLE_FORMAT",
                resolution_guidance="Use lower-case letters",
                example_correct_value="abc",
                is_auto_fixable=True,
                fix_id="lowercase",
            ),
            _definition("SAMPLE_WARNING", severity="WARNING", field_name="flag"),
            _definition("SAMPLE_CHECK"),
        ]
    )


@pytest.fixture
def sample(sample_library: RuleLibrary, db: RecordDB) -> SampleValidator:
    return SampleValidator(sample_library, db)


def _ctx(**record: Any) -> ValidationContext:
    return ValidationContext(record=record, reporting_period="2024", record_identifier="R1")


# -----------------------------------------------------------------------------
# Helper Function Tests
# -----------------------------------------------------------------------------


class TestHelpers:
    """Tests for module-level value helpers."""

    @pytest.mark.parametrize("value", [None, "", "   ", "\t"])
    def test_is_empty(self, value: Any) -> None:
        """Test null and blank strings are empty."""
        assert is_empty(value)

    @pytest.mark.parametrize("value", [0, 0.0, False, "0", " x "])
    def test_is_not_empty(self, value: Any) -> None:
        """Test falsy non-string values are not empty."""
        assert not is_empty(value)

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(None, None), (True, "true"), (False, "false"), (1.5, "1.5"), ([1, 2], "[1, 2]")],
    )
    def test_format_value(self, value: Any, expected: str | None) -> None:
        """Test values render for display."""
        assert format_value(value) == expected

    @pytest.mark.parametrize("value", [1, 0.5, "1.5", "-2", ".5", "1e3", " 3 "])
    def test_is_numeric(self, value: Any) -> None:
        """Test numbers and numeric strings are numeric."""
        assert is_numeric(value)

    @pytest.mark.parametrize(
        "value", [True, "abc", "1.2.3", "", float("nan"), float("inf"), "nan", None, [1]]
    )
    def test_is_not_numeric(self, value: Any) -> None:
        """Test bools, non-finite numbers and other values are not numeric."""
        assert not is_numeric(value)

    def test_to_float(self) -> None:
        """Test numeric strings convert and others give None."""
        assert to_float("0.75") == 0.75
        assert to_float("x") is None

    def test_parse_date(self) -> None:
        """Test strict YYYY-MM-DD parsing."""
        assert parse_date("2021-02-28") is not None
        assert parse_date("2021-02-30") is None
        assert parse_date("2021-2-28") is None
        assert parse_date("28/02/2021") is None
        assert parse_date("20210228") is None
        assert parse_date(None) is None


# -----------------------------------------------------------------------------
# Issue Collection Tests
# -----------------------------------------------------------------------------


class TestAddError:
    """Tests for add_error."""

    def test_issue_from_definition(self, sample: SampleValidator) -> None:
        """Test the definition supplies message and fix metadata."""
        ctx = _ctx(name="ABC")
        sample.add_error(ctx, "SAMPLE_FORMAT", "name", "ABC")

        assert len(ctx.errors) == 1
        issue = ctx.errors[0]
        assert issue.error_code == "SAMPLE_FORMAT"
        assert issue.message == "Bad name 'ABC' on R1"
        assert issue.severity == "ERROR"
        assert issue.submitted_value == "ABC"
        assert issue.record_identifier == "R1"
        assert issue.expected_format == "abc"
        assert issue.resolution_guidance == "Use lower-case letters"
        assert issue.is_auto_fixable
        assert issue.fix_id == "lowercase"

    def test_warning_goes_to_warnings(self, sample: SampleValidator) -> None:
        """Test WARNING severity issues are kept apart from errors."""
        ctx = _ctx()
        sample.add_error(ctx, "SAMPLE_WARNING", "flag", True)

        assert ctx.errors == []
        assert len(ctx.warnings) == 1
        assert ctx.warnings[0].submitted_value == "true"

    def test_field_defaults_to_definition(self, sample: SampleValidator) -> None:
        """Test the definition's field is used when none is given."""
        ctx = _ctx()
        sample.add_error(ctx, "SAMPLE_WARNING")
        assert ctx.warnings[0].field_name == "flag"

    def test_missing_definition_synthesizes_error(self, sample: SampleValidator) -> None:
        """Test an unknown code yields a generic ERROR issue."""
        ctx = _ctx()
        sample.add_error(ctx, "SAMPLE_UNKNOWN", "name", 42)

        issue = ctx.errors[0]
        assert issue.error_code == "SAMPLE_UNKNOWN"
        assert issue.message == "Validation error: SAMPLE_UNKNOWN"
        assert issue.severity == "ERROR"
        assert issue.resolution_guidance == "Please check the field value"
        assert issue.submitted_value == "42"
        assert not issue.is_auto_fixable

    def test_unavailable_library_synthesizes_error(self, db: RecordDB) -> None:
        """Test add_error never raises when the library cannot load."""

        def broken_loader() -> list[RuleDefinition]:
            raise OSError("store offline")

        validator = SampleValidator(RuleLibrary(broken_loader), db)
        ctx = _ctx()
        validator.add_error(ctx, "SAMPLE_FORMAT", "name", "X")

        assert ctx.errors[0].message == "Validation error: SAMPLE_FORMAT"


# -----------------------------------------------------------------------------
# Check Primitive Tests
# -----------------------------------------------------------------------------


class TestCheckPrimitives:
    """Tests for the reusable check primitives."""

    @pytest.mark.parametrize("value", [None, "", "  "])
    def test_mandatory_fails_on_empty(self, sample: SampleValidator, value: Any) -> None:
        """Test mandatory fails for null and blank values."""
        ctx = _ctx(name=value)
        assert not sample.check_mandatory(ctx, "name", "SAMPLE_CHECK")
        assert len(ctx.errors) == 1

    def test_mandatory_missing_key(self, sample: SampleValidator) -> None:
        """Test mandatory fails when the field is absent."""
        ctx = _ctx()
        assert not sample.check_mandatory(ctx, "name", "SAMPLE_CHECK")

    def test_mandatory_accepts_zero(self, sample: SampleValidator) -> None:
        """Test a zero value is present."""
        assert sample.check_mandatory(_ctx(name=0), "name", "SAMPLE_CHECK")

    @pytest.mark.parametrize(
        "check",
        [
            pytest.param(lambda v, c: v.check_date_format(c, "name", "SAMPLE_CHECK"), id="date"),
            pytest.param(lambda v, c: v.check_in_list(c, "name", {"A"}, "SAMPLE_CHECK"), id="list"),
            pytest.param(
                lambda v, c: v.check_numeric(c, "name", "SAMPLE_CHECK", 1, 2), id="numeric"
            ),
            pytest.param(lambda v, c: v.check_email(c, "name", "SAMPLE_CHECK"), id="email"),
            pytest.param(lambda v, c: v.check_length(c, "name", 3, "SAMPLE_CHECK"), id="length"),
            pytest.param(
                lambda v, c: v.check_pattern(c, "name", "[0-9]+", "SAMPLE_CHECK"), id="pattern"
            ),
            pytest.param(lambda v, c: v.check_digits(c, "name", 3, "SAMPLE_CHECK"), id="digits"),
        ],
    )
    @pytest.mark.parametrize("value", [None, "", "  "])
    def test_empty_passes_other_checks(
        self, sample: SampleValidator, check: Any, value: Any
    ) -> None:
        """Test every non-mandatory primitive passes an empty value."""
        ctx = _ctx(name=value)
        assert check(sample, ctx)
        assert ctx.errors == []

    def test_date_format(self, sample: SampleValidator) -> None:
        """Test calendar-valid ISO dates pass and others fail."""
        assert sample.check_date_format(_ctx(name="2021-02-28"), "name", "SAMPLE_CHECK")
        ctx = _ctx(name="2021-02-30")
        assert not sample.check_date_format(ctx, "name", "SAMPLE_CHECK")
        assert ctx.errors[0].submitted_value == "2021-02-30"

    def test_in_list_is_case_sensitive(self, sample: SampleValidator) -> None:
        """Test enumeration membership is exact."""
        assert sample.check_in_list(_ctx(name="M"), "name", {"M", "F"}, "SAMPLE_CHECK")
        assert not sample.check_in_list(_ctx(name="m"), "name", {"M", "F"}, "SAMPLE_CHECK")

    def test_in_list_rejects_unhashable_value(self, sample: SampleValidator) -> None:
        """Test a list value is reported as a non-member instead of raising."""
        ctx = _ctx(name=["M"])
        allowed = frozenset({"M", "F"})

        assert not sample.check_in_list(ctx, "name", allowed, "SAMPLE_CHECK")
        assert ctx.errors[0].submitted_value == '["M"]'

    @pytest.mark.parametrize(
        ("value", "valid"),
        [(0.5, True), (0.01, True), (1.0, True), ("0.75", True), (1.5, False), ("abc", False)],
    )
    def test_numeric_bounds(self, sample: SampleValidator, value: Any, valid: bool) -> None:
        """Test numeric values must lie in [minimum, maximum]."""
        ctx = _ctx(name=value)
        assert sample.check_numeric(ctx, "name", "SAMPLE_CHECK", 0.01, 1.0) is valid
        assert len(ctx.errors) == (0 if valid else 1)

    def test_numeric_without_bounds(self, sample: SampleValidator) -> None:
        """Test open bounds only require a number."""
        assert sample.check_numeric(_ctx(name=-100), "name", "SAMPLE_CHECK")

    @pytest.mark.parametrize(
        ("value", "valid"),
        [
            ("jane.citizen@university.edu.au", True),
            ("jane@", False),
            ("not-an-email", False),
            ("two@@example.com", False),
        ],
    )
    def test_email(self, sample: SampleValidator, value: str, valid: bool) -> None:
        """Test email syntax is checked without deliverability."""
        assert sample.check_email(_ctx(name=value), "name", "SAMPLE_CHECK") is valid

    def test_length(self, sample: SampleValidator) -> None:
        """Test exact character count."""
        assert sample.check_length(_ctx(name="abcd"), "name", 4, "SAMPLE_CHECK")
        assert not sample.check_length(_ctx(name="abc"), "name", 4, "SAMPLE_CHECK")

    def test_pattern_matches_whole_value(self, sample: SampleValidator) -> None:
        """Test patterns must match the full value."""
        assert sample.check_pattern(_ctx(name="123"), "name", r"[0-9]+", "SAMPLE_CHECK")
        assert not sample.check_pattern(_ctx(name="123a"), "name", r"[0-9]+", "SAMPLE_CHECK")

    @pytest.mark.parametrize("value", ["12345", "12345678901", "12345ABCDE", "123456789X"])
    def test_digits_reports_one_issue(self, sample: SampleValidator, value: str) -> None:
        """Test a bad digit string yields exactly one issue."""
        ctx = _ctx(name=value)
        assert not sample.check_digits(ctx, "name", 10, "SAMPLE_CHECK")
        assert len(ctx.errors) == 1

    def test_digits_valid(self, sample: SampleValidator) -> None:
        """Test an exact-length digit string passes."""
        assert sample.check_digits(_ctx(name="0123456789"), "name", 10, "SAMPLE_CHECK")


# -----------------------------------------------------------------------------
# Validate Tests
# -----------------------------------------------------------------------------


class TestValidate:
    """Tests for the validate template method."""

    def test_phases_run_in_order(self, sample: SampleValidator) -> None:
        """Test all four phases run even when the first fails."""
        result = sample.validate({}, "2024")

        assert sample.phases == ["mandatory", "formats", "reference", "business"]
        assert [i.error_code for i in result.errors] == ["SAMPLE_MANDATORY"]

    def test_result_fields(self, sample: SampleValidator) -> None:
        """Test the result carries identifier, period and issue lists."""
        result = sample.validate({"name": "ABC", "flag": True}, "2024")

        assert isinstance(result, EvaluationResult)
        assert result.entity_type == "SAMPLE"
        assert result.record_identifier == "ABC"
        assert result.reporting_period == "2024"
        assert not result.valid
        assert result.error_count == 1
        assert result.warning_count == 1
        assert [i.error_code for i in result.all_issues] == ["SAMPLE_FORMAT", "SAMPLE_WARNING"]

    def test_warnings_do_not_affect_validity(self, sample: SampleValidator) -> None:
        """Test a record with only warnings is valid."""
        result = sample.validate({"name": "abc", "flag": True}, "2024")
        assert result.valid
        assert result.has_warnings
        assert not result.has_errors

    def test_validator_is_reusable(self, sample: SampleValidator) -> None:
        """Test results of one call do not leak into the next."""
        sample.validate({"name": "ABC"}, "2024")
        result = sample.validate({"name": "abc"}, "2024")
        assert result.all_issues == []

    def test_to_dict(self, sample: SampleValidator) -> None:
        """Test results serialize to plain dictionaries."""
        data = sample.validate({"name": "ABC"}, "2024").to_dict()
        assert data["valid"] is False
        assert data["errors"][0]["error_code"] == "SAMPLE_FORMAT"
        assert data["warnings"] == []


class TestIdentifierHelpers:
    """Tests for record identifier helpers."""

    def test_first_present_skips_blank(self) -> None:
        """Test blank strings count as absent."""
        record = {"a": "", "b": "  ", "c": "x"}
        assert BaseValidator.first_present(record, "a", "b", "c") == "x"
        assert BaseValidator.first_present(record, "a", "b") is None

    def test_full_name(self) -> None:
        """Test first and last names are joined."""
        assert BaseValidator.full_name({"first_name": "Jane", "last_name": "Citizen"}) == (
            "Jane Citizen"
        )
        assert BaseValidator.full_name({"last_name": "Citizen"}) == "Citizen"
        assert BaseValidator.full_name({"first_name": " "}) is None

    def test_issue_to_dict(self) -> None:
        """Test issues serialize every field."""
        issue = ValidationIssue(
            error_code="X", field_name="f", message="m", severity="ERROR"
        )
        assert issue.to_dict()["is_auto_fixable"] is False
