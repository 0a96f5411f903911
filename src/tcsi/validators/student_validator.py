"""Student record validator.

The largest of the entity validators: demographics, enrolment linkage,
dates, study load and subsidy eligibility.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from typing import Any

from tcsi.crud import record_exists
from tcsi.database import RecordDB
from tcsi.rule_library import RuleLibrary
from tcsi.validators.base import BaseValidator, ValidationContext, is_empty, parse_date, to_float

CHESSN_LENGTH = 10
POSTCODE_LENGTH = 4
PHONE_PATTERN = r"0[0-9]{9}"

MIN_EFTSL = 0.01
MAX_EFTSL = 1.0
FULL_TIME_MIN_EFTSL = 0.75
MIN_AGE = 15

VALID_GENDERS = frozenset({"M", "F", "X"})
VALID_INDIGENOUS_STATUS = frozenset({"1", "2", "3", "4"})
VALID_CITIZENSHIP_STATUS = frozenset({"A", "P", "I", "T"})
VALID_STUDY_MODES = frozenset({"F", "P", "E"})
VALID_ATTENDANCE_TYPES = frozenset({"I", "E", "M", "O"})

# Citizenship codes for which a residential postcode is required
POSTCODE_REQUIRED_CITIZENSHIP = frozenset({"A", "P", "T"})

INTERNATIONAL = "I"


def age_on(born: date, today: date) -> int:
    """Return completed years between born and today."""
    years = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        years -= 1
    return years


def is_flag_set(value: Any) -> bool:
    """Interpret a stored boolean flag (bool, 0/1 or "true"/"false")."""
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


class StudentValidator(BaseValidator):
    """Validates student records.

    Date business rules only run on dates that pass the strict format check;
    a malformed date is reported once, by the format phase.
    """

    entity_type = "STUDENT"

    def __init__(
        self,
        library: RuleLibrary,
        db: RecordDB,
        today: Callable[[], date] = date.today,
    ) -> None:
        """Initialize validator.

        Args:
            library: Rule library used to resolve error codes.
            db: Open record store connection.
            today: Source of the current date for age checks.
        """
        super().__init__(library, db)
        self.today = today

    def record_identifier(self, record: dict[str, Any]) -> str:
        return self.first_present(record, "chessn") or self.full_name(record) or "Unknown Student"

    def check_mandatory_fields(self, ctx: ValidationContext) -> None:
        self.check_mandatory(ctx, "chessn", "TCSI_STUDENT_MANDATORY_001")
        self.check_mandatory(ctx, "last_name", "TCSI_STUDENT_MANDATORY_002")
        self.check_mandatory(ctx, "first_name", "TCSI_STUDENT_MANDATORY_003")
        self.check_mandatory(ctx, "date_of_birth", "TCSI_STUDENT_MANDATORY_004")
        self.check_mandatory(ctx, "gender", "TCSI_STUDENT_MANDATORY_005")
        self.check_mandatory(ctx, "country_of_birth", "TCSI_STUDENT_MANDATORY_006")
        self.check_mandatory(ctx, "indigenous_status", "TCSI_STUDENT_MANDATORY_007")
        self.check_mandatory(ctx, "citizenship_status", "TCSI_STUDENT_MANDATORY_008")
        if ctx.value("citizenship_status") in POSTCODE_REQUIRED_CITIZENSHIP:
            self.check_mandatory(ctx, "residential_postcode", "TCSI_STUDENT_MANDATORY_009")
        self.check_mandatory(ctx, "highest_education_level", "TCSI_STUDENT_MANDATORY_010")
        self.check_mandatory(ctx, "course_code", "TCSI_STUDENT_MANDATORY_011")
        self.check_mandatory(ctx, "commencement_date", "TCSI_STUDENT_MANDATORY_012")
        self.check_mandatory(ctx, "study_mode", "TCSI_STUDENT_MANDATORY_013")
        self.check_mandatory(ctx, "attendance_type", "TCSI_STUDENT_MANDATORY_014")
        self.check_mandatory(ctx, "basis_for_admission", "TCSI_STUDENT_MANDATORY_015")

    def check_formats(self, ctx: ValidationContext) -> None:
        self.check_digits(ctx, "chessn", CHESSN_LENGTH, "TCSI_STUDENT_FORMAT_101")
        self.check_date_format(ctx, "date_of_birth", "TCSI_STUDENT_FORMAT_102")
        self.check_date_format(ctx, "commencement_date", "TCSI_STUDENT_FORMAT_103")
        self.check_email(ctx, "email", "TCSI_STUDENT_FORMAT_104")
        self.check_pattern(ctx, "phone", PHONE_PATTERN, "TCSI_STUDENT_FORMAT_105")
        self.check_digits(ctx, "residential_postcode", POSTCODE_LENGTH, "TCSI_STUDENT_FORMAT_106")
        self.check_numeric(ctx, "eftsl", "TCSI_STUDENT_FORMAT_107", MIN_EFTSL, MAX_EFTSL)

    def check_reference_data(self, ctx: ValidationContext) -> None:
        self.check_in_list(ctx, "gender", VALID_GENDERS, "TCSI_STUDENT_REFERENCE_301")
        self.check_in_list(
            ctx, "indigenous_status", VALID_INDIGENOUS_STATUS, "TCSI_STUDENT_REFERENCE_303"
        )
        self.check_in_list(
            ctx, "citizenship_status", VALID_CITIZENSHIP_STATUS, "TCSI_STUDENT_REFERENCE_304"
        )

        course_code = ctx.value("course_code")
        if not is_empty(course_code) and not record_exists(self.db, "COURSE", course_code):
            self.add_error(ctx, "TCSI_STUDENT_REFERENCE_306", "course_code", course_code)

        self.check_in_list(ctx, "study_mode", VALID_STUDY_MODES, "TCSI_STUDENT_REFERENCE_307")
        self.check_in_list(
            ctx, "attendance_type", VALID_ATTENDANCE_TYPES, "TCSI_STUDENT_REFERENCE_308"
        )

    def check_business_rules(self, ctx: ValidationContext) -> None:
        self._check_dates(ctx)
        self._check_study_load(ctx)

        if ctx.value("citizenship_status") == INTERNATIONAL and is_flag_set(
            ctx.value("commonwealth_supported")
        ):
            self.add_error(ctx, "TCSI_STUDENT_BUSINESS_207", "citizenship_status", INTERNATIONAL)

    def _check_dates(self, ctx: ValidationContext) -> None:
        born = parse_date(ctx.value("date_of_birth"))
        if born is None:
            return

        submitted = ctx.value("date_of_birth")
        today = self.today()
        if age_on(born, today) < MIN_AGE:
            self.add_error(ctx, "TCSI_STUDENT_BUSINESS_201", "date_of_birth", submitted)
        if born > today:
            self.add_error(ctx, "TCSI_STUDENT_BUSINESS_202", "date_of_birth", submitted)

        commenced = parse_date(ctx.value("commencement_date"))
        if commenced is not None and commenced < born:
            self.add_error(
                ctx,
                "TCSI_STUDENT_BUSINESS_203",
                "commencement_date",
                ctx.value("commencement_date"),
            )

    def _check_study_load(self, ctx: ValidationContext) -> None:
        eftsl = to_float(ctx.value("eftsl"))
        if eftsl is None:
            return

        if ctx.value("study_mode") == "F" and eftsl < FULL_TIME_MIN_EFTSL:
            self.add_error(ctx, "TCSI_STUDENT_BUSINESS_205", "study_mode", "F")
        if eftsl > MAX_EFTSL:
            self.add_error(ctx, "TCSI_STUDENT_BUSINESS_206", "eftsl", ctx.value("eftsl"))
