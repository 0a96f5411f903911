"""Course record validator."""

from __future__ import annotations

from typing import Any

from tcsi.crud import record_exists
from tcsi.validators.base import BaseValidator, ValidationContext, is_empty, parse_date

CODE_PATTERN = r"[A-Za-z0-9-]+"
ASCED_LENGTH = 6

MIN_DURATION = 0.25
MAX_DURATION = 10.0

VALID_QUALIFICATION_LEVELS = frozenset(
    {"020", "030", "040", "050", "060", "070", "080", "090", "100"}
)
VALID_ATTENDANCE_MODES = frozenset({"I", "E", "M", "O"})


class CourseValidator(BaseValidator):
    """Validates course records.

    Business rules look at other course rows: the course code must be unique
    (the record's own id excluded), and an end date may not precede the
    start date.
    """

    entity_type = "COURSE"

    def record_identifier(self, record: dict[str, Any]) -> str:
        return self.first_present(record, "course_code", "course_name") or "Unknown Course"

    def check_mandatory_fields(self, ctx: ValidationContext) -> None:
        self.check_mandatory(ctx, "course_code", "TCSI_COURSE_MANDATORY_001")
        self.check_mandatory(ctx, "course_name", "TCSI_COURSE_MANDATORY_002")
        self.check_mandatory(ctx, "qualification_level", "TCSI_COURSE_MANDATORY_003")
        self.check_mandatory(ctx, "field_of_education", "TCSI_COURSE_MANDATORY_004")
        self.check_mandatory(ctx, "course_duration", "TCSI_COURSE_MANDATORY_005")
        self.check_mandatory(ctx, "total_eftsl", "TCSI_COURSE_MANDATORY_006")

    def check_formats(self, ctx: ValidationContext) -> None:
        self.check_pattern(ctx, "course_code", CODE_PATTERN, "TCSI_COURSE_FORMAT_101")
        self.check_digits(ctx, "field_of_education", ASCED_LENGTH, "TCSI_COURSE_FORMAT_102")
        self.check_numeric(
            ctx, "course_duration", "TCSI_COURSE_FORMAT_103", MIN_DURATION, MAX_DURATION
        )

    def check_reference_data(self, ctx: ValidationContext) -> None:
        self.check_in_list(
            ctx, "qualification_level", VALID_QUALIFICATION_LEVELS, "TCSI_COURSE_REFERENCE_301"
        )
        self.check_in_list(
            ctx, "attendance_mode", VALID_ATTENDANCE_MODES, "TCSI_COURSE_REFERENCE_303"
        )

    def check_business_rules(self, ctx: ValidationContext) -> None:
        code = ctx.value("course_code")
        if not is_empty(code) and record_exists(
            self.db, "COURSE", code, exclude_id=ctx.value("id")
        ):
            self.add_error(ctx, "TCSI_COURSE_BUSINESS_201", "course_code", code)

        start = parse_date(ctx.value("course_start_date"))
        end = parse_date(ctx.value("course_end_date"))
        if start is not None and end is not None and end < start:
            self.add_error(
                ctx, "TCSI_COURSE_BUSINESS_202", "course_end_date", ctx.value("course_end_date")
            )
