"""Unit attempt (enrolment result) record validator."""

from __future__ import annotations

from typing import Any

from tcsi.crud import record_exists
from tcsi.validators.base import BaseValidator, ValidationContext, is_empty

VALID_RESULTS = frozenset({"P", "F", "W", "N", "WD", "WF", "HD", "D", "C", "PC", "SA", "US"})


class UnitAttemptValidator(BaseValidator):
    """Validates unit attempts and their links to students and units."""

    entity_type = "UNIT_ATTEMPT"

    def record_identifier(self, record: dict[str, Any]) -> str:
        student = self.first_present(record, "student_identifier") or "Unknown"
        unit = self.first_present(record, "unit_code") or "Unknown"
        return f"{student} - {unit}"

    def check_mandatory_fields(self, ctx: ValidationContext) -> None:
        self.check_mandatory(ctx, "student_identifier", "TCSI_UNITATTEMPT_MANDATORY_001")
        self.check_mandatory(ctx, "unit_code", "TCSI_UNITATTEMPT_MANDATORY_002")
        self.check_mandatory(ctx, "study_period", "TCSI_UNITATTEMPT_MANDATORY_003")
        self.check_mandatory(ctx, "result", "TCSI_UNITATTEMPT_MANDATORY_004")

    def check_formats(self, ctx: ValidationContext) -> None:
        pass

    def check_reference_data(self, ctx: ValidationContext) -> None:
        self.check_in_list(ctx, "result", VALID_RESULTS, "TCSI_UNITATTEMPT_REFERENCE_301")

    def check_business_rules(self, ctx: ValidationContext) -> None:
        student = ctx.value("student_identifier")
        if not is_empty(student) and not record_exists(self.db, "STUDENT", student):
            self.add_error(ctx, "TCSI_UNITATTEMPT_BUSINESS_201", "student_identifier", student)

        unit = ctx.value("unit_code")
        if not is_empty(unit) and not record_exists(self.db, "UNIT", unit):
            self.add_error(ctx, "TCSI_UNITATTEMPT_BUSINESS_202", "unit_code", unit)
