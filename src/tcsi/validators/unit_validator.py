"""Unit (subject) record validator."""

from __future__ import annotations

from typing import Any

from tcsi.crud import record_exists
from tcsi.validators.base import BaseValidator, ValidationContext, is_empty

CODE_PATTERN = r"[A-Za-z0-9-]+"

MIN_CREDIT_POINTS = 3
MAX_CREDIT_POINTS = 50


class UnitValidator(BaseValidator):
    """Validates unit records."""

    entity_type = "UNIT"

    def record_identifier(self, record: dict[str, Any]) -> str:
        return self.first_present(record, "unit_code", "unit_name") or "Unknown Unit"

    def check_mandatory_fields(self, ctx: ValidationContext) -> None:
        self.check_mandatory(ctx, "unit_code", "TCSI_UNIT_MANDATORY_001")
        self.check_mandatory(ctx, "unit_name", "TCSI_UNIT_MANDATORY_002")
        self.check_mandatory(ctx, "credit_points", "TCSI_UNIT_MANDATORY_003")
        self.check_mandatory(ctx, "unit_level", "TCSI_UNIT_MANDATORY_004")
        self.check_mandatory(ctx, "field_of_education", "TCSI_UNIT_MANDATORY_005")

    def check_formats(self, ctx: ValidationContext) -> None:
        self.check_pattern(ctx, "unit_code", CODE_PATTERN, "TCSI_UNIT_FORMAT_101")
        self.check_numeric(
            ctx, "credit_points", "TCSI_UNIT_FORMAT_102", MIN_CREDIT_POINTS, MAX_CREDIT_POINTS
        )

    def check_reference_data(self, ctx: ValidationContext) -> None:
        pass

    def check_business_rules(self, ctx: ValidationContext) -> None:
        code = ctx.value("unit_code")
        if not is_empty(code) and record_exists(self.db, "UNIT", code, exclude_id=ctx.value("id")):
            self.add_error(ctx, "TCSI_UNIT_BUSINESS_201", "unit_code", code)
