"""Staff record validator."""

from __future__ import annotations

import math
from typing import Any

from tcsi.crud import record_exists
from tcsi.validators.base import BaseValidator, ValidationContext, is_empty, parse_date, to_float

PHONE_PATTERN = r"0[0-9]{9}"

MIN_FTE = 0.01
MAX_FTE = 1.0

VALID_EMPLOYMENT_TYPES = frozenset({"FULL_TIME", "PART_TIME", "CASUAL", "SESSIONAL"})
VALID_STAFF_CATEGORIES = frozenset({"ACADEMIC", "PROFESSIONAL", "CASUAL"})


class StaffValidator(BaseValidator):
    """Validates staff records.

    Business rules:
        - employment end date may not precede the start date
        - staff identifiers are unique across staff records
        - FULL_TIME employment requires an FTE of exactly 1.0
    """

    entity_type = "STAFF"

    def record_identifier(self, record: dict[str, Any]) -> str:
        return (
            self.first_present(record, "staff_identifier")
            or self.full_name(record)
            or "Unknown Staff"
        )

    def check_mandatory_fields(self, ctx: ValidationContext) -> None:
        self.check_mandatory(ctx, "staff_identifier", "TCSI_STAFF_MANDATORY_001")
        self.check_mandatory(ctx, "employment_start_date", "TCSI_STAFF_MANDATORY_002")
        self.check_mandatory(ctx, "position_classification", "TCSI_STAFF_MANDATORY_003")
        self.check_mandatory(ctx, "fte", "TCSI_STAFF_MANDATORY_004")
        self.check_mandatory(ctx, "employment_type", "TCSI_STAFF_MANDATORY_005")
        self.check_mandatory(ctx, "staff_category", "TCSI_STAFF_MANDATORY_006")

    def check_formats(self, ctx: ValidationContext) -> None:
        self.check_date_format(ctx, "employment_start_date", "TCSI_STAFF_FORMAT_101")
        self.check_date_format(ctx, "employment_end_date", "TCSI_STAFF_FORMAT_101")
        self.check_pattern(ctx, "phone", PHONE_PATTERN, "TCSI_STAFF_FORMAT_102")
        self.check_numeric(ctx, "fte", "TCSI_STAFF_FORMAT_103", MIN_FTE, MAX_FTE)

    def check_reference_data(self, ctx: ValidationContext) -> None:
        self.check_in_list(
            ctx, "employment_type", VALID_EMPLOYMENT_TYPES, "TCSI_STAFF_REFERENCE_303"
        )
        self.check_in_list(
            ctx, "staff_category", VALID_STAFF_CATEGORIES, "TCSI_STAFF_REFERENCE_304"
        )

    def check_business_rules(self, ctx: ValidationContext) -> None:
        start = parse_date(ctx.value("employment_start_date"))
        end = parse_date(ctx.value("employment_end_date"))
        if start is not None and end is not None and end < start:
            self.add_error(
                ctx,
                "TCSI_STAFF_BUSINESS_201",
                "employment_end_date",
                ctx.value("employment_end_date"),
            )

        identifier = ctx.value("staff_identifier")
        if not is_empty(identifier) and record_exists(
            self.db, "STAFF", identifier, exclude_id=ctx.value("id")
        ):
            self.add_error(ctx, "TCSI_STAFF_BUSINESS_202", "staff_identifier", identifier)

        fte = to_float(ctx.value("fte"))
        if (
            fte is not None
            and ctx.value("employment_type") == "FULL_TIME"
            and not math.isclose(fte, 1.0, rel_tol=0.0, abs_tol=1e-9)
        ):
            self.add_error(ctx, "TCSI_STAFF_BUSINESS_206", "fte", fte)
