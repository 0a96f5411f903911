"""Provider (institution) record validator."""

from __future__ import annotations

from typing import Any

from tcsi.validators.base import BaseValidator, ValidationContext

PROVIDER_CODE_PATTERN = r"PRV[0-9]{5}"
ABN_LENGTH = 11


class ProviderValidator(BaseValidator):
    """Validates provider records: mandatory identity fields, code and ABN formats."""

    entity_type = "PROVIDER"

    def record_identifier(self, record: dict[str, Any]) -> str:
        return self.first_present(record, "provider_code", "provider_name") or "Unknown Provider"

    def check_mandatory_fields(self, ctx: ValidationContext) -> None:
        self.check_mandatory(ctx, "provider_code", "TCSI_PROVIDER_MANDATORY_001")
        self.check_mandatory(ctx, "provider_name", "TCSI_PROVIDER_MANDATORY_002")
        self.check_mandatory(ctx, "campus_name", "TCSI_PROVIDER_MANDATORY_003")

    def check_formats(self, ctx: ValidationContext) -> None:
        self.check_pattern(ctx, "provider_code", PROVIDER_CODE_PATTERN, "TCSI_PROVIDER_FORMAT_101")
        self.check_digits(ctx, "abn", ABN_LENGTH, "TCSI_PROVIDER_FORMAT_102")

    def check_reference_data(self, ctx: ValidationContext) -> None:
        pass

    def check_business_rules(self, ctx: ValidationContext) -> None:
        pass
