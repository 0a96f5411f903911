"""Validation framework for TCSI records.

Provides the shared check primitives and one validator per entity type
(provider, course, unit, staff, student, unit attempt), plus a runner for
batch evaluation of stored records.
"""

from __future__ import annotations

from tcsi.validators.base import (
    BaseValidator,
    EvaluationResult,
    ValidationContext,
    ValidationIssue,
)
from tcsi.validators.course_validator import CourseValidator
from tcsi.validators.provider_validator import ProviderValidator
from tcsi.validators.runner import AggregatedResult, RecordResult, ValidationRunner, persist_results
from tcsi.validators.staff_validator import StaffValidator
from tcsi.validators.student_validator import StudentValidator
from tcsi.validators.unit_attempt_validator import UnitAttemptValidator
from tcsi.validators.unit_validator import UnitValidator

__all__ = [
    # Base types
    "BaseValidator",
    "EvaluationResult",
    "ValidationContext",
    "ValidationIssue",
    # Validators
    "CourseValidator",
    "ProviderValidator",
    "StaffValidator",
    "StudentValidator",
    "UnitAttemptValidator",
    "UnitValidator",
    # Runner
    "AggregatedResult",
    "RecordResult",
    "ValidationRunner",
    "persist_results",
]
