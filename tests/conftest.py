"""Pytest configuration and fixtures for tcsi tests."""

from __future__ import annotations

import os
import tempfile
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest

# Set a fixed terminal width to prevent line wrapping issues in CI
# This must be set before any Rich imports
os.environ.setdefault("COLUMNS", "200")
os.environ.setdefault("LINES", "50")
# Disable Rich's terminal detection to ensure consistent output
os.environ.setdefault("TERM", "dumb")

from tcsi.crud import create_record  # noqa: E402
from tcsi.database import RecordDB  # noqa: E402
from tcsi.rule_library import RuleDefinition, RuleLibrary, create_rule_definition  # noqa: E402

# -----------------------------------------------------------------------------
# Error code catalogue used across the suite
# -----------------------------------------------------------------------------

_MANDATORY_FIELDS: dict[str, tuple[str, ...]] = {
    "PROVIDER": ("provider_code", "provider_name", "campus_name"),
    "COURSE": (
        "course_code",
        "course_name",
        "qualification_level",
        "field_of_education",
        "course_duration",
        "total_eftsl",
    ),
    "UNIT": ("unit_code", "unit_name", "credit_points", "unit_level", "field_of_education"),
    "STAFF": (
        "staff_identifier",
        "employment_start_date",
        "position_classification",
        "fte",
        "employment_type",
        "staff_category",
    ),
    "STUDENT": (
        "chessn",
        "last_name",
        "first_name",
        "date_of_birth",
        "gender",
        "country_of_birth",
        "indigenous_status",
        "citizenship_status",
        "residential_postcode",
        "highest_education_level",
        "course_code",
        "commencement_date",
        "study_mode",
        "attendance_type",
        "basis_for_admission",
    ),
    "UNIT_ATTEMPT": ("student_identifier", "unit_code", "study_period", "result"),
}

# (code, field, fix_id)
_OTHER_RULES: dict[str, list[tuple[str, str, str | None]]] = {
    "PROVIDER": [
        ("FORMAT_101", "provider_code", None),
        ("FORMAT_102", "abn", None),
    ],
    "COURSE": [
        ("FORMAT_101", "course_code", "sanitize_course_code"),
        ("FORMAT_102", "field_of_education", "pad_asced_code"),
        ("FORMAT_103", "course_duration", None),
        ("REFERENCE_301", "qualification_level", None),
        ("REFERENCE_303", "attendance_mode", None),
        ("BUSINESS_201", "course_code", None),
        ("BUSINESS_202", "course_end_date", None),
    ],
    "UNIT": [
        ("FORMAT_101", "unit_code", "sanitize_unit_code"),
        ("FORMAT_102", "credit_points", None),
        ("BUSINESS_201", "unit_code", None),
    ],
    "STAFF": [
        ("FORMAT_101", "employment_start_date", "fix_date_format"),
        ("FORMAT_102", "phone", "fix_phone_format"),
        ("FORMAT_103", "fte", None),
        ("REFERENCE_303", "employment_type", None),
        ("REFERENCE_304", "staff_category", None),
        ("BUSINESS_201", "employment_end_date", None),
        ("BUSINESS_202", "staff_identifier", None),
        ("BUSINESS_206", "fte", "fix_full_time_fte"),
    ],
    "STUDENT": [
        ("FORMAT_101", "chessn", "pad_chessn"),
        ("FORMAT_102", "date_of_birth", "fix_date_format"),
        ("FORMAT_103", "commencement_date", "fix_date_format"),
        ("FORMAT_104", "email", None),
        ("FORMAT_105", "phone", "fix_phone_format"),
        ("FORMAT_106", "residential_postcode", "pad_postcode"),
        ("FORMAT_107", "eftsl", None),
        ("REFERENCE_301", "gender", None),
        ("REFERENCE_303", "indigenous_status", None),
        ("REFERENCE_304", "citizenship_status", None),
        ("REFERENCE_306", "course_code", None),
        ("REFERENCE_307", "study_mode", None),
        ("REFERENCE_308", "attendance_type", None),
        ("BUSINESS_201", "date_of_birth", None),
        ("BUSINESS_202", "date_of_birth", None),
        ("BUSINESS_203", "commencement_date", None),
        ("BUSINESS_205", "study_mode", None),
        ("BUSINESS_206", "eftsl", None),
        ("BUSINESS_207", "citizenship_status", None),
    ],
    "UNIT_ATTEMPT": [
        ("REFERENCE_301", "result", None),
        ("BUSINESS_201", "student_identifier", None),
        ("BUSINESS_202", "unit_code", None),
    ],
}

_CATEGORIES = {
    "MANDATORY": "MANDATORY",
    "FORMAT": "FORMAT",
    "REFERENCE": "REFERENCE_DATA",
    "BUSINESS": "BUSINESS_RULE",
}

WARNING_CODES = frozenset({"TCSI_STUDENT_BUSINESS_205"})


def _code_prefix(entity_type: str) -> str:
    return "TCSI_" + entity_type.replace("_", "")


def build_rule_definitions() -> list[RuleDefinition]:
    """Build one definition for every code the validators raise."""
    entries: list[tuple[str, str, str, str | None]] = []
    for entity_type, names in _MANDATORY_FIELDS.items():
        for number, name in enumerate(names, start=1):
            entries.append((entity_type, f"MANDATORY_{number:03d}", name, None))
    for entity_type, rules in _OTHER_RULES.items():
        for suffix, name, fix_id in rules:
            entries.append((entity_type, suffix, name, fix_id))

    definitions = []
    for entity_type, suffix, name, fix_id in entries:
        code = f"{_code_prefix(entity_type)}_{suffix}"
        definitions.append(
            RuleDefinition(
                error_code=code,
                file_type=entity_type,
                category=_CATEGORIES[suffix.split("_")[0]],
                field_name=name,
                description="$field has invalid value '$value' for $record",
                severity="WARNING" if code in WARNING_CODES else "ERROR",
                resolution_guidance=f"Correct the {name} field",
                is_auto_fixable=fix_id is not None,
                fix_id=fix_id,
            )
        )
    return definitions


# -----------------------------------------------------------------------------
# Database and library fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def temp_db_path() -> Generator[Path, None, None]:
    """Create a temporary database path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.db"


@pytest.fixture
def db(temp_db_path: Path) -> Generator[RecordDB, None, None]:
    """Create a connected RecordDB instance."""
    with RecordDB(temp_db_path) as database:
        yield database


@pytest.fixture
def rule_definitions() -> list[RuleDefinition]:
    """The full error code catalogue."""
    return build_rule_definitions()


@pytest.fixture
def library(rule_definitions: list[RuleDefinition]) -> RuleLibrary:
    """In-memory rule library over the full catalogue."""
    return RuleLibrary.from_definitions(rule_definitions)


@pytest.fixture
def rules_db(db: RecordDB, rule_definitions: list[RuleDefinition]) -> RecordDB:
    """Database with the catalogue stored in the error code library table."""
    with db.transaction():
        for definition in rule_definitions:
            create_rule_definition(db, definition)
    return db


# -----------------------------------------------------------------------------
# Record fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def valid_provider() -> dict[str, Any]:
    return {
        "provider_code": "PRV12345",
        "provider_name": "Example University",
        "campus_name": "City Campus",
        "abn": "12345678901",
    }


@pytest.fixture
def valid_course() -> dict[str, Any]:
    return {
        "course_code": "BSC-101",
        "course_name": "Bachelor of Science",
        "qualification_level": "030",
        "field_of_education": "010101",
        "course_duration": 3.0,
        "total_eftsl": 3.0,
        "attendance_mode": "I",
        "course_start_date": "2024-01-01",
        "course_end_date": "2026-12-31",
    }


@pytest.fixture
def valid_unit() -> dict[str, Any]:
    return {
        "unit_code": "COMP1001",
        "unit_name": "Introduction to Programming",
        "credit_points": 6,
        "unit_level": "1",
        "field_of_education": "020103",
    }


@pytest.fixture
def valid_staff() -> dict[str, Any]:
    return {
        "staff_identifier": "STF001",
        "first_name": "Sam",
        "last_name": "Lee",
        "employment_start_date": "2020-01-01",
        "position_classification": "Level B",
        "fte": 1.0,
        "employment_type": "FULL_TIME",
        "staff_category": "ACADEMIC",
        "phone": "0298765432",
    }


@pytest.fixture
def valid_student() -> dict[str, Any]:
    return {
        "chessn": "1234567890",
        "first_name": "Jane",
        "last_name": "Citizen",
        "date_of_birth": "2000-01-15",
        "gender": "F",
        "country_of_birth": "1101",
        "indigenous_status": "4",
        "citizenship_status": "A",
        "residential_postcode": "2000",
        "highest_education_level": "Year 12",
        "course_code": "BSC-101",
        "commencement_date": "2024-02-26",
        "study_mode": "F",
        "attendance_type": "I",
        "basis_for_admission": "ATAR",
        "email": "jane.citizen@university.edu.au",
        "phone": "0412345678",
        "eftsl": 1.0,
        "commonwealth_supported": 1,
    }


@pytest.fixture
def valid_unit_attempt() -> dict[str, Any]:
    return {
        "student_identifier": "1234567890",
        "unit_code": "COMP1001",
        "study_period": "2024-S1",
        "result": "P",
    }


@pytest.fixture
def reference_db(
    db: RecordDB,
    valid_course: dict[str, Any],
    valid_unit: dict[str, Any],
    valid_student: dict[str, Any],
) -> RecordDB:
    """Database holding the course, unit and student other records refer to."""
    with db.transaction():
        create_record(db, "COURSE", **valid_course)
        create_record(db, "UNIT", **valid_unit)
        create_record(db, "STUDENT", **valid_student)
    return db
