"""CRUD operations for TCSI entity records.

Provides the record-store side of validation and remediation:
- Entity type to table dispatch (PROVIDER, COURSE, UNIT, STAFF, STUDENT, UNIT_ATTEMPT)
- Lookup by id and existence checks by natural key
- Creation and single-field updates used by the auto-fixers
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from tcsi.database import RecordDB

ENTITY_TABLES: dict[str, str] = {
    "PROVIDER": "providers",
    "COURSE": "courses",
    "UNIT": "units",
    "STAFF": "staff",
    "STUDENT": "students",
    "UNIT_ATTEMPT": "unit_attempts",
}

# Column that identifies a record outside the database
NATURAL_KEYS: dict[str, str] = {
    "PROVIDER": "provider_code",
    "COURSE": "course_code",
    "UNIT": "unit_code",
    "STAFF": "staff_identifier",
    "STUDENT": "chessn",
}

ENTITY_FIELDS: dict[str, tuple[str, ...]] = {
    "PROVIDER": ("provider_code", "provider_name", "campus_name", "abn"),
    "COURSE": (
        "course_code",
        "course_name",
        "qualification_level",
        "field_of_education",
        "course_duration",
        "total_eftsl",
        "attendance_mode",
        "course_start_date",
        "course_end_date",
    ),
    "UNIT": ("unit_code", "unit_name", "credit_points", "unit_level", "field_of_education"),
    "STAFF": (
        "staff_identifier",
        "first_name",
        "last_name",
        "employment_start_date",
        "employment_end_date",
        "position_classification",
        "fte",
        "employment_type",
        "staff_category",
        "phone",
    ),
    "STUDENT": (
        "chessn",
        "first_name",
        "last_name",
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
        "email",
        "phone",
        "eftsl",
        "commonwealth_supported",
    ),
    "UNIT_ATTEMPT": ("student_identifier", "unit_code", "study_period", "result"),
}


def _table_for(entity_type: str) -> str:
    """Resolve the table backing an entity type.

    Raises:
        ValueError: If the entity type is unknown.
    """
    table = ENTITY_TABLES.get(entity_type)
    if table is None:
        raise ValueError(f"Unknown entity type: {entity_type!r}")
    return table


def _validate_fields(entity_type: str, names: list[str] | tuple[str, ...]) -> None:
    """Ensure every column name belongs to the entity.

    Column names are interpolated into SQL, so anything outside the known
    field list is rejected.

    Raises:
        ValueError: If a field is not part of the entity.
    """
    allowed = ENTITY_FIELDS[entity_type]
    unknown = [name for name in names if name not in allowed]
    if unknown:
        raise ValueError(f"Unknown field(s) for {entity_type}: {', '.join(sorted(unknown))}")


def _row_to_dict(row: Any) -> dict[str, Any]:
    """Convert sqlite3.Row to dict."""
    if row is None:
        return {}
    return dict(row)


def create_record(db: RecordDB, entity_type: str, **fields: Any) -> dict[str, Any]:
    """Create a new entity record.

    Args:
        db: Database connection.
        entity_type: Entity type tag (e.g., "STUDENT").
        **fields: Column values for the record.

    Returns:
        Dictionary with the created record, including its id.

    Raises:
        ValueError: If the entity type or any field is unknown.
    """
    table = _table_for(entity_type)
    _validate_fields(entity_type, list(fields))

    now = datetime.now(timezone.utc).isoformat()
    columns = [*fields, "created_at", "updated_at"]
    values = [*fields.values(), now, now]
    placeholders = ", ".join("?" for _ in columns)

    cursor = db.execute(
        f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
        tuple(values),
    )
    result = db.fetchone(f"SELECT * FROM {table} WHERE id = ?", (cursor.lastrowid,))
    return _row_to_dict(result)


def find_record(db: RecordDB, entity_type: str, record_id: int) -> dict[str, Any] | None:
    """Get a record by entity type and id.

    Unknown entity types are treated as a miss rather than an error, matching
    how the remediation service resolves error rows.

    Args:
        db: Database connection.
        entity_type: Entity type tag.
        record_id: Numeric record id.

    Returns:
        Dictionary with record data, or None if not found.
    """
    table = ENTITY_TABLES.get(entity_type)
    if table is None:
        return None
    result = db.fetchone(f"SELECT * FROM {table} WHERE id = ?", (record_id,))
    return _row_to_dict(result) if result is not None else None


def list_records(
    db: RecordDB, entity_type: str, record_ids: list[int] | None = None
) -> list[dict[str, Any]]:
    """List records of one entity type, ordered by id.

    Args:
        db: Database connection.
        entity_type: Entity type tag.
        record_ids: Optional subset of ids to return.

    Returns:
        List of record dictionaries.
    """
    table = _table_for(entity_type)
    if record_ids is None:
        results = db.fetchall(f"SELECT * FROM {table} ORDER BY id")
    elif not record_ids:
        return []
    else:
        placeholders = ", ".join("?" for _ in record_ids)
        results = db.fetchall(
            f"SELECT * FROM {table} WHERE id IN ({placeholders}) ORDER BY id",
            tuple(record_ids),
        )
    return [_row_to_dict(row) for row in results]


def record_exists(
    db: RecordDB,
    entity_type: str,
    key: Any,
    exclude_id: int | None = None,
) -> bool:
    """Check whether a record with the given natural key exists.

    Args:
        db: Database connection.
        entity_type: Entity type tag with a natural key (not UNIT_ATTEMPT).
        key: Natural key value (course code, CHESSN, ...).
        exclude_id: Record id to ignore, so a record does not collide with itself.

    Returns:
        True if another matching record exists.

    Raises:
        ValueError: If the entity type has no natural key.
    """
    table = _table_for(entity_type)
    column = NATURAL_KEYS.get(entity_type)
    if column is None:
        raise ValueError(f"{entity_type} has no natural key")

    if exclude_id is None:
        result = db.fetchone(f"SELECT 1 FROM {table} WHERE {column} = ? LIMIT 1", (key,))
    else:
        result = db.fetchone(
            f"SELECT 1 FROM {table} WHERE {column} = ? AND id != ? LIMIT 1",
            (key, exclude_id),
        )
    return result is not None


def update_record_field(
    db: RecordDB, entity_type: str, record_id: int, field: str, value: Any
) -> bool:
    """Set a single field on a record.

    Args:
        db: Database connection.
        entity_type: Entity type tag.
        record_id: Numeric record id.
        field: Column to update.
        value: New value.

    Returns:
        True if row was updated, False if record not found.

    Raises:
        ValueError: If the entity type or field is unknown.
    """
    table = _table_for(entity_type)
    _validate_fields(entity_type, [field])

    now = datetime.now(timezone.utc).isoformat()
    cursor = db.execute(
        f"UPDATE {table} SET {field} = ?, updated_at = ? WHERE id = ?",
        (value, now, record_id),
    )
    return cursor.rowcount > 0


def delete_record(db: RecordDB, entity_type: str, record_id: int) -> bool:
    """Delete a record by id.

    Returns:
        True if row was deleted, False if record not found.
    """
    table = _table_for(entity_type)
    cursor = db.execute(f"DELETE FROM {table} WHERE id = ?", (record_id,))
    return cursor.rowcount > 0
