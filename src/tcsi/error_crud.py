"""CRUD operations for validation transactions and persisted errors.

Provides:
- Validation transaction creation, lookup and deletion (cascades to errors)
- Persisted error creation from validation issues
- Field updates used by remediation and manual resolution
- Filtered error listing
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from tcsi.database import RecordDB

if TYPE_CHECKING:
    from tcsi.validators.base import ValidationIssue

RESOLUTION_STATUSES: tuple[str, ...] = (
    "PENDING",
    "IN_PROGRESS",
    "RESOLVED",
    "IGNORED",
    "CANNOT_FIX",
)

ERROR_SOURCES: tuple[str, ...] = ("PRE_VALIDATION", "TCSI")

# Columns an existing error row may have changed after creation
UPDATABLE_ERROR_FIELDS: frozenset[str] = frozenset(
    {
        "resolution_status",
        "resolution_notes",
        "resolution_action",
        "resolved_by_user_id",
        "resolved_at",
        "auto_fix_attempted",
        "auto_fix_success",
    }
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_dict(row: Any) -> dict[str, Any]:
    """Convert sqlite3.Row to dict."""
    if row is None:
        return {}
    return dict(row)


# Validation Transaction CRUD Operations


def create_transaction(
    db: RecordDB,
    transaction_id: str,
    reporting_period: str,
    file_types: list[str] | None = None,
    notes: str | None = None,
) -> dict[str, Any]:
    """Create a validation transaction that owns a set of errors.

    Args:
        db: Database connection.
        transaction_id: Unique external identifier (e.g., "VAL-2024-...").
        reporting_period: Collection period being validated.
        file_types: Entity types covered by the run.
        notes: Optional free-text notes.

    Returns:
        Dictionary with the created transaction.

    Raises:
        ValueError: If transaction_id or reporting_period is empty.
    """
    if not transaction_id or not transaction_id.strip():
        raise ValueError("transaction_id cannot be empty")
    if not reporting_period or not reporting_period.strip():
        raise ValueError("reporting_period cannot be empty")

    now = _now()
    db.execute(
        """
        INSERT INTO tcsi_transactions (
            transaction_id, reporting_period, file_types, notes, created_at, updated_at
        ) VALUES (?, ?, ?, ?, ?, ?)
        """,
        (transaction_id, reporting_period, json.dumps(file_types or []), notes, now, now),
    )
    result = db.fetchone(
        "SELECT * FROM tcsi_transactions WHERE transaction_id = ?", (transaction_id,)
    )
    created = _row_to_dict(result)
    created["file_types"] = json.loads(created["file_types"])
    return created


def get_transaction(db: RecordDB, transaction_id: str) -> dict[str, Any] | None:
    """Get a validation transaction by its identifier.

    Returns:
        Dictionary with transaction data (file_types decoded), or None.
    """
    row = db.fetchone(
        "SELECT * FROM tcsi_transactions WHERE transaction_id = ?", (transaction_id,)
    )
    if row is None:
        return None
    result = _row_to_dict(row)
    result["file_types"] = json.loads(result["file_types"] or "[]")
    return result


def update_transaction_counts(db: RecordDB, transaction_id: str) -> bool:
    """Recompute the pre-validation error and warning counts of a transaction.

    Returns:
        True if the transaction exists and was updated.
    """
    cursor = db.execute(
        """
        UPDATE tcsi_transactions SET
            pre_validation_error_count = (
                SELECT COUNT(*) FROM tcsi_errors
                WHERE transaction_id = ? AND error_source = 'PRE_VALIDATION'
                  AND severity = 'ERROR'
            ),
            pre_validation_warning_count = (
                SELECT COUNT(*) FROM tcsi_errors
                WHERE transaction_id = ? AND error_source = 'PRE_VALIDATION'
                  AND severity = 'WARNING'
            ),
            updated_at = ?
        WHERE transaction_id = ?
        """,
        (transaction_id, transaction_id, _now(), transaction_id),
    )
    return cursor.rowcount > 0


def delete_transaction(db: RecordDB, transaction_id: str) -> bool:
    """Delete a validation transaction and, by cascade, its errors.

    Returns:
        True if the transaction was deleted, False if not found.
    """
    cursor = db.execute(
        "DELETE FROM tcsi_transactions WHERE transaction_id = ?", (transaction_id,)
    )
    return cursor.rowcount > 0


# Persisted Error CRUD Operations


def create_error(
    db: RecordDB,
    issue: ValidationIssue,
    *,
    transaction_id: str,
    file_type: str,
    item_type: str | None = None,
    item_id: int | None = None,
    error_source: str = "PRE_VALIDATION",
) -> int:
    """Persist a validation issue as a PENDING error row.

    Args:
        db: Database connection.
        issue: The issue to persist.
        transaction_id: Owning validation transaction.
        file_type: Entity type the issue was raised for.
        item_type: Entity type tag of the source record.
        item_id: Numeric id of the source record.
        error_source: PRE_VALIDATION or TCSI.

    Returns:
        The new error id.

    Raises:
        ValueError: If error_source is invalid.
    """
    if error_source not in ERROR_SOURCES:
        raise ValueError(f"Invalid error_source: {error_source}")

    now = _now()
    cursor = db.execute(
        """
        INSERT INTO tcsi_errors (
            transaction_id, error_source, file_type, error_code, severity,
            field_name, record_identifier, item_type, item_id, error_message,
            submitted_value, expected_format, is_auto_fixable,
            created_at, updated_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            transaction_id,
            error_source,
            file_type,
            issue.error_code,
            issue.severity,
            issue.field_name,
            issue.record_identifier,
            item_type,
            item_id,
            issue.message,
            issue.submitted_value,
            issue.expected_format,
            int(issue.is_auto_fixable),
            now,
            now,
        ),
    )
    return int(cursor.lastrowid or 0)


def get_error(db: RecordDB, error_id: int) -> dict[str, Any] | None:
    """Get a persisted error by id."""
    row = db.fetchone("SELECT * FROM tcsi_errors WHERE id = ?", (error_id,))
    return _row_to_dict(row) if row is not None else None


def update_error(db: RecordDB, error_id: int, **fields: Any) -> bool:
    """Update resolution fields of a persisted error.

    Args:
        db: Database connection.
        error_id: Error id.
        **fields: Columns to set; only resolution and auto-fix columns are
            accepted.

    Returns:
        True if the error was updated, False if not found.

    Raises:
        ValueError: If no fields are given, a field is not updatable, or the
            resolution status is invalid.
    """
    if not fields:
        raise ValueError("No fields to update")
    unknown = set(fields) - UPDATABLE_ERROR_FIELDS
    if unknown:
        raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
    status = fields.get("resolution_status")
    if status is not None and status not in RESOLUTION_STATUSES:
        raise ValueError(f"Invalid resolution_status: {status}")

    assignments = ", ".join(f"{name} = ?" for name in fields)
    cursor = db.execute(
        f"UPDATE tcsi_errors SET {assignments}, updated_at = ? WHERE id = ?",
        (*fields.values(), _now(), error_id),
    )
    return cursor.rowcount > 0


def list_errors(
    db: RecordDB,
    *,
    status: str | None = None,
    item_type: str | None = None,
    transaction_id: str | None = None,
    auto_fixable_only: bool = False,
) -> list[dict[str, Any]]:
    """List persisted errors, optionally filtered.

    Args:
        db: Database connection.
        status: Filter by resolution status.
        item_type: Filter by source entity type.
        transaction_id: Filter by owning validation transaction.
        auto_fixable_only: Only return errors flagged auto-fixable.

    Returns:
        List of error dictionaries ordered by id.
    """
    clauses: list[str] = []
    params: list[Any] = []
    if status is not None:
        clauses.append("resolution_status = ?")
        params.append(status)
    if item_type is not None:
        clauses.append("item_type = ?")
        params.append(item_type)
    if transaction_id is not None:
        clauses.append("transaction_id = ?")
        params.append(transaction_id)
    if auto_fixable_only:
        clauses.append("is_auto_fixable = 1")

    where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
    rows = db.fetchall(f"SELECT * FROM tcsi_errors{where} ORDER BY id", tuple(params))
    return [_row_to_dict(row) for row in rows]
