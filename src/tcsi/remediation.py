"""Remediation orchestrator: applies auto-fixes to persisted errors.

Given a persisted error, the AutoFixService resolves its rule definition and
source record, dispatches to the registered fixer inside one database
transaction, and records the outcome on the error row.

Outcomes:
- Lookup misses and declined fixes come back as a failed FixResult with no
  mutation of the record or the error.
- A successful fix and the error's RESOLVED stamp commit together.
- An unexpected fault rolls the record back, then marks the error as an
  attempted-and-failed auto-fix in a separate transaction.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone

from tcsi.crud import find_record
from tcsi.database import DatabaseError, RecordDB
from tcsi.error_crud import RESOLUTION_STATUSES, get_error, list_errors, update_error
from tcsi.fixers.base import FixResult
from tcsi.fixers.registry import FixerRegistry, get_global_registry
from tcsi.rule_library import RuleLibrary, RuleLibraryUnavailableError

logger = logging.getLogger(__name__)

# Statuses that close an error and stamp the resolver
CLOSING_STATUSES = frozenset({"RESOLVED", "IGNORED", "CANNOT_FIX"})


@dataclass
class BulkFixResult:
    """Tally of a bulk fix run.

    Attributes:
        total: Number of error ids attempted.
        fixed: Number of successful fixes.
        failed: Number of failed fixes.
        details: Per-error-id outcome, in caller order.
    """

    total: int = 0
    fixed: int = 0
    failed: int = 0
    details: dict[int, FixResult] = field(default_factory=dict)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AutoFixService:
    """Applies registered fixers to persisted errors.

    The service owns its transactions, so it must not be called while the
    connection is already inside one.

    Attributes:
        db: Open database connection.
        library: Rule library used to find each error's fix_id.
        registry: Fixer registry (defaults to the built-in catalogue).
        resolver_id: User id stamped on errors this service resolves.
    """

    def __init__(
        self,
        db: RecordDB,
        library: RuleLibrary,
        registry: FixerRegistry | None = None,
        resolver_id: int = 0,
    ) -> None:
        self.db = db
        self.library = library
        self.registry = registry if registry is not None else get_global_registry()
        self.resolver_id = resolver_id

    def attempt_fix(self, error_id: int) -> FixResult:
        """Attempt to automatically fix one persisted error.

        Args:
            error_id: Id of the persisted error.

        Returns:
            FixResult describing the outcome.
        """
        error = get_error(self.db, error_id)
        if error is None:
            return FixResult(success=False, message="Error not found")

        try:
            definition = self.library.lookup(error["error_code"])
        except RuleLibraryUnavailableError as e:
            logger.warning("Cannot fix error %s: %s", error_id, e)
            definition = None
        if definition is None or not definition.is_auto_fixable:
            return FixResult(success=False, message="This error cannot be automatically fixed")

        fix_id = definition.fix_id or ""
        fixer = self.registry.get_fixer(fix_id, self.db)
        if fixer is None:
            return FixResult(success=False, message=f"Fix function '{fix_id}' not implemented")

        try:
            self.db.begin_transaction(immediate=True)
        except DatabaseError as e:
            logger.warning("Cannot lock database to fix error %s: %s", error_id, e)
            return FixResult(success=False, message=f"Auto-fix failed: {e}")

        try:
            # Read the record under the write lock so concurrent fixes serialize
            record = None
            if error["item_type"] and error["item_id"] is not None:
                record = find_record(self.db, error["item_type"], error["item_id"])
            if record is None:
                self.db.rollback()
                return FixResult(success=False, message="Record not found")

            result = fixer.fix(error, record)
            if not result.success:
                self.db.rollback()
                return result

            update_error(
                self.db,
                error_id,
                resolution_status="RESOLVED",
                resolution_action=result.action_taken,
                auto_fix_attempted=1,
                auto_fix_success=1,
                resolved_by_user_id=self.resolver_id,
                resolved_at=_now(),
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.exception(
                "Auto-fix failed for error %s (%s)", error_id, error["error_code"]
            )
            try:
                with self.db.transaction(immediate=True):
                    update_error(
                        self.db,
                        error_id,
                        auto_fix_attempted=1,
                        auto_fix_success=0,
                        resolution_notes=f"Auto-fix failed: {e}",
                    )
            except (DatabaseError, sqlite3.Error) as stamp_error:
                logger.warning(
                    "Could not record failed auto-fix on error %s: %s", error_id, stamp_error
                )
            return FixResult(success=False, message=f"Auto-fix failed: {e}")

        logger.debug("Fixed error %s: %s", error_id, result.action_taken)
        return result

    def bulk_fix(self, error_ids: list[int]) -> BulkFixResult:
        """Attempt each fix independently, in caller order.

        A failure on one error never affects the others.
        """
        results = BulkFixResult(total=len(error_ids))
        for error_id in error_ids:
            result = self.attempt_fix(error_id)
            if result.success:
                results.fixed += 1
            else:
                results.failed += 1
            results.details[error_id] = result

        logger.info(
            "Bulk fix: %d fixed, %d failed of %d", results.fixed, results.failed, results.total
        )
        return results

    def fix_pending(self, transaction_id: str | None = None) -> BulkFixResult:
        """Attempt every PENDING auto-fixable error.

        Args:
            transaction_id: Restrict to one validation transaction.
        """
        pending = list_errors(
            self.db,
            status="PENDING",
            transaction_id=transaction_id,
            auto_fixable_only=True,
        )
        return self.bulk_fix([error["id"] for error in pending])

    def mark_resolved(self, error_id: int, status: str, notes: str | None = None) -> bool:
        """Manually set the resolution status of an error.

        Args:
            error_id: Id of the persisted error.
            status: IN_PROGRESS, RESOLVED, IGNORED or CANNOT_FIX.
            notes: Optional resolution notes.

        Returns:
            True if the error was updated, False if not found.

        Raises:
            ValueError: If the status is invalid or PENDING.
        """
        if status not in RESOLUTION_STATUSES or status == "PENDING":
            raise ValueError(f"Invalid resolution status: {status}")

        fields: dict[str, object] = {"resolution_status": status}
        if notes is not None:
            fields["resolution_notes"] = notes
        if status in CLOSING_STATUSES:
            fields["resolved_by_user_id"] = self.resolver_id
            fields["resolved_at"] = _now()

        with self.db.transaction():
            return update_error(self.db, error_id, **fields)
