"""Validation runner for batch evaluation of stored records.

Provides a unified interface to validate one record, every record of one
entity type, or every record of every entity type, and to aggregate and
persist the results. Batches are data-parallel: records are split into
chunks and each worker thread opens its own database connection, sharing
only the read-only rule library.
"""

from __future__ import annotations

import concurrent.futures
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from tcsi.crud import list_records
from tcsi.database import RecordDB
from tcsi.error_crud import create_error, update_transaction_counts
from tcsi.rule_library import RuleLibrary
from tcsi.validators.base import BaseValidator, EvaluationResult, ValidationIssue
from tcsi.validators.course_validator import CourseValidator
from tcsi.validators.provider_validator import ProviderValidator
from tcsi.validators.staff_validator import StaffValidator
from tcsi.validators.student_validator import StudentValidator
from tcsi.validators.unit_attempt_validator import UnitAttemptValidator
from tcsi.validators.unit_validator import UnitValidator

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4


@dataclass
class RecordResult:
    """Evaluation result for one stored record."""

    entity_type: str
    record_id: int | None
    result: EvaluationResult


@dataclass
class AggregatedResult:
    """Aggregated results from validating a batch of records.

    Attributes:
        status: "pass" if no record has errors, "fail" otherwise.
        reporting_period: Collection period the batch was validated for.
        entity_types: Entity types covered by the batch.
        records_checked: Number of records evaluated.
        errors: Number of error-severity issues.
        warnings: Number of warning-severity issues.
        results: Per-record results, in record order.
    """

    status: Literal["pass", "fail"]
    reporting_period: str
    entity_types: list[str]
    records_checked: int
    errors: int
    warnings: int
    results: list[RecordResult] = field(default_factory=list)

    @property
    def invalid_records(self) -> int:
        return sum(1 for item in self.results if not item.result.valid)

    @property
    def all_issues(self) -> list[ValidationIssue]:
        """Flattened list of all issues from all records."""
        issues: list[ValidationIssue] = []
        for item in self.results:
            issues.extend(item.result.all_issues)
        return issues


def _aggregate(
    reporting_period: str, entity_types: list[str], results: list[RecordResult]
) -> AggregatedResult:
    """Aggregate per-record results into a single summary."""
    errors = sum(item.result.error_count for item in results)
    warnings = sum(item.result.warning_count for item in results)
    status: Literal["pass", "fail"] = "fail" if errors else "pass"
    return AggregatedResult(
        status=status,
        reporting_period=reporting_period,
        entity_types=entity_types,
        records_checked=len(results),
        errors=errors,
        warnings=warnings,
        results=results,
    )


class ValidationRunner:
    """Orchestrates running entity validators over stored records.

    Supports:
    - Validating a single in-memory record
    - Validating all (or selected) records of one entity type
    - Validating every entity type for a reporting period
    - Parallel execution across worker threads
    """

    # Available validator classes, in dependency order
    VALIDATORS: dict[str, type[BaseValidator]] = {
        "PROVIDER": ProviderValidator,
        "COURSE": CourseValidator,
        "UNIT": UnitValidator,
        "STAFF": StaffValidator,
        "STUDENT": StudentValidator,
        "UNIT_ATTEMPT": UnitAttemptValidator,
    }

    def __init__(
        self,
        db_path: Path,
        library: RuleLibrary,
        parallel: bool = True,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> None:
        """Initialize validation runner.

        Args:
            db_path: Path to the TCSI database.
            library: Shared rule library.
            parallel: Whether to validate records in parallel.
            max_workers: Upper bound on worker threads.
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.db_path = Path(db_path)
        self.library = library
        self.parallel = parallel
        self.max_workers = max_workers

    def _create_validator(self, entity_type: str, db: RecordDB) -> BaseValidator:
        """Create a validator instance for an entity type.

        Raises:
            ValueError: If the entity type has no validator.
        """
        validator_class = self.VALIDATORS.get(entity_type)
        if validator_class is None:
            raise ValueError(f"Unknown entity type: {entity_type!r}")
        return validator_class(self.library, db)

    def validate_record(
        self, entity_type: str, record: dict[str, Any], reporting_period: str
    ) -> EvaluationResult:
        """Validate one record that need not be stored.

        Args:
            entity_type: Entity type tag.
            record: Field-name to value mapping.
            reporting_period: Collection period.

        Returns:
            EvaluationResult for the record.

        Raises:
            ValueError: If the entity type is unknown.
        """
        with RecordDB(self.db_path) as db:
            validator = self._create_validator(entity_type, db)
            return self._evaluate(validator, record, reporting_period)

    def run_entity(
        self,
        entity_type: str,
        reporting_period: str,
        record_ids: list[int] | None = None,
    ) -> AggregatedResult:
        """Validate stored records of one entity type.

        Args:
            entity_type: Entity type tag.
            reporting_period: Collection period.
            record_ids: Optional subset of record ids.

        Returns:
            AggregatedResult with per-record results in id order.

        Raises:
            ValueError: If the entity type is unknown.
        """
        if entity_type not in self.VALIDATORS:
            raise ValueError(f"Unknown entity type: {entity_type!r}")

        with RecordDB(self.db_path) as db:
            records = list_records(db, entity_type, record_ids)

        results = self._run_records(entity_type, records, reporting_period)
        aggregated = _aggregate(reporting_period, [entity_type], results)
        logger.info(
            "Validated %d %s record(s): %d error(s), %d warning(s)",
            aggregated.records_checked,
            entity_type,
            aggregated.errors,
            aggregated.warnings,
        )
        return aggregated

    def run_all(
        self, reporting_period: str, entity_types: list[str] | None = None
    ) -> AggregatedResult:
        """Validate every stored record of the given (default: all) entity types.

        Args:
            reporting_period: Collection period.
            entity_types: Entity types to include; unknown names are ignored.

        Returns:
            AggregatedResult combining all entity types.
        """
        selected = entity_types if entity_types is not None else list(self.VALIDATORS)
        valid = [name for name in selected if name in self.VALIDATORS]

        results: list[RecordResult] = []
        for entity_type in valid:
            results.extend(self.run_entity(entity_type, reporting_period).results)
        return _aggregate(reporting_period, valid, results)

    def _run_records(
        self, entity_type: str, records: list[dict[str, Any]], reporting_period: str
    ) -> list[RecordResult]:
        if not records:
            return []

        workers = min(self.max_workers, len(records))
        if not self.parallel or workers == 1:
            return self._run_chunk(entity_type, records, reporting_period)

        size = math.ceil(len(records) / workers)
        chunks = [records[start : start + size] for start in range(0, len(records), size)]

        results: list[RecordResult] = []
        with concurrent.futures.ThreadPoolExecutor(max_workers=len(chunks)) as executor:
            futures = [
                executor.submit(self._run_chunk, entity_type, chunk, reporting_period)
                for chunk in chunks
            ]
            # Collect in submission order so results follow record order
            for future in futures:
                results.extend(future.result())
        return results

    def _run_chunk(
        self, entity_type: str, records: list[dict[str, Any]], reporting_period: str
    ) -> list[RecordResult]:
        """Validate a chunk of records on a dedicated connection."""
        with RecordDB(self.db_path, auto_init=False) as db:
            validator = self._create_validator(entity_type, db)
            return [
                RecordResult(
                    entity_type=entity_type,
                    record_id=record.get("id"),
                    result=self._evaluate(validator, record, reporting_period),
                )
                for record in records
            ]

    def _evaluate(
        self, validator: BaseValidator, record: dict[str, Any], reporting_period: str
    ) -> EvaluationResult:
        """Validate one record, turning an unexpected failure into an issue."""
        try:
            return validator.validate(record, reporting_period)
        except Exception as e:
            entity_type = validator.entity_type
            logger.warning("%s validator failed on record %s: %s", entity_type, record.get("id"), e)
            try:
                identifier = validator.record_identifier(record)
            except Exception:
                identifier = f"{entity_type} #{record.get('id')}"
            issue = ValidationIssue(
                error_code=f"TCSI_{entity_type}_VALIDATOR_ERROR",
                field_name=None,
                message=f"Validator failed: {e!s}",
                severity="ERROR",
                record_identifier=identifier,
                resolution_guidance="Please check the record data",
            )
            return EvaluationResult(
                entity_type=entity_type,
                record_identifier=identifier,
                reporting_period=reporting_period,
                errors=[issue],
            )


def persist_results(db: RecordDB, aggregated: AggregatedResult, transaction_id: str) -> int:
    """Write every issue of a batch as a PENDING pre-validation error.

    The transaction must already exist. Its error and warning counts are
    recomputed afterwards.

    Args:
        db: Database connection.
        aggregated: Batch results to persist.
        transaction_id: Owning validation transaction.

    Returns:
        Number of error rows written.
    """
    written = 0
    for item in aggregated.results:
        for issue in item.result.all_issues:
            create_error(
                db,
                issue,
                transaction_id=transaction_id,
                file_type=item.entity_type,
                item_type=item.entity_type,
                item_id=item.record_id,
            )
            written += 1
    update_transaction_counts(db, transaction_id)
    logger.info("Persisted %d issue(s) under transaction %s", written, transaction_id)
    return written
