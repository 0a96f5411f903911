"""TCSI pre-submission validation CLI - Main entry point."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer
from rich.table import Table

from tcsi import __version__
from tcsi.cli_utils import (
    EXIT_SYSTEM_ERROR,
    EXIT_USER_ERROR,
    ProjectRootNotFoundError,
    configure_logging,
    console,
    data_dir_option,
    error,
    find_project_root,
    info,
    json_option,
    period_option,
    print_error,
    success,
    warning,
    wire_config,
)
from tcsi.config import TcsiConfig
from tcsi.database import DatabaseError, RecordDB
from tcsi.schema import init_database

if TYPE_CHECKING:
    from tcsi.remediation import BulkFixResult
    from tcsi.validators.runner import AggregatedResult

app = typer.Typer(
    name="tcsi",
    help="TCSI pre-submission validation - check records and auto-fix common errors.",
    add_completion=False,
)

# CLI entity names to entity type tags
ENTITY_NAMES: dict[str, str] = {
    "provider": "PROVIDER",
    "course": "COURSE",
    "unit": "UNIT",
    "staff": "STAFF",
    "student": "STUDENT",
    "unit_attempt": "UNIT_ATTEMPT",
}

# Exit code for validation failures (errors found)
EXIT_VALIDATION_FAILED = 2


# -----------------------------------------------------------------------------
# Version and Main Callbacks
# -----------------------------------------------------------------------------


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"tcsi version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ERROR).",
        envvar="TCSI_LOG_LEVEL",
    ),
) -> None:
    """TCSI pre-submission validation - check records and auto-fix common errors."""
    configure_logging(log_level)


# -----------------------------------------------------------------------------
# Shared Helpers
# -----------------------------------------------------------------------------


def _resolve_project(data_dir: str | None) -> tuple[TcsiConfig, Path]:
    """Find the project and its database, exiting if either is missing."""
    project_root = find_project_root(marker=data_dir or ".tcsi")
    config = wire_config(data_dir=data_dir, start_dir=project_root)
    db_path = config.get_db_path(project_root)
    if not db_path.exists():
        error(f"Database not found: {db_path}. Run 'tcsi init' first.")
    return config, db_path


def _resolve_period(period: str | None, config: TcsiConfig) -> str:
    """Pick the reporting period: option, then config, then the current year."""
    if period:
        return period
    if config.reporting_period:
        return config.reporting_period
    return str(datetime.now(timezone.utc).year)


def _new_transaction_id(period: str) -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S%f")
    return f"VAL-{period}-{stamp}"


# -----------------------------------------------------------------------------
# Init Command
# -----------------------------------------------------------------------------


@app.command()
def init(
    path: str | None = typer.Argument(
        None,
        help="Path to initialize in. Defaults to current directory.",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Recreate the database, discarding existing data.",
    ),
    data_dir: str | None = data_dir_option(),
    json_output: bool = json_option(),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Minimal output for CI.",
    ),
) -> None:
    """Initialize the TCSI data directory and database.

    Creates .tcsi/tcsi.db with the record tables, the error code library,
    validation transactions and the error table. Use --force to recreate
    an existing database.
    """
    target_path = Path(path).resolve() if path else Path.cwd()
    config = wire_config(data_dir=data_dir, start_dir=target_path)
    db_path = config.get_db_path(target_path)

    result: dict[str, Any] = {"success": True, "db_path": str(db_path), "action": None}

    if db_path.exists() and not force:
        result["action"] = "skipped"
        if json_output:
            console.print_json(json.dumps(result))
        else:
            info("[green]✓[/green] Database already initialized", quiet)
        return

    try:
        if db_path.exists():
            warning("Overwriting existing database", quiet or json_output)
            db_path.unlink()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        init_database(db_path)
    except (OSError, DatabaseError) as e:
        if json_output:
            console.print_json(json.dumps({"success": False, "error": str(e)}))
        error(f"Failed to initialize database: {e}", exit_code=EXIT_SYSTEM_ERROR)

    result["action"] = "created"
    if json_output:
        console.print_json(json.dumps(result))
    else:
        success(f"Created database at: {db_path}", quiet)


# -----------------------------------------------------------------------------
# Validate Command
# -----------------------------------------------------------------------------


@app.command()
def validate(
    entity: str = typer.Argument(
        "all",
        help="Entity to validate: provider, course, unit, staff, student, unit_attempt, or all.",
    ),
    period: str | None = period_option(),
    record_ids: list[int] | None = typer.Option(
        None,
        "--id",
        help="Only validate these record ids (repeatable; single entity only).",
    ),
    persist: bool = typer.Option(
        False,
        "--persist",
        help="Store issues as pending errors under a new validation transaction.",
    ),
    data_dir: str | None = data_dir_option(),
    json_output: bool = json_option(),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Minimal output for CI.",
    ),
) -> None:
    """Validate stored records against the error code library.

    Exits with code 2 if validation fails (errors found).
    Warnings do not cause validation failure.
    """
    entity_key = entity.lower().replace("-", "_")
    if entity_key != "all" and entity_key not in ENTITY_NAMES:
        error(
            f"Invalid entity: {entity}. Must be one of: {', '.join(ENTITY_NAMES)}, all"
        )
    if record_ids and entity_key == "all":
        error("--id requires a single entity")

    try:
        config, db_path = _resolve_project(data_dir)
    except ProjectRootNotFoundError as e:
        if json_output:
            console.print_json(json.dumps({"valid": False, "error": str(e)}))
        error(str(e))

    from tcsi.rule_library import RuleLibrary
    from tcsi.validators.runner import ValidationRunner, persist_results

    reporting_period = _resolve_period(period, config)
    library = RuleLibrary.from_db_path(db_path, ttl_seconds=config.rule_cache_ttl)
    runner = ValidationRunner(db_path, library, max_workers=config.max_workers)

    if entity_key == "all":
        aggregated = runner.run_all(reporting_period)
    else:
        aggregated = runner.run_entity(
            ENTITY_NAMES[entity_key], reporting_period, record_ids or None
        )

    result: dict[str, Any] = {
        "valid": aggregated.status == "pass",
        "reporting_period": reporting_period,
        "summary": {
            "records_checked": aggregated.records_checked,
            "invalid_records": aggregated.invalid_records,
            "errors": aggregated.errors,
            "warnings": aggregated.warnings,
        },
        "records": [
            {"record_id": item.record_id, **item.result.to_dict()}
            for item in aggregated.results
            if item.result.all_issues
        ],
    }

    if persist:
        from tcsi.error_crud import create_transaction

        transaction_id = _new_transaction_id(reporting_period)
        with RecordDB(db_path, auto_init=False) as db, db.transaction():
            create_transaction(db, transaction_id, reporting_period, aggregated.entity_types)
            result["errors_persisted"] = persist_results(db, aggregated, transaction_id)
        result["transaction_id"] = transaction_id

    if json_output:
        console.print_json(json.dumps(result))
    else:
        _validate_print_results(aggregated, result, quiet)

    if not result["valid"]:
        raise typer.Exit(code=EXIT_VALIDATION_FAILED)


def _validate_print_results(
    aggregated: AggregatedResult, result: dict[str, Any], quiet: bool
) -> None:
    """Print validate command results to console."""
    summary = result["summary"]
    if result["valid"]:
        success(
            f"Validation passed ({summary['records_checked']} record(s), "
            f"{summary['warnings']} warning(s))",
            quiet,
        )
    else:
        print_error(
            f"Validation failed: {summary['errors']} error(s) in "
            f"{summary['invalid_records']} of {summary['records_checked']} record(s)"
        )

    if not quiet and aggregated.all_issues:
        table = Table(title=f"Issues ({result['reporting_period']})")
        table.add_column("Record", style="cyan")
        table.add_column("Code")
        table.add_column("Severity")
        table.add_column("Field")
        table.add_column("Message")
        table.add_column("Fixable")

        for item in aggregated.results:
            for issue in item.result.all_issues:
                colour = "red" if issue.severity == "ERROR" else "yellow"
                table.add_row(
                    issue.record_identifier or "-",
                    issue.error_code,
                    f"[{colour}]{issue.severity}[/{colour}]",
                    issue.field_name or "-",
                    issue.message,
                    "yes" if issue.is_auto_fixable else "",
                )
        console.print(table)

    if "transaction_id" in result:
        info(
            f"Persisted {result['errors_persisted']} issue(s) under "
            f"[bold]{result['transaction_id']}[/bold]",
            quiet,
        )


# -----------------------------------------------------------------------------
# Fix Command
# -----------------------------------------------------------------------------


@app.command()
def fix(
    error_ids: list[int] | None = typer.Argument(
        None,
        help="Ids of persisted errors to fix.",
    ),
    pending: bool = typer.Option(
        False,
        "--pending",
        help="Fix every pending auto-fixable error.",
    ),
    transaction: str | None = typer.Option(
        None,
        "--transaction",
        "-t",
        help="With --pending, only fix errors of this validation transaction.",
    ),
    data_dir: str | None = data_dir_option(),
    json_output: bool = json_option(),
) -> None:
    """Apply auto-fixes to persisted errors.

    Exit codes:
      0 - All requested fixes applied
      1 - At least one fix failed
    """
    if not error_ids and not pending:
        error("Give error ids or --pending")

    try:
        config, db_path = _resolve_project(data_dir)
    except ProjectRootNotFoundError as e:
        if json_output:
            console.print_json(json.dumps({"success": False, "error": str(e)}))
        error(str(e))

    from tcsi.remediation import AutoFixService
    from tcsi.rule_library import RuleLibrary

    library = RuleLibrary.from_db_path(db_path, ttl_seconds=config.rule_cache_ttl)
    with RecordDB(db_path, auto_init=False) as db:
        service = AutoFixService(db, library)
        if pending:
            outcome = service.fix_pending(transaction_id=transaction)
        else:
            outcome = service.bulk_fix(list(error_ids or []))

    if json_output:
        console.print_json(
            json.dumps(
                {
                    "success": outcome.failed == 0,
                    "total": outcome.total,
                    "fixed": outcome.fixed,
                    "failed": outcome.failed,
                    "details": {
                        str(error_id): {
                            "success": r.success,
                            "message": r.message,
                            "original_value": r.original_value,
                            "new_value": r.new_value,
                        }
                        for error_id, r in outcome.details.items()
                    },
                }
            )
        )
    else:
        _fix_print_results(outcome)

    if outcome.failed:
        raise typer.Exit(code=EXIT_USER_ERROR)


def _fix_print_results(outcome: BulkFixResult) -> None:
    """Print fix command results to console."""
    if outcome.total == 0:
        info("No errors to fix.")
        return

    for error_id, r in outcome.details.items():
        if r.success:
            console.print(f"  [green]FIXED[/green] #{error_id} {r.action_taken}")
        else:
            console.print(f"  [red]FAILED[/red] #{error_id} [dim]{r.message}[/dim]")

    if outcome.failed == 0:
        success(f"Applied {outcome.fixed} fix(es) successfully")
    else:
        print_error(f"Applied {outcome.fixed} fix(es), {outcome.failed} failed")


# -----------------------------------------------------------------------------
# Errors Command
# -----------------------------------------------------------------------------


@app.command("errors")
def list_errors_command(
    status: str | None = typer.Option(
        None,
        "--status",
        "-s",
        help="Filter by resolution status (PENDING, RESOLVED, ...).",
    ),
    entity: str | None = typer.Option(
        None,
        "--entity",
        "-e",
        help="Filter by entity (student, course, ...).",
    ),
    transaction: str | None = typer.Option(
        None,
        "--transaction",
        "-t",
        help="Filter by validation transaction.",
    ),
    data_dir: str | None = data_dir_option(),
    json_output: bool = json_option(),
) -> None:
    """List persisted errors."""
    from tcsi.error_crud import RESOLUTION_STATUSES, list_errors

    status_filter = status.upper() if status else None
    if status_filter is not None and status_filter not in RESOLUTION_STATUSES:
        error(
            f"Invalid status: {status}. Must be one of: {', '.join(RESOLUTION_STATUSES)}"
        )
    item_type = None
    if entity is not None:
        item_type = ENTITY_NAMES.get(entity.lower().replace("-", "_"))
        if item_type is None:
            error(f"Invalid entity: {entity}. Must be one of: {', '.join(ENTITY_NAMES)}")

    try:
        _, db_path = _resolve_project(data_dir)
    except ProjectRootNotFoundError as e:
        if json_output:
            console.print_json(json.dumps({"error": str(e)}))
        error(str(e))

    with RecordDB(db_path, auto_init=False) as db:
        errors = list_errors(
            db, status=status_filter, item_type=item_type, transaction_id=transaction
        )

    if json_output:
        console.print_json(json.dumps({"errors": errors}))
        return

    if not errors:
        info("No errors found.")
        return

    table = Table(title="TCSI Errors")
    table.add_column("ID", style="cyan")
    table.add_column("Record")
    table.add_column("Code")
    table.add_column("Field")
    table.add_column("Value")
    table.add_column("Status", style="green")

    for e in errors:
        table.add_row(
            str(e["id"]),
            e.get("record_identifier") or "-",
            e["error_code"],
            e.get("field_name") or "-",
            e.get("submitted_value") or "-",
            e["resolution_status"],
        )

    console.print(table)


# -----------------------------------------------------------------------------
# Resolve Command
# -----------------------------------------------------------------------------


@app.command()
def resolve(
    error_id: int = typer.Argument(..., help="Id of the persisted error."),
    status: str = typer.Option(
        "RESOLVED",
        "--status",
        "-s",
        help="New status: IN_PROGRESS, RESOLVED, IGNORED or CANNOT_FIX.",
    ),
    notes: str | None = typer.Option(
        None,
        "--notes",
        "-n",
        help="Resolution notes.",
    ),
    data_dir: str | None = data_dir_option(),
) -> None:
    """Manually set the resolution status of an error."""
    try:
        config, db_path = _resolve_project(data_dir)
    except ProjectRootNotFoundError as e:
        error(str(e))

    from tcsi.remediation import AutoFixService
    from tcsi.rule_library import RuleLibrary

    library = RuleLibrary.from_db_path(db_path, ttl_seconds=config.rule_cache_ttl)
    with RecordDB(db_path, auto_init=False) as db:
        service = AutoFixService(db, library)
        try:
            updated = service.mark_resolved(error_id, status.upper(), notes)
        except ValueError as e:
            error(str(e))

    if not updated:
        error(f"Error not found: {error_id}")
    success(f"Error #{error_id} marked {status.upper()}")


# -----------------------------------------------------------------------------
# Rules Command
# -----------------------------------------------------------------------------


@app.command()
def rules(
    data_dir: str | None = data_dir_option(),
    json_output: bool = json_option(),
) -> None:
    """List the error code library.

    Also reports auto-fixable rules whose fix_id has no registered fixer.
    """
    try:
        _, db_path = _resolve_project(data_dir)
    except ProjectRootNotFoundError as e:
        if json_output:
            console.print_json(json.dumps({"error": str(e)}))
        error(str(e))

    from tcsi.fixers.registry import get_global_registry
    from tcsi.rule_library import list_rule_definitions

    with RecordDB(db_path, auto_init=False) as db:
        definitions = list_rule_definitions(db)
    unregistered = get_global_registry().find_unregistered(definitions)

    if json_output:
        console.print_json(
            json.dumps(
                {
                    "rules": [
                        {
                            "error_code": d.error_code,
                            "category": d.category,
                            "field_name": d.field_name,
                            "severity": d.severity,
                            "is_auto_fixable": d.is_auto_fixable,
                            "fix_id": d.fix_id,
                        }
                        for d in definitions
                    ],
                    "unregistered_fixers": [d.error_code for d in unregistered],
                }
            )
        )
        return

    if not definitions:
        info("No rule definitions loaded.")
        return

    table = Table(title="Error Code Library")
    table.add_column("Code", style="cyan")
    table.add_column("Category")
    table.add_column("Field")
    table.add_column("Severity")
    table.add_column("Fix")

    for d in definitions:
        table.add_row(
            d.error_code,
            d.category,
            d.field_name or "-",
            d.severity,
            d.fix_id or "-",
        )

    console.print(table)

    for d in unregistered:
        warning(f"{d.error_code} is auto-fixable but fixer '{d.fix_id}' is not registered")
