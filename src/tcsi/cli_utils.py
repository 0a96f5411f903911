"""CLI utility functions for tcsi.

Provides helper functions for:
- Config wiring: Extracting Typer CLI options and passing to load_config
- Path resolution: Finding project root by looking for the .tcsi/ directory
- Output: rich-styled messages, and errors that exit with a code
- Logging setup for the --log-level option
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, NoReturn

import typer
from rich.console import Console

from tcsi.config import TcsiConfig, load_config

# Exit code conventions
EXIT_SUCCESS = 0
EXIT_USER_ERROR = 1  # User error (bad input, missing file, etc.)
EXIT_SYSTEM_ERROR = 2  # System error (permissions, I/O, etc.)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class ProjectRootNotFoundError(Exception):
    """Raised when project root cannot be found."""

    def __init__(self, start_dir: Path, marker: str = ".tcsi") -> None:
        self.start_dir = start_dir
        self.marker = marker
        super().__init__(
            f"Could not find project root (no '{marker}/' directory found). "
            f"Searched from: {start_dir}"
        )


# -----------------------------------------------------------------------------
# Output Helpers
# -----------------------------------------------------------------------------

# Rich consoles for output
console = Console()
err_console = Console(stderr=True)


def print_error(msg: str) -> None:
    """Print an error message to stderr without exiting."""
    err_console.print(f"[red]Error:[/red] {msg}")


def error(msg: str, *, exit_code: int = EXIT_USER_ERROR) -> NoReturn:
    """Print an error message and exit with the given exit code.

    Raises:
        typer.Exit: Always raises to exit the program.
    """
    print_error(msg)
    raise typer.Exit(code=exit_code)


def warning(msg: str, quiet: bool = False) -> None:
    """Print a warning message to stderr."""
    if not quiet:
        err_console.print(f"[yellow]Warning:[/yellow] {msg}")


def success(msg: str, quiet: bool = False) -> None:
    if not quiet:
        console.print(f"[green]Success:[/green] {msg}")


def info(msg: str, quiet: bool = False) -> None:
    if not quiet:
        console.print(msg)


# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------


def configure_logging(level: str) -> None:
    """Configure root logging for a CLI run.

    Args:
        level: Level name, case-insensitive.

    Raises:
        typer.Exit: If the level name is unknown.
    """
    name = level.upper()
    if name not in LOG_LEVELS:
        error(f"Invalid log level '{level}'. Must be one of: {', '.join(LOG_LEVELS)}")
    logging.basicConfig(level=getattr(logging, name), format=LOG_FORMAT, force=True)


# -----------------------------------------------------------------------------
# Path Resolution Helper
# -----------------------------------------------------------------------------


def find_project_root(
    start_dir: Path | None = None,
    marker: str = ".tcsi",
) -> Path:
    """Find the project root by looking for the data directory marker.

    Traverses up the directory tree from start_dir looking for a directory
    containing the marker (default: .tcsi/).

    Args:
        start_dir: Directory to start searching from. Defaults to cwd.
        marker: Name of the marker directory to look for (default: ".tcsi").

    Returns:
        Path to the project root (directory containing the marker).

    Raises:
        ProjectRootNotFoundError: If no project root is found.
        PermissionError: If a directory cannot be accessed.
    """
    current = (start_dir or Path.cwd()).resolve()
    original_start = current

    while True:
        marker_path = current / marker

        try:
            if marker_path.is_dir():
                return current
        except PermissionError as e:
            raise PermissionError(
                f"Permission denied when checking for project root at: {current}"
            ) from e

        parent = current.parent

        # Check if we've reached the filesystem root
        if parent == current:
            raise ProjectRootNotFoundError(original_start, marker)

        current = parent


# -----------------------------------------------------------------------------
# Config Wiring Helper
# -----------------------------------------------------------------------------


def wire_config(
    data_dir: str | None = None,
    db_name: str | None = None,
    reporting_period: str | None = None,
    start_dir: Path | None = None,
) -> TcsiConfig:
    """Wire CLI options to load_config with appropriate overrides.

    Args:
        data_dir: Override for data directory name.
        db_name: Override for database file name.
        reporting_period: Override for the default reporting period.
        start_dir: Directory to start searching for config files.

    Returns:
        Fully resolved TcsiConfig instance.

    Raises:
        typer.Exit: If configuration is invalid.
    """
    cli_overrides: dict[str, Any] = {}

    if data_dir is not None:
        cli_overrides["data_dir"] = data_dir
    if db_name is not None:
        cli_overrides["db_name"] = db_name
    if reporting_period is not None:
        cli_overrides["reporting_period"] = reporting_period

    try:
        return load_config(cli_overrides=cli_overrides, start_dir=start_dir)
    except ValueError as e:
        error(f"Invalid configuration: {e}", exit_code=EXIT_USER_ERROR)


# -----------------------------------------------------------------------------
# Typer Option Factory Functions
# -----------------------------------------------------------------------------
# Typer consumes Option objects when decorating commands, so each command
# needs a fresh instance.


def data_dir_option() -> Any:
    """Create a Typer Option for --data-dir / -d."""
    return typer.Option(
        None,
        "--data-dir",
        "-d",
        help="Override data directory name (default: .tcsi).",
        envvar="TCSI_DATA_DIR",
    )


def period_option() -> Any:
    """Create a Typer Option for --period / -p."""
    return typer.Option(
        None,
        "--period",
        "-p",
        help="Reporting period to validate for (default: config, else current year).",
    )


def json_option() -> Any:
    """Create a Typer Option for --json."""
    return typer.Option(
        False,
        "--json",
        help="Output as JSON.",
    )
