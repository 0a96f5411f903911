"""Database connection and transaction management for the TCSI store.

Provides the RecordDB class for managing SQLite database connections with
proper context manager support and transaction handling.

Design decisions:
- Eager connection: Connection is created on __enter__, not lazily
- Foreign keys enabled via PRAGMA foreign_keys = ON
- One connection per thread: batch validation opens a RecordDB per worker
- Transaction support via nested context managers
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, cast

from tcsi.schema import init_database

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger(__name__)


class DatabaseError(Exception):
    """Base exception for database-related errors."""


class ConnectionError(DatabaseError):
    """Raised when database connection fails."""


class TransactionError(DatabaseError):
    """Raised when transaction operations fail."""


class RecordDB:
    """Database connection manager for TCSI records, rules and errors.

    Provides connection management with context manager protocol and
    transaction support. Connection is created eagerly on __enter__.

    Example usage:
        >>> with RecordDB("/path/to/tcsi.db") as db:
        ...     with db.transaction():
        ...         db.execute("INSERT INTO students ...")
        ...         # auto-commit on success, auto-rollback on exception

    Attributes:
        db_path: Path to the SQLite database file.
        auto_init: If True, initialize database if it doesn't exist.
    """

    def __init__(
        self,
        db_path: str | Path,
        *,
        auto_init: bool = True,
    ) -> None:
        """Initialize RecordDB.

        Args:
            db_path: Path to the SQLite database file.
            auto_init: If True, initialize database schema if file doesn't exist.
                       Defaults to True.
        """
        self.db_path = Path(db_path)
        self.auto_init = auto_init
        self._connection: sqlite3.Connection | None = None
        self._in_transaction: bool = False

    def __enter__(self) -> RecordDB:
        """Open database connection.

        Returns:
            Self for use in with statement.

        Raises:
            ConnectionError: If connection fails.
        """
        self._open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Close database connection.

        Closes the connection regardless of whether an exception occurred.
        Does not commit or rollback - that's handled by transaction().
        """
        self._close()

    def _open(self) -> None:
        """Open the database connection.

        Raises:
            ConnectionError: If connection fails.
        """
        if self._connection is not None:
            return

        if self.auto_init and not self.db_path.exists():
            try:
                init_database(self.db_path)
                logger.info("Initialized database at %s", self.db_path)
            except (sqlite3.Error, OSError) as e:
                raise ConnectionError(f"Failed to initialize database: {e}") from e

        try:
            self._connection = sqlite3.connect(str(self.db_path))
            self._connection.execute("PRAGMA foreign_keys = ON")
            self._connection.row_factory = sqlite3.Row
        except sqlite3.Error as e:
            raise ConnectionError(f"Failed to connect to database: {e}") from e

    def _close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the underlying SQLite connection.

        Raises:
            ConnectionError: If not connected.
        """
        if self._connection is None:
            raise ConnectionError("Database not connected. Use 'with RecordDB(...)' context.")
        return self._connection

    @property
    def is_connected(self) -> bool:
        """Check if database is currently connected."""
        return self._connection is not None

    @property
    def in_transaction(self) -> bool:
        """Check if currently in a transaction block."""
        return self._in_transaction

    @contextmanager
    def transaction(self, *, immediate: bool = False) -> Iterator[None]:
        """Transaction context manager.

        Begins a transaction, commits on success, rolls back on exception.
        Supports simple nesting - inner transactions are no-ops (no savepoints).

        Args:
            immediate: Take the database write lock when the transaction
                starts (BEGIN IMMEDIATE) instead of on the first write.

        Yields:
            None

        Raises:
            ConnectionError: If not connected to database.
            TransactionError: If transaction operations fail.
        """
        if self._connection is None:
            raise ConnectionError("Database not connected. Use 'with RecordDB(...)' context.")

        if self._in_transaction:
            yield
            return

        self._in_transaction = True
        try:
            self.begin_transaction(immediate=immediate)
            yield
            self.commit()
        except Exception:
            self.rollback()
            raise
        finally:
            self._in_transaction = False

    def begin_transaction(self, *, immediate: bool = False) -> None:
        """Begin a new transaction explicitly.

        For most use cases, prefer the transaction() context manager.

        Args:
            immediate: Issue BEGIN IMMEDIATE to serialize writers up front.

        Raises:
            ConnectionError: If not connected.
            TransactionError: If BEGIN fails.
        """
        try:
            self.connection.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
        except sqlite3.Error as e:
            raise TransactionError(f"Failed to begin transaction: {e}") from e

    def commit(self) -> None:
        """Commit the current transaction.

        Raises:
            ConnectionError: If not connected.
            TransactionError: If COMMIT fails.
        """
        try:
            self.connection.commit()
        except sqlite3.Error as e:
            raise TransactionError(f"Failed to commit transaction: {e}") from e

    def rollback(self) -> None:
        """Rollback the current transaction.

        Raises:
            ConnectionError: If not connected.
            TransactionError: If ROLLBACK fails.
        """
        try:
            self.connection.rollback()
        except sqlite3.Error as e:
            raise TransactionError(f"Failed to rollback transaction: {e}") from e

    def execute(
        self,
        sql: str,
        parameters: tuple[Any, ...] | dict[str, Any] = (),
    ) -> sqlite3.Cursor:
        """Execute a SQL statement.

        Args:
            sql: SQL statement to execute.
            parameters: Parameters for the SQL statement (tuple or dict).

        Returns:
            Cursor from the executed statement.
        """
        return self.connection.execute(sql, parameters)

    def fetchone(
        self,
        sql: str,
        parameters: tuple[Any, ...] | dict[str, Any] = (),
    ) -> sqlite3.Row | None:
        """Execute SQL and fetch one row.

        Args:
            sql: SQL statement to execute.
            parameters: Parameters for the SQL statement.

        Returns:
            First row of results, or None if no results.
        """
        cursor = self.execute(sql, parameters)
        result = cursor.fetchone()
        return cast(sqlite3.Row | None, result)

    def fetchall(
        self,
        sql: str,
        parameters: tuple[Any, ...] | dict[str, Any] = (),
    ) -> list[sqlite3.Row]:
        """Execute SQL and fetch all rows.

        Args:
            sql: SQL statement to execute.
            parameters: Parameters for the SQL statement.

        Returns:
            List of all result rows.
        """
        cursor = self.execute(sql, parameters)
        return cursor.fetchall()

    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists in the database.

        Args:
            table_name: Name of the table to check.

        Returns:
            True if table exists, False otherwise.
        """
        result = self.fetchone(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
            (table_name,),
        )
        return result is not None
