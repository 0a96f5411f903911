"""Database schema management for the TCSI pre-validation store."""

from __future__ import annotations

import sqlite3
from importlib import resources
from pathlib import Path


def get_schema() -> str:
    """Load the database schema from package resources.

    Returns:
        The SQL schema as a string.
    """
    return resources.files("tcsi.data").joinpath("schema.sql").read_text(encoding="utf-8")


def init_database(db_path: str | Path) -> None:
    """Initialize a new database from the schema.

    If the database already exists, this function will apply the schema
    (which uses CREATE TABLE IF NOT EXISTS, so existing tables are preserved).

    Args:
        db_path: Path to the SQLite database file.

    Raises:
        sqlite3.Error: If database initialization fails.
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    connection = sqlite3.connect(str(db_path))
    try:
        connection.executescript(get_schema())
        connection.commit()
    finally:
        connection.close()
