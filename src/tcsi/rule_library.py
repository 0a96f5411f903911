"""Error code library: rule definitions and the process-wide lookup cache.

Each rule definition carries the static metadata for one error code (message,
severity, owning field, guidance, example value and auto-fix reference). The
definitions live in the ``tcsi_error_code_library`` table; validators read
them through a RuleLibrary, which loads the table lazily and keeps it for a
bounded time-to-live.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal

from tcsi.database import RecordDB

logger = logging.getLogger(__name__)

Severity = Literal["ERROR", "WARNING"]

SEVERITIES: tuple[str, ...] = ("ERROR", "WARNING")
CATEGORIES: tuple[str, ...] = ("MANDATORY", "FORMAT", "REFERENCE_DATA", "BUSINESS_RULE")

DEFAULT_TTL_SECONDS = 3600


class RuleLibraryError(Exception):
    """Base exception for rule library errors."""


class RuleLibraryUnavailableError(RuleLibraryError):
    """Raised when the library cannot be loaded and no cached copy exists."""


@dataclass(frozen=True)
class RuleDefinition:
    """Static definition of one validation rule.

    Attributes:
        error_code: Unique key, e.g. "TCSI_STUDENT_FORMAT_101".
        file_type: Entity the rule applies to (e.g., "STUDENT").
        category: MANDATORY, FORMAT, REFERENCE_DATA or BUSINESS_RULE.
        field_name: Field the rule is about.
        description: Message template. ``$field``, ``$value`` and ``$record``
            are substituted when an issue is raised.
        severity: "ERROR" or "WARNING".
        resolution_guidance: How a user should correct the value.
        example_correct_value: A value that would pass.
        is_auto_fixable: Whether a fixer can resolve the issue.
        fix_id: Identifier of the fixer in the fixer registry.
    """

    error_code: str
    file_type: str
    category: str
    field_name: str | None
    description: str
    severity: Severity = "ERROR"
    resolution_guidance: str | None = None
    example_correct_value: str | None = None
    is_auto_fixable: bool = False
    fix_id: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> RuleDefinition:
        """Build a definition from a ``tcsi_error_code_library`` row."""
        severity = row.get("severity_default") or "ERROR"
        if severity not in SEVERITIES:
            logger.warning(
                "Rule %s has unknown severity %r; treating as ERROR",
                row.get("error_code"),
                severity,
            )
            severity = "ERROR"
        return cls(
            error_code=row["error_code"],
            file_type=row["file_type"],
            category=row["category"],
            field_name=row.get("field_name"),
            description=row["description"],
            severity=severity,
            resolution_guidance=row.get("resolution_guidance"),
            example_correct_value=row.get("example_correct_value"),
            is_auto_fixable=bool(row.get("is_auto_fixable")),
            fix_id=row.get("fix_id"),
        )


# Rule Definition CRUD Operations


def create_rule_definition(db: RecordDB, definition: RuleDefinition) -> None:
    """Insert or replace a rule definition.

    Args:
        db: Database connection.
        definition: The definition to store.

    Raises:
        ValueError: If the code, severity or category is invalid.
    """
    if not definition.error_code or not definition.error_code.strip():
        raise ValueError("error_code cannot be empty")
    if definition.severity not in SEVERITIES:
        raise ValueError(f"Invalid severity: {definition.severity}")
    if definition.category not in CATEGORIES:
        raise ValueError(f"Invalid category: {definition.category}")

    now = datetime.now(timezone.utc).isoformat()
    db.execute(
        """
        INSERT OR REPLACE INTO tcsi_error_code_library (
            error_code, file_type, category, field_name, description,
            resolution_guidance, example_correct_value, is_auto_fixable,
            fix_id, severity_default, created_at, updated_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            definition.error_code,
            definition.file_type,
            definition.category,
            definition.field_name,
            definition.description,
            definition.resolution_guidance,
            definition.example_correct_value,
            int(definition.is_auto_fixable),
            definition.fix_id,
            definition.severity,
            now,
            now,
        ),
    )


def get_rule_definition(db: RecordDB, error_code: str) -> RuleDefinition | None:
    """Get a single rule definition by code."""
    row = db.fetchone(
        "SELECT * FROM tcsi_error_code_library WHERE error_code = ?", (error_code,)
    )
    return RuleDefinition.from_row(dict(row)) if row is not None else None


def list_rule_definitions(db: RecordDB) -> list[RuleDefinition]:
    """List all rule definitions, sorted by code."""
    rows = db.fetchall("SELECT * FROM tcsi_error_code_library ORDER BY error_code")
    return [RuleDefinition.from_row(dict(row)) for row in rows]


# Cache


class RuleLibrary:
    """Time-bounded, thread-safe cache of rule definitions.

    The library is loaded on first use and reloaded once the TTL has expired.
    Concurrent callers arriving while a load is in progress wait for it and
    share its result. If a reload fails, the previous copy stays in service
    until the next expiry; if there is no previous copy, lookups raise
    RuleLibraryUnavailableError.

    Example:
        >>> library = RuleLibrary.from_db_path(".tcsi/tcsi.db")
        >>> definition = library.lookup("TCSI_STUDENT_FORMAT_101")
    """

    def __init__(
        self,
        loader: Callable[[], list[RuleDefinition]],
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize an empty library.

        Args:
            loader: Callable returning every rule definition from the store.
            ttl_seconds: How long a loaded copy stays fresh.
            clock: Monotonic time source.
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._loader = loader
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._definitions: dict[str, RuleDefinition] | None = None
        self._expires_at: float = 0.0
        self._loaded_at: float | None = None

    @classmethod
    def from_db_path(
        cls, db_path: str | Path, ttl_seconds: float = DEFAULT_TTL_SECONDS
    ) -> RuleLibrary:
        """Create a library that loads definitions from a SQLite store.

        Each load opens its own connection, so the library can be shared
        between threads.
        """
        path = Path(db_path)

        def load() -> list[RuleDefinition]:
            with RecordDB(path, auto_init=False) as db:
                return list_rule_definitions(db)

        return cls(load, ttl_seconds=ttl_seconds)

    @classmethod
    def from_definitions(cls, definitions: list[RuleDefinition]) -> RuleLibrary:
        """Create a library over a fixed, in-memory list of definitions."""
        frozen = list(definitions)
        return cls(lambda: frozen)

    @property
    def is_loaded(self) -> bool:
        """True once a copy of the library has been loaded."""
        return self._definitions is not None

    @property
    def loaded_at(self) -> float | None:
        """Clock reading of the last successful load."""
        return self._loaded_at

    def lookup(self, error_code: str) -> RuleDefinition | None:
        """Get the definition for an error code.

        Raises:
            RuleLibraryUnavailableError: If nothing could ever be loaded.
        """
        return self._current().get(error_code)

    def all(self) -> list[RuleDefinition]:
        """Return every cached definition, sorted by code."""
        definitions = self._current()
        return [definitions[code] for code in sorted(definitions)]

    def refresh(self) -> None:
        """Force a reload on the next access."""
        with self._lock:
            self._expires_at = 0.0

    def clear(self) -> None:
        """Drop the cached copy entirely."""
        with self._lock:
            self._definitions = None
            self._expires_at = 0.0
            self._loaded_at = None

    def _current(self) -> dict[str, RuleDefinition]:
        definitions = self._definitions
        if definitions is not None and self._clock() < self._expires_at:
            return definitions

        with self._lock:
            # Another thread may have loaded while we waited.
            if self._definitions is not None and self._clock() < self._expires_at:
                return self._definitions
            return self._load_locked()

    def _load_locked(self) -> dict[str, RuleDefinition]:
        now = self._clock()
        try:
            loaded = self._loader()
        except Exception as e:
            if self._definitions is not None:
                logger.warning("Rule library reload failed, keeping cached copy: %s", e)
                self._expires_at = now + self._ttl
                return self._definitions
            raise RuleLibraryUnavailableError(f"Rule library could not be loaded: {e}") from e

        self._definitions = {definition.error_code: definition for definition in loaded}
        self._expires_at = now + self._ttl
        self._loaded_at = now
        logger.debug("Loaded %d rule definitions", len(self._definitions))
        return self._definitions
