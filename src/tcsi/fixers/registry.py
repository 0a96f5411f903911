"""Fixer registry for mapping fix_ids to fixer classes.

The registry provides a central lookup mechanism for finding the fixer named
by a rule definition's fix_id. Fixers register themselves by their fix_id,
and registration fails fast on a missing or duplicate id.
"""

from __future__ import annotations

from collections.abc import Iterable

from tcsi.database import RecordDB
from tcsi.fixers.base import BaseFixer
from tcsi.rule_library import RuleDefinition


class FixerRegistry:
    """Registry that maps fix_ids to fixer classes.

    Example:
        >>> registry = FixerRegistry()
        >>> registry.register(PadChessnFixer)
        >>> fixer = registry.get_fixer("pad_chessn", db)
        >>> if fixer:
        ...     result = fixer.fix(error, record)
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._fixers: dict[str, type[BaseFixer]] = {}

    def register(self, fixer_class: type[BaseFixer]) -> None:
        """Register a fixer class by its fix_id.

        Args:
            fixer_class: A BaseFixer subclass to register.

        Raises:
            ValueError: If the fixer has no fix_id or if a fixer with
                the same fix_id is already registered.
        """
        fix_id = fixer_class.fix_id
        if not fix_id:
            raise ValueError(f"Fixer class {fixer_class.__name__} has no fix_id defined")
        if fix_id in self._fixers:
            raise ValueError(
                f"Fixer for fix_id '{fix_id}' already registered: "
                f"{self._fixers[fix_id].__name__}"
            )
        self._fixers[fix_id] = fixer_class

    def get_fixer(self, fix_id: str, db: RecordDB) -> BaseFixer | None:
        """Get an instantiated fixer for the given fix_id.

        Args:
            fix_id: The fix identifier to look up.
            db: Connection the fixer writes through.

        Returns:
            An instantiated fixer if one is registered for the fix_id,
            None otherwise.
        """
        fixer_class = self._fixers.get(fix_id)
        if fixer_class is None:
            return None
        return fixer_class(db)

    def has_fixer(self, fix_id: str) -> bool:
        """Check if a fixer is registered for the given fix_id."""
        return fix_id in self._fixers

    def list_fix_ids(self) -> list[str]:
        """List all registered fix_ids.

        Returns:
            Sorted list of registered fix_ids.
        """
        return sorted(self._fixers.keys())

    def find_unregistered(self, definitions: Iterable[RuleDefinition]) -> list[RuleDefinition]:
        """Find auto-fixable rules whose fix_id has no registered fixer.

        Args:
            definitions: Rule definitions to check.

        Returns:
            The misconfigured definitions, in input order.
        """
        return [
            definition
            for definition in definitions
            if definition.is_auto_fixable
            and not (definition.fix_id and self.has_fixer(definition.fix_id))
        ]


# Global registry instance - populated on first use
_global_registry: FixerRegistry | None = None


def get_global_registry() -> FixerRegistry:
    """Get the global fixer registry.

    Returns a singleton registry instance that is populated with all
    built-in fixers.

    Returns:
        The global FixerRegistry instance.
    """
    global _global_registry
    if _global_registry is None:
        _global_registry = _create_default_registry()
    return _global_registry


def _create_default_registry() -> FixerRegistry:
    """Create and populate the default registry with built-in fixers.

    Returns:
        A FixerRegistry populated with all built-in fixers.
    """
    # Import here to avoid circular imports
    from tcsi.fixers.code_fixer import SanitizeCourseCodeFixer, SanitizeUnitCodeFixer
    from tcsi.fixers.format_fixer import DateFormatFixer, PhoneFormatFixer
    from tcsi.fixers.fte_fixer import FullTimeFteFixer
    from tcsi.fixers.padding_fixer import PadAscedCodeFixer, PadChessnFixer, PadPostcodeFixer

    registry = FixerRegistry()
    registry.register(PadChessnFixer)
    registry.register(DateFormatFixer)
    registry.register(PhoneFormatFixer)
    registry.register(PadPostcodeFixer)
    registry.register(FullTimeFteFixer)
    registry.register(SanitizeCourseCodeFixer)
    registry.register(SanitizeUnitCodeFixer)
    registry.register(PadAscedCodeFixer)
    return registry
