"""Configuration management for the tcsi CLI tool.

Handles configuration loading from multiple sources with precedence:
CLI args > environment variables > .tcsirc > pyproject.toml > defaults
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

# tomllib is only available in Python 3.11+
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore[import-not-found]


def _coerce_positive_int(name: str, value: Any) -> int:
    """Convert a config value to a positive int.

    Raises:
        ValueError: If the value is not a positive integer.
    """
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a positive integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a positive integer") from None
    if number <= 0:
        raise ValueError(f"{name} must be a positive integer")
    return number


@dataclass
class TcsiConfig:
    """Configuration for the tcsi CLI tool.

    Attributes:
        data_dir: Name of the data directory (default: ".tcsi")
        db_name: Name of the SQLite database file (default: "tcsi.db")
        rule_cache_ttl: Seconds a loaded rule library stays fresh (default: 3600)
        max_workers: Worker threads for batch validation (default: 4)
        reporting_period: Default reporting period (default: "", the CLI
            then uses the current year)
    """

    data_dir: str = ".tcsi"
    db_name: str = "tcsi.db"
    rule_cache_ttl: int = 3600
    max_workers: int = 4
    reporting_period: str = ""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self._validate()

    def _validate(self) -> None:
        """Validate and normalize configuration values.

        Raises:
            ValueError: If any configuration value is invalid.
        """
        if not self.data_dir or not isinstance(self.data_dir, str):
            raise ValueError("data_dir must be a non-empty string")

        if not self.db_name or not isinstance(self.db_name, str):
            raise ValueError("db_name must be a non-empty string")
        if not self.db_name.endswith(".db"):
            raise ValueError("db_name must end with .db")

        # Environment values arrive as strings
        self.rule_cache_ttl = _coerce_positive_int("rule_cache_ttl", self.rule_cache_ttl)
        self.max_workers = _coerce_positive_int("max_workers", self.max_workers)

        if not isinstance(self.reporting_period, str):
            self.reporting_period = str(self.reporting_period)

    def get_data_path(self, base_path: Path | None = None) -> Path:
        """Get the full path to the data directory.

        Args:
            base_path: Base path to resolve from. Defaults to current directory.

        Returns:
            Path to the data directory.
        """
        base = base_path or Path.cwd()
        return base / self.data_dir

    def get_db_path(self, base_path: Path | None = None) -> Path:
        """Get the full path to the TCSI database.

        Args:
            base_path: Base path to resolve from. Defaults to current directory.

        Returns:
            Path to the database file.
        """
        return self.get_data_path(base_path) / self.db_name


def _get_config_field_names() -> set[str]:
    """Get the set of valid configuration field names."""
    return {f.name for f in fields(TcsiConfig)}


def find_config_file(filename: str = ".tcsirc", start_dir: Path | None = None) -> Path | None:
    """Find a configuration file by traversing up the directory tree.

    Searches for the specified file starting from start_dir (or current directory)
    and traversing up to the filesystem root.

    Args:
        filename: Name of the config file to find.
        start_dir: Directory to start searching from. Defaults to current directory.

    Returns:
        Path to the config file if found, None otherwise.
    """
    current = start_dir or Path.cwd()
    current = current.resolve()

    while True:
        config_path = current / filename
        if config_path.is_file():
            return config_path

        parent = current.parent
        if parent == current:
            # Reached filesystem root
            return None
        current = parent


def _load_toml_file(path: Path) -> dict[str, Any]:
    """Load a TOML file and return its contents.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        tomllib.TOMLDecodeError: If the file is not valid TOML.
    """
    with open(path, "rb") as f:
        result: dict[str, Any] = tomllib.load(f)
        return result


def _load_from_tcsirc(start_dir: Path | None = None) -> dict[str, Any]:
    """Load configuration from .tcsirc file.

    Args:
        start_dir: Directory to start searching from.

    Returns:
        Dictionary containing configuration from .tcsirc, or empty dict if not found.
    """
    config_path = find_config_file(".tcsirc", start_dir)
    if config_path is None:
        return {}

    try:
        data = _load_toml_file(config_path)
        valid_fields = _get_config_field_names()
        return {k: v for k, v in data.items() if k in valid_fields}
    except (tomllib.TOMLDecodeError, OSError):
        return {}


def _load_from_pyproject(start_dir: Path | None = None) -> dict[str, Any]:
    """Load configuration from pyproject.toml [tool.tcsi] section.

    Args:
        start_dir: Directory to start searching from.

    Returns:
        Dictionary containing configuration from pyproject.toml, or empty dict if not found.
    """
    config_path = find_config_file("pyproject.toml", start_dir)
    if config_path is None:
        return {}

    try:
        data = _load_toml_file(config_path)
        tcsi_section = data.get("tool", {}).get("tcsi", {})
        valid_fields = _get_config_field_names()
        return {k: v for k, v in tcsi_section.items() if k in valid_fields}
    except (tomllib.TOMLDecodeError, OSError):
        return {}


def _load_from_env() -> dict[str, Any]:
    """Load configuration from environment variables.

    Environment variables are prefixed with TCSI_ and use uppercase names.
    For example: TCSI_DATA_DIR, TCSI_DB_NAME, TCSI_RULE_CACHE_TTL

    Returns:
        Dictionary containing configuration from environment variables.
    """
    env_mapping = {
        "TCSI_DATA_DIR": "data_dir",
        "TCSI_DB_NAME": "db_name",
        "TCSI_RULE_CACHE_TTL": "rule_cache_ttl",
        "TCSI_MAX_WORKERS": "max_workers",
        "TCSI_REPORTING_PERIOD": "reporting_period",
    }

    result: dict[str, Any] = {}
    for env_var, config_key in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            result[config_key] = value

    return result


def _merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
    """Merge multiple configuration dictionaries.

    Later dictionaries take precedence over earlier ones.
    """
    result: dict[str, Any] = {}
    for config in configs:
        for key, value in config.items():
            if value is not None:
                result[key] = value
    return result


def load_config(
    cli_overrides: dict[str, Any] | None = None,
    start_dir: Path | None = None,
) -> TcsiConfig:
    """Load configuration with full precedence chain.

    Loads configuration from multiple sources and merges them with the following
    precedence (highest to lowest):
    1. CLI arguments (cli_overrides)
    2. Environment variables (TCSI_*)
    3. .tcsirc file
    4. pyproject.toml [tool.tcsi] section
    5. Default values

    Args:
        cli_overrides: Configuration overrides from CLI arguments.
        start_dir: Directory to start searching for config files.

    Returns:
        Fully resolved TcsiConfig instance.

    Raises:
        ValueError: If the resulting configuration is invalid.
    """
    pyproject_config = _load_from_pyproject(start_dir)
    tcsirc_config = _load_from_tcsirc(start_dir)
    env_config = _load_from_env()
    cli_config = cli_overrides or {}

    valid_fields = _get_config_field_names()
    cli_config = {k: v for k, v in cli_config.items() if k in valid_fields and v is not None}

    merged = _merge_configs(
        pyproject_config,
        tcsirc_config,
        env_config,
        cli_config,
    )

    # Defaults are applied by the dataclass
    return TcsiConfig(**merged)
