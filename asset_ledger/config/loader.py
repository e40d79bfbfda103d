"""
Configuration management and loading.

Handles storage and logging settings read from a YAML file.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import yaml

from asset_ledger.storage.db import DEFAULT_DB_PATH

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class StorageConfig:
    """Where the asset table and ledger are persisted."""
    db_path: str = DEFAULT_DB_PATH

    def __post_init__(self):
        """Validate the database path is set."""
        if not self.db_path or not self.db_path.strip():
            raise ValueError("db_path must not be empty")


@dataclass(frozen=True)
class LoggingConfig:
    """Log verbosity for the application."""
    level: str = "WARNING"

    def __post_init__(self):
        """Validate the log level is a known level name."""
        if self.level not in LOG_LEVELS:
            raise ValueError(f"level must be one of: {list(LOG_LEVELS)}")

    @property
    def level_number(self) -> int:
        return logging.getLevelName(self.level)


@dataclass(frozen=True)
class AppConfig:
    """Complete application configuration."""
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def with_db_path(self, db_path: Optional[str]) -> "AppConfig":
        """Return a copy using ``db_path`` when one is given."""
        if db_path is None:
            return self
        return AppConfig(storage=StorageConfig(db_path=db_path), logging=self.logging)


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load and validate application configuration from a YAML file.

    Strict validation ensures a typo in a key cannot silently point the
    inventory at a different database.

    Args:
        path: Path to YAML configuration file, or None for defaults

    Returns:
        Validated AppConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    if path is None:
        return AppConfig()

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_top_keys = {'storage', 'logging'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    storage_data = _section(raw_config, 'storage', {'db_path'})
    logging_data = _section(raw_config, 'logging', {'level'})

    storage = StorageConfig(**storage_data)

    if 'level' in logging_data:
        level = logging_data['level']
        if not isinstance(level, str):
            raise ValueError("'logging.level' must be a string")
        logging_data['level'] = level.upper()
    logging_config = LoggingConfig(**logging_data)

    return AppConfig(storage=storage, logging=logging_config)


def _section(raw_config: Dict, name: str, allowed_keys: set) -> Dict:
    """Extract and validate one optional section of the configuration.

    Args:
        raw_config: Parsed YAML document
        name: Section name
        allowed_keys: Keys permitted inside the section

    Returns:
        A copy of the section's data (empty if absent)

    Raises:
        ValueError: If the section is not a mapping or has unknown keys
    """
    data = raw_config.get(name)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")

    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown {name} keys: {unknown_keys}")

    for key, value in data.items():
        if key != 'level' and not isinstance(value, str):
            raise ValueError(f"'{name}.{key}' must be a string")
    return dict(data)
