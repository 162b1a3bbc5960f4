"""
Configuration loader for davsync.

Provides YAML-based configuration file loading with support for:
- Loading configuration from default or custom paths
- Graceful handling of missing configuration files
- Type validation of known keys
- Filling in defaults for keys the file does not set
"""

import logging
from pathlib import Path
from typing import Any

import yaml

from davsync.utils.paths import resolve_config_dir

# Default configuration file name
DEFAULT_CONFIG_FILE = "config.yaml"

# Defaults for every known key; relative paths resolve against the config dir
DEFAULTS: dict[str, Any] = {
    "database_path": "davsync.db",
    "backup_dir": "backups",
    "backup_retention_count": 10,
    "include_settings_in_account_backup": False,
    "overwrite_existing": False,
    "log_dir": "logs",
    "log_retention_count": 10,
    "verbose": False,
}

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


class ConfigLoader:
    """
    YAML configuration file loader.

    Attributes:
        config_dir: Directory containing the configuration file
        config_file: Name of the configuration file

    Usage:
        loader = ConfigLoader()
        config = loader.load_and_validate()

        # With custom path
        loader = ConfigLoader(config_dir=Path("/custom/path"))
        settings = loader.with_defaults(loader.load())
    """

    def __init__(
        self, config_dir: Path | None = None, config_file: str = DEFAULT_CONFIG_FILE
    ):
        """
        Initialize the configuration loader.

        Args:
            config_dir: Directory containing the configuration file.
                       Defaults to ~/.davsync/ or $DAVSYNC_CONFIG_DIR
            config_file: Name of the configuration file (default: config.yaml)
        """
        self.config_dir = resolve_config_dir(config_dir)
        self.config_file = config_file

    def _get_config_path(self) -> Path:
        return self.config_dir / self.config_file

    def load(self) -> dict[str, Any]:
        """
        Load configuration from the default configuration file.

        Returns:
            Dictionary containing configuration values, or empty dict if file
            doesn't exist

        Raises:
            ConfigError: If the configuration file exists but cannot be parsed
        """
        return self.load_from_file(self._get_config_path())

    def load_from_file(self, path: Path | str) -> dict[str, Any]:
        """
        Load configuration from a specific file.

        Returns an empty dict if the file doesn't exist, allowing
        graceful operation with CLI defaults.

        Args:
            path: Path to the configuration file

        Returns:
            Dictionary containing configuration values, or empty dict if file
            doesn't exist

        Raises:
            ConfigError: If the configuration file exists but cannot be parsed
        """
        path = Path(path).expanduser()

        if not path.exists():
            logger.debug(f"Configuration file not found: {path}")
            return {}

        try:
            with open(path, encoding="utf-8") as f:
                config = yaml.safe_load(f)

            # Handle empty files
            if config is None:
                logger.debug(f"Configuration file is empty: {path}")
                return {}

            if not isinstance(config, dict):
                raise ConfigError(
                    f"Configuration file must contain a YAML dictionary, "
                    f"got {type(config).__name__}"
                )

            logger.debug(f"Loaded configuration from {path}")
            return config

        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML configuration file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read configuration file: {e}") from e

    def validate(self, config: dict[str, Any]) -> None:
        """
        Validate configuration structure and values.

        Unknown keys are tolerated; known keys must have the expected type.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ConfigError: If configuration is invalid
        """
        if not isinstance(config, dict):
            raise ConfigError(
                f"Configuration must be a dictionary, got {type(config).__name__}"
            )

        valid_keys: dict[str, type[Any]] = {
            # Storage
            "database_path": str,
            # Backup options
            "backup_dir": str,
            "backup_retention_count": int,
            "include_settings_in_account_backup": bool,
            # Restore options
            "overwrite_existing": bool,
            # Logging options
            "log_dir": str,
            "log_retention_count": int,
            "verbose": bool,
        }

        for key, value in config.items():
            if key not in valid_keys:
                continue
            expected_type = valid_keys[key]
            # bool is a subclass of int; "true" is not a count
            wrong_bool = expected_type is int and isinstance(value, bool)
            if wrong_bool or not isinstance(value, expected_type):
                raise ConfigError(
                    f"Invalid type for '{key}': expected {expected_type.__name__}, "
                    f"got {type(value).__name__}"
                )

        # Zero keeps every file
        for key in ("backup_retention_count", "log_retention_count"):
            if key in config and config[key] < 0:
                raise ConfigError(f"{key} must be >= 0, got {config[key]}")

        for key in ("database_path", "backup_dir"):
            if key in config and not config[key].strip():
                raise ConfigError(f"{key} must not be empty")

    def load_and_validate(self) -> dict[str, Any]:
        """
        Load configuration and validate it.

        Returns:
            Validated configuration dictionary

        Raises:
            ConfigError: If configuration cannot be loaded or is invalid
        """
        config = self.load()
        if config:  # Only validate if config is not empty
            self.validate(config)
        return config

    def with_defaults(self, config: dict[str, Any]) -> dict[str, Any]:
        """
        Merge a loaded configuration over DEFAULTS.

        Path values are expanded and resolved against the config directory.

        Args:
            config: Loaded (and validated) configuration

        Returns:
            New dictionary containing every known key
        """
        merged = dict(DEFAULTS)
        merged.update(config)
        for key in ("database_path", "backup_dir", "log_dir"):
            merged[key] = self.resolve_path(merged[key])
        return merged

    def resolve_path(self, value: Path | str) -> Path:
        path = Path(value).expanduser()
        if not path.is_absolute():
            path = self.config_dir / path
        return path
