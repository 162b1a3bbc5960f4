"""
davsync.config - Configuration management module

Contains configuration loading, validation, and default settings.
"""

from davsync.config.generator import generate_default_config, save_config_file
from davsync.config.loader import (
    DEFAULT_CONFIG_FILE,
    DEFAULTS,
    ConfigError,
    ConfigLoader,
)

__all__ = [
    "generate_default_config",
    "save_config_file",
    "ConfigError",
    "ConfigLoader",
    "DEFAULT_CONFIG_FILE",
    "DEFAULTS",
]
