"""
davsync.utils - Utility module

Common utilities including logging configuration, configuration directory
resolution and account identity normalization.
"""

from davsync.utils.normalization import (
    account_identity,
    describe_identity,
    normalize_host,
)
from davsync.utils.paths import DEFAULT_CONFIG_DIR, resolve_config_dir

__all__ = [
    "account_identity",
    "describe_identity",
    "normalize_host",
    "resolve_config_dir",
    "DEFAULT_CONFIG_DIR",
]
