"""
Configuration file generator for davsync.

Provides functionality to generate a default configuration file with
every available option documented and commented out.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def generate_default_config() -> str:
    """
    Generate default YAML configuration with all options documented.

    Every option is commented out, so loading the generated file yields
    the built-in defaults.

    Returns:
        String containing YAML configuration with comments

    Example:
        config_yaml = generate_default_config()
        with open("config.yaml", "w") as f:
            f.write(config_yaml)
    """
    return """# davsync Configuration
# =====================
#
# Default options for davsync. CLI arguments always override these values.
# Relative paths are resolved against the configuration directory.

# Storage
# -------

# Local account store (SQLite database)
# Default: davsync.db
# database_path: davsync.db


# Backup Options
# --------------

# Directory for backup files written by `davsync backup`
# Default: backups
# backup_dir: backups

# Number of backup files to keep (0 keeps all)
# Default: 10
# backup_retention_count: 10

# Include app settings when backing up a single account
# Full backups always include settings
# Default: false
# include_settings_in_account_backup: false


# Restore Options
# ---------------

# Update accounts that already exist instead of skipping them
# Same as passing --overwrite to `davsync restore`
# Default: false
# overwrite_existing: false


# Logging Options
# ---------------

# Enable verbose output with detailed logging
# Default: false
# verbose: false

# Directory for log files
# Default: logs
# log_dir: logs

# Number of log files to keep (0 keeps all)
# Default: 10
# log_retention_count: 10
"""


def save_config_file(
    config_path: Path, overwrite: bool = False
) -> tuple[bool, str | None]:
    """
    Save default configuration file to specified path.

    Creates parent directories if they don't exist and saves
    the configuration with owner-only permissions.

    Args:
        config_path: Path where the config file should be saved
        overwrite: If True, overwrite existing file. If False, fail if file exists.

    Returns:
        Tuple of (success, error_message); error_message is None on success
    """
    try:
        config_path = config_path.expanduser().resolve()

        if config_path.exists() and not overwrite:
            return (
                False,
                f"Configuration file already exists: {config_path}\n"
                "Use --force to overwrite.",
            )

        config_path.parent.mkdir(parents=True, mode=0o700, exist_ok=True)
        config_path.write_text(generate_default_config(), encoding="utf-8")
        config_path.chmod(0o600)

        logger.info(f"Created configuration file: {config_path}")
        return (True, None)

    except OSError as e:
        error_msg = f"Failed to create configuration file: {e}"
        logger.error(error_msg)
        return (False, error_msg)
