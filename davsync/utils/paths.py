"""
Location of the davsync configuration directory.

The directory holds config.yaml and, unless the config points elsewhere,
the SQLite store, the backups/ directory and the logs/ directory.
"""

from __future__ import annotations

import os
from pathlib import Path

DEFAULT_CONFIG_DIR = Path.home() / ".davsync"

CONFIG_DIR_ENV_VAR = "DAVSYNC_CONFIG_DIR"


def resolve_config_dir(config_dir: Path | str | None = None) -> Path:
    """
    Absolute configuration directory.

    An explicit ``config_dir`` (the CLI's --config-dir) wins, then a
    non-empty DAVSYNC_CONFIG_DIR, then ~/.davsync. ``~`` is expanded and
    relative paths are taken from the working directory.
    """
    chosen = config_dir
    if chosen is None:
        chosen = os.environ.get(CONFIG_DIR_ENV_VAR) or DEFAULT_CONFIG_DIR
    return Path(chosen).expanduser().resolve()
