"""CLI package for davsync."""

from davsync.cli.formatters import (
    show_accounts,
    show_backup_list,
    show_document_info,
    show_restore_plan,
    show_restore_result,
)
from davsync.cli.main import build_manager, cli, get_config_dir, open_database

__all__ = [
    "build_manager",
    "cli",
    "get_config_dir",
    "open_database",
    "show_accounts",
    "show_backup_list",
    "show_document_info",
    "show_restore_plan",
    "show_restore_result",
]
