"""
Command-line interface for davsync.

Provides CLI commands for backing up and restoring the account
configuration held in the local davsync store.

Usage:
    # Show help
    davsync --help

    # Back up everything, or a single account
    davsync backup
    davsync backup --account-id 3 --include-settings

    # Inspect and restore a backup
    davsync validate ~/.davsync/backups/davsync_backup_20260101_120000.json
    davsync restore backup.json --dry-run
    davsync restore backup.json --overwrite --yes
"""

import sqlite3
import sys
from pathlib import Path
from typing import Any

import click

from davsync import __version__
from davsync.backup.files import BackupFileStore
from davsync.backup.manager import (
    BackupFailure,
    BackupRestoreManager,
    RestoreFailure,
)
from davsync.cli.formatters import (
    show_accounts,
    show_backup_list,
    show_document_info,
    show_restore_plan,
    show_restore_result,
)
from davsync.config.generator import save_config_file
from davsync.config.loader import (
    DEFAULT_CONFIG_FILE,
    ConfigError,
    ConfigLoader,
)
from davsync.storage.db import (
    DavDatabase,
    SqliteAccountRepository,
    SqliteCollectionRepository,
    SqliteSettingsStore,
)
from davsync.storage.memory import (
    InMemoryAccountRepository,
    InMemoryCollectionRepository,
    InMemorySettingsStore,
)
from davsync.utils import resolve_config_dir
from davsync.utils.logging import cleanup_old_logs, get_logger, setup_logging


def get_config_dir(config_dir: str | None) -> Path:
    """Get the configuration directory path."""
    return resolve_config_dir(config_dir)


def get_config_file(config_dir: Path, config_file: str | None) -> Path:
    """Get the configuration file path."""
    if config_file:
        return Path(config_file).expanduser()
    return config_dir / DEFAULT_CONFIG_FILE


def open_database(settings: dict[str, Any]) -> DavDatabase:
    """Open (and create if needed) the local store named in the settings."""
    db_path = Path(settings["database_path"])
    db_path.parent.mkdir(parents=True, exist_ok=True)
    db = DavDatabase(str(db_path))
    db.initialize()
    return db


def build_manager(settings: dict[str, Any]) -> BackupRestoreManager:
    """Create a BackupRestoreManager over the SQLite store and backup dir."""
    db = open_database(settings)
    return BackupRestoreManager(
        SqliteAccountRepository(db),
        SqliteCollectionRepository(db),
        SqliteSettingsStore(db),
        file_store=BackupFileStore(
            settings["backup_dir"], retention_count=settings["backup_retention_count"]
        ),
        include_settings_in_account_backup=settings[
            "include_settings_in_account_backup"
        ],
    )


@click.group()
@click.version_option(version=__version__, prog_name="davsync")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output with detailed logging."
)
@click.option(
    "--config-dir",
    "-c",
    type=click.Path(exists=False, file_okay=False, dir_okay=True),
    envvar="DAVSYNC_CONFIG_DIR",
    help="Configuration directory path (default: ~/.davsync).",
)
@click.option(
    "--config-file",
    "-f",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    envvar="DAVSYNC_CONFIG_FILE",
    help="Configuration file path (default: <config-dir>/config.yaml).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_dir: str | None,
    config_file: str | None,
) -> None:
    """
    Back up and restore CalDAV/CardDAV account configuration.

    Backups contain accounts, their calendars, address books and task
    lists, and optionally the app settings. Passwords are never included.
    """
    ctx.ensure_object(dict)

    resolved_config_dir = get_config_dir(config_dir)
    resolved_config_file = get_config_file(resolved_config_dir, config_file)

    ctx.obj["config_dir"] = resolved_config_dir
    ctx.obj["config_file"] = resolved_config_file

    loader = ConfigLoader(config_dir=resolved_config_dir)
    config: dict[str, Any] = {}
    try:
        config = loader.load_from_file(resolved_config_file)
        if config:
            loader.validate(config)
    except ConfigError as e:
        # Show error but don't fail - fall back to defaults
        click.echo(
            click.style(f"Warning: Configuration error: {e}", fg="yellow"), err=True
        )
        config = {}

    settings = loader.with_defaults(config)
    ctx.obj["config"] = config
    ctx.obj["settings"] = settings

    # CLI flag takes precedence over config file
    effective_verbose = verbose or settings["verbose"]
    ctx.obj["verbose"] = effective_verbose

    log_dir = settings["log_dir"]
    setup_logging(verbose=effective_verbose, log_dir=log_dir, enable_file_logging=True)

    log_retention = settings["log_retention_count"]
    if log_retention > 0:
        cleanup_old_logs(log_dir=log_dir, keep_count=log_retention)


# =============================================================================
# Init-Config Command
# =============================================================================


@cli.command("init-config")
@click.option(
    "--force",
    is_flag=True,
    help="Overwrite existing configuration file if it exists.",
)
@click.pass_context
def init_config_command(ctx: click.Context, force: bool) -> None:
    """
    Generate a default configuration file.

    Creates a configuration file with all available options documented
    and commented out.

    Examples:

        # Create config file (fails if already exists)
        davsync init-config

        # Overwrite existing config file
        davsync init-config --force
    """
    logger = get_logger(__name__)
    config_file = ctx.obj["config_file"]

    click.echo(f"Creating configuration file: {config_file}")

    success, error = save_config_file(config_file, overwrite=force)

    if not success:
        click.echo(click.style(f"Error: {error}", fg="red"), err=True)
        logger.error(f"Failed to create configuration file: {error}")
        sys.exit(1)

    click.echo(click.style("Configuration file created successfully!", fg="green"))
    click.echo(f"\nLocation: {config_file}")
    click.echo("\nNext steps:")
    click.echo("1. Edit the file to uncomment and configure desired options")
    click.echo("2. Run 'davsync --help' to see available commands")


# =============================================================================
# Backup Command
# =============================================================================


@cli.command("backup")
@click.option(
    "--account-id",
    "-a",
    type=int,
    help="Back up only this account (see `davsync accounts`).",
)
@click.option(
    "--include-settings/--no-settings",
    default=None,
    help="Include app settings in a single-account backup.",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    help="Write the backup to this file instead of the backup directory.",
)
@click.pass_context
def backup_command(
    ctx: click.Context,
    account_id: int | None,
    include_settings: bool | None,
    output: str | None,
) -> None:
    """
    Create a backup of the local account configuration.

    Without --account-id, every account and the app settings are backed up.

    Examples:

        # Full backup into the backup directory
        davsync backup

        # One account, written to a chosen file
        davsync backup --account-id 2 --output work.json
    """
    logger = get_logger(__name__)
    settings = ctx.obj["settings"]

    try:
        manager = build_manager(settings)

        if output:
            if account_id is None:
                result = manager.create_full_backup()
            else:
                result = manager.create_backup(
                    account_id, include_settings=include_settings
                )
            if isinstance(result, BackupFailure):
                click.echo(click.style(f"Error: {result.message}", fg="red"), err=True)
                sys.exit(1)

            output_path = Path(output).expanduser()
            with open(output_path, "w", encoding="utf-8") as f:
                f.write(result.json)
            destination = output_path
        else:
            result = manager.create_backup_file(
                account_id=account_id, include_settings=include_settings
            )
            if isinstance(result, BackupFailure):
                click.echo(click.style(f"Error: {result.message}", fg="red"), err=True)
                sys.exit(1)
            destination = result.path

        click.echo(click.style(f"Backup saved to {destination}", fg="green"))
        click.echo(f"Size: {result.size / 1024:.1f} KB")
        click.echo("Passwords are not included in backups.")

    except (OSError, sqlite3.Error) as e:
        logger.exception(f"Backup failed: {e}")
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


# =============================================================================
# Restore Command
# =============================================================================


@cli.command("restore")
@click.argument(
    "backup_file", type=click.Path(exists=True, file_okay=True, dir_okay=False)
)
@click.option(
    "--overwrite/--no-overwrite",
    default=None,
    help="Update accounts that already exist instead of skipping them.",
)
@click.option(
    "--dry-run", "-n", is_flag=True, help="Preview restore without applying changes."
)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def restore_command(
    ctx: click.Context,
    backup_file: str,
    overwrite: bool | None,
    dry_run: bool,
    yes: bool,
) -> None:
    """
    Restore accounts from a backup file.

    Accounts already present locally (same server host and username) are
    skipped unless --overwrite is given.

    Examples:

        # Preview what would change
        davsync restore backup.json --dry-run

        # Restore and update existing accounts
        davsync restore backup.json --overwrite --yes
    """
    logger = get_logger(__name__)
    settings = ctx.obj["settings"]
    if overwrite is None:
        overwrite = settings["overwrite_existing"]

    backup_path = Path(backup_file)

    try:
        manager = build_manager(settings)

        click.echo(f"Loading backup from {backup_path}...")
        validation = manager.validate_backup_file(backup_path)
        if not validation.is_valid or validation.document is None:
            for error in validation.errors:
                click.echo(click.style(f"Error: {error}", fg="red"), err=True)
            sys.exit(1)

        show_document_info(validation.document)
        plan = manager.plan_restore(validation.document, overwrite_existing=overwrite)
        show_restore_plan(plan)

        if dry_run:
            click.echo(
                click.style("\nDry run mode - no changes were made.", fg="yellow")
            )
            return

        if not yes:
            click.confirm("\nApply this restore?", abort=True)

        outcome = manager.restore_backup_file(
            backup_path, overwrite_existing=overwrite
        )
        if isinstance(outcome, RestoreFailure):
            click.echo(click.style(f"Error: {outcome.message}", fg="red"), err=True)
            sys.exit(1)

        show_restore_result(outcome.result)
        logger.info(f"Restore completed from {backup_path}")

        if outcome.result.has_errors:
            click.echo(
                click.style("\nRestore completed with errors.", fg="yellow"), err=True
            )
            sys.exit(1)

        click.echo(click.style("\nRestore complete!", fg="green"))

    except (OSError, sqlite3.Error) as e:
        logger.exception(f"Restore failed: {e}")
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


# =============================================================================
# Validate Command
# =============================================================================


@cli.command("validate")
@click.argument(
    "backup_file", type=click.Path(exists=True, file_okay=True, dir_okay=False)
)
@click.pass_context
def validate_command(ctx: click.Context, backup_file: str) -> None:
    """
    Check that a backup file can be restored, without changing anything.
    """
    settings = ctx.obj["settings"]
    # Decoding never touches the store
    manager = BackupRestoreManager(
        InMemoryAccountRepository(),
        InMemoryCollectionRepository(),
        InMemorySettingsStore(),
        file_store=BackupFileStore(settings["backup_dir"]),
    )

    validation = manager.validate_backup_file(backup_file)
    if not validation.is_valid or validation.document is None:
        click.echo(click.style("Backup is not valid:", fg="red"), err=True)
        for error in validation.errors:
            click.echo(click.style(f"  {error}", fg="red"), err=True)
        sys.exit(1)

    click.echo(click.style("Backup is valid.", fg="green"))
    show_document_info(validation.document)


# =============================================================================
# List Backups Command
# =============================================================================


@cli.command("list-backups")
@click.pass_context
def list_backups_command(ctx: click.Context) -> None:
    """List backup files in the backup directory, newest first."""
    settings = ctx.obj["settings"]
    backup_dir = settings["backup_dir"]
    store = BackupFileStore(backup_dir)

    backups = store.list_backups()
    if not backups:
        click.echo("No backups found.")
        click.echo(f"Backup directory: {backup_dir}")
        return

    click.echo(f"Available backups in {backup_dir}:\n")
    show_backup_list(backups)
    click.echo("\nTo restore, use: davsync restore <path>")


# =============================================================================
# Accounts Command
# =============================================================================


@cli.command("accounts")
@click.pass_context
def accounts_command(ctx: click.Context) -> None:
    """List the accounts in the local store."""
    settings = ctx.obj["settings"]

    try:
        db = open_database(settings)
        accounts = db.list_accounts()
        if not accounts:
            click.echo("No accounts configured.")
            return

        counts = {
            account.id: len(db.list_collections(account.id)) for account in accounts
        }
        show_accounts(accounts, counts)

    except (OSError, sqlite3.Error) as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


if __name__ == "__main__":
    cli()
