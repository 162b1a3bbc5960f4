"""CLI output formatting functions.

This module contains functions for displaying backup listings, restore plans
and restore results on the command line.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING

import click

from davsync.backup.executor import PASSWORD_NOTICE, AccountState
from davsync.backup.planner import AccountActionKind, CollectionActionKind
from davsync.utils import describe_identity

if TYPE_CHECKING:
    from davsync.backup.executor import RestoreResult
    from davsync.backup.files import BackupInfo
    from davsync.backup.models import AccountRecord, BackupDocument
    from davsync.backup.planner import RestorePlan

# Maximum collections listed per account before truncating
MAX_LISTED_COLLECTIONS = 10

_ACTION_MARKERS = {
    AccountActionKind.CREATE_ACCOUNT: ("+", "green"),
    AccountActionKind.UPDATE_ACCOUNT: ("~", "yellow"),
    AccountActionKind.SKIP_ACCOUNT: ("=", None),
}


def show_document_info(document: "BackupDocument") -> None:
    """Display the header of a decoded backup document."""
    click.echo(f"Schema version: {document.schema_version}")
    if document.app_version:
        click.echo(f"Created by: davsync {document.app_version}")
    click.echo(f"Accounts: {len(document.accounts)}")
    click.echo(f"Collections: {document.collection_count}")
    click.echo(f"Settings: {'yes' if document.settings else 'no'}")


def show_restore_plan(plan: "RestorePlan") -> None:
    """
    Display what a restore would do, account by account.

    Args:
        plan: The computed restore plan
    """
    click.echo("\n=== Restore Plan ===")

    if not plan.account_actions:
        click.echo("No accounts in backup.")

    for action in plan.account_actions:
        marker, color = _ACTION_MARKERS[action.kind]
        identity = describe_identity(
            action.snapshot.server_url, action.snapshot.username
        )
        line = f"{marker} {action.account_name} ({identity})"
        if action.skip_reason is not None:
            line += f" [skip: {action.skip_reason.value}]"
        click.echo(click.style(line, fg=color) if color else line)

        for collection_action in action.collection_actions[:MAX_LISTED_COLLECTIONS]:
            is_create = collection_action.kind == CollectionActionKind.CREATE_COLLECTION
            snapshot = collection_action.snapshot
            click.echo(
                f"    {'+' if is_create else '~'} {snapshot.type.value}: "
                f"{snapshot.display_name}"
            )
        if len(action.collection_actions) > MAX_LISTED_COLLECTIONS:
            remaining = len(action.collection_actions) - MAX_LISTED_COLLECTIONS
            click.echo(f"    ... and {remaining} more")

    if plan.settings_action is not None:
        click.echo("+ App settings")

    click.echo(f"\n{plan.describe()}")


def show_restore_result(result: "RestoreResult") -> None:
    """
    Display the outcome of a restore.

    Args:
        result: The RestoreResult returned by the manager
    """
    click.echo("\n=== Restore Summary ===")
    click.echo(f"Accounts restored: {result.accounts_restored}")
    click.echo(f"Collections restored: {result.collections_restored}")
    click.echo(f"Settings restored: {'yes' if result.settings_restored else 'no'}")

    skipped = [o for o in result.outcomes if o.state == AccountState.SKIPPED]
    if skipped:
        click.echo(f"Accounts skipped: {len(skipped)}")

    if result.errors:
        click.echo(click.style("\nFailed accounts:", fg="red"))
        for error in result.errors:
            line = f"  - {error.account_name}: {error.reason}"
            click.echo(click.style(line, fg="red"))

    if result.settings_error:
        click.echo(
            click.style(f"\nSettings not restored: {result.settings_error}", fg="red")
        )

    click.echo(click.style(f"\n{PASSWORD_NOTICE}", fg="yellow"))


def show_backup_list(backups: Sequence["BackupInfo"]) -> None:
    """Display backup files as a table."""
    click.echo(f"{'Filename':<50} {'Date':<20} {'Size':>10}")
    click.echo("-" * 82)
    for backup in backups:
        size_kb = backup.size / 1024
        date = backup.modified.strftime("%Y-%m-%d %H:%M:%S")
        click.echo(f"{backup.name:<50} {date:<20} {size_kb:>7.1f} KB")
    click.echo(f"\nTotal: {len(backups)} backup(s)")


def show_accounts(
    accounts: Sequence["AccountRecord"], collection_counts: dict[int, int]
) -> None:
    """
    Display local accounts with their ids, for use with `backup --account-id`.

    Args:
        accounts: Local account records
        collection_counts: Number of collections per account id
    """
    click.echo(f"{'ID':>4}  {'Name':<24} {'Identity':<40} {'Collections':>11}")
    click.echo("-" * 82)
    for account in accounts:
        identity = describe_identity(account.server_url, account.username)
        count = collection_counts.get(account.id, 0)
        click.echo(
            f"{account.id:>4}  {account.account_name:<24} {identity:<40} {count:>11}"
        )
