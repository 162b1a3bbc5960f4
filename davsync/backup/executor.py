"""
Restore execution: applies a RestorePlan to the local store.

Accounts are processed sequentially and in isolation. An account and its
collection actions either commit together or fail together; a failed
account is rolled back and the remaining accounts are still restored.

Repositories offer no transactions, so each account keeps a journal of the
writes it made. On failure the journal is undone in reverse order: created
records are deleted, updated records are written back to their previous
values.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional, Union

from davsync.backup.errors import PerAccountFailure
from davsync.backup.models import (
    AccountRecord,
    AccountSnapshot,
    CollectionRecord,
    CollectionSnapshot,
)
from davsync.backup.planner import (
    AccountAction,
    AccountActionKind,
    CollectionActionKind,
    RestorePlan,
)
from davsync.utils import describe_identity

if TYPE_CHECKING:
    from davsync.storage.repositories import (
        AccountRepository,
        CollectionRepository,
        SettingsStore,
    )

logger = logging.getLogger(__name__)

# Shown with every restore summary; missing passwords are expected
PASSWORD_NOTICE = (
    "Passwords are never stored in backups. "
    "Re-enter the password of each restored account before syncing."
)


class AccountState(Enum):
    """
    Lifecycle of one account during execution.

    PLANNED -> APPLYING -> COMMITTED | FAILED. Skipped accounts never leave
    the plan and end as SKIPPED.
    """

    PLANNED = "planned"
    APPLYING = "applying"
    COMMITTED = "committed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class PerAccountError:
    """An account that could not be restored."""

    account_name: str
    reason: str


@dataclass(frozen=True)
class AccountOutcome:
    """Final state of one account action."""

    account_name: str
    action: AccountActionKind
    state: AccountState
    collections_restored: int = 0
    account_id: Optional[int] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class RestoreResult:
    """
    Aggregate result of a restore.

    Attributes:
        accounts_restored: Created or updated accounts that committed
        collections_restored: Collections of committed accounts
        settings_restored: Whether the settings were written
        errors: One entry per failed account
        settings_error: Why writing the settings failed, if it did
        outcomes: Final state of every account action, in plan order
    """

    accounts_restored: int = 0
    collections_restored: int = 0
    settings_restored: bool = False
    errors: tuple[PerAccountError, ...] = ()
    settings_error: Optional[str] = None
    outcomes: tuple[AccountOutcome, ...] = field(default=(), compare=False)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors) or self.settings_error is not None

    def summary(self) -> str:
        """
        Human-readable summary of the restore.

        Returns:
            Aggregate counts, itemized failures and the password notice
        """
        lines = [
            f"{self.accounts_restored} account(s) restored, "
            f"{self.collections_restored} collection(s), "
            f"settings: {'yes' if self.settings_restored else 'no'}"
        ]

        skipped = [o for o in self.outcomes if o.state == AccountState.SKIPPED]
        if skipped:
            lines.append(f"Skipped accounts: {len(skipped)}")

        if self.errors:
            lines.append("Failed accounts:")
            for error in self.errors:
                lines.append(f"  - {error.account_name}: {error.reason}")

        if self.settings_error:
            lines.append(f"Settings not restored: {self.settings_error}")

        lines.append(PASSWORD_NOTICE)
        return "\n".join(lines)


_JournalEntry = tuple[str, Union[AccountRecord, CollectionRecord]]


class RestoreExecutor:
    """
    Applies restore plans.

    Usage:
        executor = RestoreExecutor(accounts, collections, settings)
        result = executor.execute(plan)
        print(result.summary())
    """

    def __init__(
        self,
        account_repository: AccountRepository,
        collection_repository: CollectionRepository,
        settings_store: SettingsStore,
    ):
        self.account_repository = account_repository
        self.collection_repository = collection_repository
        self.settings_store = settings_store

    def execute(self, plan: RestorePlan) -> RestoreResult:
        """
        Apply every action of the plan.

        Never raises for a single account's failure; such failures are
        reported in RestoreResult.errors.
        """
        accounts_restored = 0
        collections_restored = 0
        errors: list[PerAccountError] = []
        outcomes: list[AccountOutcome] = []

        for action in plan.account_actions:
            outcome = self._execute_account(action)
            outcomes.append(outcome)

            if outcome.state == AccountState.COMMITTED:
                accounts_restored += 1
                collections_restored += outcome.collections_restored
            elif outcome.state == AccountState.FAILED:
                errors.append(
                    PerAccountError(
                        account_name=outcome.account_name,
                        reason=outcome.error or "unknown error",
                    )
                )

        settings_restored = False
        settings_error = None
        if plan.settings_action is not None:
            try:
                self.settings_store.write(plan.settings_action.snapshot)
                settings_restored = True
                logger.debug("App settings restored")
            except Exception as e:
                settings_error = str(e) or type(e).__name__
                logger.error(f"Failed to restore app settings: {settings_error}")

        result = RestoreResult(
            accounts_restored=accounts_restored,
            collections_restored=collections_restored,
            settings_restored=settings_restored,
            errors=tuple(errors),
            settings_error=settings_error,
            outcomes=tuple(outcomes),
        )
        logger.info(
            f"Restore complete: {accounts_restored} account(s), "
            f"{collections_restored} collection(s), "
            f"settings: {'yes' if settings_restored else 'no'}, "
            f"{len(errors)} failure(s)"
        )
        return result

    def _execute_account(self, action: AccountAction) -> AccountOutcome:
        name = action.account_name
        identity = describe_identity(
            action.snapshot.server_url, action.snapshot.username
        )

        if action.kind == AccountActionKind.SKIP_ACCOUNT:
            reason = action.skip_reason.value if action.skip_reason else "skipped"
            logger.info(f"Skipping account {name} ({identity}): {reason}")
            return AccountOutcome(
                account_name=name,
                action=action.kind,
                state=AccountState.SKIPPED,
                account_id=action.existing.id if action.existing else None,
            )

        state = AccountState.APPLYING
        logger.debug(
            f"{name} ({identity}): {AccountState.PLANNED.value} -> {state.value} "
            f"({action.kind.value})"
        )
        journal: list[_JournalEntry] = []
        try:
            account_id = self._apply(action, journal)
        except PerAccountFailure as failure:
            state = AccountState.FAILED
            reason = failure.reason
            rollback_error = self._rollback(journal)
            if rollback_error:
                reason = f"{reason} (rollback incomplete: {rollback_error})"
            logger.error(f"Failed to restore account {name} ({identity}): {reason}")
            return AccountOutcome(
                account_name=name,
                action=action.kind,
                state=state,
                account_id=action.existing.id if action.existing else None,
                error=reason,
            )

        state = AccountState.COMMITTED
        logger.info(
            f"Restored account {name} ({identity}) with "
            f"{len(action.collection_actions)} collection(s)"
        )
        return AccountOutcome(
            account_name=name,
            action=action.kind,
            state=state,
            collections_restored=len(action.collection_actions),
            account_id=account_id,
        )

    def _apply(self, action: AccountAction, journal: list[_JournalEntry]) -> int:
        """
        Write one account and its collections, journaling every write.

        Raises:
            PerAccountFailure: On the first failed write
        """
        name = action.account_name
        is_create = action.kind == AccountActionKind.CREATE_ACCOUNT

        record = account_record_from_snapshot(
            action.snapshot, None if is_create else action.existing
        )
        try:
            saved = self.account_repository.upsert(record)
        except Exception as e:
            raise PerAccountFailure(name, f"could not save account: {e}") from e
        if is_create:
            journal.append(("created", saved))
        else:
            journal.append(("updated", action.existing))

        for collection_action in action.collection_actions:
            snapshot = collection_action.snapshot
            existing = collection_action.existing
            collection = collection_record_from_snapshot(snapshot, saved.id, existing)
            try:
                saved_collection = self.collection_repository.upsert(collection)
            except Exception as e:
                raise PerAccountFailure(
                    name, f"could not save collection {snapshot.url}: {e}"
                ) from e

            if collection_action.kind == CollectionActionKind.CREATE_COLLECTION:
                journal.append(("created", saved_collection))
            else:
                journal.append(("updated", existing))

        return saved.id

    def _rollback(self, journal: list[_JournalEntry]) -> Optional[str]:
        """
        Undo journaled writes in reverse order.

        Returns:
            Description of the first undo step that failed, or None
        """
        first_error = None
        for operation, record in reversed(journal):
            is_account = isinstance(record, AccountRecord)
            try:
                if operation == "created":
                    if is_account:
                        self.account_repository.delete(record.id)
                    else:
                        self.collection_repository.delete(record.id)
                elif is_account:
                    self.account_repository.upsert(record)
                else:
                    self.collection_repository.upsert(record)
            except Exception as e:
                kind = "account" if is_account else "collection"
                logger.error(f"Rollback of {operation} {kind} {record.id} failed: {e}")
                if first_error is None:
                    first_error = f"{kind} {record.id}: {e}"
        return first_error


def account_record_from_snapshot(
    snapshot: AccountSnapshot, existing: Optional[AccountRecord]
) -> AccountRecord:
    """
    Local record for a restored account.

    An update keeps the local id and the locally stored secrets; a new
    account starts without password or certificate alias.

    A backup without sync settings leaves the local schedule as it is.
    """
    return AccountRecord(
        id=existing.id if existing else None,
        account_name=snapshot.account_name,
        server_url=snapshot.server_url,
        username=snapshot.username,
        certificate_fingerprint=snapshot.certificate_fingerprint,
        display_name=snapshot.display_name,
        email=snapshot.email,
        auth_type=snapshot.auth_type,
        calendar_enabled=snapshot.calendar_enabled,
        contacts_enabled=snapshot.contacts_enabled,
        tasks_enabled=snapshot.tasks_enabled,
        notes=snapshot.notes,
        sync_settings=(
            snapshot.sync_settings
            if snapshot.sync_settings is not None or existing is None
            else existing.sync_settings
        ),
        password=existing.password if existing else None,
        certificate_alias=existing.certificate_alias if existing else None,
    )


def collection_record_from_snapshot(
    snapshot: CollectionSnapshot,
    account_id: int,
    existing: Optional[CollectionRecord],
) -> CollectionRecord:
    """Local record for a restored collection; updates keep id and sync token."""
    return CollectionRecord(
        account_id=account_id,
        type=snapshot.type,
        url=snapshot.url,
        display_name=snapshot.display_name,
        id=existing.id if existing else None,
        color=snapshot.color,
        sync_enabled=snapshot.sync_enabled,
        visible=snapshot.visible,
        wifi_only_sync=snapshot.wifi_only_sync,
        force_read_only=snapshot.force_read_only,
        description=snapshot.description,
        sync_interval_minutes=snapshot.sync_interval_minutes,
        timezone=snapshot.timezone,
        supports_vtodo=snapshot.supports_vtodo,
        supports_vjournal=snapshot.supports_vjournal,
        skip_events_older_than_days=snapshot.skip_events_older_than_days,
        sync_token=existing.sync_token if existing else None,
    )
