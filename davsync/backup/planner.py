"""
Restore planning: decides what to do with every entity of a backup.

The planner compares a decoded document with the local store and produces
an immutable RestorePlan. It never writes; all mutation happens later in
the RestoreExecutor, so a plan can also be shown as a preview.

Matching rules:
- Accounts match by (server host, username); host case-insensitive,
  username exact.
- An unmatched account is created together with all of its collections.
- A matched account is skipped as a whole unless overwrite is requested;
  skipping never touches its collections.
- With overwrite, a matched account is updated in place and each of its
  collections is created or updated by url.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from davsync.backup.models import (
    AccountRecord,
    AccountSnapshot,
    BackupDocument,
    CollectionRecord,
    CollectionSnapshot,
    SettingsSnapshot,
)
from davsync.utils import describe_identity

if TYPE_CHECKING:
    from davsync.storage.repositories import CollectionRepository

logger = logging.getLogger(__name__)


class AccountActionKind(Enum):
    """Planned action for one account of the backup."""

    CREATE_ACCOUNT = "create_account"
    UPDATE_ACCOUNT = "update_account"
    SKIP_ACCOUNT = "skip_account"


class CollectionActionKind(Enum):
    """Planned action for one collection of a created or updated account."""

    CREATE_COLLECTION = "create_collection"
    UPDATE_COLLECTION = "update_collection"


class SkipReason(Enum):
    """Why an account is skipped."""

    EXISTS = "exists"  # Matched a local account and overwrite is off
    DUPLICATE = "duplicate"  # Same identity appeared earlier in the backup


@dataclass(frozen=True)
class CollectionAction:
    """
    Planned action for a collection.

    Attributes:
        kind: Create or update
        snapshot: Collection data from the backup
        existing: Local collection being updated (UPDATE_COLLECTION only)
    """

    kind: CollectionActionKind
    snapshot: CollectionSnapshot
    existing: Optional[CollectionRecord] = None


@dataclass(frozen=True)
class AccountAction:
    """
    Planned action for an account and its subtree.

    Attributes:
        kind: Create, update or skip
        snapshot: Account data from the backup
        existing: Matched local account (UPDATE_ACCOUNT and EXISTS skips)
        collection_actions: Planned collection actions, empty when skipped
        skip_reason: Why the account is skipped (SKIP_ACCOUNT only)
    """

    kind: AccountActionKind
    snapshot: AccountSnapshot
    existing: Optional[AccountRecord] = None
    collection_actions: tuple[CollectionAction, ...] = ()
    skip_reason: Optional[SkipReason] = None

    @property
    def account_name(self) -> str:
        return self.snapshot.account_name


@dataclass(frozen=True)
class SettingsAction:
    """Planned write of the app-wide settings."""

    snapshot: SettingsSnapshot


@dataclass(frozen=True)
class RestorePlan:
    """Every action of one restore, computed before any mutation."""

    account_actions: tuple[AccountAction, ...] = ()
    settings_action: Optional[SettingsAction] = None

    def count(self, kind: AccountActionKind) -> int:
        return sum(1 for action in self.account_actions if action.kind == kind)

    def describe(self) -> str:
        """One-line description of the plan for logs and previews."""
        collections = sum(len(a.collection_actions) for a in self.account_actions)
        return (
            f"create {self.count(AccountActionKind.CREATE_ACCOUNT)}, "
            f"update {self.count(AccountActionKind.UPDATE_ACCOUNT)}, "
            f"skip {self.count(AccountActionKind.SKIP_ACCOUNT)} account(s); "
            f"{collections} collection action(s); "
            f"settings: {'yes' if self.settings_action else 'no'}"
        )


class RestorePlanner:
    """
    Computes restore plans.

    Local collections are only read for accounts that will be updated.

    Usage:
        planner = RestorePlanner(collection_repository)
        plan = planner.plan(document, account_repository.get_all(), True)
    """

    def __init__(self, collection_repository: CollectionRepository):
        self.collection_repository = collection_repository

    def plan(
        self,
        document: BackupDocument,
        local_accounts: Sequence[AccountRecord],
        overwrite_existing: bool,
    ) -> RestorePlan:
        """
        Plan the restore of a document.

        Args:
            document: Decoded backup document
            local_accounts: Current local account records
            overwrite_existing: Update matched accounts instead of skipping

        Returns:
            RestorePlan with one account action per account in the document
        """
        local_by_identity: dict[tuple[str, str], AccountRecord] = {}
        for record in local_accounts:
            # First local account wins if the store already holds duplicates
            local_by_identity.setdefault(record.identity(), record)

        planned: set[tuple[str, str]] = set()
        actions = []
        for snapshot in document.accounts:
            identity = snapshot.identity()
            if identity in planned:
                logger.warning(
                    f"Backup lists "
                    f"{describe_identity(snapshot.server_url, snapshot.username)} "
                    f"more than once; skipping the repeat"
                )
                actions.append(
                    AccountAction(
                        kind=AccountActionKind.SKIP_ACCOUNT,
                        snapshot=snapshot,
                        existing=local_by_identity.get(identity),
                        skip_reason=SkipReason.DUPLICATE,
                    )
                )
                continue
            planned.add(identity)

            actions.append(
                self._plan_account(
                    snapshot, local_by_identity.get(identity), overwrite_existing
                )
            )

        settings_action = None
        if document.settings is not None:
            settings_action = SettingsAction(snapshot=document.settings)

        plan = RestorePlan(
            account_actions=tuple(actions), settings_action=settings_action
        )
        logger.debug(f"Restore plan: {plan.describe()}")
        return plan

    def _plan_account(
        self,
        snapshot: AccountSnapshot,
        existing: Optional[AccountRecord],
        overwrite_existing: bool,
    ) -> AccountAction:
        if existing is None:
            return AccountAction(
                kind=AccountActionKind.CREATE_ACCOUNT,
                snapshot=snapshot,
                collection_actions=tuple(
                    CollectionAction(CollectionActionKind.CREATE_COLLECTION, c)
                    for c in snapshot.collections
                ),
            )

        if not overwrite_existing:
            return AccountAction(
                kind=AccountActionKind.SKIP_ACCOUNT,
                snapshot=snapshot,
                existing=existing,
                skip_reason=SkipReason.EXISTS,
            )

        local_collections: dict[str, CollectionRecord] = {}
        for record in self.collection_repository.get_for_account(existing.id):
            local_collections.setdefault(record.url, record)

        collection_actions = []
        for collection in snapshot.collections:
            match = local_collections.get(collection.url)
            if match is None:
                collection_actions.append(
                    CollectionAction(CollectionActionKind.CREATE_COLLECTION, collection)
                )
            else:
                collection_actions.append(
                    CollectionAction(
                        CollectionActionKind.UPDATE_COLLECTION, collection, match
                    )
                )

        return AccountAction(
            kind=AccountActionKind.UPDATE_ACCOUNT,
            snapshot=snapshot,
            existing=existing,
            collection_actions=tuple(collection_actions),
        )
