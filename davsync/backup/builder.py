"""
Snapshot builder: assembles a BackupDocument from the local store.

Secrets never make it into a snapshot. Account passwords and keychain
certificate aliases are dropped regardless of scope, including when a single
fully authenticated account is exported.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from davsync import __version__
from davsync.backup.errors import IncompleteDataError
from davsync.backup.models import (
    SCHEMA_VERSION,
    AccountRecord,
    AccountSnapshot,
    BackupDocument,
    CollectionRecord,
    CollectionSnapshot,
    CollectionType,
)
from davsync.utils import describe_identity

if TYPE_CHECKING:
    from davsync.storage.repositories import (
        AccountRepository,
        CollectionRepository,
        SettingsStore,
    )

logger = logging.getLogger(__name__)


def current_time_millis() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class BackupScope:
    """
    What a backup contains.

    Attributes:
        account_id: Export only this account, or every account when None
        include_settings: Whether to add the app-wide settings
    """

    account_id: Optional[int] = None
    include_settings: bool = True

    @classmethod
    def full(cls) -> BackupScope:
        return cls(account_id=None, include_settings=True)

    @classmethod
    def single(cls, account_id: int, include_settings: bool = False) -> BackupScope:
        return cls(account_id=account_id, include_settings=include_settings)


class SnapshotBuilder:
    """
    Builds backup documents by reading the local store sequentially.

    Usage:
        builder = SnapshotBuilder(accounts, collections, settings)
        document = builder.build(BackupScope.single(account_id=3))
    """

    def __init__(
        self,
        account_repository: AccountRepository,
        collection_repository: CollectionRepository,
        settings_store: SettingsStore,
        clock: Callable[[], int] = current_time_millis,
    ):
        self.account_repository = account_repository
        self.collection_repository = collection_repository
        self.settings_store = settings_store
        self.clock = clock

    def build(self, scope: BackupScope) -> BackupDocument:
        """
        Build a fresh document for the given scope.

        Raises:
            IncompleteDataError: If scope.account_id names a missing account
        """
        if scope.account_id is not None:
            record = self.account_repository.get_by_id(scope.account_id)
            if record is None:
                raise IncompleteDataError(scope.account_id)
            records = [record]
        else:
            records = self.account_repository.get_all()

        accounts = tuple(self._snapshot_account(record) for record in records)

        settings = self.settings_store.read() if scope.include_settings else None

        document = BackupDocument(
            schema_version=SCHEMA_VERSION,
            created_at=self.clock(),
            accounts=accounts,
            settings=settings,
            app_version=__version__,
        )
        logger.debug(
            f"Built backup snapshot: {len(accounts)} account(s), "
            f"{document.collection_count} collection(s), "
            f"settings: {'yes' if settings else 'no'}"
        )
        return document

    def _snapshot_account(self, record: AccountRecord) -> AccountSnapshot:
        identity = describe_identity(record.server_url, record.username)
        collections: list[CollectionSnapshot] = []
        seen_urls: set[str] = set()

        for collection in self.collection_repository.get_for_account(record.id):
            if collection.url in seen_urls:
                logger.warning(
                    f"Skipping duplicate collection {collection.url} of {identity}"
                )
                continue
            seen_urls.add(collection.url)
            collections.append(snapshot_collection(collection))

        return AccountSnapshot(
            account_name=record.account_name,
            server_url=record.server_url,
            username=record.username,
            certificate_fingerprint=record.certificate_fingerprint,
            collections=tuple(collections),
            display_name=record.display_name,
            email=record.email,
            auth_type=record.auth_type,
            calendar_enabled=record.calendar_enabled,
            contacts_enabled=record.contacts_enabled,
            tasks_enabled=record.tasks_enabled,
            notes=record.notes,
            sync_settings=record.sync_settings,
        )


def snapshot_collection(record: CollectionRecord) -> CollectionSnapshot:
    """Portable view of a local collection. Sync state is left behind."""
    is_calendar = record.type == CollectionType.CALENDAR
    return CollectionSnapshot(
        type=record.type,
        url=record.url,
        display_name=record.display_name,
        color=record.color,
        sync_enabled=record.sync_enabled,
        visible=record.visible,
        wifi_only_sync=record.wifi_only_sync,
        force_read_only=record.force_read_only,
        description=record.description,
        sync_interval_minutes=record.sync_interval_minutes,
        timezone=record.timezone if is_calendar else None,
        supports_vtodo=record.supports_vtodo if is_calendar else False,
        supports_vjournal=record.supports_vjournal if is_calendar else False,
        skip_events_older_than_days=(
            record.skip_events_older_than_days if is_calendar else None
        ),
    )
