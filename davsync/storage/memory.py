"""
In-memory implementations of the local store interfaces.

Records are copied on the way in and on the way out, so callers never share
mutable state with the store. Used by the test suite and by embedding
applications that keep configuration in memory.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Optional

from davsync.backup.models import AccountRecord, CollectionRecord, SettingsSnapshot
from davsync.storage.repositories import (
    AccountRepository,
    CollectionRepository,
    SettingsStore,
)


class InMemoryAccountRepository(AccountRepository):
    """Account repository backed by a dict keyed by account id."""

    def __init__(self, records: Optional[list[AccountRecord]] = None):
        self._records: dict[int, AccountRecord] = {}
        self._next_id = 1
        for record in records or []:
            self.upsert(record)

    def get_all(self) -> list[AccountRecord]:
        return [replace(r) for r in self._records.values()]

    def get_by_id(self, account_id: int) -> Optional[AccountRecord]:
        record = self._records.get(account_id)
        return replace(record) if record else None

    def upsert(self, record: AccountRecord) -> AccountRecord:
        if record.id is None:
            record = replace(record, id=self._next_id)
        self._next_id = max(self._next_id, record.id + 1)
        self._records[record.id] = replace(record)
        return replace(record)

    def delete(self, account_id: int) -> None:
        self._records.pop(account_id, None)


class InMemoryCollectionRepository(CollectionRepository):
    """Collection repository backed by a dict keyed by collection id."""

    def __init__(self, records: Optional[list[CollectionRecord]] = None):
        self._records: dict[int, CollectionRecord] = {}
        self._next_id = 1
        for record in records or []:
            self.upsert(record)

    def get_for_account(self, account_id: int) -> list[CollectionRecord]:
        return [
            replace(r) for r in self._records.values() if r.account_id == account_id
        ]

    def upsert(self, record: CollectionRecord) -> CollectionRecord:
        if record.id is None:
            record = replace(record, id=self._next_id)
        self._next_id = max(self._next_id, record.id + 1)
        self._records[record.id] = replace(record)
        return replace(record)

    def delete(self, collection_id: int) -> None:
        self._records.pop(collection_id, None)


class InMemorySettingsStore(SettingsStore):
    """Settings store holding a single snapshot."""

    def __init__(self, value: Optional[SettingsSnapshot] = None):
        self._value = value

    def read(self) -> Optional[SettingsSnapshot]:
        return self._value

    def write(self, value: SettingsSnapshot) -> None:
        self._value = value
