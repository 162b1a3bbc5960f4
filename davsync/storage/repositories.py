"""
Collaborator interfaces for the local configuration store.

The backup core only talks to local state through these three interfaces,
which lets it run against the SQLite store, an in-memory store in tests, or
any other persistence an embedding application provides. Every call may
fail; implementations raise whatever exception their backend produces.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from davsync.backup.models import AccountRecord, CollectionRecord, SettingsSnapshot


class AccountRepository(ABC):
    """Read/write access to local accounts."""

    @abstractmethod
    def get_all(self) -> list[AccountRecord]:
        raise NotImplementedError

    @abstractmethod
    def get_by_id(self, account_id: int) -> Optional[AccountRecord]:
        raise NotImplementedError

    @abstractmethod
    def upsert(self, record: AccountRecord) -> AccountRecord:
        """
        Insert or update an account.

        A record without id is inserted and returned with its new id; a
        record with id replaces the stored account with that id.
        """
        raise NotImplementedError

    @abstractmethod
    def delete(self, account_id: int) -> None:
        raise NotImplementedError


class CollectionRepository(ABC):
    """Read/write access to the collections of local accounts."""

    @abstractmethod
    def get_for_account(self, account_id: int) -> list[CollectionRecord]:
        raise NotImplementedError

    @abstractmethod
    def upsert(self, record: CollectionRecord) -> CollectionRecord:
        """Insert (no id) or replace (with id) a collection."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, collection_id: int) -> None:
        raise NotImplementedError


class SettingsStore(ABC):
    """Key-value store holding the app-wide settings."""

    @abstractmethod
    def read(self) -> Optional[SettingsSnapshot]:
        """Return the stored settings, or None if nothing was ever stored."""
        raise NotImplementedError

    @abstractmethod
    def write(self, value: SettingsSnapshot) -> None:
        raise NotImplementedError
