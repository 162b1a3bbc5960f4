"""
davsync.storage - Local configuration store

Collaborator interfaces consumed by the backup core, with SQLite and
in-memory implementations.
"""

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
from davsync.storage.repositories import (
    AccountRepository,
    CollectionRepository,
    SettingsStore,
)

__all__ = [
    "AccountRepository",
    "CollectionRepository",
    "SettingsStore",
    "DavDatabase",
    "SqliteAccountRepository",
    "SqliteCollectionRepository",
    "SqliteSettingsStore",
    "InMemoryAccountRepository",
    "InMemoryCollectionRepository",
    "InMemorySettingsStore",
]
