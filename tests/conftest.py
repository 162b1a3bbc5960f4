"""Shared fixtures for the davsync test suite."""

import pytest

from davsync.backup.manager import BackupRestoreManager
from davsync.backup.models import (
    AccountRecord,
    CollectionRecord,
    CollectionType,
    SettingsSnapshot,
)
from davsync.storage.memory import (
    InMemoryAccountRepository,
    InMemoryCollectionRepository,
    InMemorySettingsStore,
)

# Fixed clock value for deterministic documents (2026-01-01T00:00:00Z)
FIXED_TIME_MILLIS = 1767225600000


@pytest.fixture
def accounts():
    """Empty in-memory account repository."""
    return InMemoryAccountRepository()


@pytest.fixture
def collections():
    """Empty in-memory collection repository."""
    return InMemoryCollectionRepository()


@pytest.fixture
def settings_store():
    """Settings store without any stored settings."""
    return InMemorySettingsStore()


@pytest.fixture
def manager(accounts, collections, settings_store):
    """Manager over the in-memory repositories with a fixed clock."""
    return BackupRestoreManager(
        accounts, collections, settings_store, clock=lambda: FIXED_TIME_MILLIS
    )


@pytest.fixture
def work_account(accounts, collections):
    """
    The "Work" account of alice with two calendars and one address book.

    The account carries a password and a certificate alias so tests can
    check that neither leaves the local store.
    """
    account = accounts.upsert(
        AccountRecord(
            account_name="Work",
            server_url="https://dav.example.com",
            username="alice",
            certificate_fingerprint="AB:CD:EF",
            email="alice@example.com",
            password="hunter2",
            certificate_alias="keychain-alias-42",
        )
    )
    collections.upsert(
        CollectionRecord(
            account_id=account.id,
            type=CollectionType.CALENDAR,
            url="https://dav.example.com/calendars/alice/work/",
            display_name="Work",
            color=-16776961,
            timezone="Europe/Berlin",
            supports_vtodo=True,
            skip_events_older_than_days=90,
            sync_token="token-1",
        )
    )
    collections.upsert(
        CollectionRecord(
            account_id=account.id,
            type=CollectionType.CALENDAR,
            url="https://dav.example.com/calendars/alice/holidays/",
            display_name="Holidays",
            force_read_only=True,
        )
    )
    collections.upsert(
        CollectionRecord(
            account_id=account.id,
            type=CollectionType.ADDRESS_BOOK,
            url="https://dav.example.com/addressbooks/alice/contacts/",
            display_name="Contacts",
            wifi_only_sync=True,
        )
    )
    return account


@pytest.fixture
def app_settings(settings_store):
    """Non-default app settings stored in the settings store."""
    value = SettingsSnapshot(
        auto_sync=False, wifi_only=True, dark_mode=True, debug_logging=False
    )
    settings_store.write(value)
    return value


@pytest.fixture
def fixed_time():
    """Clock value used by the manager fixture."""
    return FIXED_TIME_MILLIS
