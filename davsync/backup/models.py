"""
Data model for account configuration backups.

Snapshots are the portable, secret-free view of local configuration that is
written into a backup document. Records are the local store's view of the
same entities, including local ids, secrets and sync state that never leave
the device.

Snapshot and document values are frozen; a document is built fresh for every
export and lives only for the duration of one restore.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from davsync.utils import account_identity

# Current backup document schema version. Bump whenever the structure of
# the serialized document changes; older versions stay readable.
SCHEMA_VERSION = 2

# Oldest schema version the decoder still understands
MIN_SCHEMA_VERSION = 1


class CollectionType(str, Enum):
    """Kind of DAV collection belonging to an account."""

    CALENDAR = "calendar"
    ADDRESS_BOOK = "addressBook"
    TASK_LIST = "taskList"


class AuthType(str, Enum):
    """How an account authenticates against its server."""

    BASIC = "BASIC"
    BEARER = "BEARER"
    APP_PASSWORD = "APP_PASSWORD"


@dataclass(frozen=True)
class CollectionSnapshot:
    """
    Portable configuration of one calendar, address book or task list.

    Attributes:
        type: Collection kind
        url: Collection URL; identity of the collection within its account
        display_name: Name shown to the user
        color: ARGB color as a signed 32-bit int, or None
        sync_enabled: Whether the collection takes part in sync
        visible: Whether the collection is shown in the UI
        wifi_only_sync: Restrict sync of this collection to Wi-Fi
        force_read_only: User-controlled read-only override
        description: Server-provided description
        sync_interval_minutes: Custom interval, None means account default
        timezone: Calendar timezone id (calendars only)
        supports_vtodo: Calendar accepts tasks (calendars only)
        supports_vjournal: Calendar accepts journal entries (calendars only)
        skip_events_older_than_days: Skip events older than this many days,
            None syncs all events (calendars only)
    """

    type: CollectionType
    url: str
    display_name: str
    color: Optional[int] = None
    sync_enabled: bool = True
    visible: bool = True
    wifi_only_sync: bool = False
    force_read_only: bool = False
    description: Optional[str] = None
    sync_interval_minutes: Optional[int] = None

    # Calendar-only extras
    timezone: Optional[str] = None
    supports_vtodo: bool = False
    supports_vjournal: bool = False
    skip_events_older_than_days: Optional[int] = None

    def __post_init__(self):
        if self.is_calendar:
            return
        extras = {
            "timezone": self.timezone is not None,
            "supports_vtodo": self.supports_vtodo,
            "supports_vjournal": self.supports_vjournal,
            "skip_events_older_than_days": (
                self.skip_events_older_than_days is not None
            ),
        }
        set_extras = [name for name, is_set in extras.items() if is_set]
        if set_extras:
            raise ValueError(
                f"{', '.join(set_extras)} only apply to calendars, "
                f"not to {self.type.value} {self.url}"
            )

    @property
    def is_calendar(self) -> bool:
        return self.type == CollectionType.CALENDAR


@dataclass(frozen=True)
class AccountSyncSettings:
    """
    Sync schedule of one account.

    Intervals are in minutes and apply per service: CalDAV calendars,
    CardDAV address books and subscribed webcal feeds.
    """

    calendar_sync_interval: int = 60
    contact_sync_interval: int = 60
    webcal_sync_interval: int = 60
    wifi_only: bool = False


@dataclass(frozen=True)
class AccountSnapshot:
    """
    Portable configuration of one account and its collections.

    There is deliberately no password attribute.
    """

    account_name: str
    server_url: str
    username: str
    certificate_fingerprint: Optional[str] = None
    collections: tuple[CollectionSnapshot, ...] = ()

    display_name: Optional[str] = None
    email: Optional[str] = None
    auth_type: AuthType = AuthType.BASIC
    calendar_enabled: bool = True
    contacts_enabled: bool = True
    tasks_enabled: bool = False
    notes: Optional[str] = None
    sync_settings: Optional[AccountSyncSettings] = None

    def identity(self) -> tuple[str, str]:
        """Identity used to match this snapshot against local accounts."""
        return account_identity(self.server_url, self.username)


@dataclass(frozen=True)
class SettingsSnapshot:
    """App-wide settings toggles."""

    auto_sync: bool = True
    wifi_only: bool = False
    dark_mode: bool = False
    debug_logging: bool = False


@dataclass(frozen=True)
class BackupDocument:
    """
    Versioned, serializable configuration snapshot.

    Attributes:
        schema_version: Structural version of the document
        created_at: Creation time in epoch milliseconds
        accounts: Account snapshots, possibly empty
        settings: App-wide settings, or None when not part of the backup
        app_version: Version of the application that wrote the document
    """

    schema_version: int
    created_at: int
    accounts: tuple[AccountSnapshot, ...] = ()
    settings: Optional[SettingsSnapshot] = None
    app_version: Optional[str] = None

    @property
    def collection_count(self) -> int:
        return sum(len(account.collections) for account in self.accounts)


@dataclass
class AccountRecord:
    """
    Local account as held by the account repository.

    ``password`` and ``certificate_alias`` are secrets. The alias is an
    opaque reference into the platform keychain; nothing in this package can
    decrypt it.
    """

    account_name: str
    server_url: str
    username: str
    id: Optional[int] = None
    certificate_fingerprint: Optional[str] = None
    display_name: Optional[str] = None
    email: Optional[str] = None
    auth_type: AuthType = AuthType.BASIC
    calendar_enabled: bool = True
    contacts_enabled: bool = True
    tasks_enabled: bool = False
    notes: Optional[str] = None
    sync_settings: Optional[AccountSyncSettings] = None

    # Secrets: never copied into a snapshot
    password: Optional[str] = field(default=None, repr=False)
    certificate_alias: Optional[str] = field(default=None, repr=False)

    def identity(self) -> tuple[str, str]:
        return account_identity(self.server_url, self.username)


@dataclass
class CollectionRecord:
    """Local collection as held by the collection repository."""

    account_id: int
    type: CollectionType
    url: str
    display_name: str
    id: Optional[int] = None
    color: Optional[int] = None
    sync_enabled: bool = True
    visible: bool = True
    wifi_only_sync: bool = False
    force_read_only: bool = False
    description: Optional[str] = None
    sync_interval_minutes: Optional[int] = None
    timezone: Optional[str] = None
    supports_vtodo: bool = False
    supports_vjournal: bool = False
    skip_events_older_than_days: Optional[int] = None

    # Local sync state, not part of a backup
    sync_token: Optional[str] = None
