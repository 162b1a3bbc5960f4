"""
Backup and restore of account configuration.

Accounts, their collections and the app-wide settings are exported into a
versioned JSON document and restored from it later. Passwords never leave
the local store.
"""

from davsync.backup.errors import (
    BackupRestoreError,
    DecodeError,
    IncompleteDataError,
    InvalidFieldValue,
    IoFailure,
    MalformedText,
    MissingRequiredField,
    PerAccountFailure,
    UnsupportedSchemaVersion,
)
from davsync.backup.executor import (
    PASSWORD_NOTICE,
    AccountState,
    PerAccountError,
    RestoreExecutor,
    RestoreResult,
)
from davsync.backup.files import BackupFileStore, BackupInfo
from davsync.backup.manager import (
    BackupFailure,
    BackupRestoreManager,
    BackupResult,
    BackupSuccess,
    FailureKind,
    RestoreFailure,
    RestoreOutcome,
    RestoreSuccess,
    ValidationResult,
)
from davsync.backup.models import (
    SCHEMA_VERSION,
    AccountRecord,
    AccountSnapshot,
    AccountSyncSettings,
    AuthType,
    BackupDocument,
    CollectionRecord,
    CollectionSnapshot,
    CollectionType,
    SettingsSnapshot,
)

__all__ = [
    "SCHEMA_VERSION",
    "AccountRecord",
    "AccountSnapshot",
    "AccountState",
    "AccountSyncSettings",
    "AuthType",
    "BackupDocument",
    "BackupFailure",
    "BackupFileStore",
    "BackupInfo",
    "BackupRestoreError",
    "BackupRestoreManager",
    "BackupResult",
    "BackupSuccess",
    "CollectionRecord",
    "CollectionSnapshot",
    "CollectionType",
    "DecodeError",
    "FailureKind",
    "IncompleteDataError",
    "InvalidFieldValue",
    "IoFailure",
    "MalformedText",
    "MissingRequiredField",
    "PASSWORD_NOTICE",
    "PerAccountError",
    "PerAccountFailure",
    "RestoreExecutor",
    "RestoreFailure",
    "RestoreOutcome",
    "RestoreResult",
    "RestoreSuccess",
    "SettingsSnapshot",
    "UnsupportedSchemaVersion",
    "ValidationResult",
]
