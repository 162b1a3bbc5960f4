"""
Exception taxonomy for backup and restore.

Everything below the BackupRestoreManager facade communicates failure by
raising one of these exceptions; the facade converts them into result
objects.
"""

from __future__ import annotations


class BackupRestoreError(Exception):
    """Base class for all backup and restore failures."""

    pass


class IoFailure(BackupRestoreError):
    """Raised when a backup file cannot be read or written."""

    pass


class IncompleteDataError(BackupRestoreError):
    """Raised when an account referenced by id disappeared before backup."""

    def __init__(self, account_id: int):
        super().__init__(f"Account {account_id} no longer exists")
        self.account_id = account_id


class DecodeError(BackupRestoreError):
    """Base class for failures decoding a backup document."""

    pass


class MalformedText(DecodeError):
    """Raised when the backup text is not a parseable JSON object."""

    pass


class MissingRequiredField(DecodeError):
    """Raised when a mandatory field is absent from the document."""

    def __init__(self, name: str):
        super().__init__(f"Missing required field '{name}'")
        self.name = name


class InvalidFieldValue(DecodeError):
    """Raised when a field is present but has an unusable type or value."""

    def __init__(self, name: str, detail: str):
        super().__init__(f"Invalid value for '{name}': {detail}")
        self.name = name
        self.detail = detail


class UnsupportedSchemaVersion(DecodeError):
    """Raised when the document was written by a newer schema version."""

    def __init__(self, found: int, supported: int):
        super().__init__(
            f"Backup schema version {found} is newer than the supported "
            f"version {supported}. Please update the app to restore it."
        )
        self.found = found
        self.supported = supported


class PerAccountFailure(BackupRestoreError):
    """Raised when persisting one account (or its collections) fails."""

    def __init__(self, account_name: str, reason: str):
        super().__init__(f"{account_name}: {reason}")
        self.account_name = account_name
        self.reason = reason
