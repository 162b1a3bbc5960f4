"""
Backup and restore facade.

BackupRestoreManager is the public entry point of the backup core. It wires
the SnapshotBuilder, serializer, RestorePlanner and RestoreExecutor together
and is the only place where internal exceptions are turned into result
objects. Callers never see an exception from these operations.

Usage:
    manager = BackupRestoreManager(accounts, collections, settings)
    backup = manager.create_full_backup()
    if isinstance(backup, BackupSuccess):
        outcome = manager.restore_backup(backup.json, overwrite_existing=True)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

from davsync.backup import serializer
from davsync.backup.builder import BackupScope, SnapshotBuilder, current_time_millis
from davsync.backup.errors import (
    DecodeError,
    IncompleteDataError,
    IoFailure,
    UnsupportedSchemaVersion,
)
from davsync.backup.executor import RestoreExecutor, RestoreResult
from davsync.backup.models import BackupDocument
from davsync.backup.planner import RestorePlan, RestorePlanner

if TYPE_CHECKING:
    from davsync.backup.files import BackupFileStore
    from davsync.storage.repositories import (
        AccountRepository,
        CollectionRepository,
        SettingsStore,
    )

logger = logging.getLogger(__name__)


class FailureKind(Enum):
    """Category of a failed backup or restore."""

    IO = "io"
    PARSE = "parse"
    SCHEMA_VERSION = "schema_version"
    INCOMPLETE_DATA = "incomplete_data"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class BackupSuccess:
    """
    A serialized backup.

    Attributes:
        json: The backup document as JSON text
        size: Size of the UTF-8 encoded text in bytes
        path: File the backup was written to, when written by the manager
    """

    json: str
    size: int
    path: Optional[Path] = None


@dataclass(frozen=True)
class BackupFailure:
    message: str
    kind: FailureKind


BackupResult = Union[BackupSuccess, BackupFailure]


@dataclass(frozen=True)
class RestoreSuccess:
    """
    A restore that ran to completion.

    Individual accounts may still have failed; see result.errors.
    """

    result: RestoreResult


@dataclass(frozen=True)
class RestoreFailure:
    """A restore that was rejected before anything was written."""

    message: str
    kind: FailureKind


RestoreOutcome = Union[RestoreSuccess, RestoreFailure]


@dataclass(frozen=True)
class ValidationResult:
    """
    Result of validating backup text without restoring it.

    Attributes:
        is_valid: Whether the text decodes into a document
        errors: Decode error messages (empty when valid)
        document: The decoded document when valid
    """

    is_valid: bool
    errors: tuple[str, ...] = ()
    document: Optional[BackupDocument] = None


def _decode_failure_kind(error: DecodeError) -> FailureKind:
    if isinstance(error, UnsupportedSchemaVersion):
        return FailureKind.SCHEMA_VERSION
    return FailureKind.PARSE


class BackupRestoreManager:
    """
    Public facade for creating and restoring backups.

    Attributes:
        file_store: Optional backup directory used by the *_file operations
        include_settings_in_account_backup: Default for single-account backups
    """

    def __init__(
        self,
        account_repository: AccountRepository,
        collection_repository: CollectionRepository,
        settings_store: SettingsStore,
        file_store: Optional[BackupFileStore] = None,
        include_settings_in_account_backup: bool = False,
        clock: Callable[[], int] = current_time_millis,
    ):
        self.account_repository = account_repository
        self.collection_repository = collection_repository
        self.settings_store = settings_store
        self.file_store = file_store
        self.include_settings_in_account_backup = include_settings_in_account_backup
        self.builder = SnapshotBuilder(
            account_repository, collection_repository, settings_store, clock=clock
        )
        self.planner = RestorePlanner(collection_repository)
        self.executor = RestoreExecutor(
            account_repository, collection_repository, settings_store
        )

    # -------------------------------------------------------------------------
    # Backup
    # -------------------------------------------------------------------------

    def create_backup(
        self, account_id: int, include_settings: Optional[bool] = None
    ) -> BackupResult:
        """
        Back up a single account and its collections.

        Args:
            account_id: Local id of the account to export
            include_settings: Add the app-wide settings; None uses the
                configured default

        Returns:
            BackupSuccess with the JSON text, or BackupFailure
        """
        if include_settings is None:
            include_settings = self.include_settings_in_account_backup
        return self._backup(
            BackupScope.single(account_id, include_settings=include_settings)
        )

    def create_full_backup(self) -> BackupResult:
        """Back up every account, all collections and the app-wide settings."""
        return self._backup(BackupScope.full())

    def create_backup_file(
        self, account_id: Optional[int] = None, include_settings: Optional[bool] = None
    ) -> BackupResult:
        """
        Create a backup and write it to the file store.

        Args:
            account_id: Export only this account, or everything when None
            include_settings: As for create_backup; ignored for full backups

        Returns:
            BackupSuccess with path set, or BackupFailure
        """
        if self.file_store is None:
            return BackupFailure("No backup directory configured", FailureKind.IO)

        if account_id is None:
            result = self.create_full_backup()
            label = None
        else:
            result = self.create_backup(account_id, include_settings=include_settings)
            label = self._account_label(account_id)

        if isinstance(result, BackupFailure):
            return result

        try:
            path = self.file_store.write(result.json, label=label)
        except IoFailure as e:
            logger.error(f"Backup could not be written: {e}")
            return BackupFailure(str(e), FailureKind.IO)
        return BackupSuccess(json=result.json, size=result.size, path=path)

    def _backup(self, scope: BackupScope) -> BackupResult:
        try:
            document = self.builder.build(scope)
            text = serializer.encode(document)
        except IncompleteDataError as e:
            logger.warning(f"Backup failed: {e}")
            return BackupFailure(str(e), FailureKind.INCOMPLETE_DATA)
        except IoFailure as e:
            logger.error(f"Backup failed: {e}")
            return BackupFailure(str(e), FailureKind.IO)
        except Exception as e:
            logger.exception("Unexpected error while creating backup")
            return BackupFailure(
                f"Unexpected error: {str(e) or type(e).__name__}",
                FailureKind.UNEXPECTED,
            )

        size = len(text.encode("utf-8"))
        logger.info(
            f"Backup created: {len(document.accounts)} account(s), "
            f"{document.collection_count} collection(s), {size} bytes"
        )
        return BackupSuccess(json=text, size=size)

    def _account_label(self, account_id: int) -> Optional[str]:
        try:
            record = self.account_repository.get_by_id(account_id)
        except Exception as e:
            logger.debug(f"Could not look up account {account_id} for label: {e}")
            return None
        return record.account_name if record else None

    # -------------------------------------------------------------------------
    # Restore
    # -------------------------------------------------------------------------

    def restore_backup(
        self, json: str, overwrite_existing: bool = False
    ) -> RestoreOutcome:
        """
        Restore accounts, collections and settings from backup text.

        The text is fully decoded before anything is written; a document
        that cannot be decoded leaves the local store untouched.

        Args:
            json: Backup document text
            overwrite_existing: Update matching local accounts instead of
                skipping them

        Returns:
            RestoreSuccess with the aggregate result, or RestoreFailure
        """
        try:
            document = serializer.decode(json)
        except DecodeError as e:
            kind = _decode_failure_kind(e)
            logger.error(f"Backup rejected ({kind.value}): {e}")
            return RestoreFailure(str(e), kind)
        except Exception as e:
            logger.exception("Unexpected error while decoding backup")
            return RestoreFailure(
                f"Unexpected error: {str(e) or type(e).__name__}",
                FailureKind.UNEXPECTED,
            )

        logger.info(
            f"Restoring backup from schema v{document.schema_version}: "
            f"{len(document.accounts)} account(s), "
            f"overwrite: {'yes' if overwrite_existing else 'no'}"
        )

        try:
            plan = self.plan_restore(document, overwrite_existing)
            result = self.executor.execute(plan)
        except Exception as e:
            logger.exception("Unexpected error while restoring backup")
            return RestoreFailure(
                f"Unexpected error: {str(e) or type(e).__name__}",
                FailureKind.UNEXPECTED,
            )

        return RestoreSuccess(result)

    def plan_restore(
        self, document: BackupDocument, overwrite_existing: bool = False
    ) -> RestorePlan:
        """
        Compute what a restore of the document would do, without writing.

        Raises whatever the repositories raise; restore_backup wraps it.
        """
        local_accounts = self.account_repository.get_all()
        return self.planner.plan(document, local_accounts, overwrite_existing)

    def restore_backup_file(
        self, path: Path | str, overwrite_existing: bool = False
    ) -> RestoreOutcome:
        """Read a backup file and restore it. See restore_backup."""
        try:
            text = self._read_file(path)
        except IoFailure as e:
            logger.error(f"Backup could not be read: {e}")
            return RestoreFailure(str(e), FailureKind.IO)
        return self.restore_backup(text, overwrite_existing=overwrite_existing)

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate_backup(self, json: str) -> ValidationResult:
        """Decode backup text without touching the local store."""
        try:
            document = serializer.decode(json)
        except DecodeError as e:
            return ValidationResult(is_valid=False, errors=(str(e),))
        except Exception as e:
            logger.exception("Unexpected error while validating backup")
            return ValidationResult(
                is_valid=False,
                errors=(f"Unexpected error: {str(e) or type(e).__name__}",),
            )
        return ValidationResult(is_valid=True, document=document)

    def validate_backup_file(self, path: Path | str) -> ValidationResult:
        try:
            text = self._read_file(path)
        except IoFailure as e:
            return ValidationResult(is_valid=False, errors=(str(e),))
        return self.validate_backup(text)

    def _read_file(self, path: Path | str) -> str:
        if self.file_store is not None:
            return self.file_store.read(path)
        try:
            with open(Path(path).expanduser(), encoding="utf-8") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise IoFailure(f"Cannot read backup file {path}: {e}") from e
