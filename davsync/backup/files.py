"""
Backup file storage.

Provides functionality to:
- Write backup documents as timestamped JSON files
- List available backups sorted by modification time
- Read backup files for restore
- Delete backups and apply a retention policy

Every filesystem error is raised as IoFailure.
"""

from __future__ import annotations

import contextlib
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from davsync.backup.errors import IoFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackupInfo:
    """A backup file found in the backup directory."""

    path: Path
    size: int
    modified: datetime

    @property
    def name(self) -> str:
        return self.path.name


class BackupFileStore:
    """
    Directory of timestamped backup files.

    Attributes:
        backup_dir: Directory path where backups are stored
        retention_count: Maximum number of backups to retain (0 = unlimited)

    Usage:
        store = BackupFileStore(Path("~/.davsync/backups"), retention_count=10)
        path = store.write(json_text, label="work")
        for info in store.list_backups():
            print(info.name, info.size)
        text = store.read(path)
    """

    BACKUP_PREFIX = "davsync_backup_"
    BACKUP_SUFFIX = ".json"

    def __init__(self, backup_dir: Path | str, retention_count: int = 10):
        self.backup_dir = Path(backup_dir).expanduser()
        self.retention_count = retention_count

    def write(self, text: str, label: Optional[str] = None) -> Path:
        """
        Write backup text to a new timestamped file.

        The file is written to a temporary name first and renamed into
        place, so a failed write never leaves a truncated backup behind.

        Args:
            text: Serialized backup document
            label: Optional suffix for the file name (e.g. an account name)

        Returns:
            Path of the written file

        Raises:
            IoFailure: If the directory or file cannot be written
        """
        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise IoFailure(
                f"Cannot create backup directory {self.backup_dir}: {e}"
            ) from e

        path = self._new_backup_path(label)
        tmp_name = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.backup_dir,
                prefix=".tmp_",
                suffix=self.BACKUP_SUFFIX,
                delete=False,
            ) as f:
                tmp_name = f.name
                f.write(text)
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
            raise IoFailure(f"Cannot write backup file {path}: {e}") from e

        logger.info(f"Backup written to {path} ({len(text)} bytes)")
        self.apply_retention()
        return path

    def read(self, path: Path | str) -> str:
        """
        Read a backup file.

        Raises:
            IoFailure: If the file cannot be read
        """
        path = Path(path).expanduser()
        try:
            with open(path, encoding="utf-8") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise IoFailure(f"Cannot read backup file {path}: {e}") from e

    def list_backups(self) -> list[BackupInfo]:
        """
        List all backup files, newest first.

        Returns:
            BackupInfo entries sorted by modification time, newest first
        """
        if not self.backup_dir.exists():
            return []

        backups = []
        for path in self.backup_dir.glob(f"{self.BACKUP_PREFIX}*{self.BACKUP_SUFFIX}"):
            try:
                stat = path.stat()
            except OSError:
                continue  # Deleted while listing
            backups.append(
                BackupInfo(
                    path=path,
                    size=stat.st_size,
                    modified=datetime.fromtimestamp(stat.st_mtime),
                )
            )

        backups.sort(key=lambda b: (b.modified, b.name), reverse=True)
        return backups

    def delete(self, path: Path | str) -> bool:
        """
        Delete a backup file.

        Returns:
            True if the file was deleted, False if it did not exist

        Raises:
            IoFailure: If the file exists but cannot be deleted
        """
        path = Path(path).expanduser()
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise IoFailure(f"Cannot delete backup file {path}: {e}") from e
        return True

    def apply_retention(self) -> int:
        """
        Delete backups beyond the retention limit.

        Returns:
            Number of backups deleted
        """
        if self.retention_count <= 0:
            return 0

        deleted = 0
        for backup in self.list_backups()[self.retention_count :]:
            try:
                backup.path.unlink()
                deleted += 1
            except OSError as e:
                logger.warning(f"Could not delete old backup {backup.path}: {e}")

        if deleted:
            logger.debug(f"Retention removed {deleted} old backup(s)")
        return deleted

    def _new_backup_path(self, label: Optional[str]) -> Path:
        stem = f"{self.BACKUP_PREFIX}{datetime.now().strftime('%Y%m%d_%H%M%S')}"
        if label:
            safe_label = re.sub(r"[^A-Za-z0-9._-]+", "_", label).strip("_")
            if safe_label:
                stem = f"{stem}_{safe_label}"

        path = self.backup_dir / f"{stem}{self.BACKUP_SUFFIX}"
        counter = 1
        while path.exists():
            path = self.backup_dir / f"{stem}_{counter}{self.BACKUP_SUFFIX}"
            counter += 1
        return path
