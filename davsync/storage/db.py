"""
SQLite database module for the local configuration store.

Provides persistent storage for accounts, their collections and the
app-wide settings, plus repository classes implementing the collaborator
interfaces consumed by the backup core.
"""

import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any, Optional

from davsync.backup.models import (
    AccountRecord,
    AccountSyncSettings,
    AuthType,
    CollectionRecord,
    CollectionType,
    SettingsSnapshot,
)
from davsync.storage.repositories import (
    AccountRepository,
    CollectionRepository,
    SettingsStore,
)

# SQL Schema for accounts, collections and settings
SCHEMA = """
CREATE TABLE IF NOT EXISTS accounts (
    id INTEGER PRIMARY KEY,
    account_name TEXT NOT NULL,
    server_url TEXT NOT NULL,
    username TEXT NOT NULL,
    certificate_fingerprint TEXT,
    display_name TEXT,
    email TEXT,
    auth_type TEXT NOT NULL DEFAULT 'BASIC',
    calendar_enabled INTEGER NOT NULL DEFAULT 1,
    contacts_enabled INTEGER NOT NULL DEFAULT 1,
    tasks_enabled INTEGER NOT NULL DEFAULT 0,
    notes TEXT,
    calendar_sync_interval INTEGER,
    contact_sync_interval INTEGER,
    webcal_sync_interval INTEGER,
    sync_wifi_only INTEGER,
    password TEXT,
    certificate_alias TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS collections (
    id INTEGER PRIMARY KEY,
    account_id INTEGER NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
    type TEXT NOT NULL,
    url TEXT NOT NULL,
    display_name TEXT NOT NULL,
    color INTEGER,
    sync_enabled INTEGER NOT NULL DEFAULT 1,
    visible INTEGER NOT NULL DEFAULT 1,
    wifi_only_sync INTEGER NOT NULL DEFAULT 0,
    force_read_only INTEGER NOT NULL DEFAULT 0,
    description TEXT,
    sync_interval_minutes INTEGER,
    timezone TEXT,
    supports_vtodo INTEGER NOT NULL DEFAULT 0,
    supports_vjournal INTEGER NOT NULL DEFAULT 0,
    skip_events_older_than_days INTEGER,
    sync_token TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(account_id, url)
);

CREATE INDEX IF NOT EXISTS idx_collections_account ON collections(account_id);

CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

ACCOUNT_COLUMNS = (
    "account_name",
    "server_url",
    "username",
    "certificate_fingerprint",
    "display_name",
    "email",
    "auth_type",
    "calendar_enabled",
    "contacts_enabled",
    "tasks_enabled",
    "notes",
    "password",
    "certificate_alias",
)

# AccountSyncSettings attributes and their columns; all NULL when unset
SYNC_SETTINGS_COLUMNS = {
    "calendar_sync_interval": "calendar_sync_interval",
    "contact_sync_interval": "contact_sync_interval",
    "webcal_sync_interval": "webcal_sync_interval",
    "wifi_only": "sync_wifi_only",
}

COLLECTION_COLUMNS = (
    "account_id",
    "type",
    "url",
    "display_name",
    "color",
    "sync_enabled",
    "visible",
    "wifi_only_sync",
    "force_read_only",
    "description",
    "sync_interval_minutes",
    "timezone",
    "supports_vtodo",
    "supports_vjournal",
    "skip_events_older_than_days",
    "sync_token",
)

BOOLEAN_COLUMNS = frozenset(
    {
        "calendar_enabled",
        "contacts_enabled",
        "tasks_enabled",
        "sync_enabled",
        "visible",
        "wifi_only_sync",
        "force_read_only",
        "supports_vtodo",
        "supports_vjournal",
    }
)

# Settings keys as stored in the settings table
SETTINGS_KEYS = {
    "auto_sync": "auto_sync",
    "wifi_only": "sync_wifi_only",
    "dark_mode": "dark_mode",
    "debug_logging": "debug_logging",
}


def _upsert_sql(table: str, columns: tuple[str, ...]) -> str:
    names = ", ".join(("id",) + columns)
    placeholders = ", ".join("?" for _ in range(len(columns) + 1))
    updates = ", ".join(f"{c} = excluded.{c}" for c in columns)
    return (
        f"INSERT INTO {table} ({names}) VALUES ({placeholders}) "
        f"ON CONFLICT(id) DO UPDATE SET {updates}, updated_at = CURRENT_TIMESTAMP"
    )


def _to_db(column: str, value: Any) -> Any:
    if column in BOOLEAN_COLUMNS:
        return int(bool(value))
    if isinstance(value, (AuthType, CollectionType)):
        return value.value
    return value


class DavDatabase:
    """
    SQLite database manager for the local configuration store.

    Usage:
        db = DavDatabase('/path/to/davsync.db')
        db.initialize()

        # Or use in-memory for testing:
        db = DavDatabase(':memory:')
        db.initialize()
    """

    def __init__(self, db_path: str):
        """
        Initialize the database manager.

        Args:
            db_path: Path to SQLite database file, or ':memory:' for in-memory database
        """
        self.db_path = db_path
        self._shared_connection: Optional[sqlite3.Connection] = None

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get a database connection.

        For in-memory databases, returns a shared connection to ensure
        schema persists across operations. For file databases, creates
        a new connection each time.
        """
        if self.db_path == ":memory:":
            if self._shared_connection is None:
                self._shared_connection = sqlite3.connect(":memory:")
                self._shared_connection.row_factory = sqlite3.Row
                self._shared_connection.execute("PRAGMA foreign_keys = ON")
            return self._shared_connection

        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database connections.

        Commits on success, rolls back on error.

        Usage:
            with db.connection() as conn:
                conn.execute("SELECT * FROM accounts")
        """
        conn = self._get_connection()
        is_shared = self.db_path == ":memory:"
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            if not is_shared:
                conn.close()

    def initialize(self) -> None:
        """Create the tables and indexes if they don't exist."""
        with self.connection() as conn:
            conn.executescript(SCHEMA)

    # =========================================================================
    # Account Operations
    # =========================================================================

    def list_accounts(self) -> list[AccountRecord]:
        with self.connection() as conn:
            rows = conn.execute("SELECT * FROM accounts ORDER BY id").fetchall()
        return [self._account_from_row(row) for row in rows]

    def get_account(self, account_id: int) -> Optional[AccountRecord]:
        with self.connection() as conn:
            row = conn.execute(
                "SELECT * FROM accounts WHERE id = ?", (account_id,)
            ).fetchone()
        return self._account_from_row(row) if row else None

    def upsert_account(self, record: AccountRecord) -> AccountRecord:
        """
        Insert or update an account.

        Uses ON CONFLICT DO UPDATE rather than REPLACE so that existing
        collections are not cascade-deleted.
        """
        params = [record.id] + [
            _to_db(c, getattr(record, c)) for c in ACCOUNT_COLUMNS
        ]
        sync = record.sync_settings
        for attr in SYNC_SETTINGS_COLUMNS:
            value = getattr(sync, attr) if sync is not None else None
            params.append(int(value) if isinstance(value, bool) else value)

        columns = ACCOUNT_COLUMNS + tuple(SYNC_SETTINGS_COLUMNS.values())
        with self.connection() as conn:
            cursor = conn.execute(_upsert_sql("accounts", columns), params)
            account_id = record.id if record.id is not None else cursor.lastrowid
        return self.get_account(account_id)  # type: ignore[return-value]

    def delete_account(self, account_id: int) -> None:
        """Delete an account; its collections are removed by cascade."""
        with self.connection() as conn:
            conn.execute("DELETE FROM accounts WHERE id = ?", (account_id,))

    @staticmethod
    def _account_from_row(row: sqlite3.Row) -> AccountRecord:
        values = {c: row[c] for c in ACCOUNT_COLUMNS}
        for column in BOOLEAN_COLUMNS & values.keys():
            values[column] = bool(values[column])
        values["auth_type"] = AuthType(values["auth_type"])
        if row["calendar_sync_interval"] is not None:
            sync = {attr: row[c] for attr, c in SYNC_SETTINGS_COLUMNS.items()}
            sync["wifi_only"] = bool(sync["wifi_only"])
            values["sync_settings"] = AccountSyncSettings(**sync)
        return AccountRecord(id=row["id"], **values)

    # =========================================================================
    # Collection Operations
    # =========================================================================

    def list_collections(self, account_id: int) -> list[CollectionRecord]:
        with self.connection() as conn:
            rows = conn.execute(
                "SELECT * FROM collections WHERE account_id = ? ORDER BY id",
                (account_id,),
            ).fetchall()
        return [self._collection_from_row(row) for row in rows]

    def get_collection(self, collection_id: int) -> Optional[CollectionRecord]:
        with self.connection() as conn:
            row = conn.execute(
                "SELECT * FROM collections WHERE id = ?", (collection_id,)
            ).fetchone()
        return self._collection_from_row(row) if row else None

    def upsert_collection(self, record: CollectionRecord) -> CollectionRecord:
        params = [record.id] + [
            _to_db(c, getattr(record, c)) for c in COLLECTION_COLUMNS
        ]
        with self.connection() as conn:
            cursor = conn.execute(
                _upsert_sql("collections", COLLECTION_COLUMNS), params
            )
            collection_id = record.id if record.id is not None else cursor.lastrowid
        return self.get_collection(collection_id)  # type: ignore[return-value]

    def delete_collection(self, collection_id: int) -> None:
        with self.connection() as conn:
            conn.execute("DELETE FROM collections WHERE id = ?", (collection_id,))

    @staticmethod
    def _collection_from_row(row: sqlite3.Row) -> CollectionRecord:
        values = {c: row[c] for c in COLLECTION_COLUMNS}
        for column in BOOLEAN_COLUMNS & values.keys():
            values[column] = bool(values[column])
        values["type"] = CollectionType(values["type"])
        return CollectionRecord(id=row["id"], **values)

    # =========================================================================
    # Settings Operations
    # =========================================================================

    def get_settings(self) -> dict[str, str]:
        """Return all stored settings as raw key/value strings."""
        with self.connection() as conn:
            rows = conn.execute("SELECT key, value FROM settings").fetchall()
        return {row["key"]: row["value"] for row in rows}

    def set_settings(self, values: dict[str, str]) -> None:
        with self.connection() as conn:
            conn.executemany(
                """
                INSERT INTO settings (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                list(values.items()),
            )


class SqliteAccountRepository(AccountRepository):
    """AccountRepository backed by a DavDatabase."""

    def __init__(self, db: DavDatabase):
        self.db = db

    def get_all(self) -> list[AccountRecord]:
        return self.db.list_accounts()

    def get_by_id(self, account_id: int) -> Optional[AccountRecord]:
        return self.db.get_account(account_id)

    def upsert(self, record: AccountRecord) -> AccountRecord:
        return self.db.upsert_account(record)

    def delete(self, account_id: int) -> None:
        self.db.delete_account(account_id)


class SqliteCollectionRepository(CollectionRepository):
    """CollectionRepository backed by a DavDatabase."""

    def __init__(self, db: DavDatabase):
        self.db = db

    def get_for_account(self, account_id: int) -> list[CollectionRecord]:
        return self.db.list_collections(account_id)

    def upsert(self, record: CollectionRecord) -> CollectionRecord:
        return self.db.upsert_collection(record)

    def delete(self, collection_id: int) -> None:
        self.db.delete_collection(collection_id)


class SqliteSettingsStore(SettingsStore):
    """SettingsStore keeping each toggle as a row of the settings table."""

    def __init__(self, db: DavDatabase):
        self.db = db

    def read(self) -> Optional[SettingsSnapshot]:
        stored = self.db.get_settings()
        if not any(key in stored for key in SETTINGS_KEYS.values()):
            return None

        defaults = SettingsSnapshot()
        values = {}
        for attr, key in SETTINGS_KEYS.items():
            if key in stored:
                values[attr] = stored[key] == "1"
            else:
                values[attr] = getattr(defaults, attr)
        return SettingsSnapshot(**values)

    def write(self, value: SettingsSnapshot) -> None:
        self.db.set_settings(
            {
                key: "1" if getattr(value, attr) else "0"
                for attr, key in SETTINGS_KEYS.items()
            }
        )
