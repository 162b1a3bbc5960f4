"""
JSON serialization of backup documents.

Document format (schema version 2)::

    {
        "schemaVersion": 2,
        "createdAt": 1760000000000,
        "appVersion": "0.4.0",
        "accounts": [
            {
                "accountName": "Work",
                "serverUrl": "https://dav.example.com",
                "username": "alice",
                "certificateFingerprint": null,
                "syncSettings": {
                    "calendarSyncInterval": 60,
                    "contactSyncInterval": 60,
                    "webcalSyncInterval": 60,
                    "wifiOnly": false
                },
                "collections": [
                    {
                        "type": "calendar",
                        "url": "https://dav.example.com/cal/work/",
                        "displayName": "Work",
                        "syncEnabled": true,
                        "visible": true,
                        "wifiOnlySync": false,
                        "forceReadOnly": false,
                        ...
                    }
                ]
            }
        ],
        "settings": {
            "autoSync": true,
            "wifiOnly": false,
            "darkMode": false,
            "debugLogging": false
        }
    }

Schema version 1 stored each account's collections in separate
``calendars``, ``addressBooks`` and ``taskLists`` arrays without a ``type``
field; such documents are still decoded and upgraded in memory.

The per-account ``syncSettings`` object is optional. Accounts without it
are restored without touching their local sync schedule.

Decoding ignores unknown fields (documents from newer minor revisions stay
readable) but fails as a whole on a missing mandatory field or a schema
version newer than SCHEMA_VERSION. No partial document is ever returned.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from davsync.backup.errors import (
    InvalidFieldValue,
    MalformedText,
    MissingRequiredField,
    UnsupportedSchemaVersion,
)
from davsync.backup.models import (
    MIN_SCHEMA_VERSION,
    SCHEMA_VERSION,
    AccountSnapshot,
    AccountSyncSettings,
    AuthType,
    BackupDocument,
    CollectionSnapshot,
    CollectionType,
    SettingsSnapshot,
)
from davsync.utils import normalize_host

# Version 1 kept one array per collection type
LEGACY_COLLECTION_ARRAYS = {
    "calendars": CollectionType.CALENDAR,
    "addressBooks": CollectionType.ADDRESS_BOOK,
    "taskLists": CollectionType.TASK_LIST,
}

# Interval attributes of AccountSyncSettings and their document keys
SYNC_INTERVAL_KEYS = {
    "calendar_sync_interval": "calendarSyncInterval",
    "contact_sync_interval": "contactSyncInterval",
    "webcal_sync_interval": "webcalSyncInterval",
}

_MISSING = object()


# =============================================================================
# Encoding
# =============================================================================


def encode(document: BackupDocument) -> str:
    """
    Serialize a backup document to JSON text.

    The document is always written with its own schema_version; the
    builder stamps new documents with SCHEMA_VERSION.

    Args:
        document: Document to serialize

    Returns:
        Pretty-printed JSON text
    """
    data: dict[str, Any] = {
        "schemaVersion": document.schema_version,
        "createdAt": document.created_at,
        "appVersion": document.app_version,
        "accounts": [_encode_account(a) for a in document.accounts],
    }
    if document.settings is not None:
        data["settings"] = _encode_settings(document.settings)

    return json.dumps(data, indent=2, ensure_ascii=False)


def _encode_account(account: AccountSnapshot) -> dict[str, Any]:
    data: dict[str, Any] = {
        "accountName": account.account_name,
        "serverUrl": account.server_url,
        "username": account.username,
        "certificateFingerprint": account.certificate_fingerprint,
        "displayName": account.display_name,
        "email": account.email,
        "authType": account.auth_type.value,
        "calendarEnabled": account.calendar_enabled,
        "contactsEnabled": account.contacts_enabled,
        "tasksEnabled": account.tasks_enabled,
        "notes": account.notes,
        "collections": [_encode_collection(c) for c in account.collections],
    }
    if account.sync_settings is not None:
        data["syncSettings"] = _encode_sync_settings(account.sync_settings)
    return data


def _encode_sync_settings(settings: AccountSyncSettings) -> dict[str, Any]:
    return {
        "calendarSyncInterval": settings.calendar_sync_interval,
        "contactSyncInterval": settings.contact_sync_interval,
        "webcalSyncInterval": settings.webcal_sync_interval,
        "wifiOnly": settings.wifi_only,
    }


def _encode_collection(collection: CollectionSnapshot) -> dict[str, Any]:
    data: dict[str, Any] = {
        "type": collection.type.value,
        "url": collection.url,
        "displayName": collection.display_name,
        "color": collection.color,
        "syncEnabled": collection.sync_enabled,
        "visible": collection.visible,
        "wifiOnlySync": collection.wifi_only_sync,
        "forceReadOnly": collection.force_read_only,
        "description": collection.description,
        "syncIntervalMinutes": collection.sync_interval_minutes,
    }
    if collection.is_calendar:
        data.update(
            {
                "timezone": collection.timezone,
                "supportsVTODO": collection.supports_vtodo,
                "supportsVJOURNAL": collection.supports_vjournal,
                "skipEventsOlderThanDays": collection.skip_events_older_than_days,
            }
        )
    return data


def _encode_settings(settings: SettingsSnapshot) -> dict[str, Any]:
    return {
        "autoSync": settings.auto_sync,
        "wifiOnly": settings.wifi_only,
        "darkMode": settings.dark_mode,
        "debugLogging": settings.debug_logging,
    }


# =============================================================================
# Decoding
# =============================================================================


def decode(text: str) -> BackupDocument:
    """
    Parse JSON text into a backup document.

    Args:
        text: Backup file contents

    Returns:
        The decoded document, upgraded to the current schema layout

    Raises:
        MalformedText: If the text is not a JSON object
        UnsupportedSchemaVersion: If the document is newer than supported
        MissingRequiredField: If a mandatory field is absent
        InvalidFieldValue: If a field has an unusable type or value
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError, RecursionError) as e:
        raise MalformedText(f"Backup is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedText(
            f"Backup must contain a JSON object, got {type(data).__name__}"
        )

    version = _require_int(data, "schemaVersion", "schemaVersion")
    if version > SCHEMA_VERSION:
        raise UnsupportedSchemaVersion(version, SCHEMA_VERSION)
    if version < MIN_SCHEMA_VERSION:
        raise InvalidFieldValue(
            "schemaVersion", f"must be >= {MIN_SCHEMA_VERSION}, got {version}"
        )

    created_at = _require_int(data, "createdAt", "createdAt")
    if created_at < 0:
        raise InvalidFieldValue("createdAt", f"must not be negative, got {created_at}")

    accounts_data = _require_list(data, "accounts", "accounts")
    accounts = tuple(
        _decode_account(item, f"accounts[{i}]", version)
        for i, item in enumerate(accounts_data)
    )

    settings: Optional[SettingsSnapshot] = None
    settings_data = data.get("settings")
    if settings_data is not None:
        settings = _decode_settings(settings_data, "settings")

    return BackupDocument(
        schema_version=version,
        created_at=created_at,
        accounts=accounts,
        settings=settings,
        app_version=_optional(data, "appVersion", str, "appVersion"),
    )


def _decode_account(data: Any, path: str, version: int) -> AccountSnapshot:
    if not isinstance(data, dict):
        raise InvalidFieldValue(path, f"expected an object, got {type(data).__name__}")

    account_name = _require_str(data, "accountName", f"{path}.accountName")
    server_url = _require_str(data, "serverUrl", f"{path}.serverUrl")
    _check_server_url(server_url, f"{path}.serverUrl")
    username = _require_str(data, "username", f"{path}.username")

    if version == 1:
        collections = _decode_legacy_collections(data, path)
    else:
        items = _require_list(data, "collections", f"{path}.collections")
        collections = [
            _decode_collection(item, f"{path}.collections[{i}]", None)
            for i, item in enumerate(items)
        ]

    seen_urls: set[str] = set()
    for i, collection in enumerate(collections):
        if collection.url in seen_urls:
            raise InvalidFieldValue(
                f"{path}.collections[{i}].url",
                f"duplicate collection url {collection.url!r}",
            )
        seen_urls.add(collection.url)

    sync_settings = None
    if data.get("syncSettings") is not None:
        sync_settings = _decode_sync_settings(
            data["syncSettings"], f"{path}.syncSettings"
        )

    auth_type_value = _optional(data, "authType", str, f"{path}.authType")
    try:
        auth_type = AuthType(auth_type_value) if auth_type_value else AuthType.BASIC
    except ValueError:
        raise InvalidFieldValue(
            f"{path}.authType", f"unknown auth type {auth_type_value!r}"
        ) from None

    return AccountSnapshot(
        account_name=account_name,
        server_url=server_url,
        username=username,
        certificate_fingerprint=_optional(
            data, "certificateFingerprint", str, f"{path}.certificateFingerprint"
        ),
        collections=tuple(collections),
        display_name=_optional(data, "displayName", str, f"{path}.displayName"),
        email=_optional(data, "email", str, f"{path}.email"),
        auth_type=auth_type,
        calendar_enabled=_optional_bool(
            data, "calendarEnabled", True, f"{path}.calendarEnabled"
        ),
        contacts_enabled=_optional_bool(
            data, "contactsEnabled", True, f"{path}.contactsEnabled"
        ),
        tasks_enabled=_optional_bool(
            data, "tasksEnabled", False, f"{path}.tasksEnabled"
        ),
        notes=_optional(data, "notes", str, f"{path}.notes"),
        sync_settings=sync_settings,
    )


def _check_server_url(server_url: str, path: str) -> None:
    """Server URLs must be absolute http(s) URLs with a host."""
    if not server_url.strip():
        raise InvalidFieldValue(path, "must not be empty")
    if not server_url.strip().lower().startswith(("http://", "https://")):
        raise InvalidFieldValue(
            path, f"expected an http:// or https:// URL, got {server_url!r}"
        )
    if not normalize_host(server_url):
        raise InvalidFieldValue(path, f"no host in {server_url!r}")


def _decode_legacy_collections(
    data: dict[str, Any], path: str
) -> list[CollectionSnapshot]:
    """Flatten the per-type arrays of a version 1 account."""
    collections = []
    for key, collection_type in LEGACY_COLLECTION_ARRAYS.items():
        if data.get(key) is None:
            continue
        items = _require_list(data, key, f"{path}.{key}")
        collections.extend(
            _decode_collection(item, f"{path}.{key}[{i}]", collection_type)
            for i, item in enumerate(items)
        )
    return collections


def _decode_collection(
    data: Any, path: str, implied_type: Optional[CollectionType]
) -> CollectionSnapshot:
    if not isinstance(data, dict):
        raise InvalidFieldValue(path, f"expected an object, got {type(data).__name__}")

    if implied_type is None:
        type_value = _require_str(data, "type", f"{path}.type")
        try:
            collection_type = CollectionType(type_value)
        except ValueError:
            raise InvalidFieldValue(
                f"{path}.type", f"unknown collection type {type_value!r}"
            ) from None
    else:
        collection_type = implied_type

    url = _require_str(data, "url", f"{path}.url")
    if not url.strip():
        raise InvalidFieldValue(f"{path}.url", "must not be empty")

    extras: dict[str, Any] = {}
    if collection_type == CollectionType.CALENDAR:
        extras = {
            "timezone": _optional(data, "timezone", str, f"{path}.timezone"),
            "supports_vtodo": _optional_bool(
                data, "supportsVTODO", False, f"{path}.supportsVTODO"
            ),
            "supports_vjournal": _optional_bool(
                data, "supportsVJOURNAL", False, f"{path}.supportsVJOURNAL"
            ),
            "skip_events_older_than_days": _optional_int(
                data, "skipEventsOlderThanDays", f"{path}.skipEventsOlderThanDays"
            ),
        }

    return CollectionSnapshot(
        type=collection_type,
        url=url,
        display_name=_require_str(data, "displayName", f"{path}.displayName"),
        color=_optional_int(data, "color", f"{path}.color"),
        sync_enabled=_require_bool(data, "syncEnabled", f"{path}.syncEnabled"),
        visible=_require_bool(data, "visible", f"{path}.visible"),
        wifi_only_sync=_require_bool(data, "wifiOnlySync", f"{path}.wifiOnlySync"),
        force_read_only=_require_bool(
            data, "forceReadOnly", f"{path}.forceReadOnly"
        ),
        description=_optional(data, "description", str, f"{path}.description"),
        sync_interval_minutes=_optional_int(
            data, "syncIntervalMinutes", f"{path}.syncIntervalMinutes"
        ),
        **extras,
    )


def _decode_settings(data: Any, path: str) -> SettingsSnapshot:
    if not isinstance(data, dict):
        raise InvalidFieldValue(path, f"expected an object, got {type(data).__name__}")

    return SettingsSnapshot(
        auto_sync=_require_bool(data, "autoSync", f"{path}.autoSync"),
        wifi_only=_require_bool(data, "wifiOnly", f"{path}.wifiOnly"),
        dark_mode=_require_bool(data, "darkMode", f"{path}.darkMode"),
        debug_logging=_require_bool(data, "debugLogging", f"{path}.debugLogging"),
    )



def _decode_sync_settings(data: Any, path: str) -> AccountSyncSettings:
    """Absent keys fall back to the defaults; intervals must be positive."""
    if not isinstance(data, dict):
        raise InvalidFieldValue(path, f"expected an object, got {type(data).__name__}")

    defaults = AccountSyncSettings()
    intervals = {}
    for attr, key in SYNC_INTERVAL_KEYS.items():
        value = _optional_int(data, key, f"{path}.{key}")
        if value is None:
            value = getattr(defaults, attr)
        elif value < 1:
            raise InvalidFieldValue(f"{path}.{key}", f"must be positive, got {value}")
        intervals[attr] = value

    return AccountSyncSettings(
        wifi_only=_optional_bool(data, "wifiOnly", False, f"{path}.wifiOnly"),
        **intervals,
    )


# =============================================================================
# Field helpers
# =============================================================================


def _require(data: dict[str, Any], key: str, path: str) -> Any:
    value = data.get(key, _MISSING)
    if value is _MISSING or value is None:
        raise MissingRequiredField(path)
    return value


def _require_str(data: dict[str, Any], key: str, path: str) -> str:
    value = _require(data, key, path)
    if not isinstance(value, str):
        raise InvalidFieldValue(path, f"expected a string, got {type(value).__name__}")
    return value


def _require_bool(data: dict[str, Any], key: str, path: str) -> bool:
    value = _require(data, key, path)
    if not isinstance(value, bool):
        raise InvalidFieldValue(path, f"expected a boolean, got {type(value).__name__}")
    return value


def _require_int(data: dict[str, Any], key: str, path: str) -> int:
    value = _require(data, key, path)
    # bool is a subclass of int
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidFieldValue(
            path, f"expected an integer, got {type(value).__name__}"
        )
    return value


def _require_list(data: dict[str, Any], key: str, path: str) -> list[Any]:
    value = _require(data, key, path)
    if not isinstance(value, list):
        raise InvalidFieldValue(path, f"expected an array, got {type(value).__name__}")
    return value


def _optional(data: dict[str, Any], key: str, expected: type, path: str) -> Any:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, expected):
        raise InvalidFieldValue(
            path, f"expected {expected.__name__}, got {type(value).__name__}"
        )
    return value


def _optional_bool(data: dict[str, Any], key: str, default: bool, path: str) -> bool:
    value = _optional(data, key, bool, path)
    return default if value is None else value


def _optional_int(data: dict[str, Any], key: str, path: str) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidFieldValue(
            path, f"expected an integer, got {type(value).__name__}"
        )
    return value
