"""
Unit tests for backup document serialization.

Tests encoding and decoding of BackupDocument JSON, including schema
version checks, mandatory fields, forward tolerance and the upgrade of
version 1 documents.
"""

import json

import pytest

from davsync.backup import serializer
from davsync.backup.errors import (
    InvalidFieldValue,
    MalformedText,
    MissingRequiredField,
    UnsupportedSchemaVersion,
)
from davsync.backup.models import (
    SCHEMA_VERSION,
    AccountSnapshot,
    AccountSyncSettings,
    AuthType,
    BackupDocument,
    CollectionSnapshot,
    CollectionType,
    SettingsSnapshot,
)


def make_document(**overrides) -> BackupDocument:
    """Document with one account, one calendar and one task list."""
    calendar = CollectionSnapshot(
        type=CollectionType.CALENDAR,
        url="https://dav.example.com/cal/work/",
        display_name="Work",
        color=-65536,
        timezone="Europe/Berlin",
        supports_vtodo=True,
        skip_events_older_than_days=30,
    )
    tasks = CollectionSnapshot(
        type=CollectionType.TASK_LIST,
        url="https://dav.example.com/tasks/",
        display_name="Tasks",
        visible=False,
        sync_interval_minutes=60,
    )
    account = AccountSnapshot(
        account_name="Work",
        server_url="https://dav.example.com",
        username="alice",
        certificate_fingerprint="AB:CD",
        collections=(calendar, tasks),
        email="alice@example.com",
        auth_type=AuthType.APP_PASSWORD,
        tasks_enabled=True,
        sync_settings=AccountSyncSettings(
            calendar_sync_interval=30, contact_sync_interval=120, wifi_only=True
        ),
    )
    values = {
        "schema_version": SCHEMA_VERSION,
        "created_at": 1767225600000,
        "accounts": (account,),
        "settings": SettingsSnapshot(auto_sync=False, dark_mode=True),
        "app_version": "0.4.0",
    }
    values.update(overrides)
    return BackupDocument(**values)


def all_keys(value) -> list:
    """Every object key in a decoded JSON value, at any depth."""
    if isinstance(value, dict):
        keys = list(value)
        for item in value.values():
            keys.extend(all_keys(item))
        return keys
    if isinstance(value, list):
        return [key for item in value for key in all_keys(item)]
    return []


def minimal_collection(**overrides) -> dict:
    data = {
        "type": "addressBook",
        "url": "https://dav.example.com/ab/",
        "displayName": "Contacts",
        "syncEnabled": True,
        "visible": True,
        "wifiOnlySync": False,
        "forceReadOnly": False,
    }
    data.update(overrides)
    return data


def minimal_text(**account_overrides) -> dict:
    account = {
        "accountName": "Home",
        "serverUrl": "https://dav.example.org",
        "username": "bob",
        "collections": [minimal_collection()],
    }
    account.update(account_overrides)
    return {"schemaVersion": 2, "createdAt": 0, "accounts": [account]}


class TestEncode:
    """Tests for encoding documents."""

    def test_required_top_level_fields(self):
        """Test that schemaVersion, createdAt and accounts are always written."""
        data = json.loads(serializer.encode(make_document(accounts=(), settings=None)))

        assert data["schemaVersion"] == SCHEMA_VERSION
        assert data["createdAt"] == 1767225600000
        assert data["accounts"] == []

    def test_settings_omitted_when_absent(self):
        """Test that no settings key is written without settings."""
        data = json.loads(serializer.encode(make_document(settings=None)))
        assert "settings" not in data

    def test_settings_written(self):
        """Test that settings are written with camelCase keys."""
        data = json.loads(serializer.encode(make_document()))
        assert data["settings"] == {
            "autoSync": False,
            "wifiOnly": False,
            "darkMode": True,
            "debugLogging": False,
        }

    def test_two_space_indentation(self):
        """Test that the output is indented with two spaces."""
        text = serializer.encode(make_document())
        assert '\n  "schemaVersion": 2' in text

    def test_non_ascii_written_unescaped(self):
        """Test that non-ASCII names are written as UTF-8 text."""
        account = AccountSnapshot(
            account_name="Büro",
            server_url="https://dav.example.com",
            username="jürgen",
        )
        text = serializer.encode(make_document(accounts=(account,)))
        assert "Büro" in text
        assert "\\u00fc" not in text

    def test_calendar_extras_only_on_calendars(self):
        """Test that calendar-only fields are not written for task lists."""
        data = json.loads(serializer.encode(make_document()))
        calendar, tasks = data["accounts"][0]["collections"]

        assert calendar["timezone"] == "Europe/Berlin"
        assert calendar["supportsVTODO"] is True
        assert calendar["skipEventsOlderThanDays"] == 30
        assert "timezone" not in tasks
        assert "supportsVTODO" not in tasks
        assert "skipEventsOlderThanDays" not in tasks

    def test_no_password_key(self):
        """Test that encoded documents never contain a password key."""
        data = json.loads(serializer.encode(make_document()))
        assert not any("password" in key.lower() for key in all_keys(data))


class TestRoundTrip:
    """Tests that decode(encode(doc)) reproduces the document."""

    def test_full_document(self):
        """Test round trip of a document with every optional field used."""
        document = make_document()
        assert serializer.decode(serializer.encode(document)) == document

    def test_empty_document(self):
        """Test round trip of a document without accounts or settings."""
        document = make_document(accounts=(), settings=None, app_version=None)
        assert serializer.decode(serializer.encode(document)) == document

    def test_collection_order_preserved(self):
        """Test that collections keep their order."""
        document = make_document()
        decoded = serializer.decode(serializer.encode(document))
        assert [c.url for c in decoded.accounts[0].collections] == [
            "https://dav.example.com/cal/work/",
            "https://dav.example.com/tasks/",
        ]

    @pytest.mark.parametrize(
        "extra",
        [
            {"timezone": "UTC"},
            {"supports_vtodo": True},
            {"supports_vjournal": True},
            {"skip_events_older_than_days": 7},
        ],
    )
    def test_calendar_extras_rejected_elsewhere(self, extra):
        """Test that a task list cannot carry fields it would lose on encode."""
        with pytest.raises(ValueError, match="only apply to calendars"):
            CollectionSnapshot(
                type=CollectionType.TASK_LIST,
                url="https://dav.example.com/tasks/",
                display_name="Tasks",
                **extra,
            )


class TestDecodeErrors:
    """Tests for decoding failures."""

    def test_not_json(self):
        """Test that unparseable text raises MalformedText."""
        with pytest.raises(MalformedText):
            serializer.decode("{not json")

    def test_top_level_array(self):
        """Test that a top-level array raises MalformedText."""
        with pytest.raises(MalformedText):
            serializer.decode("[]")

    def test_empty_text(self):
        """Test that empty text raises MalformedText."""
        with pytest.raises(MalformedText):
            serializer.decode("")

    def test_deeply_nested_text(self):
        """Test that nesting beyond the recursion limit raises MalformedText."""
        depth = 200_000
        text = (
            '{"schemaVersion": 2, "createdAt": 1, "accounts": '
            + "[" * depth
            + "]" * depth
            + "}"
        )
        with pytest.raises(MalformedText):
            serializer.decode(text)

    def test_newer_schema_version(self):
        """Test that a newer schema version is rejected with found version."""
        data = minimal_text()
        data["schemaVersion"] = 99

        with pytest.raises(UnsupportedSchemaVersion) as exc_info:
            serializer.decode(json.dumps(data))

        assert exc_info.value.found == 99
        assert exc_info.value.supported == SCHEMA_VERSION
        assert "update" in str(exc_info.value).lower()

    def test_newer_schema_version_checked_before_fields(self):
        """Test that version is checked before the rest of the structure."""
        text = json.dumps({"schemaVersion": 3})
        with pytest.raises(UnsupportedSchemaVersion):
            serializer.decode(text)

    def test_schema_version_zero(self):
        """Test that schemaVersion below 1 is an invalid value."""
        data = minimal_text()
        data["schemaVersion"] = 0
        with pytest.raises(InvalidFieldValue) as exc_info:
            serializer.decode(json.dumps(data))
        assert exc_info.value.name == "schemaVersion"

    def test_schema_version_as_string(self):
        """Test that a string schemaVersion is an invalid value."""
        data = minimal_text()
        data["schemaVersion"] = "2"
        with pytest.raises(InvalidFieldValue):
            serializer.decode(json.dumps(data))

    @pytest.mark.parametrize("field", ["schemaVersion", "createdAt", "accounts"])
    def test_missing_top_level_field(self, field):
        """Test that each required top-level field is reported by name."""
        data = minimal_text()
        del data[field]

        with pytest.raises(MissingRequiredField) as exc_info:
            serializer.decode(json.dumps(data))
        assert exc_info.value.name == field

    @pytest.mark.parametrize("field", ["accountName", "serverUrl", "username"])
    def test_missing_account_field(self, field):
        """Test that missing account fields are reported with their path."""
        data = minimal_text()
        del data["accounts"][0][field]

        with pytest.raises(MissingRequiredField) as exc_info:
            serializer.decode(json.dumps(data))
        assert exc_info.value.name == f"accounts[0].{field}"

    def test_missing_collection_field(self):
        """Test that a missing collection url is reported with its path."""
        collection = minimal_collection()
        del collection["url"]
        data = minimal_text(collections=[minimal_collection(url="u1"), collection])

        with pytest.raises(MissingRequiredField) as exc_info:
            serializer.decode(json.dumps(data))
        assert exc_info.value.name == "accounts[0].collections[1].url"

    def test_null_required_field_is_missing(self):
        """Test that null in a required field counts as missing."""
        data = minimal_text(username=None)
        with pytest.raises(MissingRequiredField):
            serializer.decode(json.dumps(data))

    @pytest.mark.parametrize(
        "server_url",
        [
            "",
            "   ",
            "dav.example.org",
            "ftp://dav.example.org",
            "https://",
            "https:///",
        ],
    )
    def test_unusable_server_url(self, server_url):
        """Test that blank, scheme-less and host-less server URLs are rejected."""
        data = minimal_text(serverUrl=server_url)
        with pytest.raises(InvalidFieldValue) as exc_info:
            serializer.decode(json.dumps(data))
        assert exc_info.value.name == "accounts[0].serverUrl"

    def test_server_url_scheme_case_insensitive(self):
        """Test that an upper-case scheme is accepted."""
        data = minimal_text(serverUrl="HTTPS://DAV.example.org/dav/")
        account = serializer.decode(json.dumps(data)).accounts[0]
        assert account.identity() == ("dav.example.org", "bob")

    def test_unknown_collection_type(self):
        """Test that an unknown collection type is an invalid value."""
        data = minimal_text(collections=[minimal_collection(type="journal")])
        with pytest.raises(InvalidFieldValue) as exc_info:
            serializer.decode(json.dumps(data))
        assert exc_info.value.name == "accounts[0].collections[0].type"

    def test_duplicate_collection_url(self):
        """Test that two collections with the same url are rejected."""
        data = minimal_text(collections=[minimal_collection(), minimal_collection()])
        with pytest.raises(InvalidFieldValue) as exc_info:
            serializer.decode(json.dumps(data))
        assert exc_info.value.name == "accounts[0].collections[1].url"

    def test_boolean_field_with_wrong_type(self):
        """Test that a string where a boolean belongs is rejected."""
        data = minimal_text(collections=[minimal_collection(visible="yes")])
        with pytest.raises(InvalidFieldValue):
            serializer.decode(json.dumps(data))

    def test_incomplete_settings(self):
        """Test that a settings object must contain all four toggles."""
        data = minimal_text()
        data["settings"] = {"autoSync": True}
        with pytest.raises(MissingRequiredField) as exc_info:
            serializer.decode(json.dumps(data))
        assert exc_info.value.name == "settings.wifiOnly"


class TestDecodeTolerance:
    """Tests for forward-tolerant decoding."""

    def test_unknown_fields_ignored(self):
        """Test that unknown fields at every level are ignored."""
        data = minimal_text(futureFlag=True)
        data["exportedBy"] = "someone"
        data["accounts"][0]["collections"][0]["etag"] = "abc"

        document = serializer.decode(json.dumps(data))
        assert document.accounts[0].account_name == "Home"

    def test_password_key_ignored(self):
        """Test that a stray password key is never picked up."""
        data = minimal_text(password="leaked")
        document = serializer.decode(json.dumps(data))

        assert not hasattr(document.accounts[0], "password")
        assert "leaked" not in repr(document)

    def test_optional_fields_default(self):
        """Test defaults for absent optional fields."""
        document = serializer.decode(json.dumps(minimal_text()))
        account = document.accounts[0]

        assert account.certificate_fingerprint is None
        assert account.auth_type == AuthType.BASIC
        assert account.calendar_enabled is True
        assert account.tasks_enabled is False
        assert document.settings is None
        assert document.app_version is None

    def test_null_settings_means_absent(self):
        """Test that settings: null decodes to no settings."""
        data = minimal_text()
        data["settings"] = None
        assert serializer.decode(json.dumps(data)).settings is None

    def test_calendar_extras_ignored_on_address_book(self):
        """Test that calendar-only fields are not read for other types."""
        data = minimal_text(
            collections=[minimal_collection(timezone="UTC", supportsVTODO=True)]
        )
        collection = serializer.decode(json.dumps(data)).accounts[0].collections[0]

        assert collection.timezone is None
        assert collection.supports_vtodo is False

    def test_empty_accounts(self):
        """Test that a document without accounts is valid."""
        document = serializer.decode(
            json.dumps({"schemaVersion": 2, "createdAt": 5, "accounts": []})
        )
        assert document.accounts == ()


class TestLegacyVersion:
    """Tests for decoding schema version 1 documents."""

    def legacy_text(self) -> str:
        calendar = minimal_collection(url="https://dav.example.org/cal/")
        del calendar["type"]
        address_book = minimal_collection(url="https://dav.example.org/ab/")
        del address_book["type"]
        return json.dumps(
            {
                "schemaVersion": 1,
                "createdAt": 1000,
                "accounts": [
                    {
                        "accountName": "Home",
                        "serverUrl": "https://dav.example.org",
                        "username": "bob",
                        "calendars": [calendar],
                        "addressBooks": [address_book],
                    }
                ],
            }
        )

    def test_collections_flattened_with_types(self):
        """Test that per-type arrays become typed collections."""
        document = serializer.decode(self.legacy_text())
        collections = document.accounts[0].collections

        assert [c.type for c in collections] == [
            CollectionType.CALENDAR,
            CollectionType.ADDRESS_BOOK,
        ]
        assert document.schema_version == 1

    def test_reencoded_as_current_layout(self):
        """Test that an upgraded document encodes with a collections array."""
        document = serializer.decode(self.legacy_text())
        upgraded = BackupDocument(
            schema_version=SCHEMA_VERSION,
            created_at=document.created_at,
            accounts=document.accounts,
        )
        data = json.loads(serializer.encode(upgraded))

        assert len(data["accounts"][0]["collections"]) == 2
        assert "calendars" not in data["accounts"][0]

    def test_legacy_account_without_arrays(self):
        """Test that a version 1 account without collection arrays is empty."""
        text = json.dumps(
            {
                "schemaVersion": 1,
                "createdAt": 0,
                "accounts": [
                    {"accountName": "A", "serverUrl": "https://x", "username": "u"}
                ],
            }
        )
        assert serializer.decode(text).accounts[0].collections == ()


class TestAccountSyncSettings:
    """Tests for the optional per-account syncSettings object."""

    def test_written_when_present(self):
        """Test that sync settings are written with camelCase keys."""
        data = json.loads(serializer.encode(make_document()))
        assert data["accounts"][0]["syncSettings"] == {
            "calendarSyncInterval": 30,
            "contactSyncInterval": 120,
            "webcalSyncInterval": 60,
            "wifiOnly": True,
        }

    def test_omitted_when_absent(self):
        """Test that accounts without sync settings have no syncSettings key."""
        account = AccountSnapshot(
            account_name="Home", server_url="https://dav.example.org", username="bob"
        )
        data = json.loads(serializer.encode(make_document(accounts=(account,))))

        assert "syncSettings" not in data["accounts"][0]
        assert serializer.decode(json.dumps(data)).accounts[0].sync_settings is None

    def test_missing_keys_default(self):
        """Test that absent keys take the default schedule."""
        data = minimal_text(syncSettings={"webcalSyncInterval": 720})
        settings = serializer.decode(json.dumps(data)).accounts[0].sync_settings

        assert settings == AccountSyncSettings(webcal_sync_interval=720)

    @pytest.mark.parametrize(
        "sync_settings, field",
        [
            ({"calendarSyncInterval": 0}, "calendarSyncInterval"),
            ({"contactSyncInterval": -15}, "contactSyncInterval"),
            ({"webcalSyncInterval": "60"}, "webcalSyncInterval"),
            ({"wifiOnly": "yes"}, "wifiOnly"),
        ],
    )
    def test_invalid_values(self, sync_settings, field):
        """Test that bad intervals and flags are reported with their path."""
        data = minimal_text(syncSettings=sync_settings)
        with pytest.raises(InvalidFieldValue) as exc_info:
            serializer.decode(json.dumps(data))
        assert exc_info.value.name == f"accounts[0].syncSettings.{field}"

    def test_not_an_object(self):
        """Test that syncSettings must be an object."""
        data = minimal_text(syncSettings=[60, 60, 60])
        with pytest.raises(InvalidFieldValue) as exc_info:
            serializer.decode(json.dumps(data))
        assert exc_info.value.name == "accounts[0].syncSettings"
