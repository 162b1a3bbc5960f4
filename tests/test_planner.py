"""
Unit tests for restore planning.

Tests account matching by (host, username), skip and overwrite semantics,
collection matching by url and duplicate identities within one backup.
"""

from unittest.mock import MagicMock

import pytest

from davsync.backup.models import (
    SCHEMA_VERSION,
    AccountRecord,
    AccountSnapshot,
    BackupDocument,
    CollectionRecord,
    CollectionSnapshot,
    CollectionType,
    SettingsSnapshot,
)
from davsync.backup.planner import (
    AccountActionKind,
    CollectionActionKind,
    RestorePlanner,
    SkipReason,
)


def calendar(url: str, name: str = "Cal") -> CollectionSnapshot:
    return CollectionSnapshot(type=CollectionType.CALENDAR, url=url, display_name=name)


def snapshot(
    server_url: str = "https://dav.example.com",
    username: str = "alice",
    collections: tuple = (),
    name: str = "Work",
) -> AccountSnapshot:
    return AccountSnapshot(
        account_name=name,
        server_url=server_url,
        username=username,
        collections=collections,
    )


def document(*accounts, settings=None) -> BackupDocument:
    return BackupDocument(
        schema_version=SCHEMA_VERSION,
        created_at=0,
        accounts=tuple(accounts),
        settings=settings,
    )


@pytest.fixture
def planner(collections):
    return RestorePlanner(collections)


@pytest.fixture
def local_alice(accounts):
    return accounts.upsert(
        AccountRecord(
            account_name="Old name",
            server_url="https://DAV.example.com:8443/remote.php/dav",
            username="alice",
        )
    )


class TestAccountMatching:
    """Tests for matching backup accounts to local accounts."""

    def test_unmatched_account_is_created(self, planner):
        """Test that an account without local match is planned for creation."""
        doc = document(snapshot(collections=(calendar("c1"), calendar("c2"))))
        plan = planner.plan(doc, [], overwrite_existing=False)

        action = plan.account_actions[0]
        assert action.kind == AccountActionKind.CREATE_ACCOUNT
        assert action.existing is None
        assert [c.kind for c in action.collection_actions] == [
            CollectionActionKind.CREATE_COLLECTION,
            CollectionActionKind.CREATE_COLLECTION,
        ]

    def test_host_matches_case_insensitively(self, planner, local_alice):
        """Test that host case, scheme, port and path do not affect matching."""
        plan = planner.plan(document(snapshot()), [local_alice], False)

        action = plan.account_actions[0]
        assert action.kind == AccountActionKind.SKIP_ACCOUNT
        assert action.existing.id == local_alice.id

    def test_username_matches_case_sensitively(self, planner, local_alice):
        """Test that a differently cased username is a different account."""
        plan = planner.plan(document(snapshot(username="Alice")), [local_alice], False)
        assert plan.account_actions[0].kind == AccountActionKind.CREATE_ACCOUNT

    def test_different_host_is_new_account(self, planner, local_alice):
        """Test that the same username on another host is not matched."""
        plan = planner.plan(
            document(snapshot(server_url="https://dav.example.org")),
            [local_alice],
            False,
        )
        assert plan.account_actions[0].kind == AccountActionKind.CREATE_ACCOUNT

    def test_one_action_per_account_in_order(self, planner, local_alice):
        """Test that actions follow document order."""
        doc = document(
            snapshot(username="bob", name="Bob"),
            snapshot(name="Alice"),
        )
        plan = planner.plan(doc, [local_alice], False)

        assert [a.account_name for a in plan.account_actions] == ["Bob", "Alice"]
        assert [a.kind for a in plan.account_actions] == [
            AccountActionKind.CREATE_ACCOUNT,
            AccountActionKind.SKIP_ACCOUNT,
        ]


class TestSkipAndOverwrite:
    """Tests for skip and overwrite semantics."""

    def test_skip_ignores_collections(self, local_alice):
        """Test that a skipped account never reads or plans its collections."""
        collection_repo = MagicMock()
        planner = RestorePlanner(collection_repo)
        doc = document(snapshot(collections=(calendar("c1"),)))

        plan = planner.plan(doc, [local_alice], overwrite_existing=False)

        action = plan.account_actions[0]
        assert action.skip_reason == SkipReason.EXISTS
        assert action.collection_actions == ()
        collection_repo.get_for_account.assert_not_called()

    def test_overwrite_updates_account(self, planner, local_alice):
        """Test that overwrite plans an update keeping the local record."""
        plan = planner.plan(document(snapshot()), [local_alice], True)

        action = plan.account_actions[0]
        assert action.kind == AccountActionKind.UPDATE_ACCOUNT
        assert action.existing == local_alice

    def test_overwrite_matches_collections_by_url(
        self, planner, collections, local_alice
    ):
        """Test that collections are updated by url and created otherwise."""
        existing = collections.upsert(
            CollectionRecord(
                account_id=local_alice.id,
                type=CollectionType.CALENDAR,
                url="c1",
                display_name="Old",
            )
        )
        doc = document(snapshot(collections=(calendar("c1"), calendar("c2"))))

        plan = planner.plan(doc, [local_alice], True)

        update, create = plan.account_actions[0].collection_actions
        assert update.kind == CollectionActionKind.UPDATE_COLLECTION
        assert update.existing == existing
        assert create.kind == CollectionActionKind.CREATE_COLLECTION
        assert create.existing is None

    def test_collections_of_other_accounts_not_matched(
        self, planner, accounts, collections, local_alice
    ):
        """Test that a url owned by another account does not count."""
        other = accounts.upsert(
            AccountRecord(account_name="B", server_url="https://x", username="b")
        )
        collections.upsert(
            CollectionRecord(
                account_id=other.id,
                type=CollectionType.CALENDAR,
                url="c1",
                display_name="B",
            )
        )
        doc = document(snapshot(collections=(calendar("c1"),)))

        plan = planner.plan(doc, [local_alice, other], True)

        assert plan.account_actions[0].collection_actions[0].kind == (
            CollectionActionKind.CREATE_COLLECTION
        )


class TestDuplicates:
    """Tests for duplicate account identities inside one backup."""

    def test_second_occurrence_skipped(self, planner):
        """Test that a repeated identity is skipped as duplicate."""
        doc = document(
            snapshot(name="First"),
            snapshot(server_url="https://DAV.EXAMPLE.COM/other", name="Second"),
        )
        plan = planner.plan(doc, [], False)

        first, second = plan.account_actions
        assert first.kind == AccountActionKind.CREATE_ACCOUNT
        assert second.kind == AccountActionKind.SKIP_ACCOUNT
        assert second.skip_reason == SkipReason.DUPLICATE


class TestSettingsAndPlan:
    """Tests for settings actions and plan helpers."""

    def test_settings_planned_when_present(self, planner):
        """Test that present settings produce a settings action."""
        settings = SettingsSnapshot(dark_mode=True)
        plan = planner.plan(document(settings=settings), [], False)
        assert plan.settings_action.snapshot == settings

    def test_no_settings_action_when_absent(self, planner):
        """Test that absent settings produce no settings action."""
        plan = planner.plan(document(), [], False)
        assert plan.settings_action is None

    def test_planning_does_not_write(self, local_alice):
        """Test that planning never calls a write method."""
        collection_repo = MagicMock()
        collection_repo.get_for_account.return_value = []
        planner = RestorePlanner(collection_repo)

        doc = document(snapshot(collections=(calendar("c1"),)))
        planner.plan(doc, [local_alice], True)

        collection_repo.upsert.assert_not_called()
        collection_repo.delete.assert_not_called()

    def test_count_and_describe(self, planner, local_alice):
        """Test the plan summary helpers."""
        doc = document(
            snapshot(collections=(calendar("c1"),)),
            snapshot(username="bob", collections=(calendar("c2"), calendar("c3"))),
        )
        plan = planner.plan(doc, [local_alice], False)

        assert plan.count(AccountActionKind.CREATE_ACCOUNT) == 1
        assert plan.count(AccountActionKind.SKIP_ACCOUNT) == 1
        assert plan.describe() == (
            "create 1, update 0, skip 1 account(s); "
            "2 collection action(s); settings: no"
        )
