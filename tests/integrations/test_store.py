"""
Integration tests for the SQLAlchemy persistence store

Runs against a temporary SQLite database.
"""

from app.models.knowledge import KnowledgeBase

from conftest import business_doc, chat, utc


class TestMessageStore:
    """Monthly partition routing and cursor reads."""

    def test_messages_are_routed_by_month(self, stores):
        stored = stores.messages.add_messages(
            [
                chat(utc(2024, 1, 31, 23, 59), "u1", "january"),
                chat(utc(2024, 2, 1, 0, 0), "u1", "february"),
                chat(utc(2024, 3, 15), "u2", "march"),
            ]
        )

        assert stored == 3
        assert stores.messages.partition_for(utc(2024, 2, 10)) == "messages_2024_02"
        assert stores.messages.list_partitions() == [
            "messages_2024_01",
            "messages_2024_02",
            "messages_2024_03",
        ]

    def test_fetch_after_is_strict_ordered_and_per_group(self, stores):
        stores.messages.add_messages(
            [
                chat(utc(2024, 1, 3), "u1", "third"),
                chat(utc(2024, 1, 1), "u1", "first"),
                chat(utc(2024, 1, 2), "u2", "second"),
                chat(utc(2024, 1, 2, 12), "u9", "other group", group_id="group-2"),
            ]
        )

        page = stores.messages.fetch_after("group-1", utc(2024, 1, 1), limit=10)

        assert [m.content for m in page.messages] == ["second", "third"]
        assert page.messages[0].timestamp == utc(2024, 1, 2)
        assert page.partition == "messages_2024_01"
        assert page.has_later_partitions is False

    def test_fetch_after_walks_forward_across_partitions(self, stores):
        stores.messages.add_messages(
            [
                chat(utc(2024, 1, 10), "u1", "january"),
                chat(utc(2024, 3, 10), "u1", "march"),
                chat(utc(2024, 4, 10), "u1", "april"),
            ]
        )

        page = stores.messages.fetch_after("group-1", utc(2024, 1, 10), limit=10)

        assert [m.content for m in page.messages] == ["march"]
        assert page.partition == "messages_2024_03"
        assert page.has_later_partitions is True

    def test_full_page_includes_messages_sharing_last_timestamp(self, stores):
        same = utc(2024, 1, 5)
        stores.messages.add_messages(
            [
                chat(utc(2024, 1, 4), "u1", "a"),
                chat(same, "u2", "b"),
                chat(same, "u3", "c"),
                chat(utc(2024, 1, 6), "u4", "d"),
            ]
        )

        page = stores.messages.fetch_after("group-1", utc(2024, 1, 1), limit=2)

        assert [m.content for m in page.messages] == ["a", "b", "c"]

    def test_fetch_after_with_no_partitions(self, stores):
        page = stores.messages.fetch_after("group-1", utc(2024, 1, 1), limit=5)
        assert page.messages == []
        assert page.partition is None

    def test_list_group_ids(self, stores):
        stores.messages.add_messages(
            [
                chat(utc(2024, 1, 1), "u1", "x", group_id="b"),
                chat(utc(2024, 2, 1), "u1", "y", group_id="a"),
                chat(utc(2024, 2, 2), "u1", "z", group_id="b"),
            ]
        )
        assert stores.messages.list_group_ids() == ["a", "b"]


class TestUserStore:
    def test_get_or_create_backfills_missing_name(self, stores):
        created = stores.users.get_or_create("+15550001")
        assert created.display_name is None

        updated = stores.users.get_or_create("+15550001", "Alice")
        assert updated.id == created.id
        assert updated.display_name == "Alice"

        # An existing name is not replaced
        assert stores.users.get_or_create("+15550001", "Bob").display_name == "Alice"

    def test_lookup(self, stores):
        user = stores.users.get_or_create("+15550002", "Bea")

        assert stores.users.lookup(user.id) == user
        assert stores.users.lookup("missing") is None

    def test_upsert_many_ignores_duplicates(self, stores):
        stores.users.get_or_create("+15550001", "Alice")

        inserted = stores.users.upsert_many(
            [("+15550001", "Other"), ("+15550002", "Bea"), ("+15550002", "Dup"), ("", "Nobody")]
        )

        assert inserted == 1


class TestSnapshotStores:
    def test_latest_and_recent_snapshots(self, stores):
        assert stores.snapshots.latest() is None

        first = stores.snapshots.append(
            KnowledgeBase.from_dict(business_doc("Misc", "One")), utc(2024, 1, 1), utc(2024, 1, 2)
        )
        second = stores.snapshots.append(
            KnowledgeBase.from_dict(business_doc("Misc", "Two")), utc(2024, 1, 3), utc(2024, 1, 4)
        )

        latest = stores.snapshots.latest()
        assert latest.id == second.id
        assert latest.analysis_data.categories() == ["Misc"]
        assert list(latest.analysis_data.businesses("Misc")) == ["Two"]
        assert latest.analysis_period_end == utc(2024, 1, 4)
        assert [s.id for s in stores.snapshots.recent(limit=2)] == [second.id, first.id]

    def test_sync_status_per_group(self, stores):
        assert stores.sync_status.latest("group-1") is None

        stores.sync_status.append("group-1", utc(2024, 1, 1))
        stores.sync_status.append("group-1", utc(2024, 1, 5))
        stores.sync_status.append("group-2", utc(2024, 2, 1))

        assert stores.sync_status.latest("group-1").last_sync_timestamp == utc(2024, 1, 5)
        assert [
            (cursor.group_id, cursor.last_sync_timestamp)
            for cursor in stores.sync_status.latest_per_group()
        ] == [("group-1", utc(2024, 1, 5)), ("group-2", utc(2024, 2, 1))]
