"""
Tests for the Message Batch Source
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from app.services.batch_source import MessageBatchSource, SourceUnavailable
from app.integrations.store.message_store import MessagePage
from app.models.messages import EPOCH

from conftest import chat, utc


def test_batches_walk_messages_in_order(stores, settings):
    stores.messages.add_messages(
        [chat(utc(2024, 1, day), "u1", f"message {day}") for day in range(1, 6)]
    )
    source = MessageBatchSource(stores.messages, settings)

    first = source.next_batch("group-1", None)
    assert [m.content for m in first.messages] == ["message 1", "message 2"]
    assert first.period_start == utc(2024, 1, 1)
    assert first.period_end == utc(2024, 1, 2)
    assert first.exhausted is False

    second = source.next_batch("group-1", first.period_end)
    assert [m.content for m in second.messages] == ["message 3", "message 4"]

    last = source.next_batch("group-1", second.period_end)
    assert [m.content for m in last.messages] == ["message 5"]
    assert last.exhausted is True


def test_empty_source_is_exhausted(stores, settings):
    batch = MessageBatchSource(stores.messages, settings).next_batch("group-1", None)

    assert batch.messages == []
    assert batch.exhausted is True
    assert batch.period_end is None


def test_short_page_with_later_partitions_is_not_exhausted(settings):
    store = MagicMock()
    store.fetch_after.return_value = MessagePage(
        messages=[chat(utc(2024, 1, 1), "u1", "hi")],
        partition="messages_2024_01",
        has_later_partitions=True,
    )

    batch = MessageBatchSource(store, settings).next_batch("group-1", None)

    assert batch.exhausted is False
    store.fetch_after.assert_called_once_with("group-1", EPOCH, 2)


def test_store_errors_surface_as_source_unavailable(settings):
    store = MagicMock()
    store.fetch_after.side_effect = OperationalError("SELECT", {}, Exception("no such table"))

    with pytest.raises(SourceUnavailable) as excinfo:
        MessageBatchSource(store, settings).next_batch("group-1", utc(2024, 1, 1))

    assert excinfo.value.group_id == "group-1"
    assert excinfo.value.period_start == utc(2024, 1, 1)
