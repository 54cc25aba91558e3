"""
Message Batch Source

Yields fixed-size, ascending batches of one group's messages after a cursor.
Partition routing is left to the message store.
"""

import logging
from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError

from app.config import Settings, get_settings
from app.integrations.store.message_store import MessagePage
from app.models.messages import EPOCH, MessageBatch
from app.services.errors import PipelineError

logger = logging.getLogger(__name__)


class SourceUnavailable(PipelineError):
    """
    Raised when the message store cannot resolve or read a partition.
    Aborts the current run for the group.
    """

    pass


class PartitionedMessages(Protocol):
    """Message store operations required by the batch source."""

    def fetch_after(self, group_id: str, after: datetime, limit: int) -> MessagePage:
        ...


class MessageBatchSource:
    """Cursor-based batches over the partitioned message store."""

    def __init__(self, store: PartitionedMessages, settings: Optional[Settings] = None):
        self.store = store
        self.batch_size = (settings or get_settings()).batch_size

    def next_batch(self, group_id: str, cursor: Optional[datetime]) -> MessageBatch:
        """
        Fetch the next batch of messages strictly after cursor.

        Args:
            group_id: Group to read
            cursor: Last synced timestamp, None to start from the beginning

        Returns:
            MessageBatch; exhausted is True when no messages remain after this batch

        Raises:
            SourceUnavailable: If the store cannot resolve or read a partition
        """
        after = cursor or EPOCH
        try:
            page = self.store.fetch_after(group_id, after, self.batch_size)
        except SQLAlchemyError as e:
            logger.error(f"Message store unavailable for group {group_id}: {e}")
            raise SourceUnavailable(
                f"Could not read messages after {after.isoformat()}: {e}",
                group_id=group_id,
                period_start=after,
            ) from e

        exhausted = len(page.messages) < self.batch_size and not page.has_later_partitions
        batch = MessageBatch(
            group_id=group_id,
            messages=page.messages,
            exhausted=exhausted,
            partition=page.partition,
        )

        if batch.messages:
            logger.info(
                f"Fetched {len(batch.messages)} messages for group {group_id} from "
                f"{page.partition} ({batch.period_start} .. {batch.period_end}), "
                f"exhausted={exhausted}"
            )
        else:
            logger.info(f"No messages after {after.isoformat()} for group {group_id}")
        return batch
