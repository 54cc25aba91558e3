"""
Message Store

Reads and writes chat messages in monthly partition tables. Which partition
a message belongs to is purely a function of its timestamp.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import and_, inspect, insert, select

from app.integrations.store.db import SessionProvider
from app.integrations.store.models import (
    is_partition_name,
    message_partition,
    partition_name,
)
from app.models.messages import ChatMessage, as_utc

logger = logging.getLogger(__name__)


@dataclass
class MessagePage:
    """Messages read from one partition, and whether later partitions exist."""

    messages: List[ChatMessage] = field(default_factory=list)
    partition: Optional[str] = None
    has_later_partitions: bool = False


class MessageStore:
    """Partition-aware access to stored chat messages."""

    def __init__(self, provider: SessionProvider):
        self._provider = provider

    def partition_for(self, timestamp: datetime) -> str:
        return partition_name(as_utc(timestamp))

    def list_partitions(self) -> List[str]:
        """Existing partition tables, oldest first."""
        names = inspect(self._provider.engine).get_table_names()
        return sorted(name for name in names if is_partition_name(name))

    def ensure_partition(self, name: str) -> None:
        table = message_partition(name)
        table.create(self._provider.engine, checkfirst=True)

    def add_messages(self, messages: Iterable[ChatMessage]) -> int:
        """Store messages, routing each to the partition of its timestamp."""
        by_partition: Dict[str, List[dict]] = {}
        for message in messages:
            name = self.partition_for(message.timestamp)
            by_partition.setdefault(name, []).append(
                {
                    "group_id": message.group_id,
                    "user_id": message.user_id,
                    "content": message.content,
                    "timestamp": message.timestamp,
                }
            )

        stored = 0
        for name, rows in by_partition.items():
            self.ensure_partition(name)
            with self._provider.session() as session:
                session.execute(insert(message_partition(name)), rows)
                session.commit()
            stored += len(rows)
            logger.debug(f"Stored {len(rows)} messages in {name}")
        return stored

    def fetch_after(self, group_id: str, after: datetime, limit: int) -> MessagePage:
        """
        Fetch up to limit messages of a group strictly after a timestamp.

        Partitions are walked from the one containing `after` forward and the
        first non-empty page is returned in ascending timestamp order. A full
        page is extended with any remaining messages that share its last
        timestamp, so a cursor placed at that timestamp never skips messages.

        Raises:
            sqlalchemy.exc.SQLAlchemyError: If a partition cannot be read
        """
        after = as_utc(after)
        start = self.partition_for(after)
        partitions = [name for name in self.list_partitions() if name >= start]

        for position, name in enumerate(partitions):
            table = message_partition(name)
            with self._provider.session() as session:
                rows = session.execute(
                    select(table)
                    .where(and_(table.c.group_id == group_id, table.c.timestamp > after))
                    .order_by(table.c.timestamp.asc(), table.c.id.asc())
                    .limit(limit)
                ).all()

                if rows and len(rows) >= limit:
                    last = rows[-1]
                    ties = session.execute(
                        select(table)
                        .where(
                            and_(
                                table.c.group_id == group_id,
                                table.c.timestamp == last.timestamp,
                                table.c.id > last.id,
                            )
                        )
                        .order_by(table.c.id.asc())
                    ).all()
                    rows = list(rows) + list(ties)

            if rows:
                return MessagePage(
                    messages=[self._to_message(row) for row in rows],
                    partition=name,
                    has_later_partitions=position < len(partitions) - 1,
                )

        return MessagePage()

    def list_group_ids(self) -> List[str]:
        """Every group that has at least one stored message."""
        groups = set()
        with self._provider.session() as session:
            for name in self.list_partitions():
                table = message_partition(name)
                groups.update(session.execute(select(table.c.group_id).distinct()).scalars())
        return sorted(groups)

    @staticmethod
    def _to_message(row) -> ChatMessage:
        return ChatMessage(
            timestamp=as_utc(row.timestamp),
            user_id=row.user_id,
            content=row.content,
            group_id=row.group_id,
        )

