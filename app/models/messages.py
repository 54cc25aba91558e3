"""
Chat Message Models

Platform-agnostic records read from the message store: chat messages,
the users who wrote them, and the per-group sync cursor.
"""

from pydantic import BaseModel, ConfigDict, field_validator
from datetime import datetime, timezone
from typing import List, Optional


def as_utc(value: datetime) -> datetime:
    """Return a timezone-aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class ChatMessage(BaseModel):
    """One message of a group chat, as produced by the ingestion source."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    user_id: str
    content: str
    group_id: str

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return as_utc(value)

    def is_valid(self) -> bool:
        """Check the invariants the extraction step relies on."""
        return bool(self.user_id) and bool(self.content and self.content.strip())


class MessageBatch(BaseModel):
    """An ordered page of messages after a cursor."""

    group_id: str
    messages: List[ChatMessage] = []
    exhausted: bool = False
    partition: Optional[str] = None

    @property
    def period_start(self) -> Optional[datetime]:
        return self.messages[0].timestamp if self.messages else None

    @property
    def period_end(self) -> Optional[datetime]:
        return self.messages[-1].timestamp if self.messages else None


class User(BaseModel):
    """A chat participant owned by the identity store."""

    id: str
    phone_number: str
    display_name: Optional[str] = None


class SyncCursor(BaseModel):
    """Per-group watermark of the last message folded into a snapshot."""

    group_id: str
    last_sync_timestamp: datetime
    recorded_at: datetime

    @field_validator("last_sync_timestamp", "recorded_at")
    @classmethod
    def _normalize_timestamps(cls, value: datetime) -> datetime:
        return as_utc(value)
