"""
ORM tables of the persistence store.

Messages live in one table per calendar month (messages_YYYY_MM), created on
first use. Users, snapshots and sync cursors are plain tables; snapshots and
cursors are append-only.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class UserModel(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    phone_number: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class SnapshotModel(Base):
    __tablename__ = "business_analysis"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    analysis_data: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    analysis_period_start: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    analysis_period_end: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)


class SyncStatusModel(Base):
    __tablename__ = "message_sync_status"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    group_id: Mapped[str] = mapped_column(String(256), index=True)
    last_sync_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)


# Time-partitioned message tables

PARTITION_PATTERN = re.compile(r"^messages_(\d{4})_(\d{2})$")

partition_metadata = MetaData()


def partition_name(timestamp: datetime) -> str:
    """Name of the monthly partition holding messages sent at timestamp."""
    return f"messages_{timestamp.year:04d}_{timestamp.month:02d}"


def is_partition_name(name: str) -> bool:
    return PARTITION_PATTERN.match(name) is not None


def message_partition(name: str) -> Table:
    """Table object for a monthly message partition (declared once per name)."""
    if name in partition_metadata.tables:
        return partition_metadata.tables[name]

    return Table(
        name,
        partition_metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("group_id", String(256), nullable=False, index=True),
        Column("user_id", String(64), nullable=False),
        Column("content", Text, nullable=False),
        Column("timestamp", DateTime(timezone=True), nullable=False, index=True),
    )
