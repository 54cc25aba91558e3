"""
Snapshot and Sync Status Stores

Both tables are append-only: every pipeline commit adds a row and the
current state is always the most recent one.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import desc, select

from app.integrations.store.db import SessionProvider
from app.integrations.store.models import SnapshotModel, SyncStatusModel
from app.models.knowledge import KnowledgeBase, Snapshot
from app.models.messages import SyncCursor, as_utc


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _maybe_utc(value: Optional[datetime]) -> Optional[datetime]:
    return as_utc(value) if value is not None else None


class SnapshotStore:
    """Append-only knowledge base versions (table business_analysis)."""

    def __init__(self, provider: SessionProvider):
        self._provider = provider

    def latest(self) -> Optional[Snapshot]:
        snapshots = self.recent(limit=1)
        return snapshots[0] if snapshots else None

    def recent(self, limit: int = 2) -> List[Snapshot]:
        """Most recent snapshots, newest first."""
        with self._provider.session() as session:
            rows = session.execute(
                select(SnapshotModel)
                .order_by(desc(SnapshotModel.created_at), desc(SnapshotModel.id))
                .limit(limit)
            ).scalars().all()
            return [self._to_snapshot(row) for row in rows]

    def append(
        self,
        knowledge: KnowledgeBase,
        period_start: Optional[datetime],
        period_end: Optional[datetime],
    ) -> Snapshot:
        with self._provider.session() as session:
            row = SnapshotModel(
                analysis_data=knowledge.to_dict(),
                analysis_period_start=period_start,
                analysis_period_end=period_end,
                created_at=_utcnow(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_snapshot(row)

    @staticmethod
    def _to_snapshot(row: SnapshotModel) -> Snapshot:
        return Snapshot(
            id=row.id,
            analysis_data=KnowledgeBase.from_dict(row.analysis_data),
            analysis_period_start=_maybe_utc(row.analysis_period_start),
            analysis_period_end=_maybe_utc(row.analysis_period_end),
            created_at=as_utc(row.created_at),
        )


class SyncStatusStore:
    """Append-only per-group cursors (table message_sync_status)."""

    def __init__(self, provider: SessionProvider):
        self._provider = provider

    def latest(self, group_id: str) -> Optional[SyncCursor]:
        with self._provider.session() as session:
            row = session.execute(
                select(SyncStatusModel)
                .where(SyncStatusModel.group_id == group_id)
                .order_by(desc(SyncStatusModel.created_at), desc(SyncStatusModel.id))
                .limit(1)
            ).scalar_one_or_none()
            return self._to_cursor(row) if row else None

    def latest_per_group(self) -> List[SyncCursor]:
        with self._provider.session() as session:
            group_ids = session.execute(
                select(SyncStatusModel.group_id).distinct()
            ).scalars().all()
        cursors = [self.latest(group_id) for group_id in sorted(group_ids)]
        return [cursor for cursor in cursors if cursor is not None]

    def append(self, group_id: str, last_sync_timestamp: datetime) -> SyncCursor:
        with self._provider.session() as session:
            row = SyncStatusModel(
                group_id=group_id,
                last_sync_timestamp=last_sync_timestamp,
                created_at=_utcnow(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_cursor(row)

    @staticmethod
    def _to_cursor(row: SyncStatusModel) -> SyncCursor:
        return SyncCursor(
            group_id=row.group_id,
            last_sync_timestamp=row.last_sync_timestamp,
            recorded_at=row.created_at,
        )
