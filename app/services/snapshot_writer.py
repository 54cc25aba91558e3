"""
Snapshot Writer

Persists a merged knowledge base as a new snapshot, then advances the
group's sync cursor. The cursor only moves once the snapshot is stored.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from app.models.knowledge import KnowledgeBase, Snapshot
from app.models.messages import SyncCursor
from app.services.errors import PipelineError

logger = logging.getLogger(__name__)


class PersistenceFailure(PipelineError):
    """
    Raised when the snapshot or the cursor could not be written.
    snapshot_id is set when the snapshot was stored but the cursor was not.
    """

    def __init__(self, message: str, snapshot_id: Optional[int] = None, **context):
        super().__init__(message, **context)
        self.snapshot_id = snapshot_id


class SnapshotAppender(Protocol):
    def append(
        self,
        knowledge: KnowledgeBase,
        period_start: Optional[datetime],
        period_end: Optional[datetime],
    ) -> Snapshot:
        ...


class CursorStore(Protocol):
    def latest(self, group_id: str) -> Optional[SyncCursor]:
        ...

    def append(self, group_id: str, last_sync_timestamp: datetime) -> SyncCursor:
        ...


@dataclass
class CommitResult:
    snapshot: Snapshot
    cursor: SyncCursor


class SnapshotWriter:
    """Writes snapshot rows and cursor rows, in that order."""

    def __init__(self, snapshots: SnapshotAppender, sync_status: CursorStore):
        self.snapshots = snapshots
        self.sync_status = sync_status

    def commit(
        self,
        group_id: str,
        knowledge: KnowledgeBase,
        period_start: datetime,
        period_end: datetime,
    ) -> CommitResult:
        """
        Store knowledge as a new snapshot and move the group's cursor to period_end.

        Raises:
            PersistenceFailure: If either write fails, or the group's cursor is
                already past period_end (nothing is written then)
        """
        context = dict(group_id=group_id, period_start=period_start, period_end=period_end)

        try:
            current = self.sync_status.latest(group_id)
        except Exception as e:
            logger.error(f"Error reading cursor for group {group_id}: {e}", exc_info=True)
            raise PersistenceFailure(f"Cursor read failed: {e}", **context) from e

        if current is not None and current.last_sync_timestamp > period_end:
            # Another worker already moved the group past this batch
            raise PersistenceFailure(
                f"Cursor for group {group_id} is at {current.last_sync_timestamp}, "
                f"refusing to move it back to {period_end}",
                **context,
            )

        try:
            snapshot = self.snapshots.append(knowledge, period_start, period_end)
        except Exception as e:
            logger.error(f"Error storing snapshot for group {group_id}: {e}", exc_info=True)
            raise PersistenceFailure(f"Snapshot write failed: {e}", **context) from e

        logger.info(
            f"Stored snapshot {snapshot.id} ({period_start} .. {period_end}, "
            f"{knowledge.business_count()} businesses)"
        )

        try:
            cursor = self.sync_status.append(group_id, period_end)
        except Exception as e:
            # A later merge against this snapshot re-incorporates the batch safely
            logger.warning(
                f"Snapshot {snapshot.id} stored but cursor for group {group_id} not advanced "
                f"to {period_end}; the batch will be merged again on the next run: {e}",
                exc_info=True,
            )
            raise PersistenceFailure(
                f"Cursor update failed after snapshot {snapshot.id}: {e}",
                snapshot_id=snapshot.id,
                **context,
            ) from e

        logger.info(f"Messages analyzed till {period_end} for group {group_id}")
        return CommitResult(snapshot=snapshot, cursor=cursor)
