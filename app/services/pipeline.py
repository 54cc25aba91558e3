"""
Business Analysis Pipeline Orchestrator

Full pipeline orchestration, per group and batch:
Message Store -> Extraction -> Identity Resolution -> Merge -> Snapshot + Cursor

Batches of one group run strictly in cursor order and at most one run per
group is in flight. Groups run concurrently, but every group folds into the
same knowledge base, so the read-latest-snapshot / merge / commit step is
serialized across groups.
"""

import asyncio
import logging
from datetime import datetime
from typing import Iterable, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError

from app.ai_core.extraction import BusinessExtractor, EmptyBatch
from app.ai_core.identity import IdentityResolver
from app.ai_core.merging import merge_with_stats
from app.config import Settings, get_settings
from app.integrations.store import Stores, create_stores
from app.models.api_responses import GroupSyncResult, SyncStatus
from app.models.knowledge import KnowledgeBase
from app.models.messages import MessageBatch
from app.services.batch_source import MessageBatchSource, SourceUnavailable
from app.services.errors import PipelineError
from app.services.snapshot_writer import CommitResult, PersistenceFailure, SnapshotWriter

logger = logging.getLogger(__name__)


class AnalysisPipeline:
    """
    Orchestrates incremental analysis of group chats into the knowledge base.

    Pipeline steps (per batch):
    1. Fetch the next batch after the group's cursor
    2. Extract business recommendations from the batch
    3. Resolve user ids in entry keys to names and phone numbers
    4. Merge into the latest persisted snapshot
    5. Store the new snapshot and advance the cursor
    """

    def __init__(
        self,
        stores: Stores,
        extractor: BusinessExtractor,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.stores = stores
        self.extractor = extractor
        self.batch_source = MessageBatchSource(stores.messages, self.settings)
        self.resolver = IdentityResolver(stores.users)
        self.writer = SnapshotWriter(stores.snapshots, stores.sync_status)

        self._commit_lock = asyncio.Lock()
        # Groups with a run in flight, and the stop signal of every live run
        self._active_groups: Set[str] = set()
        self._stop_events: Set[asyncio.Event] = set()

    def request_stop(self) -> None:
        """Stop every run in flight after its current batch."""
        logger.info(f"Stop requested for {len(self._stop_events)} running analyses")
        for event in list(self._stop_events):
            event.set()

    async def sync_all(self, group_ids: Optional[Iterable[str]] = None) -> List[GroupSyncResult]:
        """
        Run the pipeline for several groups concurrently.

        Args:
            group_ids: Groups to process; defaults to settings.group_ids, then
                to every group found in the message store

        Returns:
            One GroupSyncResult per group, in input order

        Raises:
            SourceUnavailable: If the groups cannot be listed from the store
        """
        stop_event = asyncio.Event()
        self._stop_events.add(stop_event)
        try:
            groups = list(dict.fromkeys(group_ids or self.settings.group_ids or []))
            if not groups:
                try:
                    groups = await asyncio.to_thread(self.stores.messages.list_group_ids)
                except SQLAlchemyError as e:
                    raise SourceUnavailable(f"Could not list groups: {e}") from e

            if not groups:
                logger.info("No groups with messages to analyze")
                return []

            logger.info(f"Starting analysis for {len(groups)} groups")
            semaphore = asyncio.Semaphore(max(1, self.settings.max_concurrent_groups))

            async def run(group_id: str) -> GroupSyncResult:
                async with semaphore:
                    return await self.sync_group(group_id, stop_event)

            return list(await asyncio.gather(*(run(group_id) for group_id in groups)))
        finally:
            self._stop_events.discard(stop_event)

    async def sync_group(
        self, group_id: str, stop_event: Optional[asyncio.Event] = None
    ) -> GroupSyncResult:
        """
        Process every batch of a group after its cursor, until exhausted.

        A group already being processed is not run a second time; the call
        returns a busy result instead.

        Args:
            group_id: Group to process
            stop_event: Stop signal of the calling run; a new one is used if omitted
        """
        if group_id in self._active_groups:
            logger.warning(f"Group {group_id} is already being analyzed, skipping")
            return GroupSyncResult(
                group_id=group_id,
                status=SyncStatus.BUSY,
                error=f"Group {group_id} is already being analyzed",
            )

        owns_event = stop_event is None
        if owns_event:
            stop_event = asyncio.Event()
            self._stop_events.add(stop_event)
        self._active_groups.add(group_id)
        try:
            return await self._run_group(group_id, stop_event)
        finally:
            self._active_groups.discard(group_id)
            if owns_event:
                self._stop_events.discard(stop_event)

    async def _run_group(self, group_id: str, stop_event: asyncio.Event) -> GroupSyncResult:
        """
        A failing batch stops the group's run without touching its cursor or
        any committed snapshot; the failure and its batch range are reported
        in the result. There are no retries within a run.
        """
        result = GroupSyncResult(group_id=group_id, status=SyncStatus.SUCCESS)
        logger.info(f"Starting message analysis for group {group_id}")

        try:
            cursor = await self._read_cursor(group_id)
            result.cursor = cursor
            position = cursor

            while True:
                if stop_event.is_set():
                    result.status = SyncStatus.STOPPED
                    logger.info(f"Group {group_id} stopped at {position}")
                    break

                batch = await asyncio.to_thread(self.batch_source.next_batch, group_id, position)
                if not batch.messages:
                    break

                try:
                    commit = await self._process_batch(group_id, batch)
                except EmptyBatch as e:
                    logger.warning(f"Skipping batch for group {group_id}: {e}")
                    result.batches_skipped += 1
                else:
                    result.batches_processed += 1
                    result.messages_processed += len(batch.messages)
                    result.cursor = commit.cursor.last_sync_timestamp
                    result.last_snapshot_id = commit.snapshot.id

                position = batch.period_end
                if batch.exhausted:
                    break

        except PipelineError as e:
            logger.error(
                f"Analysis of group {group_id} aborted ({type(e).__name__}) for batch "
                f"{e.period_start} .. {e.period_end}: {e}"
            )
            self._record_failure(result, e)
        except Exception as e:
            logger.error(f"Unexpected error analyzing group {group_id}: {str(e)}", exc_info=True)
            self._record_failure(result, e)

        logger.info(
            f"Group {group_id} finished with status {result.status.value}: "
            f"{result.batches_processed} batches, {result.messages_processed} messages, "
            f"cursor {result.cursor}"
        )
        return result

    async def _read_cursor(self, group_id: str) -> Optional[datetime]:
        try:
            cursor = await asyncio.to_thread(self.stores.sync_status.latest, group_id)
        except SQLAlchemyError as e:
            raise SourceUnavailable(
                f"Could not read sync cursor: {e}", group_id=group_id
            ) from e
        return cursor.last_sync_timestamp if cursor else None

    async def _process_batch(self, group_id: str, batch: MessageBatch) -> CommitResult:
        document = await self.extractor.extract(batch.messages, group_id=group_id)
        document = await asyncio.to_thread(self.resolver.resolve, document)

        async with self._commit_lock:
            commit = asyncio.ensure_future(
                asyncio.to_thread(self._merge_and_commit, group_id, document, batch)
            )
            try:
                return await asyncio.shield(commit)
            except asyncio.CancelledError:
                # The commit runs to completion so a snapshot never lacks its cursor
                await asyncio.wait([commit])
                raise

    def _merge_and_commit(
        self, group_id: str, document: KnowledgeBase, batch: MessageBatch
    ) -> CommitResult:
        try:
            latest = self.stores.snapshots.latest()
        except SQLAlchemyError as e:
            raise PersistenceFailure(
                f"Could not read the latest snapshot: {e}",
                group_id=group_id,
                period_start=batch.period_start,
                period_end=batch.period_end,
            ) from e

        base = latest.analysis_data if latest else KnowledgeBase()
        merged, stats = merge_with_stats(base, document)
        logger.info(
            f"Merged batch of group {group_id} into snapshot "
            f"{latest.id if latest else 'none'}: +{stats.categories_added} categories, "
            f"+{stats.businesses_added} businesses, {stats.businesses_updated} updated, "
            f"+{stats.entries_added} entries"
        )
        return self.writer.commit(group_id, merged, batch.period_start, batch.period_end)

    @staticmethod
    def _record_failure(result: GroupSyncResult, error: Exception) -> None:
        result.status = SyncStatus.ERROR
        result.error_type = type(error).__name__
        result.error = str(error)
        result.failed_period_start = getattr(error, "period_start", None)
        result.failed_period_end = getattr(error, "period_end", None)


def build_pipeline(settings: Optional[Settings] = None, llm=None) -> AnalysisPipeline:
    """Wire the pipeline to the configured database and extraction service."""
    settings = settings or get_settings()
    stores = create_stores(settings.database_url)
    extractor = BusinessExtractor(llm=llm, settings=settings)
    return AnalysisPipeline(stores, extractor, settings)
