"""
API Response Models

Pydantic models for consistent API response structures.
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum


class SyncStatus(str, Enum):
    """Outcome of syncing one group."""

    SUCCESS = "success"
    ERROR = "error"
    STOPPED = "stopped"
    BUSY = "busy"


class GroupSyncResult(BaseModel):
    """
    Result of running the analysis pipeline for one group.
    On error it carries the batch range needed to replay by hand.
    """

    group_id: str = Field(..., description="Chat group that was processed")
    status: SyncStatus = Field(..., description="Status: success, error, stopped or busy (already running)")
    batches_processed: int = Field(0, description="Batches merged and committed")
    batches_skipped: int = Field(
        0, description="Batches with no valid messages (nothing persisted)"
    )
    messages_processed: int = Field(0, description="Messages in committed batches")
    cursor: Optional[datetime] = Field(
        None, description="Last durably advanced sync timestamp for the group"
    )
    last_snapshot_id: Optional[int] = Field(
        None, description="Id of the last snapshot written in this run"
    )

    # Failure context
    error_type: Optional[str] = Field(None, description="Exception class name")
    error: Optional[str] = Field(None, description="Error message")
    failed_period_start: Optional[datetime] = Field(
        None, description="First message timestamp of the failed batch"
    )
    failed_period_end: Optional[datetime] = Field(
        None, description="Last message timestamp of the failed batch"
    )


class AnalysisRunResponse(BaseModel):
    """Response model for the analysis run endpoint."""

    status: str = Field(..., description="Status: success or error")
    results: List[GroupSyncResult] = Field(default_factory=list)


class SyncCursorResponse(BaseModel):
    """Latest cursor of one group."""

    group_id: str
    last_sync_timestamp: datetime
    recorded_at: datetime
