"""
Business Analysis API Routes

1. POST /api/analysis/run - Analyze new messages of one or more groups
2. GET /api/analysis/latest - Latest knowledge base snapshot
3. GET /api/analysis/snapshots - Most recent snapshot versions
4. GET /api/analysis/sync-status - Latest sync cursor per group
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from typing import List, Optional
from functools import lru_cache
import asyncio
import logging

from app.models.api_responses import (
    AnalysisRunResponse,
    SyncCursorResponse,
    SyncStatus,
)
from app.models.knowledge import Snapshot
from app.services.batch_source import SourceUnavailable
from app.services.pipeline import AnalysisPipeline, build_pipeline

logger = logging.getLogger(__name__)
router = APIRouter()


@lru_cache
def get_pipeline() -> AnalysisPipeline:
    """Pipeline shared by all requests, built on first use."""
    return build_pipeline()


class AnalysisRunRequest(BaseModel):
    """Request model for the analysis run endpoint."""

    group_ids: Optional[List[str]] = Field(
        None, description="Groups to analyze (defaults to every configured/stored group)"
    )


@router.post("/run", response_model=AnalysisRunResponse)
async def run_analysis(
    request: AnalysisRunRequest,
    pipeline: AnalysisPipeline = Depends(get_pipeline),
):
    """
    Analyze every message stored after each group's sync cursor.

    Example request body:
    ```json
    {
        "group_ids": ["120363025555555555@g.us"]
    }
    ```
    """
    logger.info(f"Analysis run requested for groups: {request.group_ids or 'all'}")
    try:
        results = await pipeline.sync_all(request.group_ids)
    except SourceUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))

    status = (
        "error"
        if any(result.status == SyncStatus.ERROR for result in results)
        else "success"
    )
    return AnalysisRunResponse(status=status, results=results)


@router.get("/latest", response_model=Snapshot)
async def get_latest_snapshot(pipeline: AnalysisPipeline = Depends(get_pipeline)):
    """Latest cumulative knowledge base, as read by the dashboard."""
    snapshot = await asyncio.to_thread(pipeline.stores.snapshots.latest)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No analysis data found")
    return snapshot


@router.get("/snapshots", response_model=List[Snapshot])
async def list_snapshots(
    limit: int = Query(2, ge=1, le=50, description="Number of versions to return"),
    pipeline: AnalysisPipeline = Depends(get_pipeline),
):
    """Most recent snapshot versions, newest first."""
    return await asyncio.to_thread(pipeline.stores.snapshots.recent, limit)


@router.get("/sync-status", response_model=List[SyncCursorResponse])
async def get_sync_status(pipeline: AnalysisPipeline = Depends(get_pipeline)):
    """Latest sync cursor of every group analyzed so far."""
    cursors = await asyncio.to_thread(pipeline.stores.sync_status.latest_per_group)
    return [SyncCursorResponse(**cursor.model_dump()) for cursor in cursors]
