"""
Queue Inspection Router

Endpoints:
    GET /queue/status - Per-stage job counts and recent failures
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query

from docgen.gateway.dependencies import get_job_queue
from docgen.jobs.queue import JobQueue

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/queue", tags=["queue"])


@router.get("/status")
async def queue_status(
    failures: int = Query(default=5, ge=0, le=100),
    queue: JobQueue = Depends(get_job_queue),
) -> dict[str, Any]:
    """Counts by state for each stage, with the latest failed jobs' reasons."""
    counts = queue.counts()
    return {
        stage: {**stage_counts, "recentFailures": queue.recent_failures(stage, limit=failures)}
        for stage, stage_counts in counts.items()
    }
