"""
Health Check Router

Endpoints:
    GET /health - Liveness plus knowledge store connectivity
"""

import logging
import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from docgen.core.config import Settings
from docgen.core.progress import utc_timestamp
from docgen.gateway.dependencies import get_app_settings, get_store
from docgen.knowledge.store import KnowledgeStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

_STARTED_AT = time.monotonic()


@router.get("/health")
async def health(
    store: KnowledgeStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> JSONResponse:
    """
    Health check endpoint.

    Returns 200 when the knowledge store answers, 503 with status "degraded"
    otherwise.
    """
    body = {
        "status": "ok",
        "timestamp": utc_timestamp(),
        "uptime": round(time.monotonic() - _STARTED_AT, 3),
        "environment": settings.environment,
    }

    if store.ping():
        body["database"] = "connected"
    else:
        body["database"] = "disconnected"
        body["status"] = "degraded"
        logger.warning("[Health] Knowledge store disconnected")

    return JSONResponse(status_code=200 if body["status"] == "ok" else 503, content=body)
