"""
Knowledge Base Router

Endpoints:
    POST /knowledge-base        - Crawl a documentation site and wait for the result
    GET  /knowledge-base/stream - Same crawl, with progress streamed over SSE
"""

import asyncio
import json
import logging
import uuid
from typing import Any, Optional, Set

from fastapi import APIRouter, Body, Depends, Query
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from docgen.agent import crawl_site
from docgen.core.config import Settings
from docgen.core.exceptions import ValidationError
from docgen.core.progress import ProgressEmitter
from docgen.core.validation import is_valid_url
from docgen.gateway.dependencies import (
    get_app_settings,
    get_embedder_dependency,
    get_job_queue,
    get_llm,
    get_progress,
    get_store,
)
from docgen.jobs.queue import JobQueue
from docgen.knowledge.embeddings import Embedder
from docgen.knowledge.store import KnowledgeStore
from docgen.llm.client import LLMClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/knowledge-base", tags=["knowledge-base"])

# Seconds between keepalive comments while a crawl is quiet
STREAM_PING_SECONDS = 15

# Crawl tasks outlive their SSE clients
_crawl_tasks: Set[asyncio.Task] = set()


class KnowledgeBaseRequest(BaseModel):
    url: Optional[str] = None


def _require_url(url: Optional[str], missing_message: str) -> str:
    if not url:
        raise ValidationError(missing_message)
    if not is_valid_url(url):
        raise ValidationError("Invalid URL format. Please provide a valid URL")
    return url


@router.post("")
async def create_knowledge_base(
    request: Optional[KnowledgeBaseRequest] = Body(default=None),
    llm: LLMClient = Depends(get_llm),
    queue: JobQueue = Depends(get_job_queue),
    store: KnowledgeStore = Depends(get_store),
    embedder: Embedder = Depends(get_embedder_dependency),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, Any]:
    """
    Crawl `url` and return the extracted curl payloads once every job has settled.

    Raises:
        ValidationError: missing or malformed URL
        BrowserError: the browser or planner failed
    """
    url = _require_url(request.url if request else None, "URL is required in the request body")
    logger.info(f"[KnowledgeBase] Starting knowledge base generation for {url}")

    data = await crawl_site(url, llm=llm, queue=queue, store=store, embedder=embedder, settings=settings)
    return {"url": url, "data": data}


@router.get("/stream")
async def stream_knowledge_base(
    url: Optional[str] = Query(default=None),
    llm: LLMClient = Depends(get_llm),
    queue: JobQueue = Depends(get_job_queue),
    store: KnowledgeStore = Depends(get_store),
    embedder: Embedder = Depends(get_embedder_dependency),
    progress: ProgressEmitter = Depends(get_progress),
    settings: Settings = Depends(get_app_settings),
):
    """
    Stream crawl progress for `url` via SSE.

    Each message carries one {type, timestamp, data} envelope. The stream ends
    after the `complete` or `error` event. A client that disconnects early
    only stops receiving events; the crawl and its jobs run to completion.
    """
    url = _require_url(url, "URL is required as a query parameter")
    session_id = uuid.uuid4().hex
    events = progress.register(session_id)
    progress.send_started(session_id, url)
    logger.info(f"[KnowledgeBase] Starting streamed crawl of {url} (session={session_id})")

    async def run_crawl() -> None:
        try:
            data = await crawl_site(
                url,
                llm=llm,
                queue=queue,
                store=store,
                embedder=embedder,
                session_id=session_id,
                progress=progress,
                settings=settings,
            )
            progress.send_complete(session_id, {"url": url, "data": data})
        except Exception as e:
            logger.error(f"[KnowledgeBase] Knowledge base generation failed for {url} (session={session_id}): {e}")
            progress.send_error(session_id, e)

    task = asyncio.create_task(run_crawl(), name=f"crawl-{session_id}")
    _crawl_tasks.add(task)
    task.add_done_callback(_crawl_tasks.discard)

    async def event_generator():
        try:
            while True:
                event = await events.get()
                yield {"data": json.dumps(event.to_dict())}
                if event.is_terminal:
                    break
        finally:
            progress.unregister(session_id)
            logger.info(f"[KnowledgeBase] SSE stream closed (session={session_id})")

    return EventSourceResponse(event_generator(), ping=STREAM_PING_SECONDS)
