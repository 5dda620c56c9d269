"""
Gateway Dependencies Module

Singleton instances with lazy initialization for the API process. Routers get
them through FastAPI `Depends`, so tests can swap any of them with
`app.dependency_overrides`.
"""

import logging
from typing import Optional

from docgen.core.config import Settings, get_settings
from docgen.core.progress import ProgressEmitter, get_progress_emitter
from docgen.jobs.queue import JobQueue
from docgen.jobs.stages import register_stages
from docgen.knowledge.embeddings import Embedder, close_embedder, get_embedder
from docgen.knowledge.store import KnowledgeStore
from docgen.llm.client import LLMClient, close_llm_client, get_llm_client

logger = logging.getLogger(__name__)

# =============================================================================
# Private Singleton Storage
# =============================================================================

_store: Optional[KnowledgeStore] = None
_job_queue: Optional[JobQueue] = None


def get_app_settings() -> Settings:
    return get_settings()


def get_store() -> KnowledgeStore:
    """Get the knowledge store singleton."""
    global _store
    if _store is None:
        _store = KnowledgeStore(get_settings().store.database_path)
        logger.info(f"[Dependencies] Knowledge store opened at {get_settings().store.database_path}")
    return _store


def get_llm() -> LLMClient:
    return get_llm_client()


def get_embedder_dependency() -> Embedder:
    return get_embedder()


def get_progress() -> ProgressEmitter:
    return get_progress_emitter()


def get_job_queue() -> JobQueue:
    """Get the job queue singleton with both pipeline stages registered."""
    global _job_queue
    if _job_queue is None:
        settings = get_settings()
        _job_queue = JobQueue(settings.queue)
        register_stages(
            _job_queue,
            get_llm_client(),
            get_store(),
            get_embedder(),
            settings=settings,
            progress=get_progress_emitter(),
        )
        logger.info("[Dependencies] Job queue initialized")
    return _job_queue


# =============================================================================
# Lifecycle
# =============================================================================


def initialize_all() -> None:
    """Create every singleton up front so startup fails fast on bad config."""
    get_store()
    get_job_queue()
    get_progress_emitter()


async def shutdown_all() -> None:
    """Stop queue workers and release clients and the database."""
    global _store, _job_queue
    if _job_queue is not None:
        await _job_queue.close()
        _job_queue = None
    await close_llm_client()
    await close_embedder()
    if _store is not None:
        _store.close()
        _store = None
