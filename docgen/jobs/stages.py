"""
Queue stages of the extraction pipeline.

curl-generation        screenshot -> curl documents (LLM, structured output)
embeddings-generation  resource content -> chunk embeddings (persisted)

The curl stage never fails: any error becomes a successful result with an empty
document list so the crawl keeps going. The embeddings stage lets errors
propagate so the queue retries and eventually marks the job failed.
"""

import json
import logging
from typing import Any, Dict, Optional

from docgen.core.config import Settings, get_settings
from docgen.core.progress import ProgressEmitter, get_progress_emitter
from docgen.jobs.queue import Job, JobHandler, JobQueue
from docgen.knowledge.embeddings import Embedder
from docgen.knowledge.store import KnowledgeStore
from docgen.knowledge.writer import KnowledgeBaseWriter
from docgen.llm.client import LLMClient
from docgen.llm.prompts import CURL_DOCS_PROMPT
from docgen.llm.schemas import CURL_DOCS_SCHEMA

logger = logging.getLogger(__name__)

CURL_STAGE = "curl-generation"
EMBEDDINGS_STAGE = "embeddings-generation"


async def generate_curl_docs(
    llm: LLMClient,
    model: str,
    screenshot: str,
    url: Optional[str] = None,
    previous_response_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Ask the extractor model for the curl documents visible in one screenshot.

    Returns:
        {"response_id": str, "curl_docs": [...]}
    """
    text = CURL_DOCS_PROMPT
    if url:
        text = f"{text}\n\nSource URL: {url}"
    context = [
        {
            "role": "user",
            "content": [
                {"type": "input_text", "text": text},
                {"type": "input_image", "image_url": screenshot},
            ],
        }
    ]
    response = await llm.request_completion(
        model,
        [],
        context,
        schema=CURL_DOCS_SCHEMA,
        reasoning={"summary": "detailed"},
        previous_response_id=previous_response_id,
    )
    parsed = json.loads(response.output_text)
    return {"response_id": response.id, "curl_docs": parsed.get("curl_docs") or []}


def make_curl_handler(
    llm: LLMClient,
    model: str,
    progress: Optional[ProgressEmitter] = None,
) -> JobHandler:
    """Handler for the curl-generation stage."""
    progress = progress or get_progress_emitter()

    async def handle(job: Job) -> Dict[str, Any]:
        payload = job.payload
        session_id = payload.get("session_id")
        job_index = payload.get("job_index", 0)
        url = payload.get("url") or ""

        logger.info(f"[CurlStage] Processing {job.id} ({job_index}/{payload.get('total_jobs')})")
        progress.send_curl_progress(session_id, "processing", job_index, jobId=job.id)

        try:
            generated = await generate_curl_docs(
                llm,
                model,
                payload["screenshot"],
                url=url or None,
                previous_response_id=payload.get("previous_response_id"),
            )
        except Exception as e:
            logger.error(f"[CurlStage] Curl generation failed for {job.id}: {e}")
            progress.send_curl_progress(session_id, "error", job_index, jobId=job.id, message=str(e))
            return {
                "success": False,
                "error": str(e),
                "response_id": payload.get("previous_response_id"),
                "curl_obj": {"curl_docs": [], "url": url},
            }

        docs = generated["curl_docs"]
        logger.info(f"[CurlStage] {job.id} produced {len(docs)} docs")
        progress.send_curl_progress(session_id, "completed", job_index, jobId=job.id, docsCount=len(docs))
        return {
            "success": True,
            "response_id": generated["response_id"],
            "curl_obj": {"curl_docs": docs, "url": url},
        }

    return handle


def make_embeddings_handler(store: KnowledgeStore, embedder: Embedder) -> JobHandler:
    """Handler for the embeddings-generation stage."""
    writer = KnowledgeBaseWriter(store, embedder)

    async def handle(job: Job) -> Dict[str, Any]:
        resource_id = job.payload["resource_id"]
        logger.info(
            f"[EmbeddingsStage] Processing {job.id} "
            f"({job.payload.get('job_index')}/{job.payload.get('total_jobs')})"
        )
        count = await writer.store_embeddings(resource_id, job.payload["content"])
        logger.info(f"[EmbeddingsStage] {count} embeddings stored for resource {resource_id}")
        return {"success": True, "resource_id": resource_id, "embeddings_count": count}

    return handle


def register_stages(
    queue: JobQueue,
    llm: LLMClient,
    store: KnowledgeStore,
    embedder: Embedder,
    settings: Optional[Settings] = None,
    progress: Optional[ProgressEmitter] = None,
) -> JobQueue:
    """Register both pipeline stages with their configured worker pools."""
    settings = settings or get_settings()
    queue.register(
        CURL_STAGE,
        make_curl_handler(llm, settings.openai.extractor_model, progress),
        settings.queue.curl,
    )
    queue.register(
        EMBEDDINGS_STAGE,
        make_embeddings_handler(store, embedder),
        settings.queue.embeddings,
    )
    return queue
