"""
Documentation Router

Read side of the knowledge base.

Endpoints:
    GET  /documentation/search  - Similarity search over stored resources
    GET  /documentation/postman - Postman collection for a crawled site
    GET  /documentation/openapi - OpenAPI definition for a crawled site
    POST /documentation/chat    - Question answering over a site's resources
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from docgen.collection.chat import chat_with_documentation
from docgen.collection.service import generate_collection, generate_openapi
from docgen.core.config import Settings
from docgen.core.exceptions import ValidationError
from docgen.core.validation import is_valid_url
from docgen.gateway.dependencies import get_app_settings, get_embedder_dependency, get_llm, get_store
from docgen.knowledge.embeddings import Embedder
from docgen.knowledge.search import find_relevant_content
from docgen.knowledge.store import KnowledgeStore
from docgen.llm.client import LLMClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documentation", tags=["documentation"])


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(min_length=1)
    url: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=1, le=50)
    previous_response_id: Optional[str] = Field(default=None, alias="previousResponseId")


def _require_site_url(url: Optional[str]) -> str:
    if not url:
        raise ValidationError("URL parameter is required (e.g., ?url=https://example.com)")
    if not is_valid_url(url):
        raise ValidationError("Invalid URL format. Please provide a valid URL")
    return url


@router.get("/search")
async def search_documentation(
    query: Optional[str] = Query(default=None),
    url: Optional[str] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1, le=50),
    store: KnowledgeStore = Depends(get_store),
    embedder: Embedder = Depends(get_embedder_dependency),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, Any]:
    """Resources most similar to `query`, optionally limited to the site at `url`."""
    if not query:
        raise ValidationError("Query parameter is required (e.g., ?query=your search)")

    logger.info(f"[Documentation] Searching '{query}' (url={url})")
    results = await find_relevant_content(
        store,
        embedder,
        query,
        url=url,
        limit=limit or settings.embeddings.default_limit,
        min_similarity=settings.embeddings.similarity_floor,
    )
    return {"query": query, "url": url, "results": [r.to_dict() for r in results]}


@router.get("/postman")
async def postman_collection(
    url: Optional[str] = Query(default=None),
    use_ai: Optional[str] = Query(default=None, alias="useAI"),
    store: KnowledgeStore = Depends(get_store),
    llm: LLMClient = Depends(get_llm),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, Any]:
    """Postman v2.1 collection built directly from curl commands, or by the generator model with useAI=true."""
    url = _require_site_url(url)
    should_use_ai = use_ai == "true"
    logger.info(f"[Documentation] Generating Postman collection for {url} (useAI={should_use_ai})")
    return await generate_collection(store, llm, settings.openai.generator_model, url, use_ai=should_use_ai)


@router.get("/openapi")
async def openapi_definition(
    url: Optional[str] = Query(default=None),
    store: KnowledgeStore = Depends(get_store),
    llm: LLMClient = Depends(get_llm),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, Any]:
    url = _require_site_url(url)
    logger.info(f"[Documentation] Generating OpenAPI definition for {url}")
    return await generate_openapi(store, llm, settings.openai.generator_model, url)


@router.post("/chat")
async def chat(
    request: ChatRequest,
    store: KnowledgeStore = Depends(get_store),
    embedder: Embedder = Depends(get_embedder_dependency),
    llm: LLMClient = Depends(get_llm),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, Any]:
    """
    Answer a question from the stored documentation.

    Pass the returned `responseId` back as `previousResponseId` to continue
    the conversation.
    """
    if request.url and not is_valid_url(request.url):
        raise ValidationError("Invalid URL format. Please provide a valid URL")

    return await chat_with_documentation(
        store,
        embedder,
        llm,
        settings.openai.chat_model,
        request.message,
        url=request.url,
        limit=request.limit or settings.embeddings.default_limit,
        previous_response_id=request.previous_response_id,
    )
