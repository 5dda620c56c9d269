"""Question answering over a site's documentation (retrieval + chat model)."""

import logging
from typing import Any, Dict, List, Optional

from docgen.core.exceptions import ExternalAPIError
from docgen.knowledge.embeddings import Embedder
from docgen.knowledge.models import SearchResult
from docgen.knowledge.search import find_relevant_content
from docgen.knowledge.store import KnowledgeStore
from docgen.llm.client import LLMClient
from docgen.llm.prompts import chat_rag_prompt

logger = logging.getLogger(__name__)

NO_DOCUMENTATION_ANSWER = (
    "I don't have any documentation available yet. "
    "Please wait for the scraping to complete or try a different question."
)


def format_sources(results: List[SearchResult]) -> str:
    """Numbered source blocks for the system prompt."""
    blocks = []
    for idx, result in enumerate(results):
        parts = []
        if result.tags:
            parts.append(f"Tags: {result.tags}")
        if result.description:
            parts.append(f"Description: {result.description}")
        if result.curl_command:
            parts.append(f"cURL: {result.curl_command}")
        if result.content:
            parts.append(f"Content: {result.content}")
        blocks.append(f"[Source {idx + 1}]\n" + "\n".join(parts))
    return "\n\n".join(blocks)


async def chat_with_documentation(
    store: KnowledgeStore,
    embedder: Embedder,
    llm: LLMClient,
    model: str,
    message: str,
    url: Optional[str] = None,
    limit: int = 4,
    previous_response_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Answer `message` from the stored documentation.

    The system prompt with sources is sent only on the first turn; later turns
    rely on the continuation token.

    Returns:
        {"response": str, "sources": [{tags, description}], "responseId": str | None}
    """
    results = await find_relevant_content(store, embedder, message, url=url, limit=limit)
    if not results:
        return {"response": NO_DOCUMENTATION_ANSWER, "sources": [], "responseId": None}

    messages: List[Dict[str, Any]] = []
    if not previous_response_id:
        messages.append({"role": "system", "content": chat_rag_prompt(format_sources(results))})
    messages.append({"role": "user", "content": message})

    response = await llm.request_completion(
        model, [], messages, previous_response_id=previous_response_id
    )
    if not response.output_text:
        raise ExternalAPIError("Chat Service", "No text response generated from AI")

    logger.info(
        f"[Chat] Answered for {url}: {len(response.output_text)} chars from {len(results)} sources "
        f"(continued={bool(previous_response_id)})"
    )
    return {
        "response": response.output_text,
        "sources": [
            {"tags": r.tags, "description": (r.description or "")[:100]}
            for r in results
        ],
        "responseId": response.id,
    }
