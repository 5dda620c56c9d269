"""Similarity search over stored resource embeddings."""

import logging
from typing import List, Optional

from docgen.knowledge.embeddings import Embedder, generate_query_embedding
from docgen.knowledge.models import SearchResult
from docgen.knowledge.store import KnowledgeStore

logger = logging.getLogger(__name__)

SIMILARITY_FLOOR = 0.5
DEFAULT_LIMIT = 4


async def find_relevant_content(
    store: KnowledgeStore,
    embedder: Embedder,
    query: str,
    url: Optional[str] = None,
    limit: int = DEFAULT_LIMIT,
    min_similarity: float = SIMILARITY_FLOOR,
) -> List[SearchResult]:
    """
    Resources most similar to `query`, optionally restricted to one site.

    Raises:
        EmbeddingError: the query could not be embedded
        DatabaseError: the store could not be read
    """
    query_embedding = await generate_query_embedding(embedder, query)
    results = store.search(query_embedding, url=url, min_similarity=min_similarity, limit=limit)
    logger.debug(f"[Search] Found {len(results)} relevant results for '{query[:60]}' (url={url})")
    return results
