"""
Knowledge Base Writer

Idempotent site upsert plus resource/embedding writes. One writer (and its
SiteCache) is created per crawl session.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from docgen.core.exceptions import ValidationError
from docgen.core.validation import hostname_of
from docgen.knowledge.embeddings import Embedder, generate_embeddings
from docgen.knowledge.models import Resource, ResourceInput, Site
from docgen.knowledge.store import KnowledgeStore

logger = logging.getLogger(__name__)


class SiteCache:
    """Write-through cache of Site rows keyed by URL."""

    def __init__(self):
        self._sites: Dict[str, Site] = {}

    def get(self, url: str) -> Optional[Site]:
        return self._sites.get(url)

    def put(self, site: Site) -> None:
        self._sites[site.url] = site

    def __len__(self) -> int:
        return len(self._sites)


def build_resource_content(doc: Dict[str, Any]) -> str:
    """Flatten one curl document into the searchable resource text."""
    parameters = "; ".join(
        f"{p.get('name')} ({p.get('type')}, {'required' if p.get('required') else 'optional'}): "
        f"{p.get('description')}"
        for p in doc.get("parameters") or []
    )
    parts = [
        f"Tags: {doc.get('tags')}",
        f"Description: {doc.get('description')}",
        f"Curl Command: {doc.get('curl')}",
        f"Parameters: {parameters}",
    ]
    return "\n\n".join(parts)


def resource_input_from_doc(doc: Dict[str, Any], url: str) -> Dict[str, Any]:
    """Raw (unvalidated) resource input for a curl document found on `url`."""
    return {
        "content": build_resource_content(doc),
        "url": url,
        "tags": doc.get("tags"),
        "description": doc.get("description"),
        "curl_command": doc.get("curl"),
        "parameters": doc.get("parameters") or [],
    }


def _validate(raw: Any) -> ResourceInput:
    if isinstance(raw, ResourceInput):
        return raw
    try:
        return ResourceInput.model_validate(raw)
    except PydanticValidationError as e:
        messages = ", ".join(err["msg"] for err in e.errors())
        logger.error(f"[KnowledgeWriter] Resource validation failed: {messages}")
        raise ValidationError(f"Invalid resource data: {messages}", cause=e) from e


class KnowledgeBaseWriter:
    """Writes sites, resources and embeddings to the knowledge store."""

    def __init__(self, store: KnowledgeStore, embedder: Embedder, site_cache: Optional[SiteCache] = None):
        self.store = store
        self.embedder = embedder
        self.site_cache = site_cache if site_cache is not None else SiteCache()

    def ensure_site(self, url: str) -> Site:
        """Cache, then store, then insert. Always returns the single row for `url`."""
        site = self.site_cache.get(url)
        if site is not None:
            return site

        site = self.store.get_site_by_url(url)
        if site is None:
            site = self.store.insert_site(url, hostname_of(url))
            logger.info(f"[KnowledgeWriter] Website created: {url} ({site.name})")

        self.site_cache.put(site)
        return site

    async def create_resource(self, raw: Any) -> Resource:
        """Validate, embed and persist one resource atomically."""
        item = _validate(raw)
        site = self.ensure_site(item.url)
        chunks = await generate_embeddings(self.embedder, item.content)
        [resource] = self.store.insert_resources([(site.id, item)], [chunks])
        logger.debug(f"[KnowledgeWriter] Resource {resource.id} created with {len(chunks)} embeddings")
        return resource

    async def create_resources_batch(self, raws: Sequence[Any]) -> int:
        """
        Embed then persist many resources in one transaction.

        Returns the number of resources written (0 for empty input).
        """
        if not raws:
            logger.warning("[KnowledgeWriter] No resources to create in batch")
            return 0

        items = [_validate(raw) for raw in raws]
        rows = [(self.ensure_site(item.url).id, item) for item in items]
        chunks = [await generate_embeddings(self.embedder, item.content) for item in items]
        resources = self.store.insert_resources(rows, chunks)

        logger.info(
            f"[KnowledgeWriter] Batch created {len(resources)} resources "
            f"({sum(len(c) for c in chunks)} embeddings)"
        )
        return len(resources)

    def create_resources_without_embeddings(self, raws: Sequence[Any]) -> List[Resource]:
        """Persist resources now; embeddings are produced later by the queue."""
        if not raws:
            logger.warning("[KnowledgeWriter] No resources to create")
            return []

        items = [_validate(raw) for raw in raws]
        rows = [(self.ensure_site(item.url).id, item) for item in items]
        resources = self.store.insert_resources(rows)
        logger.info(f"[KnowledgeWriter] Created {len(resources)} resources without embeddings")
        return resources

    async def store_embeddings(self, resource_id: str, content: str) -> int:
        """Chunk, embed and persist embeddings for an existing resource."""
        chunks = await generate_embeddings(self.embedder, content)
        if not chunks:
            return 0
        return self.store.insert_embeddings(resource_id, chunks)


def docs_to_inputs(docs: Iterable[Dict[str, Any]], url: str) -> List[Dict[str, Any]]:
    return [resource_input_from_doc(doc, url) for doc in docs]
