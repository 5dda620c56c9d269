"""Client-facing artifacts built from a site's stored resources."""

import logging
from typing import Any, Dict, List, Tuple

from docgen.collection.generators import generate_openapi_definition, generate_postman_with_ai
from docgen.collection.postman_builder import build_postman_collection
from docgen.core.exceptions import NotFoundError
from docgen.knowledge.models import Resource, Site
from docgen.knowledge.store import KnowledgeStore
from docgen.llm.client import LLMClient

logger = logging.getLogger(__name__)


def load_site_resources(store: KnowledgeStore, url: str) -> Tuple[Site, List[Resource]]:
    """
    Site and resources for `url`.

    Raises:
        NotFoundError: the site was never crawled, or has no resources
    """
    site = store.get_site_by_url(url)
    if site is None:
        raise NotFoundError("Website", f"{url}. Please scrape the website first using POST /knowledge-base")
    resources = store.list_resources(site.id)
    if not resources:
        raise NotFoundError("Documentation resources", url)
    return site, resources


async def generate_collection(
    store: KnowledgeStore,
    llm: LLMClient,
    model: str,
    url: str,
    use_ai: bool = False,
) -> Dict[str, Any]:
    """Postman collection for a crawled site: {collection, resourceCount, conversionReport}."""
    _, resources = load_site_resources(store, url)
    docs = [resource.to_doc() for resource in resources]
    logger.info(f"[CollectionService] {len(docs)} resources for {url} (use_ai={use_ai})")

    if use_ai:
        collection = await generate_postman_with_ai(llm, model, docs, url)
        report = {
            "total": len(resources),
            "successful": len(resources),
            "duplicates": 0,
            "failed": 0,
            "errors": [],
            "generatedBy": "AI",
        }
    else:
        result = build_postman_collection(docs, url)
        collection = result.collection
        report = {**result.conversion_report, "generatedBy": "direct"}

    if report["failed"]:
        logger.warning(f"[CollectionService] {report['failed']} resources failed to convert for {url}")

    return {
        "collection": collection,
        "resourceCount": len(resources),
        "conversionReport": report,
    }


async def generate_openapi(store: KnowledgeStore, llm: LLMClient, model: str, url: str) -> Dict[str, Any]:
    """OpenAPI definition for a crawled site: {url, openApi, resourceCount}."""
    _, resources = load_site_resources(store, url)
    open_api = await generate_openapi_definition(llm, model, [r.content for r in resources])
    return {"url": url, "openApi": open_api, "resourceCount": len(resources)}
