"""Knowledge base: SQLite store, embeddings, writer and similarity search."""

from docgen.knowledge.models import ParameterSpec, Resource, ResourceInput, SearchResult, Site
from docgen.knowledge.store import KnowledgeStore
from docgen.knowledge.writer import KnowledgeBaseWriter, SiteCache

__all__ = [
    "KnowledgeBaseWriter",
    "KnowledgeStore",
    "ParameterSpec",
    "Resource",
    "ResourceInput",
    "SearchResult",
    "Site",
    "SiteCache",
]
