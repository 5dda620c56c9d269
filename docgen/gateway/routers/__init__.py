"""
Gateway Router Modules

Router Organization:
    - health: Health check endpoint
    - knowledge_base: Crawl endpoints (blocking and SSE)
    - documentation: Search, Postman, OpenAPI and chat over crawled sites
    - queue: Job queue inspection
"""

from docgen.gateway.routers.health import router as health_router
from docgen.gateway.routers.knowledge_base import router as knowledge_base_router
from docgen.gateway.routers.documentation import router as documentation_router
from docgen.gateway.routers.queue import router as queue_router

__all__ = [
    "health_router",
    "knowledge_base_router",
    "documentation_router",
    "queue_router",
]
