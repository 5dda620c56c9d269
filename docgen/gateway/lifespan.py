"""
Gateway Application Lifespan Handler

Startup:
    - Configures logging (logs/docgen/system.log)
    - Initializes the knowledge store, LLM client and job queue singletons

Shutdown:
    - Stops queue workers, closes the HTTP client and the database
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from docgen.core.config import get_settings
from docgen.core.logging_config import get_logger, setup_logging
from docgen.gateway.dependencies import initialize_all, shutdown_all

# uvicorn.error until setup_logging is called
logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager."""
    settings = get_settings()
    setup_logging(level=settings.log_level, service_name="docgen", log_dir=settings.log_dir)

    gateway_logger = get_logger("gateway")
    gateway_logger.info(f"[Gateway] Starting ({settings.environment})...")

    try:
        initialize_all()
        gateway_logger.info("[Gateway] All dependencies initialized successfully")
    except Exception as e:
        gateway_logger.error(f"[Gateway] Failed to initialize dependencies: {e}")
        raise

    gateway_logger.info(f"[Gateway] Ready to accept requests on port {settings.port}")

    yield

    gateway_logger.info("[Gateway] Shutting down...")
    await shutdown_all()
    gateway_logger.info("[Gateway] Shutdown complete")
