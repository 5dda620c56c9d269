"""
Gateway FastAPI Application

Structure:
    - dependencies.py: Singleton instances with lazy initialization
    - lifespan.py: Application startup/shutdown handlers
    - routers/: API endpoints (health, knowledge-base, documentation, queue)

Errors are rendered as {"error": message}. DocgenError subclasses carry their
own status code; anything else is a 500.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from docgen.core.config import Settings, get_settings
from docgen.core.exceptions import DocgenError
from docgen.gateway.lifespan import lifespan
from docgen.gateway.routers import (
    documentation_router,
    health_router,
    knowledge_base_router,
    queue_router,
)

logger = logging.getLogger(__name__)


def _register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(DocgenError)
    async def docgen_error_handler(request: Request, exc: DocgenError) -> JSONResponse:
        logger.error(f"[Gateway] {request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        body = {"error": exc.message}
        if exc.cause is not None and not settings.is_production:
            body["details"] = str(exc.cause)
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query")),
                "message": err.get("msg", ""),
            }
            for err in exc.errors()
        ]
        return JSONResponse(status_code=400, content={"error": "Validation failed", "details": details})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content={"error": "Route not found", "path": request.url.path})
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"[Gateway] Unexpected error on {request.method} {request.url.path}: {exc}")
        body = {"error": "An unexpected error occurred"}
        if not settings.is_production:
            body["message"] = str(exc)
        return JSONResponse(status_code=500, content=body)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Application factory."""
    settings = settings or get_settings()

    app = FastAPI(
        title="docgen",
        description="API documentation crawler: knowledge base, Postman and OpenAPI generation",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS: any origin unless ALLOWED_ORIGINS narrows it
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app, settings)

    app.include_router(health_router)
    app.include_router(knowledge_base_router)
    app.include_router(documentation_router)
    app.include_router(queue_router)

    return app


app = create_app()
