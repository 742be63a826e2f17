"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from ragstudio.api.routes import documents, embeddings, health, rag, vector_store
from ragstudio.core.config import Settings, get_settings
from ragstudio.core.logging_config import configure_logging
from ragstudio.rag.errors import RAGError
from ragstudio.rag.pipeline import build_pipeline

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    settings: Settings = app.state.settings
    configure_logging(settings)

    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")

    app.state.pipeline = build_pipeline(settings)
    health.set_startup_complete()
    logger.info("Startup complete - ready to accept requests")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await app.state.pipeline.aclose()
    logger.info("Shutdown complete")


async def rag_error_handler(request: Request, exc: RAGError) -> JSONResponse:
    """Render pipeline errors with their kind and a readable message."""
    if exc.status_code >= 500:
        logger.error(f"[API] {request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "kind": exc.kind,
            "error": exc.message,
            "details": exc.details,
        },
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create the application."""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="In-memory retrieval-augmented generation API",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RAGError, rag_error_handler)

    # Health check routes
    app.include_router(health.router, tags=["Health"])

    # RAG routes
    app.include_router(documents.router, prefix=settings.api_prefix, tags=["Documents"])
    app.include_router(embeddings.router, prefix=settings.api_prefix, tags=["Embeddings"])
    app.include_router(vector_store.router, prefix=settings.api_prefix, tags=["Vector Store"])
    app.include_router(rag.router, prefix=settings.api_prefix, tags=["Retrieval"])

    # Prometheus metrics endpoint
    metrics_app = make_asgi_app()
    app.mount("/metrics", metrics_app)

    @app.get("/")
    async def root():
        """Root endpoint with API info."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs" if settings.debug else None,
            "health": "/health/ready",
        }

    return app


app = create_app()
