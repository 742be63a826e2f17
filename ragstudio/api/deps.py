"""FastAPI dependency injection.

Provides common dependencies for API routes.
"""

from typing import Annotated

from fastapi import Depends, Request

from ragstudio.rag.pipeline import RAGPipeline


def get_pipeline(request: Request) -> RAGPipeline:
    """The pipeline built by the application lifespan."""
    return request.app.state.pipeline


# Type alias for cleaner signatures
Pipeline = Annotated[RAGPipeline, Depends(get_pipeline)]
