"""Embedding generation endpoints."""

from fastapi import APIRouter
from pydantic import BaseModel, Field

from ragstudio.api.deps import Pipeline

router = APIRouter(prefix="/rag/embeddings")


class GenerateEmbeddingsRequest(BaseModel):
    """Embed every chunk of a document."""

    document_id: str = Field(..., min_length=1)
    model: str | None = Field(None, description="Registry name; defaults to the configured model")


class GenerateEmbeddingsResponse(BaseModel):
    success: bool = True
    document_id: str
    file_name: str
    embedding_count: int
    dimensions: int
    model: str
    total_batches: int
    processing_time_ms: int


class EmbeddingModelInfo(BaseModel):
    name: str
    id: str
    dimensions: int
    max_tokens: int
    provider: str


class ModelsResponse(BaseModel):
    success: bool = True
    models: list[EmbeddingModelInfo]
    default: str


class EmbeddingStatusResponse(BaseModel):
    success: bool = True
    document_id: str
    file_name: str
    chunk_count: int
    has_chunks: bool
    has_embeddings: bool
    embedding_model: str | None
    dimensions: int | None
    embedding_count: int
    chunked: bool
    embedded: bool
    indexed: bool
    ready: bool


@router.post("/generate", response_model=GenerateEmbeddingsResponse)
async def generate_embeddings(body: GenerateEmbeddingsRequest, pipeline: Pipeline):
    """Generate embeddings for a chunked document.

    Chunks are sent to the provider in batches with retries; any batch
    failing after its retries fails the whole request.
    """
    document, result = await pipeline.processor.embed_document(
        body.document_id, body.model or pipeline.settings.default_embedding_model
    )

    return GenerateEmbeddingsResponse(
        document_id=document.id,
        file_name=document.file_name,
        embedding_count=len(result.embeddings),
        dimensions=result.dimensions,
        model=result.model,
        total_batches=result.total_batches,
        processing_time_ms=result.processing_time_ms,
    )


@router.get("/models", response_model=ModelsResponse)
async def list_models(pipeline: Pipeline):
    """List the registered embedding models."""
    return ModelsResponse(
        models=[
            EmbeddingModelInfo(
                name=m.name,
                id=m.id,
                dimensions=m.dimensions,
                max_tokens=m.max_tokens,
                provider=m.provider,
            )
            for m in pipeline.embedder.get_available_models()
        ],
        default=pipeline.settings.default_embedding_model,
    )


@router.get("/status/{document_id}", response_model=EmbeddingStatusResponse)
async def embedding_status(document_id: str, pipeline: Pipeline):
    """Whether a document has been chunked, embedded and indexed."""
    status = pipeline.processor.embedding_status(document_id)

    return EmbeddingStatusResponse(
        document_id=status.document_id,
        file_name=status.file_name,
        chunk_count=status.chunk_count,
        has_chunks=status.has_chunks,
        has_embeddings=status.has_embeddings,
        embedding_model=status.embedding_model,
        dimensions=status.dimensions,
        embedding_count=status.embedding_count,
        chunked=status.has_chunks,
        embedded=status.has_embeddings,
        indexed=status.indexed,
        ready=status.ready,
    )
