"""Semantic search and answer generation endpoints."""

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, Field

from ragstudio.api.deps import Pipeline
from ragstudio.rag.retriever import RAGAnswer

router = APIRouter(prefix="/rag")


# ============================================
# Request/Response Models
# ============================================


class SearchRequest(BaseModel):
    """Semantic search request. Ranges are checked by the retriever."""

    query: str
    top_k: int = 5
    min_score: float = 0.0
    model: str | None = Field(None, description="Embedding model; defaults to the configured one")


class SearchResultItem(BaseModel):
    id: str
    document_id: str
    chunk_index: int
    text: str
    score: float
    metadata: dict[str, Any] | None = None


class SearchMetadata(BaseModel):
    total_results: int
    top_k: int
    min_score: float
    model: str
    total_vectors: int


class SearchPerformance(BaseModel):
    embedding_time_ms: int
    search_time_ms: int
    total_time_ms: int


class SearchResponse(BaseModel):
    success: bool = True
    query: str
    results: list[SearchResultItem]
    metadata: SearchMetadata
    performance: SearchPerformance


class SearchReadiness(BaseModel):
    success: bool = True
    total_vectors: int
    dimensions: int | None
    document_count: int
    ready: bool


class GenerateRequest(BaseModel):
    """Answer a question from the indexed documents."""

    query: str
    top_k: int = 5
    min_score: float = 0.0
    model: str | None = Field(None, description="Embedding model; defaults to the configured one")
    provider: str | None = Field(None, description="ollama or huggingface")
    llm_model: str | None = None


class SourceItem(BaseModel):
    id: str
    document_id: str
    file_name: str
    text: str
    score: float
    chunk_index: int


class AnswerMetadataItem(BaseModel):
    total_chunks: int
    top_k: int
    min_score: float
    embedding_model: str
    llm_model: str
    provider: str
    tokens_used: int
    fallback: bool


class AnswerPerformanceItem(BaseModel):
    embedding_time_ms: int
    search_time_ms: int
    generation_time_ms: int
    total_time_ms: int


class GenerateResponse(BaseModel):
    success: bool = True
    query: str
    answer: str
    sources: list[SourceItem]
    metadata: AnswerMetadataItem
    performance: AnswerPerformanceItem

    @classmethod
    def from_answer(cls, answer: RAGAnswer) -> "GenerateResponse":
        meta = answer.metadata
        perf = answer.performance
        return cls(
            query=answer.query,
            answer=answer.answer,
            sources=[
                SourceItem(
                    id=s.id,
                    document_id=s.document_id,
                    file_name=s.file_name,
                    text=s.text,
                    score=s.score,
                    chunk_index=s.chunk_index,
                )
                for s in answer.sources
            ],
            metadata=AnswerMetadataItem(
                total_chunks=meta.total_chunks,
                top_k=meta.top_k,
                min_score=meta.min_score,
                embedding_model=meta.embedding_model,
                llm_model=meta.llm_model,
                provider=meta.provider,
                tokens_used=meta.tokens_used,
                fallback=meta.fallback,
            ),
            performance=AnswerPerformanceItem(
                embedding_time_ms=perf.embedding_time_ms,
                search_time_ms=perf.search_time_ms,
                generation_time_ms=perf.generation_time_ms,
                total_time_ms=perf.total_time_ms,
            ),
        )


# ============================================
# Endpoints
# ============================================


@router.post("/search", response_model=SearchResponse)
async def search(body: SearchRequest, pipeline: Pipeline):
    """Embed the query and return the most similar chunks."""
    response = await pipeline.retriever.search(
        body.query,
        top_k=body.top_k,
        min_score=body.min_score,
        embedding_model=body.model or pipeline.settings.default_embedding_model,
    )

    return SearchResponse(
        query=response.query,
        results=[
            SearchResultItem(
                id=r.id,
                document_id=r.document_id,
                chunk_index=r.chunk_index,
                text=r.text,
                score=r.score,
                metadata=r.metadata,
            )
            for r in response.results
        ],
        metadata=SearchMetadata(
            total_results=len(response.results),
            top_k=body.top_k,
            min_score=body.min_score,
            model=response.embedding_model,
            total_vectors=pipeline.vector_store.size(),
        ),
        performance=SearchPerformance(
            embedding_time_ms=response.embedding_time_ms,
            search_time_ms=response.search_time_ms,
            total_time_ms=response.total_time_ms,
        ),
    )


@router.get("/search", response_model=SearchReadiness)
async def search_readiness(pipeline: Pipeline):
    """Whether anything is indexed and searchable."""
    stats = pipeline.vector_store.get_stats()
    return SearchReadiness(
        total_vectors=stats.total_vectors,
        dimensions=stats.dimensions,
        document_count=stats.document_count,
        ready=stats.total_vectors > 0,
    )


@router.post("/generate", response_model=GenerateResponse)
async def generate(body: GenerateRequest, pipeline: Pipeline):
    """Answer a question using retrieved chunks as context.

    When the generation provider fails the most relevant chunk is
    returned and ``metadata.fallback`` is true.
    """
    settings = pipeline.settings
    answer = await pipeline.retriever.answer(
        body.query,
        top_k=body.top_k,
        min_score=body.min_score,
        embedding_model=body.model or settings.default_embedding_model,
        provider=body.provider or settings.default_generation_provider,
        llm_model=body.llm_model or settings.default_generation_model,
    )
    return GenerateResponse.from_answer(answer)
