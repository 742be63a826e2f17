"""Vector store indexing endpoints."""

from fastapi import APIRouter
from pydantic import BaseModel, Field

from ragstudio.api.deps import Pipeline

router = APIRouter(prefix="/rag/vector-store")


class IndexRequest(BaseModel):
    document_id: str = Field(..., min_length=1)


class IndexResponse(BaseModel):
    success: bool = True
    document_id: str
    file_name: str
    vectors_indexed: int
    dimensions: int
    processing_time_ms: int
    total_vectors: int


class IndexedDocument(BaseModel):
    id: str
    file_name: str
    vector_count: int


class VectorStoreStatsResponse(BaseModel):
    success: bool = True
    total_vectors: int
    dimensions: int | None
    document_count: int
    indexed_documents: list[str]
    documents_with_embeddings: int
    memory_usage_mb: float
    remaining_memory_mb: float
    usage_percentage: float


class IndexedDocumentsResponse(BaseModel):
    success: bool = True
    documents: list[IndexedDocument]
    total_vectors: int
    dimensions: int | None


class ClearVectorsResponse(BaseModel):
    success: bool = True
    vectors_removed: int
    message: str


@router.post("/index", response_model=IndexResponse)
async def index_document(body: IndexRequest, pipeline: Pipeline):
    """Index a document's embeddings, replacing any previously indexed vectors."""
    result = await pipeline.processor.index_document(body.document_id)
    document = pipeline.document_store.get(body.document_id)

    return IndexResponse(
        document_id=result.document_id,
        file_name=document.file_name if document else "Unknown",
        vectors_indexed=result.vectors_indexed,
        dimensions=result.dimensions,
        processing_time_ms=result.processing_time_ms,
        total_vectors=pipeline.vector_store.size(),
    )


@router.get("/index", response_model=IndexedDocumentsResponse)
async def list_indexed_documents(pipeline: Pipeline):
    """List documents with vectors in the store."""
    stats = pipeline.vector_store.get_stats()

    documents = []
    for document_id in stats.indexed_documents:
        document = pipeline.document_store.get(document_id)
        documents.append(
            IndexedDocument(
                id=document_id,
                file_name=document.file_name if document else "Unknown",
                vector_count=len(pipeline.vector_store.get_document_vectors(document_id)),
            )
        )

    return IndexedDocumentsResponse(
        documents=documents,
        total_vectors=stats.total_vectors,
        dimensions=stats.dimensions,
    )


@router.delete("/index", response_model=ClearVectorsResponse)
async def clear_vectors(pipeline: Pipeline):
    """Remove every vector; documents, chunks and embeddings are kept."""
    count = pipeline.vector_store.clear()
    return ClearVectorsResponse(vectors_removed=count, message="All vectors cleared from memory")


@router.get("/stats", response_model=VectorStoreStatsResponse)
async def vector_store_stats(pipeline: Pipeline):
    """Vector store statistics measured against the document store budget."""
    stats = pipeline.vector_store.get_stats()
    quota_mb = pipeline.settings.max_total_size_mb

    with_embeddings = sum(1 for doc in pipeline.document_store.get_all() if doc.has_embeddings)

    return VectorStoreStatsResponse(
        total_vectors=stats.total_vectors,
        dimensions=stats.dimensions,
        document_count=stats.document_count,
        indexed_documents=stats.indexed_documents,
        documents_with_embeddings=with_embeddings,
        memory_usage_mb=round(stats.memory_usage_mb, 2),
        remaining_memory_mb=round(max(0.0, quota_mb - stats.memory_usage_mb), 2),
        usage_percentage=round(min(100.0, stats.memory_usage_mb / quota_mb * 100), 1),
    )
