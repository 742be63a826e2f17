"""Document management endpoints.

Documents live in process memory only; every response that lists them
carries a notice that nothing survives a restart.
"""

from fastapi import APIRouter, File, Form, Query, UploadFile
from pydantic import BaseModel

from ragstudio.api.deps import Pipeline
from ragstudio.rag.chunking import Chunk, ChunkingConfig, ChunkingStatistics
from ragstudio.rag.document_store import Document
from ragstudio.rag.errors import DocumentNotFoundError

router = APIRouter(prefix="/rag/documents")

PRIVACY_NOTICE = (
    "Documents are held in memory only and are not persisted. "
    "All data is lost when the server restarts."
)

PREVIEW_CHUNKS = 5
PREVIEW_CHARS = 200


# ============================================
# Request/Response Models
# ============================================


class DocumentSummary(BaseModel):
    """Document metadata without the extracted text."""

    id: str
    file_name: str
    file_type: str
    file_size: int
    mime_type: str | None
    extraction_method: str
    extraction_model: str
    processing_time_ms: int
    timestamp: str
    page_count: int | None
    text_length: int
    chunk_count: int
    has_embeddings: bool
    embedding_model: str | None
    content_hash: str | None

    @classmethod
    def from_document(cls, doc: Document) -> "DocumentSummary":
        return cls(
            id=doc.id,
            file_name=doc.file_name,
            file_type=doc.file_type,
            file_size=doc.file_size,
            mime_type=doc.mime_type,
            extraction_method=doc.extraction_method.value,
            extraction_model=doc.extraction_model,
            processing_time_ms=doc.processing_time_ms,
            timestamp=doc.timestamp,
            page_count=doc.page_count,
            text_length=len(doc.extracted_text),
            chunk_count=doc.chunk_count,
            has_embeddings=doc.has_embeddings,
            embedding_model=doc.embedding_model,
            content_hash=doc.content_hash,
        )


class DocumentDetail(DocumentSummary):
    extracted_text: str


class UploadResponse(BaseModel):
    success: bool = True
    document: DocumentSummary
    text_preview: str
    privacy: str = PRIVACY_NOTICE


class StoreStatsResponse(BaseModel):
    total_documents: int
    total_size: int
    total_text_length: int
    memory_usage_mb: float
    remaining_capacity: int
    max_total_size: int
    max_document_size: int


class DocumentListResponse(BaseModel):
    success: bool = True
    documents: list[DocumentSummary]
    stats: StoreStatsResponse
    privacy: str = PRIVACY_NOTICE


class DocumentResponse(BaseModel):
    success: bool = True
    document: DocumentDetail


class DeleteResponse(BaseModel):
    success: bool = True
    message: str


class ClearResponse(BaseModel):
    success: bool = True
    documents_removed: int
    vectors_removed: int
    message: str


class ChunkRequest(BaseModel):
    """Chunking configuration; omitted fields use the configured defaults."""

    chunk_size: int | None = None
    chunk_overlap: int | None = None
    strategy: str | None = None
    min_chunk_size: int | None = None


class ChunkConfigResponse(BaseModel):
    chunk_size: int
    chunk_overlap: int
    strategy: str
    min_chunk_size: int


class ChunkPreview(BaseModel):
    id: str
    index: int
    text: str
    length: int
    start_char: int
    end_char: int

    @classmethod
    def from_chunk(cls, chunk: Chunk) -> "ChunkPreview":
        text = chunk.text[:PREVIEW_CHARS]
        if len(chunk.text) > PREVIEW_CHARS:
            text += "..."
        return cls(
            id=chunk.id,
            index=chunk.index,
            text=text,
            length=len(chunk.text),
            start_char=chunk.start_char,
            end_char=chunk.end_char,
        )


class ChunkStatistics(BaseModel):
    min_chunk_size: int
    max_chunk_size: int
    total_characters: int

    @classmethod
    def from_statistics(cls, stats: ChunkingStatistics) -> "ChunkStatistics":
        return cls(
            min_chunk_size=stats.min_chunk_size,
            max_chunk_size=stats.max_chunk_size,
            total_characters=stats.total_characters,
        )


class ChunkResponse(BaseModel):
    success: bool = True
    document_id: str
    file_name: str
    chunk_count: int
    average_chunk_size: int
    strategy: str
    processing_time_ms: int
    statistics: ChunkStatistics
    config: ChunkConfigResponse
    chunks: list[ChunkPreview]


class ChunkStatusResponse(BaseModel):
    success: bool = True
    document_id: str
    file_name: str
    has_chunks: bool
    chunk_count: int
    chunks: list[ChunkPreview]


def _store_stats(pipeline: Pipeline) -> StoreStatsResponse:
    store = pipeline.document_store
    stats = store.get_stats()
    return StoreStatsResponse(
        total_documents=stats.total_documents,
        total_size=stats.total_size,
        total_text_length=stats.total_text_length,
        memory_usage_mb=round(stats.memory_usage_mb, 2),
        remaining_capacity=store.get_remaining_capacity(),
        max_total_size=store.max_total_size,
        max_document_size=store.max_document_size,
    )


def _get_document(pipeline: Pipeline, document_id: str) -> Document:
    document = pipeline.document_store.get(document_id)
    if document is None:
        raise DocumentNotFoundError(document_id)
    return document


# ============================================
# Document Endpoints
# ============================================


@router.post("/upload", response_model=UploadResponse)
async def upload_document(
    pipeline: Pipeline,
    file: UploadFile = File(...),
    force_ocr: bool = Form(False),
    ocr_model: str | None = Form(None),
):
    """Upload a file and extract its text.

    Supported: PDF (text layer or OCR), images (OCR), and text formats
    (TXT, MD, JSON, CSV, HTML, XML, LOG, YAML).
    """
    content = await file.read()
    document = await pipeline.processor.upload(
        content,
        file.filename or "upload",
        file.content_type,
        ocr_model=ocr_model,
        force_ocr=force_ocr,
    )

    return UploadResponse(
        document=DocumentSummary.from_document(document),
        text_preview=document.extracted_text[:500],
    )


@router.get("", response_model=DocumentListResponse)
async def list_documents(pipeline: Pipeline):
    """List all documents held in memory."""
    return DocumentListResponse(
        documents=[
            DocumentSummary.from_document(doc) for doc in pipeline.document_store.get_all()
        ],
        stats=_store_stats(pipeline),
    )


@router.get("/stats", response_model=StoreStatsResponse)
async def document_stats(pipeline: Pipeline):
    """Aggregate document store statistics."""
    return _store_stats(pipeline)


@router.get("/search", response_model=list[DocumentSummary])
async def search_documents(
    pipeline: Pipeline,
    q: str = Query(..., min_length=1, description="Case-insensitive substring"),
):
    """Find documents whose file name or text contains ``q``."""
    return [DocumentSummary.from_document(doc) for doc in pipeline.document_store.search(q)]


@router.post("/clear", response_model=ClearResponse)
async def clear_documents(pipeline: Pipeline):
    """Delete every document and indexed vector."""
    documents, vectors = await pipeline.processor.clear()
    return ClearResponse(
        documents_removed=documents,
        vectors_removed=vectors,
        message=f"Cleared {documents} documents and {vectors} vectors from memory",
    )


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(document_id: str, pipeline: Pipeline):
    """Get a document including its extracted text."""
    document = _get_document(pipeline, document_id)
    summary = DocumentSummary.from_document(document)
    return DocumentResponse(
        document=DocumentDetail(**summary.model_dump(), extracted_text=document.extracted_text)
    )


@router.delete("/{document_id}", response_model=DeleteResponse)
async def delete_document(document_id: str, pipeline: Pipeline):
    """Delete a document and its indexed vectors."""
    if not await pipeline.processor.delete_document(document_id):
        raise DocumentNotFoundError(document_id)
    return DeleteResponse(message=f"Document {document_id} deleted")


# ============================================
# Chunking Endpoints
# ============================================


@router.post("/{document_id}/process", response_model=ChunkResponse)
async def chunk_document(
    document_id: str,
    pipeline: Pipeline,
    body: ChunkRequest | None = None,
):
    """Split a document into chunks, replacing any previous chunks."""
    body = body or ChunkRequest()
    settings = pipeline.settings
    config = ChunkingConfig(
        chunk_size=settings.chunk_size if body.chunk_size is None else body.chunk_size,
        chunk_overlap=settings.chunk_overlap if body.chunk_overlap is None else body.chunk_overlap,
        strategy=body.strategy or settings.chunk_strategy,
        min_chunk_size=(
            settings.min_chunk_size if body.min_chunk_size is None else body.min_chunk_size
        ),
    )

    result = await pipeline.processor.chunk_document(document_id, config)
    document = _get_document(pipeline, document_id)

    return ChunkResponse(
        document_id=document.id,
        file_name=document.file_name,
        chunk_count=result.total_chunks,
        average_chunk_size=result.average_chunk_size,
        strategy=result.strategy,
        processing_time_ms=result.processing_time_ms,
        statistics=ChunkStatistics.from_statistics(result.statistics),
        config=ChunkConfigResponse(
            chunk_size=config.chunk_size,
            chunk_overlap=config.chunk_overlap,
            strategy=config.strategy,
            min_chunk_size=config.min_chunk_size,
        ),
        chunks=[ChunkPreview.from_chunk(c) for c in result.chunks[:PREVIEW_CHUNKS]],
    )


@router.get("/{document_id}/process", response_model=ChunkStatusResponse)
async def chunk_status(document_id: str, pipeline: Pipeline):
    """Chunking status with a preview of the first chunks."""
    document = _get_document(pipeline, document_id)
    chunks = document.chunks or []

    return ChunkStatusResponse(
        document_id=document.id,
        file_name=document.file_name,
        has_chunks=document.has_chunks,
        chunk_count=document.chunk_count,
        chunks=[ChunkPreview.from_chunk(c) for c in chunks[:PREVIEW_CHUNKS]],
    )
