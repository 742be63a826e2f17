"""Document processor for RAG ingestion.

Drives a document through its lifecycle: upload and extraction, chunking,
embedding, and indexing into the vector store.
"""

import dataclasses
import hashlib
import logging
import mimetypes
from dataclasses import dataclass
from datetime import UTC, datetime

from ragstudio.observability.metrics import (
    DOCUMENTS_INGESTED,
    EXTRACTION_FAILURES,
    track_operation,
)
from ragstudio.rag.chunking import ChunkingConfig, ChunkingResult, chunk_text
from ragstudio.rag.document_store import MB, Document, DocumentStore, generate_document_id
from ragstudio.rag.embedder import BatchEmbeddingResult, Embedder, ProgressCallback
from ragstudio.rag.errors import (
    CapacityExceededError,
    DocumentNotFoundError,
    EmbeddingError,
    ExtractionError,
    IndexingError,
    IndexingPreconditionError,
    UnknownModelError,
)
from ragstudio.rag.extractors import DocumentExtractor, get_file_extension
from ragstudio.rag.vector_store import IndexDocumentResult, MemoryVectorStore

logger = logging.getLogger(__name__)


@dataclass
class EmbeddingStatus:
    """Lifecycle state of a document's chunks and embeddings."""

    document_id: str
    file_name: str
    chunk_count: int
    has_chunks: bool
    has_embeddings: bool
    embedding_model: str | None = None
    dimensions: int | None = None
    embedding_count: int = 0
    indexed: bool = False

    @property
    def ready(self) -> bool:
        return self.has_chunks and self.has_embeddings


class DocumentProcessor:
    """Processes documents for RAG ingestion.

    Pipeline:
    1. Extract text from the uploaded file
    2. Split into chunks
    3. Generate embeddings
    4. Index in the vector store
    """

    def __init__(
        self,
        document_store: DocumentStore,
        vector_store: MemoryVectorStore,
        extractor: DocumentExtractor,
        embedder: Embedder,
    ):
        self.document_store = document_store
        self.vector_store = vector_store
        self.extractor = extractor
        self.embedder = embedder

    def _get(self, document_id: str) -> Document:
        document = self.document_store.get(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document

    async def upload(
        self,
        content: bytes,
        file_name: str,
        mime_type: str | None = None,
        *,
        ocr_model: str | None = None,
        force_ocr: bool = False,
    ) -> Document:
        """Extract text from an uploaded file and store the document.

        Raises:
            CapacityExceededError: If the file or the store budget is too large
            ExtractionError: If no text could be extracted
        """
        file_size = len(content)
        logger.info(f"[Processor] Uploading {file_name} ({file_size} bytes)")

        if file_size > self.document_store.max_document_size:
            raise CapacityExceededError(
                f"File size ({file_size / MB:.2f}MB) exceeds maximum allowed size "
                f"({self.document_store.max_document_size / MB:.0f}MB)",
                per_document=True,
            )

        if not self.document_store.has_capacity(file_size):
            remaining = self.document_store.get_remaining_capacity()
            raise CapacityExceededError(
                f"Not enough memory capacity. Remaining: {remaining / MB:.2f}MB. "
                "Delete some documents first."
            )

        file_type = get_file_extension(file_name)

        async with track_operation("extract"):
            result = await self.extractor.extract(
                content, file_name, ocr_model=ocr_model, force_ocr=force_ocr
            )

        if not result.success:
            EXTRACTION_FAILURES.labels(file_type or "none").inc()
            logger.warning(f"[Processor] Extraction failed for {file_name}: {result.error}")
            raise ExtractionError(result.error or "Failed to extract text from document")

        document = Document(
            id=generate_document_id(),
            file_name=file_name,
            file_type=file_type,
            file_size=file_size,
            extracted_text=result.text,
            extraction_method=result.method,
            extraction_model=result.model,
            processing_time_ms=result.processing_time_ms,
            timestamp=datetime.now(UTC).isoformat(),
            mime_type=mime_type or mimetypes.guess_type(file_name)[0],
            page_count=result.page_count,
            content_hash=self.compute_content_hash(content),
        )
        self.document_store.add(document)
        DOCUMENTS_INGESTED.labels(result.method.value).inc()

        logger.info(
            f"[Processor] Extracted {len(result.text)} characters from {file_name} "
            f"via {result.method.value} in {result.processing_time_ms}ms"
        )
        return document

    async def chunk_document(
        self, document_id: str, config: ChunkingConfig | None = None
    ) -> ChunkingResult:
        """Chunk a document's text, replacing any previous chunks.

        Raises:
            DocumentNotFoundError: If the document does not exist
            InvalidInputError: On an invalid config or empty text
        """
        document = self._get(document_id)
        config = config or ChunkingConfig()

        async with track_operation("chunk"):
            result = chunk_text(document.extracted_text, document_id, config)

        self.document_store.update_chunks(document_id, result.chunks)
        # Embeddings of the previous chunks no longer line up
        document.embeddings = None
        document.embedding_model = None

        logger.info(
            f"[Processor] Chunked {document.file_name}: {result.total_chunks} chunks "
            f"({config.strategy}, avg {result.average_chunk_size} chars) "
            f"in {result.processing_time_ms}ms"
        )
        return result

    async def embed_document(
        self,
        document_id: str,
        model_name: str,
        on_progress: ProgressCallback | None = None,
    ) -> tuple[Document, BatchEmbeddingResult]:
        """Embed every chunk of a document, replacing any previous embeddings.

        Raises:
            DocumentNotFoundError: If the document does not exist
            IndexingPreconditionError: If the document has not been chunked
            UnknownModelError: If the model is not in the registry
            EmbeddingError: If the provider failed after retries
        """
        document = self._get(document_id)

        if not document.chunks:
            raise IndexingPreconditionError(
                "Document has no chunks. Please process the document first."
            )

        if self.embedder.get_model_info(model_name) is None:
            available = ", ".join(m.name for m in self.embedder.get_available_models())
            raise UnknownModelError(f"Unknown model: {model_name}. Available: {available}")

        logger.info(
            f"[Processor] Generating embeddings for {document.file_name} "
            f"({len(document.chunks)} chunks) with {model_name}"
        )

        async with track_operation("embed"):
            result = await self.embedder.embed_batch(
                [chunk.text for chunk in document.chunks], model_name, on_progress
            )

        if not result.success:
            raise EmbeddingError(result.error or "Failed to generate embeddings")

        chunks = [
            dataclasses.replace(chunk, embedding=vector)
            for chunk, vector in zip(document.chunks, result.embeddings, strict=True)
        ]
        self.document_store.update_chunks(document_id, chunks)
        self.document_store.update_embeddings(document_id, result.embeddings, model_name)

        logger.info(
            f"[Processor] Generated {len(result.embeddings)} embeddings "
            f"({result.dimensions}D) in {result.processing_time_ms}ms"
        )
        return document, result

    async def index_document(self, document_id: str) -> IndexDocumentResult:
        """Index a document's embeddings, replacing any previously indexed vectors.

        Raises:
            DocumentNotFoundError: If the document does not exist
            IndexingPreconditionError: If chunks or embeddings are missing or differ in count
            IndexingError: If the vector store rejected the vectors
        """
        document = self._get(document_id)

        if not document.embeddings:
            raise IndexingPreconditionError(
                "Document has no embeddings. Please generate embeddings first."
            )

        if not document.chunks:
            raise IndexingPreconditionError(
                "Document has no chunks. Please process the document first."
            )

        if len(document.embeddings) != len(document.chunks):
            raise IndexingPreconditionError(
                f"Embeddings count ({len(document.embeddings)}) does not match "
                f"chunks count ({len(document.chunks)})"
            )

        logger.info(
            f"[Processor] Indexing document {document.file_name} "
            f"({len(document.embeddings)} vectors)"
        )

        metadata = [
            {
                "document_id": document.id,
                "file_name": document.file_name,
                "chunk_index": chunk.index,
                "start_char": chunk.start_char,
                "end_char": chunk.end_char,
            }
            for chunk in document.chunks
        ]

        async with track_operation("index"):
            result = self.vector_store.index_document(
                document_id,
                document.embeddings,
                [chunk.text for chunk in document.chunks],
                metadata,
            )

        if not result.success:
            raise IndexingError(result.error or "Failed to index document")

        return result

    def embedding_status(self, document_id: str) -> EmbeddingStatus:
        """Report whether a document is chunked, embedded and indexed.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        document = self._get(document_id)
        embeddings = document.embeddings or []

        return EmbeddingStatus(
            document_id=document.id,
            file_name=document.file_name,
            chunk_count=document.chunk_count,
            has_chunks=document.has_chunks,
            has_embeddings=document.has_embeddings,
            embedding_model=document.embedding_model,
            dimensions=len(embeddings[0]) if embeddings else None,
            embedding_count=len(embeddings),
            indexed=self.vector_store.has_document(document_id),
        )

    async def delete_document(self, document_id: str) -> bool:
        """Delete a document and its indexed vectors.

        Returns:
            True if the document existed
        """
        removed = self.document_store.remove(document_id)
        self.vector_store.remove_document(document_id)
        return removed

    async def clear(self) -> tuple[int, int]:
        """Delete every document and vector.

        Returns:
            (documents removed, vectors removed)
        """
        documents = self.document_store.clear()
        vectors = self.vector_store.clear()
        return documents, vectors

    @staticmethod
    def compute_content_hash(content: bytes) -> str:
        """Compute SHA-256 hash for content deduplication."""
        return hashlib.sha256(content).hexdigest()
