"""
Tests for the document processor.

Tests cover:
- Upload with capacity checks and extraction failures
- The chunk -> embed -> index lifecycle
- Precondition errors and re-indexing
"""

import hashlib

import httpx
import pytest

from ragstudio.rag.chunking import ChunkingConfig
from ragstudio.rag.document_store import DocumentStore
from ragstudio.rag.errors import (
    CapacityExceededError,
    DocumentNotFoundError,
    EmbeddingError,
    ExtractionError,
    IndexingPreconditionError,
    UnknownModelError,
)
from ragstudio.rag.extractors import (
    DocumentExtractor,
    ExtractionMethod,
    OCRExtractor,
    PDFExtractor,
    PlainTextExtractor,
)
from ragstudio.rag.processor import DocumentProcessor
from ragstudio.rag.vector_store import MemoryVectorStore

MODEL = "all-MiniLM-L6-v2"

TEXT = (
    "Retrieval augmented generation grounds answers in documents. "
    "Documents are split into chunks before embedding. "
    "Each chunk is embedded and stored as a vector. "
    "Queries are embedded with the same model. "
    "The closest chunks become the context for the answer. "
) * 4


@pytest.fixture
def processor(make_embedder) -> DocumentProcessor:
    ocr = OCRExtractor(None)
    extractor = DocumentExtractor(PlainTextExtractor(), ocr, PDFExtractor(ocr))
    return DocumentProcessor(
        DocumentStore(max_total_size=4096, max_document_size=2048),
        MemoryVectorStore(),
        extractor,
        make_embedder(batch_size=4),
    )


class TestUpload:
    """Tests for upload and extraction."""

    async def test_upload_text_file(self, processor: DocumentProcessor):
        document = await processor.upload(b"hello", "hello.txt")

        assert document.id.startswith("doc_")
        assert document.extracted_text == "hello"
        assert document.extraction_method == ExtractionMethod.DIRECT
        assert document.mime_type == "text/plain"
        assert document.content_hash == hashlib.sha256(b"hello").hexdigest()
        assert processor.document_store.get(document.id) is document

    async def test_oversized_file(self, processor: DocumentProcessor):
        with pytest.raises(CapacityExceededError) as exc_info:
            await processor.upload(b"x" * 3000, "big.txt")

        assert exc_info.value.status_code == 413
        assert len(processor.document_store) == 0

    async def test_store_full(self, processor: DocumentProcessor):
        await processor.upload(b"a" * 2000, "one.txt")
        await processor.upload(b"b" * 2000, "two.txt")

        with pytest.raises(CapacityExceededError, match="Not enough memory capacity"):
            await processor.upload(b"c" * 200, "three.txt")

        assert len(processor.document_store) == 2

    async def test_extraction_failure(self, processor: DocumentProcessor):
        with pytest.raises(ExtractionError, match="Unsupported file type"):
            await processor.upload(b"MZ", "program.exe")

        assert len(processor.document_store) == 0


class TestLifecycle:
    """Tests for chunking, embedding and indexing."""

    async def test_full_pipeline(self, processor: DocumentProcessor):
        # Arrange
        document = await processor.upload(TEXT.encode(), "rag.txt")

        # Act
        chunking = await processor.chunk_document(
            document.id, ChunkingConfig(chunk_size=200, chunk_overlap=40)
        )
        _, embedding = await processor.embed_document(document.id, MODEL)
        indexed = await processor.index_document(document.id)

        # Assert
        assert chunking.total_chunks > 1
        assert embedding.success
        assert len(embedding.embeddings) == chunking.total_chunks
        assert indexed.vectors_indexed == chunking.total_chunks
        assert indexed.dimensions == 384

        status = processor.embedding_status(document.id)
        assert status.ready and status.indexed
        assert status.embedding_model == MODEL
        assert status.dimensions == 384

        stored = processor.document_store.get(document.id)
        assert all(chunk.embedding is not None for chunk in stored.chunks)

        entry = processor.vector_store.get_document_vectors(document.id)[0]
        assert entry.metadata["file_name"] == "rag.txt"
        assert entry.metadata["chunk_index"] == 0

    async def test_reindex_keeps_vector_count(self, processor: DocumentProcessor):
        document = await processor.upload(TEXT.encode(), "rag.txt")
        await processor.chunk_document(document.id)
        await processor.embed_document(document.id, MODEL)

        first = await processor.index_document(document.id)
        second = await processor.index_document(document.id)

        assert first.vectors_indexed == second.vectors_indexed
        assert processor.vector_store.size() == second.vectors_indexed

    async def test_rechunking_discards_embeddings(self, processor: DocumentProcessor):
        document = await processor.upload(TEXT.encode(), "rag.txt")
        await processor.chunk_document(document.id)
        await processor.embed_document(document.id, MODEL)

        await processor.chunk_document(document.id, ChunkingConfig(chunk_size=100, chunk_overlap=0))

        assert not processor.embedding_status(document.id).has_embeddings
        with pytest.raises(IndexingPreconditionError):
            await processor.index_document(document.id)

    async def test_delete_and_clear(self, processor: DocumentProcessor):
        document = await processor.upload(TEXT.encode(), "rag.txt")
        await processor.chunk_document(document.id)
        await processor.embed_document(document.id, MODEL)
        await processor.index_document(document.id)
        other = await processor.upload(b"another", "other.txt")

        assert await processor.delete_document(document.id) is True
        assert await processor.delete_document(document.id) is False
        assert not processor.vector_store.has_document(document.id)
        assert await processor.clear() == (1, 0)
        assert processor.document_store.get(other.id) is None


class TestPreconditions:
    """Tests for lifecycle ordering errors."""

    async def test_unknown_document(self, processor: DocumentProcessor):
        with pytest.raises(DocumentNotFoundError):
            await processor.chunk_document("doc_missing")
        with pytest.raises(DocumentNotFoundError):
            processor.embedding_status("doc_missing")

    async def test_embed_before_chunking(self, processor: DocumentProcessor):
        document = await processor.upload(b"hello", "hello.txt")

        with pytest.raises(IndexingPreconditionError, match="no chunks"):
            await processor.embed_document(document.id, MODEL)

    async def test_index_before_embedding(self, processor: DocumentProcessor):
        document = await processor.upload(b"hello", "hello.txt")
        await processor.chunk_document(document.id)

        with pytest.raises(IndexingPreconditionError, match="no embeddings"):
            await processor.index_document(document.id)

    async def test_unknown_model(self, processor: DocumentProcessor):
        document = await processor.upload(b"hello", "hello.txt")
        await processor.chunk_document(document.id)

        with pytest.raises(UnknownModelError):
            await processor.embed_document(document.id, "not-a-model")

    async def test_provider_failure_leaves_document_unembedded(self, make_embedder):
        # Arrange
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="down")

        ocr = OCRExtractor(None)
        processor = DocumentProcessor(
            DocumentStore(),
            MemoryVectorStore(),
            DocumentExtractor(PlainTextExtractor(), ocr, PDFExtractor(ocr)),
            make_embedder(handler, retry_attempts=2),
        )
        document = await processor.upload(b"hello", "hello.txt")
        await processor.chunk_document(document.id)

        # Act
        with pytest.raises(EmbeddingError, match="Failed to process batch 1"):
            await processor.embed_document(document.id, MODEL)

        # Assert
        assert not processor.embedding_status(document.id).has_embeddings
