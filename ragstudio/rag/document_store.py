"""In-memory document store.

Holds ingested documents for the lifetime of the process. Nothing is
written to disk; all documents are lost on restart.
"""

import logging
import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime

from ragstudio.rag.chunking import Chunk
from ragstudio.rag.errors import CapacityExceededError, InvalidInputError
from ragstudio.rag.extractors import ExtractionMethod

logger = logging.getLogger(__name__)

MB = 1024 * 1024

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_document_id() -> str:
    """``doc_<epoch ms>_<7 random base36 chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(7))
    return f"doc_{int(time.time() * 1000)}_{suffix}"


@dataclass
class Document:
    """An ingested document and its derived chunks and embeddings."""

    id: str
    file_name: str
    file_type: str
    file_size: int
    extracted_text: str
    extraction_method: ExtractionMethod
    extraction_model: str
    processing_time_ms: int
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    mime_type: str | None = None
    page_count: int | None = None
    content_hash: str | None = None
    chunks: list[Chunk] | None = None
    chunk_count: int = 0
    embeddings: list[list[float]] | None = None
    embedding_model: str | None = None

    @property
    def has_chunks(self) -> bool:
        return bool(self.chunks)

    @property
    def has_embeddings(self) -> bool:
        return bool(self.embeddings)


@dataclass
class DocumentSummary:
    id: str
    file_name: str
    size: int
    method: ExtractionMethod


@dataclass
class DocumentStoreStats:
    total_documents: int
    total_size: int
    total_text_length: int
    memory_usage_mb: float
    documents: list[DocumentSummary]


class DocumentStore:
    """Capacity-bounded keyed collection of documents.

    Both budgets are checked before mutation, so a rejected ``add`` leaves
    the store unchanged.
    """

    def __init__(self, max_total_size: int = 50 * MB, max_document_size: int = 10 * MB):
        self.max_total_size = max_total_size
        self.max_document_size = max_document_size
        self._documents: dict[str, Document] = {}

    def add(self, document: Document) -> None:
        """Add a document.

        Raises:
            CapacityExceededError: If the document or the store budget would be exceeded
        """
        if document.file_size > self.max_document_size:
            raise CapacityExceededError(
                f"Document size ({document.file_size / MB:.2f}MB) exceeds maximum "
                f"allowed size ({self.max_document_size / MB:.0f}MB)",
                per_document=True,
            )

        current_size = self.get_total_size()
        if current_size + document.file_size > self.max_total_size:
            raise CapacityExceededError(
                f"Adding this document would exceed total memory limit "
                f"({self.max_total_size / MB:.0f}MB). Current: {current_size / MB:.2f}MB"
            )

        self._documents[document.id] = document
        logger.info(f"[DocumentStore] Added document: {document.file_name} ({document.id})")

    def get(self, document_id: str) -> Document | None:
        return self._documents.get(document_id)

    def get_all(self) -> list[Document]:
        return list(self._documents.values())

    def remove(self, document_id: str) -> bool:
        """Remove a document. Returns whether it was present."""
        removed = self._documents.pop(document_id, None) is not None
        if removed:
            logger.info(f"[DocumentStore] Removed document: {document_id}")
        return removed

    def clear(self) -> int:
        """Remove every document. Returns how many were removed."""
        count = len(self._documents)
        self._documents.clear()
        logger.info(f"[DocumentStore] Cleared {count} documents from memory")
        return count

    def get_total_size(self) -> int:
        return sum(doc.file_size for doc in self._documents.values())

    def get_stats(self) -> DocumentStoreStats:
        docs = self.get_all()
        total_size = self.get_total_size()
        total_text_length = sum(len(doc.extracted_text) for doc in docs)

        # Rough estimate: raw bytes plus two bytes per character of text
        memory_usage_mb = (total_size + total_text_length * 2) / MB

        return DocumentStoreStats(
            total_documents=len(docs),
            total_size=total_size,
            total_text_length=total_text_length,
            memory_usage_mb=memory_usage_mb,
            documents=[
                DocumentSummary(
                    id=doc.id,
                    file_name=doc.file_name,
                    size=doc.file_size,
                    method=doc.extraction_method,
                )
                for doc in docs
            ],
        )

    def has_capacity(self, size: int) -> bool:
        """Whether a document of ``size`` bytes would currently be accepted."""
        if size > self.max_document_size:
            return False
        return self.get_total_size() + size <= self.max_total_size

    def get_remaining_capacity(self) -> int:
        return max(0, self.max_total_size - self.get_total_size())

    def update_chunks(self, document_id: str, chunks: list[Chunk]) -> bool:
        """Replace a document's chunks. Returns False for an unknown id."""
        doc = self._documents.get(document_id)
        if doc is None:
            return False

        doc.chunks = chunks
        doc.chunk_count = len(chunks)
        return True

    def update_embeddings(
        self, document_id: str, embeddings: list[list[float]], model: str
    ) -> bool:
        """Replace a document's embeddings. Returns False for an unknown id.

        Raises:
            InvalidInputError: If the embedding count differs from the chunk count
        """
        doc = self._documents.get(document_id)
        if doc is None:
            return False

        chunk_count = len(doc.chunks or [])
        if len(embeddings) != chunk_count:
            raise InvalidInputError(
                f"Embeddings count ({len(embeddings)}) does not match "
                f"chunks count ({chunk_count})"
            )

        doc.embeddings = embeddings
        doc.embedding_model = model
        return True

    def search(self, query: str) -> list[Document]:
        """Case-insensitive substring match on file name or extracted text."""
        needle = query.lower()
        return [
            doc
            for doc in self._documents.values()
            if needle in doc.file_name.lower() or needle in doc.extracted_text.lower()
        ]

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._documents
