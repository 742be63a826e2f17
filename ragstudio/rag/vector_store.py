"""In-memory vector store.

Exact cosine-similarity search over every stored vector. Vectors live in
process memory only and are lost on restart.
"""

import json
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from ragstudio.observability.metrics import INDEXED_VECTORS
from ragstudio.rag.errors import DimensionMismatchError

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Cosine similarity of two vectors; 0.0 when either has zero norm."""
    a_arr = np.asarray(a, dtype=np.float64)
    b_arr = np.asarray(b, dtype=np.float64)

    if a_arr.shape != b_arr.shape:
        raise DimensionMismatchError(
            f"Vectors must have the same dimensions ({a_arr.size} != {b_arr.size})"
        )

    norm_a = np.linalg.norm(a_arr)
    norm_b = np.linalg.norm(b_arr)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(a_arr, b_arr) / (norm_a * norm_b))


@dataclass
class VectorEntry:
    id: str
    document_id: str
    chunk_index: int
    vector: np.ndarray
    text: str
    metadata: dict[str, Any] | None = None


@dataclass
class SearchResult:
    id: str
    document_id: str
    chunk_index: int
    text: str
    score: float
    metadata: dict[str, Any] | None = None


@dataclass
class VectorStoreStats:
    total_vectors: int
    dimensions: int | None
    memory_usage_mb: float
    document_count: int
    indexed_documents: list[str] = field(default_factory=list)


@dataclass
class IndexDocumentResult:
    success: bool
    document_id: str
    vectors_indexed: int
    dimensions: int
    processing_time_ms: int
    error: str | None = None


class MemoryVectorStore:
    """Per-document bulk indexing with exhaustive top-K search.

    All stored vectors share one dimensionality; mixing embedding models
    of different sizes is rejected at indexing and search time.
    """

    def __init__(self):
        self._vectors: dict[str, VectorEntry] = {}
        self._document_vectors: dict[str, list[str]] = {}

    @property
    def dimensions(self) -> int | None:
        first = next(iter(self._vectors.values()), None)
        return None if first is None else int(first.vector.size)

    def index_document(
        self,
        document_id: str,
        embeddings: list[list[float]],
        texts: list[str],
        metadata: list[dict[str, Any]] | None = None,
    ) -> IndexDocumentResult:
        """Index a document's embeddings, replacing any previous set."""
        start = time.perf_counter()

        def failure(error: str) -> IndexDocumentResult:
            logger.warning(f"[VectorStore] Indexing {document_id} rejected: {error}")
            return IndexDocumentResult(
                success=False,
                document_id=document_id,
                vectors_indexed=0,
                dimensions=0,
                processing_time_ms=int((time.perf_counter() - start) * 1000),
                error=error,
            )

        if not embeddings:
            return failure("No embeddings provided")

        if len(embeddings) != len(texts):
            return failure("Embeddings and texts length mismatch")

        if metadata is not None and len(metadata) != len(embeddings):
            return failure("Embeddings and metadata length mismatch")

        dimensions = len(embeddings[0])
        if dimensions == 0 or any(len(vector) != dimensions for vector in embeddings):
            return failure("Embeddings have inconsistent dimensions")

        existing = self._dimensions_excluding(document_id)
        if existing is not None and existing != dimensions:
            return failure(
                f"Embedding dimensions ({dimensions}) do not match the indexed vectors "
                f"({existing}). Re-embed with the same model or clear the store."
            )

        # Replace, never merge
        self.remove_document(document_id)

        vector_ids = []
        for i, (vector, text) in enumerate(zip(embeddings, texts, strict=True)):
            vector_id = f"{document_id}_chunk_{i}"
            self._vectors[vector_id] = VectorEntry(
                id=vector_id,
                document_id=document_id,
                chunk_index=i,
                vector=np.asarray(vector, dtype=np.float64),
                text=text,
                metadata=metadata[i] if metadata else None,
            )
            vector_ids.append(vector_id)

        self._document_vectors[document_id] = vector_ids
        INDEXED_VECTORS.set(len(self._vectors))

        processing_time_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            f"[VectorStore] Indexed document {document_id}: {len(vector_ids)} vectors "
            f"({dimensions}D) in {processing_time_ms}ms"
        )

        return IndexDocumentResult(
            success=True,
            document_id=document_id,
            vectors_indexed=len(vector_ids),
            dimensions=dimensions,
            processing_time_ms=processing_time_ms,
        )

    def _dimensions_excluding(self, document_id: str) -> int | None:
        for entry in self._vectors.values():
            if entry.document_id != document_id:
                return int(entry.vector.size)
        return None

    def search(
        self, query_vector: list[float], top_k: int = 5, min_score: float = 0.0
    ) -> list[SearchResult]:
        """Return the ``top_k`` entries scoring at least ``min_score``, best first.

        Raises:
            DimensionMismatchError: If the query does not match the stored dimensions
        """
        if not self._vectors:
            return []

        query = np.asarray(query_vector, dtype=np.float64)
        dimensions = self.dimensions
        if query.size != dimensions:
            raise DimensionMismatchError(
                f"Query vector has {query.size} dimensions but the store holds "
                f"{dimensions}-dimensional vectors. Use the embedding model the "
                f"documents were indexed with."
            )

        results = []
        for entry in self._vectors.values():
            score = cosine_similarity(query, entry.vector)
            if score >= min_score:
                results.append(
                    SearchResult(
                        id=entry.id,
                        document_id=entry.document_id,
                        chunk_index=entry.chunk_index,
                        text=entry.text,
                        score=score,
                        metadata=entry.metadata,
                    )
                )

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:top_k]

    def remove_document(self, document_id: str) -> bool:
        """Remove all of a document's vectors. Returns whether any were indexed."""
        vector_ids = self._document_vectors.pop(document_id, None)
        if vector_ids is None:
            return False

        for vector_id in vector_ids:
            self._vectors.pop(vector_id, None)

        INDEXED_VECTORS.set(len(self._vectors))
        logger.info(f"[VectorStore] Removed {len(vector_ids)} vectors for document {document_id}")
        return True

    def clear(self) -> int:
        """Remove every vector. Returns how many were removed."""
        count = len(self._vectors)
        self._vectors.clear()
        self._document_vectors.clear()
        INDEXED_VECTORS.set(0)
        logger.info(f"[VectorStore] Cleared {count} vectors from memory")
        return count

    def get_document_vectors(self, document_id: str) -> list[VectorEntry]:
        return [
            self._vectors[vector_id]
            for vector_id in self._document_vectors.get(document_id, [])
            if vector_id in self._vectors
        ]

    def has_document(self, document_id: str) -> bool:
        return document_id in self._document_vectors

    def get_stats(self) -> VectorStoreStats:
        memory_bytes = 0
        for entry in self._vectors.values():
            # 8 bytes per float, 2 per text character, plus object overhead
            memory_bytes += entry.vector.size * 8
            memory_bytes += len(entry.text) * 2
            if entry.metadata:
                memory_bytes += len(json.dumps(entry.metadata)) * 2
            memory_bytes += 200

        return VectorStoreStats(
            total_vectors=len(self._vectors),
            dimensions=self.dimensions,
            memory_usage_mb=memory_bytes / (1024 * 1024),
            document_count=len(self._document_vectors),
            indexed_documents=list(self._document_vectors),
        )

    def size(self) -> int:
        return len(self._vectors)

    def __len__(self) -> int:
        return len(self._vectors)
