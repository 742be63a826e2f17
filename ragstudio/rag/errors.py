"""Error taxonomy for the RAG pipeline.

Every error carries a machine-readable ``kind`` and the HTTP status the API
layer maps it to.
"""


class RAGError(Exception):
    """Base class for pipeline errors."""

    kind = "internal"
    status_code = 500

    def __init__(self, message: str, details: list[str] | None = None):
        self.message = message
        self.details = details or []
        super().__init__(message)


class InvalidInputError(RAGError):
    """Malformed or out-of-range input."""

    kind = "validation"
    status_code = 400


class DimensionMismatchError(InvalidInputError):
    """Vectors of different dimensionality were mixed."""


class CapacityExceededError(RAGError):
    """Document or total store budget exceeded."""

    kind = "capacity"
    status_code = 507

    def __init__(self, message: str, per_document: bool = False):
        super().__init__(message)
        self.per_document = per_document
        if per_document:
            self.status_code = 413


class DocumentNotFoundError(RAGError):
    """Operation referenced an unknown document id."""

    kind = "not_found"
    status_code = 404

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")


class ExtractionError(RAGError):
    """Raised when text extraction fails."""

    kind = "extraction"
    status_code = 422


class EmbeddingError(RAGError):
    """Embedding provider failure."""

    kind = "embedding"
    status_code = 502


class UnknownModelError(EmbeddingError):
    status_code = 400


class MissingCredentialError(EmbeddingError):
    status_code = 503


class IndexingPreconditionError(RAGError):
    """Document is missing chunks or embeddings, or their counts differ."""

    kind = "indexing"
    status_code = 400


class IndexingError(RAGError):
    kind = "indexing"
    status_code = 500


class EmptyIndexError(RAGError):
    kind = "empty_index"
    status_code = 400

    def __init__(self, message: str = "No documents indexed. Please index documents first."):
        super().__init__(message)


class GenerationError(RAGError):
    """Generation provider failure. Recovered by the extractive fallback."""

    kind = "generation"
    status_code = 502
