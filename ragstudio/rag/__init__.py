"""RAG (Retrieval-Augmented Generation) package.

Components:
- DocumentExtractor: Text extraction from PDF, images (OCR) and text formats
- DocumentStore: Capacity-bounded in-memory document collection
- Chunker: Document chunking strategies
- Embedder: Hugging Face embedding service with batching and retries
- MemoryVectorStore: Exact cosine-similarity search
- Retriever: Search and grounded answer generation
- Processor: Document lifecycle (upload, chunk, embed, index)
"""

from ragstudio.rag.chunking import Chunk, ChunkingConfig, chunk_text, get_chunker
from ragstudio.rag.document_store import Document, DocumentStore
from ragstudio.rag.embedder import EMBEDDING_MODELS, Embedder
from ragstudio.rag.errors import RAGError
from ragstudio.rag.extractors import DocumentExtractor
from ragstudio.rag.pipeline import RAGPipeline, build_pipeline
from ragstudio.rag.processor import DocumentProcessor
from ragstudio.rag.retriever import RAGAnswer, Retriever
from ragstudio.rag.vector_store import MemoryVectorStore

__all__ = [
    "EMBEDDING_MODELS",
    "Chunk",
    "ChunkingConfig",
    "Document",
    "DocumentExtractor",
    "DocumentProcessor",
    "DocumentStore",
    "Embedder",
    "MemoryVectorStore",
    "RAGAnswer",
    "RAGError",
    "RAGPipeline",
    "Retriever",
    "build_pipeline",
    "chunk_text",
    "get_chunker",
]
