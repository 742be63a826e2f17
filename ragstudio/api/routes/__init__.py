"""API route modules."""

from . import documents, embeddings, health, rag, vector_store

__all__ = ["documents", "embeddings", "health", "rag", "vector_store"]
