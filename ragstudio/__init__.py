"""RAG Studio: in-memory retrieval-augmented generation service."""
