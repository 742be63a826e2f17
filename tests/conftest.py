"""
Shared test fixtures for the RAG pipeline test suite.

Provides: settings without provider credentials leaking in from the
environment, isolated stores, and Hugging Face embedding clients backed
by httpx.MockTransport.
"""

import json
from collections.abc import Callable

import httpx
import pytest

from ragstudio.core.config import Settings
from ragstudio.rag.document_store import DocumentStore
from ragstudio.rag.embedder import Embedder, HuggingFaceEmbeddingClient
from ragstudio.rag.vector_store import MemoryVectorStore

DIMENSIONS = 384


def unit_vector(index: int, dimensions: int = DIMENSIONS) -> list[float]:
    """A vector with a single 1.0 at ``index``."""
    vector = [0.0] * dimensions
    vector[index % dimensions] = 1.0
    return vector


def keyword_vector(text: str, dimensions: int = DIMENSIONS) -> list[float]:
    """Deterministic bag-of-words vector so similar texts score higher."""
    vector = [0.0] * dimensions
    for word in text.lower().split():
        vector[sum(map(ord, word.strip(".,!?"))) % dimensions] += 1.0
    if not any(vector):
        vector[0] = 1.0
    return vector


def embedding_handler(vectorize: Callable[[str], list[float]] = keyword_vector):
    """MockTransport handler that embeds each input with ``vectorize``."""

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        return httpx.Response(200, json=[vectorize(text) for text in body["inputs"]])

    return handler


@pytest.fixture
def settings() -> Settings:
    """Settings with a fake API key and no waiting between retries or batches."""
    return Settings(
        _env_file=None,
        huggingface_api_key="hf_test",
        embedding_retry_delay=0,
        embedding_batch_delay=0,
    )


@pytest.fixture
def document_store() -> DocumentStore:
    return DocumentStore(max_total_size=1024, max_document_size=512)


@pytest.fixture
def vector_store() -> MemoryVectorStore:
    return MemoryVectorStore()


@pytest.fixture
def make_embedder():
    """Build an Embedder whose provider calls go to ``handler``."""

    def factory(handler=None, *, api_key: str = "hf_test", **kwargs) -> Embedder:
        transport = httpx.MockTransport(handler or embedding_handler())
        client = HuggingFaceEmbeddingClient(
            api_key=api_key,
            base_url="https://hf.test",
            http_client=httpx.AsyncClient(transport=transport),
        )
        kwargs.setdefault("retry_delay", 0)
        kwargs.setdefault("batch_delay", 0)
        return Embedder(client, **kwargs)

    return factory
