"""
Tests for the embedding service.

Tests cover:
- Provider payload classification
- Model registry and credential checks
- Batching, retries and progress reporting
- All-or-nothing batch failure
"""

import json

import httpx
import pytest

from ragstudio.rag.embedder import (
    EMBEDDING_MODELS,
    BatchVectors,
    SingleVector,
    estimate_tokens,
    parse_embedding_payload,
    truncate_text,
)
from ragstudio.rag.errors import EmbeddingError, MissingCredentialError, UnknownModelError

from .conftest import unit_vector


class TestPayloadParsing:
    """Tests for classifying raw provider responses."""

    def test_nested_vectors(self):
        payload = parse_embedding_payload([[0.1, 0.2], [0.3, 0.4]])

        assert isinstance(payload, BatchVectors)
        assert payload.to_vectors() == [[0.1, 0.2], [0.3, 0.4]]

    def test_flat_vector(self):
        payload = parse_embedding_payload([0.1, 0.2, 3])

        assert isinstance(payload, SingleVector)
        assert payload.to_vectors() == [[0.1, 0.2, 3.0]]

    @pytest.mark.parametrize("payload", [{"error": "loading"}, [], "nope", [["a"]], [[]]])
    def test_rejects_other_shapes(self, payload):
        with pytest.raises(EmbeddingError, match="Unexpected response format"):
            parse_embedding_payload(payload)


class TestHelpers:
    def test_estimate_tokens_rounds_up(self):
        assert estimate_tokens("abcde") == 2
        assert estimate_tokens("") == 0

    def test_truncate_text(self):
        assert truncate_text("x" * 100, 10) == "x" * 40


class TestRegistry:
    """Tests for model lookup."""

    def test_default_models(self, make_embedder):
        embedder = make_embedder()

        assert embedder.get_model_info("all-MiniLM-L6-v2").dimensions == 384
        assert embedder.get_model_info("all-mpnet-base-v2").dimensions == 768
        assert embedder.get_model_info("missing") is None
        assert len(embedder.get_available_models()) == len(EMBEDDING_MODELS)

    async def test_unknown_model_raises(self, make_embedder):
        with pytest.raises(UnknownModelError):
            await make_embedder().embed(["hello"], "not-a-model")

    async def test_missing_key_raises_before_any_request(self, make_embedder):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json=[unit_vector(0)])

        embedder = make_embedder(handler, api_key="")

        with pytest.raises(MissingCredentialError):
            await embedder.embed_batch(["hello"], "all-MiniLM-L6-v2")
        assert calls == []


class TestEmbed:
    """Tests for single provider calls."""

    async def test_sends_model_id_and_auth(self, make_embedder):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=[unit_vector(1)])

        response = await make_embedder(handler).embed(["hello"], "all-MiniLM-L6-v2")

        assert seen["url"] == "https://hf.test/models/sentence-transformers/all-MiniLM-L6-v2"
        assert seen["auth"] == "Bearer hf_test"
        assert seen["body"] == {"inputs": ["hello"], "options": {"wait_for_model": True}}
        assert response.model == "sentence-transformers/all-MiniLM-L6-v2"
        assert response.dimensions == 384
        assert response.embeddings == [unit_vector(1)]

    async def test_flat_response_for_single_text(self, make_embedder):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=unit_vector(2))

        vector = await make_embedder(handler).embed_query("hello", "all-MiniLM-L6-v2")

        assert vector == unit_vector(2)

    async def test_truncates_long_texts(self, make_embedder):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["inputs"] = json.loads(request.content)["inputs"]
            return httpx.Response(200, json=[unit_vector(0)])

        await make_embedder(handler).embed(["x" * 5000], "all-MiniLM-L6-v2")

        assert len(seen["inputs"][0]) == 256 * 4

    async def test_http_error_status(self, make_embedder):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="Model is loading")

        with pytest.raises(EmbeddingError, match=r"\(503\): Model is loading"):
            await make_embedder(handler).embed(["hello"], "all-MiniLM-L6-v2")

    async def test_count_mismatch(self, make_embedder):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[unit_vector(0)])

        with pytest.raises(EmbeddingError, match="1 embeddings for 2 texts"):
            await make_embedder(handler).embed(["a", "b"], "all-MiniLM-L6-v2")


class TestEmbedBatch:
    """Tests for batched embedding."""

    async def test_batches_in_order_with_progress(self, make_embedder):
        # Arrange
        texts = [f"text {i}" for i in range(25)]
        batch_sizes = []

        def handler(request: httpx.Request) -> httpx.Response:
            inputs = json.loads(request.content)["inputs"]
            batch_sizes.append(len(inputs))
            return httpx.Response(
                200, json=[unit_vector(int(t.split()[1])) for t in inputs]
            )

        progress = []
        embedder = make_embedder(handler, batch_size=10)

        # Act
        result = await embedder.embed_batch(texts, "all-MiniLM-L6-v2", on_progress=progress.append)

        # Assert
        assert result.success is True
        assert result.total_batches == 3
        assert batch_sizes == [10, 10, 5]
        assert result.embeddings == [unit_vector(i) for i in range(25)]
        assert result.dimensions == 384
        assert [p.status for p in progress] == ["processing"] * 3 + ["completed"]
        assert [p.percentage for p in progress] == [40, 80, 100, 100]

    async def test_retries_transient_failures(self, make_embedder):
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(1)
            if len(attempts) < 3:
                return httpx.Response(500, text="busy")
            return httpx.Response(200, json=[unit_vector(0)])

        result = await make_embedder(handler, retry_attempts=3).embed_batch(
            ["hello"], "all-MiniLM-L6-v2"
        )

        assert result.success is True
        assert len(attempts) == 3

    async def test_non_json_reply_is_retried_then_fails(self, make_embedder):
        """A 200 carrying an HTML gateway page counts as a failed attempt."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            return httpx.Response(200, text="<html>gateway</html>")

        result = await make_embedder(handler, retry_attempts=3).embed_batch(
            ["a", "b"], "all-MiniLM-L6-v2"
        )

        assert result.success is False
        assert result.embeddings == []
        assert "Invalid JSON from HuggingFace API" in result.error
        assert len(calls) == 3

    async def test_failed_batch_discards_everything(self, make_embedder):
        """Batch 2 of 3 exhausts its retries: no partial embeddings survive."""
        # Arrange
        texts = [f"text {i}" for i in range(25)]
        second_batch_calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            inputs = json.loads(request.content)["inputs"]
            if "text 10" in inputs:
                second_batch_calls.append(1)
                return httpx.Response(500, text="internal error")
            return httpx.Response(200, json=[unit_vector(0) for _ in inputs])

        progress = []
        embedder = make_embedder(handler, batch_size=10, retry_attempts=3)

        # Act
        result = await embedder.embed_batch(texts, "all-MiniLM-L6-v2", on_progress=progress.append)

        # Assert
        assert result.success is False
        assert result.embeddings == []
        assert result.dimensions == 0
        assert result.error.startswith("Failed to process batch 2")
        assert len(second_batch_calls) == 3
        assert progress[-1].status == "error"
