"""
Tests for the retriever.

Tests cover:
- Parameter validation and the empty-index guard
- Search timing and model reporting
- Answer generation, the no-results answer and the extractive fallback
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from ragstudio.rag.embedder import EmbeddingResponse
from ragstudio.rag.errors import EmptyIndexError, GenerationError, InvalidInputError
from ragstudio.rag.generation import (
    GenerationResult,
    Generator,
    HuggingFaceGenerator,
    OllamaGenerator,
)
from ragstudio.rag.retriever import (
    NO_RESULTS_ANSWER,
    Retriever,
    build_rag_prompt,
    format_context,
)
from ragstudio.rag.vector_store import MemoryVectorStore, SearchResult

from .conftest import unit_vector

MODEL_ID = "sentence-transformers/all-MiniLM-L6-v2"


@pytest.fixture
def embedder() -> MagicMock:
    embedder = MagicMock()
    embedder.embed = AsyncMock(
        return_value=EmbeddingResponse(
            embeddings=[unit_vector(0)], model=MODEL_ID, dimensions=384, tokens_used=2
        )
    )
    return embedder


@pytest.fixture
def generator() -> MagicMock:
    generator = MagicMock()
    generator.generate = AsyncMock(
        return_value=GenerationResult(
            text="  Paris is the capital.  ", model="llm", provider="ollama", tokens_used=42
        )
    )
    return generator


@pytest.fixture
def indexed_store(vector_store: MemoryVectorStore) -> MemoryVectorStore:
    vector_store.index_document(
        "doc_1",
        [unit_vector(0), unit_vector(1), unit_vector(2)],
        ["Paris is the capital of France.", "Berlin is in Germany.", "Rome is old."],
        metadata=[{"file_name": "cities.txt"}] * 3,
    )
    return vector_store


class TestValidation:
    """Tests for query validation."""

    @pytest.mark.parametrize(
        ("query", "top_k", "min_score"),
        [
            ("", 5, 0.0),
            ("   ", 5, 0.0),
            ("q", 0, 0.0),
            ("q", 101, 0.0),
            ("q", 5, 1.5),
            ("q", 5, -0.1),
        ],
    )
    async def test_rejects_invalid_parameters(
        self, indexed_store, embedder, generator, query, top_k, min_score
    ):
        retriever = Retriever(indexed_store, embedder, generator)

        with pytest.raises(InvalidInputError):
            await retriever.search(query, top_k=top_k, min_score=min_score)

    async def test_empty_index_calls_no_provider(self, vector_store, embedder, generator):
        """Nothing indexed: fail before embedding or generating anything."""
        retriever = Retriever(vector_store, embedder, generator)

        with pytest.raises(EmptyIndexError) as exc_info:
            await retriever.answer("What is the capital of France?")

        assert exc_info.value.status_code == 400
        embedder.embed.assert_not_awaited()
        generator.generate.assert_not_awaited()


class TestSearch:
    """Tests for semantic search."""

    async def test_search(self, indexed_store, embedder, generator):
        retriever = Retriever(indexed_store, embedder, generator)

        response = await retriever.search("  capital of France  ", top_k=2)

        embedder.embed.assert_awaited_once_with(["capital of France"], "all-MiniLM-L6-v2")
        assert response.query == "capital of France"
        assert response.embedding_model == MODEL_ID
        assert len(response.results) == 2
        assert response.results[0].text == "Paris is the capital of France."
        assert response.total_time_ms >= response.search_time_ms


class TestAnswer:
    """Tests for answer generation."""

    async def test_generates_from_context(self, indexed_store, embedder, generator):
        retriever = Retriever(indexed_store, embedder, generator)

        answer = await retriever.answer("capital?", top_k=3, provider="ollama", llm_model="llm")

        prompt, provider, model = generator.generate.await_args.args
        assert "[1] Paris is the capital of France." in prompt
        assert "Question: capital?" in prompt
        assert (provider, model) == ("ollama", "llm")
        assert answer.answer == "Paris is the capital."
        assert answer.metadata.tokens_used == 42
        assert answer.metadata.fallback is False
        assert answer.sources[0].file_name == "cities.txt"

    async def test_no_results_skips_generation(self, indexed_store, embedder, generator):
        retriever = Retriever(indexed_store, embedder, generator)

        embedder.embed.return_value = EmbeddingResponse(
            embeddings=[unit_vector(10)], model=MODEL_ID, dimensions=384, tokens_used=1
        )
        empty = await retriever.answer("unrelated", min_score=0.5)

        assert empty.answer == NO_RESULTS_ANSWER
        assert empty.sources == []
        assert empty.metadata.total_chunks == 0
        generator.generate.assert_not_awaited()

    async def test_generation_failure_falls_back_to_top_chunk(
        self, indexed_store, embedder, generator
    ):
        generator.generate.side_effect = GenerationError("Ollama API error: 500")
        retriever = Retriever(indexed_store, embedder, generator)

        answer = await retriever.answer("capital?")

        assert answer.metadata.fallback is True
        assert "Paris is the capital of France." in answer.answer
        assert "LLM generation failed" in answer.answer
        assert len(answer.sources) == 3

    async def test_missing_file_name_metadata(self, vector_store, embedder, generator):
        vector_store.index_document("doc_2", [unit_vector(0)], ["text"])
        retriever = Retriever(vector_store, embedder, generator)

        answer = await retriever.answer("q")

        assert answer.sources[0].file_name == "Unknown"


class TestPromptHelpers:
    def test_format_context_numbers_chunks(self):
        results = [
            SearchResult(id="a", document_id="d", chunk_index=0, text="one", score=0.9),
            SearchResult(id="b", document_id="d", chunk_index=1, text="two", score=0.8),
        ]

        assert format_context(results) == "[1] one\n\n[2] two"

    def test_prompt_contains_context_and_question(self):
        prompt = build_rag_prompt("Why?", "[1] because")

        assert "Context:\n[1] because" in prompt
        assert prompt.rstrip().endswith("Answer:")


class TestOllamaReplies:
    """Malformed Ollama replies are answered from the top chunk."""

    @staticmethod
    def ollama_generator(body) -> Generator:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=body)

        transport = httpx.MockTransport(handler)
        ollama = OllamaGenerator("http://ollama.test", http_client=httpx.AsyncClient(transport=transport))
        return Generator(ollama=ollama, huggingface=HuggingFaceGenerator(None))

    @pytest.mark.parametrize(
        "body",
        [[1, 2], {"response": 5}, {"response": None}, {"response": "   "}, "text"],
    )
    async def test_malformed_body_falls_back(self, indexed_store, embedder, body):
        retriever = Retriever(indexed_store, embedder, self.ollama_generator(body))

        answer = await retriever.answer("capital?", provider="ollama", llm_model="llm")

        assert answer.metadata.fallback is True
        assert "Paris is the capital of France." in answer.answer

    async def test_well_formed_body(self, indexed_store, embedder):
        body = {"response": "Paris.", "eval_count": 3, "prompt_eval_count": 7}
        retriever = Retriever(indexed_store, embedder, self.ollama_generator(body))

        answer = await retriever.answer("capital?", provider="ollama", llm_model="llm")

        assert answer.answer == "Paris."
        assert answer.metadata.tokens_used == 10
        assert answer.metadata.fallback is False
