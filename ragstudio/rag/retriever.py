"""RAG retriever - semantic search and grounded answer generation.

Combines query embedding, exact vector search and a generation provider.
When generation fails the most relevant chunk is returned verbatim.
"""

import logging
import time
from dataclasses import dataclass, field

from ragstudio.observability.metrics import GENERATION_FALLBACKS
from ragstudio.rag.embedder import Embedder
from ragstudio.rag.errors import EmptyIndexError, GenerationError, InvalidInputError
from ragstudio.rag.generation import Generator
from ragstudio.rag.vector_store import MemoryVectorStore, SearchResult

logger = logging.getLogger(__name__)

NO_RESULTS_ANSWER = (
    "I couldn't find any relevant information in the indexed documents to answer your question."
)

MAX_TOP_K = 100


@dataclass
class SourceReference:
    """A retrieved chunk cited by an answer."""

    id: str
    document_id: str
    file_name: str
    text: str
    score: float
    chunk_index: int

    @classmethod
    def from_result(cls, result: SearchResult) -> "SourceReference":
        metadata = result.metadata or {}
        return cls(
            id=result.id,
            document_id=result.document_id,
            file_name=metadata.get("file_name", "Unknown"),
            text=result.text,
            score=result.score,
            chunk_index=result.chunk_index,
        )


@dataclass
class SearchResponse:
    query: str
    results: list[SearchResult]
    embedding_model: str
    embedding_time_ms: int
    search_time_ms: int
    total_time_ms: int


@dataclass
class AnswerMetadata:
    total_chunks: int
    top_k: int
    min_score: float
    embedding_model: str
    llm_model: str
    provider: str
    tokens_used: int = 0
    fallback: bool = False


@dataclass
class AnswerPerformance:
    embedding_time_ms: int = 0
    search_time_ms: int = 0
    generation_time_ms: int = 0
    total_time_ms: int = 0


@dataclass
class RAGAnswer:
    query: str
    answer: str
    sources: list[SourceReference]
    metadata: AnswerMetadata
    performance: AnswerPerformance = field(default_factory=AnswerPerformance)


def _ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def format_context(results: list[SearchResult]) -> str:
    """Number each retrieved chunk so the model can cite it."""
    return "\n\n".join(f"[{i}] {result.text}" for i, result in enumerate(results, 1))


def build_rag_prompt(query: str, context: str) -> str:
    """Build an instruction prompt that restricts the answer to the context."""
    return f"""You are a helpful assistant that answers questions based on the provided context.

Context:
{context}

Question: {query}

Instructions:
- Answer the question based ONLY on the information provided in the context above
- If the context doesn't contain enough information to answer the question, say so
- Be concise and accurate
- Cite the relevant context sections when possible

Answer:"""


def extractive_answer(top: SearchResult) -> str:
    return (
        f"Based on the retrieved information:\n\n{top.text}\n\n"
        "(Note: LLM generation failed, showing most relevant chunk)"
    )


class Retriever:
    """Query orchestration over the vector store.

    Coordinates query embedding, exhaustive vector search and
    answer generation with an extractive fallback.
    """

    def __init__(
        self,
        vector_store: MemoryVectorStore,
        embedder: Embedder,
        generator: Generator,
    ):
        self.vector_store = vector_store
        self.embedder = embedder
        self.generator = generator

    def _validate(self, query: str, top_k: int, min_score: float) -> str:
        if not isinstance(query, str) or not query.strip():
            raise InvalidInputError("Query is required and must be a non-empty string")
        if not 1 <= top_k <= MAX_TOP_K:
            raise InvalidInputError(f"topK must be between 1 and {MAX_TOP_K}")
        if not 0 <= min_score <= 1:
            raise InvalidInputError("minScore must be between 0 and 1")
        if self.vector_store.size() == 0:
            raise EmptyIndexError()
        return query.strip()

    async def search(
        self,
        query: str,
        top_k: int = 5,
        min_score: float = 0.0,
        embedding_model: str = "all-MiniLM-L6-v2",
    ) -> SearchResponse:
        """Embed a query and return the closest chunks.

        Raises:
            InvalidInputError: On an empty query or out-of-range parameters
            EmptyIndexError: If nothing has been indexed
            EmbeddingError: If the query could not be embedded
        """
        query = self._validate(query, top_k, min_score)
        start = time.perf_counter()

        embedding = await self.embedder.embed([query], embedding_model)
        embedding_time_ms = _ms(start)

        search_start = time.perf_counter()
        results = self.vector_store.search(embedding.embeddings[0], top_k, min_score)
        search_time_ms = _ms(search_start)

        logger.info(
            f"[Retriever] Found {len(results)} results for query in "
            f"{embedding_time_ms + search_time_ms}ms"
        )

        return SearchResponse(
            query=query,
            results=results,
            embedding_model=embedding.model,
            embedding_time_ms=embedding_time_ms,
            search_time_ms=search_time_ms,
            total_time_ms=_ms(start),
        )

    async def answer(
        self,
        query: str,
        top_k: int = 5,
        min_score: float = 0.0,
        embedding_model: str = "all-MiniLM-L6-v2",
        provider: str = "ollama",
        llm_model: str = "gpt-oss:20b",
    ) -> RAGAnswer:
        """Answer a question from the indexed documents.

        Generation failures never surface; the highest-scoring chunk is
        returned instead and ``metadata.fallback`` is set.

        Raises:
            InvalidInputError: On an empty query or out-of-range parameters
            EmptyIndexError: If nothing has been indexed
            EmbeddingError: If the query could not be embedded
        """
        start = time.perf_counter()
        retrieval = await self.search(query, top_k, min_score, embedding_model)

        metadata = AnswerMetadata(
            total_chunks=len(retrieval.results),
            top_k=top_k,
            min_score=min_score,
            embedding_model=retrieval.embedding_model,
            llm_model=llm_model,
            provider=provider,
        )
        performance = AnswerPerformance(
            embedding_time_ms=retrieval.embedding_time_ms,
            search_time_ms=retrieval.search_time_ms,
        )

        if not retrieval.results:
            performance.total_time_ms = _ms(start)
            return RAGAnswer(
                query=retrieval.query,
                answer=NO_RESULTS_ANSWER,
                sources=[],
                metadata=metadata,
                performance=performance,
            )

        prompt = build_rag_prompt(retrieval.query, format_context(retrieval.results))

        generation_start = time.perf_counter()
        try:
            result = await self.generator.generate(prompt, provider, llm_model)
            answer = result.text.strip()
            metadata.tokens_used = result.tokens_used
        except GenerationError as e:
            logger.warning(f"[Retriever] Generation failed, using extractive answer: {e.message}")
            GENERATION_FALLBACKS.labels(provider).inc()
            answer = extractive_answer(retrieval.results[0])
            metadata.fallback = True

        performance.generation_time_ms = _ms(generation_start)
        performance.total_time_ms = _ms(start)

        logger.info(
            f"[Retriever] Answer generated in {performance.generation_time_ms}ms "
            f"(total: {performance.total_time_ms}ms)"
        )

        return RAGAnswer(
            query=retrieval.query,
            answer=answer,
            sources=[SourceReference.from_result(r) for r in retrieval.results],
            metadata=metadata,
            performance=performance,
        )
