"""Embedding service using the Hugging Face Inference API.

Generates vector embeddings for text chunks and queries. Batches are sent
through a bounded-concurrency stage with retries so the provider's rate
limit is a configuration setting.
"""

import asyncio
import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from ragstudio.observability.metrics import EMBEDDING_BATCHES, EMBEDDING_RETRIES
from ragstudio.rag.errors import EmbeddingError, MissingCredentialError, UnknownModelError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmbeddingModel:
    name: str
    id: str
    dimensions: int
    max_tokens: int
    provider: str = "huggingface"


EMBEDDING_MODELS: dict[str, EmbeddingModel] = {
    "all-MiniLM-L6-v2": EmbeddingModel(
        name="all-MiniLM-L6-v2",
        id="sentence-transformers/all-MiniLM-L6-v2",
        dimensions=384,
        max_tokens=256,
    ),
    "all-mpnet-base-v2": EmbeddingModel(
        name="all-mpnet-base-v2",
        id="sentence-transformers/all-mpnet-base-v2",
        dimensions=768,
        max_tokens=384,
    ),
}


# ============================================
# Provider payloads
# ============================================


@dataclass
class BatchVectors:
    """Provider returned one vector per input: ``[[...], [...]]``."""

    vectors: list[list[float]]

    def to_vectors(self) -> list[list[float]]:
        return self.vectors


@dataclass
class SingleVector:
    """Provider returned a single flat vector: ``[...]``."""

    vector: list[float]

    def to_vectors(self) -> list[list[float]]:
        return [self.vector]


EmbeddingPayload = BatchVectors | SingleVector


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def parse_embedding_payload(payload: Any) -> EmbeddingPayload:
    """Classify a raw provider response.

    Raises:
        EmbeddingError: If the payload is neither a list of vectors nor a vector
    """
    if isinstance(payload, list) and payload:
        first = payload[0]
        if isinstance(first, list) and first and _is_number(first[0]):
            return BatchVectors([[float(x) for x in row] for row in payload])
        if _is_number(first):
            return SingleVector([float(x) for x in payload])
    raise EmbeddingError("Unexpected response format from HuggingFace API")


class HuggingFaceEmbeddingClient:
    """Feature-extraction calls against the Hugging Face Inference API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api-inference.huggingface.co",
        http_client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        # 2 min total, 30s connect; models may be cold-started
        self._http = http_client or httpx.AsyncClient(timeout=httpx.Timeout(120.0, connect=30.0))

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def embed(self, model_id: str, texts: list[str]) -> list[list[float]]:
        """POST the texts and return one vector per text."""
        response = await self._http.post(
            f"{self.base_url}/models/{model_id}",
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={"inputs": texts, "options": {"wait_for_model": True}},
        )
        if response.status_code >= 400:
            raise EmbeddingError(
                f"HuggingFace API error ({response.status_code}): {response.text}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise EmbeddingError("Invalid JSON from HuggingFace API") from e

        return parse_embedding_payload(payload).to_vectors()

    async def aclose(self) -> None:
        await self._http.aclose()


# ============================================
# Results
# ============================================


@dataclass
class EmbeddingResponse:
    embeddings: list[list[float]]
    model: str
    dimensions: int
    tokens_used: int


@dataclass
class EmbeddingProgress:
    current: int
    total: int
    percentage: int
    status: str  # processing, completed, error
    message: str | None = None


@dataclass
class BatchEmbeddingResult:
    success: bool
    model: str
    dimensions: int
    total_chunks: int
    total_batches: int
    processing_time_ms: int
    embeddings: list[list[float]] = field(default_factory=list)
    error: str | None = None


ProgressCallback = Callable[[EmbeddingProgress], None]


def estimate_tokens(text: str) -> int:
    """Rough estimate: 1 token is about 4 characters."""
    return math.ceil(len(text) / 4)


def truncate_text(text: str, max_tokens: int) -> str:
    return text[: max_tokens * 4]


class Embedder:
    """Embedding service over the model registry.

    Batches are retried with linear backoff. At most ``max_concurrency``
    batches are in flight, and each one pauses ``batch_delay`` seconds
    before releasing its slot.
    """

    def __init__(
        self,
        client: HuggingFaceEmbeddingClient,
        batch_size: int = 10,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        batch_delay: float = 0.2,
        max_concurrency: int = 1,
    ):
        self.client = client
        self.batch_size = batch_size
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.batch_delay = batch_delay
        self.max_concurrency = max_concurrency

        if not client.configured:
            logger.warning("[Embedder] HUGGINGFACE_API_KEY not set; embedding calls will fail")

    def get_model_info(self, model_name: str) -> EmbeddingModel | None:
        return EMBEDDING_MODELS.get(model_name)

    def get_available_models(self) -> list[EmbeddingModel]:
        return list(EMBEDDING_MODELS.values())

    def _resolve(self, model_name: str) -> EmbeddingModel:
        model = self.get_model_info(model_name)
        if model is None:
            raise UnknownModelError(
                f"Unknown model: {model_name}. Available: {', '.join(EMBEDDING_MODELS)}"
            )
        if not self.client.configured:
            raise MissingCredentialError("HUGGINGFACE_API_KEY is not configured")
        return model

    async def embed(self, texts: list[str], model_name: str) -> EmbeddingResponse:
        """Embed texts in a single provider call.

        Raises:
            UnknownModelError: If the model is not in the registry
            MissingCredentialError: If no API key is configured
            EmbeddingError: On provider failure or a vector count mismatch
        """
        model = self._resolve(model_name)
        truncated = [truncate_text(t, model.max_tokens) for t in texts]

        try:
            vectors = await self.client.embed(model.id, truncated)
        except httpx.HTTPError as e:
            raise EmbeddingError(f"HuggingFace API request failed: {e}") from e

        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"Provider returned {len(vectors)} embeddings for {len(texts)} texts"
            )

        return EmbeddingResponse(
            embeddings=vectors,
            model=model.id,
            dimensions=model.dimensions,
            tokens_used=sum(estimate_tokens(t) for t in truncated),
        )

    async def embed_query(self, query: str, model_name: str) -> list[float]:
        """Embed a search query."""
        response = await self.embed([query], model_name)
        return response.embeddings[0]

    async def _embed_with_retry(self, model: EmbeddingModel, batch: list[str]) -> list[list[float]]:
        def log_retry(retry_state) -> None:
            EMBEDDING_RETRIES.labels(model.name).inc()
            logger.warning(
                f"[Embedder] Attempt {retry_state.attempt_number}/{self.retry_attempts} failed: "
                f"{retry_state.outcome.exception()}"
            )

        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(EmbeddingError),
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_incrementing(start=self.retry_delay, increment=self.retry_delay),
            before_sleep=log_retry,
            reraise=True,
        ):
            with attempt:
                response = await self.embed(batch, model.name)
        return response.embeddings

    async def embed_batch(
        self,
        texts: list[str],
        model_name: str,
        on_progress: ProgressCallback | None = None,
    ) -> BatchEmbeddingResult:
        """Embed many texts in batches with progress reporting.

        A batch that exhausts its retries aborts the whole run; embeddings
        from batches that did succeed are discarded.

        Raises:
            UnknownModelError: If the model is not in the registry
            MissingCredentialError: If no API key is configured
        """
        start = time.perf_counter()
        model = self._resolve(model_name)

        batches = [texts[i : i + self.batch_size] for i in range(0, len(texts), self.batch_size)]
        total_batches = len(batches)
        results: list[list[list[float]] | None] = [None] * total_batches
        semaphore = asyncio.Semaphore(self.max_concurrency)
        done = 0

        logger.info(f"[Embedder] Processing {len(texts)} texts in {total_batches} batches")

        def report(status: str, current: int, message: str) -> None:
            if on_progress:
                percentage = round(current / len(texts) * 100) if texts else 100
                on_progress(EmbeddingProgress(current, len(texts), percentage, status, message))

        async def run_batch(number: int, batch: list[str]) -> None:
            nonlocal done
            async with semaphore:
                try:
                    results[number] = await self._embed_with_retry(model, batch)
                except EmbeddingError as e:
                    EMBEDDING_BATCHES.labels(model.name, "failure").inc()
                    raise EmbeddingError(f"Failed to process batch {number + 1}: {e.message}") from e

                EMBEDDING_BATCHES.labels(model.name, "success").inc()
                done += len(batch)
                logger.info(
                    f"[Embedder] Batch {number + 1}/{total_batches} completed "
                    f"({len(batch)} embeddings)"
                )
                report("processing", done, f"Processed batch {number + 1}/{total_batches}")

                if number < total_batches - 1 and self.batch_delay:
                    await asyncio.sleep(self.batch_delay)

        error: str | None = None
        try:
            async with asyncio.TaskGroup() as tg:
                for number, batch in enumerate(batches):
                    tg.create_task(run_batch(number, batch))
        except* EmbeddingError as eg:
            error = eg.exceptions[0].message

        processing_time_ms = int((time.perf_counter() - start) * 1000)

        if error is not None:
            logger.error(f"[Embedder] {error}")
            report("error", 0, error)
            return BatchEmbeddingResult(
                success=False,
                model=model_name,
                dimensions=0,
                total_chunks=len(texts),
                total_batches=total_batches,
                processing_time_ms=processing_time_ms,
                error=error,
            )

        embeddings = [vector for batch_vectors in results for vector in batch_vectors or []]
        report(
            "completed",
            len(texts),
            f"Completed {len(texts)} embeddings in {processing_time_ms / 1000:.2f}s",
        )
        logger.info(f"[Embedder] Completed all batches: {len(embeddings)} embeddings generated")

        return BatchEmbeddingResult(
            success=True,
            model=model.id,
            dimensions=model.dimensions,
            total_chunks=len(texts),
            total_batches=total_batches,
            processing_time_ms=processing_time_ms,
            embeddings=embeddings,
        )
