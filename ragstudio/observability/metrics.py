"""Pipeline metrics.

Prometheus counters and histograms for ingestion, embedding, indexing
and answer generation. Exposed by the API on /metrics.
"""

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from prometheus_client import Counter, Gauge, Histogram

DOCUMENTS_INGESTED = Counter(
    "rag_documents_ingested_total",
    "Documents accepted into the document store",
    ["method"],  # direct, ocr, pdf-text, hybrid
)

EXTRACTION_FAILURES = Counter(
    "rag_extraction_failures_total",
    "Uploads rejected because text extraction failed",
    ["file_type"],
)

EMBEDDING_BATCHES = Counter(
    "rag_embedding_batches_total",
    "Embedding provider batches",
    ["model", "outcome"],  # outcome: success, failure
)

EMBEDDING_RETRIES = Counter(
    "rag_embedding_retries_total",
    "Embedding provider attempts that failed and were retried",
    ["model"],
)

GENERATION_FALLBACKS = Counter(
    "rag_generation_fallbacks_total",
    "Answers served from the extractive fallback",
    ["provider"],
)

OPERATION_LATENCY = Histogram(
    "rag_operation_duration_seconds",
    "Pipeline operation latency in seconds",
    ["operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
)

INDEXED_VECTORS = Gauge(
    "rag_indexed_vectors",
    "Vectors currently held by the vector store",
)


@asynccontextmanager
async def track_operation(operation: str) -> AsyncGenerator[None, None]:
    """Observe the duration of a pipeline operation.

    Usage:
        async with track_operation("embed"):
            result = await embedder.embed_batch(...)
    """
    start_time = time.perf_counter()
    try:
        yield
    finally:
        OPERATION_LATENCY.labels(operation).observe(time.perf_counter() - start_time)
