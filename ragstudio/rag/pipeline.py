"""Composition root for the RAG pipeline.

Builds one instance of every component for the lifetime of the process.
The API lifespan owns it; tests build isolated instances directly.
"""

import logging
from dataclasses import dataclass

import httpx
from openai import AsyncOpenAI

from ragstudio.core.config import Settings
from ragstudio.rag.document_store import DocumentStore
from ragstudio.rag.embedder import Embedder, HuggingFaceEmbeddingClient
from ragstudio.rag.extractors import DocumentExtractor, OCRExtractor, PDFExtractor, PlainTextExtractor
from ragstudio.rag.generation import Generator, HuggingFaceGenerator, OllamaGenerator
from ragstudio.rag.processor import DocumentProcessor
from ragstudio.rag.retriever import Retriever
from ragstudio.rag.vector_store import MemoryVectorStore

logger = logging.getLogger(__name__)


@dataclass
class RAGPipeline:
    """Every pipeline component, wired together."""

    settings: Settings
    document_store: DocumentStore
    vector_store: MemoryVectorStore
    extractor: DocumentExtractor
    embedder: Embedder
    generator: Generator
    processor: DocumentProcessor
    retriever: Retriever
    router_client: AsyncOpenAI | None = None
    embedding_client: HuggingFaceEmbeddingClient | None = None
    ollama: OllamaGenerator | None = None

    async def aclose(self) -> None:
        """Close the provider HTTP clients."""
        if self.embedding_client is not None:
            await self.embedding_client.aclose()
        if self.ollama is not None:
            await self.ollama.aclose()
        if self.router_client is not None:
            await self.router_client.close()


def build_pipeline(settings: Settings) -> RAGPipeline:
    """Create the pipeline from settings.

    The Hugging Face router client (OCR and chat) is only created when an
    API key is configured; without it OCR and Hugging Face generation
    report a missing credential.
    """
    router_client = None
    if settings.huggingface_api_key:
        router_client = AsyncOpenAI(
            api_key=settings.huggingface_api_key,
            base_url=settings.huggingface_router_url,
            timeout=httpx.Timeout(120.0, connect=30.0),  # 2 min total, 30s connect
        )
    else:
        logger.warning("[Pipeline] HUGGINGFACE_API_KEY not set; OCR and embeddings unavailable")

    ocr = OCRExtractor(router_client, model=settings.ocr_model)
    extractor = DocumentExtractor(
        plain=PlainTextExtractor(),
        ocr=ocr,
        pdf=PDFExtractor(ocr=ocr, min_text_length=settings.pdf_min_text_length),
    )

    embedding_client = HuggingFaceEmbeddingClient(
        api_key=settings.huggingface_api_key,
        base_url=settings.huggingface_base_url,
    )
    embedder = Embedder(
        embedding_client,
        batch_size=settings.embedding_batch_size,
        retry_attempts=settings.embedding_retry_attempts,
        retry_delay=settings.embedding_retry_delay,
        batch_delay=settings.embedding_batch_delay,
        max_concurrency=settings.embedding_max_concurrency,
    )

    ollama = OllamaGenerator(settings.ollama_base_url, settings.ollama_api_key)
    generator = Generator(
        ollama=ollama,
        huggingface=HuggingFaceGenerator(router_client, max_tokens=settings.generation_max_tokens),
    )

    document_store = DocumentStore(
        max_total_size=settings.max_total_size_bytes,
        max_document_size=settings.max_document_size_bytes,
    )
    vector_store = MemoryVectorStore()

    logger.info(
        f"[Pipeline] Initialized (store budget {settings.max_total_size_mb}MB, "
        f"embedding model {settings.default_embedding_model})"
    )

    return RAGPipeline(
        settings=settings,
        document_store=document_store,
        vector_store=vector_store,
        extractor=extractor,
        embedder=embedder,
        generator=generator,
        processor=DocumentProcessor(document_store, vector_store, extractor, embedder),
        retriever=Retriever(vector_store, embedder, generator),
        router_client=router_client,
        embedding_client=embedding_client,
        ollama=ollama,
    )
