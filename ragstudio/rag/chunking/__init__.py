"""Document chunking strategies.

Provides different methods for splitting documents into chunks
suitable for embedding and retrieval.
"""

import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from ragstudio.rag.errors import InvalidInputError

STRATEGIES = ("fixed", "sentence", "paragraph", "semantic")

MIN_CHUNK_SIZE_LIMIT = 50
MAX_CHUNK_SIZE_LIMIT = 5000

_SENTENCE_END = re.compile(r"[.!?]+\s")
_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


@dataclass(frozen=True)
class Chunk:
    """A document chunk ready for embedding.

    Offsets are reconstructed from the joined segments and are best effort
    for the sentence and paragraph strategies.
    """

    id: str
    document_id: str
    index: int
    text: str
    start_char: int
    end_char: int
    embedding: list[float] | None = None


@dataclass
class ChunkingConfig:
    chunk_size: int = 500
    chunk_overlap: int = 50
    strategy: str = "sentence"
    min_chunk_size: int = 50


@dataclass
class ChunkingStatistics:
    min_chunk_size: int
    max_chunk_size: int
    total_characters: int


@dataclass
class ChunkingResult:
    chunks: list[Chunk]
    total_chunks: int
    average_chunk_size: int
    strategy: str
    processing_time_ms: int
    statistics: ChunkingStatistics = field(
        default_factory=lambda: ChunkingStatistics(0, 0, 0)
    )


def make_chunk(document_id: str, index: int, text: str, start_char: int, end_char: int) -> Chunk:
    return Chunk(
        id=f"{document_id}_chunk_{index}",
        document_id=document_id,
        index=index,
        text=text,
        start_char=start_char,
        end_char=end_char,
    )


def split_into_sentences(text: str) -> list[str]:
    """Split on sentence-ending punctuation followed by whitespace."""
    sentences = []
    last = 0
    for match in _SENTENCE_END.finditer(text):
        sentence = text[last : match.end()].strip()
        if sentence:
            sentences.append(sentence)
        last = match.end()

    # Remaining text is the last sentence
    tail = text[last:].strip()
    if tail:
        sentences.append(tail)
    return sentences


def overlap_tail(sentences: list[str], overlap: int) -> list[str]:
    """Trailing sentences that fit within ``overlap`` characters."""
    if overlap == 0:
        return []

    tail: list[str] = []
    length = 0
    for sentence in reversed(sentences):
        if length + len(sentence) > overlap:
            break
        tail.insert(0, sentence)
        length += len(sentence) + 1
    return tail


class ChunkingStrategy(ABC):
    """Base class for chunking strategies."""

    def __init__(self, config: ChunkingConfig):
        self.config = config

    @abstractmethod
    def chunk(self, text: str, document_id: str) -> list[Chunk]:
        """Split text into chunks."""


class FixedSizeChunker(ChunkingStrategy):
    """Sliding window of ``chunk_size`` characters.

    The window advances by ``chunk_size - chunk_overlap`` until its start
    reaches the end of the text. Windows that are blank after stripping
    are skipped.
    """

    def chunk(self, text: str, document_id: str) -> list[Chunk]:
        size = self.config.chunk_size
        step = size - self.config.chunk_overlap

        chunks = []
        start = 0
        while start < len(text):
            end = min(start + size, len(text))
            window = text[start:end].strip()
            if window:
                chunks.append(make_chunk(document_id, len(chunks), window, start, end))
            start += step

        return chunks


class SegmentChunker(ChunkingStrategy):
    """Accumulates segments into chunks up to ``chunk_size``.

    A chunk is flushed when the next segment would push it past
    ``chunk_size`` and it already holds at least ``min_chunk_size``
    characters.
    """

    separator = " "

    @abstractmethod
    def segments(self, text: str) -> list[str]:
        """Split text into the units that are accumulated."""

    @abstractmethod
    def carry_over(self, segments: list[str]) -> tuple[list[str], int]:
        """Segments that seed the next chunk, with their counted length."""

    def chunk(self, text: str, document_id: str) -> list[Chunk]:
        chunks = []
        current: list[str] = []
        current_length = 0
        start_char = 0
        gap = len(self.separator)

        for segment in self.segments(text):
            if (
                current_length + len(segment) > self.config.chunk_size
                and current_length >= self.config.min_chunk_size
            ):
                chunk_text = self.separator.join(current).strip()
                end_char = start_char + len(chunk_text)
                chunks.append(make_chunk(document_id, len(chunks), chunk_text, start_char, end_char))

                current, current_length = self.carry_over(current)
                start_char = end_char - current_length

            current.append(segment)
            current_length += len(segment) + gap

        if current:
            chunk_text = self.separator.join(current).strip()
            chunks.append(
                make_chunk(
                    document_id, len(chunks), chunk_text, start_char, start_char + len(chunk_text)
                )
            )

        return chunks


class SentenceChunker(SegmentChunker):
    """Sentence-based chunking with a character-budgeted sentence overlap."""

    def segments(self, text: str) -> list[str]:
        return split_into_sentences(text)

    def carry_over(self, segments: list[str]) -> tuple[list[str], int]:
        tail = overlap_tail(segments, self.config.chunk_overlap)
        return tail, len(" ".join(tail))


class ParagraphChunker(SegmentChunker):
    """Paragraph-based chunking.

    Paragraphs are delimited by blank lines. Overlap carries forward the
    last paragraph only.
    """

    separator = "\n\n"

    def segments(self, text: str) -> list[str]:
        return [p for p in _PARAGRAPH_BREAK.split(text) if p.strip()]

    def carry_over(self, segments: list[str]) -> tuple[list[str], int]:
        if self.config.chunk_overlap > 0 and segments:
            last = segments[-1]
            return [last], len(last)
        return [], 0


class SemanticChunker(SentenceChunker):
    """Sentence chunking; no embedding-aware boundary detection yet."""


_CHUNKERS: dict[str, type[ChunkingStrategy]] = {
    "fixed": FixedSizeChunker,
    "sentence": SentenceChunker,
    "paragraph": ParagraphChunker,
    "semantic": SemanticChunker,
}


def validate_chunking_config(config: ChunkingConfig) -> list[str]:
    """Return the list of problems with a chunking config (empty when valid)."""
    errors = []

    if config.chunk_size < MIN_CHUNK_SIZE_LIMIT:
        errors.append(f"Chunk size must be at least {MIN_CHUNK_SIZE_LIMIT} characters")

    if config.chunk_size > MAX_CHUNK_SIZE_LIMIT:
        errors.append(f"Chunk size must be at most {MAX_CHUNK_SIZE_LIMIT} characters")

    if config.chunk_overlap < 0:
        errors.append("Chunk overlap cannot be negative")

    if config.chunk_overlap >= config.chunk_size:
        errors.append("Chunk overlap must be less than chunk size")

    if config.strategy not in STRATEGIES:
        errors.append(f"Invalid chunking strategy. Must be one of: {', '.join(STRATEGIES)}")

    if config.min_chunk_size < 0:
        errors.append("Minimum chunk size cannot be negative")

    return errors


def get_chunker(strategy: str = "sentence", config: ChunkingConfig | None = None) -> ChunkingStrategy:
    """Get a chunking strategy by name.

    Args:
        strategy: "fixed", "sentence", "paragraph" or "semantic"
        config: Sizes and overlap; defaults are used when omitted

    Returns:
        Configured chunking strategy
    """
    chunker_class = _CHUNKERS.get(strategy)
    if chunker_class is None:
        raise InvalidInputError(f"Unknown chunking strategy: {strategy}")
    return chunker_class(config or ChunkingConfig(strategy=strategy))


def chunk_text(text: str, document_id: str, config: ChunkingConfig | None = None) -> ChunkingResult:
    """Split a document's text into chunks.

    Raises:
        InvalidInputError: On an invalid config or empty text
    """
    start = time.perf_counter()
    config = config or ChunkingConfig()

    errors = validate_chunking_config(config)
    if errors:
        raise InvalidInputError("Invalid chunking configuration", details=errors)

    if not text or not text.strip():
        raise InvalidInputError("Cannot chunk empty text")

    chunks = get_chunker(config.strategy, config).chunk(text, document_id)

    sizes = [len(c.text) for c in chunks]
    total_characters = sum(sizes)

    return ChunkingResult(
        chunks=chunks,
        total_chunks=len(chunks),
        average_chunk_size=round(total_characters / len(chunks)) if chunks else 0,
        strategy=config.strategy,
        processing_time_ms=int((time.perf_counter() - start) * 1000),
        statistics=ChunkingStatistics(
            min_chunk_size=min(sizes, default=0),
            max_chunk_size=max(sizes, default=0),
            total_characters=total_characters,
        ),
    )


__all__ = [
    "STRATEGIES",
    "Chunk",
    "ChunkingConfig",
    "ChunkingResult",
    "ChunkingStatistics",
    "ChunkingStrategy",
    "FixedSizeChunker",
    "ParagraphChunker",
    "SemanticChunker",
    "SentenceChunker",
    "chunk_text",
    "get_chunker",
    "split_into_sentences",
    "validate_chunking_config",
]
