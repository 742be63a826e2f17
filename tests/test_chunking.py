"""
Tests for chunking strategies.

Tests cover:
- Config validation
- Fixed-size windows with overlap
- Sentence and paragraph accumulation with carried overlap
- Chunk ids, indexes and statistics
- Offsets for every strategy
"""

import pytest

from ragstudio.rag.chunking import (
    ChunkingConfig,
    chunk_text,
    get_chunker,
    split_into_sentences,
    validate_chunking_config,
)
from ragstudio.rag.errors import InvalidInputError


def numbered_sentences(count: int) -> list[str]:
    # Every sentence is exactly 27 characters long
    return [f"This is sentence number {n}." for n in range(10, 10 + count)]


class TestValidation:
    """Tests for chunking config validation."""

    def test_default_config_is_valid(self):
        assert validate_chunking_config(ChunkingConfig()) == []

    def test_collects_every_problem(self):
        config = ChunkingConfig(
            chunk_size=10, chunk_overlap=20, strategy="bogus", min_chunk_size=-1
        )

        errors = validate_chunking_config(config)

        assert "Chunk size must be at least 50 characters" in errors
        assert "Chunk overlap must be less than chunk size" in errors
        assert "Minimum chunk size cannot be negative" in errors
        assert any(e.startswith("Invalid chunking strategy") for e in errors)

    def test_rejects_oversized_chunks_and_negative_overlap(self):
        errors = validate_chunking_config(ChunkingConfig(chunk_size=6000, chunk_overlap=-1))

        assert "Chunk size must be at most 5000 characters" in errors
        assert "Chunk overlap cannot be negative" in errors

    def test_chunk_text_raises_with_details(self):
        with pytest.raises(InvalidInputError) as exc_info:
            chunk_text("some text", "doc", ChunkingConfig(chunk_size=10))

        assert exc_info.value.message == "Invalid chunking configuration"
        assert exc_info.value.details

    def test_empty_text_raises(self):
        with pytest.raises(InvalidInputError, match="empty text"):
            chunk_text("   \n ", "doc")

    def test_unknown_strategy_raises(self):
        with pytest.raises(InvalidInputError):
            get_chunker("bogus")


class TestSentenceSplitting:
    """Tests for the sentence splitter."""

    def test_splits_on_terminal_punctuation(self):
        sentences = split_into_sentences("One. Two? Three! Four")
        assert sentences == ["One.", "Two?", "Three!", "Four"]

    def test_keeps_decimal_numbers_together(self):
        assert split_into_sentences("Pi is 3.14 roughly. Next") == ["Pi is 3.14 roughly.", "Next"]


class TestShortText:
    """A text shorter than one chunk yields exactly one chunk."""

    def test_single_chunk(self):
        result = chunk_text("hello", "doc_1")

        assert result.total_chunks == 1
        chunk = result.chunks[0]
        assert chunk.text == "hello"
        assert chunk.id == "doc_1_chunk_0"
        assert chunk.index == 0
        assert (chunk.start_char, chunk.end_char) == (0, 5)
        assert result.average_chunk_size == 5
        assert result.statistics.min_chunk_size == 5
        assert result.statistics.max_chunk_size == 5
        assert result.statistics.total_characters == 5


class TestFixedSize:
    """Tests for the sliding-window strategy."""

    def test_window_advances_by_size_minus_overlap(self):
        text = "a" * 1000
        config = ChunkingConfig(chunk_size=100, chunk_overlap=20, strategy="fixed")

        result = chunk_text(text, "doc", config)

        assert result.total_chunks == 13
        assert [c.start_char for c in result.chunks[:3]] == [0, 80, 160]
        assert all(len(c.text) == 100 for c in result.chunks[:-1])
        assert len(result.chunks[-1].text) == 40
        assert [c.index for c in result.chunks] == list(range(13))

    def test_skips_blank_windows_without_gaps_in_index(self):
        text = "x" * 60 + " " * 180 + "y" * 60
        config = ChunkingConfig(chunk_size=60, chunk_overlap=0, strategy="fixed")

        result = chunk_text(text, "doc", config)

        assert [c.text for c in result.chunks] == ["x" * 60, "y" * 60]
        assert [c.index for c in result.chunks] == [0, 1]


class TestSentence:
    """Tests for sentence accumulation."""

    def test_chunks_respect_size_and_carry_last_sentence(self):
        # Arrange
        text = " ".join(numbered_sentences(12))
        config = ChunkingConfig(chunk_size=100, chunk_overlap=30, min_chunk_size=50)

        # Act
        chunks = chunk_text(text, "doc", config).chunks

        # Assert
        assert len(chunks) > 1
        assert all(len(c.text) <= 100 for c in chunks)
        for previous, current in zip(chunks, chunks[1:]):
            last_sentence = split_into_sentences(previous.text)[-1]
            assert current.text.startswith(last_sentence)

    def test_no_overlap_partitions_sentences(self):
        sentences = numbered_sentences(12)
        config = ChunkingConfig(chunk_size=100, chunk_overlap=0, min_chunk_size=50)

        chunks = chunk_text(" ".join(sentences), "doc", config).chunks

        rejoined = [s for c in chunks for s in split_into_sentences(c.text)]
        assert rejoined == sentences

    def test_semantic_matches_sentence(self):
        text = " ".join(numbered_sentences(12))
        sentence = chunk_text(text, "doc", ChunkingConfig(chunk_size=100, strategy="sentence"))
        semantic = chunk_text(text, "doc", ChunkingConfig(chunk_size=100, strategy="semantic"))

        assert [c.text for c in semantic.chunks] == [c.text for c in sentence.chunks]
        assert semantic.strategy == "semantic"


class TestParagraph:
    """Tests for paragraph accumulation."""

    paragraphs = ["A" * 30, "B" * 30, "C" * 30]

    def test_one_paragraph_per_chunk_without_overlap(self):
        text = "\n\n".join(self.paragraphs)
        config = ChunkingConfig(
            chunk_size=50, chunk_overlap=0, strategy="paragraph", min_chunk_size=10
        )

        chunks = chunk_text(text, "doc", config).chunks

        assert [c.text for c in chunks] == self.paragraphs

    def test_overlap_carries_previous_paragraph(self):
        text = "\n  \n".join(self.paragraphs)
        config = ChunkingConfig(
            chunk_size=50, chunk_overlap=10, strategy="paragraph", min_chunk_size=10
        )

        chunks = chunk_text(text, "doc", config).chunks

        a, b, c = self.paragraphs
        assert [ch.text for ch in chunks] == [a, f"{a}\n\n{b}", f"{b}\n\n{c}"]


SENTENCE_TEXT = " ".join(numbered_sentences(20))
PARAGRAPH_TEXT = "\n\n".join(
    " ".join(numbered_sentences(20)[i : i + 2]) for i in range(0, 20, 2)
)


class TestOffsets:
    """Tests for chunk offsets across every strategy."""

    @pytest.mark.parametrize("strategy", ["fixed", "sentence", "paragraph", "semantic"])
    @pytest.mark.parametrize(
        "text", [SENTENCE_TEXT, PARAGRAPH_TEXT], ids=["sentences", "paragraphs"]
    )
    def test_offsets_cover_the_text(self, strategy, text):
        # Arrange
        config = ChunkingConfig(
            chunk_size=120, chunk_overlap=30, strategy=strategy, min_chunk_size=50
        )

        # Act
        chunks = chunk_text(text, "doc", config).chunks

        # Assert
        assert len(chunks) >= 1
        assert chunks[0].start_char == 0
        starts = [c.start_char for c in chunks]
        assert starts == sorted(starts)
        assert abs(len(text) - chunks[-1].end_char) <= config.chunk_overlap
