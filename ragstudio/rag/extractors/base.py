"""Shared extraction types."""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class ExtractionMethod(str, Enum):
    """How the text of a document was obtained."""

    DIRECT = "direct"
    OCR = "ocr"
    PDF_TEXT = "pdf-text"
    HYBRID = "hybrid"


@dataclass
class ExtractionResult:
    """Outcome of a single extraction. Failures carry a readable ``error``."""

    text: str
    method: ExtractionMethod
    model: str
    processing_time_ms: int
    success: bool
    error: str | None = None
    page_count: int | None = None
    used_ocr: bool = False
    truncated: bool = False


class TextExtractor(ABC):
    """Base class for text extractors."""

    method: ExtractionMethod
    model_name: str

    @abstractmethod
    async def extract(self, content: bytes, file_name: str) -> ExtractionResult:
        """Extract text from document content."""

    @abstractmethod
    def supported_types(self) -> list[str]:
        """Return list of supported file extensions."""

    def _failure(
        self,
        start: float,
        error: str,
        method: ExtractionMethod | None = None,
        model: str | None = None,
        **extra,
    ) -> ExtractionResult:
        return ExtractionResult(
            text="",
            method=method or self.method,
            model=model or self.model_name,
            processing_time_ms=elapsed_ms(start),
            success=False,
            error=error,
            **extra,
        )


def get_file_extension(file_name: str) -> str:
    """Lower-cased extension including the dot, or "" when there is none."""
    parts = file_name.rsplit(".", 1)
    return f".{parts[1].lower()}" if len(parts) == 2 and parts[1] else ""


def elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
