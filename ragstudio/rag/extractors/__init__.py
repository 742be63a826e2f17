"""Document text extraction for various file types.

Supports: PDF (text layer, OCR fallback), images (OCR), and plain or
structured text (TXT, MD, JSON, CSV, HTML, XML, LOG, YAML).
"""

import re
import time

from ragstudio.rag.extractors.base import (
    ExtractionMethod,
    ExtractionResult,
    TextExtractor,
    elapsed_ms,
    get_file_extension,
)
from ragstudio.rag.extractors.ocr import OCRExtractor, PageImage, default_ocr_prompt
from ragstudio.rag.extractors.pdf import PDFExtractor
from ragstudio.rag.extractors.plain import PlainTextExtractor


class DocumentExtractor:
    """Unified document extractor that routes on the file extension."""

    def __init__(
        self,
        plain: PlainTextExtractor,
        ocr: OCRExtractor,
        pdf: PDFExtractor,
    ):
        self.plain = plain
        self.ocr = ocr
        self.pdf = pdf

        # Build extension mapping
        self._extension_map: dict[str, TextExtractor] = {}
        for extractor in (pdf, ocr, plain):
            for extension in extractor.supported_types():
                self._extension_map[extension] = extractor

    def supports(self, file_name: str) -> bool:
        """Check if a file name has a supported extension."""
        return get_file_extension(file_name) in self._extension_map

    def supported_extensions(self) -> list[str]:
        """Get all supported extensions."""
        return list(self._extension_map.keys())

    async def extract(
        self,
        content: bytes,
        file_name: str,
        *,
        ocr_model: str | None = None,
        force_ocr: bool = False,
    ) -> ExtractionResult:
        """Extract text from a document based on its file name.

        Args:
            content: Raw document bytes
            file_name: Original file name, used for type detection
            ocr_model: Vision model override for OCR paths
            force_ocr: Skip the PDF text layer and OCR the page images

        Returns:
            ExtractionResult; ``success`` is False with a readable ``error``
            on unsupported types or failed extraction
        """
        start = time.perf_counter()
        extension = get_file_extension(file_name)
        extractor = self._extension_map.get(extension)

        if extractor is None:
            return ExtractionResult(
                text="",
                method=ExtractionMethod.DIRECT,
                model="none",
                processing_time_ms=elapsed_ms(start),
                success=False,
                error=(
                    f"Unsupported file type: {extension or '(none)'}. "
                    f"Supported types: {', '.join(self.supported_extensions())}"
                ),
            )

        if extractor is self.pdf:
            result = await self.pdf.extract(
                content, file_name, force_ocr=force_ocr, ocr_model=ocr_model
            )
        elif extractor is self.ocr:
            result = await self.ocr.extract(content, file_name, model=ocr_model)
        else:
            result = await extractor.extract(content, file_name)

        if not result.success:
            return result

        # Clean up extracted text
        result.text = self._clean_text(result.text)
        if not result.text:
            result.success = False
            result.error = "No text content extracted from file"

        return result

    def _clean_text(self, text: str) -> str:
        """Clean and normalize extracted text."""
        # Normalize line endings
        text = text.replace("\r\n", "\n").replace("\r", "\n")

        # Remove excessive whitespace
        text = re.sub(r"[ \t]+", " ", text)

        # Remove excessive newlines (more than 2)
        text = re.sub(r"\n{3,}", "\n\n", text)

        # Strip leading/trailing whitespace from each line
        lines = [line.strip() for line in text.split("\n")]
        text = "\n".join(lines)

        return text.strip()


__all__ = [
    "DocumentExtractor",
    "ExtractionMethod",
    "ExtractionResult",
    "OCRExtractor",
    "PDFExtractor",
    "PageImage",
    "PlainTextExtractor",
    "TextExtractor",
    "default_ocr_prompt",
    "get_file_extension",
]
