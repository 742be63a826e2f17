"""PDF text extraction with OCR fallback.

Strategy: read the text layer with pypdf first. When it yields too little
text the PDF is treated as scanned, and the images embedded in each page
are sent through OCR instead.
"""

import logging
import time
from collections.abc import Callable
from io import BytesIO

from pypdf import PdfReader

from ragstudio.rag.extractors.base import (
    ExtractionMethod,
    ExtractionResult,
    TextExtractor,
    elapsed_ms,
)
from ragstudio.rag.extractors.ocr import OCRExtractor, PageImage

logger = logging.getLogger(__name__)


def page_images(reader: PdfReader) -> list[PageImage]:
    """Collect the images embedded in each page, in page order."""
    images = []
    for page_number, page in enumerate(reader.pages, 1):
        try:
            for image in page.images:
                images.append(PageImage(page_number=page_number, data=image.data, name=image.name))
        except Exception as e:
            logger.warning(f"[PDF] Could not read images on page {page_number}: {e}")
    return images


class PDFExtractor(TextExtractor):
    """Extract text from PDF files using pypdf, falling back to OCR."""

    method = ExtractionMethod.PDF_TEXT
    model_name = "pypdf"

    def __init__(self, ocr: OCRExtractor | None = None, min_text_length: int = 100):
        self.ocr = ocr
        self.min_text_length = min_text_length

    async def extract(
        self,
        content: bytes,
        file_name: str,
        *,
        force_ocr: bool = False,
        ocr_model: str | None = None,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> ExtractionResult:
        """Extract text from all pages of a PDF."""
        start = time.perf_counter()

        try:
            reader = PdfReader(BytesIO(content))
            page_count = len(reader.pages)
        except Exception as e:
            logger.warning(f"[PDF] Could not parse {file_name}: {e}")
            return self._failure(start, f"PDF extraction failed: {e}")

        if force_ocr:
            return await self._extract_with_ocr(reader, file_name, start, ocr_model, on_progress)

        try:
            page_texts = [page.extract_text() or "" for page in reader.pages]
        except Exception as e:
            logger.warning(f"[PDF] Text extraction failed ({file_name}), attempting OCR fallback")
            result = await self._extract_with_ocr(reader, file_name, start, ocr_model, on_progress)
            if not result.success:
                result.error = f"PDF extraction failed: {e}. {result.error}"
            return result

        raw_text = "".join(page_texts).strip()
        if len(raw_text) > self.min_text_length:
            text_parts = [
                f"[Page {page_num}]\n{text.strip()}"
                for page_num, text in enumerate(page_texts, 1)
                if text.strip()
            ]
            return ExtractionResult(
                text="\n\n".join(text_parts),
                method=self.method,
                model=self.model_name,
                processing_time_ms=elapsed_ms(start),
                success=True,
                page_count=page_count,
            )

        logger.info(
            f"[PDF] Only {len(raw_text)} characters of text in {file_name}, falling back to OCR"
        )
        return await self._extract_with_ocr(reader, file_name, start, ocr_model, on_progress)

    async def _extract_with_ocr(
        self,
        reader: PdfReader,
        file_name: str,
        start: float,
        ocr_model: str | None,
        on_progress: Callable[[int, int], None] | None,
    ) -> ExtractionResult:
        page_count = len(reader.pages)

        if self.ocr is None or not self.ocr.available:
            return self._failure(
                start,
                "PDF appears to be scanned and OCR is not configured. "
                "Set HUGGINGFACE_API_KEY or upload a PDF with extractable text.",
                page_count=page_count,
            )

        images = page_images(reader)
        if not images:
            return self._failure(
                start,
                "PDF appears to be scanned but no page images could be rendered for OCR. "
                "Convert the pages to images and upload them separately.",
                page_count=page_count,
            )

        result = await self.ocr.extract_many(
            images, file_name, model=ocr_model, on_progress=on_progress
        )
        result.method = ExtractionMethod.HYBRID
        result.page_count = page_count
        result.processing_time_ms = elapsed_ms(start)
        if not result.success:
            result.error = f"OCR fallback failed: {result.error}"
        return result

    def supported_types(self) -> list[str]:
        return [".pdf"]
