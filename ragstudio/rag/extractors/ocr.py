"""OCR text extraction through a vision-capable chat completion.

Images are sent as base64 data URIs to an OpenAI-compatible endpoint
(the Hugging Face router by default).
"""

import base64
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from openai import AsyncOpenAI, OpenAIError

from ragstudio.rag.extractors.base import (
    ExtractionMethod,
    ExtractionResult,
    TextExtractor,
    elapsed_ms,
    get_file_extension,
)

logger = logging.getLogger(__name__)

DEFAULT_OCR_MODEL = "deepseek-ai/DeepSeek-OCR"

IMAGE_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".tiff": "image/tiff",
    ".tif": "image/tiff",
    ".heic": "image/heic",
    ".heif": "image/heif",
}


def default_ocr_prompt(model: str) -> str:
    """DeepSeek-OCR is prompted for markdown, other models for plain text."""
    if "deepseek-ocr" in model.lower():
        return "Convert this document to markdown:"
    return "Extract all text from this image:"


def image_data_uri(content: bytes, file_name: str) -> str:
    mime_type = IMAGE_MIME_TYPES.get(get_file_extension(file_name), "image/jpeg")
    return f"data:{mime_type};base64,{base64.b64encode(content).decode('ascii')}"


@dataclass
class PageImage:
    """An image to OCR as one page of a multi-page document."""

    page_number: int
    data: bytes
    name: str


class OCRExtractor(TextExtractor):
    """Extract text from images with a vision model."""

    method = ExtractionMethod.OCR

    def __init__(
        self,
        client: AsyncOpenAI | None,
        model: str = DEFAULT_OCR_MODEL,
        max_tokens: int = 4096,
    ):
        self.client = client
        self.model_name = model
        self.max_tokens = max_tokens

    @property
    def available(self) -> bool:
        return self.client is not None

    async def extract(
        self,
        content: bytes,
        file_name: str,
        *,
        model: str | None = None,
        prompt: str | None = None,
    ) -> ExtractionResult:
        """OCR a single image."""
        start = time.perf_counter()
        model = model or self.model_name

        if self.client is None:
            return self._failure(
                start, "OCR is not configured: HUGGINGFACE_API_KEY is not set", model=model
            )

        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": prompt or default_ocr_prompt(model)},
                            {
                                "type": "image_url",
                                "image_url": {"url": image_data_uri(content, file_name)},
                            },
                        ],
                    }
                ],
                max_tokens=self.max_tokens,
                temperature=0.1,
            )
        except OpenAIError as e:
            logger.warning(f"[OCR] Provider error for {file_name}: {e}")
            return self._failure(start, f"OCR provider error: {e}", model=model)

        choice = response.choices[0] if response.choices else None
        text = (choice.message.content or "").strip() if choice else ""

        if not text:
            return self._failure(start, "OCR extraction returned no text", model=model)

        return ExtractionResult(
            text=text,
            method=self.method,
            model=response.model or model,
            processing_time_ms=elapsed_ms(start),
            success=True,
            page_count=1,
            used_ocr=True,
            truncated=choice.finish_reason == "length",
        )

    async def extract_many(
        self,
        images: list[PageImage],
        file_name: str,
        *,
        model: str | None = None,
        prompt: str | None = None,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> ExtractionResult:
        """OCR a sequence of page images and join them in page order.

        Pages that fail are marked in the output; the whole extraction fails
        only when no page produced any text.
        """
        start = time.perf_counter()
        model = model or self.model_name
        parts = []
        pages_with_text = 0
        truncated = False

        for i, image in enumerate(images, 1):
            if on_progress:
                on_progress(i, len(images))

            result = await self.extract(image.data, image.name, model=model, prompt=prompt)
            if result.success:
                parts.append(f"--- Page {image.page_number} ---\n{result.text}")
                pages_with_text += 1
                truncated = truncated or result.truncated
            else:
                logger.warning(
                    f"[OCR] Failed to extract text from page {image.page_number} "
                    f"of {file_name}: {result.error}"
                )
                parts.append(f"--- Page {image.page_number} (extraction failed) ---")

        if pages_with_text == 0:
            return self._failure(
                start,
                "No text extracted from any pages",
                model=model,
                page_count=len(images),
                used_ocr=True,
            )

        return ExtractionResult(
            text="\n\n".join(parts),
            method=self.method,
            model=model,
            processing_time_ms=elapsed_ms(start),
            success=True,
            page_count=len(images),
            used_ocr=True,
            truncated=truncated,
        )

    def supported_types(self) -> list[str]:
        return list(IMAGE_MIME_TYPES)
