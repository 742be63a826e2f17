"""Direct text extraction for plain and structured text formats.

Structured formats are linearized into readable text rather than
returned as raw markup:
- JSON: recursive ``key:``/value walk (depth-capped)
- CSV: header line followed by one line per row
- HTML/XML: tags, scripts, styles and comments stripped, entities decoded
"""

import csv
import html
import io
import json
import re
import time
from typing import Any

from bs4 import BeautifulSoup, Comment

from ragstudio.rag.errors import ExtractionError
from ragstudio.rag.extractors.base import (
    ExtractionMethod,
    ExtractionResult,
    TextExtractor,
    elapsed_ms,
    get_file_extension,
)

MAX_JSON_DEPTH = 10

_CDATA_RE = re.compile(r"<!\[CDATA\[(.*?)\]\]>", re.DOTALL)
_WS_RE = re.compile(r"[ \t\f\v]+")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def decode_text(content: bytes) -> str:
    """Decode bytes, preferring UTF-8."""
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        pass

    if content[:2] in (b"\xff\xfe", b"\xfe\xff"):
        try:
            return content.decode("utf-16")
        except UnicodeDecodeError:
            pass

    # latin-1 never fails; binary data is caught by is_probably_text
    return content.decode("latin-1")


def is_probably_text(text: str) -> bool:
    """Heuristic binary detection on decoded content."""
    if not text:
        return True

    if "\x00" in text:
        return False

    if len(_CONTROL_RE.findall(text)) > len(text) * 0.1:
        return False

    printable = sum(1 for ch in text if ch.isprintable() or ch in "\n\r\t")
    return printable >= len(text) * 0.7


def json_to_text(value: Any, depth: int = 0) -> str:
    """Walk a parsed JSON value into ``key:``/value lines."""
    if depth > MAX_JSON_DEPTH:
        return ""

    if isinstance(value, str):
        return value

    if isinstance(value, bool):
        return "true" if value else "false"

    if isinstance(value, int | float):
        return str(value)

    parts = []
    if isinstance(value, list):
        for item in value:
            text = json_to_text(item, depth + 1)
            if text:
                parts.append(text)
    elif isinstance(value, dict):
        for key, item in value.items():
            parts.append(f"{key}:")
            text = json_to_text(item, depth + 1)
            if text:
                parts.append(text)

    return "\n".join(parts)


def csv_to_text(content: str) -> str:
    """Render CSV as a header line and one line per data row."""
    rows = [row for row in csv.reader(io.StringIO(content)) if any(cell.strip() for cell in row)]
    if not rows:
        return ""

    header, *data = rows
    parts = [f"Headers: {', '.join(cell.strip() for cell in header)}", "---"]
    for index, row in enumerate(data, 1):
        parts.append(f"Row {index}: {', '.join(cell.strip() for cell in row)}")

    return "\n".join(parts)


def _visible_lines(soup: BeautifulSoup) -> str:
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()
    lines = (_WS_RE.sub(" ", line).strip() for line in soup.get_text("\n").splitlines())
    return "\n".join(line for line in lines if line)


def html_to_text(markup: str) -> str:
    """Strip scripts, styles, comments and tags. Entities are decoded by the parser."""
    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.extract()
    return _visible_lines(soup)


def xml_to_text(markup: str) -> str:
    """Strip comments and tags, keeping CDATA content."""
    markup = _CDATA_RE.sub(lambda m: html.escape(m.group(1), quote=False), markup)
    return _visible_lines(BeautifulSoup(markup, "html.parser"))


class PlainTextExtractor(TextExtractor):
    """Extract text from plain and structured text files."""

    method = ExtractionMethod.DIRECT
    model_name = "direct-text-extraction"

    PLAIN = [".txt", ".md", ".markdown", ".log", ".yaml", ".yml"]
    STRUCTURED = [".json", ".csv", ".html", ".htm", ".xml"]

    async def extract(self, content: bytes, file_name: str) -> ExtractionResult:
        """Decode and, for structured formats, linearize the content."""
        start = time.perf_counter()
        extension = get_file_extension(file_name)

        try:
            text = self._extract(content, extension)
        except ExtractionError as e:
            return self._failure(start, e.message)

        return ExtractionResult(
            text=text.strip(),
            method=self.method,
            model=self.model_name,
            processing_time_ms=elapsed_ms(start),
            success=True,
        )

    def _extract(self, content: bytes, extension: str) -> str:
        if extension not in self.supported_types():
            raise ExtractionError(
                f"Unsupported file type for direct text extraction: {extension or '(none)'}"
            )

        raw = decode_text(content)
        if not is_probably_text(raw):
            raise ExtractionError("File appears to be binary, not text")

        if extension == ".json":
            try:
                text = json_to_text(json.loads(raw))
            except json.JSONDecodeError as e:
                raise ExtractionError(f"Failed to parse JSON: {e}") from e
        elif extension == ".csv":
            try:
                text = csv_to_text(raw)
            except csv.Error as e:
                raise ExtractionError(f"Failed to parse CSV: {e}") from e
        elif extension in (".html", ".htm"):
            text = html_to_text(raw)
        elif extension == ".xml":
            text = xml_to_text(raw)
        else:
            text = raw

        if not text.strip():
            raise ExtractionError("No text content found in file")

        return text

    def supported_types(self) -> list[str]:
        return self.PLAIN + self.STRUCTURED
