"""Plain-text extraction for paginated binary documents."""

from __future__ import annotations

import io
import logging
from typing import Any

from pypdf import PdfReader

__all__ = ["ImporterError", "PDFTextExtractor", "extract_pdf_text"]

_LOGGER = logging.getLogger(__name__)


class ImporterError(RuntimeError):
    """Raised when text cannot be extracted from a document payload."""


class PDFTextExtractor:
    """Convert PDF bytes into plain text using pypdf."""

    def __init__(self, *, reader_cls: type | None = None) -> None:
        self._reader_cls = reader_cls or PdfReader

    def extract(self, data: bytes) -> str:
        """Return the text of every page, pages separated by a blank line.

        Pages that fail to extract are skipped; an unreadable payload raises
        :class:`ImporterError`.
        """

        if not data:
            raise ImporterError("PDF payload is empty")
        try:
            reader = self._reader_cls(io.BytesIO(data))
        except Exception as exc:
            raise ImporterError(f"Unable to open PDF: {exc}") from exc

        chunks: list[str] = []
        pages: Any = getattr(reader, "pages", [])
        for index, page in enumerate(pages):
            try:
                chunk = str(page.extract_text() or "")
            except Exception as exc:
                _LOGGER.debug("Failed to extract page %s: %s", index, exc)
                continue
            chunk = chunk.strip()
            if chunk:
                chunks.append(chunk)
        return "\n\n".join(chunks)


def extract_pdf_text(data: bytes) -> str:
    return PDFTextExtractor().extract(data)
