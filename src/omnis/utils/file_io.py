"""File read/save collaborators used by the workspace controller.

Neither collaborator raises for I/O problems: failures come back as values so
the caller decides what to show and whether to mark a document saved.
"""

from __future__ import annotations

import codecs
import locale
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Union

from ..editor.document_model import DocumentCategory, DocumentContent

__all__ = [
    "ReadResult",
    "ReadFailure",
    "SaveResult",
    "RichConverter",
    "read_document",
    "save_document",
    "detect_category",
    "write_text",
    "write_bytes",
]

LOGGER = logging.getLogger(__name__)

_BOM_MAP: dict[bytes, str] = {
    codecs.BOM_UTF8: "utf-8-sig",
    codecs.BOM_UTF16_LE: "utf-16-le",
    codecs.BOM_UTF16_BE: "utf-16-be",
    codecs.BOM_UTF32_LE: "utf-32-le",
    codecs.BOM_UTF32_BE: "utf-32-be",
}
_IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "webp", "gif", "svg", "bmp"}
_TEXT_EXTENSIONS = {
    "txt", "md", "markdown", "json", "yaml", "yml", "csv", "log",
    "js", "ts", "tsx", "jsx", "css", "html", "htm", "xml",
    "py", "java", "c", "cpp", "h", "rs", "go", "sh", "toml", "ini",
}
_RICH_EXTENSIONS = {"docx", "odt", "rtf"}
_MAGIC_SIGNATURES: tuple[tuple[bytes, DocumentCategory], ...] = (
    (b"%PDF-", DocumentCategory.PDF),
    (b"\x89PNG\r\n\x1a\n", DocumentCategory.IMAGE),
    (b"\xff\xd8\xff", DocumentCategory.IMAGE),
    (b"GIF87a", DocumentCategory.IMAGE),
    (b"GIF89a", DocumentCategory.IMAGE),
)

# Converts a rich document (e.g. DOCX) into HTML.
RichConverter = Callable[[Path], str]


@dataclass(slots=True, frozen=True)
class ReadResult:
    path: Path
    content: DocumentContent
    category: DocumentCategory
    extension: str


@dataclass(slots=True, frozen=True)
class ReadFailure:
    path: Path
    error: str


@dataclass(slots=True, frozen=True)
class SaveResult:
    success: bool
    error: str | None = None


def read_document(
    path: Path | str,
    *,
    rich_converter: RichConverter | None = None,
) -> Union[ReadResult, ReadFailure]:
    """Read ``path`` and sniff its category.

    Text is decoded to ``str``; images, PDFs and other binaries stay ``bytes``.
    Rich formats become HTML ``richText`` only when ``rich_converter`` is
    given; a converter failure yields an ``error`` document carrying the
    message.
    """

    target = Path(path)
    extension = target.suffix.lower().lstrip(".")
    try:
        raw = target.read_bytes()
    except OSError as exc:
        LOGGER.warning("Error reading file %s: %s", target, exc)
        return ReadFailure(path=target, error=str(exc))

    category = detect_category(target, raw)
    content: DocumentContent
    if category is DocumentCategory.TEXT:
        try:
            content = _decode_text(raw)
        except UnicodeDecodeError as exc:
            LOGGER.debug("Falling back to binary for %s: %s", target, exc)
            category, content = DocumentCategory.BINARY, raw
    elif category is DocumentCategory.RICH_TEXT:
        if rich_converter is None:
            category, content = DocumentCategory.BINARY, raw
        else:
            try:
                content = rich_converter(target)
            except Exception as exc:
                LOGGER.warning("Rich document conversion failed for %s: %s", target, exc)
                category, content = DocumentCategory.ERROR, f"Conversion failed: {exc}"
    else:
        content = raw
    return ReadResult(path=target, content=content, category=category, extension=extension)


def save_document(path: Path | str, content: DocumentContent) -> SaveResult:
    """Persist ``content`` atomically; strings are written as UTF-8."""

    try:
        if isinstance(content, str):
            write_text(path, content)
        else:
            write_bytes(path, content)
    except OSError as exc:
        LOGGER.warning("Failed to save %s: %s", path, exc)
        return SaveResult(success=False, error=str(exc))
    return SaveResult(success=True)


def detect_category(path: Path | str | None, raw: bytes | None = None) -> DocumentCategory:
    """Infer a category from the file extension, then from the leading bytes."""

    extension = Path(path).suffix.lower().lstrip(".") if path else ""
    if extension in _IMAGE_EXTENSIONS:
        return DocumentCategory.IMAGE
    if extension == "pdf":
        return DocumentCategory.PDF
    if extension in _TEXT_EXTENSIONS:
        return DocumentCategory.TEXT
    if extension in _RICH_EXTENSIONS:
        return DocumentCategory.RICH_TEXT

    if raw is None:
        return DocumentCategory.UNKNOWN
    for signature, category in _MAGIC_SIGNATURES:
        if raw.startswith(signature):
            return category
    if not raw:
        return DocumentCategory.TEXT
    if b"\x00" in raw[:4096]:
        return DocumentCategory.BINARY
    try:
        raw.decode("utf-8")
    except UnicodeDecodeError:
        return DocumentCategory.UNKNOWN
    return DocumentCategory.TEXT


def write_text(path: Path | str, content: str, *, encoding: str = "utf-8") -> Path:
    """Write text atomically, leaving line endings untouched."""

    return write_bytes(path, content.encode(encoding))


def write_bytes(path: Path | str, data: bytes) -> Path:
    """Write ``data`` through a temporary sibling file and an atomic replace."""

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    descriptor, tmp_name = tempfile.mkstemp(
        dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(descriptor, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, target)
    finally:
        if os.path.exists(tmp_name):  # pragma: no cover - cleanup path
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
    return target


def _decode_text(raw: bytes) -> str:
    return _strip_bom(raw.decode(_detect_encoding(raw)))


def _detect_encoding(raw: bytes) -> str:
    for bom, encoding in _BOM_MAP.items():
        if raw.startswith(bom):
            return encoding

    preferred = locale.getpreferredencoding(False) or "utf-8"
    seen: set[str] = set()
    for candidate in ("utf-8", preferred, "latin-1"):
        if not candidate or candidate in seen:
            continue
        seen.add(candidate)
        try:
            raw.decode(candidate)
            return candidate
        except (UnicodeDecodeError, LookupError):
            continue
    return "utf-8"


def _strip_bom(text: str) -> str:
    return text[1:] if text.startswith("\ufeff") else text
