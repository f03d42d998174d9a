"""Dataclasses representing open documents and their identity."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Union, assert_never

__all__ = [
    "DocumentCategory",
    "DocumentContent",
    "DocumentIdentity",
    "Document",
    "ViewerMode",
    "tools_for_category",
]

DocumentContent = Union[str, bytes]


def _utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""

    return datetime.now(timezone.utc)


def _generate_document_id() -> str:
    return uuid.uuid4().hex


class DocumentCategory(Enum):
    """Closed set of content categories decided once when a file is opened."""

    IMAGE = "image"
    PDF = "pdf"
    TEXT = "text"
    RICH_TEXT = "richText"
    BINARY = "binary"
    UNKNOWN = "unknown"
    ERROR = "error"

    @property
    def is_textual(self) -> bool:
        """Return ``True`` when the content is held as an editable string."""

        match self:
            case DocumentCategory.TEXT | DocumentCategory.RICH_TEXT:
                return True
            case (
                DocumentCategory.IMAGE
                | DocumentCategory.PDF
                | DocumentCategory.BINARY
                | DocumentCategory.UNKNOWN
                | DocumentCategory.ERROR
            ):
                return False
            case _:
                assert_never(self)


class ViewerMode(Enum):
    """Whether the active document is shown read-only or in the editor."""

    VIEW = "view"
    EDIT = "edit"

    def toggled(self) -> "ViewerMode":
        return ViewerMode.EDIT if self is ViewerMode.VIEW else ViewerMode.VIEW


@dataclass(slots=True, frozen=True)
class DocumentIdentity:
    """Name and location of an opened file; never changes after open."""

    name: str
    path: Path | None = None
    extension: str = ""

    @classmethod
    def from_path(cls, path: Path | str) -> "DocumentIdentity":
        target = Path(path)
        return cls(name=target.name, path=target, extension=target.suffix.lower().lstrip("."))


@dataclass(slots=True)
class Document:
    """One open file's in-memory state.

    ``dirty`` is derived from ``content`` and ``last_saved_content`` on every
    access and is never stored.
    """

    identity: DocumentIdentity
    category: DocumentCategory
    content: DocumentContent
    last_saved_content: DocumentContent
    id: str = field(default_factory=_generate_document_id)
    opened_at: datetime = field(default_factory=_utcnow)

    @property
    def name(self) -> str:
        return self.identity.name

    @property
    def path(self) -> Path | None:
        return self.identity.path

    @property
    def extension(self) -> str:
        return self.identity.extension

    @property
    def dirty(self) -> bool:
        return self.content != self.last_saved_content

    @property
    def title(self) -> str:
        """Human-friendly label used in the tab strip."""

        return f"*{self.name}" if self.dirty else self.name

    def snapshot(self) -> dict[str, object]:
        """Return a serializable description without the content payload."""

        payload: dict[str, object] = {
            "id": self.id,
            "name": self.name,
            "extension": self.extension,
            "category": self.category.value,
            "dirty": self.dirty,
            "opened_at": self.opened_at.isoformat(),
        }
        if self.path is not None:
            payload["path"] = str(self.path)
        return payload


def tools_for_category(category: DocumentCategory) -> tuple[str, ...]:
    """Return the quick tools offered in the toolbar for ``category``."""

    match category:
        case DocumentCategory.PDF:
            return ("Sign", "OCR", "Merge PDF")
        case DocumentCategory.TEXT:
            return ("Rewrite", "Translate", "Grammar")
        case DocumentCategory.RICH_TEXT:
            return ("Rewrite", "Translate", "Export")
        case DocumentCategory.IMAGE:
            return ("To PDF", "Extract Text", "Crop")
        case DocumentCategory.BINARY | DocumentCategory.UNKNOWN | DocumentCategory.ERROR:
            return ()
        case _:
            assert_never(category)
