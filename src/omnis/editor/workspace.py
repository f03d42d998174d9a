"""Session model managing the ordered collection of open documents."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Iterator, List, Optional, Protocol

from ..ui.events import (
    ActiveDocumentChanged,
    DocumentClosed,
    DocumentModified,
    DocumentOpened,
    DocumentSaved,
    DocumentsReordered,
    EventBus,
    ViewerModeChanged,
)
from .document_model import (
    Document,
    DocumentCategory,
    DocumentContent,
    DocumentIdentity,
    ViewerMode,
)

__all__ = ["DocumentSession", "ActiveDocumentListener"]

LOGGER = logging.getLogger(__name__)


class ActiveDocumentListener(Protocol):
    """Callback signature fired whenever the active document changes."""

    def __call__(self, document: Optional[Document]) -> None:  # pragma: no cover - protocol
        ...


class DocumentSession:
    """Single source of truth for open documents and the active selection.

    Operations on an id that is not open are no-ops: UI events may race a
    close, so a stale reference is never an error. Every mutation publishes
    its event before the call returns.
    """

    def __init__(
        self,
        event_bus: EventBus | None = None,
        *,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._bus = event_bus or EventBus()
        self._id_factory = id_factory
        self._documents: dict[str, Document] = {}
        self._order: List[str] = []
        self._active_id: str | None = None
        self._viewer_mode = ViewerMode.VIEW
        self._listeners: List[ActiveDocumentListener] = []

    # ------------------------------------------------------------------
    # Document lifecycle
    # ------------------------------------------------------------------
    def open_document(
        self,
        identity: DocumentIdentity,
        category: DocumentCategory,
        content: DocumentContent,
    ) -> Document:
        """Append a new document, make it active and return it.

        Opening the same path twice yields two independent documents.
        """

        document = Document(
            identity=identity,
            category=category,
            content=content,
            last_saved_content=content,
        )
        if self._id_factory is not None:
            document.id = self._id_factory()
        if document.id in self._documents:
            raise ValueError(f"Duplicate document id: {document.id}")

        self._documents[document.id] = document
        self._order.append(document.id)
        LOGGER.debug(
            "DocumentSession.open_document: id=%s, category=%s, path=%s",
            document.id,
            category.value,
            identity.path,
        )
        self._bus.publish(
            DocumentOpened(
                document_id=document.id,
                category=category.value,
                path=str(identity.path) if identity.path is not None else None,
            )
        )
        self._set_viewer_mode(ViewerMode.VIEW)
        self._set_active(document.id)
        return document

    def update_content(self, document_id: str, content: DocumentContent) -> None:
        """Replace the in-memory content of an open document."""

        document = self._documents.get(document_id)
        if document is None:
            LOGGER.debug("DocumentSession.update_content: ignoring stale id=%s", document_id)
            return
        if document.content == content:
            return
        document.content = content
        self._bus.publish(DocumentModified(document_id=document_id, dirty=document.dirty))

    def mark_saved(self, document_id: str) -> None:
        """Record that the current content was persisted successfully.

        Callers invoke this only after the save collaborator confirmed
        success; a failed save must leave the document dirty.
        """

        document = self._documents.get(document_id)
        if document is None:
            LOGGER.debug("DocumentSession.mark_saved: ignoring stale id=%s", document_id)
            return
        document.last_saved_content = document.content
        path = str(document.path) if document.path is not None else None
        self._bus.publish(DocumentSaved(document_id=document_id, path=path))

    def close_document(self, document_id: str) -> Document | None:
        """Remove a document and return it, or ``None`` when it is not open.

        Closing the active document activates the one immediately before it,
        falling back to the new first document, or ``None`` when the session
        is empty.
        """

        document = self._documents.pop(document_id, None)
        if document is None:
            LOGGER.debug("DocumentSession.close_document: ignoring stale id=%s", document_id)
            return None
        index = self._order.index(document_id)
        self._order.pop(index)

        LOGGER.debug(
            "DocumentSession.close_document: id=%s, dirty=%s, remaining=%d",
            document_id,
            document.dirty,
            len(self._order),
        )
        # Reassign before publishing so no subscriber sees a removed active id.
        if self._active_id == document_id:
            if self._order:
                fallback_index = index - 1 if index > 0 else 0
                self._set_active(self._order[fallback_index])
            else:
                self._set_active(None)

        self._bus.publish(DocumentClosed(document_id=document_id, was_dirty=document.dirty))
        return document

    def reorder(self, document_id: str, before_id: str) -> None:
        """Move ``document_id`` so that it sits immediately before ``before_id``."""

        if document_id not in self._documents or before_id not in self._documents:
            return
        if document_id == before_id:
            return
        self._order.remove(document_id)
        self._order.insert(self._order.index(before_id), document_id)
        LOGGER.debug("DocumentSession.reorder: order=%s", self._order)
        self._bus.publish(DocumentsReordered(order=tuple(self._order)))

    def move_to_end(self, document_id: str) -> None:
        """Move ``document_id`` behind every other document."""

        if document_id not in self._documents or self._order[-1] == document_id:
            return
        self._order.remove(document_id)
        self._order.append(document_id)
        self._bus.publish(DocumentsReordered(order=tuple(self._order)))

    def activate(self, document_id: str) -> Document | None:
        """Make an open document the active one."""

        if document_id not in self._documents:
            return None
        self._set_active(document_id)
        return self._documents[document_id]

    # ------------------------------------------------------------------
    # Viewer mode
    # ------------------------------------------------------------------
    @property
    def viewer_mode(self) -> ViewerMode:
        return self._viewer_mode

    def set_viewer_mode(self, mode: ViewerMode) -> None:
        self._set_viewer_mode(mode)

    def toggle_viewer_mode(self) -> ViewerMode:
        self._set_viewer_mode(self._viewer_mode.toggled())
        return self._viewer_mode

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    @property
    def event_bus(self) -> EventBus:
        return self._bus

    def add_active_listener(self, listener: ActiveDocumentListener) -> None:
        self._listeners.append(listener)

    def remove_active_listener(self, listener: ActiveDocumentListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------
    @property
    def active_id(self) -> str | None:
        return self._active_id

    @property
    def active_document(self) -> Document | None:
        if self._active_id is None:
            return None
        return self._documents.get(self._active_id)

    def get(self, document_id: str) -> Document | None:
        return self._documents.get(document_id)

    def iter_documents(self) -> Iterator[Document]:
        for document_id in self._order:
            yield self._documents[document_id]

    def document_ids(self) -> tuple[str, ...]:
        return tuple(self._order)

    def dirty_documents(self) -> Iterable[Document]:
        return tuple(document for document in self.iter_documents() if document.dirty)

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._documents

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------
    def serialize_state(self) -> dict[str, Any]:
        """Return a structured session snapshot for persistence layers."""

        return {
            "open_documents": [document.snapshot() for document in self.iter_documents()],
            "active_id": self._active_id,
            "viewer_mode": self._viewer_mode.value,
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _set_active(self, document_id: str | None) -> None:
        previous = self._active_id
        if previous == document_id:
            return
        self._active_id = document_id
        LOGGER.debug("DocumentSession: active %s -> %s", previous, document_id)
        self._bus.publish(ActiveDocumentChanged(document_id=document_id, previous_id=previous))
        document = self.active_document
        for listener in list(self._listeners):
            listener(document)

    def _set_viewer_mode(self, mode: ViewerMode) -> None:
        if mode is self._viewer_mode:
            return
        self._viewer_mode = mode
        self._bus.publish(ViewerModeChanged(mode=mode.value))
