"""Routes user actions to the document session and the rendering/analytics engines."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, assert_never

from ..ai.analytics import AssistantAnswer, AssistantMode
from ..ai.assistant import AssistantLatency, DocumentAssistant
from ..editor.document_model import (
    Document,
    DocumentCategory,
    DocumentContent,
    DocumentIdentity,
    ViewerMode,
    tools_for_category,
)
from ..editor.pagination import PageCursor
from ..editor.workspace import DocumentSession
from ..rendering.decoder import PaginatedDecoder
from ..rendering.pipeline import RenderPipeline, RenderState
from ..services.importers import ImporterError, extract_pdf_text
from ..services.markup import strip_markup
from ..services.settings import Settings, SettingsStore, remember_recent_file
from ..utils.file_io import (
    ReadFailure,
    ReadResult,
    RichConverter,
    SaveResult,
    read_document,
    save_document,
)
from .events import ActiveDocumentChanged, DocumentClosed, DocumentModified, EventBus

__all__ = ["WorkspaceController"]

LOGGER = logging.getLogger(__name__)

_LOADABLE_STATES = (RenderState.UNLOADED, RenderState.FAILED)

Reader = Callable[..., ReadResult | ReadFailure]
Saver = Callable[[Path, DocumentContent], SaveResult]


class WorkspaceController:
    """Glue between the user-facing shell and the workspace core.

    The controller owns one :class:`PageCursor` per textual document and one
    :class:`RenderPipeline` per PDF document. Both are created lazily and
    dropped when the document closes. PDF loads are scheduled on the running
    event loop whenever a PDF becomes active or its content changes; without
    a running loop callers use :meth:`ensure_loaded` explicitly.
    """

    def __init__(
        self,
        *,
        session: DocumentSession | None = None,
        settings: Settings | None = None,
        settings_store: SettingsStore | None = None,
        assistant: DocumentAssistant | None = None,
        decoder_factory: Callable[[], PaginatedDecoder] | None = None,
        reader: Reader = read_document,
        saver: Saver = save_document,
        rich_converter: RichConverter | None = None,
        markup_stripper: Callable[[str], str] = strip_markup,
        pdf_text_extractor: Callable[[bytes], str] = extract_pdf_text,
    ) -> None:
        self._settings = settings or Settings()
        self._settings_store = settings_store
        self._session = session or DocumentSession(EventBus())
        self._assistant = assistant or DocumentAssistant(
            AssistantMode(self._settings.assistant_mode),
            latency=AssistantLatency(
                cloud=self._settings.cloud_latency, local=self._settings.local_latency
            ),
        )
        self._decoder_factory = decoder_factory
        self._decoder: PaginatedDecoder | None = None
        self._reader = reader
        self._saver = saver
        self._rich_converter = rich_converter
        self._markup_stripper = markup_stripper
        self._pdf_text_extractor = pdf_text_extractor
        self._cursors: dict[str, PageCursor] = {}
        self._pipelines: dict[str, RenderPipeline] = {}
        self._load_tasks: dict[str, asyncio.Task[RenderState]] = {}
        self.last_error: str | None = None

        bus = self._session.event_bus
        bus.subscribe(ActiveDocumentChanged, self._on_active_changed)
        bus.subscribe(DocumentModified, self._on_document_modified)
        bus.subscribe(DocumentClosed, self._on_document_closed)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def session(self) -> DocumentSession:
        return self._session

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def assistant(self) -> DocumentAssistant:
        return self._assistant

    # ------------------------------------------------------------------
    # Document lifecycle
    # ------------------------------------------------------------------
    def open_path(self, path: Path | str) -> Document | None:
        """Read ``path`` and open it as a new document.

        Returns ``None`` and records :attr:`last_error` when the read fails.
        """

        result = self._reader(Path(path), rich_converter=self._rich_converter)
        if isinstance(result, ReadFailure):
            self.last_error = result.error
            LOGGER.warning("Unable to open %s: %s", result.path, result.error)
            return None

        self.last_error = None
        identity = DocumentIdentity(
            name=result.path.name, path=result.path, extension=result.extension
        )
        document = self._session.open_document(identity, result.category, result.content)
        self._remember_recent(result.path)
        return document

    def open_content(
        self,
        name: str,
        category: DocumentCategory,
        content: DocumentContent,
    ) -> Document:
        """Open in-memory content that has no backing file yet."""

        identity = DocumentIdentity(name=name, extension=Path(name).suffix.lower().lstrip("."))
        return self._session.open_document(identity, category, content)

    def edit(self, document_id: str, content: DocumentContent) -> None:
        self._session.update_content(document_id, content)

    def save(self, document_id: str, path: Path | str | None = None) -> SaveResult:
        """Persist a document, clearing its dirty flag only on success."""

        document = self._session.get(document_id)
        if document is None:
            return SaveResult(success=False, error="Document is not open")
        target = Path(path) if path is not None else document.path
        if target is None:
            return SaveResult(success=False, error="Document has no file path")

        result = self._saver(target, document.content)
        if result.success:
            self._session.mark_saved(document_id)
        else:
            LOGGER.warning("Save failed for %s: %s", target, result.error)
        return result

    def close(self, document_id: str) -> Document | None:
        return self._session.close_document(document_id)

    def activate(self, document_id: str) -> Document | None:
        return self._session.activate(document_id)

    def reorder(self, document_id: str, before_id: str) -> None:
        self._session.reorder(document_id, before_id)

    def toggle_viewer_mode(self) -> ViewerMode:
        return self._session.toggle_viewer_mode()

    def tools_for_active(self) -> tuple[str, ...]:
        document = self._session.active_document
        if document is None:
            return ()
        return tools_for_category(document.category)

    # ------------------------------------------------------------------
    # Text pagination
    # ------------------------------------------------------------------
    def cursor_for(self, document_id: str) -> PageCursor | None:
        document = self._session.get(document_id)
        if document is None or not document.category.is_textual:
            return None
        cursor = self._cursors.get(document_id)
        if cursor is None:
            cursor = PageCursor(_as_text(document.content), page_size=self._settings.page_size)
            self._cursors[document_id] = cursor
        return cursor

    def visible_content(self, document_id: str | None = None) -> DocumentContent | None:
        """Return what the viewer pane shows for a document.

        Edit mode always works on the complete buffer; view mode shows the
        current page of textual documents.
        """

        document = self._resolve(document_id)
        if document is None:
            return None
        if self._session.viewer_mode is ViewerMode.EDIT or not document.category.is_textual:
            return document.content
        cursor = self.cursor_for(document.id)
        return cursor.visible_text() if cursor is not None else document.content

    def next_page(self) -> int | None:
        """Advance the active document by one page and return the new page number."""

        return self._navigate(lambda cursor: cursor.next_page(), RenderPipeline.next_page)

    def prev_page(self) -> int | None:
        return self._navigate(lambda cursor: cursor.prev_page(), RenderPipeline.prev_page)

    def go_to_page(self, page_number: int) -> int | None:
        return self._navigate(
            lambda cursor: cursor.go_to(page_number),
            lambda pipeline: pipeline.go_to_page(page_number),
        )

    # ------------------------------------------------------------------
    # PDF rendering
    # ------------------------------------------------------------------
    def pipeline_for(self, document_id: str) -> RenderPipeline | None:
        document = self._session.get(document_id)
        if document is None or document.category is not DocumentCategory.PDF:
            return None
        pipeline = self._pipelines.get(document_id)
        if pipeline is None:
            pipeline = RenderPipeline(
                self._get_decoder(),
                document_id=document_id,
                event_bus=self._session.event_bus,
                device_pixel_ratio=self._settings.device_pixel_ratio,
                load_timeout=self._settings.render_load_timeout,
            )
            self._pipelines[document_id] = pipeline
        return pipeline

    async def ensure_loaded(self, document_id: str) -> RenderState | None:
        """Load a PDF document unless a load is pending or has succeeded.

        A pipeline whose previous load failed is loaded again.
        """

        pending = self._load_tasks.get(document_id)
        if pending is not None and not pending.done():
            return await pending
        pipeline = self.pipeline_for(document_id)
        if pipeline is None:
            return None
        if pipeline.state in _LOADABLE_STATES:
            document = self._session.get(document_id)
            assert document is not None
            return await pipeline.load(document.content)
        return pipeline.state

    def zoom_in(self) -> float | None:
        pipeline = self._active_pipeline()
        if pipeline is None:
            return None
        pipeline.zoom_in()
        return pipeline.scale

    def zoom_out(self) -> float | None:
        pipeline = self._active_pipeline()
        if pipeline is None:
            return None
        pipeline.zoom_out()
        return pipeline.scale

    def rotate(self) -> int | None:
        pipeline = self._active_pipeline()
        if pipeline is None:
            return None
        pipeline.rotate()
        return pipeline.rotation

    async def wait_idle(self) -> None:
        """Wait for scheduled loads and renders of every open PDF to settle."""

        for task in list(self._load_tasks.values()):
            if not task.done():
                await task
        for pipeline in list(self._pipelines.values()):
            await pipeline.wait_idle()

    # ------------------------------------------------------------------
    # Assistant
    # ------------------------------------------------------------------
    def plain_text(self, document: Document) -> str:
        """Project a document onto the plain text the assistant analyses."""

        match document.category:
            case DocumentCategory.TEXT:
                return _as_text(document.content)
            case DocumentCategory.RICH_TEXT:
                return self._markup_stripper(_as_text(document.content))
            case DocumentCategory.PDF:
                try:
                    return self._pdf_text_extractor(_as_bytes(document.content))
                except ImporterError as exc:
                    LOGGER.warning("Unable to extract text from %s: %s", document.name, exc)
                    return ""
            case (
                DocumentCategory.IMAGE
                | DocumentCategory.BINARY
                | DocumentCategory.UNKNOWN
                | DocumentCategory.ERROR
            ):
                return ""
            case _:
                assert_never(document.category)

    async def ask(self, query: str, document_id: str | None = None) -> AssistantAnswer:
        """Answer ``query`` about a document, the active one by default."""

        document = self._resolve(document_id)
        text = self.plain_text(document) if document is not None else ""
        return await self._assistant.ask(query, text)

    def set_assistant_mode(self, mode: AssistantMode | str) -> None:
        self._assistant.set_mode(mode)

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------
    def shutdown(self) -> None:
        for pipeline in self._pipelines.values():
            pipeline.close()
        self._pipelines.clear()
        self._load_tasks.clear()
        shutdown = getattr(self._decoder, "shutdown", None)
        if callable(shutdown):
            shutdown()
        self._decoder = None

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------
    def _on_active_changed(self, event: ActiveDocumentChanged) -> None:
        if event.document_id is None:
            return
        document = self._session.get(event.document_id)
        if document is None:
            return
        cursor = self._cursors.get(document.id)
        if cursor is not None:
            cursor.reset()
        if document.category is not DocumentCategory.PDF:
            return
        pipeline = self.pipeline_for(document.id)
        if pipeline is None:
            return
        if pipeline.state in _LOADABLE_STATES:
            self._schedule_load(document)
        elif pipeline.current_page != 1 and _running_loop() is not None:
            pipeline.go_to_page(1)

    def _on_document_modified(self, event: DocumentModified) -> None:
        document = self._session.get(event.document_id)
        if document is None:
            return
        cursor = self._cursors.get(document.id)
        if cursor is not None:
            cursor.refresh(_as_text(document.content))
        if document.category is DocumentCategory.PDF and document.id in self._pipelines:
            self._schedule_load(document)

    def _on_document_closed(self, event: DocumentClosed) -> None:
        self._cursors.pop(event.document_id, None)
        self._load_tasks.pop(event.document_id, None)
        pipeline = self._pipelines.pop(event.document_id, None)
        if pipeline is not None:
            pipeline.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _resolve(self, document_id: str | None) -> Document | None:
        if document_id is None:
            return self._session.active_document
        return self._session.get(document_id)

    def _active_pipeline(self) -> RenderPipeline | None:
        document_id = self._session.active_id
        if document_id is None:
            return None
        return self._pipelines.get(document_id)

    def _navigate(
        self,
        text_step: Callable[[PageCursor], int],
        pdf_step: Callable[[RenderPipeline], object],
    ) -> int | None:
        document = self._session.active_document
        if document is None:
            return None
        if document.category is DocumentCategory.PDF:
            pipeline = self._pipelines.get(document.id)
            if pipeline is None:
                return None
            pdf_step(pipeline)
            return pipeline.current_page
        cursor = self.cursor_for(document.id)
        if cursor is None:
            return None
        return text_step(cursor)

    def _schedule_load(self, document: Document) -> None:
        loop = _running_loop()
        if loop is None:
            LOGGER.debug("No running event loop; deferring load of %s", document.id)
            return
        pipeline = self.pipeline_for(document.id)
        if pipeline is None:
            return
        self._load_tasks[document.id] = loop.create_task(
            pipeline.load(document.content)
        )

    def _get_decoder(self) -> PaginatedDecoder:
        if self._decoder is None:
            if self._decoder_factory is not None:
                self._decoder = self._decoder_factory()
            else:
                from ..rendering.pymupdf_backend import PyMuPDFDecoder

                self._decoder = PyMuPDFDecoder()
        return self._decoder

    def _remember_recent(self, path: Path) -> None:
        self._settings = remember_recent_file(self._settings, path.resolve())
        if self._settings_store is None:
            return
        try:
            self._settings_store.save(self._settings)
        except OSError as exc:
            LOGGER.warning("Unable to persist recent files: %s", exc)


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def _as_text(content: DocumentContent) -> str:
    if isinstance(content, str):
        return content
    return content.decode("utf-8", errors="replace")


def _as_bytes(content: DocumentContent) -> bytes:
    if isinstance(content, str):
        return content.encode("utf-8")
    return content
