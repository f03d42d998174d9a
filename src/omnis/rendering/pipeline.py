"""Cancellable render pipeline for one paginated document.

State machine::

    UNLOADED -> LOADING -> READY <-> RENDERING
                       \\-> FAILED

Every navigation, zoom, rotation or reload supersedes the render in flight:
the previous operation is cancelled before the next one starts, so a stale
render can never paint over a newer one.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

from ..ui.events import EventBus, PageRendered, RenderStateChanged
from .decoder import DecodeError, DocumentHandle, PaginatedDecoder, RenderCancelled, RenderOperation
from .surface import RasterSurface

__all__ = [
    "RenderState",
    "RenderSnapshot",
    "RenderPipeline",
    "MIN_SCALE",
    "MAX_SCALE",
    "DEFAULT_SCALE",
    "SCALE_STEP",
    "ROTATIONS",
]

LOGGER = logging.getLogger(__name__)

MIN_SCALE = 0.5
MAX_SCALE = 3.0
DEFAULT_SCALE = 1.2
SCALE_STEP = 0.2
ROTATIONS: tuple[int, ...] = (0, 90, 180, 270)


class RenderState(Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    RENDERING = "rendering"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class RenderSnapshot:
    """Read-only view of a pipeline, suitable for a viewer toolbar."""

    state: RenderState
    total_pages: int
    current_page: int
    scale: float
    rotation: int
    error: str | None = None


@dataclass(slots=True)
class _RenderTicket:
    """Cancellation token for one render attempt."""

    page_number: int
    scale: float
    rotation: int
    cancelled: bool = False
    operation: RenderOperation | None = None

    def cancel(self) -> None:
        self.cancelled = True
        if self.operation is not None:
            self.operation.cancel()


def _clamp_scale(value: float) -> float:
    return round(max(MIN_SCALE, min(value, MAX_SCALE)), 2)


def _destroy_abandoned_handle(future: asyncio.Future[DocumentHandle]) -> None:
    if future.cancelled() or future.exception() is not None:
        return
    LOGGER.debug("Destroying a document decoded after its load was abandoned")
    future.result().destroy()


class RenderPipeline:
    """Drives a :class:`PaginatedDecoder` to rasterize one page at a time.

    The pipeline is used from the event loop thread only. Navigation methods
    are synchronous: they update the view state and schedule one render task,
    which they return so callers may await it.
    """

    def __init__(
        self,
        decoder: PaginatedDecoder,
        surface: RasterSurface | None = None,
        *,
        document_id: str | None = None,
        event_bus: EventBus | None = None,
        device_pixel_ratio: float = 1.0,
        load_timeout: float | None = None,
    ) -> None:
        self._decoder = decoder
        self._surface = surface or RasterSurface(device_pixel_ratio=device_pixel_ratio)
        self._document_id = document_id
        self._bus = event_bus
        self._load_timeout = load_timeout
        self._state = RenderState.UNLOADED
        self._handle: DocumentHandle | None = None
        self._load_generation = 0
        self._total_pages = 0
        self._current_page = 1
        self._scale = DEFAULT_SCALE
        self._rotation = 0
        self._error: str | None = None
        self._ticket: _RenderTicket | None = None
        self._render_task: asyncio.Task[None] | None = None
        self.completed_renders = 0

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def state(self) -> RenderState:
        return self._state

    @property
    def surface(self) -> RasterSurface:
        return self._surface

    @property
    def total_pages(self) -> int:
        return self._total_pages

    @property
    def current_page(self) -> int:
        return self._current_page

    @property
    def scale(self) -> float:
        return self._scale

    @property
    def rotation(self) -> int:
        return self._rotation

    @property
    def error(self) -> str | None:
        return self._error

    def snapshot(self) -> RenderSnapshot:
        return RenderSnapshot(
            state=self._state,
            total_pages=self._total_pages,
            current_page=self._current_page,
            scale=self._scale,
            rotation=self._rotation,
            error=self._error,
        )

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    async def load(self, payload: bytes | str) -> RenderState:
        """Decode ``payload``, replacing any previously loaded document.

        The previous handle is destroyed before decoding starts. When a newer
        load supersedes this one, its result is destroyed and ignored.
        """

        self._cancel_render()
        self._release_handle()
        self._load_generation += 1
        generation = self._load_generation
        self._error = None
        self._total_pages = 0
        self._current_page = 1
        self._set_state(RenderState.LOADING)

        try:
            if self._load_timeout is not None:
                pending: asyncio.Future[DocumentHandle] = asyncio.ensure_future(
                    self._decoder.load_document(payload)
                )
                try:
                    handle = await asyncio.wait_for(asyncio.shield(pending), timeout=self._load_timeout)
                except (asyncio.TimeoutError, asyncio.CancelledError):
                    # The decode keeps running; whatever it produces is destroyed.
                    pending.add_done_callback(_destroy_abandoned_handle)
                    raise
            else:
                handle = await self._decoder.load_document(payload)
        except asyncio.TimeoutError:
            if generation == self._load_generation:
                self._fail(f"Timed out after {self._load_timeout:g}s while loading the document")
            return self._state
        except DecodeError as exc:
            if generation == self._load_generation:
                self._fail(str(exc) or "Failed to load document")
            return self._state
        except Exception as exc:
            if generation == self._load_generation:
                LOGGER.exception("Unexpected failure while decoding document %s", self._document_id)
                self._fail(str(exc) or "Failed to load document")
            return self._state

        if generation != self._load_generation:
            LOGGER.debug("Discarding superseded load for document %s", self._document_id)
            handle.destroy()
            return self._state

        self._handle = handle
        self._total_pages = handle.page_count
        self._current_page = 1
        LOGGER.debug(
            "RenderPipeline loaded document %s (%d pages)", self._document_id, self._total_pages
        )
        self._set_state(RenderState.READY)
        self.request_render()
        return self._state

    def close(self) -> None:
        """Cancel any render, release the decoded document and return to UNLOADED."""

        self._cancel_render()
        self._load_generation += 1
        self._release_handle()
        self._total_pages = 0
        self._current_page = 1
        self._error = None
        self._surface.clear()
        self._set_state(RenderState.UNLOADED)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------
    def next_page(self) -> asyncio.Task[None] | None:
        return self.go_to_page(self._current_page + 1)

    def prev_page(self) -> asyncio.Task[None] | None:
        return self.go_to_page(self._current_page - 1)

    def go_to_page(self, page_number: int) -> asyncio.Task[None] | None:
        if self._total_pages:
            self._current_page = max(1, min(page_number, self._total_pages))
        return self.request_render()

    def zoom_in(self) -> asyncio.Task[None] | None:
        self._scale = _clamp_scale(self._scale + SCALE_STEP)
        return self.request_render()

    def zoom_out(self) -> asyncio.Task[None] | None:
        self._scale = _clamp_scale(self._scale - SCALE_STEP)
        return self.request_render()

    def rotate(self) -> asyncio.Task[None] | None:
        self._rotation = ROTATIONS[(ROTATIONS.index(self._rotation) + 1) % len(ROTATIONS)]
        return self.request_render()

    def set_view(
        self,
        *,
        page_number: int | None = None,
        scale: float | None = None,
        rotation: int | None = None,
    ) -> asyncio.Task[None] | None:
        """Apply several view changes at once with a single render.

        ``rotation`` is snapped down to a multiple of 90 degrees.
        """

        if page_number is not None and self._total_pages:
            self._current_page = max(1, min(page_number, self._total_pages))
        if scale is not None:
            self._scale = _clamp_scale(scale)
        if rotation is not None:
            self._rotation = (int(rotation) // 90 * 90) % 360
        return self.request_render()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def request_render(self) -> asyncio.Task[None] | None:
        """Supersede the render in flight with one for the current view state.

        Returns ``None`` when no document is loaded.
        """

        if self._handle is None or self._state not in (RenderState.READY, RenderState.RENDERING):
            return None
        self._cancel_render(settle=False)
        ticket = _RenderTicket(
            page_number=self._current_page, scale=self._scale, rotation=self._rotation
        )
        self._ticket = ticket
        self._set_state(RenderState.RENDERING)
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._render(ticket, self._handle))
        self._render_task = task
        return task

    async def wait_idle(self) -> None:
        """Wait until the most recently requested render has settled."""

        while self._render_task is not None and not self._render_task.done():
            await self._render_task

    async def _render(self, ticket: _RenderTicket, handle: DocumentHandle) -> None:
        try:
            if ticket.cancelled:
                return
            page = await handle.get_page(ticket.page_number)
            if ticket.cancelled:
                return
            viewport = page.get_viewport(scale=ticket.scale, rotation=ticket.rotation)
            self._surface.resize(viewport)
            ticket.operation = page.render(self._surface, viewport)
            await ticket.operation.wait()
        except RenderCancelled:
            LOGGER.debug("Render of page %d cancelled", ticket.page_number)
            return
        except Exception:
            if ticket.cancelled:
                return
            LOGGER.exception(
                "Unexpected error rendering page %d of document %s",
                ticket.page_number,
                self._document_id,
            )
            self._finish(ticket)
            return

        if ticket.cancelled:
            return
        self.completed_renders += 1
        self._finish(ticket)
        if self._bus is not None:
            self._bus.publish(
                PageRendered(
                    document_id=self._document_id,
                    page_number=ticket.page_number,
                    scale=ticket.scale,
                    rotation=ticket.rotation,
                )
            )

    def _finish(self, ticket: _RenderTicket) -> None:
        if self._ticket is ticket:
            self._ticket = None
            if self._state is RenderState.RENDERING:
                self._set_state(RenderState.READY)

    def _cancel_render(self, *, settle: bool = True) -> None:
        ticket = self._ticket
        if ticket is None:
            return
        self._ticket = None
        ticket.cancel()
        if settle and self._state is RenderState.RENDERING:
            self._set_state(RenderState.READY)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _release_handle(self) -> None:
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            handle.destroy()
        except Exception:  # pragma: no cover - decoder bugs are logged
            LOGGER.warning("Failed to release decoded document %s", self._document_id, exc_info=True)

    def _fail(self, message: str) -> None:
        LOGGER.warning("Failed to load document %s: %s", self._document_id, message)
        self._error = message
        self._set_state(RenderState.FAILED)

    def _set_state(self, state: RenderState) -> None:
        if state is self._state:
            return
        self._state = state
        if self._bus is not None:
            self._bus.publish(
                RenderStateChanged(
                    document_id=self._document_id,
                    state=state.value,
                    error=self._error if state is RenderState.FAILED else None,
                )
            )
