"""Shared test helpers and stub classes.

This module contains reusable test stubs that are used across multiple test files.
Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

import asyncio
from typing import Any

from omnis.rendering.decoder import DecodeError, RenderCancelled, Viewport
from omnis.rendering.surface import RasterSurface
from omnis.ui.events import Event, EventBus


class EventRecorder:
    """Subscribes to event types on a bus and keeps every published event.

    Example:
        recorder = EventRecorder(bus, DocumentOpened, DocumentClosed)
        ...
        assert recorder.of_type(DocumentOpened)
    """

    def __init__(self, bus: EventBus, *event_types: type[Event]) -> None:
        self.events: list[Event] = []
        for event_type in event_types:
            bus.subscribe(event_type, self.events.append)

    def of_type(self, event_type: type[Event]) -> list[Any]:
        return [event for event in self.events if isinstance(event, event_type)]

    def clear(self) -> None:
        self.events.clear()


class FakeRenderOperation:
    """Render operation that completes on demand.

    With ``gated=False`` the operation completes on the next loop iteration;
    otherwise it waits for :meth:`release` (or :meth:`cancel`).
    """

    def __init__(
        self,
        surface: RasterSurface,
        viewport: Viewport,
        page_number: int,
        *,
        gated: bool,
        fail_with: Exception | None = None,
    ) -> None:
        self.surface = surface
        self.viewport = viewport
        self.page_number = page_number
        self.cancelled = False
        self.painted = False
        self._gated = gated
        self._fail_with = fail_with
        self._wake = asyncio.Event()

    def cancel(self) -> None:
        self.cancelled = True
        self._wake.set()

    def release(self) -> None:
        self._wake.set()

    async def wait(self) -> None:
        if self._gated:
            await self._wake.wait()
        else:
            await asyncio.sleep(0)
        if self.cancelled:
            raise RenderCancelled()
        if self._fail_with is not None:
            raise self._fail_with
        width = max(1, self.surface.pixel_width)
        height = max(1, self.surface.pixel_height)
        self.surface.paint(
            bytes(width * height * 3),
            width=width,
            height=height,
            stride=width * 3,
            page_number=self.page_number,
        )
        self.painted = True


class FakePage:
    def __init__(self, document: "FakeDocument", page_number: int) -> None:
        self._document = document
        self.page_number = page_number

    def get_viewport(self, *, scale: float, rotation: int) -> Viewport:
        return Viewport.for_page(100, 200, scale=scale, rotation=rotation)

    def render(self, surface: RasterSurface, viewport: Viewport) -> FakeRenderOperation:
        decoder = self._document.decoder
        fail_with = decoder.render_errors.pop(self.page_number, None)
        operation = FakeRenderOperation(
            surface, viewport, self.page_number, gated=decoder.gated, fail_with=fail_with
        )
        decoder.operations.append(operation)
        return operation


class FakeDocument:
    def __init__(self, decoder: "FakeDecoder", payload: bytes | str, page_count: int) -> None:
        self.decoder = decoder
        self.payload = payload
        self.page_count = page_count
        self.destroyed = False

    async def get_page(self, page_number: int) -> FakePage:
        if self.destroyed:
            raise RuntimeError("Document handle was destroyed")
        await asyncio.sleep(0)
        return FakePage(self, page_number)

    def destroy(self) -> None:
        self.destroyed = True


class FakeDecoder:
    """Deterministic :class:`~omnis.rendering.decoder.PaginatedDecoder` stand-in.

    ``page_count`` pages are reported for every payload except those in
    ``broken_payloads`` (``b"broken"`` by default), which raise
    :class:`DecodeError`. Set ``stall`` to make loads hang until
    :meth:`unstall` is called.
    """

    def __init__(self, page_count: int = 5, *, gated: bool = False) -> None:
        self.page_count = page_count
        self.gated = gated
        self.documents: list[FakeDocument] = []
        self.operations: list[FakeRenderOperation] = []
        self.render_errors: dict[int, Exception] = {}
        self.stall = False
        self.broken_payloads: set[bytes | str] = {b"broken"}
        self._unstall = asyncio.Event()

    def unstall(self) -> None:
        self._unstall.set()

    async def load_document(self, payload: bytes | str) -> FakeDocument:
        if self.stall:
            await self._unstall.wait()
        await asyncio.sleep(0)
        if payload in self.broken_payloads:
            raise DecodeError("Failed to load document: not a PDF")
        document = FakeDocument(self, payload, self.page_count)
        self.documents.append(document)
        return document

    def live_documents(self) -> list[FakeDocument]:
        return [document for document in self.documents if not document.destroyed]

    def pending_operations(self) -> list[FakeRenderOperation]:
        return [op for op in self.operations if not op.cancelled and not op.painted]

    def release_all(self) -> None:
        for operation in list(self.operations):
            operation.release()


async def settle(iterations: int = 10) -> None:
    """Give scheduled tasks a few loop iterations to make progress."""

    for _ in range(iterations):
        await asyncio.sleep(0)
