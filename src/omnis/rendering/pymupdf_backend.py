"""Paginated-document decoder backed by PyMuPDF.

All PyMuPDF calls run on one private worker thread so decoding and
rasterization never block the event loop and never touch a document from two
threads at once.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import fitz  # PyMuPDF

from .decoder import DecodeError, RenderCancelled, Viewport
from .surface import RasterSurface

__all__ = [
    "PyMuPDFDecoder",
    "PyMuPDFDocument",
    "PyMuPDFPage",
    "PyMuPDFRenderOperation",
    "payload_to_bytes",
]

LOGGER = logging.getLogger(__name__)


def payload_to_bytes(payload: bytes | str) -> bytes:
    """Return raw document bytes from a buffer or a base64 ``data:`` URI."""

    if isinstance(payload, (bytes, bytearray, memoryview)):
        return bytes(payload)
    if payload.startswith("data:"):
        header, _, body = payload.partition(",")
        if ";base64" not in header:
            raise DecodeError("Only base64 data URIs are supported")
        try:
            return base64.b64decode(body, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecodeError(f"Invalid base64 payload: {exc}") from exc
    raise DecodeError("Unsupported document payload")


class PyMuPDFRenderOperation:
    """Rasterization of one page running on the decoder thread."""

    def __init__(
        self,
        future: asyncio.Future[Any],
        surface: RasterSurface,
        page_number: int,
    ) -> None:
        self._future = future
        self._surface = surface
        self._page_number = page_number
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        # A rasterization already running on the worker thread finishes, but
        # its pixmap is dropped in ``wait``.
        self._cancelled = True
        self._future.cancel()

    async def wait(self) -> None:
        if self._cancelled:
            raise RenderCancelled()
        try:
            raster = await self._future
        except asyncio.CancelledError:
            if self._cancelled:
                raise RenderCancelled() from None
            raise
        if self._cancelled:
            raise RenderCancelled()
        samples, width, height, stride, channels = raster
        self._surface.paint(
            samples,
            width=width,
            height=height,
            stride=stride,
            channels=channels,
            page_number=self._page_number,
        )


class PyMuPDFPage:
    def __init__(
        self,
        document: "PyMuPDFDocument",
        page: fitz.Page,
        page_number: int,
        *,
        width: float,
        height: float,
    ) -> None:
        self._document = document
        self._page = page
        self.page_number = page_number
        self.width = width
        self.height = height

    def get_viewport(self, *, scale: float, rotation: int) -> Viewport:
        return Viewport.for_page(self.width, self.height, scale=scale, rotation=rotation)

    def render(self, surface: RasterSurface, viewport: Viewport) -> PyMuPDFRenderOperation:
        zoom = viewport.scale * surface.output_scale
        matrix = fitz.Matrix(zoom, zoom).prerotate(viewport.rotation)
        page = self._page

        def _rasterize() -> tuple[bytes, int, int, int, int]:
            pixmap = page.get_pixmap(matrix=matrix, alpha=False)
            return pixmap.samples, pixmap.width, pixmap.height, pixmap.stride, pixmap.n

        future = self._document.submit(_rasterize)
        return PyMuPDFRenderOperation(future, surface, self.page_number)


class PyMuPDFDocument:
    """Decoded document handle; ``destroy`` closes the underlying file."""

    def __init__(self, decoder: "PyMuPDFDecoder", document: fitz.Document) -> None:
        self._decoder = decoder
        self._document = document
        self.page_count: int = document.page_count
        self._destroyed = False

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def submit(self, func: Any) -> asyncio.Future[Any]:
        return self._decoder.submit(func)

    async def get_page(self, page_number: int) -> PyMuPDFPage:
        if self._destroyed:
            raise RuntimeError("Document handle was destroyed")
        if not 1 <= page_number <= self.page_count:
            raise IndexError(f"Page {page_number} out of range 1..{self.page_count}")
        document = self._document

        def _load() -> tuple[fitz.Page, float, float]:
            page = document.load_page(page_number - 1)
            return page, page.rect.width, page.rect.height

        page, width, height = await self.submit(_load)
        return PyMuPDFPage(self, page, page_number, width=width, height=height)

    def destroy(self) -> None:
        if self._destroyed:
            return
        self._destroyed = True
        document = self._document
        # Close on the worker thread so it queues behind any rasterization.
        self._decoder.executor.submit(document.close)


class PyMuPDFDecoder:
    """:class:`~omnis.rendering.decoder.PaginatedDecoder` implementation for PDF payloads."""

    def __init__(self, *, executor: ThreadPoolExecutor | None = None) -> None:
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="omnis-pymupdf"
        )

    @property
    def executor(self) -> ThreadPoolExecutor:
        return self._executor

    def submit(self, func: Any) -> asyncio.Future[Any]:
        loop = asyncio.get_running_loop()
        return loop.run_in_executor(self._executor, func)

    async def load_document(self, payload: bytes | str) -> PyMuPDFDocument:
        data = payload_to_bytes(payload)
        if not data:
            raise DecodeError("Document is empty")

        def _open() -> fitz.Document:
            return fitz.open(stream=data, filetype="pdf")

        try:
            document = await self.submit(_open)
        except Exception as exc:
            LOGGER.debug("PyMuPDF failed to open payload: %s", exc)
            raise DecodeError(f"Failed to load document: {exc}") from exc

        if document.page_count < 1:
            self._executor.submit(document.close)
            raise DecodeError("Document has no pages")
        return PyMuPDFDocument(self, document)

    def shutdown(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
