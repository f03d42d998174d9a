"""Boundary shapes the render pipeline expects from a paginated-document decoder."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:  # pragma: no cover
    from .surface import RasterSurface

__all__ = [
    "DecodeError",
    "RenderCancelled",
    "Viewport",
    "RenderOperation",
    "PageHandle",
    "DocumentHandle",
    "PaginatedDecoder",
]


class DecodeError(RuntimeError):
    """Raised when a payload cannot be decoded into a paginated document."""


class RenderCancelled(Exception):
    """Raised by :meth:`RenderOperation.wait` after the operation was cancelled."""


@dataclass(slots=True, frozen=True)
class Viewport:
    """Logical size of a page at a given zoom and rotation."""

    width: float
    height: float
    scale: float = 1.0
    rotation: int = 0

    @classmethod
    def for_page(cls, width: float, height: float, *, scale: float, rotation: int) -> "Viewport":
        """Build a viewport from unscaled page dimensions (in points)."""

        if rotation % 180:
            width, height = height, width
        return cls(width=width * scale, height=height * scale, scale=scale, rotation=rotation)


@runtime_checkable
class RenderOperation(Protocol):
    """An in-flight rasterization of one page onto one surface."""

    def cancel(self) -> None:
        """Request cancellation; a cancelled operation never paints."""
        ...

    async def wait(self) -> None:
        """Wait for completion; raises :class:`RenderCancelled` if cancelled."""
        ...


class PageHandle(Protocol):
    page_number: int

    def get_viewport(self, *, scale: float, rotation: int) -> Viewport:
        ...

    def render(self, surface: "RasterSurface", viewport: Viewport) -> RenderOperation:
        ...


class DocumentHandle(Protocol):
    page_count: int

    async def get_page(self, page_number: int) -> PageHandle:
        """Return the 1-indexed page ``page_number``."""
        ...

    def destroy(self) -> None:
        """Release every resource held by the decoded document."""
        ...


class PaginatedDecoder(Protocol):
    async def load_document(self, payload: bytes | str) -> DocumentHandle:
        """Decode ``payload``; raises :class:`DecodeError` when it is not readable."""
        ...
