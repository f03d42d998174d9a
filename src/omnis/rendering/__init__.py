"""Render pipeline for paginated binary documents (PDF)."""

from .decoder import DecodeError, PaginatedDecoder, RenderCancelled, Viewport
from .pipeline import RenderPipeline, RenderSnapshot, RenderState
from .surface import RasterSurface

__all__ = [
    "DecodeError",
    "PaginatedDecoder",
    "RasterSurface",
    "RenderCancelled",
    "RenderPipeline",
    "RenderSnapshot",
    "RenderState",
    "Viewport",
]
