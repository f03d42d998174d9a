"""Raster surface owned by one render pipeline."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

from .decoder import Viewport

__all__ = ["RasterSurface"]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class RasterSurface:
    """Backing pixel buffer sized for the device pixel ratio.

    ``pixel_width``/``pixel_height`` are the backing dimensions; the layout
    dimensions stay at the logical viewport size so high-density displays
    get a crisp page without changing its on-screen size.
    """

    device_pixel_ratio: float = 1.0
    pixel_width: int = 0
    pixel_height: int = 0
    layout_width: int = 0
    layout_height: int = 0
    samples: bytes = b""
    stride: int = 0
    channels: int = 3
    page_number: int | None = None
    paint_count: int = 0

    def __post_init__(self) -> None:
        if self.device_pixel_ratio <= 0:
            self.device_pixel_ratio = 1.0

    @property
    def output_scale(self) -> float:
        return self.device_pixel_ratio

    def resize(self, viewport: Viewport) -> None:
        """Size the surface for ``viewport``."""

        self.pixel_width = math.floor(viewport.width * self.device_pixel_ratio)
        self.pixel_height = math.floor(viewport.height * self.device_pixel_ratio)
        self.layout_width = math.floor(viewport.width)
        self.layout_height = math.floor(viewport.height)

    def paint(
        self,
        samples: bytes,
        *,
        width: int,
        height: int,
        stride: int,
        page_number: int,
        channels: int = 3,
    ) -> None:
        """Replace the surface contents with a rasterized page."""

        self.samples = samples
        self.pixel_width = width
        self.pixel_height = height
        self.stride = stride
        self.channels = channels
        self.page_number = page_number
        self.paint_count += 1

    def clear(self) -> None:
        self.samples = b""
        self.stride = 0
        self.page_number = None

    @property
    def is_blank(self) -> bool:
        return not self.samples

    def to_qimage(self) -> Any:
        """Return the painted pixels as a ``QImage`` for display in Qt views."""

        try:  # Local import to avoid mandatory PySide6 dependency at import time.
            from PySide6.QtGui import QImage
        except ImportError as exc:  # pragma: no cover - depends on desktop stack
            raise RuntimeError("PySide6 must be installed to display rendered pages.") from exc

        image_format = QImage.Format.Format_RGBA8888 if self.channels == 4 else QImage.Format.Format_RGB888
        image = QImage(self.samples, self.pixel_width, self.pixel_height, self.stride, image_format)
        image.setDevicePixelRatio(self.device_pixel_ratio)
        # Detach from ``self.samples`` which QImage does not own.
        return image.copy()
