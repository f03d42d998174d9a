"""Line-window pagination for read-mode display of large text buffers.

Pagination is a projection used only while viewing: edits always operate on
the complete buffer. Results are cheap to rebuild from a plain ``split`` so
nothing is cached between content changes.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

__all__ = ["DEFAULT_PAGE_SIZE", "Pagination", "PageCursor", "paginate"]

DEFAULT_PAGE_SIZE = 500


@dataclass(slots=True, frozen=True)
class Pagination:
    """Immutable page layout of one text buffer."""

    lines: tuple[str, ...]
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def line_count(self) -> int:
        return len(self.lines)

    @property
    def page_count(self) -> int:
        return max(1, math.ceil(self.line_count / self.page_size))

    def clamp(self, page_number: int) -> int:
        """Clamp ``page_number`` into ``[1, page_count]``."""

        return max(1, min(page_number, self.page_count))

    def line_range(self, page_number: int) -> tuple[int, int]:
        """Return the half-open line index range shown on ``page_number``."""

        page = self.clamp(page_number)
        start = (page - 1) * self.page_size
        end = min(page * self.page_size, self.line_count)
        return start, end

    def page_of(self, page_number: int) -> str:
        """Return the text of ``page_number`` (clamped), lines joined with ``\\n``."""

        start, end = self.line_range(page_number)
        return "\n".join(self.lines[start:end])

    def pages(self) -> list[str]:
        return [self.page_of(number) for number in range(1, self.page_count + 1)]


def paginate(text: str, page_size: int = DEFAULT_PAGE_SIZE) -> Pagination:
    """Split ``text`` on ``\\n`` into windows of ``page_size`` lines.

    The empty string has zero lines and a single empty page.
    """

    if page_size < 1:
        raise ValueError(f"page_size must be positive, got {page_size}")
    lines = tuple(text.split("\n")) if text else ()
    return Pagination(lines=lines, page_size=page_size)


class PageCursor:
    """Current read-mode page of one document, kept within bounds."""

    def __init__(self, text: str = "", *, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        self._page_size = page_size
        self._pagination = paginate(text, page_size)
        self._current_page = 1

    @property
    def pagination(self) -> Pagination:
        return self._pagination

    @property
    def current_page(self) -> int:
        return self._current_page

    @property
    def page_count(self) -> int:
        return self._pagination.page_count

    @property
    def line_count(self) -> int:
        return self._pagination.line_count

    def refresh(self, text: str) -> None:
        """Recompute after a content change, keeping the page when still valid."""

        self._pagination = paginate(text, self._page_size)
        self._current_page = self._pagination.clamp(self._current_page)

    def reset(self) -> None:
        self._current_page = 1

    def go_to(self, page_number: int) -> int:
        self._current_page = self._pagination.clamp(page_number)
        return self._current_page

    def next_page(self) -> int:
        return self.go_to(self._current_page + 1)

    def prev_page(self) -> int:
        return self.go_to(self._current_page - 1)

    def visible_text(self) -> str:
        return self._pagination.page_of(self._current_page)
