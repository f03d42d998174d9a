"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from omnis.editor.workspace import DocumentSession
from omnis.ui.events import EventBus


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep tests away from the user's settings, logs and OMNIS_* variables."""

    for name in (
        "OMNIS_ASSISTANT_MODE",
        "OMNIS_PAGE_SIZE",
        "OMNIS_DEVICE_PIXEL_RATIO",
        "OMNIS_RENDER_LOAD_TIMEOUT",
        "OMNIS_DEBUG_LOGGING",
        "OMNIS_DEBUG",
        "OMNIS_SETTINGS_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("OMNIS_LOG_DIR", str(tmp_path / "logs"))


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def session(bus: EventBus) -> DocumentSession:
    return DocumentSession(bus)


@pytest.fixture
def make_pdf() -> Callable[..., bytes]:
    """Return a factory producing in-memory PDFs, one text line per page."""

    fitz = pytest.importorskip("fitz")

    def _make(pages: list[str] | None = None, *, width: float = 200, height: float = 300) -> bytes:
        document = fitz.open()
        for text in pages or ["Page one"]:
            page = document.new_page(width=width, height=height)
            page.insert_text((20, 40), text, fontsize=12)
        payload = document.tobytes()
        document.close()
        return payload

    return _make
