"""Markup stripping for rich (HTML-converted) documents."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

__all__ = ["strip_markup"]

_NON_CONTENT_TAGS: tuple[str, ...] = ("script", "style", "head", "template")
_WHITESPACE = re.compile(r"\s+")


def strip_markup(markup: str) -> str:
    """Return the visible text of ``markup`` with whitespace collapsed."""

    if not markup:
        return ""
    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup.find_all(_NON_CONTENT_TAGS):
        tag.decompose()
    return _WHITESPACE.sub(" ", soup.get_text(" ")).strip()
