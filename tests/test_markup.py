"""Tests for markup stripping."""

from __future__ import annotations

from omnis.services.markup import strip_markup


def test_empty_markup() -> None:
    assert strip_markup("") == ""


def test_visible_text_with_collapsed_whitespace() -> None:
    markup = "<h1>Title</h1>\n<p>First&nbsp;paragraph   with <b>bold</b></p><p>Second</p>"

    assert strip_markup(markup) == "Title First paragraph with bold Second"


def test_non_content_tags_removed() -> None:
    markup = (
        "<html><head><title>Hidden</title><style>p {color: red}</style></head>"
        "<body><script>alert(1)</script><p>Shown</p></body></html>"
    )

    assert strip_markup(markup) == "Shown"


def test_plain_text_passes_through() -> None:
    assert strip_markup("just words") == "just words"
