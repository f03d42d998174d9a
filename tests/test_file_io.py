"""Tests for the file read/save collaborators."""

from __future__ import annotations

import codecs
from pathlib import Path

import pytest

from omnis.editor.document_model import DocumentCategory
from omnis.utils.file_io import (
    ReadFailure,
    ReadResult,
    detect_category,
    read_document,
    save_document,
    write_text,
)


class TestDetectCategory:
    """Extension first, then leading bytes."""

    @pytest.mark.parametrize(
        ("name", "category"),
        [
            ("photo.PNG", DocumentCategory.IMAGE),
            ("scan.jpeg", DocumentCategory.IMAGE),
            ("logo.svg", DocumentCategory.IMAGE),
            ("report.pdf", DocumentCategory.PDF),
            ("notes.md", DocumentCategory.TEXT),
            ("index.html", DocumentCategory.TEXT),
            ("letter.docx", DocumentCategory.RICH_TEXT),
        ],
    )
    def test_by_extension(self, name: str, category: DocumentCategory) -> None:
        assert detect_category(name) is category

    def test_unknown_extension_without_bytes(self) -> None:
        assert detect_category("archive.xyz") is DocumentCategory.UNKNOWN
        assert detect_category(None) is DocumentCategory.UNKNOWN

    @pytest.mark.parametrize(
        ("raw", "category"),
        [
            (b"%PDF-1.7\n", DocumentCategory.PDF),
            (b"\x89PNG\r\n\x1a\n....", DocumentCategory.IMAGE),
            (b"\xff\xd8\xff\xe0", DocumentCategory.IMAGE),
            (b"GIF89a", DocumentCategory.IMAGE),
            (b"plain words", DocumentCategory.TEXT),
            (b"", DocumentCategory.TEXT),
            (b"abc\x00def", DocumentCategory.BINARY),
            (b"\xff\xfe\xfa", DocumentCategory.UNKNOWN),
        ],
    )
    def test_by_magic_bytes(self, raw: bytes, category: DocumentCategory) -> None:
        assert detect_category("blob", raw) is category


class TestReadDocument:
    """Tests for :func:`read_document`."""

    def test_text_file_decoded(self, tmp_path: Path) -> None:
        target = tmp_path / "notes.txt"
        target.write_bytes("héllo\nworld".encode("utf-8"))

        result = read_document(target)

        assert isinstance(result, ReadResult)
        assert result.category is DocumentCategory.TEXT
        assert result.content == "héllo\nworld"
        assert result.extension == "txt"

    def test_bom_is_stripped(self, tmp_path: Path) -> None:
        target = tmp_path / "bom.txt"
        target.write_bytes(codecs.BOM_UTF8 + b"content")

        result = read_document(target)

        assert isinstance(result, ReadResult)
        assert result.content == "content"

    def test_utf16_with_bom(self, tmp_path: Path) -> None:
        target = tmp_path / "wide.txt"
        target.write_bytes(codecs.BOM_UTF16_LE + "wide".encode("utf-16-le"))

        result = read_document(target)

        assert isinstance(result, ReadResult)
        assert result.category is DocumentCategory.TEXT
        assert result.content == "wide"

    def test_pdf_stays_bytes(self, tmp_path: Path) -> None:
        target = tmp_path / "doc.pdf"
        target.write_bytes(b"%PDF-1.4 payload")

        result = read_document(target)

        assert isinstance(result, ReadResult)
        assert result.category is DocumentCategory.PDF
        assert result.content == b"%PDF-1.4 payload"

    def test_rich_without_converter_is_binary(self, tmp_path: Path) -> None:
        target = tmp_path / "letter.docx"
        target.write_bytes(b"PK\x03\x04zip")

        result = read_document(target)

        assert isinstance(result, ReadResult)
        assert result.category is DocumentCategory.BINARY
        assert result.content == b"PK\x03\x04zip"

    def test_rich_converter_produces_rich_text(self, tmp_path: Path) -> None:
        target = tmp_path / "letter.docx"
        target.write_bytes(b"PK\x03\x04zip")

        result = read_document(target, rich_converter=lambda path: f"<p>{path.name}</p>")

        assert isinstance(result, ReadResult)
        assert result.category is DocumentCategory.RICH_TEXT
        assert result.content == "<p>letter.docx</p>"

    def test_converter_failure_becomes_error_document(self, tmp_path: Path) -> None:
        target = tmp_path / "letter.docx"
        target.write_bytes(b"PK\x03\x04zip")

        def _broken(path: Path) -> str:
            raise ValueError("corrupt archive")

        result = read_document(target, rich_converter=_broken)

        assert isinstance(result, ReadResult)
        assert result.category is DocumentCategory.ERROR
        assert "corrupt archive" in result.content

    def test_missing_file_returns_failure(self, tmp_path: Path) -> None:
        result = read_document(tmp_path / "missing.txt")

        assert isinstance(result, ReadFailure)
        assert result.error


class TestSaveDocument:
    """Tests for :func:`save_document`."""

    def test_text_round_trip_preserves_newlines(self, tmp_path: Path) -> None:
        target = tmp_path / "nested" / "out.txt"

        result = save_document(target, "a\r\nb")

        assert result.success and result.error is None
        assert target.read_bytes() == b"a\r\nb"

    def test_bytes_written_verbatim(self, tmp_path: Path) -> None:
        target = tmp_path / "out.bin"
        assert save_document(target, b"\x00\x01").success
        assert target.read_bytes() == b"\x00\x01"

    def test_failure_reported_as_value(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("x")

        result = save_document(blocker / "child.txt", "data")

        assert not result.success
        assert result.error

    def test_write_text_keeps_line_endings(self, tmp_path: Path) -> None:
        target = write_text(tmp_path / "mixed.txt", "a\r\nb\rc\n", encoding="utf-16-le")
        assert target.read_bytes() == "a\r\nb\rc\n".encode("utf-16-le")
