"""Tests for text extraction and cleanup."""

from pathlib import Path

import fitz  # PyMuPDF
import pytest

from docindex.exceptions import DomainValidationError, NotFoundError, UnsupportedTypeError
from docindex.services.text_extraction import (
    TextExtractionService,
    is_supported_mime_type,
    normalize_whitespace,
    remove_hyphenation,
    trim_headers_footers,
)


@pytest.fixture
def extractor() -> TextExtractionService:
    """Create a text extraction service."""
    return TextExtractionService()


@pytest.fixture
def sample_pdf(tmp_path: Path) -> Path:
    """Two-page PDF with a page-number footer."""
    path = tmp_path / "sample.pdf"
    doc = fitz.open()
    for number, body in enumerate(["Quarterly revenue grew.", "Costs were flat."], 1):
        page = doc.new_page()
        page.insert_text((72, 72), body)
        page.insert_text((72, 800), f"Page {number}")
    doc.set_metadata({"title": "Quarterly Report", "author": "Finance"})
    doc.save(str(path))
    doc.close()
    return path


class TestCleanup:
    """Tests for the cleanup helpers."""

    def test_normalize_whitespace(self) -> None:
        """Runs of spaces collapse and blank lines are capped at one."""
        text = "  Hello   world\t!  \n\n\n\nNext   line  "
        assert normalize_whitespace(text) == "Hello world !\n\nNext line"

    def test_remove_hyphenation(self) -> None:
        """Words split across lines are joined."""
        assert remove_hyphenation("docu-\nment") == "document"

    def test_trim_headers_footers(self) -> None:
        """Page markers near the edges are dropped, body text stays."""
        text = "Page 2 of 5\nBody line one\nBody line two\n2"
        trimmed = trim_headers_footers(text, page_num=2, total_pages=5)
        assert trimmed == "Body line one\nBody line two"


class TestSupportedTypes:
    """Tests for is_supported_mime_type."""

    def test_supported(self) -> None:
        """PDF, plain text and Markdown are supported, parameters ignored."""
        assert is_supported_mime_type("application/pdf")
        assert is_supported_mime_type("text/plain; charset=utf-8")
        assert is_supported_mime_type("TEXT/MARKDOWN")

    def test_unsupported(self) -> None:
        """Images and unknown types are not."""
        assert not is_supported_mime_type("image/png")
        assert not is_supported_mime_type("")


class TestExtract:
    """Tests for TextExtractionService.extract."""

    def test_plain_text(self, extractor: TextExtractionService, tmp_path: Path) -> None:
        """Plain text is read and normalized with counts."""
        path = tmp_path / "note.txt"
        path.write_text("Hello   there\r\n\r\n\r\nGeneral  Kenobi", encoding="utf-8")

        result = extractor.extract(str(path), "text/plain")

        assert result.text == "Hello there\n\nGeneral Kenobi"
        assert result.word_count == 4
        assert result.char_count == len(result.text)
        assert result.mime_type == "text/plain"
        assert result.page_count is None

    def test_markdown(self, extractor: TextExtractionService, tmp_path: Path) -> None:
        """Markdown is read as text."""
        path = tmp_path / "readme.md"
        path.write_text("# Title\n\nSome *markdown*.", encoding="utf-8")

        result = extractor.extract(str(path), "text/markdown")

        assert result.text.startswith("# Title")

    def test_pdf(self, extractor: TextExtractionService, sample_pdf: Path) -> None:
        """PDF pages are joined and page footers trimmed."""
        result = extractor.extract(str(sample_pdf), "application/pdf")

        assert result.page_count == 2
        assert "Quarterly revenue grew." in result.text
        assert "Costs were flat." in result.text
        assert "Page 1" not in result.text
        assert result.metadata["title"] == "Quarterly Report"

    def test_missing_file(self, extractor: TextExtractionService, tmp_path: Path) -> None:
        """A missing path is NotFound."""
        with pytest.raises(NotFoundError, match="not found"):
            extractor.extract(str(tmp_path / "nope.txt"), "text/plain")

    def test_unsupported_type(
        self, extractor: TextExtractionService, tmp_path: Path
    ) -> None:
        """Existing files of unknown type raise UnsupportedTypeError."""
        path = tmp_path / "image.png"
        path.write_bytes(b"\x89PNG")

        with pytest.raises(UnsupportedTypeError) as exc_info:
            extractor.extract(str(path), "image/png")

        assert exc_info.value.error_code == "UNSUPPORTED_TYPE"

    def test_corrupt_pdf(self, extractor: TextExtractionService, tmp_path: Path) -> None:
        """A file that is not a PDF cannot be opened as one."""
        path = tmp_path / "bad.pdf"
        path.write_text("definitely not a pdf", encoding="utf-8")

        with pytest.raises(DomainValidationError):
            extractor.extract(str(path), "application/pdf")
