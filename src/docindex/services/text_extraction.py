"""Text extraction and cleanup for uploaded files.

PDFs go through PyMuPDF with a small cleanup pipeline; plain text and
Markdown are read as-is.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path

import fitz  # PyMuPDF
from loguru import logger

from docindex.exceptions import DomainValidationError, NotFoundError, UnsupportedTypeError

PDF_MIME_TYPE = "application/pdf"
TEXT_MIME_TYPES = ("text/plain", "text/markdown")
SUPPORTED_MIME_TYPES = (PDF_MIME_TYPE, *TEXT_MIME_TYPES)

_PDF_METADATA_KEYS = ("author", "title", "subject", "creator", "producer")


@dataclass
class ExtractionResult:
    """Text pulled out of a file, with basic counts."""

    text: str
    word_count: int
    char_count: int
    mime_type: str
    page_count: int | None = None
    metadata: dict[str, str] = field(default_factory=dict)


def is_supported_mime_type(mime_type: str) -> bool:
    """Check whether a text extractor exists for ``mime_type``."""
    return _normalize_mime_type(mime_type) in SUPPORTED_MIME_TYPES


def _normalize_mime_type(mime_type: str) -> str:
    # Drop parameters such as "; charset=utf-8"
    return (mime_type or "").split(";", 1)[0].strip().lower()


def normalize_whitespace(text: str) -> str:
    """
    Normalize whitespace in extracted text.

    - Collapse runs of spaces and tabs to a single space
    - Keep at most one blank line between paragraphs
    - Strip every line
    """
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def remove_hyphenation(text: str) -> str:
    """Join words split across a line break ("docu-\\nment" -> "document")."""
    return re.sub(r"(\w)-\n(\w)", r"\1\2", text)


def trim_headers_footers(text: str, page_num: int, total_pages: int) -> str:
    """
    Drop page-number and separator lines near the top or bottom of a page.

    Recognized: "3", "Page 3", "- 3 -", "3 of 10", "Page 3 of 10", and lines
    of 10 or more dashes, underscores or equals signs.
    """
    lines = text.split("\n")

    page_patterns = [
        rf"^\s*{page_num}\s*$",
        rf"^\s*Page\s+{page_num}\s*$",
        rf"^\s*-\s*{page_num}\s*-\s*$",
        rf"^\s*{page_num}\s+of\s+{total_pages}\s*$",
        rf"^\s*Page\s+{page_num}\s+of\s+{total_pages}\s*$",
        r"^\s*[-_=]{10,}\s*$",
    ]

    def is_header_footer(line: str) -> bool:
        return any(re.match(p, line, re.IGNORECASE) for p in page_patterns)

    edge = 3
    kept = [
        line
        for i, line in enumerate(lines)
        if not ((i < edge or i >= len(lines) - edge) and is_header_footer(line))
    ]
    return "\n".join(kept)


class TextExtractionService:
    """Extract and clean text content from supported files."""

    def extract(self, file_path: str, mime_type: str) -> ExtractionResult:
        """
        Extract text from a file.

        Args:
            file_path: Path to the file on local storage
            mime_type: Declared content type of the file

        Returns:
            ExtractionResult with cleaned text and counts

        Raises:
            NotFoundError: If the file does not exist
            UnsupportedTypeError: If no extractor handles the MIME type
            DomainValidationError: If the file exists but cannot be parsed
        """
        path = Path(file_path)
        if not path.is_file():
            raise NotFoundError("File", file_path)

        normalized = _normalize_mime_type(mime_type)
        if normalized == PDF_MIME_TYPE:
            text, page_count, metadata = self._extract_pdf(path)
        elif normalized in TEXT_MIME_TYPES:
            text, page_count, metadata = self._extract_plain(path), None, {}
        else:
            raise UnsupportedTypeError(mime_type, supported=list(SUPPORTED_MIME_TYPES))

        result = ExtractionResult(
            text=text,
            word_count=len(text.split()),
            char_count=len(text),
            mime_type=normalized,
            page_count=page_count,
            metadata=metadata,
        )
        logger.info(
            "Text extraction complete",
            file_path=file_path,
            mime_type=normalized,
            word_count=result.word_count,
            page_count=page_count,
        )
        return result

    def _extract_plain(self, path: Path) -> str:
        raw = path.read_text(encoding="utf-8", errors="replace")
        return normalize_whitespace(raw.replace("\r\n", "\n"))

    def _extract_pdf(self, path: Path) -> tuple[str, int, dict[str, str]]:
        try:
            doc = fitz.open(str(path))
        except Exception as e:
            raise DomainValidationError(
                message=f"Failed to open PDF: {e!s}",
                field="file_path",
                details={"error": str(e)},
            ) from e

        try:
            total_pages = len(doc)
            pages = [
                self._clean_page(
                    doc[page_num].get_text(),
                    page_num=page_num + 1,
                    total_pages=total_pages,
                )
                for page_num in range(total_pages)
            ]
            metadata = {
                key: value
                for key, value in (doc.metadata or {}).items()
                if key in _PDF_METADATA_KEYS and value
            }
        finally:
            doc.close()

        text = "\n\n".join(page for page in pages if page.strip())
        return text, total_pages, metadata

    def _clean_page(self, text: str, page_num: int, total_pages: int) -> str:
        """Apply the full text cleanup pipeline."""
        text = remove_hyphenation(text)
        text = normalize_whitespace(text)
        text = trim_headers_footers(text, page_num, total_pages)
        return text
