"""Keyword search index boundary.

The full-text engine lives outside this package; ingestion only needs to
push a document's searchable fields and to remove them again.
"""

from typing import Any, Protocol

from loguru import logger


class SearchIndex(Protocol):
    """Keyword index that ingestion keeps up to date."""

    async def index(self, document_id: str, fields: dict[str, Any]) -> None: ...

    async def remove(self, document_id: str) -> None: ...


class LoggingSearchIndex:
    """Stand-in used when no keyword engine is configured."""

    async def index(self, document_id: str, fields: dict[str, Any]) -> None:
        logger.debug(
            "Keyword index update skipped, no engine configured",
            document_id=document_id,
            fields=sorted(fields),
        )

    async def remove(self, document_id: str) -> None:
        logger.debug(
            "Keyword index removal skipped, no engine configured",
            document_id=document_id,
        )


def build_index_fields(document: Any) -> dict[str, Any]:
    """Searchable fields of a document record."""
    return {
        "filename": document.filename,
        "mime_type": document.mime_type,
        "organization_id": document.organization_id,
        "extracted_text": document.extracted_text,
        "category": document.category,
        "tags": document.tags or [],
        "summary": document.summary,
    }
