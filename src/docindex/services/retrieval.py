"""Retrieval service for tenant-scoped similarity search over document chunks."""

import asyncio
from dataclasses import dataclass

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docindex.config import settings
from docindex.db import async_session_factory
from docindex.exceptions import DimensionMismatchError, DomainValidationError
from docindex.repositories.chunk import ChunkRepository
from docindex.services.backends.base import AIBackend
from docindex.services.context import truncate_context

DEFAULT_TOP_K = 3
DEFAULT_TOP_K_OPENAI = 6


@dataclass
class ChunkSearchResult:
    """A single chunk result from similarity search."""

    chunk_id: int
    document_id: str
    chunk_index: int
    content: str
    score: float  # cosine similarity (1 - distance)


def default_top_k(backend_name: str | None) -> int:
    """Larger chunks from the cloud backend carry less text each, so fetch more."""
    return DEFAULT_TOP_K_OPENAI if backend_name == "openai" else DEFAULT_TOP_K


class RetrievalService:
    """Retrieve relevant chunks for a query using vector similarity."""

    def __init__(
        self,
        backend: AIBackend,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        self.backend = backend
        self.session_factory = session_factory or async_session_factory

    async def search(
        self,
        query: str,
        tenant_id: str,
        top_k: int | None = None,
    ) -> list[ChunkSearchResult]:
        """Search all of a tenant's chunks for the ones closest to ``query``.

        Args:
            query: Natural language query string
            tenant_id: Tenant whose chunks are searched
            top_k: Number of results (defaults per backend)

        Returns:
            List of ChunkSearchResult ordered by descending similarity

        Raises:
            DomainValidationError: Empty query or missing tenant
            DimensionMismatchError: Stored chunks were embedded by another backend
        """
        return await self._search(query, tenant_id, top_k, document_id=None)

    async def search_in_document(
        self,
        query: str,
        tenant_id: str,
        document_id: str,
        top_k: int | None = None,
    ) -> list[ChunkSearchResult]:
        """Like ``search``, restricted to a single document."""
        if not document_id:
            raise DomainValidationError("Document ID is required", field="document_id")
        return await self._search(query, tenant_id, top_k, document_id=document_id)

    def build_context(
        self,
        results: list[ChunkSearchResult],
        max_tokens: int | None = None,
    ) -> str:
        """Join the chunk texts that fit in the token budget, best match first."""
        budget = max_tokens if max_tokens is not None else settings.max_context_tokens
        selected = truncate_context(results, budget, key=lambda result: result.content)
        if len(selected) < len(results):
            logger.info(
                "Context truncated",
                kept=len(selected),
                total=len(results),
                max_tokens=budget,
            )
        return "\n\n".join(result.content for result in selected)

    async def _search(
        self,
        query: str,
        tenant_id: str,
        top_k: int | None,
        document_id: str | None,
    ) -> list[ChunkSearchResult]:
        if not isinstance(query, str) or not query.strip():
            raise DomainValidationError("Query cannot be empty", field="query")
        if not tenant_id:
            raise DomainValidationError("Tenant ID is required", field="tenant_id")
        if top_k is None:
            top_k = default_top_k(self.backend.name)
        if top_k < 1:
            raise DomainValidationError("top_k must be positive", field="top_k")

        dimensions = self.backend.embedding_dimensions()

        async with self.session_factory() as session:
            foreign = await ChunkRepository.get_foreign_dimensions(
                session, tenant_id, dimensions
            )
            if foreign:
                logger.error(
                    "Stored chunks use another embedding size",
                    tenant_id=tenant_id,
                    expected=dimensions,
                    actual=foreign,
                )
                raise DimensionMismatchError(
                    expected=dimensions,
                    actual=foreign[0] if len(foreign) == 1 else foreign,
                    details={"tenant_id": tenant_id},
                )

            query_embedding = await asyncio.to_thread(self.backend.embed_one, query)
            results = await ChunkRepository.similarity_search(
                session=session,
                tenant_id=tenant_id,
                query_embedding=query_embedding,
                top_k=top_k,
                document_id=document_id,
            )

        logger.info(
            "Similarity search complete",
            tenant_id=tenant_id,
            document_id=document_id,
            result_count=len(results),
        )

        return [
            ChunkSearchResult(
                chunk_id=chunk.id,
                document_id=chunk.document_id,
                chunk_index=chunk.chunk_index,
                content=chunk.content,
                score=round(1.0 - float(distance), 6),
            )
            for chunk, distance in results
        ]
