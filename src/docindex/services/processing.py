"""Document chunk indexing.

Turns a document's text into tenant-scoped chunks with embeddings:
chunk -> embed -> store, and manages the lifecycle of the stored chunk set.
A document's chunks are always written, replaced and deleted as a whole.
"""

import asyncio
import time
from dataclasses import dataclass

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docindex.db import async_session_factory, session_scope
from docindex.exceptions import DomainValidationError, StorageError
from docindex.models.chunk import Chunk
from docindex.repositories.chunk import ChunkRepository, NewChunk
from docindex.services.backends.base import AIBackend
from docindex.services.chunking import ChunkingService, count_words

PLACEHOLDER_VALUE = 0.01


@dataclass
class ProcessingResult:
    """Outcome of indexing one document."""

    document_id: str
    chunks_created: int
    total_words: int
    processing_time_ms: int
    dimensions: int
    used_placeholder_embeddings: bool = False


@dataclass
class ChunkStatistics:
    """Global chunk store counters."""

    total_chunks: int
    total_documents: int


@dataclass
class _PreparedChunks:
    texts: list[str]
    embeddings: list[list[float]]
    used_placeholders: bool


class DocumentProcessor:
    """Chunk, embed and store document text for one backend."""

    def __init__(
        self,
        backend: AIBackend,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        self.backend = backend
        self.session_factory = session_factory or async_session_factory
        self.chunking_service = ChunkingService.for_backend(backend.name)

    async def process(
        self,
        document_id: str,
        tenant_id: str,
        text: str,
    ) -> ProcessingResult:
        """Index a document's text as chunks with embeddings.

        Raises:
            DomainValidationError: Missing identifiers, empty text, or no chunks
            BackendUnavailableError: The backend failed to embed
            StorageError: The chunk store could not be written
        """
        return await self._index(document_id, tenant_id, text, replace_existing=False)

    async def replace(
        self,
        document_id: str,
        tenant_id: str,
        new_text: str,
    ) -> ProcessingResult:
        """Swap a document's chunk set for one built from ``new_text``.

        Delete and insert share a transaction; on failure the old set stays.
        """
        return await self._index(document_id, tenant_id, new_text, replace_existing=True)

    async def delete_all(self, document_id: str) -> int:
        """Delete every chunk of a document. Returns 0 when there were none."""
        try:
            async with session_scope(self.session_factory) as session:
                deleted = await ChunkRepository.delete_by_document(session, document_id)
        except SQLAlchemyError as exc:
            raise self._storage_error("delete", document_id, exc) from exc

        logger.info("Chunks deleted", document_id=document_id, deleted=deleted)
        return deleted

    async def list(self, document_id: str) -> list[Chunk]:
        """Chunks of a document ordered by chunk_index."""
        try:
            async with self.session_factory() as session:
                return await ChunkRepository.get_by_document_id(session, document_id)
        except SQLAlchemyError as exc:
            raise self._storage_error("list", document_id, exc) from exc

    async def has_chunks(self, document_id: str) -> bool:
        """Whether a document has any chunks; storage failures read as False."""
        try:
            async with self.session_factory() as session:
                return await ChunkRepository.exists_for_document(session, document_id)
        except SQLAlchemyError as exc:
            logger.error(
                "Chunk existence check failed",
                document_id=document_id,
                error=str(exc),
            )
            return False

    async def stats(self) -> ChunkStatistics:
        """Count chunks and chunked documents across all tenants."""
        try:
            async with self.session_factory() as session:
                total_chunks = await ChunkRepository.count(session)
                total_documents = await ChunkRepository.count_documents(session)
        except SQLAlchemyError as exc:
            raise StorageError(
                f"Failed to read chunk statistics: {exc}",
                details={"operation": "stats"},
            ) from exc

        return ChunkStatistics(total_chunks=total_chunks, total_documents=total_documents)

    async def _index(
        self,
        document_id: str,
        tenant_id: str,
        text: str,
        replace_existing: bool,
    ) -> ProcessingResult:
        self._validate(document_id, tenant_id, text)
        start = time.perf_counter()

        prepared = await self._prepare(document_id, text)
        rows = [
            NewChunk(
                document_id=document_id,
                organization_id=tenant_id,
                chunk_index=index,
                content=content,
                word_count=count_words(content),
                embedding=embedding,
                embedding_model=self.backend.embedding_model_name(),
            )
            for index, (content, embedding) in enumerate(
                zip(prepared.texts, prepared.embeddings, strict=True)
            )
        ]

        try:
            async with session_scope(self.session_factory) as session:
                deleted = 0
                if replace_existing:
                    deleted = await ChunkRepository.delete_by_document(
                        session, document_id
                    )
                await ChunkRepository.create_bulk(session, rows)
        except SQLAlchemyError as exc:
            operation = "replace" if replace_existing else "insert"
            raise self._storage_error(operation, document_id, exc) from exc

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        result = ProcessingResult(
            document_id=document_id,
            chunks_created=len(rows),
            total_words=sum(row.word_count for row in rows),
            processing_time_ms=elapsed_ms,
            dimensions=self.backend.embedding_dimensions(),
            used_placeholder_embeddings=prepared.used_placeholders,
        )

        logger.info(
            "Chunks stored",
            document_id=document_id,
            tenant_id=tenant_id,
            chunk_count=result.chunks_created,
            replaced=deleted if replace_existing else None,
            dimensions=result.dimensions,
            processing_time_ms=elapsed_ms,
        )
        return result

    async def _prepare(self, document_id: str, text: str) -> _PreparedChunks:
        texts = [chunk for chunk in self.chunking_service.split(text) if chunk.strip()]
        if not texts:
            raise DomainValidationError(
                "No chunks generated from text",
                field="text",
                details={"document_id": document_id},
            )

        logger.info(
            "Chunking complete",
            document_id=document_id,
            chunk_count=len(texts),
        )

        dimensions = self.backend.embedding_dimensions()
        # Blocking client call, kept off the event loop
        embeddings = await asyncio.to_thread(self.backend.embed_many, texts)

        usable = len(embeddings) == len(texts) and all(
            len(vector) == dimensions for vector in embeddings
        )
        if usable:
            return _PreparedChunks(texts, embeddings, used_placeholders=False)

        logger.warning(
            "Embedding output unusable, storing placeholder embeddings",
            document_id=document_id,
            expected_count=len(texts),
            actual_count=len(embeddings),
            dimensions=dimensions,
            placeholder_embeddings=True,
        )
        placeholders = [[PLACEHOLDER_VALUE] * dimensions for _ in texts]
        return _PreparedChunks(texts, placeholders, used_placeholders=True)

    @staticmethod
    def _validate(document_id: str, tenant_id: str, text: str) -> None:
        if not document_id or not str(document_id).strip():
            raise DomainValidationError("Document ID is required", field="document_id")
        if not tenant_id or not str(tenant_id).strip():
            raise DomainValidationError("Tenant ID is required", field="tenant_id")
        if not isinstance(text, str) or not text.strip():
            raise DomainValidationError(
                "Text cannot be empty",
                field="text",
                details={"document_id": document_id},
            )

    @staticmethod
    def _storage_error(
        operation: str, document_id: str, exc: SQLAlchemyError
    ) -> StorageError:
        logger.error(
            "Chunk store operation failed",
            operation=operation,
            document_id=document_id,
            error=str(exc),
        )
        return StorageError(
            f"Chunk store {operation} failed for document {document_id}: {exc}",
            details={"operation": operation, "document_id": document_id},
        )
