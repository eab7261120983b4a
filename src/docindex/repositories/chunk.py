"""Repository for chunk database operations."""

from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from docindex.models.chunk import Chunk


@dataclass
class NewChunk:
    """A chunk ready to be written, embedding included."""

    document_id: str
    organization_id: str
    chunk_index: int
    content: str
    word_count: int
    embedding: list[float]
    embedding_model: str


class ChunkRepository:
    """Handle chunk persistence operations.

    Reads used for retrieval always filter on the tenant.
    """

    @staticmethod
    async def similarity_search(
        session: AsyncSession,
        tenant_id: str,
        query_embedding: list[float],
        top_k: int,
        document_id: str | None = None,
    ) -> list[tuple[Chunk, float]]:
        """Find the most similar chunks to a query embedding using cosine distance.

        Args:
            session: Database session
            tenant_id: Only chunks of this tenant are considered
            query_embedding: The query vector to compare against
            top_k: Maximum number of results to return
            document_id: Optionally restrict the search to one document

        Returns:
            List of (Chunk, distance) tuples ordered by ascending distance
        """
        distance_expr = Chunk.embedding.cosine_distance(query_embedding)
        conditions = [
            Chunk.organization_id == tenant_id,
            Chunk.embedding_dimensions == len(query_embedding),
        ]
        if document_id is not None:
            conditions.append(Chunk.document_id == document_id)

        result = await session.execute(
            select(Chunk, distance_expr.label("distance"))
            .where(*conditions)
            .order_by(distance_expr)
            .limit(top_k)
        )
        return [(row.Chunk, row.distance) for row in result.all()]

    @staticmethod
    async def create_bulk(
        session: AsyncSession,
        chunks: list[NewChunk],
    ) -> list[Chunk]:
        """Batch insert chunks, stamping them with one creation time."""
        created_at = datetime.now(UTC)
        db_chunks = [
            Chunk(
                document_id=chunk.document_id,
                organization_id=chunk.organization_id,
                chunk_index=chunk.chunk_index,
                content=chunk.content,
                word_count=chunk.word_count,
                embedding=chunk.embedding,
                embedding_dimensions=len(chunk.embedding),
                embedding_model=chunk.embedding_model,
                created_at=created_at,
            )
            for chunk in chunks
        ]
        session.add_all(db_chunks)
        await session.flush()
        return db_chunks

    @staticmethod
    async def delete_by_document(session: AsyncSession, document_id: str) -> int:
        """Delete every chunk of a document and return how many were removed."""
        result = await session.execute(
            delete(Chunk).where(Chunk.document_id == document_id)
        )
        await session.flush()
        return result.rowcount or 0

    @staticmethod
    async def get_by_document_id(
        session: AsyncSession,
        document_id: str,
    ) -> list[Chunk]:
        """Retrieve all chunks for a document, ordered by chunk_index."""
        result = await session.execute(
            select(Chunk)
            .where(Chunk.document_id == document_id)
            .order_by(Chunk.chunk_index)
        )
        return list(result.scalars().all())

    @staticmethod
    async def exists_for_document(session: AsyncSession, document_id: str) -> bool:
        """Check whether a document has at least one chunk."""
        result = await session.execute(
            select(Chunk.id).where(Chunk.document_id == document_id).limit(1)
        )
        return result.first() is not None

    @staticmethod
    async def count(session: AsyncSession) -> int:
        """Count all chunks across tenants."""
        result = await session.execute(select(func.count(Chunk.id)))
        return result.scalar_one()

    @staticmethod
    async def count_documents(session: AsyncSession) -> int:
        """Count distinct documents that have chunks."""
        result = await session.execute(
            select(func.count(func.distinct(Chunk.document_id)))
        )
        return result.scalar_one()

    @staticmethod
    async def get_foreign_dimensions(
        session: AsyncSession,
        tenant_id: str,
        dimensions: int,
    ) -> list[int]:
        """Return the embedding sizes stored for a tenant other than ``dimensions``."""
        result = await session.execute(
            select(Chunk.embedding_dimensions)
            .where(
                Chunk.organization_id == tenant_id,
                Chunk.embedding_dimensions != dimensions,
            )
            .distinct()
            .order_by(Chunk.embedding_dimensions)
        )
        return list(result.scalars().all())
