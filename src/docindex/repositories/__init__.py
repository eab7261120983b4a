"""Repository layer for database operations."""

from docindex.repositories.chunk import ChunkRepository, NewChunk
from docindex.repositories.document import DocumentRepository

__all__ = ["ChunkRepository", "DocumentRepository", "NewChunk"]
