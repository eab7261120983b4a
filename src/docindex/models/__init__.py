"""Database models package."""

from docindex.models.base import Base
from docindex.models.chunk import Chunk
from docindex.models.document import Document, DocumentStatus

__all__ = ["Base", "Chunk", "Document", "DocumentStatus"]
