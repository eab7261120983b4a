"""Service layer for business logic."""

from docindex.services.chunking import ChunkingService, split_into_chunks
from docindex.services.context import estimate_tokens, truncate_context
from docindex.services.processing import DocumentProcessor, ProcessingResult
from docindex.services.retrieval import ChunkSearchResult, RetrievalService
from docindex.services.text_extraction import ExtractionResult, TextExtractionService

__all__ = [
    "ChunkSearchResult",
    "ChunkingService",
    "DocumentProcessor",
    "ExtractionResult",
    "ProcessingResult",
    "RetrievalService",
    "TextExtractionService",
    "estimate_tokens",
    "split_into_chunks",
    "truncate_context",
]
