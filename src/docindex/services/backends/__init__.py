"""Interchangeable embedding/generation backends."""

from docindex.services.backends.base import (
    AIBackend,
    BackendInfo,
    ClassificationResult,
    EmbeddingResult,
    GenerationOptions,
    GenerationResult,
    SummarizationResult,
)
from docindex.services.backends.factory import (
    BackendSelector,
    check_backend_availability,
    create_backend,
    get_backend,
    get_backend_info,
    reset_backend,
)
from docindex.services.backends.mock_backend import MockBackend

__all__ = [
    "AIBackend",
    "BackendInfo",
    "BackendSelector",
    "ClassificationResult",
    "EmbeddingResult",
    "GenerationOptions",
    "GenerationResult",
    "MockBackend",
    "SummarizationResult",
    "check_backend_availability",
    "create_backend",
    "get_backend",
    "get_backend_info",
    "reset_backend",
]
