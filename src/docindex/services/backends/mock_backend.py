"""Deterministic backend for tests and offline development.

No network calls. Embeddings are derived from a stable hash of the text, so
the same text always yields a bit-identical vector across processes.
"""

import hashlib

import numpy as np

from docindex.config import settings
from docindex.services.backends.base import (
    DEFAULT_CATEGORY,
    AIBackend,
    ClassificationResult,
    GenerationOptions,
    GenerationResult,
    SummarizationResult,
    TokenUsage,
)

# (keywords, category, confidence, extra tags)
_CATEGORY_RULES = [
    (("invoice", "billing"), "Invoice", 0.9, ["financial", "billing"]),
    (("contract", "agreement"), "Contract", 0.85, ["legal", "agreement"]),
    (("report",), "Report", 0.8, ["report", "analysis"]),
    (("manual", "guide"), "Manual", 0.75, ["documentation", "guide"]),
]


def _stable_seed(text: str) -> int:
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return int.from_bytes(digest[:4], "big") & 0x7FFFFFFF


class MockBackend(AIBackend):
    """Deterministic test backend."""

    name = "mock"

    def __init__(self, dimensions: int = settings.mock_embedding_dimensions) -> None:
        super().__init__(
            chat_model="mock-chat-model",
            embedding_model="mock-embedding-model",
            dimensions=dimensions,
        )

    def _vector(self, text: str) -> list[float]:
        seed = _stable_seed(text)
        positions = np.arange(self._dimensions, dtype=np.float64)
        return (np.sin((seed + positions) * 0.01) * 0.1).tolist()

    def _embed(self, texts: list[str]) -> list[list[float]]:
        return [self._vector(text) for text in texts]

    def _generate(self, prompt: str, options: GenerationOptions) -> GenerationResult:
        lowered = prompt.lower()
        if "classify" in lowered:
            text = (
                '{"category": "Report", "confidence": 0.85, '
                '"tags": ["mock", "test", "document"]}'
            )
        elif "summarize" in lowered:
            text = (
                '{"summary": "This is a mock summary of the document.", '
                '"key_points": ["Mock key point 1", "Mock key point 2", '
                '"Mock key point 3"]}'
            )
        else:
            preview = prompt[:50] + ("..." if len(prompt) > 50 else "")
            text = f'Mock AI response for prompt: "{preview}"'

        return GenerationResult(
            text=text,
            model=options.model or self._chat_model,
            token_usage=TokenUsage(
                prompt=len(prompt) // 4,
                completion=len(text) // 4,
                total=(len(prompt) + len(text)) // 4,
            ),
        )

    def classify(self, text: str) -> ClassificationResult:
        """Keyword-based classification, no model call."""
        lowered = text.lower()
        for keywords, category, confidence, extra_tags in _CATEGORY_RULES:
            if any(keyword in lowered for keyword in keywords):
                return ClassificationResult(
                    category=category,
                    confidence=confidence,
                    tags=["mock", "test", *extra_tags],
                )
        return ClassificationResult(
            category=DEFAULT_CATEGORY, confidence=0.7, tags=["mock", "test"]
        )

    def summarize(self, text: str) -> SummarizationResult:
        """Word-count based summary, no model call."""
        word_count = len(text.split())
        return SummarizationResult(
            summary=(
                f"This document contains approximately {word_count} words. "
                "It is a mock summary generated for testing."
            ),
            key_points=[
                f"The document has {word_count} words",
                "Key point extracted from the content",
                "Main conclusion of the document",
            ],
        )

    def check_connection(self) -> bool:
        return True
