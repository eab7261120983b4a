"""Embedding/generation backend contract.

Every backend turns text into fixed-length vectors and produces short
completions. Classification and summarization are built on top of
``generate`` here, so each backend only supplies the raw model calls.
Dimensionality is fixed for the lifetime of a backend instance.
"""

import json
import re
from abc import ABC, abstractmethod
from typing import Any

from loguru import logger
from pydantic import BaseModel, Field

from docindex.exceptions import DomainValidationError

DOCUMENT_CATEGORIES = [
    "Invoice",
    "Contract",
    "Report",
    "Manual",
    "Proposal",
    "Policy",
    "Presentation",
    "Correspondence",
    "Other",
]

DEFAULT_CATEGORY = "Other"
FALLBACK_CONFIDENCE = 0.3
SUMMARY_UNAVAILABLE = "Summary unavailable"

CLASSIFY_EXCERPT_CHARS = 2000
SUMMARIZE_EXCERPT_CHARS = 4000


# region result models


class EmbeddingResult(BaseModel):
    """A single embedding with the model that produced it."""

    embedding: list[float]
    dimensions: int
    model: str


class GenerationOptions(BaseModel):
    """Per-call overrides for text generation."""

    temperature: float | None = None
    max_tokens: int | None = None
    system_message: str | None = None
    model: str | None = None


class TokenUsage(BaseModel):
    """Token accounting reported by the backend."""

    prompt: int = 0
    completion: int = 0
    total: int = 0


class GenerationResult(BaseModel):
    """Text produced by a generation call."""

    text: str
    model: str
    token_usage: TokenUsage | None = None


class ClassificationResult(BaseModel):
    """Validated structure for a document classification."""

    category: str = DEFAULT_CATEGORY
    confidence: float = Field(default=FALLBACK_CONFIDENCE, ge=0.0, le=1.0)
    tags: list[str] = Field(default_factory=list)


class SummarizationResult(BaseModel):
    """Validated structure for a document summary."""

    summary: str = SUMMARY_UNAVAILABLE
    key_points: list[str] = Field(default_factory=list)


class BackendInfo(BaseModel):
    """Introspection data for the active backend."""

    name: str
    chat_model: str
    embedding_model: str
    embedding_dimensions: int


# endregion

# region prompts

_CLASSIFY_PROMPT = (
    "Analyze the following document and classify it.\n\n"
    "Possible categories: {categories}\n\n"
    "Document text (first {limit} characters):\n{excerpt}\n\n"
    "Respond ONLY with a valid JSON object (no markdown, no explanations):\n"
    '{{"category": "<category>", "confidence": <float 0.0-1.0>, '
    '"tags": ["<tag>", ...]}}'
)

_SUMMARIZE_PROMPT = (
    "Summarize the following document in 2-3 sentences and extract the "
    "3-5 most important key points.\n\n"
    "Document text (first {limit} characters):\n{excerpt}\n\n"
    "Respond ONLY with a valid JSON object (no markdown, no explanations):\n"
    '{{"summary": "<2-3 sentences>", "key_points": ["<point>", ...]}}'
)

# endregion


def parse_json_object(raw: str) -> dict[str, Any] | None:
    """Extract a JSON object from raw model output.

    Handles markdown code fences, prose around the object, and trailing
    commas. Returns ``None`` when nothing usable is found.
    """
    text = (raw or "").strip()

    fence_match = re.search(r"```(?:json)?\s*\n?(.*?)\n?\s*```", text, re.DOTALL)
    if fence_match:
        text = fence_match.group(1).strip()

    candidates = [text]
    brace_match = re.search(r"\{.*\}", text, re.DOTALL)
    if brace_match and brace_match.group(0) != text:
        candidates.append(brace_match.group(0))

    for candidate in candidates:
        for attempt in (candidate, re.sub(r",\s*([}\]])", r"\1", candidate)):
            try:
                parsed = json.loads(attempt)
            except json.JSONDecodeError:
                continue
            if isinstance(parsed, dict):
                return parsed

    return None


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def _require_text(value: str, field: str, message: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise DomainValidationError(message, field=field)


class AIBackend(ABC):
    """Contract shared by all embedding/generation backends."""

    name: str = "base"

    def __init__(
        self,
        chat_model: str,
        embedding_model: str,
        dimensions: int,
        temperature: float = 0.3,
        max_tokens: int = 1000,
    ) -> None:
        self._chat_model = chat_model
        self._embedding_model = embedding_model
        self._dimensions = dimensions
        self.temperature = temperature
        self.max_tokens = max_tokens

    # region embeddings

    def embed_one(self, text: str) -> list[float]:
        """Embed a single non-empty text."""
        _require_text(text, "text", "Text cannot be empty for embedding generation")
        return self._embed([text])[0]

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of texts, returning vectors in input order."""
        if not texts:
            raise DomainValidationError("Texts list cannot be empty", field="texts")
        for text in texts:
            _require_text(text, "texts", "All texts must be non-empty strings")
        return self._embed(list(texts))

    def embed_query(self, text: str) -> EmbeddingResult:
        """Embed a single text and report the producing model."""
        vector = self.embed_one(text)
        return EmbeddingResult(
            embedding=vector,
            dimensions=len(vector),
            model=self.embedding_model_name(),
        )

    @abstractmethod
    def _embed(self, texts: list[str]) -> list[list[float]]:
        """Backend-specific embedding call for already-validated input."""

    # endregion

    # region generation

    def generate(
        self,
        prompt: str,
        options: GenerationOptions | None = None,
    ) -> GenerationResult:
        """Generate a completion for a non-empty prompt."""
        _require_text(prompt, "prompt", "Prompt cannot be empty")
        return self._generate(prompt.strip(), options or GenerationOptions())

    @abstractmethod
    def _generate(self, prompt: str, options: GenerationOptions) -> GenerationResult:
        """Backend-specific completion call."""

    def classify(self, text: str) -> ClassificationResult:
        """Classify a document; malformed model output yields a low-confidence default."""
        prompt = _CLASSIFY_PROMPT.format(
            categories=", ".join(DOCUMENT_CATEGORIES),
            limit=CLASSIFY_EXCERPT_CHARS,
            excerpt=text[:CLASSIFY_EXCERPT_CHARS],
        )
        result = self.generate(
            prompt, GenerationOptions(temperature=0.2, max_tokens=200)
        )

        parsed = parse_json_object(result.text)
        if parsed is None:
            logger.warning(
                "Failed to parse classification, using default",
                backend=self.name,
                response=result.text[:200],
            )
            return ClassificationResult()

        category = parsed.get("category")
        confidence = parsed.get("confidence")
        if isinstance(confidence, bool) or not isinstance(confidence, int | float):
            confidence = 0.5

        return ClassificationResult(
            category=category if isinstance(category, str) and category else DEFAULT_CATEGORY,
            confidence=min(1.0, max(0.0, float(confidence))),
            tags=_string_list(parsed.get("tags")),
        )

    def summarize(self, text: str) -> SummarizationResult:
        """Summarize a document; malformed model output yields an explicit placeholder."""
        prompt = _SUMMARIZE_PROMPT.format(
            limit=SUMMARIZE_EXCERPT_CHARS,
            excerpt=text[:SUMMARIZE_EXCERPT_CHARS],
        )
        result = self.generate(
            prompt, GenerationOptions(temperature=0.3, max_tokens=500)
        )

        parsed = parse_json_object(result.text)
        summary = parsed.get("summary") if parsed else None
        if not isinstance(summary, str) or not summary.strip():
            logger.warning(
                "Failed to parse summary, using placeholder",
                backend=self.name,
                response=result.text[:200],
            )
            return SummarizationResult()

        key_points = parsed.get("key_points", parsed.get("keyPoints"))
        return SummarizationResult(
            summary=summary.strip(),
            key_points=_string_list(key_points),
        )

    # endregion

    # region introspection

    @abstractmethod
    def check_connection(self) -> bool:
        """Return True when the backend is reachable."""

    def embedding_dimensions(self) -> int:
        return self._dimensions

    def embedding_model_name(self) -> str:
        return self._embedding_model

    def chat_model_name(self) -> str:
        return self._chat_model

    def info(self) -> BackendInfo:
        """Describe this backend."""
        return BackendInfo(
            name=self.name,
            chat_model=self.chat_model_name(),
            embedding_model=self.embedding_model_name(),
            embedding_dimensions=self.embedding_dimensions(),
        )

    # endregion
