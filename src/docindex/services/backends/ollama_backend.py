"""Local backend: Ollama for generation, Sentence Transformers for embeddings.

Ollama exposes an OpenAI-compatible ``/v1`` API, so chat completions reuse the
``openai`` client pointed at the local server. Embeddings are computed
in-process with a Sentence Transformer model (768 dimensions by default).
"""

import time

from loguru import logger
from openai import OpenAI, OpenAIError
from sentence_transformers import SentenceTransformer

from docindex.config import settings
from docindex.exceptions import BackendUnavailableError
from docindex.services.backends.base import (
    AIBackend,
    GenerationOptions,
    GenerationResult,
    TokenUsage,
)

_RETRY_BASE_DELAY_SECONDS = 0.3


class OllamaBackend(AIBackend):
    """Lower-dimensional local backend."""

    name = "ollama"

    def __init__(
        self,
        base_url: str = settings.ollama_base_url,
        chat_model: str = settings.ollama_chat_model,
        embedding_model: str = settings.local_embedding_model,
        dimensions: int = settings.local_embedding_dimensions,
        temperature: float = settings.llm_temperature,
        max_tokens: int = settings.llm_max_tokens,
        max_retries: int = settings.ollama_max_retries,
        timeout: float = settings.request_timeout_seconds,
    ) -> None:
        super().__init__(
            chat_model=chat_model,
            embedding_model=embedding_model,
            dimensions=dimensions,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        self.base_url = base_url.rstrip("/")
        self.max_retries = max(1, max_retries)
        # Ollama ignores the key, but the SDK requires a non-empty value
        self.client = OpenAI(
            base_url=f"{self.base_url}/v1", api_key="ollama", timeout=timeout
        )
        self._model: SentenceTransformer | None = None

        logger.info(
            "Local backend initialized",
            chat_model=chat_model,
            embedding_model=embedding_model,
        )

    @property
    def model(self) -> SentenceTransformer:
        """Sentence Transformer model, loaded on first use."""
        if self._model is None:
            try:
                self._model = SentenceTransformer(self._embedding_model)
            except Exception as exc:
                raise BackendUnavailableError(
                    service="SentenceTransformers",
                    message=f"Failed to load model {self._embedding_model}: {exc}",
                ) from exc
        return self._model

    def _embed(self, texts: list[str], batch_size: int = 32) -> list[list[float]]:
        model = self.model
        try:
            embeddings = model.encode(
                texts,
                batch_size=batch_size,
                show_progress_bar=False,
                convert_to_numpy=True,
            )
        except Exception as exc:
            logger.error(
                "Local embedding failed",
                error=str(exc),
                count=len(texts),
                model=self._embedding_model,
            )
            raise BackendUnavailableError(
                service="SentenceTransformers", message=str(exc)
            ) from exc
        vectors = embeddings.tolist()

        for vector in vectors:
            if len(vector) != self._dimensions:
                logger.warning(
                    "Unexpected embedding dimensions",
                    expected=self._dimensions,
                    actual=len(vector),
                    model=self._embedding_model,
                )
                break

        return vectors

    def _generate(self, prompt: str, options: GenerationOptions) -> GenerationResult:
        model = options.model or self._chat_model
        messages = []
        if options.system_message and options.system_message.strip():
            messages.append({"role": "system", "content": options.system_message.strip()})
        messages.append({"role": "user", "content": prompt})

        last_error: Exception | None = None
        for attempt in range(1, self.max_retries + 1):
            try:
                response = self.client.chat.completions.create(
                    model=model,
                    messages=messages,
                    temperature=(
                        options.temperature
                        if options.temperature is not None
                        else self.temperature
                    ),
                    max_tokens=options.max_tokens or self.max_tokens,
                )
                content = response.choices[0].message.content if response.choices else None
                if not content:
                    raise BackendUnavailableError(
                        service="Ollama", message="No content in completion response"
                    )
            except (OpenAIError, BackendUnavailableError) as exc:
                last_error = exc
                logger.warning(
                    "Ollama generation attempt failed",
                    attempt=attempt,
                    max_retries=self.max_retries,
                    model=model,
                    error=str(exc),
                )
                if attempt < self.max_retries:
                    time.sleep(_RETRY_BASE_DELAY_SECONDS * 2 ** (attempt - 1))
                continue

            usage = response.usage
            return GenerationResult(
                text=content.strip(),
                model=model,
                token_usage=TokenUsage(
                    prompt=usage.prompt_tokens or 0,
                    completion=usage.completion_tokens or 0,
                    total=usage.total_tokens or 0,
                )
                if usage
                else None,
            )

        raise BackendUnavailableError(
            service="Ollama",
            message=(
                f"Generation with {model} failed after {self.max_retries} attempts. "
                f"Is Ollama running on {self.base_url}? Last error: {last_error}"
            ),
        ) from last_error

    def check_connection(self) -> bool:
        try:
            self.client.models.list()
        except OpenAIError as exc:
            logger.error(
                "Ollama connection failed", error=str(exc), base_url=self.base_url
            )
            return False
        return True
