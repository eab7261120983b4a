"""Cloud backend using the OpenAI API (text-embedding-3-small + gpt-4o-mini)."""

from loguru import logger
from openai import OpenAI, OpenAIError

from docindex.config import settings
from docindex.exceptions import BackendUnavailableError
from docindex.services.backends.base import (
    AIBackend,
    GenerationOptions,
    GenerationResult,
    TokenUsage,
)


class OpenAIBackend(AIBackend):
    """High-dimensional cloud backend (1536-dim embeddings)."""

    name = "openai"

    def __init__(
        self,
        api_key: str = settings.openai_api_key,
        base_url: str | None = settings.openai_base_url,
        chat_model: str = settings.openai_chat_model,
        embedding_model: str = settings.openai_embedding_model,
        dimensions: int = settings.openai_embedding_dimensions,
        temperature: float = settings.llm_temperature,
        max_tokens: int = settings.llm_max_tokens,
        timeout: float = settings.request_timeout_seconds,
    ) -> None:
        super().__init__(
            chat_model=chat_model,
            embedding_model=embedding_model,
            dimensions=dimensions,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        self.client = OpenAI(api_key=api_key, base_url=base_url, timeout=timeout)

    def _embed(self, texts: list[str]) -> list[list[float]]:
        try:
            response = self.client.embeddings.create(
                model=self._embedding_model,
                input=texts,
                encoding_format="float",
            )
        except OpenAIError as exc:
            logger.error("OpenAI embedding call failed", error=str(exc), count=len(texts))
            raise BackendUnavailableError(service="OpenAI", message=str(exc)) from exc

        items = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in items]

    def _generate(self, prompt: str, options: GenerationOptions) -> GenerationResult:
        model = options.model or self._chat_model
        messages = []
        if options.system_message and options.system_message.strip():
            messages.append({"role": "system", "content": options.system_message.strip()})
        messages.append({"role": "user", "content": prompt})

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
        except OpenAIError as exc:
            logger.error("OpenAI chat call failed", error=str(exc), model=model)
            raise BackendUnavailableError(service="OpenAI", message=str(exc)) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise BackendUnavailableError(
                service="OpenAI", message="No content in completion response"
            )

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

    def check_connection(self) -> bool:
        try:
            self.client.models.list()
        except OpenAIError as exc:
            logger.error("OpenAI connection failed", error=str(exc))
            return False
        return True
