"""Backend selection.

``create_backend`` builds a backend explicitly from configuration and is
what long-lived services should receive by injection. ``BackendSelector``
caches one instance per process for callers that do not wire dependencies
themselves; its ``reset`` exists so test harnesses can force re-selection and
must not be called while pipelines are running.
"""

import threading

from loguru import logger

from docindex.config import Settings, settings
from docindex.exceptions import DomainValidationError
from docindex.services.backends.base import AIBackend, BackendInfo

BACKEND_TYPES = ("openai", "ollama", "mock")


def resolve_backend_type(raw: str | None) -> str:
    """Normalize a configured backend name, failing on unknown values."""
    normalized = (raw or "openai").strip().lower()
    if normalized not in BACKEND_TYPES:
        raise DomainValidationError(
            f"Invalid AI provider: {raw!r}. Valid options: {', '.join(BACKEND_TYPES)}",
            field="ai_provider",
            details={"allowed": list(BACKEND_TYPES)},
        )
    return normalized


def create_backend(
    backend_type: str | None = None,
    config: Settings | None = None,
) -> AIBackend:
    """Construct a backend of the given type from settings."""
    config = config or settings
    resolved = resolve_backend_type(backend_type or config.ai_provider)

    # Backend modules load their client libraries on demand
    if resolved == "openai":
        from docindex.services.backends.openai_backend import OpenAIBackend

        return OpenAIBackend(
            api_key=config.openai_api_key,
            base_url=config.openai_base_url,
            chat_model=config.openai_chat_model,
            embedding_model=config.openai_embedding_model,
            dimensions=config.openai_embedding_dimensions,
            temperature=config.llm_temperature,
            max_tokens=config.llm_max_tokens,
            timeout=config.request_timeout_seconds,
        )

    if resolved == "ollama":
        from docindex.services.backends.ollama_backend import OllamaBackend

        return OllamaBackend(
            base_url=config.ollama_base_url,
            chat_model=config.ollama_chat_model,
            embedding_model=config.local_embedding_model,
            dimensions=config.local_embedding_dimensions,
            temperature=config.llm_temperature,
            max_tokens=config.llm_max_tokens,
            max_retries=config.ollama_max_retries,
            timeout=config.request_timeout_seconds,
        )

    from docindex.services.backends.mock_backend import MockBackend

    return MockBackend(dimensions=config.mock_embedding_dimensions)


class BackendSelector:
    """Resolve and cache the active backend once per process."""

    def __init__(self, config: Settings | None = None) -> None:
        self._config = config or settings
        self._backend: AIBackend | None = None
        self._lock = threading.Lock()

    def get_backend(self) -> AIBackend:
        """Return the cached backend, creating it on first use."""
        backend = self._backend
        if backend is not None:
            return backend

        with self._lock:
            if self._backend is None:
                logger.info("Initializing AI backend", provider=self._config.ai_provider)
                self._backend = create_backend(config=self._config)
                logger.info("AI backend initialized", backend=self._backend.name)
            return self._backend

    def reset(self) -> None:
        """Drop the cached backend. Test setup only."""
        with self._lock:
            self._backend = None
        logger.info("AI backend reset")

    def availability_check(self) -> bool:
        """Check the active backend, logging instead of raising on failure."""
        try:
            backend = self.get_backend()
            available = bool(backend.check_connection())
        except Exception as exc:
            logger.error("AI backend check failed", error=f"{type(exc).__name__}: {exc}")
            return False

        if available:
            logger.info("AI backend is available", backend=backend.name)
        else:
            logger.warning("AI backend is not reachable", backend=backend.name)
        return available

    def info(self) -> BackendInfo:
        """Describe the active backend."""
        return self.get_backend().info()


default_selector = BackendSelector()


def get_backend() -> AIBackend:
    """Return the process-wide backend."""
    return default_selector.get_backend()


def reset_backend() -> None:
    """Force re-selection of the process-wide backend. Test setup only."""
    default_selector.reset()


def check_backend_availability() -> bool:
    """Check whether the process-wide backend is reachable."""
    return default_selector.availability_check()


def get_backend_info() -> BackendInfo:
    """Describe the process-wide backend."""
    return default_selector.info()
