"""Custom exceptions for DocIndex."""

from typing import Any


class DocIndexError(Exception):
    """Base exception for all DocIndex errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(message)


class NotFoundError(DocIndexError):
    """Resource not found."""

    def __init__(
        self,
        resource: str,
        resource_id: Any,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=f"{resource} with id '{resource_id}' not found",
            error_code="NOT_FOUND",
            details={
                "resource": resource,
                "resource_id": str(resource_id),
                **(details or {}),
            },
        )


class DomainValidationError(DocIndexError):
    """Input validation failed."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            details={"field": field, **(details or {})} if field else details,
        )


class UnsupportedTypeError(DocIndexError):
    """No text extractor exists for the given content type."""

    def __init__(
        self,
        mime_type: str,
        supported: list[str] | None = None,
    ) -> None:
        super().__init__(
            message=f"Unsupported file type: {mime_type}",
            error_code="UNSUPPORTED_TYPE",
            details={"mime_type": mime_type, "supported": supported or []},
        )


class BackendUnavailableError(DocIndexError):
    """The embedding/generation backend failed or could not be reached."""

    def __init__(
        self,
        service: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=f"{service} error: {message}",
            error_code="BACKEND_UNAVAILABLE",
            details={"service": service, **(details or {})},
        )


class DimensionMismatchError(DocIndexError):
    """Stored embeddings disagree with the active backend's dimensionality."""

    def __init__(
        self,
        expected: int,
        actual: int | list[int],
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=(
                f"Embedding dimension mismatch: active backend produces {expected} "
                f"dimensions but stored chunks have {actual}. "
                "Reprocess the affected documents after switching backends."
            ),
            error_code="DIMENSION_MISMATCH",
            details={"expected": expected, "actual": actual, **(details or {})},
        )


class StorageError(DocIndexError):
    """Chunk or document store read/write failed."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="STORAGE_ERROR",
            details=details,
        )
