"""Error taxonomy for the transcription pipeline.

Client-facing errors derive from ``AppError`` and carry the HTTP status and
machine-readable code used by the API exception handler. Provider, generation
and persistence errors are internal: the orchestrator decides whether they are
retried, degraded around, or turned into a client-facing error.
"""

from typing import Any

from fastapi import Request, status
from fastapi.responses import JSONResponse


class AppError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ClientInputError(AppError):
    """Bad or missing upload / request parameters. Never retried."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_UPLOAD"


class PayloadTooLargeError(ClientInputError):
    status_code = 413
    code = "FILE_TOO_LARGE"


class UnsupportedMediaTypeError(ClientInputError):
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    code = "UNSUPPORTED_MEDIA_TYPE"


class QuotaExceededError(AppError):
    """Pre-check rejection. Details carry usage stats and upgrade guidance."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "USAGE_LIMIT_EXCEEDED"


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "AUTH_REQUIRED"


class ServiceUnavailableError(AppError):
    """Server is missing provider credentials."""

    code = "MISSING_CREDENTIALS"


class TranscriptionFailedError(AppError):
    """Unrecoverable pipeline failure; the job has been marked failed."""

    code = "TRANSCRIPTION_FAILED"


class ProviderResponseError(AppError):
    """Provider returned a result that could not be parsed."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "PROVIDER_BAD_RESPONSE"


# Speech-to-text provider


class ProviderError(Exception):
    """Fatal provider error (authentication, not found, unexpected status)."""

    def __init__(self, message: str, *, status_code: int | None = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ProviderConfigRejected(ProviderError):
    """Provider refused the job configuration; retry with a simpler one."""


class ProviderTransient(ProviderError):
    """Timeout, network failure or 5xx/429 from the provider."""


class ProviderTimeout(ProviderError):
    """Job did not finish within the request's wait budget."""


# Text generation provider


class GenerationError(Exception):
    """Non-retryable generation failure (bad request, authentication)."""


class GenerationTransient(GenerationError):
    """Network, timeout, rate limit or server-class generation failure."""


class GenerationEmpty(GenerationError):
    """Model returned no content."""

    def __init__(self, model: str) -> None:
        super().__init__(f"Model {model} returned empty content")
        self.model = model


# Persistence


class PersistenceError(Exception):
    """Storage could not be read or written."""


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an ``AppError`` as ``{"error", "code", "details"}``."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    """Storage failures that a policy chose to propagate."""
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": "Storage is unavailable. Try again later.", "code": "STORAGE_UNAVAILABLE"},
    )
