"""
Exception hierarchy for GovGuide.

    GovGuideError                 (base)
    +-- ConfigurationError        missing credentials / settings at startup
    +-- ProviderError             model endpoint failure (carries status_code)
    |   +-- RateLimitExhaustedError
    |   +-- CredentialError
    |   +-- ResponseSchemaError
    +-- ExtractionError           source document could not be parsed
    +-- StoreError                one store read/write failed
    +-- IngestionError            fatal single-file ingestion failure
    +-- ChatServiceError          user-facing chat failure

Only unit-local failures (one chunk, one document, one retrieval branch)
are swallowed and logged; everything else propagates to the entry point.
"""

from __future__ import annotations


class GovGuideError(Exception):
    """Base exception for all GovGuide errors."""

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        self.message = message
        super().__init__(message)


class ConfigurationError(GovGuideError):
    """Required configuration or credentials are missing."""


class ProviderError(GovGuideError):
    """The embedding / completion endpoint failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"[{self.status_code}] {self.message}"
        return self.message


class RateLimitExhaustedError(ProviderError):
    """Provider kept rate limiting after every backoff attempt."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Rate limit persisted after {attempts} attempts", status_code=429)
        self.attempts = attempts


class CredentialError(ProviderError):
    """Authorization failed and no backup credential is left to rotate to."""

    def __init__(self, message: str = "Authorization failed and no backup credential is available") -> None:
        super().__init__(message, status_code=401)


class ResponseSchemaError(ProviderError):
    """Provider response did not match the expected shape."""


class ExtractionError(GovGuideError):
    """Text could not be extracted from a source document."""


class StoreError(GovGuideError):
    """A single read or write against the chunk / scheme store failed."""


class IngestionError(GovGuideError):
    """Fatal failure of a top-level ingestion operation."""


BUSY_MESSAGE = "The system is currently busy. Please try again in a few seconds."
CONNECTIVITY_MESSAGE = "Failed to get AI response. Please check your connection and try again."


class ChatServiceError(GovGuideError):
    """
    A chat query failed.

    user_message is safe to show to citizens; cause is the triggering error
    and failed_at the pipeline step that raised it.
    """

    def __init__(self, cause: BaseException, failed_at: str) -> None:
        self.cause = cause
        self.failed_at = failed_at
        self.is_busy = isinstance(cause, RateLimitExhaustedError)
        self.user_message = BUSY_MESSAGE if self.is_busy else CONNECTIVITY_MESSAGE
        super().__init__(self.user_message)
