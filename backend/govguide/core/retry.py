"""
Retry primitive for model-endpoint calls.

Retry policy:
  On rate limit (429)  → wait base × 2^attempt, then retry, up to max_attempts
  On auth failure (401) → ask the caller to recover credentials; retry
                          immediately if it did (not counted as an attempt),
                          otherwise raise CredentialError
  Anything else        → re-raise unchanged, no retry (403 included)

The loop itself does no I/O besides `sleep`, which is injectable so tests
can observe backoff delays without waiting.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, TypeVar

from govguide.core.errors import CredentialError, RateLimitExhaustedError

if TYPE_CHECKING:
    from govguide.core.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorKind(str, Enum):
    RATE_LIMIT = "rate_limit"
    AUTH       = "auth"
    FATAL      = "fatal"


def classify_provider_error(exc: BaseException) -> ErrorKind:
    """Map an OpenAI SDK (or status-bearing) exception to an ErrorKind."""
    import openai

    if isinstance(exc, openai.RateLimitError):
        return ErrorKind.RATE_LIMIT
    if isinstance(exc, openai.AuthenticationError):
        return ErrorKind.AUTH

    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(exc, "status", None)
    if status == 429:
        return ErrorKind.RATE_LIMIT
    if status == 401:
        return ErrorKind.AUTH
    return ErrorKind.FATAL


def exponential_backoff(base_seconds: float) -> Callable[[int], float]:
    """Delay for a 0-based attempt number: base, 2×base, 4×base, …"""
    def _delay(attempt: int) -> float:
        return base_seconds * (2 ** attempt)
    return _delay


@dataclass(frozen=True)
class RetryPolicy:
    """
    max_attempts    : total calls allowed while rate limited
    base_delay      : first backoff wait in seconds
    pacing_interval : fixed wait before every call (proactive throttling)
    """
    max_attempts:    int
    base_delay:      float
    pacing_interval: float = 0.0

    def backoff(self, attempt: int) -> float:
        return exponential_backoff(self.base_delay)(attempt)

    @classmethod
    def for_ingestion(cls, settings: "Settings") -> "RetryPolicy":
        return cls(
            max_attempts=settings.ingest_max_attempts,
            base_delay=settings.ingest_retry_base_delay,
            pacing_interval=settings.ingest_request_interval,
        )

    @classmethod
    def for_query(cls, settings: "Settings") -> "RetryPolicy":
        return cls(
            max_attempts=settings.query_max_attempts,
            base_delay=settings.query_retry_base_delay,
        )


async def retry_async(
    operation:       Callable[[], Awaitable[T]],
    *,
    classify:        Callable[[BaseException], ErrorKind] = classify_provider_error,
    max_attempts:    int,
    backoff:         Callable[[int], float],
    on_auth_failure: Callable[[], bool] | None = None,
    sleep:           Callable[[float], Awaitable[None]] = asyncio.sleep,
    label:           str = "operation",
) -> T:
    """
    Run `operation` until it succeeds or a terminal failure is reached.

    Raises:
        RateLimitExhaustedError: still rate limited on the last attempt.
        CredentialError:         auth failure and on_auth_failure did not rotate.
        Exception:               any FATAL error, unchanged.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as exc:
            kind = classify(exc)

            if kind is ErrorKind.AUTH:
                if on_auth_failure is not None and on_auth_failure():
                    logger.warning("Retry | %s auth failure, credential rotated, retrying", label)
                    continue
                raise CredentialError() from exc

            if kind is ErrorKind.RATE_LIMIT:
                if attempt + 1 >= max_attempts:
                    logger.error(
                        "Retry | %s rate limited, giving up after %d attempts", label, max_attempts,
                    )
                    raise RateLimitExhaustedError(max_attempts) from exc
                delay = backoff(attempt)
                logger.warning(
                    "Retry | %s rate limited attempt=%d delay=%.1fs", label, attempt + 1, delay,
                )
                await sleep(delay)
                attempt += 1
                continue

            raise
