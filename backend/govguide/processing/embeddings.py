"""
Embedding Client  —  One text in, one vector out, with backoff & pacing
═══════════════════════════════════════════════════════════════════════

OpenAI-compatible endpoint (GitHub Models by default):
  text-embedding-3-small → 1536 dims

Two profiles share this class:

  ingestion  base delay 2 s, 5 attempts, 0.5 s pause before every call
             (stays under provider throughput proactively)
  query      base delay 1 s, 3 attempts, no pacing

Retry policy (see govguide.core.retry):
  On RateLimitError      → wait base × 2^attempt
  On 401 → CredentialState.recover(key used): backup key once, retry at once
  Anything else          → fail immediately

Exhausting the budget fails this one text only; callers that process
batches catch it per unit.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

from govguide.core.errors import ResponseSchemaError
from govguide.core.retry import RetryPolicy, retry_async
from govguide.llm.credentials import CredentialState
from govguide.schemas.models import parse_embedding_response

logger = logging.getLogger(__name__)


class EmbeddingClient:
    """
    Usage:
        client = EmbeddingClient.for_ingestion(settings, credentials)
        vector = await client.embed(chunk_text)
    """

    def __init__(
        self,
        credentials: CredentialState,
        policy:      RetryPolicy,
        model:       str = "text-embedding-3-small",
        dimensions:  int = 1536,
        sleep:       Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._credentials = credentials
        self._policy      = policy
        self._model       = model
        self._dimensions  = dimensions
        self._sleep       = sleep

    @classmethod
    def for_ingestion(cls, settings, credentials: CredentialState) -> "EmbeddingClient":
        return cls(
            credentials=credentials,
            policy=RetryPolicy.for_ingestion(settings),
            model=settings.embedding_model,
            dimensions=settings.embedding_dimensions,
        )

    @classmethod
    def for_query(cls, settings, credentials: CredentialState) -> "EmbeddingClient":
        return cls(
            credentials=credentials,
            policy=RetryPolicy.for_query(settings),
            model=settings.embedding_model,
            dimensions=settings.embedding_dimensions,
        )

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def embed(self, text: str) -> list[float]:
        """
        Embed a single text.

        Raises:
            RateLimitExhaustedError, CredentialError, ResponseSchemaError,
            or the SDK error for anything non-retryable.
        """
        if self._policy.pacing_interval > 0:
            await self._sleep(self._policy.pacing_interval)

        used_key = self._credentials.active

        async def _attempt() -> list[float]:
            nonlocal used_key
            used_key = self._credentials.active
            return await self._call(text)

        t0 = time.monotonic()
        vector = await retry_async(
            _attempt,
            max_attempts=self._policy.max_attempts,
            backoff=self._policy.backoff,
            on_auth_failure=lambda: self._credentials.recover(used_key),
            sleep=self._sleep,
            label="embedding",
        )
        logger.debug(
            "EmbeddingClient | chars=%d dims=%d elapsed_ms=%.0f",
            len(text), len(vector), (time.monotonic() - t0) * 1000,
        )
        return vector

    async def _call(self, text: str) -> list[float]:
        raw = await self._credentials.client().embeddings.create(
            model=self._model,
            input=text,
        )
        vector = parse_embedding_response(raw).vector
        if len(vector) != self._dimensions:
            raise ResponseSchemaError(
                f"Embedding has {len(vector)} dimensions, expected {self._dimensions}"
            )
        return vector
