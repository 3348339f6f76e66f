"""
Resilient Completion Client

Single call site for the chat-completion endpoint:

  complete(messages)
       │
       ▼
  retry_async  ── 429 → exponential backoff (1 s, 2 s, …; 3 attempts)
       │        ── 401 → CredentialState.recover(key used), immediate retry
       ▼
  chat.completions.create(model, messages, temperature, max_tokens)
       │
       ▼
  CompletionResponse schema validation → choices[0].message.content

Rotation mutates the shared CredentialState, so every later call (embedding
included) uses the backup key. It is never reverted.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Sequence

from govguide.core.retry import RetryPolicy, retry_async
from govguide.llm.credentials import CredentialState
from govguide.schemas.models import parse_completion_response
from govguide.schemas.retrieval import ChatMessage

logger = logging.getLogger(__name__)


class CompletionClient:

    def __init__(
        self,
        credentials: CredentialState,
        policy:      RetryPolicy,
        model:       str   = "gpt-4o-mini",
        temperature: float = 0.5,
        max_tokens:  int   = 1000,
        sleep:       Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._credentials = credentials
        self._policy      = policy
        self._model       = model
        self._temperature = temperature
        self._max_tokens  = max_tokens
        self._sleep       = sleep

    @classmethod
    def from_settings(cls, settings, credentials: CredentialState) -> "CompletionClient":
        return cls(
            credentials=credentials,
            policy=RetryPolicy.for_query(settings),
            model=settings.llm_model,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )

    @property
    def credentials(self) -> CredentialState:
        return self._credentials

    async def complete(self, messages: Sequence[ChatMessage]) -> str:
        """
        Return the completion text ("" if the model returned no content).

        Raises:
            RateLimitExhaustedError, CredentialError, ResponseSchemaError,
            or the SDK error for anything non-retryable.
        """
        payload = [{"role": m.role, "content": m.content} for m in messages]

        used_key = self._credentials.active

        async def _attempt() -> str:
            nonlocal used_key
            used_key = self._credentials.active
            return await self._call(payload)

        t0 = time.perf_counter()
        content = await retry_async(
            _attempt,
            max_attempts=self._policy.max_attempts,
            backoff=self._policy.backoff,
            on_auth_failure=lambda: self._credentials.recover(used_key),
            sleep=self._sleep,
            label="completion",
        )
        logger.info(
            "CompletionClient | model=%s messages=%d chars_out=%d backup_key=%s latency_ms=%.1f",
            self._model, len(payload), len(content), self._credentials.using_backup,
            (time.perf_counter() - t0) * 1000,
        )
        return content

    async def _call(self, payload: list[dict]) -> str:
        raw = await self._credentials.client().chat.completions.create(
            model=self._model,
            messages=payload,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        return parse_completion_response(raw).content or ""
