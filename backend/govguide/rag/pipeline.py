"""
Chat Pipeline — one citizen query end to end

  conversation history (oldest first, last turn = new user message)
    │
    ▼
  EMBEDDING     last user message → query vector          (fatal on failure)
    │
    ▼
  RETRIEVING    HybridRetriever.search: chunks ∥ scheme rows (branches degrade to [])
    │
    ▼
  ASSEMBLING    format_context → system prompt + history
    │
    ▼
  COMPLETING    CompletionClient.complete                 (fatal on failure)
    │
    ▼
  DONE          answer text, or the fallback sentence when the model said nothing

Any step may move the query to FAILED; the caller then receives a
ChatServiceError whose user_message tells "busy, retry shortly" (rate limit
exhausted) apart from a generic connectivity failure. No step runs twice
within one query.

The embedding and completion clients share one CredentialState, so a
rotation triggered by either applies to both for the rest of the process.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from govguide.core.errors import ChatServiceError
from govguide.llm.completion import CompletionClient
from govguide.llm.credentials import CredentialState
from govguide.processing.embeddings import EmbeddingClient
from govguide.rag.hybrid_retriever import HybridRetriever
from govguide.rag.prompt_manager import (
    FALLBACK_ANSWER,
    build_messages,
    format_context,
    last_user_message,
)
from govguide.schemas.retrieval import ChatMessage, RetrievalContext
from govguide.store.base import ChunkStore, SchemeStore

logger = logging.getLogger(__name__)


class QueryState(str, Enum):
    IDLE       = "idle"
    EMBEDDING  = "embedding"
    RETRIEVING = "retrieving"
    ASSEMBLING = "assembling"
    COMPLETING = "completing"
    DONE       = "done"
    FAILED     = "failed"


@dataclass
class ChatAnswer:
    content:      str
    chunks_used:  int = 0
    schemes_used: int = 0
    states:       list[QueryState] = field(default_factory=list)
    latency_ms:   float = 0.0


class ChatOrchestrator:
    """
    Usage:
        orchestrator = ChatOrchestrator.from_settings(settings, chunk_store, scheme_store)
        answer       = await orchestrator.answer(history, user_id="u-123")
    """

    def __init__(self, retriever: HybridRetriever, completion: CompletionClient) -> None:
        self._retriever  = retriever
        self._completion = completion

    @classmethod
    def from_settings(
        cls,
        settings,
        chunk_store:  ChunkStore,
        scheme_store: SchemeStore,
        credentials:  CredentialState | None = None,
    ) -> "ChatOrchestrator":
        credentials = credentials or CredentialState.from_settings(settings)
        retriever = HybridRetriever.from_settings(
            settings,
            embedder=EmbeddingClient.for_query(settings, credentials),
            chunk_store=chunk_store,
            scheme_store=scheme_store,
        )
        return cls(retriever=retriever, completion=CompletionClient.from_settings(settings, credentials))

    async def answer(
        self,
        messages: Sequence[ChatMessage],
        user_id:  str | None = None,
    ) -> ChatAnswer:
        """
        Raises:
            ChatServiceError: embedding or completion failed; carries the
                              failing step and the triggering error.
        """
        t0     = time.perf_counter()
        states = [QueryState.IDLE]

        def enter(state: QueryState) -> None:
            states.append(state)
            logger.debug("ChatOrchestrator | user=%s state=%s", user_id or "-", state.value)

        try:
            context = RetrievalContext()
            query   = last_user_message(messages)
            if query is not None:
                enter(QueryState.EMBEDDING)
                embedding = await self._retriever.embed_query(query.content)

                enter(QueryState.RETRIEVING)
                context = await self._retriever.search(query.content, embedding)

            enter(QueryState.ASSEMBLING)
            prompt = build_messages(messages, format_context(context))

            enter(QueryState.COMPLETING)
            content = await self._completion.complete(prompt)
        except Exception as exc:
            failed_at = states[-1].value
            states.append(QueryState.FAILED)
            logger.error(
                "ChatOrchestrator | user=%s failed_at=%s error=%s: %s",
                user_id or "-", failed_at, type(exc).__name__, exc,
            )
            raise ChatServiceError(exc, failed_at=failed_at) from exc

        enter(QueryState.DONE)
        answer = ChatAnswer(
            content=content or FALLBACK_ANSWER,
            chunks_used=len(context.chunks),
            schemes_used=len(context.scheme_rows),
            states=states,
            latency_ms=(time.perf_counter() - t0) * 1000,
        )
        logger.info(
            "ChatOrchestrator | user=%s docs=%d schemes=%d chars_out=%d latency_ms=%.1f",
            user_id or "-", answer.chunks_used, answer.schemes_used,
            len(answer.content), answer.latency_ms,
        )
        return answer
