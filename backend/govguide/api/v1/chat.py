"""
Chat API — GovGuide Q&A endpoint

POST /api/v1/chat   → JSON response (non-streaming)

  - The caller's conversation history is passed through unchanged; the last
    user message drives retrieval.
  - X-User-ID is an opaque identity from the surrounding chat application,
    used for log correlation only.
  - Failures surface as ChatServiceError and are mapped by the app's
    exception handler: 503 when the provider stayed rate limited,
    502 for everything else.
"""

from __future__ import annotations

import logging
import uuid
from functools import lru_cache
from typing import Annotated

from fastapi import APIRouter, Depends, Header

from govguide.core.config import get_settings
from govguide.rag.pipeline import ChatOrchestrator
from govguide.schemas.chat import ChatRequest, ChatResponse
from govguide.store.factory import get_chunk_store, get_scheme_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["Chat"])


# ---------------------------------------------------------------------------
# Shared singleton (one credential state per process)
# ---------------------------------------------------------------------------

@lru_cache(maxsize=1)
def get_orchestrator() -> ChatOrchestrator:
    return ChatOrchestrator.from_settings(
        get_settings(),
        chunk_store=get_chunk_store(),
        scheme_store=get_scheme_store(),
    )


# ---------------------------------------------------------------------------
# POST /api/v1/chat
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=ChatResponse,
    summary="Ask GovGuide a question",
    description="Hybrid retrieval (documents + scheme table) → completion. Returns JSON.",
)
async def chat(
    body:         ChatRequest,
    orchestrator: Annotated[ChatOrchestrator, Depends(get_orchestrator)],
    x_user_id:    Annotated[str | None, Header()] = None,
    x_request_id: Annotated[str | None, Header()] = None,
) -> ChatResponse:
    request_id = x_request_id or str(uuid.uuid4())

    answer = await orchestrator.answer(body.messages, user_id=x_user_id)

    return ChatResponse(
        answer=answer.content,
        chunks_used=answer.chunks_used,
        schemes_used=answer.schemes_used,
        latency_ms=round(answer.latency_ms, 1),
        request_id=request_id,
    )
