"""
Chat API — Pydantic Schemas

Covers the request/response contracts for:
  - POST /api/v1/chat
  - Error responses (uniform envelope for all 4xx/5xx)
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from govguide.schemas.retrieval import ChatMessage


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

class ChatRequest(BaseModel):
    """Conversation so far, oldest first; the last user turn is the question."""
    messages: list[ChatMessage] = Field(
        ...,
        min_length=1,
        description="Ordered {role, content} history ending with the new user message.",
        examples=[[{"role": "user", "content": "Which loan schemes exist for farmers?"}]],
    )


class ChatResponse(BaseModel):
    answer:       str
    chunks_used:  int   = Field(..., ge=0, description="Document chunks placed in the context")
    schemes_used: int   = Field(..., ge=0, description="Scheme rows placed in the context")
    latency_ms:   float
    request_id:   str


# ---------------------------------------------------------------------------
# Error responses
# ---------------------------------------------------------------------------

class ErrorDetail(BaseModel):
    """Single structured error — may appear in a list."""
    field:   str | None = Field(None, description="Request field that caused the error, if applicable")
    message: str
    code:    str         = Field(..., description="Machine-readable error code for client handling")


class ErrorResponse(BaseModel):
    """
    Uniform error envelope for all 4xx/5xx responses.
    Clients should check `error_code` for programmatic handling;
    `message` is safe to show to citizens as-is.
    """
    error_code: str               = Field(..., description="Stable machine-readable code")
    message:    str               = Field(..., description="Human-readable summary")
    details:    list[ErrorDetail] = Field(default_factory=list)
    request_id: str | None        = Field(None, description="Trace ID for log correlation")
