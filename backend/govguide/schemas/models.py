"""
Model Endpoint — Validated Response Schemas

The SDK response objects are dumped to plain dicts and validated here, so a
provider that drifts from the expected shape raises ResponseSchemaError
instead of an AttributeError deep inside the pipeline.

Embedding:   data[0].embedding      → list[float]
Completion:  choices[0].message.content → str | None
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, ValidationError

from govguide.core.errors import ResponseSchemaError


class EmbeddingDatum(BaseModel):
    embedding: list[float] = Field(..., min_length=1)
    index:     int = 0


class EmbeddingResponse(BaseModel):
    data:  list[EmbeddingDatum] = Field(..., min_length=1)
    model: str | None = None

    @property
    def vector(self) -> list[float]:
        return self.data[0].embedding


class CompletionMessage(BaseModel):
    role:    str = "assistant"
    content: str | None = None


class CompletionChoice(BaseModel):
    index:         int = 0
    message:       CompletionMessage
    finish_reason: str | None = None


class CompletionResponse(BaseModel):
    choices: list[CompletionChoice] = Field(..., min_length=1)
    model:   str | None = None

    @property
    def content(self) -> str | None:
        return self.choices[0].message.content


def _as_dict(raw: Any) -> Any:
    if hasattr(raw, "model_dump"):
        return raw.model_dump()
    return raw


def parse_embedding_response(raw: Any) -> EmbeddingResponse:
    try:
        return EmbeddingResponse.model_validate(_as_dict(raw))
    except ValidationError as exc:
        raise ResponseSchemaError(f"Unexpected embedding response shape: {exc}") from exc


def parse_completion_response(raw: Any) -> CompletionResponse:
    try:
        return CompletionResponse.model_validate(_as_dict(raw))
    except ValidationError as exc:
        raise ResponseSchemaError(f"Unexpected completion response shape: {exc}") from exc
