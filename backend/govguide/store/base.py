"""
Store — Abstract Base

Every concrete store backend (PostgreSQL + pgvector, in-memory) implements
these interfaces. Ingestion and retrieval only speak this protocol, so
backends are swappable without changing pipeline code.

Contract (enforced by ALL implementations):
  - Every call is one independent request; there are no multi-step
    transactions and no read-modify-write sequences.
  - A failed read or write raises StoreError; callers decide whether the
    failure is unit-local (one chunk, one retrieval branch) or fatal.
  - Chunks are identified by metadata source + chunk_index; deletion is by
    source or wholesale.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from govguide.schemas.retrieval import DocumentChunk, SchemeRecord, ScoredChunk


class ChunkStore(ABC):
    """Embedded document chunks with nearest-neighbour search."""

    backend: str = "abstract"

    @abstractmethod
    async def insert(self, chunk: DocumentChunk) -> None:
        """Append one chunk. Duplicates are allowed (re-ingestion is additive)."""

    @abstractmethod
    async def match(
        self,
        embedding: list[float],
        threshold: float,
        count:     int,
    ) -> list[ScoredChunk]:
        """
        Chunks whose cosine similarity to `embedding` is strictly greater than
        `threshold`, most similar first, at most `count` of them.
        """

    @abstractmethod
    async def delete_by_source(self, source: str) -> int:
        """Delete every chunk whose metadata source equals `source`. Returns rows deleted."""

    @abstractmethod
    async def delete_all(self) -> int:
        """Unconditional wipe. Returns rows deleted."""

    @abstractmethod
    async def count_by_source(self) -> dict[str, int]:
        """Chunk counts keyed by metadata source."""

    async def health(self) -> dict:
        return {"status": "ok", "backend": self.backend}


class SchemeStore(ABC):
    """Structured scheme table with keyword search."""

    backend: str = "abstract"

    @abstractmethod
    async def search(self, query: str, limit: int) -> list[SchemeRecord]:
        """
        Case-insensitive substring match of the raw `query` against
        Scheme_Name OR Target_Beneficiaries OR Category, capped at `limit`,
        in the store's default order.
        """

    @abstractmethod
    async def insert_many(self, records: Sequence[SchemeRecord]) -> int:
        """Insert a batch of rows as one request. Returns rows inserted."""

    @abstractmethod
    async def count(self) -> int:
        """Total scheme rows."""
