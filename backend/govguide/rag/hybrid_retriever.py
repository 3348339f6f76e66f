"""
Hybrid Retriever — Dense similarity + Scheme keyword match

  ┌─────────────────────────────────────────────────────────────┐
  │  User Query                                                 │
  │       │                                                     │
  │       ▼                                                     │
  │  [1] Embed Query (text-embedding-3-small, query profile:    │
  │      1 s × 2^n backoff, 3 attempts)                         │
  │       │            failure here is FATAL for the query      │
  │       ├──────────────────────┐                              │
  │       ▼                      ▼       (issued concurrently)  │
  │  [2] Dense Retrieval      [3] Scheme Keyword Search         │
  │   match_documents(           ILIKE %query% over             │
  │     threshold 0.5,           Scheme_Name OR                 │
  │     count 5)                 Target_Beneficiaries OR        │
  │                              Category, limit 4              │
  │       │                      │                              │
  │       └──────────┬───────────┘                              │
  │                  ▼                                          │
  │       RetrievalContext {chunks, scheme_rows}                │
  └─────────────────────────────────────────────────────────────┘

The two branches are independent reads. A branch that fails is logged and
contributes an empty list; the query still goes ahead with whatever the
other branch found. No cross-ranking is applied: chunks keep the store's
similarity order, scheme rows keep the table's default order.
"""

from __future__ import annotations

import asyncio
import logging
import time

from govguide.processing.embeddings import EmbeddingClient
from govguide.schemas.retrieval import RetrievalContext, SchemeRecord, ScoredChunk
from govguide.store.base import ChunkStore, SchemeStore

logger = logging.getLogger(__name__)


class HybridRetriever:
    """
    Usage:
        retriever = HybridRetriever(embedder, chunk_store, scheme_store)
        context   = await retriever.retrieve("loan schemes for farmers")

    Parameters
    ----------
    embedder:           EmbeddingClient using the query retry profile.
    chunk_store:        Dense branch backend.
    scheme_store:       Keyword branch backend.
    match_threshold:    Minimum cosine similarity (exclusive) for a chunk.
    match_count:        Maximum chunks returned.
    scheme_match_count: Maximum scheme rows returned.
    """

    def __init__(
        self,
        embedder:           EmbeddingClient,
        chunk_store:        ChunkStore,
        scheme_store:       SchemeStore,
        match_threshold:    float = 0.5,
        match_count:        int   = 5,
        scheme_match_count: int   = 4,
    ) -> None:
        self._embedder      = embedder
        self._chunks        = chunk_store
        self._schemes       = scheme_store
        self._threshold     = match_threshold
        self._match_count   = match_count
        self._scheme_count  = scheme_match_count

    @classmethod
    def from_settings(
        cls,
        settings,
        embedder:     EmbeddingClient,
        chunk_store:  ChunkStore,
        scheme_store: SchemeStore,
    ) -> "HybridRetriever":
        return cls(
            embedder=embedder,
            chunk_store=chunk_store,
            scheme_store=scheme_store,
            match_threshold=settings.match_threshold,
            match_count=settings.match_count,
            scheme_match_count=settings.scheme_match_count,
        )

    # -----------------------------------------------------------------------
    # Public interface
    # -----------------------------------------------------------------------

    async def retrieve(self, query: str) -> RetrievalContext:
        """
        Embed `query`, then run both branches.

        Raises whatever the embedding client raises; branch failures never
        propagate.
        """
        embedding = await self.embed_query(query)
        return await self.search(query, embedding)

    async def embed_query(self, query: str) -> list[float]:
        return await self._embedder.embed(query)

    async def search(self, query: str, embedding: list[float]) -> RetrievalContext:
        """Run the dense and keyword branches concurrently for an embedded query."""
        t0 = time.perf_counter()
        chunks, schemes = await asyncio.gather(
            self._dense_branch(embedding),
            self._keyword_branch(query),
        )
        logger.info(
            "HybridRetriever | chunks=%d schemes=%d latency_ms=%.1f",
            len(chunks), len(schemes), (time.perf_counter() - t0) * 1000,
        )
        return RetrievalContext(query=query, chunks=chunks, scheme_rows=schemes)

    # -----------------------------------------------------------------------
    # Branches
    # -----------------------------------------------------------------------

    async def _dense_branch(self, embedding: list[float]) -> list[ScoredChunk]:
        try:
            return await self._chunks.match(embedding, self._threshold, self._match_count)
        except Exception as exc:
            logger.error("HybridRetriever | vector search failed, using no chunks: %s", exc)
            return []

    async def _keyword_branch(self, query: str) -> list[SchemeRecord]:
        try:
            return await self._schemes.search(query, self._scheme_count)
        except Exception as exc:
            logger.warning("HybridRetriever | scheme search failed, using no schemes: %s", exc)
            return []
