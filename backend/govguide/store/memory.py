"""
In-memory Store — process-local, same semantics as the PostgreSQL backend

Used for local development (STORE_BACKEND=memory) and tests. Similarity is
cosine similarity computed in Python; keyword search is a case-insensitive
substring test over the same three scheme columns the SQL backend uses.
Contents vanish with the process.
"""

from __future__ import annotations

import itertools
import logging
import math
from typing import Sequence

from govguide.schemas.retrieval import DocumentChunk, SchemeRecord, ScoredChunk
from govguide.store.base import ChunkStore, SchemeStore

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b):
        raise ValueError(f"Vector length mismatch: {len(a)} != {len(b)}")
    dot    = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class InMemoryChunkStore(ChunkStore):

    backend = "memory"

    def __init__(self) -> None:
        self._rows: list[tuple[int, DocumentChunk]] = []
        self._ids = itertools.count(1)

    async def insert(self, chunk: DocumentChunk) -> None:
        self._rows.append((next(self._ids), chunk))

    async def match(
        self,
        embedding: list[float],
        threshold: float,
        count:     int,
    ) -> list[ScoredChunk]:
        scored = []
        for row_id, chunk in self._rows:
            similarity = cosine_similarity(embedding, chunk.embedding)
            if similarity > threshold:
                scored.append(ScoredChunk(
                    id=row_id,
                    content=chunk.content,
                    source=chunk.source,
                    chunk_index=chunk.chunk_index,
                    similarity=similarity,
                ))
        # stable sort keeps insertion order among equal scores
        scored.sort(key=lambda c: c.similarity, reverse=True)
        return scored[:count]

    async def delete_by_source(self, source: str) -> int:
        before = len(self._rows)
        self._rows = [(i, c) for i, c in self._rows if c.source != source]
        deleted = before - len(self._rows)
        logger.info("InMemoryChunkStore | deleted source=%s rows=%d", source, deleted)
        return deleted

    async def delete_all(self) -> int:
        deleted = len(self._rows)
        self._rows = []
        return deleted

    async def count_by_source(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for _, chunk in self._rows:
            counts[chunk.source] = counts.get(chunk.source, 0) + 1
        return dict(sorted(counts.items()))

    def chunks(self, source: str | None = None) -> list[DocumentChunk]:
        """Stored chunks in insertion order, optionally for one source."""
        return [c for _, c in self._rows if source is None or c.source == source]


class InMemorySchemeStore(SchemeStore):

    backend = "memory"

    def __init__(self, records: Sequence[SchemeRecord] = ()) -> None:
        self._records: list[SchemeRecord] = list(records)

    async def search(self, query: str, limit: int) -> list[SchemeRecord]:
        needle = query.lower()
        hits = [
            r for r in self._records
            if needle in r.scheme_name.lower()
            or needle in r.target_beneficiaries.lower()
            or needle in r.category.lower()
        ]
        return hits[:limit]

    async def insert_many(self, records: Sequence[SchemeRecord]) -> int:
        self._records.extend(records)
        return len(records)

    async def count(self) -> int:
        return len(self._records)
