"""
PostgreSQL Store — pgvector similarity + ILIKE keyword search

Tables (see migrations/001_govguide_schema.sql):

  documents  (id, content, metadata JSONB, embedding vector(1536))
  schemes    (id, "Scheme_Name", "Category", "Target_Beneficiaries", …)

Similarity search delegates nearest-neighbour ranking to the database:

    SELECT id, content, metadata, similarity
      FROM match_documents(:query_embedding, :match_threshold, :match_count)

  match_documents computes 1 - (embedding <=> query_embedding), keeps rows
  strictly above the threshold and returns them most-similar first.

Keyword search is a logical OR of three ILIKE '%<query>%' predicates. LIKE
metacharacters in the raw query are escaped so "100%" matches literally.

Every method opens its own session_scope(): one request, one transaction.
SQLAlchemy / driver failures are wrapped in StoreError.
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Sequence

from pgvector.sqlalchemy import Vector
from sqlalchemy import bindparam, delete, func, or_, select, text
from sqlalchemy.exc import SQLAlchemyError

from govguide.core.errors import StoreError
from govguide.db.session import check_db_health, session_scope
from govguide.models.documents import EMBEDDING_DIM, DocumentChunkRow, SchemeRow
from govguide.schemas.retrieval import DocumentChunk, SchemeRecord, ScoredChunk
from govguide.store.base import ChunkStore, SchemeStore

logger = logging.getLogger(__name__)

_MATCH_SQL = text(
    "SELECT id, content, metadata, similarity "
    "FROM match_documents(CAST(:query_embedding AS vector), :match_threshold, :match_count)"
).bindparams(bindparam("query_embedding", type_=Vector(EMBEDDING_DIM)))


@asynccontextmanager
async def _store_call(operation: str) -> AsyncGenerator[None, None]:
    try:
        yield
    except (SQLAlchemyError, OSError) as exc:
        logger.error("PostgresStore | %s failed: %s", operation, exc)
        raise StoreError(f"{operation} failed: {exc}") from exc


def _as_metadata(value) -> dict:
    # asyncpg hands JSONB back as text unless a codec is registered
    if value is None:
        return {}
    if isinstance(value, str):
        return json.loads(value)
    return dict(value)


def escape_like(query: str) -> str:
    """Escape LIKE metacharacters using backslash as the escape character."""
    return query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# ---------------------------------------------------------------------------
# Chunks
# ---------------------------------------------------------------------------

class PostgresChunkStore(ChunkStore):

    backend = "postgres"

    async def insert(self, chunk: DocumentChunk) -> None:
        async with _store_call("insert chunk"):
            async with session_scope() as session:
                session.add(DocumentChunkRow(
                    content=chunk.content,
                    chunk_metadata=chunk.metadata,
                    embedding=chunk.embedding,
                ))

    async def match(
        self,
        embedding: list[float],
        threshold: float,
        count:     int,
    ) -> list[ScoredChunk]:
        async with _store_call("match_documents"):
            async with session_scope() as session:
                result = await session.execute(
                    _MATCH_SQL,
                    {
                        "query_embedding": embedding,
                        "match_threshold": threshold,
                        "match_count":     count,
                    },
                )
                rows = result.mappings().all()

        chunks = []
        for row in rows:
            meta = _as_metadata(row["metadata"])
            chunks.append(ScoredChunk(
                id=row["id"],
                content=row["content"],
                source=meta.get("source", "unknown"),
                chunk_index=meta.get("chunk_index"),
                similarity=float(row["similarity"]),
            ))
        logger.debug(
            "PostgresChunkStore | match threshold=%.2f count=%d results=%d",
            threshold, count, len(chunks),
        )
        return chunks

    async def delete_by_source(self, source: str) -> int:
        async with _store_call("delete by source"):
            async with session_scope() as session:
                result = await session.execute(
                    delete(DocumentChunkRow).where(
                        DocumentChunkRow.chunk_metadata["source"].astext == source
                    )
                )
        logger.info("PostgresChunkStore | deleted source=%s rows=%d", source, result.rowcount)
        return result.rowcount

    async def delete_all(self) -> int:
        async with _store_call("delete all"):
            async with session_scope() as session:
                result = await session.execute(delete(DocumentChunkRow))
        logger.warning("PostgresChunkStore | wiped documents rows=%d", result.rowcount)
        return result.rowcount

    async def count_by_source(self) -> dict[str, int]:
        source = func.coalesce(DocumentChunkRow.chunk_metadata["source"].astext, "unknown")
        async with _store_call("count by source"):
            async with session_scope() as session:
                result = await session.execute(
                    select(source.label("source"), func.count().label("n"))
                    .group_by(source)
                    .order_by(source)
                )
                return {row.source: row.n for row in result}

    async def health(self) -> dict:
        return {"backend": self.backend, **(await check_db_health())}


# ---------------------------------------------------------------------------
# Schemes
# ---------------------------------------------------------------------------

def _to_record(row: SchemeRow) -> SchemeRecord:
    return SchemeRecord.model_validate(
        {name: getattr(row, name) for name in SchemeRecord.model_fields}
    )


class PostgresSchemeStore(SchemeStore):

    backend = "postgres"

    async def search(self, query: str, limit: int) -> list[SchemeRecord]:
        pattern = f"%{escape_like(query)}%"
        stmt = (
            select(SchemeRow)
            .where(or_(
                SchemeRow.scheme_name.ilike(pattern, escape="\\"),
                SchemeRow.target_beneficiaries.ilike(pattern, escape="\\"),
                SchemeRow.category.ilike(pattern, escape="\\"),
            ))
            .order_by(SchemeRow.id)
            .limit(limit)
        )
        async with _store_call("scheme search"):
            async with session_scope() as session:
                rows = (await session.execute(stmt)).scalars().all()

        logger.debug("PostgresSchemeStore | search limit=%d results=%d", limit, len(rows))
        return [_to_record(r) for r in rows]

    async def insert_many(self, records: Sequence[SchemeRecord]) -> int:
        if not records:
            return 0
        async with _store_call("insert schemes"):
            async with session_scope() as session:
                session.add_all([SchemeRow(**r.model_dump()) for r in records])
        return len(records)

    async def count(self) -> int:
        async with _store_call("count schemes"):
            async with session_scope() as session:
                return (await session.execute(select(func.count()).select_from(SchemeRow))).scalar_one()
