"""
Store Factory

Selects the backend (postgres | memory) from STORE_BACKEND. The rest of the
app only calls get_chunk_store() / get_scheme_store() and never touches the
concrete classes directly.

The in-memory backend is a process-wide singleton so that ingestion and
retrieval inside one process see the same data.
"""

from __future__ import annotations

from functools import lru_cache

from govguide.core.config import get_settings
from govguide.store.base import ChunkStore, SchemeStore


@lru_cache(maxsize=1)
def get_chunk_store() -> ChunkStore:
    backend = get_settings().store_backend.lower()

    if backend == "postgres":
        from govguide.store.postgres import PostgresChunkStore
        return PostgresChunkStore()

    if backend == "memory":
        from govguide.store.memory import InMemoryChunkStore
        return InMemoryChunkStore()

    raise ValueError(
        f"Unknown store backend: '{backend}'. "
        f"Valid options: 'postgres', 'memory'"
    )


@lru_cache(maxsize=1)
def get_scheme_store() -> SchemeStore:
    backend = get_settings().store_backend.lower()

    if backend == "postgres":
        from govguide.store.postgres import PostgresSchemeStore
        return PostgresSchemeStore()

    if backend == "memory":
        from govguide.store.memory import InMemorySchemeStore
        return InMemorySchemeStore()

    raise ValueError(
        f"Unknown store backend: '{backend}'. "
        f"Valid options: 'postgres', 'memory'"
    )
