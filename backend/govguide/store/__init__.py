from govguide.store.base import ChunkStore, SchemeStore
from govguide.store.factory import get_chunk_store, get_scheme_store

__all__ = ["ChunkStore", "SchemeStore", "get_chunk_store", "get_scheme_store"]
