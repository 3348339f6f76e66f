"""
Database session management.

Flow:
  1. The first caller of get_engine() builds the async engine from settings
     (asyncpg driver, pooled). Nothing connects at import time, so the
     in-memory store backend never needs DATABASE_URL.
  2. session_scope() opens a session and a transaction, yields it, commits
     on clean exit and rolls back on error.
  3. dispose_engine() returns pooled connections at shutdown.

Each store call uses its own session_scope(): one request, one transaction.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from govguide.core.config import get_settings
from govguide.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        settings = get_settings()
        if not settings.database_url:
            raise ConfigurationError("DATABASE_URL is not set")
        _engine = create_async_engine(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
            pool_recycle=settings.db_pool_recycle_seconds,
            echo=settings.db_echo_sql,
        )
        logger.info("Database | engine ready pool_size=%d overflow=%d", settings.db_pool_size, settings.db_max_overflow)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    # rows stay readable after the scope commits
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_factory


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("Database | engine disposed")
    _engine = None
    _session_factory = None


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

@asynccontextmanager
async def session_scope() -> AsyncGenerator[AsyncSession, None]:
    """
    One session, one transaction.

    Usage:
        async with session_scope() as session:
            session.add(row)
    """
    async with get_session_factory()() as session:
        async with session.begin():
            yield session


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

async def check_db_health() -> dict:
    """SELECT 1 round trip; reported by PostgresChunkStore.health()."""
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as exc:
        logger.error("Database | ping failed: %s", exc)
        return {"status": "error", "error": str(exc)}
