"""asyncpg connection pool for the PostgreSQL backend.

Every connection handed out runs inside a transaction with
``app.current_user_id`` set through ``set_config(..., true)``, so row-level
security policies keyed on that setting see the right user.  The setting is
transaction-local and disappears when the connection returns to the pool.

``bind_connection`` lets a caller pin one connection for a unit of work:
nested ``get_connection`` calls inside it reuse the pinned connection (and
its transaction) instead of acquiring a new one.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any, AsyncGenerator

import asyncpg

from misocycle.config import Settings, get_settings

logger = logging.getLogger("misocycle.db")

# Module-level connection pool, initialized once at app startup
_pool: asyncpg.Pool | None = None

_bound: ContextVar[asyncpg.Connection | None] = ContextVar("misocycle_db_conn", default=None)


async def init_pool(settings: Settings | None = None) -> asyncpg.Pool:
    """Create the asyncpg connection pool. Call once at app startup."""
    global _pool
    s = settings or get_settings()
    if not s.database_url:
        raise RuntimeError("DATABASE_URL is required for the postgres storage backend")
    _pool = await asyncpg.create_pool(
        s.database_url,
        min_size=s.db_pool_min_size,
        max_size=s.db_pool_max_size,
        command_timeout=30,
    )
    logger.info(
        "Database pool initialized (min=%d, max=%d)", s.db_pool_min_size, s.db_pool_max_size
    )
    return _pool


async def close_pool() -> None:
    """Drain the pool. Call at app shutdown."""
    global _pool
    if _pool:
        await _pool.close()
        _pool = None
        logger.info("Database pool closed")


def get_pool() -> asyncpg.Pool:
    if _pool is None:
        raise RuntimeError("Database pool not initialized; call init_pool() first")
    return _pool


@asynccontextmanager
async def get_connection(user_id: str | None = None) -> AsyncGenerator[asyncpg.Connection, None]:
    """Acquire a connection in a transaction with the user context set.

    Usage::

        async with get_connection(user_id=user_id) as conn:
            rows = await conn.fetch("SELECT * FROM cycles WHERE user_id = $1", user_id)

    Inside ``bind_connection`` the bound connection is reused as-is.
    """
    bound = _bound.get()
    if bound is not None:
        yield bound
        return

    pool = get_pool()
    async with pool.acquire() as conn:
        async with conn.transaction():
            if user_id:
                await conn.execute(
                    "SELECT set_config('app.current_user_id', $1, true)", str(user_id)
                )
            yield conn


@asynccontextmanager
async def bind_connection(user_id: str) -> AsyncGenerator[asyncpg.Connection, None]:
    """Run a block of statements on one connection and one transaction."""
    if _bound.get() is not None:
        yield _bound.get()
        return

    async with get_connection(user_id=user_id) as conn:
        token = _bound.set(conn)
        try:
            yield conn
        finally:
            _bound.reset(token)


async def execute(query: str, *args: Any, user_id: str | None = None) -> str:
    """Execute a single statement with user context and return status."""
    async with get_connection(user_id=user_id) as conn:
        return await conn.execute(query, *args)


async def fetch(query: str, *args: Any, user_id: str | None = None) -> list[asyncpg.Record]:
    """Fetch rows with user context."""
    async with get_connection(user_id=user_id) as conn:
        return await conn.fetch(query, *args)


async def fetchrow(query: str, *args: Any, user_id: str | None = None) -> asyncpg.Record | None:
    """Fetch a single row with user context."""
    async with get_connection(user_id=user_id) as conn:
        return await conn.fetchrow(query, *args)
