"""
Process-wide asyncpg pool for the builder tables.

`backend.main.startup` opens it when DATABASE_URL is set and hands it to
build_orchestrator; PostgresStorage and PostgresPlanStore share it.
"""

from __future__ import annotations

import logging

import asyncpg

from backend.config import settings
from engine.builder.postgres_storage import create_pool

logger = logging.getLogger(__name__)

pool: asyncpg.Pool | None = None


async def init_pool(dsn: str | None = None) -> asyncpg.Pool:
    """Open the pool (once). A second call returns the existing pool."""
    global pool
    if pool is None:
        pool = await create_pool(dsn or settings.DATABASE_URL)
        logger.info("opened database pool (max %s connections)", pool.get_max_size())
    return pool


async def close_pool() -> None:
    global pool
    if pool is not None:
        await pool.close()
        pool = None


def get_pool() -> asyncpg.Pool:
    if pool is None:
        raise RuntimeError("Database pool is not open; call init_pool() during startup")
    return pool
