"""
siteforge service wiring.

Entry point for a host process (API server, worker). Owns the database
pool lifecycle and hands out a single BuilderOrchestrator.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from backend import db
from backend.config import settings
from backend.services.credits import CreditLedger
from backend.services.orchestrator import BuilderOrchestrator, build_orchestrator

logger = logging.getLogger(__name__)


async def startup(ledger: CreditLedger | None = None) -> BuilderOrchestrator:
    """
    Initialize the pool (when DATABASE_URL is set) and build the orchestrator.

    Without a database everything runs in memory, which only makes sense
    for development.
    """
    if settings.DATABASE_URL:
        await db.init_pool()
        logger.info("Database pool initialized")
        return build_orchestrator(db.get_pool(), ledger)

    logger.warning("DATABASE_URL not set; projects are kept in memory")
    return build_orchestrator(None, ledger)


async def shutdown() -> None:
    await db.close_pool()
    logger.info("Database pool closed")


@asynccontextmanager
async def lifespan(ledger: CreditLedger | None = None) -> AsyncIterator[BuilderOrchestrator]:
    """
    Startup and shutdown around a host's lifetime:

        async with lifespan() as orchestrator:
            ...
    """
    orchestrator = await startup(ledger)
    try:
        yield orchestrator
    finally:
        await shutdown()


def health() -> dict[str, str]:
    """Liveness payload for uptime monitoring."""
    return {"status": "ok", "environment": settings.ENVIRONMENT, "ai_provider": settings.AI_PROVIDER}
