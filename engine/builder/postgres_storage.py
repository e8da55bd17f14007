"""
PostgresStorage adapter for the site builder assembly layer.

Implements the ProjectStorage and PlanStore protocols using Postgres.
Projects are stored as whole JSONB documents in site_projects; rendered
pages land in published_pages; plans come from builder_subscriptions.

Pools must be created with the JSONB codec (see create_pool) so documents
round-trip as Python dicts.
"""

from __future__ import annotations

import json

import asyncpg

from engine.builder.assembly import ProjectStorage
from engine.builder.document import project_from_dict
from engine.builder.plans import PlanStore
from engine.builder.renderer import content_hash
from engine.builder.types import Project


async def init_connection(conn: asyncpg.Connection) -> None:
    """Per-connection setup: decode json/jsonb to Python objects."""
    for type_name in ("jsonb", "json"):
        await conn.set_type_codec(
            type_name,
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog",
        )


async def create_pool(dsn: str, min_size: int = 2, max_size: int = 20) -> asyncpg.Pool:
    return await asyncpg.create_pool(
        dsn=dsn,
        min_size=min_size,
        max_size=max_size,
        command_timeout=60,
        init=init_connection,
    )


class PostgresStorage(ProjectStorage):
    """
    Postgres-based storage for project documents.

    Tables:
    - site_projects: one row per project (document jsonb, soft-delete column)
    - published_pages: rendered HTML per (project, slug)
    """

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def load_project(self, project_id: str) -> Project | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT document FROM site_projects WHERE id = $1",
                project_id,
            )
            return project_from_dict(row["document"]) if row else None

    async def save_project(self, project: Project) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO site_projects (id, customer_id, document, version, deleted_at, updated_at)
                VALUES ($1, $2, $3, $4, $5::text::timestamptz, now())
                ON CONFLICT (id)
                DO UPDATE SET document = EXCLUDED.document,
                              version = EXCLUDED.version,
                              deleted_at = EXCLUDED.deleted_at,
                              updated_at = now()
                """,
                project.id,
                project.customer_id,
                project.to_dict(),
                project.version,
                project.deleted_at,
            )

    async def put_published(self, project_id: str, pages: dict[str, str]) -> None:
        """Replace the published page set for a project in one transaction."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute("DELETE FROM published_pages WHERE project_id = $1", project_id)
                await conn.executemany(
                    """
                    INSERT INTO published_pages (project_id, slug, html, content_hash, published_at)
                    VALUES ($1, $2, $3, $4, now())
                    """,
                    [(project_id, slug, html, content_hash(html)) for slug, html in pages.items()],
                )

    async def load_published(self, project_id: str, slug: str) -> str | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT html FROM published_pages WHERE project_id = $1 AND slug = $2",
                project_id,
                slug,
            )
            return row["html"] if row else None

    async def count_projects(self, customer_id: str) -> int:
        async with self.pool.acquire() as conn:
            return await conn.fetchval(
                "SELECT count(*) FROM site_projects WHERE customer_id = $1 AND deleted_at IS NULL",
                customer_id,
            )

    async def close(self) -> None:
        """Close the connection pool."""
        await self.pool.close()


class PostgresPlanStore(PlanStore):
    """Plans from builder_subscriptions; usage counted from site_projects."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def get_plan(self, customer_id: str) -> str | None:
        async with self.pool.acquire() as conn:
            return await conn.fetchval(
                "SELECT plan FROM builder_subscriptions WHERE customer_id = $1",
                customer_id,
            )

    async def set_plan(self, customer_id: str, plan: str) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO builder_subscriptions (customer_id, plan, updated_at)
                VALUES ($1, $2, now())
                ON CONFLICT (customer_id)
                DO UPDATE SET plan = EXCLUDED.plan, updated_at = now()
                """,
                customer_id,
                plan,
            )

    async def count_sites(self, customer_id: str) -> int:
        async with self.pool.acquire() as conn:
            return await conn.fetchval(
                "SELECT count(*) FROM site_projects WHERE customer_id = $1 AND deleted_at IS NULL",
                customer_id,
            )

    async def count_pages(self, project_id: str) -> int:
        async with self.pool.acquire() as conn:
            count = await conn.fetchval(
                "SELECT jsonb_array_length(document->'pages') FROM site_projects WHERE id = $1",
                project_id,
            )
            return count or 0
