"""
Tests for PostgresStorage and PostgresPlanStore.

Requires a running Postgres instance migrated with alembic (site_projects,
published_pages, builder_subscriptions).
"""

import os
import uuid

import pytest

from engine.builder.assembly import SiteAssembly
from engine.builder.blocks import create_default
from engine.builder.document import new_project, tombstone
from engine.builder.plans import PlanGate
from engine.builder.postgres_storage import PostgresPlanStore, PostgresStorage, create_pool


@pytest.fixture
async def db_pool():
    """Create a connection pool for tests."""
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set")

    pool = await create_pool(database_url, min_size=1, max_size=4)
    yield pool
    await pool.close()


@pytest.fixture
async def storage(db_pool):
    return PostgresStorage(db_pool)


@pytest.fixture
async def plan_store(db_pool):
    return PostgresPlanStore(db_pool)


@pytest.fixture
def customer_id():
    return f"cust_{uuid.uuid4().hex[:12]}"


class TestPostgresStorage:
    @pytest.mark.asyncio
    async def test_save_and_load(self, storage, customer_id):
        project = new_project(customer_id, "Acme", blocks=[create_default("hero", "blk_hero")])
        await storage.save_project(project)
        assert await storage.load_project(project.id) == project

    @pytest.mark.asyncio
    async def test_load_missing(self, storage):
        assert await storage.load_project(f"site_{uuid.uuid4().hex[:12]}") is None

    @pytest.mark.asyncio
    async def test_upsert_replaces_document(self, storage, customer_id):
        project = new_project(customer_id, "Acme")
        await storage.save_project(project)
        deleted = tombstone(project, "2026-01-01T00:00:00Z")
        await storage.save_project(deleted)

        loaded = await storage.load_project(project.id)
        assert loaded.deleted_at == "2026-01-01T00:00:00Z"
        assert loaded.version == project.version + 1
        assert await storage.count_projects(customer_id) == 0

    @pytest.mark.asyncio
    async def test_publish_replaces_page_set(self, storage, customer_id):
        project = new_project(customer_id, "Acme")
        await storage.save_project(project)

        await storage.put_published(project.id, {"home": "<p>v1</p>", "about": "<p>about</p>"})
        await storage.put_published(project.id, {"home": "<p>v2</p>"})

        assert await storage.load_published(project.id, "home") == "<p>v2</p>"
        assert await storage.load_published(project.id, "about") is None


class TestPostgresPlanStore:
    @pytest.mark.asyncio
    async def test_plan_round_trip(self, plan_store, customer_id):
        assert await plan_store.get_plan(customer_id) is None
        await plan_store.set_plan(customer_id, "pro")
        await plan_store.set_plan(customer_id, "agency")
        assert await plan_store.get_plan(customer_id) == "agency"

    @pytest.mark.asyncio
    async def test_counts(self, storage, plan_store, customer_id):
        project = new_project(customer_id, "Acme")
        await storage.save_project(project)
        assert await plan_store.count_sites(customer_id) == 1
        assert await plan_store.count_pages(project.id) == 1

    @pytest.mark.asyncio
    async def test_site_limit_through_assembly(self, storage, plan_store, customer_id):
        assembly = SiteAssembly(storage, PlanGate(plan_store))
        await assembly.create_project(customer_id, "First")
        decision = await assembly.can_create_project(customer_id)
        assert not decision.allowed
