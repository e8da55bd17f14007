"""
Site builder test configuration.

Builder tests run against MemoryStorage and MemoryPlanStore. PostgresStorage
tests that need DATABASE_URL are skipped automatically when it is not set.
"""

import pytest

from engine.builder.assembly import MemoryStorage, SiteAssembly
from engine.builder.blocks import create_default
from engine.builder.document import new_project
from engine.builder.plans import MemoryPlanStore, PlanGate

CUSTOMER = "cust_test"


@pytest.fixture
def project():
    """One home page holding [hero, text]."""
    return new_project(
        CUSTOMER,
        "Acme Plumbing",
        "plumber",
        project_id="site_test",
        blocks=[create_default("hero", "blk_hero"), create_default("text", "blk_text")],
    )


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def plan_store(storage):
    return MemoryPlanStore(storage=storage)


@pytest.fixture
def assembly(storage, plan_store):
    return SiteAssembly(storage, PlanGate(plan_store))
