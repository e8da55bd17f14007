"""
Pytest configuration and fixtures for siteforge backend tests.
"""

from __future__ import annotations

import os

# Set test environment variables before importing config
os.environ.setdefault("TESTING", "true")
os.environ.setdefault("AI_PROVIDER", "mock")

import pytest  # noqa: E402

from backend.services.coach import WebsiteCoach  # noqa: E402
from backend.services.credits import MemoryCreditLedger  # noqa: E402
from backend.services.orchestrator import BuilderOrchestrator  # noqa: E402
from engine.builder.assembly import MemoryStorage, SiteAssembly  # noqa: E402
from engine.builder.blocks import create_default  # noqa: E402
from engine.builder.document import new_project  # noqa: E402
from engine.builder.plans import MemoryPlanStore, PlanGate  # noqa: E402

CUSTOMER = "cust_backend"


@pytest.fixture
def project():
    """A home page with header, hero and footer."""
    return new_project(
        CUSTOMER,
        "Acme Plumbing",
        "plumber",
        project_id="site_backend",
        blocks=[
            create_default("header", "blk_header"),
            create_default("hero", "blk_hero"),
            create_default("footer", "blk_footer"),
        ],
    )


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def assembly(storage):
    return SiteAssembly(storage, PlanGate(MemoryPlanStore(storage=storage)))


@pytest.fixture
def ledger():
    """Ledger with a comfortable balance for CUSTOMER."""
    ledger = MemoryCreditLedger()
    ledger.add_credits(CUSTOMER, 1000)
    return ledger


@pytest.fixture
def orchestrator(assembly, ledger):
    return BuilderOrchestrator(assembly, WebsiteCoach(), ledger, timeout=5.0)
