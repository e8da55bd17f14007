"""
Site Builder -- Plan Enforcement Gate Tests

The gate is a read-only predicate. Denials always carry an upgrade prompt.
"""

import pytest

from engine.builder.document import add_page, new_project, tombstone
from engine.builder.plans import BUILDER_PLANS, MemoryPlanStore, PlanGate, get_plan_limits
from engine.builder.types import ProjectSettings

CUSTOMER = "cust_plan"


@pytest.fixture
def gate(plan_store):
    return PlanGate(plan_store)


async def seed_sites(storage, n, customer_id=CUSTOMER):
    for i in range(n):
        await storage.save_project(new_project(customer_id, f"Site {i}", project_id=f"site_{i}"))


class TestPlanLimits:
    def test_unknown_plan_is_starter(self):
        assert get_plan_limits("platinum") == BUILDER_PLANS["starter"]
        assert get_plan_limits(None) == BUILDER_PLANS["starter"]

    def test_tiers_grow(self):
        starter, pro, agency = (BUILDER_PLANS[p] for p in ("starter", "pro", "agency"))
        assert starter.max_sites < pro.max_sites < agency.max_sites
        assert starter.features < pro.features < agency.features


class TestSiteLimit:
    @pytest.mark.asyncio
    async def test_starter_with_one_site_denied(self, gate, storage):
        await seed_sites(storage, 1)
        decision = await gate.check_site_limit(CUSTOMER)
        assert not decision.allowed
        assert "limit of 1 site(s)" in decision.reason
        assert "upgrade" in decision.reason

    @pytest.mark.asyncio
    async def test_starter_with_no_sites_allowed(self, gate):
        decision = await gate.check_site_limit(CUSTOMER)
        assert decision.allowed
        assert decision.reason is None

    @pytest.mark.asyncio
    async def test_pro_allows_more(self, gate, storage, plan_store):
        plan_store.set_plan(CUSTOMER, "pro")
        await seed_sites(storage, 4)
        assert (await gate.check_site_limit(CUSTOMER)).allowed
        await seed_sites(storage, 5)
        assert not (await gate.check_site_limit(CUSTOMER)).allowed

    @pytest.mark.asyncio
    async def test_deleted_sites_do_not_count(self, gate, storage):
        project = new_project(CUSTOMER, "Old", project_id="site_old")
        await storage.save_project(tombstone(project, "2026-01-01T00:00:00Z"))
        assert (await gate.check_site_limit(CUSTOMER)).allowed

    @pytest.mark.asyncio
    async def test_other_customers_do_not_count(self, gate, storage):
        await seed_sites(storage, 1, customer_id="cust_other")
        assert (await gate.check_site_limit(CUSTOMER)).allowed

    @pytest.mark.asyncio
    async def test_gate_never_mutates(self, gate, storage):
        await seed_sites(storage, 1)
        before = dict(storage.projects)
        await gate.check_site_limit(CUSTOMER)
        await gate.check_page_limit(CUSTOMER, "site_0")
        await gate.check_feature_gate(CUSTOMER, "white-label")
        assert storage.projects == before


class TestPageLimit:
    @pytest.mark.asyncio
    async def test_page_limit(self, gate, storage):
        project = new_project(CUSTOMER, "Site", project_id="site_pages")
        for slug in ("a", "b", "c", "d"):
            project = add_page(project, slug, slug.upper())
        await storage.save_project(project)

        decision = await gate.check_page_limit(CUSTOMER, "site_pages")
        assert not decision.allowed
        assert "limit of 5 page(s) per site" in decision.reason

    @pytest.mark.asyncio
    async def test_room_for_one_more(self, gate, storage):
        await storage.save_project(new_project(CUSTOMER, "Site", project_id="site_pages"))
        assert (await gate.check_page_limit(CUSTOMER, "site_pages")).allowed

    @pytest.mark.asyncio
    async def test_page_count(self, gate):
        assert (await gate.check_page_count(CUSTOMER, 5)).allowed
        assert not (await gate.check_page_count(CUSTOMER, 6)).allowed


class TestFeatureGate:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "plan, feature, allowed",
        [
            ("starter", "seo", True),
            ("starter", "custom-code", False),
            ("starter", "ecommerce", False),
            ("pro", "custom-code", True),
            ("pro", "white-label", False),
            ("agency", "white-label", True),
        ],
    )
    async def test_features(self, gate, plan_store, plan, feature, allowed):
        plan_store.set_plan(CUSTOMER, plan)
        decision = await gate.check_feature_gate(CUSTOMER, feature)
        assert decision.allowed is allowed
        if not allowed:
            assert f'"{feature}"' in decision.reason
            assert "upgrade" in decision.reason


class TestResolveSettings:
    @pytest.mark.asyncio
    async def test_white_label_stripped_without_feature(self, gate):
        settings = ProjectSettings(white_label=True, custom_footer_text="Hi")
        resolved = await gate.resolve_settings(CUSTOMER, settings)
        assert resolved.white_label is False
        assert resolved.custom_footer_text == "Hi"

    @pytest.mark.asyncio
    async def test_white_label_kept_on_agency(self, gate, plan_store):
        plan_store.set_plan(CUSTOMER, "agency")
        settings = ProjectSettings(white_label=True)
        assert await gate.resolve_settings(CUSTOMER, settings) is settings


class TestStoreWithoutStorage:
    @pytest.mark.asyncio
    async def test_counts_are_zero(self):
        store = MemoryPlanStore({"c": "pro"})
        assert await store.get_plan("c") == "pro"
        assert await store.count_sites("c") == 0
        assert await store.count_pages("site_x") == 0
