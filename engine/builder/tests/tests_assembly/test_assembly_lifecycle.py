"""
Site Builder -- Project Lifecycle Tests

Create (site limit), pages (page limit), settings (white-label gate) and
soft delete.
"""

import pytest

from engine.builder.errors import InvariantViolation, PlanDenied, ProjectNotFound
from engine.builder.types import Page

CUSTOMER = "cust_test"


class TestCreateProject:
    @pytest.mark.asyncio
    async def test_create_persists(self, assembly, storage):
        project = await assembly.create_project(CUSTOMER, "Acme", "bakery")
        assert project.id in storage.projects
        assert (await assembly.load(project.id)).business_type == "bakery"

    @pytest.mark.asyncio
    async def test_starter_second_site_denied(self, assembly, storage):
        await assembly.create_project(CUSTOMER, "First")
        with pytest.raises(PlanDenied) as exc:
            await assembly.create_project(CUSTOMER, "Second")
        assert "limit of 1 site(s)" in exc.value.reason
        assert await storage.count_projects(CUSTOMER) == 1

    @pytest.mark.asyncio
    async def test_can_create_project_is_advisory(self, assembly):
        assert (await assembly.can_create_project(CUSTOMER)).allowed
        await assembly.create_project(CUSTOMER, "First")
        assert not (await assembly.can_create_project(CUSTOMER)).allowed

    @pytest.mark.asyncio
    async def test_deleting_frees_the_slot(self, assembly):
        first = await assembly.create_project(CUSTOMER, "First")
        await assembly.delete_project(first.id)
        second = await assembly.create_project(CUSTOMER, "Second")
        assert second.id != first.id

    @pytest.mark.asyncio
    async def test_generated_pages_over_limit(self, assembly):
        pages = [Page(id="page_home", slug="home", title="Home", is_home_page=True)] + [
            Page(id=f"page_{i}", slug=f"p{i}", title=f"P{i}") for i in range(5)
        ]
        with pytest.raises(PlanDenied) as exc:
            await assembly.create_project(CUSTOMER, "Big", pages=pages)
        assert "page(s) per site" in exc.value.reason


class TestSoftDelete:
    @pytest.mark.asyncio
    async def test_tombstoned_not_removed(self, assembly, storage):
        project = await assembly.create_project(CUSTOMER, "Acme")
        deleted = await assembly.delete_project(project.id)

        assert deleted.deleted_at is not None
        assert storage.projects[project.id]["deleted_at"] == deleted.deleted_at
        with pytest.raises(ProjectNotFound):
            await assembly.load(project.id)

    @pytest.mark.asyncio
    async def test_missing_project(self, assembly):
        with pytest.raises(ProjectNotFound):
            await assembly.load("site_nope")


class TestPages:
    @pytest.mark.asyncio
    async def test_add_page_with_blocks(self, assembly):
        project = await assembly.create_project(CUSTOMER, "Acme")
        updated = await assembly.add_page(project.id, "contact", "Contact", block_types=["contact"])
        assert [p.slug for p in updated.pages] == ["home", "contact"]
        assert updated.pages[1].blocks[0].type == "contact"

    @pytest.mark.asyncio
    async def test_page_limit(self, assembly):
        project = await assembly.create_project(CUSTOMER, "Acme")
        for slug in ("a", "b", "c", "d"):
            await assembly.add_page(project.id, slug, slug)
        with pytest.raises(PlanDenied):
            await assembly.add_page(project.id, "e", "E")
        assert len((await assembly.load(project.id)).pages) == 5

    @pytest.mark.asyncio
    async def test_remove_home_refused(self, assembly):
        project = await assembly.create_project(CUSTOMER, "Acme")
        await assembly.add_page(project.id, "about", "About")
        with pytest.raises(InvariantViolation):
            await assembly.remove_page(project.id, "home")
        updated = await assembly.remove_page(project.id, "about")
        assert [p.slug for p in updated.pages] == ["home"]

    @pytest.mark.asyncio
    async def test_storage_page_access(self, assembly, storage):
        project = await assembly.create_project(CUSTOMER, "Acme")
        page = await storage.load_page(project.id, "home")
        assert page.is_home_page
        assert await storage.load_page(project.id, "nowhere") is None


class TestSettings:
    @pytest.mark.asyncio
    async def test_white_label_needs_agency(self, assembly, plan_store):
        project = await assembly.create_project(CUSTOMER, "Acme")
        with pytest.raises(PlanDenied):
            await assembly.update_settings(project.id, white_label=True)

        plan_store.set_plan(CUSTOMER, "agency")
        updated = await assembly.update_settings(project.id, white_label=True)
        assert updated.settings.white_label

    @pytest.mark.asyncio
    async def test_footer_text_always_allowed(self, assembly):
        project = await assembly.create_project(CUSTOMER, "Acme")
        updated = await assembly.update_settings(project.id, custom_footer_text="Since 1982")
        assert updated.settings.custom_footer_text == "Since 1982"
