"""
Site Builder -- Assembly Accept / Dismiss / Apply-All Tests

apply_all is atomic per operation, not per batch: a rejected operation
leaves the ones before it applied, and later operations still run.
"""

import pytest

from engine.builder.blocks import create_default
from engine.builder.changeset import Changeset
from engine.builder.errors import InvalidTransition
from engine.builder.operations import make_operation
from engine.builder.types import APPLIED, DISMISSED, REJECTED

CUSTOMER = "cust_test"


async def make_site(assembly):
    return await assembly.create_project(
        CUSTOMER,
        "Acme Plumbing",
        blocks=[create_default("hero", "blk_hero"), create_default("text", "blk_text")],
    )


def op(project, type, payload, op_id=None):
    return make_operation(type, payload, project_id=project.id, operation_id=op_id)


def block_ids(project):
    return [b.id for b in project.home_page.blocks]


class TestAccept:
    @pytest.mark.asyncio
    async def test_accept_applies_and_persists(self, assembly):
        project = await make_site(assembly)
        update = op(project, "update_block", {"page": "home", "block_id": "blk_text", "data": {"content": "v2"}})
        cs = Changeset.from_operations(project.id, [update])

        result = await assembly.accept(cs, update.id)

        assert result.status == APPLIED
        assert result.project.home_page.blocks[1].data["content"] == "v2"
        stored = await assembly.load(project.id)
        assert stored.home_page.blocks[1].data["content"] == "v2"
        assert cs.status(update.id) == APPLIED

    @pytest.mark.asyncio
    async def test_reaccept_returns_same_snapshot(self, assembly):
        project = await make_site(assembly)
        add = op(project, "add_block", {"page": "home", "block": {"type": "cta"}})
        cs = Changeset.from_operations(project.id, [add])

        first = await assembly.accept(cs, add.id)
        second = await assembly.accept(cs, add.id)

        assert second.status == APPLIED
        assert second.project == first.project
        stored = await assembly.load(project.id)
        assert len(stored.home_page.blocks) == 3

    @pytest.mark.asyncio
    async def test_same_operation_in_new_changeset_not_reapplied(self, assembly):
        project = await make_site(assembly)
        add = op(project, "add_block", {"page": "home", "block": {"type": "cta"}})
        await assembly.accept(Changeset.from_operations(project.id, [add]), add.id)

        retry = await assembly.accept(Changeset.from_operations(project.id, [add]), add.id)
        assert retry.status == APPLIED
        assert len(retry.project.home_page.blocks) == 3

    @pytest.mark.asyncio
    async def test_unknown_type_rejected_document_unchanged(self, assembly):
        project = await make_site(assembly)
        bad = op(project, "add_block", {"page": "home", "block": {"type": "carousel"}})
        cs = Changeset.from_operations(project.id, [bad])

        result = await assembly.accept(cs, bad.id)

        assert result.status == REJECTED
        assert result.reason.startswith("UNKNOWN_TYPE")
        assert (await assembly.load(project.id)) == project

    @pytest.mark.asyncio
    async def test_rejected_cannot_be_reaccepted(self, assembly):
        project = await make_site(assembly)
        bad = op(project, "remove_block", {"page": "home", "block_id": "blk_ghost"})
        cs = Changeset.from_operations(project.id, [bad])
        await assembly.accept(cs, bad.id)
        with pytest.raises(InvalidTransition):
            await assembly.accept(cs, bad.id)


class TestDismiss:
    @pytest.mark.asyncio
    async def test_dismiss_never_touches_document(self, assembly, storage):
        project = await make_site(assembly)
        remove = op(project, "remove_block", {"page": "home", "block_id": "blk_hero"})
        cs = Changeset.from_operations(project.id, [remove])
        before = dict(storage.projects)

        result = await assembly.dismiss(cs, remove.id)

        assert result.status == DISMISSED
        assert storage.projects == before

    @pytest.mark.asyncio
    async def test_dismissed_cannot_be_accepted(self, assembly):
        project = await make_site(assembly)
        remove = op(project, "remove_block", {"page": "home", "block_id": "blk_hero"})
        cs = Changeset.from_operations(project.id, [remove])
        await assembly.dismiss(cs, remove.id)
        with pytest.raises(InvalidTransition):
            await assembly.accept(cs, remove.id)


class TestApplyAll:
    @pytest.mark.asyncio
    async def test_partial_application(self, assembly):
        project = await make_site(assembly)
        op1 = op(project, "update_block", {"page": "home", "block_id": "blk_text", "data": {"content": "v2"}}, "op_1")
        op2 = op(project, "remove_block", {"page": "home", "block_id": "blk_ghost"}, "op_2")
        cs = Changeset.from_operations(project.id, [op1, op2])

        result = await assembly.apply_all(cs)

        assert [o.id for o in result.applied] == ["op_1"]
        assert [o.id for o, _ in result.rejected] == ["op_2"]
        assert result.rejected[0][1].startswith("BLOCK_NOT_FOUND")
        stored = await assembly.load(project.id)
        assert stored.home_page.blocks[1].data["content"] == "v2"
        assert block_ids(stored) == ["blk_hero", "blk_text"]

    @pytest.mark.asyncio
    async def test_rejection_mid_batch_does_not_stop_later_ops(self, assembly):
        project = await make_site(assembly)
        ops = [
            op(project, "add_block", {"page": "home", "block": {"type": "cta"}}, "op_1"),
            op(project, "add_block", {"page": "home", "block": {"type": "carousel"}}, "op_2"),
            op(project, "remove_block", {"page": "home", "block_id": "blk_hero"}, "op_3"),
        ]
        result = await assembly.apply_all(Changeset.from_operations(project.id, ops))

        assert [o.id for o in result.applied] == ["op_1", "op_3"]
        assert [b.type for b in result.project.home_page.blocks] == ["text", "cta"]

    @pytest.mark.asyncio
    async def test_proposal_order(self, assembly):
        project = await make_site(assembly)
        ops = [
            op(project, "add_block", {"page": "home", "block": {"type": "cta", "id": "blk_a"}, "index": 0}),
            op(project, "add_block", {"page": "home", "block": {"type": "faq", "id": "blk_b"}, "index": 0}),
        ]
        result = await assembly.apply_all(Changeset.from_operations(project.id, ops))
        assert block_ids(result.project)[:2] == ["blk_b", "blk_a"]

    @pytest.mark.asyncio
    async def test_skips_dismissed(self, assembly):
        project = await make_site(assembly)
        keep = op(project, "update_theme", {"theme": {"primary_color": "navy"}})
        drop = op(project, "remove_block", {"page": "home", "block_id": "blk_hero"})
        cs = Changeset.from_operations(project.id, [keep, drop])
        await assembly.dismiss(cs, drop.id)

        result = await assembly.apply_all(cs)

        assert [o.id for o in result.applied] == [keep.id]
        assert block_ids(result.project) == ["blk_hero", "blk_text"]
        assert cs.is_settled

    @pytest.mark.asyncio
    async def test_direct_apply(self, assembly):
        project = await make_site(assembly)
        result = await assembly.apply(project.id, [op(project, "remove_block", {"page": "home", "block_id": "blk_text"})])
        assert block_ids(result.project) == ["blk_hero"]

    @pytest.mark.asyncio
    async def test_deleted_project_rejects(self, assembly):
        project = await make_site(assembly)
        await assembly.delete_project(project.id)
        remove = op(project, "remove_block", {"page": "home", "block_id": "blk_hero"})
        result = await assembly.apply(project.id, [remove])
        assert result.applied == []
        assert result.rejected[0][1].startswith("PROJECT_NOT_FOUND")
