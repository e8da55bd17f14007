"""
Site Builder -- Reducer Idempotency Tests

An operation id already folded into a snapshot is never applied twice.
"""

from engine.builder.operations import make_operation
from engine.builder.reducer import reduce


def test_reapplying_returns_same_snapshot(project):
    op = make_operation("add_block", {"page": "home", "block": {"type": "cta"}}, project_id="site_test")
    first = reduce(project, op)
    second = reduce(first.snapshot, op)

    assert second.applied
    assert second.duplicate
    assert second.snapshot is first.snapshot
    assert len(second.snapshot.home_page.blocks) == 3


def test_remove_twice_is_not_a_block_not_found(project):
    op = make_operation("remove_block", {"page": "home", "block_id": "blk_hero"}, project_id="site_test")
    once = reduce(project, op).snapshot
    again = reduce(once, op)
    assert again.applied and again.duplicate
    assert again.error is None


def test_distinct_ids_apply_separately(project):
    payload = {"page": "home", "block": {"type": "cta"}}
    a = make_operation("add_block", payload, project_id="site_test", operation_id="op_a")
    b = make_operation("add_block", payload, project_id="site_test", operation_id="op_b")
    snapshot = reduce(reduce(project, a).snapshot, b).snapshot
    assert [blk.type for blk in snapshot.home_page.blocks] == ["hero", "text", "cta", "cta"]
    assert snapshot.applied_operations == ("op_a", "op_b")
