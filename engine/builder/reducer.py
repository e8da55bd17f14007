"""
Site Builder — Reducer

Pure function: (project, operation) → ReduceResult
No side effects. No IO. No AI calls. Deterministic.

Each operation type maps to exactly one document primitive:

    add_block    → insert_block   (end of page unless index/after_block_id)
    update_block → replace_block  (partial data/style merged, re-validated)
    remove_block → remove_block
    update_theme → set_theme      (partial theme merged)
    update_seo   → set_seo        (project-level, or a page when 'page' is set)

Any refusal comes back as a rejection carrying "CODE: message" and the
untouched input snapshot.
"""

from __future__ import annotations

import hashlib
from typing import Any

from engine.builder import document
from engine.builder.blocks import FEATURE_BLOCKS, default_data
from engine.builder.errors import BuilderError, InvariantViolation
from engine.builder.primitives import validate_operation
from engine.builder.theme import merge_theme
from engine.builder.types import Block, Operation, Project, ReduceResult, ReduceWarning

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def reduce(project: Project, op: Operation) -> ReduceResult:
    """
    Apply one operation to a project snapshot.

    Pure function. The input snapshot is never modified; on success the
    result carries a new snapshot with the operation id recorded.
    """
    if op.id in project.applied_operations:
        return ReduceResult(snapshot=project, applied=True, duplicate=True)

    if op.project_id != project.id:
        return _reject(project, "PROJECT_MISMATCH", f"Operation targets '{op.project_id}', not '{project.id}'")

    if project.deleted_at is not None:
        return _reject(project, "PROJECT_DELETED", f"Project '{project.id}' has been deleted")

    errors = validate_operation(op.type, op.payload)
    if errors:
        return _reject(project, "INVALID_PAYLOAD", "; ".join(errors))

    handler = _HANDLERS[op.type]
    try:
        updated = handler(project, op)
    except BuilderError as e:
        return _reject(project, e.code, str(e))

    return ReduceResult(
        snapshot=document.record_operation(updated, op.id),
        applied=True,
        warnings=_warnings_for(project, op),
    )


def replay(project: Project, ops: list[Operation]) -> Project:
    """Fold operations over a snapshot, skipping rejections."""
    for op in ops:
        result = reduce(project, op)
        if result.applied:
            project = result.snapshot
    return project


def required_checks(project: Project, op: Operation) -> list[str]:
    """
    Plan features an operation needs before it may be applied.
    Evaluated by the assembly under the project lock.
    """
    p = op.payload if isinstance(op.payload, dict) else {}
    block_type: str | None = None

    if op.type == "add_block" and isinstance(p.get("block"), dict):
        block_type = p["block"].get("type")
    elif op.type == "update_block":
        block_type = _existing_block_type(project, p.get("page"), p.get("block_id"))
    elif op.type == "update_seo":
        return ["seo"]

    if isinstance(block_type, str) and block_type in FEATURE_BLOCKS:
        return [FEATURE_BLOCKS[block_type]]
    return []


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _reject(project: Project, code: str, msg: str) -> ReduceResult:
    return ReduceResult(snapshot=project, applied=False, error=f"{code}: {msg}", error_code=code)


def _warnings_for(project: Project, op: Operation) -> list[ReduceWarning]:
    """Out-of-range insert positions are clamped, not rejected; surface them."""
    index = op.payload.get("index")
    if op.type != "add_block" or index is None or op.payload.get("after_block_id") is not None:
        return []
    page = document.find_page(project, op.payload["page"])
    if 0 <= index <= len(page.blocks):
        return []
    return [
        ReduceWarning(
            code="INDEX_CLAMPED",
            message=f"Insert index {index} is outside 0..{len(page.blocks)} on page '{page.slug}'",
        )
    ]


def _existing_block_type(project: Project, page_ref: Any, block_id: Any) -> str | None:
    for page in project.pages:
        if page.id == page_ref or page.slug == page_ref:
            idx = page.block_index(block_id) if isinstance(block_id, str) else -1
            return page.blocks[idx].type if idx >= 0 else None
    return None


def _block_id_for(op: Operation) -> str:
    """Deterministic block id for a block created by this operation."""
    return "blk_" + hashlib.sha256(op.id.encode("utf-8")).hexdigest()[:12]


def _merge(current: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """Shallow merge. A None value in the patch clears the key."""
    merged = {**current, **patch}
    return {k: v for k, v in merged.items() if v is not None}


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _add_block(project: Project, op: Operation) -> Project:
    p = op.payload
    raw = p["block"]
    block_type = raw["type"]
    data = raw.get("data")
    if data is None:
        data = default_data(block_type)

    page = document.find_page(project, p["page"])
    index = p.get("index")
    if p.get("after_block_id") is not None:
        document.find_block(page, p["after_block_id"])
        index = page.block_index(p["after_block_id"]) + 1

    block = Block(id=raw.get("id") or _block_id_for(op), type=block_type, data=data, style=raw.get("style") or {})
    return document.insert_block(project, page.id, index, block)


def _update_block(project: Project, op: Operation) -> Project:
    p = op.payload
    page = document.find_page(project, p["page"])
    current = document.find_block(page, p["block_id"])
    if p.get("type") is not None and p["type"] != current.type:
        raise InvariantViolation(f"Block type is immutable ('{current.type}' cannot become '{p['type']}')")

    data = _merge(current.data, p["data"]) if p.get("data") is not None else current.data
    style = _merge(current.style, p["style"]) if p.get("style") is not None else None
    return document.replace_block(project, page.id, current.id, data, style)


def _remove_block(project: Project, op: Operation) -> Project:
    return document.remove_block(project, op.payload["page"], op.payload["block_id"])


def _update_theme(project: Project, op: Operation) -> Project:
    return document.set_theme(project, merge_theme(project.theme, op.payload["theme"]))


def _update_seo(project: Project, op: Operation) -> Project:
    p = op.payload
    page_ref = p.get("page")
    if page_ref is None:
        base = project.seo.to_dict()
    else:
        page = document.find_page(project, page_ref)
        base = page.seo.to_dict() if page.seo else {}
        page_ref = page.id
    return document.set_seo(project, _merge(base, p["seo"]), page_ref)


_HANDLERS: dict[str, Any] = {
    "add_block": _add_block,
    "update_block": _update_block,
    "remove_block": _remove_block,
    "update_theme": _update_theme,
    "update_seo": _update_seo,
}
