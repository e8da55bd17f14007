"""
Site Builder — Operation Construction

Factory functions for creating well-formed operations.
Used by the coach to wrap raw AI proposals, and by tests to build
operations concisely.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from engine.builder.blocks import BLOCK_LABELS
from engine.builder.types import Operation, OperationPreview, Project, generate_id, now_iso


def make_operation(
    type: str,
    payload: dict[str, Any],
    *,
    project_id: str = "site_test",
    description: str = "",
    operation_id: str | None = None,
    timestamp: str | None = None,
    preview: OperationPreview | None = None,
) -> Operation:
    """Build a complete Operation from minimal inputs."""
    return Operation(
        id=operation_id or generate_id("op"),
        type=type,
        project_id=project_id,
        payload=payload,
        description=description,
        timestamp=timestamp or now_iso(),
        preview=preview,
    )


def operations_from_raw(raw: list[dict[str, Any]], project: Project) -> list[Operation]:
    """
    Wrap raw AI proposals ({type, payload, description?}) into Operations
    against `project`, with ids, a shared timestamp and review previews.
    Entries without a type are skipped.
    """
    ts = now_iso()
    result: list[Operation] = []
    for entry in raw:
        if not isinstance(entry, dict) or not isinstance(entry.get("type"), str):
            continue
        payload = entry.get("payload") if isinstance(entry.get("payload"), dict) else {}
        op = Operation(
            id=generate_id("op"),
            type=entry["type"],
            project_id=project.id,
            payload=payload,
            description=str(entry.get("description", "")),
            timestamp=ts,
        )
        result.append(replace(op, preview=describe_preview(project, op)))
    return result


# ---------------------------------------------------------------------------
# Previews
# ---------------------------------------------------------------------------

_SUMMARY_KEYS = ("heading", "content", "company_name", "logo_text", "text", "caption", "alt", "product_slug")


def summarize_data(data: dict[str, Any] | None, limit: int = 80) -> str | None:
    """One-line human summary of a block payload."""
    if not data:
        return None
    for key in _SUMMARY_KEYS:
        value = data.get(key)
        if isinstance(value, str) and value:
            return value if len(value) <= limit else value[: limit - 1] + "…"
    return None


def _page_title(project: Project, ref: Any) -> str:
    for page in project.pages:
        if page.id == ref or page.slug == ref:
            return page.title
    return str(ref)


def _find_block_data(project: Project, page_ref: Any, block_id: Any) -> tuple[str | None, dict | None]:
    for page in project.pages:
        if page.id == page_ref or page.slug == page_ref:
            for block in page.blocks:
                if block.id == block_id:
                    return block.type, block.data
    return None, None


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def describe_preview(project: Project, op: Operation) -> OperationPreview:
    """
    Before/after summary for human review. Malformed operations degrade to
    a bare label; validation happens in the reducer, not here.
    """
    p = _as_dict(op.payload)

    if op.type == "add_block":
        block = _as_dict(p.get("block"))
        block_type = block.get("type") if isinstance(block.get("type"), str) else None
        label = BLOCK_LABELS.get(block_type or "", str(block_type))
        return OperationPreview(
            label=f"Add {label} block to {_page_title(project, p.get('page'))}",
            after=summarize_data(_as_dict(block.get("data"))),
            block_type=block_type,
        )

    if op.type == "update_block":
        block_type, data = _find_block_data(project, p.get("page"), p.get("block_id"))
        merged = {**(data or {}), **_as_dict(p.get("data"))}
        return OperationPreview(
            label=f"Update {BLOCK_LABELS.get(block_type or '', 'block')}",
            before=summarize_data(data),
            after=summarize_data(merged),
            block_type=block_type,
        )

    if op.type == "remove_block":
        block_type, data = _find_block_data(project, p.get("page"), p.get("block_id"))
        return OperationPreview(
            label=f"Remove {BLOCK_LABELS.get(block_type or '', 'block')}",
            before=summarize_data(data),
            block_type=block_type,
        )

    if op.type == "update_theme":
        changes = ", ".join(f"{k}={'default' if v is None else v}" for k, v in sorted(_as_dict(p.get("theme")).items()))
        return OperationPreview(label="Update theme", after=changes or None)

    if op.type == "update_seo":
        seo = _as_dict(p.get("seo"))
        where = _page_title(project, p["page"]) if p.get("page") else "site"
        return OperationPreview(label=f"Update SEO for {where}", before=project.seo.title, after=seo.get("title"))

    return OperationPreview(label=op.description or op.type)
