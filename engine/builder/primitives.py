"""
Site Builder — Operation Validation

Validates operation payloads before they reach the reducer.
Validation is structural (well-formed?) not semantic (will it apply?).
The reducer handles semantic checks: does the page exist, does the block
data satisfy its schema, is the block type registered.
"""

from __future__ import annotations

from typing import Any

from engine.builder.types import OPERATION_TYPES, THEME_FIELDS

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def validate_operation(type: str, payload: dict[str, Any]) -> list[str]:
    """
    Validate an operation's type and payload structure.
    Returns a list of error strings. Empty list = valid.

    It does NOT check whether referenced pages or blocks exist.
    That's the reducer's job.
    """
    errors: list[str] = []

    if type not in OPERATION_TYPES:
        errors.append(f"Unknown operation type: {type}")
        return errors

    if not isinstance(payload, dict):
        errors.append("Payload must be a non-null object")
        return errors

    validator = _VALIDATORS.get(type)
    if validator:
        errors.extend(validator(payload))

    return errors


# ---------------------------------------------------------------------------
# Shared checks
# ---------------------------------------------------------------------------


def _is_ref(value: Any) -> bool:
    return isinstance(value, str) and 0 < len(value) <= 128


def _check_page(p: dict, op: str, required: bool = True) -> list[str]:
    if "page" not in p or p["page"] is None:
        return [f"{op} requires 'page'"] if required else []
    if not _is_ref(p["page"]):
        return [f"Invalid page reference: {p['page']!r}"]
    return []


def _check_optional_dict(p: dict, key: str) -> list[str]:
    if key in p and p[key] is not None and not isinstance(p[key], dict):
        return [f"'{key}' must be an object"]
    return []


# ---------------------------------------------------------------------------
# Per-operation validators
# ---------------------------------------------------------------------------


def _validate_add_block(p: dict) -> list[str]:
    errors = _check_page(p, "add_block")

    block = p.get("block")
    if not isinstance(block, dict):
        errors.append("add_block requires 'block' object")
    else:
        if not isinstance(block.get("type"), str) or not block["type"]:
            errors.append("add_block requires 'block.type'")
        errors.extend(_check_optional_dict(block, "data"))
        errors.extend(_check_optional_dict(block, "style"))
        if "id" in block and block["id"] is not None and not _is_ref(block["id"]):
            errors.append(f"Invalid block ID: {block['id']!r}")

    index = p.get("index")
    if index is not None and (isinstance(index, bool) or not isinstance(index, int)):
        errors.append("'index' must be an integer")
    if p.get("after_block_id") is not None:
        if not _is_ref(p["after_block_id"]):
            errors.append(f"Invalid after_block_id: {p['after_block_id']!r}")
        if index is not None:
            errors.append("add_block takes 'index' or 'after_block_id', not both")
    return errors


def _validate_update_block(p: dict) -> list[str]:
    errors = _check_page(p, "update_block")
    if not _is_ref(p.get("block_id")):
        errors.append("update_block requires 'block_id'")
    if p.get("data") is None and p.get("style") is None:
        errors.append("update_block requires 'data' or 'style'")
    errors.extend(_check_optional_dict(p, "data"))
    errors.extend(_check_optional_dict(p, "style"))
    return errors


def _validate_remove_block(p: dict) -> list[str]:
    errors = _check_page(p, "remove_block")
    if not _is_ref(p.get("block_id")):
        errors.append("remove_block requires 'block_id'")
    return errors


def _validate_update_theme(p: dict) -> list[str]:
    theme = p.get("theme")
    if not isinstance(theme, dict) or not theme:
        return ["update_theme requires a non-empty 'theme' object"]
    unknown = [k for k in theme if k not in THEME_FIELDS]
    return [f"Unknown theme field: {k}" for k in unknown]


def _validate_update_seo(p: dict) -> list[str]:
    errors = _check_page(p, "update_seo", required=False)
    seo = p.get("seo")
    if not isinstance(seo, dict):
        errors.append("update_seo requires 'seo' object")
    else:
        for key in seo:
            if key not in ("title", "description", "og_image"):
                errors.append(f"Unknown SEO field: {key}")
    return errors


_VALIDATORS: dict[str, Any] = {
    "add_block": _validate_add_block,
    "update_block": _validate_update_block,
    "remove_block": _validate_remove_block,
    "update_theme": _validate_update_theme,
    "update_seo": _validate_update_seo,
}
