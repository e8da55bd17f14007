"""
Site Builder — Errors

Every failure in the builder core is scoped to one project, page, block or
operation. Each exception carries a stable `code` used in rejection strings
("CODE: message") so callers can display or branch on it.
"""

from __future__ import annotations


class BuilderError(Exception):
    """Base class for all builder errors."""

    code = "BUILDER_ERROR"


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


class SchemaError(BuilderError):
    """Block data, style or theme does not conform to its schema."""

    code = "SCHEMA_ERROR"

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or []


class UnknownType(SchemaError):
    """Block type is not part of the registered set."""

    code = "UNKNOWN_TYPE"

    def __init__(self, block_type: str):
        super().__init__(f"Unknown block type: {block_type}")
        self.block_type = block_type


class InvalidBlockData(SchemaError):
    code = "INVALID_BLOCK_DATA"


class InvalidTheme(SchemaError):
    code = "INVALID_THEME"


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------


class DocumentError(BuilderError):
    """A structural mutation was refused. The prior snapshot is untouched."""

    code = "DOCUMENT_ERROR"


class PageNotFound(DocumentError):
    code = "PAGE_NOT_FOUND"


class BlockNotFound(DocumentError):
    code = "BLOCK_NOT_FOUND"


class InvariantViolation(DocumentError):
    code = "INVARIANT_VIOLATION"


# ---------------------------------------------------------------------------
# Protocol / plans / render / storage
# ---------------------------------------------------------------------------


class PlanDenied(BuilderError):
    """The customer's plan does not allow the change. Not retried automatically."""

    code = "PLAN_DENIED"

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class InvalidTransition(BuilderError):
    """Operation state change not allowed (e.g. accepting a dismissed operation)."""

    code = "INVALID_TRANSITION"


class OperationNotFound(BuilderError):
    code = "OPERATION_NOT_FOUND"


class RenderFault(BuilderError):
    """A single block failed to render. Masked to a placeholder by the renderer."""

    code = "RENDER_FAULT"


class ProjectNotFound(BuilderError):
    """Project does not exist in storage (or has been soft-deleted)."""

    code = "PROJECT_NOT_FOUND"
