"""
Site Builder — Shared Types

Data classes used across blocks, document, reducer, renderer, and assembly.
These are the contracts that bind the builder core together.

Snapshots are immutable: every dataclass here is frozen and uses tuples for
ordered children. Mutation primitives in `document` return new instances.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

# ---------------------------------------------------------------------------
# Regex patterns
# ---------------------------------------------------------------------------

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")


# ---------------------------------------------------------------------------
# Registries
# ---------------------------------------------------------------------------

OPERATION_TYPES: set[str] = {
    "add_block",
    "update_block",
    "remove_block",
    "update_theme",
    "update_seo",
}

# Operation lifecycle states
PROPOSED = "proposed"
ACCEPTED = "accepted"
DISMISSED = "dismissed"
APPLIED = "applied"
REJECTED = "rejected"

TERMINAL_STATES: set[str] = {DISMISSED, APPLIED, REJECTED}


# ---------------------------------------------------------------------------
# Document data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Seo:
    title: str | None = None
    description: str | None = None
    og_image: str | None = None

    def merged(self, other: Seo | None) -> Seo:
        """Overlay non-empty fields from `other` onto this Seo."""
        if other is None:
            return self
        return Seo(
            title=other.title or self.title,
            description=other.description or self.description,
            og_image=other.og_image or self.og_image,
        )

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in {
            "title": self.title,
            "description": self.description,
            "og_image": self.og_image,
        }.items() if v is not None}

    @classmethod
    def from_dict(cls, d: dict[str, Any] | None) -> Seo:
        d = d or {}
        return cls(title=d.get("title"), description=d.get("description"), og_image=d.get("og_image"))


@dataclass(frozen=True)
class Block:
    """
    One typed content unit on a page.

    `type` is immutable for the life of the block. `data` conforms to the
    schema registered for `type`; `style` holds the shared layout attributes.
    """

    id: str
    type: str
    data: dict[str, Any] = field(default_factory=dict)
    style: dict[str, Any] = field(default_factory=dict)

    @property
    def hidden(self) -> bool:
        return bool(self.style.get("hidden", False))

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "type": self.type, "data": self.data, "style": self.style}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Block:
        return cls(id=d["id"], type=d["type"], data=d.get("data", {}), style=d.get("style", {}))


@dataclass(frozen=True)
class Page:
    id: str
    slug: str
    title: str
    is_home_page: bool = False
    show_in_nav: bool = True
    blocks: tuple[Block, ...] = ()
    seo: Seo | None = None
    retired_block_ids: tuple[str, ...] = ()

    def block_index(self, block_id: str) -> int:
        """Position of block_id on this page, or -1."""
        for i, block in enumerate(self.blocks):
            if block.id == block_id:
                return i
        return -1

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "slug": self.slug,
            "title": self.title,
            "is_home_page": self.is_home_page,
            "show_in_nav": self.show_in_nav,
            "blocks": [b.to_dict() for b in self.blocks],
            "seo": self.seo.to_dict() if self.seo else None,
            "retired_block_ids": list(self.retired_block_ids),
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Page:
        return cls(
            id=d["id"],
            slug=d["slug"],
            title=d.get("title", ""),
            is_home_page=d.get("is_home_page", False),
            show_in_nav=d.get("show_in_nav", True),
            blocks=tuple(Block.from_dict(b) for b in d.get("blocks", [])),
            seo=Seo.from_dict(d["seo"]) if d.get("seo") else None,
            retired_block_ids=tuple(d.get("retired_block_ids", [])),
        )


@dataclass(frozen=True)
class Theme:
    """Project theme as stored. Absent values fall back to DEFAULT_THEME at resolve time."""

    primary_color: str | None = None
    secondary_color: str | None = None
    accent_color: str | None = None
    bg_color: str | None = None
    text_color: str | None = None
    font_heading: str | None = None
    font_body: str | None = None
    spacing: str | None = None
    border_radius: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v is not None}

    @classmethod
    def from_dict(cls, d: dict[str, Any] | None) -> Theme:
        d = d or {}
        return cls(**{k: d[k] for k in THEME_FIELDS if k in d})


THEME_FIELDS: tuple[str, ...] = (
    "primary_color",
    "secondary_color",
    "accent_color",
    "bg_color",
    "text_color",
    "font_heading",
    "font_body",
    "spacing",
    "border_radius",
)


@dataclass(frozen=True)
class ResolvedTheme:
    """Fully resolved theme. Every field is set; values are CSS-ready."""

    primary_color: str
    secondary_color: str
    accent_color: str
    bg_color: str
    text_color: str
    font_heading: str
    font_body: str
    spacing: str
    border_radius: int


@dataclass(frozen=True)
class ProjectSettings:
    white_label: bool = False
    custom_favicon: str | None = None
    custom_footer_text: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "white_label": self.white_label,
            "custom_favicon": self.custom_favicon,
            "custom_footer_text": self.custom_footer_text,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any] | None) -> ProjectSettings:
        d = d or {}
        return cls(
            white_label=d.get("white_label", False),
            custom_favicon=d.get("custom_favicon"),
            custom_footer_text=d.get("custom_footer_text"),
        )


@dataclass(frozen=True)
class Project:
    """
    Root aggregate: one website.

    `version` is bumped by every successful mutation. `applied_operations`
    records operation ids already folded into this snapshot so a retried
    accept never applies twice.
    """

    id: str
    customer_id: str
    business_name: str
    business_type: str | None = None
    seo: Seo = field(default_factory=Seo)
    pages: tuple[Page, ...] = ()
    theme: Theme = field(default_factory=Theme)
    settings: ProjectSettings = field(default_factory=ProjectSettings)
    deleted_at: str | None = None
    version: int = 1
    applied_operations: tuple[str, ...] = ()

    @property
    def home_page(self) -> Page | None:
        for page in self.pages:
            if page.is_home_page:
                return page
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "business_name": self.business_name,
            "business_type": self.business_type,
            "seo": self.seo.to_dict(),
            "pages": [p.to_dict() for p in self.pages],
            "theme": self.theme.to_dict(),
            "settings": self.settings.to_dict(),
            "deleted_at": self.deleted_at,
            "version": self.version,
            "applied_operations": list(self.applied_operations),
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Project:
        return cls(
            id=d["id"],
            customer_id=d["customer_id"],
            business_name=d.get("business_name", ""),
            business_type=d.get("business_type"),
            seo=Seo.from_dict(d.get("seo")),
            pages=tuple(Page.from_dict(p) for p in d.get("pages", [])),
            theme=Theme.from_dict(d.get("theme")),
            settings=ProjectSettings.from_dict(d.get("settings")),
            deleted_at=d.get("deleted_at"),
            version=d.get("version", 1),
            applied_operations=tuple(d.get("applied_operations", [])),
        )


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OperationPreview:
    """Human-review summary. Never consulted when applying."""

    label: str
    before: str | None = None
    after: str | None = None
    block_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"label": self.label, "before": self.before, "after": self.after, "block_type": self.block_type}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> OperationPreview:
        return cls(label=d.get("label", ""), before=d.get("before"), after=d.get("after"), block_type=d.get("block_type"))


@dataclass(frozen=True)
class Operation:
    """A proposed mutation against exactly one project."""

    id: str
    type: str
    project_id: str
    payload: dict[str, Any] = field(default_factory=dict)
    description: str = ""
    timestamp: str = ""
    preview: OperationPreview | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "project_id": self.project_id,
            "payload": self.payload,
            "description": self.description,
            "timestamp": self.timestamp,
            "preview": self.preview.to_dict() if self.preview else None,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Operation:
        return cls(
            id=d["id"],
            type=d["type"],
            project_id=d["project_id"],
            payload=d.get("payload", {}),
            description=d.get("description", ""),
            timestamp=d.get("timestamp", ""),
            preview=OperationPreview.from_dict(d["preview"]) if d.get("preview") else None,
        )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReduceWarning:
    """A non-fatal irregularity the reducer tolerated (the operation still applied)."""

    code: str
    message: str


@dataclass
class ReduceResult:
    """
    Result of applying one operation to a project.
    The reducer never raises; every outcome is one of these.
    """

    snapshot: Project
    applied: bool
    error: str | None = None
    error_code: str | None = None
    duplicate: bool = False  # operation was already folded into the snapshot
    warnings: list[ReduceWarning] = field(default_factory=list)


@dataclass
class ApplyResult:
    """Result of applying a batch of operations."""

    project: Project | None
    applied: list[Operation] = field(default_factory=list)
    rejected: list[tuple[Operation, str]] = field(default_factory=list)


@dataclass
class AcceptResult:
    """Outcome of accepting one operation."""

    operation_id: str
    status: str
    project: Project | None = None
    reason: str | None = None


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    reason: str | None = None


@dataclass(frozen=True)
class RenderOptions:
    """
    Render-time configuration.

    Branding lives here rather than in global state so renders stay a pure
    function of their inputs.
    """

    brand_name: str = "siteforge"
    brand_url: str = "https://siteforge.dev"
    base_path: str = "/"
    include_fonts: bool = True
    lang: str = "en"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def generate_id(prefix: str) -> str:
    """Opaque id: prefix + 12 hex chars."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def generate_block_id() -> str:
    return generate_id("blk")


def now_iso() -> str:
    """Current UTC time as ISO 8601 string."""
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
