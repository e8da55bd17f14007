"""
Site Builder — Document Model

Mutation primitives over an immutable Project snapshot. Every primitive
either returns a NEW snapshot (version bumped, invariants re-checked) or
raises a DocumentError / SchemaError and leaves the input untouched.

Invariants:
  - block ids are unique within a page, and never reused once retired
  - page slugs are unique within the project and URL-safe
  - exactly one home page

Pages are addressed by id or slug; ids win when both match.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from engine.builder.blocks import (
    NAV_BLOCKS,
    create_default,
    full_style,
    nav_hrefs,
    validate_block,
    validate_block_data,
    validate_image_src,
    validate_seo,
)
from engine.builder.errors import BlockNotFound, InvariantViolation, PageNotFound
from engine.builder.theme import validate_theme
from engine.builder.types import (
    SLUG_PATTERN,
    Block,
    Page,
    Project,
    ProjectSettings,
    Seo,
    Theme,
    generate_block_id,
    generate_id,
)

HOME_SLUG = "home"


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


def new_project(
    customer_id: str,
    business_name: str,
    business_type: str | None = None,
    theme: Theme | None = None,
    project_id: str | None = None,
    blocks: tuple[Block, ...] | list[Block] = (),
    pages: tuple[Page, ...] | list[Page] = (),
) -> Project:
    """
    A fresh project with a single home page.
    `blocks` seed the home page and are validated like any insert.
    `pages`, when given, replace the default home page (generated sites);
    exactly one of them must be the home page.
    """
    if pages:
        site_pages = tuple(replace(p, blocks=tuple(validate_block(b) for b in p.blocks)) for p in pages)
    else:
        site_pages = (
            Page(
                id=generate_id("page"),
                slug=HOME_SLUG,
                title="Home",
                is_home_page=True,
                blocks=tuple(validate_block(b) for b in blocks),
            ),
        )
    project = Project(
        id=project_id or generate_id("site"),
        customer_id=customer_id,
        business_name=business_name,
        business_type=business_type,
        seo=Seo(title=business_name),
        pages=site_pages,
        theme=Theme.from_dict(validate_theme(theme.to_dict())) if theme else Theme(),
    )
    check_invariants(project)
    return project


def project_to_dict(project: Project) -> dict[str, Any]:
    return project.to_dict()


def project_from_dict(d: dict[str, Any]) -> Project:
    """Rehydrate a stored document. Raises InvariantViolation on corrupt data."""
    project = Project.from_dict(d)
    check_invariants(project)
    return project


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


def find_page(project: Project, page_ref: str) -> Page:
    """Page by id, falling back to slug. Raises PageNotFound."""
    for page in project.pages:
        if page.id == page_ref:
            return page
    for page in project.pages:
        if page.slug == page_ref:
            return page
    raise PageNotFound(f"Page '{page_ref}' not found")


def find_block(page: Page, block_id: str) -> Block:
    idx = page.block_index(block_id)
    if idx < 0:
        raise BlockNotFound(f"Block '{block_id}' not found on page '{page.slug}'")
    return page.blocks[idx]


def check_invariants(project: Project) -> None:
    """Raise InvariantViolation if the snapshot breaks a document invariant."""
    if not project.pages:
        raise InvariantViolation("Project must have at least one page")

    home_pages = [p for p in project.pages if p.is_home_page]
    if len(home_pages) != 1:
        raise InvariantViolation(f"Project must have exactly one home page, found {len(home_pages)}")

    page_ids: set[str] = set()
    slugs: set[str] = set()
    for page in project.pages:
        if page.id in page_ids:
            raise InvariantViolation(f"Duplicate page id '{page.id}'")
        page_ids.add(page.id)
        if not SLUG_PATTERN.match(page.slug):
            raise InvariantViolation(f"Invalid page slug '{page.slug}'")
        if page.slug in slugs:
            raise InvariantViolation(f"Duplicate page slug '{page.slug}'")
        slugs.add(page.slug)

        block_ids: set[str] = set()
        retired = set(page.retired_block_ids)
        for block in page.blocks:
            if block.id in block_ids:
                raise InvariantViolation(f"Duplicate block id '{block.id}' on page '{page.slug}'")
            if block.id in retired:
                raise InvariantViolation(f"Block id '{block.id}' was retired on page '{page.slug}'")
            block_ids.add(block.id)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _commit(project: Project, **changes: Any) -> Project:
    """New snapshot with changes applied, version bumped, invariants checked."""
    updated = replace(project, version=project.version + 1, **changes)
    check_invariants(updated)
    return updated


def _swap_page(project: Project, page: Page) -> Project:
    pages = tuple(page if p.id == page.id else p for p in project.pages)
    return _commit(project, pages=pages)


def _clamp(index: int | None, length: int) -> int:
    if index is None:
        return length
    return max(0, min(index, length))


def _admit_block_id(page: Page, block_id: str) -> None:
    if page.block_index(block_id) >= 0:
        raise InvariantViolation(f"Block id '{block_id}' already exists on page '{page.slug}'")
    if block_id in page.retired_block_ids:
        raise InvariantViolation(f"Block id '{block_id}' was retired on page '{page.slug}' and cannot be reused")


# ---------------------------------------------------------------------------
# Block primitives
# ---------------------------------------------------------------------------


def insert_block(project: Project, page_ref: str, index: int | None, block: Block) -> Project:
    """
    Insert a validated block. `index` is clamped to [0, len(blocks)];
    None appends at the end of the page.
    """
    page = find_page(project, page_ref)
    block = validate_block(block)
    _admit_block_id(page, block.id)

    blocks = list(page.blocks)
    blocks.insert(_clamp(index, len(blocks)), block)
    return _swap_page(project, replace(page, blocks=tuple(blocks)))


def replace_block(
    project: Project,
    page_ref: str,
    block_id: str,
    new_data: dict[str, Any],
    new_style: dict[str, Any] | None = None,
) -> Project:
    """
    Replace a block's data (and optionally style) in place.
    The block keeps its id, type, and position.
    """
    page = find_page(project, page_ref)
    current = find_block(page, block_id)
    data = validate_block_data(current.type, new_data)
    style = full_style(new_style) if new_style is not None else current.style

    updated = Block(id=current.id, type=current.type, data=data, style=style)
    blocks = tuple(updated if b.id == block_id else b for b in page.blocks)
    return _swap_page(project, replace(page, blocks=blocks))


def remove_block(project: Project, page_ref: str, block_id: str) -> Project:
    """Remove a block. Its id is retired on that page."""
    page = find_page(project, page_ref)
    find_block(page, block_id)
    blocks = tuple(b for b in page.blocks if b.id != block_id)
    retired = page.retired_block_ids + (block_id,)
    return _swap_page(project, replace(page, blocks=blocks, retired_block_ids=retired))


def move_block(project: Project, page_ref: str, block_id: str, index: int) -> Project:
    """Move a block to `index` (clamped) within its page."""
    page = find_page(project, page_ref)
    block = find_block(page, block_id)
    blocks = [b for b in page.blocks if b.id != block_id]
    blocks.insert(_clamp(index, len(blocks)), block)
    return _swap_page(project, replace(page, blocks=tuple(blocks)))


def duplicate_block(project: Project, page_ref: str, block_id: str, new_id: str | None = None) -> Project:
    """Copy a block with a fresh id directly after the original."""
    page = find_page(project, page_ref)
    original = find_block(page, block_id)
    copy = Block(id=new_id or generate_block_id(), type=original.type, data=original.data, style=original.style)
    return insert_block(project, page.id, page.block_index(block_id) + 1, copy)


# ---------------------------------------------------------------------------
# Theme / SEO / settings
# ---------------------------------------------------------------------------


def set_theme(project: Project, theme: Theme | dict[str, Any]) -> Project:
    """Replace the project theme. Raises InvalidTheme on bad values."""
    raw = theme.to_dict() if isinstance(theme, Theme) else theme
    return _commit(project, theme=Theme.from_dict(validate_theme(raw)))


def set_seo(project: Project, seo: Seo | dict[str, Any], page_ref: str | None = None) -> Project:
    """Replace project-level SEO, or a page's override when page_ref is given."""
    raw = seo.to_dict() if isinstance(seo, Seo) else seo
    validated = Seo.from_dict(validate_seo(raw))
    if page_ref is None:
        return _commit(project, seo=validated)
    page = find_page(project, page_ref)
    return _swap_page(project, replace(page, seo=validated))


def update_settings(project: Project, **changes: Any) -> Project:
    """Update white_label / custom_favicon / custom_footer_text."""
    current = project.settings.to_dict()
    for key, value in changes.items():
        if key not in current:
            raise InvariantViolation(f"Unknown project setting '{key}'")
        if key == "custom_favicon" and value is not None:
            validate_image_src(value)
        if key == "white_label" and not isinstance(value, bool):
            raise InvariantViolation("white_label must be a boolean")
        current[key] = value
    return _commit(project, settings=ProjectSettings.from_dict(current))


def rename_business(project: Project, business_name: str, business_type: str | None = None) -> Project:
    if not business_name.strip():
        raise InvariantViolation("business_name must not be empty")
    return _commit(project, business_name=business_name.strip(), business_type=business_type or project.business_type)


# ---------------------------------------------------------------------------
# Page lifecycle
# ---------------------------------------------------------------------------


def add_page(
    project: Project,
    slug: str,
    title: str,
    show_in_nav: bool = True,
    blocks: tuple[Block, ...] | list[Block] = (),
    page_id: str | None = None,
) -> Project:
    """Append a page. Slug must be URL-safe and unused."""
    if not SLUG_PATTERN.match(slug):
        raise InvariantViolation(f"Invalid page slug '{slug}'")
    if any(p.slug == slug for p in project.pages):
        raise InvariantViolation(f"Page slug '{slug}' is already in use")

    page = Page(
        id=page_id or generate_id("page"),
        slug=slug,
        title=title,
        show_in_nav=show_in_nav,
        blocks=tuple(validate_block(b) for b in blocks),
    )
    return _commit(project, pages=project.pages + (page,))


def add_page_from_template(project: Project, slug: str, title: str, block_types: list[str]) -> Project:
    """Append a page seeded with default blocks of the given types."""
    return add_page(project, slug, title, blocks=[create_default(t) for t in block_types])


def remove_page(project: Project, page_ref: str) -> Project:
    """Delete a page. The home page and the last remaining page cannot be deleted."""
    page = find_page(project, page_ref)
    if page.is_home_page:
        raise InvariantViolation("Cannot delete the home page")
    if len(project.pages) == 1:
        raise InvariantViolation("Cannot delete the last page")
    return _commit(project, pages=tuple(p for p in project.pages if p.id != page.id))


def set_home_page(project: Project, page_ref: str) -> Project:
    target = find_page(project, page_ref)
    pages = tuple(replace(p, is_home_page=(p.id == target.id)) for p in project.pages)
    return _commit(project, pages=pages)


def page_is_linked(project: Project, page: Page) -> bool:
    """True if any header/footer navigation block links to this page's slug."""
    href = f"/{page.slug}"
    for p in project.pages:
        for block in p.blocks:
            if block.type in NAV_BLOCKS and href in nav_hrefs(block):
                return True
    return False


def rename_page_slug(project: Project, page_ref: str, slug: str) -> Project:
    """Change a page's slug. Refused once navigation links to the current slug."""
    page = find_page(project, page_ref)
    if slug == page.slug:
        return project
    if page_is_linked(project, page):
        raise InvariantViolation(f"Page slug '{page.slug}' is linked from site navigation and cannot change")
    if not SLUG_PATTERN.match(slug):
        raise InvariantViolation(f"Invalid page slug '{slug}'")
    if any(p.slug == slug for p in project.pages):
        raise InvariantViolation(f"Page slug '{slug}' is already in use")
    return _swap_page(project, replace(page, slug=slug))


def update_page(project: Project, page_ref: str, title: str | None = None, show_in_nav: bool | None = None) -> Project:
    page = find_page(project, page_ref)
    changes: dict[str, Any] = {}
    if title is not None:
        changes["title"] = title
    if show_in_nav is not None:
        changes["show_in_nav"] = show_in_nav
    return _swap_page(project, replace(page, **changes))


# ---------------------------------------------------------------------------
# Project lifecycle
# ---------------------------------------------------------------------------


def tombstone(project: Project, when: str) -> Project:
    """Soft-delete: mark the project deleted as of `when`."""
    return _commit(project, deleted_at=when)


def record_operation(project: Project, operation_id: str) -> Project:
    """Note that an operation has been folded into this snapshot. No version bump."""
    if operation_id in project.applied_operations:
        return project
    return replace(project, applied_operations=project.applied_operations + (operation_id,))
