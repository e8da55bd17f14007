"""
Site Builder — Assembly Layer

Sits between the pure functions (reducer, renderer) and the outside world
(storage, plan gate, the orchestrator). Coordinates the lifecycle of a
project: create, accept/dismiss operations, apply changesets, preview,
publish, delete.

This is where IO happens. The reducer and renderer are pure.

Single writer per project: every load → gate → reduce → save runs under a
per-project asyncio.Lock. Collaborator calls are bounded by a timeout; an
operation whose application timed out stays `accepted` and can be retried
safely because application is idempotent by operation id.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any

from engine.builder import document
from engine.builder.blocks import create_default
from engine.builder.changeset import Changeset
from engine.builder.errors import PlanDenied, ProjectNotFound
from engine.builder.plans import PlanGate
from engine.builder.reducer import reduce, required_checks
from engine.builder.renderer import render, render_site
from engine.builder.types import (
    APPLIED,
    DISMISSED,
    REJECTED,
    AcceptResult,
    ApplyResult,
    Block,
    GateDecision,
    Operation,
    Page,
    Project,
    RenderOptions,
    Theme,
    now_iso,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Storage protocol
# ---------------------------------------------------------------------------


class ProjectStorage:
    """
    Abstract storage interface: whole-document load/save.
    Implement with Postgres for production, or in-memory for tests.
    """

    async def load_project(self, project_id: str) -> Project | None:
        """Fetch a project, including soft-deleted ones. None if absent."""
        raise NotImplementedError

    async def save_project(self, project: Project) -> None:
        raise NotImplementedError

    async def load_page(self, project_id: str, page_ref: str) -> Page | None:
        project = await self.load_project(project_id)
        if project is None:
            return None
        for page in project.pages:
            if page.id == page_ref or page.slug == page_ref:
                return page
        return None

    async def save_page(self, project_id: str, page: Page) -> None:
        """Replace one page inside a stored project."""
        project = await self.load_project(project_id)
        if project is None:
            raise ProjectNotFound(project_id)
        pages = tuple(page if p.id == page.id else p for p in project.pages)
        updated = replace(project, pages=pages)
        document.check_invariants(updated)
        await self.save_project(updated)

    async def put_published(self, project_id: str, pages: dict[str, str]) -> None:
        """Write rendered pages ({slug: html}) to the published location."""
        raise NotImplementedError

    async def count_projects(self, customer_id: str) -> int:
        """Live (not soft-deleted) projects owned by a customer."""
        raise NotImplementedError


class MemoryStorage(ProjectStorage):
    """In-memory storage for testing. Documents are kept serialized."""

    def __init__(self) -> None:
        self.projects: dict[str, dict[str, Any]] = {}
        self.published: dict[str, dict[str, str]] = {}

    async def load_project(self, project_id: str) -> Project | None:
        raw = self.projects.get(project_id)
        return document.project_from_dict(raw) if raw is not None else None

    async def save_project(self, project: Project) -> None:
        self.projects[project.id] = project.to_dict()

    async def put_published(self, project_id: str, pages: dict[str, str]) -> None:
        self.published[project_id] = dict(pages)

    async def count_projects(self, customer_id: str) -> int:
        return sum(
            1 for raw in self.projects.values() if raw["customer_id"] == customer_id and raw.get("deleted_at") is None
        )


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


class SiteAssembly:
    """
    Manages the lifecycle of website projects.
    Coordinates storage + plan gate + reducer + renderer.
    """

    def __init__(
        self,
        storage: ProjectStorage,
        gate: PlanGate,
        timeout: float | None = 10.0,
        render_options: RenderOptions | None = None,
    ):
        self._storage = storage
        self._gate = gate
        self._timeout = timeout
        self._render_options = render_options or RenderOptions()
        self._locks: dict[str, asyncio.Lock] = {}

    def _get_lock(self, key: str) -> asyncio.Lock:
        """Per-project (or per-customer) asyncio lock for single-instance serialization."""
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    async def _call(self, awaitable):
        """Await a collaborator call within the configured timeout."""
        if self._timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, self._timeout)

    # -- load --

    async def load(self, project_id: str) -> Project:
        """Fetch a live project. Deleted or missing projects raise ProjectNotFound."""
        project = await self._call(self._storage.load_project(project_id))
        if project is None or project.deleted_at is not None:
            raise ProjectNotFound(project_id)
        return project

    # -- project lifecycle --

    async def can_create_project(self, customer_id: str) -> GateDecision:
        """Advisory site-limit check. create_project re-checks under the lock."""
        return await self._call(self._gate.check_site_limit(customer_id))

    async def create_project(
        self,
        customer_id: str,
        business_name: str,
        business_type: str | None = None,
        theme: Theme | None = None,
        blocks: list[Block] | tuple[Block, ...] = (),
        pages: list[Page] | tuple[Page, ...] = (),
    ) -> Project:
        """
        Create and persist a project. Raises PlanDenied at the site limit, or
        when a generated site carries more pages than the plan allows.
        """
        async with self._get_lock(f"customer:{customer_id}"):
            decision = await self._call(self._gate.check_site_limit(customer_id))
            if not decision.allowed:
                raise PlanDenied(decision.reason or "Site limit reached")
            if pages:
                decision = await self._call(self._gate.check_page_count(customer_id, len(pages)))
                if not decision.allowed:
                    raise PlanDenied(decision.reason or "Page limit reached")

            project = document.new_project(
                customer_id, business_name, business_type, theme, blocks=blocks, pages=pages
            )
            await self._call(self._storage.save_project(project))

        logger.info("created project %s for customer %s", project.id, customer_id)
        return project

    async def delete_project(self, project_id: str) -> Project:
        """Soft delete. The project stops counting toward the site limit."""
        async with self._get_lock(project_id):
            project = await self.load(project_id)
            deleted = document.tombstone(project, now_iso())
            await self._call(self._storage.save_project(deleted))
        logger.info("deleted project %s", project_id)
        return deleted

    async def add_page(
        self,
        project_id: str,
        slug: str,
        title: str,
        show_in_nav: bool = True,
        block_types: list[str] | None = None,
    ) -> Project:
        """Add a page seeded with default blocks. Raises PlanDenied at the page limit."""
        async with self._get_lock(project_id):
            project = await self.load(project_id)
            decision = await self._call(self._gate.check_page_limit(project.customer_id, project_id))
            if not decision.allowed:
                raise PlanDenied(decision.reason or "Page limit reached")

            updated = document.add_page(
                project,
                slug,
                title,
                show_in_nav=show_in_nav,
                blocks=[create_default(t) for t in block_types or []],
            )
            await self._call(self._storage.save_project(updated))
        return updated

    async def remove_page(self, project_id: str, page_ref: str) -> Project:
        async with self._get_lock(project_id):
            project = await self.load(project_id)
            updated = document.remove_page(project, page_ref)
            await self._call(self._storage.save_project(updated))
        return updated

    async def update_settings(self, project_id: str, **changes: Any) -> Project:
        """Update project settings. Turning on white-label requires the plan feature."""
        async with self._get_lock(project_id):
            project = await self.load(project_id)
            if changes.get("white_label"):
                decision = await self._call(self._gate.check_feature_gate(project.customer_id, "white-label"))
                if not decision.allowed:
                    raise PlanDenied(decision.reason or "white-label not available")
            updated = document.update_settings(project, **changes)
            await self._call(self._storage.save_project(updated))
        return updated

    # -- operations --

    async def accept(self, changeset: Changeset, operation_id: str) -> AcceptResult:
        """
        Accept one operation: proposed → accepted → applied | rejected.

        Re-accepting an applied operation returns its recorded snapshot.
        Accepting a dismissed or rejected operation raises InvalidTransition.
        """
        record = changeset.get(operation_id)
        if record.status == APPLIED:
            return AcceptResult(operation_id=operation_id, status=APPLIED, project=record.result)

        changeset.accept(operation_id)

        async with self._get_lock(changeset.project_id):
            project, reason = await self._apply_locked(record.operation)

        if project is None:
            changeset.mark_rejected(operation_id, reason or "rejected")
            logger.info("rejected operation %s (%s): %s", operation_id, record.operation.type, reason)
            return AcceptResult(operation_id=operation_id, status=REJECTED, reason=reason)

        changeset.mark_applied(operation_id, project)
        logger.info("applied operation %s (%s) → version %s", operation_id, record.operation.type, project.version)
        return AcceptResult(operation_id=operation_id, status=APPLIED, project=project)

    async def dismiss(self, changeset: Changeset, operation_id: str) -> AcceptResult:
        """Discard a proposed operation. Never touches the document."""
        changeset.dismiss(operation_id)
        return AcceptResult(operation_id=operation_id, status=DISMISSED)

    async def apply_all(self, changeset: Changeset) -> ApplyResult:
        """
        Accept every still-pending operation in proposal order.

        Partial application: a rejection does not roll back operations
        applied before it, and later operations still get their turn.
        """
        applied: list[Operation] = []
        rejected: list[tuple[Operation, str]] = []
        project: Project | None = None

        for record in changeset.pending():
            result = await self.accept(changeset, record.operation.id)
            if result.status == APPLIED:
                applied.append(record.operation)
                project = result.project
            else:
                rejected.append((record.operation, result.reason or "rejected"))

        return ApplyResult(project=project, applied=applied, rejected=rejected)

    async def apply(self, project_id: str, operations: list[Operation]) -> ApplyResult:
        """Apply direct edits (no review step) with apply_all semantics."""
        return await self.apply_all(Changeset.from_operations(project_id, operations))

    async def _apply_locked(self, op: Operation) -> tuple[Project | None, str | None]:
        """load → gate → reduce → save. Caller holds the project lock."""
        try:
            project = await self.load(op.project_id)
        except ProjectNotFound as e:
            return None, f"{e.code}: Project '{op.project_id}' not found"
        if op.id in project.applied_operations:
            return project, None

        for feature in required_checks(project, op):
            decision = await self._call(self._gate.check_feature_gate(project.customer_id, feature))
            if not decision.allowed:
                return None, f"{PlanDenied.code}: {decision.reason}"

        result = reduce(project, op)
        if not result.applied:
            return None, result.error
        for warning in result.warnings:
            logger.warning("operation %s applied with %s: %s", op.id, warning.code, warning.message)

        await self._call(self._storage.save_project(result.snapshot))
        return result.snapshot, None

    # -- render --

    async def preview(self, project_id: str, page_ref: str) -> str:
        """Render one page of the working copy."""
        project = await self.load(project_id)
        settings = await self._call(self._gate.resolve_settings(project.customer_id, project.settings))
        return render(project, page_ref, options=self._render_options, settings=settings)

    async def publish(self, project_id: str) -> dict[str, str]:
        """Render every page and hand them to the published store."""
        async with self._get_lock(project_id):
            project = await self.load(project_id)
            settings = await self._call(self._gate.resolve_settings(project.customer_id, project.settings))
            pages = render_site(project, options=self._render_options, settings=settings)
            await self._call(self._storage.put_published(project.id, pages))

        logger.info("published project %s (%d pages)", project_id, len(pages))
        return pages
