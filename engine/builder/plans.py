"""
Site Builder — Plan Enforcement Gate

Predicates over a customer's builder subscription. The gate never mutates
anything; it reads plan and usage from a PlanStore and answers allowed /
denied with a human-readable upgrade prompt.

Unknown or missing plans are treated as starter.
"""

from __future__ import annotations

from dataclasses import dataclass

from engine.builder.types import GateDecision, ProjectSettings


@dataclass(frozen=True)
class PlanLimits:
    max_sites: int
    max_pages_per_site: int
    features: frozenset[str]

    def has(self, feature: str) -> bool:
        return feature in self.features


_BASE_FEATURES = frozenset({"templates", "seo", "forms"})
_PRO_FEATURES = _BASE_FEATURES | {"custom-code", "analytics", "custom-domain", "ecommerce"}
_AGENCY_FEATURES = _PRO_FEATURES | {"white-label", "client-management"}

BUILDER_PLANS: dict[str, PlanLimits] = {
    "starter": PlanLimits(max_sites=1, max_pages_per_site=5, features=_BASE_FEATURES),
    "pro": PlanLimits(max_sites=5, max_pages_per_site=20, features=_PRO_FEATURES),
    "agency": PlanLimits(max_sites=50, max_pages_per_site=100, features=_AGENCY_FEATURES),
}

DEFAULT_PLAN = "starter"


def get_plan_limits(plan: str | None) -> PlanLimits:
    return BUILDER_PLANS.get(plan or DEFAULT_PLAN, BUILDER_PLANS[DEFAULT_PLAN])


# ---------------------------------------------------------------------------
# Plan store protocol
# ---------------------------------------------------------------------------


class PlanStore:
    """
    Read-only view of subscriptions and usage.
    Subclass for Postgres; MemoryPlanStore for tests.
    """

    async def get_plan(self, customer_id: str) -> str | None:
        raise NotImplementedError

    async def count_sites(self, customer_id: str) -> int:
        """Live (not soft-deleted) projects owned by the customer."""
        raise NotImplementedError

    async def count_pages(self, project_id: str) -> int:
        raise NotImplementedError


class MemoryPlanStore(PlanStore):
    """
    In-memory plan store. Usage counts are read from a ProjectStorage so
    the store shares state with MemoryStorage.
    """

    def __init__(self, plans: dict[str, str] | None = None, storage=None):
        self.plans: dict[str, str] = dict(plans or {})
        self.storage = storage

    def set_plan(self, customer_id: str, plan: str) -> None:
        self.plans[customer_id] = plan

    async def get_plan(self, customer_id: str) -> str | None:
        return self.plans.get(customer_id)

    async def count_sites(self, customer_id: str) -> int:
        if self.storage is None:
            return 0
        return await self.storage.count_projects(customer_id)

    async def count_pages(self, project_id: str) -> int:
        if self.storage is None:
            return 0
        project = await self.storage.load_project(project_id)
        return len(project.pages) if project else 0


# ---------------------------------------------------------------------------
# Gate
# ---------------------------------------------------------------------------


class PlanGate:
    def __init__(self, store: PlanStore):
        self.store = store

    async def limits_for(self, customer_id: str) -> PlanLimits:
        return get_plan_limits(await self.store.get_plan(customer_id))

    async def check_site_limit(self, customer_id: str) -> GateDecision:
        limits = await self.limits_for(customer_id)
        count = await self.store.count_sites(customer_id)
        if count >= limits.max_sites:
            return GateDecision(
                allowed=False,
                reason=(
                    f"You have reached the limit of {limits.max_sites} site(s) on your current plan. "
                    "Please upgrade to create more."
                ),
            )
        return GateDecision(allowed=True)

    async def check_page_limit(self, customer_id: str, project_id: str) -> GateDecision:
        """May one more page be added to an existing project?"""
        count = await self.store.count_pages(project_id)
        return await self.check_page_count(customer_id, count + 1)

    async def check_page_count(self, customer_id: str, total: int) -> GateDecision:
        """May a site hold `total` pages?"""
        limits = await self.limits_for(customer_id)
        if total > limits.max_pages_per_site:
            return GateDecision(
                allowed=False,
                reason=(
                    f"You have reached the limit of {limits.max_pages_per_site} page(s) per site on your "
                    "current plan. Please upgrade to add more."
                ),
            )
        return GateDecision(allowed=True)

    async def check_feature_gate(self, customer_id: str, feature: str) -> GateDecision:
        limits = await self.limits_for(customer_id)
        if not limits.has(feature):
            return GateDecision(
                allowed=False,
                reason=f'The "{feature}" feature is not available on your current plan. Please upgrade to access it.',
            )
        return GateDecision(allowed=True)

    async def resolve_settings(self, customer_id: str, settings: ProjectSettings) -> ProjectSettings:
        """
        Settings the renderer may honor under the customer's current plan.
        Removing the "Powered by" branding requires the white-label feature;
        favicon and footer text pass through.
        """
        limits = await self.limits_for(customer_id)
        if settings.white_label and not limits.has("white-label"):
            return ProjectSettings(
                white_label=False,
                custom_favicon=settings.custom_favicon,
                custom_footer_text=settings.custom_footer_text,
            )
        return settings
