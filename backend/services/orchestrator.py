"""Builder orchestrator — reserve credits, call the coach, settle, hand back the changeset."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import asyncpg

from backend.config import settings
from backend.services.ai_provider import AIProvider
from backend.services.coach import CoachResponse, GenerateWebsiteInput, WebsiteCoach
from backend.services.credits import (
    CreditLedger,
    CreditsDenied,
    MemoryCreditLedger,
    Reservation,
    cost_from_usage,
    estimate_cost,
)
from backend.services.postgres_credits import PostgresCreditLedger
from engine.builder.assembly import MemoryStorage, ProjectStorage, SiteAssembly
from engine.builder.errors import PlanDenied, ProjectNotFound
from engine.builder.plans import MemoryPlanStore, PlanGate, PlanStore
from engine.builder.postgres_storage import PostgresPlanStore, PostgresStorage
from engine.builder.types import Project, RenderOptions

logger = logging.getLogger(__name__)

# Rough size of the coach system prompt (schema description + format rules)
SYSTEM_PROMPT_TOKENS = 1800


def estimate_input_tokens(*texts: str) -> int:
    """~4 characters per token, plus the fixed system prompt."""
    return SYSTEM_PROMPT_TOKENS + sum(len(t) for t in texts) // 4


class BuilderOrchestrator:
    """
    The caller around every AI capability call.

    Each call is bracketed by the billing collaborator: reserve the
    estimated cost, make the (time-bounded) coach call, settle the actual
    cost. A denied reservation raises CreditsDenied before the coach is
    consulted. A failed, timed-out or cancelled call settles at zero and
    re-raises.

    Proposals come back as Changesets; nothing is applied here. The caller
    accepts operations through SiteAssembly.
    """

    def __init__(
        self,
        assembly: SiteAssembly,
        coach: WebsiteCoach,
        ledger: CreditLedger,
        timeout: float | None = 60.0,
        max_output_tokens: int = 4096,
    ) -> None:
        self.assembly = assembly
        self.coach = coach
        self.ledger = ledger
        self.timeout = timeout
        self.max_output_tokens = max_output_tokens

    async def _reserve(self, customer_id: str, *prompt_texts: str, output_tokens: int | None = None) -> Reservation:
        estimated = estimate_cost(
            self.coach.model,
            estimate_input_tokens(*prompt_texts),
            output_tokens or self.max_output_tokens,
        )
        reservation = await self.ledger.reserve(customer_id, estimated)
        if not reservation.allowed:
            logger.info("credit reservation denied for %s: %s", customer_id, reservation.reason)
            raise CreditsDenied(reservation.reason or "Insufficient credits")
        return reservation

    async def _metered(self, reservation: Reservation, awaitable) -> Any:
        """Run a coach call under the timeout, settling the reservation either way."""
        try:
            if self.timeout is None:
                result = await awaitable
            else:
                result = await asyncio.wait_for(awaitable, self.timeout)
        except BaseException:
            await self.ledger.settle(reservation, 0)
            raise

        actual = cost_from_usage(self.coach.model, result.usage)
        await self.ledger.settle(reservation, actual)
        logger.info(
            "AI call for %s settled at %s cents (reserved %s)",
            reservation.customer_id,
            actual,
            reservation.amount_cents,
        )
        return result

    async def _load_owned(self, customer_id: str, project_id: str) -> Project:
        project = await self.assembly.load(project_id)
        if project.customer_id != customer_id:
            raise ProjectNotFound(project_id)
        return project

    async def propose(
        self,
        customer_id: str,
        project_id: str,
        instruction: str,
        page_ref: str | None = None,
        history: list[dict[str, Any]] | None = None,
    ) -> CoachResponse:
        """
        Ask the coach for a changeset against the current snapshot.

        Args:
            customer_id: Who is paying for the call
            project_id: Target project (must belong to customer_id)
            instruction: The user's natural-language request
            page_ref: Page being edited (id or slug), None for home
            history: Prior chat turns

        Returns:
            CoachResponse with a Changeset of proposed operations

        Raises:
            CreditsDenied: reservation refused, no AI call made
            ProjectNotFound: unknown, deleted or foreign project
            TimeoutError: the coach call exceeded the timeout
        """
        project = await self._load_owned(customer_id, project_id)
        history_text = "".join(str(m.get("content", "")) for m in history or [])
        reservation = await self._reserve(customer_id, instruction, history_text, str(project.to_dict()))
        return await self._metered(
            reservation,
            self.coach.coach_chat(project, page_ref, instruction, history),
        )

    async def suggest_seo(self, customer_id: str, project_id: str) -> CoachResponse:
        """Changeset of update_seo operations, one per page."""
        project = await self._load_owned(customer_id, project_id)
        outline = " ".join(f"{p.slug} {p.title}" for p in project.pages)
        reservation = await self._reserve(customer_id, outline, output_tokens=1024)
        return await self._metered(reservation, self.coach.generate_seo(project))

    async def generate_site(self, customer_id: str, request: GenerateWebsiteInput) -> Project:
        """
        Generate and create a whole site. The site limit is checked before
        spending credits; create_project re-checks it (and the page limit)
        under the customer lock.
        """
        decision = await self.assembly.can_create_project(customer_id)
        if not decision.allowed:
            raise PlanDenied(decision.reason or "Site limit reached")

        reservation = await self._reserve(
            customer_id,
            request.business_name,
            request.business_description or "",
            " ".join(request.selected_pages),
            output_tokens=8192,
        )
        generated = await self._metered(reservation, self.coach.generate_website(request))
        return await self.assembly.create_project(
            customer_id,
            request.business_name,
            request.business_type,
            theme=generated.theme,
            pages=generated.pages,
        )


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def build_orchestrator(
    pool: asyncpg.Pool | None = None,
    ledger: CreditLedger | None = None,
) -> BuilderOrchestrator:
    """
    Assemble the orchestrator from settings.

    With a pool, projects, published pages, plans and credits live in
    Postgres; without one everything is in memory (development and tests).
    New credit accounts open with STARTER_CREDITS_CENTS.
    """
    storage: ProjectStorage
    plan_store: PlanStore
    if pool is not None:
        storage = PostgresStorage(pool)
        plan_store = PostgresPlanStore(pool)
        ledger = ledger or PostgresCreditLedger(pool, starter_cents=settings.STARTER_CREDITS_CENTS)
    else:
        storage = MemoryStorage()
        plan_store = MemoryPlanStore(storage=storage)
        ledger = ledger or MemoryCreditLedger(starter_cents=settings.STARTER_CREDITS_CENTS)

    provider = None if settings.AI_PROVIDER == "mock" else AIProvider()
    coach = WebsiteCoach(provider, settings.AI_PROVIDER, settings.COACH_MODEL)
    assembly = SiteAssembly(
        storage,
        PlanGate(plan_store),
        render_options=RenderOptions(brand_name=settings.BRAND_NAME, brand_url=settings.BRAND_URL),
    )
    return BuilderOrchestrator(assembly, coach, ledger, timeout=settings.AI_TIMEOUT_SECONDS)
