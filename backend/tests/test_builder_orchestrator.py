"""Tests for the builder orchestrator: credit bracketing around coach calls."""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from backend.services.coach import GenerateWebsiteInput, WebsiteCoach
from backend.services.credits import CreditsDenied, MemoryCreditLedger, cost_from_usage
from backend.services.orchestrator import BuilderOrchestrator, estimate_input_tokens
from engine.builder.blocks import create_default
from engine.builder.errors import PlanDenied, ProjectNotFound
from engine.builder.types import APPLIED

CUSTOMER = "cust_backend"


async def make_site(assembly, customer_id=CUSTOMER):
    return await assembly.create_project(
        customer_id,
        "Acme Plumbing",
        "plumber",
        blocks=[create_default("header"), create_default("hero"), create_default("footer")],
    )


def test_input_estimate_includes_system_prompt():
    assert estimate_input_tokens() == 1800
    assert estimate_input_tokens("x" * 400, "y" * 400) == 2000


# ============================================================================
# propose
# ============================================================================


@pytest.mark.asyncio
async def test_propose_returns_reviewable_changeset(orchestrator, assembly):
    project = await make_site(assembly)

    response = await orchestrator.propose(CUSTOMER, project.id, "Add testimonials")

    changeset = response.changeset
    assert changeset.project_id == project.id
    assert len(changeset.operations) == 1
    # Nothing is applied until the operation is accepted
    assert (await assembly.load(project.id)).version == project.version

    result = await assembly.accept(changeset, changeset.operations[0].id)
    assert result.status == APPLIED
    assert [b.type for b in result.project.home_page.blocks] == ["header", "hero", "testimonials", "footer"]


@pytest.mark.asyncio
async def test_denied_reservation_skips_coach(assembly):
    coach = WebsiteCoach()
    coach.coach_chat = AsyncMock()
    orchestrator = BuilderOrchestrator(assembly, coach, MemoryCreditLedger())
    project = await make_site(assembly)

    with pytest.raises(CreditsDenied) as exc_info:
        await orchestrator.propose(CUSTOMER, project.id, "Add testimonials")

    assert "Insufficient credits" in str(exc_info.value)
    coach.coach_chat.assert_not_awaited()


@pytest.mark.asyncio
async def test_foreign_project_not_found(orchestrator, assembly):
    project = await make_site(assembly, "cust_other")
    with pytest.raises(ProjectNotFound):
        await orchestrator.propose(CUSTOMER, project.id, "Add testimonials")


@pytest.mark.asyncio
async def test_actual_usage_is_charged(assembly, ledger):
    usage = {"input_tokens": 1200, "output_tokens": 300}
    provider = AsyncMock()
    provider.complete.return_value = {"content": json.dumps({"message": "ok", "operations": []}), "usage": usage}
    coach = WebsiteCoach(provider, "anthropic", "claude-sonnet-4-20250514")
    orchestrator = BuilderOrchestrator(assembly, coach, ledger)
    project = await make_site(assembly)

    await orchestrator.propose(CUSTOMER, project.id, "hello")

    assert ledger.balances[CUSTOMER] == 1000 - cost_from_usage(coach.model, usage)
    assert ledger.holds == {}
    assert ledger.transactions[-1]["type"] == "ai_usage"


@pytest.mark.asyncio
async def test_timeout_settles_at_zero(assembly, ledger):
    async def slow_chat(*args, **kwargs):
        await asyncio.sleep(1)

    coach = WebsiteCoach()
    coach.coach_chat = slow_chat
    orchestrator = BuilderOrchestrator(assembly, coach, ledger, timeout=0.01)
    project = await make_site(assembly)

    with pytest.raises(TimeoutError):
        await orchestrator.propose(CUSTOMER, project.id, "Add testimonials")

    assert ledger.balances[CUSTOMER] == 1000
    assert ledger.holds == {}


@pytest.mark.asyncio
async def test_failed_call_settles_at_zero(assembly, ledger):
    coach = WebsiteCoach()
    coach.coach_chat = AsyncMock(side_effect=RuntimeError("provider down"))
    orchestrator = BuilderOrchestrator(assembly, coach, ledger)
    project = await make_site(assembly)

    with pytest.raises(RuntimeError):
        await orchestrator.propose(CUSTOMER, project.id, "hello")

    assert ledger.available(CUSTOMER) == 1000


@pytest.mark.asyncio
async def test_cancelled_call_releases_hold(assembly, ledger):
    started = asyncio.Event()

    async def hanging_chat(*args, **kwargs):
        started.set()
        await asyncio.sleep(60)

    coach = WebsiteCoach()
    coach.coach_chat = hanging_chat
    orchestrator = BuilderOrchestrator(assembly, coach, ledger, timeout=None)
    project = await make_site(assembly)

    task = asyncio.create_task(orchestrator.propose(CUSTOMER, project.id, "Add testimonials"))
    await started.wait()
    assert ledger.holds != {}
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert ledger.holds == {}
    assert ledger.available(CUSTOMER) == 1000
    assert ledger.balances[CUSTOMER] == 1000


# ============================================================================
# suggest_seo / generate_site
# ============================================================================


@pytest.mark.asyncio
async def test_suggest_seo_applies_through_assembly(orchestrator, assembly):
    project = await make_site(assembly)

    response = await orchestrator.suggest_seo(CUSTOMER, project.id)
    result = await assembly.apply_all(response.changeset)

    assert len(result.applied) == 1
    assert result.project.home_page.seo.title == "Home | Acme Plumbing"


@pytest.mark.asyncio
async def test_generate_site_creates_project(orchestrator, assembly):
    project = await orchestrator.generate_site(CUSTOMER, GenerateWebsiteInput("Acme Bakery", "Bakery"))

    stored = await assembly.load(project.id)
    assert stored.business_name == "Acme Bakery"
    assert [p.slug for p in stored.pages] == ["home", "about", "services", "contact"]


@pytest.mark.asyncio
async def test_generate_site_checks_limit_before_spending(assembly, ledger):
    coach = WebsiteCoach()
    orchestrator = BuilderOrchestrator(assembly, coach, ledger)
    await make_site(assembly)
    coach.generate_website = AsyncMock()

    # Starter plan allows a single site
    with pytest.raises(PlanDenied):
        await orchestrator.generate_site(CUSTOMER, GenerateWebsiteInput("Second", "Bakery"))

    coach.generate_website.assert_not_awaited()
    assert ledger.holds == {}
