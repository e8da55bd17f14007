"""Tests for the website coach: offline responses, provider parsing and fallbacks."""

import json
from unittest.mock import AsyncMock

import pytest

from backend.services.coach import GenerateWebsiteInput, WebsiteCoach, parse_json_object, slugify
from engine.builder.reducer import reduce


def provider_returning(payload, usage=None):
    provider = AsyncMock()
    provider.complete.return_value = {
        "content": payload if isinstance(payload, str) else json.dumps(payload),
        "usage": usage or {"input_tokens": 1200, "output_tokens": 300},
    }
    return provider


# ============================================================================
# Parsing helpers
# ============================================================================


def test_parse_json_in_code_fence():
    assert parse_json_object('```json\n{"message": "hi"}\n```') == {"message": "hi"}


def test_parse_json_with_surrounding_prose():
    assert parse_json_object('Sure! {"a": {"b": 1}} Let me know.') == {"a": {"b": 1}}


@pytest.mark.parametrize("text", ["no json here", "[1, 2]", "{not json}"])
def test_parse_json_errors(text):
    with pytest.raises(ValueError):
        parse_json_object(text)


def test_slugify():
    assert slugify("Our Services!") == "our-services"
    assert slugify("!!!") == "page"


# ============================================================================
# Offline coach chat
# ============================================================================


@pytest.mark.asyncio
async def test_mock_testimonials_inserted_before_footer(project):
    response = await WebsiteCoach().coach_chat(project, None, "Add some customer reviews")

    ops = response.changeset.operations
    assert len(ops) == 1
    assert ops[0].type == "add_block"
    assert ops[0].payload["page"] == "home"
    assert ops[0].payload["index"] == 2
    assert ops[0].project_id == project.id

    result = reduce(project, ops[0])
    assert result.applied
    assert [b.type for b in result.snapshot.home_page.blocks] == ["header", "hero", "testimonials", "footer"]


@pytest.mark.asyncio
async def test_mock_advice_has_no_operations(project):
    response = await WebsiteCoach().coach_chat(project, None, "How can I get more customers?")
    assert response.changeset.operations == []
    assert "Add a testimonials section" in response.suggestions


@pytest.mark.asyncio
async def test_mock_help_by_default(project):
    response = await WebsiteCoach().coach_chat(project, "home", "hello")
    assert response.message.startswith("I'm your AI website coach!")
    assert response.usage is None


# ============================================================================
# Provider-backed coach chat
# ============================================================================


@pytest.mark.asyncio
async def test_provider_reply_becomes_changeset(project):
    provider = provider_returning(
        {
            "message": "Added a call to action.",
            "operations": [
                {
                    "type": "add_block",
                    "description": "Add CTA",
                    "payload": {"page": "home", "block": {"type": "cta"}, "index": 2},
                }
            ],
            "suggestions": ["Add photos"],
        }
    )
    coach = WebsiteCoach(provider, "anthropic", "claude-sonnet-4-20250514")

    response = await coach.coach_chat(project, None, "Add a CTA")

    assert response.message == "Added a call to action."
    assert response.suggestions == ["Add photos"]
    assert response.usage == {"input_tokens": 1200, "output_tokens": 300}
    assert response.changeset.usage == response.usage
    assert [op.description for op in response.changeset.operations] == ["Add CTA"]

    args = provider.complete.await_args.args
    assert args[0] == "anthropic"
    assert args[1] == "claude-sonnet-4-20250514"
    assert "Acme Plumbing" in args[2]


@pytest.mark.asyncio
async def test_history_window(project):
    provider = provider_returning({"message": "ok", "operations": []})
    coach = WebsiteCoach(provider, "openai", "gpt-4o")
    history = [{"role": "user", "content": f"turn {i}"} for i in range(15)]

    await coach.coach_chat(project, None, "latest", history)

    messages = provider.complete.await_args.args[3]
    assert len(messages) == 11
    assert messages[0]["content"] == "turn 5"
    assert messages[-1] == {"role": "user", "content": "latest"}


@pytest.mark.asyncio
async def test_provider_error_falls_back_offline(project):
    provider = AsyncMock()
    provider.complete.side_effect = ValueError("Unknown AI provider 'x'")
    coach = WebsiteCoach(provider, "anthropic")

    response = await coach.coach_chat(project, None, "add testimonials")

    assert response.usage is None
    assert response.changeset.operations[0].type == "add_block"


@pytest.mark.asyncio
async def test_unparseable_reply_falls_back_offline(project):
    coach = WebsiteCoach(provider_returning("I cannot help with that."), "anthropic")
    response = await coach.coach_chat(project, None, "hello")
    assert response.message.startswith("I'm your AI website coach!")


# ============================================================================
# Site generation
# ============================================================================


@pytest.mark.asyncio
async def test_mock_site_has_framed_pages():
    generated = await WebsiteCoach().generate_website(GenerateWebsiteInput("Acme", "Bakery", style="Bold"))

    assert [p.slug for p in generated.pages] == ["home", "about", "services", "contact"]
    assert [p.is_home_page for p in generated.pages] == [True, False, False, False]
    for page in generated.pages:
        assert page.blocks[0].type == "header"
        assert page.blocks[-1].type == "footer"
    assert generated.usage is None


def test_pages_from_raw_drops_invalid_blocks_and_picks_home():
    pages = WebsiteCoach()._pages_from_raw(
        [
            {
                "slug": "about",
                "title": "About",
                "blocks": [
                    {"type": "hero", "data": {"heading": "Hi"}},
                    {"type": "carousel"},
                    {"type": "hero", "data": {}},
                    "junk",
                ],
            },
            {"title": "Contact Us", "blocks": []},
            {"slug": "contact-us", "title": "Contact again"},
        ]
    )

    assert [p.slug for p in pages] == ["home", "contact-us", "contact-us-3"]
    assert pages[0].is_home_page
    assert [b.type for b in pages[0].blocks] == ["hero"]
    assert pages[1].title == "Contact Us"


@pytest.mark.asyncio
async def test_pages_from_raw_renamed_slugs_stay_unique(assembly):
    pages = WebsiteCoach()._pages_from_raw(
        [
            {"slug": "about-3", "title": "Team"},
            {"slug": "about", "title": "About"},
            {"slug": "about", "title": "About again"},
            {"slug": "landing", "title": "Welcome", "is_home_page": True},
        ]
    )

    assert [p.slug for p in pages] == ["about-3", "about", "about-4", "home"]
    project = await assembly.create_project("cust_slugs", "Acme", pages=pages)
    assert len(project.pages) == 4


def test_pages_from_raw_keeps_home_slug_for_home_page():
    pages = WebsiteCoach()._pages_from_raw(
        [
            {"title": "Home"},
            {"title": "Start", "is_home_page": True},
        ]
    )

    assert [p.slug for p in pages] == ["home-1", "home"]
    assert pages[1].is_home_page


@pytest.mark.parametrize("raw", [None, [], ["not a page"]])
def test_pages_from_raw_rejects_empty(raw):
    with pytest.raises(ValueError):
        WebsiteCoach()._pages_from_raw(raw)


@pytest.mark.asyncio
async def test_generated_pages_from_provider():
    provider = provider_returning(
        {
            "pages": [
                {"slug": "home", "title": "Home", "is_home_page": True, "blocks": [{"type": "hero", "data": {"heading": "Fresh bread"}}]},
                {"slug": "menu", "title": "Menu", "blocks": [{"type": "text", "data": {"content": "Sourdough"}}]},
            ]
        }
    )
    coach = WebsiteCoach(provider, "anthropic")

    generated = await coach.generate_website(GenerateWebsiteInput("Acme", "Bakery", selected_pages=["Home", "Menu"]))

    assert [p.slug for p in generated.pages] == ["home", "menu"]
    assert generated.usage["output_tokens"] == 300
    assert provider.complete.await_args.kwargs["max_tokens"] == 8192


# ============================================================================
# SEO
# ============================================================================


@pytest.mark.asyncio
async def test_mock_seo_one_operation_per_page(project):
    response = await WebsiteCoach().generate_seo(project)

    ops = response.changeset.operations
    assert [op.type for op in ops] == ["update_seo"]
    assert ops[0].payload == {
        "page": "home",
        "seo": {
            "title": "Home | Acme Plumbing",
            "description": "Home page for Acme Plumbing, a plumber business.",
        },
    }
    assert reduce(project, ops[0]).applied


@pytest.mark.asyncio
async def test_provider_seo_skips_unknown_pages(project):
    provider = provider_returning({"home": {"title": "Acme | Plumbers"}, "blog": {"title": "Blog"}})
    response = await WebsiteCoach(provider, "openai", "gpt-4o").generate_seo(project)

    ops = response.changeset.operations
    assert len(ops) == 1
    assert ops[0].payload["seo"] == {"title": "Acme | Plumbers"}
    assert response.message == "I drafted SEO titles and descriptions for 1 page(s)."
