"""
Website coach — the AI capability behind the builder.

Given a project snapshot, a page and a natural-language instruction, the
coach proposes a Changeset of operations the user can accept or dismiss one
by one. It also generates whole sites from a business description and SEO
metadata for existing sites.

The coach never applies anything. It does not care which AI backend is
active: with AI_PROVIDER=mock, or when a provider call fails, it answers
with deterministic offline responses.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import anthropic
import openai

from backend.services.ai_provider import AIProvider
from engine.builder.blocks import DEFAULT_BLOCK_STYLE, default_data, validate_block
from engine.builder.changeset import Changeset
from engine.builder.document import HOME_SLUG, find_page
from engine.builder.errors import BuilderError
from engine.builder.operations import operations_from_raw
from engine.builder.theme import preset_theme
from engine.builder.types import Block, Page, Project, Theme, generate_block_id, generate_id

logger = logging.getLogger(__name__)

# Provider failures that trigger the offline fallback
_PROVIDER_ERRORS = (anthropic.APIError, openai.APIError, ValueError)

DEFAULT_PAGES = ["Home", "About", "Services", "Contact"]
HISTORY_WINDOW = 10


# ---------------------------------------------------------------------------
# Prompt fragments
# ---------------------------------------------------------------------------

BLOCK_SCHEMA_DESCRIPTION = """\
Available block types (JSON, snake_case keys):
- "header": { logo_text, nav_links: [{label, href}], cta_text?, cta_link?, sticky? }
- "hero": { heading, subheading?, cta_text?, cta_link?, secondary_cta_text?, secondary_cta_link?, background_image?, layout: "simple"|"split"|"overlay", alignment: "left"|"center"|"right" }
- "text": { content: "plain text; **bold**, *italic* and [label](https://...) allowed" }
- "image": { src, alt, caption?, max_width: "sm"|"md"|"lg"|"full" }
- "features": { heading, subheading?, columns: 2-4, items: [{icon?, title, description}] }
- "cta": { heading, text?, button_text, button_link }
- "testimonials": { heading, layout: "cards"|"single", items: [{quote, name, role?, avatar?}] }
- "pricing": { heading, subheading?, columns: [{name, price, period?, features: [string], cta_text, cta_link, highlighted}] }
- "faq": { heading, items: [{question, answer}] }
- "gallery": { heading?, columns: 2-4, images: [{src, alt}] }
- "contact": { heading, show_form, email?, phone?, address? }
- "team": { heading, members: [{name, role, photo?, bio?}] }
- "stats": { items: [{value, label, prefix?, suffix?}] }
- "logo_cloud": { heading?, logos: [{src, alt, url?}] }
- "footer": { company_name, links: [[{label, href}]], copyright?, social_links: [{platform, url}] }

Each block: { "type": "block_type", "data": { ... }, "style": { "padding_y": "lg", "padding_x": "md", "max_width": "lg" } }
Links are absolute https URLs or site paths like "/about". Images are https URLs."""

OPERATION_FORMAT = """\
RESPONSE FORMAT (JSON only, no prose outside the object):
{
  "message": "Your conversational response to the user",
  "operations": [
    {"type": "add_block" | "update_block" | "remove_block" | "update_theme" | "update_seo",
     "description": "Human-readable description of the change",
     "payload": { ... }}
  ],
  "suggestions": ["Optional follow-up suggestions"]
}

Payloads:
- add_block: { "page": slug, "block": {type, data, style?}, "after_block_id"?: id }
- update_block: { "page": slug, "block_id": id, "data"?: partial data, "style"?: partial style }
- remove_block: { "page": slug, "block_id": id }
- update_theme: { "theme": { primary_color?, secondary_color?, accent_color?, bg_color?, text_color?, font_heading?, font_body?, spacing?, border_radius? } }
- update_seo: { "page"?: slug, "seo": { title?, description?, og_image? } }

If the user asks for advice (SEO, marketing, etc.), return "operations": [] and put advice in message and suggestions.
If the user asks for site changes, return them as operations the user can accept or dismiss."""


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class GenerateWebsiteInput:
    business_name: str
    business_type: str
    business_description: str | None = None
    style: str = "Professional"
    selected_pages: list[str] = field(default_factory=lambda: list(DEFAULT_PAGES))


@dataclass
class GeneratedWebsite:
    theme: Theme
    pages: list[Page]
    usage: dict[str, Any] | None = None


@dataclass
class CoachResponse:
    message: str
    changeset: Changeset
    suggestions: list[str] = field(default_factory=list)
    usage: dict[str, Any] | None = None


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")


def parse_json_object(text: str) -> dict[str, Any]:
    """
    Parse a model reply into a JSON object. Tolerates code fences and prose
    around the object. Raises ValueError when no object can be read.
    """
    stripped = _FENCE_RE.sub("", text.strip())
    start, end = stripped.find("{"), stripped.rfind("}")
    if start < 0 or end < start:
        raise ValueError("No JSON object in model response")
    parsed = json.loads(stripped[start : end + 1])
    if not isinstance(parsed, dict):
        raise ValueError("Model response is not a JSON object")
    return parsed


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "page"


def _href_for(name: str, home: bool) -> str:
    return "/" if home else f"/{slugify(name)}"


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if isinstance(v, str | int | float)]


def _site_outline(project: Project) -> str:
    lines = []
    for page in project.pages:
        blocks = ", ".join(f"{b.type}#{b.id}" for b in page.blocks)
        lines.append(f'- Page "{page.title}" (slug: {page.slug}): [{blocks}]')
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Coach
# ---------------------------------------------------------------------------


class WebsiteCoach:
    """AI website coach: proposes changesets, generates sites and SEO."""

    def __init__(
        self,
        provider: AIProvider | None = None,
        provider_name: str = "mock",
        model: str = "claude-sonnet-4-20250514",
    ) -> None:
        self.provider = provider
        self.provider_name = provider_name
        self.model = model

    @property
    def is_mock(self) -> bool:
        return self.provider is None or self.provider_name == "mock"

    async def _complete_json(
        self,
        system: str,
        messages: list[dict[str, Any]],
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        result = await self.provider.complete(
            self.provider_name,
            self.model,
            system,
            messages,
            max_tokens=max_tokens,
            temperature=temperature,
        )
        return parse_json_object(result["content"]), dict(result.get("usage") or {})

    # -- coach chat --

    async def coach_chat(
        self,
        project: Project,
        page_ref: str | None,
        instruction: str,
        history: list[dict[str, Any]] | None = None,
    ) -> CoachResponse:
        """
        Propose a changeset for `instruction` against the current snapshot.

        Args:
            project: Current project snapshot
            page_ref: Page the user is looking at (id or slug); None for home
            instruction: What the user asked for
            history: Prior chat turns ({role, content}); the last 10 are sent

        Returns:
            CoachResponse whose changeset holds only proposed operations
        """
        page = find_page(project, page_ref) if page_ref else project.home_page
        if self.is_mock:
            return self._mock_coach_chat(project, page, instruction)

        system = f"""You are an AI website coach for "{project.business_name}" ({project.business_type or "business"}).
You help the user improve their website AND give business advice.
The user is currently editing the page "{page.title}" (slug: {page.slug}).

Current site structure:
{_site_outline(project)}

{BLOCK_SCHEMA_DESCRIPTION}

{OPERATION_FORMAT}"""

        messages = [*(history or [])[-HISTORY_WINDOW:], {"role": "user", "content": instruction}]

        try:
            result, usage = await self._complete_json(system, messages)
        except _PROVIDER_ERRORS as e:
            logger.warning("coach chat failed, using offline response: %s", e)
            return self._mock_coach_chat(project, page, instruction)

        raw_ops = result.get("operations") if isinstance(result.get("operations"), list) else []
        operations = operations_from_raw(raw_ops, project)
        message = str(result.get("message") or "I processed your request.")
        suggestions = _string_list(result.get("suggestions"))
        return CoachResponse(
            message=message,
            changeset=Changeset.from_operations(project.id, operations, message, suggestions, usage),
            suggestions=suggestions,
            usage=usage,
        )

    # -- site generation --

    async def generate_website(self, request: GenerateWebsiteInput) -> GeneratedWebsite:
        """Generate a complete site (theme + pages of validated blocks)."""
        theme = preset_theme(request.style)
        if self.is_mock:
            return self._mock_generate_website(request)

        pages = request.selected_pages or DEFAULT_PAGES
        system = f"""You are an expert web designer AI. Generate a complete website as JSON.

{BLOCK_SCHEMA_DESCRIPTION}

RULES:
- Every page MUST start with a "header" block and end with a "footer" block
- The home page should have a "hero" block right after the header
- Use realistic, industry-appropriate content for a {request.business_type} business named "{request.business_name}"
- For images, use https://placehold.co/WIDTHxHEIGHT/COLOR/ffffff?text=LABEL
- Include 4-8 blocks per page (including header and footer)"""

        user = f"""Generate a website for:
Business: "{request.business_name}"
Type: {request.business_type}
Description: {request.business_description or "A " + request.business_type.lower() + " business"}
Style: {request.style}
Pages needed: {", ".join(pages)}

Return JSON: {{ "pages": [{{ "slug": "home", "title": "Home", "is_home_page": true, "show_in_nav": true, "blocks": [...] }}] }}"""

        try:
            result, usage = await self._complete_json(
                system, [{"role": "user", "content": user}], max_tokens=8192, temperature=0.7
            )
            generated = self._pages_from_raw(result.get("pages"))
        except _PROVIDER_ERRORS as e:
            logger.warning("site generation failed, using offline template: %s", e)
            return self._mock_generate_website(request)

        return GeneratedWebsite(theme=theme, pages=generated, usage=usage)

    def _pages_from_raw(self, raw_pages: Any) -> list[Page]:
        """
        Turn model output into valid pages. Invalid blocks are dropped,
        slugs are normalized and de-duplicated, and the first page becomes
        home when the model marked none. Raises ValueError if nothing usable
        is left.
        """
        if not isinstance(raw_pages, list) or not raw_pages:
            raise ValueError("Model returned no pages")

        pages: list[Page] = []
        seen: set[str] = set()
        home_taken = False
        for i, raw in enumerate(p for p in raw_pages if isinstance(p, dict)):
            is_home = bool(raw.get("is_home_page")) and not home_taken
            if is_home:
                slug = HOME_SLUG
            else:
                # "home" stays free for whichever page ends up as home
                base = slugify(str(raw.get("slug") or raw.get("title") or f"page-{i + 1}"))
                slug, n = base, i + 1
                while slug in seen or slug == HOME_SLUG:
                    slug = f"{base}-{n}"
                    n += 1
            seen.add(slug)
            home_taken = home_taken or is_home

            blocks: list[Block] = []
            for raw_block in raw.get("blocks") or []:
                if not isinstance(raw_block, dict):
                    continue
                try:
                    blocks.append(
                        validate_block(
                            Block(
                                id=generate_block_id(),
                                type=str(raw_block.get("type")),
                                data=raw_block.get("data") or {},
                                style=raw_block.get("style") or {},
                            )
                        )
                    )
                except BuilderError as e:
                    logger.warning("dropping generated %s block: %s", raw_block.get("type"), e)

            pages.append(
                Page(
                    id=generate_id("page"),
                    slug=slug,
                    title=str(raw.get("title") or slug.replace("-", " ").title()),
                    is_home_page=is_home,
                    show_in_nav=bool(raw.get("show_in_nav", True)),
                    blocks=tuple(blocks),
                )
            )

        if not pages:
            raise ValueError("Model returned no usable pages")
        if not home_taken:
            pages[0] = Page(
                id=pages[0].id,
                slug=HOME_SLUG,
                title=pages[0].title,
                is_home_page=True,
                show_in_nav=pages[0].show_in_nav,
                blocks=pages[0].blocks,
            )
        return pages

    # -- SEO --

    async def generate_seo(self, project: Project) -> CoachResponse:
        """Propose update_seo operations with a title and description per page."""
        if self.is_mock:
            seo = self._mock_seo(project)
            usage = None
        else:
            outline = ", ".join(f"{p.slug}: {p.title}" for p in project.pages)
            try:
                seo, usage = await self._complete_json(
                    "Generate SEO meta titles and descriptions for each page of a website. "
                    "Return JSON mapping page slug to { title, description }. "
                    "Titles should be 50-60 chars, descriptions 150-160 chars.",
                    [
                        {
                            "role": "user",
                            "content": f'Business: "{project.business_name}" ({project.business_type or "business"})\n'
                            f"Pages: {outline}",
                        }
                    ],
                    max_tokens=1024,
                    temperature=0.3,
                )
            except _PROVIDER_ERRORS as e:
                logger.warning("SEO generation failed, using offline metadata: %s", e)
                seo, usage = self._mock_seo(project), None

        raw_ops = []
        for page in project.pages:
            entry = seo.get(page.slug)
            if not isinstance(entry, dict):
                continue
            fields = {k: str(entry[k]) for k in ("title", "description") if entry.get(k)}
            if fields:
                raw_ops.append(
                    {
                        "type": "update_seo",
                        "description": f"Set SEO metadata for {page.title}",
                        "payload": {"page": page.slug, "seo": fields},
                    }
                )

        message = f"I drafted SEO titles and descriptions for {len(raw_ops)} page(s)."
        operations = operations_from_raw(raw_ops, project)
        return CoachResponse(
            message=message,
            changeset=Changeset.from_operations(project.id, operations, message, usage=usage),
            usage=usage,
        )

    # -----------------------------------------------------------------------
    # Offline responses
    # -----------------------------------------------------------------------

    def _mock_seo(self, project: Project) -> dict[str, dict[str, str]]:
        kind = (project.business_type or "business").lower()
        return {
            page.slug: {
                "title": f"{page.title} | {project.business_name}",
                "description": f"{page.title} page for {project.business_name}, a {kind} business.",
            }
            for page in project.pages
        }

    def _mock_coach_chat(self, project: Project, page: Page, instruction: str) -> CoachResponse:
        lower = instruction.lower()
        raw_ops: list[dict[str, Any]] = []

        if "testimonial" in lower or "review" in lower:
            payload: dict[str, Any] = {
                "page": page.slug,
                "block": {"type": "testimonials", "data": default_data("testimonials")},
            }
            footer_at = next((i for i, b in enumerate(page.blocks) if b.type == "footer"), None)
            if footer_at is not None:
                payload["index"] = footer_at
            raw_ops.append(
                {
                    "type": "add_block",
                    "description": f"Add testimonials section to {page.title}",
                    "payload": payload,
                }
            )
            message = (
                f"I'll add a testimonials section to {page.title}. "
                "This will help build trust with potential customers."
            )
            suggestions = [
                "Add customer photos for more authenticity",
                "Include star ratings",
                "Link to external review sites",
            ]
        elif "seo" in lower or "search" in lower:
            message = (
                "Here are my SEO recommendations for your site:\n\n"
                "1. **Meta descriptions**: add a unique description to each page (150-160 chars)\n"
                "2. **Heading structure**: give each page exactly one main heading\n"
                "3. **Image alt text**: describe every image\n"
                "4. **Internal linking**: cross-link related pages\n"
                "5. **Content length**: aim for 300+ words on key pages"
            )
            suggestions = ["Generate SEO meta tags for all pages", "Add a blog section for organic traffic"]
        elif "customer" in lower or "lead" in lower or "traffic" in lower:
            message = (
                "Here are strategies to attract more customers:\n\n"
                "1. **Social proof**: testimonials and case studies build trust\n"
                "2. **Strong call to action above the fold**: make your value clear immediately\n"
                "3. **Local SEO**: optimize for local search if you serve a specific area\n"
                "4. **Email capture**: offer something valuable in exchange for a signup"
            )
            suggestions = ["Add a testimonials section", "Create a lead capture CTA", "Start a blog page"]
        else:
            message = (
                "I'm your AI website coach! I can help you:\n\n"
                '- **Add sections**: "Add a testimonials section"\n'
                '- **Improve SEO**: "How\'s my SEO?"\n'
                '- **Business advice**: "How can I get more customers?"\n\n'
                "What would you like help with?"
            )
            suggestions = ["Add a testimonials section", "Improve my SEO", "How can I get more customers?"]

        operations = operations_from_raw(raw_ops, project)
        return CoachResponse(
            message=message,
            changeset=Changeset.from_operations(project.id, operations, message, suggestions),
            suggestions=suggestions,
        )

    def _mock_generate_website(self, request: GenerateWebsiteInput) -> GeneratedWebsite:
        names = request.selected_pages or DEFAULT_PAGES
        name = request.business_name or "My Business"
        kind = (request.business_type or "business").lower()
        home_name = "Home" if "Home" in names else names[0]
        nav = [{"label": n, "href": _href_for(n, n == home_name)} for n in names]

        def block(block_type: str, data: dict[str, Any], **style: Any) -> Block:
            return validate_block(
                Block(id=generate_block_id(), type=block_type, data=data, style={**DEFAULT_BLOCK_STYLE, **style})
            )

        pages: list[Page] = []
        for page_name in names:
            is_home = page_name == home_name
            blocks = [
                block(
                    "header",
                    {"logo_text": name, "nav_links": nav, "cta_text": "Get Started", "cta_link": _href_for("contact", False)},
                    padding_y="md",
                    max_width="xl",
                )
            ]
            blocks.extend(self._mock_page_body(page_name, is_home, name, kind, block))
            blocks.append(
                block(
                    "footer",
                    {
                        "company_name": name,
                        "links": [nav[:4]],
                        "copyright": f"© {datetime.now(UTC).year} {name}. All rights reserved.",
                    },
                    padding_y="md",
                    max_width="xl",
                )
            )
            pages.append(
                Page(
                    id=generate_id("page"),
                    slug=HOME_SLUG if is_home else slugify(page_name),
                    title=page_name,
                    is_home_page=is_home,
                    blocks=tuple(blocks),
                )
            )

        return GeneratedWebsite(theme=preset_theme(request.style), pages=pages)

    def _mock_page_body(self, page_name: str, is_home: bool, name: str, kind: str, block) -> list[Block]:
        if is_home:
            return [
                block(
                    "hero",
                    {
                        "heading": f"Welcome to {name}",
                        "subheading": f"Your trusted {kind} partner. Modern solutions for modern businesses.",
                        "cta_text": "Learn More",
                        "cta_link": "/about",
                    },
                    padding_y="xl",
                ),
                block(
                    "features",
                    {
                        "heading": "Why Choose Us",
                        "subheading": "We deliver excellence in every project.",
                        "columns": 3,
                        "items": [
                            {"icon": "zap", "title": "Fast & Efficient", "description": "We deliver results quickly without compromising quality."},
                            {"icon": "shield", "title": "Reliable & Trusted", "description": f"Years of experience serving the {kind} industry."},
                            {"icon": "users", "title": "Client-Focused", "description": "Your success is our top priority."},
                        ],
                    },
                ),
                block(
                    "cta",
                    {
                        "heading": "Ready to Get Started?",
                        "text": "Contact us today for a free consultation.",
                        "button_text": "Contact Us",
                        "button_link": "/contact",
                    },
                ),
            ]
        if page_name == "About":
            return [
                block("hero", {"heading": "About Us", "subheading": f"Learn about {name} and our mission."}),
                block(
                    "text",
                    {
                        "content": f"{name} was founded with a simple mission: to provide exceptional {kind} services "
                        "to our community. Our team brings years of experience and a passion for excellence to every project."
                    },
                    max_width="md",
                ),
                block(
                    "stats",
                    {
                        "items": [
                            {"value": "10", "label": "Years Experience", "suffix": "+"},
                            {"value": "500", "label": "Happy Clients", "suffix": "+"},
                            {"value": "98", "label": "Satisfaction", "suffix": "%"},
                        ]
                    },
                ),
            ]
        if page_name == "Services":
            return [
                block("hero", {"heading": "Our Services", "subheading": "Comprehensive solutions tailored to your needs."}),
                block(
                    "features",
                    {
                        "heading": "What We Offer",
                        "columns": 3,
                        "items": [
                            {"icon": "target", "title": "Consulting", "description": "Expert guidance to help you reach your goals."},
                            {"icon": "palette", "title": "Design", "description": "Beautiful solutions that represent your brand."},
                            {"icon": "code", "title": "Development", "description": "Custom built for your specific needs."},
                        ],
                    },
                ),
            ]
        if page_name == "Contact":
            return [block("contact", default_data("contact"))]
        if page_name in ("FAQ", "Testimonials", "Pricing"):
            block_type = {"FAQ": "faq", "Testimonials": "testimonials", "Pricing": "pricing"}[page_name]
            return [block(block_type, default_data(block_type))]
        return [
            block("hero", {"heading": page_name, "subheading": f"Learn more about our {page_name.lower()}."}),
            block(
                "text",
                {"content": f"Content for {page_name} coming soon. This page will be updated with relevant information."},
                max_width="md",
            ),
        ]
