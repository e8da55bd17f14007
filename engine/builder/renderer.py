"""
Site Builder — Renderer

Pure function: (project, page, theme?, options?, settings?) → HTML string
No AI. No IO. Deterministic: same input → same output, always.

Output is a standalone HTML document: inline CSS generated from the
resolved theme, no scripts except custom-code supplied by the site owner.

Each block type has a mustache template (rendered with chevron) and a
context builder that turns validated block data into template values. A
block that fails to render is replaced with a placeholder comment; the
rest of the page is unaffected.
"""

from __future__ import annotations

import hashlib
import logging
import re
from html import escape as _html_escape
from typing import Any
from urllib.parse import quote_plus

import chevron

from engine.builder.document import find_page
from engine.builder.errors import RenderFault
from engine.builder.theme import SPACING_SCALE, apply_theme, css_color
from engine.builder.types import (
    Block,
    Page,
    Project,
    ProjectSettings,
    RenderOptions,
    ResolvedTheme,
    Theme,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def render(
    project: Project,
    page: Page | str,
    theme: Theme | None = None,
    options: RenderOptions | None = None,
    settings: ProjectSettings | None = None,
) -> str:
    """
    Render one page of a project to a complete HTML document.

    `theme` defaults to the project theme; `settings` should be the
    plan-resolved settings (PlanGate.resolve_settings) and defaults to the
    project's stored settings.
    """
    ctx = _RenderContext(
        project=project,
        page=find_page(project, page) if isinstance(page, str) else page,
        theme=apply_theme(theme if theme is not None else project.theme),
        options=options or RenderOptions(),
        settings=settings if settings is not None else project.settings,
    )
    return _render_html(ctx)


def render_site(
    project: Project,
    theme: Theme | None = None,
    options: RenderOptions | None = None,
    settings: ProjectSettings | None = None,
) -> dict[str, str]:
    """Render every page. Returns {slug: html} in page order."""
    return {p.slug: render(project, p, theme, options, settings) for p in project.pages}


def render_block(
    block: Block,
    project: Project,
    page: Page | None = None,
    options: RenderOptions | None = None,
) -> str:
    """Render a single block fragment (editor preview)."""
    ctx = _RenderContext(
        project=project,
        page=page or project.home_page or project.pages[0],
        theme=apply_theme(project.theme),
        options=options or RenderOptions(),
        settings=project.settings,
    )
    return _render_block(block, ctx)


def content_hash(html: str) -> str:
    """SHA-256 of rendered output, for change detection and cache keys."""
    return "sha256:" + hashlib.sha256(html.encode("utf-8")).hexdigest()


def page_path(page: Page, base_path: str = "/") -> str:
    """Public URL path of a page. The home page lives at the base path."""
    base = base_path if base_path.endswith("/") else base_path + "/"
    return base if page.is_home_page else f"{base}{page.slug}"


# ---------------------------------------------------------------------------
# Render context
# ---------------------------------------------------------------------------


class _RenderContext:
    __slots__ = ("project", "page", "theme", "options", "settings")

    def __init__(
        self,
        project: Project,
        page: Page,
        theme: ResolvedTheme,
        options: RenderOptions,
        settings: ProjectSettings,
    ):
        self.project = project
        self.page = page
        self.theme = theme
        self.options = options
        self.settings = settings

    def nav_items(self) -> list[dict[str, Any]]:
        return [
            {
                "label": p.title,
                "href": page_path(p, self.options.base_path),
                "current": p.id == self.page.id,
            }
            for p in self.project.pages
            if p.show_in_nav
        ]


# ---------------------------------------------------------------------------
# CSS
# ---------------------------------------------------------------------------

BASE_CSS = """\
*,*::before,*::after{box-sizing:border-box;margin:0;padding:0}
body{font-family:var(--font-body);color:var(--text);background:var(--bg);line-height:1.6;-webkit-font-smoothing:antialiased}
h1,h2,h3,h4{font-family:var(--font-heading);line-height:1.2;font-weight:700}
h1{font-size:clamp(2rem,5vw,3.5rem)}
h2{font-size:clamp(1.5rem,3vw,2.25rem);margin-bottom:0.5em}
h3{font-size:1.25rem}
p{margin-bottom:1em}
a{color:var(--primary);text-decoration:none}
a:hover{text-decoration:underline}
img{max-width:100%;height:auto;display:block}
.section{padding:calc(4rem*var(--space)) 1.5rem}
.section--sm{padding:calc(2rem*var(--space)) 1.5rem}
.section--xl{padding:calc(6rem*var(--space)) 1.5rem}
.py-none{padding-top:0;padding-bottom:0}
.py-sm{padding-top:calc(2rem*var(--space));padding-bottom:calc(2rem*var(--space))}
.py-md{padding-top:calc(3rem*var(--space));padding-bottom:calc(3rem*var(--space))}
.py-lg{padding-top:calc(4rem*var(--space));padding-bottom:calc(4rem*var(--space))}
.py-xl{padding-top:calc(6rem*var(--space));padding-bottom:calc(6rem*var(--space))}
.px-none{padding-left:0;padding-right:0}
.px-sm{padding-left:0.75rem;padding-right:0.75rem}
.px-md{padding-left:1.5rem;padding-right:1.5rem}
.px-lg{padding-left:2.5rem;padding-right:2.5rem}
.px-xl{padding-left:4rem;padding-right:4rem}
.container{max-width:1140px;margin:0 auto;width:100%}
.container--sm{max-width:720px}
.container--md{max-width:960px}
.container--xl{max-width:1320px}
.container--full{max-width:100%}
.btn{display:inline-block;padding:0.75rem 1.75rem;border-radius:var(--radius);font-weight:600;font-size:0.95rem;cursor:pointer;border:none}
.btn--primary{background:var(--primary);color:#fff}
.btn--secondary{background:var(--secondary);color:#fff}
.btn--outline{border:2px solid var(--primary);color:var(--primary);background:transparent}
.btn--light{background:#fff;color:var(--primary)}
.text-center{text-align:center}
.text-left{text-align:left}
.text-right{text-align:right}
.grid{display:grid;gap:1.5rem}
.grid-1{grid-template-columns:1fr}
.grid-2{grid-template-columns:repeat(2,1fr)}
.grid-3{grid-template-columns:repeat(3,1fr)}
.grid-4{grid-template-columns:repeat(4,1fr)}
.flex{display:flex;gap:1rem}
.flex-between{justify-content:space-between;align-items:center}
.flex-center{justify-content:center;align-items:center}
.card{background:#fff;border-radius:var(--radius);padding:1.5rem;box-shadow:0 1px 3px rgba(0,0,0,0.08)}
.card--bordered{border:1px solid #e5e7eb}
.card--highlighted{border:2px solid var(--primary);position:relative}
.card--highlighted::before{content:'Popular';position:absolute;top:-12px;left:50%;transform:translateX(-50%);background:var(--primary);color:#fff;padding:2px 12px;border-radius:99px;font-size:0.75rem;font-weight:600}
.muted{color:#6b7280}
.small{font-size:0.875rem}
.site-header{background:var(--primary);color:#fff;padding:1rem 1.5rem}
.site-header--sticky{position:sticky;top:0;z-index:10}
.site-header a{color:inherit}
.site-nav{display:flex;gap:1.5rem;align-items:center}
.site-nav a[aria-current="page"]{font-weight:700;text-decoration:underline}
.site-footer{background:var(--primary);color:rgba(255,255,255,0.85);padding:3rem 1.5rem}
.site-footer a{color:rgba(255,255,255,0.7);font-size:0.9rem}
.site-credit{margin-top:1rem;font-size:0.7rem;opacity:0.6;text-align:center}
.contact-form label{display:block;font-weight:500;margin-bottom:0.25rem}
.contact-form input,.contact-form textarea{width:100%;padding:0.75rem;border:1px solid #e5e7eb;border-radius:var(--radius);font-size:1rem;margin-bottom:1rem}
details{border-bottom:1px solid #e5e7eb;padding:1rem 0}
summary{cursor:pointer;font-weight:600;font-size:1.05rem}
@media(max-width:768px){
  .grid-2,.grid-3,.grid-4{grid-template-columns:1fr}
  .section{padding:3rem 1rem}
  .flex{flex-wrap:wrap}
}"""


def _render_css(theme: ResolvedTheme) -> str:
    """Theme variables + base stylesheet."""
    space = SPACING_SCALE.get(theme.spacing, 1.0)
    root = (
        ":root{"
        f"--primary:{theme.primary_color};--secondary:{theme.secondary_color};--accent:{theme.accent_color};"
        f"--bg:{theme.bg_color};--text:{theme.text_color};--radius:{theme.border_radius}px;--space:{space};"
        f"--font-heading:'{theme.font_heading}',system-ui,sans-serif;"
        f"--font-body:'{theme.font_body}',system-ui,sans-serif"
        "}"
    )
    return root + "\n" + BASE_CSS


def _fonts_link(theme: ResolvedTheme) -> str:
    families = []
    for font, weights in ((theme.font_heading, "400;600;700;800"), (theme.font_body, "400;500;600")):
        family = f"family={quote_plus(font)}:wght@{weights}"
        if family not in families:
            families.append(family)
    href = "https://fonts.googleapis.com/css2?" + "&".join(families) + "&display=swap"
    return f'  <link href="{escape(href)}" rel="stylesheet">'


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------


def _render_html(ctx: _RenderContext) -> str:
    project, page, opts = ctx.project, ctx.page, ctx.options
    visible = [b for b in page.blocks if not b.hidden]

    head_code: list[str] = []
    body_end_code: list[str] = []
    body_blocks: list[Block] = []
    for block in visible:
        position = block.data.get("position") if block.type == "custom_code" else None
        if position == "head":
            head_code.append(_custom_code_html(block.data))
        elif position == "body_end":
            body_end_code.append(_custom_code_html(block.data))
        else:
            body_blocks.append(block)

    seo = project.seo.merged(page.seo)
    title = seo.title or project.business_name
    if not page.is_home_page and not (page.seo and page.seo.title):
        title = f"{page.title} | {title}"
    description = seo.description or project.business_name

    parts: list[str] = []
    parts.append("<!DOCTYPE html>")
    parts.append(f'<html lang="{escape(opts.lang)}">')
    parts.append("<head>")
    parts.append('  <meta charset="utf-8">')
    parts.append('  <meta name="viewport" content="width=device-width, initial-scale=1">')
    parts.append(f"  <title>{escape(title)}</title>")
    parts.append(f'  <meta name="description" content="{escape(description)}">')
    parts.append(_render_og_tags(title, description, seo.og_image))

    if ctx.settings.custom_favicon:
        parts.append(f'  <link rel="icon" href="{escape(ctx.settings.custom_favicon)}">')

    if opts.include_fonts:
        parts.append('  <link rel="preconnect" href="https://fonts.googleapis.com">')
        parts.append('  <link rel="preconnect" href="https://fonts.gstatic.com" crossorigin>')
        parts.append(_fonts_link(ctx.theme))

    parts.append("  <style>")
    parts.append(_render_css(ctx.theme))
    parts.append("  </style>")
    parts.extend(head_code)
    parts.append("</head>")
    parts.append("<body>")

    if not any(b.type == "header" for b in body_blocks):
        parts.append(_render_site_nav(ctx))

    parts.append("<main>")
    for block in body_blocks:
        if block.type != "footer":
            parts.append(_render_block(block, ctx))
    parts.append("</main>")

    footers = [b for b in body_blocks if b.type == "footer"]
    for block in footers:
        parts.append(_render_block(block, ctx))
    if not footers:
        parts.append(_render_credit(ctx))

    parts.extend(body_end_code)
    parts.append("</body>")
    parts.append("</html>")

    return "\n".join(p for p in parts if p)


def _render_og_tags(title: str, description: str, og_image: str | None) -> str:
    lines = [
        f'  <meta property="og:title" content="{escape(title)}">',
        f'  <meta property="og:description" content="{escape(description)}">',
        '  <meta property="og:type" content="website">',
    ]
    if og_image:
        lines.append(f'  <meta property="og:image" content="{escape(og_image)}">')
    return "\n".join(lines)


_SITE_NAV_TEMPLATE = """\
<header class="site-header">
  <div class="container container--xl flex flex-between">
    <strong>{{business_name}}</strong>
    <nav class="site-nav" aria-label="Site">{{#nav}}<a href="{{href}}"{{#current}} aria-current="page"{{/current}}>{{label}}</a>{{/nav}}</nav>
  </div>
</header>"""


def _render_site_nav(ctx: _RenderContext) -> str:
    return chevron.render(_SITE_NAV_TEMPLATE, {"business_name": ctx.project.business_name, "nav": ctx.nav_items()})


_CREDIT_TEMPLATE = """\
<footer class="site-credit">{{#footer_text}}<p>{{footer_text}}</p>{{/footer_text}}\
{{#show_credit}}<p>Powered by <a href="{{brand_url}}">{{brand_name}}</a></p>{{/show_credit}}</footer>"""


def _credit_context(ctx: _RenderContext) -> dict[str, Any]:
    return {
        "footer_text": ctx.settings.custom_footer_text,
        "show_credit": not ctx.settings.white_label,
        "brand_name": ctx.options.brand_name,
        "brand_url": ctx.options.brand_url,
    }


def _render_credit(ctx: _RenderContext) -> str:
    context = _credit_context(ctx)
    if not context["footer_text"] and not context["show_credit"]:
        return ""
    return chevron.render(_CREDIT_TEMPLATE, context)


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------


def _placeholder(block: Block) -> str:
    safe_id = re.sub(r"[^A-Za-z0-9_]", "", block.id)
    return f"<!-- block {safe_id} unavailable -->"


def _render_block(block: Block, ctx: _RenderContext) -> str:
    """Render one block. Faults are logged and masked to a placeholder."""
    try:
        if block.type == "custom_code":
            return _custom_code_html(block.data)
        entry = _BLOCKS.get(block.type)
        if entry is None:
            raise RenderFault(f"Unknown block type: {block.type}")
        template, build_context, wrap = entry
        inner = chevron.render(template, build_context(block, ctx))
        if not wrap:
            return inner
        return _wrap_section(block, inner, ctx)
    except Exception as e:
        logger.warning("render fault in block %s (%s): %s", block.id, block.type, e)
        return _placeholder(block)


_SECTION_TEMPLATE = """\
<section class="{{classes}}" id="{{id}}" data-block-type="{{type}}"{{#style}} style="{{style}}"{{/style}}>
  <div class="{{container}}">
{{{inner}}}
  </div>
</section>"""

_SECTION_SIZE: dict[str, str] = {"hero": "section section--xl", "logo_cloud": "section section--sm"}


def _section_style(style: dict[str, Any]) -> str:
    rules = []
    if style.get("background_color"):
        rules.append(f"background-color:{css_color(style['background_color'])}")
    if style.get("text_color"):
        rules.append(f"color:{css_color(style['text_color'])}")
    return ";".join(rules)


def _wrap_section(block: Block, inner: str, ctx: _RenderContext) -> str:
    style = block.style
    classes = [_SECTION_SIZE.get(block.type, "section")]
    if style.get("padding_y"):
        classes.append(f"py-{style['padding_y']}")
    if style.get("padding_x"):
        classes.append(f"px-{style['padding_x']}")
    width = style.get("max_width", "lg")
    container = "container" if width == "lg" else f"container container--{width}"
    return chevron.render(
        _SECTION_TEMPLATE,
        {
            "classes": " ".join(classes),
            "id": block.id,
            "type": block.type,
            "style": _section_style(style),
            "container": container,
            "inner": inner,
        },
    )


def _clamp_columns(n: Any) -> int:
    return min(max(int(n or 3), 2), 4)


def _grid_for(count: int) -> int:
    return min(max(count, 1), 4)


# -- header / footer ---------------------------------------------------------

_HEADER = """\
<header class="site-header{{#sticky}} site-header--sticky{{/sticky}}" id="{{id}}">
  <div class="container container--xl flex flex-between">
    {{#logo}}<a href="{{home}}"><img src="{{logo}}" alt="{{name}}" style="max-height:40px"></a>{{/logo}}\
{{^logo}}<strong>{{name}}</strong>{{/logo}}
    <nav class="site-nav" aria-label="Site">{{#nav}}<a href="{{href}}"{{#current}} aria-current="page"{{/current}}>{{label}}</a>{{/nav}}\
{{#cta_text}}<a href="{{cta_link}}" class="btn btn--light">{{cta_text}}</a>{{/cta_text}}</nav>
  </div>
</header>"""


def _header_nav(links: list[dict[str, str]], ctx: _RenderContext) -> list[dict[str, Any]]:
    """
    Site pages come from the page list (order, show_in_nav, current page).
    A header's own links only add off-site targets and anchors; site paths
    in them are superseded by the page list.
    """
    nav = ctx.nav_items()
    for link in links:
        href = link["href"]
        if href.startswith("/") and not href.startswith("//"):
            continue
        nav.append({"label": link["label"], "href": href, "current": False})
    return nav


def _header_context(block: Block, ctx: _RenderContext) -> dict[str, Any]:
    d = block.data
    nav = _header_nav(d.get("nav_links") or [], ctx)
    return {
        "id": block.id,
        "name": d.get("logo_text") or ctx.project.business_name,
        "logo": d.get("logo"),
        "home": ctx.options.base_path,
        "nav": nav,
        "cta_text": d.get("cta_text"),
        "cta_link": d.get("cta_link") or "#",
        "sticky": d.get("sticky", False),
    }


_FOOTER = """\
<footer class="site-footer" id="{{id}}">
  <div class="container container--xl">
    <div class="flex flex-between">
      <strong style="color:#fff">{{company_name}}</strong>
      <div class="flex">{{#groups}}<div class="flex">{{#links}}<a href="{{href}}">{{label}}</a>{{/links}}</div>{{/groups}}</div>
    </div>
    {{#social}}<div class="flex flex-center">{{#social_links}}<a href="{{url}}" rel="noopener">{{platform}}</a>{{/social_links}}</div>{{/social}}
    {{#copyright}}<p class="small text-center" style="margin-top:2rem;opacity:0.6">{{copyright}}</p>{{/copyright}}
    {{#footer_text}}<p class="small text-center" style="opacity:0.5">{{footer_text}}</p>{{/footer_text}}
    {{#show_credit}}<p class="site-credit">Powered by <a href="{{brand_url}}">{{brand_name}}</a></p>{{/show_credit}}
  </div>
</footer>"""


def _footer_context(block: Block, ctx: _RenderContext) -> dict[str, Any]:
    d = block.data
    context = _credit_context(ctx)
    context.update(
        {
            "id": block.id,
            "company_name": d.get("company_name") or ctx.project.business_name,
            "groups": [{"links": group} for group in d.get("links", [])],
            "social": bool(d.get("social_links")),
            "social_links": d.get("social_links", []),
            "copyright": d.get("copyright"),
        }
    )
    return context


# -- content blocks ----------------------------------------------------------

_HERO = """\
{{#background_image}}<div style="background-image:url('{{background_image}}');background-size:cover;background-position:center;padding:4rem 0">{{/background_image}}
<div class="text-{{alignment}}{{#overlay}} hero-overlay{{/overlay}}"{{#overlay}} style="background:rgba(0,0,0,0.5);padding:3rem;border-radius:var(--radius);color:#fff"{{/overlay}}>
  <h1>{{heading}}</h1>
  {{#subheading}}<p style="font-size:1.2rem;margin:1rem auto 2rem;max-width:640px;opacity:0.85">{{subheading}}</p>{{/subheading}}
  {{#cta_text}}<a href="{{cta_link}}" class="btn btn--primary">{{cta_text}}</a>{{/cta_text}}
  {{#secondary_cta_text}}<a href="{{secondary_cta_link}}" class="btn btn--outline">{{secondary_cta_text}}</a>{{/secondary_cta_text}}
</div>
{{#background_image}}</div>{{/background_image}}"""


def _hero_context(block: Block, ctx: _RenderContext) -> dict[str, Any]:
    d = block.data
    return {
        "heading": d["heading"],
        "subheading": d.get("subheading"),
        "cta_text": d.get("cta_text"),
        "cta_link": d.get("cta_link") or "#",
        "secondary_cta_text": d.get("secondary_cta_text"),
        "secondary_cta_link": d.get("secondary_cta_link") or "#",
        "background_image": d.get("background_image"),
        "overlay": d.get("layout") == "overlay" and bool(d.get("background_image")),
        "alignment": d.get("alignment", "center"),
    }


_TEXT = """<div class="container--sm" style="margin:0 auto">{{{html}}}</div>"""


def _text_context(block: Block, ctx: _RenderContext) -> dict[str, Any]:
    d = block.data
    paragraphs = [p.strip() for p in re.split(r"\n\s*\n", d["content"]) if p.strip()]
    html = "\n".join(f"<p>{_render_inline(p).replace(chr(10), '<br>')}</p>" for p in paragraphs)
    return {"html": html}


_IMAGE_WIDTHS = {"sm": "480px", "md": "640px", "lg": "800px", "full": "100%"}

_IMAGE = """\
<figure style="max-width:{{width}};margin:0 auto">
  <img src="{{src}}" alt="{{alt}}" style="width:100%;border-radius:var(--radius)">
  {{#caption}}<figcaption class="muted small text-center">{{caption}}</figcaption>{{/caption}}
</figure>"""


def _image_context(block: Block, ctx: _RenderContext) -> dict[str, Any]:
    d = block.data
    return {
        "src": d["src"],
        "alt": d.get("alt", ""),
        "caption": d.get("caption"),
        "width": _IMAGE_WIDTHS.get(d.get("max_width", "lg"), "800px"),
    }


_FEATURES = """\
<h2 class="text-center">{{heading}}</h2>
{{#subheading}}<p class="text-center muted">{{subheading}}</p>{{/subheading}}
<div class="grid grid-{{columns}}">
{{#items}}  <div class="card card--bordered text-center">
    {{#icon}}<div class="feature-icon" data-icon="{{icon}}" aria-hidden="true" style="font-size:2rem;color:var(--primary)">&#9733;</div>{{/icon}}
    <h3>{{title}}</h3>
    <p class="muted small">{{description}}</p>
  </div>
{{/items}}</div>"""


def _features_context(block: Block, ctx: _RenderContext) -> dict[str, Any]:
    d = block.data
    return {
        "heading": d["heading"],
        "subheading": d.get("subheading"),
        "columns": _clamp_columns(d.get("columns")),
        "items": d.get("items", []),
    }


_CTA = """\
<section class="section text-center" id="{{id}}" data-block-type="cta" style="background:{{background}};color:{{foreground}}">
  <div class="container container--sm">
    <h2>{{heading}}</h2>
    {{#text}}<p style="opacity:0.9">{{text}}</p>{{/text}}
    <a href="{{button_link}}" class="btn" style="background:#fff;color:{{button_color}}">{{button_text}}</a>
  </div>
</section>"""

_LIGHT_BACKGROUNDS = {"#ffffff", "#fff", "white", "var(--bg)"}


def _cta_context(block: Block, ctx: _RenderContext) -> dict[str, Any]:
    d = block.data
    raw = d.get("background_color") or block.style.get("background_color")
    background = css_color(raw) if raw else "var(--primary)"
    light = background.lower() in _LIGHT_BACKGROUNDS
    return {
        "id": block.id,
        "heading": d["heading"],
        "text": d.get("text"),
        "button_text": d["button_text"],
        "button_link": d.get("button_link") or "#",
        "background": background,
        "foreground": "var(--text)" if light else "#fff",
        "button_color": "var(--primary)" if light or background == "var(--primary)" else background,
    }


_TESTIMONIALS = """\
<h2 class="text-center">{{heading}}</h2>
<div class="grid grid-{{columns}}" style="margin-top:2rem">
{{#items}}  <blockquote class="card card--bordered">
    <p style="font-style:italic">&ldquo;{{quote}}&rdquo;</p>
    <footer>{{#avatar}}<img src="{{avatar}}" alt="{{name}}" style="width:48px;height:48px;border-radius:50%">{{/avatar}}<strong>{{name}}</strong>{{#role}}<br><span class="muted small">{{role}}</span>{{/role}}</footer>
  </blockquote>
{{/items}}</div>"""


def _testimonials_context(block: Block, ctx: _RenderContext) -> dict[str, Any]:
    d = block.data
    items = d.get("items", [])
    columns = 1 if d.get("layout") == "single" else _grid_for(min(len(items), 3))
    return {"heading": d["heading"], "items": items, "columns": columns}


_PRICING = """\
<h2 class="text-center">{{heading}}</h2>
{{#subheading}}<p class="text-center muted">{{subheading}}</p>{{/subheading}}
<div class="grid grid-{{grid}}">
{{#columns}}  <div class="card {{#highlighted}}card--highlighted{{/highlighted}}{{^highlighted}}card--bordered{{/highlighted}} text-center">
    <h3>{{name}}</h3>
    <div style="font-size:2.5rem;font-weight:800;font-family:var(--font-heading)">{{price}}</div>
    {{#period}}<p class="muted small">{{period}}</p>{{/period}}
    <ul style="list-style:none;margin:1.5rem 0;text-align:left">{{#features}}<li>&#10003; {{.}}</li>{{/features}}</ul>
    <a href="{{cta_link}}" class="btn {{#highlighted}}btn--primary{{/highlighted}}{{^highlighted}}btn--outline{{/highlighted}}">{{cta_text}}</a>
  </div>
{{/columns}}</div>"""


def _pricing_context(block: Block, ctx: _RenderContext) -> dict[str, Any]:
    d = block.data
    columns = d.get("columns", [])
    return {
        "heading": d["heading"],
        "subheading": d.get("subheading"),
        "columns": columns,
        "grid": _grid_for(len(columns)),
    }


_FAQ = """\
<div class="container--sm" style="margin:0 auto">
  <h2 class="text-center">{{heading}}</h2>
{{#items}}  <details>
    <summary>{{question}}</summary>
    <p class="muted" style="margin-top:0.75rem">{{answer}}</p>
  </details>
{{/items}}</div>"""


def _faq_context(block: Block, ctx: _RenderContext) -> dict[str, Any]:
    d = block.data
    return {"heading": d["heading"], "items": d.get("items", [])}


_GALLERY = """\
{{#heading}}<h2 class="text-center">{{heading}}</h2>{{/heading}}
<div class="grid grid-{{columns}}" style="margin-top:1.5rem">
{{#images}}  <img src="{{src}}" alt="{{alt}}" loading="lazy" style="width:100%;aspect-ratio:4/3;object-fit:cover;border-radius:var(--radius)">
{{/images}}</div>"""


def _gallery_context(block: Block, ctx: _RenderContext) -> dict[str, Any]:
    d = block.data
    return {"heading": d.get("heading"), "columns": _clamp_columns(d.get("columns")), "images": d.get("images", [])}


_CONTACT = """\
<h2 class="text-center">{{heading}}</h2>
<div class="grid grid-{{columns}}" style="margin-top:2rem">
{{#show_form}}  <div class="card card--bordered">
    <form class="contact-form" method="post"{{#action}} action="{{action}}"{{/action}}{{#mailto}} enctype="text/plain"{{/mailto}}>
      <label for="{{id}}-name">Name</label><input id="{{id}}-name" type="text" name="name" required>
      <label for="{{id}}-email">Email</label><input id="{{id}}-email" type="email" name="email" required>
      <label for="{{id}}-message">Message</label><textarea id="{{id}}-message" name="message" rows="4" required></textarea>
      <button type="submit" class="btn btn--primary">Send Message</button>
    </form>
  </div>
{{/show_form}}  <div>
    {{#email}}<p><strong>Email:</strong><br><a href="mailto:{{email}}">{{email}}</a></p>{{/email}}
    {{#phone}}<p><strong>Phone:</strong><br><a href="tel:{{phone}}">{{phone}}</a></p>{{/phone}}
    {{#address}}<p><strong>Address:</strong><br>{{address}}</p>{{/address}}
  </div>
</div>"""


def _contact_context(block: Block, ctx: _RenderContext) -> dict[str, Any]:
    d = block.data
    action = d.get("form_action") or (f"mailto:{d['email']}" if d.get("email") else None)
    show_form = d.get("show_form", True)
    return {
        "id": block.id,
        "heading": d["heading"],
        "show_form": show_form,
        "action": action,
        "mailto": bool(action and action.startswith("mailto:")),
        "email": d.get("email"),
        "phone": d.get("phone"),
        "address": d.get("address"),
        "columns": 2 if show_form else 1,
    }


_TEAM = """\
<h2 class="text-center">{{heading}}</h2>
<div class="grid grid-{{columns}}" style="margin-top:2rem">
{{#members}}  <div class="text-center">
    {{#photo}}<img src="{{photo}}" alt="{{name}}" style="width:120px;height:120px;border-radius:50%;object-fit:cover;margin:0 auto 1rem">{{/photo}}
    <h3>{{name}}</h3>
    <p class="muted small">{{role}}</p>
    {{#bio}}<p class="small">{{bio}}</p>{{/bio}}
  </div>
{{/members}}</div>"""


def _team_context(block: Block, ctx: _RenderContext) -> dict[str, Any]:
    d = block.data
    members = d.get("members", [])
    return {"heading": d["heading"], "members": members, "columns": _grid_for(len(members))}


_STATS = """\
<div class="grid grid-{{columns}} text-center">
{{#items}}  <div>
    <div style="font-size:2.5rem;font-weight:800;color:var(--primary);font-family:var(--font-heading)">{{prefix}}{{value}}{{suffix}}</div>
    <div class="muted">{{label}}</div>
  </div>
{{/items}}</div>"""


def _stats_context(block: Block, ctx: _RenderContext) -> dict[str, Any]:
    d = block.data
    items = [{"prefix": "", "suffix": "", **item} for item in d["items"]]
    return {"items": items, "columns": _grid_for(len(items))}


_LOGO_CLOUD = """\
{{#heading}}<p class="text-center muted small" style="font-weight:600;text-transform:uppercase;letter-spacing:0.05em">{{heading}}</p>{{/heading}}
<div class="flex flex-center" style="flex-wrap:wrap;gap:2rem">
{{#logos}}  {{#url}}<a href="{{url}}" rel="noopener">{{/url}}<img src="{{src}}" alt="{{alt}}" style="max-height:40px;width:auto">{{#url}}</a>{{/url}}
{{/logos}}</div>"""


def _logo_cloud_context(block: Block, ctx: _RenderContext) -> dict[str, Any]:
    d = block.data
    logos = [{"url": None, **logo} for logo in d.get("logos", [])]
    return {"heading": d.get("heading"), "logos": logos}


_PRODUCT_GRID = """\
<h2 class="text-center">{{heading}}</h2>
<div class="product-grid grid grid-{{columns}}" data-limit="{{max_products}}"{{#category_slug}} data-category="{{category_slug}}"{{/category_slug}} data-show-price="{{show_price}}" style="margin-top:2rem">
  <p class="muted text-center">Products will appear here.</p>
</div>"""


def _product_grid_context(block: Block, ctx: _RenderContext) -> dict[str, Any]:
    d = block.data
    return {
        "heading": d["heading"],
        "columns": _clamp_columns(d.get("columns")),
        "max_products": d.get("max_products", 12),
        "category_slug": d.get("category_slug"),
        "show_price": "true" if d.get("show_price", True) else "false",
    }


_PRODUCT_DETAIL = """\
<div class="product-detail grid grid-2" data-product="{{product_slug}}">
  <div style="background:#f3f4f6;aspect-ratio:1;border-radius:var(--radius)"></div>
  <div><h2>{{product_slug}}</h2></div>
</div>"""


def _product_detail_context(block: Block, ctx: _RenderContext) -> dict[str, Any]:
    d = block.data
    return {"product_slug": d["product_slug"]}


def _custom_code_html(d: dict[str, Any]) -> str:
    """Owner-supplied code, emitted verbatim."""
    parts = []
    if d.get("css"):
        parts.append(f"<style>{d['css']}</style>")
    if d.get("html"):
        parts.append(d["html"])
    if d.get("js"):
        parts.append(f"<script>{d['js']}</script>")
    return "\n".join(parts)


# (template, context builder, wrap in <section>)
_BLOCKS: dict[str, tuple[str, Any, bool]] = {
    "header": (_HEADER, _header_context, False),
    "hero": (_HERO, _hero_context, True),
    "text": (_TEXT, _text_context, True),
    "image": (_IMAGE, _image_context, True),
    "features": (_FEATURES, _features_context, True),
    "cta": (_CTA, _cta_context, False),
    "testimonials": (_TESTIMONIALS, _testimonials_context, True),
    "pricing": (_PRICING, _pricing_context, True),
    "faq": (_FAQ, _faq_context, True),
    "gallery": (_GALLERY, _gallery_context, True),
    "contact": (_CONTACT, _contact_context, True),
    "team": (_TEAM, _team_context, True),
    "stats": (_STATS, _stats_context, True),
    "logo_cloud": (_LOGO_CLOUD, _logo_cloud_context, True),
    "footer": (_FOOTER, _footer_context, False),
    "product_grid": (_PRODUCT_GRID, _product_grid_context, True),
    "product_detail": (_PRODUCT_DETAIL, _product_detail_context, True),
}


# ---------------------------------------------------------------------------
# Inline formatting helpers
# ---------------------------------------------------------------------------

_LINK_RE = re.compile(r"\[([^\]]+)\]\(((?:https?://|/)[^\)\s]+)\)")
_BOLD_RE = re.compile(r"\*\*([^*]+)\*\*")
_ITALIC_RE = re.compile(r"\*([^*]+)\*")
# Link targets are parked here while emphasis runs
_HREF_SLOT_RE = re.compile(r"\x00(\d+)\x00")


def escape(text: str) -> str:
    """HTML-escape user content."""
    return _html_escape(str(text), quote=True)


def _render_inline(text: str) -> str:
    """Apply inline markdown formatting to text. Link targets are never emphasised."""
    hrefs: list[str] = []

    def link(m: re.Match[str]) -> str:
        hrefs.append(m.group(2))
        return f'<a href="\x00{len(hrefs) - 1}\x00">{m.group(1)}</a>'

    text = escape(text).replace("\x00", "")
    text = _LINK_RE.sub(link, text)
    text = _BOLD_RE.sub(r"<strong>\1</strong>", text)
    text = _ITALIC_RE.sub(r"<em>\1</em>", text)
    return _HREF_SLOT_RE.sub(lambda m: hrefs[int(m.group(1))], text)
