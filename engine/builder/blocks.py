"""
Site Builder — Block Schema

Closed registry of block types. Each type has a pydantic model describing
its `data` payload; unknown fields, missing required fields, out-of-range
values and malformed links are all rejected.

    validate_block_data("hero", {"heading": "Hi"})
    → {"heading": "Hi", "layout": "simple", "alignment": "center"}

validate_block_data() is the only way block data gets into a document, so
everything the renderer sees has passed through here.
"""

from __future__ import annotations

import copy
import re
from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StringConstraints, ValidationError

from engine.builder.errors import InvalidBlockData, UnknownType
from engine.builder.theme import is_valid_color
from engine.builder.types import Block, generate_block_id

# ---------------------------------------------------------------------------
# Field types
# ---------------------------------------------------------------------------

_LINK_PATTERN = re.compile(r"^(https?://[^\s<>\"'\\]+|/[^\s<>\"'\\]*|#[A-Za-z0-9_\-]*|mailto:[^\s<>\"'\\]+|tel:[0-9+()\-. ]+)$")
_IMAGE_PATTERN = re.compile(r"^(https?://[^\s<>\"'\\]+|/[^\s<>\"'\\]*)$")
_SLUG_LIKE = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")


def _check_link(value: str) -> str:
    if not _LINK_PATTERN.match(value):
        raise ValueError("must be an http(s) URL, a site path, an #anchor, mailto: or tel: link")
    return value


def _check_image(value: str) -> str:
    if not _IMAGE_PATTERN.match(value):
        raise ValueError("must be an http(s) URL or a site path")
    return value


def _check_color(value: str) -> str:
    if not is_valid_color(value):
        raise ValueError("must be a hex color or a named palette color")
    return value


def _check_slug(value: str) -> str:
    if value and not _SLUG_LIKE.match(value):
        raise ValueError("must be a lowercase slug")
    return value


Heading = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
Label = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=120)]
ShortText = Annotated[str, StringConstraints(max_length=300)]
LongText = Annotated[str, StringConstraints(max_length=5000)]
Link = Annotated[str, StringConstraints(max_length=2048), AfterValidator(_check_link)]
ImageSrc = Annotated[str, StringConstraints(max_length=2048), AfterValidator(_check_image)]
ColorToken = Annotated[str, AfterValidator(_check_color)]
Columns = Annotated[int, Field(ge=2, le=4)]
Code = Annotated[str, StringConstraints(max_length=50_000)]

Spacing = Literal["none", "sm", "md", "lg", "xl"]
Width = Literal["sm", "md", "lg", "xl", "full"]


class _Schema(BaseModel):
    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------------
# Shared pieces
# ---------------------------------------------------------------------------


class NavLink(_Schema):
    label: Label
    href: Link


class ImageRef(_Schema):
    src: ImageSrc
    alt: ShortText = ""


class SeoData(_Schema):
    title: Annotated[str, StringConstraints(strip_whitespace=True, max_length=200)] | None = None
    description: Annotated[str, StringConstraints(strip_whitespace=True, max_length=500)] | None = None
    og_image: ImageSrc | None = None


class BlockStyle(_Schema):
    background_color: ColorToken | None = None
    text_color: ColorToken | None = None
    padding_y: Spacing | None = None
    padding_x: Spacing | None = None
    max_width: Width | None = None
    hidden: bool | None = None


# ---------------------------------------------------------------------------
# Block payloads
# ---------------------------------------------------------------------------


class HeaderData(_Schema):
    logo: ImageSrc | None = None
    logo_text: ShortText | None = None
    nav_links: list[NavLink] = Field(default_factory=list, max_length=12)
    cta_text: Label | None = None
    cta_link: Link | None = None
    sticky: bool = False


class HeroData(_Schema):
    heading: Heading
    subheading: LongText | None = None
    cta_text: Label | None = None
    cta_link: Link | None = None
    secondary_cta_text: Label | None = None
    secondary_cta_link: Link | None = None
    background_image: ImageSrc | None = None
    layout: Literal["simple", "split", "overlay"] = "simple"
    alignment: Literal["left", "center", "right"] = "center"


class TextData(_Schema):
    content: Annotated[str, StringConstraints(min_length=1, max_length=20_000)]


class ImageData(_Schema):
    src: ImageSrc
    alt: ShortText = ""
    caption: ShortText | None = None
    max_width: Literal["sm", "md", "lg", "full"] = "lg"


class FeatureItem(_Schema):
    icon: Annotated[str, StringConstraints(max_length=40)] | None = None
    title: Heading
    description: LongText


class FeaturesData(_Schema):
    heading: Heading
    subheading: LongText | None = None
    columns: Columns = 3
    items: list[FeatureItem] = Field(default_factory=list, max_length=24)


class CtaData(_Schema):
    heading: Heading
    text: LongText | None = None
    button_text: Label
    button_link: Link = "#"
    background_color: ColorToken | None = None


class Testimonial(_Schema):
    quote: LongText
    name: Label
    role: ShortText | None = None
    avatar: ImageSrc | None = None


class TestimonialsData(_Schema):
    heading: Heading
    layout: Literal["cards", "single"] = "cards"
    items: list[Testimonial] = Field(default_factory=list, max_length=24)


class PricingColumn(_Schema):
    name: Label
    price: Annotated[str, StringConstraints(min_length=1, max_length=40)]
    period: Annotated[str, StringConstraints(max_length=40)] | None = None
    features: list[ShortText] = Field(default_factory=list, max_length=30)
    cta_text: Label = "Get Started"
    cta_link: Link = "#"
    highlighted: bool = False


class PricingData(_Schema):
    heading: Heading
    subheading: LongText | None = None
    columns: list[PricingColumn] = Field(default_factory=list, max_length=6)


class FaqItem(_Schema):
    question: Heading
    answer: LongText


class FaqData(_Schema):
    heading: Heading
    items: list[FaqItem] = Field(default_factory=list, max_length=50)


class GalleryData(_Schema):
    heading: Heading | None = None
    columns: Columns = 3
    images: list[ImageRef] = Field(default_factory=list, max_length=60)


class ContactData(_Schema):
    heading: Heading
    show_form: bool = True
    email: Annotated[str, StringConstraints(max_length=254, pattern=r"^[^@\s<>]+@[^@\s<>]+\.[^@\s<>]+$")] | None = None
    phone: Annotated[str, StringConstraints(max_length=40, pattern=r"^[0-9+()\-. ]+$")] | None = None
    address: ShortText | None = None
    form_action: Link | None = None


class TeamMember(_Schema):
    name: Label
    role: Label
    photo: ImageSrc | None = None
    bio: LongText | None = None


class TeamData(_Schema):
    heading: Heading
    members: list[TeamMember] = Field(default_factory=list, max_length=40)


class StatItem(_Schema):
    value: Annotated[str, StringConstraints(min_length=1, max_length=40)]
    label: Label
    prefix: Annotated[str, StringConstraints(max_length=8)] | None = None
    suffix: Annotated[str, StringConstraints(max_length=8)] | None = None


class StatsData(_Schema):
    items: list[StatItem] = Field(min_length=1, max_length=8)


class LogoRef(_Schema):
    src: ImageSrc
    alt: ShortText = ""
    url: Link | None = None


class LogoCloudData(_Schema):
    heading: Heading | None = None
    logos: list[LogoRef] = Field(default_factory=list, max_length=30)


class SocialLink(_Schema):
    platform: Label
    url: Link


class FooterData(_Schema):
    company_name: ShortText = ""
    links: list[Annotated[list[NavLink], Field(max_length=12)]] = Field(default_factory=list, max_length=6)
    copyright: ShortText | None = None
    social_links: list[SocialLink] = Field(default_factory=list, max_length=12)


class CustomCodeData(_Schema):
    html: Code = ""
    css: Code = ""
    js: Code = ""
    position: Literal["inline", "head", "body_end"] = "inline"


class ProductGridData(_Schema):
    heading: Heading
    columns: Columns = 3
    max_products: Annotated[int, Field(ge=1, le=48)] = 12
    category_slug: Annotated[str, AfterValidator(_check_slug)] | None = None
    show_price: bool = True


class ProductDetailData(_Schema):
    product_slug: Annotated[str, StringConstraints(min_length=1, max_length=120), AfterValidator(_check_slug)]


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

BLOCK_SCHEMAS: dict[str, type[BaseModel]] = {
    "header": HeaderData,
    "hero": HeroData,
    "text": TextData,
    "image": ImageData,
    "features": FeaturesData,
    "cta": CtaData,
    "testimonials": TestimonialsData,
    "pricing": PricingData,
    "faq": FaqData,
    "gallery": GalleryData,
    "contact": ContactData,
    "team": TeamData,
    "stats": StatsData,
    "logo_cloud": LogoCloudData,
    "footer": FooterData,
    "custom_code": CustomCodeData,
    "product_grid": ProductGridData,
    "product_detail": ProductDetailData,
}

BLOCK_TYPES: set[str] = set(BLOCK_SCHEMAS)

BLOCK_LABELS: dict[str, str] = {
    "header": "Header",
    "hero": "Hero",
    "text": "Text",
    "image": "Image",
    "features": "Features",
    "cta": "Call to Action",
    "testimonials": "Testimonials",
    "pricing": "Pricing",
    "faq": "FAQ",
    "gallery": "Gallery",
    "contact": "Contact",
    "team": "Team",
    "stats": "Stats",
    "logo_cloud": "Logo Cloud",
    "footer": "Footer",
    "custom_code": "Custom Code",
    "product_grid": "Product Grid",
    "product_detail": "Product Detail",
}

# Toolbar palette grouping
BLOCK_CATEGORIES: list[tuple[str, tuple[str, ...]]] = [
    ("Layout", ("header", "hero", "footer")),
    ("Content", ("text", "image", "gallery", "stats")),
    ("Sections", ("features", "testimonials", "team", "pricing", "faq", "cta")),
    ("E-Commerce", ("product_grid", "product_detail")),
    ("Other", ("contact", "logo_cloud", "custom_code")),
]

# Block types that require a plan feature
FEATURE_BLOCKS: dict[str, str] = {
    "custom_code": "custom-code",
    "product_grid": "ecommerce",
    "product_detail": "ecommerce",
}

# Block types that carry site navigation
NAV_BLOCKS: set[str] = {"header", "footer"}

DEFAULT_BLOCK_STYLE: dict[str, Any] = {
    "padding_y": "lg",
    "padding_x": "md",
    "max_width": "lg",
    "hidden": False,
}


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _format_errors(exc: ValidationError) -> list[str]:
    errors = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err["loc"]) or "data"
        errors.append(f"{loc}: {err['msg']}")
    return errors


def validate_block_data(block_type: str, data: Any) -> dict[str, Any]:
    """
    Validate a block payload against its registered schema.
    Returns the normalized payload (defaults filled, None fields dropped).

    Raises UnknownType for unregistered types, InvalidBlockData otherwise.
    """
    schema = BLOCK_SCHEMAS.get(block_type)
    if schema is None:
        raise UnknownType(block_type)
    if not isinstance(data, dict):
        raise InvalidBlockData(f"{block_type}: data must be an object", ["data: must be an object"])

    try:
        model = schema.model_validate(data)
    except ValidationError as e:
        errors = _format_errors(e)
        raise InvalidBlockData(f"{block_type}: " + "; ".join(errors), errors) from e
    return model.model_dump(mode="json", exclude_none=True)


def validate_block_style(style: Any) -> dict[str, Any]:
    """Validate a style overlay. Returns only the fields that were set."""
    if style is None:
        return {}
    if not isinstance(style, dict):
        raise InvalidBlockData("style must be an object", ["style: must be an object"])
    try:
        model = BlockStyle.model_validate(style)
    except ValidationError as e:
        errors = [f"style.{msg}" for msg in _format_errors(e)]
        raise InvalidBlockData("; ".join(errors), errors) from e
    return model.model_dump(mode="json", exclude_none=True)


def validate_seo(seo: Any) -> dict[str, Any]:
    """Validate an SEO record (title, description, og_image)."""
    if not isinstance(seo, dict):
        raise InvalidBlockData("seo must be an object", ["seo: must be an object"])
    try:
        model = SeoData.model_validate(seo)
    except ValidationError as e:
        errors = [f"seo.{msg}" for msg in _format_errors(e)]
        raise InvalidBlockData("; ".join(errors), errors) from e
    return model.model_dump(mode="json", exclude_none=True)


def validate_image_src(value: str) -> str:
    """Raises InvalidBlockData unless value is an http(s) URL or site path."""
    if not isinstance(value, str) or not _IMAGE_PATTERN.match(value):
        raise InvalidBlockData(f"invalid image reference: {value!r}", [f"image: invalid reference {value!r}"])
    return value


def full_style(style: dict[str, Any] | None) -> dict[str, Any]:
    """Default style with a validated overlay applied."""
    merged = dict(DEFAULT_BLOCK_STYLE)
    merged.update(validate_block_style(style))
    return merged


def validate_block(block: Block) -> Block:
    """Validate data and style of a whole block. Returns the normalized block."""
    data = validate_block_data(block.type, block.data)
    style = full_style(block.style)
    return Block(id=block.id, type=block.type, data=data, style=style)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

_PLACEHOLDER = "https://placehold.co"

DEFAULT_DATA: dict[str, dict[str, Any]] = {
    "header": {
        "logo_text": "My Website",
        "nav_links": [
            {"label": "Home", "href": "/"},
            {"label": "About", "href": "/about"},
            {"label": "Contact", "href": "/contact"},
        ],
        "cta_text": "Get Started",
        "cta_link": "#",
    },
    "hero": {
        "heading": "Welcome to Our Website",
        "subheading": "We help businesses grow with modern solutions.",
        "cta_text": "Get Started",
        "cta_link": "#",
    },
    "text": {
        "content": "Enter your text here. You can format this with **bold**, *italic*, and more.",
    },
    "image": {
        "src": f"{_PLACEHOLDER}/800x400/064A6C/ffffff?text=Your+Image",
        "alt": "Placeholder image",
    },
    "features": {
        "heading": "Our Features",
        "subheading": "Everything you need to succeed.",
        "columns": 3,
        "items": [
            {"icon": "zap", "title": "Fast & Reliable", "description": "Lightning-fast performance you can count on."},
            {"icon": "shield", "title": "Secure", "description": "Enterprise-grade security built in."},
            {"icon": "headphones", "title": "24/7 Support", "description": "Our team is always here to help."},
        ],
    },
    "cta": {
        "heading": "Ready to Get Started?",
        "text": "Join thousands of satisfied customers today.",
        "button_text": "Start Now",
        "button_link": "#",
    },
    "testimonials": {
        "heading": "What Our Clients Say",
        "items": [
            {"quote": "An amazing service that transformed our business.", "name": "Jane Smith", "role": "CEO, TechCorp"},
            {"quote": "Professional, reliable, and truly outstanding.", "name": "John Doe", "role": "Founder, StartupXYZ"},
        ],
    },
    "pricing": {
        "heading": "Simple, Transparent Pricing",
        "subheading": "Choose the plan that fits your needs.",
        "columns": [
            {"name": "Starter", "price": "$9", "period": "/month", "features": ["1 Website", "Email Support"], "cta_text": "Start Free"},
            {
                "name": "Professional",
                "price": "$29",
                "period": "/month",
                "features": ["5 Websites", "Priority Support", "Custom Domain"],
                "highlighted": True,
            },
        ],
    },
    "faq": {
        "heading": "Frequently Asked Questions",
        "items": [
            {"question": "How do I get started?", "answer": "Simply sign up for an account and follow our quick setup guide."},
            {"question": "Can I cancel anytime?", "answer": "Yes, you can cancel your subscription at any time with no fees."},
        ],
    },
    "gallery": {
        "heading": "Our Work",
        "columns": 3,
        "images": [
            {"src": f"{_PLACEHOLDER}/400x300/064A6C/ffffff?text=Project+1", "alt": "Project 1"},
            {"src": f"{_PLACEHOLDER}/400x300/1844A6/ffffff?text=Project+2", "alt": "Project 2"},
            {"src": f"{_PLACEHOLDER}/400x300/10B981/ffffff?text=Project+3", "alt": "Project 3"},
        ],
    },
    "contact": {
        "heading": "Get in Touch",
        "show_form": True,
        "email": "hello@example.com",
        "phone": "(555) 123-4567",
        "address": "123 Main Street, City, ST 12345",
    },
    "team": {
        "heading": "Meet Our Team",
        "members": [
            {"name": "Alex Thompson", "role": "CEO & Founder"},
            {"name": "Maria Garcia", "role": "CTO"},
        ],
    },
    "stats": {
        "items": [
            {"value": "500", "label": "Clients Served", "suffix": "+"},
            {"value": "98", "label": "Satisfaction Rate", "suffix": "%"},
            {"value": "10", "label": "Years Experience", "suffix": "+"},
        ],
    },
    "logo_cloud": {
        "heading": "Trusted By",
        "logos": [
            {"src": f"{_PLACEHOLDER}/120x40/cccccc/666666?text=Partner+1", "alt": "Partner 1"},
            {"src": f"{_PLACEHOLDER}/120x40/cccccc/666666?text=Partner+2", "alt": "Partner 2"},
        ],
    },
    "footer": {
        "company_name": "My Website",
        "links": [
            [{"label": "Home", "href": "/"}, {"label": "About", "href": "/about"}],
            [{"label": "Privacy Policy", "href": "/privacy"}, {"label": "Contact", "href": "/contact"}],
        ],
        "copyright": "All rights reserved.",
    },
    "custom_code": {"html": "", "css": "", "js": "", "position": "inline"},
    "product_grid": {"heading": "Our Products", "columns": 3, "max_products": 12, "show_price": True},
    "product_detail": {"product_slug": "featured-product"},
}


def default_data(block_type: str) -> dict[str, Any]:
    """Schema-valid placeholder payload for a block type."""
    if block_type not in BLOCK_SCHEMAS:
        raise UnknownType(block_type)
    return validate_block_data(block_type, copy.deepcopy(DEFAULT_DATA[block_type]))


def create_default(block_type: str, block_id: str | None = None) -> Block:
    """New block with a fresh id, placeholder data, and default style."""
    return Block(
        id=block_id or generate_block_id(),
        type=block_type,
        data=default_data(block_type),
        style=dict(DEFAULT_BLOCK_STYLE),
    )


def nav_hrefs(block: Block) -> list[str]:
    """Every href a header/footer block links to."""
    if block.type == "header":
        return [link["href"] for link in block.data.get("nav_links", [])]
    if block.type == "footer":
        return [link["href"] for column in block.data.get("links", []) for link in column]
    return []
