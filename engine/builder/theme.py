"""
Site Builder — Theme Model

Palette, typography, spacing and corner radius for a whole project.

validate_theme() is strict (raises InvalidTheme). apply_theme() is total:
every field resolves to a CSS-ready value, falling back to DEFAULT_THEME for
anything absent or unusable.
"""

from __future__ import annotations

import re
from typing import Any

from engine.builder.errors import InvalidTheme
from engine.builder.types import THEME_FIELDS, ResolvedTheme, Theme

# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

HEX_COLOR_PATTERN = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")
FONT_PATTERN = re.compile(r"^[A-Za-z0-9 ]{1,64}$")

NAMED_COLORS: dict[str, str] = {
    "white": "#ffffff",
    "black": "#000000",
    "slate": "#334155",
    "gray": "#6b7280",
    "red": "#dc2626",
    "orange": "#ea580c",
    "amber": "#d97706",
    "green": "#16a34a",
    "emerald": "#10b981",
    "teal": "#0d9488",
    "blue": "#2563eb",
    "navy": "#1e3a8a",
    "indigo": "#4f46e5",
    "purple": "#9333ea",
    "pink": "#db2777",
    "transparent": "transparent",
}

SPACING_VALUES: set[str] = {"compact", "comfortable", "spacious"}

# Section padding multiplier per spacing scale
SPACING_SCALE: dict[str, float] = {
    "compact": 0.75,
    "comfortable": 1.0,
    "spacious": 1.35,
}

BORDER_RADIUS_MAX = 48

DEFAULT_THEME: dict[str, Any] = {
    "primary_color": "#064A6C",
    "secondary_color": "#1844A6",
    "accent_color": "#10B981",
    "bg_color": "#ffffff",
    "text_color": "#09080E",
    "font_heading": "Inter",
    "font_body": "Inter",
    "spacing": "comfortable",
    "border_radius": 7,
}

STYLE_PRESETS: dict[str, dict[str, Any]] = {
    "Professional": {
        "primary_color": "#1e3a5f",
        "secondary_color": "#2563eb",
        "accent_color": "#10b981",
        "bg_color": "#ffffff",
        "text_color": "#1f2937",
        "font_heading": "Inter",
        "font_body": "Inter",
        "border_radius": 6,
    },
    "Creative": {
        "primary_color": "#7c3aed",
        "secondary_color": "#ec4899",
        "accent_color": "#f59e0b",
        "bg_color": "#fefce8",
        "text_color": "#1c1917",
        "font_heading": "Poppins",
        "font_body": "Nunito",
        "border_radius": 16,
    },
    "Bold": {
        "primary_color": "#dc2626",
        "secondary_color": "#1e1e1e",
        "accent_color": "#facc15",
        "bg_color": "#ffffff",
        "text_color": "#111827",
        "font_heading": "Montserrat",
        "font_body": "Open Sans",
        "border_radius": 0,
    },
    "Minimal": {
        "primary_color": "#111827",
        "secondary_color": "#6b7280",
        "accent_color": "#111827",
        "bg_color": "#ffffff",
        "text_color": "#374151",
        "font_heading": "DM Sans",
        "font_body": "DM Sans",
        "spacing": "spacious",
        "border_radius": 4,
    },
}

_COLOR_FIELDS = ("primary_color", "secondary_color", "accent_color", "bg_color", "text_color")
_FONT_FIELDS = ("font_heading", "font_body")


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def is_valid_color(token: Any) -> bool:
    """True for #rgb / #rrggbb hex or a named palette token."""
    if not isinstance(token, str):
        return False
    return bool(HEX_COLOR_PATTERN.match(token)) or token in NAMED_COLORS


def css_color(token: str) -> str:
    """Map a color token to a CSS value. Hex passes through unchanged."""
    return NAMED_COLORS.get(token, token)


def _field_errors(key: str, value: Any) -> list[str]:
    if key in _COLOR_FIELDS:
        if not is_valid_color(value):
            return [f"{key}: invalid color {value!r}"]
    elif key in _FONT_FIELDS:
        if not isinstance(value, str) or not FONT_PATTERN.match(value):
            return [f"{key}: invalid font name {value!r}"]
    elif key == "spacing":
        if value not in SPACING_VALUES:
            return [f"spacing: must be one of {sorted(SPACING_VALUES)}"]
    elif key == "border_radius":
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= BORDER_RADIUS_MAX:
            return [f"border_radius: must be an integer 0-{BORDER_RADIUS_MAX}"]
    return []


def validate_theme(partial: dict[str, Any]) -> dict[str, Any]:
    """
    Validate a partial theme. Returns a copy of the accepted fields.
    A None value is accepted and means "back to the default".
    Raises InvalidTheme listing every offending key.
    """
    if not isinstance(partial, dict):
        raise InvalidTheme("theme must be an object", ["theme must be an object"])

    errors: list[str] = []
    for key, value in partial.items():
        if key not in THEME_FIELDS:
            errors.append(f"{key}: unknown theme field")
            continue
        if value is not None:
            errors.extend(_field_errors(key, value))

    if errors:
        raise InvalidTheme("Invalid theme: " + "; ".join(errors), errors)
    return dict(partial)


def merge_theme(theme: Theme, partial: dict[str, Any]) -> Theme:
    """Overlay a validated partial onto a stored theme. None removes an override."""
    merged = theme.to_dict()
    for key, value in validate_theme(partial).items():
        if value is None:
            merged.pop(key, None)
        else:
            merged[key] = value
    return Theme.from_dict(merged)


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def apply_theme(theme: Theme | None, overrides: dict[str, Any] | None = None) -> ResolvedTheme:
    """
    Resolve a project theme plus optional page/block overrides.

    Precedence: overrides > theme > DEFAULT_THEME. Values that fail
    validation are skipped rather than raised, so rendering never fails on
    theme data.
    """
    resolved = dict(DEFAULT_THEME)
    layers = [theme.to_dict() if theme else {}, overrides or {}]
    for layer in layers:
        for key, value in layer.items():
            if key in THEME_FIELDS and value is not None and not _field_errors(key, value):
                resolved[key] = value

    for key in _COLOR_FIELDS:
        resolved[key] = css_color(resolved[key])
    return ResolvedTheme(**resolved)


def preset_theme(name: str) -> Theme:
    """Theme for a named style preset. Unknown names give the default theme."""
    return Theme.from_dict(STYLE_PRESETS.get(name, {}))
