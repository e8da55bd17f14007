"""
Site Builder -- Theme Model Tests

validate_theme() is strict; apply_theme() is total and never raises.
"""

import pytest

from engine.builder.errors import InvalidTheme
from engine.builder.theme import (
    DEFAULT_THEME,
    NAMED_COLORS,
    apply_theme,
    is_valid_color,
    merge_theme,
    preset_theme,
    validate_theme,
)
from engine.builder.types import Theme


class TestColorTokens:
    @pytest.mark.parametrize("token", ["#fff", "#064A6C", "navy", "transparent"])
    def test_valid(self, token):
        assert is_valid_color(token)

    @pytest.mark.parametrize("token", ["#ffff", "064A6C", "rgb(0,0,0)", "Navy", "", None, 12])
    def test_invalid(self, token):
        assert not is_valid_color(token)


class TestValidateTheme:
    def test_accepts_partial(self):
        assert validate_theme({"primary_color": "#123456"}) == {"primary_color": "#123456"}

    def test_collects_every_error(self):
        with pytest.raises(InvalidTheme) as exc:
            validate_theme({"primary_color": "blurple", "spacing": "roomy", "shadow": "lg"})
        assert len(exc.value.errors) == 3

    def test_border_radius_range(self):
        validate_theme({"border_radius": 0})
        with pytest.raises(InvalidTheme):
            validate_theme({"border_radius": 99})
        with pytest.raises(InvalidTheme):
            validate_theme({"border_radius": True})

    def test_font_names(self):
        validate_theme({"font_heading": "Open Sans"})
        with pytest.raises(InvalidTheme):
            validate_theme({"font_body": "Inter; background:url(x)"})

    def test_merge_overlays_stored_theme(self):
        merged = merge_theme(Theme(primary_color="#111111", font_body="Inter"), {"primary_color": "navy"})
        assert merged.primary_color == "navy"
        assert merged.font_body == "Inter"

    def test_none_accepted_as_reset(self):
        assert validate_theme({"primary_color": None}) == {"primary_color": None}

    def test_merge_none_removes_override(self):
        merged = merge_theme(Theme(primary_color="#111111", border_radius=4), {"primary_color": None})
        assert merged == Theme(border_radius=4)
        assert apply_theme(merged).primary_color == DEFAULT_THEME["primary_color"]


class TestApplyTheme:
    def test_empty_theme_resolves_to_defaults(self):
        resolved = apply_theme(Theme())
        assert resolved.primary_color == DEFAULT_THEME["primary_color"]
        assert resolved.spacing == "comfortable"
        assert resolved.border_radius == DEFAULT_THEME["border_radius"]

    def test_none_theme(self):
        assert apply_theme(None) == apply_theme(Theme())

    def test_named_colors_become_css(self):
        assert apply_theme(Theme(primary_color="navy")).primary_color == NAMED_COLORS["navy"]

    def test_overrides_win(self):
        resolved = apply_theme(Theme(primary_color="#111111"), {"primary_color": "#222222"})
        assert resolved.primary_color == "#222222"

    def test_bad_values_fall_back(self):
        # Stored data that bypassed validation must not break rendering
        theme = Theme(primary_color="not-a-color", border_radius=-4)
        resolved = apply_theme(theme, {"spacing": "enormous", "unknown": "x"})
        assert resolved.primary_color == DEFAULT_THEME["primary_color"]
        assert resolved.border_radius == DEFAULT_THEME["border_radius"]
        assert resolved.spacing == DEFAULT_THEME["spacing"]

    def test_presets(self):
        assert preset_theme("Creative").font_heading == "Poppins"
        assert preset_theme("Nonexistent") == Theme()
