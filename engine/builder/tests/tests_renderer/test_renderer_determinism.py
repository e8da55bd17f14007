"""
Site Builder -- Renderer Determinism Tests

Same (project, page, theme) in, byte-identical HTML out.
"""

import pytest

from engine.builder.blocks import BLOCK_TYPES, create_default
from engine.builder.document import add_page, new_project
from engine.builder.renderer import content_hash, render, render_site
from engine.builder.types import Theme


def full_project():
    blocks = [create_default(t, f"blk_{t}") for t in sorted(BLOCK_TYPES)]
    project = new_project("cust_r", "Acme", project_id="site_r", blocks=blocks)
    return add_page(project, "about", "About", page_id="page_about")


class TestDeterminism:
    def test_same_input_same_bytes(self):
        project = full_project()
        assert render(project, "home") == render(project, "home")

    def test_equal_projects_render_equal(self):
        # Two separately built but equal snapshots
        a = new_project("c", "Acme", project_id="site_x", blocks=[create_default("hero", "blk_1")])
        b = new_project("c", "Acme", project_id="site_x", blocks=[create_default("hero", "blk_1")])
        a_html = render(a, "home")
        b_html = render(b, "home")
        # Page ids are generated, but never rendered
        assert a_html == b_html

    def test_content_hash_stable(self):
        project = full_project()
        assert content_hash(render(project, "home")) == content_hash(render(project, "home"))
        assert content_hash("x").startswith("sha256:")

    def test_theme_changes_output(self):
        project = full_project()
        assert render(project, "home") != render(project, "home", Theme(primary_color="#ff0000"))

    def test_site_in_page_order(self):
        pages = render_site(full_project())
        assert list(pages) == ["home", "about"]

    @pytest.mark.parametrize("block_type", sorted(BLOCK_TYPES))
    def test_every_default_block_renders_cleanly(self, block_type):
        project = new_project("c", "Acme", blocks=[create_default(block_type, "blk_only")])
        html = render(project, "home")
        assert "unavailable" not in html
