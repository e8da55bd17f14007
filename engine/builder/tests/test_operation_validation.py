"""
Operation payload validation tests.

validate_operation() is structural only: it never looks at the document.
"""

import pytest

from engine.builder.primitives import validate_operation


class TestOperationType:
    def test_unknown_type(self):
        assert validate_operation("add_page", {}) == ["Unknown operation type: add_page"]

    def test_payload_must_be_object(self):
        assert validate_operation("remove_block", None) == ["Payload must be a non-null object"]


class TestAddBlock:
    def test_valid(self):
        assert validate_operation("add_block", {"page": "home", "block": {"type": "hero"}}) == []

    def test_missing_page_and_block(self):
        errors = validate_operation("add_block", {})
        assert "add_block requires 'page'" in errors
        assert "add_block requires 'block' object" in errors

    def test_unknown_block_type_is_not_structural(self):
        # The reducer rejects unknown block types, not this layer
        assert validate_operation("add_block", {"page": "home", "block": {"type": "carousel"}}) == []

    @pytest.mark.parametrize("index", ["1", 1.5, True])
    def test_index_must_be_int(self, index):
        errors = validate_operation("add_block", {"page": "home", "block": {"type": "hero"}, "index": index})
        assert "'index' must be an integer" in errors

    def test_index_and_after_block_id_exclusive(self):
        payload = {"page": "home", "block": {"type": "hero"}, "index": 0, "after_block_id": "blk_a"}
        assert "add_block takes 'index' or 'after_block_id', not both" in validate_operation("add_block", payload)

    def test_block_data_must_be_object(self):
        errors = validate_operation("add_block", {"page": "home", "block": {"type": "hero", "data": "Hi"}})
        assert "'data' must be an object" in errors


class TestUpdateAndRemove:
    def test_update_needs_data_or_style(self):
        errors = validate_operation("update_block", {"page": "home", "block_id": "blk_a"})
        assert errors == ["update_block requires 'data' or 'style'"]

    def test_update_style_only(self):
        assert validate_operation("update_block", {"page": "home", "block_id": "blk_a", "style": {"hidden": True}}) == []

    def test_remove_needs_block_id(self):
        assert validate_operation("remove_block", {"page": "home"}) == ["remove_block requires 'block_id'"]

    def test_overlong_reference(self):
        errors = validate_operation("remove_block", {"page": "x" * 200, "block_id": "blk_a"})
        assert len(errors) == 1 and errors[0].startswith("Invalid page reference")


class TestThemeAndSeo:
    def test_theme_must_be_non_empty(self):
        assert validate_operation("update_theme", {"theme": {}}) == ["update_theme requires a non-empty 'theme' object"]

    def test_unknown_theme_field(self):
        assert validate_operation("update_theme", {"theme": {"shadow": "lg"}}) == ["Unknown theme field: shadow"]

    def test_seo_page_optional(self):
        assert validate_operation("update_seo", {"seo": {"title": "Acme"}}) == []

    def test_unknown_seo_field(self):
        assert validate_operation("update_seo", {"seo": {"keywords": "a"}}) == ["Unknown SEO field: keywords"]
