"""
Block schema and theme model tests.

1. test_block_schema.py - Registry, defaults, field constraints, links
2. test_theme_model.py - Strict validation, total resolution
"""
