"""
Renderer tests.

1. test_renderer_determinism.py - Byte-identical output, every block type renders
2. test_renderer_page.py - Head, navigation, credit, escaping, fault isolation
"""
