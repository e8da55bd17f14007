"""
Document model tests.

1. test_document_primitives.py - Block primitives, theme/SEO/settings
2. test_page_lifecycle.py - Slugs, home page, page removal, slug freezing
"""
