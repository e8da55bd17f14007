"""
Site Builder Assembly Test Suite

1. test_assembly_apply.py - Accept, dismiss, apply_all partial application
2. test_assembly_concurrency.py - Per-project locking, timeouts, gate at accept
3. test_assembly_lifecycle.py - Create, delete, pages, settings
4. test_assembly_publish.py - Preview and publish
"""
