"""
Reducer tests.

1. test_reducer_happy_path.py - One operation of each type
2. test_reducer_rejections.py - Every refusal leaves the snapshot untouched
3. test_reducer_idempotency.py - Operation ids are applied at most once
"""
