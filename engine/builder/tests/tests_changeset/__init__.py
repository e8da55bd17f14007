"""Changeset state machine tests."""
