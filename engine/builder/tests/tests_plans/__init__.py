"""Plan enforcement gate tests."""
