"""API integration tests (run with pytest from the project root)."""
