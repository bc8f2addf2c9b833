"""Adapters for external resources (database)."""
