"""Observability helpers for docvault."""
