"""Shared test helpers for docvault tests."""
