"""Tier vote test suite."""
