# tests/fixtures/__init__.py
"""Shared pytest fixtures for actiongraph tests.

Available fixtures:
- action_db: fresh in-memory ActionDB per test
- engine: CompositionEngine over action_db
- builtins: the seeded builtin catalogue, by name
"""
