# tests/property/settings.py
"""Standardized Hypothesis settings profiles for property tests.

Import these instead of using inline @settings(max_examples=...).

Tiers:
- DETERMINISM_SETTINGS: 500 examples - canonical hashing of audit snapshots
- STANDARD_SETTINGS: 100 examples - pure in-memory properties
- SLOW_SETTINGS: 50 examples - tests that build a database per example
"""

from hypothesis import HealthCheck, settings

DETERMINISM_SETTINGS = settings(max_examples=500)

STANDARD_SETTINGS = settings(max_examples=100)

# A fresh in-memory database per example is slow on the first call
SLOW_SETTINGS = settings(max_examples=50, deadline=None, suppress_health_check=[HealthCheck.too_slow])
