"""Property-based tests for composition invariants."""
