"""
actiongraph: Composable build/deploy Actions with transactional graph persistence.

An Action is assembled from other Actions as ordered, parameterized edges.
Requirements propagate upward from children, and every mutation is
validated and written atomically.
"""

__version__ = "0.1.0"
