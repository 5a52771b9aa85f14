# src/actiongraph/engine/__init__.py
"""Composition engine: transactional writes and aggregated reads of action graphs.

Example:
    from actiongraph.core import ActionDB, ActionGraphSettings
    from actiongraph.engine import CompositionEngine

    db = ActionDB.from_url("sqlite:///actions.db")
    engine = CompositionEngine(db, ActionGraphSettings())

    build = engine.insert(Action(name="build", group_id="team-a", children=[...]))
    engine.get_usage(build.action_id)
"""

from actiongraph.engine.composition import (
    CompositionEngine,
    collapse_list_default,
    edge_parameters,
)

__all__ = [
    "CompositionEngine",
    "collapse_list_default",
    "edge_parameters",
]
