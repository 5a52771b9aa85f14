"""Action store: SQLAlchemy Core persistence for actions and their subgraph.

Primary API:
    ActionDB - Database connection management
    ActionStore - Point/batch reads and raw single-table writes
"""

from actiongraph.core.store.database import ActionDB, SchemaCompatibilityError
from actiongraph.core.store.schema import (
    action_audits_table,
    action_edge_parameters_table,
    action_edges_table,
    action_parameters_table,
    action_requirements_table,
    actions_table,
    metadata,
    pipeline_jobs_table,
)
from actiongraph.core.store.store import ActionStore

__all__ = [
    "ActionDB",
    "ActionStore",
    "SchemaCompatibilityError",
    "action_audits_table",
    "action_edge_parameters_table",
    "action_edges_table",
    "action_parameters_table",
    "action_requirements_table",
    "actions_table",
    "metadata",
    "pipeline_jobs_table",
]
