# src/actiongraph/core/__init__.py
"""Core infrastructure: Store, Aggregation, Validation, Usage, Canonical, Configuration, Logging."""

from actiongraph.core.aggregation import AggregationPipeline, bind_child
from actiongraph.core.builtins import builtin_actions, seed_builtin_actions
from actiongraph.core.canonical import canonical_json, stable_hash
from actiongraph.core.config import (
    ActionGraphSettings,
    DatabaseSettings,
    LoggingSettings,
    load_settings,
)
from actiongraph.core.events import (
    EventBus,
    EventBusProtocol,
    NullEventBus,
)
from actiongraph.core.export import action_from_document, export_action, parse_action_document
from actiongraph.core.logging import configure_logging
from actiongraph.core.requirements import (
    compute_requirements,
    merge_requirements,
    propagate_requirements,
    validate_requirements,
)
from actiongraph.core.store import ActionDB, ActionStore, SchemaCompatibilityError
from actiongraph.core.usage import UsageIndex
from actiongraph.core.validation import GraphValidator

__all__ = [
    "ActionDB",
    "ActionGraphSettings",
    "ActionStore",
    "AggregationPipeline",
    "DatabaseSettings",
    "EventBus",
    "EventBusProtocol",
    "GraphValidator",
    "LoggingSettings",
    "NullEventBus",
    "SchemaCompatibilityError",
    "UsageIndex",
    "action_from_document",
    "bind_child",
    "builtin_actions",
    "canonical_json",
    "compute_requirements",
    "configure_logging",
    "export_action",
    "load_settings",
    "merge_requirements",
    "parse_action_document",
    "propagate_requirements",
    "seed_builtin_actions",
    "stable_hash",
    "validate_requirements",
]
