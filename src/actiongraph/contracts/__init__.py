"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core/engine.
Settings classes are NOT re-exported here - import them from
actiongraph.core.config.

Import patterns:
    from actiongraph.contracts import Action, ActionType, Requirement
    from actiongraph.core.config import ActionGraphSettings
"""

from actiongraph.contracts.actions import (
    Action,
    ActionUsage,
    AuditRecord,
    BoundChild,
    Edge,
    Parameter,
    PipelineJob,
    PipelineUsage,
    Requirement,
    Usage,
)
from actiongraph.contracts.enums import (
    CATALOG_ACTION_TYPES,
    ActionType,
    ExportFormat,
    ParameterType,
    RequirementType,
)
from actiongraph.contracts.errors import (
    ActionGraphError,
    ActionValidationError,
    ConflictError,
    ForbiddenError,
    GraphValidationError,
    NotFoundError,
    RequirementValidationError,
    SecretParameterError,
    StorageError,
)
from actiongraph.contracts.events import ActionAdded, ActionDeleted, ActionUpdated

__all__ = [
    "CATALOG_ACTION_TYPES",
    "Action",
    "ActionAdded",
    "ActionDeleted",
    "ActionGraphError",
    "ActionType",
    "ActionUpdated",
    "ActionUsage",
    "ActionValidationError",
    "AuditRecord",
    "BoundChild",
    "ConflictError",
    "Edge",
    "ExportFormat",
    "ForbiddenError",
    "GraphValidationError",
    "NotFoundError",
    "Parameter",
    "ParameterType",
    "PipelineJob",
    "PipelineUsage",
    "Requirement",
    "RequirementType",
    "RequirementValidationError",
    "SecretParameterError",
    "StorageError",
    "Usage",
]
