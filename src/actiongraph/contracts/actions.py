"""Domain contracts for actions, their edges and their records.

These are strict contracts - enum fields must hold enum members.
The repository layer converts database strings to enums on read.

Binding vs canonical:
    An Action never carries call-site state. When an action is used as a
    child, the call-site overrides (step name, optional, always executed,
    enabled-as-child) live on the BoundChild that wraps it, and the child's
    parameters hold the values configured on the edge.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from actiongraph.contracts.enums import ActionType, RequirementType
from actiongraph.contracts.errors import ActionValidationError


def _validate_enum(value: object, enum_type: type, field_name: str) -> None:
    """Validate that value is an instance of the expected enum type."""
    if value is not None and not isinstance(value, enum_type):
        raise TypeError(f"{field_name} must be {enum_type.__name__}, got {type(value).__name__}: {value!r}")


@dataclass
class Parameter:
    """A declared parameter of an action, or a value override on an edge.

    type is free text. "list" values are ';'-separated choices and
    "secret" is never storable as a declared parameter.
    """

    name: str
    type: str = "string"
    value: str = ""
    description: str = ""
    advanced: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": str(self.type),
            "value": self.value,
            "description": self.description,
            "advanced": self.advanced,
        }


@dataclass
class Requirement:
    """A named execution precondition, e.g. a binary on the worker.

    Two requirements are the same requirement for propagation purposes when
    their (type, value) pair matches - see key.
    """

    name: str
    type: RequirementType
    value: str
    action_id: str | None = None

    def __post_init__(self) -> None:
        _validate_enum(self.type, RequirementType, "type")

    @property
    def key(self) -> tuple[RequirementType, str]:
        """Identity used when merging requirement sets."""
        return (self.type, self.value)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": str(self.type), "value": self.value}


@dataclass
class BoundChild:
    """A child action bound into a parent through an edge.

    action is a copy of the canonical child whose parameter values have been
    replaced by the edge overrides. The remaining fields are the call-site
    overrides stored on the edge.
    """

    action: Action
    step_name: str = ""
    enabled: bool = True
    optional: bool = False
    always_executed: bool = False

    @property
    def action_id(self) -> str | None:
        return self.action.action_id

    @property
    def name(self) -> str:
        return self.action.name

    @property
    def parameters(self) -> list[Parameter]:
        return self.action.parameters

    @property
    def requirements(self) -> list[Requirement]:
        return self.action.requirements

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.action.to_dict(),
            "step_name": self.step_name,
            "enabled": self.enabled,
            "optional": self.optional,
            "always_executed": self.always_executed,
        }


@dataclass
class Action:
    """A named, reusable unit of work.

    Strict contract - action_type must be ActionType enum.
    children is only populated on Actions returned by the aggregation
    pipeline (or submitted to the engine for writing).
    """

    name: str
    group_id: str | None = None
    action_type: ActionType = ActionType.DEFAULT
    description: str = ""
    enabled: bool = True
    deprecated: bool = False
    action_id: str | None = None
    requirements: list[Requirement] = field(default_factory=list)
    parameters: list[Parameter] = field(default_factory=list)
    children: list[BoundChild] = field(default_factory=list)
    last_modified: datetime | None = None

    def __post_init__(self) -> None:
        _validate_enum(self.action_type, ActionType, "action_type")

    def unique_child_ids(self) -> list[str]:
        """Distinct child ids in first-use order."""
        seen: dict[str, None] = {}
        for child in self.children:
            if child.action_id is None:
                raise ActionValidationError("child action has no id", parent=self.name, child=child.name)
            seen.setdefault(child.action_id, None)
        return list(seen)

    def check_valid(self) -> None:
        """Validate user input before any database work.

        Raises:
            ActionValidationError: If name or group is missing, parameter
                names repeat, or a Builtin action is given children
        """
        if not self.name or not self.name.strip():
            raise ActionValidationError("action name is required", action_id=self.action_id)
        if not self.group_id:
            raise ActionValidationError("action group is required", name=self.name)
        seen: set[str] = set()
        for parameter in self.parameters:
            if not parameter.name:
                raise ActionValidationError("parameter name is required", name=self.name)
            if parameter.name in seen:
                raise ActionValidationError("duplicate parameter name", name=self.name, parameter=parameter.name)
            seen.add(parameter.name)
        if self.action_type.is_leaf and self.children:
            raise ActionValidationError("builtin action cannot have children", name=self.name)

    def to_dict(self) -> dict[str, Any]:
        """Plain-data snapshot used for audit records and export."""
        return {
            "id": self.action_id,
            "group_id": self.group_id,
            "name": self.name,
            "type": str(self.action_type),
            "description": self.description,
            "enabled": self.enabled,
            "deprecated": self.deprecated,
            "requirements": [r.to_dict() for r in self.requirements],
            "parameters": [p.to_dict() for p in self.parameters],
            "actions": [c.to_dict() for c in self.children],
            "last_modified": self.last_modified,
        }


@dataclass
class Edge:
    """Stored binding of a child into a parent (one action_edges row)."""

    edge_id: str
    parent_id: str
    child_id: str
    exec_order: int
    enabled: bool
    optional: bool
    always_executed: bool
    step_name: str
    parameters: list[Parameter] = field(default_factory=list)


@dataclass
class AuditRecord:
    """Snapshot of an action taken before an edit or deletion.

    Append-only. Not tied to the current graph state - the action it
    describes may no longer exist.
    """

    audit_id: str
    action_id: str
    user_id: str
    change: str
    versioned_at: datetime
    action_json: str
    action_hash: str

    @property
    def snapshot(self) -> dict[str, Any]:
        """Decoded action_json."""
        decoded = json.loads(self.action_json)
        if type(decoded) is not dict:
            raise ValueError(f"action_json must decode to dict, got {type(decoded).__name__}")
        return decoded


@dataclass
class PipelineJob:
    """A pipeline job referencing an action. Owned by the pipeline layer."""

    job_id: str
    pipeline_id: str
    pipeline_name: str
    stage_name: str
    job_name: str
    group_id: str
    action_id: str


@dataclass(frozen=True)
class PipelineUsage:
    """A pipeline job that references an action.

    warning is set when the pipeline's group is neither the action's group
    nor the shared group.
    """

    pipeline_id: str
    pipeline_name: str
    stage_name: str
    job_id: str
    job_name: str
    action_id: str
    action_name: str
    warning: bool


@dataclass(frozen=True)
class ActionUsage:
    """A parent action that has the action as a direct child."""

    parent_action_id: str
    parent_action_name: str
    action_id: str
    action_name: str
    warning: bool


@dataclass(frozen=True)
class Usage:
    """Every one-hop reference to an action."""

    pipelines: tuple[PipelineUsage, ...]
    actions: tuple[ActionUsage, ...]
