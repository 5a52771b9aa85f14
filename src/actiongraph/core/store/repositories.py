"""Repository layer for action store rows.

Handles the seam between SQLAlchemy rows (strings) and domain objects
(strict enum types). This is NOT a trust boundary - the store database is
our data, so an unknown enum value crashes instead of being coerced.
"""

from typing import Any

from sqlalchemy.engine import Row as SARow

from actiongraph.contracts.actions import (
    Action,
    ActionUsage,
    AuditRecord,
    Edge,
    Parameter,
    PipelineJob,
    PipelineUsage,
    Requirement,
)
from actiongraph.contracts.enums import ActionType, RequirementType


class ActionRepository:
    """Repository for base Action rows."""

    def load(self, row: SARow[Any]) -> Action:
        """Load a base Action from a database row.

        Requirements, parameters and children are left empty - the
        aggregation pipeline attaches them.
        """
        return Action(
            action_id=row.action_id,
            group_id=row.group_id,
            name=row.name,
            action_type=ActionType(row.type),  # Convert HERE
            description=row.description,
            enabled=bool(row.enabled),
            deprecated=bool(row.deprecated),
            last_modified=row.last_modified,
        )


class ParameterRepository:
    """Repository for declared parameters and edge parameter overrides.

    Both tables share the parameter columns and differ only by owner column.
    """

    def load(self, row: SARow[Any]) -> Parameter:
        return Parameter(
            name=row.name,
            type=row.type,
            value=row.value,
            description=row.description,
            advanced=bool(row.advanced),
        )


class RequirementRepository:
    """Repository for requirement rows."""

    def load(self, row: SARow[Any]) -> Requirement:
        return Requirement(
            name=row.name,
            type=RequirementType(row.type),  # Convert HERE
            value=row.value,
            action_id=row.action_id,
        )


class EdgeRepository:
    """Repository for edge rows. Parameters are attached by the store."""

    def load(self, row: SARow[Any]) -> Edge:
        return Edge(
            edge_id=row.edge_id,
            parent_id=row.parent_id,
            child_id=row.child_id,
            exec_order=row.exec_order,
            enabled=bool(row.enabled),
            optional=bool(row.optional),
            always_executed=bool(row.always_executed),
            step_name=row.step_name,
        )


class AuditRepository:
    """Repository for audit rows."""

    def load(self, row: SARow[Any]) -> AuditRecord:
        return AuditRecord(
            audit_id=row.audit_id,
            action_id=row.action_id,
            user_id=row.user_id,
            change=row.change,
            versioned_at=row.versioned_at,
            action_json=row.action_json,
            action_hash=row.action_hash,
        )


class PipelineJobRepository:
    """Repository for pipeline job rows."""

    def load(self, row: SARow[Any]) -> PipelineJob:
        return PipelineJob(
            job_id=row.job_id,
            pipeline_id=row.pipeline_id,
            pipeline_name=row.pipeline_name,
            stage_name=row.stage_name,
            job_name=row.job_name,
            group_id=row.group_id,
            action_id=row.action_id,
        )


class UsageRepository:
    """Repository for usage query rows.

    warning arrives as an int (0/1) from the CASE expression on every backend.
    """

    def load_pipeline_usage(self, row: SARow[Any]) -> PipelineUsage:
        return PipelineUsage(
            pipeline_id=row.pipeline_id,
            pipeline_name=row.pipeline_name,
            stage_name=row.stage_name,
            job_id=row.job_id,
            job_name=row.job_name,
            action_id=row.action_id,
            action_name=row.action_name,
            warning=bool(row.warning),
        )

    def load_action_usage(self, row: SARow[Any]) -> ActionUsage:
        return ActionUsage(
            parent_action_id=row.parent_action_id,
            parent_action_name=row.parent_action_name,
            action_id=row.action_id,
            action_name=row.action_name,
            warning=bool(row.warning),
        )
