"""ActionStore: persistence gateway for actions and the rows they own.

Every method takes an open Connection so the caller owns the transaction
boundary (the composition engine runs a whole mutation on one connection).

Reads return BASE rows only. An Action from load_action() has no
requirements, parameters or children attached - run it through the
AggregationPipeline before treating it as complete.

Writes are raw single-table operations with no cross-table knowledge.
Database errors surface as StorageError with the failed operation named.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import Connection, Executable, and_, delete, func, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import SQLAlchemyError

from actiongraph.contracts.actions import (
    Action,
    AuditRecord,
    Edge,
    Parameter,
    PipelineJob,
    Requirement,
)
from actiongraph.contracts.enums import CATALOG_ACTION_TYPES, RequirementType
from actiongraph.contracts.errors import RequirementValidationError, StorageError
from actiongraph.core.store._helpers import generate_id, now
from actiongraph.core.store.repositories import (
    ActionRepository,
    AuditRepository,
    EdgeRepository,
    ParameterRepository,
    PipelineJobRepository,
    RequirementRepository,
)
from actiongraph.core.store.schema import (
    action_audits_table,
    action_edge_parameters_table,
    action_edges_table,
    action_parameters_table,
    action_requirements_table,
    actions_table,
    pipeline_jobs_table,
)

_CATALOG_TYPE_VALUES = [str(t) for t in CATALOG_ACTION_TYPES]


class ActionStore:
    """Point and batch reads, raw writes. Stateless apart from repositories."""

    def __init__(self) -> None:
        self._action_repo = ActionRepository()
        self._parameter_repo = ParameterRepository()
        self._requirement_repo = RequirementRepository()
        self._edge_repo = EdgeRepository()
        self._audit_repo = AuditRepository()
        self._pipeline_job_repo = PipelineJobRepository()

    # ------------------------------------------------------------------
    # Execution helpers
    # ------------------------------------------------------------------

    def _execute(self, conn: Connection, stmt: Executable, operation: str, **context: Any) -> CursorResult[Any]:
        try:
            return conn.execute(stmt)
        except SQLAlchemyError as e:
            raise StorageError(operation, **context) from e

    # ------------------------------------------------------------------
    # Actions: reads
    # ------------------------------------------------------------------

    def load_action(self, conn: Connection, action_id: str) -> Action | None:
        """Load one base action by id, any type."""
        row = self._execute(
            conn,
            select(actions_table).where(actions_table.c.action_id == action_id),
            "load action",
            action_id=action_id,
        ).fetchone()
        return self._action_repo.load(row) if row is not None else None

    def load_action_by_name_and_group(self, conn: Connection, name: str, group_id: str) -> Action | None:
        """Load a Builtin/Default action by case-insensitive name within a group."""
        row = self._execute(
            conn,
            select(actions_table).where(
                and_(
                    func.lower(actions_table.c.name) == name.lower(),
                    actions_table.c.group_id == group_id,
                    actions_table.c.type.in_(_CATALOG_TYPE_VALUES),
                )
            ),
            "load action by name and group",
            name=name,
            group_id=group_id,
        ).fetchone()
        return self._action_repo.load(row) if row is not None else None

    def load_actions_by_name(self, conn: Connection, name: str) -> list[Action]:
        """Load every Builtin/Default action with this case-insensitive name.

        Ordered by group so the result is stable when several groups share a name.
        """
        rows = self._execute(
            conn,
            select(actions_table)
            .where(
                and_(
                    func.lower(actions_table.c.name) == name.lower(),
                    actions_table.c.type.in_(_CATALOG_TYPE_VALUES),
                )
            )
            .order_by(actions_table.c.group_id, actions_table.c.action_id),
            "load actions by name",
            name=name,
        ).fetchall()
        return [self._action_repo.load(r) for r in rows]

    def load_actions_by_ids(
        self,
        conn: Connection,
        action_ids: Sequence[str],
        *,
        group_ids: Sequence[str] | None = None,
        catalog_only: bool = False,
    ) -> list[Action]:
        """Batch load base actions.

        Args:
            action_ids: Ids to load; unknown ids are silently absent from the result
            group_ids: When given, only actions owned by one of these groups
            catalog_only: When True, only Builtin and Default actions
        """
        if not action_ids:
            return []
        conditions = [actions_table.c.action_id.in_(list(action_ids))]
        if group_ids is not None:
            conditions.append(actions_table.c.group_id.in_(list(group_ids)))
        if catalog_only:
            conditions.append(actions_table.c.type.in_(_CATALOG_TYPE_VALUES))
        rows = self._execute(
            conn,
            select(actions_table).where(and_(*conditions)),
            "load actions by ids",
            count=len(action_ids),
        ).fetchall()
        return [self._action_repo.load(r) for r in rows]

    def load_catalog_actions(self, conn: Connection, *, group_ids: Sequence[str] | None = None) -> list[Action]:
        """Load every Builtin/Default action, optionally restricted to groups. Ordered by name."""
        conditions = [actions_table.c.type.in_(_CATALOG_TYPE_VALUES)]
        if group_ids is not None:
            conditions.append(actions_table.c.group_id.in_(list(group_ids)))
        rows = self._execute(
            conn,
            select(actions_table).where(and_(*conditions)).order_by(func.lower(actions_table.c.name), actions_table.c.group_id),
            "load catalog actions",
        ).fetchall()
        return [self._action_repo.load(r) for r in rows]

    # ------------------------------------------------------------------
    # Actions: writes
    # ------------------------------------------------------------------

    def insert_action(self, conn: Connection, action: Action) -> str:
        """Insert the base row and return the new action id.

        Uses action.action_id when set (seeding), otherwise generates one.
        """
        action_id = action.action_id or generate_id()
        timestamp = now()
        self._execute(
            conn,
            actions_table.insert().values(
                action_id=action_id,
                group_id=action.group_id,
                name=action.name,
                type=str(action.action_type),
                description=action.description,
                enabled=action.enabled,
                deprecated=action.deprecated,
                created_at=timestamp,
                last_modified=timestamp,
            ),
            "insert action",
            name=action.name,
            group_id=action.group_id,
        )
        return action_id

    def update_action_fields(self, conn: Connection, action: Action) -> None:
        """Update the mutable scalar fields of an existing action.

        Raises:
            StorageError: If no row matches action.action_id
        """
        result = self._execute(
            conn,
            update(actions_table)
            .where(actions_table.c.action_id == action.action_id)
            .values(
                name=action.name,
                description=action.description,
                type=str(action.action_type),
                enabled=action.enabled,
                deprecated=action.deprecated,
                last_modified=now(),
            ),
            "update action",
            action_id=action.action_id,
        )
        if result.rowcount == 0:
            raise StorageError("update action: zero rows affected", action_id=action.action_id)

    def delete_action(self, conn: Connection, action_id: str) -> None:
        """Delete the base row. Edges, parameters and requirements cascade."""
        self._execute(
            conn,
            delete(actions_table).where(actions_table.c.action_id == action_id),
            "delete action",
            action_id=action_id,
        )

    # ------------------------------------------------------------------
    # Declared parameters
    # ------------------------------------------------------------------

    def load_parameters_by_action_ids(self, conn: Connection, action_ids: Sequence[str]) -> list[tuple[str, Parameter]]:
        """Batch load declared parameters as (action_id, parameter) pairs in declaration order."""
        if not action_ids:
            return []
        rows = self._execute(
            conn,
            select(action_parameters_table)
            .where(action_parameters_table.c.action_id.in_(list(action_ids)))
            .order_by(action_parameters_table.c.action_id, action_parameters_table.c.position),
            "load parameters",
            count=len(action_ids),
        ).fetchall()
        return [(r.action_id, self._parameter_repo.load(r)) for r in rows]

    def insert_parameter(self, conn: Connection, action_id: str, position: int, parameter: Parameter) -> None:
        self._execute(
            conn,
            action_parameters_table.insert().values(
                parameter_id=generate_id(),
                action_id=action_id,
                position=position,
                name=parameter.name,
                type=parameter.type,
                value=parameter.value,
                description=parameter.description,
                advanced=parameter.advanced,
            ),
            "insert parameter",
            action_id=action_id,
            parameter=parameter.name,
        )

    def delete_parameters_by_action_id(self, conn: Connection, action_id: str) -> None:
        self._execute(
            conn,
            delete(action_parameters_table).where(action_parameters_table.c.action_id == action_id),
            "delete parameters",
            action_id=action_id,
        )

    # ------------------------------------------------------------------
    # Requirements
    # ------------------------------------------------------------------

    def load_requirements_by_action_ids(self, conn: Connection, action_ids: Sequence[str]) -> list[Requirement]:
        """Batch load stored requirements in insertion order per action."""
        if not action_ids:
            return []
        rows = self._execute(
            conn,
            select(action_requirements_table)
            .where(action_requirements_table.c.action_id.in_(list(action_ids)))
            .order_by(action_requirements_table.c.action_id, action_requirements_table.c.position),
            "load requirements",
            count=len(action_ids),
        ).fetchall()
        return [self._requirement_repo.load(r) for r in rows]

    def insert_requirement(self, conn: Connection, action_id: str, position: int, requirement: Requirement) -> None:
        """Insert one requirement bound to action_id.

        Raises:
            RequirementValidationError: If name or value is empty
        """
        if not requirement.name or not requirement.value:
            raise RequirementValidationError(
                "requirement name and value are required",
                action_id=action_id,
                requirement=requirement.name,
                type=str(requirement.type),
            )
        self._execute(
            conn,
            action_requirements_table.insert().values(
                requirement_id=generate_id(),
                action_id=action_id,
                position=position,
                name=requirement.name,
                type=str(requirement.type),
                value=requirement.value,
            ),
            "insert requirement",
            action_id=action_id,
            requirement=requirement.name,
        )

    def delete_requirements_by_action_id(self, conn: Connection, action_id: str) -> None:
        self._execute(
            conn,
            delete(action_requirements_table).where(action_requirements_table.c.action_id == action_id),
            "delete requirements",
            action_id=action_id,
        )

    def load_distinct_binary_values(self, conn: Connection) -> list[str]:
        """Every distinct value of binary requirements, sorted."""
        rows = self._execute(
            conn,
            select(action_requirements_table.c.value)
            .where(action_requirements_table.c.type == str(RequirementType.BINARY))
            .distinct()
            .order_by(action_requirements_table.c.value),
            "load distinct binary requirements",
        ).fetchall()
        return [r.value for r in rows]

    def update_requirements_value(
        self,
        conn: Connection,
        old_value: str,
        new_value: str,
        requirement_type: RequirementType,
    ) -> list[str]:
        """Replace a requirement value on every action; return the affected action ids."""
        match = and_(
            action_requirements_table.c.value == old_value,
            action_requirements_table.c.type == str(requirement_type),
        )
        rows = self._execute(
            conn,
            select(action_requirements_table.c.action_id).where(match).distinct(),
            "select requirements to rename",
            old_value=old_value,
            type=str(requirement_type),
        ).fetchall()
        self._execute(
            conn,
            update(action_requirements_table).where(match).values(value=new_value),
            "rename requirements",
            old_value=old_value,
            new_value=new_value,
            type=str(requirement_type),
        )
        return sorted(r.action_id for r in rows)

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def load_edges_by_parent_ids(self, conn: Connection, parent_ids: Sequence[str]) -> list[Edge]:
        """Batch load edges, ordered by parent then exec_order ascending.

        Edge parameters are not attached - see load_edge_parameters_by_edge_ids.
        """
        if not parent_ids:
            return []
        rows = self._execute(
            conn,
            select(action_edges_table)
            .where(action_edges_table.c.parent_id.in_(list(parent_ids)))
            .order_by(action_edges_table.c.parent_id, action_edges_table.c.exec_order.asc()),
            "load edges",
            count=len(parent_ids),
        ).fetchall()
        return [self._edge_repo.load(r) for r in rows]

    def load_edge_parameters_by_edge_ids(self, conn: Connection, edge_ids: Sequence[str]) -> list[tuple[str, Parameter]]:
        """Batch load edge parameter overrides as (edge_id, parameter) pairs."""
        if not edge_ids:
            return []
        rows = self._execute(
            conn,
            select(action_edge_parameters_table)
            .where(action_edge_parameters_table.c.edge_id.in_(list(edge_ids)))
            .order_by(action_edge_parameters_table.c.edge_id, action_edge_parameters_table.c.position),
            "load edge parameters",
            count=len(edge_ids),
        ).fetchall()
        return [(r.edge_id, self._parameter_repo.load(r)) for r in rows]

    def load_child_links(self, conn: Connection, parent_ids: Sequence[str]) -> list[tuple[str, str]]:
        """Batch load (parent_id, child_id) pairs without edge details."""
        if not parent_ids:
            return []
        rows = self._execute(
            conn,
            select(action_edges_table.c.parent_id, action_edges_table.c.child_id)
            .where(action_edges_table.c.parent_id.in_(list(parent_ids)))
            .order_by(action_edges_table.c.parent_id, action_edges_table.c.exec_order),
            "load child links",
            count=len(parent_ids),
        ).fetchall()
        return [(r.parent_id, r.child_id) for r in rows]

    def load_parent_links(self, conn: Connection, child_ids: Sequence[str]) -> list[tuple[str, str]]:
        """Batch load (parent_id, child_id) pairs for edges pointing at child_ids."""
        if not child_ids:
            return []
        rows = self._execute(
            conn,
            select(action_edges_table.c.parent_id, action_edges_table.c.child_id)
            .where(action_edges_table.c.child_id.in_(list(child_ids)))
            .order_by(action_edges_table.c.child_id, action_edges_table.c.parent_id),
            "load parent links",
            count=len(child_ids),
        ).fetchall()
        return [(r.parent_id, r.child_id) for r in rows]

    def insert_edge(
        self,
        conn: Connection,
        *,
        parent_id: str,
        child_id: str,
        exec_order: int,
        enabled: bool,
        optional: bool,
        always_executed: bool,
        step_name: str,
    ) -> Edge:
        edge = Edge(
            edge_id=generate_id(),
            parent_id=parent_id,
            child_id=child_id,
            exec_order=exec_order,
            enabled=enabled,
            optional=optional,
            always_executed=always_executed,
            step_name=step_name,
        )
        self._execute(
            conn,
            action_edges_table.insert().values(
                edge_id=edge.edge_id,
                parent_id=edge.parent_id,
                child_id=edge.child_id,
                exec_order=edge.exec_order,
                enabled=edge.enabled,
                optional=edge.optional,
                always_executed=edge.always_executed,
                step_name=edge.step_name,
            ),
            "insert edge",
            parent_id=parent_id,
            child_id=child_id,
        )
        return edge

    def insert_edge_parameter(self, conn: Connection, edge_id: str, position: int, parameter: Parameter) -> None:
        self._execute(
            conn,
            action_edge_parameters_table.insert().values(
                edge_parameter_id=generate_id(),
                edge_id=edge_id,
                position=position,
                name=parameter.name,
                type=parameter.type,
                value=parameter.value,
                description=parameter.description,
                advanced=parameter.advanced,
            ),
            "insert edge parameter",
            edge_id=edge_id,
            parameter=parameter.name,
        )

    def delete_edges_by_parent_id(self, conn: Connection, parent_id: str) -> None:
        """Delete every edge of a parent. Edge parameters cascade."""
        self._execute(
            conn,
            delete(action_edges_table).where(action_edges_table.c.parent_id == parent_id),
            "delete edges",
            parent_id=parent_id,
        )

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def insert_audit(
        self,
        conn: Connection,
        *,
        action_id: str,
        user_id: str,
        change: str,
        action_json: str,
        action_hash: str,
    ) -> AuditRecord:
        record = AuditRecord(
            audit_id=generate_id(),
            action_id=action_id,
            user_id=user_id,
            change=change,
            versioned_at=now(),
            action_json=action_json,
            action_hash=action_hash,
        )
        self._execute(
            conn,
            action_audits_table.insert().values(
                audit_id=record.audit_id,
                action_id=record.action_id,
                user_id=record.user_id,
                change=record.change,
                versioned_at=record.versioned_at,
                action_json=record.action_json,
                action_hash=record.action_hash,
            ),
            "insert audit",
            action_id=action_id,
        )
        return record

    def load_audits(self, conn: Connection, action_id: str) -> list[AuditRecord]:
        """Audit history for an action, newest first."""
        rows = self._execute(
            conn,
            select(action_audits_table)
            .where(action_audits_table.c.action_id == action_id)
            .order_by(action_audits_table.c.versioned_at.desc(), action_audits_table.c.audit_id),
            "load audits",
            action_id=action_id,
        ).fetchall()
        return [self._audit_repo.load(r) for r in rows]

    # ------------------------------------------------------------------
    # Pipeline jobs (owned by the pipeline layer)
    # ------------------------------------------------------------------

    def insert_pipeline_job(self, conn: Connection, job: PipelineJob) -> None:
        self._execute(
            conn,
            pipeline_jobs_table.insert().values(
                job_id=job.job_id,
                pipeline_id=job.pipeline_id,
                pipeline_name=job.pipeline_name,
                stage_name=job.stage_name,
                job_name=job.job_name,
                group_id=job.group_id,
                action_id=job.action_id,
            ),
            "insert pipeline job",
            job_id=job.job_id,
            action_id=job.action_id,
        )

    def delete_pipeline_job(self, conn: Connection, job_id: str) -> None:
        self._execute(
            conn,
            delete(pipeline_jobs_table).where(pipeline_jobs_table.c.job_id == job_id),
            "delete pipeline job",
            job_id=job_id,
        )

    def load_pipeline_jobs(self, conn: Connection, action_id: str) -> list[PipelineJob]:
        """Jobs that reference action_id directly."""
        rows = self._execute(
            conn,
            select(pipeline_jobs_table).where(pipeline_jobs_table.c.action_id == action_id).order_by(pipeline_jobs_table.c.job_id),
            "load pipeline jobs",
            action_id=action_id,
        ).fetchall()
        return [self._pipeline_job_repo.load(r) for r in rows]
