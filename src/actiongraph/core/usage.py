"""UsageIndex: one-hop reverse lookups over edges and pipeline jobs.

A pipeline job "uses" an action when it references the action directly or
references one of the action's direct parents. Nothing beyond one hop is
followed.

A usage carries a warning when it crosses groups: the referencing group is
neither the action's own group nor the shared group, and the action itself
is not a shared one.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import Connection, and_, case, exists, literal, or_, select
from sqlalchemy.exc import SQLAlchemyError

from actiongraph.contracts.actions import ActionUsage, PipelineUsage
from actiongraph.contracts.errors import StorageError
from actiongraph.core.store.repositories import UsageRepository
from actiongraph.core.store.schema import action_edges_table, actions_table, pipeline_jobs_table


class UsageIndex:
    """Reverse lookups for "what references this action"."""

    def __init__(self, shared_group_id: str) -> None:
        self._shared_group_id = shared_group_id
        self._usage_repo = UsageRepository()

    def used(self, conn: Connection, action_id: str) -> bool:
        """True if any edge has the action as child or any pipeline job references it."""
        as_child = exists().where(action_edges_table.c.child_id == action_id)
        in_job = exists().where(pipeline_jobs_table.c.action_id == action_id)
        return bool(self._execute(conn, select(or_(as_child, in_job)), "check usage", action_id=action_id).scalar())

    def get_pipeline_usages(self, conn: Connection, action_id: str) -> list[PipelineUsage]:
        """Jobs referencing the action or one of its direct parents."""
        target = actions_table.alias("target")
        jobs = pipeline_jobs_table
        parent_ids = select(action_edges_table.c.parent_id).where(action_edges_table.c.child_id == action_id)
        warning = case(
            (
                or_(
                    jobs.c.group_id == target.c.group_id,
                    jobs.c.group_id == self._shared_group_id,
                    target.c.group_id == self._shared_group_id,
                ),
                literal(0),
            ),
            else_=literal(1),
        )
        stmt = (
            select(
                jobs.c.pipeline_id,
                jobs.c.pipeline_name,
                jobs.c.stage_name,
                jobs.c.job_id,
                jobs.c.job_name,
                target.c.action_id,
                target.c.name.label("action_name"),
                warning.label("warning"),
            )
            .select_from(jobs.join(target, target.c.action_id == action_id))
            .where(or_(jobs.c.action_id == action_id, jobs.c.action_id.in_(parent_ids)))
            .order_by(jobs.c.pipeline_name, jobs.c.stage_name, jobs.c.job_name, jobs.c.job_id)
        )
        rows = self._execute(conn, stmt, "load pipeline usages", action_id=action_id).fetchall()
        return [self._usage_repo.load_pipeline_usage(r) for r in rows]

    def get_action_usages(self, conn: Connection, action_id: str) -> list[ActionUsage]:
        """Distinct direct parents of the action."""
        child = actions_table.alias("child")
        parent = actions_table.alias("parent")
        edges = action_edges_table
        warning = case(
            (
                or_(
                    parent.c.group_id == child.c.group_id,
                    parent.c.group_id == self._shared_group_id,
                    child.c.group_id == self._shared_group_id,
                ),
                literal(0),
            ),
            else_=literal(1),
        )
        stmt = (
            select(
                parent.c.action_id.label("parent_action_id"),
                parent.c.name.label("parent_action_name"),
                child.c.action_id,
                child.c.name.label("action_name"),
                warning.label("warning"),
            )
            .select_from(
                edges.join(child, edges.c.child_id == child.c.action_id).join(parent, edges.c.parent_id == parent.c.action_id)
            )
            .where(and_(child.c.action_id == action_id, parent.c.group_id.is_not(None)))
            .distinct()
            .order_by(parent.c.name, parent.c.action_id)
        )
        rows = self._execute(conn, stmt, "load action usages", action_id=action_id).fetchall()
        return [self._usage_repo.load_action_usage(r) for r in rows]

    def _execute(self, conn: Connection, stmt: Any, operation: str, **context: Any) -> Any:
        try:
            return conn.execute(stmt)
        except SQLAlchemyError as e:
            raise StorageError(operation, **context) from e
