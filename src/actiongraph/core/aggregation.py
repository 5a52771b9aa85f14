"""AggregationPipeline: turn base action rows into complete domain objects.

Each aggregator batch-fetches one kind of related row for every action in
the batch with a single IN query, groups the rows by owner and attaches
them. Aggregators write disjoint attributes and never read each other's
output:

    requirements  -> Action.requirements (stored rows)
    parameters    -> Action.parameters
    children      -> Action.children (bound children)

Requirement propagation reads requirements AND children, so it is not an
aggregator: it runs once after all aggregators have finished.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import replace
from typing import TypeAlias

import structlog
from sqlalchemy import Connection

from actiongraph.contracts.actions import Action, BoundChild, Edge
from actiongraph.contracts.enums import ActionType
from actiongraph.contracts.errors import GraphValidationError, NotFoundError
from actiongraph.core.requirements import propagate_requirements
from actiongraph.core.store._helpers import distinct, group_by
from actiongraph.core.store.store import ActionStore

logger = structlog.get_logger(__name__)

Aggregator: TypeAlias = Callable[[Connection, Sequence[Action], int], None]


def bind_child(canonical: Action, edge: Edge) -> BoundChild:
    """Bind a canonical child through an edge.

    The child is copied, then each of its parameters takes the edge override
    of the same name when one exists. Parameters without an override keep
    the child's own default value.
    """
    overrides = {p.name: p.value for p in edge.parameters}
    parameters = [replace(p, value=overrides[p.name]) if p.name in overrides else replace(p) for p in canonical.parameters]
    action = replace(
        canonical,
        parameters=parameters,
        requirements=list(canonical.requirements),
        children=list(canonical.children),
    )
    return BoundChild(
        action=action,
        step_name=edge.step_name,
        enabled=edge.enabled,
        optional=edge.optional,
        always_executed=edge.always_executed,
    )


class AggregationPipeline:
    """Ordered list of independent aggregators plus requirement propagation.

    Example:
        pipeline = AggregationPipeline(store, max_depth=32)
        with db.connection() as conn:
            actions = pipeline.run(conn, store.load_actions_by_ids(conn, ids))
    """

    def __init__(self, store: ActionStore, *, max_depth: int) -> None:
        self._store = store
        self._max_depth = max_depth
        self._aggregators: tuple[Aggregator, ...] = (
            self._aggregate_requirements,
            self._aggregate_parameters,
            self._aggregate_children,
        )

    def run(self, conn: Connection, actions: Sequence[Action], *, depth: int = 0) -> list[Action]:
        """Enrich a batch of base actions in place and return them as a list.

        Args:
            conn: Open connection (read inside the caller's transaction)
            actions: Base actions from ActionStore
            depth: Nesting level of this batch; children are loaded at depth + 1

        Raises:
            GraphValidationError: If stored children nest deeper than max_depth
        """
        batch = list(actions)
        if not batch:
            return batch
        for aggregator in self._aggregators:
            aggregator(conn, batch, depth)
        for action in batch:
            if action.action_type is not ActionType.BUILTIN:
                action.requirements = propagate_requirements(action.enabled, action.requirements, action.children)
        return batch

    def _aggregate_requirements(self, conn: Connection, actions: Sequence[Action], depth: int) -> None:
        by_action = group_by(
            self._store.load_requirements_by_action_ids(conn, [_id(a) for a in actions]),
            lambda r: r.action_id,
        )
        for action in actions:
            action.requirements = by_action.get(_id(action), [])

    def _aggregate_parameters(self, conn: Connection, actions: Sequence[Action], depth: int) -> None:
        pairs = self._store.load_parameters_by_action_ids(conn, [_id(a) for a in actions])
        by_action = group_by(pairs, lambda pair: pair[0])
        for action in actions:
            action.parameters = [p for _, p in by_action.get(_id(action), [])]

    def _aggregate_children(self, conn: Connection, actions: Sequence[Action], depth: int) -> None:
        # Builtin actions are leaves - never query edges for them
        parents = [a for a in actions if a.action_type is not ActionType.BUILTIN]
        if not parents:
            return

        edges = self._store.load_edges_by_parent_ids(conn, [_id(a) for a in parents])
        if not edges:
            for parent in parents:
                parent.children = []
            return

        if depth >= self._max_depth:
            raise GraphValidationError(
                "stored composition exceeds maximum depth",
                max_depth=self._max_depth,
                parent_ids=sorted(_id(a) for a in parents),
            )

        overrides = group_by(
            self._store.load_edge_parameters_by_edge_ids(conn, [e.edge_id for e in edges]),
            lambda pair: pair[0],
        )
        for edge in edges:
            edge.parameters = [p for _, p in overrides.get(edge.edge_id, [])]

        child_ids = distinct(e.child_id for e in edges)
        children = self.run(conn, self._store.load_actions_by_ids(conn, child_ids), depth=depth + 1)
        canonical = {_id(c): c for c in children}

        edges_by_parent = group_by(edges, lambda e: e.parent_id)
        for parent in parents:
            bound: list[BoundChild] = []
            for edge in edges_by_parent.get(_id(parent), []):
                if edge.child_id not in canonical:
                    raise NotFoundError("edge child not found", parent_id=edge.parent_id, child_id=edge.child_id)
                bound.append(bind_child(canonical[edge.child_id], edge))
            parent.children = bound

        logger.debug("children_aggregated", parents=len(parents), edges=len(edges), depth=depth)


def _id(action: Action) -> str:
    if action.action_id is None:
        raise ValueError(f"action {action.name!r} has no id - only stored actions can be aggregated")
    return action.action_id
