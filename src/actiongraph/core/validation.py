"""GraphValidator: existence, scope and cycle checks before a graph mutation.

Children may only come from the mutating action's own group or the shared
group, and must be Builtin or Default actions.

The loop check walks the stored subgraph below the proposed children one
level at a time (one batch query per level), re-applying the existence and
scope check at each level, then runs a cycle check over the whole proposed
assignment: the edited action's NEW edges plus every stored edge reachable
from them. The edited action's own stored edges are left out because the
update replaces them. Stored parents of the edited action count towards the
depth bound too.
"""

from __future__ import annotations

from collections.abc import Sequence

import networkx as nx
import structlog
from sqlalchemy import Connection

from actiongraph.contracts.actions import Action
from actiongraph.contracts.enums import ActionType
from actiongraph.contracts.errors import GraphValidationError, NotFoundError
from actiongraph.core.store._helpers import distinct
from actiongraph.core.store.store import ActionStore

logger = structlog.get_logger(__name__)


class GraphValidator:
    """Validates proposed children of an action against the store."""

    def __init__(self, store: ActionStore, *, max_depth: int) -> None:
        self._store = store
        self._max_depth = max_depth

    def check_children_exist(self, conn: Connection, action: Action, allowed_group_ids: Sequence[str]) -> list[Action]:
        """Check that every proposed child exists, is in scope and is a catalog action.

        Returns:
            The resolved base children (distinct, unordered)

        Raises:
            NotFoundError: Naming the child ids that could not be resolved
        """
        child_ids = action.unique_child_ids()
        if not child_ids:
            return []
        return self._resolve(conn, child_ids, allowed_group_ids, parent=action.name)

    def check_children_exist_with_loop(self, conn: Connection, action: Action, allowed_group_ids: Sequence[str]) -> None:
        """Existence/scope check over the reachable subgraph, plus depth and cycle checks.

        Depth counts edges the same way the loader does: every stored
        ancestor of the action plus the deepest chain of edges below it must
        fit within max_depth, so an accepted edit never makes an existing
        ancestor unreadable.

        Raises:
            NotFoundError: If a child at any level is missing or out of scope
            GraphValidationError: If the proposed assignment contains a cycle
                or nests deeper than max_depth
        """
        if not action.children:
            return
        # Builtin actions are leaves; check_valid() already rejects children on them
        if action.action_type is ActionType.BUILTIN:
            return

        root = _node_key(action)
        graph: nx.DiGraph[str] = nx.DiGraph()
        graph.add_node(root)
        for child_id in action.unique_child_ids():
            graph.add_edge(root, child_id)

        ancestor_depth = self._ancestor_depth(conn, action)
        limit = self._max_depth - ancestor_depth
        level = self.check_children_exist(conn, action, allowed_group_ids)
        depth = 1
        if depth > limit:
            raise self._depth_error(action, ancestor_depth)
        frontier = _expandable(level, root)
        while frontier:
            links = self._store.load_child_links(conn, frontier)
            if not links:
                break
            if depth >= limit:
                raise self._depth_error(action, ancestor_depth)
            for parent_id, child_id in links:
                graph.add_edge(parent_id, child_id)
            resolved = self._resolve(conn, distinct(child_id for _, child_id in links), allowed_group_ids, parent=action.name)
            frontier = _expandable(resolved, root)
            depth += 1

        if not nx.is_directed_acyclic_graph(graph):
            cycle = nx.find_cycle(graph, source=root) if graph.out_degree(root) else nx.find_cycle(graph)
            path = " -> ".join(edge[0] for edge in cycle)
            logger.warning("composition_cycle_rejected", action=action.name, cycle=path)
            raise GraphValidationError("composition contains a cycle", action=action.name, cycle=path)

    def _ancestor_depth(self, conn: Connection, action: Action) -> int:
        """Edges on the longest stored chain of parents above the action.

        Walks up one level per batch query. Stops at max_depth since any
        child edge is rejected from there on.
        """
        if action.action_id is None:
            return 0
        depth = 0
        frontier = [action.action_id]
        while frontier and depth < self._max_depth:
            parents = distinct(parent_id for parent_id, _ in self._store.load_parent_links(conn, frontier))
            if not parents:
                break
            depth += 1
            frontier = parents
        return depth

    def _depth_error(self, action: Action, ancestor_depth: int) -> GraphValidationError:
        logger.warning("composition_too_deep", action=action.name, ancestor_depth=ancestor_depth, max_depth=self._max_depth)
        return GraphValidationError(
            "composition exceeds maximum depth",
            action=action.name,
            max_depth=self._max_depth,
            ancestor_depth=ancestor_depth,
        )

    def _resolve(
        self,
        conn: Connection,
        child_ids: Sequence[str],
        allowed_group_ids: Sequence[str],
        *,
        parent: str,
    ) -> list[Action]:
        found = self._store.load_actions_by_ids(conn, child_ids, group_ids=allowed_group_ids, catalog_only=True)
        missing = sorted(set(child_ids) - {a.action_id for a in found if a.action_id is not None})
        if missing:
            logger.warning("children_not_found", parent=parent, missing=missing)
            raise NotFoundError(
                "some given children cannot be found",
                parent=parent,
                missing_child_ids=missing,
                allowed_group_ids=list(allowed_group_ids),
            )
        return found


def _node_key(action: Action) -> str:
    # A new action has no id yet; nothing stored can point at it
    return action.action_id if action.action_id is not None else f"<new:{action.name}>"


def _expandable(actions: Sequence[Action], root: str) -> list[str]:
    """Ids of non-builtin actions whose stored children need walking.

    Not deduplicated across levels: a node reached again by a longer path
    is walked again so depth matches the loader. The root's stored edges
    are replaced by the edit and never walked.
    """
    return [a.action_id for a in actions if a.action_id is not None and a.action_type is not ActionType.BUILTIN and a.action_id != root]
