# tests/unit/core/test_aggregation.py
"""Tests for the aggregation pipeline over raw store rows."""

from __future__ import annotations

import pytest

from actiongraph.contracts.actions import Action, Edge, Parameter, Requirement
from actiongraph.contracts.enums import ActionType, RequirementType
from actiongraph.contracts.errors import GraphValidationError
from actiongraph.core.aggregation import AggregationPipeline, bind_child
from actiongraph.core.store.database import ActionDB
from actiongraph.core.store.store import ActionStore
from tests.fixtures.factories import TEAM_A


class _Graph:
    """Raw-row builder that bypasses the engine."""

    def __init__(self, db: ActionDB) -> None:
        self.db = db
        self.store = ActionStore()

    def action(
        self,
        name: str,
        *,
        action_type: ActionType = ActionType.DEFAULT,
        enabled: bool = True,
        requirements: tuple[str, ...] = (),
        parameters: tuple[Parameter, ...] = (),
    ) -> str:
        with self.db.connection() as conn:
            action_id = self.store.insert_action(conn, Action(name=name, group_id=TEAM_A, action_type=action_type, enabled=enabled))
            for position, value in enumerate(requirements):
                self.store.insert_requirement(conn, action_id, position, Requirement(value, RequirementType.BINARY, value))
            for position, parameter in enumerate(parameters):
                self.store.insert_parameter(conn, action_id, position, parameter)
        return action_id

    def link(self, parent_id: str, child_id: str, exec_order: int, *, enabled: bool = True, **overrides: str) -> None:
        with self.db.connection() as conn:
            edge = self.store.insert_edge(
                conn,
                parent_id=parent_id,
                child_id=child_id,
                exec_order=exec_order,
                enabled=enabled,
                optional=False,
                always_executed=False,
                step_name="",
            )
            for position, (name, value) in enumerate(overrides.items()):
                self.store.insert_edge_parameter(conn, edge.edge_id, position, Parameter(name, value=value))

    def load(self, pipeline: AggregationPipeline, *action_ids: str) -> list[Action]:
        with self.db.connection() as conn:
            return pipeline.run(conn, self.store.load_actions_by_ids(conn, list(action_ids)))


@pytest.fixture
def graph(action_db: ActionDB) -> _Graph:
    return _Graph(action_db)


@pytest.fixture
def pipeline(store: ActionStore) -> AggregationPipeline:
    return AggregationPipeline(store, max_depth=8)


class TestBindChild:
    def test_overrides_replace_matching_parameters_only(self) -> None:
        canonical = Action(
            name="GitClone",
            action_id="c1",
            parameters=[Parameter("branch", value="master"), Parameter("depth", value="50")],
        )
        edge = Edge("e1", "p1", "c1", 1, True, True, False, "Checkout", parameters=[Parameter("branch", value="dev")])

        bound = bind_child(canonical, edge)

        assert [(p.name, p.value) for p in bound.parameters] == [("branch", "dev"), ("depth", "50")]
        assert bound.step_name == "Checkout"
        assert bound.optional is True
        assert canonical.parameters[0].value == "master"


class TestAggregationPipeline:
    def test_empty_batch(self, pipeline: AggregationPipeline, action_db: ActionDB) -> None:
        with action_db.connection() as conn:
            assert pipeline.run(conn, []) == []

    def test_children_in_exec_order(self, graph: _Graph, pipeline: AggregationPipeline) -> None:
        parent = graph.action("parent")
        first = graph.action("first")
        second = graph.action("second")
        graph.link(parent, second, 2)
        graph.link(parent, first, 1)

        (loaded,) = graph.load(pipeline, parent)

        assert [c.name for c in loaded.children] == ["first", "second"]

    def test_edge_overrides_bound(self, graph: _Graph, pipeline: AggregationPipeline) -> None:
        parent = graph.action("parent")
        leaf = graph.action("leaf", action_type=ActionType.BUILTIN, parameters=(Parameter("a", value="1"), Parameter("b", value="2")))
        graph.link(parent, leaf, 1, b="override")

        (loaded,) = graph.load(pipeline, parent)

        assert {p.name: p.value for p in loaded.children[0].parameters} == {"a": "1", "b": "override"}

    def test_only_enabled_children_propagate(self, graph: _Graph, pipeline: AggregationPipeline) -> None:
        parent = graph.action("parent", requirements=("make",))
        on = graph.action("on", action_type=ActionType.BUILTIN, requirements=("git",))
        off = graph.action("off", action_type=ActionType.BUILTIN, requirements=("docker",))
        graph.link(parent, on, 1)
        graph.link(parent, off, 2, enabled=False)

        (loaded,) = graph.load(pipeline, parent)

        assert [r.value for r in loaded.requirements] == ["make", "git"]

    def test_disabled_parent_requires_nothing(self, graph: _Graph, pipeline: AggregationPipeline) -> None:
        parent = graph.action("parent", enabled=False, requirements=("make",))
        leaf = graph.action("leaf", action_type=ActionType.BUILTIN, requirements=("git",))
        graph.link(parent, leaf, 1)

        (loaded,) = graph.load(pipeline, parent)

        assert loaded.requirements == []

    def test_requirements_propagate_through_levels(self, graph: _Graph, pipeline: AggregationPipeline) -> None:
        top = graph.action("top")
        middle = graph.action("middle")
        leaf = graph.action("leaf", action_type=ActionType.BUILTIN, requirements=("git",))
        graph.link(top, middle, 1)
        graph.link(middle, leaf, 1)

        (loaded,) = graph.load(pipeline, top)

        assert [r.value for r in loaded.requirements] == ["git"]
        assert loaded.children[0].action.children[0].name == "leaf"

    def test_builtin_edges_ignored(self, graph: _Graph, pipeline: AggregationPipeline) -> None:
        builtin = graph.action("builtin", action_type=ActionType.BUILTIN)
        other = graph.action("other")
        graph.link(builtin, other, 1)

        (loaded,) = graph.load(pipeline, builtin)

        assert loaded.children == []

    def test_shared_child_bound_independently(self, graph: _Graph, pipeline: AggregationPipeline) -> None:
        first = graph.action("first")
        second = graph.action("second")
        leaf = graph.action("leaf", action_type=ActionType.BUILTIN, parameters=(Parameter("x", value="default"),))
        graph.link(first, leaf, 1, x="one")
        graph.link(second, leaf, 1)

        loaded = {a.name: a for a in graph.load(pipeline, first, second)}

        assert loaded["first"].children[0].parameters[0].value == "one"
        assert loaded["second"].children[0].parameters[0].value == "default"

    def test_stored_nesting_beyond_depth_rejected(self, graph: _Graph, store: ActionStore) -> None:
        ids = [graph.action(f"level-{i}") for i in range(4)]
        for parent, child in zip(ids, ids[1:], strict=False):
            graph.link(parent, child, 1)

        with pytest.raises(GraphValidationError):
            graph.load(AggregationPipeline(store, max_depth=2), ids[0])
