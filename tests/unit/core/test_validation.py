# tests/unit/core/test_validation.py
"""Tests for GraphValidator existence, scope, depth and cycle checks."""

from __future__ import annotations

import pytest

from actiongraph.contracts.actions import Action, BoundChild
from actiongraph.contracts.enums import ActionType
from actiongraph.contracts.errors import GraphValidationError, NotFoundError
from actiongraph.core.store.database import ActionDB
from actiongraph.core.store.store import ActionStore
from actiongraph.core.validation import GraphValidator
from tests.fixtures.factories import SHARED_GROUP, TEAM_A, TEAM_B

ALLOWED = [TEAM_A, SHARED_GROUP]


def _stored(db: ActionDB, store: ActionStore, name: str, group_id: str = TEAM_A, action_type: ActionType = ActionType.DEFAULT) -> Action:
    with db.connection() as conn:
        action_id = store.insert_action(conn, Action(name=name, group_id=group_id, action_type=action_type))
    return Action(name=name, group_id=group_id, action_type=action_type, action_id=action_id)


def _link(db: ActionDB, store: ActionStore, parent: Action, child: Action) -> None:
    with db.connection() as conn:
        store.insert_edge(
            conn,
            parent_id=parent.action_id or "",
            child_id=child.action_id or "",
            exec_order=1,
            enabled=True,
            optional=False,
            always_executed=False,
            step_name="",
        )


def _proposal(name: str, *children: Action, action_id: str | None = None) -> Action:
    return Action(name=name, group_id=TEAM_A, action_id=action_id, children=[BoundChild(action=c) for c in children])


@pytest.fixture
def validator(store: ActionStore) -> GraphValidator:
    return GraphValidator(store, max_depth=8)


class TestCheckChildrenExist:
    def test_no_children(self, validator: GraphValidator, action_db: ActionDB) -> None:
        with action_db.connection() as conn:
            assert validator.check_children_exist(conn, _proposal("A"), ALLOWED) == []

    def test_resolves_own_and_shared_children(self, validator: GraphValidator, action_db: ActionDB, store: ActionStore) -> None:
        own = _stored(action_db, store, "own")
        shared = _stored(action_db, store, "Script", SHARED_GROUP, ActionType.BUILTIN)

        with action_db.connection() as conn:
            found = validator.check_children_exist(conn, _proposal("A", own, shared, own), ALLOWED)

        assert {a.action_id for a in found} == {own.action_id, shared.action_id}

    def test_foreign_group_child_missing(self, validator: GraphValidator, action_db: ActionDB, store: ActionStore) -> None:
        foreign = _stored(action_db, store, "foreign", TEAM_B)

        with pytest.raises(NotFoundError) as exc_info, action_db.connection() as conn:
            validator.check_children_exist(conn, _proposal("A", foreign), ALLOWED)

        assert exc_info.value.context["missing_child_ids"] == [foreign.action_id]

    def test_plugin_child_missing(self, validator: GraphValidator, action_db: ActionDB, store: ActionStore) -> None:
        plugin = _stored(action_db, store, "plugin", TEAM_A, ActionType.PLUGIN)

        with pytest.raises(NotFoundError), action_db.connection() as conn:
            validator.check_children_exist(conn, _proposal("A", plugin), ALLOWED)


class TestCheckChildrenExistWithLoop:
    def test_acyclic_nesting_accepted(self, validator: GraphValidator, action_db: ActionDB, store: ActionStore) -> None:
        leaf = _stored(action_db, store, "leaf")
        middle = _stored(action_db, store, "middle")
        _link(action_db, store, middle, leaf)

        with action_db.connection() as conn:
            validator.check_children_exist_with_loop(conn, _proposal("new", middle, leaf), ALLOWED)

    def test_diamond_accepted(self, validator: GraphValidator, action_db: ActionDB, store: ActionStore) -> None:
        leaf = _stored(action_db, store, "leaf")
        left = _stored(action_db, store, "left")
        right = _stored(action_db, store, "right")
        _link(action_db, store, left, leaf)
        _link(action_db, store, right, leaf)

        with action_db.connection() as conn:
            validator.check_children_exist_with_loop(conn, _proposal("top", left, right), ALLOWED)

    def test_grandchild_out_of_scope(self, validator: GraphValidator, action_db: ActionDB, store: ActionStore) -> None:
        """Stored children are re-checked against the editing action's groups."""
        foreign = _stored(action_db, store, "foreign", TEAM_B)
        shared = _stored(action_db, store, "shared", SHARED_GROUP)
        _link(action_db, store, shared, foreign)

        with pytest.raises(NotFoundError), action_db.connection() as conn:
            validator.check_children_exist_with_loop(conn, _proposal("A", shared), ALLOWED)

    def test_cycle_through_stored_edges(self, validator: GraphValidator, action_db: ActionDB, store: ActionStore) -> None:
        a = _stored(action_db, store, "A")
        b = _stored(action_db, store, "B")
        c = _stored(action_db, store, "C")
        _link(action_db, store, b, c)
        _link(action_db, store, c, a)

        with pytest.raises(GraphValidationError) as exc_info, action_db.connection() as conn:
            validator.check_children_exist_with_loop(conn, _proposal("A", b, action_id=a.action_id), ALLOWED)

        assert a.action_id in exc_info.value.context["cycle"]

    def test_resubmitted_children_accepted(self, validator: GraphValidator, action_db: ActionDB, store: ActionStore) -> None:
        """The edited action's stored edges are replaced, not walked."""
        a = _stored(action_db, store, "A")
        b = _stored(action_db, store, "B")
        _link(action_db, store, a, b)

        with action_db.connection() as conn:
            validator.check_children_exist_with_loop(conn, _proposal("A", b, action_id=a.action_id), ALLOWED)

    def test_builtin_action_skipped(self, validator: GraphValidator, action_db: ActionDB) -> None:
        ghost = Action(name="ghost", action_id="missing")
        builtin = Action(name="b", group_id=TEAM_A, action_type=ActionType.BUILTIN, children=[BoundChild(action=ghost)])

        with action_db.connection() as conn:
            validator.check_children_exist_with_loop(conn, builtin, ALLOWED)

    def test_depth_bound(self, action_db: ActionDB, store: ActionStore) -> None:
        chain = [_stored(action_db, store, f"level-{i}") for i in range(4)]
        for parent, child in zip(chain, chain[1:], strict=False):
            _link(action_db, store, parent, child)

        with pytest.raises(GraphValidationError), action_db.connection() as conn:
            GraphValidator(store, max_depth=3).check_children_exist_with_loop(conn, _proposal("top", chain[0]), ALLOWED)

    def test_childless_default_is_not_a_level(self, action_db: ActionDB, store: ActionStore) -> None:
        leaf = _stored(action_db, store, "leaf")
        middle = _stored(action_db, store, "middle")
        _link(action_db, store, middle, leaf)

        with action_db.connection() as conn:
            GraphValidator(store, max_depth=2).check_children_exist_with_loop(conn, _proposal("top", middle), ALLOWED)

    def test_longer_path_through_diamond_counts(self, action_db: ActionDB, store: ActionStore) -> None:
        deep = _stored(action_db, store, "deep")
        shared = _stored(action_db, store, "shared")
        via = _stored(action_db, store, "via")
        _link(action_db, store, shared, deep)
        _link(action_db, store, via, shared)

        with pytest.raises(GraphValidationError), action_db.connection() as conn:
            GraphValidator(store, max_depth=2).check_children_exist_with_loop(conn, _proposal("top", shared, via), ALLOWED)

    def test_stored_parents_count_towards_depth(self, action_db: ActionDB, store: ActionStore) -> None:
        edited = _stored(action_db, store, "edited")
        parent = _stored(action_db, store, "parent")
        grandparent = _stored(action_db, store, "grandparent")
        _link(action_db, store, parent, edited)
        _link(action_db, store, grandparent, parent)
        leaf = _stored(action_db, store, "leaf")
        nested = _stored(action_db, store, "nested")
        _link(action_db, store, nested, leaf)
        validator = GraphValidator(store, max_depth=3)

        with action_db.connection() as conn:
            validator.check_children_exist_with_loop(conn, _proposal("edited", leaf, action_id=edited.action_id), ALLOWED)
        with pytest.raises(GraphValidationError) as exc_info, action_db.connection() as conn:
            validator.check_children_exist_with_loop(conn, _proposal("edited", nested, action_id=edited.action_id), ALLOWED)

        assert exc_info.value.context["ancestor_depth"] == 2
