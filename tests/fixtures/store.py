# tests/fixtures/store.py
"""Action store and composition engine fixtures.

All fixtures are function-scoped for full test isolation.
No module-scoped databases - every test gets a fresh database.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from actiongraph.contracts.actions import Action
from actiongraph.contracts.enums import ActionType
from actiongraph.core.builtins import seed_builtin_actions
from actiongraph.core.config import ActionGraphSettings
from actiongraph.core.store.database import ActionDB
from actiongraph.core.store.store import ActionStore
from actiongraph.engine import CompositionEngine
from tests.fixtures.factories import SHARED_GROUP, binary


def make_action_db() -> ActionDB:
    """Factory for in-memory ActionDB."""
    return ActionDB.in_memory()


def seed_catalogue(db: ActionDB, engine: CompositionEngine) -> dict[str, Action]:
    """Seed the builtins plus a Docker builtin and return them by name."""
    seed_builtin_actions(db, SHARED_GROUP)
    seed_builtin_actions(
        db,
        SHARED_GROUP,
        actions=[
            Action(
                name="Docker",
                action_type=ActionType.BUILTIN,
                description="Run a container.",
                requirements=[binary("docker")],
            )
        ],
    )
    return {a.name: a for a in engine.load_all_for_groups([SHARED_GROUP])}


@pytest.fixture
def action_db() -> Iterator[ActionDB]:
    """Function-scoped in-memory ActionDB - fresh per test."""
    db = make_action_db()
    yield db
    db.close()


@pytest.fixture
def graph_settings() -> ActionGraphSettings:
    return ActionGraphSettings(shared_group_id=SHARED_GROUP)


@pytest.fixture
def store() -> ActionStore:
    return ActionStore()


@pytest.fixture
def engine(action_db: ActionDB, graph_settings: ActionGraphSettings) -> CompositionEngine:
    return CompositionEngine(action_db, graph_settings)


@pytest.fixture
def builtins(action_db: ActionDB, engine: CompositionEngine) -> dict[str, Action]:
    """Seeded builtin catalogue in the shared group, keyed by name."""
    return seed_catalogue(action_db, engine)


@pytest.fixture
def docker(builtins: dict[str, Action]) -> Action:
    """Builtin action requiring (binary, docker)."""
    return builtins["Docker"]
