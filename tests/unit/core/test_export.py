# tests/unit/core/test_export.py
"""Tests for export documents and importing them back through the engine."""

from __future__ import annotations

import json

import pytest
import yaml

from actiongraph.contracts.actions import Action, Parameter
from actiongraph.contracts.enums import ParameterType
from actiongraph.contracts.errors import ActionValidationError, NotFoundError
from actiongraph.core.export import EXPORT_VERSION, export_action, parse_action_document
from actiongraph.engine import CompositionEngine
from tests.fixtures.factories import TEAM_A, TEAM_B, binary, child, make_action


@pytest.fixture
def release(engine: CompositionEngine, builtins: dict[str, Action]) -> Action:
    return engine.insert(
        make_action(
            "release",
            description="Tag and publish",
            requirements=[binary("make")],
            parameters=[Parameter("version", ParameterType.STRING, "1.0", "Version to tag")],
            children=[
                child(builtins["GitClone"], step_name="Checkout", branch="main"),
                child(builtins["Script"], enabled=False, optional=True, script="make dist"),
            ],
        )
    )


class TestExportAction:
    def test_yaml_document(self, release: Action) -> None:
        document = yaml.safe_load(export_action(release))

        assert document["version"] == EXPORT_VERSION
        assert (document["name"], document["group"], document["enabled"]) == ("release", TEAM_A, True)
        assert document["parameters"]["version"] == {"type": "string", "default": "1.0", "description": "Version to tag", "advanced": False}
        assert [s["name"] for s in document["steps"]] == ["GitClone", "Script"]
        assert document["steps"][0]["step_name"] == "Checkout"
        assert document["steps"][0]["parameters"]["branch"] == "main"
        assert document["steps"][1]["enabled"] is False
        assert document["steps"][1]["optional"] is True
        assert "deprecated" not in document

    def test_json_is_canonical(self, release: Action) -> None:
        first = export_action(release, "json")

        assert first == export_action(release, "json")
        assert json.loads(first)["name"] == "release"
        assert ": " not in first

    def test_unknown_format(self, release: Action) -> None:
        with pytest.raises(ValueError):
            export_action(release, "toml")

    def test_engine_export_by_name(self, engine: CompositionEngine, release: Action) -> None:
        assert yaml.safe_load(engine.export("RELEASE", group_id=TEAM_A))["name"] == "release"


class TestParseActionDocument:
    def test_parses_document(self) -> None:
        text = """
name: build
group: team-x
description: Build it
parameters:
  depth:
    type: string
    default: 50
steps:
  - name: Script
    step_name: Compile
    parameters:
      script: make
      verbose: true
"""
        action = parse_action_document(text, group_id=TEAM_B)

        assert action.group_id == TEAM_B
        assert action.parameters[0].value == "50"
        assert action.children[0].step_name == "Compile"
        assert {p.name: p.value for p in action.children[0].parameters} == {"script": "make", "verbose": "true"}
        assert action.children[0].action_id is None

    @pytest.mark.parametrize(
        "text",
        [
            "- just\n- a list\n",
            "description: no name\n",
            "name: x\nrequirements:\n  - name: git\n    type: nonsense\n    value: git\n",
            "name: x\nsteps:\n  - step_name: missing name\n",
            "name: [unclosed\n",
        ],
    )
    def test_malformed(self, text: str) -> None:
        with pytest.raises(ActionValidationError):
            parse_action_document(text)


class TestImport:
    def test_export_then_import_elsewhere(self, engine: CompositionEngine, release: Action) -> None:
        imported = engine.import_action(parse_action_document(export_action(release), group_id=TEAM_B), "importer")

        assert imported.group_id == TEAM_B
        assert imported.action_id != release.action_id
        assert [c.name for c in imported.children] == ["GitClone", "Script"]
        assert imported.children[0].step_name == "Checkout"
        assert {r.value for r in imported.requirements} == {r.value for r in release.requirements}

    def test_import_updates_existing(self, engine: CompositionEngine, release: Action) -> None:
        document = parse_action_document(export_action(release))
        document.description = "changed"

        updated = engine.import_action(document, "importer")

        assert updated.action_id == release.action_id
        assert updated.description == "changed"
        assert [a.user_id for a in engine.load_audits(release.action_id or "")] == ["importer"]

    def test_import_leaves_document_untouched(self, engine: CompositionEngine, release: Action) -> None:
        document = parse_action_document(export_action(release), group_id=TEAM_B)

        first = engine.import_action(document, "importer")
        second = engine.import_action(document, "importer")

        assert document.action_id is None
        assert [c.action_id for c in document.children] == [None, None]
        assert first.action_id == second.action_id

    def test_unknown_child(self, engine: CompositionEngine, builtins: dict[str, Action]) -> None:
        document = parse_action_document("name: x\nsteps:\n  - name: Nope\n", group_id=TEAM_A)

        with pytest.raises(NotFoundError):
            engine.import_action(document, "importer")
