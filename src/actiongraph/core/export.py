"""Portable action documents: render an action for export, parse one for import.

The document describes an action by name only, so it can be imported into
another installation: children are referenced by name with their call-site
overrides and their edge parameter values.

YAML is for humans; JSON output is RFC 8785 canonical so two exports of the
same action are byte-identical.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import yaml

from actiongraph.contracts.actions import Action, BoundChild, Parameter, Requirement
from actiongraph.contracts.enums import ActionType, ExportFormat, ParameterType, RequirementType
from actiongraph.contracts.errors import ActionValidationError
from actiongraph.core.canonical import canonical_json

EXPORT_VERSION = "v1.0"


def _child_document(child: BoundChild) -> dict[str, Any]:
    document: dict[str, Any] = {"name": child.name}
    if child.step_name:
        document["step_name"] = child.step_name
    # Call-site flags are only written when they differ from the defaults
    if not child.enabled:
        document["enabled"] = False
    if child.optional:
        document["optional"] = True
    if child.always_executed:
        document["always_executed"] = True
    if child.parameters:
        document["parameters"] = {p.name: p.value for p in child.parameters}
    return document


def action_to_document(action: Action) -> dict[str, Any]:
    """Plain-data export document for an aggregated action."""
    document: dict[str, Any] = {
        "version": EXPORT_VERSION,
        "name": action.name,
        "group": action.group_id,
        "description": action.description,
        "enabled": action.enabled,
    }
    if action.deprecated:
        document["deprecated"] = True
    if action.parameters:
        document["parameters"] = {
            p.name: {
                "type": str(p.type),
                "default": p.value,
                "description": p.description,
                "advanced": p.advanced,
            }
            for p in action.parameters
        }
    if action.requirements:
        document["requirements"] = [r.to_dict() for r in action.requirements]
    if action.children:
        document["steps"] = [_child_document(child) for child in action.children]
    return document


def export_action(action: Action, fmt: ExportFormat | str = ExportFormat.YAML) -> str:
    """Serialize an aggregated action.

    Args:
        action: Action with parameters, requirements and children attached
        fmt: "yaml" or "json"

    Raises:
        ValueError: If fmt is not a known export format
    """
    export_format = ExportFormat(fmt)
    document = action_to_document(action)
    if export_format is ExportFormat.JSON:
        return canonical_json(document)
    return yaml.safe_dump(document, default_flow_style=False, sort_keys=False)


def action_from_document(document: Mapping[str, Any], *, group_id: str | None = None) -> Action:
    """Build an unsaved Default action from an export document.

    Children are referenced by name only; the engine resolves them on
    import.

    Args:
        document: Parsed export document
        group_id: Overrides the document's group when given

    Raises:
        ActionValidationError: If the document is malformed
    """
    name = document.get("name")
    if not isinstance(name, str) or not name:
        raise ActionValidationError("action document has no name")

    try:
        parameters = [
            Parameter(
                name=str(param_name),
                type=str(declared.get("type", ParameterType.STRING)),
                value=_scalar(declared.get("default", "")),
                description=str(declared.get("description", "")),
                advanced=bool(declared.get("advanced", False)),
            )
            for param_name, declared in (document.get("parameters") or {}).items()
        ]
        requirements = [
            Requirement(name=str(r["name"]), type=RequirementType(r["type"]), value=str(r["value"])) for r in document.get("requirements") or []
        ]
        children = [
            BoundChild(
                action=Action(
                    name=str(step["name"]),
                    parameters=[Parameter(name=str(k), value=_scalar(v)) for k, v in (step.get("parameters") or {}).items()],
                ),
                step_name=str(step.get("step_name", "")),
                enabled=bool(step.get("enabled", True)),
                optional=bool(step.get("optional", False)),
                always_executed=bool(step.get("always_executed", False)),
            )
            for step in document.get("steps") or []
        ]
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ActionValidationError("malformed action document", name=name, reason=str(e)) from e

    return Action(
        name=name,
        group_id=group_id if group_id is not None else document.get("group"),
        action_type=ActionType.DEFAULT,
        description=str(document.get("description", "")),
        enabled=bool(document.get("enabled", True)),
        deprecated=bool(document.get("deprecated", False)),
        requirements=requirements,
        parameters=parameters,
        children=children,
    )


def parse_action_document(text: str, *, group_id: str | None = None) -> Action:
    """Parse a YAML or JSON export document (JSON is valid YAML)."""
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ActionValidationError("action document is not valid YAML or JSON", reason=str(e)) from e
    if not isinstance(document, dict):
        raise ActionValidationError("action document must be a mapping")
    return action_from_document(document, group_id=group_id)


def _scalar(value: Any) -> str:
    # YAML turns unquoted true/50 into bool/int; parameter values are text
    if isinstance(value, bool):
        return "true" if value else "false"
    return "" if value is None else str(value)
