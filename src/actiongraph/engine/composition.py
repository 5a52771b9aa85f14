"""CompositionEngine: transactional create, replace and delete of action graphs.

Every mutation runs on one connection inside engine.begin(); any exception
rolls the whole mutation back. Events are emitted only after the commit.

Write path of the children of an action (insert and update share it):

    1. One edge per child, exec_order = position + 1
    2. Step name stored empty when it equals the child's name
    3. One edge parameter row per child parameter, list defaults collapsed
       to their first choice

Only Default actions are mutable. Builtin, Plugin and Joined actions are
owned elsewhere and raise ForbiddenError.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace

import structlog
from sqlalchemy import Connection

from actiongraph.contracts.actions import (
    Action,
    ActionUsage,
    AuditRecord,
    BoundChild,
    Parameter,
    PipelineUsage,
    Requirement,
    Usage,
)
from actiongraph.contracts.enums import ActionType, ExportFormat, ParameterType, RequirementType
from actiongraph.contracts.errors import (
    ActionValidationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    SecretParameterError,
)
from actiongraph.contracts.events import ActionAdded, ActionDeleted, ActionUpdated
from actiongraph.core.aggregation import AggregationPipeline
from actiongraph.core.canonical import canonical_json, stable_hash
from actiongraph.core.config import ActionGraphSettings
from actiongraph.core.events import EventBusProtocol, NullEventBus
from actiongraph.core.export import export_action
from actiongraph.core.requirements import merge_requirements, validate_requirements
from actiongraph.core.store.database import ActionDB
from actiongraph.core.store.store import ActionStore
from actiongraph.core.usage import UsageIndex
from actiongraph.core.validation import GraphValidator

logger = structlog.get_logger(__name__)

LIST_SEPARATOR = ";"


def collapse_list_default(parameter: Parameter) -> Parameter:
    """A list parameter bound without a choice takes its first choice."""
    if parameter.type == ParameterType.LIST and LIST_SEPARATOR in parameter.value:
        return replace(parameter, value=parameter.value.split(LIST_SEPARATOR)[0])
    return parameter


def edge_parameters(submitted: Sequence[Parameter], canonical: Sequence[Parameter]) -> list[Parameter]:
    """Parameters stored on an edge.

    Every parameter the child declares gets a row, in declaration order,
    holding the submitted value when one was given and the child's default
    otherwise. Submitted parameters the child does not declare follow.
    """
    given = {p.name: p for p in submitted}
    declared = {p.name for p in canonical}
    rows = [replace(p, value=given[p.name].value) if p.name in given else replace(p) for p in canonical]
    rows.extend(replace(p) for p in submitted if p.name not in declared)
    return [collapse_list_default(p) for p in rows]


class CompositionEngine:
    """Public API of the action graph.

    Example:
        db = ActionDB.in_memory()
        engine = CompositionEngine(db, ActionGraphSettings())
        created = engine.insert(Action(name="build", group_id="team-a"))
    """

    def __init__(
        self,
        db: ActionDB,
        settings: ActionGraphSettings | None = None,
        *,
        event_bus: EventBusProtocol | None = None,
    ) -> None:
        self._db = db
        self._settings = settings if settings is not None else ActionGraphSettings()
        self._store = ActionStore()
        self._pipeline = AggregationPipeline(self._store, max_depth=self._settings.max_composition_depth)
        self._validator = GraphValidator(self._store, max_depth=self._settings.max_composition_depth)
        self._usage = UsageIndex(self._settings.shared_group_id)
        self._events: EventBusProtocol = event_bus if event_bus is not None else NullEventBus()

    @property
    def settings(self) -> ActionGraphSettings:
        return self._settings

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def insert(self, action: Action, user_id: str | None = None) -> Action:
        """Create a Default action with its children, parameters and requirements.

        Returns:
            The stored action, re-loaded and aggregated

        Raises:
            ActionValidationError: Invalid input (missing name, secret parameter,
                duplicate requirement, cycle)
            ConflictError: A catalog action with this name exists in the group
            NotFoundError: A child is missing or outside the allowed groups
        """
        with self._db.connection() as conn:
            created = self._insert(conn, action)

        logger.info(
            "action_inserted",
            action_id=created.action_id,
            group_id=created.group_id,
            name=created.name,
            children=len(created.children),
        )
        self._events.emit(ActionAdded(action=created, user_id=user_id))
        return created

    def update(self, action: Action, editor_user_id: str) -> Action:
        """Replace an existing Default action.

        Edges, parameters and requirements are deleted and re-inserted, so
        row identities change while content is preserved. A snapshot of the
        previous state is written to the audit log first.

        Raises:
            NotFoundError: The action does not exist
            ForbiddenError: The stored action is not a Default action
        """
        with self._db.connection() as conn:
            before, after = self._update(conn, action, editor_user_id)

        logger.info(
            "action_updated",
            action_id=after.action_id,
            group_id=after.group_id,
            name=after.name,
            children=len(after.children),
            user_id=editor_user_id,
        )
        self._events.emit(ActionUpdated(before=before, after=after, user_id=editor_user_id))
        return after

    def delete(self, action_id: str, editor_user_id: str) -> None:
        """Delete a Default action that nothing references.

        Raises:
            NotFoundError: The action does not exist
            ForbiddenError: The action is not a Default action
            ConflictError: A pipeline job or another action still uses it
        """
        with self._db.connection() as conn:
            before = self._load_one(conn, action_id)
            _require_mutable(before)
            if self._usage.used(conn, action_id):
                logger.warning("action_delete_refused", action_id=action_id, name=before.name, reason="in use")
                raise ConflictError("action is still in use", action_id=action_id, name=before.name)
            self._write_audit(conn, before, editor_user_id, "delete")
            self._store.delete_action(conn, action_id)

        logger.info("action_deleted", action_id=action_id, group_id=before.group_id, name=before.name, user_id=editor_user_id)
        self._events.emit(ActionDeleted(action=before, user_id=editor_user_id))

    def import_action(self, action: Action, editor_user_id: str) -> Action:
        """Insert the action, or update the catalog action of the same name in its group.

        Children without an id are resolved by name, first in the action's
        own group and then in the shared group. The given action is left
        untouched.
        """
        with self._db.connection() as conn:
            children = self._resolve_children_by_name(conn, action)
            existing = None
            if action.group_id:
                existing = self._store.load_action_by_name_and_group(conn, action.name, action.group_id)
            if existing is None:
                result = self._insert(conn, replace(action, action_id=None, children=children))
                event: ActionAdded | ActionUpdated = ActionAdded(action=result, user_id=editor_user_id)
            else:
                candidate = replace(action, action_id=existing.action_id, children=children)
                before, result = self._update(conn, candidate, editor_user_id)
                event = ActionUpdated(before=before, after=result, user_id=editor_user_id)

        logger.info(
            "action_imported",
            action_id=result.action_id,
            group_id=result.group_id,
            name=result.name,
            created=isinstance(event, ActionAdded),
        )
        self._events.emit(event)
        return result

    def update_requirements_value(self, old_value: str, new_value: str, requirement_type: RequirementType) -> list[str]:
        """Rename a requirement value on every action. Returns the affected action ids."""
        if not new_value:
            raise ActionValidationError("requirement value is required", old_value=old_value, type=str(requirement_type))
        with self._db.connection() as conn:
            affected = self._store.update_requirements_value(conn, old_value, new_value, requirement_type)
        logger.info(
            "requirements_renamed",
            old_value=old_value,
            new_value=new_value,
            type=str(requirement_type),
            actions=len(affected),
        )
        return affected

    # ------------------------------------------------------------------
    # Loaders
    # ------------------------------------------------------------------

    def load_by_id(self, action_id: str) -> Action:
        """Load one fully aggregated action of any type.

        Raises:
            NotFoundError: No action has this id
        """
        with self._db.connection() as conn:
            return self._load_one(conn, action_id)

    def load_by_name(self, name: str) -> Action:
        """Load a catalog action by case-insensitive name across all groups.

        When several groups hold an action of this name, the one with the
        lowest group id is returned.
        """
        with self._db.connection() as conn:
            matches = self._store.load_actions_by_name(conn, name)
            if not matches:
                raise NotFoundError("action not found", name=name)
            if len(matches) > 1:
                logger.debug("action_name_ambiguous", name=name, groups=[a.group_id for a in matches])
            return self._pipeline.run(conn, matches[:1])[0]

    def load_by_name_and_group(self, name: str, group_id: str) -> Action:
        """Load a catalog action by case-insensitive name within one group."""
        with self._db.connection() as conn:
            base = self._store.load_action_by_name_and_group(conn, name, group_id)
            if base is None:
                raise NotFoundError("action not found", name=name, group_id=group_id)
            return self._pipeline.run(conn, [base])[0]

    def load_all_for_groups(self, group_ids: Sequence[str]) -> list[Action]:
        """Every catalog action owned by one of group_ids, ordered by name."""
        with self._db.connection() as conn:
            actions = self._pipeline.run(conn, self._store.load_catalog_actions(conn, group_ids=group_ids))
        logger.debug("actions_loaded", group_ids=list(group_ids), count=len(actions))
        return actions

    def load_all(self) -> list[Action]:
        """Every catalog action of every group, ordered by name."""
        with self._db.connection() as conn:
            actions = self._pipeline.run(conn, self._store.load_catalog_actions(conn))
        logger.debug("actions_loaded", count=len(actions))
        return actions

    def load_audits(self, action_id: str) -> list[AuditRecord]:
        """Audit history of an action, newest first. Works for deleted actions too."""
        with self._db.connection() as conn:
            return self._store.load_audits(conn, action_id)

    def get_distinct_binary_requirements(self) -> list[Requirement]:
        """Every distinct binary requirement value, as requirements named after their value."""
        with self._db.connection() as conn:
            values = self._store.load_distinct_binary_values(conn)
        return [Requirement(name=value, type=RequirementType.BINARY, value=value) for value in values]

    def export(self, name: str, fmt: ExportFormat | str = ExportFormat.YAML, *, group_id: str | None = None) -> str:
        """Export a catalog action by name, optionally within one group."""
        action = self.load_by_name(name) if group_id is None else self.load_by_name_and_group(name, group_id)
        return export_action(action, fmt)

    # ------------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------------

    def used(self, action_id: str) -> bool:
        with self._db.connection() as conn:
            return self._usage.used(conn, action_id)

    def get_pipeline_usages(self, action_id: str) -> list[PipelineUsage]:
        with self._db.connection() as conn:
            return self._usage.get_pipeline_usages(conn, action_id)

    def get_action_usages(self, action_id: str) -> list[ActionUsage]:
        with self._db.connection() as conn:
            return self._usage.get_action_usages(conn, action_id)

    def get_usage(self, action_id: str) -> Usage:
        """Pipeline and action usages read in one transaction."""
        with self._db.connection() as conn:
            return Usage(
                pipelines=tuple(self._usage.get_pipeline_usages(conn, action_id)),
                actions=tuple(self._usage.get_action_usages(conn, action_id)),
            )

    # ------------------------------------------------------------------
    # Transaction bodies
    # ------------------------------------------------------------------

    def _insert(self, conn: Connection, action: Action) -> Action:
        _check_input(action)
        group_id = _group(action)
        if self._store.load_action_by_name_and_group(conn, action.name, group_id) is not None:
            logger.warning("action_insert_refused", name=action.name, group_id=group_id, reason="name taken")
            raise ConflictError("an action with this name already exists in the group", name=action.name, group_id=group_id)

        self._validator.check_children_exist_with_loop(conn, action, self._settings.allowed_group_ids(group_id))

        action_id = self._store.insert_action(conn, replace(action, action_id=None))
        canonical = self._insert_children(conn, action_id, action)

        requirements = merge_requirements(
            action.requirements,
            *(_child_requirements(child, canonical) for child in action.children),
        )
        validate_requirements(requirements, action_name=action.name)
        self._insert_requirements(conn, action_id, requirements)

        for position, parameter in enumerate(action.parameters):
            self._store.insert_parameter(conn, action_id, position, parameter)

        return self._load_one(conn, action_id)

    def _update(self, conn: Connection, action: Action, editor_user_id: str) -> tuple[Action, Action]:
        _check_input(action)
        if action.action_id is None:
            raise ActionValidationError("action id is required for update", name=action.name)
        action_id = action.action_id

        before = self._load_one(conn, action_id)
        _require_mutable(before)
        if action.group_id != before.group_id:
            raise ActionValidationError(
                "action group cannot be changed",
                action_id=action_id,
                group_id=before.group_id,
                requested_group_id=action.group_id,
            )
        group_id = _group(before)
        if action.name.lower() != before.name.lower():
            clash = self._store.load_action_by_name_and_group(conn, action.name, group_id)
            if clash is not None and clash.action_id != action_id:
                logger.warning("action_update_refused", action_id=action_id, name=action.name, reason="name taken")
                raise ConflictError("an action with this name already exists in the group", name=action.name, group_id=group_id)

        self._validator.check_children_exist_with_loop(conn, action, self._settings.allowed_group_ids(group_id))
        self._write_audit(conn, before, editor_user_id, "update")

        self._store.delete_edges_by_parent_id(conn, action_id)
        canonical = self._insert_children(conn, action_id, action)

        self._store.delete_parameters_by_action_id(conn, action_id)
        for position, parameter in enumerate(action.parameters):
            self._store.insert_parameter(conn, action_id, position, parameter)

        self._store.delete_requirements_by_action_id(conn, action_id)
        if action.enabled:
            requirements = merge_requirements(
                action.requirements,
                *(_child_requirements(child, canonical) for child in action.children if child.enabled),
            )
        else:
            requirements = []
        validate_requirements(requirements, action_name=action.name)
        self._insert_requirements(conn, action_id, requirements)

        self._store.update_action_fields(conn, action)
        return before, self._load_one(conn, action_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load_one(self, conn: Connection, action_id: str) -> Action:
        base = self._store.load_action(conn, action_id)
        if base is None:
            raise NotFoundError("action not found", action_id=action_id)
        return self._pipeline.run(conn, [base])[0]

    def _insert_children(self, conn: Connection, parent_id: str, action: Action) -> dict[str, Action]:
        """Write one edge per child and return the canonical children by id."""
        child_ids = action.unique_child_ids()
        canonical = {c.action_id: c for c in self._pipeline.run(conn, self._store.load_actions_by_ids(conn, child_ids)) if c.action_id is not None}
        for exec_order, child in enumerate(action.children, start=1):
            child_id = child.action_id
            if child_id is None or child_id not in canonical:
                raise NotFoundError("child action not found", parent=action.name, child_id=child_id)
            base = canonical[child_id]
            step_name = "" if child.step_name.lower() == base.name.lower() else child.step_name
            edge = self._store.insert_edge(
                conn,
                parent_id=parent_id,
                child_id=child_id,
                exec_order=exec_order,
                enabled=child.enabled,
                optional=child.optional,
                always_executed=child.always_executed,
                step_name=step_name,
            )
            for position, parameter in enumerate(edge_parameters(child.parameters, base.parameters)):
                self._store.insert_edge_parameter(conn, edge.edge_id, position, parameter)
        return canonical

    def _insert_requirements(self, conn: Connection, action_id: str, requirements: Sequence[Requirement]) -> None:
        for position, requirement in enumerate(requirements):
            self._store.insert_requirement(conn, action_id, position, requirement)

    def _write_audit(self, conn: Connection, action: Action, user_id: str, change: str) -> AuditRecord:
        snapshot = action.to_dict()
        return self._store.insert_audit(
            conn,
            action_id=_stored_id(action),
            user_id=user_id,
            change=change,
            action_json=canonical_json(snapshot),
            action_hash=stable_hash(snapshot),
        )

    def _resolve_children_by_name(self, conn: Connection, action: Action) -> list[BoundChild]:
        """Copies of the children with every missing id filled in."""
        group_id = _group(action)
        resolved: list[BoundChild] = []
        for child in action.children:
            if child.action_id is not None:
                resolved.append(child)
                continue
            for candidate_group in self._settings.allowed_group_ids(group_id):
                found = self._store.load_action_by_name_and_group(conn, child.name, candidate_group)
                if found is not None:
                    resolved.append(replace(child, action=replace(child.action, action_id=found.action_id)))
                    break
            else:
                raise NotFoundError("child action not found", parent=action.name, child=child.name, group_id=group_id)
        return resolved


def _check_input(action: Action) -> None:
    """Checks that need no database access."""
    action.check_valid()
    if action.action_type is not ActionType.DEFAULT:
        raise ForbiddenError("only Default actions can be written", name=action.name, type=str(action.action_type))
    for parameter in action.parameters:
        if parameter.type == ParameterType.SECRET:
            logger.warning("secret_parameter_rejected", name=action.name, parameter=parameter.name)
            raise SecretParameterError("secret parameters are not allowed on actions", name=action.name, parameter=parameter.name)
    validate_requirements(action.requirements, action_name=action.name)


def _require_mutable(action: Action) -> None:
    if action.action_type is not ActionType.DEFAULT:
        raise ForbiddenError(
            f"{action.action_type} actions are read-only",
            action_id=action.action_id,
            name=action.name,
        )


def _child_requirements(child: BoundChild, canonical: dict[str, Action]) -> list[Requirement]:
    """Requirements a child contributes: as submitted, else as stored."""
    if child.requirements:
        return child.requirements
    if child.action_id is None:
        return []
    return canonical[child.action_id].requirements


def _group(action: Action) -> str:
    if not action.group_id:
        raise ActionValidationError("action group is required", name=action.name)
    return action.group_id


def _stored_id(action: Action) -> str:
    if action.action_id is None:
        raise ActionValidationError("stored action has no id", name=action.name)
    return action.action_id
