# tests/fixtures/factories.py
"""Factories for test actions, bound children and pipeline jobs.

Plain functions, no pytest dependency, so property tests can call them
inside @given bodies.
"""

from __future__ import annotations

from collections.abc import Sequence

from actiongraph.contracts.actions import Action, BoundChild, Parameter, PipelineJob, Requirement
from actiongraph.contracts.enums import ActionType, RequirementType
from actiongraph.core.store.database import ActionDB
from actiongraph.core.store.store import ActionStore

SHARED_GROUP = "shared.infra"
TEAM_A = "team-a"
TEAM_B = "team-b"


def make_action(
    name: str,
    group_id: str = TEAM_A,
    *,
    children: Sequence[BoundChild] = (),
    requirements: Sequence[Requirement] = (),
    parameters: Sequence[Parameter] = (),
    enabled: bool = True,
    description: str = "",
) -> Action:
    """Unsaved Default action."""
    return Action(
        name=name,
        group_id=group_id,
        action_type=ActionType.DEFAULT,
        description=description,
        enabled=enabled,
        children=list(children),
        requirements=list(requirements),
        parameters=list(parameters),
    )


def child(
    action: Action,
    *,
    step_name: str = "",
    enabled: bool = True,
    optional: bool = False,
    always_executed: bool = False,
    **overrides: str,
) -> BoundChild:
    """Reference a stored action as a child, with parameter overrides.

    The wrapped action carries no requirements, so the engine falls back to
    the stored ones.
    """
    reference = Action(
        name=action.name,
        group_id=action.group_id,
        action_type=action.action_type,
        action_id=action.action_id,
        parameters=[Parameter(name=k, value=v) for k, v in overrides.items()],
    )
    return BoundChild(
        action=reference,
        step_name=step_name,
        enabled=enabled,
        optional=optional,
        always_executed=always_executed,
    )


def binary(value: str) -> Requirement:
    return Requirement(name=value, type=RequirementType.BINARY, value=value)


def make_job(
    action_id: str,
    *,
    job_id: str = "job-1",
    group_id: str = TEAM_A,
    pipeline_name: str = "deploy",
    stage_name: str = "build",
    job_name: str = "compile",
) -> PipelineJob:
    return PipelineJob(
        job_id=job_id,
        pipeline_id=f"pipeline-{pipeline_name}",
        pipeline_name=pipeline_name,
        stage_name=stage_name,
        job_name=job_name,
        group_id=group_id,
        action_id=action_id,
    )


def register_job(db: ActionDB, job: PipelineJob) -> None:
    """Reference an action from a pipeline job, as the pipeline layer would."""
    with db.connection() as conn:
        ActionStore().insert_pipeline_job(conn, job)


def remove_job(db: ActionDB, job_id: str) -> None:
    with db.connection() as conn:
        ActionStore().delete_pipeline_job(conn, job_id)


def requirement_keys(requirements: Sequence[Requirement]) -> list[tuple[str, str, str]]:
    """(name, type, value) triples, ignoring owning action ids."""
    return [(r.name, str(r.type), r.value) for r in requirements]
