"""Requirement propagation and validation.

An action needs what it declares plus what its enabled children need.
Requirements are merged by (type, value): the first occurrence of a key
wins and later duplicates are dropped whole (their names are not merged).
A disabled action needs nothing.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from actiongraph.contracts.actions import Action, BoundChild, Requirement
from actiongraph.contracts.enums import RequirementType
from actiongraph.contracts.errors import RequirementValidationError

# At most one requirement of each of these types per action.
_SINGLETON_TYPES: tuple[RequirementType, ...] = (RequirementType.MODEL, RequirementType.HOSTNAME)


def merge_requirements(base: Sequence[Requirement], *others: Iterable[Requirement]) -> list[Requirement]:
    """Union requirement sets by (type, value), first occurrence wins.

    The result keeps base order, then appends unseen keys from each of
    others in order. Same inputs always give the same output.
    """
    merged: dict[tuple[RequirementType, str], Requirement] = {}
    for requirement in base:
        merged.setdefault(requirement.key, requirement)
    for extra in others:
        for requirement in extra:
            merged.setdefault(requirement.key, requirement)
    return list(merged.values())


def propagate_requirements(enabled: bool, declared: Sequence[Requirement], children: Sequence[BoundChild]) -> list[Requirement]:
    """Effective requirements of an action from its declared set and bound children.

    Only children enabled at the call site contribute.
    """
    if not enabled:
        return []
    return merge_requirements(declared, *(child.requirements for child in children if child.enabled))


def compute_requirements(action: Action) -> None:
    """Replace action.requirements with the propagated set, in place."""
    action.requirements = propagate_requirements(action.enabled, action.requirements, action.children)


def validate_requirements(requirements: Sequence[Requirement], *, action_name: str | None = None) -> None:
    """Check the uniqueness rules of a requirement set.

    Raises:
        RequirementValidationError: If two requirements share (name, type),
            or more than one model or hostname requirement is present
    """
    seen: set[tuple[str, RequirementType]] = set()
    singleton_counts = dict.fromkeys(_SINGLETON_TYPES, 0)
    for requirement in requirements:
        name_key = (requirement.name, requirement.type)
        if name_key in seen:
            raise RequirementValidationError(
                "duplicate requirement",
                action=action_name,
                requirement=requirement.name,
                type=str(requirement.type),
            )
        seen.add(name_key)
        if requirement.type in singleton_counts:
            singleton_counts[requirement.type] += 1

    for requirement_type, count in singleton_counts.items():
        if count > 1:
            raise RequirementValidationError(
                f"only one {requirement_type} requirement is allowed",
                action=action_name,
                count=count,
            )
