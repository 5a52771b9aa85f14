"""Builtin action catalogue.

Builtin actions are the atomic steps every composite action is eventually
made of. They live in the shared group so every group can use them, and
they are read-only through the composition engine.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from actiongraph.contracts.actions import Action, Parameter, Requirement
from actiongraph.contracts.enums import ActionType, ParameterType, RequirementType
from actiongraph.core.store.database import ActionDB
from actiongraph.core.store.store import ActionStore

logger = structlog.get_logger(__name__)

SCRIPT = "Script"
JUNIT = "JUnit"
COVERAGE = "Coverage"
GIT_CLONE = "GitClone"
GIT_TAG = "GitTag"
RELEASE = "Release"
CHECKOUT_APPLICATION = "CheckoutApplication"
DEPLOY_APPLICATION = "DeployApplication"

DEFAULT_GIT_CLONE_TAG_VALUE = "{{.git.tag}}"


def _git_binary() -> Requirement:
    return Requirement(name="git", type=RequirementType.BINARY, value="git")


def builtin_actions() -> list[Action]:
    """Fresh, unsaved copies of every builtin action."""
    return [
        Action(
            name=SCRIPT,
            action_type=ActionType.BUILTIN,
            description="Execute a script, written in the scripting language of the worker.",
            parameters=[
                Parameter("script", ParameterType.TEXT, "", "Content of your script, shebang allowed."),
            ],
        ),
        Action(
            name=JUNIT,
            action_type=ActionType.BUILTIN,
            description="Parse JUnit-formatted test reports.",
            parameters=[
                Parameter("path", ParameterType.STRING, "", "Path to the xml test reports, glob allowed."),
            ],
        ),
        Action(
            name=COVERAGE,
            action_type=ActionType.BUILTIN,
            description="Parse a coverage report.",
            parameters=[
                Parameter("format", ParameterType.LIST, "lcov;cobertura;clover", "Coverage report format."),
                Parameter("path", ParameterType.STRING, "", "Path of the coverage report file."),
                Parameter("minimum", ParameterType.NUMBER, "", "Minimum line coverage percentage.", advanced=True),
            ],
        ),
        Action(
            name=GIT_CLONE,
            action_type=ActionType.BUILTIN,
            description="Clone a git repository.",
            requirements=[_git_binary()],
            parameters=[
                Parameter("url", ParameterType.STRING, "{{.git.url}}", "URL of the repository."),
                Parameter("privateKey", ParameterType.KEY, "", "SSH key used to clone the repository."),
                Parameter("user", ParameterType.STRING, "", "Username for https clones.", advanced=True),
                Parameter("password", ParameterType.STRING, "", "Password or token for https clones.", advanced=True),
                Parameter("branch", ParameterType.STRING, "{{.git.branch}}", "Branch to check out."),
                Parameter("commit", ParameterType.STRING, "{{.git.hash}}", "Commit to check out."),
                Parameter("tag", ParameterType.STRING, DEFAULT_GIT_CLONE_TAG_VALUE, "Tag to check out.", advanced=True),
                Parameter("directory", ParameterType.STRING, "{{.git.project}}", "Directory to clone into."),
                Parameter("depth", ParameterType.STRING, "50", "Clone depth, 'false' for a full clone.", advanced=True),
                Parameter("submodules", ParameterType.BOOLEAN, "true", "Fetch submodules.", advanced=True),
            ],
        ),
        Action(
            name=GIT_TAG,
            action_type=ActionType.BUILTIN,
            description="Tag the current commit with a semantic version.",
            requirements=[_git_binary()],
            parameters=[
                Parameter("tagLevel", ParameterType.LIST, "major;minor;patch", "Semantic version level to bump."),
                Parameter("tagPrerelease", ParameterType.STRING, "", "Prerelease suffix.", advanced=True),
                Parameter("tagMetadata", ParameterType.STRING, "", "Build metadata suffix.", advanced=True),
                Parameter("tagMessage", ParameterType.STRING, "", "Tag message."),
                Parameter("prefix", ParameterType.STRING, "", "Prefix prepended to the version, e.g. 'v'.", advanced=True),
                Parameter("path", ParameterType.STRING, "{{.git.project}}", "Path of the cloned repository."),
            ],
        ),
        Action(
            name=RELEASE,
            action_type=ActionType.BUILTIN,
            description="Publish a release on the repository manager.",
            parameters=[
                Parameter("tag", ParameterType.STRING, "{{.git.tag}}", "Tag to release."),
                Parameter("title", ParameterType.STRING, "", "Release title."),
                Parameter("releaseNote", ParameterType.TEXT, "", "Release notes."),
                Parameter("artifacts", ParameterType.STRING, "", "Comma-separated artifacts to attach, glob allowed."),
            ],
        ),
        Action(
            name=CHECKOUT_APPLICATION,
            action_type=ActionType.BUILTIN,
            description="Check out the repository linked to the application.",
            requirements=[_git_binary()],
            parameters=[
                Parameter("directory", ParameterType.STRING, "{{.cds.workspace}}", "Directory to check out into."),
            ],
        ),
        Action(
            name=DEPLOY_APPLICATION,
            action_type=ActionType.BUILTIN,
            description="Deploy the application through its deployment integration.",
        ),
    ]


def seed_builtin_actions(db: ActionDB, group_id: str, actions: Sequence[Action] | None = None) -> list[str]:
    """Insert missing builtin actions into group_id.

    Existing actions of the same name in the group are left untouched, so
    seeding twice is a no-op.

    Returns:
        Names of the actions inserted by this call
    """
    store = ActionStore()
    inserted: list[str] = []
    with db.connection() as conn:
        for action in actions if actions is not None else builtin_actions():
            if store.load_action_by_name_and_group(conn, action.name, group_id) is not None:
                continue
            action.group_id = group_id
            action_id = store.insert_action(conn, action)
            for position, parameter in enumerate(action.parameters):
                store.insert_parameter(conn, action_id, position, parameter)
            for position, requirement in enumerate(action.requirements):
                store.insert_requirement(conn, action_id, position, requirement)
            inserted.append(action.name)

    if inserted:
        logger.info("builtin_actions_seeded", group_id=group_id, names=inserted)
    else:
        logger.debug("builtin_actions_present", group_id=group_id)
    return inserted
