"""Types and kinds used across subsystem boundaries.

Values are stored as strings in the database. The repository layer converts
them back to enum members on read and crashes on unknown values.
"""

from enum import StrEnum


class ActionType(StrEnum):
    """Kind of an Action.

    Stored in the database (actions.type).

    Values:
        BUILTIN: Atomic step shipped with the platform. Read-only here and
            never has children.
        DEFAULT: User-defined composite action. The only kind this engine
            creates, edits or deletes.
        PLUGIN: Externally registered plugin step. Read-only here.
        JOINED: Pipeline job wrapper owned by the pipeline layer.
    """

    BUILTIN = "Builtin"
    DEFAULT = "Default"
    PLUGIN = "Plugin"
    JOINED = "Joined"

    @property
    def is_leaf(self) -> bool:
        """Whether actions of this kind are structurally childless."""
        return self is ActionType.BUILTIN


# Types that can be listed, loaded by name and used as children.
CATALOG_ACTION_TYPES: tuple[ActionType, ...] = (ActionType.BUILTIN, ActionType.DEFAULT)


class RequirementType(StrEnum):
    """Kind of execution precondition.

    Stored in the database (action_requirements.type).
    """

    BINARY = "binary"
    NETWORK_ACCESS = "network"
    MODEL = "model"
    HOSTNAME = "hostname"
    PLUGIN = "plugin"
    SERVICE = "service"
    MEMORY = "memory"
    VOLUME = "volume"
    OS_ARCHITECTURE = "os-architecture"
    REGION = "region"


class ParameterType(StrEnum):
    """Well-known parameter types.

    Parameter.type is free text; only LIST and SECRET change engine
    behaviour. The other members exist so callers don't spell them by hand.
    """

    STRING = "string"
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    LIST = "list"
    KEY = "ssh-key"
    REPOSITORY = "repository"
    SECRET = "secret"


class ExportFormat(StrEnum):
    """Output format for action export."""

    YAML = "yaml"
    JSON = "json"
