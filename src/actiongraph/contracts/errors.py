"""Error taxonomy for the composition engine.

Every error carries the entity it is about so the caller can render a
user-facing message without parsing strings. The HTTP layer maps the
classes to status codes:

    NotFoundError          -> 404
    ConflictError          -> 409
    ActionValidationError  -> 400
    ForbiddenError         -> 403
    StorageError           -> 500
"""

from typing import Any


class ActionGraphError(Exception):
    """Base class for every error raised by actiongraph.

    Attributes:
        message: Human-readable description
        context: Entity identifiers relevant to the failure
            (e.g. {"action_id": ..., "name": ...})
    """

    def __init__(self, message: str, **context: Any) -> None:
        self.message = message
        self.context = context
        super().__init__(message)

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v!r}" for k, v in sorted(self.context.items()))
        return f"{self.message} ({details})"


class NotFoundError(ActionGraphError):
    """Raised when an action, group or child does not exist (or is out of scope)."""

    pass


class ConflictError(ActionGraphError):
    """Raised for duplicate names in a group and deletion of a used action."""

    pass


class ForbiddenError(ActionGraphError):
    """Raised when a read-only action (Builtin, Plugin, Joined) would be mutated.

    Group admin/member checks belong to the authorization layer, which raises
    this same class before the engine is invoked.
    """

    pass


class ActionValidationError(ActionGraphError):
    """Raised when a submitted action breaks a structural rule."""

    pass


class RequirementValidationError(ActionValidationError):
    """Raised when a requirement set has duplicates or too many model/hostname entries."""

    pass


class SecretParameterError(ActionValidationError):
    """Raised when a secret parameter would be stored as a declared parameter.

    Secrets are managed by the project/application layer, never on actions.
    """

    pass


class GraphValidationError(ActionValidationError):
    """Raised when a composition would contain a cycle or exceed the depth bound."""

    pass


class StorageError(ActionGraphError):
    """Raised when the database rejects an operation.

    Wraps the underlying SQLAlchemy error (available as __cause__) with the
    operation that failed.
    """

    def __init__(self, operation: str, **context: Any) -> None:
        self.operation = operation
        super().__init__(f"storage operation failed: {operation}", **context)
