"""Domain events emitted after a committed mutation.

Subscribers (audit feeds, notification bridges) receive full snapshots.
Events are never emitted for rolled-back transactions.
"""

from dataclasses import dataclass

from actiongraph.contracts.actions import Action


@dataclass(frozen=True, slots=True)
class ActionAdded:
    """A new Default action was inserted."""

    action: Action
    user_id: str | None


@dataclass(frozen=True, slots=True)
class ActionUpdated:
    """An action was replaced.

    before is the action as loaded prior to the transaction, after is the
    re-loaded result.
    """

    before: Action
    after: Action
    user_id: str


@dataclass(frozen=True, slots=True)
class ActionDeleted:
    """An action was deleted. action is its last persisted state."""

    action: Action
    user_id: str
