"""Event bus for action lifecycle notifications.

Provides a simple synchronous event bus. The composition engine emits
ActionAdded / ActionUpdated / ActionDeleted after a commit; external
collaborators (audit feeds, notification bridges) subscribe to them.
"""

from collections.abc import Callable
from typing import Any, Protocol, TypeVar

T = TypeVar("T")


class EventBusProtocol(Protocol):
    """Protocol for event bus implementations.

    Allows both EventBus and NullEventBus to satisfy the interface
    without inheritance.
    """

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        """Subscribe a handler to an event type."""
        ...

    def emit(self, event: T) -> None:
        """Emit an event to all subscribers."""
        ...


class EventBus:
    """Simple synchronous event bus.

    Events are dispatched synchronously to all subscribers in subscription
    order. Handler exceptions propagate to the caller. The mutation is
    already committed at that point, so a failing handler never undoes it.

    Example:
        bus = EventBus()
        bus.subscribe(ActionAdded, lambda e: print(f"added {e.action.name}"))
        engine = CompositionEngine(db, settings, event_bus=bus)
    """

    def __init__(self) -> None:
        self._subscribers: dict[type, list[Callable[[Any], None]]] = {}

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        """Subscribe a handler to an event type.

        Args:
            event_type: The event class to subscribe to
            handler: Callable that receives the event instance
        """
        if event_type not in self._subscribers:
            self._subscribers[event_type] = []
        self._subscribers[event_type].append(handler)

    def emit(self, event: T) -> None:
        """Emit an event to all subscribers of its exact type.

        Events with no subscribers are ignored.
        """
        handlers = self._subscribers.get(type(event), [])
        for handler in handlers:
            handler(event)


class NullEventBus:
    """No-op event bus for library use where nobody listens.

    Does NOT inherit from EventBus: subscribing to it is a no-op, so
    inheritance would hide a caller that expects callbacks.
    """

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        """No-op subscription - handler will never be called."""
        pass

    def emit(self, event: T) -> None:
        """No-op emission."""
        pass
