"""Common helper functions for store modules."""

import uuid
from collections import defaultdict
from collections.abc import Callable, Hashable, Iterable
from datetime import UTC, datetime
from typing import TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


def now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


def generate_id() -> str:
    """Generate a unique ID (UUID4 hex)."""
    return uuid.uuid4().hex


def group_by(items: Iterable[V], key: Callable[[V], K]) -> dict[K, list[V]]:
    """Group items by key, preserving input order inside each group."""
    grouped: dict[K, list[V]] = defaultdict(list)
    for item in items:
        grouped[key(item)].append(item)
    return dict(grouped)


def distinct(values: Iterable[K]) -> list[K]:
    """Distinct values in first-seen order."""
    return list(dict.fromkeys(values))
