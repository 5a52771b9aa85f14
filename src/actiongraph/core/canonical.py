"""
Canonical JSON serialization for audit snapshots and export.

Two-phase approach:
1. Normalize: Convert datetimes, enums and tuples to JSON-safe primitives
2. Serialize: Produce deterministic JSON per RFC 8785/JCS (rfc8785 package)

NaN and Infinity are rejected, not silently converted.
"""

from __future__ import annotations

import hashlib
import math
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import rfc8785


def _normalize_value(obj: Any) -> Any:
    """Convert a single value to a JSON-safe primitive.

    Raises:
        ValueError: If value is a non-finite float
    """
    if isinstance(obj, float):
        if math.isnan(obj) or math.isinf(obj):
            raise ValueError(f"Cannot canonicalize non-finite float: {obj}. Use None for missing values, not NaN.")
        return obj

    # StrEnum is a str subclass, check enums first so they serialize by value
    if isinstance(obj, Enum):
        return obj.value

    if obj is None or isinstance(obj, str | int | bool):
        return obj

    if isinstance(obj, datetime):
        if obj.tzinfo is None:
            obj = obj.replace(tzinfo=UTC)
        return obj.astimezone(UTC).isoformat()

    return obj


def _normalize_for_canonical(data: Any) -> Any:
    """Recursively normalize a data structure for canonical JSON."""
    if isinstance(data, dict):
        return {str(k): _normalize_for_canonical(v) for k, v in data.items()}
    if isinstance(data, list | tuple):
        return [_normalize_for_canonical(v) for v in data]
    return _normalize_value(data)


def canonical_json(obj: Any) -> str:
    """Produce deterministic JSON for audit snapshots.

    Args:
        obj: Data structure to serialize

    Returns:
        RFC 8785 canonical JSON string

    Raises:
        ValueError: If data contains NaN or Infinity
        TypeError: If data contains a type with no JSON representation
    """
    normalized = _normalize_for_canonical(obj)
    result: bytes = rfc8785.dumps(normalized)
    return result.decode("utf-8")


def stable_hash(obj: Any) -> str:
    """SHA-256 of the canonical JSON form."""
    return hashlib.sha256(canonical_json(obj).encode("utf-8")).hexdigest()
