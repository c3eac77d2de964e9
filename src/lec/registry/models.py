"""Shared result types and shape helpers for registry responses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class UpsertResult:
    """Outcome of a find-or-create call."""

    entity_id: Any
    created: bool
    entity: dict[str, Any] = field(default_factory=dict)


def extract_list(data: Any, *keys: str) -> list[dict[str, Any]]:
    """Return the entity list of a response.

    Accepts a bare array or an array wrapped under any of the given keys.
    """
    if isinstance(data, list):
        return [e for e in data if isinstance(e, dict)]
    if isinstance(data, dict):
        for key in keys:
            value = data.get(key)
            if isinstance(value, list):
                return [e for e in value if isinstance(e, dict)]
    return []


def to_numeric_id(value: Any) -> int | None:
    """Integer value of a numeric id or all-digit string, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.isdigit():
            return int(stripped)
    return None


def same_id(a: Any, b: Any) -> bool:
    """Compare ids that may arrive as numbers or strings."""
    if a is None or b is None:
        return False
    return str(a).strip() == str(b).strip()
