"""Descriptor-driven field access for arbitrary entity shapes.

Entities are either mappings (decoded JSON) or objects with attributes. The
only field the views assume is ``id``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


def _step(value: Any, part: str) -> Any:
    if value is None:
        return None
    if isinstance(value, Mapping):
        return value.get(part)
    if isinstance(value, (list, tuple)) and part.isdigit():
        index = int(part)
        return value[index] if index < len(value) else None
    return getattr(value, part, None)


def get_nested_value(entity: Any, path: str) -> Any:
    """Resolve a dot-separated *path* against *entity*.

    Missing segments resolve to ``None`` rather than raising.

    >>> get_nested_value({"stage": {"id": 3}}, "stage.id")
    3
    """
    value = entity
    for part in path.split("."):
        value = _step(value, part)
        if value is None:
            return None
    return value


def entity_id(entity: Any) -> Any:
    """Return the stable identifier of *entity*."""
    if isinstance(entity, Mapping):
        return entity.get("id")
    return getattr(entity, "id", None)


def coerce_key(value: Any) -> str | None:
    """Primitive representation used for id and grouping comparisons.

    Backends send ids as numbers or strings interchangeably, so both sides of
    every comparison go through this.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
