"""
Resource adapter contract and collection normalisation.

The adapter owns all domain and network logic. Views only need::

    await adapter.fetch_collection({"page": 1, "per_page": 10, ...})
    await adapter.search("acme", {"page": 1, "per_page": 10})   # optional
    await adapter.delete(entity_id)

Collections may come back in several shapes; ``normalize_collection`` folds
them into a ``CollectionResult``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ResourceAdapter(Protocol):
    """Minimal CRUD surface a resource view consumes."""

    async def fetch_collection(self, params: dict[str, Any]) -> Any: ...

    async def delete(self, entity_id: Any) -> Any: ...


def has_search(adapter: Any) -> bool:
    """Whether *adapter* exposes a dedicated search operation."""
    return callable(getattr(adapter, "search", None))


@dataclass(frozen=True)
class CollectionMeta:
    """Pagination metadata of one fetched page."""

    total: int | None = None
    last_page: int | None = None
    page: int | None = None
    per_page: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CollectionResult:
    """One fetched page of entities plus pagination metadata."""

    items: list[Any] = field(default_factory=list)
    meta: CollectionMeta = field(default_factory=CollectionMeta)


_META_ALIASES: dict[str, tuple[str, ...]] = {
    "total": ("total", "count"),
    "last_page": ("last_page", "lastPage", "total_pages"),
    "page": ("page", "current_page", "currentPage"),
    "per_page": ("per_page", "perPage", "page_size", "limit"),
}


def _int_or_none(value: Any) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _normalize_meta(raw: Mapping[str, Any] | None) -> CollectionMeta:
    if not raw:
        return CollectionMeta()
    known: dict[str, int | None] = {}
    used: set[str] = set()
    for name, aliases in _META_ALIASES.items():
        for alias in aliases:
            if alias in raw:
                known[name] = _int_or_none(raw[alias])
                used.add(alias)
                break
    extra = {k: v for k, v in raw.items() if k not in used}
    return CollectionMeta(extra=extra, **known)


def normalize_collection(raw: Any) -> CollectionResult:
    """Fold an adapter response into a ``CollectionResult``.

    Accepted shapes:
        - ``CollectionResult`` (returned unchanged)
        - ``{"data": [...], "meta": {...}}``
        - ``{"items": [...], "total": n, ...}``
        - a bare list
        - ``None`` (empty result)
    """
    if raw is None:
        return CollectionResult()
    if isinstance(raw, CollectionResult):
        return raw
    if isinstance(raw, Mapping):
        items = raw.get("data")
        if items is None:
            items = raw.get("items")
        meta_raw = raw.get("meta")
        if meta_raw is None:
            meta_raw = {k: v for k, v in raw.items() if k not in ("data", "items")}
        if isinstance(items, Mapping):
            items = [items]
        return CollectionResult(items=list(items or []), meta=_normalize_meta(meta_raw))
    if isinstance(raw, Sequence) and not isinstance(raw, (str, bytes)):
        return CollectionResult(items=list(raw))
    raise TypeError(f"Unsupported collection payload: {type(raw).__name__}")
