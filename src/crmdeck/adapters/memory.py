"""In-memory resource adapter.

Backs the demo server and tests. Behaves like a small paginated REST
collection: ``page``/``per_page`` paging, a plain ``search`` parameter,
``sort_by``/``sort_order`` and exact-match filtering on any other parameter.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Iterable, Sequence
from typing import Any

from crmdeck.core.accessors import coerce_key, entity_id, get_nested_value
from crmdeck.core.errors import NotFoundError
from crmdeck.core.query import page_count

logger = logging.getLogger(__name__)

_RESERVED = {"page", "per_page", "search", "sort_by", "sort_order"}


class InMemoryAdapter:
    """Resource adapter over a list of dicts.

    Args:
        items: Initial entities; each needs an ``id``.
        search_fields: Field paths matched (case-insensitive substring) by
            the ``search`` parameter.
        latency: Seconds to sleep before every call, to exercise loading
            states.
    """

    def __init__(
        self,
        items: Iterable[dict[str, Any]] = (),
        *,
        search_fields: Sequence[str] = ("name",),
        latency: float = 0.0,
    ) -> None:
        self.items: list[dict[str, Any]] = [copy.deepcopy(i) for i in items]
        self.search_fields = tuple(search_fields)
        self.latency = latency

    async def fetch_collection(self, params: dict[str, Any]) -> dict[str, Any]:
        await self._delay()
        matches = [i for i in self.items if self._matches(i, params)]
        return self._page(self._sorted(matches, params), params)

    async def get(self, target_id: Any) -> dict[str, Any]:
        await self._delay()
        return copy.deepcopy(self._find(target_id))

    async def create(self, data: dict[str, Any]) -> dict[str, Any]:
        await self._delay()
        entity = copy.deepcopy(data)
        if entity.get("id") is None:
            numeric = [i["id"] for i in self.items if isinstance(i.get("id"), int)]
            entity["id"] = max(numeric, default=0) + 1
        self.items.append(entity)
        logger.debug("Created %s", entity["id"])
        return copy.deepcopy(entity)

    async def update(self, target_id: Any, data: dict[str, Any]) -> dict[str, Any]:
        """Merge *data* into the entity; dotted keys update nested fields."""
        await self._delay()
        entity = self._find(target_id)
        for key, value in data.items():
            _set_nested_value(entity, key, copy.deepcopy(value))
        logger.debug("Updated %s with %s", target_id, sorted(data))
        return copy.deepcopy(entity)

    async def delete(self, target_id: Any) -> None:
        await self._delay()
        entity = self._find(target_id)
        self.items.remove(entity)
        logger.debug("Deleted %s", target_id)

    # -------------------------------------------------------------------------

    async def _delay(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)

    def _find(self, target_id: Any) -> dict[str, Any]:
        key = coerce_key(target_id)
        for item in self.items:
            if coerce_key(entity_id(item)) == key:
                return item
        raise NotFoundError(f"No entity with id {target_id}", status_code=404)

    def _matches(self, item: dict[str, Any], params: dict[str, Any]) -> bool:
        text = str(params.get("search") or "").strip().lower()
        if text and not any(
            text in str(get_nested_value(item, f) or "").lower() for f in self.search_fields
        ):
            return False
        for key, value in params.items():
            if key in _RESERVED or value is None:
                continue
            if coerce_key(get_nested_value(item, key)) != coerce_key(value):
                return False
        return True

    @staticmethod
    def _sorted(items: list[dict[str, Any]], params: dict[str, Any]) -> list[dict[str, Any]]:
        sort_by = params.get("sort_by")
        if not sort_by:
            return items

        def sort_key(item: dict[str, Any]) -> tuple[int, float, str]:
            value = get_nested_value(item, sort_by)
            if value is None:
                return (2, 0, "")
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return (0, value, "")
            return (1, 0, str(value).lower())

        return sorted(items, key=sort_key, reverse=params.get("sort_order") == "desc")

    @staticmethod
    def _page(items: list[dict[str, Any]], params: dict[str, Any]) -> dict[str, Any]:
        per_page = int(params.get("per_page") or 10)
        page = int(params.get("page") or 1)
        start = (page - 1) * per_page
        return {
            "data": [copy.deepcopy(i) for i in items[start : start + per_page]],
            "meta": {
                "total": len(items),
                "last_page": page_count(len(items), per_page),
                "page": page,
                "per_page": per_page,
            },
        }


class SearchableInMemoryAdapter(InMemoryAdapter):
    """In-memory adapter that also exposes a dedicated ``search`` operation."""

    async def search(self, query: str, params: dict[str, Any]) -> dict[str, Any]:
        return await self.fetch_collection({**params, "search": query})


def _set_nested_value(target: dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    for part in parts[:-1]:
        child = target.get(part)
        if not isinstance(child, dict):
            child = target[part] = {}
        target = child
    target[parts[-1]] = value
