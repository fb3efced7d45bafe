"""
Filter/search engine.

Decides per request whether the adapter's dedicated search or its generic
collection listing is called, then narrows the fetched page client-side.

Order of client-side narrowing:

1. Generic filter matching: every filter whose active value is not ``"all"``
   keeps only entities whose field equals that value.
2. The caller's custom predicate ``(entity, search_text, active_filters)``.

**A custom predicate fully replaces step 1.** When one is supplied the
declared filters are not matched generically; the predicate has to apply
whatever filter semantics it needs itself.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from crmdeck.core.accessors import coerce_key, get_nested_value
from crmdeck.core.adapter import CollectionResult, has_search, normalize_collection
from crmdeck.core.descriptors import ALL, FilterDefinition
from crmdeck.core.query import QueryState

logger = logging.getLogger(__name__)

ClientPredicate = Callable[[Any, str, dict[str, str]], bool]


@dataclass(frozen=True)
class FetchPlan:
    """The adapter call to make for one query state."""

    operation: Literal["search", "collection"]
    params: dict[str, Any] = field(default_factory=dict)
    query: str | None = None


def server_filter_params(
    state: QueryState, filters: Iterable[FilterDefinition]
) -> dict[str, str]:
    """Active values of filters routed to the backend."""
    params: dict[str, str] = {}
    for definition in filters:
        value = state.filter_value(definition.key)
        if definition.server_side and value != ALL:
            params[definition.key] = value
    return params


def plan_fetch(
    state: QueryState,
    adapter: Any,
    filters: Sequence[FilterDefinition] = (),
) -> FetchPlan:
    """Build the adapter call for *state*.

    Non-empty search text goes to ``adapter.search`` when it exists; otherwise
    it is passed to ``fetch_collection`` as a plain ``search`` parameter.
    """
    params: dict[str, Any] = {"page": state.page, "per_page": state.per_page}
    if state.sort_by:
        params["sort_by"] = state.sort_by
        params["sort_order"] = state.sort_order
    params.update(server_filter_params(state, filters))

    query = state.search_text.strip()
    if query and has_search(adapter):
        return FetchPlan(operation="search", params=params, query=query)
    if query:
        params = {"search": query, **params}
    return FetchPlan(operation="collection", params=params)


async def execute_plan(plan: FetchPlan, adapter: Any) -> CollectionResult:
    """Run *plan* against *adapter* and normalise the response."""
    if plan.operation == "search":
        logger.debug("search(%r, %s)", plan.query, plan.params)
        raw = await adapter.search(plan.query, dict(plan.params))
    else:
        logger.debug("fetch_collection(%s)", plan.params)
        raw = await adapter.fetch_collection(dict(plan.params))
    return normalize_collection(raw)


def matches_filters(
    entity: Any, filters: Iterable[FilterDefinition], active: dict[str, str]
) -> bool:
    for definition in filters:
        value = active.get(definition.key) or ALL
        if value == ALL:
            continue
        if coerce_key(get_nested_value(entity, definition.key)) != coerce_key(value):
            return False
    return True


def apply_client_filters(
    items: Sequence[Any],
    filters: Sequence[FilterDefinition],
    state: QueryState,
    client_filter: ClientPredicate | None = None,
) -> list[Any]:
    """Narrow the fetched page. See the module docstring for precedence."""
    active = dict(state.active_filters)
    if client_filter is not None:
        return [item for item in items if client_filter(item, state.search_text, active)]
    return [item for item in items if matches_filters(item, filters, active)]
