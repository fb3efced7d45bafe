"""
Resource view controller.

Turns "a resource adapter + field descriptors" into four interchangeable
views (table, list, grid, board) over the same filtered page, with shared
pagination, search, filtering and CRUD dialog orchestration.

Flow for one render::

    QueryState --plan_fetch--> FetchPlan --RequestCache.load--> CollectionResult
        --data_mapper--> items --apply_client_filters--> ViewSnapshot.items

The table/list/grid renderers and the kanban engine all consume
``ViewSnapshot.items``; switching the view mode never refetches.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from crmdeck.config import ViewsConfig
from crmdeck.core.accessors import coerce_key, entity_id
from crmdeck.core.adapter import CollectionResult
from crmdeck.core.cache import CacheKey, RequestCache
from crmdeck.core.descriptors import (
    FieldDescriptor,
    FilterDefinition,
    KanbanConfig,
    StatDefinition,
)
from crmdeck.core.dialogs import CrudDialogs, singular_label
from crmdeck.core.filtering import (
    ClientPredicate,
    FetchPlan,
    apply_client_filters,
    execute_plan,
    plan_fetch,
)
from crmdeck.core.kanban import KanbanEngine, StatusChange
from crmdeck.core.notifications import NotificationLevel, NotificationLog, Notifier
from crmdeck.core.query import (
    QueryState,
    ViewMode,
    page_count,
    url_to_view_mode,
    view_mode_to_url_patch,
)

logger = logging.getLogger(__name__)

# (entity, actions_html) -> html
CardRenderer = Callable[[Any, str], str]
# (entity or None) -> html
FormRenderer = Callable[[Any], str]
# (filtered items) -> html
StatsRenderer = Callable[[list[Any]], str]
DataMapper = Callable[[list[Any]], Sequence[Any]]


@dataclass
class ResourceDefinition:
    """Everything a resource view needs from the page that hosts it.

    Attributes:
        title: Plural display title ("Leads").
        endpoint: Endpoint name; first element of every fetch key.
        adapter: Resource adapter (``fetch_collection``, optional ``search``,
            ``delete``).
        fields: Table columns / generic card fields.
        filters: Discrete filters next to the search box.
        kanban: Board configuration; the board view is offered only when set.
        stats: Static stat tiles above the panel.
        card_renderer: ``(entity, actions_html) -> html`` for list and grid.
        form_renderer: ``(entity | None) -> html`` create/edit form. Edit
            actions are offered only when set.
        stats_renderer: ``(filtered_items) -> html``; replaces ``stats``.
        data_mapper: Transform applied to every fetched page before filtering.
        client_filter: ``(entity, search_text, active_filters) -> bool``.

            **When set, it fully replaces the generic matching of**
            ``filters``. The declared filters are still shown and their
            active values are passed to the predicate, but nothing compares
            entity fields against them unless the predicate does so itself.
        search_placeholder: Placeholder of the search box.
        create_link: When set, "Add" navigates here instead of opening the
            create dialog.
        entity_label: Singular label ("Lead"); derived from ``title`` if unset.
    """

    title: str
    endpoint: str
    adapter: Any
    fields: list[FieldDescriptor] = field(default_factory=list)
    filters: list[FilterDefinition] = field(default_factory=list)
    kanban: KanbanConfig | None = None
    stats: list[StatDefinition] = field(default_factory=list)
    card_renderer: CardRenderer | None = None
    form_renderer: FormRenderer | None = None
    stats_renderer: StatsRenderer | None = None
    data_mapper: DataMapper | None = None
    client_filter: ClientPredicate | None = None
    search_placeholder: str = "Search..."
    create_link: str | None = None
    entity_label: str | None = None

    @property
    def singular(self) -> str:
        return self.entity_label or singular_label(self.title)

    @property
    def board_enabled(self) -> bool:
        return self.kanban is not None


@dataclass(frozen=True)
class ViewSnapshot:
    """Everything a renderer needs for one frame."""

    items: list[Any]
    total_items: int
    total_pages: int
    page: int
    per_page: int
    view_mode: ViewMode
    is_loading: bool = False
    is_validating: bool = False
    error: BaseException | None = None
    is_stale: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.is_loading and not self.items


class ResourceViewController:
    """Owns the query state, cache, dialogs and board of one resource view.

    The query state is not shared: one controller per rendered view.
    """

    def __init__(
        self,
        definition: ResourceDefinition,
        *,
        cache: RequestCache | None = None,
        notifier: Notifier | None = None,
        views: ViewsConfig | None = None,
        query: QueryState | None = None,
    ) -> None:
        self.definition = definition
        self.views = views or ViewsConfig()
        self.cache = cache or RequestCache()
        self.notifier: Notifier = notifier or NotificationLog()
        self.query = query or QueryState(
            per_page=self.views.per_page,
            view_mode=self._allowed_mode(self.views.default_view),
        )
        self.dialogs = CrudDialogs(
            adapter=definition.adapter,
            invalidate=self.invalidate,
            notifier=self.notifier,
            entity_label=definition.singular,
            has_form=definition.form_renderer is not None,
        )
        self.board: KanbanEngine | None = None
        if definition.kanban is not None:
            self.board = KanbanEngine(
                self._kanban_config(definition.kanban),
                items=self.visible_items,
                on_status_change=self._on_status_change,
                activation_distance=self.views.drag_activation_distance,
            )
        self._mutations: set[asyncio.Task[None]] = set()

    @classmethod
    def from_query_params(
        cls,
        definition: ResourceDefinition,
        params: Mapping[str, Any],
        **kwargs: Any,
    ) -> ResourceViewController:
        """Build a controller from URL query parameters.

        Recognised parameters: ``view``, ``search``, ``page``, ``per_page``,
        ``sort``, ``dir`` and ``f_<filter key>`` for each declared filter.
        """
        controller = cls(definition, **kwargs)
        query = controller.query
        query.view_mode = url_to_view_mode(
            params,
            board_enabled=definition.board_enabled,
            default=controller._allowed_mode(controller.views.default_view),
        )
        query.search_text = str(params.get("search") or "")
        for definition_filter in definition.filters:
            value = params.get(f"f_{definition_filter.key}")
            if value:
                query.set_filter(definition_filter.key, str(value))
        sort = params.get("sort")
        if sort and any(f.key == sort and f.sortable for f in definition.fields):
            query.sort_by = str(sort)
            query.sort_order = "desc" if params.get("dir") == "desc" else "asc"
        per_page = _positive_int(params.get("per_page"))
        if per_page is not None:
            query.per_page = per_page
        query.page = _positive_int(params.get("page")) or 1
        return controller

    # -------------------------------------------------------------------------
    # Fetching
    # -------------------------------------------------------------------------

    def plan(self) -> FetchPlan:
        return plan_fetch(self.query, self.definition.adapter, self.definition.filters)

    def fetch_key(self) -> CacheKey:
        """``(endpoint, search_text, page, per_page, *server-side params)``."""
        plan = self.plan()
        extras = tuple(
            sorted(
                (k, str(v))
                for k, v in plan.params.items()
                if k not in ("page", "per_page", "search")
            )
        )
        return (
            self.definition.endpoint,
            self.query.search_text.strip(),
            self.query.page,
            self.query.per_page,
            *extras,
        )

    def request(self) -> asyncio.Task[None] | None:
        """Schedule the fetch for the current key without awaiting it."""
        plan, adapter = self.plan(), self.definition.adapter
        return self.cache.request(self.fetch_key(), lambda: execute_plan(plan, adapter))

    async def refresh(self) -> ViewSnapshot:
        """Fetch the current key if needed and return the resulting snapshot."""
        plan, adapter = self.plan(), self.definition.adapter
        await self.cache.load(self.fetch_key(), lambda: execute_plan(plan, adapter))
        return self.snapshot()

    async def invalidate(self) -> None:
        """Re-fetch the active key exactly once."""
        await self.cache.invalidate()

    def snapshot(self) -> ViewSnapshot:
        entry = self.cache.read(self.fetch_key())
        result: CollectionResult | None = entry.data
        items = list(result.items) if result is not None else []
        if self.definition.data_mapper is not None:
            items = list(self.definition.data_mapper(items))
        filtered = apply_client_filters(
            items, self.definition.filters, self.query, self.definition.client_filter
        )

        meta = result.meta if result is not None else None
        total = meta.total if meta is not None and meta.total else len(items)
        last_page = meta.last_page if meta is not None else None
        return ViewSnapshot(
            items=filtered,
            total_items=total,
            total_pages=page_count(total, self.query.per_page, last_page),
            page=self.query.page,
            per_page=self.query.per_page,
            view_mode=self.query.view_mode,
            is_loading=entry.is_loading,
            is_validating=entry.is_validating,
            error=entry.error,
            is_stale=entry.is_stale,
        )

    def visible_items(self) -> list[Any]:
        return self.snapshot().items

    def find_entity(self, target_id: Any) -> Any:
        key = coerce_key(target_id)
        entry = self.cache.read(self.fetch_key())
        result: CollectionResult | None = entry.data
        items = list(result.items) if result is not None else []
        if self.definition.data_mapper is not None:
            items = list(self.definition.data_mapper(items))
        return next((i for i in items if coerce_key(entity_id(i)) == key), None)

    # -------------------------------------------------------------------------
    # Query mutators
    # -------------------------------------------------------------------------

    def set_search(self, text: str) -> None:
        self.query.set_search(text)

    def set_filter(self, key: str, value: str | None) -> None:
        if not any(f.key == key for f in self.definition.filters):
            raise KeyError(f"Unknown filter: {key}")
        self.query.set_filter(key, value)

    def clear_filters(self) -> None:
        self.query.clear()

    def set_per_page(self, per_page: int) -> None:
        self.query.set_per_page(per_page)

    def go_to_page(self, page: int) -> bool:
        return self.query.go_to_page(page, self.snapshot().total_pages)

    def toggle_sort(self, key: str) -> None:
        if not any(f.key == key and f.sortable for f in self.definition.fields):
            logger.debug("Ignoring sort on non-sortable field %s", key)
            return
        self.query.toggle_sort(key)

    def set_view_mode(self, mode: ViewMode | str) -> dict[str, str]:
        """Switch the layout; returns the URL query patch to apply."""
        self.query.view_mode = self._allowed_mode(ViewMode(mode))
        return view_mode_to_url_patch(self.query.view_mode)

    # -------------------------------------------------------------------------
    # Board mutations
    # -------------------------------------------------------------------------

    def _on_status_change(self, change: StatusChange) -> None:
        kanban = self.definition.kanban
        callback = kanban.on_status_change if kanban is not None else None
        if callback is None:
            logger.warning("Board drop on %s has no status-change handler", self.definition.title)
            return
        task = asyncio.get_running_loop().create_task(self._apply_status_change(callback, change))
        self._mutations.add(task)
        task.add_done_callback(self._mutations.discard)

    async def _apply_status_change(
        self, callback: Callable[..., Any], change: StatusChange
    ) -> None:
        try:
            result = callback(change.entity_id, change.column_id)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.warning("Moving %s to %s failed: %s", change.entity_id, change.column_id, exc)
            self.notifier.notify(NotificationLevel.ERROR, "Failed to move item")
            return
        await self.invalidate()

    async def wait_for_mutations(self) -> None:
        """Wait for every scheduled status change and its follow-up refetch."""
        while self._mutations:
            await asyncio.gather(*list(self._mutations))

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _allowed_mode(self, mode: ViewMode) -> ViewMode:
        if mode is ViewMode.BOARD and not self.definition.board_enabled:
            return ViewMode.TABLE
        return mode

    def _kanban_config(self, config: KanbanConfig) -> KanbanConfig:
        if "unmatched" in config.model_fields_set:
            return config
        return config.model_copy(update={"unmatched": self.views.unmatched_column})


def _positive_int(value: Any) -> int | None:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number >= 1 else None
