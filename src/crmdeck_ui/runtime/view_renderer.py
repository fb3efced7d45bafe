"""Resource panel renderer.

Projects one ``ViewSnapshot`` into template-ready context models and renders
the table, list, grid or board layout. All four layouts read the same
filtered page; the renderer never fetches.

Cell and card markup:

- ``FieldDescriptor.render`` / ``card_renderer`` / ``stats_renderer`` return
  HTML. ``markupsafe.Markup`` is kept as-is, plain strings from ``render``
  are escaped.
- Without a renderer a cell shows the raw field value (relationships by
  display name) and a card shows the entity as JSON.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from urllib.parse import urlencode

from markupsafe import Markup, escape
from pydantic import BaseModel, Field

from crmdeck.core.accessors import coerce_key, entity_id, get_nested_value
from crmdeck.core.controller import ResourceDefinition, ResourceViewController, ViewSnapshot
from crmdeck.core.descriptors import ALL, FieldDescriptor
from crmdeck.core.query import ViewMode
from crmdeck_ui.runtime.template_renderer import display_value, render_fragment

VIEW_LABELS: dict[ViewMode, str] = {
    ViewMode.TABLE: "Table",
    ViewMode.LIST: "List",
    ViewMode.GRID: "Grid",
    ViewMode.BOARD: "Board",
}

LAYOUT_TEMPLATES: dict[ViewMode, str] = {
    ViewMode.TABLE: "resource/table.html",
    ViewMode.LIST: "resource/list.html",
    ViewMode.GRID: "resource/grid.html",
    ViewMode.BOARD: "resource/board.html",
}


# =============================================================================
# Context Models
# =============================================================================


class ColumnContext(BaseModel):
    key: str
    label: str
    sortable: bool = False
    sort_dir: str = ""  # "", "asc" or "desc"
    sort_url: str = ""
    class_name: str = ""


class RowContext(BaseModel):
    id: str
    cells: list[str] = Field(default_factory=list)
    actions_html: str = ""


class CardContext(BaseModel):
    id: str
    html: str
    dimmed: bool = False


class MoveOptionContext(BaseModel):
    """Keyboard "move to column" choice of a board card."""

    id: str
    label: str
    selected: bool = False


class BoardCardContext(CardContext):
    move_options: list[MoveOptionContext] = Field(default_factory=list)


class BoardColumnContext(BaseModel):
    id: str
    label: str
    color: str | None = None
    count: int = 0
    droppable: bool = True
    cards: list[BoardCardContext] = Field(default_factory=list)


class FilterOptionContext(BaseModel):
    value: str
    label: str
    selected: bool = False


class FilterContext(BaseModel):
    key: str
    label: str
    name: str  # query parameter name
    options: list[FilterOptionContext] = Field(default_factory=list)


class ViewTabContext(BaseModel):
    mode: str
    label: str
    url: str
    active: bool = False


class PaginationContext(BaseModel):
    page: int = 1
    total_pages: int = 1
    total_items: int = 0
    shown: int = 0
    per_page: int = 10
    per_page_options: list[int] = Field(default_factory=list)
    prev_url: str | None = None
    next_url: str | None = None


class StatContext(BaseModel):
    title: str
    value: str
    icon: str = ""
    class_name: str = ""


class PanelContext(BaseModel):
    """Everything ``resource/panel.html`` needs."""

    title: str
    entity_label: str
    panel_id: str
    base_url: str
    panel_url: str
    view_mode: str
    layout_template: str
    hidden_params: dict[str, str] = Field(default_factory=dict)
    view_tabs: list[ViewTabContext] = Field(default_factory=list)
    search_text: str = ""
    search_placeholder: str = "Search..."
    filters: list[FilterContext] = Field(default_factory=list)
    has_active_query: bool = False
    clear_url: str = ""
    columns: list[ColumnContext] = Field(default_factory=list)
    rows: list[RowContext] = Field(default_factory=list)
    cards: list[CardContext] = Field(default_factory=list)
    board_columns: list[BoardColumnContext] = Field(default_factory=list)
    pagination: PaginationContext = Field(default_factory=PaginationContext)
    stats: list[StatContext] = Field(default_factory=list)
    stats_html: str = ""
    create_url: str = ""
    create_is_link: bool = False
    can_create: bool = False
    is_loading: bool = False
    is_empty: bool = False
    error_message: str = ""
    query_string: str = ""


# =============================================================================
# URL state
# =============================================================================


def query_params(controller: ResourceViewController, **overrides: Any) -> dict[str, str]:
    """Query parameters reproducing the controller's state.

    ``None`` in *overrides* removes a parameter.
    """
    state = controller.query
    params: dict[str, Any] = {"view": state.view_mode.value}
    if state.search_text:
        params["search"] = state.search_text
    for key, value in state.active_filters.items():
        if value and value != ALL:
            params[f"f_{key}"] = value
    if state.sort_by:
        params["sort"] = state.sort_by
        params["dir"] = state.sort_order
    if state.per_page != controller.views.per_page:
        params["per_page"] = state.per_page
    if state.page != 1:
        params["page"] = state.page
    params.update(overrides)
    return {k: str(v) for k, v in params.items() if v is not None}


def build_url(base_url: str, params: Mapping[str, str]) -> str:
    return f"{base_url}?{urlencode(params)}" if params else base_url


# =============================================================================
# Cells, actions, cards
# =============================================================================


def render_cell(field: FieldDescriptor, entity: Any) -> str:
    """Cell markup: ``render(entity)`` if present, else the raw field value."""
    if field.render is not None:
        value = field.render(entity)
        return value if isinstance(value, Markup) else str(escape(display_value(value)))
    return str(escape(display_value(get_nested_value(entity, field.key))))


def render_actions(definition: ResourceDefinition, entity: Any, base_url: str, query: str) -> str:
    """View / edit (with a registered form) / delete buttons for one entity."""
    return render_fragment(
        "fragments/action_buttons.html",
        entity_id=coerce_key(entity_id(entity)) or "",
        entity_label=definition.singular,
        base_url=base_url,
        query=query,
        can_edit=definition.form_renderer is not None,
    )


def render_card(definition: ResourceDefinition, entity: Any, actions_html: str) -> str:
    if definition.card_renderer is not None:
        return str(definition.card_renderer(entity, Markup(actions_html)))
    return render_fragment(
        "fragments/generic_card.html",
        entity=entity,
        entity_id=coerce_key(entity_id(entity)) or "",
        actions_html=actions_html,
    )


# =============================================================================
# Panel
# =============================================================================


def build_panel_context(
    controller: ResourceViewController,
    snapshot: ViewSnapshot,
    base_url: str,
) -> PanelContext:
    """Project *snapshot* into a ``PanelContext`` for its view mode."""
    definition = controller.definition
    state = controller.query
    current = query_params(controller)
    query = urlencode(current)
    mode = snapshot.view_mode

    modes = [m for m in ViewMode if m is not ViewMode.BOARD or definition.board_enabled]
    view_tabs = [
        ViewTabContext(
            mode=m.value,
            label=VIEW_LABELS[m],
            url=build_url(base_url, {**current, "view": m.value}),
            active=m is mode,
        )
        for m in modes
    ]

    filters = [
        FilterContext(
            key=f.key,
            label=f.label,
            name=f"f_{f.key}",
            options=[FilterOptionContext(value=ALL, label=f"All {f.label}")]
            + [
                FilterOptionContext(
                    value=o.value,
                    label=o.label,
                    selected=state.filter_value(f.key) == o.value,
                )
                for o in f.options
            ],
        )
        for f in definition.filters
    ]

    context = PanelContext(
        title=definition.title,
        entity_label=definition.singular,
        panel_id=f"resource-{definition.endpoint.strip('/').replace('/', '-') or 'panel'}",
        base_url=base_url,
        panel_url=build_url(base_url, current),
        view_mode=mode.value,
        layout_template=LAYOUT_TEMPLATES[mode],
        hidden_params={
            k: v for k, v in current.items() if k in ("view", "sort", "dir", "per_page")
        },
        view_tabs=view_tabs,
        search_text=state.search_text,
        search_placeholder=definition.search_placeholder,
        filters=filters,
        has_active_query=bool(state.search_text or state.active_filters),
        clear_url=build_url(
            base_url, {k: v for k, v in current.items() if k in ("view", "per_page")}
        ),
        pagination=_pagination(controller, snapshot, base_url, current),
        create_url=definition.create_link or f"{base_url}/dialog/create?{query}",
        create_is_link=definition.create_link is not None,
        can_create=definition.create_link is not None or definition.form_renderer is not None,
        is_loading=snapshot.is_loading,
        is_empty=snapshot.is_empty,
        error_message=str(snapshot.error) if snapshot.error is not None else "",
        query_string=query,
    )

    if definition.stats_renderer is not None:
        context.stats_html = str(definition.stats_renderer(snapshot.items))
    else:
        context.stats = [
            StatContext(title=s.title, value=str(s.value), icon=s.icon, class_name=s.class_name)
            for s in definition.stats
        ]

    if snapshot.is_loading:
        # One placeholder instead of partial rows
        context.columns = _columns(controller, base_url, current)
        return context

    if mode is ViewMode.TABLE:
        context.columns = _columns(controller, base_url, current)
        context.rows = [
            RowContext(
                id=coerce_key(entity_id(entity)) or "",
                cells=[render_cell(f, entity) for f in definition.fields],
                actions_html=render_actions(definition, entity, base_url, query),
            )
            for entity in snapshot.items
        ]
    elif mode is ViewMode.BOARD:
        context.board_columns = _board(controller, base_url, query)
    else:
        context.cards = [
            CardContext(
                id=coerce_key(entity_id(entity)) or "",
                html=render_card(
                    definition, entity, render_actions(definition, entity, base_url, query)
                ),
            )
            for entity in snapshot.items
        ]
    return context


def _columns(
    controller: ResourceViewController, base_url: str, current: dict[str, str]
) -> list[ColumnContext]:
    state = controller.query
    columns = []
    for f in controller.definition.fields:
        sort_dir = state.sort_order if state.sort_by == f.key else ""
        sort_url = build_url(base_url, {**current, "toggle_sort": f.key}) if f.sortable else ""
        columns.append(
            ColumnContext(
                key=f.key,
                label=f.label,
                sortable=f.sortable,
                sort_dir=sort_dir,
                sort_url=sort_url,
                class_name=f.class_name,
            )
        )
    return columns


def _pagination(
    controller: ResourceViewController,
    snapshot: ViewSnapshot,
    base_url: str,
    current: dict[str, str],
) -> PaginationContext:
    page, total_pages = snapshot.page, snapshot.total_pages
    return PaginationContext(
        page=page,
        total_pages=total_pages,
        total_items=snapshot.total_items,
        shown=len(snapshot.items),
        per_page=snapshot.per_page,
        per_page_options=list(controller.views.per_page_options),
        prev_url=build_url(base_url, {**current, "page": str(page - 1)}) if page > 1 else None,
        next_url=(
            build_url(base_url, {**current, "page": str(page + 1)})
            if page < total_pages
            else None
        ),
    )


def _board(
    controller: ResourceViewController, base_url: str, query: str
) -> list[BoardColumnContext]:
    engine = controller.board
    if engine is None:
        return []
    definition = controller.definition
    board = engine.board_columns()
    declared = [
        MoveOptionContext(id=coerce_key(c.id) or "", label=c.label) for c in engine.config.columns
    ]
    result = []
    for column in board:
        droppable = column.id in {o.id for o in declared}
        cards = []
        for entity in column.items:
            card_id = coerce_key(entity_id(entity)) or ""
            cards.append(
                BoardCardContext(
                    id=card_id,
                    html=render_card(
                        definition, entity, render_actions(definition, entity, base_url, query)
                    ),
                    dimmed=coerce_key(engine.dimmed_id) == card_id,
                    move_options=[
                        o.model_copy(update={"selected": o.id == column.id}) for o in declared
                    ],
                )
            )
        result.append(
            BoardColumnContext(
                id=column.id,
                label=column.column.label,
                color=column.column.color,
                count=len(cards),
                droppable=droppable,
                cards=cards,
            )
        )
    return result


def render_panel(
    controller: ResourceViewController,
    snapshot: ViewSnapshot,
    base_url: str,
) -> str:
    """Render the panel fragment (toolbar, stats, layout, pagination)."""
    context = build_panel_context(controller, snapshot, base_url)
    return render_fragment("resource/panel.html", **context.model_dump())


def render_page(
    controller: ResourceViewController,
    snapshot: ViewSnapshot,
    base_url: str,
) -> str:
    """Render the full HTML page wrapping the panel."""
    context = build_panel_context(controller, snapshot, base_url)
    return render_fragment("layouts/base.html", page_title=context.title, **context.model_dump())


def render_dialog(controller: ResourceViewController, base_url: str) -> str:
    """Render the active CRUD dialog (create, edit or read-only view)."""
    dialogs = controller.dialogs
    definition = controller.definition
    entity = dialogs.state.entity
    body = ""
    if dialogs.state.mode.value in ("create", "edit") and definition.form_renderer is not None:
        body = str(definition.form_renderer(entity))
    return render_fragment(
        "fragments/dialog.html",
        mode=dialogs.state.mode.value,
        title=dialogs.title,
        description=dialogs.description,
        form_html=body,
        fields=[
            {"label": f.label, "value": render_cell(f, entity)} for f in definition.fields
        ]
        if entity is not None
        else [],
        base_url=base_url,
        query=urlencode(query_params(controller)),
    )


def render_confirm_delete(
    controller: ResourceViewController, entity: Any, base_url: str
) -> str:
    return render_fragment(
        "fragments/confirm_delete.html",
        entity_id=coerce_key(entity_id(entity)) or "",
        entity_label=controller.definition.singular,
        base_url=base_url,
        query=urlencode(query_params(controller)),
    )
