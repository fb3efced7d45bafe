"""
Declarative descriptors consumed by resource views.

Field, filter, kanban column and stat descriptors are immutable for the
lifetime of a view: they say *how* to project an entity, never *what* the
entity is.

Example:
    fields = [
        FieldDescriptor(key="name", label="Name", sortable=True),
        FieldDescriptor(key="stage.name", label="Stage"),
    ]
    filters = [
        FilterDefinition(
            key="status",
            label="Status",
            options=[FilterOption(value="open", label="Open")],
        ),
    ]
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# Active filter value meaning "no constraint"
ALL = "all"

# Column id used for the visible bucket of entities that match no column
UNASSIGNED_COLUMN_ID = "__unassigned__"


class FieldDescriptor(BaseModel):
    """One table column / card field.

    Attributes:
        key: Entity field path (dot-navigated, e.g. ``"stage.name"``).
        label: Column header.
        render: Optional ``render(entity) -> str`` returning markup. Plain
            strings are escaped; ``markupsafe.Markup`` is emitted as-is.
        sortable: Whether clicking the header toggles server-side sorting.
        class_name: Extra CSS classes for header and cells.
    """

    model_config = ConfigDict(frozen=True)

    key: str
    label: str
    render: Callable[[Any], Any] | None = None
    sortable: bool = False
    class_name: str = ""


class FilterOption(BaseModel):
    """A selectable value of a filter."""

    model_config = ConfigDict(frozen=True)

    value: str
    label: str


class FilterDefinition(BaseModel):
    """A discrete filter shown next to the search box.

    Filters are applied client-side to the fetched page. Set ``server_side``
    to also send the active value to the adapter (it then becomes part of
    the fetch key).
    """

    model_config = ConfigDict(frozen=True)

    key: str
    label: str
    options: list[FilterOption] = Field(default_factory=list)
    server_side: bool = False


class KanbanColumn(BaseModel):
    """A board column. Declared by the caller, never derived from data."""

    model_config = ConfigDict(frozen=True)

    id: str | int
    label: str
    color: str | None = None


class KanbanConfig(BaseModel):
    """Board configuration.

    Attributes:
        group_by: Entity field path the board groups on (e.g. ``"stage.id"``).
        columns: Declared columns, in display order.
        on_status_change: ``(entity_id, column_id)`` callback performing the
            authoritative update. May be sync or async.
        unmatched: Where entities whose grouping key matches no column go:
            ``"first"`` puts them in the first declared column,
            ``"unassigned"`` shows a separate "Unassigned" column.
    """

    model_config = ConfigDict(frozen=True)

    group_by: str
    columns: list[KanbanColumn] = Field(default_factory=list)
    on_status_change: Callable[..., Any] | None = None
    unmatched: Literal["first", "unassigned"] = "first"


class StatDefinition(BaseModel):
    """A static stat tile rendered above the panel."""

    model_config = ConfigDict(frozen=True)

    title: str
    value: str | int | float
    icon: str = ""
    class_name: str = ""
