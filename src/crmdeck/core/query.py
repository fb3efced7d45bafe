"""
Query state for a resource view.

The query state (search text, filters, page, page size, sort, view mode) is
owned by a single controller. Only the view mode is mirrored into the URL, via
the pure ``url_to_view_mode`` / ``view_mode_to_url_patch`` pair, so a reload or
back-navigation keeps the chosen layout.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Any

from crmdeck.core.descriptors import ALL

PER_PAGE_OPTIONS: tuple[int, ...] = (10, 20, 30, 40, 50)
DEFAULT_PER_PAGE = 10
VIEW_PARAM = "view"


class ViewMode(StrEnum):
    """Presentation-only switch over the same filtered data."""

    TABLE = "table"
    LIST = "list"
    GRID = "grid"
    BOARD = "board"


def url_to_view_mode(
    params: Mapping[str, Any],
    *,
    board_enabled: bool = True,
    default: ViewMode = ViewMode.TABLE,
) -> ViewMode:
    """Read the view mode from URL query parameters.

    Unrecognised or missing values fall back to *default*; ``board`` falls
    back too when the resource has no board configured.
    """
    raw = params.get(VIEW_PARAM)
    try:
        mode = ViewMode(str(raw).strip().lower()) if raw is not None else default
    except ValueError:
        mode = default
    if mode is ViewMode.BOARD and not board_enabled:
        return default if default is not ViewMode.BOARD else ViewMode.TABLE
    return mode


def view_mode_to_url_patch(mode: ViewMode) -> dict[str, str]:
    """Query-parameter patch to merge into the current URL."""
    return {VIEW_PARAM: ViewMode(mode).value}


def page_count(total: int, per_page: int, last_page: int | None = None) -> int:
    """Number of pages, preferring the backend's own ``last_page``."""
    if last_page:
        return max(int(last_page), 1)
    if per_page <= 0:
        return 1
    return max(math.ceil(total / per_page), 1)


@dataclass
class QueryState:
    """Transient query state of one resource view."""

    search_text: str = ""
    active_filters: dict[str, str] = field(default_factory=dict)
    page: int = 1
    per_page: int = DEFAULT_PER_PAGE
    view_mode: ViewMode = ViewMode.TABLE
    sort_by: str | None = None
    sort_order: str = "asc"

    def filter_value(self, key: str) -> str:
        return self.active_filters.get(key) or ALL

    def set_search(self, text: str) -> None:
        text = text or ""
        if text != self.search_text:
            self.search_text = text
            self.page = 1

    def set_filter(self, key: str, value: str | None) -> None:
        value = value or ALL
        if self.filter_value(key) == value:
            return
        if value == ALL:
            self.active_filters.pop(key, None)
        else:
            self.active_filters[key] = value
        self.page = 1

    def clear(self) -> None:
        """Reset search text and filters (the "Clear" button)."""
        self.search_text = ""
        self.active_filters = {}
        self.page = 1

    def set_per_page(self, per_page: int) -> None:
        if per_page < 1:
            raise ValueError(f"per_page must be positive, got {per_page}")
        if per_page != self.per_page:
            self.per_page = per_page
            self.page = 1

    def go_to_page(self, page: int, total_pages: int) -> bool:
        """Move to *page* if it lies within ``[1, total_pages]``."""
        if 1 <= page <= total_pages:
            self.page = page
            return True
        return False

    def toggle_sort(self, key: str) -> None:
        """Cycle a column through ascending, descending, unsorted."""
        if self.sort_by != key:
            self.sort_by, self.sort_order = key, "asc"
        elif self.sort_order == "asc":
            self.sort_order = "desc"
        else:
            self.sort_by, self.sort_order = None, "asc"
        self.page = 1

    def copy(self) -> QueryState:
        return replace(self, active_filters=dict(self.active_filters))
