"""Tests for query state and URL view-mode round-tripping."""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from crmdeck.core.query import (
    QueryState,
    ViewMode,
    page_count,
    url_to_view_mode,
    view_mode_to_url_patch,
)

# =============================================================================
# View mode <-> URL
# =============================================================================


class TestViewModeUrl:
    @pytest.mark.parametrize("mode", list(ViewMode))
    def test_round_trip(self, mode: ViewMode) -> None:
        assert url_to_view_mode(view_mode_to_url_patch(mode)) is mode

    def test_missing_param_uses_default(self) -> None:
        assert url_to_view_mode({}) is ViewMode.TABLE
        assert url_to_view_mode({}, default=ViewMode.GRID) is ViewMode.GRID

    def test_unknown_value_uses_default(self) -> None:
        assert url_to_view_mode({"view": "timeline"}) is ViewMode.TABLE

    def test_value_is_case_insensitive(self) -> None:
        assert url_to_view_mode({"view": " Grid "}) is ViewMode.GRID

    def test_board_without_board_falls_back(self) -> None:
        assert url_to_view_mode({"view": "board"}, board_enabled=False) is ViewMode.TABLE

    def test_board_default_without_board_falls_back_to_table(self) -> None:
        mode = url_to_view_mode({}, board_enabled=False, default=ViewMode.BOARD)
        assert mode is ViewMode.TABLE

    def test_patch_shape(self) -> None:
        assert view_mode_to_url_patch(ViewMode.BOARD) == {"view": "board"}


# =============================================================================
# Query state transitions
# =============================================================================


class TestQueryState:
    def test_search_resets_page(self) -> None:
        state = QueryState(page=3)
        state.set_search("acme")
        assert state.search_text == "acme"
        assert state.page == 1

    def test_same_search_keeps_page(self) -> None:
        state = QueryState(search_text="acme", page=3)
        state.set_search("acme")
        assert state.page == 3

    def test_filter_resets_page(self) -> None:
        state = QueryState(page=2)
        state.set_filter("source", "web")
        assert state.active_filters == {"source": "web"}
        assert state.page == 1

    def test_filter_all_removes_constraint(self) -> None:
        state = QueryState(active_filters={"source": "web"})
        state.set_filter("source", "all")
        assert state.active_filters == {}
        assert state.filter_value("source") == "all"

    def test_clear(self) -> None:
        state = QueryState(search_text="x", active_filters={"source": "web"}, page=4)
        state.clear()
        assert (state.search_text, state.active_filters, state.page) == ("", {}, 1)

    def test_per_page_change_resets_page(self) -> None:
        state = QueryState(page=3, per_page=10)
        state.set_per_page(20)
        assert state.per_page == 20
        assert state.page == 1

    def test_per_page_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            QueryState().set_per_page(0)

    def test_go_to_page_within_bounds(self) -> None:
        state = QueryState()
        assert state.go_to_page(3, total_pages=3) is True
        assert state.page == 3

    @pytest.mark.parametrize("page", [0, 4, -1])
    def test_go_to_page_out_of_bounds_is_ignored(self, page: int) -> None:
        state = QueryState(page=2)
        assert state.go_to_page(page, total_pages=3) is False
        assert state.page == 2

    def test_sort_cycle(self) -> None:
        state = QueryState(page=2)
        state.toggle_sort("name")
        assert (state.sort_by, state.sort_order, state.page) == ("name", "asc", 1)
        state.toggle_sort("name")
        assert (state.sort_by, state.sort_order) == ("name", "desc")
        state.toggle_sort("name")
        assert state.sort_by is None

    def test_sort_other_column_restarts_ascending(self) -> None:
        state = QueryState(sort_by="name", sort_order="desc")
        state.toggle_sort("value")
        assert (state.sort_by, state.sort_order) == ("value", "asc")

    def test_copy_is_independent(self) -> None:
        state = QueryState(active_filters={"a": "1"})
        clone = state.copy()
        clone.set_filter("a", "2")
        assert state.active_filters == {"a": "1"}


class TestPageCount:
    def test_prefers_last_page(self) -> None:
        assert page_count(100, 10, last_page=7) == 7

    def test_computed_from_total(self) -> None:
        assert page_count(24, 10) == 3
        assert page_count(20, 10) == 2

    def test_never_below_one(self) -> None:
        assert page_count(0, 10) == 1

    @given(total=st.integers(min_value=0, max_value=10_000), per_page=st.integers(1, 100))
    @settings(max_examples=100)
    def test_pages_cover_total(self, total: int, per_page: int) -> None:
        pages = page_count(total, per_page)
        assert pages >= 1
        assert pages * per_page >= total
        assert (pages - 1) * per_page < max(total, 1)
