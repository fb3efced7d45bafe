"""Tests for CRUD dialog orchestration."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from crmdeck.core.dialogs import CrudDialogs, DialogMode, singular_label
from crmdeck.core.errors import DialogStateError, NetworkError
from crmdeck.core.notifications import Notification, NotificationLevel, NotificationLog


def _dialogs(
    *, has_form: bool = True, delete_error: Exception | None = None
) -> tuple[CrudDialogs, AsyncMock, AsyncMock, NotificationLog]:
    adapter = AsyncMock()
    if delete_error is not None:
        adapter.delete.side_effect = delete_error
    invalidate = AsyncMock()
    log = NotificationLog()
    dialogs = CrudDialogs(
        adapter=adapter,
        invalidate=invalidate,
        notifier=log,
        entity_label="Lead",
        has_form=has_form,
    )
    return dialogs, adapter, invalidate, log


class TestSingularLabel:
    @pytest.mark.parametrize(
        "title, expected",
        [("Leads", "Lead"), ("Companies", "Company"), ("Address", "Address"), ("Staff", "Staff")],
    )
    def test_singular(self, title: str, expected: str) -> None:
        assert singular_label(title) == expected


class TestDialogState:
    def test_starts_closed(self) -> None:
        dialogs, *_ = _dialogs()
        assert not dialogs.state.is_open
        assert dialogs.title == ""

    def test_titles(self) -> None:
        dialogs, *_ = _dialogs()
        dialogs.open_create()
        assert dialogs.title == "Add New Lead"
        dialogs.open_edit({"id": 1})
        assert dialogs.title == "Edit Lead"
        assert dialogs.state.entity == {"id": 1}
        dialogs.open_view({"id": 1})
        assert dialogs.title == "View Lead Details"
        assert dialogs.state.mode is DialogMode.VIEW

    def test_edit_without_form_raises(self) -> None:
        dialogs, *_ = _dialogs(has_form=False)
        with pytest.raises(DialogStateError):
            dialogs.open_edit({"id": 1})
        with pytest.raises(DialogStateError):
            dialogs.open_create()

    def test_view_without_form_allowed(self) -> None:
        dialogs, *_ = _dialogs(has_form=False)
        dialogs.open_view({"id": 1})
        assert dialogs.state.is_open

    def test_close(self) -> None:
        dialogs, *_ = _dialogs()
        dialogs.open_create()
        dialogs.close()
        assert dialogs.state.mode is DialogMode.CLOSED


class TestFormSucceeded:
    @pytest.mark.asyncio
    async def test_create_notifies_and_invalidates(self) -> None:
        dialogs, _, invalidate, log = _dialogs()
        dialogs.open_create()

        await dialogs.form_succeeded()

        assert not dialogs.state.is_open
        assert log.entries == [
            Notification(NotificationLevel.SUCCESS, "Lead created successfully")
        ]
        invalidate.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_edit_message(self) -> None:
        dialogs, _, _, log = _dialogs()
        dialogs.open_edit({"id": 1})
        await dialogs.form_succeeded()
        assert log.entries[0].message == "Lead updated successfully"

    @pytest.mark.asyncio
    async def test_view_just_closes(self) -> None:
        dialogs, _, invalidate, log = _dialogs()
        dialogs.open_view({"id": 1})
        await dialogs.form_succeeded()
        assert log.entries == []
        invalidate.assert_not_awaited()


class TestDelete:
    @pytest.mark.asyncio
    async def test_success(self) -> None:
        dialogs, adapter, invalidate, log = _dialogs()
        dialogs.stage_delete({"id": 5})

        assert await dialogs.confirm_delete() is True

        adapter.delete.assert_awaited_once_with(5)
        invalidate.assert_awaited_once()
        assert log.entries == [
            Notification(NotificationLevel.SUCCESS, "Item deleted successfully")
        ]
        assert dialogs.pending_delete is None
        assert not dialogs.is_deleting

    @pytest.mark.asyncio
    async def test_failure_keeps_list_and_notifies(self) -> None:
        dialogs, adapter, invalidate, log = _dialogs(delete_error=NetworkError("down"))
        dialogs.stage_delete({"id": 5})

        assert await dialogs.confirm_delete() is False

        adapter.delete.assert_awaited_once_with(5)
        invalidate.assert_not_awaited()
        assert log.entries == [Notification(NotificationLevel.ERROR, "Failed to delete item")]
        assert dialogs.pending_delete is None
        assert not dialogs.is_deleting

    @pytest.mark.asyncio
    async def test_cancel(self) -> None:
        dialogs, adapter, _, _ = _dialogs()
        dialogs.stage_delete({"id": 5})
        dialogs.cancel_delete()
        assert dialogs.pending_delete is None
        with pytest.raises(DialogStateError):
            await dialogs.confirm_delete()
        adapter.delete.assert_not_awaited()
