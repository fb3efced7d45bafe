"""
CRUD dialog orchestration for a resource view.

Only one dialog is open at a time: closed, create, edit(entity) or
view(entity). Deletion is a separate two-step flow (stage, then confirm or
cancel) so it can be confirmed from any layout.

After a successful create/edit or delete the orchestrator invalidates the
active fetch key instead of splicing the entity into the held list; the
refetch picks up server-computed fields.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from crmdeck.core.accessors import entity_id
from crmdeck.core.errors import DialogStateError
from crmdeck.core.notifications import NotificationLevel, Notifier

logger = logging.getLogger(__name__)


class DialogMode(StrEnum):
    CLOSED = "closed"
    CREATE = "create"
    EDIT = "edit"
    VIEW = "view"


@dataclass(frozen=True)
class DialogState:
    mode: DialogMode = DialogMode.CLOSED
    entity: Any = None

    @property
    def is_open(self) -> bool:
        return self.mode is not DialogMode.CLOSED


def singular_label(title: str) -> str:
    """Naive singular of a plural resource title ("Leads" -> "Lead")."""
    if title.endswith("ies"):
        return title[:-3] + "y"
    if title.endswith("s") and not title.endswith("ss"):
        return title[:-1]
    return title


class CrudDialogs:
    """Transient dialog and deletion state.

    Args:
        adapter: Resource adapter (only ``delete`` is used here).
        invalidate: Coroutine function re-fetching the active key.
        notifier: Sink for success/failure messages.
        entity_label: Singular label used in titles and messages.
        has_form: Whether an edit/create form is registered.
    """

    def __init__(
        self,
        *,
        adapter: Any,
        invalidate: Callable[[], Awaitable[Any]],
        notifier: Notifier,
        entity_label: str = "Item",
        has_form: bool = False,
    ) -> None:
        self._adapter = adapter
        self._invalidate = invalidate
        self._notifier = notifier
        self.entity_label = entity_label
        self.has_form = has_form
        self.state = DialogState()
        self.pending_delete: Any = None
        self.is_deleting = False

    # -- dialog --------------------------------------------------------------

    @property
    def title(self) -> str:
        mode = self.state.mode
        if mode is DialogMode.CREATE:
            return f"Add New {self.entity_label}"
        if mode is DialogMode.EDIT:
            return f"Edit {self.entity_label}"
        if mode is DialogMode.VIEW:
            return f"View {self.entity_label} Details"
        return ""

    @property
    def description(self) -> str:
        mode = self.state.mode
        if mode is DialogMode.CREATE:
            return "Enter details to create new."
        if mode is DialogMode.EDIT:
            return "Update details."
        if mode is DialogMode.VIEW:
            return "Detailed information."
        return ""

    def open_create(self) -> None:
        if not self.has_form:
            raise DialogStateError(f"No form registered to create a {self.entity_label}")
        self.state = DialogState(mode=DialogMode.CREATE)

    def open_edit(self, entity: Any) -> None:
        if not self.has_form:
            raise DialogStateError(f"No form registered to edit a {self.entity_label}")
        self.state = DialogState(mode=DialogMode.EDIT, entity=entity)

    def open_view(self, entity: Any) -> None:
        self.state = DialogState(mode=DialogMode.VIEW, entity=entity)

    def close(self) -> None:
        self.state = DialogState()

    async def form_succeeded(self) -> None:
        """The registered form reports a successful submit."""
        mode = self.state.mode
        self.close()
        if mode is DialogMode.CREATE:
            message = f"{self.entity_label} created successfully"
        elif mode is DialogMode.EDIT:
            message = f"{self.entity_label} updated successfully"
        else:
            return
        self._notifier.notify(NotificationLevel.SUCCESS, message)
        await self._invalidate()

    # -- delete --------------------------------------------------------------

    def stage_delete(self, entity: Any) -> None:
        self.pending_delete = entity

    def cancel_delete(self) -> None:
        self.pending_delete = None

    async def confirm_delete(self) -> bool:
        """Delete the staged entity.

        Returns ``True`` on success. On failure the staged entity is cleared,
        an error notification is emitted and the list is left untouched.
        """
        entity = self.pending_delete
        if entity is None:
            raise DialogStateError("Nothing is staged for deletion")
        self.is_deleting = True
        try:
            await self._adapter.delete(entity_id(entity))
        except Exception as exc:
            logger.warning("Delete of %s %s failed: %s", self.entity_label, entity_id(entity), exc)
            self._notifier.notify(NotificationLevel.ERROR, "Failed to delete item")
            return False
        finally:
            self.is_deleting = False
            self.pending_delete = None
        self._notifier.notify(NotificationLevel.SUCCESS, "Item deleted successfully")
        await self._invalidate()
        return True
