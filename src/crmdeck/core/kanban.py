"""
Kanban engine: grouping, drag lifecycle and drop resolution.

State machine::

    IDLE --pointer_down--> PRESSED --pointer_move >= threshold--> DRAGGING
    IDLE --pick_up (keyboard)-----------------------------------> DRAGGING
    DRAGGING --pointer_up / commit--> resolve drop --> IDLE
    PRESSED  --pointer_up--> IDLE (a click, no drag)
    any      --cancel------> IDLE

A drop target is either a column (empty column, column body) or another
card. ``resolve_drop_target`` maps both onto the *containing column*. The
status-change callback fires only when that column differs from the dragged
entity's derived column; same-column drops and drops outside any column or
card are no-ops.

The engine never moves a card locally. The callback performs the
authoritative update and the next grouping pass (after the cache refetch)
shows the card in its new column.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Literal

from crmdeck.core.accessors import coerce_key, entity_id, get_nested_value
from crmdeck.core.descriptors import UNASSIGNED_COLUMN_ID, KanbanColumn, KanbanConfig

logger = logging.getLogger(__name__)

DEFAULT_ACTIVATION_DISTANCE = 5.0

Unmatched = Literal["first", "unassigned"]
TargetKind = Literal["column", "item"]


# =============================================================================
# Grouping
# =============================================================================


def derive_column_id(
    item: Any,
    group_by: str,
    columns: Sequence[KanbanColumn],
    unmatched: Unmatched = "first",
) -> str | None:
    """Column (as coerced key) an entity belongs to.

    Entities whose grouping key matches no declared column go to the first
    column, or to the unassigned bucket when ``unmatched="unassigned"`` or no
    columns are declared. Never ``None`` unless there is nowhere to go.
    """
    key = coerce_key(get_nested_value(item, group_by))
    for column in columns:
        if coerce_key(column.id) == key:
            return coerce_key(column.id)
    if unmatched == "first" and columns:
        return coerce_key(columns[0].id)
    return UNASSIGNED_COLUMN_ID


def group_items(
    items: Sequence[Any],
    group_by: str,
    columns: Sequence[KanbanColumn],
    unmatched: Unmatched = "first",
) -> dict[str, list[Any]]:
    """Partition *items* into one list per declared column.

    Keys are coerced column ids in declaration order. The unassigned bucket
    is present only when something landed in it.
    """
    groups: dict[str, list[Any]] = {coerce_key(c.id) or "": [] for c in columns}
    for item in items:
        column_id = derive_column_id(item, group_by, columns, unmatched)
        groups.setdefault(column_id or UNASSIGNED_COLUMN_ID, []).append(item)
    return groups


def resolve_drop_target(
    drag_id: Any,
    drop_target_id: Any,
    columns: Sequence[KanbanColumn],
    items: Sequence[Any],
    *,
    group_by: str,
    unmatched: Unmatched = "first",
    target_kind: TargetKind | None = None,
) -> KanbanColumn | None:
    """Resolve a drop target to its containing declared column.

    Args:
        drag_id: Id of the dragged entity.
        drop_target_id: Id of a column or of a card under the pointer.
        columns: Declared columns.
        items: Entities currently on the board.
        group_by: Grouping field path.
        unmatched: Fallback policy, see ``derive_column_id``.
        target_kind: When the host knows whether the target is a column or a
            card, pass it; otherwise columns are tried before cards.

    Returns:
        The declared column, or ``None`` when the target matches neither a
        column nor a card (or resolves to the unassigned bucket).
    """
    if drop_target_id is None:
        return None
    target_key = coerce_key(drop_target_id)
    by_key = {coerce_key(c.id): c for c in columns}

    if target_kind in (None, "column") and target_key in by_key:
        return by_key[target_key]
    if target_kind == "column":
        return None

    # Dropping a card onto itself resolves to its own column like any other card.
    target = next((i for i in items if coerce_key(entity_id(i)) == target_key), None)
    if target is None:
        logger.debug("Drop target %r of %r is neither column nor card", drop_target_id, drag_id)
        return None
    column_key = derive_column_id(target, group_by, columns, unmatched)
    return by_key.get(column_key)


# =============================================================================
# Drag state machine
# =============================================================================


class DragPhase(StrEnum):
    IDLE = "idle"
    PRESSED = "pressed"
    DRAGGING = "dragging"


class DropKind(StrEnum):
    COLUMN = "column"
    ITEM = "item"
    NOWHERE = "nowhere"


@dataclass(frozen=True)
class StatusChange:
    """A requested move of ``entity_id`` into ``column_id``."""

    entity_id: Any
    column_id: str | int


@dataclass(frozen=True)
class DropOutcome:
    kind: DropKind
    column: KanbanColumn | None = None
    change: StatusChange | None = None


@dataclass
class BoardColumn:
    """A declared column with its members for one render."""

    column: KanbanColumn
    items: list[Any] = field(default_factory=list)

    @property
    def id(self) -> str:
        return coerce_key(self.column.id) or ""


class KanbanEngine:
    """Pointer and keyboard drag lifecycle over a board.

    Both input paths end in ``_finish``, so they cannot diverge in how a drop
    is resolved.

    Args:
        config: Board configuration.
        items: Callable returning the entities currently on the board (the
            filtered page).
        on_status_change: Invoked synchronously, exactly once, for every drop
            that changes an entity's column.
        activation_distance: Pointer travel (px) before a press becomes a
            drag, so plain clicks are not hijacked.
    """

    def __init__(
        self,
        config: KanbanConfig,
        items: Callable[[], Sequence[Any]],
        on_status_change: Callable[[StatusChange], None] | None = None,
        activation_distance: float = DEFAULT_ACTIVATION_DISTANCE,
    ) -> None:
        self.config = config
        self._items = items
        self.on_status_change = on_status_change
        self.activation_distance = activation_distance
        self.phase = DragPhase.IDLE
        self.active_id: Any = None
        self.over_id: Any = None
        self.over_kind: TargetKind | None = None
        self._origin: tuple[float, float] = (0.0, 0.0)

    # -- grouping ------------------------------------------------------------

    def board_columns(self) -> list[BoardColumn]:
        columns = list(self.config.columns)
        groups = group_items(self._items(), self.config.group_by, columns, self.config.unmatched)
        board = [
            BoardColumn(column=c, items=groups.get(coerce_key(c.id) or "", [])) for c in columns
        ]
        leftovers = groups.get(UNASSIGNED_COLUMN_ID)
        if leftovers:
            board.append(
                BoardColumn(
                    column=KanbanColumn(id=UNASSIGNED_COLUMN_ID, label="Unassigned"),
                    items=leftovers,
                )
            )
        return board

    def column_of(self, item: Any) -> str | None:
        return derive_column_id(
            item, self.config.group_by, self.config.columns, self.config.unmatched
        )

    # -- render helpers ------------------------------------------------------

    @property
    def dimmed_id(self) -> Any:
        """Id of the card rendered dimmed in place while dragging."""
        return self.active_id if self.phase is DragPhase.DRAGGING else None

    @property
    def overlay(self) -> Any:
        """Entity rendered as the floating drag overlay, if any."""
        if self.phase is not DragPhase.DRAGGING:
            return None
        return self._find(self.active_id)

    # -- pointer path --------------------------------------------------------

    def pointer_down(self, entity_id: Any, x: float, y: float) -> None:
        self._reset()
        self.phase = DragPhase.PRESSED
        self.active_id = entity_id
        self._origin = (x, y)

    def pointer_move(
        self,
        x: float,
        y: float,
        over_id: Any = None,
        over_kind: TargetKind | None = None,
    ) -> None:
        if self.phase is DragPhase.IDLE:
            return
        if self.phase is DragPhase.PRESSED:
            dx, dy = x - self._origin[0], y - self._origin[1]
            if math.hypot(dx, dy) < self.activation_distance:
                return
            self.phase = DragPhase.DRAGGING
            logger.debug("Drag started for %s", self.active_id)
        self.drag_over(over_id, over_kind)

    def pointer_up(
        self, over_id: Any = None, over_kind: TargetKind | None = None
    ) -> DropOutcome | None:
        """Release the pointer. Returns ``None`` when no drag was active."""
        if self.phase is not DragPhase.DRAGGING:
            self._reset()
            return None
        if over_id is not None:
            self.drag_over(over_id, over_kind)
        return self._finish()

    # -- keyboard path -------------------------------------------------------

    def pick_up(self, entity_id: Any) -> None:
        self._reset()
        item = self._find(entity_id)
        if item is None:
            return
        self.phase = DragPhase.DRAGGING
        self.active_id = entity_id
        self.drag_over(self.column_of(item), "column")

    def move_focus(self, step: int) -> None:
        """Move the keyboard drop target *step* columns left (<0) or right (>0)."""
        if self.phase is not DragPhase.DRAGGING:
            return
        keys = [coerce_key(c.id) for c in self.config.columns]
        if not keys:
            return
        current = self._current_column_key()
        index = keys.index(current) if current in keys else 0
        index = max(0, min(len(keys) - 1, index + step))
        self.drag_over(keys[index], "column")

    def commit(self) -> DropOutcome | None:
        if self.phase is not DragPhase.DRAGGING:
            return None
        return self._finish()

    def cancel(self) -> None:
        self._reset()

    # -- shared --------------------------------------------------------------

    def drag_over(self, over_id: Any, over_kind: TargetKind | None = None) -> None:
        # Visual feedback only; no reordering side effects.
        self.over_id = over_id
        self.over_kind = over_kind

    def drop(
        self, entity_id: Any, target_id: Any, target_kind: TargetKind | None = None
    ) -> DropOutcome:
        """One-shot drop for hosts that report only the final gesture."""
        self._reset()
        self.phase = DragPhase.DRAGGING
        self.active_id = entity_id
        self.drag_over(target_id, target_kind)
        return self._finish()

    def _finish(self) -> DropOutcome:
        drag_id, over_id, over_kind = self.active_id, self.over_id, self.over_kind
        self._reset()

        items = list(self._items())
        dragged = next((i for i in items if coerce_key(entity_id(i)) == coerce_key(drag_id)), None)
        column = resolve_drop_target(
            drag_id,
            over_id,
            self.config.columns,
            items,
            group_by=self.config.group_by,
            unmatched=self.config.unmatched,
            target_kind=over_kind,
        )
        if dragged is None or column is None:
            logger.debug("Drop of %s on %r resolved to nothing", drag_id, over_id)
            return DropOutcome(kind=DropKind.NOWHERE)

        kind = DropKind.COLUMN if self._is_column(over_id, over_kind) else DropKind.ITEM
        if self.column_of(dragged) == coerce_key(column.id):
            logger.debug("Drop of %s stayed in column %s", drag_id, column.id)
            return DropOutcome(kind=kind, column=column)

        change = StatusChange(entity_id=entity_id(dragged), column_id=column.id)
        logger.info("Moving %s to column %s", change.entity_id, change.column_id)
        if self.on_status_change is not None:
            self.on_status_change(change)
        return DropOutcome(kind=kind, column=column, change=change)

    def _is_column(self, over_id: Any, over_kind: TargetKind | None) -> bool:
        if over_kind is not None:
            return over_kind == "column"
        return any(coerce_key(c.id) == coerce_key(over_id) for c in self.config.columns)

    def _current_column_key(self) -> str | None:
        if self.over_kind == "column":
            return coerce_key(self.over_id)
        item = self._find(self.active_id)
        return self.column_of(item) if item is not None else None

    def _find(self, target_id: Any) -> Any:
        key = coerce_key(target_id)
        return next((i for i in self._items() if coerce_key(entity_id(i)) == key), None)

    def _reset(self) -> None:
        self.phase = DragPhase.IDLE
        self.active_id = None
        self.over_id = None
        self.over_kind = None
        self._origin = (0.0, 0.0)
