"""Single-slot tracker for the multi-step user action in flight."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ActionType(str, Enum):
    DOWNLOAD_WORK_ITEM = "download_work_item"
    EDIT_WORK_ITEM = "edit_work_item"
    DELETE_WORK_ITEM = "delete_work_item"
    CREATE_WORK_ITEM = "create_work_item"
    CHANGE_STATE = "change_state"
    ASSIGN = "assign"
    ADD_TAGS = "add_tags"
    COPY_TEMPLATE = "copy_template"
    RENAME_TEMPLATE = "rename_template"
    NEW_TEMPLATE = "new_template"
    NEW_FOLDER = "new_folder"
    EDIT_TEMPLATE = "edit_template"
    DELETE_TEMPLATE = "delete_template"


class ActionStep(str, Enum):
    AWAITING_INPUT = "awaiting_input"
    AWAITING_CONFIRM = "awaiting_confirm"
    EXECUTING = "executing"
    COMPLETE = "complete"


@dataclass
class PendingAction:
    kind: ActionType
    origin_tab: int
    step: ActionStep = ActionStep.EXECUTING
    context: dict[str, Any] = field(default_factory=dict)


class ActionController:
    """Holds at most one PendingAction. No pending action means idle."""

    def __init__(self) -> None:
        self._pending: PendingAction | None = None

    def can_start(self, tab: Any = None) -> bool:
        """False while an action is pending or the tab is capturing a filter."""
        if self._pending is not None:
            return False
        if tab is not None and tab.is_filtering():
            return False
        return True

    def start(
        self,
        kind: ActionType,
        origin_tab: int,
        step: ActionStep = ActionStep.EXECUTING,
        context: dict[str, Any] | None = None,
    ) -> PendingAction:
        if self._pending is not None:
            raise RuntimeError(
                f"cannot start {kind.value}: {self._pending.kind.value} is still pending"
            )
        self._pending = PendingAction(kind, origin_tab, step, dict(context or {}))
        return self._pending

    def current(self) -> PendingAction | None:
        return self._pending

    def in_progress_on(self, tab_index: int) -> bool:
        return self._pending is not None and self._pending.origin_tab == tab_index

    def advance(self, step: ActionStep, **context: Any) -> None:
        if self._pending is None:
            return
        self._pending.step = step
        self._pending.context.update(context)

    def clear(self, kind: ActionType | None = None) -> None:
        """Drop the pending action; with ``kind``, only if it matches."""
        if kind is not None and self._pending is not None and self._pending.kind != kind:
            return
        self._pending = None
