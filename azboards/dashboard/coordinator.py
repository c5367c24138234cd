"""Dashboard coordinator: owns the tabs, overlays, keybinds and pending action.

The coordinator is a plain object with no terminal dependency. The host
feeds it every input and every command result through handle(), runs the
commands it returns, and paints whatever render() produces::

    dashboard, cmds = dashboard.handle(KeyPress.of("d"))

Key events are resolved in a fixed order, stopping at the first match:

1. input prompt (Enter submits, Esc cancels, other keys edit the field)
2. confirmation dialog (y/Y runs the action, n/N/Esc dismisses)
3. selection dialog (Enter picks, Esc cancels, arrows move)
4. help toggle; while help is open every other key is swallowed
5. quit
6. next/previous tab
7. if an action is pending, only the active tab's own handler runs
8. tab shortcuts that need an overlay, the editor, or another tab
9. the active tab's own handler
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from rich.markup import escape

from ..workitems import get_string_field
from . import commands, styles
from .actions import ActionController, ActionStep, ActionType
from .commands import Command
from .keybinds import GLOBAL, TEMPLATES, WORK_ITEMS, KeybindTable
from .messages import (
    QUERIES_MESSAGES,
    TEMPLATES_MESSAGES,
    WORK_ITEMS_MESSAGES,
    ClearNotification,
    ConfirmRequest,
    CreateFromTemplate,
    EditorClosed,
    ExecuteQuery,
    KeyPress,
    Message,
    Notify,
    OpenEditor,
    PromptRequest,
    SelectionRequest,
    SwitchTab,
    TemplateMutated,
    WindowSize,
    WorkItemCreated,
    WorkItemDeleted,
    WorkItemDownloaded,
    WorkItemUpdated,
)
from .tabs.base import CHROME_HEIGHT, Tab
from .tabs.placeholders import AgentsTab, PipelinesTab
from .tabs.queries import QueriesTab
from .tabs.templates import TemplatesTab
from .tabs.work_items import WorkItemsTab
from .widgets.confirmation import ConfirmationDialog
from .widgets.help import HelpOverlay
from .widgets.input_prompt import InputPrompt
from .widgets.notification import Notification
from .widgets.selection import SelectionDialog

QUERIES_TAB = 0
WORK_ITEMS_TAB = 1
TEMPLATES_TAB = 2
PIPELINES_TAB = 3
AGENTS_TAB = 4

APP_TITLE = "Azure Boards CLI"

GLOBAL_HELP = [
    ("quit", "Quit"),
    ("help", "Toggle help"),
    ("next_tab", "Next tab"),
    ("prev_tab", "Previous tab"),
    ("refresh", "Refresh current tab"),
]

_TEMPLATE_OPERATIONS = {
    "copy": ("Copied to", "Copy"),
    "rename": ("Renamed to", "Rename"),
    "new_template": ("Created template", "Create template"),
    "new_folder": ("Created folder", "Create folder"),
    "delete": ("Deleted", "Delete"),
}

_TEMPLATE_ACTIONS = {
    "copy": ActionType.COPY_TEMPLATE,
    "rename": ActionType.RENAME_TEMPLATE,
    "new_template": ActionType.NEW_TEMPLATE,
    "new_folder": ActionType.NEW_FOLDER,
    "delete": ActionType.DELETE_TEMPLATE,
}


class Dashboard:
    """Routes messages between the terminal host, the tabs and the overlays."""

    def __init__(
        self,
        client: Any,
        store: Any,
        keybinds: KeybindTable,
        logger: logging.Logger,
        tmp_dir: Path,
        organization: str = "",
        project: str = "",
    ) -> None:
        self.client = client
        self.store = store
        self.keybinds = keybinds
        self.logger = logger
        self.tmp_dir = Path(tmp_dir)
        self.organization = organization
        self.project = project

        self.tabs: list[Tab] = [
            QueriesTab(client, keybinds, logger),
            WorkItemsTab(client, keybinds, logger),
            TemplatesTab(store, keybinds, logger),
            PipelinesTab(keybinds, logger),
            AgentsTab(keybinds, logger),
        ]
        self.active = QUERIES_TAB
        self.width = 0
        self.height = 0
        self.quitting = False

        self.notification = Notification()
        self.prompt = InputPrompt()
        self.confirm = ConfirmationDialog()
        self.selection = SelectionDialog()
        self.help = HelpOverlay()
        self.actions = ActionController()

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------

    def init(self) -> list[Command]:
        """Nothing is fetched until the terminal reports a usable size."""
        return []

    @property
    def active_tab(self) -> Tab:
        return self.tabs[self.active]

    @property
    def work_items(self) -> WorkItemsTab:
        return self.tabs[WORK_ITEMS_TAB]

    @property
    def templates(self) -> TemplatesTab:
        return self.tabs[TEMPLATES_TAB]

    def handle(self, msg: Message) -> tuple[Dashboard, list[Command]]:
        self.logger.debug("handle %s", type(msg).__name__)
        cmds = self._dispatch(msg)
        return self, [c for c in cmds if c is not None]

    # ------------------------------------------------------------------
    # Message routing
    # ------------------------------------------------------------------

    def _dispatch(self, msg: Message) -> list[Command | None]:
        if isinstance(msg, KeyPress):
            return self._handle_key(msg)

        if isinstance(msg, WindowSize):
            self.width, self.height = max(msg.width, 0), max(msg.height, 0)
            return [tab.handle(msg)[1] for tab in self.tabs]

        if isinstance(msg, Notify):
            return [self._notify(msg.text, msg.is_error)]

        if isinstance(msg, ClearNotification):
            self.notification.clear(msg.seq)
            return []

        if isinstance(msg, SwitchTab):
            if 0 <= msg.index < len(self.tabs):
                self.active = msg.index
            return []

        if isinstance(msg, ConfirmRequest):
            self._open(self.confirm)
            self.confirm.show(msg.message, msg.action, msg.context)
            self.actions.advance(ActionStep.AWAITING_CONFIRM)
            return []

        if isinstance(msg, PromptRequest):
            self._open(self.prompt)
            self.prompt.show(msg.prompt, msg.action, default=msg.default, context=msg.context)
            self.actions.advance(ActionStep.AWAITING_INPUT)
            return []

        if isinstance(msg, SelectionRequest):
            self._open(self.selection)
            self.selection.show(msg.title, msg.options, msg.action, msg.context)
            self.actions.advance(ActionStep.AWAITING_INPUT)
            return []

        if isinstance(msg, OpenEditor):
            return [commands.run_editor(msg, self.logger)]

        if isinstance(msg, EditorClosed):
            return self._editor_closed(msg)

        if isinstance(msg, ExecuteQuery):
            self.active = WORK_ITEMS_TAB
            return [self._route(WORK_ITEMS_TAB, msg)]

        if isinstance(msg, CreateFromTemplate):
            return self._create_from_template(msg.path)

        if isinstance(msg, WorkItemCreated):
            return self._work_item_created(msg)

        if isinstance(msg, WorkItemDownloaded):
            self.actions.clear(ActionType.DOWNLOAD_WORK_ITEM)
            if msg.error:
                return [self._notify(f"Download failed: {msg.error}", is_error=True)]
            return [self._notify(f"Downloaded to {msg.path}"), self.templates.reload()]

        if isinstance(msg, WORK_ITEMS_MESSAGES):
            cmds = [self._route(WORK_ITEMS_TAB, msg)] + self._work_item_result(msg)
            # Refetch relations the message invalidated while the detail pane is open
            return cmds + [self.work_items.details_command()]

        if isinstance(msg, TEMPLATES_MESSAGES):
            return [self._route(TEMPLATES_TAB, msg)] + self._template_result(msg)

        if isinstance(msg, QUERIES_MESSAGES):
            return [self._route(QUERIES_TAB, msg)]

        return [self._route(self.active, msg)]

    def _route(self, index: int, msg: Message) -> Command | None:
        tab, cmd = self.tabs[index].handle(msg)
        self.tabs[index] = tab
        return cmd

    def _notify(self, text: str, is_error: bool = False) -> Command:
        if is_error:
            self.logger.warning("%s", text)
        seq = self.notification.show(text, is_error)
        return commands.clear_notification_after(seq)

    def _open(self, overlay: Any) -> None:
        """Close every modal overlay except ``overlay``."""
        for other in (self.prompt, self.confirm, self.selection, self.help):
            if other is not overlay:
                other.hide()

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def _global(self, event: KeyPress, action: str) -> bool:
        # Printable keys belong to the filter while a tab is filtering
        if self.active_tab.is_filtering() and event.printable:
            return False
        return self.keybinds.matches(event, GLOBAL, action)

    def _handle_key(self, event: KeyPress) -> list[Command | None]:
        if self.prompt.visible:
            if event.key == "enter":
                return self._submit_prompt()
            if event.key == "escape":
                self.prompt.hide()
                self.actions.clear()
                return []
            self.prompt.handle_key(event)
            return []

        if self.confirm.visible:
            if event.character in ("y", "Y"):
                return self._confirm_accepted()
            if event.character in ("n", "N") or event.key == "escape":
                self.confirm.hide()
                self.actions.clear()
            return []

        if self.selection.visible:
            if event.key == "enter":
                return self._submit_selection()
            if event.key == "escape":
                self.selection.hide()
                self.actions.clear()
                return []
            self.selection.handle_key(event)
            return []

        if self._global(event, "help"):
            if not self.help.visible:
                self._open(self.help)
            self.help.toggle()
            return []
        if self.help.visible:
            return []

        if self._global(event, "quit"):
            self.logger.debug("quit requested")
            self.quitting = True
            return []

        if self._global(event, "next_tab"):
            self.active = (self.active + 1) % len(self.tabs)
            return []
        if self._global(event, "prev_tab"):
            self.active = (self.active - 1) % len(self.tabs)
            return []

        tab = self.active_tab
        if self.actions.can_start(tab):
            if isinstance(tab, WorkItemsTab):
                cmds = self._work_items_shortcut(tab, event)
                if cmds is not None:
                    return cmds
            elif isinstance(tab, TemplatesTab):
                cmds = self._templates_shortcut(tab, event)
                if cmds is not None:
                    return cmds

        return [self._route(self.active, event)]

    def _work_items_shortcut(self, tab: WorkItemsTab, event: KeyPress) -> list[Command | None] | None:
        def bound(action: str) -> bool:
            return self.keybinds.matches(event, WORK_ITEMS, action)

        if bound("create"):
            self.active = TEMPLATES_TAB
            return [self._notify("Select a template and press Enter")]

        actions = ("download", "edit", "delete", "change_state", "assign", "add_tags")
        action = next((a for a in actions if bound(a)), None)
        if action is None:
            return None

        item = tab.selected_item()
        if item is None or tab.loading or tab.error:
            return []
        item_id = tab.selected_id()

        if action == "download":
            self.actions.start(ActionType.DOWNLOAD_WORK_ITEM, WORK_ITEMS_TAB, context={"id": item_id})
            return [commands.download_work_item(self.client, self.store, item_id, self.logger)]

        if action == "edit":
            self.actions.start(ActionType.EDIT_WORK_ITEM, WORK_ITEMS_TAB, context={"id": item_id})
            return [commands.prepare_edit_work_item(self.client, item_id, self.tmp_dir, self.logger)]

        if action == "delete":
            self.actions.start(ActionType.DELETE_WORK_ITEM, WORK_ITEMS_TAB, context={"id": item_id})
            return [commands.prepare_delete(self.client, item_id, self.logger)]

        if action == "change_state":
            work_item_type = get_string_field(item, "System.WorkItemType")
            self.actions.start(ActionType.CHANGE_STATE, WORK_ITEMS_TAB, context={"id": item_id})
            return [commands.load_states(self.client, item_id, work_item_type, self.logger)]

        if action == "assign":
            self.actions.start(ActionType.ASSIGN, WORK_ITEMS_TAB, ActionStep.AWAITING_INPUT, {"id": item_id})
            return self._dispatch(PromptRequest(
                prompt="Assign to:",
                action=ActionType.ASSIGN.value,
                context={"id": item_id},
            ))

        self.actions.start(ActionType.ADD_TAGS, WORK_ITEMS_TAB, ActionStep.AWAITING_INPUT, {"id": item_id})
        return self._dispatch(PromptRequest(
            prompt="Add tags (comma separated):",
            action=ActionType.ADD_TAGS.value,
            context={"id": item_id},
        ))

    def _templates_shortcut(self, tab: TemplatesTab, event: KeyPress) -> list[Command | None] | None:
        def bound(action: str) -> bool:
            return self.keybinds.matches(event, TEMPLATES, action)

        actions = ("copy", "new_template", "new_folder", "edit", "rename", "delete")
        action = next((a for a in actions if bound(a)), None)
        if action is None or tab.loading or tab.error:
            return None

        node = tab.selected_node()

        if action == "new_template":
            self.actions.start(ActionType.NEW_TEMPLATE, TEMPLATES_TAB, ActionStep.AWAITING_INPUT)
            return self._dispatch(PromptRequest(
                prompt="New template name:",
                action=ActionType.NEW_TEMPLATE.value,
                context={"parent": tab.target_folder()},
            ))
        if action == "new_folder":
            self.actions.start(ActionType.NEW_FOLDER, TEMPLATES_TAB, ActionStep.AWAITING_INPUT)
            return self._dispatch(PromptRequest(
                prompt="New folder name:",
                action=ActionType.NEW_FOLDER.value,
                context={"parent": tab.target_folder()},
            ))

        if node is None:
            return []

        if action == "copy":
            if node.is_folder:
                return [self._notify("Cannot copy a folder", is_error=True)]
            self.actions.start(ActionType.COPY_TEMPLATE, TEMPLATES_TAB, ActionStep.AWAITING_INPUT)
            return self._dispatch(PromptRequest(
                prompt="Copy as:",
                action=ActionType.COPY_TEMPLATE.value,
                default=f"{Path(node.name).stem}-copy",
                context={"path": node.path},
            ))

        if action == "rename":
            self.actions.start(ActionType.RENAME_TEMPLATE, TEMPLATES_TAB, ActionStep.AWAITING_INPUT)
            default = node.name if node.is_folder else Path(node.name).stem
            return self._dispatch(PromptRequest(
                prompt="Enter new name:",
                action=ActionType.RENAME_TEMPLATE.value,
                default=default,
                context={"path": node.path},
            ))

        if action == "edit":
            if node.is_folder:
                return [self._notify("Cannot edit a folder", is_error=True)]
            self.actions.start(ActionType.EDIT_TEMPLATE, TEMPLATES_TAB, context={"path": node.path})
            path = str(Path(self.store.root) / node.path)
            return [commands.emit(OpenEditor(path=path, purpose="template", context={"path": node.path}))]

        kind = "folder" if node.is_folder else "template"
        self.actions.start(ActionType.DELETE_TEMPLATE, TEMPLATES_TAB, ActionStep.AWAITING_CONFIRM)
        return self._dispatch(ConfirmRequest(
            message=f"Delete {kind} '{node.name}'?",
            action=ActionType.DELETE_TEMPLATE.value,
            context={"path": node.path},
        ))

    # ------------------------------------------------------------------
    # Overlay commits
    # ------------------------------------------------------------------

    def _submit_prompt(self) -> list[Command | None]:
        value = self.prompt.value
        action = self.prompt.action
        context = self.prompt.context
        self.prompt.hide()
        if not value:
            self.actions.clear()
            return []
        self.actions.advance(ActionStep.EXECUTING)

        if action == ActionType.ASSIGN.value:
            return [commands.update_fields(self.client, context["id"], {"System.AssignedTo": value}, self.logger)]
        if action == ActionType.ADD_TAGS.value:
            return [commands.add_tags(self.client, context["id"], value, self.logger)]
        if action == ActionType.COPY_TEMPLATE.value:
            return [commands.copy_template(self.store, context["path"], value, self.logger)]
        if action == ActionType.RENAME_TEMPLATE.value:
            return [commands.rename_template(self.store, context["path"], value, self.logger)]
        if action == ActionType.NEW_TEMPLATE.value:
            return [commands.new_template(self.store, context["parent"], value, self.logger)]
        if action == ActionType.NEW_FOLDER.value:
            return [commands.new_folder(self.store, context["parent"], value, self.logger)]

        self.logger.warning("Prompt submitted for unknown action %r", action)
        self.actions.clear()
        return []

    def _confirm_accepted(self) -> list[Command | None]:
        action = self.confirm.action
        context = self.confirm.context
        self.confirm.hide()
        self.actions.advance(ActionStep.EXECUTING)

        if action == ActionType.DELETE_WORK_ITEM.value:
            return [commands.delete_work_item_tree(
                self.client, context["id"], context.get("children", []), self.logger
            )]
        if action == ActionType.DELETE_TEMPLATE.value:
            return [commands.delete_template(self.store, context["path"], self.logger)]

        self.logger.warning("Confirmation accepted for unknown action %r", action)
        self.actions.clear()
        return []

    def _submit_selection(self) -> list[Command | None]:
        choice = self.selection.selected
        action = self.selection.action
        context = self.selection.context
        self.selection.hide()
        if choice is None or action != ActionType.CHANGE_STATE.value:
            self.actions.clear()
            return []
        self.actions.advance(ActionStep.EXECUTING)
        return [commands.update_fields(self.client, context["id"], {"System.State": choice}, self.logger)]

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def _editor_closed(self, msg: EditorClosed) -> list[Command | None]:
        if msg.purpose == "work_item":
            if msg.error:
                self.actions.clear(ActionType.EDIT_WORK_ITEM)
                return [self._notify(f"Edit cancelled: {msg.error}", is_error=True)]
            return [commands.apply_edit(
                self.client, msg.context["id"], msg.path, msg.context.get("fields", {}), self.logger
            )]

        self.actions.clear(ActionType.EDIT_TEMPLATE)
        cmds: list[Command | None] = [self.templates.reload()]
        if msg.error:
            cmds.append(self._notify(f"Editor failed: {msg.error}", is_error=True))
        return cmds

    def _create_from_template(self, path: str) -> list[Command | None]:
        if not self.actions.can_start():
            return [self._notify("Another action is still in progress", is_error=True)]
        self.actions.start(ActionType.CREATE_WORK_ITEM, TEMPLATES_TAB, context={"path": path})
        return [commands.create_from_template(self.client, self.store, path, self.logger)]

    def _work_item_created(self, msg: WorkItemCreated) -> list[Command | None]:
        self.actions.clear(ActionType.CREATE_WORK_ITEM)
        if msg.error:
            return [self._notify(f"Create failed: {msg.error}", is_error=True)]
        self.active = WORK_ITEMS_TAB
        text = f"Created work item #{msg.item_id}"
        if msg.children_created:
            text += f" with {msg.children_created} child item(s)"
        if msg.children_failed:
            text += f" ({msg.children_failed} child item(s) failed)"
        return [self._route(WORK_ITEMS_TAB, msg), self._notify(text, is_error=bool(msg.children_failed))]

    def _work_item_result(self, msg: Message) -> list[Command | None]:
        if isinstance(msg, WorkItemDeleted):
            self.actions.clear(ActionType.DELETE_WORK_ITEM)
            if msg.error:
                return [self._notify(f"Delete failed: {msg.error}", is_error=True)]
            text = f"Deleted work item {msg.item_id}"
            if msg.children_deleted:
                text += f" and {msg.children_deleted} child item(s)"
            return [self._notify(text)]

        if isinstance(msg, WorkItemUpdated):
            pending = self.actions.current()
            if pending is not None and pending.origin_tab == WORK_ITEMS_TAB:
                self.actions.clear()
            if msg.error:
                return [self._notify(f"Update failed: {msg.error}", is_error=True)]
            if not msg.changed:
                return [self._notify("No changes to apply")]
            return [self._notify(f"Work item #{msg.item_id} updated successfully")]

        return []

    def _template_result(self, msg: Message) -> list[Command | None]:
        if not isinstance(msg, TemplateMutated):
            return []
        self.actions.clear(_TEMPLATE_ACTIONS.get(msg.operation))
        done, verb = _TEMPLATE_OPERATIONS.get(msg.operation, ("Updated", msg.operation))
        if msg.error:
            return [self._notify(f"{verb} failed: {msg.error}", is_error=True)]
        return [self._notify(f"{done} {msg.path}")]

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    @property
    def content_height(self) -> int:
        return max(0, self.height - CHROME_HEIGHT)

    def help_entries(self) -> list[tuple[str, str]]:
        return [(self.keybinds.label(GLOBAL, action), desc) for action, desc in GLOBAL_HELP]

    def render(self) -> str:
        width = self.width
        header = [
            styles.styled(styles.fit(f" {APP_TITLE}", width), styles.TITLE_BAR),
            styles.styled(styles.truncate(self._location(), width), styles.MUTED),
            "",
        ]
        lines = header + [self._render_tab_bar()] + self._render_body() + [self._render_footer()]
        return "\n".join(lines)

    def _location(self) -> str:
        if self.organization and self.project:
            return f" {self.organization} / {self.project}"
        return f" {self.organization or self.project}"

    def _render_tab_bar(self) -> str:
        parts = []
        for i, tab in enumerate(self.tabs):
            style = styles.TAB_ACTIVE if i == self.active else styles.TAB_INACTIVE
            parts.append(styles.styled(f" {i + 1}:{tab.name} ", style))
        hint = styles.styled("  tab/shift+tab: switch", styles.MUTED)
        return "".join(parts) + hint

    def _overlay_lines(self) -> list[str]:
        box_width = max(self.width - 4, 8)
        if self.prompt.visible:
            return self.prompt.render(box_width)
        if self.confirm.visible:
            return self.confirm.render(box_width)
        if self.selection.visible:
            return self.selection.render(box_width, self.content_height)
        if self.help.visible:
            tab = self.active_tab
            return self.help.render(
                tab.name,
                self.help_entries(),
                tab.help_entries(),
                box_width,
                self.keybinds.label(GLOBAL, "help"),
            )
        return []

    def _render_body(self) -> list[str]:
        height = self.content_height
        overlay = self._overlay_lines()
        if overlay:
            top = max(0, (height - len(overlay)) // 2)
            indent = " " * max(0, (self.width - styles.cell_len(overlay[0])) // 2)
            body = [""] * top + [indent + line for line in overlay]
        else:
            rendered = self.active_tab.render()
            body = rendered.split("\n") if rendered else []
        body = styles.clamp_lines(body, height)
        return body + [""] * (height - len(body))

    def _render_footer(self) -> str:
        if self.notification.visible:
            return self.notification.render(self.width)
        hint = self.active_tab.footer_hint()
        base = (
            f"{self.keybinds.label(GLOBAL, 'quit')}: quit • "
            f"{self.keybinds.label(GLOBAL, 'refresh')}: refresh • "
            f"{self.keybinds.label(GLOBAL, 'help')}: help"
        )
        text = f"{hint}  │  {base}" if hint else base
        return f"[{styles.MUTED}]{escape(styles.truncate(text, self.width))}[/]"
