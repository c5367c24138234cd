"""Work Items tab: the current query's results with an optional detail pane.

Loads the default "my active stories" WIQL on startup, or a saved query
when one is run from the Queries tab. Full work items (with relations) and
their formatted relationship text are cached per id and dropped on refresh.

The destructive shortcuts (download/edit/delete/state/assign/tags) open
overlays or spawn the editor, so the dashboard handles those; this tab only
exposes the selection they act on.
"""

from __future__ import annotations

from typing import Any

from ... import workitems
from .. import commands, styles
from ..commands import Command
from ..keybinds import WORK_ITEMS
from ..messages import (
    ExecuteQuery,
    KeyPress,
    Message,
    Notify,
    WorkItemCreated,
    WorkItemDeleted,
    WorkItemDetailsLoaded,
    WorkItemsLoaded,
    WorkItemUpdated,
)
from .base import ListState, Tab

ID_WIDTH = 8
TITLE_WIDTH = 40
STATE_WIDTH = 12
ASSIGNEE_WIDTH = 20

# Rows taken by the detail pane's separator and title
DETAIL_CHROME = 2

DEFAULT_SOURCE = "My active stories"


def format_row(item: dict[str, Any]) -> str:
    item_id = workitems.get_id(item)
    title = styles.fit(workitems.get_string_field(item, "System.Title"), TITLE_WIDTH)
    state = workitems.get_string_field(item, "System.State")
    assignee = workitems.clean_assigned_to(workitems.get_string_field(item, "System.AssignedTo"))
    return (
        f"{item_id:<{ID_WIDTH}d} {title} "
        f"{styles.fit(state, STATE_WIDTH)} {styles.fit(assignee, ASSIGNEE_WIDTH)}"
    )


class WorkItemsTab(Tab):
    name = "Work Items"
    scope = WORK_ITEMS
    loads_data = True
    HELP = [
        ("details", "Toggle details pane"),
        ("download", "Download as template"),
        ("edit", "Edit in $EDITOR"),
        ("delete", "Delete (with children)"),
        ("create", "Create from template"),
        ("change_state", "Change state"),
        ("assign", "Assign to someone"),
        ("add_tags", "Add tags"),
    ]

    def __init__(self, client: Any, keybinds, logger=None) -> None:
        super().__init__(keybinds, logger)
        self.client = client
        self.items: list[dict[str, Any]] = []
        self.list = ListState()
        self.query_id: str | None = None
        self.source = DEFAULT_SOURCE
        self.cache: dict[int, dict[str, Any]] = {}
        self.relations: dict[int, str] = {}
        self.show_details = False
        self.details_pending: set[int] = set()
        self.detail_offset = 0
        self.filtering = False
        self.filter_text = ""
        # Whether the next completed load posts a "Loaded N" notification
        self.announce = True

    # -- layout ------------------------------------------------------------

    @property
    def list_height(self) -> int:
        if self.show_details:
            return self.content_height // 2
        return self.content_height

    @property
    def detail_height(self) -> int:
        if not self.show_details:
            return 0
        return max(0, self.content_height - self.list_height - DETAIL_CHROME)

    def resize(self, width: int, height: int) -> None:
        super().resize(width, height)
        self._layout()

    def _layout(self) -> None:
        # One row of the list pane is the column header
        self.list.resize(max(0, self.list_height - 1))

    # -- data --------------------------------------------------------------

    def fetch(self) -> Command:
        return commands.fetch_work_items(
            self.client, self.generation, self.query_id, self.source, self.logger
        )

    def reload(self, announce: bool = True) -> Command | None:
        self.announce = announce
        return super().reload()

    def refresh(self) -> Command | None:
        self.cache.clear()
        self.relations.clear()
        self.details_pending.clear()
        return self.reload()

    def rebuild(self) -> None:
        needle = self.filter_text.lower()
        if needle:
            rows = [
                item for item in self.items
                if needle in str(workitems.get_id(item))
                or needle in workitems.get_string_field(item, "System.Title").lower()
            ]
        else:
            rows = list(self.items)
        self.list.set_items(rows, key=workitems.get_id)
        self.detail_offset = 0

    def selected_item(self) -> dict[str, Any] | None:
        return self.list.selected

    def selected_id(self) -> int:
        item = self.selected_item()
        return workitems.get_id(item) if item else 0

    def is_filtering(self) -> bool:
        return self.filtering

    def details_command(self) -> Command | None:
        """Fetch the selected item's relations if the detail pane needs them."""
        item_id = self.selected_id()
        if not self.show_details or not item_id:
            return None
        if item_id in self.relations or item_id in self.details_pending:
            return None
        self.details_pending.add(item_id)
        return commands.fetch_details(self.client, item_id, self.cache, self.generation, self.logger)

    @property
    def showing_loading(self) -> bool:
        """A silent reload keeps the previous rows on screen."""
        return self.loading and (self.announce or not self.items)

    # -- events ------------------------------------------------------------

    def handle_message(self, msg: Message) -> Command | None:
        if isinstance(msg, ExecuteQuery):
            self.query_id = msg.query_id
            self.source = msg.name or msg.query_id
            return self.refresh()

        if isinstance(msg, WorkItemsLoaded):
            if self.is_stale(msg.generation):
                return None
            self.loading = False
            if msg.error:
                self.error = msg.error
                return commands.emit(Notify(f"Query failed: {msg.error}", is_error=True))
            self.error = None
            self.items = list(msg.items)
            self.rebuild()
            if self.announce:
                return commands.emit(Notify(f"Loaded {len(self.items)} work items"))
            return None

        if isinstance(msg, WorkItemDetailsLoaded):
            self.details_pending.discard(msg.item_id)
            if self.is_stale(msg.generation):
                return None
            if msg.error:
                self.relations[msg.item_id] = f"(could not load details: {msg.error})"
                return None
            self.cache.update(msg.related)
            if msg.item is not None:
                self.cache[msg.item_id] = msg.item
            self.relations[msg.item_id] = msg.relations_text
            return None

        if isinstance(msg, WorkItemDeleted):
            if msg.error is None:
                self.items = [i for i in self.items if workitems.get_id(i) != msg.item_id]
                self.cache.pop(msg.item_id, None)
                self.relations.pop(msg.item_id, None)
                self.rebuild()
            return None

        if isinstance(msg, WorkItemUpdated):
            if msg.error is None and msg.changed:
                self.cache.pop(msg.item_id, None)
                self.relations.pop(msg.item_id, None)
                return self.reload(announce=False)
            return None

        if isinstance(msg, WorkItemCreated):
            if msg.error is None:
                return self.reload(announce=False)
            return None

        return None

    def handle_key(self, event: KeyPress) -> Command | None:
        if self.filtering:
            return self._handle_filter_key(event)
        if self.showing_loading or self.error:
            return None

        before = self.selected_id()
        if self.list.handle_key(event):
            if self.selected_id() != before:
                self.detail_offset = 0
                return self.details_command()
            return None

        if event.character == "/":
            self.filtering = True
            return None
        if event.key == "escape" and self.filter_text:
            self.filter_text = ""
            self.rebuild()
            return None
        if event.key == "ctrl+d":
            self.detail_offset += max(self.detail_height // 2, 1)
            return None
        if event.key == "ctrl+u":
            self.detail_offset = max(0, self.detail_offset - max(self.detail_height // 2, 1))
            return None
        if self.keybinds.matches(event, WORK_ITEMS, "details"):
            self.show_details = not self.show_details
            self._layout()
            return self.details_command()
        return None

    def _handle_filter_key(self, event: KeyPress) -> Command | None:
        if event.key in ("escape", "enter"):
            self.filtering = False
            if event.key == "escape":
                self.filter_text = ""
                self.rebuild()
            return None
        if event.key == "backspace":
            self.filter_text = self.filter_text[:-1]
        elif event.printable:
            self.filter_text += event.printable
        else:
            return None
        self.rebuild()
        return None

    # -- rendering ---------------------------------------------------------

    def render(self) -> str:
        if self.error:
            return self.render_error()
        if self.showing_loading:
            return self.render_loading(f"work items ({self.source})")
        if self.content_height == 0:
            return ""

        header = (
            f"{'ID':<{ID_WIDTH}} {'Title':<{TITLE_WIDTH}} "
            f"{'State':<{STATE_WIDTH}} {'Assigned To':<{ASSIGNEE_WIDTH}}"
        )
        lines = [styles.styled(styles.truncate(header, self.width), f"bold {styles.MUTED}")]
        if not self.list.items:
            lines.append(styles.styled("No work items found.", styles.MUTED))
        for i, item in self.list.visible():
            lines.append(self._render_row(item, i == self.list.cursor))
        lines = lines[: self.list_height]
        lines += [""] * (self.list_height - len(lines))

        if self.show_details:
            lines += self._render_details()
        return "\n".join(styles.clamp_lines(lines, self.content_height))

    def _render_row(self, item: dict[str, Any], selected: bool) -> str:
        text = styles.truncate(format_row(item), self.width)
        if selected:
            return styles.styled(styles.fit(text, self.width), styles.SELECTED_ROW)
        state = workitems.get_string_field(item, "System.State")
        style = styles.state_style(state)
        if not style:
            return styles.styled(text, "")
        # Colour only the state column
        start = ID_WIDTH + 1 + TITLE_WIDTH + 1
        return (
            styles.styled(text[:start], "")
            + styles.styled(text[start:start + STATE_WIDTH], style)
            + styles.styled(text[start + STATE_WIDTH:], "")
        )

    def _render_details(self) -> list[str]:
        if self.content_height - self.list_height < DETAIL_CHROME:
            return []
        item = self.selected_item()
        out = [styles.styled("─" * self.width, styles.MUTED)]
        if item is None:
            return out + [""]
        item_id = workitems.get_id(item)
        item = self.cache.get(item_id, item)
        out.append(styles.styled(
            styles.truncate(f"#{item_id} - {workitems.get_string_field(item, 'System.Title')}", self.width),
            "bold",
        ))
        body = self.detail_lines(item)
        self.detail_offset = min(self.detail_offset, max(len(body) - self.detail_height, 0))
        visible = body[self.detail_offset:self.detail_offset + self.detail_height]
        return out + [styles.styled(styles.truncate(line, self.width), "") for line in visible]

    def detail_lines(self, item: dict[str, Any]) -> list[str]:
        """Plain-text body of the detail pane."""
        item_id = workitems.get_id(item)

        def field(name: str) -> str:
            return workitems.get_string_field(item, name)

        lines = [
            f"Type: {field('System.WorkItemType')} | State: {field('System.State')}"
            f" | Priority: {field('Microsoft.VSTS.Common.Priority')}",
        ]
        assigned = workitems.clean_assigned_to(field("System.AssignedTo"))
        if assigned:
            lines.append(f"Assigned To: {assigned}")
        if field("System.AreaPath"):
            lines.append(f"Area: {field('System.AreaPath')}")
        if field("System.IterationPath"):
            lines.append(f"Iteration: {field('System.IterationPath')}")
        if field("System.Tags"):
            lines.append(f"Tags: {field('System.Tags')}")

        description = workitems.strip_html(field("System.Description"))
        if description:
            lines += ["", "Description:"] + description.splitlines()
        criteria = workitems.strip_html(field("Microsoft.VSTS.Common.AcceptanceCriteria"))
        if criteria:
            lines += ["", "Acceptance Criteria:"] + criteria.splitlines()

        if item_id in self.relations:
            if self.relations[item_id]:
                lines += [""] + self.relations[item_id].splitlines()
        elif item_id in self.details_pending:
            lines += ["", "Loading relations..."]

        created, changed = field("System.CreatedDate"), field("System.ChangedDate")
        if created or changed:
            lines += ["", f"Created: {created} | Updated: {changed}"]
        return lines

    def footer_hint(self) -> str:
        if self.filtering or self.filter_text:
            return f"/{self.filter_text}" + ("█" if self.filtering else "") + "  (esc: clear filter)"
        count = len(self.list.items)
        return f"{self.source} • {count} item{'s' if count != 1 else ''} • /: filter"
