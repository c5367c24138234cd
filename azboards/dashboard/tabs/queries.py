"""Queries tab: the project's saved query folders as an expandable tree.

Enter on a folder expands or collapses it; Enter on a query runs it and
the dashboard switches to the Work Items tab to show the results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .. import commands, styles
from ..commands import Command
from ..keybinds import QUERIES
from ..messages import ExecuteQuery, KeyPress, Message, QueriesLoaded
from .base import ListState, Tab, flatten, folder_paths, toggle, tree_row


@dataclass
class QueryNode:
    id: str
    name: str
    path: str
    is_folder: bool
    children: list["QueryNode"] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "QueryNode":
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            path=str(data.get("path") or data.get("name") or ""),
            is_folder=bool(data.get("isFolder")),
            children=[cls.from_api(c) for c in data.get("children") or []],
        )


class QueriesTab(Tab):
    name = "Queries"
    scope = QUERIES
    loads_data = True
    HELP = [
        ("execute", "Run query / expand folder"),
        ("expand_all", "Expand all folders"),
        ("collapse_all", "Collapse all folders"),
    ]

    def __init__(self, client: Any, keybinds, logger=None) -> None:
        super().__init__(keybinds, logger)
        self.client = client
        self.tree: list[QueryNode] = []
        self.expanded: set[str] = set()
        self.list = ListState()

    def fetch(self) -> Command:
        return commands.fetch_queries(self.client, self.generation, self.logger)

    def resize(self, width: int, height: int) -> None:
        super().resize(width, height)
        self.list.resize(self.content_height)

    def rebuild(self) -> None:
        self.list.set_items(flatten(self.tree, self.expanded), key=lambda row: row.node.path)

    def handle_message(self, msg: Message) -> Command | None:
        if isinstance(msg, QueriesLoaded):
            if self.is_stale(msg.generation):
                return None
            self.loading = False
            if msg.error:
                self.error = msg.error
                return None
            self.error = None
            self.tree = [QueryNode.from_api(q) for q in msg.queries]
            self.rebuild()
        return None

    def handle_key(self, event: KeyPress) -> Command | None:
        if self.loading or self.error:
            return None
        if self.list.handle_key(event):
            return None
        if self.keybinds.matches(event, QUERIES, "expand_all"):
            self.expanded = folder_paths(self.tree)
            self.rebuild()
        elif self.keybinds.matches(event, QUERIES, "collapse_all"):
            self.expanded = set()
            self.rebuild()
        elif self.keybinds.matches(event, QUERIES, "execute"):
            return self._activate()
        return None

    def _activate(self) -> Command | None:
        row = self.list.selected
        if row is None:
            return None
        node = row.node
        if node.is_folder:
            toggle(self.expanded, node.path)
            self.rebuild()
            return None
        self.logger.info("Executing query %s (%s)", node.path, node.id)
        return commands.emit(ExecuteQuery(query_id=node.id, name=node.name))

    def render(self) -> str:
        if self.error:
            return self.render_error()
        if self.loading:
            return self.render_loading("queries")
        if not self.list.items:
            return styles.styled("No saved queries in this project.", styles.MUTED)
        lines = [
            tree_row(row, self.expanded, self.width, i == self.list.cursor)
            for i, row in self.list.visible()
        ]
        return "\n".join(lines)

    def footer_hint(self) -> str:
        row = self.list.selected
        if row is not None and not row.node.is_folder:
            return row.node.path
        return "enter: open • E/C: expand/collapse all"
