"""Base class for all dashboard tabs, plus the list and tree helpers they share."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable

from .. import styles
from ..commands import Command
from ..keybinds import GLOBAL, KeybindTable
from ..messages import KeyPress, Message, WindowSize

HEADER_HEIGHT = 3
TAB_BAR_HEIGHT = 1
FOOTER_HEIGHT = 1
CHROME_HEIGHT = HEADER_HEIGHT + TAB_BAR_HEIGHT + FOOTER_HEIGHT


class Tab:
    """One independently stateful view in the dashboard.

    Subclasses override handle_key()/handle_message() and render(). A tab
    that loads data implements fetch(); it is started the first time the
    tab sees a non-zero window size and again on every refresh.
    """

    name = "Tab"
    scope: str | None = None
    # (action, description) pairs shown by the help overlay
    HELP: list[tuple[str, str]] = []
    loads_data = False

    def __init__(self, keybinds: KeybindTable, logger: logging.Logger | None = None) -> None:
        self.keybinds = keybinds
        self.logger = logger or logging.getLogger("azboards.dashboard")
        self.width = 0
        self.height = 0
        self.initialized = False
        self.loading = False
        self.error: str | None = None
        self.generation = 0

    # -- lifecycle ---------------------------------------------------------

    def init(self, width: int, height: int) -> Command | None:
        """Called once, when the terminal first reports a usable size."""
        self.resize(width, height)
        return self.reload()

    def resize(self, width: int, height: int) -> None:
        self.width = max(width, 0)
        self.height = max(height, 0)

    @property
    def content_height(self) -> int:
        return max(0, self.height - CHROME_HEIGHT)

    def fetch(self) -> Command | None:
        return None

    def reload(self) -> Command | None:
        """Start a fresh load; results from earlier loads become stale."""
        if not self.loads_data:
            return None
        self.generation += 1
        self.loading = True
        self.error = None
        return self.fetch()

    def is_stale(self, generation: int) -> bool:
        if generation != self.generation:
            self.logger.debug(
                "%s: dropping stale result (generation %d, current %d)",
                self.name, generation, self.generation,
            )
            return True
        return False

    # -- events ------------------------------------------------------------

    def handle(self, msg: Message) -> tuple[Tab, Command | None]:
        if isinstance(msg, WindowSize):
            self.resize(msg.width, msg.height)
            if not self.initialized and msg.width > 0 and msg.height > 0:
                self.initialized = True
                return self, self.init(msg.width, msg.height)
            return self, None
        if isinstance(msg, KeyPress):
            if not self.is_filtering() and self.keybinds.matches(msg, GLOBAL, "refresh"):
                return self, self.refresh()
            return self, self.handle_key(msg)
        return self, self.handle_message(msg)

    def refresh(self) -> Command | None:
        return self.reload()

    def handle_key(self, event: KeyPress) -> Command | None:
        return None

    def handle_message(self, msg: Message) -> Command | None:
        return None

    def is_filtering(self) -> bool:
        return False

    # -- rendering ---------------------------------------------------------

    def render(self) -> str:
        return ""

    def footer_hint(self) -> str:
        return ""

    def help_entries(self) -> list[tuple[str, str]]:
        """(keys, description) pairs for the help overlay."""
        entries = []
        for action, description in self.HELP:
            keys = self.keybinds.label(self.scope, action) if self.scope else ""
            entries.append((keys or action, description))
        return entries

    def render_error(self) -> str:
        lines = [
            "",
            styles.styled(f"Error: {self.error}", f"bold {styles.ERROR}"),
            "",
            styles.styled("Press 'r' to retry, 'q' to quit", styles.MUTED),
        ]
        return "\n".join(styles.clamp_lines(lines, self.content_height))

    def render_loading(self, what: str) -> str:
        return "\n".join(styles.clamp_lines(["", styles.styled(f"Loading {what}...", styles.MUTED)], self.content_height))


# ---------------------------------------------------------------------------
# Scrollable list
# ---------------------------------------------------------------------------


class ListState:
    """Cursor and scroll offset over a list of rows."""

    def __init__(self) -> None:
        self.items: list[Any] = []
        self.cursor = 0
        self.offset = 0
        self.height = 0

    def __len__(self) -> int:
        return len(self.items)

    def set_items(self, items: Iterable[Any], key: Any = None) -> None:
        """Replace all rows, keeping the cursor on the row with the same key."""
        previous = key(self.selected) if key and self.selected is not None else None
        self.items = list(items)
        if previous is not None:
            for i, item in enumerate(self.items):
                if key(item) == previous:
                    self.cursor = i
                    break
        self.cursor = min(self.cursor, max(len(self.items) - 1, 0))
        self._scroll()

    @property
    def selected(self) -> Any:
        if not self.items:
            return None
        return self.items[self.cursor]

    def resize(self, height: int) -> None:
        self.height = max(height, 0)
        self._scroll()

    def move(self, delta: int) -> None:
        if not self.items:
            return
        self.cursor = max(0, min(len(self.items) - 1, self.cursor + delta))
        self._scroll()

    def handle_key(self, event: KeyPress) -> bool:
        """Apply a navigation key. Returns True if the key was consumed."""
        key = event.key
        if key in ("up", "k"):
            self.move(-1)
        elif key in ("down", "j"):
            self.move(1)
        elif key == "pageup":
            self.move(-max(self.height, 1))
        elif key == "pagedown":
            self.move(max(self.height, 1))
        elif key in ("home", "g"):
            self.move(-len(self.items))
        elif key in ("end", "G") or event.character == "G":
            self.move(len(self.items))
        else:
            return False
        return True

    def _scroll(self) -> None:
        if self.height <= 0:
            self.offset = 0
            return
        if self.cursor < self.offset:
            self.offset = self.cursor
        elif self.cursor >= self.offset + self.height:
            self.offset = self.cursor - self.height + 1
        self.offset = max(0, min(self.offset, max(len(self.items) - self.height, 0)))

    def visible(self) -> list[tuple[int, Any]]:
        end = self.offset + self.height
        return list(enumerate(self.items[self.offset:end], self.offset))


# ---------------------------------------------------------------------------
# Folder trees
# ---------------------------------------------------------------------------


@dataclass
class FlatRow:
    node: Any
    depth: int


def flatten(nodes: Iterable[Any], expanded: set[str], depth: int = 0) -> list[FlatRow]:
    """Project a tree to rows, descending only into expanded folders.

    Nodes need ``path``, ``is_folder`` and ``children`` attributes.
    """
    rows: list[FlatRow] = []
    for node in nodes:
        rows.append(FlatRow(node, depth))
        if node.is_folder and node.path in expanded:
            rows.extend(flatten(node.children, expanded, depth + 1))
    return rows


def toggle(expanded: set[str], path: str) -> None:
    if path in expanded:
        expanded.discard(path)
    else:
        expanded.add(path)


def folder_paths(nodes: Iterable[Any]) -> set[str]:
    paths: set[str] = set()
    for node in nodes:
        if node.is_folder:
            paths.add(node.path)
            paths |= folder_paths(node.children)
    return paths


def tree_row(row: FlatRow, expanded: set[str], width: int, selected: bool) -> str:
    """Render one tree row with an expand marker for folders."""
    indent = "  " * row.depth
    if row.node.is_folder:
        marker = "▼ " if row.node.path in expanded else "▶ "
        text = styles.fit(f"{indent}{marker}{row.node.name}", width)
        style = styles.FOLDER
    else:
        text = styles.fit(f"{indent}  {row.node.name}", width)
        style = ""
    if selected:
        style = f"{style} {styles.SELECTED_ROW}".strip()
    return styles.styled(text, style)
