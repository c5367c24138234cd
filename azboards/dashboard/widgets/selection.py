"""Pick-one-of-N overlay, used for choosing a work item state."""

from __future__ import annotations

from typing import Any

from .. import styles
from ..messages import KeyPress


class SelectionDialog:
    def __init__(self) -> None:
        self.visible = False
        self.title = ""
        self.options: list[str] = []
        self.cursor = 0
        self.action = ""
        self.context: dict[str, Any] = {}

    def show(
        self,
        title: str,
        options: list[str],
        action: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.visible = True
        self.title = title
        self.options = list(options)
        self.cursor = 0
        self.action = action
        self.context = dict(context or {})

    def hide(self) -> None:
        self.visible = False

    @property
    def selected(self) -> str | None:
        if not self.options:
            return None
        return self.options[self.cursor]

    def handle_key(self, event: KeyPress) -> None:
        if not self.options:
            return
        if event.key in ("up", "k"):
            self.cursor = (self.cursor - 1) % len(self.options)
        elif event.key in ("down", "j"):
            self.cursor = (self.cursor + 1) % len(self.options)
        elif event.key == "home":
            self.cursor = 0
        elif event.key == "end":
            self.cursor = len(self.options) - 1

    def render(self, width: int, height: int) -> list[str]:
        if not self.visible:
            return []
        lines = [styles.styled(self.title, f"bold {styles.ACCENT}"), ""]
        # Title, blank, blank, help and two border rows
        room = max(height - 6, 1)
        start = max(0, min(self.cursor - room + 1, len(self.options) - room))
        for i, option in enumerate(self.options[start : start + room], start):
            if i == self.cursor:
                lines.append(styles.styled(f"> {option}", styles.SELECTED_ROW))
            else:
                lines.append(styles.styled(f"  {option}", ""))
        lines += ["", styles.styled("(↑/↓ to move, Enter to select, Esc to cancel)", styles.MUTED)]
        return styles.box(lines, min(max(width, 8), 64))
