"""Single-line text prompt overlay."""

from __future__ import annotations

from typing import Any

from rich.markup import escape

from .. import styles
from ..messages import KeyPress

CHAR_LIMIT = 100


class InputPrompt:
    """Collects a line of text for the action tagged on it.

    The coordinator handles Enter and Esc; every other key is passed to
    handle_key() and edits the field.
    """

    def __init__(self) -> None:
        self.visible = False
        self.title = ""
        self.placeholder = ""
        self.action = ""
        self.context: dict[str, Any] = {}
        self.text = ""
        self.cursor = 0

    def show(
        self,
        title: str,
        action: str,
        default: str = "",
        placeholder: str = "",
        context: dict[str, Any] | None = None,
    ) -> None:
        self.visible = True
        self.title = title
        self.action = action
        self.placeholder = placeholder
        self.context = dict(context or {})
        self.text = default[:CHAR_LIMIT]
        self.cursor = len(self.text)

    def hide(self) -> None:
        self.visible = False

    @property
    def value(self) -> str:
        return self.text.strip()

    def handle_key(self, event: KeyPress) -> None:
        key = event.key
        if key == "backspace":
            if self.cursor > 0:
                self.text = self.text[: self.cursor - 1] + self.text[self.cursor :]
                self.cursor -= 1
        elif key == "delete":
            self.text = self.text[: self.cursor] + self.text[self.cursor + 1 :]
        elif key == "left":
            self.cursor = max(0, self.cursor - 1)
        elif key == "right":
            self.cursor = min(len(self.text), self.cursor + 1)
        elif key in ("home", "ctrl+a"):
            self.cursor = 0
        elif key in ("end", "ctrl+e"):
            self.cursor = len(self.text)
        elif key == "ctrl+u":
            self.text = self.text[self.cursor :]
            self.cursor = 0
        elif event.printable and len(self.text) < CHAR_LIMIT:
            self.text = self.text[: self.cursor] + event.printable + self.text[self.cursor :]
            self.cursor += len(event.printable)

    def render(self, width: int) -> list[str]:
        if not self.visible:
            return []
        inner = max(width - 4, 1)
        if self.text:
            before = escape(self.text[: self.cursor])
            at = escape(self.text[self.cursor : self.cursor + 1] or " ")
            after = escape(self.text[self.cursor + 1 :])
            field = f"> {before}[reverse]{at}[/reverse]{after}"
        else:
            field = f"> [reverse] [/reverse][{styles.MUTED}]{escape(self.placeholder)}[/]"
        lines = [
            styles.styled(self.title, f"bold {styles.ACCENT}"),
            "",
            field,
            "",
            styles.styled("(Enter to submit, Esc to cancel)", styles.MUTED),
        ]
        return styles.box(lines, min(inner + 4, 64))
