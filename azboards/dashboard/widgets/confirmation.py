"""Yes/no confirmation overlay."""

from __future__ import annotations

from typing import Any

from .. import styles


class ConfirmationDialog:
    def __init__(self) -> None:
        self.visible = False
        self.prompt = ""
        self.action = ""
        self.context: dict[str, Any] = {}

    def show(self, prompt: str, action: str, context: dict[str, Any] | None = None) -> None:
        self.visible = True
        self.prompt = prompt
        self.action = action
        self.context = dict(context or {})

    def hide(self) -> None:
        self.visible = False

    def render(self, width: int) -> list[str]:
        if not self.visible:
            return []
        lines = [
            styles.styled("⚠ Confirmation Required", f"bold {styles.WARNING}"),
            "",
            styles.styled(self.prompt, ""),
            "",
            styles.styled("(y/n)", styles.MUTED),
        ]
        return styles.box(lines, min(max(width, 8), 72), border=styles.WARNING)
