"""Transient status line shown in the footer."""

from __future__ import annotations

from .. import styles


class Notification:
    """A one-line success or error message.

    Each show() bumps ``seq``; a clear request only hides the notification
    it was scheduled for, so a newer message is never cut short.
    """

    def __init__(self) -> None:
        self.visible = False
        self.text = ""
        self.is_error = False
        self.seq = 0

    def show(self, text: str, is_error: bool = False) -> int:
        self.seq += 1
        self.visible = True
        self.text = text
        self.is_error = is_error
        return self.seq

    def clear(self, seq: int | None = None) -> None:
        if seq is not None and seq != self.seq:
            return
        self.visible = False
        self.text = ""

    def render(self, width: int) -> str:
        if not self.visible:
            return ""
        if self.is_error:
            return styles.styled(styles.truncate(f"✗ {self.text}", width), f"bold {styles.ERROR}")
        return styles.styled(styles.truncate(f"✓ {self.text}", width), f"bold {styles.SUCCESS}")
