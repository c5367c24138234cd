"""Help overlay listing the global and active-tab keybindings."""

from __future__ import annotations

from .. import styles


class HelpOverlay:
    def __init__(self) -> None:
        self.visible = False

    def toggle(self) -> None:
        self.visible = not self.visible

    def hide(self) -> None:
        self.visible = False

    def render(
        self,
        tab_name: str,
        global_entries: list[tuple[str, str]],
        tab_entries: list[tuple[str, str]],
        width: int,
        close_key: str = "?",
    ) -> list[str]:
        """Entries are (keys, description) pairs; ``close_key`` names the help binding."""
        if not self.visible:
            return []
        key_width = max([len(k) for k, _ in global_entries + tab_entries] + [4]) + 2
        lines = [styles.styled(f"Help: {tab_name}", f"bold {styles.ACCENT}"), ""]
        lines.append(styles.styled("Global Actions", "bold underline"))
        for keys, desc in global_entries:
            lines.append(f"  {styles.styled(keys.ljust(key_width), styles.WARNING)}{styles.styled(desc, '')}")
        if tab_entries:
            lines += ["", styles.styled(f"{tab_name} Actions", "bold underline")]
            for keys, desc in tab_entries:
                lines.append(f"  {styles.styled(keys.ljust(key_width), styles.WARNING)}{styles.styled(desc, '')}")
        lines += ["", styles.styled(f"Press {close_key} again to close help", styles.MUTED)]
        return styles.box(lines, min(max(width, 8), 72))
