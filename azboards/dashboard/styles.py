"""Shared Rich styles and small markup layout helpers."""

from __future__ import annotations

from rich.markup import escape
from rich.text import Text

ACCENT = "#4fc3f7"
MUTED = "#7f8c8d"
SUCCESS = "#66bb6a"
ERROR = "#ef5350"
WARNING = "#ffa726"

TITLE_BAR = "bold #ffffff on #0078d4"
TAB_ACTIVE = f"bold reverse {ACCENT}"
TAB_INACTIVE = MUTED
SELECTED_ROW = "bold reverse"
FOLDER = "bold #ffd54f"

STATE_STYLES: dict[str, str] = {
    "Active": "bold #4fc3f7",
    "New": "#66bb6a",
    "Closed": "dim",
    "Resolved": "#ce93d8",
    "Blocked": "bold #ef5350",
}


def state_style(state: str) -> str:
    return STATE_STYLES.get(state, "")


def styled(text: str, style: str) -> str:
    """Escape ``text`` and wrap it in ``style`` markup."""
    if not style:
        return escape(text)
    return f"[{style}]{escape(text)}[/]"


def cell_len(markup: str) -> int:
    return Text.from_markup(markup).cell_len


def plain(markup: str) -> str:
    return Text.from_markup(markup).plain


def truncate(text: str, width: int) -> str:
    """Cut plain text to ``width`` cells, marking the cut with "..."."""
    if width <= 0:
        return ""
    if len(text) <= width:
        return text
    if width <= 3:
        return text[:width]
    return text[: width - 3] + "..."


def fit(text: str, width: int) -> str:
    """Truncate or right-pad plain text to exactly ``width``."""
    return truncate(text, width).ljust(max(width, 0))


def pad_markup(markup: str, width: int) -> str:
    return markup + " " * max(0, width - cell_len(markup))


def box(lines: list[str], width: int, title: str = "", border: str = ACCENT) -> list[str]:
    """Draw a rounded border around markup lines, ``width`` cells wide."""
    inner = max(width - 4, 1)
    if title:
        label = truncate(f" {title} ", inner)
        top = f"╭─{label}" + "─" * max(0, inner - len(label)) + "─╮"
    else:
        top = "╭" + "─" * (inner + 2) + "╮"
    out = [f"[{border}]{escape(top)}[/]"]
    for line in lines:
        if cell_len(line) > inner:
            line = escape(truncate(plain(line), inner))
        out.append(f"[{border}]│[/] {pad_markup(line, inner)} [{border}]│[/]")
    out.append(f"[{border}]╰" + "─" * (inner + 2) + "╯[/]")
    return out


def clamp_lines(lines: list[str], height: int) -> list[str]:
    """Keep at most ``height`` lines (never negative)."""
    return lines[: max(height, 0)]
