"""Tabs reserved for pipelines and agents; they only show a placeholder."""

from __future__ import annotations

from .. import styles
from .base import Tab


class PlaceholderTab(Tab):
    def render(self) -> str:
        lines = [
            "",
            styles.styled(f"{self.name} Tab", f"bold {styles.ACCENT}"),
            "",
            styles.styled("Coming soon!", styles.MUTED),
        ]
        return "\n".join(styles.clamp_lines(lines, self.content_height))


class PipelinesTab(PlaceholderTab):
    name = "Pipelines"


class AgentsTab(PlaceholderTab):
    name = "Agents"
