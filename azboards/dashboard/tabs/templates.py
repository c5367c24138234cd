"""Templates tab: the local template folders beside a preview of the selection.

Enter on a folder expands or collapses it; Enter on a template creates a
work item from it. Copy, rename, new, edit and delete go through the
dashboard's prompt and confirmation overlays and end in a full reload.
"""

from __future__ import annotations

import posixpath
from typing import Any

from ...templates import Template, TemplateStore, TreeNode
from .. import commands, styles
from ..commands import Command
from ..keybinds import TEMPLATES
from ..messages import CreateFromTemplate, KeyPress, Message, TemplateMutated, TemplatesLoaded
from .base import ListState, Tab, flatten, toggle, tree_row

FIELD_PREFIXES = ("System.", "Microsoft.VSTS.Common.", "Custom.")


def short_field_name(name: str) -> str:
    for prefix in FIELD_PREFIXES:
        if name.startswith(prefix):
            return name[len(prefix):]
    return name


def format_template(template: Template) -> list[str]:
    lines = [f"Name: {template.name}"]
    if template.description:
        lines.append(f"Description: {template.description}")
    lines.append(f"Type: {template.type}")
    if template.fields:
        lines += ["", "Fields:"]
        for name, value in template.fields.items():
            text = str(value).replace("\n", " ")
            lines.append(f"  {short_field_name(name)}: {text}")
    relations = template.relations
    if relations is not None and not relations.is_empty():
        lines += ["", "Relations:"]
        if relations.parent_id:
            lines.append(f"  Parent: #{relations.parent_id}")
        for child in relations.children:
            lines.append(f"  Child: [{child.type or 'Task'}] {child.title}")
    return lines


def format_folder(node: TreeNode) -> list[str]:
    folders = [c for c in node.children if c.is_folder]
    files = [c for c in node.children if not c.is_folder]
    lines = [f"Folder: {node.name}", "", f"{len(files)} template(s), {len(folders)} folder(s)"]
    if node.children:
        lines.append("")
        lines += [f"  {c.name}/" for c in folders]
        lines += [f"  {c.name}" for c in files]
    return lines


class TemplatesTab(Tab):
    name = "Templates"
    scope = TEMPLATES
    loads_data = True
    HELP = [
        ("copy", "Copy template"),
        ("new_template", "New template"),
        ("new_folder", "New folder"),
        ("edit", "Edit in $EDITOR"),
        ("rename", "Rename"),
        ("delete", "Delete template/folder"),
    ]

    def __init__(self, store: TemplateStore, keybinds, logger=None) -> None:
        super().__init__(keybinds, logger)
        self.store = store
        self.tree: list[TreeNode] = []
        self.previews: dict[str, Any] = {}
        self.expanded: set[str] = set()
        self.list = ListState()

    @property
    def list_width(self) -> int:
        return self.width // 2

    @property
    def preview_width(self) -> int:
        return max(0, self.width - self.list_width - 1)

    def resize(self, width: int, height: int) -> None:
        super().resize(width, height)
        self.list.resize(self.content_height)

    def fetch(self) -> Command:
        return commands.fetch_templates(self.store, self.generation, self.logger)

    def rebuild(self) -> None:
        self.list.set_items(flatten(self.tree, self.expanded), key=lambda row: row.node.path)

    def selected_node(self) -> TreeNode | None:
        row = self.list.selected
        return row.node if row is not None else None

    def target_folder(self) -> str:
        """Folder new items go into: the selected folder, or the selection's parent."""
        node = self.selected_node()
        if node is None:
            return ""
        if node.is_folder:
            return node.path
        return posixpath.dirname(node.path)

    def handle_message(self, msg: Message) -> Command | None:
        if isinstance(msg, TemplatesLoaded):
            if self.is_stale(msg.generation):
                return None
            self.loading = False
            if msg.error:
                self.error = msg.error
                return None
            self.error = None
            self.tree = list(msg.tree)
            self.previews = dict(msg.previews)
            self.rebuild()
            return None

        if isinstance(msg, TemplateMutated):
            if msg.error is None and msg.path:
                parent = posixpath.dirname(msg.path)
                if parent and msg.operation != "delete":
                    self.expanded.add(parent)
            return self.reload()

        return None

    def handle_key(self, event: KeyPress) -> Command | None:
        if self.loading or self.error:
            return None
        if self.list.handle_key(event):
            return None
        if event.key == "enter":
            node = self.selected_node()
            if node is None:
                return None
            if node.is_folder:
                toggle(self.expanded, node.path)
                self.rebuild()
                return None
            return commands.emit(CreateFromTemplate(path=node.path))
        return None

    def render(self) -> str:
        if self.error:
            return self.render_error()
        if self.loading:
            return self.render_loading("templates")
        if self.content_height == 0:
            return ""

        left = [
            tree_row(row, self.expanded, self.list_width, i == self.list.cursor)
            for i, row in self.list.visible()
        ]
        if not self.list.items:
            key = self.keybinds.label(TEMPLATES, "new_template")
            text = f"No templates yet. Press {key} to create one."
            left = [styles.styled(styles.fit(text, self.list_width), styles.MUTED)]
        right = [
            styles.styled(styles.fit(line, self.preview_width), "")
            for line in self.preview_lines()
        ]

        lines = []
        separator = styles.styled("│", styles.MUTED)
        for i in range(self.content_height):
            l_line = left[i] if i < len(left) else " " * self.list_width
            r_line = right[i] if i < len(right) else ""
            lines.append(f"{l_line}{separator}{r_line}")
        return "\n".join(lines)

    def preview_lines(self) -> list[str]:
        node = self.selected_node()
        if node is None:
            return []
        if node.is_folder:
            return format_folder(node)
        preview = self.previews.get(node.path)
        if isinstance(preview, Template):
            return format_template(preview)
        if preview is None:
            return ["(no preview)"]
        return [f"Error: {preview}"]

    def footer_hint(self) -> str:
        node = self.selected_node()
        if node is not None and not node.is_folder:
            return f"enter: create work item from {node.name}"
        return "enter: open folder"
