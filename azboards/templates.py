"""Work item templates and the on-disk template store.

Templates are YAML files under ~/.azure-boards-cli/templates, optionally
nested in folders:

    name: Bug report
    description: Standard bug with triage task
    type: Bug
    fields:
      System.Title: "Bug: "
      Microsoft.VSTS.Common.Priority: 2
    relations:
      parentId: 1234
      children:
        - title: Triage
          type: Task
"""

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .exceptions import TemplateError

logger = logging.getLogger(__name__)

TEMPLATE_SUFFIXES = (".yaml", ".yml")

_INVALID_FILENAME_CHARS = '/\\:*?"<>|'
MAX_FILENAME_LENGTH = 50


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class ChildWorkItem:
    title: str
    type: str = ""
    description: str = ""
    assigned_to: str = ""
    fields: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.type:
            data["type"] = self.type
        data["title"] = self.title
        if self.description:
            data["description"] = self.description
        if self.assigned_to:
            data["assignedTo"] = self.assigned_to
        if self.fields:
            data["fields"] = dict(self.fields)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChildWorkItem":
        return cls(
            title=str(data.get("title") or ""),
            type=str(data.get("type") or ""),
            description=str(data.get("description") or ""),
            assigned_to=str(data.get("assignedTo") or ""),
            fields=dict(data.get("fields") or {}),
        )


@dataclass
class Relations:
    parent_id: int = 0
    children: list[ChildWorkItem] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.parent_id and not self.children

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.parent_id:
            data["parentId"] = self.parent_id
        if self.children:
            data["children"] = [c.to_dict() for c in self.children]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Relations":
        return cls(
            parent_id=int(data.get("parentId") or 0),
            children=[ChildWorkItem.from_dict(c) for c in data.get("children") or []],
        )


@dataclass
class Template:
    name: str
    type: str
    fields: dict[str, Any] = field(default_factory=dict)
    description: str = ""
    relations: Relations | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name}
        if self.description:
            data["description"] = self.description
        data["type"] = self.type
        data["fields"] = dict(self.fields)
        if self.relations is not None and not self.relations.is_empty():
            data["relations"] = self.relations.to_dict()
        return data

    def to_yaml(self) -> str:
        return yaml.safe_dump(
            self.to_dict(), default_flow_style=False, sort_keys=False, allow_unicode=True
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Template":
        if not isinstance(data, dict):
            raise TemplateError("template must be a YAML mapping")
        relations = data.get("relations")
        return cls(
            name=str(data.get("name") or ""),
            type=str(data.get("type") or ""),
            fields=dict(data.get("fields") or {}),
            description=str(data.get("description") or ""),
            relations=Relations.from_dict(relations) if relations else None,
        )

    @classmethod
    def from_yaml(cls, text: str) -> "Template":
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise TemplateError(f"failed to parse template: {e}") from e
        return cls.from_dict(data or {})


@dataclass
class TreeNode:
    """A file or folder in the template store."""

    name: str
    path: str
    is_folder: bool
    children: list["TreeNode"] = field(default_factory=list)


def sanitize_filename(text: str) -> str:
    """Turn a work item title into a safe, lowercase file name fragment."""
    result = text
    for char in _INVALID_FILENAME_CHARS:
        result = result.replace(char, "-")
    return result[:MAX_FILENAME_LENGTH].strip().lower()


def _with_suffix(name: str) -> str:
    if name.endswith(TEMPLATE_SUFFIXES):
        return name
    return name + ".yaml"


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class TemplateStore:
    """Filesystem-backed template store rooted at a single directory.

    All paths handed in and out are relative to the root, using forward
    slashes, so they can be used as stable identifiers in the UI.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def _resolve(self, rel_path: str) -> Path:
        path = (self.root / rel_path).resolve()
        root = self.root.resolve()
        if path != root and root not in path.parents:
            raise TemplateError(f"'{rel_path}' is outside the template directory")
        return path

    def _relative(self, path: Path) -> str:
        return path.resolve().relative_to(self.root.resolve()).as_posix()

    def exists(self, rel_path: str) -> bool:
        return self._resolve(rel_path).exists()

    def path_of(self, name: str) -> Path:
        """Absolute path of a template file; a bare name gets ``.yaml``."""
        return self._resolve(_with_suffix(name))

    def is_folder(self, rel_path: str) -> bool:
        return self._resolve(rel_path).is_dir()

    def list_tree(self) -> list[TreeNode]:
        """Return the store as a tree: folders first, then template files."""
        self.root.mkdir(parents=True, exist_ok=True)
        return self._scan(self.root)

    def _scan(self, directory: Path) -> list[TreeNode]:
        folders: list[TreeNode] = []
        files: list[TreeNode] = []
        for entry in sorted(directory.iterdir(), key=lambda p: p.name.lower()):
            if entry.name.startswith("."):
                continue
            if entry.is_dir():
                folders.append(TreeNode(
                    name=entry.name,
                    path=self._relative(entry),
                    is_folder=True,
                    children=self._scan(entry),
                ))
            elif entry.suffix in TEMPLATE_SUFFIXES:
                files.append(TreeNode(name=entry.name, path=self._relative(entry), is_folder=False))
        return folders + files

    def read_text(self, rel_path: str) -> str:
        path = self._resolve(_with_suffix(rel_path))
        try:
            return path.read_text()
        except FileNotFoundError as e:
            raise TemplateError(f"template '{rel_path}' not found") from e
        except OSError as e:
            raise TemplateError(f"failed to read template: {e}") from e

    def load(self, rel_path: str) -> Template:
        return Template.from_yaml(self.read_text(rel_path))

    def save(self, template: Template, rel_path: str | None = None) -> str:
        """Write a template, defaulting the file name to the template name."""
        rel_path = _with_suffix(rel_path or template.name)
        path = self._resolve(rel_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            path.write_text(template.to_yaml())
        except OSError as e:
            raise TemplateError(f"failed to write template: {e}") from e
        logger.info("Saved template %s", rel_path)
        return self._relative(path)

    def delete(self, rel_path: str) -> None:
        """Delete a template file, or a folder and everything in it."""
        path = self._resolve(rel_path)
        if path == self.root.resolve():
            raise TemplateError("refusing to delete the template directory")
        if not path.exists():
            raise TemplateError(f"template '{rel_path}' not found")
        try:
            if path.is_dir():
                shutil.rmtree(path)
            else:
                path.unlink()
        except OSError as e:
            raise TemplateError(f"failed to delete '{rel_path}': {e}") from e
        logger.info("Deleted %s", rel_path)

    def _sibling(self, rel_path: str, new_name: str, keep_suffix: bool) -> Path:
        source = self._resolve(rel_path)
        if not source.exists():
            raise TemplateError(f"'{rel_path}' not found")
        new_name = new_name.strip()
        if not new_name or "/" in new_name or "\\" in new_name:
            raise TemplateError(f"invalid name '{new_name}'")
        if keep_suffix and source.is_file():
            new_name = _with_suffix(new_name)
        target = source.parent / new_name
        if target.exists():
            raise TemplateError(f"'{new_name}' already exists")
        return target

    def rename(self, rel_path: str, new_name: str) -> str:
        """Rename a file or folder in place and return its new path."""
        source = self._resolve(rel_path)
        target = self._sibling(rel_path, new_name, keep_suffix=True)
        source.rename(target)
        logger.info("Renamed %s -> %s", rel_path, target.name)
        return self._relative(target)

    def copy(self, rel_path: str, new_name: str) -> str:
        """Copy a template file next to itself and return the copy's path."""
        source = self._resolve(rel_path)
        if source.is_dir():
            raise TemplateError("cannot copy a folder")
        target = self._sibling(rel_path, new_name, keep_suffix=True)
        shutil.copyfile(source, target)
        logger.info("Copied %s -> %s", rel_path, target.name)
        return self._relative(target)

    def new_folder(self, parent: str, name: str) -> str:
        name = name.strip()
        if not name or "/" in name or "\\" in name:
            raise TemplateError(f"invalid folder name '{name}'")
        path = self._resolve(f"{parent}/{name}" if parent else name)
        if path.exists():
            raise TemplateError(f"folder '{name}' already exists")
        path.mkdir(parents=True)
        return self._relative(path)

    def new_template(self, parent: str, name: str) -> str:
        """Create a starter Task template and return its path."""
        name = name.strip()
        if not name or "/" in name or "\\" in name:
            raise TemplateError(f"invalid template name '{name}'")
        filename = _with_suffix(name)
        rel_path = f"{parent}/{filename}" if parent else filename
        if self.exists(rel_path):
            raise TemplateError(f"template '{filename}' already exists")
        template = Template(
            name=Path(filename).stem,
            type="Task",
            description="New template",
            fields={"System.Title": "New Work Item", "System.Description": ""},
        )
        return self.save(template, rel_path)
