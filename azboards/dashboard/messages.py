"""Messages flowing through the dashboard event loop.

Every input and every asynchronous result is one of these dataclasses.
The coordinator dispatches on the concrete type; commands return exactly
one of them when they finish.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class Message:
    """Base class for everything handled by Dashboard.handle()."""


# ---------------------------------------------------------------------------
# Terminal input
# ---------------------------------------------------------------------------


@dataclass
class WindowSize(Message):
    width: int
    height: int


@dataclass
class KeyPress(Message):
    """A key event.

    ``key`` is the key name ("enter", "ctrl+c", "question_mark", "d") and
    ``character`` the printable character it produced, if any.
    """

    key: str
    character: str | None = None

    @classmethod
    def of(cls, text: str) -> KeyPress:
        """Build a key press from a chord string, e.g. "d", "?", "enter"."""
        if len(text) == 1:
            return cls(key=text, character=text)
        return cls(key=text)

    @property
    def printable(self) -> str | None:
        if self.character and self.character.isprintable():
            return self.character
        return None


# ---------------------------------------------------------------------------
# Coordinator-level requests
# ---------------------------------------------------------------------------


@dataclass
class Notify(Message):
    text: str
    is_error: bool = False


@dataclass
class ClearNotification(Message):
    seq: int


@dataclass
class SwitchTab(Message):
    index: int


@dataclass
class ConfirmRequest(Message):
    """Ask the user a yes/no question before running ``action``."""

    message: str
    action: str
    context: dict[str, Any] = field(default_factory=dict)


@dataclass
class PromptRequest(Message):
    prompt: str
    action: str
    default: str = ""
    context: dict[str, Any] = field(default_factory=dict)


@dataclass
class SelectionRequest(Message):
    title: str
    options: list[str]
    action: str
    context: dict[str, Any] = field(default_factory=dict)


@dataclass
class OpenEditor(Message):
    """Suspend the UI and open ``path`` in the user's editor.

    ``purpose`` decides what happens when the editor exits: "work_item"
    re-reads the file and applies the changes, "template" reloads the tree.
    """

    path: str
    purpose: str
    context: dict[str, Any] = field(default_factory=dict)


@dataclass
class EditorClosed(Message):
    path: str
    purpose: str
    context: dict[str, Any] = field(default_factory=dict)
    error: str | None = None


# ---------------------------------------------------------------------------
# Loaded results (addressed to a specific tab)
# ---------------------------------------------------------------------------


@dataclass
class QueriesLoaded(Message):
    queries: list[dict[str, Any]] = field(default_factory=list)
    error: str | None = None
    generation: int = 0


@dataclass
class WorkItemsLoaded(Message):
    items: list[dict[str, Any]] = field(default_factory=list)
    error: str | None = None
    generation: int = 0
    source: str = ""


@dataclass
class WorkItemDetailsLoaded(Message):
    item_id: int
    item: dict[str, Any] | None = None
    relations_text: str = ""
    related: dict[int, dict[str, Any]] = field(default_factory=dict)
    error: str | None = None
    generation: int = 0


@dataclass
class TemplatesLoaded(Message):
    tree: list[Any] = field(default_factory=list)
    # path -> parsed Template, or an error string for unreadable files
    previews: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    generation: int = 0


@dataclass
class ExecuteQuery(Message):
    query_id: str
    name: str = ""


@dataclass
class CreateFromTemplate(Message):
    path: str


# ---------------------------------------------------------------------------
# Mutation results
# ---------------------------------------------------------------------------


@dataclass
class WorkItemCreated(Message):
    item_id: int = 0
    children_created: int = 0
    children_failed: int = 0
    error: str | None = None


@dataclass
class WorkItemUpdated(Message):
    item_id: int
    error: str | None = None
    changed: bool = True


@dataclass
class WorkItemDeleted(Message):
    item_id: int
    children_deleted: int = 0
    error: str | None = None


@dataclass
class WorkItemDownloaded(Message):
    item_id: int
    path: str = ""
    error: str | None = None


@dataclass
class TemplateMutated(Message):
    """Result of a template store mutation (copy/rename/new/delete)."""

    operation: str
    path: str = ""
    error: str | None = None


# Messages routed to a tab by kind, regardless of which tab is active
QUERIES_MESSAGES = (QueriesLoaded,)
WORK_ITEMS_MESSAGES = (
    WorkItemsLoaded,
    WorkItemDetailsLoaded,
    WorkItemUpdated,
    WorkItemDeleted,
)
TEMPLATES_MESSAGES = (TemplatesLoaded, TemplateMutated)
