"""Keybind table: built-in defaults with per-action user overrides.

The override file is YAML keyed by scope, then action::

    global:
      quit: ["q", "ctrl+c"]
    work_items:
      delete: ["D"]

An action listed in the file replaces that action's chords; everything
else keeps its default.
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path

import yaml

from .messages import KeyPress

GLOBAL = "global"
QUERIES = "queries"
WORK_ITEMS = "workitems"
TEMPLATES = "templates"

SCOPES = (GLOBAL, QUERIES, WORK_ITEMS, TEMPLATES)

# File key -> scope
FILE_SCOPES = {
    "global": GLOBAL,
    "queries": QUERIES,
    "work_items": WORK_ITEMS,
    "templates": TEMPLATES,
}

DEFAULT_KEYBINDS: dict[str, dict[str, list[str]]] = {
    GLOBAL: {
        "quit": ["q", "ctrl+c"],
        "help": ["?"],
        "next_tab": ["tab"],
        "prev_tab": ["shift+tab"],
        "refresh": ["r"],
    },
    QUERIES: {
        "execute": ["enter"],
        "expand_all": ["E"],
        "collapse_all": ["C"],
    },
    WORK_ITEMS: {
        "details": ["enter"],
        "download": ["w"],
        "edit": ["e"],
        "delete": ["d"],
        "create": ["n"],
        "change_state": ["s"],
        "assign": ["a"],
        "add_tags": ["t"],
    },
    TEMPLATES: {
        "copy": ["c"],
        "new_template": ["n"],
        "new_folder": ["f"],
        "edit": ["e"],
        "rename": ["m"],
        "delete": ["d"],
    },
}

_ALIASES = {
    "esc": "escape",
    "return": "enter",
    "space": " ",
    "?": "question_mark",
}

_FILE_HEADER = """\
# Azure Boards CLI keybindings
#
# Each action maps to a list of keys. Listing an action here replaces its
# default keys; actions you leave out keep their defaults.
#
# Key names: single characters ("d", "E", "?"), "enter", "escape", "tab",
# "shift+tab", "up", "down", "ctrl+<letter>".

"""


def _normalize(chord: str) -> str:
    return _ALIASES.get(chord, chord)


class KeybindTable:
    """Immutable (scope, action) -> chords lookup."""

    def __init__(self, bindings: dict[str, dict[str, list[str]]] | None = None):
        self._bindings = copy.deepcopy(bindings if bindings is not None else DEFAULT_KEYBINDS)

    @classmethod
    def defaults(cls) -> KeybindTable:
        return cls(DEFAULT_KEYBINDS)

    def keys(self, scope: str, action: str) -> list[str]:
        return list(self._bindings.get(scope, {}).get(action, []))

    def actions(self, scope: str) -> list[str]:
        return list(self._bindings.get(scope, {}))

    def label(self, scope: str, action: str) -> str:
        """Human readable chord list for help and footer text."""
        return "/".join(self.keys(scope, action))

    def matches(self, event: KeyPress, scope: str, action: str) -> bool:
        """True if the key press is one of the action's chords."""
        for chord in self._bindings.get(scope, {}).get(action, []):
            if chord == event.character:
                return True
            if _normalize(chord) == event.key or chord == event.key:
                return True
        return False

    def with_overrides(self, overrides: dict) -> KeybindTable:
        """Return a new table where each listed action's chords are replaced."""
        merged = copy.deepcopy(self._bindings)
        for file_scope, actions in (overrides or {}).items():
            scope = FILE_SCOPES.get(file_scope)
            if scope is None or not isinstance(actions, dict):
                continue
            for action, chords in actions.items():
                if isinstance(chords, str):
                    chords = [chords]
                if not isinstance(chords, list):
                    continue
                merged.setdefault(scope, {})[action] = [str(c) for c in chords]
        return KeybindTable(merged)

    def to_file_dict(self) -> dict[str, dict[str, list[str]]]:
        reverse = {scope: key for key, scope in FILE_SCOPES.items()}
        return {reverse[scope]: dict(actions) for scope, actions in self._bindings.items()}


def write_defaults(path: Path) -> None:
    """Write the default table as a commented, editable override file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    body = yaml.safe_dump(
        KeybindTable.defaults().to_file_dict(), default_flow_style=None, sort_keys=False
    )
    path.write_text(_FILE_HEADER + body)


def load_keybinds(path: Path, logger: logging.Logger | None = None) -> KeybindTable:
    """Load defaults plus any overrides in ``path``.

    A missing file is created with the defaults. An unreadable file is
    logged and ignored.
    """
    logger = logger or logging.getLogger(__name__)
    table = KeybindTable.defaults()

    if not path.exists():
        try:
            write_defaults(path)
            logger.info("Wrote default keybinds to %s", path)
        except OSError as e:
            logger.warning("Could not write default keybinds to %s: %s", path, e)
        return table

    try:
        with open(path) as f:
            overrides = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Ignoring keybind file %s: %s", path, e)
        return table

    if not isinstance(overrides, dict):
        logger.warning("Ignoring keybind file %s: expected a mapping", path)
        return table
    return table.with_overrides(overrides)
