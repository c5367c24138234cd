"""Tests for the keybind table and the keybinds.yaml override file."""

import logging

import yaml

from azboards.dashboard.keybinds import (
    GLOBAL,
    TEMPLATES,
    WORK_ITEMS,
    KeybindTable,
    load_keybinds,
    write_defaults,
)
from azboards.dashboard.messages import KeyPress


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


class TestMatches:
    def test_matches_typed_character(self):
        table = KeybindTable.defaults()
        assert table.matches(KeyPress("d", "d"), WORK_ITEMS, "delete")
        assert not table.matches(KeyPress("e", "e"), WORK_ITEMS, "delete")

    def test_matches_key_name(self):
        table = KeybindTable.defaults()
        assert table.matches(KeyPress("ctrl+c"), GLOBAL, "quit")
        assert table.matches(KeyPress("shift+tab"), GLOBAL, "prev_tab")

    def test_question_mark_matches_terminal_key_name(self):
        table = KeybindTable.defaults()
        assert table.matches(KeyPress("question_mark", "?"), GLOBAL, "help")

    def test_esc_alias(self):
        table = KeybindTable({GLOBAL: {"quit": ["esc"]}})
        assert table.matches(KeyPress("escape"), GLOBAL, "quit")

    def test_uppercase_is_distinct(self):
        table = KeybindTable.defaults()
        assert table.matches(KeyPress("E", "E"), "queries", "expand_all")
        assert not table.matches(KeyPress("e", "e"), "queries", "expand_all")

    def test_unknown_action_never_matches(self):
        table = KeybindTable.defaults()
        assert not table.matches(KeyPress.of("d"), WORK_ITEMS, "explode")

    def test_label_joins_chords(self):
        assert KeybindTable.defaults().label(GLOBAL, "quit") == "q/ctrl+c"


# ---------------------------------------------------------------------------
# Overrides
# ---------------------------------------------------------------------------


class TestOverrides:
    def test_override_replaces_only_listed_action(self):
        table = KeybindTable.defaults().with_overrides({"global": {"quit": ["x"]}})
        assert table.keys(GLOBAL, "quit") == ["x"]
        assert table.keys(GLOBAL, "help") == ["?"]
        assert table.keys(GLOBAL, "refresh") == ["r"]

    def test_work_items_file_key_maps_to_scope(self):
        table = KeybindTable.defaults().with_overrides({"work_items": {"delete": ["D"]}})
        assert table.keys(WORK_ITEMS, "delete") == ["D"]
        assert table.keys(WORK_ITEMS, "edit") == ["e"]

    def test_single_string_is_accepted(self):
        table = KeybindTable.defaults().with_overrides({"templates": {"copy": "y"}})
        assert table.keys(TEMPLATES, "copy") == ["y"]

    def test_unknown_scope_ignored(self):
        table = KeybindTable.defaults().with_overrides({"bogus": {"quit": ["x"]}})
        assert table.keys(GLOBAL, "quit") == ["q", "ctrl+c"]

    def test_defaults_are_not_mutated(self):
        KeybindTable.defaults().with_overrides({"global": {"quit": ["x"]}})
        assert KeybindTable.defaults().keys(GLOBAL, "quit") == ["q", "ctrl+c"]


class TestLoadKeybinds:
    def test_missing_file_is_created_with_defaults(self, temp_dir):
        path = temp_dir / "keybinds.yaml"
        table = load_keybinds(path)
        assert path.exists()
        assert table.keys(GLOBAL, "quit") == ["q", "ctrl+c"]
        data = yaml.safe_load(path.read_text())
        assert data["work_items"]["delete"] == ["d"]

    def test_written_defaults_have_comment_header(self, temp_dir):
        path = temp_dir / "keybinds.yaml"
        write_defaults(path)
        assert path.read_text().startswith("# Azure Boards CLI keybindings")

    def test_partial_file_keeps_other_defaults(self, temp_dir):
        path = temp_dir / "keybinds.yaml"
        path.write_text("global:\n  quit: [x]\n")
        table = load_keybinds(path)
        assert table.keys(GLOBAL, "quit") == ["x"]
        assert table.matches(KeyPress("question_mark", "?"), GLOBAL, "help")

    def test_broken_file_falls_back_to_defaults(self, temp_dir, caplog):
        path = temp_dir / "keybinds.yaml"
        path.write_text("global: [unclosed\n")
        with caplog.at_level(logging.WARNING):
            table = load_keybinds(path, logging.getLogger("test.keybinds"))
        assert table.keys(GLOBAL, "quit") == ["q", "ctrl+c"]
        assert "Ignoring keybind file" in caplog.text

    def test_non_mapping_file_falls_back(self, temp_dir):
        path = temp_dir / "keybinds.yaml"
        path.write_text("- just\n- a list\n")
        assert load_keybinds(path).keys(GLOBAL, "help") == ["?"]
