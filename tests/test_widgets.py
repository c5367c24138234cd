"""Tests for the overlay widgets."""

from rich.text import Text

from azboards.dashboard.messages import KeyPress
from azboards.dashboard.widgets.confirmation import ConfirmationDialog
from azboards.dashboard.widgets.help import HelpOverlay
from azboards.dashboard.widgets.input_prompt import CHAR_LIMIT, InputPrompt
from azboards.dashboard.widgets.notification import Notification
from azboards.dashboard.widgets.selection import SelectionDialog


def plain(lines):
    return "\n".join(Text.from_markup(line).plain for line in lines)


def type_text(prompt, text):
    for ch in text:
        prompt.handle_key(KeyPress.of(ch))


# ---------------------------------------------------------------------------
# Notification
# ---------------------------------------------------------------------------


class TestNotification:
    def test_show_returns_increasing_sequence(self):
        n = Notification()
        assert n.show("a") == 1
        assert n.show("b") == 2

    def test_clear_with_current_seq_hides(self):
        n = Notification()
        seq = n.show("done")
        n.clear(seq)
        assert not n.visible

    def test_stale_clear_is_ignored(self):
        n = Notification()
        old = n.show("first")
        n.show("second")
        n.clear(old)
        assert n.visible
        assert n.text == "second"

    def test_render_marks_success_and_error(self):
        n = Notification()
        n.show("Saved")
        assert Text.from_markup(n.render(40)).plain == "✓ Saved"
        n.show("Broken", is_error=True)
        assert Text.from_markup(n.render(40)).plain == "✗ Broken"

    def test_render_hidden_is_empty(self):
        assert Notification().render(40) == ""

    def test_markup_in_text_is_escaped(self):
        n = Notification()
        n.show("[bold]not markup[/bold]")
        assert "[bold]not markup[/bold]" in Text.from_markup(n.render(80)).plain


# ---------------------------------------------------------------------------
# InputPrompt
# ---------------------------------------------------------------------------


class TestInputPrompt:
    def test_show_with_default_puts_cursor_at_end(self):
        p = InputPrompt()
        p.show("Copy as:", "copy_template", default="base-copy")
        assert p.visible
        assert p.text == "base-copy"
        assert p.cursor == len("base-copy")

    def test_typing_and_backspace(self):
        p = InputPrompt()
        p.show("Name:", "new_folder")
        type_text(p, "abcd")
        p.handle_key(KeyPress.of("backspace"))
        assert p.text == "abc"

    def test_insert_in_the_middle(self):
        p = InputPrompt()
        p.show("Name:", "new_folder", default="ac")
        p.handle_key(KeyPress.of("left"))
        type_text(p, "b")
        assert p.text == "abc"

    def test_home_end_and_delete(self):
        p = InputPrompt()
        p.show("Name:", "new_folder", default="xabc")
        p.handle_key(KeyPress.of("home"))
        p.handle_key(KeyPress.of("delete"))
        assert p.text == "abc"
        p.handle_key(KeyPress.of("end"))
        type_text(p, "d")
        assert p.text == "abcd"

    def test_ctrl_u_clears_before_cursor(self):
        p = InputPrompt()
        p.show("Name:", "rename_template", default="old")
        p.handle_key(KeyPress.of("ctrl+u"))
        assert p.text == ""

    def test_value_is_stripped(self):
        p = InputPrompt()
        p.show("Name:", "new_folder", default="  padded  ")
        assert p.value == "padded"

    def test_character_limit(self):
        p = InputPrompt()
        p.show("Name:", "new_folder")
        type_text(p, "x" * (CHAR_LIMIT + 10))
        assert len(p.text) == CHAR_LIMIT

    def test_non_printable_keys_ignored(self):
        p = InputPrompt()
        p.show("Name:", "new_folder")
        p.handle_key(KeyPress("f1"))
        p.handle_key(KeyPress("tab", "\t"))
        assert p.text == ""

    def test_render(self):
        p = InputPrompt()
        p.show("New folder name:", "new_folder", placeholder="folder")
        text = plain(p.render(60))
        assert "New folder name:" in text
        assert "(Enter to submit, Esc to cancel)" in text


# ---------------------------------------------------------------------------
# Confirmation, selection, help
# ---------------------------------------------------------------------------


class TestConfirmationDialog:
    def test_show_and_render(self):
        d = ConfirmationDialog()
        d.show("Delete work item #4?", "delete_work_item", {"id": 4})
        text = plain(d.render(60))
        assert "⚠ Confirmation Required" in text
        assert "Delete work item #4?" in text
        assert "(y/n)" in text
        assert d.context == {"id": 4}

    def test_hidden_renders_nothing(self):
        d = ConfirmationDialog()
        d.show("x", "y")
        d.hide()
        assert d.render(60) == []


class TestSelectionDialog:
    def test_navigation_wraps(self):
        s = SelectionDialog()
        s.show("Change state of #1", ["New", "Active", "Closed"], "change_state")
        assert s.selected == "New"
        s.handle_key(KeyPress.of("up"))
        assert s.selected == "Closed"
        s.handle_key(KeyPress.of("down"))
        assert s.selected == "New"
        s.handle_key(KeyPress.of("j"))
        assert s.selected == "Active"

    def test_empty_options(self):
        s = SelectionDialog()
        s.show("Pick", [], "change_state")
        s.handle_key(KeyPress.of("down"))
        assert s.selected is None

    def test_render_marks_cursor(self):
        s = SelectionDialog()
        s.show("Change state of #1", ["New", "Active"], "change_state")
        text = plain(s.render(60, 20))
        assert "> New" in text
        assert "  Active" in text

    def test_render_scrolls_to_cursor(self):
        s = SelectionDialog()
        s.show("Pick", [f"opt{i}" for i in range(30)], "change_state")
        s.handle_key(KeyPress.of("end"))
        text = plain(s.render(60, 10))
        assert "> opt29" in text
        assert "opt0" not in text


class TestHelpOverlay:
    def test_toggle(self):
        h = HelpOverlay()
        h.toggle()
        assert h.visible
        h.toggle()
        assert not h.visible

    def test_render_sections(self):
        h = HelpOverlay()
        h.toggle()
        text = plain(h.render(
            "Templates",
            [("q/ctrl+c", "Quit")],
            [("c", "Copy template")],
            70,
        ))
        assert "Help: Templates" in text
        assert "Global Actions" in text
        assert "Templates Actions" in text
        assert "Copy template" in text
        assert "Press ? again to close help" in text

    def test_close_hint_uses_given_key(self):
        h = HelpOverlay()
        h.toggle()
        text = plain(h.render("Queries", [], [], 60, close_key="f1/h"))
        assert "Press f1/h again to close help" in text
