"""Tests for templates and the on-disk TemplateStore."""

import pytest

from azboards.exceptions import TemplateError
from azboards.templates import (
    ChildWorkItem,
    Relations,
    Template,
    TemplateStore,
    sanitize_filename,
)


@pytest.fixture
def populated(store):
    store.save(Template(name="zeta", type="Task"), "zeta.yaml")
    store.save(Template(name="Alpha", type="Bug"), "Alpha.yml")
    store.new_folder("", "team")
    store.save(Template(name="story", type="User Story"), "team/story.yaml")
    (store.root / "notes.txt").write_text("not a template")
    (store.root / ".hidden").mkdir()
    return store


class TestTemplateModel:
    def test_yaml_keys_in_file_order(self):
        template = Template(
            name="Bug report",
            type="Bug",
            description="Standard bug",
            fields={"System.Title": "Bug: "},
            relations=Relations(parent_id=3, children=[ChildWorkItem(title="Triage", type="Task")]),
        )
        text = template.to_yaml()
        assert text.index("name:") < text.index("description:") < text.index("type:")
        assert "parentId: 3" in text

    def test_empty_relations_omitted(self):
        text = Template(name="x", type="Task", relations=Relations()).to_yaml()
        assert "relations" not in text

    def test_parse_full_template(self):
        template = Template.from_yaml(
            "name: Feature\n"
            "type: Feature\n"
            "fields:\n"
            "  Microsoft.VSTS.Common.Priority: 2\n"
            "relations:\n"
            "  children:\n"
            "    - title: Design\n"
            "      assignedTo: ada@example.com\n"
        )
        assert template.fields["Microsoft.VSTS.Common.Priority"] == 2
        assert template.relations.parent_id == 0
        assert template.relations.children[0].assigned_to == "ada@example.com"

    def test_parse_rejects_non_mapping(self):
        with pytest.raises(TemplateError, match="mapping"):
            Template.from_yaml("- a\n- b\n")

    def test_parse_error_wrapped(self):
        with pytest.raises(TemplateError, match="failed to parse template"):
            Template.from_yaml("name: [unclosed\n")

    def test_empty_file_is_empty_template(self):
        template = Template.from_yaml("")
        assert template.name == ""
        assert template.fields == {}


class TestSanitizeFilename:
    def test_replaces_invalid_characters(self):
        assert sanitize_filename('A/B\\C:D*E?"F<G>H|') == "a-b-c-d-e--f-g-h-"

    def test_truncates_to_fifty(self):
        assert len(sanitize_filename("x" * 80)) == 50

    def test_lowercases_and_strips(self):
        assert sanitize_filename("  Login Page ") == "login page"


class TestListTree:
    def test_creates_missing_root(self, store):
        assert store.list_tree() == []
        assert store.root.is_dir()

    def test_folders_first_then_files_case_insensitive(self, populated):
        tree = populated.list_tree()
        assert [n.path for n in tree] == ["team", "Alpha.yml", "zeta.yaml"]
        assert [n.path for n in tree[0].children] == ["team/story.yaml"]

    def test_hidden_and_non_yaml_skipped(self, populated):
        names = [n.name for n in populated.list_tree()]
        assert "notes.txt" not in names
        assert ".hidden" not in names


class TestStoreFiles:
    def test_save_and_load(self, store):
        path = store.save(Template(name="bug", type="Bug", fields={"System.Title": "Bug: "}))
        assert path == "bug.yaml"
        assert store.load("bug").fields == {"System.Title": "Bug: "}

    def test_load_missing(self, store):
        with pytest.raises(TemplateError, match="not found"):
            store.load("ghost.yaml")

    def test_path_outside_root_rejected(self, store):
        with pytest.raises(TemplateError, match="outside the template directory"):
            store.load("../escape.yaml")

    def test_delete_folder_recursively(self, populated):
        populated.delete("team")
        assert not (populated.root / "team").exists()

    def test_delete_root_refused(self, populated):
        with pytest.raises(TemplateError, match="refusing"):
            populated.delete(".")

    def test_delete_missing(self, store):
        store.list_tree()
        with pytest.raises(TemplateError, match="not found"):
            store.delete("nope.yaml")


class TestRenameCopy:
    def test_rename_keeps_suffix(self, populated):
        assert populated.rename("zeta.yaml", "omega") == "omega.yaml"
        assert not populated.exists("zeta.yaml")

    def test_rename_folder(self, populated):
        assert populated.rename("team", "squad") == "squad"
        assert populated.exists("squad/story.yaml")

    def test_rename_conflict(self, populated):
        with pytest.raises(TemplateError, match="already exists"):
            populated.rename("zeta.yaml", "Alpha.yml")

    def test_rename_rejects_path_separator(self, populated):
        with pytest.raises(TemplateError, match="invalid name"):
            populated.rename("zeta.yaml", "a/b")

    def test_copy_in_same_folder(self, populated):
        assert populated.copy("team/story.yaml", "story-copy") == "team/story-copy.yaml"
        assert populated.load("team/story-copy.yaml").type == "User Story"

    def test_copy_folder_refused(self, populated):
        with pytest.raises(TemplateError, match="cannot copy a folder"):
            populated.copy("team", "team2")


class TestCreate:
    def test_new_template_is_task_starter(self, store):
        path = store.new_template("", "chore")
        template = store.load(path)
        assert template.name == "chore"
        assert template.type == "Task"
        assert template.fields["System.Title"] == "New Work Item"

    def test_new_template_conflict(self, store):
        store.new_template("", "chore")
        with pytest.raises(TemplateError, match="already exists"):
            store.new_template("", "chore.yaml")

    def test_new_folder_nested(self, populated):
        assert populated.new_folder("team", "bugs") == "team/bugs"
        assert populated.is_folder("team/bugs")

    def test_new_folder_blank_name(self, store):
        with pytest.raises(TemplateError, match="invalid folder name"):
            store.new_folder("", "   ")
