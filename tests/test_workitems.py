"""Tests for work item payload helpers."""

from azboards import workitems
from azboards.templates import ChildWorkItem


class TestFields:
    def test_get_id_falls_back_to_field(self):
        assert workitems.get_id({"fields": {"System.Id": 9}}) == 9
        assert workitems.get_id({}) == 0

    def test_identity_field_display_name(self):
        item = {"fields": {"System.AssignedTo": {"displayName": "Ada", "uniqueName": "ada@x"}}}
        assert workitems.get_string_field(item, "System.AssignedTo") == "Ada"

    def test_missing_and_null_fields(self):
        item = {"fields": {"System.Tags": None}}
        assert workitems.get_string_field(item, "System.Tags") == ""
        assert workitems.get_string_field(item, "System.Title") == ""

    def test_numbers_become_text(self):
        item = {"fields": {"Microsoft.VSTS.Common.Priority": 2}}
        assert workitems.get_string_field(item, "Microsoft.VSTS.Common.Priority") == "2"

    def test_clean_assigned_to(self):
        assert workitems.clean_assigned_to("Ada Lovelace <ada@example.com>") == "Ada Lovelace"
        assert workitems.clean_assigned_to("<odd>") == "<odd>"
        assert workitems.clean_assigned_to("") == ""


class TestRelations:
    def test_id_from_url(self):
        assert workitems.id_from_url("https://dev.azure.com/o/_apis/wit/workItems/42") == 42
        assert workitems.id_from_url("https://dev.azure.com/o/_apis/wit/workItems/42/") == 42
        assert workitems.id_from_url("vstfs:///Git/Commit/abc") == 0

    def test_parent_and_children(self, make_item):
        item = make_item(1, "x", children=[2, 3], parent=8)
        assert workitems.child_ids(item) == [2, 3]
        assert workitems.parent_id(item) == 8

    def test_no_relations(self):
        assert workitems.child_ids({"id": 1}) == []
        assert workitems.parent_id({"id": 1}) == 0


class TestText:
    def test_strip_html(self):
        text = workitems.strip_html("<div>One<br/>Two &amp; three</div><ul><li>a</li><li>b</li></ul>")
        assert text.splitlines() == ["One", "Two & three", "a", "b"]

    def test_merge_tags_dedupes_and_keeps_order(self):
        assert workitems.merge_tags("ui; api", " api ,backend,, ui") == "ui; api; backend"

    def test_merge_into_empty(self):
        assert workitems.merge_tags("", "first") == "first"


class TestToTemplate:
    def test_copies_known_fields_only(self, make_item):
        item = make_item(5, "Login", **{
            "System.Tags": "auth",
            "System.Rev": 12,
            "Custom.ApplicationName": "portal",
        })
        template = workitems.to_template(item)
        assert template.name == "Login"
        assert template.type == "User Story"
        assert "System.Rev" not in template.fields
        assert template.fields["Custom.ApplicationName"] == "portal"
        assert template.relations is None

    def test_children_and_placeholders(self, make_item):
        item = make_item(5, "Login", children=[6, 7], parent=1)
        child = make_item(6, "Tests", item_type="Task", **{"System.Description": "cover it"})
        template = workitems.to_template(item, [child])
        assert template.relations.parent_id == 1
        first, second = template.relations.children
        assert (first.title, first.type, first.description) == ("Tests", "Task", "cover it")
        assert first.fields == {"System.Id": 6}
        assert second.title == "Child Work Item #7"

    def test_child_fields_drop_source_id(self):
        child = ChildWorkItem(
            title="Build",
            description="do it",
            assigned_to="ada@example.com",
            fields={"System.Id": 6, "Microsoft.VSTS.Scheduling.RemainingWork": 4},
        )
        assert workitems.child_fields(child) == {
            "System.Title": "Build",
            "System.Description": "do it",
            "System.AssignedTo": "ada@example.com",
            "Microsoft.VSTS.Scheduling.RemainingWork": 4,
        }

    def test_changed_fields(self):
        original = {"System.Title": "a", "System.State": "New"}
        edited = {"System.Title": "b", "System.State": "New", "System.Tags": "x"}
        assert workitems.changed_fields(original, edited) == {"System.Title": "b", "System.Tags": "x"}
