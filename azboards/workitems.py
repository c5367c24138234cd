"""Helpers for reading work item payloads and converting them to templates.

Work items are the plain dicts returned by the REST API:
``{"id": 42, "fields": {...}, "relations": [{"rel": ..., "url": ...}]}``.
"""

import html
import re
from typing import Any

from .api import CHILD_LINK, PARENT_LINK
from .templates import ChildWorkItem, Relations, Template

IDENTITY_FIELDS = ("System.AssignedTo", "System.CreatedBy", "System.ChangedBy")

# Fields carried over when a work item is saved as a template
TEMPLATE_FIELDS = [
    "System.Title",
    "System.Description",
    "System.State",
    "System.Tags",
    "Microsoft.VSTS.Common.Priority",
    "Microsoft.VSTS.Common.AcceptanceCriteria",
    "System.AreaPath",
    "System.IterationPath",
    "Custom.ApplicationName",
]

# Work items the dashboard shows when no saved query has been run
DEFAULT_WIQL = (
    "SELECT [System.Id], [System.Title], [System.State], [System.AssignedTo] "
    "FROM WorkItems "
    "WHERE [System.TeamProject] = @project "
    "AND [System.WorkItemType] = 'User Story' "
    "AND [System.AssignedTo] = @me "
    "AND [System.State] NOT IN ('Closed', 'Removed') "
    "ORDER BY [System.ChangedDate] DESC"
)
DEFAULT_TOP = 100

_TAG_RE = re.compile(r"<[^>]+>")
_BREAK_RE = re.compile(r"<\s*(br|/p|/div|/li)\s*/?>", re.IGNORECASE)


def get_id(work_item: dict[str, Any]) -> int:
    return int(work_item.get("id") or work_item.get("fields", {}).get("System.Id") or 0)


def get_string_field(work_item: dict[str, Any], name: str) -> str:
    """Return a field as display text; identity fields use their display name."""
    fields = work_item.get("fields") or {}
    if name not in fields or fields[name] is None:
        return ""
    value = fields[name]
    if name in IDENTITY_FIELDS and isinstance(value, dict):
        return str(value.get("displayName") or value.get("uniqueName") or "")
    return str(value)


def clean_assigned_to(assigned_to: str) -> str:
    """Strip a trailing "<email>" from an identity string."""
    idx = assigned_to.find("<")
    if idx > 0:
        return assigned_to[:idx].strip()
    return assigned_to


def id_from_url(url: str) -> int:
    """Extract the work item id from the last segment of a relation URL."""
    tail = url.rstrip("/").rsplit("/", 1)[-1]
    return int(tail) if tail.isdigit() else 0


def related_ids(work_item: dict[str, Any], rel_type: str) -> list[int]:
    ids = []
    for rel in work_item.get("relations") or []:
        if rel.get("rel") == rel_type and rel.get("url"):
            rel_id = id_from_url(rel["url"])
            if rel_id > 0:
                ids.append(rel_id)
    return ids


def parent_id(work_item: dict[str, Any]) -> int:
    parents = related_ids(work_item, PARENT_LINK)
    return parents[0] if parents else 0


def child_ids(work_item: dict[str, Any]) -> list[int]:
    return related_ids(work_item, CHILD_LINK)


def strip_html(text: str) -> str:
    """Reduce an HTML rich-text field to plain lines."""
    text = _BREAK_RE.sub("\n", text)
    text = _TAG_RE.sub("", text)
    lines = [line.rstrip() for line in html.unescape(text).splitlines()]
    return "\n".join(lines).strip()


def split_tags(tags: str) -> list[str]:
    return [t.strip() for t in tags.split(";") if t.strip()]


def merge_tags(existing: str, new_input: str) -> str:
    """Merge comma separated input into a '; ' separated tag string."""
    merged: list[str] = []
    for tag in split_tags(existing) + [t.strip() for t in new_input.split(",")]:
        if tag and tag not in merged:
            merged.append(tag)
    return "; ".join(merged)


def to_template(
    work_item: dict[str, Any],
    children: list[dict[str, Any]] | None = None,
) -> Template:
    """Convert a work item, plus its fetched children, to a template.

    ``children`` holds full child payloads. Child ids present in the
    relations but missing from ``children`` get a placeholder entry.
    """
    item_id = get_id(work_item)
    fields = work_item.get("fields") or {}
    template = Template(
        name=get_string_field(work_item, "System.Title"),
        type=get_string_field(work_item, "System.WorkItemType"),
        description=f"Template created from work item #{item_id}",
        fields={name: fields[name] for name in TEMPLATE_FIELDS if name in fields},
    )

    relations = Relations(parent_id=parent_id(work_item))
    fetched = {get_id(c): c for c in children or []}
    for child_id in child_ids(work_item):
        child = fetched.get(child_id)
        if child is None:
            relations.children.append(ChildWorkItem(
                title=f"Child Work Item #{child_id}",
                type="Task",
                fields={"System.Id": child_id},
            ))
            continue
        relations.children.append(ChildWorkItem(
            title=get_string_field(child, "System.Title"),
            type=get_string_field(child, "System.WorkItemType") or "Task",
            description=get_string_field(child, "System.Description"),
            fields={"System.Id": child_id},
        ))

    if not relations.is_empty():
        template.relations = relations
    return template


def child_fields(child: ChildWorkItem) -> dict[str, Any]:
    """Build the create-request fields for a template child."""
    fields: dict[str, Any] = {"System.Title": child.title}
    if child.description:
        fields["System.Description"] = child.description
    if child.assigned_to:
        fields["System.AssignedTo"] = child.assigned_to
    for name, value in child.fields.items():
        # The source id is informational; the new child gets its own
        if name == "System.Id":
            continue
        fields[name] = value
    return fields


def changed_fields(original: dict[str, Any], edited: dict[str, Any]) -> dict[str, Any]:
    """Return the fields in ``edited`` whose values differ from ``original``."""
    return {
        name: value
        for name, value in edited.items()
        if name not in original or original[name] != value
    }
