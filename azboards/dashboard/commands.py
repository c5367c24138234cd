"""Commands: deferred units of work that each yield exactly one Message.

A command wraps a blocking call (REST request, file I/O, editor process)
in a closure. The host runs it off the render path and feeds the returned
message back into Dashboard.handle(). Commands never touch tab state; any
data they produce travels inside the message.

Every factory here catches collaborator failures and reports them in the
result message, so a started operation always finishes with a message.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from .. import workitems
from ..templates import Template, TemplateStore, sanitize_filename
from .messages import (
    ClearNotification,
    ConfirmRequest,
    EditorClosed,
    Message,
    OpenEditor,
    QueriesLoaded,
    SelectionRequest,
    TemplateMutated,
    TemplatesLoaded,
    WorkItemCreated,
    WorkItemDeleted,
    WorkItemDetailsLoaded,
    WorkItemDownloaded,
    WorkItemsLoaded,
    WorkItemUpdated,
)

NOTIFICATION_TIMEOUT = 3.0
DEFAULT_EDITOR = "vi"

_log = logging.getLogger("azboards.dashboard")


@dataclass
class Command:
    """A closure producing one Message.

    ``inline`` commands are cheap and may run on the UI thread, ``delay``
    schedules the call after that many seconds, and ``suspend`` asks the
    host to release the terminal while the command runs.
    """

    fn: Callable[[], Message]
    name: str = ""
    inline: bool = False
    delay: float = 0.0
    suspend: bool = False

    def __call__(self) -> Message:
        return self.fn()

    def __repr__(self) -> str:
        return f"Command({self.name!r})"


def emit(msg: Message) -> Command:
    """Wrap an already-known message as a command."""
    return Command(lambda: msg, name=f"emit:{type(msg).__name__}", inline=True)


def clear_notification_after(seq: int, delay: float = NOTIFICATION_TIMEOUT) -> Command:
    return Command(lambda: ClearNotification(seq), name="clear_notification", inline=True, delay=delay)


def _err(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


# ---------------------------------------------------------------------------
# Loads
# ---------------------------------------------------------------------------


def fetch_queries(client: Any, generation: int, logger: logging.Logger = _log) -> Command:
    def run() -> Message:
        try:
            queries = client.list_queries(depth=2)
        except Exception as e:
            logger.warning("Failed to load queries: %s", e)
            return QueriesLoaded(error=_err(e), generation=generation)
        return QueriesLoaded(queries=queries, generation=generation)

    return Command(run, name="fetch_queries")


def fetch_work_items(
    client: Any,
    generation: int,
    query_id: str | None = None,
    source: str = "",
    logger: logging.Logger = _log,
) -> Command:
    """Run a saved query, or the default "my active stories" WIQL."""

    def run() -> Message:
        try:
            if query_id:
                items = client.execute_query(query_id, top=workitems.DEFAULT_TOP)
            else:
                items = client.list_work_items(workitems.DEFAULT_WIQL, top=workitems.DEFAULT_TOP)
        except Exception as e:
            logger.warning("Failed to load work items (%s): %s", source or "default", e)
            return WorkItemsLoaded(error=_err(e), generation=generation, source=source)
        return WorkItemsLoaded(items=items, generation=generation, source=source)

    return Command(run, name="fetch_work_items")


def _template_files(nodes: list[Any]) -> list[str]:
    paths = []
    for node in nodes:
        if node.is_folder:
            paths.extend(_template_files(node.children))
        else:
            paths.append(node.path)
    return paths


def fetch_templates(store: TemplateStore, generation: int, logger: logging.Logger = _log) -> Command:
    """List the template tree and parse every file for the preview pane."""

    def run() -> Message:
        try:
            tree = store.list_tree()
        except Exception as e:
            logger.warning("Failed to list templates: %s", e)
            return TemplatesLoaded(error=_err(e), generation=generation)

        previews: dict[str, Any] = {}
        for path in _template_files(tree):
            try:
                previews[path] = store.load(path)
            except Exception as e:
                previews[path] = _err(e)
        return TemplatesLoaded(tree=tree, previews=previews, generation=generation)

    return Command(run, name="fetch_templates")


def format_relations(item: dict[str, Any], titles: dict[int, str]) -> str:
    """Group relations into parent, child and other lines."""
    relations = item.get("relations") or []
    if not relations:
        return ""

    parents: list[str] = []
    children: list[str] = []
    others: list[str] = []
    for rel in relations:
        rel_type = rel.get("rel") or ""
        url = rel.get("url") or ""
        rel_id = workitems.id_from_url(url)
        label = f"#{rel_id} - {titles[rel_id]}" if titles.get(rel_id) else f"#{rel_id}"
        if rel_type == workitems.PARENT_LINK:
            parents.append(f"  Parent: {label}")
        elif rel_type == workitems.CHILD_LINK:
            children.append(f"  Child: {label}")
        else:
            name = rel.get("attributes", {}).get("name") or rel_type.rsplit("-", 1)[-1]
            others.append(f"  {name}: {label if rel_id else url}")

    lines = [f"Relations ({len(relations)}):"] + parents + children + others
    return "\n".join(lines)


def fetch_details(
    client: Any,
    item_id: int,
    known: dict[int, dict[str, Any]],
    generation: int = 0,
    logger: logging.Logger = _log,
) -> Command:
    """Fetch a work item with relations, plus the titles of related items.

    ``known`` is a snapshot of the caller's cache; only ids missing from it
    are requested.
    """
    known = dict(known)

    def run() -> Message:
        try:
            item = client.get_work_item(item_id)
        except Exception as e:
            logger.warning("Failed to load work item #%d: %s", item_id, e)
            return WorkItemDetailsLoaded(item_id=item_id, error=_err(e), generation=generation)

        related: dict[int, dict[str, Any]] = {}
        titles: dict[int, str] = {}
        for rel in item.get("relations") or []:
            rel_id = workitems.id_from_url(rel.get("url") or "")
            if rel_id <= 0 or rel_id in titles:
                continue
            other = known.get(rel_id)
            if other is None:
                try:
                    other = client.get_work_item(rel_id)
                except Exception as e:
                    logger.debug("Could not fetch related work item #%d: %s", rel_id, e)
                    continue
                related[rel_id] = other
            titles[rel_id] = workitems.get_string_field(other, "System.Title")

        return WorkItemDetailsLoaded(
            item_id=item_id,
            item=item,
            relations_text=format_relations(item, titles),
            related=related,
            generation=generation,
        )

    return Command(run, name="fetch_details")


# ---------------------------------------------------------------------------
# Work item mutations
# ---------------------------------------------------------------------------


def prepare_delete(client: Any, item_id: int, logger: logging.Logger = _log) -> Command:
    """Resolve the item's children and ask for confirmation."""

    def run() -> Message:
        try:
            item = client.get_work_item(item_id)
        except Exception as e:
            logger.warning("Failed to fetch work item #%d for deletion: %s", item_id, e)
            return WorkItemDeleted(item_id=item_id, error=f"failed to fetch work item details: {_err(e)}")

        children = workitems.child_ids(item)
        title = workitems.get_string_field(item, "System.Title")
        logger.info("Work item #%d has %d child work items", item_id, len(children))
        if children:
            text = f"Delete work item #{item_id} '{title}' and its {len(children)} child work item(s)?"
        else:
            text = f"Delete work item #{item_id} '{title}'?"
        return ConfirmRequest(
            message=text,
            action="delete_work_item",
            context={"id": item_id, "children": children},
        )

    return Command(run, name="prepare_delete")


def delete_work_item_tree(
    client: Any,
    item_id: int,
    children: list[int],
    logger: logging.Logger = _log,
) -> Command:
    """Delete every child, last first, then the parent.

    The first failing child stops the operation before the parent is touched.
    """
    children = list(children)

    def run() -> Message:
        for child_id in reversed(children):
            try:
                client.delete_work_item(child_id)
            except Exception as e:
                logger.warning("Failed to delete child work item #%d: %s", child_id, e)
                return WorkItemDeleted(
                    item_id=item_id,
                    error=f"failed to delete child work item #{child_id}: {_err(e)}",
                )
            logger.info("Deleted child work item #%d", child_id)

        try:
            client.delete_work_item(item_id)
        except Exception as e:
            logger.warning("Failed to delete work item #%d: %s", item_id, e)
            return WorkItemDeleted(item_id=item_id, children_deleted=len(children), error=_err(e))

        logger.info("Deleted work item #%d with %d children", item_id, len(children))
        return WorkItemDeleted(item_id=item_id, children_deleted=len(children))

    return Command(run, name="delete_work_item")


def _fetch_as_template(client: Any, item_id: int, logger: logging.Logger) -> Template:
    item = client.get_work_item(item_id)
    children = []
    for child_id in workitems.child_ids(item):
        try:
            children.append(client.get_work_item(child_id))
        except Exception:
            logger.debug("Child #%d unavailable, using placeholder", child_id)
    return workitems.to_template(item, children)


def download_work_item(
    client: Any,
    store: TemplateStore,
    item_id: int,
    logger: logging.Logger = _log,
) -> Command:
    """Save a work item and its children as workitem-<id>-<title>.yaml."""

    def run() -> Message:
        try:
            template = _fetch_as_template(client, item_id, logger)
            filename = f"workitem-{item_id}-{sanitize_filename(template.name)}.yaml"
            path = store.save(template, filename)
        except Exception as e:
            logger.warning("Failed to download work item #%d: %s", item_id, e)
            return WorkItemDownloaded(item_id=item_id, error=_err(e))
        logger.info("Downloaded work item #%d as template %s", item_id, path)
        return WorkItemDownloaded(item_id=item_id, path=path)

    return Command(run, name="download_work_item")


def prepare_edit_work_item(
    client: Any,
    item_id: int,
    tmp_dir: Path,
    logger: logging.Logger = _log,
) -> Command:
    """Write the item to tmp/edit-workitem-<id>.yaml and ask for the editor."""

    def run() -> Message:
        try:
            template = _fetch_as_template(client, item_id, logger)
            tmp_dir.mkdir(parents=True, exist_ok=True)
            path = tmp_dir / f"edit-workitem-{item_id}.yaml"
            path.write_text(template.to_yaml())
            os.chmod(path, 0o600)
        except Exception as e:
            logger.warning("Failed to prepare work item #%d for editing: %s", item_id, e)
            return WorkItemUpdated(item_id=item_id, error=_err(e))
        return OpenEditor(
            path=str(path),
            purpose="work_item",
            context={"id": item_id, "fields": dict(template.fields)},
        )

    return Command(run, name="prepare_edit_work_item")


def editor_command(path: str) -> list[str]:
    """Build the editor argv from $EDITOR, falling back to vi."""
    editor = os.environ.get("EDITOR", "").strip() or DEFAULT_EDITOR
    return shlex.split(editor) + [path]


def run_editor(request: OpenEditor, logger: logging.Logger = _log) -> Command:
    """Run the editor to completion. The host releases the terminal around it."""

    def run() -> Message:
        argv = editor_command(request.path)
        logger.debug("Running editor: %s", argv)
        try:
            result = subprocess.run(argv)
        except OSError as e:
            logger.warning("Failed to start editor %s: %s", argv[0], e)
            return EditorClosed(request.path, request.purpose, request.context, error=f"failed to start editor: {e}")
        if result.returncode != 0:
            return EditorClosed(
                request.path,
                request.purpose,
                request.context,
                error=f"editor exited with status {result.returncode}",
            )
        return EditorClosed(request.path, request.purpose, request.context)

    return Command(run, name="run_editor", suspend=True)


def apply_edit(
    client: Any,
    item_id: int,
    path: str,
    original: dict[str, Any],
    logger: logging.Logger = _log,
) -> Command:
    """Re-read the edited file and send only the fields that changed."""

    def run() -> Message:
        edit_file = Path(path)
        try:
            edited = Template.from_yaml(edit_file.read_text())
        except Exception as e:
            logger.warning("Failed to read edited work item #%d: %s", item_id, e)
            return WorkItemUpdated(item_id=item_id, error=f"failed to read edited file: {_err(e)}")

        changes = workitems.changed_fields(original, edited.fields)
        if not changes:
            edit_file.unlink(missing_ok=True)
            return WorkItemUpdated(item_id=item_id, changed=False)

        try:
            client.update_work_item(item_id, changes)
        except Exception as e:
            logger.warning("Failed to update work item #%d: %s", item_id, e)
            return WorkItemUpdated(item_id=item_id, error=_err(e))

        edit_file.unlink(missing_ok=True)
        return WorkItemUpdated(item_id=item_id)

    return Command(run, name="apply_edit")


def update_fields(
    client: Any,
    item_id: int,
    fields: dict[str, Any],
    logger: logging.Logger = _log,
) -> Command:
    def run() -> Message:
        try:
            client.update_work_item(item_id, fields)
        except Exception as e:
            logger.warning("Failed to update work item #%d: %s", item_id, e)
            return WorkItemUpdated(item_id=item_id, error=_err(e))
        return WorkItemUpdated(item_id=item_id)

    return Command(run, name="update_fields")


def add_tags(client: Any, item_id: int, tags_input: str, logger: logging.Logger = _log) -> Command:
    """Merge comma separated tags into the item's existing tags."""

    def run() -> Message:
        try:
            item = client.get_work_item(item_id)
            existing = workitems.get_string_field(item, "System.Tags")
            client.update_work_item(item_id, {"System.Tags": workitems.merge_tags(existing, tags_input)})
        except Exception as e:
            logger.warning("Failed to add tags to work item #%d: %s", item_id, e)
            return WorkItemUpdated(item_id=item_id, error=_err(e))
        return WorkItemUpdated(item_id=item_id)

    return Command(run, name="add_tags")


def load_states(
    client: Any,
    item_id: int,
    work_item_type: str,
    logger: logging.Logger = _log,
) -> Command:
    """Fetch the states of the item's type and offer them for selection."""

    def run() -> Message:
        try:
            states = client.list_work_item_states(work_item_type)
        except Exception as e:
            logger.warning("Failed to fetch states for '%s': %s", work_item_type, e)
            return WorkItemUpdated(item_id=item_id, error=f"could not load states: {_err(e)}")
        if not states:
            return WorkItemUpdated(item_id=item_id, error=f"no states defined for '{work_item_type}'")
        return SelectionRequest(
            title=f"Change state of #{item_id}",
            options=states,
            action="change_state",
            context={"id": item_id},
        )

    return Command(run, name="load_states")


def create_from_template(
    client: Any,
    store: TemplateStore,
    path: str,
    logger: logging.Logger = _log,
) -> Command:
    """Create the template's work item, then each child under it.

    A failing child is logged and skipped; the remaining children are still
    created.
    """

    def run() -> Message:
        try:
            template = store.load(path)
            relations = template.relations
            parent = relations.parent_id if relations else 0
            created = client.create_work_item(template.type, dict(template.fields), parent)
        except Exception as e:
            logger.warning("Failed to create work item from %s: %s", path, e)
            return WorkItemCreated(error=_err(e))

        new_id = workitems.get_id(created)
        logger.info("Created work item #%d from template %s", new_id, path)

        ok = failed = 0
        for child in relations.children if relations else []:
            try:
                client.create_work_item(child.type or "Task", workitems.child_fields(child), new_id)
                ok += 1
            except Exception as e:
                logger.warning("Failed to create child '%s': %s", child.title, e)
                failed += 1
        return WorkItemCreated(item_id=new_id, children_created=ok, children_failed=failed)

    return Command(run, name="create_from_template")


# ---------------------------------------------------------------------------
# Template store mutations
# ---------------------------------------------------------------------------


def _store_op(operation: str, fn: Callable[[], str], logger: logging.Logger) -> Command:
    def run() -> Message:
        try:
            path = fn()
        except Exception as e:
            logger.warning("Template %s failed: %s", operation, e)
            return TemplateMutated(operation=operation, error=_err(e))
        return TemplateMutated(operation=operation, path=path)

    return Command(run, name=f"template_{operation}")


def copy_template(store: TemplateStore, path: str, new_name: str, logger: logging.Logger = _log) -> Command:
    return _store_op("copy", lambda: store.copy(path, new_name), logger)


def rename_template(store: TemplateStore, path: str, new_name: str, logger: logging.Logger = _log) -> Command:
    return _store_op("rename", lambda: store.rename(path, new_name), logger)


def new_template(store: TemplateStore, parent: str, name: str, logger: logging.Logger = _log) -> Command:
    return _store_op("new_template", lambda: store.new_template(parent, name), logger)


def new_folder(store: TemplateStore, parent: str, name: str, logger: logging.Logger = _log) -> Command:
    return _store_op("new_folder", lambda: store.new_folder(parent, name), logger)


def delete_template(store: TemplateStore, path: str, logger: logging.Logger = _log) -> Command:
    def remove() -> str:
        store.delete(path)
        return path

    return _store_op("delete", remove, logger)
