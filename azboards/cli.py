"""Azure Boards CLI: manage work items and templates from the command line."""

import argparse
import getpass
import json
import logging
import subprocess
import sys
from pathlib import Path
from typing import Any

from . import __version__, workitems
from .api import BoardsClient
from .config import (
    CONFIG_KEYS,
    get_config_path,
    get_templates_dir,
    get_token,
    is_authenticated,
    load_config,
    logout,
    save_token,
    set_config_value,
)
from .dashboard.commands import create_from_template, editor_command
from .exceptions import BoardsError
from .templates import Template, TemplateStore

logger = logging.getLogger(__name__)


def _fmt_table(rows: list[list[str]], headers: list[str]) -> str:
    """Format rows as a simple aligned table."""
    all_rows = [headers] + rows
    widths = [max(len(r[i]) for r in all_rows) for i in range(len(headers))]
    lines = ["  ".join(h.ljust(w) for h, w in zip(headers, widths))]
    lines.append("  ".join("-" * w for w in widths))
    for row in rows:
        lines.append("  ".join(c.ljust(w) for c, w in zip(row, widths)))
    return "\n".join(lines)


def _parse_fields(pairs: list[str] | None) -> dict[str, Any]:
    """Parse repeated --field Name=Value options."""
    fields: dict[str, Any] = {}
    for pair in pairs or []:
        name, sep, value = pair.partition("=")
        if not sep or not name.strip():
            raise BoardsError(f"invalid --field '{pair}', expected Name=Value")
        fields[name.strip()] = value
    return fields


def _parse_ids(values: list[str]) -> list[int]:
    """Parse work item ids given as '3', '3,4,5' or several arguments."""
    ids: list[int] = []
    for value in values:
        for part in value.split(","):
            part = part.strip()
            if not part:
                continue
            try:
                ids.append(int(part))
            except ValueError:
                raise BoardsError(f"invalid work item ID: {part}") from None
    if not ids:
        raise BoardsError("no work item IDs given")
    return ids


def _print_work_items(items: list[dict[str, Any]], fmt: str = "table") -> None:
    """Print work items as a table, as JSON, or as bare ids."""
    if fmt == "json":
        print(json.dumps(items, indent=2))
        return
    if fmt == "ids":
        for item in items:
            print(workitems.get_id(item))
        return

    if not items:
        print("No work items found.")
        return

    headers = ["ID", "TYPE", "STATE", "ASSIGNED_TO", "TITLE"]
    rows = []
    for item in items:
        rows.append([
            str(workitems.get_id(item)),
            workitems.get_string_field(item, "System.WorkItemType"),
            workitems.get_string_field(item, "System.State"),
            workitems.clean_assigned_to(workitems.get_string_field(item, "System.AssignedTo")),
            workitems.get_string_field(item, "System.Title")[:60],
        ])

    print(_fmt_table(rows, headers))
    print(f"\n{len(items)} work item(s)")


def _find_query(nodes: list[dict[str, Any]], name: str) -> dict[str, Any] | None:
    """Depth-first search for a saved query (not a folder) by name, ignoring case."""
    for node in nodes:
        if not node.get("isFolder") and node.get("name", "").lower() == name.lower():
            return node
        found = _find_query(node.get("children") or [], name)
        if found:
            return found
    return None


def _lookup_query(client: BoardsClient, name: str) -> dict[str, Any]:
    query = _find_query(client.list_queries(depth=2), name)
    if query is None:
        raise BoardsError(f"query '{name}' not found")
    if not query.get("id"):
        raise BoardsError(f"query '{name}' has no ID")
    return query


def get_client() -> BoardsClient:
    cfg = load_config()
    cfg.require()
    return BoardsClient(cfg.organization_url, cfg.project, get_token())


def get_store() -> TemplateStore:
    return TemplateStore(get_templates_dir())


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------

def cmd_dashboard(args: argparse.Namespace) -> None:
    """Launch the interactive dashboard."""
    from .dashboard.__main__ import run

    run(debug=args.debug)


def cmd_auth_login(args: argparse.Namespace) -> None:
    """Store a personal access token."""
    token = args.token or getpass.getpass("Personal access token: ")
    if not token.strip():
        raise BoardsError("no token given")
    path = save_token(token)
    print(f"Token saved to {path}")


def cmd_auth_logout(args: argparse.Namespace) -> None:
    logout()
    print("Logged out.")


def cmd_auth_status(args: argparse.Namespace) -> None:
    if is_authenticated():
        print("Authenticated.")
    else:
        print("Not authenticated. Run 'azb auth login'.")


def cmd_config_set(args: argparse.Namespace) -> None:
    set_config_value(args.key, args.value)
    print(f"Set {args.key} = {args.value}")


def cmd_config_show(args: argparse.Namespace) -> None:
    """Print every config key and where the file lives."""
    cfg = load_config()
    print(f"Config file: {get_config_path()}")
    for key in CONFIG_KEYS:
        print(f"  {key:20s}  {getattr(cfg, key)}")
    if cfg.organization:
        print(f"  {'organization_url':20s}  {cfg.organization_url}")


def cmd_config_get(args: argparse.Namespace) -> None:
    value = getattr(load_config(), args.key)
    if value in ("", None):
        print(f"{args.key} is not set")
    else:
        print(f"{args.key} = {value}")


def cmd_list(args: argparse.Namespace) -> None:
    """List work items in a table."""
    client = get_client()
    items = client.list_work_items(args.wiql or workitems.DEFAULT_WIQL, top=args.top)
    _print_work_items(items, args.format)


def cmd_query_list(args: argparse.Namespace) -> None:
    """Print the saved query tree."""
    nodes = get_client().list_queries(depth=2)
    if args.format == "json":
        print(json.dumps(nodes, indent=2))
        return

    def walk(items, depth: int) -> int:
        count = 0
        for node in items:
            indent = "  " * depth
            if node.get("isFolder"):
                print(f"{indent}{node.get('name', '')}/")
                count += walk(node.get("children") or [], depth + 1)
            else:
                print(f"{indent}{node.get('name', '')}")
                count += 1
        return count

    if walk(nodes, 0) == 0:
        print("No saved queries found.")


def cmd_query_show(args: argparse.Namespace) -> None:
    """Print a saved query's details and WIQL."""
    client = get_client()
    query = client.get_query(_lookup_query(client, args.name)["id"])
    if args.format == "json":
        print(json.dumps(query, indent=2))
        return

    print(f"Name: {query.get('name', args.name)}")
    if query.get("path"):
        print(f"Path: {query['path']}")
    print(f"ID: {query.get('id', '')}")
    if "isPublic" in query:
        print(f"Type: {'Shared' if query['isPublic'] else 'Personal'}")
    if query.get("wiql"):
        print(f"\nWIQL:\n{query['wiql']}")


def cmd_query_run(args: argparse.Namespace) -> None:
    """Run a saved query by name and print its results."""
    client = get_client()
    query = _lookup_query(client, args.name)
    items = client.execute_query(query["id"], top=args.top)
    _print_work_items(items, args.format)


def cmd_inspect(args: argparse.Namespace) -> None:
    """Show the fields of a work item type and which are required."""
    client = get_client()
    definition = client.get_work_item_type(args.type) or {}
    fields = [f for f in definition.get("fields", []) if f.get("name") and f.get("referenceName")]

    print(f"Work Item Type: {args.type}")
    if definition.get("description"):
        print(f"Description: {definition['description']}")

    print("\nRequired Fields:")
    required = [f for f in fields if f.get("alwaysRequired")]
    if not required:
        print("  (none)")
    for f in required:
        help_text = f" ({f['helpText']})" if f.get("helpText") else ""
        print(f"  - {f['name']} [{f['referenceName']}]{help_text}")

    print("\nAll Fields:")
    for f in fields:
        line = f"  - {f['name']} [{f['referenceName']}]"
        if f.get("alwaysRequired"):
            line += " [REQUIRED]"
        if f.get("defaultValue") not in (None, ""):
            line += f" (default: {f['defaultValue']})"
        print(line)


def cmd_show(args: argparse.Namespace) -> None:
    """Show full detail for a single work item."""
    client = get_client()
    item = client.get_work_item(args.id)

    print(f"#{workitems.get_id(item)}  {workitems.get_string_field(item, 'System.Title')}")
    fields = item.get("fields") or {}
    for name in sorted(fields):
        value = workitems.get_string_field(item, name)
        if not value:
            continue
        if name == "System.Description":
            value = workitems.strip_html(value).replace("\n", " ")
        print(f"  {name:40s}  {value}")

    parent = workitems.parent_id(item)
    if parent:
        print(f"\n  Parent: #{parent}")
    children = workitems.child_ids(item)
    if children:
        print(f"  Children: {', '.join(f'#{c}' for c in children)}")


def cmd_create(args: argparse.Namespace) -> None:
    """Create a work item from flags or from a stored template."""
    client = get_client()

    if args.template:
        result = create_from_template(client, get_store(), args.template, logger)()
        if result.error:
            raise BoardsError(result.error)
        print(f"Created work item #{result.item_id}")
        if result.children_created:
            print(f"  {result.children_created} child work item(s) created")
        if result.children_failed:
            print(f"  {result.children_failed} child work item(s) failed", file=sys.stderr)
        return

    if not args.type or not args.title:
        raise BoardsError("--type and --title are required unless --template is given")

    cfg = load_config()
    fields = {"System.Title": args.title}
    if cfg.default_area_path:
        fields["System.AreaPath"] = cfg.default_area_path
    if cfg.default_iteration:
        fields["System.IterationPath"] = cfg.default_iteration
    fields.update(_parse_fields(args.field))

    created = client.create_work_item(args.type, fields, parent_id=args.parent or 0)
    print(f"Created work item #{workitems.get_id(created)}")


def cmd_update(args: argparse.Namespace) -> None:
    """Apply the same field changes to one or more work items."""
    ids = _parse_ids(args.ids)
    fields = _parse_fields(args.field)
    if not fields:
        raise BoardsError("nothing to update; pass at least one --field Name=Value")
    client = get_client()

    failed = 0
    for item_id in ids:
        try:
            client.update_work_item(item_id, fields)
        except BoardsError as e:
            if len(ids) == 1:
                raise
            failed += 1
            print(f"Failed to update work item #{item_id}: {e}", file=sys.stderr)
            continue
        print(f"Updated work item #{item_id}")

    if len(ids) > 1:
        print(f"\n{len(ids) - failed} updated, {failed} failed")
    if failed:
        raise BoardsError("some work items failed to update")


def cmd_delete(args: argparse.Namespace) -> None:
    """Delete one or more work items, each with its children."""
    ids = _parse_ids(args.ids)
    client = get_client()

    targets: list[tuple[int, dict[str, Any] | None]] = []
    for item_id in ids:
        try:
            targets.append((item_id, client.get_work_item(item_id)))
        except BoardsError as e:
            if len(ids) == 1:
                raise
            logger.warning("Could not fetch work item #%d: %s", item_id, e)
            targets.append((item_id, None))

    if not args.yes:
        if len(targets) == 1:
            item_id, item = targets[0]
            children = workitems.child_ids(item)
            title = workitems.get_string_field(item, "System.Title")
            suffix = f" and its {len(children)} child work item(s)" if children else ""
            prompt = f"Delete work item #{item_id} '{title}'{suffix}? [y/N] "
        else:
            print("The following work items will be deleted:")
            for item_id, item in targets:
                if item is None:
                    print(f"  #{item_id} (unable to fetch details)")
                else:
                    print(f"  #{item_id} {workitems.get_string_field(item, 'System.Title')}")
            prompt = f"Delete {len(targets)} work items and their children? [y/N] "
        if input(prompt).lower() != "y":
            print("Cancelled.")
            return

    failed = 0
    for item_id, item in targets:
        try:
            for child_id in reversed(workitems.child_ids(item) if item else []):
                client.delete_work_item(child_id)
                print(f"Deleted child #{child_id}")
            client.delete_work_item(item_id)
        except BoardsError as e:
            if len(targets) == 1:
                raise
            failed += 1
            print(f"Failed to delete work item #{item_id}: {e}", file=sys.stderr)
            continue
        print(f"Deleted work item #{item_id}")

    if len(targets) > 1:
        print(f"\n{len(targets) - failed} deleted, {failed} failed")
    if failed:
        raise BoardsError("some work items failed to delete")


def cmd_template_list(args: argparse.Namespace) -> None:
    store = get_store()

    def walk(nodes, depth: int) -> int:
        count = 0
        for node in nodes:
            indent = "  " * depth
            if node.is_folder:
                print(f"{indent}{node.name}/")
                count += walk(node.children, depth + 1)
            else:
                print(f"{indent}{node.name}")
                count += 1
        return count

    count = walk(store.list_tree(), 0)
    if count == 0:
        print("No templates found.")
    else:
        print(f"\n{count} template(s) in {store.root}")


def cmd_template_show(args: argparse.Namespace) -> None:
    print(get_store().read_text(args.name), end="")


def cmd_template_init(args: argparse.Namespace) -> None:
    """Create a starter template for the given work item type."""
    store = get_store()
    template = Template(
        name=args.name,
        type=args.type,
        description=f"{args.type} template",
        fields={"System.Title": "", "System.Description": ""},
    )
    if store.exists(f"{args.name}.yaml"):
        raise BoardsError(f"template '{args.name}' already exists")
    path = store.save(template, args.name)
    print(f"Created template {store.root / path}")


def cmd_template_save(args: argparse.Namespace) -> None:
    """Save --type/--title/--field options as a template, replacing any existing one."""
    fields = {}
    if args.title:
        fields["System.Title"] = args.title
    fields.update(_parse_fields(args.field))
    template = Template(
        name=Path(args.name).stem,
        type=args.type,
        description=args.description or "",
        fields=fields,
    )
    store = get_store()
    path = store.save(template, args.name)
    print(f"Saved template {store.root / path}")


def cmd_template_path(args: argparse.Namespace) -> None:
    store = get_store()
    print(store.path_of(args.name) if args.name else store.root)


def cmd_template_edit(args: argparse.Namespace) -> None:
    """Open a template in $EDITOR and check it still parses afterwards."""
    store = get_store()
    path = store.path_of(args.name)
    if not path.is_file():
        raise BoardsError(
            f"template '{args.name}' not found. Use 'azb template init {args.name}' to create it"
        )

    argv = editor_command(str(path))
    logger.debug("Running editor: %s", argv)
    try:
        result = subprocess.run(argv)
    except OSError as e:
        raise BoardsError(f"failed to start editor: {e}") from e
    if result.returncode != 0:
        raise BoardsError(f"editor exited with status {result.returncode}")

    store.load(args.name)
    print(f"Template '{args.name}' updated")


def cmd_template_delete(args: argparse.Namespace) -> None:
    store = get_store()
    path = store.path_of(args.name)
    if not path.is_file():
        raise BoardsError(f"template '{args.name}' not found")
    if not args.yes:
        answer = input(f"Delete template '{args.name}'? [y/N] ")
        if answer.lower() != "y":
            print("Cancelled.")
            return
    store.delete(path.relative_to(store.root.resolve()).as_posix())
    print(f"Deleted template '{args.name}'")


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="azb",
        description="Azure Boards work item CLI",
    )
    parser.add_argument(
        "--version", "-V",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    sub = parser.add_subparsers(dest="command")

    # dashboard
    p_dash = sub.add_parser("dashboard", help="Launch the interactive dashboard")
    p_dash.add_argument("--debug", action="store_true", help="Log debug output to dashboard.log")
    p_dash.set_defaults(func=cmd_dashboard)

    # auth
    p_auth = sub.add_parser("auth", help="Manage the personal access token")
    auth_sub = p_auth.add_subparsers(dest="auth_command")
    p_login = auth_sub.add_parser("login", help="Store a personal access token")
    p_login.add_argument("--token", help="Token (prompted for when omitted)")
    p_login.set_defaults(func=cmd_auth_login)
    auth_sub.add_parser("logout", help="Remove the stored token").set_defaults(func=cmd_auth_logout)
    auth_sub.add_parser("status", help="Show authentication status").set_defaults(func=cmd_auth_status)

    # config
    p_config = sub.add_parser("config", help="Show or change configuration")
    config_sub = p_config.add_subparsers(dest="config_command")
    p_set = config_sub.add_parser("set", help="Set a config value")
    p_set.add_argument("key", choices=CONFIG_KEYS, help="Config key")
    p_set.add_argument("value", help="New value")
    p_set.set_defaults(func=cmd_config_set)
    config_sub.add_parser(
        "show", aliases=["list"], help="Show configuration"
    ).set_defaults(func=cmd_config_show)
    p_get = config_sub.add_parser("get", help="Print one config value")
    p_get.add_argument("key", choices=CONFIG_KEYS, help="Config key")
    p_get.set_defaults(func=cmd_config_get)

    # list
    p_list = sub.add_parser("list", help="List work items")
    p_list.add_argument("--wiql", help="WIQL query (default: my active stories)")
    p_list.add_argument("--top", type=int, default=workitems.DEFAULT_TOP, help="Maximum number of items")
    p_list.add_argument("--format", choices=["table", "json", "ids"], default="table", help="Output format")
    p_list.set_defaults(func=cmd_list)

    # query
    p_query = sub.add_parser("query", help="List, show and run saved queries")
    query_sub = p_query.add_subparsers(dest="query_command")
    p_qlist = query_sub.add_parser("list", help="List saved queries")
    p_qlist.add_argument("--format", choices=["table", "json"], default="table", help="Output format")
    p_qlist.set_defaults(func=cmd_query_list)
    p_qshow = query_sub.add_parser("show", help="Show a saved query and its WIQL")
    p_qshow.add_argument("name", help="Query name")
    p_qshow.add_argument("--format", choices=["text", "json"], default="text", help="Output format")
    p_qshow.set_defaults(func=cmd_query_show)
    p_qrun = query_sub.add_parser("run", help="Run a saved query")
    p_qrun.add_argument("name", help="Query name")
    p_qrun.add_argument("--top", type=int, default=50, help="Maximum number of results")
    p_qrun.add_argument("--format", choices=["table", "json", "ids"], default="table", help="Output format")
    p_qrun.set_defaults(func=cmd_query_run)

    # inspect <type>
    p_inspect = sub.add_parser("inspect", help="Show the fields of a work item type")
    p_inspect.add_argument("type", help="Work item type (e.g. 'User Story')")
    p_inspect.set_defaults(func=cmd_inspect)

    # show <id>
    p_show = sub.add_parser("show", help="Show work item detail")
    p_show.add_argument("id", type=int, help="Work item ID")
    p_show.set_defaults(func=cmd_show)

    # create
    p_create = sub.add_parser("create", help="Create a work item")
    p_create.add_argument("--type", "-t", help="Work item type (e.g. 'User Story')")
    p_create.add_argument("--title", help="Title")
    p_create.add_argument("--field", "-f", action="append", help="Extra field as Name=Value (repeatable)")
    p_create.add_argument("--parent", type=int, help="Parent work item ID")
    p_create.add_argument("--template", help="Create from a stored template (with its children)")
    p_create.set_defaults(func=cmd_create)

    # update <id> [id2,id3...]
    p_update = sub.add_parser("update", help="Update work item fields")
    p_update.add_argument("ids", nargs="+", metavar="id", help="Work item ID(s), space or comma separated")
    p_update.add_argument("--field", "-f", action="append", help="Field as Name=Value (repeatable)")
    p_update.set_defaults(func=cmd_update)

    # delete <id> [id2,id3...]
    p_delete = sub.add_parser("delete", help="Delete work items and their children")
    p_delete.add_argument("ids", nargs="+", metavar="id", help="Work item ID(s), space or comma separated")
    p_delete.add_argument("--yes", "-y", action="store_true", help="Skip confirmation")
    p_delete.set_defaults(func=cmd_delete)

    # template
    p_tpl = sub.add_parser("template", help="Manage local templates")
    tpl_sub = p_tpl.add_subparsers(dest="template_command")
    tpl_sub.add_parser("list", help="List templates").set_defaults(func=cmd_template_list)
    p_tshow = tpl_sub.add_parser("show", help="Print a template")
    p_tshow.add_argument("name", help="Template path relative to the template directory")
    p_tshow.set_defaults(func=cmd_template_show)
    p_tinit = tpl_sub.add_parser("init", help="Create a starter template")
    p_tinit.add_argument("name", help="Template name")
    p_tinit.add_argument("--type", "-t", default="User Story", help="Work item type")
    p_tinit.set_defaults(func=cmd_template_init)
    p_tsave = tpl_sub.add_parser("save", help="Save field options as a template")
    p_tsave.add_argument("name", help="Template name")
    p_tsave.add_argument("--type", "-t", required=True, help="Work item type")
    p_tsave.add_argument("--title", help="Title")
    p_tsave.add_argument("--description", "-d", help="Template description")
    p_tsave.add_argument("--field", "-f", action="append", help="Field as Name=Value (repeatable)")
    p_tsave.set_defaults(func=cmd_template_save)
    p_tedit = tpl_sub.add_parser("edit", help="Open a template in $EDITOR")
    p_tedit.add_argument("name", help="Template path relative to the template directory")
    p_tedit.set_defaults(func=cmd_template_edit)
    p_tpath = tpl_sub.add_parser("path", help="Print a template's path, or the template directory")
    p_tpath.add_argument("name", nargs="?", help="Template path relative to the template directory")
    p_tpath.set_defaults(func=cmd_template_path)
    p_tdel = tpl_sub.add_parser("delete", help="Delete a template")
    p_tdel.add_argument("name", help="Template path relative to the template directory")
    p_tdel.add_argument("--yes", "-y", action="store_true", help="Skip confirmation")
    p_tdel.set_defaults(func=cmd_template_delete)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(0)

    try:
        args.func(args)
    except (BoardsError, TimeoutError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
