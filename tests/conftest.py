"""Shared test fixtures for azboards tests."""

import logging
import shutil
import tempfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from azboards.api import CHILD_LINK, PARENT_LINK
from azboards.dashboard.coordinator import Dashboard
from azboards.dashboard.keybinds import KeybindTable
from azboards.templates import TemplateStore


def _make_item(item_id, title, state="Active", item_type="User Story", children=(), parent=0, **fields):
    """Build a work item payload shaped like the REST API's."""
    relations = [
        {"rel": CHILD_LINK, "url": f"https://dev.azure.com/org/_apis/wit/workItems/{c}"}
        for c in children
    ]
    if parent:
        relations.append(
            {"rel": PARENT_LINK, "url": f"https://dev.azure.com/org/_apis/wit/workItems/{parent}"}
        )
    return {
        "id": item_id,
        "fields": {
            "System.Title": title,
            "System.State": state,
            "System.WorkItemType": item_type,
            **fields,
        },
        "relations": relations,
    }


QUERY_TREE = [
    {
        "id": "f-shared",
        "name": "Shared Queries",
        "path": "Shared Queries",
        "isFolder": True,
        "children": [
            {"id": "q-bugs", "name": "Open Bugs", "path": "Shared Queries/Open Bugs", "isFolder": False},
            {"id": "q-sprint", "name": "Sprint", "path": "Shared Queries/Sprint", "isFolder": False},
        ],
    },
]


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    tmp = tempfile.mkdtemp()
    yield Path(tmp)
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def logger():
    return logging.getLogger("azboards.dashboard.test")


@pytest.fixture
def client():
    """A BoardsClient stand-in with a small, consistent project."""
    mock = MagicMock()
    items = {
        1: _make_item(1, "First story"),
        2: _make_item(2, "Second story", state="New"),
    }
    mock.list_queries.return_value = QUERY_TREE
    mock.list_work_items.return_value = list(items.values())
    mock.execute_query.return_value = [_make_item(7, "A bug", item_type="Bug")]
    mock.get_work_item.side_effect = lambda item_id: items.get(item_id) or _make_item(item_id, f"Item {item_id}")
    mock.list_work_item_states.return_value = ["New", "Active", "Resolved", "Closed"]
    mock.create_work_item.return_value = {"id": 500, "fields": {}}
    mock.update_work_item.return_value = {}
    return mock


@pytest.fixture
def store(temp_dir):
    return TemplateStore(temp_dir / "templates")


@pytest.fixture
def keybinds():
    return KeybindTable.defaults()


@pytest.fixture
def dashboard(client, store, keybinds, logger, temp_dir):
    return Dashboard(
        client,
        store,
        keybinds,
        logger=logger,
        tmp_dir=temp_dir / "tmp",
        organization="contoso",
        project="Fabrikam",
    )


@pytest.fixture
def make_item():
    return _make_item
