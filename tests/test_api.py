"""Tests for BoardsClient request building and error mapping.

The requests session is replaced with a MagicMock; responses are real
requests.Response objects so raise_for_status() behaves normally.
"""

import json
from unittest.mock import MagicMock

import pytest
import requests

from azboards.api import API_VERSION, CHILD_LINK, PARENT_LINK, BoardsClient
from azboards.exceptions import AuthenticationError, BoardsAPIError, ConfigError, NotFoundError

ORG = "https://dev.azure.com/contoso"


def make_response(status=200, body=None, text=None):
    response = requests.Response()
    response.status_code = status
    if body is not None:
        response._content = json.dumps(body).encode()
    else:
        response._content = (text or "").encode()
    response.url = ORG
    return response


@pytest.fixture
def api():
    client = BoardsClient(ORG + "/", "Fabrikam Web", "pat")
    client.session = MagicMock()
    client.session.request.return_value = make_response(body={})
    return client


def sent(api, index=-1):
    """(method, url, kwargs) of a request made through the session."""
    args, kwargs = api.session.request.call_args_list[index]
    return args[0], args[1], kwargs


class TestConstruction:
    @pytest.mark.parametrize("org,project,token", [("", "p", "t"), ("o", "", "t"), ("o", "p", "")])
    def test_missing_settings(self, org, project, token):
        with pytest.raises(ConfigError):
            BoardsClient(org, project, token)

    def test_basic_auth_with_empty_user(self):
        client = BoardsClient(ORG, "p", "secret")
        assert client.session.auth == ("", "secret")
        assert client.organization_url == ORG


class TestTransport:
    def test_api_version_added(self, api):
        api.get_work_item(3)
        method, url, kwargs = sent(api)
        assert method == "GET"
        assert url == f"{ORG}/_apis/wit/workitems/3"
        assert kwargs["params"] == {"$expand": "All", "api-version": API_VERSION}

    def test_project_is_quoted(self, api):
        api.list_work_item_types()
        _, url, _ = sent(api)
        assert url == f"{ORG}/Fabrikam%20Web/_apis/wit/workitemtypes"

    def test_203_means_bad_token(self, api):
        api.session.request.return_value = make_response(203, text="<html>sign in</html>")
        with pytest.raises(AuthenticationError) as exc:
            api.get_work_item(1)
        assert exc.value.status_code == 203

    def test_401(self, api):
        api.session.request.return_value = make_response(401, body={"message": "TF400813"})
        with pytest.raises(AuthenticationError, match="TF400813"):
            api.get_work_item(1)

    def test_404(self, api):
        api.session.request.return_value = make_response(404, body={"message": "does not exist"})
        with pytest.raises(NotFoundError, match="does not exist"):
            api.get_work_item(1)

    def test_500_uses_text_body(self, api):
        api.session.request.return_value = make_response(500, text="upstream down")
        with pytest.raises(BoardsAPIError) as exc:
            api.get_work_item(1)
        assert exc.value.status_code == 500
        assert str(exc.value) == "upstream down"

    def test_timeout(self, api):
        api.session.request.side_effect = requests.Timeout()
        with pytest.raises(TimeoutError):
            api.get_work_item(1)

    def test_connection_error(self, api):
        api.session.request.side_effect = requests.ConnectionError("refused")
        with pytest.raises(BoardsAPIError, match="Could not connect"):
            api.get_work_item(1)

    def test_empty_body_is_none(self, api):
        api.session.request.return_value = make_response(204)
        assert api.delete_work_item(1) is None


class TestWorkItems:
    def test_wiql_then_batch(self, api):
        api.session.request.side_effect = [
            make_response(body={"workItems": [{"id": 1}, {"id": 2}]}),
            make_response(body={"value": [{"id": 1}, {"id": 2}]}),
        ]
        items = api.list_work_items("SELECT [System.Id] FROM WorkItems", top=50)
        assert [i["id"] for i in items] == [1, 2]
        _, url, kwargs = sent(api, 0)
        assert url.endswith("/_apis/wit/wiql")
        assert kwargs["params"]["$top"] == 50
        _, url, kwargs = sent(api, 1)
        assert url.endswith("/_apis/wit/workitemsbatch")
        assert kwargs["json"] == {"ids": [1, 2], "$expand": "All"}

    def test_no_matches_skips_batch(self, api):
        api.session.request.return_value = make_response(body={"workItems": []})
        assert api.list_work_items("SELECT 1") == []
        assert api.session.request.call_count == 1

    def test_execute_query_requires_wiql(self, api):
        api.session.request.return_value = make_response(body={"id": "q", "isFolder": True})
        with pytest.raises(BoardsAPIError, match="does not have a WIQL"):
            api.execute_query("q")

    def test_create_with_parent_link(self, api):
        api.session.request.return_value = make_response(body={"id": 99})
        created = api.create_work_item("User Story", {"System.Title": "New"}, parent_id=5)
        assert created == {"id": 99}
        method, url, kwargs = sent(api)
        assert method == "POST"
        assert url.endswith("/_apis/wit/workitems/$User%20Story")
        assert kwargs["headers"] == {"Content-Type": "application/json-patch+json"}
        assert kwargs["json"] == [
            {"op": "add", "path": "/fields/System.Title", "value": "New"},
            {
                "op": "add",
                "path": "/relations/-",
                "value": {"rel": PARENT_LINK, "url": f"{ORG}/_apis/wit/workItems/5"},
            },
        ]

    def test_create_without_parent(self, api):
        api.create_work_item("Task", {"System.Title": "t"})
        _, _, kwargs = sent(api)
        assert all(op["path"] != "/relations/-" for op in kwargs["json"])

    def test_update_replaces_fields(self, api):
        api.update_work_item(4, {"System.State": "Closed"})
        method, url, kwargs = sent(api)
        assert method == "PATCH"
        assert kwargs["json"] == [{"op": "replace", "path": "/fields/System.State", "value": "Closed"}]

    def test_states_in_order(self, api):
        api.session.request.return_value = make_response(
            body={"value": [{"name": "New"}, {"name": "Active"}, {"category": "x"}]}
        )
        assert api.list_work_item_states("Bug") == ["New", "Active"]

    def test_required_fields(self, api):
        api.session.request.return_value = make_response(body={"fields": [
            {"referenceName": "System.Title", "alwaysRequired": True},
            {"referenceName": "System.Tags", "alwaysRequired": False},
        ]})
        assert api.get_required_fields("Bug") == ["System.Title"]

    def test_list_queries_unwraps_value(self, api):
        api.session.request.return_value = make_response(body={"value": [{"name": "Shared"}]})
        assert api.list_queries() == [{"name": "Shared"}]
        _, _, kwargs = sent(api)
        assert kwargs["params"]["$depth"] == 2

    def test_link_constants(self):
        assert CHILD_LINK.endswith("Forward")
        assert PARENT_LINK.endswith("Reverse")
