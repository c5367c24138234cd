"""
Azure Boards API client
Thin wrapper around the Azure DevOps work item tracking REST API
"""

import logging
from typing import Any, Dict, List, Optional

import requests
from requests.utils import quote

from .exceptions import AuthenticationError, BoardsAPIError, ConfigError, NotFoundError

logger = logging.getLogger(__name__)

API_VERSION = "7.1"

# Hierarchy link types. Reverse points at the parent, Forward at a child.
PARENT_LINK = "System.LinkTypes.Hierarchy-Reverse"
CHILD_LINK = "System.LinkTypes.Hierarchy-Forward"

# workitemsbatch accepts at most 200 ids per call
BATCH_SIZE = 200


class BoardsClient:
    """
    Azure DevOps work item client

    Usage:
        client = BoardsClient(
            organization_url='https://dev.azure.com/contoso',
            project='Fabrikam',
            token='personal-access-token'
        )

        items = client.list_work_items("SELECT [System.Id] FROM WorkItems")
    """

    def __init__(
        self,
        organization_url: str,
        project: str,
        token: str,
        timeout: int = 30
    ):
        if not organization_url:
            raise ConfigError("organization URL is required")
        if not project:
            raise ConfigError("project is required")
        if not token:
            raise ConfigError("personal access token is required")

        self.organization_url = organization_url.rstrip('/')
        self.project = project
        self.timeout = timeout
        self.session = requests.Session()
        self.session.auth = ('', token)
        self.session.headers['Accept'] = 'application/json'

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _project_url(self, path: str) -> str:
        return f'{self.organization_url}/{quote(self.project, safe="")}/_apis/{path}'

    def _org_url(self, path: str) -> str:
        return f'{self.organization_url}/_apis/{path}'

    def _request(
        self,
        method: str,
        url: str,
        params: Optional[Dict] = None,
        json: Optional[Any] = None,
        content_type: Optional[str] = None
    ) -> Any:
        """Make HTTP request to API"""
        params = dict(params or {})
        params.setdefault('api-version', API_VERSION)
        headers = {'Content-Type': content_type} if content_type else None

        logger.debug("%s %s", method, url)
        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=json,
                headers=headers,
                timeout=self.timeout
            )
        except requests.Timeout:
            raise TimeoutError(f'Request to {url} timed out after {self.timeout}s')
        except requests.ConnectionError as e:
            raise BoardsAPIError(f'Could not connect to {self.organization_url}: {e}')

        # An invalid PAT gets a 203 sign-in page instead of a 401
        if response.status_code == 203:
            raise AuthenticationError(
                'Azure DevOps rejected the personal access token', status_code=203
            )

        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            message = _error_message(response) or str(e)
            if response.status_code == 401:
                raise AuthenticationError(message) from e
            if response.status_code == 404:
                raise NotFoundError(message) from e
            raise BoardsAPIError(message, status_code=response.status_code) from e

        if response.status_code == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError:
            return response.text

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_queries(self, depth: int = 2) -> List[Dict[str, Any]]:
        """Return the saved query hierarchy (folders with nested children)"""
        response = self._request(
            'GET', self._project_url('wit/queries'), params={'$depth': depth}
        )
        if isinstance(response, dict):
            return response.get('value', [])
        return response if isinstance(response, list) else []

    def get_query(self, query: str) -> Dict[str, Any]:
        """Get a saved query by id or path, including its WIQL"""
        return self._request(
            'GET',
            self._project_url(f'wit/queries/{quote(query, safe="")}'),
            params={'$expand': 'wiql'},
        )

    def execute_query(self, query_id: str, top: int = 100) -> List[Dict[str, Any]]:
        """Run a saved query and return the full work items it matches"""
        query = self.get_query(query_id)
        wiql = (query or {}).get('wiql')
        if not wiql:
            raise BoardsAPIError(f"query '{query_id}' does not have a WIQL statement")
        return self.list_work_items(wiql, top=top)

    # ------------------------------------------------------------------
    # Work items
    # ------------------------------------------------------------------

    def list_work_items(self, wiql: str, top: int = 100) -> List[Dict[str, Any]]:
        """Execute a WIQL statement and fetch each matching work item"""
        params = {'$top': top} if top > 0 else None
        result = self._request(
            'POST', self._project_url('wit/wiql'), params=params, json={'query': wiql}
        )
        ids = [ref['id'] for ref in (result or {}).get('workItems', []) if ref.get('id')]
        if not ids:
            return []

        items: List[Dict[str, Any]] = []
        for start in range(0, len(ids), BATCH_SIZE):
            response = self._request(
                'POST',
                self._project_url('wit/workitemsbatch'),
                json={'ids': ids[start:start + BATCH_SIZE], '$expand': 'All'},
            )
            items.extend((response or {}).get('value', []))
        return items

    def get_work_item(self, work_item_id: int) -> Dict[str, Any]:
        """Get a work item with all fields and relations"""
        return self._request(
            'GET',
            self._org_url(f'wit/workitems/{work_item_id}'),
            params={'$expand': 'All'},
        )

    def create_work_item(
        self,
        work_item_type: str,
        fields: Dict[str, Any],
        parent_id: int = 0
    ) -> Dict[str, Any]:
        """Create a work item, optionally linked under a parent"""
        document = [
            {'op': 'add', 'path': f'/fields/{name}', 'value': value}
            for name, value in fields.items()
        ]
        if parent_id > 0:
            document.append({
                'op': 'add',
                'path': '/relations/-',
                'value': {
                    'rel': PARENT_LINK,
                    'url': self._org_url(f'wit/workItems/{parent_id}'),
                },
            })

        logger.info("Creating %s work item (parent=%s)", work_item_type, parent_id or "-")
        return self._request(
            'POST',
            self._project_url(f'wit/workitems/${quote(work_item_type, safe="")}'),
            json=document,
            content_type='application/json-patch+json',
        )

    def update_work_item(self, work_item_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Replace the given fields on a work item"""
        document = [
            {'op': 'replace', 'path': f'/fields/{name}', 'value': value}
            for name, value in fields.items()
        ]
        logger.info("Updating work item #%d fields %s", work_item_id, sorted(fields))
        return self._request(
            'PATCH',
            self._org_url(f'wit/workitems/{work_item_id}'),
            json=document,
            content_type='application/json-patch+json',
        )

    def delete_work_item(self, work_item_id: int) -> None:
        """Delete a work item (moves it to the recycle bin)"""
        logger.info("Deleting work item #%d", work_item_id)
        self._request('DELETE', self._project_url(f'wit/workitems/{work_item_id}'))

    # ------------------------------------------------------------------
    # Work item types
    # ------------------------------------------------------------------

    def get_work_item_type(self, name: str) -> Dict[str, Any]:
        """Get the definition of a work item type"""
        return self._request(
            'GET', self._project_url(f'wit/workitemtypes/{quote(name, safe="")}')
        )

    def list_work_item_types(self) -> List[Dict[str, Any]]:
        response = self._request('GET', self._project_url('wit/workitemtypes'))
        return (response or {}).get('value', [])

    def list_work_item_states(self, work_item_type: str) -> List[str]:
        """Return the state names defined for a work item type, in workflow order"""
        response = self._request(
            'GET',
            self._project_url(f'wit/workitemtypes/{quote(work_item_type, safe="")}/states'),
        )
        return [s['name'] for s in (response or {}).get('value', []) if s.get('name')]

    def get_required_fields(self, work_item_type: str) -> List[str]:
        """Return reference names of fields that are always required for a type"""
        definition = self.get_work_item_type(work_item_type) or {}
        return [
            f['referenceName']
            for f in definition.get('fields', [])
            if f.get('alwaysRequired') and f.get('referenceName')
        ]


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text.strip()[:200]
    if isinstance(body, dict):
        return body.get('message', '')
    return ''
