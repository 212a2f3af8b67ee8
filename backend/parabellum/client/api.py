"""Resource access layer: a thin JSON client over `requests`.

A 401 on an authenticated call triggers exactly one refresh attempt through
`refresh_handler`; when that fails the session is already cleared and
`SessionExpired` is raised. Other failures surface as `ApiError`, unretried.
"""
from __future__ import annotations
import logging
from typing import Any, Callable, Dict, List, Optional

import requests

from .session import SessionStore

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, status: int, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.status = status
        self.message = message
        self.errors = errors or []

    def __repr__(self):
        return f'ApiError(status={self.status}, message={self.message!r})'


class SessionExpired(ApiError):
    def __init__(self, message: str = 'Session expired, please log in again'):
        super().__init__(401, message)


class ApiClient:
    def __init__(self, base_url: str, store: SessionStore, timeout: float = 10.0,
                 http: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.store = store
        self.timeout = timeout
        self.http = http or requests.Session()
        self.refresh_handler: Optional[Callable[[], bool]] = None

    def _headers(self, auth: bool) -> Dict[str, str]:
        headers = {'Accept': 'application/json'}
        session = self.store.session
        if auth and session is not None:
            headers['Authorization'] = f'Bearer {session.token}'
        return headers

    def request(self, method: str, path: str, *, json: Any = None, params: Optional[Dict[str, Any]] = None,
                auth: bool = True, retry: bool = True) -> Dict[str, Any]:
        url = f'{self.base_url}/{path.lstrip("/")}'
        try:
            resp = self.http.request(method, url, json=json, params=params,
                                     headers=self._headers(auth), timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning('%s %s failed: %s', method, url, e)
            raise ApiError(0, f'Network error: {e}') from e

        if resp.status_code == 401 and auth and retry and self.refresh_handler is not None:
            logger.info('%s %s returned 401, refreshing token', method, url)
            if not self.refresh_handler():
                raise SessionExpired()
            return self.request(method, path, json=json, params=params, auth=auth, retry=False)

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not resp.ok:
            message = body.get('message') or body.get('msg') or resp.reason or 'Request failed'
            raise ApiError(resp.status_code, message, body.get('errors'))
        return body

    # Generic resource helpers: GET/POST/PUT/DELETE /<resource>[/<id>]

    def list(self, resource: str, **params) -> Dict[str, Any]:
        return self.request('GET', resource, params=params or None)

    def get(self, resource: str, item_id: Any) -> Dict[str, Any]:
        return self.request('GET', f'{resource}/{item_id}')['data']

    def create(self, resource: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.request('POST', resource, json=payload)['data']

    def update(self, resource: str, item_id: Any, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.request('PUT', f'{resource}/{item_id}', json=payload)['data']

    def delete(self, resource: str, item_id: Any) -> Dict[str, Any]:
        return self.request('DELETE', f'{resource}/{item_id}')

    def get_user_permissions(self, user_id: int) -> List[str]:
        return self.request('GET', f'users/{user_id}/permissions')['data']

    def set_user_permissions(self, user_id: int, permissions: List[str]) -> List[str]:
        return self.request('PUT', f'users/{user_id}/permissions', json={'permissions': sorted(set(permissions))})['data']
