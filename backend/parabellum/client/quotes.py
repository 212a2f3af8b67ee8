"""Quote actions as seen by the current session.

Lifecycle legality and permissions are checked locally first, so an illegal
or unpermitted action raises before any request is sent. The server repeats
every check.
"""
from __future__ import annotations
from typing import Any, Dict, List, Optional

from parabellum.services import quote_lifecycle as lifecycle

from .api import ApiClient
from .context import AuthContext


class QuoteActions:
    def __init__(self, api: ApiClient, auth: AuthContext):
        self.api = api
        self.auth = auth

    def available_actions(self, status: str) -> List[str]:
        return lifecycle.available_actions(status, self.auth.has_permission)

    def can_edit(self, quote: Dict[str, Any]) -> bool:
        return lifecycle.is_editable(quote['status']) and self.auth.has_permission('quotes.update')

    def perform(self, quote: Dict[str, Any], action: str, comments: Optional[str] = None) -> Dict[str, Any]:
        lifecycle.resolve(quote['status'], action, self.auth.has_permission)
        payload = {'comments': comments} if comments else {}
        return self.api.request('POST', f"quotes/{quote['id']}/{lifecycle.ACTION_SLUGS[action]}", json=payload)['data']

    def update(self, quote: Dict[str, Any], changes: Dict[str, Any]) -> Dict[str, Any]:
        lifecycle.assert_editable(quote['status'])
        return self.api.update('quotes', quote['id'], changes)
