from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from .context import AuthContext

LOGIN_PATH = '/login'
DEFAULT_PERMISSION_DENIED = "You don't have permission to access this page."
DEFAULT_ROLE_DENIED = "Your role does not allow access to this page."


class Outcome(str, Enum):
    LOADING = 'LOADING'
    REDIRECT = 'REDIRECT'
    DENIED = 'DENIED'
    RENDER = 'RENDER'


@dataclass(frozen=True)
class GuardDecision:
    outcome: Outcome
    location: Optional[str] = None
    state: Dict[str, Any] = field(default_factory=dict)
    content: Any = None


class RouteGuard:
    """Decides what a protected view shows for the current session."""

    def __init__(self, auth: AuthContext, permission: Optional[str] = None,
                 roles: Optional[Iterable[str]] = None, fallback: Any = None):
        self.auth = auth
        self.permission = permission
        if isinstance(roles, str):
            roles = (roles,)
        self.roles = tuple(roles) if roles is not None else None
        self.fallback = fallback

    def evaluate(self, pathname: str, search: str = '', hash: str = '', content: Any = None) -> GuardDecision:
        if self.auth.is_loading:
            return GuardDecision(Outcome.LOADING)
        if not self.auth.is_authenticated:
            return GuardDecision(
                Outcome.REDIRECT,
                location=LOGIN_PATH,
                state={'from': {'pathname': pathname, 'search': search, 'hash': hash}},
            )
        if self.permission and not self.auth.has_permission(self.permission):
            return GuardDecision(Outcome.DENIED, content=self._fallback(DEFAULT_PERMISSION_DENIED))
        if self.roles is not None and not self.auth.has_role(self.roles):
            return GuardDecision(Outcome.DENIED, content=self._fallback(DEFAULT_ROLE_DENIED))
        return GuardDecision(Outcome.RENDER, content=content)

    def _fallback(self, default: str) -> Any:
        return self.fallback if self.fallback is not None else default
