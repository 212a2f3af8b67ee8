"""Authorization predicates over the session store.

Both predicates are pure reads and fail closed: with no session (not yet
loaded, or logged out) every check is False.
"""
from __future__ import annotations
from typing import FrozenSet, Iterable, Optional, Union

from .session import Session, SessionStore


def has_permission(session: Optional[Session], name: str) -> bool:
    # exact membership, no wildcard or prefix matching
    return session is not None and name in session.permissions


def has_role(session: Optional[Session], roles: Union[str, Iterable[str]]) -> bool:
    if session is None or session.role is None:
        return False
    if isinstance(roles, str):
        roles = (roles,)
    return session.role in set(roles)


class AuthContext:
    def __init__(self, store: SessionStore):
        self.store = store

    @property
    def session(self) -> Optional[Session]:
        return self.store.session

    @property
    def is_loading(self) -> bool:
        return self.store.loading

    @property
    def is_authenticated(self) -> bool:
        return self.store.session is not None

    @property
    def permissions(self) -> FrozenSet[str]:
        session = self.store.session
        return session.permissions if session else frozenset()

    def has_permission(self, name: str) -> bool:
        return has_permission(self.store.session, name)

    def has_role(self, roles: Union[str, Iterable[str]]) -> bool:
        return has_role(self.store.session, roles)
