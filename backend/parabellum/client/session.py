"""Session/identity store.

The store holds at most one `Session` and is read by everyone; it is written
only through the single `SessionWriter` handed out by `claim_writer()`, which
the auth flow owns.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional

from .storage import MemoryStorage, SESSION_KEYS

logger = logging.getLogger(__name__)


class WriterAlreadyClaimed(RuntimeError):
    pass


@dataclass(frozen=True)
class Session:
    user: Mapping[str, Any]
    permissions: FrozenSet[str]
    token: str
    refresh_token: str

    @property
    def user_id(self) -> Optional[int]:
        return self.user.get('id')

    @property
    def role(self) -> Optional[str]:
        return self.user.get('role')


def _make_session(user: Dict[str, Any], permissions: Iterable[str], token: str, refresh_token: str) -> Session:
    return Session(
        user=MappingProxyType(dict(user)),
        permissions=frozenset(permissions),
        token=token,
        refresh_token=refresh_token,
    )


class SessionStore:
    def __init__(self, storage=None):
        self.storage = storage if storage is not None else MemoryStorage()
        self._session: Optional[Session] = None
        self._loading = False
        self._writer: Optional[SessionWriter] = None
        self._listeners: List[Callable[[Optional[Session]], None]] = []

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def loading(self) -> bool:
        return self._loading

    def subscribe(self, listener: Callable[[Optional[Session]], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def claim_writer(self) -> 'SessionWriter':
        if self._writer is not None:
            raise WriterAlreadyClaimed('session store already has a writer')
        self._writer = SessionWriter(self)
        return self._writer

    def _set(self, session: Optional[Session], loading: bool):
        changed = session is not self._session
        self._session = session
        self._loading = loading
        if changed:
            for listener in list(self._listeners):
                listener(session)


class SessionWriter:
    """Mutation handle; obtain it through `SessionStore.claim_writer()`."""

    def __init__(self, store: SessionStore):
        self._store = store

    def begin_loading(self):
        self._store._set(self._store.session, True)

    def establish(self, user: Dict[str, Any], permissions: Iterable[str], token: str, refresh_token: str) -> Session:
        session = _make_session(user, permissions, token, refresh_token)
        self._store.storage.update({
            'token': token,
            'refreshToken': refresh_token,
            'user': dict(user, permissions=sorted(session.permissions)),
        })
        self._store._set(session, False)
        return session

    def update_token(self, token: str) -> Session:
        current = self._store.session
        if current is None:
            raise RuntimeError('no session to refresh')
        session = _make_session(current.user, current.permissions, token, current.refresh_token)
        self._store.storage.update({'token': token})
        self._store._set(session, self._store.loading)
        return session

    def restore(self) -> Optional[Session]:
        """Load a persisted session, if a complete one is stored; stays in loading state."""
        storage = self._store.storage
        token, refresh_token, user = storage.get('token'), storage.get('refreshToken'), storage.get('user')
        if not token or not refresh_token or not isinstance(user, dict):
            return None
        user = dict(user)
        permissions = user.pop('permissions', [])
        session = _make_session(user, permissions, token, refresh_token)
        self._store._set(session, True)
        return session

    def clear(self):
        self._store.storage.remove(SESSION_KEYS)
        self._store._set(None, False)
        logger.debug('Session cleared')
