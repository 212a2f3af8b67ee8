"""Auth flow: the only writer of the session store."""
from __future__ import annotations
import logging
from typing import Optional

from .api import ApiClient, ApiError, SessionExpired
from .session import Session, SessionStore

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, store: SessionStore, api: ApiClient):
        self.store = store
        self.api = api
        self._writer = store.claim_writer()
        api.refresh_handler = self.refresh

    def login(self, email: str, password: str) -> Session:
        body = self.api.request('POST', 'auth/login', json={'email': email, 'password': password},
                                auth=False, retry=False)
        data = body['data']
        session = self._writer.establish(data['user'], data['permissions'], data['token'], data['refreshToken'])
        logger.info('Logged in as %s', session.user.get('email'))
        return session

    def logout(self):
        if self.store.session is not None:
            try:
                self.api.request('POST', 'auth/logout', retry=False)
            except ApiError as e:
                # Local state is cleared regardless of the server answer
                logger.warning('Logout request failed: %s', e.message)
        self._writer.clear()
        logger.info('Logged out')

    def startup(self) -> Optional[Session]:
        """Restore a persisted session and confirm it against the profile endpoint."""
        self._writer.begin_loading()
        restored = self._writer.restore()
        if restored is None:
            self._writer.clear()
            return None
        try:
            data = self.api.request('GET', 'auth/profile')['data']
        except SessionExpired:
            return None
        except ApiError as e:
            logger.warning('Session probe failed (%s); signing out', e.message)
            self._writer.clear()
            return None
        current = self.store.session
        if current is None:
            return None
        return self._writer.establish(data['user'], data['permissions'], current.token, current.refresh_token)

    def refresh(self) -> bool:
        """Exchange the refresh token once; on failure the session is cleared."""
        session = self.store.session
        if session is None:
            return False
        try:
            body = self.api.request('POST', 'auth/refresh', json={'refreshToken': session.refresh_token},
                                    auth=False, retry=False)
        except ApiError as e:
            logger.info('Token refresh failed (%s); signing out', e.message)
            self._writer.clear()
            return False
        self._writer.update_token(body['data']['token'])
        logger.info('Access token refreshed')
        return True
