"""Client core: session store, authorization predicates, route guard,
navigation filter and the HTTP resource layer."""
from .settings import ClientSettings
from .storage import MemoryStorage, FileStorage
from .session import Session, SessionStore, SessionWriter, WriterAlreadyClaimed
from .context import AuthContext, has_permission, has_role
from .guard import GuardDecision, Outcome, RouteGuard
from .routes import Route, Router, ROUTES
from .navigation import NavItem, NAVIGATION, NavigationFilter, filter_navigation
from .api import ApiClient, ApiError, SessionExpired
from .auth import AuthService
from .quotes import QuoteActions


class Client:
    """Wires the client components around one session store."""

    def __init__(self, settings: ClientSettings = None, storage=None, http=None):
        self.settings = settings or ClientSettings.from_env()
        if storage is None:
            storage = FileStorage(self.settings.state_file) if self.settings.state_file else MemoryStorage()
        self.store = SessionStore(storage)
        self.auth_context = AuthContext(self.store)
        self.api = ApiClient(self.settings.api_url, self.store, self.settings.timeout, http=http)
        self.auth = AuthService(self.store, self.api)
        self.router = Router(self.auth_context)
        self.navigation = NavigationFilter(self.auth_context)
        self.quotes = QuoteActions(self.api, self.auth_context)


__all__ = [
    'Client', 'ClientSettings', 'MemoryStorage', 'FileStorage', 'Session', 'SessionStore', 'SessionWriter',
    'WriterAlreadyClaimed', 'AuthContext', 'has_permission', 'has_role', 'GuardDecision', 'Outcome',
    'RouteGuard', 'Route', 'Router', 'ROUTES', 'NavItem', 'NAVIGATION', 'NavigationFilter',
    'filter_navigation', 'ApiClient', 'ApiError', 'SessionExpired', 'AuthService', 'QuoteActions',
]
