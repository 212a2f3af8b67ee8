from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple

from .context import AuthContext
from .guard import GuardDecision, Outcome, RouteGuard

HOME_PATH = '/dashboard'


@dataclass(frozen=True)
class Route:
    path: str
    permission: Optional[str] = None
    roles: Optional[Tuple[str, ...]] = None
    public: bool = False


ROUTES: Tuple[Route, ...] = (
    Route('/login', public=True),
    Route('/dashboard'),
    Route('/customers', 'customers.read'),
    Route('/quotes', 'quotes.read'),
    Route('/invoices', 'invoices.read'),
    Route('/payments', 'payments.read'),
    Route('/products', 'products.read'),
    Route('/expenses', 'expenses.read'),
    Route('/reports', 'reports.financial'),
    Route('/messages', 'messages.read'),
    Route('/hr/employees', 'employees.read'),
    Route('/hr/salaries', 'salaries.read'),
    Route('/hr/contracts', 'contracts.read'),
    Route('/hr/leaves', 'leaves.read'),
    Route('/hr/loans', 'loans.read'),
    Route('/commercial/prospection', 'prospects.read'),
    Route('/commercial/pipeline', 'quotes.read'),
    Route('/services/specialites', 'specialites.read'),
    Route('/services/techniciens', 'techniciens.read'),
    Route('/services/missions', 'missions.read'),
    Route('/services/interventions', 'interventions.read'),
    Route('/services/materiel', 'materiels.read'),
    Route('/admin/users', 'users.read'),
    Route('/admin/services', 'admin.system_settings'),
    Route('/admin/permissions', 'users.manage_permissions'),
)


class Router:
    """Maps a requested path to a guard decision using the route table."""

    def __init__(self, auth: AuthContext, routes: Iterable[Route] = ROUTES):
        self.auth = auth
        self.routes = {r.path: r for r in routes}

    def match(self, pathname: str) -> Optional[Route]:
        path = pathname.rstrip('/') or '/'
        return self.routes.get(path)

    def resolve(self, pathname: str, search: str = '', hash: str = '') -> GuardDecision:
        route = self.match(pathname)
        if route is None:
            # `/` and unknown paths land on the dashboard
            return GuardDecision(Outcome.REDIRECT, location=HOME_PATH)
        if route.public:
            return GuardDecision(Outcome.RENDER)
        guard = RouteGuard(self.auth, permission=route.permission, roles=route.roles)
        return guard.evaluate(route.path, search, hash)

    @staticmethod
    def post_login_target(state: Optional[Dict[str, Any]]) -> str:
        """Where to go after a successful login: the preserved path, else the dashboard."""
        origin = (state or {}).get('from') or {}
        pathname = origin.get('pathname')
        if not pathname or pathname == '/login':
            return HOME_PATH
        return pathname + (origin.get('search') or '') + (origin.get('hash') or '')
