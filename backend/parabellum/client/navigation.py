"""Sidebar navigation tree and its permission filter."""
from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Callable, FrozenSet, Optional, Tuple

from .context import AuthContext


@dataclass(frozen=True)
class NavItem:
    name: str
    href: str
    icon: str
    permission: Optional[str] = None
    children: Optional[Tuple['NavItem', ...]] = None


NAVIGATION: Tuple[NavItem, ...] = (
    NavItem('Dashboard', '/dashboard', 'home'),
    NavItem('Customers', '/customers', 'users', 'customers.read'),
    NavItem('Quotes', '/quotes', 'file-text', 'quotes.read'),
    NavItem('Invoices', '/invoices', 'receipt', 'invoices.read'),
    NavItem('Payments', '/payments', 'credit-card', 'payments.read'),
    NavItem('Products', '/products', 'package', 'products.read'),
    NavItem('Expenses', '/expenses', 'dollar-sign', 'expenses.read'),
    NavItem('Reports', '/reports', 'bar-chart', 'reports.financial'),
    NavItem('Messages', '/messages', 'mail', 'messages.read'),
    NavItem('Commercial', '/commercial', 'trending-up', children=(
        NavItem('Prospection', '/commercial/prospection', 'target', 'prospects.read'),
        NavItem('Pipeline', '/commercial/pipeline', 'git-branch', 'quotes.read'),
    )),
    NavItem('Human Resources', '/hr', 'briefcase', children=(
        NavItem('Employees', '/hr/employees', 'users', 'employees.read'),
        NavItem('Salaries', '/hr/salaries', 'dollar-sign', 'salaries.read'),
        NavItem('Contracts', '/hr/contracts', 'file-text', 'contracts.read'),
        NavItem('Leaves', '/hr/leaves', 'calendar', 'leaves.read'),
        NavItem('Loans', '/hr/loans', 'credit-card', 'loans.read'),
    )),
    NavItem('Technical Services', '/services', 'tool', children=(
        NavItem('Specialties', '/services/specialites', 'award', 'specialites.read'),
        NavItem('Technicians', '/services/techniciens', 'user-check', 'techniciens.read'),
        NavItem('Missions', '/services/missions', 'map', 'missions.read'),
        NavItem('Interventions', '/services/interventions', 'activity', 'interventions.read'),
        NavItem('Equipment', '/services/materiel', 'package', 'materiels.read'),
    )),
    NavItem('Administration', '/admin', 'settings', 'admin.system_settings', children=(
        NavItem('Users', '/admin/users', 'user-check', 'users.read'),
        NavItem('Services', '/admin/services', 'building', 'admin.system_settings'),
        NavItem('Permissions', '/admin/permissions', 'shield', 'users.manage_permissions'),
    )),
)


def filter_navigation(items: Tuple[NavItem, ...], can: Callable[[str], bool]) -> Tuple[NavItem, ...]:
    """Return a pruned copy of `items`; the input tree is never modified.

    Categories are kept only when their own permission passes and at least
    one child survives. Source order is preserved.
    """
    visible = []
    for item in items:
        if item.permission and not can(item.permission):
            continue
        if item.children is not None:
            children = filter_navigation(item.children, can)
            if not children:
                continue
            item = replace(item, children=children)
        visible.append(item)
    return tuple(visible)


class NavigationFilter:
    """Memoized filter: the same tree object is returned until the permission set changes."""

    def __init__(self, auth: AuthContext, tree: Tuple[NavItem, ...] = NAVIGATION):
        self.auth = auth
        self.tree = tree
        self._key: Optional[FrozenSet[str]] = None
        self._cached: Tuple[NavItem, ...] = ()

    def visible(self) -> Tuple[NavItem, ...]:
        perms = self.auth.permissions
        if self._key is None or perms != self._key:
            self._cached = filter_navigation(self.tree, perms.__contains__)
            self._key = perms
        return self._cached
