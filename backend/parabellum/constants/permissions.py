"""Central permission catalog and role defaults.

Codes follow `<resource>.<action>`. Extend cautiously; never rename codes
silently, add new ones and migrate per-user overrides that reference the old.
"""
from __future__ import annotations
from typing import Dict, FrozenSet, Iterable, List, Tuple

ROLE_ADMIN = 'ADMIN'
ROLE_GENERAL_DIRECTOR = 'GENERAL_DIRECTOR'
ROLE_SERVICE_MANAGER = 'SERVICE_MANAGER'
ROLE_EMPLOYEE = 'EMPLOYEE'
ROLE_ACCOUNTANT = 'ACCOUNTANT'
ALL_ROLES = (ROLE_ADMIN, ROLE_GENERAL_DIRECTOR, ROLE_SERVICE_MANAGER, ROLE_EMPLOYEE, ROLE_ACCOUNTANT)

ROLE_LABELS = {
    ROLE_ADMIN: 'Administrator',
    ROLE_GENERAL_DIRECTOR: 'General Director',
    ROLE_SERVICE_MANAGER: 'Service Manager',
    ROLE_EMPLOYEE: 'Employee',
    ROLE_ACCOUNTANT: 'Accountant',
}

CRUD = ('create', 'read', 'update', 'delete')

# resource -> (category label, ordered actions)
CATALOG: Dict[str, Tuple[str, Tuple[str, ...]]] = {
    'users': ('Users', CRUD + ('manage_permissions',)),
    'customers': ('Customers', CRUD),
    'prospects': ('Prospects', CRUD),
    'quotes': ('Quotes', CRUD + ('submit_for_approval', 'approve_service', 'approve_dg', 'reject')),
    'invoices': ('Invoices', CRUD + ('send',)),
    'payments': ('Payments', CRUD),
    'products': ('Products', CRUD),
    'expenses': ('Expenses', CRUD),
    'reports': ('Reports', ('financial', 'sales', 'audit')),
    'admin': ('Administration', ('system_settings', 'backup', 'logs')),
    'employees': ('Employees', CRUD),
    'salaries': ('Salaries', CRUD),
    'contracts': ('Contracts', CRUD),
    'leaves': ('Leaves', CRUD + ('approve', 'reject')),
    'loans': ('Loans', CRUD),
    'messages': ('Messages', ('create', 'read', 'delete')),
    'specialites': ('Specialties', CRUD),
    'techniciens': ('Technicians', CRUD),
    'missions': ('Missions', CRUD),
    'interventions': ('Interventions', CRUD),
    'materiels': ('Equipment', CRUD),
}


def build_all_permission_codes() -> List[str]:
    codes: List[str] = []
    for resource, (_, actions) in CATALOG.items():
        for act in actions:
            codes.append(f"{resource}.{act}")
    return codes

ALL_PERMISSION_CODES: Tuple[str, ...] = tuple(build_all_permission_codes())
PERMISSION_SET: FrozenSet[str] = frozenset(ALL_PERMISSION_CODES)

ROLE_PERMISSIONS: Dict[str, FrozenSet[str]] = {
    ROLE_ADMIN: PERMISSION_SET,
    ROLE_GENERAL_DIRECTOR: frozenset([
        'users.read', 'customers.read', 'prospects.read', 'quotes.read', 'quotes.approve_dg',
        'invoices.read', 'payments.read', 'products.read', 'expenses.read',
        'reports.financial', 'reports.sales', 'reports.audit',
        'employees.read', 'salaries.read', 'contracts.read', 'leaves.read', 'leaves.approve', 'leaves.reject',
        'loans.read', 'messages.create', 'messages.read',
        'missions.read', 'interventions.read',
    ]),
    ROLE_SERVICE_MANAGER: frozenset([
        'users.read', 'customers.create', 'customers.read', 'customers.update',
        'prospects.create', 'prospects.read', 'prospects.update',
        'quotes.create', 'quotes.read', 'quotes.update', 'quotes.approve_service',
        'invoices.read', 'payments.read', 'products.read', 'expenses.read',
        'reports.sales', 'employees.create', 'employees.read', 'employees.update',
        'leaves.read', 'leaves.approve', 'leaves.reject', 'messages.create', 'messages.read',
        'specialites.read', 'techniciens.read', 'missions.create', 'missions.read', 'missions.update',
        'interventions.create', 'interventions.read', 'interventions.update', 'materiels.read',
    ]),
    ROLE_EMPLOYEE: frozenset([
        'customers.create', 'customers.read', 'customers.update',
        'prospects.create', 'prospects.read',
        'quotes.create', 'quotes.read', 'quotes.update', 'quotes.submit_for_approval',
        'products.read', 'leaves.create', 'leaves.read', 'messages.create', 'messages.read',
        'missions.read', 'interventions.read',
    ]),
    ROLE_ACCOUNTANT: frozenset([
        'customers.read', 'quotes.read', 'invoices.create', 'invoices.read',
        'invoices.update', 'invoices.send', 'payments.create', 'payments.read',
        'payments.update', 'expenses.create', 'expenses.read', 'expenses.update',
        'reports.financial', 'salaries.read', 'loans.read', 'messages.create', 'messages.read',
    ]),
}


def unknown_permission_codes(codes: Iterable[str]) -> List[str]:
    """Return the sorted codes that are not part of the catalog."""
    return sorted({c for c in codes if c not in PERMISSION_SET})


def catalog_by_category() -> List[Dict[str, object]]:
    return [
        {
            'resource': resource,
            'label': label,
            'permissions': [f"{resource}.{act}" for act in actions],
        }
        for resource, (label, actions) in CATALOG.items()
    ]
