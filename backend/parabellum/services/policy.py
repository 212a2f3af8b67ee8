from __future__ import annotations
from typing import Iterable, List, Set, FrozenSet, Optional
from flask import abort
from flask_jwt_extended import get_jwt, get_jwt_identity
from sqlalchemy import select
from parabellum.constants.permissions import (
    ROLE_PERMISSIONS, ROLE_ADMIN, ROLE_GENERAL_DIRECTOR, ROLE_SERVICE_MANAGER, ROLE_EMPLOYEE, ROLE_ACCOUNTANT,
)
from parabellum.services import quote_lifecycle as lifecycle

# Roles that see and act across every service
CROSS_SERVICE_ROLES = (ROLE_ADMIN, ROLE_GENERAL_DIRECTOR)
ACCOUNTANT_VISIBLE_STATUSES = (lifecycle.APPROVED_BY_DG, lifecycle.ACCEPTED_BY_CLIENT)


def effective_permissions(user) -> FrozenSet[str]:
    """Per-user override when present, otherwise the role defaults."""
    if user.permission_overrides is not None:
        return frozenset(user.permission_overrides)
    return ROLE_PERMISSIONS.get(user.role, frozenset())


def token_claims(user) -> dict:
    return {
        'role': user.role,
        'service_id': user.service_id,
        'perms': sorted(effective_permissions(user)),
    }


def current_permissions() -> Set[str]:
    claims = get_jwt()
    return set(claims.get('perms', []))


def current_user_id() -> int:
    return int(get_jwt_identity())


def current_role() -> Optional[str]:
    return get_jwt().get('role')


def current_service_id() -> Optional[int]:
    return get_jwt().get('service_id')


def has_permission(code: str) -> bool:
    return code in current_permissions()


def has_permissions(*codes: str) -> bool:
    perms = current_permissions()
    return all(c in perms for c in codes)


def has_role(roles: Iterable[str]) -> bool:
    role = current_role()
    return role is not None and role in set(roles)


# --- Quote row-level rules ---

def filter_quotes_for_current_user(query, quote_model, user_model):
    """Restrict a quote query to what the caller's role may see."""
    role = current_role()
    if role in CROSS_SERVICE_ROLES:
        return query
    if role == ROLE_EMPLOYEE:
        return query.filter(quote_model.created_by == current_user_id())
    if role == ROLE_ACCOUNTANT:
        return query.filter(quote_model.status.in_(ACCOUNTANT_VISIBLE_STATUSES))
    # Service managers and any other role: quotes authored inside their service
    service_id = current_service_id()
    if service_id is None:
        return query.filter(quote_model.created_by == current_user_id())
    return query.filter(quote_model.created_by.in_(
        select(user_model.id).where(user_model.service_id == service_id)
    ))


def _same_service(quote) -> bool:
    """Author belongs to the caller's service; a caller with no service matches nothing."""
    service_id = current_service_id()
    return service_id is not None and quote.creator is not None and quote.creator.service_id == service_id


def can_view_quote(quote) -> bool:
    role = current_role()
    if role in CROSS_SERVICE_ROLES or quote.created_by == current_user_id():
        return True
    if role == ROLE_ACCOUNTANT:
        return quote.status in ACCOUNTANT_VISIBLE_STATUSES
    if role == ROLE_SERVICE_MANAGER:
        return _same_service(quote)
    return False


def assert_can_view_quote(quote):
    if not can_view_quote(quote):
        abort(403, description='Access to this quote is not allowed')


def quote_actor_denial(quote, action: str) -> Optional[str]:
    """Row-level checks layered on top of the lifecycle permission; None when allowed."""
    if action in lifecycle.SUBMIT_ACTIONS:
        if quote.created_by != current_user_id() and current_role() != ROLE_ADMIN:
            return 'Only the author can submit this quote'
    elif action in lifecycle.SERVICE_DECISIONS:
        if current_role() not in CROSS_SERVICE_ROLES:
            if not _same_service(quote):
                return 'Quotes can only be reviewed within your service'
    elif not can_view_quote(quote):
        return 'Access to this quote is not allowed'
    return None


def assert_quote_actor(quote, action: str):
    reason = quote_actor_denial(quote, action)
    if reason:
        abort(403, description=reason)


def quote_actions_for_current_user(quote) -> List[str]:
    return [
        a for a in lifecycle.available_actions(quote.status, has_permission)
        if quote_actor_denial(quote, a) is None
    ]


def assert_customer_access(customer):
    if current_role() in CROSS_SERVICE_ROLES:
        return
    if customer.service_id is not None and customer.service_id != current_service_id():
        abort(403, description='Access to this customer is not allowed')
