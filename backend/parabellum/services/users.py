from __future__ import annotations
from typing import Any, Dict
from parabellum.services.policy import effective_permissions


def user_json(user) -> Dict[str, Any]:
    return {
        'id': user.id,
        'email': user.email,
        'first_name': user.first_name,
        'last_name': user.last_name,
        'name': user.name,
        'role': user.role,
        'service_id': user.service_id,
        'service_name': user.service.name if user.service else None,
        'is_active': user.is_active,
        'has_permission_overrides': user.permission_overrides is not None,
        'last_login_at': user.last_login_at.isoformat() if user.last_login_at else None,
    }


def permissions_json(user):
    return sorted(effective_permissions(user))
