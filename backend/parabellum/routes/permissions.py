from flask import Blueprint
from parabellum.constants.permissions import ROLE_PERMISSIONS, ROLE_LABELS, catalog_by_category
from parabellum.decorators.auth import require_permissions

perms_bp = Blueprint('permissions', __name__)


@perms_bp.get('/catalog')
@require_permissions('users.manage_permissions')
def permission_catalog():
    return {
        'success': True,
        'data': {
            'categories': catalog_by_category(),
            'roles': [
                {'role': role, 'label': ROLE_LABELS[role], 'permissions': sorted(perms)}
                for role, perms in ROLE_PERMISSIONS.items()
            ],
        }
    }
