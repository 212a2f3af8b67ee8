from flask import Blueprint, request, abort
from sqlalchemy import select
from parabellum import get_db
from parabellum.models.identity import User, Service
from parabellum.constants.permissions import ALL_ROLES, ROLE_ADMIN, ROLE_EMPLOYEE, unknown_permission_codes
from parabellum.decorators.auth import require_permissions, require_roles
from parabellum.decorators.audit import audit_log
from parabellum.services.users import user_json, permissions_json
from parabellum.services.policy import current_user_id
from parabellum.utils.filters import apply_filters
from parabellum.utils.sorting import apply_multi_sort
from parabellum.utils.listing import apply_pagination, build_list_payload
from parabellum.utils.validation import ValidationFailed, require_fields

users_bp = Blueprint('users', __name__)

MIN_PASSWORD_LENGTH = 8


def _get_user_or_404(user_id: int) -> User:
    user = get_db().execute(select(User).where(User.id==user_id)).scalar_one_or_none()
    if not user:
        abort(404)
    return user


def _check_role_and_service(data: dict):
    errors = []
    if 'role' in data and data['role'] not in ALL_ROLES:
        errors.append({'field': 'role', 'message': f"role must be one of {', '.join(ALL_ROLES)}"})
    service_id = data.get('service_id')
    if service_id is not None and get_db().get(Service, service_id) is None:
        errors.append({'field': 'service_id', 'message': 'unknown service'})
    if errors:
        raise ValidationFailed(errors)


@users_bp.get('')
@require_permissions('users.read')
def list_users():
    session = get_db()
    q = session.query(User)
    filter_specs = {
        'role': {'op': lambda qu, v: qu.filter(User.role==v), 'validate': lambda v: v in ALL_ROLES},
        'service_id': {'coerce': int, 'op': lambda qu, v: qu.filter(User.service_id==v)},
        'is_active': {'coerce': lambda v: str(v).lower() in ('1', 'true', 'yes'), 'op': lambda qu, v: qu.filter(User.is_active==v)},
        'search': {'op': lambda qu, v: qu.filter(
            User.email.ilike(f'%{v}%') | User.first_name.ilike(f'%{v}%') | User.last_name.ilike(f'%{v}%'))},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {
        'email': User.email,
        'last_name': User.last_name,
        'role': User.role,
        'id': User.id,
    }
    q = apply_multi_sort(q, request.args.get('sort'), allowed, User.id)
    paged_q, total, page, limit = apply_pagination(q)
    return build_list_payload([user_json(u) for u in paged_q.all()], total, page, limit)


@users_bp.post('')
@require_permissions('users.create')
@audit_log('USER.CREATE', entity='User', entity_id_key='id', meta_keys=['email', 'role'])
def create_user():
    session = get_db()
    data = request.json or {}
    require_fields(data, 'email', 'password', 'first_name')
    _check_role_and_service(data)
    if len(data['password']) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed([{'field': 'password', 'message': f'password must be at least {MIN_PASSWORD_LENGTH} characters'}])
    email = data['email'].strip().lower()
    if session.execute(select(User).where(User.email==email)).scalar_one_or_none():
        abort(409, description='email already in use')
    user = User(
        email=email,
        first_name=data['first_name'],
        last_name=data.get('last_name') or '',
        role=data.get('role') or ROLE_EMPLOYEE,
        service_id=data.get('service_id'),
        is_active=True,
    )
    user.set_password(data['password'])
    session.add(user)
    session.commit()
    return {'success': True, 'data': user_json(user)}, 201


@users_bp.get('/<int:user_id>')
@require_permissions('users.read')
def get_user(user_id: int):
    return {'success': True, 'data': user_json(_get_user_or_404(user_id))}


def _prefetch_user(user_id):
    user = get_db().get(User, user_id)
    return user_json(user) if user else {}


@users_bp.put('/<int:user_id>')
@require_permissions('users.update')
@audit_log(
    'USER.UPDATE',
    entity='User',
    entity_id_key='id',
    diff_keys=['first_name', 'last_name', 'role', 'service_id'],
    pre_fetch=lambda a, kw: _prefetch_user(kw.get('user_id')),
)
def update_user(user_id: int):
    session = get_db()
    user = _get_user_or_404(user_id)
    data = request.json or {}
    _check_role_and_service(data)
    for field in ('first_name', 'last_name', 'role', 'service_id'):
        if field in data:
            setattr(user, field, data[field])
    if data.get('password'):
        if len(data['password']) < MIN_PASSWORD_LENGTH:
            raise ValidationFailed([{'field': 'password', 'message': f'password must be at least {MIN_PASSWORD_LENGTH} characters'}])
        user.set_password(data['password'])
    session.commit()
    return {'success': True, 'data': user_json(user)}


def _set_active(user_id: int, active: bool):
    session = get_db()
    user = _get_user_or_404(user_id)
    if not active and user.id == current_user_id():
        abort(400, description='cannot deactivate your own account')
    user.is_active = active
    session.commit()
    return {'success': True, 'data': user_json(user)}


@users_bp.post('/<int:user_id>/deactivate')
@require_permissions('users.update')
@require_roles(ROLE_ADMIN)
@audit_log('USER.DEACTIVATE', entity='User', entity_id_key='id')
def deactivate_user(user_id: int):
    return _set_active(user_id, False)


@users_bp.post('/<int:user_id>/activate')
@require_permissions('users.update')
@require_roles(ROLE_ADMIN)
@audit_log('USER.ACTIVATE', entity='User', entity_id_key='id')
def activate_user(user_id: int):
    return _set_active(user_id, True)


# --- Per-user permission overrides ---

@users_bp.get('/<int:user_id>/permissions')
@require_permissions('users.manage_permissions')
def get_user_permissions(user_id: int):
    user = _get_user_or_404(user_id)
    return {'success': True, 'data': permissions_json(user)}


@users_bp.put('/<int:user_id>/permissions')
@require_permissions('users.manage_permissions')
@audit_log(
    'USER.PERMISSIONS.SET',
    entity='User',
    entity_id_arg='user_id',
    meta_builder=lambda data, rv, a, kw: {'count': len(data.get('data') or [])},
)
def replace_user_permissions(user_id: int):
    session = get_db()
    user = _get_user_or_404(user_id)
    data = request.json or {}
    codes = data.get('permissions')
    if not isinstance(codes, list) or not all(isinstance(c, str) for c in codes):
        raise ValidationFailed([{'field': 'permissions', 'message': 'permissions must be a list of strings'}])
    missing = unknown_permission_codes(codes)
    if missing:
        abort(400, description=f'Unknown permission codes: {missing}')
    user.permission_overrides = sorted(set(codes))
    session.commit()
    # Takes effect in the user's next access token (login or refresh)
    return {'success': True, 'data': permissions_json(user)}


@users_bp.delete('/<int:user_id>/permissions')
@require_permissions('users.manage_permissions')
@audit_log('USER.PERMISSIONS.RESET', entity='User', entity_id_arg='user_id')
def reset_user_permissions(user_id: int):
    session = get_db()
    user = _get_user_or_404(user_id)
    user.permission_overrides = None
    session.commit()
    return {'success': True, 'data': permissions_json(user)}
