from flask import Blueprint, request, abort
from sqlalchemy import select
from parabellum import get_db
from parabellum.models.identity import Service
from parabellum.decorators.auth import require_permissions
from parabellum.decorators.audit import audit_log
from parabellum.utils.listing import apply_pagination, build_list_payload
from parabellum.utils.validation import require_fields

units_bp = Blueprint('service_units', __name__)


def _service_json(s: Service):
    return {'id': s.id, 'name': s.name, 'description': s.description}


@units_bp.get('')
@require_permissions('users.read')
def list_services():
    q = get_db().query(Service).order_by(Service.name.asc())
    paged_q, total, page, limit = apply_pagination(q)
    return build_list_payload([_service_json(s) for s in paged_q.all()], total, page, limit)


@units_bp.post('')
@require_permissions('admin.system_settings')
@audit_log('SERVICE.CREATE', entity='Service', entity_id_key='id', meta_keys=['name'])
def create_service():
    session = get_db()
    data = request.json or {}
    require_fields(data, 'name')
    name = data['name'].strip()
    if session.execute(select(Service).where(Service.name==name)).scalar_one_or_none():
        abort(409, description='service name already exists')
    svc = Service(name=name, description=data.get('description'))
    session.add(svc)
    session.commit()
    return {'success': True, 'data': _service_json(svc)}, 201
