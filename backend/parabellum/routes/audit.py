from flask import Blueprint, request
from parabellum import get_db
from parabellum.models.audit import AuditLog
from parabellum.decorators.auth import require_permissions
from parabellum.utils.filters import apply_filters
from parabellum.utils.listing import apply_pagination, build_list_payload

audit_bp = Blueprint('audit', __name__)


@audit_bp.get('/logs')
@require_permissions('reports.audit')
def list_audit_logs():
    filter_specs = {
        'actor_user_id': {'coerce': int, 'op': lambda q, v: q.filter(AuditLog.actor_user_id==v)},
        'action': {'multi': True, 'op': lambda q, v: q.filter(AuditLog.action.in_(v))},
        'entity': {'op': lambda q, v: q.filter(AuditLog.entity==v)},
        'entity_id': {'op': lambda q, v: q.filter(AuditLog.entity_id==str(v))},
    }
    q = apply_filters(get_db().query(AuditLog), filter_specs, request.args)
    # Newest first
    paged_q, total, page, limit = apply_pagination(q.order_by(AuditLog.id.desc()))
    return build_list_payload([r.to_dict() for r in paged_q.all()], total, page, limit)
