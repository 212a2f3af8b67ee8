from flask import Blueprint, request, abort
from sqlalchemy import select
from parabellum import get_db
from parabellum.models.customer import Customer
from parabellum.models.identity import Service
from parabellum.decorators.auth import require_permissions
from parabellum.decorators.audit import audit_log
from parabellum.services.policy import (
    CROSS_SERVICE_ROLES, assert_customer_access, current_role, current_service_id, current_user_id,
)
from parabellum.services.quotes import next_customer_number
from parabellum.utils.filters import apply_filters
from parabellum.utils.sorting import apply_multi_sort
from parabellum.utils.listing import apply_pagination, build_list_payload
from parabellum.utils.validation import ValidationFailed, require_fields

customers_bp = Blueprint('customers', __name__)


def _customer_json(c: Customer):
    return {
        'id': c.id,
        'customer_number': c.customer_number,
        'name': c.name,
        'email': c.email,
        'phone': c.phone,
        'service_id': c.service_id,
        'created_by': c.created_by,
    }


@customers_bp.get('')
@require_permissions('customers.read')
def list_customers():
    session = get_db()
    q = session.query(Customer)
    if current_role() not in CROSS_SERVICE_ROLES and current_service_id() is not None:
        # Unassigned customers are shared across services
        q = q.filter((Customer.service_id==current_service_id()) | (Customer.service_id.is_(None)))
    filter_specs = {
        'search': {'op': lambda qu, v: qu.filter(Customer.name.ilike(f'%{v}%') | Customer.customer_number.ilike(f'%{v}%'))},
        'service_id': {'coerce': int, 'op': lambda qu, v: qu.filter(Customer.service_id==v)},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {'name': Customer.name, 'customer_number': Customer.customer_number, 'id': Customer.id}
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Customer.id)
    paged_q, total, page, limit = apply_pagination(q)
    return build_list_payload([_customer_json(c) for c in paged_q.all()], total, page, limit)


@customers_bp.get('/<int:customer_id>')
@require_permissions('customers.read')
def get_customer(customer_id: int):
    customer = get_db().execute(select(Customer).where(Customer.id==customer_id)).scalar_one_or_none()
    if not customer:
        abort(404)
    assert_customer_access(customer)
    return {'success': True, 'data': _customer_json(customer)}


@customers_bp.post('')
@require_permissions('customers.create')
@audit_log('CUSTOMER.CREATE', entity='Customer', entity_id_key='id', meta_keys=['customer_number', 'name'])
def create_customer():
    session = get_db()
    data = request.json or {}
    require_fields(data, 'name')
    service_id = data.get('service_id', current_service_id())
    if service_id is not None and session.get(Service, service_id) is None:
        raise ValidationFailed([{'field': 'service_id', 'message': 'unknown service'}])
    customer = Customer(
        customer_number=next_customer_number(session),
        name=data['name'].strip(),
        email=data.get('email'),
        phone=data.get('phone'),
        service_id=service_id,
        created_by=current_user_id(),
    )
    assert_customer_access(customer)
    session.add(customer)
    session.commit()
    return {'success': True, 'data': _customer_json(customer)}, 201
