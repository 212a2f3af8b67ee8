from datetime import date, timedelta
from flask import Blueprint, request, abort
from flask_jwt_extended import jwt_required
from sqlalchemy import select
from parabellum import get_db
from parabellum.decorators.auth import require_permissions
from parabellum.decorators.audit import audit_log
from parabellum.models.customer import Customer
from parabellum.models.identity import User
from parabellum.models.quote import Quote
from parabellum.services import quote_lifecycle as lifecycle
from parabellum.services.audit import add_audit
from parabellum.services.policy import (
    filter_quotes_for_current_user, assert_can_view_quote, assert_quote_actor, assert_customer_access,
    quote_actions_for_current_user, has_permission, current_user_id, current_role,
)
from parabellum.constants.permissions import ROLE_ADMIN
from parabellum.services.quotes import (
    build_items, recompute_totals, next_quote_number, apply_transition, expire_due_quotes, quote_json,
)
from parabellum.utils.filters import apply_filters
from parabellum.utils.sorting import apply_multi_sort
from parabellum.utils.listing import apply_pagination, build_list_payload
from parabellum.utils.validation import ValidationFailed, require_fields, parse_date

quotes_bp = Blueprint('quotes', __name__)

DEFAULT_VALIDITY_DAYS = 30


def _get_visible_quote(quote_id: int) -> Quote:
    quote = get_db().execute(select(Quote).where(Quote.id==quote_id)).scalar_one_or_none()
    if not quote:
        abort(404)
    assert_can_view_quote(quote)
    return quote


def _load_customer(customer_id) -> Customer:
    try:
        customer = get_db().get(Customer, int(customer_id))
    except (TypeError, ValueError):
        customer = None
    if customer is None:
        raise ValidationFailed([{'field': 'customer_id', 'message': 'unknown customer'}])
    assert_customer_access(customer)
    return customer


def _check_dates(quote_date: date, valid_until: date):
    if valid_until < quote_date:
        raise ValidationFailed([{'field': 'valid_until', 'message': 'valid_until must not be before quote_date'}])


@quotes_bp.get('')
@require_permissions('quotes.read')
def list_quotes():
    session = get_db()
    q = filter_quotes_for_current_user(session.query(Quote), Quote, User)
    filter_specs = {
        'status': {'multi': True, 'op': lambda qu, v: qu.filter(Quote.status.in_(v)),
                   'validate': lambda v: v in Quote.ALL_STATUSES},
        'customer_id': {'coerce': int, 'op': lambda qu, v: qu.filter(Quote.customer_id==v)},
        'service_id': {'coerce': int, 'op': lambda qu, v: qu.filter(
            Quote.created_by.in_(select(User.id).where(User.service_id==v)))},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {
        'quote_number': Quote.quote_number,
        'quote_date': Quote.quote_date,
        'valid_until': Quote.valid_until,
        'status': Quote.status,
        'total_cents': Quote.total_cents,
        'created_at': Quote.created_at,
        'id': Quote.id,
    }
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Quote.id, default=Quote.quote_date.desc())
    paged_q, total, page, limit = apply_pagination(q)
    return build_list_payload([quote_json(r) for r in paged_q.all()], total, page, limit)


@quotes_bp.get('/<int:quote_id>')
@require_permissions('quotes.read')
def get_quote(quote_id: int):
    quote = _get_visible_quote(quote_id)
    return {'success': True, 'data': quote_json(quote, detail=True, actions=quote_actions_for_current_user(quote))}


@quotes_bp.post('')
@require_permissions('quotes.create')
@audit_log('QUOTE.CREATE', entity='Quote', entity_id_key='id', meta_keys=['quote_number', 'customer_id', 'total_cents'])
def create_quote():
    session = get_db()
    data = request.json or {}
    require_fields(data, 'customer_id')
    customer = _load_customer(data['customer_id'])
    quote_date = parse_date(data.get('quote_date'), 'quote_date') or date.today()
    valid_until = parse_date(data.get('valid_until'), 'valid_until') or quote_date + timedelta(days=DEFAULT_VALIDITY_DAYS)
    _check_dates(quote_date, valid_until)
    quote = Quote(
        quote_number=next_quote_number(session, quote_date.year),
        customer_id=customer.id,
        created_by=current_user_id(),
        status=Quote.STATUS_DRAFT,
        quote_date=quote_date,
        valid_until=valid_until,
        terms=data.get('terms'),
        notes=data.get('notes'),
    )
    quote.items = build_items(data.get('items'))
    recompute_totals(quote)
    session.add(quote)
    session.commit()
    return {'success': True, 'data': quote_json(quote, detail=True)}, 201


def _prefetch_quote(quote_id):
    quote = get_db().get(Quote, quote_id)
    return quote_json(quote) if quote else {}


@quotes_bp.put('/<int:quote_id>')
@require_permissions('quotes.update')
@audit_log(
    'QUOTE.UPDATE',
    entity='Quote',
    entity_id_key='id',
    diff_keys=['customer_id', 'quote_date', 'valid_until', 'total_cents'],
    pre_fetch=lambda a, kw: _prefetch_quote(kw.get('quote_id')),
)
def update_quote(quote_id: int):
    session = get_db()
    quote = _get_visible_quote(quote_id)
    lifecycle.assert_editable(quote.status)
    if quote.created_by != current_user_id() and current_role() != ROLE_ADMIN:
        abort(403, description='Only the author can edit this quote')
    data = request.json or {}
    customer = _load_customer(data['customer_id']) if 'customer_id' in data else quote.customer
    quote_date = parse_date(data.get('quote_date'), 'quote_date') or quote.quote_date
    valid_until = parse_date(data.get('valid_until'), 'valid_until') or quote.valid_until
    _check_dates(quote_date, valid_until)
    items = build_items(data['items']) if 'items' in data else None
    quote.customer_id = customer.id
    quote.quote_date, quote.valid_until = quote_date, valid_until
    for field in ('terms', 'notes'):
        if field in data:
            setattr(quote, field, data[field])
    if items is not None:
        quote.items = items
    recompute_totals(quote)
    session.commit()
    return {'success': True, 'data': quote_json(quote, detail=True)}


@quotes_bp.delete('/<int:quote_id>')
@require_permissions('quotes.delete')
@audit_log('QUOTE.DELETE', entity='Quote', entity_id_arg='quote_id')
def delete_quote(quote_id: int):
    session = get_db()
    quote = _get_visible_quote(quote_id)
    lifecycle.assert_editable(quote.status)
    session.delete(quote)
    session.commit()
    return {'success': True, 'message': 'quote deleted'}


@quotes_bp.post('/<int:quote_id>/<slug>')
@jwt_required()
def quote_action(quote_id: int, slug: str):
    action = lifecycle.SLUG_ACTIONS.get(slug)
    if action is None:
        abort(404)
    session = get_db()
    quote = _get_visible_quote(quote_id)
    previous = quote.status
    # Lifecycle legality and permission first; both raise before anything changes
    step = lifecycle.resolve(previous, action, has_permission)
    assert_quote_actor(quote, action)
    comments = (request.get_json(silent=True) or {}).get('comments')
    apply_transition(quote, step, current_user_id(), comments)
    add_audit(f'QUOTE.{action.upper()}', 'Quote', quote.id,
              {'quote_number': quote.quote_number, 'from': previous, 'to': quote.status})
    session.commit()
    return {'success': True, 'data': quote_json(quote, detail=True, actions=quote_actions_for_current_user(quote))}


@quotes_bp.post('/expire')
@require_permissions('admin.system_settings')
def expire_quotes():
    data = request.get_json(silent=True) or {}
    today = parse_date(data.get('today'), 'today') or date.today()
    expired = expire_due_quotes(get_db(), today)
    return {
        'success': True,
        'data': {'count': len(expired), 'quote_numbers': [q.quote_number for q in expired]},
    }
