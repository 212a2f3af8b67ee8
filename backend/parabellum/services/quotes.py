from __future__ import annotations
"""Quote persistence helpers: numbering, line totals, transitions and expiry.

Status legality lives in `quote_lifecycle`; this module only applies the
side effects of a transition that has already been resolved.
"""
import logging
import math
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Tuple

from parabellum.models.quote import Quote, QuoteItem, QuoteApproval
from parabellum.models.customer import Customer
from parabellum.services import quote_lifecycle as lifecycle
from parabellum.services.audit import add_audit
from parabellum.utils.fsm import Transition
from parabellum.utils.validation import ValidationFailed

logger = logging.getLogger(__name__)

DEFAULT_VAT_RATE = 18.0
SYSTEM_ACTOR_ID = 0

_CENT = Decimal('1')
_HUNDRED = Decimal('100')


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _next_sequence(session, column, prefix: str) -> int:
    last = 0
    for (value,) in session.query(column).filter(column.like(f'{prefix}%')).all():
        try:
            last = max(last, int(value[len(prefix):]))
        except ValueError:
            continue
    return last + 1


def next_quote_number(session, year: int) -> str:
    """DEV-<year>-<NNN>, restarting at 001 every year."""
    prefix = f'DEV-{year}-'
    return f'{prefix}{_next_sequence(session, Quote.quote_number, prefix):03d}'


def next_customer_number(session) -> str:
    return f'CLI-{_next_sequence(session, Customer.customer_number, "CLI-"):04d}'


def line_amounts(quantity: float, unit_price_cents: int, discount_rate: float = 0, vat_rate: float = 0) -> Tuple[int, int]:
    """Return (net_cents, vat_cents) for one line, each rounded half-up."""
    net = Decimal(str(quantity)) * Decimal(unit_price_cents) * (1 - Decimal(str(discount_rate)) / _HUNDRED)
    vat = net * Decimal(str(vat_rate)) / _HUNDRED
    return int(net.quantize(_CENT, rounding=ROUND_HALF_UP)), int(vat.quantize(_CENT, rounding=ROUND_HALF_UP))


def _number(raw: Any, field: str, errors: List[Dict[str, str]], *, minimum: float = 0,
            maximum: Optional[float] = None, strict_min: bool = False, integer: bool = False):
    try:
        value = int(raw) if integer else float(raw)
    except (TypeError, ValueError):
        errors.append({'field': field, 'message': f'{field} must be a number'})
        return None
    if not math.isfinite(value):
        errors.append({'field': field, 'message': f'{field} must be a finite number'})
        return None
    if (strict_min and value <= minimum) or value < minimum or (maximum is not None and value > maximum):
        errors.append({'field': field, 'message': f'{field} out of range'})
        return None
    return value


def build_items(raw_items: Any) -> List[QuoteItem]:
    """Validate the `items` payload and return unsaved QuoteItem rows."""
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationFailed([{'field': 'items', 'message': 'at least one item is required'}])
    errors: List[Dict[str, str]] = []
    items: List[QuoteItem] = []
    for idx, raw in enumerate(raw_items):
        prefix = f'items[{idx}]'
        if not isinstance(raw, dict):
            errors.append({'field': prefix, 'message': 'item must be an object'})
            continue
        description = (raw.get('description') or '').strip()
        if not description:
            errors.append({'field': f'{prefix}.description', 'message': 'description is required'})
        quantity = _number(raw.get('quantity'), f'{prefix}.quantity', errors, strict_min=True)
        unit_price = _number(raw.get('unit_price_cents'), f'{prefix}.unit_price_cents', errors, integer=True)
        discount = _number(raw.get('discount_rate', 0), f'{prefix}.discount_rate', errors, maximum=100)
        vat = _number(raw.get('vat_rate', DEFAULT_VAT_RATE), f'{prefix}.vat_rate', errors, maximum=100)
        if None in (quantity, unit_price, discount, vat) or not description:
            continue
        net, _ = line_amounts(quantity, unit_price, discount, vat)
        items.append(QuoteItem(
            product_id=raw.get('product_id'),
            description=description,
            quantity=quantity,
            unit_price_cents=unit_price,
            discount_rate=discount,
            vat_rate=vat,
            total_cents=net,
            sort_order=idx,
        ))
    if errors:
        raise ValidationFailed(errors)
    return items


def recompute_totals(quote: Quote):
    subtotal = vat_total = 0
    for item in quote.items:
        net, vat = line_amounts(item.quantity, item.unit_price_cents, item.discount_rate, item.vat_rate)
        item.total_cents = net
        subtotal += net
        vat_total += vat
    quote.subtotal_cents = subtotal
    quote.vat_cents = vat_total
    quote.total_cents = subtotal + vat_total


def _approval(quote: Quote, level: str) -> Optional[QuoteApproval]:
    for a in quote.approvals:
        if a.level == level:
            return a
    return None


def _open_approval(quote: Quote, level: str, actor_id: int, now: datetime):
    approval = _approval(quote, level)
    if approval is None:
        approval = QuoteApproval(level=level, requested_by=actor_id)
        quote.approvals.append(approval)
    approval.status = QuoteApproval.STATUS_PENDING
    approval.requested_by = actor_id
    approval.requested_at = now
    approval.decided_by = None
    approval.decided_at = None
    approval.comments = None


def _close_approval(quote: Quote, level: str, approved: bool, actor_id: int, comments: Optional[str], now: datetime):
    approval = _approval(quote, level)
    if approval is None:
        approval = QuoteApproval(level=level, requested_by=quote.created_by)
        quote.approvals.append(approval)
    approval.status = QuoteApproval.STATUS_APPROVED if approved else QuoteApproval.STATUS_REJECTED
    approval.decided_by = actor_id
    approval.decided_at = now
    approval.comments = comments


def apply_transition(quote: Quote, step: Transition, actor_id: int, comments: Optional[str] = None,
                     now: Optional[datetime] = None) -> Quote:
    """Move `quote` along an already resolved transition and record who did it."""
    now = now or _utcnow()
    previous = quote.status
    if step.action == lifecycle.SUBMIT:
        quote.submitted_at = now
        _open_approval(quote, QuoteApproval.LEVEL_SERVICE_MANAGER, actor_id, now)
    elif step.action == lifecycle.SUBMIT_DG:
        _open_approval(quote, QuoteApproval.LEVEL_GENERAL_DIRECTOR, actor_id, now)
    elif step.action in lifecycle.SERVICE_DECISIONS:
        quote.service_manager_decided_by = actor_id
        quote.service_manager_decided_at = now
        quote.service_manager_comments = comments
        _close_approval(quote, QuoteApproval.LEVEL_SERVICE_MANAGER, step.action == lifecycle.APPROVE_SERVICE,
                        actor_id, comments, now)
    elif step.action in lifecycle.DG_DECISIONS:
        quote.dg_decided_by = actor_id
        quote.dg_decided_at = now
        quote.dg_comments = comments
        _close_approval(quote, QuoteApproval.LEVEL_GENERAL_DIRECTOR, step.action == lifecycle.APPROVE_DG,
                        actor_id, comments, now)
    elif step.action == lifecycle.EXPIRE:
        for approval in quote.approvals:
            if approval.status == QuoteApproval.STATUS_PENDING:
                approval.status = QuoteApproval.STATUS_EXPIRED
                approval.decided_at = now
    quote.status = step.target
    logger.info('Quote %s: %s -> %s (%s by user %s)', quote.quote_number, previous, step.target, step.action, actor_id)
    return quote


def expire_due_quotes(session, today: Optional[date] = None) -> List[Quote]:
    """Expire every non-terminal quote whose validity date has passed.

    Writes one audit entry per quote and commits. Returns the expired quotes.
    """
    today = today or date.today()
    due = (
        session.query(Quote)
        .filter(Quote.status.in_(lifecycle.NON_TERMINAL_STATUSES))
        .filter(Quote.valid_until < today)
        .order_by(Quote.id)
        .all()
    )
    expired: List[Quote] = []
    for quote in due:
        previous = quote.status
        step = lifecycle.resolve(previous, lifecycle.EXPIRE, lambda _perm: True)
        apply_transition(quote, step, SYSTEM_ACTOR_ID)
        add_audit('QUOTE.EXPIRE', 'Quote', quote.id,
                  {'quote_number': quote.quote_number, 'from': previous, 'valid_until': quote.valid_until.isoformat()},
                  actor_user_id=SYSTEM_ACTOR_ID)
        expired.append(quote)
    session.commit()
    if expired:
        logger.info('Expired %d quote(s) due before %s', len(expired), today.isoformat())
    return expired


def _ts(value) -> Optional[str]:
    return value.isoformat() if value else None


def item_json(item: QuoteItem) -> Dict[str, Any]:
    return {
        'id': item.id,
        'product_id': item.product_id,
        'description': item.description,
        'quantity': item.quantity,
        'unit_price_cents': item.unit_price_cents,
        'discount_rate': item.discount_rate,
        'vat_rate': item.vat_rate,
        'total_cents': item.total_cents,
    }


def quote_json(quote: Quote, *, detail: bool = False, actions: Optional[List[str]] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        'id': quote.id,
        'quote_number': quote.quote_number,
        'customer_id': quote.customer_id,
        'customer_name': quote.customer.name if quote.customer else None,
        'created_by': quote.created_by,
        'status': quote.status,
        'quote_date': quote.quote_date.isoformat(),
        'valid_until': quote.valid_until.isoformat(),
        'subtotal_cents': quote.subtotal_cents,
        'vat_cents': quote.vat_cents,
        'total_cents': quote.total_cents,
        'editable': lifecycle.is_editable(quote.status),
    }
    if detail:
        body.update({
            'terms': quote.terms,
            'notes': quote.notes,
            'submitted_at': _ts(quote.submitted_at),
            'service_manager_decided_by': quote.service_manager_decided_by,
            'service_manager_decided_at': _ts(quote.service_manager_decided_at),
            'service_manager_comments': quote.service_manager_comments,
            'dg_decided_by': quote.dg_decided_by,
            'dg_decided_at': _ts(quote.dg_decided_at),
            'dg_comments': quote.dg_comments,
            'items': [item_json(i) for i in quote.items],
            'approvals': [
                {
                    'level': a.level,
                    'status': a.status,
                    'requested_by': a.requested_by,
                    'decided_by': a.decided_by,
                    'comments': a.comments,
                    'decided_at': _ts(a.decided_at),
                }
                for a in quote.approvals
            ],
        })
    if actions is not None:
        body['available_actions'] = actions
    return body


__all__ = [
    'next_quote_number', 'next_customer_number', 'line_amounts', 'build_items', 'recompute_totals',
    'apply_transition', 'expire_due_quotes', 'quote_json', 'item_json',
]
